"""
Admin email template routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import require_admin
from mockmate.core.database import get_db
from mockmate.core.response import paged_response, success_response
from mockmate.crud import email_log_crud
from mockmate.models.email import (
    EmailLogResponse,
    EmailPreviewRequest,
    EmailTemplateResponse,
    EmailTemplateUpsert,
    EmailTestRequest,
)
from mockmate.models.user import User
from mockmate.services.email_service import email_service

router = APIRouter()


@router.get("", summary="List email templates")
async def list_templates(db: AsyncSession = Depends(get_db)):
    return success_response(data=await email_service.list_templates(db))


@router.get("/logs", summary="Email delivery log")
async def email_logs(
    status: Optional[str] = Query(None),
    template_name: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    logs, total = await email_log_crud.list_filtered(
        db, status=status, template_name=template_name, page=page, page_size=page_size
    )
    return paged_response(
        items=[EmailLogResponse.model_validate(log).model_dump() for log in logs],
        total=total, page=page, page_size=page_size,
        by_status=await email_log_crud.count_by_status(db),
    )


@router.post("/test", summary="Send test email")
async def send_test_email(
    data: EmailTestRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Send a template to an arbitrary address; delivery problems are reported in the data
    """
    result = await email_service.send_test_email(db, data.to, data.template_name, data.variables)
    message = "Test email sent" if result.get("success") else "Test email was not sent"
    return success_response(data=result, message=message)


@router.get("/{name}", summary="Get email template")
async def get_template(name: str, db: AsyncSession = Depends(get_db)):
    return success_response(data=await email_service.get_template_detail(db, name))


@router.put("/{name}", summary="Create or update template override")
async def save_template(
    name: str,
    data: EmailTemplateUpsert,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    template = await email_service.save_template(db, name, data, updated_by=admin.id)
    return success_response(
        data=EmailTemplateResponse.model_validate(template).model_dump(),
        message="Template saved",
    )


@router.delete("/{name}", summary="Delete template override")
async def delete_template(name: str, db: AsyncSession = Depends(get_db)):
    await email_service.delete_template(db, name)
    return success_response(message="Template override deleted")


@router.post("/{name}/preview", summary="Preview template")
async def preview_template(
    name: str,
    data: Optional[EmailPreviewRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    data = data or EmailPreviewRequest()
    preview = await email_service.preview(
        db, name, variables=data.variables, html_body=data.html_body, subject=data.subject
    )
    return success_response(data=preview)
