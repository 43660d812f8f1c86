"""
Admin security rules template routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import require_admin
from mockmate.core.database import get_db
from mockmate.core.response import success_response
from mockmate.models.auth_provider import (
    RulesDeployRequest,
    RulesDeploymentResponse,
    RulesGenerateRequest,
    RulesTemplateCreate,
    RulesTemplateResponse,
    RulesTemplateUpdate,
    RulesValidateRequest,
)
from mockmate.models.user import User
from mockmate.services.rules_service import rules_service

router = APIRouter()


def template_data(template) -> dict:
    return RulesTemplateResponse.model_validate(template).model_dump()


@router.get("/templates", summary="List rules templates")
async def list_templates(
    category: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    templates = await rules_service.list_templates(db, category)
    return success_response(data=[template_data(t) for t in templates])


@router.post("/templates", status_code=201, summary="Create rules template")
async def create_template(
    data: RulesTemplateCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    template = await rules_service.create_template(db, data, created_by=admin.id)
    return success_response(data=template_data(template), message="Template created", code=201)


@router.get("/templates/{template_id}", summary="Get rules template")
async def get_template(template_id: str, db: AsyncSession = Depends(get_db)):
    return success_response(data=template_data(await rules_service.get_template(db, template_id)))


@router.put("/templates/{template_id}", summary="Update rules template")
async def update_template(
    template_id: str,
    data: RulesTemplateUpdate,
    db: AsyncSession = Depends(get_db),
):
    template = await rules_service.update_template(db, template_id, data)
    return success_response(data=template_data(template), message="Template updated")


@router.delete("/templates/{template_id}", summary="Delete rules template")
async def delete_template(template_id: str, db: AsyncSession = Depends(get_db)):
    await rules_service.delete_template(db, template_id)
    return success_response(message="Template deleted")


@router.post("/templates/{template_id}/generate", summary="Generate rules")
async def generate_rules(
    template_id: str,
    data: Optional[RulesGenerateRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    """
    Substitute ${VAR} placeholders: template defaults overridden by the request
    """
    variables = data.variables if data else {}
    return success_response(data=await rules_service.generate(db, template_id, variables))


@router.post("/validate", summary="Validate rules")
async def validate_rules(data: RulesValidateRequest):
    result = rules_service.validate(data.rules_content)
    message = "Rules are valid" if result["is_valid"] else "Rules have errors"
    return success_response(data=result, message=message)


@router.post("/deploy", summary="Record rules deployment")
async def deploy_rules(
    data: RulesDeployRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    deployment = await rules_service.deploy(db, data, deployed_by=admin.id)
    return success_response(
        data=RulesDeploymentResponse.model_validate(deployment).model_dump(),
        message="Rules validated and recorded (dry run)",
    )


@router.get("/deployments", summary="Deployment history")
async def deployments(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    history = await rules_service.history(db, limit)
    return success_response(data=[RulesDeploymentResponse.model_validate(d).model_dump() for d in history])
