"""
Resume API routes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import get_current_user
from mockmate.core.database import get_db
from mockmate.core.exceptions import NotFoundException
from mockmate.core.response import success_response
from mockmate.crud import resume_crud
from mockmate.models.resume import ResumeCreate, ResumeListResponse, ResumeResponse, ResumeUpdate
from mockmate.models.user import User

router = APIRouter()


async def get_owned_resume(db: AsyncSession, resume_id: str, user: User):
    resume = await resume_crud.get_owned(db, resume_id, user.id)
    if not resume:
        raise NotFoundException("Resume not found", code="RESUME_NOT_FOUND")
    return resume


@router.get("", summary="List resumes")
async def list_resumes(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    resumes = await resume_crud.list_for_user(db, user.id)
    return success_response(data=[ResumeListResponse.model_validate(r).model_dump() for r in resumes])


@router.post("", status_code=201, summary="Create resume")
async def create_resume(
    data: ResumeCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a text resume; the user's first resume becomes the default
    """
    resume = await resume_crud.create_resume(db, user_id=user.id, obj_in=data)
    return success_response(
        data=ResumeResponse.model_validate(resume).model_dump(),
        message="Resume created",
        code=201,
    )


@router.get("/{resume_id}", summary="Get resume")
async def get_resume(
    resume_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    resume = await get_owned_resume(db, resume_id, user)
    return success_response(data=ResumeResponse.model_validate(resume).model_dump())


@router.put("/{resume_id}", summary="Update resume")
async def update_resume(
    resume_id: str,
    data: ResumeUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    resume = await get_owned_resume(db, resume_id, user)
    resume = await resume_crud.update_resume(db, db_obj=resume, obj_in=data)
    return success_response(
        data=ResumeResponse.model_validate(resume).model_dump(),
        message="Resume updated",
    )


@router.delete("/{resume_id}", summary="Delete resume")
async def delete_resume(
    resume_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Delete a resume; sessions that referenced it keep running without it
    """
    resume = await get_owned_resume(db, resume_id, user)
    await resume_crud.delete(db, id=resume.id)
    return success_response(message="Resume deleted")


@router.post("/{resume_id}/default", summary="Set default resume")
async def set_default_resume(
    resume_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    resume = await get_owned_resume(db, resume_id, user)
    resume = await resume_crud.set_default(db, resume)
    return success_response(
        data=ResumeResponse.model_validate(resume).model_dump(),
        message="Default resume updated",
    )
