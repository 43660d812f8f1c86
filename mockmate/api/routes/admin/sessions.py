"""
Admin session management routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.cache import cache
from mockmate.core.database import get_db
from mockmate.core.response import paged_response, success_response
from mockmate.crud import message_crud, session_crud
from mockmate.models.interview import InterviewMessageResponse, InterviewSessionResponse
from mockmate.services.admin_service import admin_service
from mockmate.services.session_service import state_key

router = APIRouter()


@router.get("", summary="List sessions")
async def list_sessions(
    user_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    session_type: Optional[str] = Query(None),
    difficulty: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    sessions, total = await session_crud.list_for_user(
        db, user_id, status=status, session_type=session_type, difficulty=difficulty,
        page=page, page_size=page_size,
    )
    return paged_response(
        items=[InterviewSessionResponse.model_validate(s).model_dump() for s in sessions],
        total=total, page=page, page_size=page_size,
    )


@router.get("/stats", summary="Session statistics")
async def session_stats(db: AsyncSession = Depends(get_db)):
    return success_response(data=await admin_service.session_stats(db))


@router.get("/{session_id}", summary="Get session")
async def get_session(session_id: str, db: AsyncSession = Depends(get_db)):
    session = await admin_service.get_session(db, session_id)
    messages = await message_crud.list_for_session(db, session.id)
    return success_response(data={
        **InterviewSessionResponse.model_validate(session).model_dump(),
        "messages": [InterviewMessageResponse.model_validate(m).model_dump() for m in messages],
    })


@router.delete("/{session_id}", summary="Delete session")
async def delete_session(session_id: str, db: AsyncSession = Depends(get_db)):
    session = await admin_service.get_session(db, session_id)
    await session_crud.delete_cascade(db, session)
    await cache.delete(state_key(session_id))
    return success_response(message="Session deleted")
