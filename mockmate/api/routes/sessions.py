"""
Interview session API routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import get_current_user, require_credits
from mockmate.core.database import get_db
from mockmate.core.exceptions import BadRequestException
from mockmate.core.response import success_response
from mockmate.crud import message_crud, session_crud
from mockmate.models.interview import (
    SORTABLE_FIELDS,
    InterviewMessageResponse,
    InterviewSessionCreate,
    InterviewSessionResponse,
    InterviewSessionUpdate,
    MessageCreate,
    SessionComplete,
)
from mockmate.models.user import User
from mockmate.realtime.server import hub
from mockmate.services.session_service import session_service

router = APIRouter()


def session_data(session) -> dict:
    return InterviewSessionResponse.model_validate(session).model_dump()


def message_data(message) -> dict:
    return InterviewMessageResponse.model_validate(message).model_dump()


@router.get("", summary="List sessions")
async def list_sessions(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    status: Optional[str] = Query(None),
    session_type: Optional[str] = Query(None),
    difficulty: Optional[str] = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Paged, filtered list of the user's sessions
    """
    if sort_by not in SORTABLE_FIELDS:
        raise BadRequestException(
            f"sort_by must be one of {', '.join(SORTABLE_FIELDS)}", code="INVALID_SORT_FIELD"
        )
    if sort_order not in ("asc", "desc"):
        raise BadRequestException("sort_order must be asc or desc", code="INVALID_SORT_ORDER")

    sessions, total = await session_crud.list_for_user(
        db, user.id, status=status, session_type=session_type, difficulty=difficulty,
        sort_by=sort_by, sort_order=sort_order, page=page, page_size=page_size,
    )
    total_pages = (total + page_size - 1) // page_size
    return success_response(data={
        "sessions": [session_data(s) for s in sessions],
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "total_sessions": total,
            "page_size": page_size,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    })


@router.post("", status_code=201, summary="Create session")
async def create_session(
    data: InterviewSessionCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    session = await session_service.create(db, user, data)
    return success_response(data=session_data(session), message="Session created", code=201)


@router.get("/{session_id}", summary="Get session")
async def get_session(
    session_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    session = await session_service.get_owned(db, user, session_id)
    messages = await message_crud.list_for_session(db, session.id)
    return success_response(data={
        **session_data(session),
        "messages": [message_data(m) for m in messages],
    })


@router.post("/{session_id}/start", summary="Start session")
async def start_session(
    session_id: str,
    user: User = Depends(require_credits(1)),
    db: AsyncSession = Depends(get_db),
):
    """
    Charge the session credit and move the session to active
    """
    result = await session_service.start(db, user, session_id)
    return success_response(
        data={
            "session": session_data(result["session"]),
            "credits_remaining": result["credits_remaining"],
            "credits_used": result["credits_used"],
        },
        message="Session started",
    )


@router.put("/{session_id}", summary="Update session")
async def update_session(
    session_id: str,
    data: InterviewSessionUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    session = await session_service.update(db, user, session_id, data)
    if data.status is not None:
        await hub.emit_to_session(session.id, "session_status_changed", {
            "session_id": session.id, "status": session.status, "changed_by": user.id,
        })
    return success_response(data=session_data(session), message="Session updated")


@router.post("/{session_id}/complete", summary="Complete session")
async def complete_session(
    session_id: str,
    data: Optional[SessionComplete] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = data or SessionComplete()
    session = await session_service.complete(
        db, user, session_id, summary=data.summary, feedback=data.feedback
    )
    await hub.emit_to_session(session.id, "session_status_changed", {
        "session_id": session.id, "status": session.status, "changed_by": user.id,
    })
    return success_response(data=session_data(session), message="Session completed")


@router.post("/{session_id}/heartbeat", summary="Session heartbeat")
async def heartbeat(
    session_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    session = await session_service.heartbeat(db, user, session_id)
    return success_response(data={
        "session_id": session.id,
        "status": session.status,
        "last_heartbeat": session.last_heartbeat,
    })


@router.get("/{session_id}/status", summary="Session status")
async def get_status(
    session_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success_response(data=await session_service.status(db, user, session_id))


@router.delete("/{session_id}", summary="Delete session")
async def delete_session(
    session_id: str,
    force: bool = Query(False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Sessions that were started can only be deleted with force=true
    """
    await session_service.delete(db, user, session_id, force=force)
    return success_response(message="Session deleted")


@router.get("/{session_id}/messages", summary="List messages")
async def list_messages(
    session_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    session = await session_service.get_owned(db, user, session_id)
    messages = await message_crud.list_for_session(db, session.id)
    return success_response(data=[message_data(m) for m in messages])


@router.post("/{session_id}/messages", status_code=201, summary="Add message")
async def add_message(
    session_id: str,
    data: MessageCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    session = await session_service.get_owned(db, user, session_id)
    message = await session_service.add_message(
        db, session, data.content, data.message_type, data.metadata
    )
    payload = message_data(message)
    await hub.emit_to_session(session.id, "new_message", {
        **InterviewMessageResponse.model_validate(message).model_dump(mode="json"), "user_id": user.id,
    })
    return success_response(data=payload, message="Message added", code=201)
