"""
Socket.IO event handlers

Authenticated sockets join their user room (and the admin room), then use
session events for the live interview chat and alert events for the
notification centre. Every handler opens its own database session.
"""
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs

import socketio
from socketio.exceptions import ConnectionRefusedError as ConnectionRefused
from loguru import logger
from pydantic import ValidationError

from mockmate.core.database import AsyncSessionLocal
from mockmate.core.exceptions import AppException
from mockmate.core.security import TokenExpiredError, TokenInvalidError, decode_access_token
from mockmate.crud import message_crud, session_crud, user_crud
from mockmate.models.interview import InterviewMessageResponse, MessageCreate, SessionStatus
from mockmate.models.user import User
from mockmate.services.alert_service import alert_service
from mockmate.services.auth_service import auth_service
from mockmate.services.session_service import SessionService, session_service

from .server import ADMIN_ROOM, ConnectionHub, alerts_room, hub, session_room, sio, socket_timestamp, user_room

JOINABLE_STATUSES = (SessionStatus.ACTIVE, SessionStatus.PAUSED)
CONTROL_ACTIONS = {"pause": SessionStatus.PAUSED, "resume": SessionStatus.ACTIVE}
RECENT_MESSAGES = 20


def serialize_message(message) -> Dict[str, Any]:
    return InterviewMessageResponse.model_validate(message).model_dump(mode="json")


def handshake_token(environ: Dict[str, Any], auth: Optional[Dict[str, Any]]) -> Optional[str]:
    """JWT from the handshake auth payload, else the `token` query parameter"""
    if isinstance(auth, dict) and auth.get("token"):
        return auth["token"]
    query = parse_qs(environ.get("QUERY_STRING", ""))
    values = query.get("token")
    return values[0] if values else None


class SocketGateway:
    """Binds the interview and alert events to a Socket.IO server"""

    def __init__(
        self,
        server: socketio.AsyncServer,
        connections: ConnectionHub,
        session_factory: Callable = AsyncSessionLocal,
        sessions: Optional[SessionService] = None,
    ):
        self.sio = server
        self.hub = connections
        self.session_factory = session_factory
        self.sessions = sessions or session_service

    def register(self) -> None:
        handlers = {
            "connect": self.on_connect,
            "disconnect": self.on_disconnect,
            "join_session": self.on_join_session,
            "leave_session": self.on_leave_session,
            "session_control": self.on_session_control,
            "send_message": self.on_send_message,
            "typing": self.on_typing,
            "join_alerts": self.on_join_alerts,
            "get_alerts": self.on_get_alerts,
            "get_alert_count": self.on_get_alert_count,
            "mark_alert_read": self.on_mark_alert_read,
            "dismiss_alert": self.on_dismiss_alert,
        }
        for event, handler in handlers.items():
            self.sio.on(event, handler)

    # ==================== Helpers ====================

    async def _user(self, db, sid: str) -> Optional[User]:
        info = self.hub.get(sid)
        if info is None:
            return None
        user = await user_crud.get(db, info["user_id"])
        if user is None or not user.is_active:
            return None
        return user

    async def _error(self, sid: str, event: str, code: str, message: str) -> None:
        await self.sio.emit(event, {"code": code, "message": message, "timestamp": socket_timestamp()}, to=sid)

    async def _emit_count(self, db, sid: str, user: User) -> None:
        count = await alert_service.unread_count(db, user)
        await self.sio.emit("alert_count_updated", {"count": count}, to=sid)

    # ==================== Connection ====================

    async def on_connect(self, sid: str, environ: Dict[str, Any], auth: Optional[Dict[str, Any]] = None):
        token = handshake_token(environ, auth)
        if not token:
            raise ConnectionRefused("Authentication token required")
        try:
            claims = decode_access_token(token)
        except TokenExpiredError:
            raise ConnectionRefused("Token expired")
        except TokenInvalidError:
            raise ConnectionRefused("Invalid token")
        if await auth_service.is_blacklisted(token):
            raise ConnectionRefused("Token revoked")

        async with self.session_factory() as db:
            user = await user_crud.get(db, claims.get("user_id"))
            if user is None or not user.is_active or user.deleted_at is not None:
                raise ConnectionRefused("User not found or inactive")

            await self.sio.enter_room(sid, user_room(user.id))
            if user.is_admin:
                await self.sio.enter_room(sid, ADMIN_ROOM)
            self.hub.add(sid, user.id, user.role)
            logger.info("Socket {} connected for user {}", sid, user.id)

            await self.sio.emit("connected", {
                "user_id": user.id,
                "role": user.role,
                "socket_id": sid,
                "timestamp": socket_timestamp(),
            }, to=sid)
            await self._emit_count(db, sid, user)

    async def on_disconnect(self, sid: str, *args):
        info = self.hub.remove(sid)
        if info is None:
            return
        for session_id in info["sessions"]:
            await self.hub.emit_to_session(session_id, "user_left", {
                "user_id": info["user_id"], "session_id": session_id, "timestamp": socket_timestamp(),
            })
        logger.info("Socket {} disconnected (user {})", sid, info["user_id"])

    # ==================== Interview sessions ====================

    async def on_join_session(self, sid: str, data: Dict[str, Any]):
        session_id = (data or {}).get("session_id")
        if not session_id:
            return await self._error(sid, "session_error", "SESSION_ID_REQUIRED", "session_id is required")

        async with self.session_factory() as db:
            user = await self._user(db, sid)
            if user is None:
                return await self._error(sid, "error", "UNAUTHORIZED", "Not authenticated")
            session = await session_crud.get_owned(db, session_id, user.id)
            if session is None:
                return await self._error(sid, "session_error", "SESSION_NOT_FOUND", "Session not found")
            if session.status not in JOINABLE_STATUSES:
                return await self._error(
                    sid, "session_error", "SESSION_NOT_ACTIVE",
                    f"Session is {session.status}; only active or paused sessions can be joined",
                )

            await self.sio.enter_room(sid, session_room(session_id))
            self.hub.join_session(sid, session_id)
            messages = await message_crud.list_for_session(db, session_id, limit=RECENT_MESSAGES)

        await self.sio.emit("session_joined", {
            "session_id": session_id,
            "status": session.status,
            "job_title": session.job_title,
            "timestamp": socket_timestamp(),
        }, to=sid)
        await self.sio.emit("session_messages", {
            "session_id": session_id,
            "messages": [serialize_message(m) for m in messages],
        }, to=sid)
        await self.hub.emit_to_session(session_id, "user_joined", {
            "user_id": user.id, "session_id": session_id, "timestamp": socket_timestamp(),
        }, skip_sid=sid)

    async def on_leave_session(self, sid: str, data: Dict[str, Any]):
        session_id = (data or {}).get("session_id")
        info = self.hub.get(sid)
        if not session_id or info is None:
            return
        await self.sio.leave_room(sid, session_room(session_id))
        self.hub.leave_session(sid, session_id)
        await self.sio.emit("session_left", {"session_id": session_id, "timestamp": socket_timestamp()}, to=sid)
        await self.hub.emit_to_session(session_id, "user_left", {
            "user_id": info["user_id"], "session_id": session_id, "timestamp": socket_timestamp(),
        })

    async def on_session_control(self, sid: str, data: Dict[str, Any]):
        data = data or {}
        session_id = data.get("session_id")
        target = CONTROL_ACTIONS.get(data.get("action"))
        if not session_id or target is None:
            return await self._error(sid, "session_error", "INVALID_ACTION", "action must be pause or resume")

        async with self.session_factory() as db:
            user = await self._user(db, sid)
            if user is None:
                return await self._error(sid, "error", "UNAUTHORIZED", "Not authenticated")
            session = await session_crud.get_owned(db, session_id, user.id)
            if session is None:
                return await self._error(sid, "session_error", "SESSION_NOT_FOUND", "Session not found")
            try:
                await self.sessions.transition(db, session, target)
                await db.commit()
            except AppException as exc:
                await db.rollback()
                return await self._error(sid, "session_error", exc.code, exc.message)

        await self.hub.emit_to_session(session_id, "session_status_changed", {
            "session_id": session_id,
            "status": session.status,
            "action": data["action"],
            "changed_by": user.id,
            "timestamp": socket_timestamp(),
        })

    async def on_send_message(self, sid: str, data: Dict[str, Any]):
        data = data or {}
        session_id = data.get("session_id")
        try:
            payload = MessageCreate(
                content=data.get("content") or "",
                message_type=data.get("message_type") or "answer",
                metadata=data.get("metadata") or {},
            )
        except ValidationError as exc:
            return await self._error(sid, "message_error", "INVALID_MESSAGE", exc.errors()[0]["msg"])
        if not session_id:
            return await self._error(sid, "message_error", "SESSION_ID_REQUIRED", "session_id is required")

        async with self.session_factory() as db:
            user = await self._user(db, sid)
            if user is None:
                return await self._error(sid, "error", "UNAUTHORIZED", "Not authenticated")
            if session_id not in self.hub.get(sid)["sessions"]:
                return await self._error(
                    sid, "message_error", "SESSION_NOT_JOINED", "Join the session before sending messages"
                )
            session = await session_crud.get_owned(db, session_id, user.id)
            if session is None:
                return await self._error(sid, "message_error", "SESSION_NOT_FOUND", "Session not found")
            if session.status not in JOINABLE_STATUSES:
                return await self._error(sid, "message_error", "SESSION_NOT_ACTIVE", "Session is not active")

            message = await message_crud.add(
                db, session_id=session_id, content=payload.content,
                message_type=payload.message_type, metadata=payload.metadata,
            )
            await db.commit()
            await self.hub.emit_to_session(session_id, "new_message", {
                **serialize_message(message), "user_id": user.id,
            })

            if payload.message_type != "answer" or session.status != SessionStatus.ACTIVE:
                return
            try:
                reply = await self.sessions.interviewer_reply(db, session, payload.content)
                await db.commit()
            except Exception as exc:
                await db.rollback()
                logger.error("Interviewer reply failed for session {}: {}", session_id, exc)
                return await self._error(
                    sid, "ai_error", "AI_RESPONSE_ERROR", "The interviewer could not respond, please try again"
                )

        await self.hub.emit_to_session(session_id, "new_message", {
            **serialize_message(reply), "type": "ai_response",
        })

    async def on_typing(self, sid: str, data: Dict[str, Any]):
        data = data or {}
        session_id = data.get("session_id")
        info = self.hub.get(sid)
        if not session_id or info is None or session_id not in info["sessions"]:
            return
        await self.hub.emit_to_session(session_id, "user_typing", {
            "user_id": info["user_id"],
            "session_id": session_id,
            "is_typing": bool(data.get("is_typing")),
        }, skip_sid=sid)

    # ==================== Alerts ====================

    async def on_join_alerts(self, sid: str, data: Any = None):
        info = self.hub.get(sid)
        if info is None:
            return await self._error(sid, "error", "UNAUTHORIZED", "Not authenticated")
        await self.sio.enter_room(sid, alerts_room(info["user_id"]))

    async def on_get_alerts(self, sid: str, data: Optional[Dict[str, Any]] = None):
        include_read = bool((data or {}).get("include_read", True))
        async with self.session_factory() as db:
            user = await self._user(db, sid)
            if user is None:
                return await self._error(sid, "error", "UNAUTHORIZED", "Not authenticated")
            alerts = await alert_service.visible_alerts(db, user, include_read=include_read)
            await db.commit()
        await self.sio.emit("alerts_loaded", {
            "alerts": alerts,
            "unread_count": sum(1 for a in alerts if not a["is_read"]),
        }, to=sid)

    async def on_get_alert_count(self, sid: str, data: Any = None):
        async with self.session_factory() as db:
            user = await self._user(db, sid)
            if user is None:
                return await self._error(sid, "error", "UNAUTHORIZED", "Not authenticated")
            await self._emit_count(db, sid, user)

    async def on_mark_alert_read(self, sid: str, data: Dict[str, Any]):
        await self._alert_action(sid, data, "alert_marked_read", alert_service.mark_read)

    async def on_dismiss_alert(self, sid: str, data: Dict[str, Any]):
        await self._alert_action(sid, data, "alert_dismissed", alert_service.dismiss)

    async def _alert_action(self, sid: str, data: Dict[str, Any], event: str, action: Callable) -> None:
        alert_id = (data or {}).get("alert_id")
        if not alert_id:
            return await self._error(sid, "error", "ALERT_ID_REQUIRED", "alert_id is required")
        async with self.session_factory() as db:
            user = await self._user(db, sid)
            if user is None:
                return await self._error(sid, "error", "UNAUTHORIZED", "Not authenticated")
            try:
                result = await action(db, user, alert_id)
                await db.commit()
            except AppException as exc:
                await db.rollback()
                return await self._error(sid, "error", exc.code, exc.message)
            await self.sio.emit(event, result, to=sid)
            await self._emit_count(db, sid, user)


gateway = SocketGateway(sio, hub)
