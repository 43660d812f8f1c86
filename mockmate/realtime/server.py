"""
Socket.IO server and connection hub

The hub tracks which sockets belong to which user and exposes the emit
helpers the rest of the application uses to push events.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

import socketio
from loguru import logger

from mockmate.core.config import settings
from mockmate.models.base import utc_now

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*" if "*" in settings.cors_origins else settings.cors_origins,
    logger=False,
    engineio_logger=False,
)


def user_room(user_id: str) -> str:
    return f"user_{user_id}"


def session_room(session_id: str) -> str:
    return f"session_{session_id}"


def alerts_room(user_id: str) -> str:
    return f"alerts_{user_id}"


ADMIN_ROOM = "admins"


class ConnectionHub:
    """Registry of connected sockets plus emit helpers"""

    def __init__(self, server: socketio.AsyncServer):
        self.sio = server
        self.connections: Dict[str, Dict[str, Any]] = {}
        self.user_sockets: Dict[str, Set[str]] = {}

    # ==================== Registry ====================

    def add(self, sid: str, user_id: str, role: str) -> None:
        self.connections[sid] = {
            "user_id": user_id,
            "role": role,
            "connected_at": utc_now(),
            "sessions": set(),
        }
        self.user_sockets.setdefault(user_id, set()).add(sid)

    def remove(self, sid: str) -> Optional[Dict[str, Any]]:
        info = self.connections.pop(sid, None)
        if info is not None:
            sockets = self.user_sockets.get(info["user_id"], set())
            sockets.discard(sid)
            if not sockets:
                self.user_sockets.pop(info["user_id"], None)
        return info

    def get(self, sid: str) -> Optional[Dict[str, Any]]:
        return self.connections.get(sid)

    def join_session(self, sid: str, session_id: str) -> None:
        info = self.connections.get(sid)
        if info is not None:
            info["sessions"].add(session_id)

    def leave_session(self, sid: str, session_id: str) -> None:
        info = self.connections.get(sid)
        if info is not None:
            info["sessions"].discard(session_id)

    def get_connected_users(self) -> List[str]:
        return list(self.user_sockets.keys())

    def is_user_connected(self, user_id: str) -> bool:
        return bool(self.user_sockets.get(user_id))

    def connection_stats(self) -> Dict[str, Any]:
        sessions = set()
        for info in self.connections.values():
            sessions.update(info["sessions"])
        return {
            "total_connections": len(self.connections),
            "connected_users": len(self.user_sockets),
            "active_session_rooms": len(sessions),
            "admin_connections": sum(1 for c in self.connections.values() if c["role"] == "admin"),
        }

    def clear(self) -> None:
        self.connections.clear()
        self.user_sockets.clear()

    # ==================== Emit helpers ====================

    async def _emit(self, event: str, data: Any, **kwargs: Any) -> bool:
        """Emit without raising; delivery is best effort"""
        try:
            await self.sio.emit(event, data, **kwargs)
            return True
        except Exception as exc:
            logger.warning("Socket emit {} failed: {}", event, exc)
            return False

    async def emit_to_user(self, user_id: str, event: str, data: Any) -> bool:
        return await self._emit(event, data, room=user_room(user_id))

    async def emit_to_session(
        self, session_id: str, event: str, data: Any, skip_sid: Optional[str] = None
    ) -> bool:
        return await self._emit(event, data, room=session_room(session_id), skip_sid=skip_sid)

    async def emit_to_admins(self, event: str, data: Any) -> bool:
        return await self._emit(event, data, room=ADMIN_ROOM)

    async def broadcast(self, event: str, data: Any) -> bool:
        return await self._emit(event, data)


def socket_timestamp(value: Optional[datetime] = None) -> str:
    return (value or utc_now()).isoformat()


hub = ConnectionHub(sio)
