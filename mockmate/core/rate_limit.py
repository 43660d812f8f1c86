"""
Fixed-window rate limiting

Counters are keyed by (identity, route name) and stored in the shared cache,
so limits hold across workers when Redis is configured.
"""
import time
from typing import Callable, Optional

from fastapi import Request, Response

from .cache import cache
from .config import settings
from .exceptions import RateLimitException
from .security import TokenExpiredError, TokenInvalidError, decode_access_token


def client_ip(request: Request) -> str:
    """Client address; X-Forwarded-For counts only when the peer is a trusted proxy"""
    peer = request.client.host if request.client else None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and peer in settings.trusted_proxies:
        return forwarded.split(",")[0].strip() or peer
    return peer or "unknown"


def _user_identity(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization", "")
    if not auth.lower().startswith("bearer "):
        return None
    try:
        return decode_access_token(auth[7:].strip()).get("user_id")
    except (TokenExpiredError, TokenInvalidError):
        return None


class RateLimiter:
    """Fixed-window limiter keyed by (identity, route)."""

    def __init__(self, name: str, limit: int, window_seconds: int, per: str = "ip"):
        self.name = name
        self.limit = max(1, limit)
        self.window_seconds = max(1, window_seconds)
        self.per = per

    def _identity(self, request: Request) -> str:
        if self.per == "user":
            user_id = _user_identity(request)
            if user_id:
                return f"user:{user_id}"
        return f"ip:{client_ip(request)}"

    def _key(self, identity: str) -> str:
        window = int(time.time() // self.window_seconds)
        return f"ratelimit:{self.name}:{identity}:{window}"

    async def hit(self, identity: str) -> tuple:
        """Count one request; returns (count, seconds until reset)"""
        count = await cache.incr(self._key(identity), self.window_seconds)
        reset_in = self.window_seconds - int(time.time() % self.window_seconds)
        return count, reset_in

    async def __call__(self, request: Request, response: Response) -> None:
        if not settings.rate_limit_enabled:
            return
        count, reset_in = await self.hit(self._identity(request))
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, self.limit - count)),
            "X-RateLimit-Reset": str(reset_in),
        }
        # Error responses are built from scratch, so the middleware re-applies these
        request.state.rate_limit_headers = headers
        if count > self.limit:
            raise RateLimitException(
                data={"limit": self.limit, "window_seconds": self.window_seconds, "retry_after": reset_in},
                headers={**headers, "Retry-After": str(reset_in)},
            )
        response.headers.update(headers)


def rate_limit(name: str, limit: int, window_seconds: int, per: str = "ip") -> Callable:
    """Dependency factory: Depends(rate_limit("login", 5, 900))"""
    return RateLimiter(name, limit, window_seconds, per)


# Limits shared by the routers
login_limit = rate_limit("login", 5, 15 * 60)
register_limit = rate_limit("register", 3, 60 * 60)
password_reset_limit = rate_limit("password_reset", 5, 15 * 60)
otp_limit = rate_limit("otp", 5, 15 * 60, per="user")
otp_send_limit = rate_limit("otp_send", 3, 15 * 60)
otp_verify_limit = rate_limit("otp_verify", 10, 15 * 60)
verification_resend_limit = rate_limit("verification_resend", 3, 60 * 60)
admin_limit = rate_limit("admin", 500, 15 * 60, per="user")
