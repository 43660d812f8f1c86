"""
API dependencies

Bearer-token authentication, role and credit guards, tenant API keys
"""
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.database import get_db
from mockmate.core.exceptions import ForbiddenException, UnauthorizedException
from mockmate.core.security import TokenExpiredError, TokenInvalidError, decode_access_token
from mockmate.crud import user_crud
from mockmate.models.tenant import Tenant
from mockmate.models.user import User, UserRole
from mockmate.services.auth_service import auth_service
from mockmate.services.tenant_service import tenant_service


def bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        token = auth[7:].strip()
        return token or None
    return None


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Authenticated user from the Bearer token; refreshes last_activity"""
    token = bearer_token(request)
    if token is None:
        raise UnauthorizedException("Access token required", code="TOKEN_REQUIRED")
    if await auth_service.is_blacklisted(token):
        raise UnauthorizedException("Token has been revoked", code="TOKEN_BLACKLISTED")
    try:
        claims = decode_access_token(token)
    except TokenExpiredError:
        raise UnauthorizedException("Token has expired", code="TOKEN_EXPIRED")
    except TokenInvalidError:
        raise UnauthorizedException("Invalid token", code="INVALID_TOKEN")

    user = await user_crud.get(db, claims.get("user_id", ""))
    if user is None or not user.is_active or user.deleted_at is not None:
        raise UnauthorizedException("User not found or inactive", code="USER_NOT_FOUND")

    await user_crud.touch_activity(db, user)
    request.state.user_id = user.id
    return user


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Current user when a valid token is sent, otherwise None"""
    if bearer_token(request) is None:
        return None
    try:
        return await get_current_user(request, db)
    except UnauthorizedException:
        return None


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.ADMIN:
        raise ForbiddenException("Admin access required", code="ADMIN_REQUIRED")
    return user


def require_credits(amount: int = 1):
    """Dependency factory: the user must hold at least `amount` credits"""

    async def checker(user: User = Depends(get_current_user)) -> User:
        if (user.credits or 0) < amount:
            raise ForbiddenException(
                "Insufficient credits", code="INSUFFICIENT_CREDITS",
                data={"required": amount, "current": user.credits},
            )
        return user

    return checker


async def get_tenant_from_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    db: AsyncSession = Depends(get_db),
) -> Tenant:
    if not x_api_key:
        raise UnauthorizedException("API key required", code="API_KEY_REQUIRED")
    resolved = await tenant_service.validate_api_key(db, x_api_key)
    if resolved is None:
        raise UnauthorizedException("Invalid or expired API key", code="INVALID_API_KEY")
    return resolved[0]
