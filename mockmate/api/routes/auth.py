"""
Authentication API routes
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import bearer_token, get_current_user
from mockmate.core.database import get_db
from mockmate.core.rate_limit import login_limit, password_reset_limit, register_limit
from mockmate.core.response import success_response
from mockmate.models.user import (
    PasswordResetConfirm,
    PasswordResetRequest,
    TokenRefreshRequest,
    User,
    UserLogin,
    UserRegister,
    UserResponse,
)
from mockmate.services.auth_service import auth_service

router = APIRouter()


@router.post("/register", status_code=201, summary="Register", dependencies=[Depends(register_limit)])
async def register(
    data: UserRegister,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Create an unverified account and send the verification email
    """
    result = await auth_service.register(db, data, request)
    return success_response(
        data=result,
        message="Registration successful. Please check your email to verify your account.",
        code=201,
    )


@router.post("/login", summary="Log in", dependencies=[Depends(login_limit)])
async def login(
    data: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    result = await auth_service.login(db, data, request)
    return success_response(data=result, message="Login successful")


@router.post("/refresh", summary="Rotate tokens")
async def refresh(
    data: TokenRefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Exchange a stored refresh token for a new token pair
    """
    tokens = await auth_service.refresh(db, data.refresh_token)
    return success_response(data=tokens, message="Token refreshed")


@router.post("/logout", summary="Log out")
async def logout(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.logout(db, user, bearer_token(request))
    return success_response(message="Logout successful")


@router.post(
    "/password-reset-request", summary="Request a password reset",
    dependencies=[Depends(password_reset_limit)],
)
async def password_reset_request(
    data: PasswordResetRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Always answers the same way, whether or not the email exists
    """
    message = await auth_service.request_password_reset(db, data.email)
    return success_response(message=message)


@router.post("/password-reset", summary="Reset password")
async def password_reset(
    data: PasswordResetConfirm,
    db: AsyncSession = Depends(get_db),
):
    await auth_service.reset_password(db, data.token, data.password)
    return success_response(message="Password has been reset. Please log in with your new password.")


@router.get("/me", summary="Current user")
async def me(user: User = Depends(get_current_user)):
    return success_response(data=UserResponse.model_validate(user).model_dump())
