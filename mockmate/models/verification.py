"""
One-time codes and email verification tokens
"""
from datetime import datetime
from typing import Optional
from pydantic import EmailStr, field_validator
from sqlmodel import Field

from .base import SQLModelBase, IDMixin, DateTimeField, utc_now
from .user import validate_password_strength

OTP_TYPES = ("email_verification", "password_reset", "password_change", "login_2fa")


class OTPCode(IDMixin, table=True):
    """Numeric one-time code; one row per (user, type)"""
    __tablename__ = "otp_codes"

    user_id: str = Field(..., foreign_key="users.id", ondelete="CASCADE", index=True)
    email: str = Field(..., max_length=255)
    otp_code: str = Field(..., max_length=10)
    otp_type: str = Field(..., max_length=30, index=True)
    attempts: int = Field(default=0)
    max_attempts: int = Field(default=5)
    is_used: bool = Field(default=False)
    expires_at: datetime = DateTimeField(...)
    used_at: Optional[datetime] = DateTimeField(None)
    created_at: datetime = DateTimeField(default_factory=utc_now)


class EmailVerificationToken(IDMixin, table=True):
    """Email verification link token"""
    __tablename__ = "email_verification_tokens"

    user_id: str = Field(..., foreign_key="users.id", ondelete="CASCADE", index=True)
    token: str = Field(..., max_length=128, unique=True, index=True)
    expires_at: datetime = DateTimeField(...)
    used_at: Optional[datetime] = DateTimeField(None)
    created_at: datetime = DateTimeField(default_factory=utc_now)


# ==================== Request schemas ====================

def _check_otp_type(v: str) -> str:
    if v not in OTP_TYPES:
        raise ValueError(f"otp_type must be one of {', '.join(OTP_TYPES)}")
    return v


def _check_code(v: str) -> str:
    if not v.isdigit():
        raise ValueError("otp_code must be 6 digits")
    return v


class OTPGenerateRequest(SQLModelBase):
    otp_type: str

    @field_validator("otp_type")
    @classmethod
    def check_type(cls, v: str) -> str:
        return _check_otp_type(v)


class OTPVerifyRequest(SQLModelBase):
    otp_code: str = Field(..., min_length=6, max_length=6)
    otp_type: str

    @field_validator("otp_code")
    @classmethod
    def check_code(cls, v: str) -> str:
        return _check_code(v)

    @field_validator("otp_type")
    @classmethod
    def check_type(cls, v: str) -> str:
        return _check_otp_type(v)


class OTPEmailRequest(SQLModelBase):
    """Unauthenticated OTP request keyed by account email"""
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class OTPEmailVerifyRequest(OTPEmailRequest):
    otp_code: str = Field(..., min_length=6, max_length=6)

    @field_validator("otp_code")
    @classmethod
    def check_code(cls, v: str) -> str:
        return _check_code(v)


class OTPPasswordResetRequest(OTPEmailVerifyRequest):
    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)


class VerifyEmailRequest(SQLModelBase):
    token: str = Field(..., min_length=1)


class ResendVerificationRequest(SQLModelBase):
    email: str = Field(..., min_length=3, max_length=255)

    @field_validator("email")
    @classmethod
    def normalize(cls, v: str) -> str:
        return v.lower()
