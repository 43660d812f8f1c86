"""
User and auth token models
"""
import re
from datetime import datetime
from typing import Optional
from pydantic import EmailStr, field_validator
from sqlmodel import Field

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse, DateTimeField, utc_now

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def validate_password_strength(value: str) -> str:
    """At least 8 characters with a lower-case letter, an upper-case letter and a digit"""
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(
            "Password must contain at least one lowercase letter, one uppercase letter, and one number"
        )
    return value


class UserRole:
    USER = "user"
    ADMIN = "admin"

    ALL = (USER, ADMIN)


# ==================== Table models ====================

class User(TimestampMixin, IDMixin, table=True):
    """User account"""
    __tablename__ = "users"

    email: str = Field(..., max_length=255, unique=True, index=True)
    password_hash: str = Field(..., max_length=255)
    first_name: str = Field(..., max_length=50)
    last_name: str = Field(..., max_length=50)
    role: str = Field(default=UserRole.USER, max_length=20, index=True)
    credits: int = Field(default=0)
    is_active: bool = Field(default=True, index=True)
    is_verified: bool = Field(default=False)
    failed_login_attempts: int = Field(default=0)
    locked_until: Optional[datetime] = DateTimeField(None)
    last_login: Optional[datetime] = DateTimeField(None)
    last_activity: Optional[datetime] = DateTimeField(None)
    deleted_at: Optional[datetime] = DateTimeField(None)
    tenant_id: Optional[str] = Field(default=None, foreign_key="tenants.id", index=True)

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class RefreshToken(IDMixin, table=True):
    """Stored refresh token; one active token per user"""
    __tablename__ = "refresh_tokens"

    user_id: str = Field(..., foreign_key="users.id", ondelete="CASCADE", index=True)
    token: str = Field(..., unique=True, max_length=1024)
    expires_at: datetime = DateTimeField(...)
    created_at: datetime = DateTimeField(default_factory=utc_now)


class PasswordReset(IDMixin, table=True):
    """Password reset token"""
    __tablename__ = "password_resets"

    user_id: str = Field(..., foreign_key="users.id", ondelete="CASCADE", index=True)
    token: str = Field(..., unique=True, max_length=128)
    expires_at: datetime = DateTimeField(...)
    created_at: datetime = DateTimeField(default_factory=utc_now)


# ==================== Request schemas ====================

class UserRegister(SQLModelBase):
    """Registration request"""
    email: EmailStr
    password: str
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)


class UserLogin(SQLModelBase):
    """Login request"""
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class TokenRefreshRequest(SQLModelBase):
    refresh_token: Optional[str] = None


class PasswordResetRequest(SQLModelBase):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class PasswordResetConfirm(SQLModelBase):
    token: str = Field(..., min_length=1)
    password: str

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)


class ProfileUpdate(SQLModelBase):
    """Profile update request"""
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class PasswordChange(SQLModelBase):
    current_password: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)


class AdminUserUpdate(SQLModelBase):
    """Admin update of a user - all fields optional"""
    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    role: Optional[str] = None
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None

    @field_validator("role")
    @classmethod
    def check_role(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in UserRole.ALL:
            raise ValueError(f"role must be one of {', '.join(UserRole.ALL)}")
        return v


class CreditAdjustment(SQLModelBase):
    amount: int
    reason: str = Field(..., min_length=1, max_length=255)


# ==================== Response schemas ====================

class UserResponse(TimestampResponse):
    """Public user data"""
    email: str
    first_name: str
    last_name: str
    role: str
    credits: int
    is_active: bool
    is_verified: bool
    last_login: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    tenant_id: Optional[str] = None


class AdminUserResponse(UserResponse):
    failed_login_attempts: int
    locked_until: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
