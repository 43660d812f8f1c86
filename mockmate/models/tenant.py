"""
Tenant models - SQLModel

Tenants share the database; rows are scoped by tenant id.
"""
import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import field_validator
from sqlmodel import Field, Column, JSON

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse, DateTimeField, utc_now

TENANT_STATUSES = ("active", "suspended", "inactive")
TENANT_ROLES = ("owner", "admin", "member")
SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{2,49}$")

DEFAULT_LIMITS: Dict[str, int] = {
    "maxUsers": 100,
    "maxApiKeys": 5,
    "maxSessionsPerMonth": 1000,
    "maxStorageMb": 1024,
}

DEFAULT_FEATURES: Dict[str, bool] = {
    "aiInterviews": True,
    "analytics": True,
    "customBranding": False,
    "apiAccess": True,
}


# ==================== Base fields ====================

class TenantBase(SQLModelBase):
    tenant_id: str = Field(..., max_length=50, description="URL-safe tenant slug")
    name: str = Field(..., min_length=2, max_length=100)
    display_name: Optional[str] = Field(None, max_length=150)
    domain: Optional[str] = Field(None, max_length=255)
    subdomain: Optional[str] = Field(None, max_length=100)


# ==================== Table models ====================

class Tenant(TenantBase, TimestampMixin, IDMixin, table=True):
    """Tenant organisation"""
    __tablename__ = "tenants"

    tenant_id: str = Field(..., max_length=50, unique=True, index=True)
    domain: Optional[str] = Field(None, max_length=255, index=True)
    subdomain: Optional[str] = Field(None, max_length=100, index=True)
    status: str = Field(default="active", max_length=20)
    settings: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    branding: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    features: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_FEATURES), sa_column=Column(JSON))
    limits: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_LIMITS), sa_column=Column(JSON))
    created_by: Optional[str] = Field(None, max_length=36)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def limit(self, name: str) -> Optional[int]:
        return (self.limits or {}).get(name, DEFAULT_LIMITS.get(name))

    def __repr__(self) -> str:
        return f"<Tenant(tenant_id={self.tenant_id})>"


class TenantUser(IDMixin, table=True):
    """Tenant membership"""
    __tablename__ = "tenant_users"

    tenant_id: str = Field(..., foreign_key="tenants.id", ondelete="CASCADE", index=True)
    user_id: str = Field(..., foreign_key="users.id", ondelete="CASCADE", index=True)
    role: str = Field(default="member", max_length=20)
    joined_at: datetime = DateTimeField(default_factory=utc_now)


class TenantApiKey(IDMixin, table=True):
    """Tenant API key; only the SHA-256 digest is stored"""
    __tablename__ = "tenant_api_keys"

    tenant_id: str = Field(..., foreign_key="tenants.id", ondelete="CASCADE", index=True)
    name: str = Field(..., max_length=100)
    key_hash: str = Field(..., max_length=64, unique=True, index=True)
    key_prefix: str = Field(..., max_length=8)
    permissions: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = Field(default=True)
    expires_at: Optional[datetime] = DateTimeField(None)
    last_used_at: Optional[datetime] = DateTimeField(None)
    created_by: Optional[str] = Field(None, max_length=36)
    created_at: datetime = DateTimeField(default_factory=utc_now)


# ==================== Request schemas ====================

class TenantCreate(TenantBase):
    settings: Dict[str, Any] = Field(default_factory=dict)
    branding: Dict[str, Any] = Field(default_factory=dict)
    features: Dict[str, Any] = Field(default_factory=dict)
    limits: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("tenant_id")
    @classmethod
    def check_slug(cls, v: str) -> str:
        v = v.lower()
        if not SLUG_PATTERN.match(v):
            raise ValueError("tenant_id must be 3-50 lowercase letters, digits or hyphens")
        return v


class TenantUpdate(SQLModelBase):
    """Update tenant - all fields optional"""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    display_name: Optional[str] = Field(None, max_length=150)
    domain: Optional[str] = Field(None, max_length=255)
    subdomain: Optional[str] = Field(None, max_length=100)
    status: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    branding: Optional[Dict[str, Any]] = None
    features: Optional[Dict[str, Any]] = None
    limits: Optional[Dict[str, Any]] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in TENANT_STATUSES:
            raise ValueError(f"status must be one of {', '.join(TENANT_STATUSES)}")
        return v


class TenantUserAdd(SQLModelBase):
    user_id: str
    role: str = "member"

    @field_validator("role")
    @classmethod
    def check_role(cls, v: str) -> str:
        if v not in TENANT_ROLES:
            raise ValueError(f"role must be one of {', '.join(TENANT_ROLES)}")
        return v


class ApiKeyCreate(SQLModelBase):
    name: str = Field(..., min_length=1, max_length=100)
    permissions: List[str] = Field(default_factory=list)
    expires_in_days: Optional[int] = Field(None, ge=1, le=3650)


class ApiKeyValidate(SQLModelBase):
    api_key: str = Field(..., min_length=1)


# ==================== Response schemas ====================

class TenantResponse(TimestampResponse):
    tenant_id: str
    name: str
    display_name: Optional[str]
    domain: Optional[str]
    subdomain: Optional[str]
    status: str
    settings: Dict[str, Any]
    branding: Dict[str, Any]
    features: Dict[str, Any]
    limits: Dict[str, Any]


class ApiKeyResponse(SQLModelBase):
    id: str
    tenant_id: str
    name: str
    key_prefix: str
    permissions: List[str]
    is_active: bool
    expires_at: Optional[datetime]
    last_used_at: Optional[datetime]
    created_at: datetime
