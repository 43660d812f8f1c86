"""
Alert models - SQLModel

Alerts are created by admins or by the system and pushed to users over sockets;
per-user read/dismiss state lives in alert_recipients.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import field_validator, model_validator
from sqlmodel import Field, Column, JSON

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse, DateTimeField, utc_now

ALERT_TYPES = ("info", "warning", "error", "success", "announcement")
ALERT_PRIORITIES = ("low", "normal", "high", "critical")
TARGET_TYPES = ("all", "specific", "role", "admin")

# Sort rank, critical first
PRIORITY_RANK = {"critical": 0, "high": 1, "normal": 2, "low": 3}


# ==================== Base fields ====================

class AlertBase(SQLModelBase):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    alert_type: str = Field("info", max_length=20)
    priority: str = Field("normal", max_length=20)
    target_type: str = Field("all", max_length=20)
    action_url: Optional[str] = Field(None, max_length=500)
    action_text: Optional[str] = Field(None, max_length=100)
    icon: Optional[str] = Field(None, max_length=50)
    is_dismissible: bool = True


# ==================== Table models ====================

class Alert(AlertBase, TimestampMixin, IDMixin, table=True):
    """Alert"""
    __tablename__ = "alerts"

    target_user_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    target_roles: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    starts_at: datetime = DateTimeField(default_factory=utc_now, index=True)
    expires_at: Optional[datetime] = DateTimeField(None, index=True)
    is_active: bool = Field(default=True, index=True)
    created_by: Optional[str] = Field(None, max_length=36)
    source: str = Field(default="admin", max_length=50, description="admin or system event name")

    def __repr__(self) -> str:
        return f"<Alert(id={self.id}, title={self.title})>"


class AlertRecipient(IDMixin, table=True):
    """Per-user read / dismiss state"""
    __tablename__ = "alert_recipients"

    alert_id: str = Field(..., foreign_key="alerts.id", ondelete="CASCADE", index=True)
    user_id: str = Field(..., foreign_key="users.id", ondelete="CASCADE", index=True)
    read_at: Optional[datetime] = DateTimeField(None)
    dismissed_at: Optional[datetime] = DateTimeField(None)
    delivered_at: datetime = DateTimeField(default_factory=utc_now)


# ==================== Request schemas ====================

def _check_choice(value: Optional[str], choices: tuple, name: str) -> Optional[str]:
    if value is not None and value not in choices:
        raise ValueError(f"{name} must be one of {', '.join(choices)}")
    return value


class AlertCreate(AlertBase):
    target_user_ids: List[str] = Field(default_factory=list)
    target_roles: List[str] = Field(default_factory=list)
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True

    @field_validator("alert_type")
    @classmethod
    def check_alert_type(cls, v: str) -> str:
        return _check_choice(v, ALERT_TYPES, "alert_type")

    @field_validator("priority")
    @classmethod
    def check_priority(cls, v: str) -> str:
        return _check_choice(v, ALERT_PRIORITIES, "priority")

    @field_validator("target_type")
    @classmethod
    def check_target_type(cls, v: str) -> str:
        return _check_choice(v, TARGET_TYPES, "target_type")

    @model_validator(mode="after")
    def check_targets(self):
        if self.target_type == "specific" and not self.target_user_ids:
            raise ValueError("target_user_ids is required when target_type is 'specific'")
        if self.target_type == "role" and not self.target_roles:
            raise ValueError("target_roles is required when target_type is 'role'")
        if self.starts_at and self.expires_at and self.expires_at <= self.starts_at:
            raise ValueError("expires_at must be after starts_at")
        return self


class AlertUpdate(SQLModelBase):
    """Update alert - all fields optional"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    message: Optional[str] = Field(None, min_length=1, max_length=2000)
    alert_type: Optional[str] = None
    priority: Optional[str] = None
    target_type: Optional[str] = None
    target_user_ids: Optional[List[str]] = None
    target_roles: Optional[List[str]] = None
    action_url: Optional[str] = Field(None, max_length=500)
    action_text: Optional[str] = Field(None, max_length=100)
    icon: Optional[str] = Field(None, max_length=50)
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None
    is_dismissible: Optional[bool] = None

    @field_validator("alert_type")
    @classmethod
    def check_alert_type(cls, v: Optional[str]) -> Optional[str]:
        return _check_choice(v, ALERT_TYPES, "alert_type")

    @field_validator("priority")
    @classmethod
    def check_priority(cls, v: Optional[str]) -> Optional[str]:
        return _check_choice(v, ALERT_PRIORITIES, "priority")

    @field_validator("target_type")
    @classmethod
    def check_target_type(cls, v: Optional[str]) -> Optional[str]:
        return _check_choice(v, TARGET_TYPES, "target_type")


# ==================== Response schemas ====================

class AlertResponse(TimestampResponse):
    title: str
    message: str
    alert_type: str
    priority: str
    target_type: str
    target_user_ids: List[str]
    target_roles: List[str]
    action_url: Optional[str]
    action_text: Optional[str]
    icon: Optional[str]
    starts_at: datetime
    expires_at: Optional[datetime]
    is_active: bool
    is_dismissible: bool
    created_by: Optional[str]
    source: str
