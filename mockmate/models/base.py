"""
SQLModel base classes

Shared fields, mixins and time helpers
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


def utc_now() -> datetime:
    """Current UTC time (timezone-aware)"""
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite returns naive datetimes; treat them as UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def DateTimeField(default=None, **kwargs):
    """Timezone-aware datetime column"""
    if "default_factory" in kwargs:
        return Field(sa_type=DateTime(timezone=True), **kwargs)
    return Field(default=default, sa_type=DateTime(timezone=True), **kwargs)


class SQLModelBase(SQLModel):
    """
    SQLModel base configuration

    Every schema class inherits from this
    """
    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
        "str_strip_whitespace": True,
    }


class TimestampMixin(SQLModel):
    """Timestamp mixin for table models"""
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
        description="Created at"
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
        description="Updated at"
    )


class IDMixin(SQLModel):
    """ID mixin for table models"""
    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        description="Primary key"
    )


class TimestampResponse(SQLModelBase):
    """Response base with timestamps"""
    id: str
    created_at: datetime
    updated_at: datetime
