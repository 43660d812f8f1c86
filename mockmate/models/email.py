"""
Email template overrides and delivery log
"""
from datetime import datetime
from typing import Any, Dict, Optional
from sqlmodel import Field, Column, JSON

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse, DateTimeField, utc_now


class EmailTemplate(TimestampMixin, IDMixin, table=True):
    """Database override of a built-in email template"""
    __tablename__ = "email_templates"

    name: str = Field(..., max_length=100, unique=True, index=True)
    subject: str = Field(..., max_length=255)
    html_body: str = Field(...)
    text_body: Optional[str] = None
    category: str = Field(default="transactional", max_length=50)
    is_active: bool = Field(default=True)
    updated_by: Optional[str] = Field(None, max_length=36)


class EmailLog(IDMixin, table=True):
    """One row per attempted send"""
    __tablename__ = "email_logs"

    recipient: str = Field(..., max_length=255, index=True)
    template_name: Optional[str] = Field(None, max_length=100, index=True)
    subject: str = Field(..., max_length=255)
    status: str = Field(..., max_length=20, index=True)  # sent / failed / skipped
    error: Optional[str] = Field(None, max_length=1000)
    user_id: Optional[str] = Field(None, max_length=36)
    created_at: datetime = DateTimeField(default_factory=utc_now, index=True)


# ==================== Request schemas ====================

class EmailTemplateUpsert(SQLModelBase):
    subject: str = Field(..., min_length=1, max_length=255)
    html_body: str = Field(..., min_length=1)
    text_body: Optional[str] = None
    category: str = Field("transactional", max_length=50)
    is_active: bool = True


class EmailPreviewRequest(SQLModelBase):
    variables: Dict[str, Any] = Field(default_factory=dict)
    html_body: Optional[str] = None
    subject: Optional[str] = None


class EmailTestRequest(SQLModelBase):
    to: str = Field(..., min_length=3, max_length=255)
    template_name: Optional[str] = None
    variables: Dict[str, Any] = Field(default_factory=dict)


# ==================== Response schemas ====================

class EmailTemplateResponse(TimestampResponse):
    name: str
    subject: str
    html_body: str
    text_body: Optional[str]
    category: str
    is_active: bool


class EmailLogResponse(SQLModelBase):
    id: str
    recipient: str
    template_name: Optional[str]
    subject: str
    status: str
    error: Optional[str]
    created_at: datetime
