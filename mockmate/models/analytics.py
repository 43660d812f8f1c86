"""
Activity and page-visit tracking tables
"""
from datetime import datetime
from typing import Any, Dict, Optional
from sqlmodel import Field, Column, JSON

from .base import SQLModelBase, IDMixin, DateTimeField, utc_now


class UserActivity(IDMixin, table=True):
    """Tracked user action"""
    __tablename__ = "user_activities"

    user_id: Optional[str] = Field(None, max_length=36, index=True)
    action_type: str = Field(..., max_length=50, index=True)
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    ip_address: Optional[str] = Field(None, max_length=64)
    user_agent: Optional[str] = Field(None, max_length=500)
    created_at: datetime = DateTimeField(default_factory=utc_now, index=True)


class PageVisit(IDMixin, table=True):
    """HTTP request log used for traffic analytics"""
    __tablename__ = "page_visits"

    path: str = Field(..., max_length=500, index=True)
    method: str = Field(..., max_length=10)
    status_code: Optional[int] = None
    user_id: Optional[str] = Field(None, max_length=36, index=True)
    ip_address: Optional[str] = Field(None, max_length=64, index=True)
    user_agent: Optional[str] = Field(None, max_length=500)
    referrer: Optional[str] = Field(None, max_length=500)
    created_at: datetime = DateTimeField(default_factory=utc_now, index=True)


class TrackActivityRequest(SQLModelBase):
    action_type: str = Field(..., min_length=1, max_length=50)
    details: Dict[str, Any] = Field(default_factory=dict)


class UserActivityResponse(SQLModelBase):
    id: str
    user_id: Optional[str]
    action_type: str
    details: Dict[str, Any]
    ip_address: Optional[str]
    created_at: datetime
