"""
Interview session models - SQLModel

A session moves through created -> active <-> paused -> completed/cancelled;
messages hold the interview transcript.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field as PydanticField, field_validator
from sqlmodel import Field, Column, JSON

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse, DateTimeField, utc_now


class SessionStatus:
    CREATED = "created"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ALL = (CREATED, ACTIVE, PAUSED, COMPLETED, CANCELLED)


# Allowed status transitions; terminal states have none
SESSION_TRANSITIONS: Dict[str, List[str]] = {
    SessionStatus.CREATED: [SessionStatus.ACTIVE, SessionStatus.CANCELLED],
    SessionStatus.ACTIVE: [SessionStatus.PAUSED, SessionStatus.COMPLETED, SessionStatus.CANCELLED],
    SessionStatus.PAUSED: [SessionStatus.ACTIVE, SessionStatus.COMPLETED, SessionStatus.CANCELLED],
    SessionStatus.COMPLETED: [],
    SessionStatus.CANCELLED: [],
}

DIFFICULTIES = ("beginner", "intermediate", "advanced", "easy", "medium", "hard", "expert")
SESSION_TYPES = ("behavioral", "technical", "mixed")
MESSAGE_TYPES = ("question", "answer", "feedback", "system")
SORTABLE_FIELDS = ("created_at", "started_at", "ended_at", "job_title", "status")


def can_transition(current: str, target: str) -> bool:
    return target in SESSION_TRANSITIONS.get(current, [])


# ==================== Base fields ====================

class InterviewSessionBase(SQLModelBase):
    """Session fields shared by create and table model"""
    job_title: str = Field(..., min_length=2, max_length=100)
    job_description: Optional[str] = Field(None, max_length=2000)
    difficulty: str = Field("intermediate", max_length=20)
    duration: int = Field(30, ge=5, le=120, description="Planned duration in minutes")
    session_type: str = Field("mixed", max_length=20)
    resume_id: Optional[str] = Field(None, foreign_key="user_resumes.id", ondelete="SET NULL")


# ==================== Table models ====================

class InterviewSession(InterviewSessionBase, TimestampMixin, IDMixin, table=True):
    """Interview session"""
    __tablename__ = "sessions"

    user_id: str = Field(..., foreign_key="users.id", ondelete="CASCADE", index=True)
    status: str = Field(default=SessionStatus.CREATED, max_length=20, index=True)
    started_at: Optional[datetime] = DateTimeField(None)
    ended_at: Optional[datetime] = DateTimeField(None)
    last_heartbeat: Optional[datetime] = DateTimeField(None)
    notes: Optional[str] = Field(None)
    session_data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    def __repr__(self) -> str:
        return f"<InterviewSession(id={self.id}, status={self.status})>"


class InterviewMessage(IDMixin, table=True):
    """Transcript message"""
    __tablename__ = "interview_messages"

    session_id: str = Field(..., foreign_key="sessions.id", ondelete="CASCADE", index=True)
    content: str = Field(...)
    message_type: str = Field(default="answer", max_length=20)
    timestamp: datetime = DateTimeField(default_factory=utc_now, index=True)
    message_metadata: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON)
    )


# ==================== Request schemas ====================

class InterviewSessionCreate(InterviewSessionBase):
    """Create session request"""

    @field_validator("difficulty")
    @classmethod
    def check_difficulty(cls, v: str) -> str:
        if v not in DIFFICULTIES:
            raise ValueError(f"difficulty must be one of {', '.join(DIFFICULTIES)}")
        return v

    @field_validator("session_type")
    @classmethod
    def check_session_type(cls, v: str) -> str:
        if v not in SESSION_TYPES:
            raise ValueError(f"session_type must be one of {', '.join(SESSION_TYPES)}")
        return v


class InterviewSessionUpdate(SQLModelBase):
    """Update session request - all fields optional"""
    status: Optional[str] = None
    feedback: Optional[str] = Field(None, max_length=5000)
    job_title: Optional[str] = Field(None, min_length=2, max_length=100)
    job_description: Optional[str] = Field(None, max_length=2000)

    @field_validator("status")
    @classmethod
    def check_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in SessionStatus.ALL:
            raise ValueError(f"status must be one of {', '.join(SessionStatus.ALL)}")
        return v


class SessionComplete(SQLModelBase):
    summary: Optional[Dict[str, Any]] = None
    feedback: Optional[str] = Field(None, max_length=5000)


class MessageCreate(BaseModel):
    """Post a message to a session"""
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = PydanticField(..., min_length=1, max_length=10000)
    message_type: str = "answer"
    metadata: Dict[str, Any] = PydanticField(default_factory=dict)

    @field_validator("message_type")
    @classmethod
    def check_message_type(cls, v: str) -> str:
        if v not in MESSAGE_TYPES:
            raise ValueError(f"message_type must be one of {', '.join(MESSAGE_TYPES)}")
        return v


# ==================== Response schemas ====================

class InterviewMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    session_id: str
    content: str
    message_type: str
    timestamp: datetime
    metadata: Dict[str, Any] = PydanticField(default_factory=dict, validation_alias="message_metadata")


class InterviewSessionResponse(TimestampResponse):
    """Session detail"""
    user_id: str
    job_title: str
    job_description: Optional[str]
    difficulty: str
    duration: int
    session_type: str
    resume_id: Optional[str]
    status: str
    started_at: Optional[datetime]
    ended_at: Optional[datetime]
    last_heartbeat: Optional[datetime] = None
    notes: Optional[str]
    session_data: Dict[str, Any] = Field(default_factory=dict)
