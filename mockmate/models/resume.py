"""
User resume models - SQLModel
"""
from typing import Optional
from sqlmodel import Field

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse


# ==================== Base fields ====================

class ResumeBase(SQLModelBase):
    """Resume fields"""
    title: str = Field(..., min_length=1, max_length=200, description="Resume title")
    content: str = Field(..., min_length=1, max_length=50000, description="Resume text")
    file_name: Optional[str] = Field(None, max_length=255, description="Original file name")


# ==================== Table models ====================

class UserResume(ResumeBase, TimestampMixin, IDMixin, table=True):
    """Resume table"""
    __tablename__ = "user_resumes"

    user_id: str = Field(..., foreign_key="users.id", ondelete="CASCADE", index=True)
    is_default: bool = Field(default=False)

    def __repr__(self) -> str:
        return f"<UserResume(id={self.id}, title={self.title})>"


# ==================== Request schemas ====================

class ResumeCreate(ResumeBase):
    is_default: bool = False


class ResumeUpdate(SQLModelBase):
    """Update resume - all fields optional"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1, max_length=50000)
    file_name: Optional[str] = Field(None, max_length=255)
    is_default: Optional[bool] = None


# ==================== Response schemas ====================

class ResumeResponse(TimestampResponse):
    user_id: str
    title: str
    content: str
    file_name: Optional[str]
    is_default: bool


class ResumeListResponse(TimestampResponse):
    """Resume list item (without content)"""
    title: str
    file_name: Optional[str]
    is_default: bool
