"""
Dynamic system configuration model
"""
from typing import Any, Optional
from pydantic import field_validator
from sqlmodel import Field, Column, JSON

from .base import SQLModelBase, TimestampMixin, IDMixin

CONFIG_TYPES = ("string", "number", "boolean", "json")


class SystemConfig(TimestampMixin, IDMixin, table=True):
    """Runtime configuration entry"""
    __tablename__ = "system_config"

    config_key: str = Field(..., max_length=100, unique=True, index=True)
    config_value: Any = Field(default=None, sa_column=Column(JSON))
    config_type: str = Field(default="string", max_length=20)
    category: str = Field(default="general", max_length=50, index=True)
    description: Optional[str] = Field(None, max_length=500)
    is_sensitive: bool = Field(default=False)
    is_public: bool = Field(default=False)
    updated_by: Optional[str] = Field(None, max_length=36)


class ConfigCreate(SQLModelBase):
    config_key: str = Field(..., min_length=1, max_length=100)
    config_value: Any = None
    config_type: str = "string"
    category: str = Field("general", max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    is_sensitive: bool = False
    is_public: bool = False

    @field_validator("config_type")
    @classmethod
    def check_type(cls, v: str) -> str:
        if v not in CONFIG_TYPES:
            raise ValueError(f"config_type must be one of {', '.join(CONFIG_TYPES)}")
        return v


class ConfigUpdate(SQLModelBase):
    value: Any = None
