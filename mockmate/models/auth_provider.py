"""
External auth provider configuration and security-rules templates
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import LargeBinary
from sqlmodel import Field, Column, JSON

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse, DateTimeField, utc_now

PROVIDER_TYPES = ("oauth", "email", "saml", "oidc")


# ==================== Auth providers ====================

class AuthProviderConfig(TimestampMixin, IDMixin, table=True):
    """Sign-in provider configuration; secrets are Fernet-encrypted"""
    __tablename__ = "auth_provider_configs"

    provider_id: str = Field(..., max_length=100, unique=True, index=True)
    provider_name: str = Field(..., max_length=255)
    provider_type: str = Field(..., max_length=50)
    is_enabled: bool = Field(default=False, index=True)
    config_data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    encrypted_secrets: Optional[bytes] = Field(None, sa_column=Column(LargeBinary))
    scopes: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    button_config: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    rate_limits: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    updated_by: Optional[str] = Field(None, max_length=36)


class AuthProviderCreate(SQLModelBase):
    provider_id: str = Field(..., min_length=2, max_length=100)
    provider_name: str = Field(..., min_length=1, max_length=255)
    provider_type: str = Field("oauth", max_length=50)
    is_enabled: bool = False
    config_data: Dict[str, Any] = Field(default_factory=dict)
    scopes: List[str] = Field(default_factory=list)
    button_config: Dict[str, Any] = Field(default_factory=dict)
    rate_limits: Dict[str, Any] = Field(default_factory=dict)


class AuthProviderUpdate(SQLModelBase):
    provider_name: Optional[str] = Field(None, min_length=1, max_length=255)
    config_data: Optional[Dict[str, Any]] = None
    scopes: Optional[List[str]] = None
    button_config: Optional[Dict[str, Any]] = None
    rate_limits: Optional[Dict[str, Any]] = None


class AuthProviderSecrets(SQLModelBase):
    secrets: Dict[str, str]


class AuthProviderResponse(TimestampResponse):
    provider_id: str
    provider_name: str
    provider_type: str
    is_enabled: bool
    config_data: Dict[str, Any]
    scopes: List[str]
    button_config: Dict[str, Any]
    rate_limits: Dict[str, Any]
    has_secrets: bool = False


# ==================== Security rules templates ====================

class RulesTemplate(TimestampMixin, IDMixin, table=True):
    """Firestore security rules template with ${VAR} placeholders"""
    __tablename__ = "firebase_rules_templates"

    name: str = Field(..., max_length=150, unique=True)
    description: Optional[str] = Field(None, max_length=500)
    category: str = Field(default="custom", max_length=50, index=True)
    rules_content: str = Field(...)
    variables: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    is_default: bool = Field(default=False)
    created_by: Optional[str] = Field(None, max_length=36)


class RulesDeployment(IDMixin, table=True):
    """Recorded rules deployment"""
    __tablename__ = "firebase_rules_deployments"

    template_id: Optional[str] = Field(None, foreign_key="firebase_rules_templates.id", ondelete="SET NULL")
    tenant_id: Optional[str] = Field(None, max_length=36)
    rules_content: str = Field(...)
    status: str = Field(default="validated", max_length=20)
    dry_run: bool = Field(default=True)
    validation: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    deployed_by: Optional[str] = Field(None, max_length=36)
    created_at: datetime = DateTimeField(default_factory=utc_now)


class RulesTemplateCreate(SQLModelBase):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = Field(None, max_length=500)
    category: str = Field("custom", max_length=50)
    rules_content: str = Field(..., min_length=1)
    variables: Dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False


class RulesTemplateUpdate(SQLModelBase):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, max_length=50)
    rules_content: Optional[str] = Field(None, min_length=1)
    variables: Optional[Dict[str, Any]] = None
    is_default: Optional[bool] = None


class RulesGenerateRequest(SQLModelBase):
    variables: Dict[str, Any] = Field(default_factory=dict)


class RulesValidateRequest(SQLModelBase):
    rules_content: str = Field(..., min_length=1)


class RulesDeployRequest(SQLModelBase):
    rules_content: Optional[str] = None
    template_id: Optional[str] = None
    variables: Dict[str, Any] = Field(default_factory=dict)
    tenant_id: Optional[str] = None


class RulesTemplateResponse(TimestampResponse):
    name: str
    description: Optional[str]
    category: str
    rules_content: str
    variables: Dict[str, Any]
    is_default: bool


class RulesDeploymentResponse(SQLModelBase):
    id: str
    template_id: Optional[str]
    tenant_id: Optional[str]
    status: str
    dry_run: bool
    validation: Dict[str, Any]
    deployed_by: Optional[str]
    created_at: datetime
