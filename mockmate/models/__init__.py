"""
SQLModel models

SQLModel unifies the ORM tables and the Pydantic schemas
"""
from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse, utc_now, ensure_aware
from .tenant import (
    Tenant, TenantUser, TenantApiKey, TenantCreate, TenantUpdate, TenantUserAdd,
    ApiKeyCreate, ApiKeyValidate, TenantResponse, ApiKeyResponse,
)
from .user import (
    User, RefreshToken, PasswordReset, UserRole, UserRegister, UserLogin,
    TokenRefreshRequest, PasswordResetRequest, PasswordResetConfirm, ProfileUpdate,
    PasswordChange, AdminUserUpdate, CreditAdjustment, UserResponse, AdminUserResponse,
)
from .resume import UserResume, ResumeCreate, ResumeUpdate, ResumeResponse, ResumeListResponse
from .interview import (
    InterviewSession, InterviewMessage, SessionStatus, InterviewSessionCreate,
    InterviewSessionUpdate, SessionComplete, MessageCreate, InterviewSessionResponse,
    InterviewMessageResponse,
)
from .payment import (
    Payment, CreditTransaction, PaymentWebhook, PaymentStatus, TransactionType,
    CreateOrderRequest, ProcessSuccessRequest, RefundRequest, PaymentResponse, CreditTransactionResponse,
)
from .config import SystemConfig, ConfigCreate, ConfigUpdate
from .alert import Alert, AlertRecipient, AlertCreate, AlertUpdate, AlertResponse
from .verification import (
    OTPCode, EmailVerificationToken, OTPGenerateRequest, OTPVerifyRequest,
    OTPEmailRequest, OTPEmailVerifyRequest, OTPPasswordResetRequest,
    VerifyEmailRequest, ResendVerificationRequest,
)
from .email import (
    EmailTemplate, EmailLog, EmailTemplateUpsert, EmailPreviewRequest, EmailTestRequest,
    EmailTemplateResponse, EmailLogResponse,
)
from .auth_provider import (
    AuthProviderConfig, AuthProviderCreate, AuthProviderUpdate, AuthProviderSecrets,
    AuthProviderResponse, RulesTemplate, RulesDeployment, RulesTemplateCreate,
    RulesTemplateUpdate, RulesGenerateRequest, RulesValidateRequest, RulesDeployRequest,
    RulesTemplateResponse, RulesDeploymentResponse,
)
from .analytics import UserActivity, PageVisit, TrackActivityRequest, UserActivityResponse

__all__ = [
    # Base
    "SQLModelBase",
    "TimestampMixin",
    "IDMixin",
    "TimestampResponse",
    "utc_now",
    "ensure_aware",
    # Tenant
    "Tenant",
    "TenantUser",
    "TenantApiKey",
    "TenantCreate",
    "TenantUpdate",
    "TenantUserAdd",
    "ApiKeyCreate",
    "ApiKeyValidate",
    "TenantResponse",
    "ApiKeyResponse",
    # User
    "User",
    "RefreshToken",
    "PasswordReset",
    "UserRole",
    "UserRegister",
    "UserLogin",
    "TokenRefreshRequest",
    "PasswordResetRequest",
    "PasswordResetConfirm",
    "ProfileUpdate",
    "PasswordChange",
    "AdminUserUpdate",
    "CreditAdjustment",
    "UserResponse",
    "AdminUserResponse",
    # Resume
    "UserResume",
    "ResumeCreate",
    "ResumeUpdate",
    "ResumeResponse",
    "ResumeListResponse",
    # Interview
    "InterviewSession",
    "InterviewMessage",
    "SessionStatus",
    "InterviewSessionCreate",
    "InterviewSessionUpdate",
    "SessionComplete",
    "MessageCreate",
    "InterviewSessionResponse",
    "InterviewMessageResponse",
    # Payment
    "Payment",
    "CreditTransaction",
    "PaymentWebhook",
    "PaymentStatus",
    "TransactionType",
    "CreateOrderRequest",
    "ProcessSuccessRequest",
    "RefundRequest",
    "PaymentResponse",
    "CreditTransactionResponse",
    # Config
    "SystemConfig",
    "ConfigCreate",
    "ConfigUpdate",
    # Alert
    "Alert",
    "AlertRecipient",
    "AlertCreate",
    "AlertUpdate",
    "AlertResponse",
    # Verification
    "OTPCode",
    "EmailVerificationToken",
    "OTPGenerateRequest",
    "OTPVerifyRequest",
    "OTPEmailRequest",
    "OTPEmailVerifyRequest",
    "OTPPasswordResetRequest",
    "VerifyEmailRequest",
    "ResendVerificationRequest",
    # Email
    "EmailTemplate",
    "EmailLog",
    "EmailTemplateUpsert",
    "EmailPreviewRequest",
    "EmailTestRequest",
    "EmailTemplateResponse",
    "EmailLogResponse",
    # Auth providers / rules
    "AuthProviderConfig",
    "AuthProviderCreate",
    "AuthProviderUpdate",
    "AuthProviderSecrets",
    "AuthProviderResponse",
    "RulesTemplate",
    "RulesDeployment",
    "RulesTemplateCreate",
    "RulesTemplateUpdate",
    "RulesGenerateRequest",
    "RulesValidateRequest",
    "RulesDeployRequest",
    "RulesTemplateResponse",
    "RulesDeploymentResponse",
    # Analytics
    "UserActivity",
    "PageVisit",
    "TrackActivityRequest",
    "UserActivityResponse",
]
