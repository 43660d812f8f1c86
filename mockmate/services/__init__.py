"""
Service layer
"""
from .llm_client import LLMClient, get_llm_client
from .interviewer import InterviewerService, get_interviewer
from .config_service import config_service, DynamicConfigService
from .email_service import email_service, EmailService
from .alert_service import alert_service, AlertService
from .otp_service import otp_service, OTPService
from .verification_service import verification_service, EmailVerificationService
from .analytics_service import analytics_service, AnalyticsService
from .payment_gateway import CashfreeGateway, PaymentGatewayError, GatewayNotConfigured
from .payment_service import payment_service, PaymentService
from .tenant_service import tenant_service, TenantService
from .auth_provider_service import auth_provider_service, AuthProviderService
from .rules_service import rules_service, RulesService
from .session_service import session_service, SessionService
from .auth_service import auth_service, AuthService
from .admin_service import admin_service, AdminService

__all__ = [
    "LLMClient",
    "get_llm_client",
    "InterviewerService",
    "get_interviewer",
    "config_service",
    "DynamicConfigService",
    "email_service",
    "EmailService",
    "alert_service",
    "AlertService",
    "otp_service",
    "OTPService",
    "verification_service",
    "EmailVerificationService",
    "analytics_service",
    "AnalyticsService",
    "CashfreeGateway",
    "PaymentGatewayError",
    "GatewayNotConfigured",
    "payment_service",
    "PaymentService",
    "tenant_service",
    "TenantService",
    "auth_provider_service",
    "AuthProviderService",
    "rules_service",
    "RulesService",
    "session_service",
    "SessionService",
    "auth_service",
    "AuthService",
    "admin_service",
    "AdminService",
]
