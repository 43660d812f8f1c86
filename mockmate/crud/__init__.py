"""
CRUD module
"""
from .user import user_crud, refresh_token_crud, password_reset_crud
from .resume import resume_crud
from .interview import session_crud, message_crud
from .payment import payment_crud, credit_transaction_crud, payment_webhook_crud
from .alert import alert_crud, recipient_crud
from .config import config_crud
from .verification import otp_crud, email_token_crud
from .email import email_template_crud, email_log_crud
from .tenant import tenant_crud, tenant_user_crud, api_key_crud
from .auth_provider import auth_provider_crud, rules_template_crud, rules_deployment_crud
from .analytics import activity_crud, page_visit_crud

__all__ = [
    "user_crud",
    "refresh_token_crud",
    "password_reset_crud",
    "resume_crud",
    "session_crud",
    "message_crud",
    "payment_crud",
    "credit_transaction_crud",
    "payment_webhook_crud",
    "alert_crud",
    "recipient_crud",
    "config_crud",
    "otp_crud",
    "email_token_crud",
    "email_template_crud",
    "email_log_crud",
    "tenant_crud",
    "tenant_user_crud",
    "api_key_crud",
    "auth_provider_crud",
    "rules_template_crud",
    "rules_deployment_crud",
    "activity_crud",
    "page_visit_crud",
]
