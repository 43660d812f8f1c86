"""
Admin API routes

Every route below requires an admin account and carries the admin rate limit.
"""
from fastapi import APIRouter, Depends

from mockmate.api.deps import require_admin
from mockmate.core.rate_limit import admin_limit

from . import (
    alerts,
    analytics,
    auth_providers,
    dashboard,
    dynamic_config,
    email_templates,
    firebase_rules,
    payments,
    sessions,
    tenants,
    users,
)

admin_router = APIRouter(dependencies=[Depends(admin_limit), Depends(require_admin)])

admin_router.include_router(dashboard.router, tags=["Admin"])
admin_router.include_router(users.router, prefix="/users", tags=["Admin users"])
admin_router.include_router(sessions.router, prefix="/sessions", tags=["Admin sessions"])
admin_router.include_router(payments.router, prefix="/payments", tags=["Admin payments"])
admin_router.include_router(alerts.router, prefix="/alerts", tags=["Admin alerts"])
admin_router.include_router(dynamic_config.router, prefix="/dynamic-config", tags=["Admin configuration"])
admin_router.include_router(tenants.router, prefix="/tenants", tags=["Admin tenants"])
admin_router.include_router(email_templates.router, prefix="/email-templates", tags=["Admin email templates"])
admin_router.include_router(analytics.router, prefix="/analytics", tags=["Admin analytics"])
admin_router.include_router(auth_providers.router, prefix="/auth-providers", tags=["Admin auth providers"])
admin_router.include_router(firebase_rules.router, prefix="/firebase-rules", tags=["Admin security rules"])

__all__ = ["admin_router"]
