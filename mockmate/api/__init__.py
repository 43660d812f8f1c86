"""
API routes
"""
from fastapi import APIRouter

from .routes import (
    alerts,
    analytics,
    auth,
    config,
    email_verification,
    otp,
    payments,
    resumes,
    sessions,
    users,
)
from .routes.admin import admin_router

# Main router, mounted at /api
api_router = APIRouter()

api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Auth"]
)
api_router.include_router(
    users.router,
    prefix="/users",
    tags=["Users"]
)
api_router.include_router(
    resumes.router,
    prefix="/resumes",
    tags=["Resumes"]
)
api_router.include_router(
    sessions.router,
    prefix="/sessions",
    tags=["Interview sessions"]
)
api_router.include_router(
    alerts.router,
    prefix="/alerts",
    tags=["Alerts"]
)
api_router.include_router(
    config.router,
    prefix="/config",
    tags=["Configuration"]
)
api_router.include_router(
    otp.router,
    prefix="/otp",
    tags=["OTP"]
)
api_router.include_router(
    email_verification.router,
    prefix="/email-verification",
    tags=["Email verification"]
)
api_router.include_router(
    payments.router,
    prefix="/payments",
    tags=["Payments"]
)
api_router.include_router(
    analytics.router,
    prefix="/analytics",
    tags=["Analytics"]
)
api_router.include_router(
    admin_router,
    prefix="/admin",
)
