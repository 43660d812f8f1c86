"""
API routes
"""
from . import alerts, analytics, auth, config, email_verification, otp, payments, resumes, sessions, users

__all__ = [
    "alerts",
    "analytics",
    "auth",
    "config",
    "email_verification",
    "otp",
    "payments",
    "resumes",
    "sessions",
    "users",
]
