"""
HTTP middleware

Page-visit tracking for the analytics dashboard, plus rate-limit headers on
every response of a limited route. Visits are written after the response is
produced, through a session of their own.
"""
from fastapi import Request
from loguru import logger

from mockmate.crud import page_visit_crud

from .config import settings
from .database import AsyncSessionLocal
from .rate_limit import client_ip

SKIP_PREFIXES = ("/health", "/api/admin/analytics", "/socket.io", "/docs", "/redoc", "/openapi.json", "/static")
STATIC_SUFFIXES = (
    ".js", ".css", ".map", ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico", ".webp",
    ".woff", ".woff2", ".ttf", ".txt",
)


def should_track(request: Request) -> bool:
    if not settings.analytics_tracking_enabled or request.method == "OPTIONS":
        return False
    path = request.url.path
    if path.startswith(SKIP_PREFIXES):
        return False
    return not path.lower().endswith(STATIC_SUFFIXES)


async def record_visit(request: Request, status_code: int) -> None:
    try:
        async with AsyncSessionLocal() as db:
            await page_visit_crud.record(
                db,
                path=request.url.path[:500],
                method=request.method,
                status_code=status_code,
                user_id=getattr(request.state, "user_id", None),
                ip_address=client_ip(request)[:64],
                user_agent=(request.headers.get("user-agent") or "")[:500] or None,
                referrer=(request.headers.get("referer") or "")[:500] or None,
            )
            await db.commit()
    except Exception as exc:
        logger.warning("Failed to record page visit {} {}: {}", request.method, request.url.path, exc)


async def track_page_visits(request: Request, call_next):
    """`http` middleware: pass the request through, then log the visit"""
    response = await call_next(request)
    if should_track(request):
        await record_visit(request, response.status_code)
    return response


async def rate_limit_headers(request: Request, call_next):
    """`http` middleware: copy X-RateLimit-* onto error responses as well"""
    response = await call_next(request)
    headers = getattr(request.state, "rate_limit_headers", None)
    if headers:
        for name, value in headers.items():
            response.headers.setdefault(name, value)
    return response
