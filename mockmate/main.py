"""
FastAPI application entry point

MockMate interview practice backend. `asgi_app` wraps the FastAPI app with
the Socket.IO server so one ASGI callable serves HTTP and sockets.
"""
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI, HTTPException
from fastapi.routing import APIRoute
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from loguru import logger

from mockmate.core.config import settings
from mockmate.core.database import AsyncSessionLocal, init_db, close_db
from mockmate.core.logging import setup_logging
from mockmate.core.middleware import rate_limit_headers, track_page_visits
from mockmate.core.redis import RedisClient
from mockmate.core.response import success_response, DictResponse
from mockmate.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler,
)
from mockmate.api import api_router
from mockmate.realtime import hub, sio
from mockmate.realtime.gateway import gateway
from mockmate.services.auth_provider_service import auth_provider_service
from mockmate.services.config_service import config_service
from mockmate.services.rules_service import rules_service
from mockmate.services.session_sweeper import session_sweeper

APP_VERSION = "1.0.0"


def custom_generate_unique_id(route: APIRoute) -> str:
    """
    OpenAPI operationId from the route function name
    """
    return route.name


async def seed_defaults() -> None:
    """Insert missing configuration keys, auth providers and rules templates"""
    async with AsyncSessionLocal() as db:
        try:
            await config_service.seed_defaults(db)
            await auth_provider_service.seed_defaults(db)
            await rules_service.seed_defaults(db)
            await db.commit()
        except Exception as exc:
            await db.rollback()
            logger.error("Seeding defaults failed: {}", exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan

    Initialises the database, Redis, seed data and the session sweeper on
    startup and releases them on shutdown.
    """
    setup_logging()
    logger.info("Starting {} ({})", settings.app_name, settings.app_env)
    logger.info("Debug mode: {}", settings.debug)

    await init_db()
    logger.info("Database initialised")

    await RedisClient.connect()
    await seed_defaults()
    gateway.register()
    session_sweeper.start()

    yield

    await session_sweeper.stop()
    hub.clear()
    await RedisClient.close()
    await close_db()
    logger.info("Application stopped")


def create_app() -> FastAPI:
    """
    Create the FastAPI application
    """
    app = FastAPI(
        title=settings.app_name,
        description="MockMate AI mock interview API",
        version=APP_VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        generate_unique_id_function=custom_generate_unique_id,
    )

    # Exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Routes
    app.include_router(api_router, prefix="/api")

    @app.get("/health", tags=["System"], response_model=DictResponse)
    async def health_check():
        """Health check"""
        return success_response(data={
            "status": "healthy",
            "environment": settings.app_env,
            "redis": RedisClient.is_connected(),
            "sockets": hub.connection_stats()["total_connections"],
        })

    @app.get("/", tags=["System"], response_model=DictResponse)
    async def root():
        """API root"""
        return success_response(data={
            "name": settings.app_name,
            "version": APP_VERSION,
            "docs": "/docs" if settings.debug else None,
        })

    app.middleware("http")(rate_limit_headers)
    app.middleware("http")(track_page_visits)

    # CORS goes last so it runs first
    wildcard = "*" in settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if wildcard else settings.cors_origins,
        allow_credentials=not wildcard,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


# Application instances
app = create_app()
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app, socketio_path="socket.io")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mockmate.main:asgi_app",
        host="127.0.0.1",
        port=8000,
        reload=settings.debug,
    )
