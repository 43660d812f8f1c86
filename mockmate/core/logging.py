"""
Logging configuration

loguru sinks for the console and a rotating file, plus the security audit helper
"""
import sys
from pathlib import Path
from typing import Any

from loguru import logger

from .config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message} | {extra}"


def setup_logging() -> None:
    """Configure application logging"""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level.upper(),
        format=CONSOLE_FORMAT,
        colorize=settings.is_development,
        backtrace=settings.debug,
        diagnose=settings.debug,
    )

    if settings.log_to_file and not settings.is_testing:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "mockmate.log",
            level=settings.log_level.upper(),
            format=FILE_FORMAT,
            rotation="10 MB",
            retention="14 days",
            enqueue=True,
        )
        # Security audit trail in its own file
        logger.add(
            log_dir / "security.log",
            level="INFO",
            format=FILE_FORMAT,
            rotation="10 MB",
            retention="90 days",
            filter=lambda record: record["extra"].get("security", False),
            enqueue=True,
        )


def log_security_event(event: str, **fields: Any) -> None:
    """Record a security relevant event (login failure, lockout, token revocation...)"""
    logger.bind(security=True, event=event, **fields).warning("SECURITY {} {}", event, fields)
