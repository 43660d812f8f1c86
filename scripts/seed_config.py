"""
Seed the default dynamic configuration, auth providers and rules templates

Usage:
    python scripts/seed_config.py
"""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from mockmate.core.database import AsyncSessionLocal, init_db, close_db
from mockmate.core.logging import setup_logging
from mockmate.services.auth_provider_service import auth_provider_service
from mockmate.services.config_service import config_service
from mockmate.services.rules_service import rules_service


async def seed() -> None:
    await init_db()
    async with AsyncSessionLocal() as db:
        configs = await config_service.seed_defaults(db)
        providers = await auth_provider_service.seed_defaults(db)
        templates = await rules_service.seed_defaults(db)
        await db.commit()
    await close_db()

    logger.info(
        "Seeded {} config keys, {} auth providers, {} rules templates",
        configs, providers, templates,
    )


if __name__ == "__main__":
    setup_logging()
    asyncio.run(seed())
