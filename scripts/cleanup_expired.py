"""
Delete expired OTP codes, tokens, old alerts and old analytics rows

Usage:
    python scripts/cleanup_expired.py
    python scripts/cleanup_expired.py --alert-days 7 --analytics-days 180
"""
import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from mockmate.core.database import AsyncSessionLocal, init_db, close_db
from mockmate.core.logging import setup_logging
from mockmate.crud import password_reset_crud
from mockmate.services.alert_service import alert_service
from mockmate.services.analytics_service import analytics_service
from mockmate.services.otp_service import otp_service
from mockmate.services.verification_service import verification_service


def parse_args():
    parser = argparse.ArgumentParser(description="Remove expired and stale rows")
    parser.add_argument("--alert-days", type=int, default=30,
                        help="delete alerts expired more than N days ago (default: 30)")
    parser.add_argument("--analytics-days", type=int, default=365,
                        help="delete analytics rows older than N days (default: 365)")
    return parser.parse_args()


async def cleanup(args) -> dict:
    await init_db()
    async with AsyncSessionLocal() as db:
        summary = {
            "otp_codes": await otp_service.cleanup(db),
            "verification_tokens": await verification_service.cleanup(db),
            "password_resets": await password_reset_crud.delete_expired(db),
            "alerts": await alert_service.cleanup(db, days=args.alert_days),
            "analytics": await analytics_service.cleanup_old_data(db, days=args.analytics_days),
        }
        await db.commit()
    await close_db()
    return summary


if __name__ == "__main__":
    setup_logging()
    result = asyncio.run(cleanup(parse_args()))
    logger.info("Cleanup finished: {}", result)
