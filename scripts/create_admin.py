"""
Create an admin account, or promote an existing user to admin

Usage:
    python scripts/create_admin.py admin@example.com 'S3cure!pass' --first-name Ada --last-name Admin
"""
import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from mockmate.core.database import AsyncSessionLocal, init_db, close_db
from mockmate.core.logging import setup_logging, log_security_event
from mockmate.core.security import get_password_hash
from mockmate.crud import user_crud
from mockmate.models.user import UserRole


def parse_args():
    parser = argparse.ArgumentParser(description="Create or promote an admin user")
    parser.add_argument("email", help="admin email address")
    parser.add_argument("password", help="password, also reset when the user already exists")
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    parser.add_argument("--credits", type=int, default=0, help="starting credits for a new account")
    return parser.parse_args()


async def create_admin(args) -> None:
    email = args.email.strip().lower()
    await init_db()
    async with AsyncSessionLocal() as db:
        user = await user_crud.get_by_email(db, email)
        if user is None:
            user = await user_crud.create(db, obj_in={
                "email": email,
                "password_hash": get_password_hash(args.password),
                "first_name": args.first_name,
                "last_name": args.last_name,
                "role": UserRole.ADMIN,
                "credits": args.credits,
                "is_verified": True,
            })
            action = "created"
        else:
            user = await user_crud.update(db, db_obj=user, obj_in={
                "role": UserRole.ADMIN,
                "password_hash": get_password_hash(args.password),
                "is_active": True,
                "deleted_at": None,
                "failed_login_attempts": 0,
                "locked_until": None,
            })
            action = "promoted"
        await db.commit()
        user_id = user.id
    await close_db()

    log_security_event("admin_account_" + action, user_id=user_id, email=email)
    logger.info("Admin {} {} ({})", email, action, user_id)


if __name__ == "__main__":
    setup_logging()
    asyncio.run(create_admin(parse_args()))
