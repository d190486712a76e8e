"""
Create the admin account.

    python seed.py [--email admin@store.com] [--password admin123]

Defaults come from ADMIN_EMAIL / ADMIN_PASSWORD. Running it twice is harmless.
"""
import argparse
import asyncio
import logging

from auth import hash_password
from config import settings
from database import create_document, get_db, reset_db
from schemas import User

logger = logging.getLogger(__name__)


async def seed_admin(db, email: str, password: str) -> bool:
    """Insert the admin user unless one with this email exists. Returns True if created."""
    await db["user"].create_index("email", unique=True)
    if await db["user"].find_one({"email": email}):
        logger.info("Admin user %s already exists", email)
        return False
    user = User(email=email, password_hash=hash_password(password), role="admin")
    await create_document(db, "user", user)
    logger.info("Created admin user %s", email)
    return True


async def _main(email: str, password: str) -> None:
    db = await get_db()
    try:
        created = await seed_admin(db, email, password)
    finally:
        reset_db()
    if created:
        print(f"Admin user created: {email}")
        print("Please change the default password after first login!")
    else:
        print(f"Admin user already exists: {email}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the admin user")
    parser.add_argument("--email", default=settings.admin_email)
    parser.add_argument("--password", default=settings.admin_password)
    args = parser.parse_args()
    logging.basicConfig(level=settings.log_level.upper())
    asyncio.run(_main(args.email, args.password))
