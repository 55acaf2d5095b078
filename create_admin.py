"""
Create the initial administrator account.

    python create_admin.py [--email ...] [--password ...] [--fullname ...]

Defaults come from ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_FULLNAME. Running it
again when the account exists changes nothing.
"""

import argparse
import logging
import sys

import database
import settings
from database import create_document
from schemas import User
from security import hash_password

logger = logging.getLogger(__name__)


def seed_admin(db, email: str, password: str, fullname: str):
    """Insert an approved admin unless the email is taken. Returns (user, created)."""
    email = email.lower()
    existing = db["user"].find_one({"email": email})
    if existing:
        return existing, False

    admin = User(
        fullname=fullname,
        email=email,
        password_hash=hash_password(password),
        role="admin",
        approved=True,
        emailVerified=True,
        isActive=True,
    )
    return create_document(db, "user", admin), True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create the administrator account")
    parser.add_argument("--email", default=settings.ADMIN_EMAIL)
    parser.add_argument("--password", default=settings.ADMIN_PASSWORD)
    parser.add_argument("--fullname", default=settings.ADMIN_FULLNAME)
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s %(message)s")
    if database.db is None:
        logger.error("Error connecting to database: %s", database.connection_error)
        return 1

    user, created = seed_admin(database.db, args.email, args.password, args.fullname)
    if created:
        logger.info("Admin user created: %s (role %s)", user["email"], user["role"])
        logger.warning("Please change the password after first login!")
    else:
        logger.info("Admin user already exists: %s (role %s)", user["email"], user.get("role"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
