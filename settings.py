"""
Application settings

Everything is read from environment variables (a .env file is loaded first
when present). Values are plain module constants, read once at import.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Database
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

# Session / security
JWT_SECRET = os.getenv("JWT_SECRET", "fallback-secret-key-change-in-production")
JWT_ALG = os.getenv("JWT_ALG", "HS256")
JWT_EXPIRES_DAYS = int(os.getenv("JWT_EXPIRES_DAYS", "7"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
TOKEN_COOKIE_NAME = "token"

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT == "production"

# CORS
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
    ).split(",")
    if o.strip()
]
if FRONTEND_URL not in CORS_ORIGINS:
    CORS_ORIGINS.append(FRONTEND_URL)

# Moderation: new comments start pending unless this is switched on
COMMENT_AUTO_APPROVE = _env_bool("COMMENT_AUTO_APPROVE", False)

# Seeded administrator
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@citycollege.edu")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "Admin123!")
ADMIN_FULLNAME = os.getenv("ADMIN_FULLNAME", "Admin User")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", 8000))
