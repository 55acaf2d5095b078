"""
Authentication helpers: password hashing, session tokens and the FastAPI
dependencies that resolve the calling user.

The session token is a JWT carried in the httpOnly `token` cookie; an
`Authorization: Bearer` header is accepted as well.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from bson import ObjectId
from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

import settings
from database import get_db

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)
security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def create_access_token(user_id, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=settings.JWT_EXPIRES_DAYS))
    to_encode = {"userId": str(user_id), "exp": expire}
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.TOKEN_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.IS_PRODUCTION,
        samesite="strict" if settings.IS_PRODUCTION else "lax",
        max_age=settings.JWT_EXPIRES_DAYS * 24 * 60 * 60,
    )


def clear_token_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.TOKEN_COOKIE_NAME,
        httponly=True,
        secure=settings.IS_PRODUCTION,
        samesite="strict" if settings.IS_PRODUCTION else "lax",
    )


def public_user(user_doc: dict) -> dict:
    """Account fields safe to send to the client (never the password hash)."""
    if not user_doc:
        return {}
    return {
        "id": str(user_doc.get("_id")),
        "fullname": user_doc.get("fullname"),
        "email": user_doc.get("email"),
        "role": user_doc.get("role", "user"),
        "avatar": user_doc.get("avatar"),
        "approved": user_doc.get("approved", False),
        "isActive": user_doc.get("isActive", True),
        "emailVerified": user_doc.get("emailVerified", False),
        "lastLogin": user_doc["lastLogin"].isoformat() if user_doc.get("lastLogin") else None,
        "createdAt": user_doc["created_at"].isoformat() if user_doc.get("created_at") else None,
    }


def can_sign_in(user_doc: dict) -> bool:
    """Admins are implicitly approved; everyone else needs the approved flag."""
    return user_doc.get("role") == "admin" or bool(user_doc.get("approved"))


def _read_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    token = request.cookies.get(settings.TOKEN_COOKIE_NAME)
    if token:
        return token
    if credentials is not None and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return None


def _user_from_token(db, token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired.")
    except JWTError as e:
        logger.debug("Rejected session token: %s", e)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token.")

    user_id = payload.get("userId")
    if not user_id or not ObjectId.is_valid(user_id):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token.")
    user = db["user"].find_one({"_id": ObjectId(user_id)})
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token. User not found.")
    return user


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db=Depends(get_db),
) -> dict:
    token = _read_token(request, credentials)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access denied. No token provided.")
    user = _user_from_token(db, token)
    if not user.get("isActive", True):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account has been deactivated.")
    if not can_sign_in(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is pending admin approval.")
    return user


def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db=Depends(get_db),
) -> Optional[dict]:
    """Like get_current_user, but anonymous or unusable sessions resolve to None."""
    token = _read_token(request, credentials)
    if not token:
        return None
    try:
        user = _user_from_token(db, token)
    except HTTPException:
        return None
    if not user.get("isActive", True) or not can_sign_in(user):
        return None
    return user


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required.")
    return user


def is_admin(user: Optional[dict]) -> bool:
    return bool(user) and user.get("role") == "admin"
