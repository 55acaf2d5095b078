"""
Account routes: registration, sign-in/out and self-service profile changes.

New accounts start unapproved and cannot sign in until an administrator
approves them (see admin.py).
"""

from datetime import datetime, timezone
from typing import Optional
import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, EmailStr, Field, field_validator

from database import create_document, get_db
from schemas import User
from security import (
    can_sign_in,
    clear_token_cookie,
    create_access_token,
    get_current_user,
    hash_password,
    public_user,
    set_token_cookie,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

_PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def _strong_password(v: str) -> str:
    if not _PASSWORD_RULE.match(v):
        raise ValueError("Password must contain at least one lowercase letter, one uppercase letter, and one number")
    return v


def _strip(v):
    return v.strip() if isinstance(v, str) else v


# Schemas for requests
class RegisterRequest(BaseModel):
    fullname: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator("fullname", mode="before")
    @classmethod
    def strip_name(cls, v):
        return _strip(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return _strong_password(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    fullname: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None

    @field_validator("fullname", mode="before")
    @classmethod
    def strip_name(cls, v):
        return _strip(v)


class ChangePasswordRequest(BaseModel):
    currentPassword: str = Field(..., min_length=1)
    newPassword: str = Field(..., min_length=6)

    @field_validator("newPassword")
    @classmethod
    def check_password(cls, v: str) -> str:
        return _strong_password(v)


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, db=Depends(get_db)):
    email = str(payload.email).lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=409, detail="User with this email already exists")

    user = User(
        fullname=payload.fullname,
        email=email,
        password_hash=hash_password(payload.password),
        role="user",
        approved=False,
    )
    doc = create_document(db, "user", user)
    logger.info("Registered user %s (pending approval)", email)
    return {
        "success": True,
        "message": "Registration successful. Your account is pending admin approval.",
        "user": public_user(doc),
    }


@router.post("/login")
def login(payload: LoginRequest, response: Response, db=Depends(get_db)):
    user = db["user"].find_one({"email": str(payload.email).lower()})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.get("isActive", True):
        raise HTTPException(status_code=401, detail="Account has been deactivated. Please contact support.")
    if not can_sign_in(user):
        raise HTTPException(status_code=403, detail="Your account is pending admin approval.")

    now = datetime.now(timezone.utc)
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"lastLogin": now, "updated_at": now}})
    user["lastLogin"] = now

    set_token_cookie(response, create_access_token(user["_id"]))
    return {"success": True, "message": "Login successful", "user": public_user(user)}


@router.post("/logout")
def logout(response: Response):
    clear_token_cookie(response)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/status")
def auth_status(user: dict = Depends(get_current_user)):
    return {"success": True, "user": public_user(user)}


@router.put("/profile")
def update_profile(payload: ProfileUpdate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    update = {}
    if payload.fullname:
        update["fullname"] = payload.fullname
    if payload.email:
        email = str(payload.email).lower()
        if email != user.get("email"):
            if db["user"].find_one({"email": email}):
                raise HTTPException(status_code=409, detail="Email is already in use")
            update["email"] = email
    if update:
        update["updated_at"] = datetime.now(timezone.utc)
        db["user"].update_one({"_id": user["_id"]}, {"$set": update})
        user.update(update)
    return {"success": True, "message": "Profile updated successfully", "user": public_user(user)}


@router.post("/change-password")
def change_password(payload: ChangePasswordRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    if not verify_password(payload.currentPassword, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Current password is incorrect")
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"password_hash": hash_password(payload.newPassword), "updated_at": datetime.now(timezone.utc)}},
    )
    logger.info("Password changed for user %s", user.get("email"))
    return {"success": True, "message": "Password changed successfully"}
