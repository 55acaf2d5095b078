"""
Administrator routes for account approval and user management.
"""

from datetime import datetime, timedelta, timezone
from math import ceil
from typing import Literal, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from database import count_since, find_page, get_db, to_object_id
from security import public_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class RoleUpdate(BaseModel):
    role: Literal["user", "admin"]


def _load_user(db, user_id: str) -> dict:
    user = db["user"].find_one({"_id": to_object_id(user_id, "User not found")})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _set_user_fields(db, user: dict, fields: dict) -> dict:
    fields["updated_at"] = datetime.now(timezone.utc)
    db["user"].update_one({"_id": user["_id"]}, {"$set": fields})
    user.update(fields)
    return user


@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[Literal["pending", "approved"]] = None,
    search: Optional[str] = None,
    _: dict = Depends(require_admin),
    db=Depends(get_db),
):
    query: dict = {}
    if status == "pending":
        query["approved"] = False
    elif status == "approved":
        query["approved"] = True

    found, total = find_page(
        db, "user", query, [("created_at", -1)], (page - 1) * limit, limit,
        search=search, search_fields=("fullname", "email"),
    )
    users = [public_user(u) for u in found]
    return {
        "success": True,
        "users": users,
        "pagination": {"current": page, "total": ceil(total / limit), "totalUsers": total},
    }


@router.put("/users/{user_id}/approve")
def approve_user(user_id: str, admin: dict = Depends(require_admin), db=Depends(get_db)):
    user = _load_user(db, user_id)
    if user.get("approved"):
        raise HTTPException(status_code=400, detail="User is already approved")
    _set_user_fields(db, user, {"approved": True})
    logger.info("User %s approved by %s", user.get("email"), admin.get("email"))
    return {"success": True, "message": "User approved successfully", "user": public_user(user)}


@router.put("/users/{user_id}/reject")
def reject_user(user_id: str, admin: dict = Depends(require_admin), db=Depends(get_db)):
    user = _load_user(db, user_id)
    if not user.get("approved"):
        raise HTTPException(status_code=400, detail="User is already not approved")
    _set_user_fields(db, user, {"approved": False})
    logger.info("User %s approval revoked by %s", user.get("email"), admin.get("email"))
    return {"success": True, "message": "User approval revoked successfully", "user": public_user(user)}


@router.put("/users/{user_id}/role")
def update_role(user_id: str, payload: RoleUpdate, admin: dict = Depends(require_admin), db=Depends(get_db)):
    user = _load_user(db, user_id)
    if user["_id"] == admin["_id"]:
        raise HTTPException(status_code=400, detail="Cannot change your own role")
    _set_user_fields(db, user, {"role": payload.role})
    logger.info("User %s role set to %s by %s", user.get("email"), payload.role, admin.get("email"))
    return {"success": True, "message": "User role updated successfully", "user": public_user(user)}


@router.delete("/users/{user_id}")
def delete_user(user_id: str, admin: dict = Depends(require_admin), db=Depends(get_db)):
    user = _load_user(db, user_id)
    if user["_id"] == admin["_id"]:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    db["user"].delete_one({"_id": user["_id"]})
    logger.info("User %s deleted by %s", user.get("email"), admin.get("email"))
    return {"success": True, "message": "User deleted successfully"}


@router.get("/stats")
def admin_stats(_: dict = Depends(require_admin), db=Depends(get_db)):
    seven_days_ago = datetime.now(timezone.utc) - timedelta(days=7)
    users = db["user"]
    return {
        "success": True,
        "stats": {
            "totalUsers": users.count_documents({}),
            "pendingUsers": users.count_documents({"approved": False}),
            "approvedUsers": users.count_documents({"approved": True}),
            "adminUsers": users.count_documents({"role": "admin"}),
            "recentRegistrations": count_since(db, "user", "created_at", seven_days_ago),
        },
    }
