"""
Sustainability project routes.

Anonymous visitors and regular users only ever see public projects;
administrators see everything and are the only ones who can write.
"""

from math import ceil
from typing import List, Literal, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, EmailStr, Field

from content import author_ref, load_users
from database import (
    count_values,
    create_document,
    find_page,
    get_db,
    save_document,
    serialize,
    sum_values,
    to_object_id,
)
from schemas import (
    ACTIVE_PROJECT_STATUSES,
    Budget,
    Project,
    ProjectDocument,
    ProjectImage,
    ProjectMetrics,
    ProjectStatus,
    ProjectType,
)
from security import get_optional_user, is_admin, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])

USER_REF_FIELDS = ("fullname", "email")
SEARCH_FIELDS = ("title", "description", "location", "tags")
METRIC_TOTALS = {
    "totalCarbonReduction": "metrics.carbonReduction.value",
    "totalEnergySaved": "metrics.energySaved.value",
    "totalWasteReduced": "metrics.wasteReduced.value",
    "totalPeopleImpacted": "metrics.peopleImpacted",
}


# Schemas for requests
class ProjectUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    departments: Optional[List[str]] = Field(None, min_length=1)
    type: Optional[ProjectType] = None
    status: Optional[ProjectStatus] = None
    priority: Optional[Literal["Low", "Medium", "High", "Critical"]] = None
    partners: Optional[List[str]] = None
    responsiblePerson: Optional[str] = Field(None, min_length=2, max_length=100)
    responsibleEmail: Optional[EmailStr] = None
    yearInitiated: Optional[int] = None
    yearCompleted: Optional[int] = None
    location: Optional[str] = Field(None, min_length=2, max_length=200)
    budget: Optional[Budget] = None
    images: Optional[List[ProjectImage]] = None
    documents: Optional[List[ProjectDocument]] = None
    metrics: Optional[ProjectMetrics] = None
    tags: Optional[List[str]] = None
    isPublic: Optional[bool] = None
    isFeatured: Optional[bool] = None


# Helpers

def render_project(db, project: dict) -> dict:
    users = load_users(db, {project.get("createdBy"), project.get("updatedBy")}, USER_REF_FIELDS)
    out = dict(project)
    out["createdBy"] = author_ref(users, project.get("createdBy"), USER_REF_FIELDS)
    out["updatedBy"] = author_ref(users, project.get("updatedBy"), USER_REF_FIELDS)
    images = project.get("images") or []
    out["primaryImage"] = next((img for img in images if img.get("isPrimary")), images[0] if images else None)
    completed = project.get("yearCompleted")
    out["duration"] = completed - project["yearInitiated"] if completed else None
    return serialize(out)


def _visibility(viewer: Optional[dict]) -> dict:
    return {} if is_admin(viewer) else {"isPublic": True}


def _load_project(db, project_id: str, viewer: Optional[dict] = None, public_only: bool = False) -> dict:
    project = db["project"].find_one({"_id": to_object_id(project_id, "Project not found")})
    if not project or (public_only and not project.get("isPublic") and not is_admin(viewer)):
        raise HTTPException(status_code=404, detail="Project not found")
    return project


# Reading

@router.get("")
def list_projects(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    type: Optional[ProjectType] = None,
    status: Optional[ProjectStatus] = None,
    search: Optional[str] = None,
    sortBy: Literal["createdAt", "title", "yearInitiated", "status"] = Query("createdAt"),
    sortOrder: Literal["asc", "desc"] = Query("desc"),
    viewer: Optional[dict] = Depends(get_optional_user),
    db=Depends(get_db),
):
    query = _visibility(viewer)
    if type:
        query["type"] = type
    if status:
        query["status"] = status

    sort_field = "created_at" if sortBy == "createdAt" else sortBy
    direction = -1 if sortOrder == "desc" else 1
    found, total = find_page(
        db, "project", query, [(sort_field, direction)], (page - 1) * limit, limit,
        search=search, search_fields=SEARCH_FIELDS,
    )
    return {
        "success": True,
        "data": [render_project(db, p) for p in found],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": ceil(total / limit)},
    }


@router.get("/featured")
def featured_projects(db=Depends(get_db)):
    cursor = db["project"].find({"isFeatured": True, "isPublic": True}).sort([("created_at", -1)]).limit(6)
    return {"success": True, "data": [render_project(db, p) for p in cursor]}


@router.get("/stats")
def project_stats(db=Depends(get_db)):
    public = {"isPublic": True}
    projects = db["project"]
    overview = {
        "totalProjects": projects.count_documents(public),
        "activeProjects": projects.count_documents({**public, "status": {"$in": list(ACTIVE_PROJECT_STATUSES)}}),
        "completedProjects": projects.count_documents({**public, "status": "Completed"}),
    }
    overview.update(sum_values(db, "project", public, METRIC_TOTALS))
    project_types = [{"type": t, "count": n} for t, n in count_values(db, "project", public, "type")]
    return {"success": True, "data": {"overview": overview, "projectTypes": project_types}}


@router.get("/{project_id}")
def get_project(project_id: str, viewer: Optional[dict] = Depends(get_optional_user), db=Depends(get_db)):
    project = _load_project(db, project_id, viewer, public_only=True)
    return {"success": True, "data": render_project(db, project)}


# Writing

@router.post("", status_code=201)
def create_project(payload: Project, admin: dict = Depends(require_admin), db=Depends(get_db)):
    data = payload.model_dump()
    data["createdBy"] = admin["_id"]
    data["updatedBy"] = None
    doc = create_document(db, "project", data)
    logger.info("Project %r created by %s", doc["title"], admin.get("email"))
    return {"success": True, "message": "Project created successfully", "data": render_project(db, doc)}


@router.put("/{project_id}")
def update_project(project_id: str, payload: ProjectUpdate, admin: dict = Depends(require_admin), db=Depends(get_db)):
    project = _load_project(db, project_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    merged = {k: project.get(k) for k in Project.model_fields if project.get(k) is not None}
    merged.update(changes)
    validated = Project(**merged).model_dump()

    project.update(validated)
    project["updatedBy"] = admin["_id"]
    save_document(db, "project", project)
    return {"success": True, "message": "Project updated successfully", "data": render_project(db, project)}


@router.delete("/{project_id}")
def delete_project(project_id: str, admin: dict = Depends(require_admin), db=Depends(get_db)):
    project = _load_project(db, project_id)
    db["project"].delete_one({"_id": project["_id"]})
    logger.info("Project %r deleted by %s", project.get("title"), admin.get("email"))
    return {"success": True, "message": "Project deleted successfully"}
