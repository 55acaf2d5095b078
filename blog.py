"""
Blog routes, including comment submission and moderation.

Comments are embedded in their post, so every comment change loads the
post, edits its `comments` array in memory and writes the post back whole.
"""

from math import ceil
from typing import List, Literal, Optional
import copy
import logging

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

import settings
from content import AUTHOR_FIELDS, COMMENT_AUTHOR_FIELDS, author_ref, load_users, prepare_post
from database import (
    count_values,
    create_document,
    find_page,
    get_db,
    is_embedded,
    save_document,
    serialize,
    to_object_id,
)
from moderation import (
    add_reply,
    approved_count,
    filter_for_moderation,
    find_comment,
    flatten_for_moderation,
    new_comment,
    new_reply,
    remove_comment,
    set_approval,
    visible_comments,
)
from schemas import BlogCategory, BlogPost, ImageRef, PostStatus, Seo
from security import get_current_user, get_optional_user, is_admin, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/blog", tags=["blog"])

PUBLISHED = {"status": "published", "isPublic": True}
SEARCH_FIELDS = ("title", "content", "excerpt", "tags")


# Schemas for requests
class BlogPostCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=3, max_length=200)
    content: str = Field(..., min_length=50)
    excerpt: Optional[str] = Field(None, max_length=500)
    featuredImage: Optional[ImageRef] = None
    images: List[ImageRef] = Field(default_factory=list)
    categories: List[BlogCategory] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    status: PostStatus = "draft"
    isPublic: bool = True
    isFeatured: bool = False
    seo: Seo = Field(default_factory=Seo)


class BlogPostUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    content: Optional[str] = Field(None, min_length=50)
    excerpt: Optional[str] = Field(None, max_length=500)
    featuredImage: Optional[ImageRef] = None
    images: Optional[List[ImageRef]] = None
    categories: Optional[List[BlogCategory]] = None
    tags: Optional[List[str]] = None
    status: Optional[PostStatus] = None
    isPublic: Optional[bool] = None
    isFeatured: Optional[bool] = None
    seo: Optional[Seo] = None


class CommentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(..., min_length=1, max_length=1000)


class ReplyCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(..., min_length=1, max_length=500)


# Helpers

def _comment_author_ids(comments: List[dict]) -> set:
    ids = set()
    for c in comments:
        ids.add(c.get("author"))
        ids.update(r.get("author") for r in c.get("replies", []))
    return ids


def _render_comment(comment: dict, users: dict) -> dict:
    out = dict(comment)
    out["author"] = author_ref(users, comment.get("author"), COMMENT_AUTHOR_FIELDS)
    out["replies"] = [
        {**r, "author": author_ref(users, r.get("author"), COMMENT_AUTHOR_FIELDS)}
        for r in comment.get("replies", [])
    ]
    return out


def render_post(db, post: dict, with_comments: bool = True, include_pending: bool = False) -> dict:
    """Populate authors, add derived counters and make the post JSON friendly."""
    comments = visible_comments(post.get("comments", []), include_pending) if with_comments else []
    users = load_users(db, {post.get("author")} | _comment_author_ids(comments), AUTHOR_FIELDS)

    out = {k: v for k, v in post.items() if k != "comments"}
    out["author"] = author_ref(users, post.get("author"))
    out["commentCount"] = approved_count(post)
    out["likeCount"] = len(post.get("likes", []))
    out["url"] = f"/blog/{post.get('slug')}"
    if with_comments:
        out["comments"] = [_render_comment(c, users) for c in comments]
    return serialize(out)


def render_comment(db, comment: dict) -> dict:
    users = load_users(db, _comment_author_ids([comment]), COMMENT_AUTHOR_FIELDS)
    return serialize(_render_comment(comment, users))


def _load_post(db, post_id: str) -> dict:
    post = db["blogpost"].find_one({"_id": to_object_id(post_id, "Blog post not found")})
    if not post:
        raise HTTPException(status_code=404, detail="Blog post not found")
    return post


def _load_post_with_comment(db, comment_id: str):
    oid = to_object_id(comment_id, "Comment not found")
    if is_embedded(db):
        post = next((p for p in db["blogpost"].find({}) if find_comment(p, oid)), None)
    else:
        post = db["blogpost"].find_one({"comments._id": oid})
    if not post:
        raise HTTPException(status_code=404, detail="Comment not found")
    return post, oid


def _count_by(db, field: str, limit: Optional[int] = None) -> List[dict]:
    return [{"name": name, "count": count} for name, count in count_values(db, "blogpost", PUBLISHED, field, limit)]


# Reading

@router.get("")
def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    category: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    author: Optional[str] = None,
    featured: Optional[bool] = None,
    db=Depends(get_db),
):
    query: dict = dict(PUBLISHED)
    if category:
        query["categories"] = category.strip().lower()
    if tag:
        query["tags"] = tag.strip().lower()
    if author:
        if not ObjectId.is_valid(author):
            raise HTTPException(status_code=400, detail="Invalid author id")
        query["author"] = ObjectId(author)
    if featured is not None:
        query["isFeatured"] = featured

    found, total = find_page(
        db, "blogpost", query, [("publishedAt", -1)], (page - 1) * limit, limit,
        search=search, search_fields=SEARCH_FIELDS,
    )
    posts = [render_post(db, p, with_comments=False) for p in found]
    return {
        "success": True,
        "data": posts,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": ceil(total / limit)},
    }


@router.get("/featured")
def featured_posts(db=Depends(get_db)):
    cursor = db["blogpost"].find({**PUBLISHED, "isFeatured": True}).sort([("publishedAt", -1)]).limit(3)
    return {"success": True, "data": [render_post(db, p, with_comments=False) for p in cursor]}


@router.get("/categories")
def categories(db=Depends(get_db)):
    return {"success": True, "data": _count_by(db, "categories")}


@router.get("/tags")
def tags(db=Depends(get_db)):
    return {"success": True, "data": _count_by(db, "tags", limit=20)}


# Moderation

@router.get("/comments")
def moderation_queue(
    status: Literal["all", "pending", "approved"] = Query("all"),
    search: Optional[str] = None,
    _: dict = Depends(require_admin),
    db=Depends(get_db),
):
    posts = db["blogpost"].find({})
    items = flatten_for_moderation(posts)
    users = load_users(db, _comment_author_ids(items), COMMENT_AUTHOR_FIELDS)
    items = [_render_comment(i, users) for i in items]
    pending = sum(1 for i in items if not i.get("isApproved"))
    filtered = filter_for_moderation(items, status, search)
    return {
        "success": True,
        "data": serialize(filtered),
        "counts": {"total": len(items), "pending": pending, "approved": len(items) - pending},
    }


def _moderate(db, comment_id: str, approved: bool, admin: dict) -> dict:
    post, oid = _load_post_with_comment(db, comment_id)
    comment = set_approval(post, oid, approved)
    save_document(db, "blogpost", post)
    logger.info(
        "Comment %s on post %s %s by %s",
        comment_id, post.get("slug"), "approved" if approved else "rejected", admin.get("email"),
    )
    return render_comment(db, comment)


@router.put("/comments/{comment_id}/approve")
def approve_comment(comment_id: str, admin: dict = Depends(require_admin), db=Depends(get_db)):
    data = _moderate(db, comment_id, True, admin)
    return {"success": True, "message": "Comment approved", "data": data}


@router.put("/comments/{comment_id}/reject")
def reject_comment(comment_id: str, admin: dict = Depends(require_admin), db=Depends(get_db)):
    data = _moderate(db, comment_id, False, admin)
    return {"success": True, "message": "Comment rejected", "data": data}


@router.delete("/comments/{comment_id}")
def delete_comment(comment_id: str, admin: dict = Depends(require_admin), db=Depends(get_db)):
    post, oid = _load_post_with_comment(db, comment_id)
    remove_comment(post, oid)
    save_document(db, "blogpost", post)
    logger.info("Comment %s on post %s deleted by %s", comment_id, post.get("slug"), admin.get("email"))
    return {"success": True, "message": "Comment deleted successfully"}


@router.get("/{slug}")
def get_post(slug: str, viewer: Optional[dict] = Depends(get_optional_user), db=Depends(get_db)):
    post = db["blogpost"].find_one({"slug": slug, **PUBLISHED})
    if not post:
        raise HTTPException(status_code=404, detail="Blog post not found")

    db["blogpost"].update_one({"_id": post["_id"]}, {"$inc": {"views": 1}})
    post["views"] = post.get("views", 0) + 1
    return {"success": True, "data": render_post(db, post, include_pending=is_admin(viewer))}


# Writing

@router.post("", status_code=201)
def create_post(payload: BlogPostCreate, admin: dict = Depends(require_admin), db=Depends(get_db)):
    doc = BlogPost(**payload.model_dump(), author=admin["_id"]).model_dump()
    prepare_post(doc)
    if db["blogpost"].find_one({"slug": doc["slug"]}):
        raise HTTPException(status_code=409, detail="A blog post with this title already exists")

    doc = create_document(db, "blogpost", doc)
    logger.info("Blog post %s created by %s", doc["slug"], admin.get("email"))
    return {"success": True, "message": "Blog post created successfully", "data": render_post(db, doc)}


@router.put("/{post_id}")
def update_post(post_id: str, payload: BlogPostUpdate, _: dict = Depends(require_admin), db=Depends(get_db)):
    post = _load_post(db, post_id)
    previous = copy.deepcopy(post)

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    merged = {k: post.get(k) for k in BlogPost.model_fields if k in post}
    merged.update(changes)
    validated = BlogPost(**merged).model_dump()
    post.update({k: validated[k] for k in changes})

    prepare_post(post, previous)
    save_document(db, "blogpost", post)
    return {"success": True, "message": "Blog post updated successfully", "data": render_post(db, post)}


@router.delete("/{post_id}")
def delete_post(post_id: str, admin: dict = Depends(require_admin), db=Depends(get_db)):
    post = _load_post(db, post_id)
    db["blogpost"].delete_one({"_id": post["_id"]})
    logger.info("Blog post %s deleted by %s", post.get("slug"), admin.get("email"))
    return {"success": True, "message": "Blog post deleted successfully"}


@router.post("/{post_id}/like")
def toggle_like(post_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    post = _load_post(db, post_id)
    likes = post.setdefault("likes", [])
    if user["_id"] in likes:
        likes.remove(user["_id"])
    else:
        likes.append(user["_id"])
    save_document(db, "blogpost", post)
    return {
        "success": True,
        "message": "Like toggled successfully",
        "data": {"likes": len(likes), "isLiked": user["_id"] in likes},
    }


@router.post("/{post_id}/comments", status_code=201)
def add_comment(post_id: str, payload: CommentCreate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    post = _load_post(db, post_id)
    comment = new_comment(user["_id"], payload.content, approved=settings.COMMENT_AUTO_APPROVE)
    data = render_comment(db, comment)
    post.setdefault("comments", []).append(comment)
    save_document(db, "blogpost", post)

    message = "Comment added successfully" if comment["isApproved"] else "Comment submitted and awaiting moderation"
    return {"success": True, "message": message, "data": data}


@router.post("/{post_id}/comments/{comment_id}/replies", status_code=201)
def reply_to_comment(
    post_id: str,
    comment_id: str,
    payload: ReplyCreate,
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    post = _load_post(db, post_id)
    oid = to_object_id(comment_id, "Comment not found")
    parent = find_comment(post, oid)
    # pending comments only exist for admins
    if parent is None or not (parent.get("isApproved") or is_admin(user)):
        raise HTTPException(status_code=404, detail="Comment not found")

    reply = new_reply(user["_id"], payload.content)
    users = load_users(db, {user["_id"]}, COMMENT_AUTHOR_FIELDS)
    data = serialize({**reply, "author": author_ref(users, user["_id"], COMMENT_AUTHOR_FIELDS)})
    add_reply(post, oid, reply)
    save_document(db, "blogpost", post)
    return {"success": True, "message": "Reply added successfully", "data": data}
