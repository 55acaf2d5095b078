"""
Blog post document rules.

`prepare_post` plays the role of a pre-save hook: it runs on every write of a
post and keeps the derived fields (slug, reading time, excerpt, publishedAt)
consistent with the editable ones.
"""

from datetime import datetime, timezone
from math import ceil
from typing import Dict, Iterable, Optional
import re

from bson import ObjectId

WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 300

_NON_SLUG_CHARS = re.compile(r"[^\w\s-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")
_HTML_TAGS = re.compile(r"<[^>]*>")

AUTHOR_FIELDS = ("fullname", "email", "avatar")
COMMENT_AUTHOR_FIELDS = ("fullname", "avatar")


def slugify(title: str) -> str:
    """
    "Hello, World!!" -> "hello-world"
    """
    slug = _NON_SLUG_CHARS.sub("", title.lower())
    slug = _WHITESPACE.sub("-", slug)
    slug = _HYPHENS.sub("-", slug)
    return slug.strip("-")


def reading_time(content: str) -> int:
    words = len(content.split())
    return ceil(words / WORDS_PER_MINUTE)


def make_excerpt(content: str) -> str:
    plain = _HTML_TAGS.sub("", content)
    return plain[:EXCERPT_LENGTH] + ("..." if len(plain) > EXCERPT_LENGTH else "")


def prepare_post(doc: dict, previous: Optional[dict] = None) -> dict:
    """Fill derived fields before a post is written.

    The slug is taken from the title only when the post has none yet, so
    renaming a published post never breaks its URL. publishedAt is set the
    first time the post is published and then left alone, even if the post
    is archived or moved back to draft.
    """
    if not doc.get("slug"):
        doc["slug"] = slugify(doc["title"]) or str(ObjectId())

    content_changed = previous is None or previous.get("content") != doc.get("content")
    if content_changed:
        doc["readingTime"] = reading_time(doc["content"])
    if not doc.get("excerpt") and (content_changed or previous is None):
        doc["excerpt"] = make_excerpt(doc["content"])

    if doc.get("status") == "published" and not doc.get("publishedAt"):
        doc["publishedAt"] = datetime.now(timezone.utc)
    return doc


def load_users(db, ids: Iterable, fields: Iterable[str]) -> Dict[ObjectId, dict]:
    """Fetch the given users once, keyed by id, keeping only `fields`."""
    wanted = {i for i in ids if isinstance(i, ObjectId)}
    if not wanted:
        return {}
    found = {}
    for u in db["user"].find({"_id": {"$in": list(wanted)}}):
        found[u["_id"]] = {"id": str(u["_id"]), **{f: u.get(f) for f in fields}}
    return found


def author_ref(users: Dict[ObjectId, dict], user_id, fields: Iterable[str] = AUTHOR_FIELDS) -> Optional[dict]:
    """The populated author, limited to `fields`; deleted accounts get a placeholder."""
    if not user_id:
        return None
    found = users.get(user_id)
    if found is None:
        found = {"fullname": "Deleted user"}
    return {"id": str(user_id), **{f: found.get(f) for f in fields}}
