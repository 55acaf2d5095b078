"""
Comment moderation workflow

Comments live inside their post's `comments` array. A comment is either
pending (isApproved false) or approved; "reject" only resets the flag, and
delete removes the entry for good. All functions here work on the post
document in memory; the caller persists the whole post afterwards.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Literal, Optional

from bson import ObjectId

from schemas import Comment, Reply

ModerationStatus = Literal["all", "pending", "approved"]


def new_comment(author_id: ObjectId, content: str, approved: bool) -> dict:
    now = datetime.now(timezone.utc)
    body = Comment(author=author_id, content=content, isApproved=approved).model_dump()
    return {"_id": ObjectId(), **body, "created_at": now, "updated_at": now}


def new_reply(author_id: ObjectId, content: str) -> dict:
    body = Reply(author=author_id, content=content).model_dump()
    return {"_id": ObjectId(), **body, "created_at": datetime.now(timezone.utc)}


def find_comment(post: dict, comment_id: ObjectId) -> Optional[dict]:
    for comment in post.get("comments", []):
        if comment.get("_id") == comment_id:
            return comment
    return None


def set_approval(post: dict, comment_id: ObjectId, approved: bool) -> Optional[dict]:
    """Set the approval flag. Repeating the same decision changes nothing."""
    comment = find_comment(post, comment_id)
    if comment is None:
        return None
    if comment.get("isApproved") != approved:
        comment["isApproved"] = approved
        comment["updated_at"] = datetime.now(timezone.utc)
    return comment


def remove_comment(post: dict, comment_id: ObjectId) -> Optional[dict]:
    comments = post.get("comments", [])
    for index, comment in enumerate(comments):
        if comment.get("_id") == comment_id:
            return comments.pop(index)
    return None


def add_reply(post: dict, comment_id: ObjectId, reply: dict) -> Optional[dict]:
    comment = find_comment(post, comment_id)
    if comment is None:
        return None
    comment.setdefault("replies", []).append(reply)
    comment["updated_at"] = reply["created_at"]
    return comment


def visible_comments(comments: Iterable[dict], include_pending: bool = False) -> List[dict]:
    """Comments a reader may see, in the order they were submitted."""
    if include_pending:
        return list(comments)
    return [c for c in comments if c.get("isApproved")]


def approved_count(post: dict) -> int:
    return sum(1 for c in post.get("comments", []) if c.get("isApproved"))


def flatten_for_moderation(posts: Iterable[dict]) -> List[dict]:
    """One list of every comment across posts, tagged with its post."""
    items = []
    for post in posts:
        for comment in post.get("comments", []):
            items.append({
                **comment,
                "postId": post["_id"],
                "postTitle": post.get("title", ""),
                "postSlug": post.get("slug", ""),
            })
    return items


def filter_for_moderation(items: List[dict], status: ModerationStatus = "all", search: Optional[str] = None) -> List[dict]:
    """Filter flattened comments by approval state and a case-insensitive search.

    The search matches the comment text, the author's name and the post
    title. Items are expected to have `author` already resolved to a dict.
    """
    needle = (search or "").strip().lower()
    out = []
    for item in items:
        if status == "pending" and item.get("isApproved"):
            continue
        if status == "approved" and not item.get("isApproved"):
            continue
        if needle:
            author = item.get("author")
            author_name = (author.get("fullname") or "") if isinstance(author, dict) else ""
            haystack = (item.get("content", ""), author_name, item.get("postTitle", ""))
            if not any(needle in h.lower() for h in haystack):
                continue
        out.append(item)
    return out
