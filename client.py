"""
Client-side stores for the Sustainability Hub API.

Each store keeps a local copy of what the server last returned. Actions call
the API and, on success, swap the affected records for the server's version;
they never try to reconcile local edits. On failure the state is left as it
was and `error` holds the message to show the user. Nothing is retried.

    http = httpx.Client(base_url="http://localhost:8000")
    blog = BlogStore(ContentApi(http))
    blog.fetch_post("hello-world")
"""

from typing import Any, Callable, Dict, List, Optional
import logging

import httpx

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong. Please try again."


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors or []


class ContentApi:
    """Thin JSON wrapper around an httpx client pointed at the API."""

    def __init__(self, http: httpx.Client):
        self.http = http

    def request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        response = self.http.request(method, path, **kwargs)
        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}
        if response.is_error:
            raise ApiError(response.status_code, body.get("message") or GENERIC_ERROR, body.get("errors"))
        return body

    def get(self, path: str, params: Optional[dict] = None) -> Dict[str, Any]:
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Optional[dict] = None) -> Dict[str, Any]:
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Optional[dict] = None) -> Dict[str, Any]:
        return self.request("PUT", path, json=json)

    def delete(self, path: str) -> Dict[str, Any]:
        return self.request("DELETE", path)


class Store:
    def __init__(self, api: ContentApi):
        self.api = api
        self.error: Optional[str] = None
        self.is_loading = False

    def _run(self, action: Callable[[], Any]) -> Any:
        self.error = None
        self.is_loading = True
        try:
            return action()
        except ApiError as e:
            self.error = e.message
            logger.warning("API request failed (%s): %s", e.status_code, e.message)
        except httpx.HTTPError as e:
            self.error = GENERIC_ERROR
            logger.warning("API request failed: %s", e)
        finally:
            self.is_loading = False
        return None


def _replace_by_id(items: List[dict], record: dict) -> List[dict]:
    return [record if item.get("id") == record.get("id") else item for item in items]


def _without_id(items: List[dict], record_id: str) -> List[dict]:
    return [item for item in items if item.get("id") != record_id]


class AuthStore(Store):
    def __init__(self, api: ContentApi):
        super().__init__(api)
        self.user: Optional[dict] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return bool(self.user) and self.user.get("role") == "admin"

    def register(self, fullname: str, email: str, password: str) -> Optional[str]:
        """Returns the server's message; registration never signs the user in."""
        def action():
            return self.api.post("/api/auth/register", {"fullname": fullname, "email": email, "password": password})["message"]
        return self._run(action)

    def login(self, email: str, password: str) -> bool:
        def action():
            self.user = self.api.post("/api/auth/login", {"email": email, "password": password})["user"]
            return True
        return bool(self._run(action))

    def logout(self) -> None:
        def action():
            self.api.post("/api/auth/logout")
            self.user = None
        self._run(action)

    def check_status(self) -> Optional[dict]:
        def action():
            self.user = self.api.get("/api/auth/status")["user"]
            return self.user
        result = self._run(action)
        if result is None:
            self.user = None
        return result

    def update_profile(self, fullname: Optional[str] = None, email: Optional[str] = None) -> Optional[dict]:
        def action():
            self.user = self.api.put("/api/auth/profile", {"fullname": fullname, "email": email})["user"]
            return self.user
        return self._run(action)

    def change_password(self, current_password: str, new_password: str) -> bool:
        def action():
            self.api.post(
                "/api/auth/change-password",
                {"currentPassword": current_password, "newPassword": new_password},
            )
            return True
        return bool(self._run(action))


class BlogStore(Store):
    def __init__(self, api: ContentApi):
        super().__init__(api)
        self.posts: List[dict] = []
        self.featured_posts: List[dict] = []
        self.categories: List[dict] = []
        self.tags: List[dict] = []
        self.current_post: Optional[dict] = None
        self.pagination: Dict[str, int] = {}
        self.moderation: List[dict] = []
        self.moderation_counts: Dict[str, int] = {}

    def fetch_posts(self, **params) -> List[dict]:
        def action():
            body = self.api.get("/api/blog", params)
            self.posts = body["data"]
            self.pagination = body["pagination"]
            return self.posts
        return self._run(action) or []

    def fetch_post(self, slug: str) -> Optional[dict]:
        def action():
            self.current_post = self.api.get(f"/api/blog/{slug}")["data"]
            return self.current_post
        return self._run(action)

    def fetch_featured(self) -> List[dict]:
        def action():
            self.featured_posts = self.api.get("/api/blog/featured")["data"]
            return self.featured_posts
        return self._run(action) or []

    def fetch_categories(self) -> List[dict]:
        def action():
            self.categories = self.api.get("/api/blog/categories")["data"]
            return self.categories
        return self._run(action) or []

    def fetch_tags(self) -> List[dict]:
        def action():
            self.tags = self.api.get("/api/blog/tags")["data"]
            return self.tags
        return self._run(action) or []

    def create_post(self, data: dict) -> Optional[dict]:
        def action():
            post = self.api.post("/api/blog", data)["data"]
            self.posts = [post, *self.posts]
            return post
        return self._run(action)

    def update_post(self, post_id: str, data: dict) -> Optional[dict]:
        def action():
            post = self.api.put(f"/api/blog/{post_id}", data)["data"]
            self.posts = _replace_by_id(self.posts, post)
            if self.current_post and self.current_post.get("id") == post_id:
                self.current_post = post
            return post
        return self._run(action)

    def delete_post(self, post_id: str) -> bool:
        def action():
            self.api.delete(f"/api/blog/{post_id}")
            self.posts = _without_id(self.posts, post_id)
            if self.current_post and self.current_post.get("id") == post_id:
                self.current_post = None
            return True
        return bool(self._run(action))

    def toggle_like(self, post_id: str) -> Optional[dict]:
        def action():
            result = self.api.post(f"/api/blog/{post_id}/like")["data"]
            changes = {"likeCount": result["likes"], "isLiked": result["isLiked"]}
            self.posts = [{**p, **changes} if p.get("id") == post_id else p for p in self.posts]
            if self.current_post and self.current_post.get("id") == post_id:
                self.current_post = {**self.current_post, **changes}
            return result
        return self._run(action)

    def add_comment(self, post_id: str, content: str) -> Optional[dict]:
        def action():
            comment = self.api.post(f"/api/blog/{post_id}/comments", {"content": content})["data"]
            if self.current_post and self.current_post.get("id") == post_id:
                self.current_post = {
                    **self.current_post,
                    "comments": [*self.current_post.get("comments", []), comment],
                }
            return comment
        return self._run(action)

    def fetch_moderation_queue(self, status: str = "all", search: Optional[str] = None) -> List[dict]:
        def action():
            body = self.api.get("/api/blog/comments", {"status": status, "search": search})
            self.moderation = body["data"]
            self.moderation_counts = body["counts"]
            return self.moderation
        return self._run(action) or []

    def _apply_comment(self, comment: dict) -> None:
        self.moderation = [
            {**item, **comment} if item.get("id") == comment.get("id") else item for item in self.moderation
        ]
        if self.current_post:
            self.current_post = {
                **self.current_post,
                "comments": _replace_by_id(self.current_post.get("comments", []), comment),
            }

    def approve_comment(self, comment_id: str) -> Optional[dict]:
        def action():
            comment = self.api.put(f"/api/blog/comments/{comment_id}/approve")["data"]
            self._apply_comment(comment)
            return comment
        return self._run(action)

    def reject_comment(self, comment_id: str) -> Optional[dict]:
        def action():
            comment = self.api.put(f"/api/blog/comments/{comment_id}/reject")["data"]
            self._apply_comment(comment)
            return comment
        return self._run(action)

    def delete_comment(self, comment_id: str) -> bool:
        def action():
            self.api.delete(f"/api/blog/comments/{comment_id}")
            self.moderation = _without_id(self.moderation, comment_id)
            if self.current_post:
                self.current_post = {
                    **self.current_post,
                    "comments": _without_id(self.current_post.get("comments", []), comment_id),
                }
            return True
        return bool(self._run(action))


class ProjectStore(Store):
    def __init__(self, api: ContentApi):
        super().__init__(api)
        self.projects: List[dict] = []
        self.featured_projects: List[dict] = []
        self.current_project: Optional[dict] = None
        self.stats: Dict[str, Any] = {}
        self.pagination: Dict[str, int] = {}

    def fetch_projects(self, page: int = 1, limit: int = 12, sort_by: str = "createdAt",
                       sort_order: str = "desc", **filters) -> List[dict]:
        def action():
            params = {"page": page, "limit": limit, "sortBy": sort_by, "sortOrder": sort_order, **filters}
            body = self.api.get("/api/projects", params)
            self.projects = body["data"]
            self.pagination = body["pagination"]
            return self.projects
        return self._run(action) or []

    def fetch_featured(self) -> List[dict]:
        def action():
            self.featured_projects = self.api.get("/api/projects/featured")["data"]
            return self.featured_projects
        return self._run(action) or []

    def fetch_project(self, project_id: str) -> Optional[dict]:
        def action():
            self.current_project = self.api.get(f"/api/projects/{project_id}")["data"]
            return self.current_project
        return self._run(action)

    def fetch_stats(self) -> Dict[str, Any]:
        def action():
            self.stats = self.api.get("/api/projects/stats")["data"]
            return self.stats
        return self._run(action) or {}

    def create_project(self, data: dict) -> Optional[dict]:
        def action():
            project = self.api.post("/api/projects", data)["data"]
            self.projects = [project, *self.projects]
            return project
        return self._run(action)

    def update_project(self, project_id: str, data: dict) -> Optional[dict]:
        def action():
            project = self.api.put(f"/api/projects/{project_id}", data)["data"]
            self.projects = _replace_by_id(self.projects, project)
            if self.current_project and self.current_project.get("id") == project_id:
                self.current_project = project
            return project
        return self._run(action)

    def delete_project(self, project_id: str) -> bool:
        def action():
            self.api.delete(f"/api/projects/{project_id}")
            self.projects = _without_id(self.projects, project_id)
            if self.current_project and self.current_project.get("id") == project_id:
                self.current_project = None
            return True
        return bool(self._run(action))


class AdminStore(Store):
    def __init__(self, api: ContentApi):
        super().__init__(api)
        self.users: List[dict] = []
        self.pagination: Dict[str, int] = {}
        self.stats: Dict[str, int] = {}

    def fetch_users(self, page: int = 1, limit: int = 10, status: Optional[str] = None, search: Optional[str] = None) -> List[dict]:
        def action():
            body = self.api.get("/api/admin/users", {"page": page, "limit": limit, "status": status, "search": search})
            self.users = body["users"]
            self.pagination = body["pagination"]
            return self.users
        return self._run(action) or []

    def fetch_stats(self) -> Dict[str, int]:
        def action():
            self.stats = self.api.get("/api/admin/stats")["stats"]
            return self.stats
        return self._run(action) or {}

    def _update_user(self, path: str, payload: Optional[dict] = None) -> Optional[dict]:
        def action():
            user = self.api.put(path, payload)["user"]
            self.users = _replace_by_id(self.users, user)
            return user
        return self._run(action)

    def approve_user(self, user_id: str) -> Optional[dict]:
        return self._update_user(f"/api/admin/users/{user_id}/approve")

    def reject_user(self, user_id: str) -> Optional[dict]:
        return self._update_user(f"/api/admin/users/{user_id}/reject")

    def update_role(self, user_id: str, role: str) -> Optional[dict]:
        return self._update_user(f"/api/admin/users/{user_id}/role", {"role": role})

    def delete_user(self, user_id: str) -> bool:
        def action():
            self.api.delete(f"/api/admin/users/{user_id}")
            self.users = _without_id(self.users, user_id)
            return True
        return bool(self._run(action))
