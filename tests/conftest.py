import os

os.environ.pop("DATABASE_URL", None)
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["COMMENT_AUTO_APPROVE"] = "false"
os.environ["ENVIRONMENT"] = "development"

import mongomock
import pytest
from fastapi.testclient import TestClient

from content import prepare_post
from database import create_document, get_db
from main import app as fastapi_app
from moderation import new_comment
from schemas import BlogPost, User
from security import create_access_token, hash_password

PASSWORD = "Secret123"
LONG_CONTENT = (
    "Our campus replaced every hallway light with LEDs this term, and the first "
    "meter readings show a clear drop in consumption across all buildings."
)


@pytest.fixture
def db():
    return mongomock.MongoClient()["sustainability_hub_test"]


@pytest.fixture
def app(db):
    fastapi_app.dependency_overrides[get_db] = lambda: db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make(email="reader@example.com", fullname="Regular Reader", role="user", approved=True, **extra):
        user = User(
            fullname=fullname,
            email=email,
            password_hash=hash_password(PASSWORD),
            role=role,
            approved=approved,
            **extra,
        )
        return create_document(db, "user", user)
    return _make


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", fullname="Site Admin", role="admin")


@pytest.fixture
def reader(make_user):
    return make_user()


@pytest.fixture
def headers_for():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user['_id'])}"}
    return _headers


@pytest.fixture
def make_post(db, admin):
    def _make(title="Campus LED Retrofit", status="published", comments=None, **extra):
        doc = BlogPost(title=title, content=LONG_CONTENT, author=admin["_id"], status=status, **extra).model_dump()
        doc["comments"] = comments or []
        prepare_post(doc)
        return create_document(db, "blogpost", doc)
    return _make


@pytest.fixture
def comment_factory():
    def _make(author, content="Nice work", approved=False):
        return new_comment(author["_id"], content, approved)
    return _make
