from datetime import timedelta

from security import create_access_token

from .conftest import PASSWORD


def _register(client, email="newbie@example.com", password="Green2024"):
    return client.post("/api/auth/register", json={"fullname": "  New Member ", "email": email, "password": password})


def test_registration_requires_admin_approval_before_login(client, admin, headers_for, db):
    res = _register(client)
    assert res.status_code == 201
    user = res.json()["user"]
    assert user["approved"] is False
    assert user["fullname"] == "New Member"
    assert "password_hash" not in user
    assert "token" not in res.cookies

    login = client.post("/api/auth/login", json={"email": "newbie@example.com", "password": "Green2024"})
    assert login.status_code == 403
    assert "pending" in login.json()["message"].lower()

    approve = client.put(f"/api/admin/users/{user['id']}/approve", headers=headers_for(admin))
    assert approve.status_code == 200
    assert approve.json()["user"]["approved"] is True

    login = client.post("/api/auth/login", json={"email": "NEWBIE@example.com", "password": "Green2024"})
    assert login.status_code == 200
    assert login.json()["user"]["email"] == "newbie@example.com"
    assert login.cookies.get("token")
    assert db["user"].find_one({"email": "newbie@example.com"})["lastLogin"] is not None

    status = client.get("/api/auth/status")
    assert status.status_code == 200
    assert status.json()["user"]["fullname"] == "New Member"


def test_duplicate_email_conflicts(client, reader):
    res = _register(client, email="reader@example.com")
    assert res.status_code == 409


def test_weak_password_rejected_with_field_errors(client, db):
    res = _register(client, password="alllowercase1")
    assert res.status_code == 400
    body = res.json()
    assert body["message"] == "Validation failed"
    assert body["errors"][0]["field"] == "password"
    assert db["user"].count_documents({}) == 0


def test_login_with_wrong_password(client, reader):
    res = client.post("/api/auth/login", json={"email": "reader@example.com", "password": "Wrong123"})
    assert res.status_code == 401
    assert res.json() == {"success": False, "message": "Invalid email or password"}


def test_deactivated_account_cannot_login(client, make_user):
    make_user(email="gone@example.com", isActive=False)
    res = client.post("/api/auth/login", json={"email": "gone@example.com", "password": PASSWORD})
    assert res.status_code == 401
    assert "deactivated" in res.json()["message"]


def test_admin_can_login_without_approved_flag(client, make_user):
    make_user(email="boss@example.com", role="admin", approved=False)
    res = client.post("/api/auth/login", json={"email": "boss@example.com", "password": PASSWORD})
    assert res.status_code == 200


def test_status_requires_token(client):
    res = client.get("/api/auth/status")
    assert res.status_code == 401
    assert res.json()["message"] == "Access denied. No token provided."


def test_bad_and_expired_tokens(client, reader):
    res = client.get("/api/auth/status", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid token."

    expired = create_access_token(reader["_id"], expires_delta=timedelta(seconds=-10))
    res = client.get("/api/auth/status", headers={"Authorization": f"Bearer {expired}"})
    assert res.status_code == 401
    assert res.json()["message"] == "Token expired."


def test_revoked_user_token_stops_working(client, make_user, headers_for):
    pending = make_user(email="revoked@example.com", approved=False)
    res = client.get("/api/auth/status", headers=headers_for(pending))
    assert res.status_code == 403


def test_logout_clears_cookie(client, reader):
    client.post("/api/auth/login", json={"email": "reader@example.com", "password": PASSWORD})
    assert client.get("/api/auth/status").status_code == 200
    res = client.post("/api/auth/logout")
    assert res.status_code == 200
    client.cookies.clear()
    assert client.get("/api/auth/status").status_code == 401


def test_update_profile(client, reader, make_user, headers_for, db):
    make_user(email="taken@example.com")
    headers = headers_for(reader)

    res = client.put("/api/auth/profile", json={"email": "taken@example.com"}, headers=headers)
    assert res.status_code == 409

    res = client.put("/api/auth/profile", json={"fullname": "Renamed Reader"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["user"]["fullname"] == "Renamed Reader"
    assert db["user"].find_one({"_id": reader["_id"]})["fullname"] == "Renamed Reader"


def test_change_password(client, reader, headers_for):
    headers = headers_for(reader)
    wrong = client.post(
        "/api/auth/change-password",
        json={"currentPassword": "Nope1234", "newPassword": "Fresh2024"},
        headers=headers,
    )
    assert wrong.status_code == 401

    ok = client.post(
        "/api/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "Fresh2024"},
        headers=headers,
    )
    assert ok.status_code == 200

    login = client.post("/api/auth/login", json={"email": "reader@example.com", "password": "Fresh2024"})
    assert login.status_code == 200
