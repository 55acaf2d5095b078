def test_root_and_health(client):
    assert client.get("/").json() == {"message": "Sustainability Hub API running"}
    health = client.get("/api/health").json()
    assert health["status"] == "OK"
    assert health["uptime"] >= 0


def test_errors_use_envelope(client):
    res = client.get("/api/does-not-exist")
    assert res.status_code == 404
    assert res.json()["success"] is False

    res = client.post("/api/auth/login", json={"email": "not-an-email"})
    assert res.status_code == 400
    fields = {e["field"] for e in res.json()["errors"]}
    assert fields == {"email", "password"}
