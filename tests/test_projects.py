from bson import ObjectId
import pytest
from pydantic import ValidationError

from schemas import Project


def _payload(**fields):
    data = {
        "title": "Library Solar Roof",
        "description": "Photovoltaic panels on the main library roof.",
        "departments": ["Facilities"],
        "type": "Energy",
        "status": "In Progress",
        "responsiblePerson": "Dana Green",
        "responsibleEmail": "Dana.Green@example.com",
        "yearInitiated": 2022,
        "location": "Main Library",
    }
    data.update(fields)
    return data


def _create(client, headers, **fields):
    return client.post("/api/projects", json=_payload(**fields), headers=headers)


def test_first_image_becomes_primary_when_none_marked():
    project = Project(**_payload(images=[{"url": "/a.jpg"}, {"url": "/b.jpg"}]))
    assert [img.isPrimary for img in project.images] == [True, False]


def test_only_first_marked_image_stays_primary():
    images = [{"url": "/a.jpg"}, {"url": "/b.jpg", "isPrimary": True}, {"url": "/c.jpg", "isPrimary": True}]
    project = Project(**_payload(images=images))
    assert [img.isPrimary for img in project.images] == [False, True, False]


def test_project_without_images_has_no_primary():
    assert Project(**_payload()).images == []


def test_completion_year_before_start_is_invalid():
    with pytest.raises(ValidationError):
        Project(**_payload(yearInitiated=2022, yearCompleted=2020))


def test_create_project(client, admin, headers_for, db):
    res = _create(client, headers_for(admin), images=[{"url": "/a.jpg"}, {"url": "/b.jpg"}], yearCompleted=2024)
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["responsibleEmail"] == "dana.green@example.com"
    assert data["primaryImage"]["url"] == "/a.jpg"
    assert data["duration"] == 2
    assert data["createdBy"]["fullname"] == "Site Admin"
    assert data["updatedBy"] is None

    stored = db["project"].find_one({"_id": ObjectId(data["id"])})
    assert [img["isPrimary"] for img in stored["images"]] == [True, False]


def test_create_project_validation_errors(client, admin, headers_for, db):
    headers = headers_for(admin)
    res = _create(client, headers, yearCompleted=2019)
    assert res.status_code == 400
    assert res.json()["success"] is False

    assert _create(client, headers, departments=[]).status_code == 400
    assert _create(client, headers, type="Gardening").status_code == 400
    assert db["project"].count_documents({}) == 0


def test_only_admins_create_projects(client, reader, headers_for, db):
    assert _create(client, headers_for(reader)).status_code == 403
    assert db["project"].count_documents({}) == 0


def test_private_projects_visible_to_admin_only(client, admin, reader, headers_for):
    created = _create(client, headers_for(admin), isPublic=False).json()["data"]
    url = f"/api/projects/{created['id']}"

    assert client.get(url).status_code == 404
    assert client.get(url, headers=headers_for(reader)).status_code == 404
    assert client.get(url, headers=headers_for(admin)).status_code == 200

    assert client.get("/api/projects").json()["data"] == []
    assert len(client.get("/api/projects", headers=headers_for(admin)).json()["data"]) == 1


def test_list_filters_and_search(client, admin, headers_for):
    headers = headers_for(admin)
    _create(client, headers)
    _create(client, headers, title="Campus Compost", type="Zero Waste", status="Completed", tags=["Compost"])

    energy = client.get("/api/projects", params={"type": "Energy"}).json()["data"]
    assert [p["title"] for p in energy] == ["Library Solar Roof"]

    found = client.get("/api/projects", params={"search": "compost"}).json()["data"]
    assert [p["title"] for p in found] == ["Campus Compost"]

    by_title = client.get("/api/projects", params={"sortBy": "title", "sortOrder": "asc"}).json()["data"]
    assert [p["title"] for p in by_title] == ["Campus Compost", "Library Solar Roof"]


def test_update_project_revalidates_primary_image(client, admin, headers_for, db):
    headers = headers_for(admin)
    created = _create(client, headers, images=[{"url": "/a.jpg"}]).json()["data"]
    url = f"/api/projects/{created['id']}"

    assert client.put(url, json={}, headers=headers).status_code == 400

    images = [{"url": "/a.jpg", "isPrimary": True}, {"url": "/b.jpg", "isPrimary": True}]
    res = client.put(url, json={"images": images, "status": "Completed"}, headers=headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["status"] == "Completed"
    assert [img["isPrimary"] for img in data["images"]] == [True, False]
    assert data["updatedBy"]["fullname"] == "Site Admin"

    bad = client.put(url, json={"yearCompleted": 2001}, headers=headers)
    assert bad.status_code == 400
    assert db["project"].find_one({"_id": ObjectId(created["id"])}).get("yearCompleted") is None


def test_delete_and_malformed_ids(client, admin, headers_for, db):
    headers = headers_for(admin)
    created = _create(client, headers).json()["data"]

    assert client.get("/api/projects/not-an-id").status_code == 404
    assert client.delete(f"/api/projects/{created['id']}", headers=headers).status_code == 200
    assert db["project"].count_documents({}) == 0
    assert client.delete(f"/api/projects/{created['id']}", headers=headers).status_code == 404


def test_featured_and_stats(client, admin, headers_for):
    headers = headers_for(admin)
    _create(client, headers, isFeatured=True, metrics={"peopleImpacted": 120})
    _create(client, headers, title="Bike Sharing", type="Transportation", status="Completed",
            metrics={"peopleImpacted": 30})
    _create(client, headers, title="Secret Pilot", isPublic=False, isFeatured=True)

    featured = client.get("/api/projects/featured").json()["data"]
    assert [p["title"] for p in featured] == ["Library Solar Roof"]

    stats = client.get("/api/projects/stats").json()["data"]
    assert stats["overview"]["totalProjects"] == 2
    assert stats["overview"]["activeProjects"] == 1
    assert stats["overview"]["completedProjects"] == 1
    assert stats["overview"]["totalPeopleImpacted"] == 150
    assert {t["type"]: t["count"] for t in stats["projectTypes"]} == {"Energy": 1, "Transportation": 1}
