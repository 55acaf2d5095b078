from bson import ObjectId

from .conftest import LONG_CONTENT


def _create(client, headers, **fields):
    payload = {"title": "Hello, World!!", "content": LONG_CONTENT, "status": "published", **fields}
    return client.post("/api/blog", json=payload, headers=headers)


def test_create_post_derives_slug_and_reading_fields(client, admin, headers_for):
    res = _create(client, headers_for(admin), categories=["energy"], tags=[" LED ", "Campus"])
    assert res.status_code == 201
    post = res.json()["data"]
    assert post["slug"] == "hello-world"
    assert post["url"] == "/blog/hello-world"
    assert post["readingTime"] == 1
    assert post["excerpt"] == LONG_CONTENT
    assert post["publishedAt"] is not None
    assert post["categories"] == ["energy"]
    assert post["tags"] == ["led", "campus"]
    assert post["author"]["fullname"] == "Site Admin"
    assert post["commentCount"] == 0


def test_duplicate_slug_conflicts(client, admin, headers_for):
    headers = headers_for(admin)
    assert _create(client, headers).status_code == 201
    res = _create(client, headers, title="Hello World")
    assert res.status_code == 409


def test_create_post_validation(client, admin, headers_for):
    res = _create(client, headers_for(admin), content="too short")
    assert res.status_code == 400
    assert any(e["field"] == "content" for e in res.json()["errors"])

    res = _create(client, headers_for(admin), categories=["gardening"])
    assert res.status_code == 400


def test_only_admins_write_posts(client, reader, headers_for, db):
    assert _create(client, headers_for(reader)).status_code == 403
    assert _create(client, {}).status_code == 401
    assert db["blogpost"].count_documents({}) == 0


def test_list_shows_only_published_public_posts(client, make_post):
    make_post(title="Published One")
    make_post(title="Draft One", status="draft")
    make_post(title="Hidden One", isPublic=False)
    make_post(title="Featured One", isFeatured=True, tags=["solar"])

    body = client.get("/api/blog").json()
    assert {p["title"] for p in body["data"]} == {"Published One", "Featured One"}
    assert body["pagination"]["total"] == 2
    assert all("comments" not in p for p in body["data"])

    featured = client.get("/api/blog/featured").json()["data"]
    assert [p["title"] for p in featured] == ["Featured One"]

    tagged = client.get("/api/blog", params={"tag": "SOLAR"}).json()["data"]
    assert [p["title"] for p in tagged] == ["Featured One"]

    searched = client.get("/api/blog", params={"search": "published"}).json()["data"]
    assert [p["title"] for p in searched] == ["Published One"]


def test_detail_counts_views_and_hides_drafts(client, make_post, db):
    post = make_post()
    draft = make_post(title="Work In Progress", status="draft")

    first = client.get(f"/api/blog/{post['slug']}").json()["data"]
    second = client.get(f"/api/blog/{post['slug']}").json()["data"]
    assert second["views"] == first["views"] + 1
    assert db["blogpost"].find_one({"_id": post["_id"]})["views"] == 2

    assert client.get(f"/api/blog/{draft['slug']}").status_code == 404
    assert client.get("/api/blog/no-such-post").status_code == 404


def test_update_keeps_slug_and_first_publish_date(client, admin, make_post, headers_for, db):
    post = make_post(title="Original Title", status="draft")
    headers = headers_for(admin)
    url = f"/api/blog/{post['_id']}"
    assert db["blogpost"].find_one({"_id": post["_id"]}).get("publishedAt") is None

    res = client.put(url, json={"title": "A Brand New Title", "status": "published"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["slug"] == "original-title"
    published_at = db["blogpost"].find_one({"_id": post["_id"]})["publishedAt"]
    assert published_at is not None

    client.put(url, json={"status": "archived"}, headers=headers)
    assert db["blogpost"].find_one({"_id": post["_id"]})["publishedAt"] == published_at

    client.put(url, json={"status": "published"}, headers=headers)
    stored = db["blogpost"].find_one({"_id": post["_id"]})
    assert stored["publishedAt"] == published_at
    assert stored["title"] == "A Brand New Title"


def test_update_rejects_invalid_fields(client, admin, make_post, headers_for, db):
    post = make_post()
    res = client.put(f"/api/blog/{post['_id']}", json={"title": "no"}, headers=headers_for(admin))
    assert res.status_code == 400
    assert db["blogpost"].find_one({"_id": post["_id"]})["title"] == "Campus LED Retrofit"


def test_update_keeps_comments(client, admin, reader, make_post, comment_factory, headers_for, db):
    post = make_post(comments=[comment_factory(reader, "still here", approved=True)])
    client.put(f"/api/blog/{post['_id']}", json={"isFeatured": True}, headers=headers_for(admin))
    stored = db["blogpost"].find_one({"_id": post["_id"]})
    assert stored["isFeatured"] is True
    assert [c["content"] for c in stored["comments"]] == ["still here"]


def test_delete_post(client, admin, make_post, headers_for, db):
    post = make_post()
    headers = headers_for(admin)
    assert client.delete(f"/api/blog/{post['_id']}", headers=headers).status_code == 200
    assert db["blogpost"].count_documents({}) == 0
    assert client.delete(f"/api/blog/{post['_id']}", headers=headers).status_code == 404
    assert client.delete(f"/api/blog/{ObjectId()}", headers=headers).status_code == 404


def test_like_toggles(client, reader, make_post, headers_for, db):
    post = make_post()
    url = f"/api/blog/{post['_id']}/like"

    liked = client.post(url, headers=headers_for(reader)).json()["data"]
    assert liked == {"likes": 1, "isLiked": True}
    unliked = client.post(url, headers=headers_for(reader)).json()["data"]
    assert unliked == {"likes": 0, "isLiked": False}
    assert db["blogpost"].find_one({"_id": post["_id"]})["likes"] == []


def test_categories_and_tags_counts(client, make_post):
    make_post(title="Solar Roof", categories=["energy"], tags=["solar", "roof"])
    make_post(title="Wind Study", categories=["energy", "research"], tags=["solar"])
    make_post(title="Unpublished Thing", status="draft", categories=["news"])

    categories = client.get("/api/blog/categories").json()["data"]
    assert categories == [{"name": "energy", "count": 2}, {"name": "research", "count": 1}]

    tags = client.get("/api/blog/tags").json()["data"]
    assert tags[0] == {"name": "solar", "count": 2}
