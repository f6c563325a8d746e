import time

import pytest
from fastapi.testclient import TestClient

from app import create_app
from database import set_images_dirs


@pytest.fixture
def client(engine):
    with TestClient(create_app(engine)) as c:
        yield c


@pytest.fixture
def indexed(client, engine, photo_root, make_image):
    """Index a small tree through the HTTP API and wait for the scan to finish."""
    make_image(photo_root / "Beach Day" / "one.jpg", size=(400, 300), color=(250, 10, 10))
    make_image(photo_root / "Beach Day" / "two.png", size=(400, 300), color=(10, 250, 10))
    make_image(photo_root / "Pets" / "cat.jpg", size=(400, 300), color=(10, 10, 250))
    set_images_dirs([str(photo_root)], engine)

    started = client.get("/task/index").json()
    assert started["status"] == "success"
    assert started["message"] == "Started new indexation task"

    deadline = time.monotonic() + 10
    while client.get("/task/status").json()["running"]:
        assert time.monotonic() < deadline, "indexing did not finish"
        time.sleep(0.05)
    return photo_root


def _first_hash(client, folder="beach-day"):
    return client.get("/files/json", params={"folder": folder}).json()["items"][0]["hash"]


def test_index_then_list(client, indexed):
    status = client.get("/task/status").json()
    assert status["running"] is False
    assert status["last_indexed"] is not None

    body = client.get("/files/json", params={"folder": "beach-day", "per_page": 1}).json()
    assert body["total"] == 2
    assert body["page"] == 1
    assert len(body["items"]) == 1
    assert body["items"][0]["tags"] == []

    folders = client.get("/folders/json", params={"searchby": "pet"}).json()
    assert [(f["folder_name"], f["count"]) for f in folders] == [("pets", 1)]

    roots = client.get("/folders/roots").json()
    assert roots == [{"root": str(indexed), "count": 3, "folder_count": 2}]


def test_force_must_be_boolean(client):
    resp = client.get("/task/index", params={"force": "maybe"})
    assert resp.status_code == 422
    assert resp.json()["code"] == 422


def test_cancel_when_idle(client):
    body = client.get("/task/cancel").json()
    assert body == {
        "status": "info",
        "message": "No indexation task was running",
        "was_running": False,
        "task_running": False,
    }


def test_photo_thumbnail_is_resized_and_cacheable(client, indexed):
    h = _first_hash(client)

    resp = client.get("/files/thumbnail/photo/download", params={"hash": h, "width": 100, "height": 100})

    assert resp.status_code == 200
    assert resp.headers["content-type"] in ("image/jpeg", "image/png")
    assert resp.headers["cache-control"] == "public, max-age=604800"
    assert resp.headers["etag"].startswith('"')
    assert "expires" in resp.headers
    assert client.app.state.cache.get(f"thumb_{h}_100x100") == resp.content


def test_folder_thumbnail(client, indexed):
    resp = client.get("/files/thumbnail/folder/download", params={"folder": "pets", "width": 50, "height": 50})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/jpeg"


def test_download_original(client, indexed):
    h = _first_hash(client, "pets")
    resp = client.get(f"/files/{h}/download")
    assert resp.status_code == 200
    assert resp.content == (indexed / "Pets" / "cat.jpg").read_bytes()
    assert resp.headers["cache-control"] == "public, max-age=86400"


def test_unknown_hash_is_404(client):
    resp = client.get("/files/thumbnail/photo/download", params={"hash": "f" * 64})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not found: File not found", "code": 404}


def test_invalid_hash_is_400(client):
    resp = client.get("/files/not-a-hash!/download")
    assert resp.status_code == 400
    assert resp.json()["error"] == "Bad request: Invalid hash format"


def test_traversal_in_folder_name_is_400(client):
    resp = client.get("/files/thumbnail/folder/download", params={"folder": "../etc"})
    assert resp.status_code == 400


def test_tags_and_delete(client, indexed):
    h = _first_hash(client)

    assert client.post("/folders/assign", json={"hash": h, "tags": ["sand", "sea"]}).json()["updated"] == 1
    assert client.post("/folders/assign/folder", json={"folder_name": "pets", "tags": ["cat"]}).json()["updated"] == 1
    assert client.get("/tags").json() == ["cat", "sand", "sea"]
    assert client.get("/tags", params={"folder": "pets"}).json() == ["cat"]

    random_cat = client.get("/files/random/json", params={"tag": "cat"}).json()
    assert [r["folder_name"] for r in random_cat] == ["pets"]

    assert client.post("/folders/delete", json={"folder_name": "beach-day"}).json()["deleted"] == 2
    assert client.get("/folders/json/name/beach-day").json() == []


def test_config_roundtrip(client, tmp_path):
    resp = client.post(
        "/config",
        data={"images_dirs": f"{tmp_path / 'a'}\n\n  {tmp_path / 'b'}  \n"},
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert resp.headers["location"] == "/?msg=Saved+2+image+folders"
    assert client.get("/config").json() == {"images_dirs": [str(tmp_path / "a"), str(tmp_path / "b")]}


def test_index_page_renders(client, indexed):
    resp = client.get("/", params={"msg": "hello"})
    assert resp.status_code == 200
    assert "Index new files" in resp.text
    assert "beach-day" in resp.text
    assert "Indexed roots" in resp.text
    assert "/folders/json?root=" in resp.text
    assert "hello" in resp.text
