import json
from datetime import datetime
from pathlib import Path

from conftest import login


def _user_id(client, headers):
    return client.get("/auth/me", headers=headers).json()["id"]


def test_admin_routes_reject_regular_users(client, user_headers):
    assert client.get("/users", headers=user_headers).status_code == 403
    assert client.get("/audio", headers=user_headers).status_code == 403
    assert client.post("/audio/update", json={"id": "x", "chinese": "y"}, headers=user_headers).status_code == 403
    assert client.get("/users").status_code == 401


def test_list_users_hides_secrets(client, admin_headers, user_headers):
    resp = client.get("/users", headers=admin_headers)
    assert resp.status_code == 200
    users = resp.json()
    assert {u["email"] for u in users} == {"admin@example.com", "learner@example.com"}
    for u in users:
        assert "password_hash" not in u
        assert "verification_token" not in u


def test_update_user(client, admin_headers, user_headers):
    uid = _user_id(client, user_headers)
    resp = client.post("/users/update", json={"id": uid, "name": "Renamed", "role": "admin"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["user"]["name"] == "Renamed"
    # Promotion takes effect on the next request
    assert client.get("/users", headers=user_headers).status_code == 200


def test_update_user_errors(client, admin_headers, user_headers):
    uid = _user_id(client, user_headers)
    assert client.post("/users/update", json={"id": uid}, headers=admin_headers).status_code == 400
    assert client.post("/users/update", json={"id": "missing", "name": "x"}, headers=admin_headers).status_code == 404
    assert client.post("/users/update", json={"id": uid, "role": "root"}, headers=admin_headers).status_code == 422
    resp = client.post("/users/update", json={"id": uid, "email": "admin@example.com"}, headers=admin_headers)
    assert resp.status_code == 409


def test_update_user_rejects_blank_name(client, admin_headers, user_headers):
    uid = _user_id(client, user_headers)
    for name in ("", "   "):
        resp = client.post("/users/update", json={"id": uid, "name": name}, headers=admin_headers)
        assert resp.status_code == 422
    resp = client.post("/users/update", json={"id": uid, "name": "  Padded  "}, headers=admin_headers)
    assert resp.json()["user"]["name"] == "Padded"


def test_list_and_update_audio(client, admin_headers, add_audio):
    add_audio()
    resp = client.get("/audio", headers=admin_headers)
    assert resp.status_code == 200
    files = resp.json()["files"]
    assert [f["id"] for f in files] == ["lesson1_001.flac"]

    resp = client.post(
        "/audio/update",
        json={"id": "lesson1_001.flac", "miss_text": "the quick *** fox"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["file"]["miss_text"] == "the quick *** fox"
    assert resp.json()["file"]["chinese"] == "敏捷的棕色狐狸"


def test_audio_listed_newest_first(client, admin_headers, add_audio):
    add_audio("lesson1_001.flac", created_at=datetime(2026, 10, 1))
    add_audio("lesson1_003.flac", file_name="003.flac", created_at=datetime(2026, 10, 3))
    add_audio("lesson1_002.flac", file_name="002.flac", created_at=datetime(2026, 10, 2))
    files = client.get("/audio", headers=admin_headers).json()["files"]
    assert [f["id"] for f in files] == ["lesson1_003.flac", "lesson1_002.flac", "lesson1_001.flac"]


def test_update_audio_errors(client, admin_headers, add_audio):
    add_audio()
    assert client.post("/audio/update", json={"id": "lesson1_001.flac"}, headers=admin_headers).status_code == 400
    assert client.post("/audio/update", json={"id": "nope", "chinese": "x"}, headers=admin_headers).status_code == 404


def test_upload_with_json_maps(client, admin_headers, settings):
    files = [
        ("folder", ("lesson1/001.flac", b"fLaC-one", "audio/flac")),
        ("folder", ("lesson1/002.flac", b"fLaC-two", "application/octet-stream")),
        ("folder", ("lesson1/cover.png", b"png", "image/png")),
    ]
    data = {
        "text": json.dumps({"001": "the quick brown fox", "002": "jumps high"}),
        "miss_text": json.dumps({"001": "the *** brown fox"}),
        "chinese": json.dumps({"001": "狐狸"}),
    }
    resp = client.post("/upload", files=files, data=data, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    results = resp.json()["results"]
    assert [r["id"] for r in results] == ["lesson1_001.flac", "lesson1_002.flac"]
    assert all(r["success"] for r in results)
    assert results[0]["url"] == "/media/audioFiles/lesson1/001.flac"

    stored = Path(settings.media_root) / "audioFiles" / "lesson1" / "001.flac"
    assert stored.read_bytes() == b"fLaC-one"

    listing = {f["id"]: f for f in client.get("/audio", headers=admin_headers).json()["files"]}
    first = listing["lesson1_001.flac"]
    assert first["original_text"] == first["text"] == "the quick brown fox"
    assert first["miss_text"] == "the *** brown fox"
    assert first["file_size"] == len(b"fLaC-one")
    assert listing["lesson1_002.flac"]["miss_text"] is None

    # Served back from the media mount
    assert client.get("/media/audioFiles/lesson1/001.flac").content == b"fLaC-one"


def test_upload_with_listing_files(client, admin_headers):
    files = [
        ("folder", ("unit2/original.txt", "007 hello there world\n".encode(), "text/plain")),
        ("folder", ("unit2/misstext.txt", "007 hello *** world\n".encode(), "text/plain")),
        ("folder", ("unit2/chinese.txt", "007 你好世界\n".encode(), "text/plain")),
        ("folder", ("unit2/007.flac", b"audio", "audio/flac")),
    ]
    resp = client.post("/upload", files=files, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["results"][0]["id"] == "unit2_007.flac"

    test = client.get("/test/random").json()["test"]
    assert test["id"] == "unit2_007.flac"
    assert test["miss_text"] == "hello *** world"
    assert test["chinese"] == "你好世界"


def test_upload_replaces_existing_record(client, admin_headers):
    files = [("folder", ("lesson1/001.flac", b"v1", "audio/flac"))]
    client.post("/upload", files=files, data={"chinese": json.dumps({"001": "old"})}, headers=admin_headers)
    files = [("folder", ("lesson1/001.flac", b"version2", "audio/flac"))]
    client.post("/upload", files=files, data={"chinese": json.dumps({"001": "new"})}, headers=admin_headers)
    listing = client.get("/audio", headers=admin_headers).json()["files"]
    assert len(listing) == 1
    assert listing[0]["chinese"] == "new"
    assert listing[0]["file_size"] == len(b"version2")


def test_upload_rejects_bad_json_map(client, admin_headers):
    files = [("folder", ("lesson1/001.flac", b"v1", "audio/flac"))]
    resp = client.post("/upload", files=files, data={"text": "[1, 2]"}, headers=admin_headers)
    assert resp.status_code == 400


def test_upload_reports_bad_storage_key(client, admin_headers):
    files = [
        ("folder", ("../001.flac", b"x", "audio/flac")),
        ("folder", ("lesson1/002.flac", b"y", "audio/flac")),
    ]
    resp = client.post("/upload", files=files, headers=admin_headers)
    assert resp.status_code == 200
    results = resp.json()["results"]
    assert [r["success"] for r in results] == [False, True]


def test_upload_requires_admin(client, user_headers):
    files = [("folder", ("lesson1/001.flac", b"v1", "audio/flac"))]
    assert client.post("/upload", files=files, headers=user_headers).status_code == 403


def test_delete_audio_removes_file_and_activities(client, admin_headers, settings):
    files = [("folder", ("lesson1/001.flac", b"v1", "audio/flac"))]
    data = {
        "text": json.dumps({"001": "a b"}),
        "miss_text": json.dumps({"001": "a ***"}),
        "chinese": json.dumps({"001": "甲乙"}),
    }
    client.post("/upload", files=files, data=data, headers=admin_headers)
    client.post("/test/grade", json={"audio_id": "lesson1_001.flac", "answers": ["b"]}, headers=admin_headers)

    resp = client.delete("/audio/lesson1_001.flac", headers=admin_headers)
    assert resp.status_code == 200
    assert client.get("/audio", headers=admin_headers).json()["files"] == []
    assert client.get("/user-activities", headers=admin_headers).json()["total"] == 0
    assert client.get("/media/audioFiles/lesson1/001.flac").status_code == 404
    assert client.delete("/audio/lesson1_001.flac", headers=admin_headers).status_code == 404


def test_admin_can_log_in_again(client):
    assert login(client, "admin@example.com", "admin-secret")
