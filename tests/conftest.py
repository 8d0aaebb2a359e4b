from __future__ import annotations

import re
from collections.abc import Iterator
from pathlib import Path
from typing import Dict, List

import pytest
from fastapi.testclient import TestClient

from listen_master.mailer import MailError, get_mailer
from listen_master.main import create_app
from listen_master.settings import Settings

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-secret"

_TOKEN_RE = re.compile(r"token=([0-9a-f]+)")


class FakeMailer:
    """Collects outgoing mail instead of calling the mail API."""

    configured = True

    def __init__(self) -> None:
        self.sent: List[Dict[str, str]] = []
        self.fail = False

    async def send(self, to: str, subject: str, html_body: str) -> None:
        if self.fail:
            raise MailError("mail API returned 500")
        self.sent.append({"to": to, "subject": subject, "html": html_body})

    def last_token(self, to: str) -> str:
        for mail in reversed(self.sent):
            if mail["to"] == to:
                match = _TOKEN_RE.search(mail["html"])
                assert match, "verification mail without token"
                return match.group(1)
        raise AssertionError(f"no mail sent to {to}")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        MEDIA_ROOT=str(tmp_path / "media"),
        JWT_SECRET_KEY="test-secret",
        SEED_ADMIN_EMAIL=ADMIN_EMAIL,
        SEED_ADMIN_PASSWORD=ADMIN_PASSWORD,
        PUBLIC_BASE_URL="http://listen.test",
    )


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def app(settings: Settings, mailer: FakeMailer):
    app = create_app(settings)
    app.dependency_overrides[get_mailer] = lambda: mailer
    return app


@pytest.fixture
def client(app) -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c


def login(client: TestClient, email: str, password: str) -> Dict[str, str]:
    resp = client.post("/auth/token", data={"username": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def register_and_verify(client: TestClient, mailer: FakeMailer, email: str, password: str = "secret1", name: str = "Learner") -> Dict[str, str]:
    resp = client.post("/users/register", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 201, resp.text
    resp = client.get("/auth/verify-email", params={"token": mailer.last_token(email)})
    assert resp.status_code == 200, resp.text
    return login(client, email, password)


@pytest.fixture
def admin_headers(client: TestClient) -> Dict[str, str]:
    return login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def user_headers(client: TestClient, mailer: FakeMailer) -> Dict[str, str]:
    return register_and_verify(client, mailer, "learner@example.com")


@pytest.fixture
def add_audio(app, client):
    """Insert an Audio row directly, bypassing the upload endpoint."""
    from listen_master.models import Audio

    def _add(audio_id: str = "lesson1_001.flac", **fields):
        values = {
            "audio_path": f"/media/audioFiles/{audio_id}",
            "file_size": 10,
            "folder_name": "lesson1",
            "file_name": "001.flac",
            "miss_text": "the *** brown fox",
            "original_text": "the quick brown fox",
            "chinese": "敏捷的棕色狐狸",
        }
        values.update(fields)
        db = app.state.database.session()
        try:
            db.add(Audio(id=audio_id, **values))
            db.commit()
        finally:
            db.close()
        return audio_id

    return _add
