from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from httpx import Response
from sqlmodel import Session, SQLModel, create_engine, select

from oceanus import main as app_main
from oceanus.domain.models import User
from oceanus.infra import db, redis_state
from oceanus.infra.audit import list_audit_logs
from oceanus.services import dataset_service
from oceanus.services.dataset_service import DatasetService


class FakeRedis:
    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._store[key] = value
        return True

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self._store.pop(key, None) is not None)

    def ping(self) -> bool:
        return True


@pytest.fixture()
def ui_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "ui_console_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(test_engine)
    fake_redis = FakeRedis()
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(redis_state, "get_redis", lambda: fake_redis)
    monkeypatch.setattr(dataset_service, "DATASET_PROCESSING_DELAY_SECONDS", 60)
    with TestClient(app_main.app) as client:
        yield client


def _csrf(client: TestClient) -> str:
    token = client.cookies.get("oceanus_csrf")
    if not token:
        client.get("/auth/login")
        token = client.cookies.get("oceanus_csrf")
    assert token
    return token


def _ui_login(client: TestClient, email: str, password: str = "password") -> Response:
    login_page = client.get("/auth/login")
    assert login_page.status_code == 200
    return client.post(
        "/auth/login",
        data={"email": email, "password": password, "csrf_token": _csrf(client)},
        follow_redirects=False,
    )


def test_anonymous_visitor_is_sent_to_login(ui_client: TestClient) -> None:
    root = ui_client.get("/", follow_redirects=False)
    assert root.status_code == 303
    assert root.headers["location"] == "/auth/login"

    for path in ("/dashboard", "/explorer", "/admin", "/profile"):
        response = ui_client.get(path, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/auth/login"


def test_admin_login_lands_on_admin(ui_client: TestClient) -> None:
    login_resp = _ui_login(ui_client, "admin@oceanus.com")
    assert login_resp.status_code == 303
    assert login_resp.headers["location"] == "/admin"
    assert ui_client.cookies.get("oceanus_session")

    admin_page = ui_client.get("/admin")
    assert admin_page.status_code == 200
    assert "Dr. Sarah Chen" in admin_page.text
    assert "Navigation" in admin_page.text
    assert 'href="/upload"' in admin_page.text

    root = ui_client.get("/", follow_redirects=False)
    assert root.status_code == 303
    assert root.headers["location"] == "/admin"


def test_guest_lands_on_explorer_and_is_denied_admin(ui_client: TestClient) -> None:
    login_resp = _ui_login(ui_client, "guest@oceanus.com")
    assert login_resp.status_code == 303
    assert login_resp.headers["location"] == "/explorer"

    explorer = ui_client.get("/explorer")
    assert explorer.status_code == 200
    assert "Pacific Kelp Survey 2024" in explorer.text
    assert 'href="/dashboard"' not in explorer.text

    denied = ui_client.get("/admin", follow_redirects=False)
    assert denied.status_code == 303
    assert denied.headers["location"] == "/403"

    forbidden_page = ui_client.get("/403")
    assert forbidden_page.status_code == 403
    assert "Access denied" in forbidden_page.text


@pytest.mark.parametrize(
    ("email", "landing"),
    [
        ("researcher@oceanus.com", "/dashboard"),
        ("policy@oceanus.com", "/visualize"),
    ],
)
def test_role_landing_pages_render(ui_client: TestClient, email: str, landing: str) -> None:
    login_resp = _ui_login(ui_client, email)
    assert login_resp.headers["location"] == landing
    page = ui_client.get(landing)
    assert page.status_code == 200


def test_policy_user_nav_and_denied_views(ui_client: TestClient) -> None:
    _ui_login(ui_client, "policy@oceanus.com")
    page = ui_client.get("/taxonomy")
    assert page.status_code == 200
    assert "Thunnus thynnus" in page.text
    assert 'href="/upload"' not in page.text
    assert 'href="/reports"' in page.text

    for path in ("/upload", "/ai-tools", "/dashboard"):
        response = ui_client.get(path, follow_redirects=False)
        assert response.headers["location"] == "/403"


def test_invalid_login_rerenders_form(ui_client: TestClient) -> None:
    response = _ui_login(ui_client, "admin@oceanus.com", password="wrong")
    assert response.status_code == 401
    assert "Invalid credentials" in response.text
    assert ui_client.cookies.get("oceanus_session") is None


def test_login_requires_csrf(ui_client: TestClient) -> None:
    ui_client.get("/auth/login")
    response = ui_client.post(
        "/auth/login",
        data={"email": "admin@oceanus.com", "password": "password", "csrf_token": "forged"},
        follow_redirects=False,
    )
    assert response.status_code == 400
    assert ui_client.cookies.get("oceanus_session") is None


def test_logout_ends_session(ui_client: TestClient) -> None:
    _ui_login(ui_client, "researcher@oceanus.com")
    assert ui_client.get("/dashboard").status_code == 200

    logout_resp = ui_client.post(
        "/auth/logout",
        data={"csrf_token": _csrf(ui_client)},
        follow_redirects=False,
    )
    assert logout_resp.status_code == 303
    assert logout_resp.headers["location"] == "/auth/login"

    guarded = ui_client.get("/dashboard", follow_redirects=False)
    assert guarded.status_code == 303
    assert guarded.headers["location"] == "/auth/login"


def test_stale_session_cookie_redirects_to_login(ui_client: TestClient) -> None:
    ui_client.cookies.set("oceanus_session", "expired-session-id")
    response = ui_client.get("/explorer", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/auth/login"


def test_logged_in_user_skips_login_form(ui_client: TestClient) -> None:
    _ui_login(ui_client, "researcher@oceanus.com")
    response = ui_client.get("/auth/login", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/dashboard"


def test_unknown_page_is_not_found(ui_client: TestClient) -> None:
    response = ui_client.get("/sea-monsters")
    assert response.status_code == 404
    assert "/sea-monsters" in response.text

    api_missing = ui_client.get("/api/unknown")
    assert api_missing.status_code == 404
    assert api_missing.json() == {"detail": "Not Found"}


def test_upload_form_rejects_incomplete_submission(ui_client: TestClient) -> None:
    _ui_login(ui_client, "researcher@oceanus.com")
    csrf_token = _csrf(ui_client)

    no_files = ui_client.post(
        "/upload",
        data={"name": "Kelp", "type": "Ocean Data", "location": "Monterey Bay", "csrf_token": csrf_token},
    )
    assert no_files.status_code == 400
    assert "Please fill in all required fields" in no_files.text

    no_name = ui_client.post(
        "/upload",
        data={"name": "", "type": "Ocean Data", "location": "Monterey Bay", "csrf_token": csrf_token},
        files=[("files", ("kelp.csv", b"depth,count\n5,12\n", "text/csv"))],
    )
    assert no_name.status_code == 400
    assert len(DatasetService().list_datasets()) == 4


def test_upload_form_rejects_overlong_fields(ui_client: TestClient) -> None:
    _ui_login(ui_client, "researcher@oceanus.com")
    csrf_token = _csrf(ui_client)

    long_name = ui_client.post(
        "/upload",
        data={"name": "x" * 300, "type": "Ocean Data", "location": "Monterey Bay", "csrf_token": csrf_token},
        files=[("files", ("kelp.csv", b"depth,count\n5,12\n", "text/csv"))],
    )
    assert long_name.status_code == 400
    assert "at most 200 characters" in long_name.text
    assert "Monterey Bay" in long_name.text

    long_type = ui_client.post(
        "/upload",
        data={"name": "Kelp", "type": "t" * 80, "location": "Monterey Bay", "csrf_token": csrf_token},
        files=[("files", ("kelp.csv", b"depth,count\n5,12\n", "text/csv"))],
    )
    assert long_type.status_code == 400
    assert len(DatasetService().list_datasets()) == 4


def test_upload_form_creates_pending_dataset(ui_client: TestClient) -> None:
    _ui_login(ui_client, "researcher@oceanus.com")
    response = ui_client.post(
        "/upload",
        data={
            "name": "Monterey Kelp Transects",
            "type": "Ocean Data",
            "location": "Monterey Bay",
            "description": "Spring survey",
            "csrf_token": _csrf(ui_client),
        },
        files=[("files", ("kelp.csv", b"depth,count\n5,12\n", "text/csv"))],
    )
    assert response.status_code == 200
    assert "Upload successful" in response.text

    created = DatasetService().list_datasets(search="Monterey Kelp")
    assert len(created) == 1
    assert created[0].status == "pending"
    assert created[0].metadata["files"] == ["kelp.csv"]


def test_guest_cannot_post_upload_form(ui_client: TestClient) -> None:
    _ui_login(ui_client, "guest@oceanus.com")
    response = ui_client.post(
        "/upload",
        data={"name": "Sneaky", "type": "Ocean Data", "location": "Reef", "csrf_token": _csrf(ui_client)},
        files=[("files", ("sneaky.csv", b"x", "text/csv"))],
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/403"
    assert len(DatasetService().list_datasets()) == 4


def test_ai_tools_and_reports_forms(ui_client: TestClient) -> None:
    _ui_login(ui_client, "researcher@oceanus.com")
    csrf_token = _csrf(ui_client)

    empty = ui_client.post("/ai-tools/dna-match", data={"sequence": "", "csrf_token": csrf_token})
    assert empty.status_code == 400
    assert "DNA sequence required" in empty.text

    matched = ui_client.post("/ai-tools/dna-match", data={"sequence": "ATCG", "csrf_token": csrf_token})
    assert matched.status_code == 200
    assert "Atlantic Bluefin Tuna" in matched.text

    report = ui_client.post(
        "/reports",
        data={"type": "biodiversity", "title": "Reef health", "format": "pdf", "csrf_token": csrf_token},
    )
    assert report.status_code == 200
    assert "Report generated: Reef health" in report.text

    missing_title = ui_client.post(
        "/reports",
        data={"type": "biodiversity", "title": "", "format": "pdf", "csrf_token": csrf_token},
    )
    assert missing_title.status_code == 400


def test_profile_page_shows_account(ui_client: TestClient) -> None:
    _ui_login(ui_client, "policy@oceanus.com")
    response = ui_client.get("/profile")
    assert response.status_code == 200
    assert "policy@oceanus.com" in response.text
    assert "Emma Rodriguez" in response.text


def test_profile_with_deleted_account_returns_to_login(ui_client: TestClient) -> None:
    _ui_login(ui_client, "guest@oceanus.com")
    session_id = ui_client.cookies.get("oceanus_session")
    assert session_id
    with Session(db.engine) as session:
        guest = session.exec(select(User).where(User.email == "guest@oceanus.com")).one()
        session.delete(guest)
        session.commit()

    response = ui_client.get("/profile", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/auth/login"
    assert redis_state.get_json(f"session:{session_id}") is None
    assert not ui_client.cookies.get("oceanus_session")


def test_console_denial_is_audited(ui_client: TestClient) -> None:
    _ui_login(ui_client, "guest@oceanus.com")
    ui_client.get("/admin", follow_redirects=False)

    entries = list_audit_logs(action="console.access_denied")
    assert len(entries) == 1
    assert entries[0].actor_role == "guest"
    assert entries[0].resource == "/admin"
    assert entries[0].status_code == 303
