"""Tests for the FastAPI web layer."""
import pytest
from fastapi.testclient import TestClient

from app import main as app_module
from app.main import app, get_app_config, get_files, get_secrets, get_store, include, resolve_user_email
from database.schema import COACHING_REPORTS, ERRORS, PROJECTS, build_row
from shared.errors import NotFoundError

from conftest import ADMIN_EMAIL, USER_EMAIL

ADMIN_HEADERS = {"X-Goog-Authenticated-User-Email": f"accounts.google.com:{ADMIN_EMAIL}"}
USER_HEADERS = {"X-Goog-Authenticated-User-Email": f"accounts.google.com:{USER_EMAIL}"}


@pytest.fixture()
def client(store, files, secrets, config):
    app.dependency_overrides[get_app_config] = lambda: config
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_files] = lambda: files
    app.dependency_overrides[get_secrets] = lambda: secrets
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_index_renders_title_and_partials(client):
    response = client.get("/")

    assert response.status_code == 200
    html = response.text
    assert "<title>DeskPilot</title>" in html
    assert 'name="viewport" content="width=device-width, initial-scale=1.0"' in html
    assert "<style>" in html
    assert "async function callServer" in html


def test_index_uses_app_title_setting(client, admin_ctx):
    from services.directory import update_setting

    update_setting(admin_ctx, "APP_TITLE", "Team Desk")
    assert "<title>Team Desk</title>" in client.get("/").text


def test_include_unknown_partial():
    with pytest.raises(NotFoundError):
        include("does_not_exist")
    with pytest.raises(NotFoundError):
        include("../index")


def test_resolve_user_email(config):
    assert resolve_user_email({"X-Goog-Authenticated-User-Email": "accounts.google.com:a@b.com"}, config) == "a@b.com"
    assert resolve_user_email({"X-Forwarded-Email": "c@d.com"}, config) is None
    assert resolve_user_email({}, config) is None

    config.trust_forwarded_email = True
    assert resolve_user_email({"X-Forwarded-Email": "c@d.com"}, config) == "c@d.com"


def test_forged_forwarded_email_is_ignored(client):
    response = client.post("/api/admin/users/list", headers={"X-Forwarded-Email": ADMIN_EMAIL})
    assert response.status_code == 401


def test_forged_forwarded_email_does_not_override_signed_in_user(client):
    headers = {**USER_HEADERS, "X-Forwarded-Email": ADMIN_EMAIL}
    response = client.post("/api/admin/users/list", headers=headers)
    assert response.status_code == 403


def test_missing_identity_is_unauthorized(client):
    response = client.post("/api/profile")
    assert response.status_code == 401


def test_default_user_email_is_used(client, config):
    config.default_user_email = "dev@example.com"
    response = client.post("/api/profile")
    assert response.status_code == 200
    assert response.json()["data"]["User_ID"] == "dev@example.com"


def test_profile(client):
    body = client.post("/api/profile", headers=USER_HEADERS).json()
    assert body["success"] is True
    assert body["data"]["Role"] == "User"


def test_is_admin_endpoint(client):
    assert client.post("/api/admin/is-admin", json={}, headers=ADMIN_HEADERS).json()["data"] == {"is_admin": True}
    assert client.post("/api/admin/is-admin", json={}, headers=USER_HEADERS).json()["data"] == {"is_admin": False}


def test_admin_endpoints_forbidden_for_users(client):
    response = client.post("/api/admin/users/list", headers=USER_HEADERS)

    assert response.status_code == 403
    body = response.json()
    assert body["success"] is False
    assert body["error_kind"] == "authorization"
    assert "Only admins" in body["error"]


def test_add_user_endpoint(client):
    ok = client.post("/api/admin/users/add", json={"email": "new@example.com"}, headers=ADMIN_HEADERS)
    assert ok.status_code == 200
    assert ok.json()["data"]["User_ID"] == "new@example.com"

    duplicate = client.post("/api/admin/users/add", json={"email": "new@example.com"}, headers=ADMIN_HEADERS)
    assert duplicate.status_code == 400
    assert duplicate.json()["error_kind"] == "duplicate"

    invalid = client.post("/api/admin/users/add", json={"email": "not-an-email"}, headers=ADMIN_HEADERS)
    assert invalid.status_code == 400
    assert invalid.json()["error_kind"] == "validation"

    users = client.post("/api/admin/users/list", headers=ADMIN_HEADERS).json()["data"]
    assert [u["User_ID"] for u in users] == [ADMIN_EMAIL, "new@example.com"]


def test_settings_endpoints(client):
    settings = client.post("/api/admin/settings/get", headers=ADMIN_HEADERS).json()["data"]
    assert settings["APP_TITLE"] == "DeskPilot"

    updated = client.post(
        "/api/admin/settings/update",
        json={"setting_name": "APP_TITLE", "value": "Renamed"},
        headers=ADMIN_HEADERS,
    )
    assert updated.json()["data"]["status"] == "success"

    missing = client.post(
        "/api/admin/settings/update",
        json={"setting_name": "NOPE", "value": "x"},
        headers=ADMIN_HEADERS,
    )
    assert missing.status_code == 404
    assert missing.json()["error_kind"] == "not_found"


def test_project_endpoints(client, store):
    created = client.post("/api/projects/create", json={"project_name": "Apollo"}, headers=USER_HEADERS)
    assert created.status_code == 200
    assert created.json()["data"]["Project_Name"] == "Apollo"

    conflict = client.post("/api/projects/create", json={"project_name": "Apollo"}, headers=USER_HEADERS)
    assert conflict.status_code == 409
    assert conflict.json()["error_kind"] == "conflict"

    empty = client.post("/api/projects/create", json={"project_name": " "}, headers=USER_HEADERS)
    assert empty.status_code == 400

    listed = client.post("/api/projects/list", headers=USER_HEADERS).json()["data"]
    assert [p["Project_Name"] for p in listed] == ["Apollo"]
    assert len(store.open_table(PROJECTS).records()) == 1


def test_chat_endpoint(client, fake_llm):
    response = client.post("/api/chat", json={"message": "Hello"}, headers=USER_HEADERS)
    assert response.status_code == 200
    assert response.json() == {"text": "Fake answer"}


def test_chat_endpoint_degrades_to_text(client):
    response = client.post("/api/chat", json={"message": "Hello"}, headers=USER_HEADERS)
    assert response.status_code == 200
    assert response.json()["text"].startswith("I'm sorry")


def test_coaching_latest_without_report(client):
    response = client.post("/api/coaching/latest", headers=USER_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["found"] is False
    assert body["content"]


def test_coaching_latest_for_other_user_requires_admin(client):
    response = client.post("/api/coaching/latest", json={"email": ADMIN_EMAIL}, headers=USER_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["found"] is False
    assert body["content"] == "Only admins can view another user's coaching report."


def test_admin_reads_coaching_report_of_user(client, store):
    store.open_table(COACHING_REPORTS).append_row(build_row(COACHING_REPORTS, {
        "Report_ID": "REP-1",
        "User_ID": USER_EMAIL,
        "Report_Date": "2024-05-14T20:00:00",
        "Report_Content": "Keep going",
    }))

    response = client.post("/api/coaching/latest", json={"email": USER_EMAIL}, headers=ADMIN_HEADERS)

    body = response.json()
    assert body["found"] is True
    assert body["content"] == "Keep going"


def test_unexpected_error_is_recorded(client, store, monkeypatch):
    def boom(ctx):
        raise RuntimeError("kaput")

    monkeypatch.setattr(app_module, "list_projects", boom)

    with pytest.raises(RuntimeError):
        client.post("/api/projects/list", headers=USER_HEADERS)

    assert store.open_table(ERRORS).records()[-1]["Function_Name"] == "boom"
