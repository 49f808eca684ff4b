import pytest

from config import TestingConfig
from marches import create_app, storage
from marches.extensions import db
from marches.security import Role

from .conftest import PASSWORD, email_for


def test_login_returns_user_without_password(client, users):
    resp = client.post("/api/auth/login", json={"email": "admin@example.com", "password": PASSWORD})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["id"] == users["admin"]
    assert body["role"] == "admin"
    assert body["fullName"] == "Administrateur"
    assert "password" not in body
    assert "passwordHash" not in body


def test_wrong_password_and_unknown_email_answer_the_same(client, users):
    wrong = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "nope"})
    unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.get_json() == unknown.get_json() == {"error": "Invalid credentials"}


@pytest.mark.parametrize(
    "body",
    [
        {"email": "admin@example.com"},
        {"password": PASSWORD},
        {"email": "not-an-email", "password": PASSWORD},
    ],
)
def test_login_rejects_malformed_body(client, users, body):
    resp = client.post("/api/auth/login", json=body)

    assert resp.status_code == 400
    assert resp.get_json()["details"]


def test_login_rejects_non_json_body(client, users):
    resp = client.post("/api/auth/login", data="email=admin", content_type="text/plain")

    assert resp.status_code == 400


def test_login_discards_previous_session_content(client, users):
    with client.session_transaction() as sess:
        sess["stale"] = "left over"

    client.post("/api/auth/login", json={"email": "admin@example.com", "password": PASSWORD})

    with client.session_transaction() as sess:
        assert "stale" not in sess
        assert sess["_user_id"] == users["admin"]


def test_me_follows_login_and_logout(client, users):
    assert client.get("/api/auth/me").status_code == 401

    client.post("/api/auth/login", json={"email": email_for(Role.ORDONNATEUR), "password": PASSWORD})
    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.get_json()["username"] == "ordonnateur"

    assert client.post("/api/auth/logout").status_code == 204
    assert client.get("/api/auth/me").status_code == 401


def test_logout_without_session_is_harmless(client):
    assert client.post("/api/auth/logout").status_code == 204


def test_session_of_deleted_user_is_cleared(app, client, users):
    client.post("/api/auth/login", json={"email": "ordonnateur@example.com", "password": PASSWORD})
    with app.app_context():
        storage.users.delete(users["ordonnateur"])
        db.session.commit()

    assert client.get("/api/auth/me").status_code == 401
    with client.session_transaction() as sess:
        assert "_user_id" not in sess
    assert client.get("/api/tenders").status_code == 401


@pytest.mark.parametrize(
    "path",
    ["/api/tenders", "/api/dashboard/stats", "/api/users", "/api/notifications/someone", "/api/anything"],
)
def test_api_requires_a_session(client, path):
    resp = client.get(path)

    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Unauthorized"}


def test_permissions_endpoint(client, login_as):
    assert client.get("/api/auth/permissions").status_code == 401

    login_as(Role.MARCHES_MANAGER)
    matrix = client.get("/api/auth/permissions").get_json()

    assert matrix["canAccessAdmin"] is False
    assert matrix["resources"]["invoice"] == {"add": False, "edit": True, "delete": False}
    assert matrix["resources"]["tender"] == {"add": True, "edit": True, "delete": True}


class CsrfConfig(TestingConfig):
    WTF_CSRF_ENABLED = True


@pytest.fixture
def csrf_app():
    app = create_app(CsrfConfig)
    with app.app_context():
        db.create_all()
        storage.users.create(
            {
                "username": "admin",
                "email": "admin@example.com",
                "full_name": "Administrateur",
                "role": "admin",
                "password": PASSWORD,
            }
        )
        db.session.commit()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


def csrf_login(client):
    token = client.get("/api/auth/csrf").get_json()["csrfToken"]
    resp = client.post(
        "/api/auth/login",
        json={"email": "admin@example.com", "password": PASSWORD},
        headers={"X-CSRFToken": token},
    )
    assert resp.status_code == 200


def test_csrf_token_required_for_login(csrf_app):
    client = csrf_app.test_client()

    resp = client.post("/api/auth/login", json={"email": "admin@example.com", "password": PASSWORD})

    assert resp.status_code == 400
    csrf_login(client)


def test_anonymous_write_is_unauthorized_before_csrf_check(csrf_app):
    client = csrf_app.test_client()

    resp = client.post("/api/tenders", json={})

    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Unauthorized"}


def test_authenticated_write_still_needs_csrf_token(csrf_app):
    client = csrf_app.test_client()
    csrf_login(client)

    assert client.post("/api/suppliers", json={"name": "Fournisseur"}).status_code == 400

    # the session was renewed at login, so fetch a fresh token
    token = client.get("/api/auth/csrf").get_json()["csrfToken"]
    resp = client.post("/api/suppliers", json={"name": "Fournisseur"}, headers={"X-CSRFToken": token})
    assert resp.status_code == 201
