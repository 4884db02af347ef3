"""
Auth Tests
==========

Login, bearer tokens and role checks.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from newsdesk.core.errors import Conflict, ValidationError


# ---------------------------------------------------------------------------
# UserStore
# ---------------------------------------------------------------------------

def test_create_user_hides_password_hash(newsdesk):
    user = newsdesk.users.create_user("Jo Writer", "Jo@Example.com", "pw-123", role="author")
    assert user["email"] == "jo@example.com"
    assert user["role"] == "author"
    assert "password_hash" not in user


def test_create_user_rejects_duplicate_email(newsdesk):
    newsdesk.users.create_user("A", "dup@example.com", "pw")
    with pytest.raises(Conflict):
        newsdesk.users.create_user("B", "dup@example.com", "pw")


def test_create_user_rejects_unknown_role(newsdesk):
    with pytest.raises(ValidationError):
        newsdesk.users.create_user("A", "a@example.com", "pw", role="owner")


def test_verify_credentials(newsdesk):
    newsdesk.users.create_user("A", "a@example.com", "correct horse")
    assert newsdesk.users.verify_user_credentials("a@example.com", "correct horse")["email"] == "a@example.com"
    assert newsdesk.users.verify_user_credentials("a@example.com", "wrong") is None
    assert newsdesk.users.verify_user_credentials("nobody@example.com", "correct horse") is None


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

def test_login_returns_token_usable_on_me(client, newsdesk):
    newsdesk.users.create_user("Ed Itor", "ed@example.com", "s3cret", role="editor")

    response = client.post("/api/auth/login", json={"email": "ed@example.com", "password": "s3cret"})
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["user"]["role"] == "editor"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.get_json()["data"]["email"] == "ed@example.com"


def test_login_bad_credentials(client, newsdesk):
    newsdesk.users.create_user("Ed", "ed@example.com", "s3cret")
    response = client.post("/api/auth/login", json={"email": "ed@example.com", "password": "nope"})
    assert response.status_code == 401
    assert response.get_json() == {"error": True, "message": "Invalid credentials"}


def test_login_requires_fields(client):
    response = client.post("/api/auth/login", json={"email": "ed@example.com"})
    assert response.status_code == 400


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def test_expired_token_rejected(app, client, admin):
    user, _ = admin
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": str(user["id"]), "role": "admin", "iat": now - timedelta(hours=2),
         "exp": now - timedelta(hours=1)},
        app.config["SECRET_KEY"], algorithm="HS256",
    )
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.get_json()["message"] == "Token has expired"


def test_token_signed_with_other_key_rejected(client, admin):
    user, _ = admin
    token = jwt.encode({"sub": str(user["id"]), "role": "admin"}, "some-other-secret-key-0123456789abcdef", algorithm="HS256")
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.get_json()["message"] == "Invalid token"


def test_token_for_disabled_user_rejected(client, newsdesk, editor):
    user, headers = editor
    with newsdesk.db.connect() as conn:
        conn.execute("UPDATE users SET status = 'disabled' WHERE id = ?", (user["id"],))

    response = client.get("/api/auth/me", headers=headers)
    assert response.status_code == 401


def test_malformed_authorization_header(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Token abc"})
    assert response.status_code == 401


# ---------------------------------------------------------------------------
# Password change
# ---------------------------------------------------------------------------

def test_change_password(client, editor):
    user, headers = editor
    url = "/api/auth/change-password"

    assert client.put(url, json={"current_password": "wrong", "new_password": "brand-new"},
                      headers=headers).status_code == 400
    assert client.put(url, json={"current_password": "secret-pass", "new_password": "short"},
                      headers=headers).status_code == 400

    response = client.put(url, json={"current_password": "secret-pass", "new_password": "brand-new"},
                          headers=headers)
    assert response.status_code == 200

    assert client.post("/api/auth/login", json={"email": user["email"], "password": "secret-pass"}).status_code == 401
    assert client.post("/api/auth/login", json={"email": user["email"], "password": "brand-new"}).status_code == 200


# ---------------------------------------------------------------------------
# User administration
# ---------------------------------------------------------------------------

def test_first_admin_needs_no_token(client, newsdesk):
    response = client.post("/api/users", json={
        "name": "First Admin", "email": "boss@example.com", "password": "long-enough", "role": "author",
    })
    assert response.status_code == 201
    assert response.get_json()["data"]["role"] == "admin"

    # once an admin exists the route is closed to anonymous callers
    response = client.post("/api/users", json={"name": "Eve", "email": "eve@example.com", "password": "long-enough"})
    assert response.status_code == 401


def test_admin_creates_staff(client, admin, editor):
    _, admin_headers = admin
    _, editor_headers = editor
    payload = {"name": "New Writer", "email": "writer@example.com", "password": "long-enough", "role": "author"}

    assert client.post("/api/users", json=payload, headers=editor_headers).status_code == 403

    response = client.post("/api/users", json=payload, headers=admin_headers)
    assert response.status_code == 201
    assert response.get_json()["data"]["role"] == "author"
    assert "password_hash" not in response.get_json()["data"]

    assert client.post("/api/users", json=payload, headers=admin_headers).status_code == 409
    short = dict(payload, email="other@example.com", password="abc")
    assert client.post("/api/users", json=short, headers=admin_headers).status_code == 400
    bad_role = dict(payload, email="other@example.com", role="owner")
    assert client.post("/api/users", json=bad_role, headers=admin_headers).status_code == 400


def test_list_users_filters(client, admin, editor, author):
    _, headers = editor

    response = client.get("/api/users?role=author", headers=headers)
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert [u["email"] for u in data["users"]] == ["author@example.com"]
    assert data["pagination"]["total"] == 1

    assert client.get("/api/users?status=banned", headers=headers).status_code == 400
    _, author_headers = author
    assert client.get("/api/users", headers=author_headers).status_code == 403


def test_get_user_self_or_admin(client, admin, editor, author):
    admin_user, admin_headers = admin
    author_user, author_headers = author

    assert client.get(f"/api/users/{author_user['id']}", headers=author_headers).status_code == 200
    assert client.get(f"/api/users/{admin_user['id']}", headers=author_headers).status_code == 403
    assert client.get(f"/api/users/{author_user['id']}", headers=admin_headers).status_code == 200
    assert client.get("/api/users/9999", headers=admin_headers).status_code == 404


def test_deactivated_user_locked_out(client, admin, editor):
    admin_user, admin_headers = admin
    editor_user, editor_headers = editor
    url = f"/api/users/{editor_user['id']}/status"

    assert client.put(url, json={"status": "gone"}, headers=admin_headers).status_code == 400
    assert client.put(url, json={"status": "inactive"}, headers=editor_headers).status_code == 403

    response = client.put(url, json={"status": "inactive"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.get_json()["data"]["status"] == "inactive"
    assert client.get("/api/auth/me", headers=editor_headers).status_code == 401
    assert client.post("/api/auth/login",
                       json={"email": "editor@example.com", "password": "secret-pass"}).status_code == 401

    client.put(url, json={"status": "active"}, headers=admin_headers)
    assert client.get("/api/auth/me", headers=editor_headers).status_code == 200

    own = client.put(f"/api/users/{admin_user['id']}/status", json={"status": "inactive"}, headers=admin_headers)
    assert own.status_code == 400
