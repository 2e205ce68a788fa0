"""
tests/test_api_auth.py -- Integration tests for the cookie session flow over HTTP.

These tests run through the real ASGI stack (TestClient with a patched
lifespan and an in-memory DB), so cookie flags, status codes and the error
envelope are checked as a browser or API client would see them.

Coverage:
  - register -> login sets an HttpOnly/SameSite=Lax session cookie -> /me works
  - unknown email and wrong password give the identical 401 body
  - duplicate registration -> 409 duplicate_email
  - logout deletes the session server-side and clears the cookie (Max-Age=-1)
  - revoke-others keeps only the current session
  - password change keeps the current session, kills the others
  - responses never contain the password hash
  - passwords keep surrounding whitespace; only the email is trimmed
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from auth.tokens import SESSION_COOKIE_NAME

EMAIL = "a@x.com"
PASSWORD = "pw1-long-enough"


def _set_cookie_headers(resp) -> list[str]:
    return [v for k, v in resp.headers.multi_items() if k.lower() == "set-cookie"]


def _me_as(client: TestClient, token: str):
    """GET /auth/me presenting only the given token."""
    client.cookies.clear()
    client.cookies.set(SESSION_COOKIE_NAME, token)
    return client.get("/api/v1/auth/me")


def _register(client: TestClient, email: str = EMAIL, password: str = PASSWORD):
    return client.post("/api/v1/auth/register", json={"email": email, "password": password})


def _login(client: TestClient, email: str = EMAIL, password: str = PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def test_register_login_me(api_client: TestClient) -> None:
    reg = _register(api_client)
    assert reg.status_code == 201
    body = reg.json()
    assert body["email"] == EMAIL
    assert "password" not in str(body).lower()

    resp = _login(api_client)
    assert resp.status_code == 200
    assert resp.headers["cache-control"] == "no-store"
    assert resp.json()["user_id"] == body["id"]

    cookies = _set_cookie_headers(resp)
    assert len(cookies) == 1
    cookie = cookies[0].lower()
    assert cookie.startswith(f"{SESSION_COOKIE_NAME}=")
    assert "httponly" in cookie
    assert "samesite=lax" in cookie
    assert "path=/" in cookie
    assert "expires=" in cookie

    me = api_client.get("/api/v1/auth/me")
    assert me.status_code == 200
    assert me.json()["email"] == EMAIL


def test_me_requires_session(api_client: TestClient) -> None:
    resp = api_client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthorized"

    resp = _me_as(api_client, "0" * 48)
    assert resp.status_code == 401


def test_login_failures_are_indistinguishable(api_client: TestClient) -> None:
    _register(api_client)
    unknown = _login(api_client, email="nobody@x.com")
    wrong = _login(api_client, password="wrong-password")
    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json() == wrong.json()
    assert unknown.json()["error"]["code"] == "invalid_credentials"
    assert not _set_cookie_headers(unknown)


def test_duplicate_registration(api_client: TestClient) -> None:
    assert _register(api_client).status_code == 201
    dup = _register(api_client, password="another-password")
    assert dup.status_code == 409
    assert dup.json()["error"]["code"] == "duplicate_email"


def test_register_rejects_overlong_password(api_client: TestClient) -> None:
    resp = _register(api_client, password="p" * 73)
    assert resp.status_code == 422
    assert "p" * 73 not in resp.text


def test_logout_revokes_and_clears_cookie(api_client: TestClient) -> None:
    _register(api_client)
    _login(api_client)
    token = api_client.cookies.get(SESSION_COOKIE_NAME)
    assert token

    resp = api_client.post("/api/v1/auth/logout")
    assert resp.status_code == 200
    cleared = _set_cookie_headers(resp)
    assert any("max-age=-1" in h.lower() for h in cleared)

    # The old token no longer resolves even if a client replays it.
    replay = _me_as(api_client, token)
    assert replay.status_code == 401


def test_logout_is_idempotent_for_stale_cookie(api_client: TestClient) -> None:
    api_client.cookies.set(SESSION_COOKIE_NAME, "f" * 48)
    resp = api_client.post("/api/v1/auth/logout")
    assert resp.status_code == 200


def test_logout_without_cookie(api_client: TestClient) -> None:
    assert api_client.post("/api/v1/auth/logout").status_code == 401


def test_sessions_and_revoke_others(api_client: TestClient) -> None:
    _register(api_client)
    _login(api_client)
    other = api_client.cookies.get(SESSION_COOKIE_NAME)
    api_client.cookies.clear()
    _login(api_client)
    current = api_client.cookies.get(SESSION_COOKIE_NAME)

    listed = api_client.get("/api/v1/auth/sessions").json()
    assert len(listed) == 2
    assert [row["current"] for row in listed].count(True) == 1
    assert all(len(row["token_prefix"]) == 8 for row in listed)
    assert current not in str(listed)

    resp = api_client.post("/api/v1/auth/sessions/revoke-others")
    assert resp.status_code == 200
    assert resp.json()["revoked"] == 1

    assert api_client.get("/api/v1/auth/me").status_code == 200
    assert _me_as(api_client, other).status_code == 401


def test_change_password_flow(api_client: TestClient) -> None:
    _register(api_client)
    _login(api_client)
    other = api_client.cookies.get(SESSION_COOKIE_NAME)
    api_client.cookies.clear()
    _login(api_client)

    bad = api_client.post(
        "/api/v1/users/me/password",
        json={"old_password": "nope-nope", "new_password": "brand-new-pw"},
    )
    assert bad.status_code == 400
    assert bad.json()["error"]["code"] == "password_mismatch"

    ok = api_client.post(
        "/api/v1/users/me/password",
        json={"old_password": PASSWORD, "new_password": "brand-new-pw"},
    )
    assert ok.status_code == 204
    assert api_client.get("/api/v1/auth/me").status_code == 200
    assert _me_as(api_client, other).status_code == 401

    api_client.cookies.clear()
    assert _login(api_client).status_code == 401
    assert _login(api_client, password="brand-new-pw").status_code == 200


def test_patch_rejects_unknown_fields(api_client: TestClient) -> None:
    _register(api_client)
    _login(api_client)
    resp = api_client.patch("/api/v1/users/me", json={"is_admin": True})
    assert resp.status_code == 422

    resp = api_client.patch("/api/v1/users/me", json={"email": "b@x.com"})
    assert resp.status_code == 200
    assert resp.json()["email"] == "b@x.com"


def test_delete_account(api_client: TestClient) -> None:
    _register(api_client)
    _login(api_client)
    token = api_client.cookies.get(SESSION_COOKIE_NAME)

    resp = api_client.delete("/api/v1/users/me")
    assert resp.status_code == 204

    assert _me_as(api_client, token).status_code == 401
    api_client.cookies.clear()
    assert _login(api_client).status_code == 401


def test_password_whitespace_is_preserved(api_client: TestClient) -> None:
    padded = "  padded-secret  "
    assert _register(api_client, email="  pad@x.com ", password=padded).json()["email"] == "pad@x.com"

    assert _login(api_client, email="pad@x.com", password="padded-secret").status_code == 401
    assert _login(api_client, email="pad@x.com", password=padded).status_code == 200

    resp = api_client.post(
        "/api/v1/users/me/password",
        json={"old_password": padded, "new_password": "brand-new-pw"},
    )
    assert resp.status_code == 204
