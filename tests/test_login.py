"""
tests/test_login.py -- JSON login, session fixation protection, and logout.

Coverage:
  - Successful login: 200, empty body, httpOnly session cookie, no-store
  - Session id rotation: new id differs from a planted id and from a valid
    prior session id; the prior session stops working
  - Uniform failure: unknown user and wrong password give identical 401s
  - Malformed input (missing fields, bad JSON, wrong types) is a 401, not a 400/500
  - Disabled accounts cannot log in, and disabling one ends its live sessions
  - Logout invalidates the session and clears both cookies
  - Stored session rows never contain the raw id or the password hash
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from api.main import app
from conftest import CSRF_COOKIE, CSRF_HEADER, PROBLEM_JSON, SESSION_COOKIE, BrowserSession


def _set_cookie_headers(resp) -> list[str]:
    return [v for k, v in resp.headers.multi_items() if k.lower() == "set-cookie"]


class TestLoginSuccess:
    def test_login_scenario_returns_new_session_cookie(self, client: TestClient) -> None:
        """register alice -> fetch token -> login with cookie+header -> 200 + JSESSIONID."""
        browser = BrowserSession(client)
        assert browser.register("alice", "s3cret1234").status_code == 201

        token = TestClient(app).get("/csrf-cookie").cookies.get(CSRF_COOKIE)
        fresh = TestClient(app)
        resp = fresh.post(
            "/login",
            json={"username": "alice", "password": "s3cret1234"},
            headers={"Cookie": f"{CSRF_COOKIE}={token}", CSRF_HEADER: token},
        )
        assert resp.status_code == 200
        assert resp.content == b""
        assert resp.cookies.get(SESSION_COOKIE)

    def test_session_cookie_is_http_only(self, browser: BrowserSession) -> None:
        browser.register("alice", "s3cret1234")
        resp = browser.login("alice", "s3cret1234")
        header = next(h for h in _set_cookie_headers(resp) if h.startswith(f"{SESSION_COOKIE}="))
        assert "httponly" in header.lower()
        assert "path=/" in header.lower()

    def test_login_response_is_not_cacheable(self, browser: BrowserSession) -> None:
        browser.register("alice", "s3cret1234")
        resp = browser.login("alice", "s3cret1234")
        assert resp.headers["cache-control"] == "no-store"

    def test_login_establishes_identity(self, browser: BrowserSession) -> None:
        user_id = browser.signup_and_login("alice", "s3cret1234")
        resp = browser.client.get("/users/me")
        assert resp.status_code == 200
        assert resp.json() == {"id": user_id, "username": "alice"}


class TestSessionRotation:
    def test_planted_session_id_is_replaced(self, browser: BrowserSession) -> None:
        browser.register("alice", "s3cret1234")
        token = browser.csrf_token()
        resp = TestClient(app).post(
            "/login",
            json={"username": "alice", "password": "s3cret1234"},
            headers={"Cookie": f"{CSRF_COOKIE}={token}; {SESSION_COOKIE}=session_id_1", CSRF_HEADER: token},
        )
        assert resp.status_code == 200
        new_id = resp.cookies.get(SESSION_COOKIE)
        assert new_id
        assert new_id != "session_id_1"

    def test_relogin_rotates_a_valid_session(self, browser: BrowserSession) -> None:
        browser.signup_and_login("alice", "s3cret1234")
        first_id = browser.client.cookies.get(SESSION_COOKIE)

        resp = browser.login("alice", "s3cret1234")
        assert resp.status_code == 200
        second_id = resp.cookies.get(SESSION_COOKIE)
        assert second_id and second_id != first_id

        # The pre-rotation id no longer authenticates.
        old = TestClient(app).get("/users/me", headers={"Cookie": f"{SESSION_COOKIE}={first_id}"})
        assert old.status_code == 401
        new = TestClient(app).get("/users/me", headers={"Cookie": f"{SESSION_COOKIE}={second_id}"})
        assert new.status_code == 200

    def test_rotation_leaves_one_session_row(self, browser: BrowserSession) -> None:
        browser.signup_and_login("alice", "s3cret1234")
        browser.login("alice", "s3cret1234")
        assert browser.client.app.state.session_store.count() == 1

    def test_concurrent_logins_get_distinct_sessions(self, browser: BrowserSession, second_browser) -> None:
        browser.register("alice", "s3cret1234")
        browser.login("alice", "s3cret1234")
        second_browser.login("alice", "s3cret1234")
        a = browser.client.cookies.get(SESSION_COOKIE)
        b = second_browser.client.cookies.get(SESSION_COOKIE)
        assert a and b and a != b
        assert browser.client.get("/users/me").status_code == 200
        assert second_browser.client.get("/users/me").status_code == 200

    def test_session_row_holds_no_secrets(self, browser: BrowserSession) -> None:
        browser.signup_and_login("alice", "s3cret1234")
        raw_id = browser.client.cookies.get(SESSION_COOKIE)
        store = browser.client.app.state.session_store
        with store.engine.connect() as conn:
            rows = conn.exec_driver_sql("SELECT id_hash, attributes FROM sessions").fetchall()
        assert len(rows) == 1
        id_hash, attributes = rows[0]
        assert id_hash != raw_id
        assert "password" not in attributes
        assert "$2b$" not in attributes


class TestLoginFailure:
    def test_unknown_user_and_wrong_password_look_identical(self, browser: BrowserSession) -> None:
        browser.register("alice", "s3cret1234")
        unknown = browser.login("mallory", "s3cret1234")
        wrong = browser.login("alice", "wrong-password")
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()
        assert unknown.headers["content-type"].startswith(PROBLEM_JSON)
        body = wrong.json()
        assert body["title"] == "Unauthorized"
        assert body["status"] == 401
        assert body["instance"] == "/login"
        assert set(body) == {"title", "status", "detail", "instance"}

    def test_failure_sets_no_session_cookie(self, browser: BrowserSession) -> None:
        browser.register("alice", "s3cret1234")
        resp = browser.login("alice", "wrong-password")
        assert resp.cookies.get(SESSION_COOKIE) is None
        assert resp.headers["cache-control"] == "no-store"

    def test_missing_fields_fail_authentication(self, browser: BrowserSession) -> None:
        browser.register("alice", "s3cret1234")
        assert browser.post("/login", json={}).status_code == 401
        assert browser.post("/login", json={"username": "alice"}).status_code == 401
        assert browser.post("/login", json={"password": "s3cret1234"}).status_code == 401
        assert browser.post("/login", json={"username": None, "password": None}).status_code == 401

    def test_malformed_json_fails_authentication(self, browser: BrowserSession) -> None:
        token = browser.csrf_token()
        resp = browser.client.post(
            "/login",
            content=b"{not json",
            headers={CSRF_HEADER: token, "Content-Type": "application/json"},
        )
        assert resp.status_code == 401
        assert resp.json()["title"] == "Unauthorized"

    def test_non_object_body_fails_authentication(self, browser: BrowserSession) -> None:
        assert browser.post("/login", json=["alice", "s3cret1234"]).status_code == 401
        assert browser.post("/login", json={"username": 1, "password": 2}).status_code == 401

    def test_disabled_account_cannot_log_in(self, browser: BrowserSession) -> None:
        user_id = browser.register("alice", "s3cret1234").json()["id"]
        browser.client.app.state.user_store.set_enabled(user_id, False)
        resp = browser.login("alice", "s3cret1234")
        assert resp.status_code == 401
        assert resp.json() == browser.login("mallory", "s3cret1234").json()

    def test_disabling_account_ends_existing_session(self, browser: BrowserSession) -> None:
        user_id = browser.signup_and_login("alice", "s3cret1234")
        assert browser.client.get("/users/me").status_code == 200
        app_state = browser.client.app.state
        app_state.user_store.set_enabled(user_id, False)
        assert browser.client.get("/users/me").status_code == 401
        assert browser.post("/articles", json={"title": "t", "body": "b"}).status_code == 401
        assert app_state.session_store.count() == 0

    def test_login_without_csrf_header_is_forbidden(self, browser: BrowserSession) -> None:
        browser.register("alice", "s3cret1234")
        resp = browser.client.post("/login", json={"username": "alice", "password": "s3cret1234"})
        assert resp.status_code == 403
        body = resp.json()
        assert body["title"] == "Forbidden"
        assert body["status"] == 403
        assert resp.cookies.get(SESSION_COOKIE) is None

    def test_login_without_csrf_cookie_is_forbidden(self, browser: BrowserSession) -> None:
        browser.register("alice", "s3cret1234")
        token = browser.csrf_token()
        resp = TestClient(app).post(
            "/login",
            json={"username": "alice", "password": "s3cret1234"},
            headers={CSRF_HEADER: token},
        )
        assert resp.status_code == 403


class TestLogout:
    def test_logout_invalidates_session(self, browser: BrowserSession) -> None:
        browser.signup_and_login("alice", "s3cret1234")
        session_id = browser.client.cookies.get(SESSION_COOKIE)

        resp = browser.logout()
        assert resp.status_code == 200
        assert resp.content == b""

        replay = TestClient(app).get("/users/me", headers={"Cookie": f"{SESSION_COOKIE}={session_id}"})
        assert replay.status_code == 401

    def test_logout_expires_both_cookies(self, browser: BrowserSession) -> None:
        browser.signup_and_login("alice", "s3cret1234")
        resp = browser.logout()
        headers = _set_cookie_headers(resp)
        for name in (SESSION_COOKIE, CSRF_COOKIE):
            header = next(h for h in headers if h.startswith(f"{name}="))
            assert "max-age=0" in header.lower()
        assert browser.client.cookies.get(SESSION_COOKIE) is None
        assert browser.client.cookies.get(CSRF_COOKIE) is None

    def test_next_request_after_logout_gets_a_new_token(self, browser: BrowserSession) -> None:
        browser.signup_and_login("alice", "s3cret1234")
        old_token = browser.client.cookies.get(CSRF_COOKIE)
        browser.logout()
        resp = browser.client.get("/csrf-cookie")
        new_token = resp.cookies.get(CSRF_COOKIE)
        assert new_token and new_token != old_token

    def test_logout_requires_authentication(self, browser: BrowserSession) -> None:
        resp = browser.logout()
        assert resp.status_code == 401
        assert resp.json()["title"] == "Unauthorized"

    def test_logout_requires_csrf(self, browser: BrowserSession) -> None:
        browser.signup_and_login("alice", "s3cret1234")
        resp = browser.client.post("/logout")
        assert resp.status_code == 403
        assert browser.client.get("/users/me").status_code == 200
