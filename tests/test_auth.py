"""Who sees which members: sessions, viewers and the account routes."""

from __future__ import annotations

import time
from types import SimpleNamespace
from typing import Iterator
from unittest.mock import patch

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

import familytree.routes.auth as auth_routes
from familytree.auth import (
    ANONYMOUS,
    SESSION_COOKIE,
    SESSION_LIFETIME_SECS,
    Session,
    Viewer,
    current_viewer,
    get_owner_id,
    hash_password,
    issue_session_token,
    open_session,
    password_problem,
    require_account,
)
from familytree.main import app
from familytree.routes.auth import LoginThrottle


def _request(viewer: Viewer | None = None) -> SimpleNamespace:
    state = SimpleNamespace()
    if viewer is not None:
        state.viewer = viewer
    return SimpleNamespace(state=state)


def _session_cookie_cleared(resp) -> bool:
    return any(
        h.startswith(f"{SESSION_COOKIE}=") and "Max-Age=0" in h
        for h in resp.headers.get_list("set-cookie")
    )


# ---------------------------------------------------------------------------
# Viewer / owner resolution
# ---------------------------------------------------------------------------


class TestViewer:
    def test_anonymous_sees_sample_set(self) -> None:
        assert ANONYMOUS.is_anonymous
        assert ANONYMOUS.owner_id is None
        assert get_owner_id(_request()) is None

    def test_account_owns_its_members(self) -> None:
        req = _request(Viewer(user_id=7, username="jan"))
        assert current_viewer(req).username == "jan"
        assert get_owner_id(req) == 7

    def test_require_account_rejects_anonymous(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            require_account(_request())
        assert exc_info.value.status_code == 401

    def test_require_account_returns_viewer(self) -> None:
        viewer = Viewer(user_id=3, username="ana")
        assert require_account(_request(viewer)) is viewer


# ---------------------------------------------------------------------------
# Session cookies
# ---------------------------------------------------------------------------


class TestSessions:
    @patch.dict("os.environ", {"JWT_SECRET": "test-secret-key"})
    def test_token_opens_to_its_viewer(self) -> None:
        session = open_session(issue_session_token(42, "jan"))
        assert session is not None
        assert session.viewer == Viewer(user_id=42, username="jan")
        assert session.expires_at - session.issued_at == SESSION_LIFETIME_SECS

    @patch.dict("os.environ", {"JWT_SECRET": "test-secret-key"})
    def test_expired_token_opens_to_nothing(self) -> None:
        stale = issue_session_token(42, "jan", now=time.time() - SESSION_LIFETIME_SECS - 60)
        assert open_session(stale) is None

    def test_rotated_secret_opens_to_nothing(self) -> None:
        with patch.dict("os.environ", {"JWT_SECRET": "old-secret"}):
            token = issue_session_token(42, "jan")
        with patch.dict("os.environ", {"JWT_SECRET": "new-secret"}):
            assert open_session(token) is None

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
    def test_garbage_opens_to_nothing(self, token) -> None:
        assert open_session(token) is None

    def test_refresh_after_half_lifetime(self) -> None:
        session = Session(user_id=1, username="x", issued_at=1000, expires_at=1100)
        assert not session.needs_refresh(now=1040)
        assert session.needs_refresh(now=1060)
        assert not Session(user_id=1, username="x", issued_at=0, expires_at=0).needs_refresh(now=10)


# ---------------------------------------------------------------------------
# Password policy and sign-in throttling
# ---------------------------------------------------------------------------


class TestPasswordPolicy:
    def test_acceptable(self) -> None:
        assert password_problem("Secret1x") is None

    @pytest.mark.parametrize(
        "password, fragment",
        [("Ab1", "8 characters"), ("abcdefg1", "uppercase"), ("ABCDEFG1", "lowercase"), ("Abcdefgh", "digit")],
    )
    def test_first_failing_rule_reported(self, password, fragment) -> None:
        assert fragment in password_problem(password)


class TestLoginThrottle:
    def test_blocks_after_limit_and_expires(self) -> None:
        now = [0.0]
        throttle = LoginThrottle(limit=2, window=60, clock=lambda: now[0])
        throttle.fail("1.2.3.4")
        assert not throttle.blocked("1.2.3.4")
        throttle.fail("1.2.3.4")
        assert throttle.blocked("1.2.3.4")
        assert not throttle.blocked("5.6.7.8")

        now[0] = 61.0
        assert not throttle.blocked("1.2.3.4")

    def test_reset_on_success(self) -> None:
        throttle = LoginThrottle(limit=1)
        throttle.fail("ip")
        throttle.reset("ip")
        assert not throttle.blocked("ip")


# ---------------------------------------------------------------------------
# Account routes (account queries replaced by in-memory doubles)
# ---------------------------------------------------------------------------


_PASSWORD = "Secret1x"


@pytest.fixture(scope="module")
def password_hash() -> str:
    return hash_password(_PASSWORD)


@pytest.fixture()
def accounts(monkeypatch: pytest.MonkeyPatch, password_hash: str) -> dict[str, tuple[int, str, str, str]]:
    monkeypatch.setenv("JWT_SECRET", "test-secret-key")
    known = {"jan": (7, "jan", "Jan", password_hash)}
    counts = {7: 3}

    def create(username, display_name, pw_hash):
        if username in known:
            return None
        user_id = 100 + len(known)
        known[username] = (user_id, username, display_name, pw_hash)
        return user_id

    def summary(user_id):
        for uid, _, display_name, _ in known.values():
            if uid == user_id:
                return display_name, counts.get(uid, 0)
        return None

    monkeypatch.setattr(auth_routes, "_find_account", known.get)
    monkeypatch.setattr(auth_routes, "_create_account", create)
    monkeypatch.setattr(auth_routes, "_account_summary", summary)
    monkeypatch.setattr(auth_routes, "_throttle", LoginThrottle(limit=2))
    return known


@pytest.fixture()
def client() -> Iterator[TestClient]:
    yield TestClient(app)


class TestSignup:
    def test_new_account_is_signed_in(self, client: TestClient, accounts) -> None:
        resp = client.post("/auth/signup", json={"username": " Ana ", "password": _PASSWORD})
        assert resp.status_code == 200
        user = resp.json()["user"]
        assert user["username"] == "ana"
        assert user["display_name"] == "ana"
        assert user["member_count"] == 0

        session = open_session(resp.cookies.get(SESSION_COOKIE))
        assert session is not None and session.user_id == user["id"]

    def test_taken_username_conflicts(self, client: TestClient, accounts) -> None:
        resp = client.post("/auth/signup", json={"username": "JAN", "password": _PASSWORD})
        assert resp.status_code == 409

    def test_weak_password_creates_nothing(self, client: TestClient, accounts) -> None:
        resp = client.post("/auth/signup", json={"username": "bo", "password": "short"})
        assert resp.status_code == 400
        assert "bo" not in accounts


class TestLogin:
    def test_good_credentials(self, client: TestClient, accounts) -> None:
        resp = client.post("/auth/login", json={"username": "Jan", "password": _PASSWORD})
        assert resp.status_code == 200
        assert resp.json()["user"] == {"id": 7, "username": "jan", "display_name": "Jan", "member_count": 3}
        assert open_session(resp.cookies.get(SESSION_COOKIE)).user_id == 7

    def test_repeated_failures_are_throttled(self, client: TestClient, accounts) -> None:
        bad = {"username": "jan", "password": "Wrong123"}
        assert client.post("/auth/login", json=bad).status_code == 401
        assert client.post("/auth/login", json={"username": "nobody", "password": "x"}).status_code == 401
        assert client.post("/auth/login", json={"username": "jan", "password": _PASSWORD}).status_code == 429

    def test_logout_drops_cookie(self, client: TestClient, accounts) -> None:
        resp = client.get("/auth/logout")
        assert resp.json() == {"ok": True}
        assert _session_cookie_cleared(resp)


class TestMe:
    def test_reports_owned_member_count(self, client: TestClient, accounts) -> None:
        client.cookies.set(SESSION_COOKIE, issue_session_token(7, "jan"))
        body = client.get("/auth/me").json()
        assert body["user"]["member_count"] == 3
        assert body["user"]["display_name"] == "Jan"

    def test_anonymous_is_not_an_account(self, client: TestClient, accounts) -> None:
        assert client.get("/auth/me").status_code == 401

    def test_stale_cookie_is_cleared(self, client: TestClient, accounts) -> None:
        client.cookies.set(SESSION_COOKIE, "stale-token")
        resp = client.get("/auth/me")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Session expired, sign in again"
        assert _session_cookie_cleared(resp)

    def test_deleted_account(self, client: TestClient, accounts) -> None:
        client.cookies.set(SESSION_COOKIE, issue_session_token(999, "ghost"))
        assert client.get("/auth/me").status_code == 401
