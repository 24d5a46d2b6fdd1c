"""Account routes.

Signing up or in attaches a session, after which the member and tree views
switch from the sample set to the account's own members. Signing out simply
drops the cookie; the next request is anonymous again.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import psycopg
from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from ..auth import (
    attach_session,
    detach_session,
    hash_password,
    password_problem,
    require_account,
    verify_password,
)
from ..db import db_conn
from ..store import StoreError

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginThrottle:
    """Counts failed sign-ins per client and blocks after ``limit`` in ``window`` seconds."""

    def __init__(self, limit: int = 5, window: float = 300.0, clock=time.monotonic) -> None:
        self.limit = limit
        self.window = window
        self._clock = clock
        self._failures: dict[str, list[float]] = {}

    def blocked(self, client: str) -> bool:
        cutoff = self._clock() - self.window
        recent = [t for t in self._failures.get(client, ()) if t > cutoff]
        if recent:
            self._failures[client] = recent
        else:
            self._failures.pop(client, None)
        return len(recent) >= self.limit

    def fail(self, client: str) -> None:
        self._failures.setdefault(client, []).append(self._clock())

    def reset(self, client: str) -> None:
        self._failures.pop(client, None)


_throttle = LoginThrottle()


class Credentials(BaseModel):
    username: str
    password: str


class SignupRequest(Credentials):
    display_name: Optional[str] = None


def _username(raw: str) -> str:
    return raw.strip().lower()


def _account_out(user_id: int, username: str, display_name: str, member_count: int) -> dict[str, Any]:
    return {
        "id": user_id,
        "username": username,
        "display_name": display_name,
        "member_count": member_count,
    }


def _find_account(username: str) -> tuple[int, str, str, str] | None:
    try:
        with db_conn() as conn:
            row = conn.execute(
                "SELECT id, username, display_name, password_hash FROM users WHERE username = %s",
                (username,),
            ).fetchone()
    except psycopg.Error as e:
        log.error("Account lookup failed for %s: %s", username, e)
        raise StoreError("Accounts are unavailable right now.") from e
    return tuple(row) if row else None


def _create_account(username: str, display_name: str, password_hash: str) -> int | None:
    """Insert the account; ``None`` when the username is taken."""
    try:
        with db_conn() as conn:
            row = conn.execute(
                """
                INSERT INTO users (username, display_name, password_hash)
                VALUES (%s, %s, %s)
                ON CONFLICT (username) DO NOTHING
                RETURNING id
                """,
                (username, display_name, password_hash),
            ).fetchone()
            conn.commit()
    except psycopg.Error as e:
        log.error("Account creation failed for %s: %s", username, e)
        raise StoreError("Accounts are unavailable right now.") from e
    return row[0] if row else None


def _account_summary(user_id: int) -> tuple[str, int] | None:
    """Display name and number of owned members, or ``None`` if the account is gone."""
    try:
        with db_conn() as conn:
            row = conn.execute(
                """
                SELECT u.display_name, count(m.id)
                FROM users u
                LEFT JOIN family_members m ON m.owner_id = u.id
                WHERE u.id = %s
                GROUP BY u.display_name
                """,
                (user_id,),
            ).fetchone()
    except psycopg.Error as e:
        log.error("Account summary failed for %s: %s", user_id, e)
        raise StoreError("Accounts are unavailable right now.") from e
    return (row[0], int(row[1])) if row else None


@router.post("/signup")
def signup(body: SignupRequest, response: Response) -> dict[str, Any]:
    """Create an account with an empty tree and sign it in."""
    username = _username(body.username)
    if not username:
        raise HTTPException(status_code=400, detail="Username is required.")
    problem = password_problem(body.password)
    if problem:
        raise HTTPException(status_code=400, detail=problem)

    display_name = (body.display_name or "").strip() or username
    user_id = _create_account(username, display_name, hash_password(body.password))
    if user_id is None:
        raise HTTPException(status_code=409, detail="Username already taken")

    log.info("Account %s created for %s", user_id, username)
    attach_session(response, user_id, username)
    return {"ok": True, "user": _account_out(user_id, username, display_name, 0)}


@router.post("/login")
def login(body: Credentials, request: Request, response: Response) -> dict[str, Any]:
    client = request.client.host if request.client else "unknown"
    if _throttle.blocked(client):
        raise HTTPException(
            status_code=429,
            detail=f"Too many sign-in attempts. Try again in {int(_throttle.window // 60)} minutes.",
        )

    account = _find_account(_username(body.username))
    if account is None or not verify_password(body.password, account[3]):
        _throttle.fail(client)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    user_id, username, display_name, _ = account
    _throttle.reset(client)
    attach_session(response, user_id, username)

    summary = _account_summary(user_id)
    count = summary[1] if summary else 0
    return {"ok": True, "user": _account_out(user_id, username, display_name, count)}


@router.get("/logout")
def logout(response: Response) -> dict[str, Any]:
    detach_session(response)
    return {"ok": True}


@router.get("/me")
def me(request: Request) -> dict[str, Any]:
    """The signed-in account and how many members its tree holds."""
    viewer = require_account(request)
    summary = _account_summary(viewer.user_id)
    if summary is None:
        raise HTTPException(status_code=401, detail="Account no longer exists")
    display_name, count = summary
    return {"user": _account_out(viewer.user_id, viewer.username or "", display_name, count)}
