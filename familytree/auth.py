"""Sessions and the viewer whose members a request sees.

A request is made either by a signed-in account, whose members are its own,
or anonymously, in which case it sees the ownerless sample set. Sessions are
HS256 JWTs in an HttpOnly cookie; an unreadable cookie simply means
"anonymous", never an error here. Deciding which paths need an account is
the middleware's job.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import HTTPException, Request, Response
from passlib.context import CryptContext

log = logging.getLogger(__name__)

_pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")

_PASSWORD_MIN_LENGTH = 8

# (check, message) pairs; the first failing rule is reported.
_PASSWORD_RULES = (
    (lambda pw: len(pw) >= _PASSWORD_MIN_LENGTH, f"Password must be at least {_PASSWORD_MIN_LENGTH} characters."),
    (lambda pw: any(c.isupper() for c in pw), "Password needs an uppercase letter."),
    (lambda pw: any(c.islower() for c in pw), "Password needs a lowercase letter."),
    (lambda pw: any(c.isdigit() for c in pw), "Password needs a digit."),
)

SESSION_COOKIE = "family_session"
SESSION_LIFETIME_SECS = 7 * 24 * 3600
_JWT_ALGORITHM = "HS256"


def password_problem(plain: str) -> str | None:
    for check, message in _PASSWORD_RULES:
        if not check(plain):
            return message
    return None


def hash_password(plain: str) -> str:
    return _pwd_ctx.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return _pwd_ctx.verify(plain, hashed)


def _secret() -> str:
    # The fallback only suits local development.
    return os.environ.get("JWT_SECRET") or "dev-secret-change-me"


@dataclass(frozen=True)
class Viewer:
    """Who is looking at the tree."""

    user_id: Optional[int] = None
    username: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    @property
    def owner_id(self) -> int | None:
        # Anonymous viewers map onto the ownerless sample rows.
        return self.user_id


ANONYMOUS = Viewer()


@dataclass(frozen=True)
class Session:
    user_id: int
    username: str
    issued_at: int
    expires_at: int

    @property
    def viewer(self) -> Viewer:
        return Viewer(user_id=self.user_id, username=self.username)

    def needs_refresh(self, now: float | None = None) -> bool:
        """Past half of its lifetime, a session is re-issued on the next response."""
        lifetime = self.expires_at - self.issued_at
        if lifetime <= 0:
            return False
        t = time.time() if now is None else now
        return t - self.issued_at > lifetime / 2


def issue_session_token(user_id: int, username: str, *, now: float | None = None) -> str:
    issued = int(time.time() if now is None else now)
    payload = {
        "sub": str(user_id),
        "username": username,
        "iat": issued,
        "exp": issued + SESSION_LIFETIME_SECS,
    }
    return jwt.encode(payload, _secret(), algorithm=_JWT_ALGORITHM)


def open_session(token: str | None) -> Session | None:
    """Return the session a cookie carries, or ``None`` if it is missing, expired or forged."""
    if not token:
        return None
    try:
        claims = jwt.decode(token, _secret(), algorithms=[_JWT_ALGORITHM])
        return Session(
            user_id=int(claims["sub"]),
            username=str(claims.get("username", "")),
            issued_at=int(claims.get("iat", 0)),
            expires_at=int(claims.get("exp", 0)),
        )
    except jwt.ExpiredSignatureError:
        log.debug("Session cookie expired")
    except (jwt.PyJWTError, KeyError, ValueError) as e:
        log.info("Ignoring unreadable session cookie: %s", e)
    return None


def attach_session(response: Response, user_id: int, username: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=issue_session_token(user_id, username),
        httponly=True,
        samesite="lax",
        max_age=SESSION_LIFETIME_SECS,
        path="/",
    )


def detach_session(response: Response) -> None:
    response.delete_cookie(key=SESSION_COOKIE, path="/")


def current_viewer(request: Request) -> Viewer:
    return getattr(request.state, "viewer", None) or ANONYMOUS


def require_account(request: Request) -> Viewer:
    """The signed-in viewer; 401 for anonymous requests."""
    viewer = current_viewer(request)
    if viewer.is_anonymous:
        raise HTTPException(status_code=401, detail="Sign in to change your family tree")
    return viewer


def get_owner_id(request: Request) -> int | None:
    return current_viewer(request).owner_id
