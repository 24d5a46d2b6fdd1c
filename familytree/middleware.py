"""Session and CSRF middleware.

Every request leaves here with ``request.state.viewer`` set. A session cookie
that no longer opens (expired, signed with a rotated secret, mangled) is
dropped and the request carries on as anonymous, so the member and tree
views still answer with the sample set. Requests that need an account get a
401 instead.

State-changing requests from a signed-in viewer must echo the CSRF cookie in
the ``x-csrf-token`` header.
"""

from __future__ import annotations

import logging
import re
import secrets

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .auth import ANONYMOUS, SESSION_COOKIE, Session, attach_session, detach_session, open_session

log = logging.getLogger(__name__)

# Reachable by anyone with any method; the session is never refreshed here.
_OPEN_PATHS = re.compile(
    r"^/(health|auth/(login|signup|logout)|media/.*|docs|openapi\.json|favicon\.ico)$"
)

# Views an anonymous visitor may read; they see the ownerless sample rows.
_SAMPLE_READ_PATHS = re.compile(r"^/(members(/[^/]+)?|tree/.+)$")

CSRF_COOKIE = "family_csrf"
CSRF_HEADER = "x-csrf-token"
_READ_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def _is_public(path: str) -> bool:
    return _OPEN_PATHS.match(path) is not None


def _allows_anonymous(method: str, path: str) -> bool:
    return method in _READ_METHODS and _SAMPLE_READ_PATHS.match(path) is not None


def _csrf_ok(request: Request) -> bool:
    if request.method in _READ_METHODS:
        return True
    sent = request.headers.get(CSRF_HEADER, "")
    expected = request.cookies.get(CSRF_COOKIE, "")
    return bool(sent) and secrets.compare_digest(sent.encode(), expected.encode())


def _issue_csrf_cookie(request: Request, response: Response) -> None:
    if request.cookies.get(CSRF_COOKIE):
        return
    # Readable by scripts so they can echo it back.
    response.set_cookie(key=CSRF_COOKIE, value=secrets.token_hex(32), httponly=False, samesite="lax", path="/")


def _settle_session(response: Response, session: Session | None, stale: bool) -> None:
    if stale:
        detach_session(response)
    elif session is not None and session.needs_refresh():
        attach_session(response, session.user_id, session.username)


class AuthMiddleware(BaseHTTPMiddleware):
    """Resolves the viewer, guards account-only routes and checks CSRF."""

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        token = request.cookies.get(SESSION_COOKIE)
        session = open_session(token)
        stale = bool(token) and session is None
        request.state.viewer = session.viewer if session else ANONYMOUS

        if _is_public(path):
            response = await call_next(request)
            _issue_csrf_cookie(request, response)
            return response

        if session is None and not _allows_anonymous(request.method, path):
            detail = "Session expired, sign in again" if stale else "Not authenticated"
            denied = JSONResponse({"detail": detail}, status_code=401)
            _settle_session(denied, None, stale)
            return denied

        if session is not None and not _csrf_ok(request):
            log.info("CSRF check failed for user %s on %s %s", session.user_id, request.method, path)
            return JSONResponse({"detail": "CSRF token mismatch"}, status_code=403)

        if stale:
            log.debug("Serving %s anonymously after dropping a stale session cookie", path)

        response = await call_next(request)
        _issue_csrf_cookie(request, response)
        _settle_session(response, session, stale)
        return response
