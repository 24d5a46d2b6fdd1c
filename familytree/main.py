from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .db import ensure_schema
from .middleware import AuthMiddleware
from .routes import auth as auth_routes
from .routes import media as media_routes
from .routes import members as members_routes
from .routes import tree as tree_routes
from .store import StoreError

log = logging.getLogger(__name__)


def _configure_logging() -> None:
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


_configure_logging()


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    if os.environ.get("FAMILYTREE_SKIP_SCHEMA", "").lower() not in ("1", "true", "yes"):
        ensure_schema()
    yield


app = FastAPI(title="Family Tree API", version="0.1.0", lifespan=_lifespan)
app.add_middleware(AuthMiddleware)

app.include_router(auth_routes.router)
app.include_router(members_routes.router)
app.include_router(tree_routes.router)
app.include_router(media_routes.router)


@app.exception_handler(StoreError)
async def _store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    # Local state is untouched: writes only answer with a snapshot on success.
    log.warning("Store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse({"detail": str(exc)}, status_code=503)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
