from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path

import psycopg

log = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


def get_database_url() -> str:
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set")
    return url


@contextmanager
def db_conn() -> psycopg.Connection:
    """Yield a short-lived database connection.

    The connection is closed on exit; callers commit their own writes.
    """
    with psycopg.connect(get_database_url()) as conn:
        yield conn


def ensure_schema() -> None:
    """Create the tables if they do not exist yet."""
    sql = _SCHEMA_PATH.read_text(encoding="utf-8")
    with db_conn() as conn:
        conn.execute(sql)
        conn.commit()
    log.info("Schema ensured from %s", _SCHEMA_PATH.name)
