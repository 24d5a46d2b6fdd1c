"""Member persistence over the ``family_members`` table.

Rows are scoped by owner: an authenticated user's id, or ``NULL`` for the
ownerless sample set shown to anonymous visitors. Every public call opens its
own connection; there is no caching.
"""

from __future__ import annotations

import logging
from typing import Any

import psycopg

from .db import db_conn
from .models import MEMBER_COLUMNS, Member, parse_relation

log = logging.getLogger(__name__)

_SELECT_COLUMNS = ", ".join(MEMBER_COLUMNS)
_WRITE_COLUMNS = tuple(c for c in MEMBER_COLUMNS if c not in ("id", "owner_id"))


class StoreError(RuntimeError):
    """A backend failure while reading or writing members."""


def _owner_clause(owner_id: int | None) -> tuple[str, tuple[Any, ...]]:
    if owner_id is None:
        return "owner_id IS NULL", ()
    return "owner_id = %s", (owner_id,)


def member_from_row(r: tuple[Any, ...]) -> Member:
    values = dict(zip(MEMBER_COLUMNS, r))
    values["relation"] = parse_relation(values.get("relation"))
    values["is_head"] = bool(values.get("is_head"))
    values["is_deceased"] = bool(values.get("is_deceased"))
    values["gender"] = values.get("gender") or "male"
    return Member(**values)


class MemberStore:
    def list(self, owner_id: int | None) -> list[Member]:
        where, params = _owner_clause(owner_id)
        try:
            with db_conn() as conn:
                rows = conn.execute(
                    f"""
                    SELECT {_SELECT_COLUMNS}
                    FROM family_members
                    WHERE {where}
                    ORDER BY created_at, id
                    """.strip(),
                    params,
                ).fetchall()
        except psycopg.Error as e:
            log.error("Failed to list members for owner %s: %s", owner_id, e)
            raise StoreError("Failed to load family members.") from e
        return [member_from_row(tuple(r)) for r in rows]

    def get(self, member_id: str, owner_id: int | None) -> Member | None:
        where, params = _owner_clause(owner_id)
        try:
            with db_conn() as conn:
                row = conn.execute(
                    f"SELECT {_SELECT_COLUMNS} FROM family_members WHERE id = %s AND {where}",
                    (member_id, *params),
                ).fetchone()
        except psycopg.Error as e:
            log.error("Failed to load member %s: %s", member_id, e)
            raise StoreError("Failed to load family member.") from e
        return member_from_row(tuple(row)) if row else None

    def insert(self, owner_id: int | None, member: Member) -> Member:
        record = member.record()
        cols = ", ".join(("owner_id", *_WRITE_COLUMNS))
        placeholders = ", ".join(["%s"] * (len(_WRITE_COLUMNS) + 1))
        try:
            with db_conn() as conn:
                row = conn.execute(
                    f"""
                    INSERT INTO family_members ({cols})
                    VALUES ({placeholders})
                    RETURNING {_SELECT_COLUMNS}
                    """.strip(),
                    (owner_id, *(record[c] for c in _WRITE_COLUMNS)),
                ).fetchone()
                conn.commit()
        except psycopg.Error as e:
            log.error("Failed to insert member %r: %s", member.name, e)
            raise StoreError("Failed to save family member.") from e
        created = member_from_row(tuple(row))
        log.info("Member %s created for owner %s", created.id, owner_id)
        return created

    def update(self, member_id: str, owner_id: int | None, member: Member) -> Member | None:
        """Overwrite all fields of an existing member. ``None`` if not found."""
        record = member.record()
        assignments = ", ".join(f"{c} = %s" for c in _WRITE_COLUMNS)
        where, params = _owner_clause(owner_id)
        try:
            with db_conn() as conn:
                row = conn.execute(
                    f"""
                    UPDATE family_members
                    SET {assignments}, updated_at = now()
                    WHERE id = %s AND {where}
                    RETURNING {_SELECT_COLUMNS}
                    """.strip(),
                    (*(record[c] for c in _WRITE_COLUMNS), member_id, *params),
                ).fetchone()
                conn.commit()
        except psycopg.Error as e:
            log.error("Failed to update member %s: %s", member_id, e)
            raise StoreError("Failed to save family member.") from e
        if not row:
            return None
        log.info("Member %s updated", member_id)
        return member_from_row(tuple(row))

    def delete(self, member_id: str, owner_id: int | None) -> bool:
        where, params = _owner_clause(owner_id)
        try:
            with db_conn() as conn:
                result = conn.execute(
                    f"DELETE FROM family_members WHERE id = %s AND {where}",
                    (member_id, *params),
                )
                conn.commit()
        except psycopg.Error as e:
            log.error("Failed to delete member %s: %s", member_id, e)
            raise StoreError("Failed to delete member.") from e
        deleted = result.rowcount > 0
        if deleted:
            log.info("Member %s deleted", member_id)
        return deleted
