from __future__ import annotations

from fastapi import HTTPException

from .models import Member
from .store import MemberStore


def _resolve_member(store: MemberStore, member_id: str, owner_id: int | None) -> Member:
    """Load a member visible to ``owner_id`` or raise 404."""

    member = store.get(member_id, owner_id)
    if member is None:
        raise HTTPException(status_code=404, detail=f"member not found: {member_id}")
    return member
