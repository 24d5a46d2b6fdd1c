"""Grouped views over the current owner's members.

Each request loads a fresh snapshot and recomputes the grouping; nothing is
cached between requests.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from fastapi import APIRouter, HTTPException, Query, Request

from ..auth import get_owner_id
from ..projection import (
    grandparent_families,
    head_families,
    organize_head_family,
    project_members,
)
from ..serialize import _head_family_to_public, _projection_to_public
from ..store import MemberStore

router = APIRouter(prefix="/tree", tags=["tree"])

store = MemberStore()


@router.get("/connected")
def connected_tree(request: Request) -> dict[str, Any]:
    """Heads, couples, parent/child families and members with no known relation."""
    members = store.list(get_owner_id(request))
    payload = _projection_to_public(project_members(members))
    payload["total"] = len(members)
    return payload


@router.get("/heads")
def list_head_families(
    request: Request,
    gender: Optional[Literal["male", "female"]] = Query(default=None),
) -> dict[str, Any]:
    members = store.list(get_owner_id(request))
    families = head_families(members, gender=gender)
    return {"results": [_head_family_to_public(hf) for hf in families]}


@router.get("/heads/{member_id}")
def get_head_family(member_id: str, request: Request) -> dict[str, Any]:
    members = store.list(get_owner_id(request))
    hf = organize_head_family(members, member_id)
    if hf is None:
        raise HTTPException(status_code=404, detail=f"member not found: {member_id}")
    return _head_family_to_public(hf)


@router.get("/grandparents")
def list_grandparents(request: Request) -> dict[str, Any]:
    members = store.list(get_owner_id(request))
    return {"results": [_head_family_to_public(hf) for hf in grandparent_families(members)]}
