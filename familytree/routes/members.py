"""Member CRUD routes.

Reads are scoped to the signed-in user, or to the ownerless sample set for
anonymous visitors. Writes require a session. Every write answers with a
freshly fetched snapshot of the owner's members; clients replace their copy
wholesale instead of patching it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile
from pydantic import BaseModel

from ..auth import get_owner_id, require_account
from ..models import Member
from ..photos import PhotoError, save_photo
from ..projection import search_members
from ..resolve import _resolve_member
from ..serialize import _member_to_public
from ..store import MemberStore
from ..validation import MemberValidationError, validate_member

log = logging.getLogger(__name__)

router = APIRouter(tags=["members"])

store = MemberStore()


class MemberIn(BaseModel):
    name: Optional[str] = None
    gender: Optional[str] = None
    birth_date: Optional[str] = None
    is_deceased: bool = False
    death_date: Optional[str] = None
    relation: Optional[str] = None
    parent_id: Optional[str] = None
    spouse_id: Optional[str] = None
    is_head: bool = False
    marriage_date: Optional[str] = None
    profession: Optional[str] = None
    residence: Optional[str] = None
    hometown: Optional[str] = None
    ethnic: Optional[str] = None
    nationality: Optional[str] = None
    note: Optional[str] = None
    photo_url: Optional[str] = None
    picture_url: Optional[str] = None


def _validated(body: MemberIn, *, member_id: str | None, owner_id: int | None) -> Member:
    try:
        return validate_member(body.model_dump(), member_id=member_id, owner_id=owner_id)
    except MemberValidationError as e:
        raise HTTPException(status_code=422, detail={"field": e.field, "message": e.message}) from e


def _snapshot(owner_id: int | None) -> list[dict[str, Any]]:
    return [_member_to_public(m) for m in store.list(owner_id)]


@router.get("/members")
def list_members(
    request: Request,
    q: Optional[str] = Query(default=None, max_length=200),
) -> dict[str, Any]:
    """List the current owner's members, optionally filtered by name, relation or profession."""
    owner_id = get_owner_id(request)
    members = search_members(store.list(owner_id), q)
    return {
        "owner": owner_id,
        "total": len(members),
        "results": [_member_to_public(m) for m in members],
    }


@router.get("/members/{member_id}")
def get_member(member_id: str, request: Request) -> dict[str, Any]:
    member = _resolve_member(store, member_id, get_owner_id(request))
    return _member_to_public(member)


@router.post("/members")
def create_member(body: MemberIn, request: Request) -> dict[str, Any]:
    owner_id = require_account(request).owner_id
    member = _validated(body, member_id=None, owner_id=owner_id)

    created = store.insert(owner_id, member)

    return {
        "ok": True,
        "member": _member_to_public(created),
        "message": f"{created.name} has been added to your family tree.",
        "members": _snapshot(owner_id),
    }


@router.put("/members/{member_id}")
def update_member(member_id: str, body: MemberIn, request: Request) -> dict[str, Any]:
    owner_id = require_account(request).owner_id
    member = _validated(body, member_id=member_id, owner_id=owner_id)

    updated = store.update(member_id, owner_id, member)
    if updated is None:
        raise HTTPException(status_code=404, detail=f"member not found: {member_id}")

    return {
        "ok": True,
        "member": _member_to_public(updated),
        "message": f"{updated.name} has been updated successfully.",
        "members": _snapshot(owner_id),
    }


@router.delete("/members/{member_id}")
def delete_member(member_id: str, request: Request) -> dict[str, Any]:
    owner_id = require_account(request).owner_id

    if not store.delete(member_id, owner_id):
        raise HTTPException(status_code=404, detail=f"member not found: {member_id}")

    return {
        "ok": True,
        "message": "Family member has been removed.",
        "members": _snapshot(owner_id),
    }


@router.post("/members/photo")
async def upload_member_photo(request: Request, file: UploadFile = File(...)) -> dict[str, Any]:
    """Store a portrait and return the URL to put in ``picture_url``."""
    owner_id = require_account(request).owner_id
    filename = (file.filename or "upload").strip()
    data = await file.read()

    try:
        photo = save_photo(owner_id, filename, data)
    except PhotoError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e

    return {"ok": True, "url": photo.url, "thumbnail_url": photo.thumbnail_url}
