"""Serve uploaded member photos."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from ..photos import resolve_photo_path

router = APIRouter()


@router.get("/media/{owner}/{filename}")
def serve_photo(owner: str, filename: str) -> FileResponse:
    path = resolve_photo_path(owner, filename)
    if path is None:
        raise HTTPException(status_code=404, detail="photo not found")
    return FileResponse(
        path,
        headers={"Cache-Control": "public, max-age=86400"},
    )
