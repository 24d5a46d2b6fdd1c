"""Photo uploads for member portraits.

Files live under ``MEDIA_DIR/<owner>/`` next to a ``<handle>.thumb.png``
thumbnail; both URLs are stable. The main one goes into ``picture_url``.
"""

from __future__ import annotations

import io
import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError

log = logging.getLogger(__name__)

# Maximum upload size: 10 MB.
MAX_PHOTO_BYTES = 10 * 1024 * 1024

THUMB_SIZE = (200, 200)

_FORMAT_TO_EXT = {
    "JPEG": ".jpg",
    "PNG": ".png",
    "GIF": ".gif",
    "WEBP": ".webp",
}


class PhotoError(ValueError):
    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


def media_root() -> Path:
    configured = os.environ.get("MEDIA_DIR", "")
    if configured:
        return Path(configured)
    return Path(__file__).resolve().parent / "media"


def owner_dir_name(owner_id: int | None) -> str:
    return str(owner_id) if owner_id is not None else "sample"


def public_url(owner_id: int | None, filename: str) -> str:
    return f"/media/{owner_dir_name(owner_id)}/{filename}"


def _generate_thumbnail(img: Image.Image, thumb_path: Path) -> None:
    """Write a PNG thumbnail, keeping transparency."""
    if img.mode not in ("RGBA", "RGB"):
        img = img.convert("RGBA")
    img.thumbnail(THUMB_SIZE)
    img.save(thumb_path, format="PNG")


@dataclass(frozen=True)
class StoredPhoto:
    url: str
    # None when the thumbnail could not be written.
    thumbnail_url: str | None


def save_photo(owner_id: int | None, filename: str, data: bytes) -> StoredPhoto:
    """Store an uploaded image and its 200x200 PNG thumbnail."""

    if not data:
        raise PhotoError("Uploaded file is empty")
    if len(data) > MAX_PHOTO_BYTES:
        raise PhotoError(
            f"File too large ({len(data):,} bytes). Max: {MAX_PHOTO_BYTES:,} bytes.",
            status_code=413,
        )

    try:
        with Image.open(io.BytesIO(data)) as unchecked:
            unchecked.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise PhotoError("Uploaded file is not a valid image") from e

    target_dir = media_root() / owner_dir_name(owner_id)
    handle = uuid.uuid4().hex
    thumb_name: str | None = f"{handle}.thumb.png"

    # verify() leaves the image unusable; reopen for real work.
    with Image.open(io.BytesIO(data)) as img:
        ext = _FORMAT_TO_EXT.get(img.format or "")
        if not ext:
            raise PhotoError(
                f"Unsupported image type. Allowed: {', '.join(sorted(_FORMAT_TO_EXT))}"
            )

        target_dir.mkdir(parents=True, exist_ok=True)
        name = f"{handle}{ext}"
        (target_dir / name).write_bytes(data)

        try:
            _generate_thumbnail(img, target_dir / thumb_name)
        except OSError as e:
            log.warning("Thumbnail generation failed for %s: %s", name, e)
            thumb_name = None

    log.info("Photo %s stored for owner %s (%d bytes, from %s)", name, owner_id, len(data), filename)
    return StoredPhoto(
        url=public_url(owner_id, name),
        thumbnail_url=public_url(owner_id, thumb_name) if thumb_name else None,
    )


def resolve_photo_path(owner: str, filename: str) -> Path | None:
    """Map a ``/media/<owner>/<filename>`` request onto disk, refusing traversal."""
    if "/" in filename or "\\" in filename or filename.startswith("."):
        return None
    if "/" in owner or "\\" in owner or owner.startswith("."):
        return None
    path = media_root() / owner / filename
    if not path.is_file():
        return None
    return path
