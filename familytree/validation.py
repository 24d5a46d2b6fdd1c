"""Rules a member record must pass before it is handed to the store."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping

from .models import (
    DEFAULT_GENDER,
    DEFAULT_RELATION,
    GENDERS,
    HEAD_LABEL,
    OPTIONAL_TEXT_FIELDS,
    Member,
    has_label,
    parse_relation,
)
from .util import _blank_to_none


class MemberValidationError(ValueError):
    """Raised when a submitted member is missing or has an invalid field."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


def _parse_date(value: Any, field: str, label: str) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        pass
    # Full timestamps ("2001-05-04T00:00:00Z") keep their date part.
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s).date()
    except ValueError:
        raise MemberValidationError(field, f"{label} is not a valid date.") from None


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def validate_member(data: Mapping[str, Any], *, member_id: str | None = None, owner_id: int | None = None) -> Member:
    """Validate and canonicalize a submitted record.

    Returns a :class:`Member`; raises :class:`MemberValidationError` naming the
    first offending field. Nothing is persisted here.
    """

    name = _blank_to_none(data.get("name"))
    if not name:
        raise MemberValidationError("name", "Name is required.")

    birth_date = _parse_date(data.get("birth_date"), "birth_date", "Birth date")
    if birth_date is None:
        raise MemberValidationError("birth_date", "Birth date is required.")

    is_deceased = _truthy(data.get("is_deceased"))
    death_date = None
    if is_deceased:
        death_date = _parse_date(data.get("death_date"), "death_date", "Death date")
        if death_date is None:
            raise MemberValidationError("death_date", "Death date is required for a deceased member.")
        if death_date < birth_date:
            raise MemberValidationError("death_date", "Death date cannot be before birth date.")

    marriage_date = _parse_date(data.get("marriage_date"), "marriage_date", "Marriage date")

    gender = (_blank_to_none(data.get("gender")) or DEFAULT_GENDER).lower()
    if gender not in GENDERS:
        raise MemberValidationError("gender", f"Gender must be one of: {', '.join(sorted(GENDERS))}.")

    labels = parse_relation(data.get("relation")) or DEFAULT_RELATION

    # The label is authoritative: an explicit head flag gains the label too.
    is_head = _truthy(data.get("is_head")) or has_label(labels, HEAD_LABEL)
    if is_head and not has_label(labels, HEAD_LABEL):
        labels = (HEAD_LABEL, *labels)

    optional = {f: _blank_to_none(data.get(f)) for f in OPTIONAL_TEXT_FIELDS}

    return Member(
        id=member_id,
        owner_id=owner_id,
        name=name,
        gender=gender,
        birth_date=birth_date,
        is_deceased=is_deceased,
        death_date=death_date,
        relation=labels,
        parent_id=_blank_to_none(data.get("parent_id")),
        spouse_id=_blank_to_none(data.get("spouse_id")),
        is_head=is_head,
        marriage_date=marriage_date,
        **optional,
    )
