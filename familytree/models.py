"""Data shapes for family members.

A member's ``relation`` is an ordered set of labels ("head,father,husband").
All checks against it use "contains label" semantics, never equality.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from typing import Any, Iterable, Optional

HEAD_LABEL = "head"
DEFAULT_RELATION = (HEAD_LABEL,)
GENDERS = frozenset({"male", "female"})
DEFAULT_GENDER = "male"

# Optional free-text fields; blank values are stored as NULL.
OPTIONAL_TEXT_FIELDS = (
    "profession",
    "residence",
    "hometown",
    "ethnic",
    "nationality",
    "note",
    "photo_url",
    "picture_url",
)


def parse_relation(value: str | Iterable[str] | None) -> tuple[str, ...]:
    """Split a comma-joined relation string into lowercase labels.

    Order of first appearance is kept; duplicates and blanks are dropped.
    """

    if value is None:
        return ()
    parts = value.split(",") if isinstance(value, str) else list(value)
    out: list[str] = []
    for p in parts:
        label = str(p).strip().lower()
        if label and label not in out:
            out.append(label)
    return tuple(out)


def format_relation(labels: Iterable[str]) -> str | None:
    joined = ",".join(labels)
    return joined or None


def has_label(labels: Iterable[str], label: str) -> bool:
    return label in labels


def is_head_member(*, is_head: bool | None, labels: Iterable[str]) -> bool:
    """Either signal suffices: the explicit flag or a ``head`` label."""
    return bool(is_head) or has_label(labels, HEAD_LABEL)


def relation_badge(labels: Iterable[str]) -> tuple[str, str]:
    """Return ``(icon, tone)`` used by clients to decorate member cards."""
    labels = tuple(labels)
    if has_label(labels, HEAD_LABEL):
        return "crown", "primary"
    if has_label(labels, "spouse"):
        return "heart", "pink"
    if has_label(labels, "son") or has_label(labels, "daughter"):
        return "user", "blue"
    return "user", "gray"


@dataclass(frozen=True)
class Member:
    name: str
    birth_date: date
    id: Optional[str] = None
    owner_id: Optional[int] = None
    gender: str = DEFAULT_GENDER
    is_deceased: bool = False
    death_date: Optional[date] = None
    relation: tuple[str, ...] = DEFAULT_RELATION
    parent_id: Optional[str] = None
    spouse_id: Optional[str] = None
    is_head: bool = False
    marriage_date: Optional[date] = None
    profession: Optional[str] = None
    residence: Optional[str] = None
    hometown: Optional[str] = None
    ethnic: Optional[str] = None
    nationality: Optional[str] = None
    note: Optional[str] = None
    photo_url: Optional[str] = None
    picture_url: Optional[str] = None

    @property
    def heads_family(self) -> bool:
        return is_head_member(is_head=self.is_head, labels=self.relation)

    @property
    def portrait_url(self) -> str | None:
        return self.picture_url or self.photo_url

    def record(self) -> dict[str, Any]:
        """Column -> value mapping for persistence (``id`` and ``owner_id`` excluded)."""
        out: dict[str, Any] = {}
        for f in fields(self):
            if f.name in ("id", "owner_id"):
                continue
            value = getattr(self, f.name)
            if f.name == "relation":
                value = format_relation(value)
            out[f.name] = value
        return out


MEMBER_COLUMNS = tuple(f.name for f in fields(Member))
