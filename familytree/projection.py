"""Group a flat member snapshot into display views.

Grouping is role-based tagging, not exclusive membership: one member can be
a head, one side of a couple and a parent at the same time. Unresolvable
references are skipped, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .graph import RelationIndex, build_relation_index
from .models import Member, has_label


@dataclass(frozen=True)
class Family:
    parent: Member
    children: tuple[Member, ...]


@dataclass(frozen=True)
class HeadFamily:
    head: Member
    spouse: Optional[Member]
    children: tuple[Member, ...]


@dataclass(frozen=True)
class Projection:
    heads: tuple[Member, ...]
    couples: tuple[tuple[Member, Member], ...]
    families: tuple[Family, ...]
    unaffiliated: tuple[Member, ...]


def project_members(members: Sequence[Member]) -> Projection:
    idx = build_relation_index(members)

    heads: list[Member] = []
    couples: list[tuple[Member, Member]] = []
    seen_pairs: set[tuple[str, str]] = set()
    unaffiliated: list[Member] = []

    for m in members:
        is_head = m.heads_family
        if is_head:
            heads.append(m)

        if m.id is not None and m.spouse_id and m.spouse_id in idx.by_id:
            a, b = sorted((m.id, m.spouse_id))
            if (a, b) not in seen_pairs:
                seen_pairs.add((a, b))
                couples.append((idx.by_id[a], idx.by_id[b]))

        if not is_head and (m.id is None or not idx.has_role(m.id)):
            unaffiliated.append(m)

    # idx.children preserves first-child order.
    families = [
        Family(parent=idx.by_id[pid], children=tuple(idx.children_of(pid)))
        for pid in idx.children
    ]

    return Projection(
        heads=tuple(heads),
        couples=tuple(couples),
        families=tuple(families),
        unaffiliated=tuple(unaffiliated),
    )


def _head_family(idx: RelationIndex, head: Member) -> HeadFamily:
    if head.id is None:
        return HeadFamily(head=head, spouse=None, children=())
    return HeadFamily(
        head=head,
        spouse=idx.spouse_of(head.id),
        children=tuple(idx.children_of(head.id)),
    )


def organize_head_family(members: Sequence[Member], head_id: str) -> HeadFamily | None:
    """Head, spouse (either side of the edge) and children of ``head_id``."""
    idx = build_relation_index(members)
    head = idx.by_id.get(head_id)
    if head is None:
        return None
    return _head_family(idx, head)


def head_families(members: Sequence[Member], *, gender: str | None = None) -> list[HeadFamily]:
    idx = build_relation_index(members)
    out: list[HeadFamily] = []
    for m in members:
        if not m.heads_family:
            continue
        if gender and m.gender != gender:
            continue
        out.append(_head_family(idx, m))
    return out


def grandparent_families(members: Sequence[Member]) -> list[HeadFamily]:
    """Members labelled ``father`` or ``mother``, with their spouse and children."""
    idx = build_relation_index(members)
    return [
        _head_family(idx, m)
        for m in members
        if has_label(m.relation, "father") or has_label(m.relation, "mother")
    ]


def search_members(members: Sequence[Member], term: str | None) -> list[Member]:
    t = (term or "").strip().lower()
    if not t:
        return list(members)

    def _matches(m: Member) -> bool:
        if t in m.name.lower():
            return True
        if any(t in label for label in m.relation):
            return True
        return bool(m.profession) and t in m.profession.lower()

    return [m for m in members if _matches(m)]
