from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .models import Member


@dataclass
class RelationIndex:
    """Adjacency over one snapshot of members.

    Only resolvable edges are recorded; a ``spouse_id``/``parent_id`` that
    points outside the snapshot is left out.
    """

    by_id: dict[str, Member] = field(default_factory=dict)
    # Symmetric: both sides of a marriage list each other, in discovery order.
    spouses: dict[str, list[str]] = field(default_factory=dict)
    # parent id -> child ids in input order.
    children: dict[str, list[str]] = field(default_factory=dict)
    # child id -> parent id.
    parent_of: dict[str, str] = field(default_factory=dict)

    def spouse_of(self, member_id: str) -> Member | None:
        for sid in self.spouses.get(member_id, []):
            return self.by_id[sid]
        return None

    def children_of(self, member_id: str) -> list[Member]:
        return [self.by_id[cid] for cid in self.children.get(member_id, [])]

    def has_role(self, member_id: str) -> bool:
        return (
            bool(self.spouses.get(member_id))
            or member_id in self.parent_of
            or bool(self.children.get(member_id))
        )


def _link(out: dict[str, list[str]], a: str, b: str) -> None:
    peers = out.setdefault(a, [])
    if b not in peers:
        peers.append(b)


def build_relation_index(members: Sequence[Member]) -> RelationIndex:
    idx = RelationIndex()

    # First pass: id lookup. Later duplicates never shadow the first record.
    for m in members:
        if m.id is not None and m.id not in idx.by_id:
            idx.by_id[m.id] = m

    # Second pass: resolvable edges.
    for m in members:
        if m.id is None:
            continue
        if m.spouse_id and m.spouse_id in idx.by_id:
            _link(idx.spouses, m.id, m.spouse_id)
            _link(idx.spouses, m.spouse_id, m.id)
        if m.parent_id and m.parent_id in idx.by_id:
            idx.parent_of[m.id] = m.parent_id
            idx.children.setdefault(m.parent_id, []).append(m.id)

    return idx
