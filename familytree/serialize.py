from __future__ import annotations

from typing import Any

from .models import Member, format_relation, relation_badge
from .projection import Family, HeadFamily, Projection
from .util import _compact_json


def _member_to_public(m: Member) -> dict[str, Any]:
    icon, tone = relation_badge(m.relation)
    out = {
        "id": m.id,
        "name": m.name,
        "gender": m.gender,
        "birth_date": m.birth_date,
        "is_deceased": m.is_deceased,
        # Death date only means something for deceased members.
        "death_date": m.death_date if m.is_deceased else None,
        "relation": format_relation(m.relation),
        "relation_labels": list(m.relation),
        "parent_id": m.parent_id,
        "spouse_id": m.spouse_id,
        "is_head": m.heads_family,
        "marriage_date": m.marriage_date,
        "profession": m.profession,
        "residence": m.residence,
        "hometown": m.hometown,
        "ethnic": m.ethnic,
        "nationality": m.nationality,
        "note": m.note,
        "photo_url": m.portrait_url,
        "badge": {"icon": icon, "tone": tone},
    }
    return _compact_json(out) or {}


def _family_to_public(f: Family) -> dict[str, Any]:
    return {
        "parent": _member_to_public(f.parent),
        "children": [_member_to_public(c) for c in f.children],
    }


def _head_family_to_public(hf: HeadFamily) -> dict[str, Any]:
    return {
        "head": _member_to_public(hf.head),
        "spouse": _member_to_public(hf.spouse) if hf.spouse else None,
        "children": [_member_to_public(c) for c in hf.children],
    }


def _projection_to_public(p: Projection) -> dict[str, Any]:
    return {
        "heads": [_member_to_public(m) for m in p.heads],
        "couples": [[_member_to_public(a), _member_to_public(b)] for a, b in p.couples],
        "families": [_family_to_public(f) for f in p.families],
        "unaffiliated": [_member_to_public(m) for m in p.unaffiliated],
    }
