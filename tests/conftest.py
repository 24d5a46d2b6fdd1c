from __future__ import annotations

from datetime import date
from typing import Any, Callable

import pytest

from familytree.models import Member, parse_relation


def make_member(id: str | None, **kw: Any) -> Member:
    kw.setdefault("name", f"Member {id}")
    kw.setdefault("birth_date", date(1970, 1, 1))
    kw.setdefault("relation", ())
    if isinstance(kw.get("relation"), str):
        kw["relation"] = parse_relation(kw["relation"])
    return Member(id=id, **kw)


@pytest.fixture()
def member() -> Callable[..., Member]:
    return make_member
