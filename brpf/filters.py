"""Server-side table helpers: pagination, multi-value filters, date ranges, sorting.

List endpoints receive the table state of the client (page, page size, column
filters, sort) as query parameters and translate it to SQLAlchemy criteria
with the helpers below.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import DateTime, false, or_, select
from sqlalchemy.orm import Query, Session, aliased

from brpf.models import User

NON_ASSIGNE = "Non assigné"
NON_MODIFIE = "Non modifié"

MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class Page:
    items: List[Any]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    def meta(self, pages_key: str = "pages") -> dict[str, int]:
        return {"page": self.page, "limit": self.limit, "total": self.total, pages_key: self.pages}


def paginate(query: Query, page: int = 1, limit: int = 20) -> Page:
    page = max(1, int(page))
    limit = min(max(1, int(limit)), MAX_PAGE_SIZE)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return Page(items=items, total=total, page=page, limit=limit)


def split_values(values: Optional[Iterable[str]]) -> List[str]:
    """Flatten repeated and comma separated query values, dropping blanks."""

    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    flattened: List[str] = []
    for raw in values:
        for part in str(raw).split(","):
            part = part.strip()
            if part:
                flattened.append(part)
    return flattened


def blank_to_none(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Form submissions send ``""`` for untouched inputs; store them as NULL."""

    return {key: (None if isinstance(value, str) and not value.strip() else value) for key, value in payload.items()}


def contains_any(term: Optional[str], *columns: Any):
    term = (term or "").strip()
    if not term:
        return None
    pattern = f"%{term}%"
    return or_(*(column.ilike(pattern) for column in columns))


def user_ids_matching(db: Session, names: Sequence[str]) -> List[str]:
    """Resolve displayed names ("grade prenom nom" or "prenom nom") to user ids."""

    wanted = {name.strip().lower() for name in names if name.strip()}
    if not wanted:
        return []
    return [
        user.id
        for user in db.query(User).all()
        if user.full_name.lower() in wanted or user.short_name.lower() in wanted
    ]


def user_filter(db: Session, column: Any, values: Optional[Iterable[str]], sentinel: str = NON_ASSIGNE):
    """Criterion for a multi-select on a user column; ``sentinel`` selects NULL."""

    selected = split_values(values)
    if not selected:
        return None
    conditions = []
    if sentinel in selected:
        conditions.append(column.is_(None))
    ids = user_ids_matching(db, [value for value in selected if value != sentinel])
    if ids:
        conditions.append(column.in_(ids))
    if not conditions:
        return false()
    return or_(*conditions)


def values_filter(column: Any, values: Optional[Iterable[str]], null_sentinel: Optional[str] = None):
    selected = split_values(values)
    if not selected:
        return None
    conditions = []
    if null_sentinel and null_sentinel in selected:
        conditions.append(column.is_(None))
        selected = [value for value in selected if value != null_sentinel]
    if selected:
        conditions.append(column.in_(selected))
    return or_(*conditions)


def date_range(column: Any, debut: Optional[date], fin: Optional[date]) -> list:
    """Inclusive day-level bounds for ``column`` between ``debut`` and ``fin``."""

    criteria = []
    is_datetime = isinstance(getattr(column, "type", None), DateTime)
    if debut is not None:
        criteria.append(column >= (datetime.combine(debut, time.min) if is_datetime else debut))
    if fin is not None:
        criteria.append(column <= (datetime.combine(fin, time.max) if is_datetime else fin))
    return criteria


def apply(query: Query, *criteria: Any) -> Query:
    """Add every criterion that is not ``None``; lists are expanded."""

    for criterion in criteria:
        if criterion is None:
            continue
        if isinstance(criterion, list):
            for item in criterion:
                query = query.filter(item)
        else:
            query = query.filter(criterion)
    return query


def ordered(query: Query, expression: Any, sort_order: Optional[str]) -> Query:
    if (sort_order or "").lower() == "asc":
        return query.order_by(expression.asc())
    return query.order_by(expression.desc())


def ordered_by_user(query: Query, foreign_key: Any, sort_order: Optional[str]) -> Query:
    """Sort on the surname of the user referenced by ``foreign_key``."""

    person = aliased(User)
    query = query.outerjoin(person, foreign_key == person.id)
    return ordered(query, person.nom, sort_order)


def user_facet(db: Session, foreign_key: Any) -> List[str]:
    """Display names of every user referenced by ``foreign_key``, for filter menus."""

    referenced = select(foreign_key).where(foreign_key.isnot(None)).distinct()
    return sorted({user.full_name for user in db.query(User).filter(User.id.in_(referenced)).all()})


__all__ = [
    "MAX_PAGE_SIZE",
    "NON_ASSIGNE",
    "NON_MODIFIE",
    "Page",
    "apply",
    "blank_to_none",
    "contains_any",
    "date_range",
    "ordered",
    "ordered_by_user",
    "paginate",
    "split_values",
    "user_facet",
    "user_filter",
    "user_ids_matching",
    "values_filter",
]
