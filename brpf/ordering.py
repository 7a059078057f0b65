"""Display order maintenance for reference tables with a unique ``ordre`` column."""
from __future__ import annotations

from typing import List, Type

from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from brpf.errors import NotFoundError

# Temporary positions start above any realistic list size.
TEMPORARY_OFFSET = 10000


class OrderEntry(BaseModel):
    id: str
    ordre: int = Field(..., ge=1)


class ReorderRequest(BaseModel):
    items: List[OrderEntry]


def next_ordre(db: Session, model: Type) -> int:
    current = db.query(func.max(model.ordre)).scalar()
    return (current or 0) + 1


def reorder(db: Session, model: Type, entries: List[OrderEntry]) -> None:
    """Apply the requested order in two phases so the unique index never collides."""

    records = {}
    for entry in entries:
        record = db.get(model, entry.id)
        if record is None:
            raise NotFoundError("Élément non trouvé", details={"id": entry.id})
        records[entry.id] = record
    try:
        for index, entry in enumerate(entries):
            records[entry.id].ordre = TEMPORARY_OFFSET + index
        db.flush()
        for entry in entries:
            records[entry.id].ordre = entry.ordre
        db.commit()
    except Exception:
        db.rollback()
        raise


__all__ = ["OrderEntry", "ReorderRequest", "TEMPORARY_OFFSET", "next_ordre", "reorder"]
