"""Read access to the audit journal."""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from brpf import filters, serializers
from brpf.models import Log, User, get_db
from brpf.security import require_admin

router = APIRouter(prefix="/api/logs", tags=["logs"], dependencies=[Depends(require_admin)])


def _serialize_log(entry: Log) -> dict:
    data = serializers.columns(entry)
    data["user"] = (
        {"nom": entry.user.nom, "prenom": entry.user.prenom, "identifiant": entry.user.identifiant}
        if entry.user
        else None
    )
    return data


@router.get("")
def list_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=filters.MAX_PAGE_SIZE),
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    entite: Optional[str] = None,
    date_debut: Optional[date] = None,
    date_fin: Optional[date] = None,
    db: Session = Depends(get_db),
) -> dict:
    query = filters.apply(
        db.query(Log),
        Log.user_id == user_id if user_id else None,
        Log.action == action if action else None,
        Log.entite == entite if entite else None,
        filters.date_range(Log.timestamp, date_debut, date_fin),
    )
    result = filters.paginate(query.order_by(Log.timestamp.desc()), page, limit)
    return {"logs": [_serialize_log(entry) for entry in result.items], "pagination": result.meta()}


@router.get("/actions")
def list_actions(db: Session = Depends(get_db)) -> list:
    return sorted(action for (action,) in db.query(Log.action).distinct().all())


@router.get("/users")
def list_log_users(db: Session = Depends(get_db)) -> list:
    users = db.query(User).filter(User.id.in_(select(Log.user_id).distinct())).order_by(User.nom).all()
    return [serializers.user_summary(user) for user in users]
