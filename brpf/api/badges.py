"""Coloured labels attached to dossiers and demandes."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from brpf import serializers
from brpf.audit import log_action
from brpf.errors import ConflictError, NotFoundError
from brpf.models import Badge, User, get_db
from brpf.models.cases import demande_badges, dossier_badges
from brpf.security import get_current_user

router = APIRouter(prefix="/api/badges", tags=["badges"])


class BadgeRequest(BaseModel):
    nom: str = Field(..., min_length=1)
    couleur: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")


def _get_badge(db: Session, badge_id: str) -> Badge:
    badge = db.get(Badge, badge_id)
    if badge is None:
        raise NotFoundError("Badge non trouvé")
    return badge


def _usage(db: Session, badge_id: str) -> int:
    dossiers = db.query(func.count()).select_from(dossier_badges).filter(dossier_badges.c.badge_id == badge_id).scalar()
    demandes = db.query(func.count()).select_from(demande_badges).filter(demande_badges.c.badge_id == badge_id).scalar()
    return (dossiers or 0) + (demandes or 0)


@router.get("")
def list_badges(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    return [serializers.columns(badge) for badge in db.query(Badge).order_by(Badge.nom).all()]


@router.post("", status_code=201)
def create_badge(payload: BadgeRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    nom = payload.nom.strip()
    if db.query(Badge).filter(Badge.nom == nom).first():
        raise ConflictError("Un badge avec ce nom existe déjà")
    badge = Badge(nom=nom, couleur=payload.couleur)
    db.add(badge)
    db.commit()
    log_action(db, user.id, "CREATE_BADGE", badge.nom, "Badge", badge.id)
    return serializers.columns(badge)


@router.put("/{badge_id}")
def update_badge(
    badge_id: str,
    payload: BadgeRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    badge = _get_badge(db, badge_id)
    nom = payload.nom.strip()
    if db.query(Badge).filter(Badge.nom == nom, Badge.id != badge.id).first():
        raise ConflictError("Un badge avec ce nom existe déjà")
    badge.nom = nom
    badge.couleur = payload.couleur
    db.commit()
    log_action(db, user.id, "UPDATE_BADGE", badge.nom, "Badge", badge.id)
    return serializers.columns(badge)


@router.delete("/{badge_id}")
def delete_badge(badge_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    badge = _get_badge(db, badge_id)
    used = _usage(db, badge.id)
    if used:
        raise ConflictError(f"Impossible de supprimer ce badge car il est utilisé {used} fois")
    db.delete(badge)
    db.commit()
    log_action(db, user.id, "DELETE_BADGE", badge.nom, "Badge", badge_id)
    return {"message": "Badge supprimé avec succès"}
