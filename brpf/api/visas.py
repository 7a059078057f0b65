"""Legal visas quoted in decisions.

Visas referenced by past decisions must stay readable, so deleting a visa only
deactivates it and removes it from the selectable options.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from brpf import serializers
from brpf.audit import log_action
from brpf.errors import ConflictError, NotFoundError
from brpf.models import Decision, User, Visa, get_db
from brpf.security import get_current_user, require_admin

router = APIRouter(prefix="/api/visa", tags=["visas"])


class VisaRequest(BaseModel):
    type_visa: str = Field(..., min_length=1)
    texte_visa: str = Field(..., min_length=1)
    active: Optional[bool] = None


def _get_visa(db: Session, visa_id: str) -> Visa:
    visa = db.get(Visa, visa_id)
    if visa is None:
        raise NotFoundError("Visa non trouvé")
    return visa


def _usage(db: Session, visa_id: str) -> int:
    return db.query(func.count(Decision.id)).filter(Decision.visa_id == visa_id).scalar() or 0


@router.get("")
def list_visas(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    return [serializers.columns(visa) for visa in db.query(Visa).order_by(Visa.type_visa).all()]


@router.get("/options")
def list_options(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    visas = db.query(Visa).filter(Visa.active.is_(True)).order_by(Visa.type_visa).all()
    return [{"id": visa.id, "type_visa": visa.type_visa, "texte_visa": visa.texte_visa} for visa in visas]


@router.get("/stats")
def visa_stats(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    return {
        "total_visas": db.query(func.count(Visa.id)).scalar() or 0,
        "visas_actifs": db.query(func.count(Visa.id)).filter(Visa.active.is_(True)).scalar() or 0,
    }


@router.get("/{visa_id}/usage")
def visa_usage(visa_id: str, db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    _get_visa(db, visa_id)
    return {"usage": _usage(db, visa_id)}


@router.post("", status_code=201)
def create_visa(payload: VisaRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    if db.query(Visa).filter(Visa.type_visa == payload.type_visa).first():
        raise ConflictError("Ce type de visa existe déjà")
    visa = Visa(
        type_visa=payload.type_visa,
        texte_visa=payload.texte_visa,
        active=True if payload.active is None else payload.active,
    )
    db.add(visa)
    db.commit()
    log_action(db, admin.id, "CREATE_VISA", visa.type_visa, "Visa", visa.id)
    return serializers.columns(visa)


@router.put("/{visa_id}")
def update_visa(
    visa_id: str,
    payload: VisaRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> dict:
    visa = _get_visa(db, visa_id)
    if db.query(Visa).filter(Visa.type_visa == payload.type_visa, Visa.id != visa.id).first():
        raise ConflictError("Ce type de visa existe déjà")
    visa.type_visa = payload.type_visa
    visa.texte_visa = payload.texte_visa
    if payload.active is not None:
        visa.active = payload.active
    db.commit()
    log_action(db, admin.id, "UPDATE_VISA", visa.type_visa, "Visa", visa.id)
    return serializers.columns(visa)


@router.delete("/{visa_id}")
def deactivate_visa(visa_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    visa = _get_visa(db, visa_id)
    visa.active = False
    db.commit()
    log_action(db, admin.id, "DEACTIVATE_VISA", visa.type_visa, "Visa", visa.id)
    return {"message": "Visa désactivé avec succès"}
