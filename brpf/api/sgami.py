"""SGAMI paying offices."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from brpf import filters, serializers
from brpf.audit import log_action
from brpf.errors import ConflictError, NotFoundError
from brpf.models import Dossier, Paiement, Sgami, User, get_db
from brpf.security import get_current_user, require_admin

router = APIRouter(prefix="/api/sgami", tags=["sgami"])


class SgamiRequest(BaseModel):
    nom: str = Field(..., min_length=1)
    format_court_nommage: Optional[str] = None
    texte_convention: Optional[str] = None
    intitule_fiche_reglement: Optional[str] = None


def _get_sgami(db: Session, sgami_id: str) -> Sgami:
    sgami = db.get(Sgami, sgami_id)
    if sgami is None:
        raise NotFoundError("SGAMI introuvable")
    return sgami


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count > 1 else ''}"


@router.get("")
def list_sgami(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    return [serializers.columns(sgami) for sgami in db.query(Sgami).order_by(Sgami.nom).all()]


@router.get("/stats")
def sgami_stats(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    total = db.query(func.count(Sgami.id)).scalar() or 0
    used = db.query(func.count(func.distinct(Dossier.sgami_id))).filter(Dossier.sgami_id.isnot(None)).scalar() or 0
    return {"total_sgami": total, "sgami_utilises": used, "sgami_non_utilises": total - used}


@router.post("", status_code=201)
def create_sgami(payload: SgamiRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    data = filters.blank_to_none(payload.model_dump())
    data["nom"] = payload.nom.strip()
    if db.query(Sgami).filter(Sgami.nom == data["nom"]).first():
        raise ConflictError("Un SGAMI avec ce nom existe déjà")
    sgami = Sgami(**data)
    db.add(sgami)
    db.commit()
    log_action(db, admin.id, "CREATE_SGAMI", sgami.nom, "Sgami", sgami.id)
    return serializers.columns(sgami)


@router.put("/{sgami_id}")
def update_sgami(
    sgami_id: str,
    payload: SgamiRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> dict:
    sgami = _get_sgami(db, sgami_id)
    data = filters.blank_to_none(payload.model_dump())
    data["nom"] = payload.nom.strip()
    if db.query(Sgami).filter(Sgami.nom == data["nom"], Sgami.id != sgami.id).first():
        raise ConflictError("Un SGAMI avec ce nom existe déjà")
    for key, value in data.items():
        setattr(sgami, key, value)
    db.commit()
    log_action(db, admin.id, "UPDATE_SGAMI", sgami.nom, "Sgami", sgami.id)
    return serializers.columns(sgami)


@router.delete("/{sgami_id}")
def delete_sgami(sgami_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    sgami = _get_sgami(db, sgami_id)
    dossiers = db.query(func.count(Dossier.id)).filter(Dossier.sgami_id == sgami.id).scalar() or 0
    if dossiers:
        raise ConflictError(
            f"Impossible de supprimer ce SGAMI car il est associé à {_plural(dossiers, 'dossier')}"
        )
    paiements = db.query(func.count(Paiement.id)).filter(Paiement.sgami_id == sgami.id).scalar() or 0
    if paiements:
        raise ConflictError(
            f"Impossible de supprimer ce SGAMI car il est associé à {_plural(paiements, 'paiement')}"
        )
    db.delete(sgami)
    db.commit()
    log_action(db, admin.id, "DELETE_SGAMI", sgami.nom, "Sgami", sgami_id)
    return {"message": "SGAMI supprimé avec succès"}
