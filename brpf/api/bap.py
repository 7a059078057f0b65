"""BAP mailboxes (bureaux d'accompagnement des personnels), administrators only."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from brpf import filters, serializers
from brpf.audit import log_action
from brpf.errors import ConflictError, NotFoundError
from brpf.models import Bap, Dossier, User, get_db
from brpf.models.cases import demande_baps
from brpf.security import get_current_user, require_admin

router = APIRouter(prefix="/api/bap", tags=["bap"])


class BapRequest(BaseModel):
    nom_bap: str = Field(..., min_length=1)
    mail1: Optional[str] = None
    mail2: Optional[str] = None
    mail3: Optional[str] = None
    mail4: Optional[str] = None


def _get_bap(db: Session, bap_id: str) -> Bap:
    bap = db.get(Bap, bap_id)
    if bap is None:
        raise NotFoundError("BAP non trouvé")
    return bap


def _usage_counts(db: Session) -> tuple[dict[str, int], dict[str, int]]:
    dossiers = dict(
        db.query(Dossier.bap_id, func.count(Dossier.id)).filter(Dossier.bap_id.isnot(None)).group_by(Dossier.bap_id).all()
    )
    demandes = dict(
        db.query(demande_baps.c.bap_id, func.count(demande_baps.c.demande_id)).group_by(demande_baps.c.bap_id).all()
    )
    return dossiers, demandes


def _clean(payload: BapRequest) -> dict:
    data = filters.blank_to_none(payload.model_dump())
    data["nom_bap"] = payload.nom_bap.strip()
    return data


@router.get("/options")
def list_options(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    return [{"id": bap.id, "nom_bap": bap.nom_bap} for bap in db.query(Bap).order_by(Bap.nom_bap).all()]


@router.get("")
def list_baps(db: Session = Depends(get_db), _: User = Depends(require_admin)) -> dict:
    dossiers, demandes = _usage_counts(db)
    items = []
    for bap in db.query(Bap).order_by(Bap.nom_bap).all():
        data = serializers.columns(bap)
        data["dossiers_count"] = dossiers.get(bap.id, 0)
        data["demandes_count"] = demandes.get(bap.id, 0)
        data["total_usage"] = data["dossiers_count"] + data["demandes_count"]
        items.append(data)
    return {"baps": items}


@router.get("/stats")
def bap_stats(db: Session = Depends(get_db), _: User = Depends(require_admin)) -> dict:
    total = db.query(func.count(Bap.id)).scalar() or 0
    dossiers, demandes = _usage_counts(db)
    used = len(set(dossiers) | set(demandes))
    return {"total_bap": total, "used_bap": used, "unused_bap": total - used}


@router.post("", status_code=201)
def create_bap(payload: BapRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    data = _clean(payload)
    if db.query(Bap).filter(Bap.nom_bap == data["nom_bap"]).first():
        raise ConflictError("Un BAP avec ce nom existe déjà")
    bap = Bap(**data)
    db.add(bap)
    db.commit()
    log_action(db, admin.id, "CREATE_BAP", f'Créé le BAP "{bap.nom_bap}"', "Bap", bap.id)
    return serializers.columns(bap)


@router.put("/{bap_id}")
def update_bap(
    bap_id: str,
    payload: BapRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> dict:
    bap = _get_bap(db, bap_id)
    data = _clean(payload)
    if db.query(Bap).filter(Bap.nom_bap == data["nom_bap"], Bap.id != bap.id).first():
        raise ConflictError("Un BAP avec ce nom existe déjà")
    for key, value in data.items():
        setattr(bap, key, value)
    db.commit()
    log_action(db, admin.id, "UPDATE_BAP", f'Modifié le BAP "{bap.nom_bap}"', "Bap", bap.id)
    return serializers.columns(bap)


@router.delete("/{bap_id}")
def delete_bap(bap_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    bap = _get_bap(db, bap_id)
    dossiers, demandes = _usage_counts(db)
    if dossiers.get(bap.id) or demandes.get(bap.id):
        raise ConflictError("Impossible de supprimer ce BAP car il est utilisé dans des dossiers ou des demandes")
    db.delete(bap)
    db.commit()
    log_action(db, admin.id, "DELETE_BAP", f'Supprimé le BAP "{bap.nom_bap}"', "Bap", bap_id)
    return {"message": "BAP supprimé avec succès"}
