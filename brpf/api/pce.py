"""Budget imputation codes (PCE) used by paiements."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from brpf import serializers
from brpf.audit import log_action
from brpf.errors import ConflictError, NotFoundError
from brpf.models import Paiement, Pce, User, get_db
from brpf.ordering import ReorderRequest, next_ordre, reorder
from brpf.security import get_current_user, require_admin

router = APIRouter(prefix="/api/pce", tags=["pce"])


class PceRequest(BaseModel):
    pce_detaille: str = Field(..., min_length=1)
    pce_numerique: str = Field(..., min_length=1)
    code_marchandise: str = Field(..., min_length=1)


def _get_pce(db: Session, pce_id: str) -> Pce:
    pce = db.get(Pce, pce_id)
    if pce is None:
        raise NotFoundError("PCE non trouvé")
    return pce


def _usage(db: Session) -> dict[str, int]:
    rows = db.query(Paiement.pce_id, func.count(Paiement.id)).group_by(Paiement.pce_id).all()
    return {pce_id: count for pce_id, count in rows}


@router.get("")
def list_pce(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    usage = _usage(db)
    items = []
    for pce in db.query(Pce).order_by(Pce.ordre).all():
        data = serializers.columns(pce)
        data["nombre_paiements"] = usage.get(pce.id, 0)
        items.append(data)
    return items


@router.get("/options")
def list_options(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    return [
        {
            "id": pce.id,
            "label": f"{pce.pce_numerique} - {pce.pce_detaille}",
            "pce_numerique": pce.pce_numerique,
            "code_marchandise": pce.code_marchandise,
        }
        for pce in db.query(Pce).order_by(Pce.ordre).all()
    ]


@router.get("/stats")
def pce_stats(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    total = db.query(func.count(Pce.id)).scalar() or 0
    used = len(_usage(db))
    return {"total_pce": total, "utilises": used, "non_utilises": total - used}


@router.put("/reorder")
def reorder_pce(payload: ReorderRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    reorder(db, Pce, payload.items)
    log_action(db, admin.id, "REORDER_PCE", f"{len(payload.items)} PCE réordonnés", "Pce")
    return {"message": "Ordres mis à jour avec succès"}


@router.get("/{pce_id}")
def get_pce(pce_id: str, db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    return serializers.columns(_get_pce(db, pce_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_pce(payload: PceRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    if db.query(Pce).filter(Pce.pce_detaille == payload.pce_detaille).first():
        raise ConflictError("Un PCE avec cette description existe déjà")
    pce = Pce(ordre=next_ordre(db, Pce), **payload.model_dump())
    db.add(pce)
    db.commit()
    log_action(db, admin.id, "CREATE_PCE", pce.pce_detaille, "Pce", pce.id)
    return serializers.columns(pce)


@router.put("/{pce_id}")
def update_pce(
    pce_id: str,
    payload: PceRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> dict:
    pce = _get_pce(db, pce_id)
    duplicate = db.query(Pce).filter(Pce.pce_detaille == payload.pce_detaille, Pce.id != pce.id).first()
    if duplicate:
        raise ConflictError("Un PCE avec cette description existe déjà")
    for key, value in payload.model_dump().items():
        setattr(pce, key, value)
    db.commit()
    log_action(db, admin.id, "UPDATE_PCE", pce.pce_detaille, "Pce", pce.id)
    return serializers.columns(pce)


@router.delete("/{pce_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_pce(pce_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> Response:
    pce = _get_pce(db, pce_id)
    used = db.query(func.count(Paiement.id)).filter(Paiement.pce_id == pce.id).scalar() or 0
    if used:
        raise ConflictError(f"Impossible de supprimer ce PCE car il est utilisé par {used} paiement(s)")
    db.delete(pce)
    db.commit()
    log_action(db, admin.id, "DELETE_PCE", pce.pce_detaille, "Pce", pce_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
