"""Billable diligences a convention may cover."""
from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from brpf import serializers
from brpf.audit import log_action
from brpf.errors import NotFoundError
from brpf.models import Diligence, User, get_db
from brpf.security import get_current_user

router = APIRouter(prefix="/api/diligences", tags=["diligences"])


class DiligenceRequest(BaseModel):
    nom: str = Field(..., min_length=1)
    details: str = Field(..., min_length=1)
    type_tarification: Literal["FORFAITAIRE", "DEMI_JOURNEE"]
    active: Optional[bool] = None


def _serialize_diligence(diligence: Diligence) -> dict:
    data = serializers.columns(diligence)
    data["cree_par"] = serializers.user_summary(diligence.cree_par)
    data["modifie_par"] = serializers.user_summary(diligence.modifie_par)
    return data


def _get_diligence(db: Session, diligence_id: str) -> Diligence:
    diligence = db.get(Diligence, diligence_id)
    if diligence is None:
        raise NotFoundError("Diligence non trouvée")
    return diligence


@router.get("")
def list_diligences(
    active: Optional[bool] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> list:
    query = db.query(Diligence)
    if active is not None:
        query = query.filter(Diligence.active.is_(active))
    return [_serialize_diligence(item) for item in query.order_by(Diligence.nom).all()]


@router.get("/stats")
def diligence_stats(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    total = db.query(func.count(Diligence.id)).scalar() or 0
    active = db.query(func.count(Diligence.id)).filter(Diligence.active.is_(True)).scalar() or 0

    def tarification(kind: str) -> int:
        return db.query(func.count(Diligence.id)).filter(Diligence.type_tarification == kind).scalar() or 0

    return {
        "total_diligences": total,
        "active_diligences": active,
        "inactive_diligences": total - active,
        "forfaitaires": tarification("FORFAITAIRE"),
        "demi_journee": tarification("DEMI_JOURNEE"),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_diligence(
    payload: DiligenceRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    diligence = Diligence(
        nom=payload.nom,
        details=payload.details,
        type_tarification=payload.type_tarification,
        active=True if payload.active is None else payload.active,
        cree_par_id=user.id,
    )
    db.add(diligence)
    db.commit()
    log_action(db, user.id, "CREATE_DILIGENCE", diligence.nom, "Diligence", diligence.id)
    return _serialize_diligence(diligence)


@router.put("/{diligence_id}")
def update_diligence(
    diligence_id: str,
    payload: DiligenceRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    diligence = _get_diligence(db, diligence_id)
    diligence.nom = payload.nom
    diligence.details = payload.details
    diligence.type_tarification = payload.type_tarification
    if payload.active is not None:
        diligence.active = payload.active
    diligence.modifie_par_id = user.id
    db.commit()
    db.refresh(diligence)
    log_action(db, user.id, "UPDATE_DILIGENCE", diligence.nom, "Diligence", diligence.id)
    return _serialize_diligence(diligence)


@router.delete("/{diligence_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_diligence(
    diligence_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    diligence = _get_diligence(db, diligence_id)
    db.delete(diligence)
    db.commit()
    log_action(db, user.id, "DELETE_DILIGENCE", diligence.nom, "Diligence", diligence_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
