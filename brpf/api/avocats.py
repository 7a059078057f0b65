"""Directory of avocats mandated under a convention."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from brpf import filters, serializers
from brpf.audit import log_action
from brpf.errors import ConflictError, NotFoundError
from brpf.models import Avocat, Convention, Paiement, User, get_db
from brpf.security import get_current_user

router = APIRouter(prefix="/api/avocats", tags=["avocats"])


class AvocatRequest(BaseModel):
    nom: str = Field(..., min_length=1)
    prenom: Optional[str] = None
    region: Optional[str] = None
    adresse_postale: Optional[str] = None
    telephone_public_1: Optional[str] = None
    telephone_public_2: Optional[str] = None
    telephone_prive: Optional[str] = None
    email: Optional[str] = None
    siret_ou_ridet: Optional[str] = None
    villes_intervention: List[str] = Field(default_factory=list)
    specialisation: Optional[str] = None
    notes: Optional[str] = None
    titulaire_compte_bancaire: Optional[str] = None
    code_etablissement: Optional[str] = Field(None, max_length=10)
    code_guichet: Optional[str] = Field(None, max_length=10)
    numero_compte: Optional[str] = Field(None, max_length=20)
    cle_rib: Optional[str] = Field(None, max_length=4)


def _get_avocat(db: Session, avocat_id: str) -> Avocat:
    avocat = db.get(Avocat, avocat_id)
    if avocat is None:
        raise NotFoundError("Avocat non trouvé")
    return avocat


def _clean(payload: AvocatRequest) -> dict:
    data = filters.blank_to_none(payload.model_dump())
    data["villes_intervention"] = [ville.strip() for ville in payload.villes_intervention if ville.strip()]
    return data


@router.get("")
def list_avocats(
    search: Optional[str] = None,
    active: Optional[bool] = Query(None),
    region: Optional[str] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> list:
    query = filters.apply(
        db.query(Avocat),
        filters.contains_any(search, Avocat.nom, Avocat.prenom, Avocat.email, Avocat.region),
        Avocat.active.is_(active) if active is not None else None,
        Avocat.region == region if region else None,
    )
    return [serializers.columns(avocat) for avocat in query.order_by(Avocat.nom, Avocat.prenom).all()]


@router.get("/{avocat_id}")
def get_avocat(avocat_id: str, db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    return serializers.columns(_get_avocat(db, avocat_id))


@router.post("", status_code=201)
def create_avocat(payload: AvocatRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    avocat = Avocat(**_clean(payload), cree_par_id=user.id)
    db.add(avocat)
    db.commit()
    log_action(db, user.id, "CREATE_AVOCAT", f"{avocat.prenom or ''} {avocat.nom}".strip(), "Avocat", avocat.id)
    return serializers.columns(avocat)


@router.put("/{avocat_id}")
def update_avocat(
    avocat_id: str,
    payload: AvocatRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    avocat = _get_avocat(db, avocat_id)
    for key, value in _clean(payload).items():
        setattr(avocat, key, value)
    avocat.modifie_par_id = user.id
    db.commit()
    log_action(db, user.id, "UPDATE_AVOCAT", avocat.nom, "Avocat", avocat.id)
    return serializers.columns(avocat)


def _set_active(db: Session, user: User, avocat_id: str, active: bool) -> dict:
    avocat = _get_avocat(db, avocat_id)
    avocat.active = active
    avocat.modifie_par_id = user.id
    db.commit()
    log_action(db, user.id, "REACTIVATE_AVOCAT" if active else "DEACTIVATE_AVOCAT", avocat.nom, "Avocat", avocat.id)
    return serializers.columns(avocat)


@router.put("/{avocat_id}/deactivate")
def deactivate_avocat(avocat_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    return _set_active(db, user, avocat_id, False)


@router.put("/{avocat_id}/reactivate")
def reactivate_avocat(avocat_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    return _set_active(db, user, avocat_id, True)


@router.delete("/{avocat_id}")
def delete_avocat(avocat_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    avocat = _get_avocat(db, avocat_id)
    conventions = db.query(func.count(Convention.id)).filter(Convention.avocat_id == avocat.id).scalar() or 0
    paiements = db.query(func.count(Paiement.id)).filter(Paiement.avocat_id == avocat.id).scalar() or 0
    if conventions or paiements:
        raise ConflictError("Impossible de supprimer cet avocat car il est lié à des conventions ou des paiements")
    db.delete(avocat)
    db.commit()
    log_action(db, user.id, "DELETE_AVOCAT", avocat.nom, "Avocat", avocat_id)
    return {"message": "Avocat supprimé avec succès"}
