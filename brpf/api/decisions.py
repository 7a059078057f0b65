"""Decisions granting or refusing protection for one or more demandes of a dossier."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import Integer, cast, or_
from sqlalchemy.orm import Query as ORMQuery
from sqlalchemy.orm import Session

from brpf import filters, serializers
from brpf.audit import log_action
from brpf.errors import NotFoundError, ValidationError
from brpf.models import DECISION_TYPES, Decision, Demande, Dossier, User, Visa, get_db
from brpf.security import get_current_user

router = APIRouter(prefix="/api/decisions", tags=["decisions"])

NUMERO_PATTERN = r"^\d+$"
MOTIF_REQUIS = "Le motif de rejet est requis pour un rejet"


class CreateDecisionRequest(BaseModel):
    type: Literal["AJ", "AJE", "PJ", "REJET"]
    motif_rejet: Optional[str] = None
    numero: str = Field(..., pattern=NUMERO_PATTERN)
    visa_id: str = Field(..., min_length=1)
    avis_hierarchiques: bool = False
    type_vict_mec: Optional[Literal["VICTIME", "MIS_EN_CAUSE"]] = None
    considerant: Optional[str] = None
    date_signature: Optional[date] = None
    date_envoi: Optional[date] = None
    dossier_id: str = Field(..., min_length=1)
    demande_ids: List[str] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _motif_for_rejet(self) -> "CreateDecisionRequest":
        if self.type == "REJET" and not (self.motif_rejet or "").strip():
            raise ValueError(MOTIF_REQUIS)
        return self


class UpdateDecisionRequest(BaseModel):
    type: Optional[Literal["AJ", "AJE", "PJ", "REJET"]] = None
    motif_rejet: Optional[str] = None
    numero: Optional[str] = Field(None, pattern=NUMERO_PATTERN)
    visa_id: Optional[str] = Field(None, min_length=1)
    avis_hierarchiques: Optional[bool] = None
    type_vict_mec: Optional[Literal["VICTIME", "MIS_EN_CAUSE"]] = None
    considerant: Optional[str] = None
    date_signature: Optional[date] = None
    date_envoi: Optional[date] = None
    demande_ids: Optional[List[str]] = None


@dataclass
class DecisionFilters:
    search: Optional[str] = None
    numero: Optional[str] = None
    dossier_numero: Optional[str] = None
    type: Optional[List[str]] = None
    type_vict_mec: Optional[List[str]] = None
    avis_hierarchiques: Optional[bool] = None
    date_signature_debut: Optional[date] = None
    date_signature_fin: Optional[date] = None
    date_envoi_debut: Optional[date] = None
    date_envoi_fin: Optional[date] = None
    created_at_debut: Optional[date] = None
    created_at_fin: Optional[date] = None
    cree_par: Optional[List[str]] = None
    modifie_par: Optional[List[str]] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None


def decision_filters(
    search: Optional[str] = None,
    numero: Optional[str] = None,
    dossier_numero: Optional[str] = None,
    type: Optional[List[str]] = Query(None),
    type_vict_mec: Optional[List[str]] = Query(None),
    avis_hierarchiques: Optional[bool] = None,
    date_signature_debut: Optional[date] = None,
    date_signature_fin: Optional[date] = None,
    date_envoi_debut: Optional[date] = None,
    date_envoi_fin: Optional[date] = None,
    created_at_debut: Optional[date] = None,
    created_at_fin: Optional[date] = None,
    cree_par: Optional[List[str]] = Query(None),
    modifie_par: Optional[List[str]] = Query(None),
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> DecisionFilters:
    return DecisionFilters(
        search=search,
        numero=numero,
        dossier_numero=dossier_numero,
        type=type,
        type_vict_mec=type_vict_mec,
        avis_hierarchiques=avis_hierarchiques,
        date_signature_debut=date_signature_debut,
        date_signature_fin=date_signature_fin,
        date_envoi_debut=date_envoi_debut,
        date_envoi_fin=date_envoi_fin,
        created_at_debut=created_at_debut,
        created_at_fin=created_at_fin,
        cree_par=cree_par,
        modifie_par=modifie_par,
        sort_by=sort_by,
        sort_order=sort_order,
    )


def filtered_decisions(db: Session, params: DecisionFilters) -> ORMQuery:
    search = (params.search or "").strip()
    search_criterion = None
    if search:
        pattern = f"%{search}%"
        search_criterion = or_(
            Decision.numero.ilike(pattern),
            Decision.considerant.ilike(pattern),
            Decision.dossier.has(Dossier.numero.ilike(pattern)),
            Decision.demandes.any(or_(Demande.nom.ilike(pattern), Demande.prenom.ilike(pattern))),
        )
    dossier_numero = (params.dossier_numero or "").strip()
    query = filters.apply(
        db.query(Decision),
        search_criterion,
        filters.contains_any(params.numero, Decision.numero),
        Decision.dossier.has(Dossier.numero.ilike(f"%{dossier_numero}%")) if dossier_numero else None,
        filters.values_filter(Decision.type, params.type),
        filters.values_filter(Decision.type_vict_mec, params.type_vict_mec),
        Decision.avis_hierarchiques.is_(params.avis_hierarchiques) if params.avis_hierarchiques is not None else None,
        filters.date_range(Decision.date_signature, params.date_signature_debut, params.date_signature_fin),
        filters.date_range(Decision.date_envoi, params.date_envoi_debut, params.date_envoi_fin),
        filters.date_range(Decision.created_at, params.created_at_debut, params.created_at_fin),
        filters.user_filter(db, Decision.cree_par_id, params.cree_par),
        filters.user_filter(db, Decision.modifie_par_id, params.modifie_par, sentinel=filters.NON_MODIFIE),
    )
    sort_by = params.sort_by or "created_at"
    if sort_by == "dossier":
        query = query.outerjoin(Dossier, Decision.dossier_id == Dossier.id)
        return filters.ordered(query, cast(Dossier.numero, Integer), params.sort_order)
    if sort_by == "cree_par":
        return filters.ordered_by_user(query, Decision.cree_par_id, params.sort_order)
    if sort_by == "modifie_par":
        return filters.ordered_by_user(query, Decision.modifie_par_id, params.sort_order)
    sortable = {
        "numero": cast(Decision.numero, Integer),
        "type": Decision.type,
        "date_signature": Decision.date_signature,
        "date_envoi": Decision.date_envoi,
        "created_at": Decision.created_at,
        "updated_at": Decision.updated_at,
    }
    return filters.ordered(query, sortable.get(sort_by, Decision.created_at), params.sort_order)


def _get_decision(db: Session, decision_id: str) -> Decision:
    decision = db.get(Decision, decision_id)
    if decision is None:
        raise NotFoundError("Décision non trouvée")
    return decision


def _demandes(db: Session, ids: List[str]) -> List[Demande]:
    demandes = db.query(Demande).filter(Demande.id.in_(ids)).all()
    if not demandes or len(demandes) != len(set(ids)):
        raise ValidationError("Au moins une demande doit être sélectionnée")
    return demandes


def _check_visa(db: Session, visa_id: str) -> None:
    if db.get(Visa, visa_id) is None:
        raise NotFoundError("Visa non trouvé")


@router.get("")
def list_decisions(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=filters.MAX_PAGE_SIZE),
    params: DecisionFilters = Depends(decision_filters),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> dict:
    result = filters.paginate(filtered_decisions(db, params), page, limit)
    return {
        "decisions": [serializers.decision(item) for item in result.items],
        "pagination": result.meta("total_pages"),
    }


@router.get("/facets")
def decision_facets(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    types = {value for (value,) in db.query(Decision.type).distinct().all() if value}
    vict_mec = {value for (value,) in db.query(Decision.type_vict_mec).distinct().all() if value}
    return {
        "types": [value for value in DECISION_TYPES if value in types],
        "type_vict_mecs": sorted(vict_mec),
        "createurs": filters.user_facet(db, Decision.cree_par_id),
        "modificateurs": filters.user_facet(db, Decision.modifie_par_id),
    }


@router.get("/{decision_id}")
def get_decision(decision_id: str, db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    return serializers.decision(_get_decision(db, decision_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_decision(
    payload: CreateDecisionRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    if db.get(Dossier, payload.dossier_id) is None:
        raise NotFoundError("Dossier non trouvé")
    _check_visa(db, payload.visa_id)
    data = payload.model_dump(exclude={"demande_ids"})
    if payload.type != "REJET":
        data["motif_rejet"] = None
    decision = Decision(**data, cree_par_id=user.id)
    decision.demandes = _demandes(db, payload.demande_ids)
    db.add(decision)
    db.commit()
    log_action(
        db,
        user.id,
        "CREATE_DECISION",
        f"Création décision {decision.type} n° {decision.numero}",
        "Decision",
        decision.id,
    )
    return serializers.decision(decision)


@router.put("/{decision_id}")
def update_decision(
    decision_id: str,
    payload: UpdateDecisionRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    decision = _get_decision(db, decision_id)
    changes = payload.model_dump(exclude_unset=True)
    demande_ids = changes.pop("demande_ids", None)
    final_type = changes.get("type") or decision.type
    final_motif = changes["motif_rejet"] if "motif_rejet" in changes else decision.motif_rejet
    if final_type == "REJET" and not (final_motif or "").strip():
        raise ValidationError(MOTIF_REQUIS)
    if changes.get("visa_id"):
        _check_visa(db, changes["visa_id"])
    for key, value in changes.items():
        if key in {"type", "numero", "visa_id", "avis_hierarchiques"} and value is None:
            continue
        setattr(decision, key, value)
    if final_type != "REJET":
        decision.motif_rejet = None
    if demande_ids is not None:
        decision.demandes = _demandes(db, demande_ids)
    decision.modifie_par_id = user.id
    db.commit()
    db.refresh(decision)
    log_action(
        db,
        user.id,
        "UPDATE_DECISION",
        f"Modification décision {decision.type} n° {decision.numero}",
        "Decision",
        decision.id,
    )
    return serializers.decision(decision)


@router.delete("/{decision_id}")
def delete_decision(decision_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    decision = _get_decision(db, decision_id)
    label = f"{decision.type} n° {decision.numero}"
    db.delete(decision)
    db.commit()
    log_action(db, user.id, "DELETE_DECISION", f"Suppression décision {label}", "Decision", decision_id)
    return {"message": "Décision supprimée avec succès"}
