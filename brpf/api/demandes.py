"""Demandes de protection fonctionnelle.

A demande is created on its own and later attached to a dossier. Attaching
it, or changing the dossier, copies the dossier's badges, BAP and rédacteur
onto the demande so both views stay consistent.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import func
from sqlalchemy.orm import Query as ORMQuery
from sqlalchemy.orm import Session

from brpf import filters, serializers
from brpf.audit import log_action
from brpf.errors import ConflictError, NotFoundError, ValidationError
from brpf.models import Badge, Bap, Decision, Demande, Dossier, User, get_db
from brpf.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/demandes", tags=["demandes"])

# Blank values for these fields leave the stored value untouched.
_KEEP_WHEN_BLANK = ("date_faits", "date_audience", "position")

REVUE_DELAI_JOURS = 60

_REQUIRED_ON_CREATE = (
    ("numero_ds", "Numéro DS requis"),
    ("type", "Type invalide"),
    ("nom", "Nom requis"),
    ("prenom", "Prénom requis"),
)


class DemandeRequest(BaseModel):
    numero_ds: Optional[str] = Field(None, min_length=1)
    type: Optional[Literal["VICTIME", "MIS_EN_CAUSE"]] = None
    nigend: Optional[str] = None
    grade_id: Optional[str] = None
    statut_demandeur: Optional[str] = None
    branche: Optional[str] = None
    formation_administrative: Optional[str] = None
    departement: Optional[str] = None
    nom: Optional[str] = Field(None, min_length=1)
    prenom: Optional[str] = Field(None, min_length=1)
    adresse_postale_ligne1: Optional[str] = None
    adresse_postale_ligne2: Optional[str] = None
    telephone_professionnel: Optional[str] = None
    telephone_personnel: Optional[str] = None
    email_professionnel: Optional[str] = None
    email_personnel: Optional[str] = None
    unite: Optional[str] = None
    date_faits: Optional[date] = None
    commune: Optional[str] = None
    code_postal: Optional[str] = None
    position: Optional[Literal["EN_SERVICE", "HORS_SERVICE"]] = None
    contexte_missionnel: Optional[str] = None
    qualification_infraction: Optional[str] = None
    resume: Optional[str] = None
    blessures: Optional[str] = None
    partie_civile: Optional[bool] = None
    montant_partie_civile: Optional[float] = None
    qualifications_penales: Optional[str] = None
    date_audience: Optional[date] = None
    soutien_psychologique: Optional[bool] = None
    soutien_sociale: Optional[bool] = None
    soutien_medical: Optional[bool] = None
    commentaire_decision: Optional[str] = None
    commentaire_convention: Optional[str] = None
    date_reception: Optional[datetime] = None
    dossier_id: Optional[str] = None
    assigne_a_id: Optional[str] = None
    badges: Optional[List[str]] = None
    baps: Optional[List[str]] = None

    @model_validator(mode="before")
    @classmethod
    def _blank_inputs(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned = {}
        for key, value in data.items():
            if isinstance(value, str) and not value.strip():
                if key in _KEEP_WHEN_BLANK:
                    continue
                value = None
            cleaned[key] = value
        return cleaned


class AssignRequest(BaseModel):
    assigne_a_id: Optional[str] = None


class LinkRequest(BaseModel):
    demande_ids: List[str] = Field(..., min_length=1)
    dossier_id: str = Field(..., min_length=1)


@dataclass
class DemandeFilters:
    search: Optional[str] = None
    type: Optional[str] = None
    position: Optional[str] = None
    partie_civile: Optional[bool] = None
    assigne_a: Optional[List[str]] = None
    dossier: Optional[str] = None
    date_reception_debut: Optional[date] = None
    date_reception_fin: Optional[date] = None


def demande_filters(
    search: Optional[str] = None,
    type: Optional[str] = None,
    position: Optional[str] = None,
    partie_civile: Optional[bool] = None,
    assigne_a: Optional[List[str]] = Query(None),
    dossier: Optional[str] = None,
    date_reception_debut: Optional[date] = None,
    date_reception_fin: Optional[date] = None,
) -> DemandeFilters:
    return DemandeFilters(
        search=search,
        type=type,
        position=position,
        partie_civile=partie_civile,
        assigne_a=assigne_a,
        dossier=dossier,
        date_reception_debut=date_reception_debut,
        date_reception_fin=date_reception_fin,
    )


def filtered_demandes(db: Session, params: DemandeFilters) -> ORMQuery:
    dossier_criterion = None
    if params.dossier == "sans":
        dossier_criterion = Demande.dossier_id.is_(None)
    elif params.dossier:
        dossier_criterion = Demande.dossier_id == params.dossier
    query = filters.apply(
        db.query(Demande),
        filters.contains_any(
            params.search,
            Demande.numero_ds,
            Demande.nom,
            Demande.prenom,
            Demande.nigend,
            Demande.commune,
            Demande.unite,
        ),
        Demande.type == params.type if params.type else None,
        Demande.position == params.position if params.position else None,
        Demande.partie_civile.is_(params.partie_civile) if params.partie_civile is not None else None,
        filters.user_filter(db, Demande.assigne_a_id, params.assigne_a),
        dossier_criterion,
        filters.date_range(Demande.date_reception, params.date_reception_debut, params.date_reception_fin),
    )
    return query.order_by(Demande.date_reception.desc())


def sync_demandes_from_dossier(db: Session, dossier: Dossier) -> None:
    """Copy the dossier's badges, BAP and rédacteur onto every linked demande."""

    for demande in dossier.demandes:
        demande.badges = list(dossier.badges)
        demande.baps = [dossier.bap] if dossier.bap is not None else []
        demande.assigne_a_id = dossier.assigne_a_id


def _get_demande(db: Session, demande_id: str) -> Demande:
    demande = db.get(Demande, demande_id)
    if demande is None:
        raise NotFoundError("Demande non trouvée")
    return demande


def _resolve(db: Session, model: Any, ids: List[str], label: str) -> list:
    records = db.query(model).filter(model.id.in_(ids)).all() if ids else []
    if len(records) != len(set(ids)):
        raise ValidationError(f"{label} invalide(s)")
    return records


def _without_decision(query: ORMQuery) -> ORMQuery:
    return query.filter(~Demande.decisions.any())


def revue_decisions(db: Session) -> List[Demande]:
    """Demandes still waiting for a first decision."""

    return _without_decision(db.query(Demande)).order_by(Demande.date_reception).all()


def revue_conventions(db: Session) -> List[tuple[Demande, Optional[date]]]:
    """Demandes granted a PJ decision that no convention covers yet, with the PJ signature date."""

    demandes = (
        db.query(Demande)
        .filter(Demande.decisions.any(Decision.type == "PJ"), ~Demande.conventions.any())
        .order_by(Demande.date_reception)
        .all()
    )
    rows = []
    for demande in demandes:
        dates = [decision.date_signature for decision in demande.decisions if decision.type == "PJ"]
        signed = [value for value in dates if value is not None]
        rows.append((demande, min(signed) if signed else None))
    return rows


@router.get("")
def list_demandes(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=filters.MAX_PAGE_SIZE),
    params: DemandeFilters = Depends(demande_filters),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> dict:
    result = filters.paginate(filtered_demandes(db, params), page, limit)
    return {"demandes": [serializers.demande(item) for item in result.items], "pagination": result.meta()}


@router.get("/stats")
def demande_stats(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    today = datetime.combine(date.today(), time.min)
    threshold = datetime.now() - timedelta(days=REVUE_DELAI_JOURS)

    def count(*criteria: Any) -> int:
        return db.query(func.count(Demande.id)).filter(*criteria).scalar() or 0

    return {
        "total_demandes": count(),
        "demandes_today": count(Demande.date_reception >= today),
        "victimes": count(Demande.type == "VICTIME"),
        "mis_en_cause": count(Demande.type == "MIS_EN_CAUSE"),
        "avec_partie_civile": count(Demande.partie_civile.is_(True)),
        "demandes_sans_2_mois": count(Demande.date_reception <= threshold, ~Demande.decisions.any()),
    }


@router.get("/revue/decisions")
def list_revue_decisions(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    return [serializers.demande(item) for item in revue_decisions(db)]


@router.get("/revue/conventions")
def list_revue_conventions(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    items = []
    for demande, date_pj in revue_conventions(db):
        data = serializers.demande(demande)
        data["date_decision_pj"] = serializers.iso(date_pj)
        items.append(data)
    return items


@router.post("/link")
def link_demandes(payload: LinkRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    dossier = db.get(Dossier, payload.dossier_id)
    if dossier is None:
        raise NotFoundError("Dossier non trouvé")
    demandes = _resolve(db, Demande, payload.demande_ids, "Demande(s)")
    for demande in demandes:
        demande.dossier_id = dossier.id
        demande.modifie_par_id = user.id
    db.flush()
    db.refresh(dossier)
    sync_demandes_from_dossier(db, dossier)
    db.commit()
    log_action(
        db,
        user.id,
        "LINK_DEMANDES",
        f"{len(demandes)} demande(s) liée(s) au dossier {dossier.numero}",
        "Dossier",
        dossier.id,
    )
    return {"linked": len(demandes), "dossier": serializers.dossier_summary(dossier)}


@router.get("/{demande_id}")
def get_demande(demande_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    demande = _get_demande(db, demande_id)
    data = serializers.demande(demande)
    log_action(db, user.id, "VIEW_DEMANDE", f"Consultation demande {demande.numero_ds}", "Demande", demande.id)
    return data


@router.post("", status_code=status.HTTP_201_CREATED)
def create_demande(payload: DemandeRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    data = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
    for required, message in _REQUIRED_ON_CREATE:
        if not data.get(required):
            raise ValidationError(message)
    if db.query(Demande).filter(Demande.numero_ds == data["numero_ds"]).first():
        raise ConflictError("Ce numéro DS existe déjà")
    # New demandes are never attached to a dossier at creation.
    data.pop("dossier_id", None)
    badge_ids = data.pop("badges", None) or []
    bap_ids = data.pop("baps", None) or []
    demande = Demande(**data, cree_par_id=user.id)
    demande.badges = _resolve(db, Badge, badge_ids, "Badge(s)")
    demande.baps = _resolve(db, Bap, bap_ids, "BAP")
    db.add(demande)
    db.commit()
    log_action(db, user.id, "CREATE_DEMANDE", f"Création demande {demande.numero_ds}", "Demande", demande.id)
    return serializers.demande(demande)


@router.put("/{demande_id}")
def update_demande(
    demande_id: str,
    payload: DemandeRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    demande = _get_demande(db, demande_id)
    data = payload.model_dump(exclude_unset=True)
    numero_ds = data.get("numero_ds")
    if numero_ds and numero_ds != demande.numero_ds:
        if db.query(Demande).filter(Demande.numero_ds == numero_ds).first():
            raise ConflictError("Ce numéro DS existe déjà")
    for required in ("numero_ds", "type", "nom", "prenom"):
        if required in data and not data[required]:
            data.pop(required)
    dossier = None
    if "dossier_id" in data:
        if data["dossier_id"]:
            dossier = db.get(Dossier, data["dossier_id"])
            if dossier is None:
                raise ValidationError("Le dossier sélectionné n'existe pas")
        else:
            data["dossier_id"] = None
    badge_ids = data.pop("badges", None)
    bap_ids = data.pop("baps", None)
    if "date_reception" in data and data["date_reception"] is None:
        data.pop("date_reception")
    for key, value in data.items():
        setattr(demande, key, value)
    if badge_ids is not None:
        demande.badges = _resolve(db, Badge, badge_ids, "Badge(s)")
    if bap_ids is not None:
        demande.baps = _resolve(db, Bap, bap_ids, "BAP")
    demande.modifie_par_id = user.id
    db.flush()
    if dossier is not None:
        db.refresh(dossier)
        sync_demandes_from_dossier(db, dossier)
    db.commit()
    db.refresh(demande)
    log_action(db, user.id, "UPDATE_DEMANDE", f"Modification demande {demande.numero_ds}", "Demande", demande.id)
    return serializers.demande(demande)


@router.put("/{demande_id}/assign")
def assign_demande(
    demande_id: str,
    payload: AssignRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    demande = _get_demande(db, demande_id)
    if payload.assigne_a_id:
        assignee = db.get(User, payload.assigne_a_id)
        if assignee is None or not assignee.active:
            raise ValidationError("Utilisateur invalide")
    demande.assigne_a_id = payload.assigne_a_id or None
    demande.modifie_par_id = user.id
    db.commit()
    db.refresh(demande)
    log_action(db, user.id, "ASSIGN_DEMANDE", f"Assignation demande {demande.numero_ds}", "Demande", demande.id)
    return serializers.demande(demande)


@router.delete("/{demande_id}")
def delete_demande(demande_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    demande = _get_demande(db, demande_id)
    numero_ds = demande.numero_ds
    db.delete(demande)
    db.commit()
    log_action(db, user.id, "DELETE_DEMANDE", f"Suppression demande {numero_ds}", "Demande", demande_id)
    return {"message": "Demande supprimée avec succès"}
