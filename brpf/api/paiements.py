"""Paiements ordered for a dossier, each tied to the decisions that justify it."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import Integer, cast, false, func, or_, select
from sqlalchemy.orm import Query as ORMQuery
from sqlalchemy.orm import Session

from brpf import filters, serializers
from brpf.audit import log_action
from brpf.errors import NotFoundError, ValidationError
from brpf.models import Avocat, Decision, Dossier, Paiement, Pce, Sgami, User, get_db
from brpf.security import get_current_user

router = APIRouter(prefix="/api/paiements", tags=["paiements"])

QualiteBeneficiaire = Literal[
    "Avocat",
    "Commissaire de justice",
    "Militaire de la gendarmerie nationale",
    "Régisseur du tribunal judiciaire",
    "Médecin",
    "Victime",
]
OuiNon = Literal["OUI", "NON"]


class _PaiementFields(BaseModel):
    facture: Optional[str] = None
    date_service_fait: Optional[date] = None
    adresse_beneficiaire: Optional[str] = None
    siret_ou_ridet: Optional[str] = None
    titulaire_compte_bancaire: Optional[str] = None
    code_etablissement: Optional[str] = None
    code_guichet: Optional[str] = None
    numero_compte: Optional[str] = None
    cle_rib: Optional[str] = None
    fiche_reglement: Optional[str] = None
    avocat_id: Optional[str] = None


class CreatePaiementRequest(_PaiementFields):
    montant_ttc: float = Field(..., gt=0)
    emission_titre_perception: OuiNon
    qualite_beneficiaire: QualiteBeneficiaire
    identite_beneficiaire: str = Field(..., min_length=1)
    convention_jointe_fri: OuiNon
    dossier_id: str = Field(..., min_length=1)
    sgami_id: str = Field(..., min_length=1)
    pce_id: str = Field(..., min_length=1)
    decisions: List[str] = Field(..., min_length=1)


class UpdatePaiementRequest(_PaiementFields):
    montant_ttc: Optional[float] = Field(None, gt=0)
    emission_titre_perception: Optional[OuiNon] = None
    qualite_beneficiaire: Optional[QualiteBeneficiaire] = None
    identite_beneficiaire: Optional[str] = Field(None, min_length=1)
    convention_jointe_fri: Optional[OuiNon] = None
    sgami_id: Optional[str] = Field(None, min_length=1)
    pce_id: Optional[str] = Field(None, min_length=1)
    decisions: Optional[List[str]] = None


@dataclass
class PaiementFilters:
    search: Optional[str] = None
    numero: Optional[str] = None
    dossier_numero: Optional[str] = None
    sgami_nom: Optional[List[str]] = None
    qualite_beneficiaire: Optional[List[str]] = None
    identite_beneficiaire: Optional[str] = None
    facture: Optional[str] = None
    emission_titre_perception: Optional[List[str]] = None
    convention_jointe_fri: Optional[List[str]] = None
    pce_detaille: Optional[str] = None
    date_service_fait_debut: Optional[date] = None
    date_service_fait_fin: Optional[date] = None
    created_at_debut: Optional[date] = None
    created_at_fin: Optional[date] = None
    cree_par: Optional[List[str]] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None


def paiement_filters(
    search: Optional[str] = None,
    numero: Optional[str] = None,
    dossier_numero: Optional[str] = None,
    sgami_nom: Optional[List[str]] = Query(None),
    qualite_beneficiaire: Optional[List[str]] = Query(None),
    identite_beneficiaire: Optional[str] = None,
    facture: Optional[str] = None,
    emission_titre_perception: Optional[List[str]] = Query(None),
    convention_jointe_fri: Optional[List[str]] = Query(None),
    pce_detaille: Optional[str] = None,
    date_service_fait_debut: Optional[date] = None,
    date_service_fait_fin: Optional[date] = None,
    created_at_debut: Optional[date] = None,
    created_at_fin: Optional[date] = None,
    cree_par: Optional[List[str]] = Query(None),
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> PaiementFilters:
    return PaiementFilters(
        search=search,
        numero=numero,
        dossier_numero=dossier_numero,
        sgami_nom=sgami_nom,
        qualite_beneficiaire=qualite_beneficiaire,
        identite_beneficiaire=identite_beneficiaire,
        facture=facture,
        emission_titre_perception=emission_titre_perception,
        convention_jointe_fri=convention_jointe_fri,
        pce_detaille=pce_detaille,
        date_service_fait_debut=date_service_fait_debut,
        date_service_fait_fin=date_service_fait_fin,
        created_at_debut=created_at_debut,
        created_at_fin=created_at_fin,
        cree_par=cree_par,
        sort_by=sort_by,
        sort_order=sort_order,
    )


def filtered_paiements(db: Session, params: PaiementFilters) -> ORMQuery:
    search = (params.search or "").strip()
    search_criterion = None
    if search:
        pattern = f"%{search}%"
        options = [
            Paiement.facture.ilike(pattern),
            Paiement.identite_beneficiaire.ilike(pattern),
            Paiement.qualite_beneficiaire.ilike(pattern),
            Paiement.dossier.has(or_(Dossier.numero.ilike(pattern), Dossier.nom_dossier.ilike(pattern))),
            Paiement.sgami.has(Sgami.nom.ilike(pattern)),
            Paiement.avocat.has(or_(Avocat.nom.ilike(pattern), Avocat.prenom.ilike(pattern))),
            Paiement.pce.has(Pce.pce_detaille.ilike(pattern)),
            Paiement.cree_par.has(or_(User.nom.ilike(pattern), User.prenom.ilike(pattern))),
        ]
        if search.isdigit():
            options.append(Paiement.numero == int(search))
        search_criterion = or_(*options)
    numero = (params.numero or "").strip()
    dossier_numero = (params.dossier_numero or "").strip()
    sgamis = filters.split_values(params.sgami_nom)
    pce_detaille = (params.pce_detaille or "").strip()
    query = filters.apply(
        db.query(Paiement),
        search_criterion,
        (Paiement.numero == int(numero) if numero.isdigit() else false()) if numero else None,
        Paiement.dossier.has(Dossier.numero.ilike(f"%{dossier_numero}%")) if dossier_numero else None,
        Paiement.sgami.has(or_(*(Sgami.nom.ilike(f"%{nom}%") for nom in sgamis))) if sgamis else None,
        filters.values_filter(Paiement.qualite_beneficiaire, params.qualite_beneficiaire),
        filters.contains_any(params.identite_beneficiaire, Paiement.identite_beneficiaire),
        filters.contains_any(params.facture, Paiement.facture),
        filters.values_filter(Paiement.emission_titre_perception, params.emission_titre_perception),
        filters.values_filter(Paiement.convention_jointe_fri, params.convention_jointe_fri),
        Paiement.pce.has(Pce.pce_detaille.ilike(f"%{pce_detaille}%")) if pce_detaille else None,
        filters.date_range(Paiement.date_service_fait, params.date_service_fait_debut, params.date_service_fait_fin),
        filters.date_range(Paiement.created_at, params.created_at_debut, params.created_at_fin),
        filters.user_filter(db, Paiement.cree_par_id, params.cree_par),
    )
    sort_by = params.sort_by or "created_at"
    if sort_by == "dossier":
        query = query.outerjoin(Dossier, Paiement.dossier_id == Dossier.id)
        return filters.ordered(query, cast(Dossier.numero, Integer), params.sort_order)
    if sort_by == "sgami":
        query = query.outerjoin(Sgami, Paiement.sgami_id == Sgami.id)
        return filters.ordered(query, Sgami.nom, params.sort_order)
    if sort_by == "pce":
        query = query.outerjoin(Pce, Paiement.pce_id == Pce.id)
        return filters.ordered(query, Pce.pce_detaille, params.sort_order)
    if sort_by == "cree_par":
        return filters.ordered_by_user(query, Paiement.cree_par_id, params.sort_order)
    sortable = {
        "numero": Paiement.numero,
        "facture": Paiement.facture,
        "montant_ttc": Paiement.montant_ttc,
        "qualite_beneficiaire": Paiement.qualite_beneficiaire,
        "identite_beneficiaire": Paiement.identite_beneficiaire,
        "date_service_fait": Paiement.date_service_fait,
        "created_at": Paiement.created_at,
    }
    return filters.ordered(query, sortable.get(sort_by, Paiement.created_at), params.sort_order)


def next_numero(db: Session) -> int:
    return (db.query(func.max(Paiement.numero)).scalar() or 0) + 1


def _get_paiement(db: Session, paiement_id: str) -> Paiement:
    paiement = db.get(Paiement, paiement_id)
    if paiement is None:
        raise NotFoundError("Paiement non trouvé")
    return paiement


def _check_refs(db: Session, sgami_id: Optional[str], avocat_id: Optional[str], pce_id: Optional[str]) -> None:
    if sgami_id and db.get(Sgami, sgami_id) is None:
        raise NotFoundError("SGAMI non trouvé")
    if avocat_id:
        avocat = db.get(Avocat, avocat_id)
        if avocat is None or not avocat.active:
            raise NotFoundError("Avocat non trouvé ou inactif")
    if pce_id and db.get(Pce, pce_id) is None:
        raise NotFoundError("PCE non trouvé")


def _decisions(db: Session, ids: List[str]) -> List[Decision]:
    decisions = db.query(Decision).filter(Decision.id.in_(ids)).all() if ids else []
    if len(decisions) != len(set(ids)):
        raise ValidationError("Décision(s) invalide(s)")
    return decisions


@router.get("")
def list_paiements(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=filters.MAX_PAGE_SIZE),
    params: PaiementFilters = Depends(paiement_filters),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> dict:
    result = filters.paginate(filtered_paiements(db, params), page, limit)
    return {
        "paiements": [serializers.paiement(item) for item in result.items],
        "pagination": result.meta("total_pages"),
    }


@router.get("/facets")
def paiement_facets(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    qualites = sorted({value for (value,) in db.query(Paiement.qualite_beneficiaire).distinct().all() if value})
    createurs = (
        db.query(User)
        .filter(User.id.in_(select(Paiement.cree_par_id).where(Paiement.cree_par_id.isnot(None))))
        .order_by(User.nom)
        .all()
    )
    return {
        "qualites_beneficiaires": qualites,
        "emissions_titre": ["OUI", "NON"],
        "conventions_jointes": ["OUI", "NON"],
        "sgamis": [{"id": sgami.id, "nom": sgami.nom} for sgami in db.query(Sgami).order_by(Sgami.nom).all()],
        "pces": [
            {"id": pce.id, "pce_detaille": pce.pce_detaille, "pce_numerique": pce.pce_numerique}
            for pce in db.query(Pce).order_by(Pce.ordre).all()
        ],
        "createurs": [{"id": user.id, "full_name": user.full_name} for user in createurs],
    }


@router.get("/stats")
def paiement_stats(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    def count(*criteria) -> int:
        return db.query(func.count(Paiement.id)).filter(*criteria).scalar() or 0

    return {
        "total_paiements": count(),
        "avocat_count": count(Paiement.qualite_beneficiaire == "Avocat"),
        "autres_intervenant_count": count(Paiement.qualite_beneficiaire != "Avocat"),
        "emission_titre_count": count(Paiement.emission_titre_perception == "OUI"),
        "convention_jointe_count": count(Paiement.convention_jointe_fri == "OUI"),
        "total_montant_ttc": db.query(func.sum(Paiement.montant_ttc)).scalar() or 0,
    }


@router.get("/{paiement_id}")
def get_paiement(paiement_id: str, db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    return serializers.paiement(_get_paiement(db, paiement_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_paiement(
    payload: CreatePaiementRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    if db.get(Dossier, payload.dossier_id) is None:
        raise NotFoundError("Dossier non trouvé")
    _check_refs(db, payload.sgami_id, payload.avocat_id, payload.pce_id)
    data = payload.model_dump(exclude={"decisions"})
    data["avocat_id"] = data["avocat_id"] or None
    paiement = Paiement(**data, numero=next_numero(db), cree_par_id=user.id)
    paiement.decisions = _decisions(db, payload.decisions)
    db.add(paiement)
    db.commit()
    log_action(db, user.id, "CREATE_PAIEMENT", f"Création du paiement {paiement.numero}", "Paiement", paiement.id)
    return serializers.paiement(paiement)


@router.put("/{paiement_id}")
def update_paiement(
    paiement_id: str,
    payload: UpdatePaiementRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    paiement = _get_paiement(db, paiement_id)
    changes = payload.model_dump(exclude_unset=True)
    decision_ids = changes.pop("decisions", None)
    _check_refs(db, changes.get("sgami_id"), changes.get("avocat_id"), changes.get("pce_id"))
    required = {
        "montant_ttc",
        "emission_titre_perception",
        "qualite_beneficiaire",
        "identite_beneficiaire",
        "convention_jointe_fri",
        "sgami_id",
        "pce_id",
    }
    for key, value in changes.items():
        if key in required and value is None:
            continue
        if key == "avocat_id":
            value = value or None
        setattr(paiement, key, value)
    if decision_ids is not None:
        paiement.decisions = _decisions(db, decision_ids)
    paiement.modifie_par_id = user.id
    db.commit()
    db.refresh(paiement)
    log_action(db, user.id, "UPDATE_PAIEMENT", f"Modification du paiement {paiement.numero}", "Paiement", paiement.id)
    return serializers.paiement(paiement)


@router.delete("/{paiement_id}")
def delete_paiement(paiement_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    paiement = _get_paiement(db, paiement_id)
    numero = paiement.numero
    db.delete(paiement)
    db.commit()
    log_action(db, user.id, "DELETE_PAIEMENT", f"Suppression du paiement {numero}", "Paiement", paiement_id)
    return {"message": "Paiement supprimé avec succès"}
