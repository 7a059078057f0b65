"""Fee conventions with avocats, and the avenants that raise an earlier commitment."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import Integer, cast, false, func, or_, select
from sqlalchemy.orm import Query as ORMQuery
from sqlalchemy.orm import Session

from brpf import filters, serializers
from brpf.audit import log_action
from brpf.errors import NotFoundError, ValidationError
from brpf.models import Avocat, Convention, Decision, Demande, Diligence, Dossier, User, get_db
from brpf.security import get_current_user

router = APIRouter(prefix="/api/conventions", tags=["conventions"])

GAGE_REQUIS = "Le montant HT gagé précédemment est requis pour un avenant"


class CreateConventionRequest(BaseModel):
    type: Literal["CONVENTION", "AVENANT"]
    victime_ou_mis_en_cause: Literal["VICTIME", "MIS_EN_CAUSE"]
    instance: str = Field(..., min_length=1)
    montant_ht: float = Field(..., gt=0)
    montant_ht_gage_precedemment: Optional[float] = Field(None, gt=0)
    type_facturation: Optional[Literal["FORFAITAIRE", "DEMI_JOURNEE", "ASSISES"]] = None
    date_retour_signe: Optional[date] = None
    dossier_id: str = Field(..., min_length=1)
    avocat_id: str = Field(..., min_length=1)
    demandes: List[str] = Field(default_factory=list)
    diligences: List[str] = Field(default_factory=list)
    decisions: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _gage_for_avenant(self) -> "CreateConventionRequest":
        if self.type == "AVENANT" and self.montant_ht_gage_precedemment is None:
            raise ValueError(GAGE_REQUIS)
        return self


class UpdateConventionRequest(BaseModel):
    type: Optional[Literal["CONVENTION", "AVENANT"]] = None
    victime_ou_mis_en_cause: Optional[Literal["VICTIME", "MIS_EN_CAUSE"]] = None
    instance: Optional[str] = Field(None, min_length=1)
    montant_ht: Optional[float] = Field(None, gt=0)
    montant_ht_gage_precedemment: Optional[float] = Field(None, gt=0)
    type_facturation: Optional[Literal["FORFAITAIRE", "DEMI_JOURNEE", "ASSISES"]] = None
    date_retour_signe: Optional[date] = None
    dossier_id: Optional[str] = Field(None, min_length=1)
    avocat_id: Optional[str] = Field(None, min_length=1)
    demandes: Optional[List[str]] = None
    diligences: Optional[List[str]] = None
    decisions: Optional[List[str]] = None


@dataclass
class ConventionFilters:
    search: Optional[str] = None
    numero: Optional[str] = None
    dossier_numero: Optional[str] = None
    avocat_nom: Optional[str] = None
    instance: Optional[str] = None
    type: Optional[List[str]] = None
    victime_ou_mis_en_cause: Optional[List[str]] = None
    date_retour_signe_debut: Optional[date] = None
    date_retour_signe_fin: Optional[date] = None
    created_at_debut: Optional[date] = None
    created_at_fin: Optional[date] = None
    cree_par: Optional[List[str]] = None
    modifie_par: Optional[List[str]] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None


def convention_filters(
    search: Optional[str] = None,
    numero: Optional[str] = None,
    dossier_numero: Optional[str] = None,
    avocat_nom: Optional[str] = None,
    instance: Optional[str] = None,
    type: Optional[List[str]] = Query(None),
    victime_ou_mis_en_cause: Optional[List[str]] = Query(None),
    date_retour_signe_debut: Optional[date] = None,
    date_retour_signe_fin: Optional[date] = None,
    created_at_debut: Optional[date] = None,
    created_at_fin: Optional[date] = None,
    cree_par: Optional[List[str]] = Query(None),
    modifie_par: Optional[List[str]] = Query(None),
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> ConventionFilters:
    return ConventionFilters(
        search=search,
        numero=numero,
        dossier_numero=dossier_numero,
        avocat_nom=avocat_nom,
        instance=instance,
        type=type,
        victime_ou_mis_en_cause=victime_ou_mis_en_cause,
        date_retour_signe_debut=date_retour_signe_debut,
        date_retour_signe_fin=date_retour_signe_fin,
        created_at_debut=created_at_debut,
        created_at_fin=created_at_fin,
        cree_par=cree_par,
        modifie_par=modifie_par,
        sort_by=sort_by,
        sort_order=sort_order,
    )


def filtered_conventions(db: Session, params: ConventionFilters) -> ORMQuery:
    search = (params.search or "").strip()
    search_criterion = None
    if search:
        pattern = f"%{search}%"
        options = [
            Convention.instance.ilike(pattern),
            Convention.dossier.has(Dossier.numero.ilike(pattern)),
            Convention.avocat.has(or_(Avocat.nom.ilike(pattern), Avocat.prenom.ilike(pattern))),
            Convention.demandes.any(or_(Demande.nom.ilike(pattern), Demande.prenom.ilike(pattern))),
        ]
        if search.isdigit():
            options.append(Convention.numero == int(search))
        search_criterion = or_(*options)
    numero = (params.numero or "").strip()
    dossier_numero = (params.dossier_numero or "").strip()
    avocat_nom = (params.avocat_nom or "").strip()
    query = filters.apply(
        db.query(Convention),
        search_criterion,
        (Convention.numero == int(numero) if numero.isdigit() else false()) if numero else None,
        Convention.dossier.has(Dossier.numero.ilike(f"%{dossier_numero}%")) if dossier_numero else None,
        Convention.avocat.has(filters.contains_any(avocat_nom, Avocat.nom, Avocat.prenom)) if avocat_nom else None,
        filters.contains_any(params.instance, Convention.instance),
        filters.values_filter(Convention.type, params.type),
        filters.values_filter(Convention.victime_ou_mis_en_cause, params.victime_ou_mis_en_cause),
        filters.date_range(Convention.date_retour_signe, params.date_retour_signe_debut, params.date_retour_signe_fin),
        filters.date_range(Convention.created_at, params.created_at_debut, params.created_at_fin),
        filters.user_filter(db, Convention.cree_par_id, params.cree_par),
        filters.user_filter(db, Convention.modifie_par_id, params.modifie_par, sentinel=filters.NON_MODIFIE),
    )
    sort_by = params.sort_by or "numero"
    if sort_by == "dossier":
        query = query.outerjoin(Dossier, Convention.dossier_id == Dossier.id)
        return filters.ordered(query, cast(Dossier.numero, Integer), params.sort_order)
    if sort_by == "avocat":
        query = query.outerjoin(Avocat, Convention.avocat_id == Avocat.id)
        return filters.ordered(query, Avocat.nom, params.sort_order)
    if sort_by == "cree_par":
        return filters.ordered_by_user(query, Convention.cree_par_id, params.sort_order)
    if sort_by == "modifie_par":
        return filters.ordered_by_user(query, Convention.modifie_par_id, params.sort_order)
    sortable = {
        "numero": Convention.numero,
        "type": Convention.type,
        "instance": Convention.instance,
        "montant_ht": Convention.montant_ht,
        "date_retour_signe": Convention.date_retour_signe,
        "created_at": Convention.created_at,
    }
    return filters.ordered(query, sortable.get(sort_by, Convention.numero), params.sort_order)


def next_numero(db: Session) -> int:
    return (db.query(func.max(Convention.numero)).scalar() or 0) + 1


def _get_convention(db: Session, convention_id: str) -> Convention:
    convention = db.get(Convention, convention_id)
    if convention is None:
        raise NotFoundError("Convention non trouvée")
    return convention


def _records(db: Session, model, ids: List[str], label: str) -> list:
    if not ids:
        return []
    records = db.query(model).filter(model.id.in_(ids)).all()
    if len(records) != len(set(ids)):
        raise ValidationError(f"{label} invalide(s)")
    return records


def _check_refs(db: Session, dossier_id: Optional[str], avocat_id: Optional[str]) -> None:
    if dossier_id and db.get(Dossier, dossier_id) is None:
        raise NotFoundError("Dossier non trouvé")
    if avocat_id and db.get(Avocat, avocat_id) is None:
        raise NotFoundError("Avocat non trouvé")


def _apply_links(db: Session, convention: Convention, demandes, diligences, decisions) -> None:
    if demandes is not None:
        convention.demandes = _records(db, Demande, demandes, "Demande(s)")
    if diligences is not None:
        convention.diligences = _records(db, Diligence, diligences, "Diligence(s)")
    if decisions is not None:
        convention.decisions = _records(db, Decision, decisions, "Décision(s)")


@router.get("")
def list_conventions(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=filters.MAX_PAGE_SIZE),
    params: ConventionFilters = Depends(convention_filters),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> dict:
    result = filters.paginate(filtered_conventions(db, params), page, limit)
    return {
        "conventions": [serializers.convention(item) for item in result.items],
        "pagination": result.meta("total_pages"),
    }


@router.get("/facets")
def convention_facets(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    instances = sorted({value for (value,) in db.query(Convention.instance).distinct().all() if value})
    avocats = (
        db.query(Avocat)
        .filter(Avocat.id.in_(select(Convention.avocat_id).distinct()))
        .order_by(Avocat.nom)
        .all()
    )
    return {
        "types": ["CONVENTION", "AVENANT"],
        "instances": instances,
        "avocats": [" ".join(part for part in (avocat.prenom, avocat.nom) if part) for avocat in avocats],
        "createurs": filters.user_facet(db, Convention.cree_par_id),
        "modificateurs": filters.user_facet(db, Convention.modifie_par_id),
    }


@router.get("/stats")
def convention_stats(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    def count(*criteria) -> int:
        return db.query(func.count(Convention.id)).filter(*criteria).scalar() or 0

    return {
        "total_conventions": count(),
        "convention_count": count(Convention.type == "CONVENTION"),
        "avenant_count": count(Convention.type == "AVENANT"),
        "victime_count": count(Convention.victime_ou_mis_en_cause == "VICTIME"),
        "mis_en_cause_count": count(Convention.victime_ou_mis_en_cause == "MIS_EN_CAUSE"),
        "total_montant_ht": db.query(func.sum(Convention.montant_ht)).scalar() or 0,
        "signees_count": count(Convention.date_retour_signe.isnot(None)),
    }


@router.get("/{convention_id}")
def get_convention(convention_id: str, db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    return serializers.convention(_get_convention(db, convention_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_convention(
    payload: CreateConventionRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    _check_refs(db, payload.dossier_id, payload.avocat_id)
    data = payload.model_dump(exclude={"demandes", "diligences", "decisions"})
    convention = Convention(**data, numero=next_numero(db), cree_par_id=user.id)
    _apply_links(db, convention, payload.demandes, payload.diligences, payload.decisions)
    db.add(convention)
    db.commit()
    log_action(
        db,
        user.id,
        "CREATE_CONVENTION",
        f"Création {convention.type.lower()} n° {convention.numero}",
        "Convention",
        convention.id,
    )
    return serializers.convention(convention)


@router.put("/{convention_id}")
def update_convention(
    convention_id: str,
    payload: UpdateConventionRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    convention = _get_convention(db, convention_id)
    changes = payload.model_dump(exclude_unset=True)
    links = {key: changes.pop(key, None) for key in ("demandes", "diligences", "decisions")}
    _check_refs(db, changes.get("dossier_id"), changes.get("avocat_id"))
    final_type = changes.get("type") or convention.type
    gage = changes.get("montant_ht_gage_precedemment", convention.montant_ht_gage_precedemment)
    if final_type == "AVENANT" and gage is None:
        raise ValidationError(GAGE_REQUIS)
    for key, value in changes.items():
        if value is None and key not in {"date_retour_signe", "type_facturation", "montant_ht_gage_precedemment"}:
            continue
        setattr(convention, key, value)
    _apply_links(db, convention, links["demandes"], links["diligences"], links["decisions"])
    convention.modifie_par_id = user.id
    db.commit()
    db.refresh(convention)
    log_action(
        db,
        user.id,
        "UPDATE_CONVENTION",
        f"Modification {convention.type.lower()} n° {convention.numero}",
        "Convention",
        convention.id,
    )
    return serializers.convention(convention)


@router.delete("/{convention_id}")
def delete_convention(
    convention_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    convention = _get_convention(db, convention_id)
    label = f"{convention.type.lower()} n° {convention.numero}"
    db.delete(convention)
    db.commit()
    log_action(db, user.id, "DELETE_CONVENTION", f"Suppression {label}", "Convention", convention_id)
    return {"message": "Convention supprimée avec succès"}
