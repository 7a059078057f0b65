"""Dossiers group the demandes of one case and carry its decisions, conventions and paiements."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import Integer, cast, func, or_, select
from sqlalchemy.orm import Query as ORMQuery
from sqlalchemy.orm import Session

from brpf import exporter, filters, serializers
from brpf.api.demandes import sync_demandes_from_dossier
from brpf.audit import log_action
from brpf.errors import ConflictError, NotFoundError, ValidationError
from brpf.models import Badge, Bap, Convention, Decision, Demande, Dossier, Paiement, Sgami, User, get_db
from brpf.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dossiers", tags=["dossiers"])


class CreateDossierRequest(BaseModel):
    nom_dossier: Optional[str] = None
    notes: Optional[str] = None
    sgami_id: Optional[str] = None
    assigne_a_id: Optional[str] = None
    badges: List[str] = Field(default_factory=list)
    bap_id: Optional[str] = None
    selected_demande_ids: List[str] = Field(default_factory=list)


class UpdateDossierRequest(BaseModel):
    nom_dossier: Optional[str] = None
    notes: Optional[str] = None
    sgami_id: Optional[str] = None
    assigne_a_id: Optional[str] = None
    badges: Optional[List[str]] = None
    bap_id: Optional[str] = None


@dataclass
class DossierFilters:
    search: Optional[str] = None
    numero: Optional[str] = None
    nom_dossier: Optional[str] = None
    demandeur: Optional[str] = None
    sgami: Optional[List[str]] = None
    assigne_a: Optional[List[str]] = None
    badges: Optional[List[str]] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None


def dossier_filters(
    search: Optional[str] = None,
    numero: Optional[str] = None,
    nom_dossier: Optional[str] = None,
    demandeur: Optional[str] = None,
    sgami: Optional[List[str]] = Query(None),
    assigne_a: Optional[List[str]] = Query(None),
    badges: Optional[List[str]] = Query(None),
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> DossierFilters:
    return DossierFilters(search, numero, nom_dossier, demandeur, sgami, assigne_a, badges, sort_by, sort_order)


def _nombre_demandes():
    return (
        select(func.count(Demande.id))
        .where(Demande.dossier_id == Dossier.id)
        .correlate(Dossier)
        .scalar_subquery()
    )


def _sgami_filter(values: Optional[List[str]]):
    selected = filters.split_values(values)
    if not selected:
        return None
    conditions = []
    if filters.NON_ASSIGNE in selected:
        conditions.append(Dossier.sgami_id.is_(None))
    names = [value for value in selected if value != filters.NON_ASSIGNE]
    if names:
        conditions.append(Dossier.sgami.has(Sgami.nom.in_(names)))
    return or_(*conditions)


def filtered_dossiers(db: Session, params: DossierFilters) -> ORMQuery:
    search = (params.search or "").strip()
    search_criterion = None
    if search:
        pattern = f"%{search}%"
        search_criterion = or_(
            Dossier.numero.ilike(pattern),
            Dossier.nom_dossier.ilike(pattern),
            Dossier.demandes.any(
                or_(Demande.nom.ilike(pattern), Demande.prenom.ilike(pattern), Demande.numero_ds.ilike(pattern))
            ),
        )
    demandeur = (params.demandeur or "").strip()
    badges = filters.split_values(params.badges)
    query = filters.apply(
        db.query(Dossier),
        search_criterion,
        Dossier.numero.ilike(f"%{params.numero.strip()}%") if params.numero and params.numero.strip() else None,
        filters.contains_any(params.nom_dossier, Dossier.nom_dossier),
        Dossier.demandes.any(filters.contains_any(demandeur, Demande.nom, Demande.prenom, Demande.numero_ds))
        if demandeur
        else None,
        _sgami_filter(params.sgami),
        filters.user_filter(db, Dossier.assigne_a_id, params.assigne_a),
        Dossier.badges.any(Badge.nom.in_(badges)) if badges else None,
    )
    sort_columns = {
        "numero": cast(Dossier.numero, Integer),
        "nom_dossier": Dossier.nom_dossier,
        "nombre_demandes": _nombre_demandes(),
        "created_at": Dossier.created_at,
    }
    expression = sort_columns.get(params.sort_by or "", Dossier.created_at)
    return filters.ordered(query, expression, params.sort_order)


def next_numero(db: Session) -> str:
    numbers = [int(numero) for (numero,) in db.query(Dossier.numero).all() if str(numero).isdigit()]
    return str(max(numbers, default=0) + 1)


def _get_dossier(db: Session, dossier_id: str) -> Dossier:
    dossier = db.get(Dossier, dossier_id)
    if dossier is None:
        raise NotFoundError("Dossier non trouvé")
    return dossier


def _apply_links(db: Session, dossier: Dossier, badge_ids: Optional[List[str]], bap_id: Optional[str]) -> None:
    if badge_ids is not None:
        badges = db.query(Badge).filter(Badge.id.in_(badge_ids)).all() if badge_ids else []
        if len(badges) != len(set(badge_ids)):
            raise ValidationError("Badge(s) invalide(s)")
        dossier.badges = badges
    if bap_id:
        if db.get(Bap, bap_id) is None:
            raise ValidationError("BAP invalide")
        dossier.bap_id = bap_id
    else:
        dossier.bap_id = None


def _check_refs(db: Session, sgami_id: Optional[str], assigne_a_id: Optional[str]) -> None:
    if sgami_id and db.get(Sgami, sgami_id) is None:
        raise NotFoundError("SGAMI non trouvé")
    if assigne_a_id and db.get(User, assigne_a_id) is None:
        raise ValidationError("Rédacteur invalide")


@router.get("")
def list_dossiers(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=filters.MAX_PAGE_SIZE),
    params: DossierFilters = Depends(dossier_filters),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> dict:
    result = filters.paginate(filtered_dossiers(db, params), page, limit)
    return {"dossiers": [serializers.dossier(item) for item in result.items], "pagination": result.meta()}


@router.get("/facets")
def dossier_facets(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    sgamis = [nom for (nom,) in db.query(Sgami.nom).order_by(Sgami.nom).all()]
    badges = [
        {"id": badge.id, "nom": badge.nom, "couleur": badge.couleur}
        for badge in db.query(Badge).order_by(Badge.nom).all()
    ]
    holders = (
        db.query(User)
        .filter(User.active.is_(True), User.id.in_(select(Dossier.assigne_a_id).where(Dossier.assigne_a_id.isnot(None))))
        .order_by(User.nom, User.prenom)
        .all()
    )
    return {
        "sgamis": sgamis,
        "badges": badges,
        "assigne_a": [{"id": user.id, "full_name": user.full_name} for user in holders],
    }


@router.get("/{dossier_id}")
def get_dossier(dossier_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    dossier = _get_dossier(db, dossier_id)
    log_action(db, user.id, "VIEW_DOSSIER", f"Consultation du dossier {dossier.numero}", "Dossier", dossier.id)
    return serializers.dossier(dossier, detail=True)


@router.get("/{dossier_id}/export.pdf")
def export_dossier_pdf(dossier_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> Response:
    dossier = _get_dossier(db, dossier_id)
    content = exporter.dossier_pdf(dossier)
    log_action(db, user.id, "EXPORT_DOSSIER_PDF", f"Export PDF du dossier {dossier.numero}", "Dossier", dossier.id)
    headers = {"Content-Disposition": f'attachment; filename="dossier-{dossier.numero}.pdf"'}
    return Response(content=content, media_type="application/pdf", headers=headers)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_dossier(
    payload: CreateDossierRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    data = filters.blank_to_none(payload.model_dump())
    if not data["assigne_a_id"]:
        raise ValidationError("Le rédacteur est requis")
    _check_refs(db, data["sgami_id"], data["assigne_a_id"])
    dossier = Dossier(
        numero=next_numero(db),
        nom_dossier=data["nom_dossier"],
        notes=data["notes"],
        sgami_id=data["sgami_id"],
        assigne_a_id=data["assigne_a_id"],
        cree_par_id=user.id,
    )
    _apply_links(db, dossier, payload.badges, data["bap_id"])
    db.add(dossier)
    db.flush()
    if payload.selected_demande_ids:
        db.query(Demande).filter(Demande.id.in_(payload.selected_demande_ids)).update(
            {Demande.dossier_id: dossier.id}, synchronize_session=False
        )
        db.flush()
    db.refresh(dossier)
    sync_demandes_from_dossier(db, dossier)
    db.commit()
    log_action(db, user.id, "CREATE_DOSSIER", f"Création du dossier {dossier.numero}", "Dossier", dossier.id)
    return serializers.dossier(dossier)


@router.put("/{dossier_id}")
def update_dossier(
    dossier_id: str,
    payload: UpdateDossierRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    dossier = _get_dossier(db, dossier_id)
    data = filters.blank_to_none(payload.model_dump(exclude_unset=True))
    _check_refs(db, data.get("sgami_id"), data.get("assigne_a_id"))
    for key in ("nom_dossier", "notes", "sgami_id", "assigne_a_id"):
        if key in data:
            setattr(dossier, key, data[key])
    _apply_links(db, dossier, data.get("badges"), data["bap_id"] if "bap_id" in data else dossier.bap_id)
    dossier.modifie_par_id = user.id
    db.flush()
    db.refresh(dossier)
    sync_demandes_from_dossier(db, dossier)
    db.commit()
    log_action(db, user.id, "UPDATE_DOSSIER", f"Modification du dossier {dossier.numero}", "Dossier", dossier.id)
    return serializers.dossier(dossier)


@router.delete("/{dossier_id}")
def delete_dossier(dossier_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    dossier = _get_dossier(db, dossier_id)
    blockers = (
        (Demande, "demandes"),
        (Decision, "décisions"),
        (Convention, "conventions"),
        (Paiement, "paiements"),
    )
    for model, label in blockers:
        count = db.query(func.count(model.id)).filter(model.dossier_id == dossier.id).scalar() or 0
        if count:
            raise ConflictError(f"Impossible de supprimer un dossier contenant des {label}")
    numero = dossier.numero
    db.delete(dossier)
    db.commit()
    log_action(db, user.id, "DELETE_DOSSIER", f"Suppression du dossier {numero}", "Dossier", dossier_id)
    return {"message": "Dossier supprimé avec succès"}
