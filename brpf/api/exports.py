"""Spreadsheet exports of the list screens, with the same filters as the lists."""
from __future__ import annotations

from typing import Any, Iterable, List, Sequence

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from brpf import exporter
from brpf.api.conventions import ConventionFilters, convention_filters, filtered_conventions
from brpf.api.decisions import DecisionFilters, decision_filters, filtered_decisions
from brpf.api.demandes import DemandeFilters, demande_filters, filtered_demandes, revue_conventions, revue_decisions
from brpf.api.dossiers import DossierFilters, dossier_filters, filtered_dossiers
from brpf.api.paiements import PaiementFilters, filtered_paiements, paiement_filters
from brpf.audit import log_action
from brpf.models import DECISION_LABELS, User, get_db
from brpf.security import get_current_user

router = APIRouter(prefix="/api/exports", tags=["exports"])


def _workbook(prefix: str, sheet_name: str, headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> Response:
    content = exporter.xlsx_bytes(sheet_name, headers, rows)
    disposition = f'attachment; filename="{exporter.export_filename(prefix)}"'
    return Response(content=content, media_type=exporter.XLSX_MEDIA_TYPE, headers={"Content-Disposition": disposition})


def _name(user) -> str:
    return user.full_name if user is not None else ""


def _names(items: Iterable, attribute: str = "nom") -> str:
    return ", ".join(getattr(item, attribute) for item in items)


def _demandeurs(demandes: Iterable) -> str:
    return ", ".join(f"{demande.prenom} {demande.nom}" for demande in demandes)


@router.get("/demandes")
def export_demandes(
    params: DemandeFilters = Depends(demande_filters),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    demandes = filtered_demandes(db, params).all()
    headers = [
        "Numéro DS", "Type", "Nom", "Prénom", "Grade", "NIGEND", "Unité", "Département", "Date des faits",
        "Commune", "Position", "Qualification", "Partie civile", "Date d'audience", "Date de réception",
        "Dossier", "Rédacteur", "Badges", "BAP",
    ]
    rows: List[list] = [
        [
            demande.numero_ds,
            demande.type,
            demande.nom,
            demande.prenom,
            demande.grade.grade_complet if demande.grade else None,
            demande.nigend,
            demande.unite,
            demande.departement,
            demande.date_faits,
            demande.commune,
            demande.position,
            demande.qualification_infraction,
            demande.partie_civile,
            demande.date_audience,
            demande.date_reception,
            demande.dossier.numero if demande.dossier else None,
            _name(demande.assigne_a),
            _names(demande.badges),
            _names(demande.baps, "nom_bap"),
        ]
        for demande in demandes
    ]
    log_action(db, user.id, "EXPORT_DEMANDES", f"Export de {len(rows)} demande(s)", "Demande")
    return _workbook("demandes", "Demandes", headers, rows)


@router.get("/dossiers")
def export_dossiers(
    params: DossierFilters = Depends(dossier_filters),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    dossiers = filtered_dossiers(db, params).all()
    headers = ["Numéro", "Nom", "SGAMI", "BAP", "Rédacteur", "Badges", "Demandeurs", "Nombre de demandes", "Créé le"]
    rows = [
        [
            dossier.numero,
            dossier.nom_dossier,
            dossier.sgami.nom if dossier.sgami else None,
            dossier.bap.nom_bap if dossier.bap else None,
            _name(dossier.assigne_a),
            _names(dossier.badges),
            _demandeurs(dossier.demandes),
            len(dossier.demandes),
            dossier.created_at,
        ]
        for dossier in dossiers
    ]
    log_action(db, user.id, "EXPORT_DOSSIERS", f"Export de {len(rows)} dossier(s)", "Dossier")
    return _workbook("dossiers", "Dossiers", headers, rows)


@router.get("/decisions")
def export_decisions(
    params: DecisionFilters = Depends(decision_filters),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    decisions = filtered_decisions(db, params).all()
    headers = [
        "Numéro", "Type", "Dossier", "Demandeurs", "Visa", "Avis hiérarchiques", "Victime / MEC",
        "Date de signature", "Date d'envoi", "Motif de rejet", "Créée par", "Créée le",
    ]
    rows = [
        [
            decision.numero,
            DECISION_LABELS.get(decision.type, decision.type),
            decision.dossier.numero,
            _demandeurs(decision.demandes),
            decision.visa.type_visa if decision.visa else None,
            decision.avis_hierarchiques,
            decision.type_vict_mec,
            decision.date_signature,
            decision.date_envoi,
            decision.motif_rejet,
            _name(decision.cree_par),
            decision.created_at,
        ]
        for decision in decisions
    ]
    log_action(db, user.id, "EXPORT_DECISIONS", f"Export de {len(rows)} décision(s)", "Decision")
    return _workbook("decisions", "Décisions", headers, rows)


@router.get("/conventions")
def export_conventions(
    params: ConventionFilters = Depends(convention_filters),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    conventions = filtered_conventions(db, params).all()
    headers = [
        "Numéro", "Type", "Dossier", "Avocat", "Demandeurs", "Victime / MEC", "Instance", "Montant HT",
        "Montant HT gagé précédemment", "Facturation", "Retour signé le", "Créée par", "Créée le",
    ]
    rows = [
        [
            convention.numero,
            convention.type,
            convention.dossier.numero,
            " ".join(part for part in (convention.avocat.prenom, convention.avocat.nom) if part),
            _demandeurs(convention.demandes),
            convention.victime_ou_mis_en_cause,
            convention.instance,
            convention.montant_ht,
            convention.montant_ht_gage_precedemment,
            convention.type_facturation,
            convention.date_retour_signe,
            _name(convention.cree_par),
            convention.created_at,
        ]
        for convention in conventions
    ]
    log_action(db, user.id, "EXPORT_CONVENTIONS", f"Export de {len(rows)} convention(s)", "Convention")
    return _workbook("conventions", "Conventions", headers, rows)


@router.get("/paiements")
def export_paiements(
    params: PaiementFilters = Depends(paiement_filters),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    paiements = filtered_paiements(db, params).all()
    headers = [
        "Numéro", "Dossier", "SGAMI", "PCE", "Qualité du bénéficiaire", "Identité du bénéficiaire", "Facture",
        "Montant TTC", "Service fait le", "Titre de perception", "Convention jointe", "Créé par", "Créé le",
    ]
    rows = [
        [
            paiement.numero,
            paiement.dossier.numero,
            paiement.sgami.nom if paiement.sgami else None,
            paiement.pce.pce_detaille if paiement.pce else None,
            paiement.qualite_beneficiaire,
            paiement.identite_beneficiaire,
            paiement.facture,
            paiement.montant_ttc,
            paiement.date_service_fait,
            paiement.emission_titre_perception,
            paiement.convention_jointe_fri,
            _name(paiement.cree_par),
            paiement.created_at,
        ]
        for paiement in paiements
    ]
    log_action(db, user.id, "EXPORT_PAIEMENTS", f"Export de {len(rows)} paiement(s)", "Paiement")
    return _workbook("paiements", "Paiements", headers, rows)


_REVUE_HEADERS = ["Nom", "Prénom", "Qualité", "Date de réception", "Dossier", "Commentaire"]


def _revue_row(demande, commentaire) -> list:
    return [
        demande.nom,
        demande.prenom,
        "Victime" if demande.type == "VICTIME" else "Mis en cause",
        demande.date_reception,
        demande.dossier.numero if demande.dossier else "Non lié",
        commentaire or "Aucun commentaire",
    ]


@router.get("/revue-decisions")
def export_revue_decisions(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> Response:
    rows = [_revue_row(demande, demande.commentaire_decision) for demande in revue_decisions(db)]
    return _workbook("revue_decisions", "Demandes sans décision", _REVUE_HEADERS, rows)


@router.get("/revue-conventions")
def export_revue_conventions(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> Response:
    rows = [
        _revue_row(demande, demande.commentaire_convention) + [date_pj]
        for demande, date_pj in revue_conventions(db)
    ]
    headers = _REVUE_HEADERS + ["Date décision PJ"]
    return _workbook("revue_conventions", "Demandes PJ sans convention", headers, rows)
