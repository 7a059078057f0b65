"""Download of generated Word documents."""
from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from brpf import serializers
from brpf.audit import log_action
from brpf.documents import generator
from brpf.errors import NotFoundError, ValidationError
from brpf.models import Convention, Decision, Paiement, User, get_db
from brpf.security import get_current_user
from brpf.templates_store import DOCX_MEDIA_TYPE

router = APIRouter(prefix="/api/generate-documents", tags=["documents"])


def _attachment(content: bytes, filename: str) -> Response:
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return Response(content=content, media_type=DOCX_MEDIA_TYPE, headers=headers)


def _stamp() -> int:
    return int(time.time() * 1000)


def _convention(db: Session, convention_id: str, expected: str) -> Convention:
    convention = db.get(Convention, convention_id)
    if convention is None:
        raise NotFoundError("Convention non trouvée" if expected == "CONVENTION" else "Avenant non trouvé")
    if convention.type != expected:
        raise ValidationError(
            "Ce document n'est pas une convention" if expected == "CONVENTION" else "Ce document n'est pas un avenant"
        )
    return convention


@router.get("/decisions")
def generable_decisions(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    decisions = db.query(Decision).order_by(Decision.created_at.desc()).all()
    return [
        {
            "id": decision.id,
            "numero": decision.numero,
            "type": decision.type,
            "date_signature": serializers.iso(decision.date_signature),
            "dossier_numero": decision.dossier.numero,
            "nombre_demandes": len(decision.demandes),
            "created_at": serializers.iso(decision.created_at),
        }
        for decision in decisions
    ]


def _conventions_of_type(db: Session, kind: str) -> list:
    conventions = db.query(Convention).filter(Convention.type == kind).order_by(Convention.created_at.desc()).all()
    return [
        {
            "id": convention.id,
            "numero": convention.numero,
            "montant_ht": convention.montant_ht,
            "dossier_numero": convention.dossier.numero,
            "avocat": serializers.avocat_summary(convention.avocat),
            "created_at": serializers.iso(convention.created_at),
        }
        for convention in conventions
    ]


@router.get("/conventions")
def generable_conventions(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    return _conventions_of_type(db, "CONVENTION")


@router.get("/avenants")
def generable_avenants(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    return _conventions_of_type(db, "AVENANT")


@router.get("/paiements")
def generable_paiements(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    paiements = db.query(Paiement).order_by(Paiement.created_at.desc()).all()
    return [
        {
            "id": paiement.id,
            "numero": paiement.numero,
            "montant_ttc": paiement.montant_ttc,
            "identite_beneficiaire": paiement.identite_beneficiaire,
            "dossier_numero": paiement.dossier.numero,
            "created_at": serializers.iso(paiement.created_at),
        }
        for paiement in paiements
    ]


@router.post("/decision/{decision_id}")
def generate_decision(decision_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> Response:
    decision = db.get(Decision, decision_id)
    if decision is None:
        raise NotFoundError("Décision non trouvée")
    content = generator.render(db, "decision", generator.decision_context(decision))
    log_action(
        db,
        user.id,
        "GENERATE_DECISION",
        f"Génération document de décision n°{decision.numero} ({decision.type}) pour dossier {decision.dossier.numero}",
        "Decision",
        decision.id,
    )
    return _attachment(content, f"decision-{decision.numero or 'sans-numero'}-{_stamp()}.docx")


@router.post("/convention/{convention_id}")
def generate_convention(
    convention_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    convention = _convention(db, convention_id, "CONVENTION")
    content = generator.render(db, "convention", generator.convention_context(convention))
    log_action(
        db,
        user.id,
        "GENERATE_CONVENTION",
        f"Génération document de convention n°{convention.numero} pour dossier {convention.dossier.numero}",
        "Convention",
        convention.id,
    )
    return _attachment(content, f"convention-{convention.numero}-{_stamp()}.docx")


@router.post("/avenant/{avenant_id}")
def generate_avenant(avenant_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> Response:
    avenant = _convention(db, avenant_id, "AVENANT")
    content = generator.render(db, "avenant", generator.avenant_context(avenant))
    log_action(
        db,
        user.id,
        "GENERATE_AVENANT",
        f"Génération document d'avenant n°{avenant.numero} pour dossier {avenant.dossier.numero}",
        "Convention",
        avenant.id,
    )
    return _attachment(content, f"avenant-{avenant.numero}-{_stamp()}.docx")


@router.post("/reglement/{paiement_id}")
def generate_reglement(paiement_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> Response:
    paiement = db.get(Paiement, paiement_id)
    if paiement is None:
        raise NotFoundError("Paiement non trouvé")
    content = generator.render(db, "reglement", generator.reglement_context(paiement))
    log_action(
        db,
        user.id,
        "GENERATE_FICHE_PAIEMENT",
        f"Génération fiche de paiement n°{paiement.numero} pour {paiement.identite_beneficiaire}",
        "Paiement",
        paiement.id,
    )
    return _attachment(content, f"fiche_reglement_{paiement.numero}_FRI.docx")
