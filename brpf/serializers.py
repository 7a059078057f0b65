"""Dictionary renderings of ORM records for JSON responses."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Optional

from brpf.models import (
    DECISION_LABELS,
    Avocat,
    Convention,
    Decision,
    Demande,
    Dossier,
    Paiement,
    User,
)


def iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def columns(record: Any, exclude: Iterable[str] = ()) -> dict[str, Any]:
    """Every mapped column of ``record`` with dates rendered as ISO strings."""

    skipped = set(exclude)
    data: dict[str, Any] = {}
    for column in record.__table__.columns:
        if column.key in skipped:
            continue
        value = getattr(record, column.key)
        data[column.key] = iso(value) if isinstance(value, (date, datetime)) else value
    return data


def user_summary(user: Optional[User]) -> Optional[dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": user.id,
        "nom": user.nom,
        "prenom": user.prenom,
        "grade": user.grade,
        "full_name": user.full_name,
    }


def user_public(user: User) -> dict[str, Any]:
    return columns(user, exclude=("password",))


def record(item: Any) -> Optional[dict[str, Any]]:
    return columns(item) if item is not None else None


def dossier_summary(dossier: Optional[Dossier]) -> Optional[dict[str, Any]]:
    if dossier is None:
        return None
    return {"id": dossier.id, "numero": dossier.numero, "nom_dossier": dossier.nom_dossier}


def avocat_summary(avocat: Optional[Avocat]) -> Optional[dict[str, Any]]:
    if avocat is None:
        return None
    return {
        "id": avocat.id,
        "nom": avocat.nom,
        "prenom": avocat.prenom,
        "email": avocat.email,
        "region": avocat.region,
        "active": avocat.active,
    }


def demandeur_summary(demande: Demande) -> dict[str, Any]:
    return {
        "id": demande.id,
        "numero_ds": demande.numero_ds,
        "nom": demande.nom,
        "prenom": demande.prenom,
        "type": demande.type,
        "grade": record(demande.grade),
    }


def decision_summary(decision: Decision) -> dict[str, Any]:
    return {
        "id": decision.id,
        "numero": decision.numero,
        "type": decision.type,
        "type_label": DECISION_LABELS.get(decision.type, decision.type),
        "date_signature": iso(decision.date_signature),
    }


def demande(item: Demande) -> dict[str, Any]:
    data = columns(item)
    data.update(
        {
            "grade": record(item.grade),
            "dossier": dossier_summary(item.dossier),
            "assigne_a": user_summary(item.assigne_a),
            "cree_par": user_summary(item.cree_par),
            "modifie_par": user_summary(item.modifie_par),
            "badges": [record(badge) for badge in item.badges],
            "baps": [record(bap) for bap in item.baps],
            "decisions": [decision_summary(decision) for decision in item.decisions],
        }
    )
    return data


def decision(item: Decision) -> dict[str, Any]:
    data = columns(item)
    data.update(
        {
            "type_label": DECISION_LABELS.get(item.type, item.type),
            "visa": record(item.visa),
            "dossier": dossier_summary(item.dossier),
            "demandes": [demandeur_summary(entry) for entry in item.demandes],
            "cree_par": user_summary(item.cree_par),
            "modifie_par": user_summary(item.modifie_par),
        }
    )
    return data


def convention(item: Convention) -> dict[str, Any]:
    data = columns(item)
    data.update(
        {
            "dossier": dossier_summary(item.dossier),
            "avocat": avocat_summary(item.avocat),
            "demandes": [demandeur_summary(entry) for entry in item.demandes],
            "diligences": [{"id": entry.id, "nom": entry.nom} for entry in item.diligences],
            "decisions": [decision_summary(entry) for entry in item.decisions],
            "cree_par": user_summary(item.cree_par),
            "modifie_par": user_summary(item.modifie_par),
        }
    )
    return data


def paiement(item: Paiement) -> dict[str, Any]:
    data = columns(item)
    data.update(
        {
            "dossier": dossier_summary(item.dossier),
            "sgami": {"id": item.sgami.id, "nom": item.sgami.nom} if item.sgami else None,
            "avocat": avocat_summary(item.avocat),
            "pce": record(item.pce),
            "decisions": [decision_summary(entry) for entry in item.decisions],
            "cree_par": user_summary(item.cree_par),
            "modifie_par": user_summary(item.modifie_par),
        }
    )
    return data


def dossier_stats(item: Dossier) -> dict[str, Any]:
    return {
        "total_conventions_ht": round(sum(entry.montant_ht or 0.0 for entry in item.conventions), 2),
        "total_paiements_ttc": round(sum(entry.montant_ttc or 0.0 for entry in item.paiements), 2),
        "nombre_demandes": len(item.demandes),
        "nombre_decisions": len(item.decisions),
    }


def dossier(item: Dossier, detail: bool = False) -> dict[str, Any]:
    data = columns(item)
    data.update(
        {
            "sgami": {"id": item.sgami.id, "nom": item.sgami.nom} if item.sgami else None,
            "bap": record(item.bap),
            "assigne_a": user_summary(item.assigne_a),
            "cree_par": user_summary(item.cree_par),
            "modifie_par": user_summary(item.modifie_par),
            "badges": [record(badge) for badge in item.badges],
            "demandes": [demandeur_summary(entry) for entry in item.demandes],
            "stats": dossier_stats(item),
        }
    )
    if detail:
        data["decisions"] = [decision(entry) for entry in item.decisions]
        data["conventions"] = [convention(entry) for entry in item.conventions]
        data["paiements"] = [paiement(entry) for entry in item.paiements]
    return data


__all__ = [
    "avocat_summary",
    "columns",
    "convention",
    "decision",
    "decision_summary",
    "demande",
    "demandeur_summary",
    "dossier",
    "dossier_stats",
    "dossier_summary",
    "iso",
    "paiement",
    "record",
    "user_public",
    "user_summary",
]
