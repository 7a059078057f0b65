"""Right of access: find a person and export what the bureau holds about them.

Other people appearing in the exported records (colleagues, co-demandeurs,
avocats, agents of the bureau) are replaced by stable pseudonyms such as
"Personne 1" so the export only discloses the requester's own data.
"""
from __future__ import annotations

import json
import time
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from brpf import exporter, filters, serializers
from brpf.audit import log_action
from brpf.errors import NotFoundError, ValidationError
from brpf.models import Avocat, Convention, Demande, Paiement, User, get_db
from brpf.security import require_admin

router = APIRouter(prefix="/api/rgpd", tags=["rgpd"])

PersonType = Literal["demandeur", "avocat"]

USER_KEYS = ("cree_par", "modifie_par", "assigne_a")
MASKED_EMAIL = "*****@*****.***"
MASKED_PHONE = "**.**.**.**.**"
MASKED_ADDRESS = "Adresse anonymisée"
MASKS = {
    "email": MASKED_EMAIL,
    "email_professionnel": MASKED_EMAIL,
    "email_personnel": MASKED_EMAIL,
    "mail": MASKED_EMAIL,
    "telephone": MASKED_PHONE,
    "telephone_professionnel": MASKED_PHONE,
    "telephone_personnel": MASKED_PHONE,
    "telephone_public_1": MASKED_PHONE,
    "telephone_public_2": MASKED_PHONE,
    "telephone_prive": MASKED_PHONE,
    "adresse_postale": MASKED_ADDRESS,
    "adresse_postale_ligne1": MASKED_ADDRESS,
    "adresse_postale_ligne2": MASKED_ADDRESS,
    "nigend": "*****",
}


class ExportRequest(BaseModel):
    person_id: Optional[str] = None
    person_type: Optional[PersonType] = None
    format: Literal["json", "pdf"] = "pdf"
    include_related_data: bool = True


class Anonymizer:
    """Replaces everyone but the exported person with numbered pseudonyms."""

    def __init__(self, person_id: str, person_type: str) -> None:
        self.person_id = person_id
        self.person_type = person_type
        self._pseudonyms: Dict[str, str] = {}

    def _person(self, person: Any, kind: str) -> Any:
        if not isinstance(person, dict):
            return person
        if kind == self.person_type and person.get("id") == self.person_id:
            return person
        key = person.get("id") or str(len(self._pseudonyms))
        pseudonym = self._pseudonyms.setdefault(key, f"Personne {len(self._pseudonyms) + 1}")
        masked = dict(person, nom=pseudonym, prenom="")
        if "full_name" in masked:
            masked["full_name"] = pseudonym
        for field, mask in MASKS.items():
            if masked.get(field):
                masked[field] = mask
        return masked

    def __call__(self, data: Any) -> Any:
        if isinstance(data, list):
            return [self(item) for item in data]
        if not isinstance(data, dict):
            return data
        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in USER_KEYS:
                value = self._person(value, "user")
            elif key == "avocat":
                value = self._person(value, "avocat")
            elif key == "demandes" and isinstance(value, list):
                value = [self._person(item, "demandeur") for item in value]
            result[key] = self(value)
        return result


def _demandeur_data(demande: Demande, related: bool) -> dict:
    data = serializers.columns(demande)
    data.update(
        {
            "grade": serializers.record(demande.grade),
            "assigne_a": serializers.user_summary(demande.assigne_a),
            "cree_par": serializers.user_summary(demande.cree_par),
            "modifie_par": serializers.user_summary(demande.modifie_par),
        }
    )
    if related:
        data["dossier"] = serializers.dossier(demande.dossier, detail=True) if demande.dossier else None
        data["decisions"] = [serializers.decision(entry) for entry in demande.decisions]
        data["conventions"] = [serializers.convention(entry) for entry in demande.conventions]
    return data


def _avocat_data(db: Session, avocat: Avocat, related: bool) -> dict:
    data = serializers.columns(avocat)
    if related:
        conventions = db.query(Convention).filter(Convention.avocat_id == avocat.id).all()
        paiements = db.query(Paiement).filter(Paiement.avocat_id == avocat.id).all()
        data["conventions"] = [serializers.convention(entry) for entry in conventions]
        data["paiements"] = [serializers.paiement(entry) for entry in paiements]
    return data


@router.get("/search")
def search_persons(
    q: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
) -> list:
    term = (q or "").strip()
    if len(term) < 2:
        return []
    demandeurs = (
        db.query(Demande)
        .filter(
            filters.contains_any(
                term,
                Demande.nom,
                Demande.prenom,
                Demande.nigend,
                Demande.numero_ds,
                Demande.email_professionnel,
                Demande.email_personnel,
            )
        )
        .limit(20)
        .all()
    )
    avocats = (
        db.query(Avocat)
        .filter(Avocat.active.is_(True), filters.contains_any(term, Avocat.nom, Avocat.prenom, Avocat.email))
        .limit(20)
        .all()
    )
    results = [
        {
            "id": demande.id,
            "type": "demandeur",
            "nom": demande.nom,
            "prenom": demande.prenom,
            "email": demande.email_professionnel or demande.email_personnel,
            "nigend": demande.nigend,
            "numero_ds": demande.numero_ds,
        }
        for demande in demandeurs
    ]
    results.extend(
        {"id": avocat.id, "type": "avocat", "nom": avocat.nom, "prenom": avocat.prenom, "email": avocat.email}
        for avocat in avocats
    )
    return results


@router.post("/export")
def export_person(payload: ExportRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> Response:
    if not payload.person_id or not payload.person_type:
        raise ValidationError("person_id et person_type sont requis")

    if payload.person_type == "demandeur":
        demande = db.get(Demande, payload.person_id)
        person = demande
        data = _demandeur_data(demande, payload.include_related_data) if demande else None
    else:
        avocat = db.get(Avocat, payload.person_id)
        person = avocat
        data = _avocat_data(db, avocat, payload.include_related_data) if avocat else None
    if data is None:
        raise NotFoundError("Personne non trouvée")

    log_action(
        db,
        admin.id,
        "RGPD_EXPORT",
        f"Export des données {payload.person_type} {person.prenom or ''} {person.nom} - Format: {payload.format}",
        payload.person_type.upper(),
        payload.person_id,
    )

    export = {
        "export_date": datetime.now().isoformat(),
        "exported_by": f"{admin.prenom} {admin.nom}",
        "person_type": payload.person_type,
        "person_data": Anonymizer(payload.person_id, payload.person_type)(data),
        "metadata": {
            "rgpd_compliant": True,
            "data_anonymized": True,
            "export_reason": "Demande d'accès Article 15 RGPD",
        },
    }
    stem = f"export_rgpd_{payload.person_type}_{payload.person_id}_{int(time.time() * 1000)}"
    if payload.format == "json":
        return Response(
            content=json.dumps(export, ensure_ascii=False, indent=2),
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{stem}.json"'},
        )
    return Response(
        content=exporter.rgpd_pdf(export),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{stem}.pdf"'},
    )
