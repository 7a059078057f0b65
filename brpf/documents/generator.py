"""Word documents issued for decisions, conventions, avenants and fiches de règlement.

Templates are DOCX files carrying Jinja tags (``{{ decision.numero }}``,
``{% for demandeur in demandeurs %}``) rendered by docxtpl against a context
dictionary. When no custom template is active for a type, a default layout is
built with python-docx and rendered the same way.
"""
from __future__ import annotations

import logging
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt
from docxtpl import DocxTemplate
from jinja2 import ChainableUndefined, Environment
from sqlalchemy.orm import Session

from brpf import templates_store
from brpf.documents import formatting as fmt
from brpf.models import DECISION_LABELS, Convention, Decision, Paiement, User

logger = logging.getLogger(__name__)

Context = Dict[str, Any]


def _utilisateur(user: Optional[User]) -> Context:
    if user is None:
        return {"grade": "", "nom": "", "prenom": "", "grade_abrege": "", "mail": "", "telephone": ""}
    return {
        "grade": user.grade or "",
        "nom": user.nom,
        "prenom": user.prenom,
        "grade_abrege": user.grade or "",
        "mail": user.mail or "",
        "telephone": user.telephone or "",
    }


def _dossier(dossier) -> Context:
    return {"numero": dossier.numero, "nom_dossier": dossier.nom_dossier or "", "notes": dossier.notes or ""}


def _sgami(sgami) -> Context:
    if sgami is None:
        return {}
    return {
        "nom": sgami.nom,
        "format_court_nommage": sgami.format_court_nommage or "",
        "texte_convention": sgami.texte_convention or "",
        "intitule_fiche_reglement": sgami.intitule_fiche_reglement or sgami.nom,
    }


def _demandeur_detaille(demande, with_profile: bool) -> str:
    lines = [fmt.demandeur_nom(demande)]
    if with_profile:
        profile = [
            ("NIGEND", demande.nigend),
            ("Statut", demande.statut_demandeur),
            ("Branche", demande.branche),
            ("Formation", demande.formation_administrative),
            ("Unité", demande.unite),
        ]
        lines.extend(f"{label}: {value}" for label, value in profile if value)
    contacts = [
        value
        for value in (
            demande.email_professionnel,
            demande.email_personnel,
            demande.telephone_professionnel,
            demande.telephone_personnel,
        )
        if value
    ]
    if contacts:
        lines.append(("Contacts: " + ", ".join(contacts)) if with_profile else "\n".join(contacts))
    return "\n".join(lines)


def _faits(demande) -> str:
    lines: List[str] = []
    if demande.date_faits or demande.commune:
        line = f"Faits du {fmt.format_date(demande.date_faits) or '[date non précisée]'}"
        if demande.commune:
            line += f" à {demande.commune}"
            if demande.code_postal:
                line += f" ({demande.code_postal})"
        lines.append(line)
    for label, value in (
        ("Position", demande.position),
        ("Contexte", demande.contexte_missionnel),
        ("Qualification", demande.qualification_infraction),
        ("Résumé", demande.resume),
        ("Blessures", demande.blessures),
    ):
        if value:
            lines.append(f"{label}: {value}")
    return "\n".join(lines)


def _demandeurs(demandes) -> List[Context]:
    return [
        {
            "nom": demande.nom,
            "prenom": demande.prenom,
            "nom_complet": fmt.demandeur_nom(demande),
            "grade": demande.grade.grade_abrege if demande.grade is not None else "",
            "qualite": fmt.victime_mec_label(demande.type),
            "unite": demande.unite or "",
        }
        for demande in demandes
    ]


def _decisions(decisions) -> List[Context]:
    return [
        {
            "numero": decision.numero,
            "type_label": DECISION_LABELS.get(decision.type, decision.type or ""),
            "date_signature": fmt.format_date(decision.date_signature),
        }
        for decision in decisions
    ]


def _avocat_nom(avocat) -> str:
    if avocat is None:
        return ""
    return " ".join(part for part in (avocat.prenom, avocat.nom) if part)


def decision_context(decision: Decision) -> Context:
    demandes = list(decision.demandes)
    return {
        "decision": {
            "numero": decision.numero,
            "type": decision.type,
            "type_label": DECISION_LABELS.get(decision.type, decision.type or ""),
            "motif_rejet": decision.motif_rejet or "",
            "date_signature": fmt.format_date(decision.date_signature),
            "date_envoi": fmt.format_date(decision.date_envoi),
            "avis_hierarchiques": "Vu les avis hiérarchiques ;\n" if decision.avis_hierarchiques else "",
            "type_vict_mec": fmt.victime_mec_label(decision.type_vict_mec),
            "considerant": decision.considerant or "",
        },
        "utilisateur": _utilisateur(decision.cree_par),
        "visa": {"type_visa": decision.visa.type_visa, "texte_visa": decision.visa.texte_visa or ""},
        "dossier": _dossier(decision.dossier),
        "sgami": _sgami(decision.dossier.sgami),
        "demandeurs": _demandeurs(demandes),
        "demandeurs_liste": fmt.demandeurs_liste(demandes),
        "demandeurs_liste_detaille": "\n\n".join(_demandeur_detaille(demande, True) for demande in demandes),
        "faits_liste": "\n\n".join(text for text in (_faits(demande) for demande in demandes) if text),
        "conventions_liste": ", ".join(
            f"Convention n°{convention.numero} ({fmt.victime_mec_label(convention.victime_ou_mis_en_cause)})"
            f" - {_avocat_nom(convention.avocat)}"
            for convention in decision.conventions
        ),
        "date_generation": fmt.format_date(datetime.now()),
    }


def _convention_fields(convention: Convention) -> Context:
    return {
        "numero": convention.numero,
        "type": convention.type,
        "victime_ou_mis_en_cause": fmt.victime_mec_label(convention.victime_ou_mis_en_cause),
        "instance": convention.instance,
        "montant_ht": fmt.format_montant(convention.montant_ht),
        "montant_ht_en_lettres": fmt.montant_en_lettres(convention.montant_ht),
        "complement_facturation": fmt.complement_facturation(convention.type_facturation),
        "date_creation": fmt.format_date(convention.date_creation),
        "date_retour_signe": fmt.format_date(convention.date_retour_signe),
    }


def _convention_common(convention: Convention) -> Context:
    avocat = convention.avocat
    demandes = list(convention.demandes)
    diligence = convention.diligences[0] if convention.diligences else None
    return {
        "utilisateur": _utilisateur(convention.cree_par),
        "avocat": {
            "nom": avocat.nom,
            "prenom": avocat.prenom or "",
            "nom_complet": _avocat_nom(avocat),
            "email": avocat.email or "",
            "region": avocat.region or "",
            "adresse_postale": avocat.adresse_postale or "",
            "telephone_public_1": avocat.telephone_public_1 or "",
            "telephone_public_2": avocat.telephone_public_2 or "",
            "siret_ou_ridet": avocat.siret_ou_ridet or "",
            "titulaire_compte_bancaire": avocat.titulaire_compte_bancaire or "",
            "code_etablissement": avocat.code_etablissement or "",
            "code_guichet": avocat.code_guichet or "",
            "numero_compte": avocat.numero_compte or "",
            "cle_rib": avocat.cle_rib or "",
        },
        "dossier": _dossier(convention.dossier),
        "sgami": _sgami(convention.dossier.sgami),
        "demandeurs": _demandeurs(demandes),
        "demandeurs_liste": fmt.demandeurs_liste(demandes),
        "demandeurs_liste_detaille": "\n\n".join(_demandeur_detaille(demande, False) for demande in demandes),
        "diligence": {"libelle": diligence.nom, "description": diligence.details or ""} if diligence else {},
        "decisions": _decisions(convention.decisions),
        "decisions_liste": fmt.decisions_liste(convention.decisions),
        "date_generation": fmt.format_date(datetime.now()),
    }


def convention_context(convention: Convention) -> Context:
    context = _convention_common(convention)
    context["convention"] = _convention_fields(convention)
    return context


def avenant_context(convention: Convention) -> Context:
    """Context of an avenant: amounts cover the new commitment, the earlier one and their total."""

    gage = convention.montant_ht_gage_precedemment or 0.0
    total = (convention.montant_ht or 0.0) + gage
    fields = _convention_fields(convention)
    fields.update(
        {
            "montant_ht_gage_precedemment": fmt.format_montant(convention.montant_ht_gage_precedemment),
            "montant_ht_gage_precedemment_en_lettres": fmt.montant_en_lettres(
                convention.montant_ht_gage_precedemment
            ),
            "montant_ht_total": fmt.format_montant(total),
            "montant_ht_total_en_lettres": fmt.montant_en_lettres(total),
        }
    )
    context = _convention_common(convention)
    context["avenant"] = fields
    return context


def reglement_context(paiement: Paiement) -> Context:
    demandes = list(paiement.dossier.demandes)
    premiere = demandes[0] if demandes else None
    pce = paiement.pce
    return {
        "paiement": {
            "numero": paiement.numero,
            "facture": paiement.facture or "N/A",
            "montant_ttc": fmt.format_montant(paiement.montant_ttc),
            "montant_ttc_en_lettres": fmt.montant_en_lettres(paiement.montant_ttc),
            "date_service_fait": fmt.format_date(paiement.date_service_fait),
            "convention_jointe_fri": paiement.convention_jointe_fri or "NON",
            "emission_titre_perception": paiement.emission_titre_perception or "NON",
            "qualite_beneficiaire": paiement.qualite_beneficiaire or "",
            "identite_beneficiaire": paiement.identite_beneficiaire or "",
            "siret_ou_ridet": paiement.siret_ou_ridet or "",
            "adresse_beneficiaire": paiement.adresse_beneficiaire or "",
            "titulaire_compte_bancaire": paiement.titulaire_compte_bancaire or "",
            "code_etablissement": paiement.code_etablissement or "",
            "code_guichet": paiement.code_guichet or "",
            "numero_compte": paiement.numero_compte or "",
            "cle_rib": paiement.cle_rib or "",
        },
        "demandeur": {
            "grade": premiere.grade.grade_abrege if premiere is not None and premiere.grade is not None else "N/A",
            "prenom": premiere.prenom if premiere is not None else "",
            "nom": premiere.nom.upper() if premiere is not None else "",
        },
        "sgami": _sgami(paiement.sgami),
        "pce": {
            "pce_detaille": pce.pce_detaille if pce else "",
            "pce_numerique": pce.pce_numerique if pce else "N/A",
            "code_marchandise": pce.code_marchandise if pce else "N/A",
        },
        "utilisateur": _utilisateur(paiement.cree_par),
        "avocat": {"nom": paiement.avocat.nom, "prenom": paiement.avocat.prenom or ""} if paiement.avocat else {},
        "dossier": _dossier(paiement.dossier),
        "demandeurs": _demandeurs(demandes),
        "decisions": _decisions(paiement.decisions),
        "demandeurs_liste": fmt.demandeurs_liste(demandes),
        "decisions_liste": fmt.decisions_liste(paiement.decisions),
        "date_document": fmt.format_date(datetime.now()),
    }


# Default layouts: (kind, text) with kind in "title", "heading", "text", "signature".
Layout = List[Tuple[str, str]]

DEFAULT_LAYOUTS: Dict[str, Layout] = {
    "decision": [
        ("title", "Décision n° {{ decision.numero }}"),
        ("heading", "{{ decision.type_label }}"),
        ("text", "Dossier n° {{ dossier.numero }} {{ dossier.nom_dossier }}"),
        ("text", "{{ visa.texte_visa }}"),
        ("text", "{{ decision.avis_hierarchiques }}Vu la demande présentée par {{ demandeurs_liste }}, "
                 "en qualité de {{ decision.type_vict_mec }} ;"),
        ("heading", "Faits"),
        ("text", "{{ faits_liste }}"),
        ("heading", "Considérant"),
        ("text", "{{ decision.considerant }}"),
        ("text", "{{ decision.motif_rejet }}"),
        ("signature", "Fait le {{ decision.date_signature }}\n{{ utilisateur.grade }} {{ utilisateur.prenom }} "
                      "{{ utilisateur.nom }}"),
    ],
    "convention": [
        ("title", "Convention d'honoraires n° {{ convention.numero }}"),
        ("text", "{{ sgami.texte_convention }}"),
        ("text", "Entre l'administration et Maître {{ avocat.nom_complet }}, {{ avocat.adresse_postale }}."),
        ("text", "Objet : assistance de {{ demandeurs_liste }}, {{ convention.victime_ou_mis_en_cause }}, "
                 "devant {{ convention.instance }}, au titre des décisions {{ decisions_liste }}."),
        ("heading", "Honoraires"),
        ("text", "Le montant des honoraires est fixé à {{ convention.montant_ht }} € hors taxes "
                 "({{ convention.montant_ht_en_lettres }}){{ convention.complement_facturation }}."),
        ("text", "Diligence : {{ diligence.libelle }} {{ diligence.description }}"),
        ("signature", "Dossier n° {{ dossier.numero }}, le {{ date_generation }}\n{{ utilisateur.grade }} "
                      "{{ utilisateur.prenom }} {{ utilisateur.nom }}"),
    ],
    "avenant": [
        ("title", "Avenant n° {{ avenant.numero }}"),
        ("text", "Entre l'administration et Maître {{ avocat.nom_complet }}."),
        ("text", "Assistance de {{ demandeurs_liste }}, {{ avenant.victime_ou_mis_en_cause }}, "
                 "devant {{ avenant.instance }}."),
        ("heading", "Honoraires"),
        ("text", "Montant précédemment engagé : {{ avenant.montant_ht_gage_precedemment }} € HT "
                 "({{ avenant.montant_ht_gage_precedemment_en_lettres }})."),
        ("text", "Montant complémentaire : {{ avenant.montant_ht }} € HT ({{ avenant.montant_ht_en_lettres }})"
                 "{{ avenant.complement_facturation }}."),
        ("text", "Montant total : {{ avenant.montant_ht_total }} € HT ({{ avenant.montant_ht_total_en_lettres }})."),
        ("signature", "Dossier n° {{ dossier.numero }}, le {{ date_generation }}\n{{ utilisateur.grade }} "
                      "{{ utilisateur.prenom }} {{ utilisateur.nom }}"),
    ],
    "reglement": [
        ("title", "{{ sgami.intitule_fiche_reglement }}"),
        ("heading", "Fiche de règlement n° {{ paiement.numero }}"),
        ("text", "Dossier n° {{ dossier.numero }} : {{ demandeur.grade }} {{ demandeur.prenom }} {{ demandeur.nom }}"),
        ("text", "Décisions : {{ decisions_liste }}"),
        ("text", "Bénéficiaire : {{ paiement.identite_beneficiaire }} ({{ paiement.qualite_beneficiaire }})"),
        ("text", "Adresse : {{ paiement.adresse_beneficiaire }}  SIRET/RIDET : {{ paiement.siret_ou_ridet }}"),
        ("text", "Facture : {{ paiement.facture }}  Service fait le {{ paiement.date_service_fait }}"),
        ("text", "Montant TTC : {{ paiement.montant_ttc }} €"),
        ("text", "PCE : {{ pce.pce_numerique }} {{ pce.pce_detaille }}  Code marchandise : {{ pce.code_marchandise }}"),
        ("text", "RIB : {{ paiement.titulaire_compte_bancaire }} {{ paiement.code_etablissement }} "
                 "{{ paiement.code_guichet }} {{ paiement.numero_compte }} {{ paiement.cle_rib }}"),
        ("text", "Émission d'un titre de perception : {{ paiement.emission_titre_perception }}  "
                 "Convention jointe : {{ paiement.convention_jointe_fri }}"),
        ("signature", "Le {{ date_document }}\n{{ utilisateur.grade_abrege }} {{ utilisateur.prenom }} "
                      "{{ utilisateur.nom }}"),
    ],
}


def default_template(template_type: str):
    """Build the default DOCX layout of ``template_type`` with its placeholders unfilled."""

    document = Document()
    for kind, text in DEFAULT_LAYOUTS[template_type]:
        if kind == "title":
            document.add_heading(text, level=1)
        elif kind == "heading":
            document.add_heading(text, level=2)
        else:
            paragraph = document.add_paragraph()
            run = paragraph.add_run(text)
            run.font.size = Pt(11)
            if kind == "signature":
                paragraph.alignment = WD_ALIGN_PARAGRAPH.RIGHT
            else:
                paragraph.alignment = WD_ALIGN_PARAGRAPH.JUSTIFY
    return document


def default_template_bytes(template_type: str) -> bytes:
    buffer = BytesIO()
    default_template(template_type).save(buffer)
    return buffer.getvalue()


def _finalize(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Oui" if value else "Non"
    return value


def jinja_env() -> Environment:
    """Environment shared by every template: unknown paths render empty, booleans read Oui/Non."""

    return Environment(autoescape=True, undefined=ChainableUndefined, finalize=_finalize)


def render_template(source, context: Context) -> bytes:
    """Render a DOCX template (path or file object) with ``context``.

    docxtpl rebuilds tags that Word split across runs and leaves the formatting
    of the surrounding runs alone. Newlines in values become line breaks.
    """

    document = DocxTemplate(source)
    document.render(context, jinja_env(), autoescape=True)
    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def render(db: Session, template_type: str, context: Context) -> bytes:
    """Fill the active template of ``template_type`` (or the default layout) with ``context``."""

    path = templates_store.resolve_template(db, template_type)
    source = str(path) if path is not None else BytesIO(default_template_bytes(template_type))
    content = render_template(source, context)
    logger.info("Rendered %s document from %s template", template_type, "custom" if path else "default")
    return content


__all__ = [
    "DEFAULT_LAYOUTS",
    "avenant_context",
    "convention_context",
    "decision_context",
    "default_template",
    "default_template_bytes",
    "jinja_env",
    "reglement_context",
    "render",
    "render_template",
]
