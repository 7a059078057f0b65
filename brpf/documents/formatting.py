"""French wording helpers shared by the generated documents."""
from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional, Union

_UNITES = ["", "un", "deux", "trois", "quatre", "cinq", "six", "sept", "huit", "neuf"]
_DIZAINES = ["", "", "vingt", "trente", "quarante", "cinquante", "soixante", "soixante", "quatre-vingt", "quatre-vingt"]
_DIX_A_DIX_NEUF = ["dix", "onze", "douze", "treize", "quatorze", "quinze", "seize", "dix-sept", "dix-huit", "dix-neuf"]

# U+202F, the group separator of fr-FR number formatting.
_GROUP_SEPARATOR = "\u202f"

ASSISES_TEXTE = (
    ", montant décomposé ainsi :\n"
    " - 1 000 € [mille euros] hors taxes par militaire pour la préparation du dossier "
    "devant la cour d'assises\n"
    " - 500 € [cinq cents euros] hors taxes par demi-journée de présence devant la cour "
    "d'assises, quel que soit le nombre de militaires concernés"
)


def _centaines(n: int) -> str:
    if n == 0:
        return ""
    centaine, reste = divmod(n, 100)
    words = ""
    if centaine:
        words = "cent" if centaine == 1 else f"{_UNITES[centaine]} cent"
        if centaine > 1 and reste == 0:
            words += "s"
    if reste:
        if centaine:
            words += " "
        if reste < 10:
            words += _UNITES[reste]
        elif reste < 20:
            words += _DIX_A_DIX_NEUF[reste - 10]
        else:
            dizaine, unite = divmod(reste, 10)
            if dizaine in (7, 9):
                words += _DIZAINES[dizaine] + "-" + _DIX_A_DIX_NEUF[unite]
            else:
                words += _DIZAINES[dizaine]
                if dizaine == 8 and unite == 0:
                    words += "s"
                if unite == 1 and dizaine in (2, 3, 4, 5, 6):
                    words += " et un"
                elif unite:
                    words += "-" + _UNITES[unite]
    return words


def _milliers(n: int) -> str:
    milliers, reste = divmod(n, 1000)
    multiple = _centaines(milliers)
    # "mille" is invariable and so is the cent or vingt right before it.
    if multiple.endswith(("cents", "vingts")):
        multiple = multiple[:-1]
    words = "mille" if milliers == 1 else f"{multiple} mille"
    if reste:
        words += " " + _centaines(reste)
    return words


def nombre_en_lettres(nombre: int) -> str:
    """Spell a non-negative integer below one billion in French.

    >>> nombre_en_lettres(1280)
    'mille deux cent quatre-vingts'
    """

    nombre = int(nombre)
    if nombre == 0:
        return "zéro"
    if nombre < 1000:
        return _centaines(nombre)
    if nombre < 1_000_000:
        return _milliers(nombre)
    if nombre < 1_000_000_000:
        millions, reste = divmod(nombre, 1_000_000)
        words = "un million" if millions == 1 else f"{_centaines(millions)} millions"
        if reste:
            words += " " + (_centaines(reste) if reste < 1000 else _milliers(reste))
        return words
    return str(nombre)


def montant_en_lettres(montant: Optional[float]) -> Optional[str]:
    """Whole euros of ``montant`` spelled out, cents dropped."""

    if montant is None:
        return None
    return f"{nombre_en_lettres(int(montant))} euros"


def format_montant(montant: Optional[float]) -> str:
    if not montant:
        return "0,00"
    text = f"{montant:,.2f}"
    return text.replace(",", _GROUP_SEPARATOR).replace(".", ",")


def format_date(value: Optional[Union[date, datetime]]) -> str:
    if value is None:
        return ""
    return value.strftime("%d/%m/%Y")


def complement_facturation(type_facturation: Optional[str]) -> str:
    if type_facturation == "DEMI_JOURNEE":
        return " par demi-journée d'assistance"
    if type_facturation == "ASSISES":
        return ASSISES_TEXTE
    return ""


def victime_mec_label(value: Optional[str]) -> str:
    if value == "VICTIME":
        return "victime"
    if value == "MIS_EN_CAUSE":
        return "mis en cause"
    return (value or "").lower()


def demandeur_nom(demande) -> str:
    grade = demande.grade.grade_abrege if demande.grade is not None else ""
    return " ".join(part for part in (grade, demande.prenom, demande.nom) if part)


def demandeurs_liste(demandes: Iterable) -> str:
    return ", ".join(demandeur_nom(demande) for demande in demandes)


def decisions_liste(decisions: Iterable) -> str:
    """``n° 12, 14 du 01/02/2025, 03/02/2025``: numbers then the known signature dates."""

    decisions = list(decisions)
    if not decisions:
        return ""
    numeros = ", ".join(str(decision.numero) for decision in decisions)
    dates = ", ".join(format_date(decision.date_signature) for decision in decisions if decision.date_signature)
    text = f"n° {numeros}"
    if dates:
        text += f" du {dates}"
    return text


__all__ = [
    "complement_facturation",
    "decisions_liste",
    "demandeur_nom",
    "demandeurs_liste",
    "format_date",
    "format_montant",
    "montant_en_lettres",
    "nombre_en_lettres",
    "victime_mec_label",
]
