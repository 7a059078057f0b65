from __future__ import annotations

from datetime import date
from types import SimpleNamespace

from brpf.documents import formatting as fmt


def test_nombre_en_lettres() -> None:
    assert fmt.nombre_en_lettres(0) == "zéro"
    assert fmt.nombre_en_lettres(21) == "vingt et un"
    assert fmt.nombre_en_lettres(71) == "soixante-onze"
    assert fmt.nombre_en_lettres(80) == "quatre-vingts"
    assert fmt.nombre_en_lettres(99) == "quatre-vingt-dix-neuf"
    assert fmt.nombre_en_lettres(200) == "deux cents"
    assert fmt.nombre_en_lettres(1280) == "mille deux cent quatre-vingts"
    assert fmt.nombre_en_lettres(2000) == "deux mille"
    assert fmt.nombre_en_lettres(80_000) == "quatre-vingt mille"
    assert fmt.nombre_en_lettres(200_000) == "deux cent mille"
    assert fmt.nombre_en_lettres(280_080) == "deux cent quatre-vingt mille quatre-vingts"
    assert fmt.nombre_en_lettres(200_000_000) == "deux cents millions"
    assert fmt.nombre_en_lettres(1_000_001) == "un million un"


def test_montants() -> None:
    assert fmt.montant_en_lettres(1500.99) == "mille cinq cents euros"
    assert fmt.montant_en_lettres(None) is None
    assert fmt.format_montant(1234.5) == "1\u202f234,50"
    assert fmt.format_montant(None) == "0,00"


def test_labels() -> None:
    assert fmt.format_date(date(2024, 3, 7)) == "07/03/2024"
    assert fmt.format_date(None) == ""
    assert fmt.victime_mec_label("MIS_EN_CAUSE") == "mis en cause"
    assert fmt.complement_facturation("DEMI_JOURNEE") == " par demi-journée d'assistance"
    assert fmt.complement_facturation("ASSISES").startswith(", montant décomposé ainsi")
    assert fmt.complement_facturation(None) == ""


def test_lists_of_people_and_decisions() -> None:
    grade = SimpleNamespace(grade_abrege="MDL")
    demandes = [
        SimpleNamespace(grade=grade, prenom="Luc", nom="Bernard"),
        SimpleNamespace(grade=None, prenom="Eva", nom="Roux"),
    ]
    assert fmt.demandeurs_liste(demandes) == "MDL Luc Bernard, Eva Roux"

    decisions = [
        SimpleNamespace(numero="12", date_signature=date(2025, 2, 1)),
        SimpleNamespace(numero="14", date_signature=None),
    ]
    assert fmt.decisions_liste(decisions) == "n° 12, 14 du 01/02/2025"
    assert fmt.decisions_liste([]) == ""
