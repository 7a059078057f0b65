from __future__ import annotations

from datetime import date, datetime

from brpf import filters
from brpf.models import Demande, Log


def test_split_values() -> None:
    assert filters.split_values(None) == []
    assert filters.split_values("a, b,,c") == ["a", "b", "c"]
    assert filters.split_values(["a,b", " c "]) == ["a", "b", "c"]


def test_blank_to_none() -> None:
    assert filters.blank_to_none({"a": "", "b": "  ", "c": "x", "d": 0}) == {"a": None, "b": None, "c": "x", "d": 0}


def test_page_meta() -> None:
    page = filters.Page(items=[], total=41, page=2, limit=20)
    assert page.pages == 3
    assert page.meta() == {"page": 2, "limit": 20, "total": 41, "pages": 3}
    assert page.meta("total_pages")["total_pages"] == 3
    assert filters.Page(items=[], total=0, page=1, limit=20).pages == 0


def test_contains_any_skips_blank_terms() -> None:
    assert filters.contains_any("  ", Demande.nom) is None
    assert filters.contains_any("dup", Demande.nom, Demande.prenom) is not None


def test_date_range_covers_whole_days_on_datetimes() -> None:
    debut, fin = filters.date_range(Log.timestamp, date(2024, 1, 1), date(2024, 1, 31))
    assert debut.right.value == datetime(2024, 1, 1)
    assert fin.right.value == datetime(2024, 1, 31, 23, 59, 59, 999999)
    assert filters.date_range(Demande.date_faits, None, None) == []


def test_paginate_and_user_filter(db, redacteur, admin) -> None:
    for index in range(5):
        db.add(Demande(numero_ds=f"P-{index}", type="VICTIME", nom=f"N{index}", prenom="P",
                       assigne_a_id=redacteur.id if index < 2 else None))
    db.commit()

    page = filters.paginate(db.query(Demande).order_by(Demande.numero_ds), page=2, limit=2)
    assert [item.numero_ds for item in page.items] == ["P-2", "P-3"]
    assert page.total == 5

    criterion = filters.user_filter(db, Demande.assigne_a_id, ["Paul Durand"])
    assert db.query(Demande).filter(criterion).count() == 2
    nobody = filters.user_filter(db, Demande.assigne_a_id, ["Inconnu"])
    assert db.query(Demande).filter(nobody).count() == 0
    with_null = filters.user_filter(db, Demande.assigne_a_id, ["Non assigné", "Claire Martin"])
    assert db.query(Demande).filter(with_null).count() == 3


def test_user_facet(db, redacteur) -> None:
    db.add(Demande(numero_ds="F-1", type="VICTIME", nom="N", prenom="P", assigne_a_id=redacteur.id))
    db.commit()
    assert filters.user_facet(db, Demande.assigne_a_id) == ["Adjudant Paul Durand"]
