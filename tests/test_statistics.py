from __future__ import annotations

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient

from brpf import statistics
from brpf.models import Bap


def test_round_half_up_and_percentage() -> None:
    assert statistics.round_half_up(2.5) == 3
    assert isinstance(statistics.round_half_up(2.5), int)
    assert statistics.round_half_up(0.125, 2) == 0.13
    assert statistics.percentage(1, 4) == 25.0
    assert statistics.percentage(3, 0) == 0


def test_iso_weeks() -> None:
    week = statistics.iso_week(date(2024, 1, 1))
    assert (week.year, week.week) == (2024, 1)
    assert (week.start, week.end) == (date(2024, 1, 1), date(2024, 1, 7))
    assert week.key == "2024-01"
    assert statistics.week_key(datetime(2021, 1, 3, 18, 0)) == "2020-53"


def test_calendar_helpers() -> None:
    assert statistics.year_range(2024) == (date(2024, 1, 1), date(2025, 1, 1))
    assert statistics.month_range(2024, 12) == (date(2024, 12, 1), date(2025, 1, 1))
    assert statistics.months_before(datetime(2024, 3, 31, 9, 30), 1) == datetime(2024, 2, 29, 9, 30)
    assert statistics.months_before(datetime(2024, 1, 15), 2) == datetime(2023, 11, 15)


def test_aggregation_helpers() -> None:
    items = [{"k": "a", "v": 2}, {"k": "b", "v": None}, {"k": "a", "v": 3}]
    assert statistics.sum_by_property(items, "v") == 5
    assert statistics.average_by_property(items, "v") == 5 / 3
    assert statistics.average_by_property([], "v") == 0
    assert statistics.group_and_sum(items, "k", "v") == {"a": 5, "b": 0}


@pytest.fixture()
def activity(client: TestClient, headers, admin_headers, new_demande, new_dossier, new_decision) -> dict:
    """One treated demande in a dossier, one untouched demande, one demande of the previous year."""

    treated = new_demande(statut_demandeur="Militaire d'active")
    waiting = new_demande(type="MIS_EN_CAUSE", nom="Roux")
    new_demande(date_reception="2023-03-04T09:00:00")
    dossier = new_dossier(selected_demande_ids=[treated["id"]])
    new_decision(dossier["id"], [treated["id"]], date_signature="2024-04-02")
    client.post("/api/budget", json={"annee": 2024, "budget_base": 10000}, headers=admin_headers)
    return {"treated": treated, "waiting": waiting, "dossier": dossier}


def test_statistics_require_authentication(client: TestClient) -> None:
    assert client.get("/api/statistiques/annees").status_code == 401


def test_years_and_qualite(client: TestClient, headers, activity) -> None:
    assert client.get("/api/statistiques/annees", headers=headers).json() == [2024, 2023]
    qualite = client.get("/api/statistiques/qualite-demandeur", params={"year": 2024}, headers=headers).json()
    assert qualite == [
        {"qualite": "VICTIME", "nombre_demandes": 1, "pourcentage": 50.0},
        {"qualite": "MIS_EN_CAUSE", "nombre_demandes": 1, "pourcentage": 50.0},
    ]


def test_administratives(client: TestClient, headers, redacteur, activity) -> None:
    body = client.get("/api/statistiques/administratives", params={"year": 2024}, headers=headers).json()
    assert body["generales"] == {
        "demandes_total": 2,
        "demandes_traitees": 1,
        "demandes_en_instance": 0,
        "demandes_non_affectees": 1,
    }
    [entry] = body["utilisateurs"]
    assert entry["id"] == redacteur.id
    assert entry["demandes_attribuees"] == 1
    assert entry["decisions_repartition"] == {"PJ": 1, "AJE": 0, "AJ": 0, "REJET": 0}
    assert entry["en_cours"] == 0


def test_monthly_and_weekly_flows(client: TestClient, headers, activity) -> None:
    body = client.get("/api/statistiques/flux-mensuels", params={"year": 2024}, headers=headers).json()
    assert len(body["flux_mensuels"]) == 12
    mars, avril = body["flux_mensuels"][2], body["flux_mensuels"][3]
    assert (mars["mois"], mars["entrants_annee"], mars["entrants_annee_precedente"]) == ("Mars", 2, 1)
    assert avril["sortants_annee"] == 1
    assert body["moyennes"] == {
        "mois": "MOYENNE / MOIS",
        "entrants_annee": 0.17,
        "sortants_annee": 0.08,
        "entrants_annee_precedente": 0.08,
    }

    weekly = client.get("/api/statistiques/flux-hebdomadaires", params={"year": 2024}, headers=headers).json()
    weeks = {week["numero_semaine"]: week for week in weekly["flux_hebdomadaires"]}
    assert weeks[9]["entrants_annee"] == 2
    assert weeks[9]["entrants_annee_precedente"] == 1
    assert weeks[9]["date_debut"] == "26/02"
    assert weeks[14]["sortants_annee"] == 1


def test_recent_weeks_carry_the_stock(db, activity) -> None:
    result = statistics.recent_weeks(db, limit=2, today=date(2024, 6, 1))
    assert result["total_weeks"] == 3
    assert [(week["week_key"], week["stock"]) for week in result["weeks"]] == [("2024-14", 2), ("2024-09", 3)]


def test_budget_and_auto_controle(client: TestClient, headers, activity) -> None:
    budget = client.get("/api/statistiques/budgetaires", params={"year": 2024}, headers=headers).json()
    assert budget["budget_total"] == 10000
    assert len(budget["statistiques"]) == 10
    assert budget["statistiques"][0] == {"libelle": "Dossiers toutes années", "nombre": 1}

    controle = client.get("/api/statistiques/auto-controle", params={"year": 2024}, headers=headers).json()
    assert controle["pj_en_attente_convention"] == 1
    assert controle["delai_traitement_moyen"] == 31
    assert controle["delai_traitement_bap"] == 0


def test_repartitions(client: TestClient, headers, activity) -> None:
    statuts = client.get("/api/statistiques/statut-demandeur", params={"year": 2024}, headers=headers).json()
    assert statuts == [
        {"statut_demandeur": "Militaire d'active", "nombre_demandes": 1, "pourcentage": 50.0},
        {"statut_demandeur": "Non renseigné", "nombre_demandes": 1, "pourcentage": 50.0},
    ]
    branches = client.get("/api/statistiques/branche", params={"year": 2024}, headers=headers).json()
    assert branches == [{"branche": "Non renseigné", "nombre_demandes": 2, "pourcentage": 100.0}]


def test_bap_counts(client: TestClient, db, headers, new_demande, new_dossier) -> None:
    bap = Bap(nom_bap="BAP Rennes")
    db.add(bap)
    db.commit()
    demande = new_demande()
    new_dossier(selected_demande_ids=[demande["id"]], bap_id=bap.id)
    assert client.get("/api/statistiques/bap", params={"year": 2024}, headers=headers).json() == [
        {"nom_bap": "BAP Rennes", "nombre_demandes": 1}
    ]


def test_dashboard_counters(client: TestClient, headers, admin_headers, activity) -> None:
    assert client.get("/api/dashboard/stats", headers=headers).json() == {
        "total_dossiers": 1,
        "total_demandes": 3,
        "demandes_sans_2_mois": 2,
    }
    assert client.get("/api/dashboard/stats", headers=admin_headers).json() == {
        "total_dossiers": 0,
        "total_demandes": 0,
        "demandes_sans_2_mois": 0,
    }


def test_budget_averages_by_convention_kind(
    client: TestClient, headers, admin_headers, avocat, new_demande, new_dossier
) -> None:
    year = datetime.now().year
    dossier = new_dossier(selected_demande_ids=[new_demande()["id"]])
    base = {"victime_ou_mis_en_cause": "VICTIME", "instance": "TJ Rennes", "dossier_id": dossier["id"],
            "avocat_id": avocat.id}
    client.post("/api/conventions", json={**base, "type": "CONVENTION", "montant_ht": 1000}, headers=headers)
    client.post("/api/conventions", json={**base, "type": "CONVENTION", "montant_ht": 1501}, headers=headers)
    client.post(
        "/api/conventions",
        json={**base, "type": "AVENANT", "montant_ht": 300, "montant_ht_gage_precedemment": 1000},
        headers=headers,
    )
    client.post("/api/budget", json={"annee": year, "budget_base": 10000}, headers=admin_headers)

    body = client.get("/api/statistiques/budgetaires", params={"year": year}, headers=headers).json()
    figures = {figure["libelle"]: figure for figure in body["statistiques"]}
    assert figures["Conventions créées"]["nombre"] == 2
    assert figures["Montant moyen gagé par convention"]["nombre"] == 1251
    assert figures["Montant moyen gagé par avenant"]["nombre"] == 300
    total = figures["Montant HT gagé total"]
    assert (total["nombre"], total["pourcentage"], total["bold"]) == (2801, 28.01, True)
