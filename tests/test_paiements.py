from __future__ import annotations

import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def paiement_case(new_demande, new_dossier, new_decision, sgami, pce) -> dict:
    demande = new_demande()
    dossier = new_dossier(selected_demande_ids=[demande["id"]])
    decision = new_decision(dossier["id"], [demande["id"]], date_signature="2024-04-02")
    return {
        "montant_ttc": 1440.5,
        "emission_titre_perception": "NON",
        "qualite_beneficiaire": "Avocat",
        "identite_beneficiaire": "Maître Anne Lefebvre",
        "convention_jointe_fri": "OUI",
        "dossier_id": dossier["id"],
        "sgami_id": sgami.id,
        "pce_id": pce.id,
        "decisions": [decision["id"]],
    }


def test_create_and_number(client: TestClient, headers, paiement_case) -> None:
    first = client.post("/api/paiements", json=paiement_case, headers=headers)
    assert first.status_code == 201
    body = first.json()
    assert body["numero"] == 1
    assert body["sgami"]["nom"] == "SGAMI Ouest"
    assert body["decisions"][0]["date_signature"] == "2024-04-02"
    assert client.post("/api/paiements", json=paiement_case, headers=headers).json()["numero"] == 2


def test_decisions_are_required(client: TestClient, headers, paiement_case) -> None:
    paiement_case["decisions"] = []
    response = client.post("/api/paiements", json=paiement_case, headers=headers)
    assert response.status_code == 400


def test_inactive_avocat_is_refused(client: TestClient, db, headers, avocat, paiement_case) -> None:
    avocat.active = False
    db.commit()
    paiement_case["avocat_id"] = avocat.id
    response = client.post("/api/paiements", json=paiement_case, headers=headers)
    assert response.status_code == 404
    assert response.json()["error"] == "Avocat non trouvé ou inactif"


def test_update_keeps_decisions_unless_given(client: TestClient, headers, paiement_case) -> None:
    paiement = client.post("/api/paiements", json=paiement_case, headers=headers).json()
    updated = client.put(
        f"/api/paiements/{paiement['id']}", json={"facture": "F-2024-001", "montant_ttc": None}, headers=headers
    ).json()
    assert updated["facture"] == "F-2024-001"
    assert updated["montant_ttc"] == 1440.5
    assert len(updated["decisions"]) == 1

    invalid = client.put(f"/api/paiements/{paiement['id']}", json={"decisions": ["ghost"]}, headers=headers)
    assert invalid.json()["error"] == "Décision(s) invalide(s)"


def test_list_filters_stats_and_facets(client: TestClient, headers, paiement_case) -> None:
    client.post("/api/paiements", json=paiement_case, headers=headers)
    client.post(
        "/api/paiements",
        json={**paiement_case, "qualite_beneficiaire": "Médecin", "identite_beneficiaire": "Dr Marie Caron",
              "emission_titre_perception": "OUI", "montant_ttc": 200},
        headers=headers,
    )

    body = client.get("/api/paiements", params={"sort_by": "numero", "sort_order": "asc"}, headers=headers).json()
    assert [p["numero"] for p in body["paiements"]] == [1, 2]
    assert body["pagination"]["total_pages"] == 1
    medecins = client.get("/api/paiements", params={"qualite_beneficiaire": "Médecin"}, headers=headers).json()
    assert [p["identite_beneficiaire"] for p in medecins["paiements"]] == ["Dr Marie Caron"]
    assert client.get("/api/paiements", params={"search": "2"}, headers=headers).json()["pagination"]["total"] == 1
    assert client.get("/api/paiements", params={"sgami_nom": "ouest"}, headers=headers).json()["pagination"]["total"] == 2

    stats = client.get("/api/paiements/stats", headers=headers).json()
    assert stats == {
        "total_paiements": 2,
        "avocat_count": 1,
        "autres_intervenant_count": 1,
        "emission_titre_count": 1,
        "convention_jointe_count": 2,
        "total_montant_ttc": 1640.5,
    }

    facets = client.get("/api/paiements/facets", headers=headers).json()
    assert facets["qualites_beneficiaires"] == ["Avocat", "Médecin"]
    assert facets["pces"][0]["pce_numerique"] == "6113"
    assert facets["createurs"][0]["full_name"] == "Adjudant Paul Durand"


def test_delete(client: TestClient, headers, paiement_case) -> None:
    paiement = client.post("/api/paiements", json=paiement_case, headers=headers).json()
    assert client.delete(f"/api/paiements/{paiement['id']}", headers=headers).json() == {
        "message": "Paiement supprimé avec succès"
    }
    assert client.get(f"/api/paiements/{paiement['id']}", headers=headers).json() == {"error": "Paiement non trouvé"}
