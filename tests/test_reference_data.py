from __future__ import annotations

from fastapi.testclient import TestClient


def test_grades_are_appended_and_reordered(client: TestClient, headers, admin_headers) -> None:
    first = client.post(
        "/api/grades", json={"grade_complet": "Capitaine", "grade_abrege": "CNE"}, headers=admin_headers
    ).json()
    second = client.post(
        "/api/grades", json={"grade_complet": "Lieutenant", "grade_abrege": "LTN"}, headers=admin_headers
    ).json()
    assert (first["ordre"], second["ordre"]) == (1, 2)

    forbidden = client.post("/api/grades", json={"grade_complet": "Major", "grade_abrege": "MAJ"}, headers=headers)
    assert forbidden.status_code == 403

    response = client.put(
        "/api/grades/reorder",
        json={"items": [{"id": first["id"], "ordre": 2}, {"id": second["id"], "ordre": 1}]},
        headers=admin_headers,
    )
    assert response.status_code == 200
    options = client.get("/api/grades/options", headers=headers).json()
    assert [option["grade_abrege"] for option in options] == ["LTN", "CNE"]


def test_duplicate_grade_is_refused(client: TestClient, admin_headers) -> None:
    payload = {"grade_complet": "Colonel", "grade_abrege": "COL"}
    client.post("/api/grades", json=payload, headers=admin_headers)
    response = client.post("/api/grades", json=payload, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Ce grade existe déjà"


def test_deleting_a_grade_clears_it_on_demandes(client: TestClient, admin_headers, new_demande) -> None:
    grade = client.post(
        "/api/grades", json={"grade_complet": "Gendarme", "grade_abrege": "GND"}, headers=admin_headers
    ).json()
    demande = new_demande(grade_id=grade["id"])
    assert demande["grade"]["grade_abrege"] == "GND"

    assert client.delete(f"/api/grades/{grade['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/demandes/{demande['id']}", headers=admin_headers).json()["grade"] is None


def test_visa_deletion_only_deactivates(client: TestClient, headers, admin_headers, visa) -> None:
    assert client.get(f"/api/visa/{visa.id}/usage", headers=headers).json() == {"usage": 0}
    assert client.delete(f"/api/visa/{visa.id}", headers=admin_headers).json() == {
        "message": "Visa désactivé avec succès"
    }
    assert client.get("/api/visa/options", headers=headers).json() == []
    assert client.get("/api/visa/stats", headers=headers).json() == {"total_visas": 1, "visas_actifs": 0}


def test_visa_usage_counts_decisions(client: TestClient, headers, visa, new_demande, new_dossier, new_decision) -> None:
    dossier = new_dossier()
    demande = new_demande()
    new_decision(dossier["id"], [demande["id"]])
    assert client.get(f"/api/visa/{visa.id}/usage", headers=headers).json() == {"usage": 1}


def test_badge_colour_must_be_hex(client: TestClient, headers) -> None:
    response = client.post("/api/badges", json={"nom": "Urgent", "couleur": "rouge"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["details"][0]["champ"] == "couleur"


def test_badge_in_use_cannot_be_deleted(client: TestClient, headers, new_demande) -> None:
    badge = client.post("/api/badges", json={"nom": "Urgent", "couleur": "#ef4444"}, headers=headers).json()
    new_demande(badges=[badge["id"]])
    response = client.delete(f"/api/badges/{badge['id']}", headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Impossible de supprimer ce badge car il est utilisé 1 fois"


def test_bap_usage_counts_dossiers_and_demandes(client: TestClient, headers, admin_headers, new_dossier) -> None:
    bap = client.post(
        "/api/bap", json={"nom_bap": " BAP Rennes ", "mail1": "bap@rennes.test", "mail2": ""}, headers=admin_headers
    ).json()
    assert bap["nom_bap"] == "BAP Rennes"
    assert bap["mail2"] is None
    assert client.get("/api/bap/options", headers=headers).json() == [{"id": bap["id"], "nom_bap": "BAP Rennes"}]

    new_dossier(bap_id=bap["id"])
    listing = client.get("/api/bap", headers=admin_headers).json()["baps"][0]
    assert (listing["dossiers_count"], listing["total_usage"]) == (1, 1)
    assert client.delete(f"/api/bap/{bap['id']}", headers=admin_headers).status_code == 400


def test_sgami_names_are_unique(client: TestClient, admin_headers) -> None:
    client.post("/api/sgami", json={"nom": "SGAMI Sud"}, headers=admin_headers)
    response = client.post("/api/sgami", json={"nom": "SGAMI Sud "}, headers=admin_headers)
    assert response.json()["error"] == "Un SGAMI avec ce nom existe déjà"


def test_diligence_lifecycle(client: TestClient, headers) -> None:
    created = client.post(
        "/api/diligences",
        json={"nom": "Audience", "details": "Présence à l'audience", "type_tarification": "DEMI_JOURNEE"},
        headers=headers,
    )
    assert created.status_code == 201
    diligence = created.json()
    assert diligence["cree_par"]["nom"] == "Durand"

    stats = client.get("/api/diligences/stats", headers=headers).json()
    assert stats["demi_journee"] == 1
    assert client.delete(f"/api/diligences/{diligence['id']}", headers=headers).status_code == 204
    assert client.get("/api/diligences", headers=headers).json() == []


def test_pce_in_use_cannot_be_deleted(client: TestClient, headers, admin_headers) -> None:
    pce = client.post(
        "/api/pce",
        json={"pce_detaille": "Honoraires", "pce_numerique": "6226", "code_marchandise": "36.01"},
        headers=admin_headers,
    ).json()
    assert pce["ordre"] == 1
    options = client.get("/api/pce/options", headers=headers).json()
    assert options[0]["label"] == "6226 - Honoraires"
    assert client.delete(f"/api/pce/{pce['id']}", headers=admin_headers).status_code == 204


def test_avocat_directory(client: TestClient, headers) -> None:
    created = client.post(
        "/api/avocats",
        json={"nom": "Moreau", "prenom": "", "villes_intervention": [" Rennes ", "", "Brest"]},
        headers=headers,
    ).json()
    assert created["prenom"] is None
    assert created["villes_intervention"] == ["Rennes", "Brest"]

    client.put(f"/api/avocats/{created['id']}/deactivate", headers=headers)
    assert client.get("/api/avocats", params={"active": "true"}, headers=headers).json() == []
    assert client.get("/api/avocats", params={"search": "mor"}, headers=headers).json()[0]["active"] is False

    deleted = client.delete(f"/api/avocats/{created['id']}", headers=headers)
    assert deleted.json() == {"message": "Avocat supprimé avec succès"}
