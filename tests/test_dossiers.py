from __future__ import annotations

from fastapi.testclient import TestClient


def test_redacteur_is_required(client: TestClient, headers) -> None:
    response = client.post("/api/dossiers", json={"nom_dossier": "Sans rédacteur"}, headers=headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Le rédacteur est requis"}


def test_numbers_are_sequential(new_dossier) -> None:
    assert [new_dossier()["numero"] for _ in range(3)] == ["1", "2", "3"]


def test_create_with_selected_demandes_syncs_them(client: TestClient, headers, redacteur, new_demande, new_dossier) -> None:
    badge = client.post("/api/badges", json={"nom": "Médical", "couleur": "#10b981"}, headers=headers).json()
    demande = new_demande()
    dossier = new_dossier(badges=[badge["id"]], selected_demande_ids=[demande["id"]])

    assert dossier["stats"]["nombre_demandes"] == 1
    assert dossier["demandes"][0]["numero_ds"] == demande["numero_ds"]
    linked = client.get(f"/api/demandes/{demande['id']}", headers=headers).json()
    assert [b["nom"] for b in linked["badges"]] == ["Médical"]
    assert linked["assigne_a"]["id"] == redacteur.id


def test_update_propagates_to_demandes(client: TestClient, headers, make_user, new_demande, new_dossier) -> None:
    other = make_user("collegue", nom="Leroy", prenom="Marc")
    demande = new_demande()
    dossier = new_dossier(selected_demande_ids=[demande["id"]])

    updated = client.put(
        f"/api/dossiers/{dossier['id']}", json={"assigne_a_id": other.id, "notes": "Relancer"}, headers=headers
    ).json()
    assert updated["assigne_a"]["nom"] == "Leroy"
    assert updated["notes"] == "Relancer"
    assert client.get(f"/api/demandes/{demande['id']}", headers=headers).json()["assigne_a"]["nom"] == "Leroy"


def test_unknown_references_are_rejected(client: TestClient, headers, redacteur) -> None:
    response = client.post(
        "/api/dossiers", json={"assigne_a_id": redacteur.id, "sgami_id": "missing"}, headers=headers
    )
    assert response.status_code == 404
    response = client.post("/api/dossiers", json={"assigne_a_id": redacteur.id, "bap_id": "missing"}, headers=headers)
    assert response.json()["error"] == "BAP invalide"


def test_list_search_sort_and_filters(client: TestClient, headers, sgami, new_demande, new_dossier) -> None:
    first = new_dossier(nom_dossier="Refus d'obtempérer", sgami_id=sgami.id)
    second = new_dossier(nom_dossier="Outrage")
    third = new_dossier(nom_dossier="Violences")
    demande = new_demande(nom="Garnier")
    client.post("/api/demandes/link", json={"demande_ids": [demande["id"]], "dossier_id": second["id"]}, headers=headers)

    by_numero = client.get("/api/dossiers", params={"sort_by": "numero", "sort_order": "asc"}, headers=headers).json()
    assert [d["id"] for d in by_numero["dossiers"]] == [first["id"], second["id"], third["id"]]
    assert by_numero["pagination"]["pages"] == 1

    searched = client.get("/api/dossiers", params={"search": "garn"}, headers=headers).json()
    assert [d["id"] for d in searched["dossiers"]] == [second["id"]]

    by_sgami = client.get("/api/dossiers", params={"sgami": "SGAMI Ouest"}, headers=headers).json()
    assert [d["id"] for d in by_sgami["dossiers"]] == [first["id"]]
    without_sgami = client.get("/api/dossiers", params={"sgami": "Non assigné"}, headers=headers).json()
    assert without_sgami["pagination"]["total"] == 2

    by_count = client.get("/api/dossiers", params={"sort_by": "nombre_demandes"}, headers=headers).json()
    assert by_count["dossiers"][0]["id"] == second["id"]


def test_facets(client: TestClient, headers, sgami, new_dossier) -> None:
    new_dossier()
    facets = client.get("/api/dossiers/facets", headers=headers).json()
    assert facets["sgamis"] == ["SGAMI Ouest"]
    assert [holder["full_name"] for holder in facets["assigne_a"]] == ["Adjudant Paul Durand"]


def test_detail_includes_related_records(client: TestClient, headers, new_demande, new_dossier, new_decision) -> None:
    demande = new_demande()
    dossier = new_dossier(selected_demande_ids=[demande["id"]])
    new_decision(dossier["id"], [demande["id"]])

    detail = client.get(f"/api/dossiers/{dossier['id']}", headers=headers).json()
    assert detail["stats"]["nombre_decisions"] == 1
    assert detail["decisions"][0]["type_label"] == "Protection juridique"
    assert detail["conventions"] == [] and detail["paiements"] == []


def test_pdf_export(client: TestClient, headers, new_demande, new_dossier) -> None:
    demande = new_demande()
    dossier = new_dossier(selected_demande_ids=[demande["id"]])
    response = client.get(f"/api/dossiers/{dossier['id']}/export.pdf", headers=headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    assert f"dossier-{dossier['numero']}.pdf" in response.headers["content-disposition"]


def test_delete_refused_while_demandes_remain(client: TestClient, headers, new_demande, new_dossier) -> None:
    demande = new_demande()
    dossier = new_dossier(selected_demande_ids=[demande["id"]])
    refused = client.delete(f"/api/dossiers/{dossier['id']}", headers=headers)
    assert refused.status_code == 400
    assert refused.json()["error"] == "Impossible de supprimer un dossier contenant des demandes"

    client.put(f"/api/demandes/{demande['id']}", json={"dossier_id": None}, headers=headers)
    assert client.delete(f"/api/dossiers/{dossier['id']}", headers=headers).json() == {
        "message": "Dossier supprimé avec succès"
    }
