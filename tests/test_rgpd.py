from __future__ import annotations

import json

from fastapi.testclient import TestClient


def test_rgpd_is_admin_only(client: TestClient, headers) -> None:
    assert client.get("/api/rgpd/search", params={"q": "ber"}, headers=headers).status_code == 403


def test_search_people(client: TestClient, admin_headers, avocat, new_demande) -> None:
    demande = new_demande(email_personnel="luc.bernard@mail.test")

    assert client.get("/api/rgpd/search", params={"q": "b"}, headers=admin_headers).json() == []
    [found] = client.get("/api/rgpd/search", params={"q": "bern"}, headers=admin_headers).json()
    assert found["id"] == demande["id"]
    assert found["type"] == "demandeur"
    assert found["email"] == "luc.bernard@mail.test"

    [lawyer] = client.get("/api/rgpd/search", params={"q": "lefeb"}, headers=admin_headers).json()
    assert lawyer == {
        "id": avocat.id,
        "type": "avocat",
        "nom": "Lefebvre",
        "prenom": "Anne",
        "email": "anne.lefebvre@barreau.test",
    }


def test_export_requires_a_known_person(client: TestClient, admin_headers) -> None:
    missing = client.post("/api/rgpd/export", json={"person_type": "demandeur"}, headers=admin_headers)
    assert missing.status_code == 400
    assert missing.json() == {"error": "person_id et person_type sont requis"}
    unknown = client.post(
        "/api/rgpd/export", json={"person_id": "ghost", "person_type": "avocat"}, headers=admin_headers
    )
    assert unknown.status_code == 404
    assert unknown.json() == {"error": "Personne non trouvée"}


def test_json_export_pseudonymises_other_people(
    client: TestClient, admin_headers, new_demande, new_dossier
) -> None:
    demande = new_demande()
    colleague = new_demande(nom="Roux", prenom="Eva", email_professionnel="eva.roux@gendarmerie.test")
    new_dossier(selected_demande_ids=[demande["id"], colleague["id"]])

    response = client.post(
        "/api/rgpd/export",
        json={"person_id": demande["id"], "person_type": "demandeur", "format": "json"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json"
    assert f'filename="export_rgpd_demandeur_{demande["id"]}_' in response.headers["content-disposition"]

    export = response.json()
    assert export["exported_by"] == "Claire Martin"
    assert export["metadata"]["export_reason"] == "Demande d'accès Article 15 RGPD"
    person = export["person_data"]
    assert person["nom"] == "Bernard"
    assert person["assigne_a"]["nom"] == "Personne 1"
    assert person["assigne_a"]["prenom"] == ""
    assert person["cree_par"]["nom"] == "Personne 1"

    names = {entry["nom"] for entry in person["dossier"]["demandes"]}
    assert "Bernard" in names
    assert "Roux" not in json.dumps(export)

    assert "RGPD_EXPORT" in client.get("/api/logs/actions", headers=admin_headers).json()


def test_pdf_export(client: TestClient, admin_headers, avocat) -> None:
    response = client.post(
        "/api/rgpd/export", json={"person_id": avocat.id, "person_type": "avocat"}, headers=admin_headers
    )
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
