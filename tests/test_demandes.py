from __future__ import annotations

from datetime import datetime, timedelta

from fastapi.testclient import TestClient


def test_required_fields_on_create(client: TestClient, headers) -> None:
    cases = [
        ({"type": "VICTIME", "nom": "A", "prenom": "B"}, "Numéro DS requis"),
        ({"numero_ds": "DS-1", "nom": "A", "prenom": "B"}, "Type invalide"),
        ({"numero_ds": "DS-1", "type": "VICTIME", "nom": "  ", "prenom": "B"}, "Nom requis"),
        ({"numero_ds": "DS-1", "type": "VICTIME", "nom": "A"}, "Prénom requis"),
    ]
    for payload, message in cases:
        response = client.post("/api/demandes", json=payload, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"] == message


def test_numero_ds_is_unique(client: TestClient, headers, new_demande) -> None:
    new_demande(numero_ds="DS-42")
    response = client.post(
        "/api/demandes", json={"numero_ds": "DS-42", "type": "VICTIME", "nom": "A", "prenom": "B"}, headers=headers
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Ce numéro DS existe déjà"


def test_create_ignores_dossier_and_records_author(new_demande, new_dossier, redacteur) -> None:
    dossier = new_dossier()
    demande = new_demande(dossier_id=dossier["id"], date_faits="", position="")
    assert demande["dossier"] is None
    assert demande["date_faits"] is None
    assert demande["cree_par"]["id"] == redacteur.id
    assert demande["date_reception"] == "2024-03-01T10:00:00"


def test_list_filters_and_pagination(client: TestClient, headers, new_demande) -> None:
    new_demande(nom="Roux", type="MIS_EN_CAUSE")
    new_demande(nom="Blanc", partie_civile=True)
    new_demande(nom="Noir", date_reception="2024-05-10T09:00:00")

    body = client.get("/api/demandes", params={"limit": 2}, headers=headers).json()
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    assert body["demandes"][0]["nom"] == "Noir"

    assert [d["nom"] for d in client.get("/api/demandes", params={"type": "MIS_EN_CAUSE"}, headers=headers).json()["demandes"]] == ["Roux"]
    assert [d["nom"] for d in client.get("/api/demandes", params={"partie_civile": "true"}, headers=headers).json()["demandes"]] == ["Blanc"]
    ranged = client.get(
        "/api/demandes",
        params={"date_reception_debut": "2024-05-10", "date_reception_fin": "2024-05-10"},
        headers=headers,
    ).json()
    assert [d["nom"] for d in ranged["demandes"]] == ["Noir"]
    assert client.get("/api/demandes", params={"search": "bla"}, headers=headers).json()["pagination"]["total"] == 1


def test_filter_on_assignee_and_missing_dossier(client: TestClient, headers, redacteur, new_demande) -> None:
    new_demande(nom="Assigne", assigne_a_id=redacteur.id)
    new_demande(nom="Libre")

    assigned = client.get("/api/demandes", params={"assigne_a": "Adjudant Paul Durand"}, headers=headers).json()
    assert [d["nom"] for d in assigned["demandes"]] == ["Assigne"]
    unassigned = client.get("/api/demandes", params={"assigne_a": "Non assigné"}, headers=headers).json()
    assert [d["nom"] for d in unassigned["demandes"]] == ["Libre"]
    assert client.get("/api/demandes", params={"dossier": "sans"}, headers=headers).json()["pagination"]["total"] == 2


def test_stats(client: TestClient, headers, new_demande) -> None:
    old = (datetime.now() - timedelta(days=90)).replace(microsecond=0).isoformat()
    new_demande(type="MIS_EN_CAUSE", date_reception=old)
    new_demande(partie_civile=True, date_reception=datetime.now().replace(microsecond=0).isoformat())

    stats = client.get("/api/demandes/stats", headers=headers).json()
    assert stats == {
        "total_demandes": 2,
        "demandes_today": 1,
        "victimes": 1,
        "mis_en_cause": 1,
        "avec_partie_civile": 1,
        "demandes_sans_2_mois": 1,
    }


def test_linking_copies_dossier_badges_bap_and_assignee(
    client: TestClient, headers, admin_headers, redacteur, new_demande, new_dossier
) -> None:
    badge = client.post("/api/badges", json={"nom": "Urgent"}, headers=headers).json()
    bap = client.post("/api/bap", json={"nom_bap": "BAP Nord"}, headers=admin_headers).json()
    dossier = new_dossier(badges=[badge["id"]], bap_id=bap["id"])
    first, second = new_demande(), new_demande()

    response = client.post(
        "/api/demandes/link", json={"demande_ids": [first["id"], second["id"]], "dossier_id": dossier["id"]}, headers=headers
    )
    assert response.json()["linked"] == 2

    linked = client.get(f"/api/demandes/{first['id']}", headers=headers).json()
    assert linked["dossier"]["numero"] == dossier["numero"]
    assert [b["nom"] for b in linked["badges"]] == ["Urgent"]
    assert [b["nom_bap"] for b in linked["baps"]] == ["BAP Nord"]
    assert linked["assigne_a"]["id"] == redacteur.id


def test_update_attaches_and_detaches_dossier(client: TestClient, headers, new_demande, new_dossier) -> None:
    dossier = new_dossier()
    demande = new_demande()

    attached = client.put(f"/api/demandes/{demande['id']}", json={"dossier_id": dossier["id"]}, headers=headers).json()
    assert attached["dossier"]["id"] == dossier["id"]

    untouched = client.put(f"/api/demandes/{demande['id']}", json={"commune": "Rennes"}, headers=headers).json()
    assert untouched["dossier"]["id"] == dossier["id"]
    assert untouched["commune"] == "Rennes"

    detached = client.put(f"/api/demandes/{demande['id']}", json={"dossier_id": ""}, headers=headers).json()
    assert detached["dossier"] is None

    missing = client.put(f"/api/demandes/{demande['id']}", json={"dossier_id": "nope"}, headers=headers)
    assert missing.json()["error"] == "Le dossier sélectionné n'existe pas"


def test_update_keeps_stored_dates_when_blank(client: TestClient, headers, new_demande) -> None:
    demande = new_demande(date_faits="2024-01-15", position="EN_SERVICE")
    updated = client.put(
        f"/api/demandes/{demande['id']}", json={"date_faits": "", "position": "", "nom": ""}, headers=headers
    ).json()
    assert updated["date_faits"] == "2024-01-15"
    assert updated["position"] == "EN_SERVICE"
    assert updated["nom"] == "Bernard"


def test_assign_checks_target(client: TestClient, headers, redacteur, new_demande) -> None:
    demande = new_demande()
    assert client.put(f"/api/demandes/{demande['id']}/assign", json={"assigne_a_id": "x"}, headers=headers).status_code == 400
    assigned = client.put(
        f"/api/demandes/{demande['id']}/assign", json={"assigne_a_id": redacteur.id}, headers=headers
    ).json()
    assert assigned["assigne_a"]["nom"] == "Durand"
    cleared = client.put(f"/api/demandes/{demande['id']}/assign", json={"assigne_a_id": None}, headers=headers).json()
    assert cleared["assigne_a"] is None


def test_revue_lists(client: TestClient, headers, new_demande, new_dossier, new_decision) -> None:
    dossier = new_dossier()
    waiting = new_demande(nom="Attente")
    granted = new_demande(nom="Accorde")
    new_decision(dossier["id"], [granted["id"]], date_signature="2024-04-02")

    decisions = client.get("/api/demandes/revue/decisions", headers=headers).json()
    assert [d["id"] for d in decisions] == [waiting["id"]]
    conventions = client.get("/api/demandes/revue/conventions", headers=headers).json()
    assert [d["id"] for d in conventions] == [granted["id"]]
    assert conventions[0]["date_decision_pj"] == "2024-04-02"


def test_delete_and_view_are_journaled(client: TestClient, headers, admin_headers, new_demande) -> None:
    demande = new_demande()
    client.get(f"/api/demandes/{demande['id']}", headers=headers)
    assert client.delete(f"/api/demandes/{demande['id']}", headers=headers).json() == {
        "message": "Demande supprimée avec succès"
    }
    assert client.get(f"/api/demandes/{demande['id']}", headers=headers).status_code == 404
    actions = client.get("/api/logs/actions", headers=admin_headers).json()
    assert {"CREATE_DEMANDE", "VIEW_DEMANDE", "DELETE_DEMANDE"} <= set(actions)
