from __future__ import annotations

from fastapi.testclient import TestClient


def test_options_list_active_users_only(client: TestClient, make_user, headers, admin) -> None:
    make_user("parti", active=False)
    names = [entry["nom"] for entry in client.get("/api/users/options", headers=headers).json()]
    assert names == ["Durand", "Martin"]


def test_user_listing_needs_admin(client: TestClient, headers, admin_headers) -> None:
    assert client.get("/api/users", headers=headers).status_code == 403
    users = client.get("/api/users", headers=admin_headers).json()
    assert {user["identifiant"] for user in users} == {"admin", "redacteur"}
    assert all("password" not in user for user in users)


def test_update_rejects_taken_identifiant(client: TestClient, admin_headers, redacteur) -> None:
    response = client.put(f"/api/users/{redacteur.id}", json={"identifiant": "admin"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Cet identifiant existe déjà"

    response = client.put(
        f"/api/users/{redacteur.id}",
        json={"grade": "Major", "password": "nouveau123"},
        headers=admin_headers,
    )
    assert response.json()["grade"] == "Major"
    login = client.post("/api/auth/login", json={"identifiant": "redacteur", "password": "nouveau123"})
    assert login.status_code == 200


def test_admin_cannot_deactivate_self(client: TestClient, admin, admin_headers, redacteur) -> None:
    response = client.put(f"/api/users/{admin.id}/deactivate", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Vous ne pouvez pas désactiver votre propre compte"

    assert client.put(f"/api/users/{redacteur.id}/deactivate", headers=admin_headers).json()["active"] is False
    assert client.put(f"/api/users/{redacteur.id}/reactivate", headers=admin_headers).json()["active"] is True


def test_transfer_moves_demandes_and_dossiers(client: TestClient, make_user, admin_headers, redacteur, new_dossier) -> None:
    successor = make_user("successeur")
    dossier = new_dossier()
    demande = client.post(
        "/api/demandes",
        json={"numero_ds": "DS-T1", "type": "VICTIME", "nom": "A", "prenom": "B", "assigne_a_id": redacteur.id},
        headers=admin_headers,
    ).json()

    response = client.post(
        f"/api/users/{redacteur.id}/transfer",
        json={"target_user_id": successor.id},
        headers=admin_headers,
    )
    assert response.json() == {"demandes": 1, "dossiers": 1}

    moved = client.get(f"/api/demandes/{demande['id']}", headers=admin_headers).json()
    assert moved["assigne_a"]["id"] == successor.id
    assert client.get(f"/api/dossiers/{dossier['id']}", headers=admin_headers).json()["assigne_a"]["id"] == successor.id


def test_transfer_to_same_user_is_refused(client: TestClient, admin_headers, redacteur) -> None:
    response = client.post(
        f"/api/users/{redacteur.id}/transfer",
        json={"target_user_id": redacteur.id},
        headers=admin_headers,
    )
    assert response.status_code == 400
