from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from brpf.errors import AuthenticationError
from brpf.models import User
from brpf.security import create_access_token, hash_password, verify_password, verify_token


def test_password_hash_round_trip() -> None:
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("secret123", "not-a-bcrypt-hash")


def test_token_carries_user_id() -> None:
    token = create_access_token("user-1")
    assert verify_token(token) == "user-1"


def test_tampered_token_is_rejected() -> None:
    token = create_access_token("user-1")
    with pytest.raises(AuthenticationError, match="Token invalide"):
        verify_token(token[:-2] + "xx")


def test_login_returns_token_and_public_user(client: TestClient, redacteur: User) -> None:
    response = client.post("/api/auth/login", json={"identifiant": "redacteur", "password": "secret123"})
    assert response.status_code == 200
    body = response.json()
    assert verify_token(body["token"]) == redacteur.id
    assert body["user"]["identifiant"] == "redacteur"
    assert "password" not in body["user"]


def test_login_rejects_bad_password_and_inactive_account(client: TestClient, db, redacteur: User) -> None:
    response = client.post("/api/auth/login", json={"identifiant": "redacteur", "password": "nope"})
    assert response.status_code == 401
    assert response.json() == {"error": "Identifiants invalides"}

    redacteur.active = False
    db.commit()
    response = client.post("/api/auth/login", json={"identifiant": "redacteur", "password": "secret123"})
    assert response.status_code == 401


def test_me_requires_a_bearer_token(client: TestClient, headers) -> None:
    assert client.get("/api/auth/me").json() == {"error": "Token manquant"}
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401

    response = client.get("/api/auth/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["nom"] == "Durand"


def test_register_is_admin_only(client: TestClient, headers, admin_headers) -> None:
    payload = {
        "identifiant": "greffe",
        "password": "greffe123",
        "nom": "Petit",
        "prenom": "Julie",
        "mail": "julie.petit@brpf.test",
        "role": "GREFFIER",
    }
    forbidden = client.post("/api/auth/register", json=payload, headers=headers)
    assert forbidden.status_code == 403

    created = client.post("/api/auth/register", json=payload, headers=admin_headers)
    assert created.status_code == 201
    assert created.json()["role"] == "GREFFIER"

    duplicate = client.post("/api/auth/register", json=payload, headers=admin_headers)
    assert duplicate.status_code == 400
    assert duplicate.json()["error"] == "Cet identifiant existe déjà"

    payload["identifiant"] = "greffe2"
    duplicate_mail = client.post("/api/auth/register", json=payload, headers=admin_headers)
    assert duplicate_mail.json()["error"] == "Cet email existe déjà"


def test_login_is_journaled(client: TestClient, admin_headers, redacteur: User) -> None:
    client.post("/api/auth/login", json={"identifiant": "redacteur", "password": "secret123"})
    logs = client.get("/api/logs", params={"action": "LOGIN"}, headers=admin_headers).json()
    assert logs["pagination"]["total"] == 1
    assert logs["logs"][0]["user"]["identifiant"] == "redacteur"


def test_deleted_user_token_is_invalid(client: TestClient, db) -> None:
    ghost = User(identifiant="ghost", password=hash_password("secret123"), nom="G", prenom="G", mail="g@brpf.test")
    db.add(ghost)
    db.commit()
    token = create_access_token(ghost.id)
    db.delete(ghost)
    db.commit()
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
