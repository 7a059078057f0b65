from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Iterator

_WORKDIR = Path(tempfile.mkdtemp(prefix="brpf-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_WORKDIR / 'brpf.db'}"
os.environ["TEMPLATES_DIR"] = str(_WORKDIR / "templates")
os.environ["JWT_SECRET"] = "tests-secret"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from brpf.main import app  # noqa: E402
from brpf.models import Avocat, Pce, SessionLocal, Sgami, User, Visa, init_db  # noqa: E402
from brpf.models.db import drop_db  # noqa: E402
from brpf.security import create_access_token, hash_password  # noqa: E402

Headers = Dict[str, str]


@pytest.fixture(autouse=True)
def fresh_database() -> Iterator[None]:
    drop_db()
    init_db()
    shutil.rmtree(_WORKDIR / "templates", ignore_errors=True)
    yield


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture()
def db() -> Iterator[Session]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _create_user(db: Session, identifiant: str, role: str = "REDACTEUR", **fields) -> User:
    values = {
        "nom": identifiant.capitalize(),
        "prenom": "Test",
        "mail": f"{identifiant}@brpf.test",
        "grade": None,
    }
    values.update(fields)
    user = User(identifiant=identifiant, password=hash_password("secret123"), role=role, **values)
    db.add(user)
    db.commit()
    return user


def bearer(user: User) -> Headers:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def make_user(db: Session) -> Callable[..., User]:
    def create(identifiant: str, role: str = "REDACTEUR", **fields) -> User:
        return _create_user(db, identifiant, role, **fields)

    return create


@pytest.fixture()
def admin(db: Session) -> User:
    return _create_user(db, "admin", role="ADMIN", nom="Martin", prenom="Claire", grade="Capitaine")


@pytest.fixture()
def redacteur(db: Session) -> User:
    return _create_user(db, "redacteur", nom="Durand", prenom="Paul", grade="Adjudant")


@pytest.fixture()
def admin_headers(admin: User) -> Headers:
    return bearer(admin)


@pytest.fixture()
def headers(redacteur: User) -> Headers:
    return bearer(redacteur)


@pytest.fixture()
def new_demande(client: TestClient, headers: Headers) -> Callable[..., dict]:
    counter = {"value": 0}

    def create(**overrides) -> dict:
        counter["value"] += 1
        payload = {
            "numero_ds": f"DS-{counter['value']:04d}",
            "type": "VICTIME",
            "nom": "Bernard",
            "prenom": "Luc",
            "date_reception": "2024-03-01T10:00:00",
        }
        payload.update(overrides)
        response = client.post("/api/demandes", json=payload, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return create


@pytest.fixture()
def new_dossier(client: TestClient, headers: Headers, redacteur: User) -> Callable[..., dict]:
    def create(**overrides) -> dict:
        payload = {"nom_dossier": "Agression en service", "assigne_a_id": redacteur.id}
        payload.update(overrides)
        response = client.post("/api/dossiers", json=payload, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return create


@pytest.fixture()
def visa(db: Session) -> Visa:
    record = Visa(type_visa="Protection fonctionnelle", texte_visa="Vu le code général de la fonction publique ;")
    db.add(record)
    db.commit()
    return record


@pytest.fixture()
def avocat(db: Session) -> Avocat:
    record = Avocat(nom="Lefebvre", prenom="Anne", email="anne.lefebvre@barreau.test", region="Bretagne")
    db.add(record)
    db.commit()
    return record


@pytest.fixture()
def sgami(db: Session) -> Sgami:
    record = Sgami(nom="SGAMI Ouest", intitule_fiche_reglement="Fiche de règlement SGAMI Ouest")
    db.add(record)
    db.commit()
    return record


@pytest.fixture()
def pce(db: Session) -> Pce:
    record = Pce(ordre=1, pce_detaille="Frais de justice", pce_numerique="6113", code_marchandise="36.01.01")
    db.add(record)
    db.commit()
    return record


@pytest.fixture()
def new_decision(client: TestClient, headers: Headers, visa: Visa) -> Callable[..., dict]:
    counter = {"value": 0}

    def create(dossier_id: str, demande_ids: list, **overrides) -> dict:
        counter["value"] += 1
        payload = {
            "type": "PJ",
            "numero": str(counter["value"]),
            "visa_id": visa.id,
            "dossier_id": dossier_id,
            "demande_ids": demande_ids,
        }
        payload.update(overrides)
        response = client.post("/api/decisions", json=payload, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return create
