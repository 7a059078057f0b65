from __future__ import annotations

from io import BytesIO

from docx import Document
from fastapi.testclient import TestClient

from brpf import templates_store
from brpf.templates_store import DOCX_MEDIA_TYPE


def _docx(text: str) -> bytes:
    document = Document()
    document.add_paragraph(text)
    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _upload(client: TestClient, headers, content: bytes, filename: str = "modele.docx", kind: str = "convention"):
    return client.post(
        f"/api/templates/{kind}/upload", files={"template": (filename, content, DOCX_MEDIA_TYPE)}, headers=headers
    )


def test_templates_are_admin_only(client: TestClient, headers) -> None:
    assert client.get("/api/templates/status", headers=headers).status_code == 403


def test_default_status(client: TestClient, admin_headers) -> None:
    assert client.get("/api/templates/status", headers=admin_headers).json() == {
        "decision": "default",
        "convention": "default",
        "avenant": "default",
        "reglement": "default",
    }
    detail = client.get("/api/templates/decision/status", headers=admin_headers).json()
    assert detail["status"] == "default"
    assert detail["active_version"] is None

    invalid = client.get("/api/templates/courrier/status", headers=admin_headers)
    assert invalid.status_code == 400
    assert invalid.json() == {"error": "Type de template invalide"}


def test_upload_rejections(client: TestClient, admin_headers) -> None:
    wrong = _upload(client, admin_headers, b"%PDF-1.4", filename="modele.pdf")
    assert wrong.status_code == 400
    assert wrong.json() == {"error": "Le fichier doit être au format DOCX"}
    empty = _upload(client, admin_headers, b"")
    assert empty.json() == {"error": "Aucun fichier uploadé"}


def test_version_lifecycle(client: TestClient, admin_headers) -> None:
    first = _upload(client, admin_headers, _docx("Version une")).json()
    assert first["message"] == "Template uploadé avec succès"
    assert first["status"] == "custom"
    assert first["version"]["version_number"] == 1
    second = _upload(client, admin_headers, _docx("Version deux")).json()["version"]
    assert second["version_number"] == 2

    versions = client.get("/api/templates/convention/versions", headers=admin_headers).json()
    assert [(v["version_number"], v["is_active"]) for v in versions] == [(2, True), (1, False)]
    assert versions[0]["uploaded_by"]["nom"] == "Martin"

    download = client.get("/api/templates/convention/download", headers=admin_headers)
    assert Document(BytesIO(download.content)).paragraphs[0].text == "Version deux"

    refused = client.delete(f"/api/templates/convention/versions/{second['id']}", headers=admin_headers)
    assert refused.status_code == 400
    assert refused.json() == {"error": "Impossible de supprimer la version active"}

    activated = client.post(f"/api/templates/convention/activate/{first['version']['id']}", headers=admin_headers)
    assert activated.json() == {"message": "Version activée avec succès", "version": 1}
    deleted = client.delete(f"/api/templates/convention/versions/{second['id']}", headers=admin_headers)
    assert deleted.json() == {"message": "Version supprimée avec succès"}

    old = client.get(f"/api/templates/convention/versions/{first['version']['id']}/download", headers=admin_headers)
    assert old.headers["content-disposition"] == 'attachment; filename="modele.docx"'

    restored = client.post("/api/templates/convention/restore", headers=admin_headers).json()
    assert restored["status"] == "default"
    assert client.get("/api/templates/status", headers=admin_headers).json()["convention"] == "default"
    default = client.get("/api/templates/convention/download", headers=admin_headers)
    assert "{{ convention.numero }}" in "\n".join(p.text for p in Document(BytesIO(default.content)).paragraphs)


def test_version_of_another_type_is_not_found(client: TestClient, admin_headers) -> None:
    version = _upload(client, admin_headers, _docx("Décision"), kind="decision").json()["version"]
    response = client.post(f"/api/templates/avenant/activate/{version['id']}", headers=admin_headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Version non trouvée"}


def test_unreadable_uploads_are_refused(client: TestClient, admin_headers) -> None:
    corrupt = _upload(client, admin_headers, b"not a zip archive", kind="decision")
    assert corrupt.status_code == 400
    assert corrupt.json() == {"error": "Le fichier doit être au format DOCX"}

    broken_tag = _upload(client, admin_headers, _docx("Décision {% for demandeur in %}"), kind="decision")
    assert broken_tag.status_code == 400
    assert broken_tag.json()["error"].startswith("Balise invalide dans le template")

    assert client.get("/api/templates/decision/versions", headers=admin_headers).json() == []
    assert client.get("/api/templates/status", headers=admin_headers).json()["decision"] == "default"


def test_active_template_damaged_on_disk_falls_back_to_default(client: TestClient, admin_headers) -> None:
    version = _upload(client, admin_headers, _docx("Version abîmée"), kind="avenant").json()["version"]
    (templates_store.type_dir("avenant") / version["filename"]).write_bytes(b"plus un docx")

    download = client.get("/api/templates/avenant/download", headers=admin_headers)
    assert download.status_code == 200
    assert "{{ avenant.numero }}" in "\n".join(p.text for p in Document(BytesIO(download.content)).paragraphs)
    assert client.get("/api/templates/status", headers=admin_headers).json()["avenant"] == "default"
