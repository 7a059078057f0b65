"""Administration of the DOCX templates and their version history."""
from __future__ import annotations

from fastapi import APIRouter, Depends, File, Response, UploadFile
from sqlalchemy.orm import Session

from brpf import serializers, templates_store
from brpf.audit import log_action
from brpf.documents.generator import default_template_bytes
from brpf.errors import NotFoundError
from brpf.models import TemplateVersion, User, get_db
from brpf.security import require_admin

router = APIRouter(prefix="/api/templates", tags=["templates"], dependencies=[Depends(require_admin)])


def _version(version: TemplateVersion) -> dict:
    data = serializers.columns(version)
    data["uploaded_by"] = serializers.user_summary(version.uploaded_by)
    return data


def _docx(content: bytes, filename: str) -> Response:
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return Response(content=content, media_type=templates_store.DOCX_MEDIA_TYPE, headers=headers)


@router.get("/status")
def templates_status(db: Session = Depends(get_db)) -> dict:
    return {name: templates_store.template_status(db, name) for name in templates_store.TEMPLATE_TYPES}


@router.get("/{template_type}/status")
def template_status(template_type: str, db: Session = Depends(get_db)) -> dict:
    templates_store.check_type(template_type)
    active = templates_store.active_version(db, template_type)
    return {
        "type": template_type,
        "status": "custom" if active is not None else "default",
        "filename": templates_store.TEMPLATE_TYPES[template_type],
        "active_version": _version(active) if active is not None else None,
    }


@router.get("/{template_type}/versions")
def template_versions(template_type: str, db: Session = Depends(get_db)) -> list:
    templates_store.check_type(template_type)
    return [_version(version) for version in templates_store.list_versions(db, template_type)]


@router.post("/{template_type}/upload")
def upload_template(
    template_type: str,
    template: UploadFile = File(...),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> dict:
    templates_store.check_type(template_type)
    content = template.file.read()
    version = templates_store.store_upload(db, template_type, template.filename or "", content, admin.id)
    log_action(
        db,
        admin.id,
        "UPLOAD_TEMPLATE",
        f"Upload du template {template_type} version {version.version_number}",
        "Template",
        template_type,
    )
    return {"message": "Template uploadé avec succès", "status": "custom", "version": _version(version)}


@router.post("/{template_type}/activate/{version_id}")
def activate_template_version(
    template_type: str,
    version_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> dict:
    templates_store.check_type(template_type)
    version = templates_store.activate(db, template_type, version_id)
    log_action(
        db,
        admin.id,
        "ACTIVATE_TEMPLATE_VERSION",
        f"Activation du template {template_type} version {version.version_number}",
        "Template",
        template_type,
    )
    return {"message": "Version activée avec succès", "version": version.version_number}


@router.delete("/{template_type}/versions/{version_id}")
def delete_template_version(
    template_type: str,
    version_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> dict:
    templates_store.check_type(template_type)
    version = templates_store.delete_version(db, template_type, version_id)
    log_action(
        db,
        admin.id,
        "DELETE_TEMPLATE_VERSION",
        f"Suppression du template {template_type} version {version.version_number}",
        "Template",
        template_type,
    )
    return {"message": "Version supprimée avec succès"}


@router.post("/{template_type}/restore")
def restore_template(template_type: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    templates_store.check_type(template_type)
    templates_store.restore_default(db, template_type)
    log_action(
        db,
        admin.id,
        "RESTORE_TEMPLATE",
        f"Restauration du template par défaut {template_type}",
        "Template",
        template_type,
    )
    return {"message": "Template restauré avec succès", "status": "default"}


@router.get("/{template_type}/download")
def download_template(template_type: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> Response:
    templates_store.check_type(template_type)
    path = templates_store.resolve_template(db, template_type)
    content = path.read_bytes() if path is not None else default_template_bytes(template_type)
    log_action(db, admin.id, "DOWNLOAD_TEMPLATE", f"Téléchargement du template {template_type}", "Template", template_type)
    return _docx(content, templates_store.TEMPLATE_TYPES[template_type])


@router.get("/{template_type}/versions/{version_id}/download")
def download_template_version(
    template_type: str,
    version_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> Response:
    templates_store.check_type(template_type)
    version = templates_store.get_version(db, template_type, version_id)
    path = templates_store.version_path(version)
    if not path.is_file():
        raise NotFoundError("Fichier non trouvé")
    log_action(
        db,
        admin.id,
        "DOWNLOAD_TEMPLATE_VERSION",
        f"Téléchargement du template {template_type} version {version.version_number}",
        "Template",
        template_type,
    )
    return _docx(path.read_bytes(), version.original_name)
