"""Versioned storage of the DOCX templates uploaded for generated documents.

Each template type keeps every uploaded version on disk under
``<templates_dir>/<type>/``; at most one version per type is active. When no
version is active the built-in default layout is used.
"""
from __future__ import annotations

import logging
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import List, Optional
from zipfile import BadZipFile

from docx.opc.exceptions import PackageNotFoundError
from docxtpl import DocxTemplate
from jinja2 import TemplateSyntaxError
from sqlalchemy import func
from sqlalchemy.orm import Session

from brpf.config import get_settings
from brpf.errors import NotFoundError, ValidationError
from brpf.models import TemplateVersion

logger = logging.getLogger(__name__)

TEMPLATE_TYPES = {
    "decision": "decision_template.docx",
    "convention": "convention_template.docx",
    "avenant": "avenant_template.docx",
    "reglement": "reglement_template.docx",
}

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def check_type(template_type: str) -> str:
    if template_type not in TEMPLATE_TYPES:
        raise ValidationError("Type de template invalide")
    return template_type


def type_dir(template_type: str) -> Path:
    return Path(get_settings().templates_dir) / template_type


def version_path(version: TemplateVersion) -> Path:
    return type_dir(version.template_type) / version.filename


def active_version(db: Session, template_type: str) -> Optional[TemplateVersion]:
    return (
        db.query(TemplateVersion)
        .filter(TemplateVersion.template_type == template_type, TemplateVersion.is_active.is_(True))
        .first()
    )


def template_status(db: Session, template_type: str) -> str:
    return "custom" if active_version(db, template_type) is not None else "default"


def list_versions(db: Session, template_type: str) -> List[TemplateVersion]:
    return (
        db.query(TemplateVersion)
        .filter(TemplateVersion.template_type == template_type)
        .order_by(TemplateVersion.version_number.desc())
        .all()
    )


def get_version(db: Session, template_type: str, version_id: str) -> TemplateVersion:
    version = db.get(TemplateVersion, version_id)
    if version is None or version.template_type != template_type:
        raise NotFoundError("Version non trouvée")
    return version


def next_version_number(db: Session, template_type: str) -> int:
    current = (
        db.query(func.max(TemplateVersion.version_number))
        .filter(TemplateVersion.template_type == template_type)
        .scalar()
    )
    return (current or 0) + 1


def check_docx(content: bytes) -> None:
    """Reject content that is not a Word document or whose tags do not parse."""

    try:
        DocxTemplate(BytesIO(content)).get_undeclared_template_variables()
    except (BadZipFile, KeyError, PackageNotFoundError, ValueError) as exc:
        raise ValidationError("Le fichier doit être au format DOCX") from exc
    except TemplateSyntaxError as exc:
        raise ValidationError(f"Balise invalide dans le template : {exc.message}") from exc


def _deactivate_all(db: Session, template_type: str) -> None:
    db.query(TemplateVersion).filter(TemplateVersion.template_type == template_type).update(
        {TemplateVersion.is_active: False}, synchronize_session=False
    )


def store_upload(
    db: Session,
    template_type: str,
    original_name: str,
    content: bytes,
    uploaded_by_id: Optional[str],
) -> TemplateVersion:
    """Save ``content`` as the next version of ``template_type`` and activate it."""

    if not original_name or Path(original_name).suffix.lower() != ".docx":
        raise ValidationError("Le fichier doit être au format DOCX")
    if not content:
        raise ValidationError("Aucun fichier uploadé")
    if len(content) > get_settings().max_template_size:
        raise ValidationError("Le fichier dépasse la taille maximale autorisée")
    check_docx(content)

    number = next_version_number(db, template_type)
    stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
    filename = f"{template_type}_v{number}_{stamp}.docx"
    directory = type_dir(template_type)
    directory.mkdir(parents=True, exist_ok=True)
    (directory / filename).write_bytes(content)

    _deactivate_all(db, template_type)
    version = TemplateVersion(
        template_type=template_type,
        version_number=number,
        filename=filename,
        original_name=original_name,
        is_active=True,
        file_size=len(content),
        uploaded_by_id=uploaded_by_id,
    )
    db.add(version)
    db.commit()
    db.refresh(version)
    logger.info("Stored %s template version %s as %s", template_type, number, filename)
    return version


def activate(db: Session, template_type: str, version_id: str) -> TemplateVersion:
    version = get_version(db, template_type, version_id)
    _deactivate_all(db, template_type)
    version.is_active = True
    db.commit()
    db.refresh(version)
    return version


def delete_version(db: Session, template_type: str, version_id: str) -> TemplateVersion:
    version = get_version(db, template_type, version_id)
    if version.is_active:
        raise ValidationError("Impossible de supprimer la version active")
    path = version_path(version)
    if path.exists():
        path.unlink()
    else:
        logger.warning("Template file already removed: %s", path)
    db.delete(version)
    db.commit()
    return version


def restore_default(db: Session, template_type: str) -> None:
    _deactivate_all(db, template_type)
    db.commit()


def resolve_template(db: Session, template_type: str) -> Optional[Path]:
    """Path of the active custom template, or ``None`` for the default layout.

    An active version whose file has disappeared or no longer opens is
    deactivated so later requests stop looking for it.
    """

    version = active_version(db, template_type)
    if version is None:
        return None
    path = version_path(version)
    if not path.is_file():
        logger.warning("Active %s template missing on disk (%s); using default", template_type, path)
    else:
        try:
            check_docx(path.read_bytes())
        except ValidationError as exc:
            logger.warning("Active %s template unreadable (%s): %s; using default", template_type, path, exc.message)
        else:
            return path
    version.is_active = False
    db.commit()
    return None


__all__ = [
    "DOCX_MEDIA_TYPE",
    "TEMPLATE_TYPES",
    "activate",
    "active_version",
    "check_docx",
    "check_type",
    "delete_version",
    "get_version",
    "list_versions",
    "next_version_number",
    "resolve_template",
    "restore_default",
    "store_upload",
    "template_status",
    "type_dir",
    "version_path",
]
