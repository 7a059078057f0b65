"""User administration."""
from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from brpf import serializers
from brpf.api.auth import EMAIL_PATTERN, RegisterRequest, create_user
from brpf.audit import log_action
from brpf.errors import ConflictError, NotFoundError, ValidationError
from brpf.models import Demande, Dossier, User, get_db
from brpf.security import get_current_user, hash_password, require_admin

router = APIRouter(prefix="/api/users", tags=["users"])


class UpdateUserRequest(BaseModel):
    identifiant: Optional[str] = Field(None, min_length=3)
    password: Optional[str] = Field(None, min_length=6)
    nom: Optional[str] = Field(None, min_length=1)
    prenom: Optional[str] = Field(None, min_length=1)
    mail: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    role: Optional[Literal["ADMIN", "REDACTEUR", "GREFFIER"]] = None
    grade: Optional[str] = None
    initiales: Optional[str] = None
    telephone: Optional[str] = None


class TransferRequest(BaseModel):
    target_user_id: str = Field(..., min_length=1)


def _get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("Utilisateur non trouvé")
    return user


@router.get("/options")
def list_user_options(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    users = db.query(User).filter(User.active.is_(True)).order_by(User.nom, User.prenom).all()
    return [serializers.user_summary(user) for user in users]


@router.get("")
def list_users(
    active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
) -> list:
    query = db.query(User)
    if active is not None:
        query = query.filter(User.active.is_(active))
    return [serializers.user_public(user) for user in query.order_by(User.nom, User.prenom).all()]


@router.get("/{user_id}")
def get_user(user_id: str, db: Session = Depends(get_db), _: User = Depends(require_admin)) -> dict:
    return serializers.user_public(_get_user(db, user_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create(payload: RegisterRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    user = create_user(db, payload)
    log_action(db, admin.id, "CREATE_USER", f"Création de l'utilisateur {user.identifiant}", "User", user.id)
    return serializers.user_public(user)


@router.put("/{user_id}")
def update(
    user_id: str,
    payload: UpdateUserRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> dict:
    user = _get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("identifiant") and changes["identifiant"] != user.identifiant:
        if db.query(User).filter(User.identifiant == changes["identifiant"]).first():
            raise ConflictError("Cet identifiant existe déjà")
    if changes.get("mail") and changes["mail"] != user.mail:
        if db.query(User).filter(User.mail == changes["mail"]).first():
            raise ConflictError("Cet email existe déjà")
    password = changes.pop("password", None)
    if password:
        user.password = hash_password(password)
    for key, value in changes.items():
        if value is not None or key in {"grade", "initiales", "telephone"}:
            setattr(user, key, value)
    db.commit()
    log_action(db, admin.id, "UPDATE_USER", f"Modification de l'utilisateur {user.identifiant}", "User", user.id)
    return serializers.user_public(user)


def _set_active(db: Session, admin: User, user_id: str, active: bool) -> dict:
    user = _get_user(db, user_id)
    if not active and user.id == admin.id:
        raise ValidationError("Vous ne pouvez pas désactiver votre propre compte")
    user.active = active
    db.commit()
    action = "REACTIVATE_USER" if active else "DEACTIVATE_USER"
    log_action(db, admin.id, action, user.identifiant, "User", user.id)
    return serializers.user_public(user)


@router.put("/{user_id}/deactivate")
def deactivate(user_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    return _set_active(db, admin, user_id, False)


@router.put("/{user_id}/reactivate")
def reactivate(user_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    return _set_active(db, admin, user_id, True)


@router.post("/{user_id}/transfer")
def transfer(
    user_id: str,
    payload: TransferRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> dict:
    """Hand every demande and dossier assigned to a user over to another user."""

    source = _get_user(db, user_id)
    target = _get_user(db, payload.target_user_id)
    if source.id == target.id:
        raise ValidationError("L'utilisateur cible doit être différent")
    if not target.active:
        raise ValidationError("L'utilisateur cible est désactivé")
    demandes = (
        db.query(Demande)
        .filter(Demande.assigne_a_id == source.id)
        .update({Demande.assigne_a_id: target.id}, synchronize_session=False)
    )
    dossiers = (
        db.query(Dossier)
        .filter(Dossier.assigne_a_id == source.id)
        .update({Dossier.assigne_a_id: target.id}, synchronize_session=False)
    )
    db.commit()
    log_action(
        db,
        admin.id,
        "TRANSFER_ASSIGNATIONS",
        f"{demandes} demande(s) et {dossiers} dossier(s) de {source.identifiant} vers {target.identifiant}",
        "User",
        source.id,
    )
    return {"demandes": demandes, "dossiers": dossiers}
