"""Authentication endpoints."""
from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from brpf import serializers
from brpf.audit import log_action
from brpf.errors import AuthenticationError, ConflictError
from brpf.models import User, get_db
from brpf.security import create_access_token, get_current_user, hash_password, require_admin, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class LoginRequest(BaseModel):
    identifiant: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    identifiant: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    nom: str = Field(..., min_length=1)
    prenom: str = Field(..., min_length=1)
    mail: str = Field(..., pattern=EMAIL_PATTERN)
    role: Literal["ADMIN", "REDACTEUR", "GREFFIER"] = "REDACTEUR"
    grade: Optional[str] = None
    initiales: Optional[str] = None
    telephone: Optional[str] = None


def create_user(db: Session, payload: RegisterRequest) -> User:
    """Persist a new account after checking identifiant and mail uniqueness."""

    if db.query(User).filter(User.identifiant == payload.identifiant).first():
        raise ConflictError("Cet identifiant existe déjà")
    if db.query(User).filter(User.mail == payload.mail).first():
        raise ConflictError("Cet email existe déjà")
    data = payload.model_dump()
    data["password"] = hash_password(payload.password)
    user = User(**data)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> dict:
    user = db.query(User).filter(User.identifiant == payload.identifiant).first()
    if user is None or not user.active or not verify_password(payload.password, user.password):
        logger.warning("Rejected login for %s", payload.identifiant)
        raise AuthenticationError("Identifiants invalides")
    log_action(db, user.id, "LOGIN", f"Connexion de {user.identifiant}", "User", user.id)
    return {"token": create_access_token(user.id), "user": serializers.user_public(user)}


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> dict:
    user = create_user(db, payload)
    log_action(db, admin.id, "CREATE_USER", f"Création de l'utilisateur {user.identifiant}", "User", user.id)
    return serializers.user_public(user)


@router.get("/me")
def me(user: User = Depends(get_current_user)) -> dict:
    return serializers.user_public(user)
