"""Password hashing, bearer tokens and the request dependencies built on them."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from brpf.config import get_settings
from brpf.errors import AuthenticationError, ForbiddenError
from brpf.models import User, get_db

logger = logging.getLogger(__name__)

# bcrypt only considers the first 72 bytes of a secret.
_BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def create_access_token(user_id: str) -> str:
    """Issue a signed token identifying ``user_id`` for the configured lifetime."""

    settings = get_settings()
    expires = datetime.now(timezone.utc) + timedelta(days=settings.jwt_expiration_days)
    payload = {"user_id": user_id, "exp": expires}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> str:
    """Return the user id carried by ``token`` or raise ``AuthenticationError``."""

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Token invalide") from exc
    user_id = payload.get("user_id")
    if not isinstance(user_id, str):
        raise AuthenticationError("Token invalide")
    return user_id


def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationError("Token manquant")
    user_id = verify_token(authorization[7:].strip())
    user = db.get(User, user_id)
    if user is None or not user.active:
        raise AuthenticationError("Token invalide")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "ADMIN":
        raise ForbiddenError("Accès administrateur requis")
    return user


__all__ = [
    "create_access_token",
    "get_current_user",
    "hash_password",
    "require_admin",
    "verify_password",
    "verify_token",
]
