"""Audit journal of user actions stored in the ``logs`` table."""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from brpf.models import Log

logger = logging.getLogger(__name__)


def log_action(
    db: Session,
    user_id: Optional[str],
    action: str,
    detail: Optional[str] = None,
    entite: Optional[str] = None,
    entite_id: Optional[str] = None,
) -> None:
    """Record ``action`` for ``user_id``.

    Journal failures are reported through the application logger and never
    abort the request that triggered them.
    """

    try:
        db.add(Log(user_id=user_id, action=action, detail=detail, entite=entite, entite_id=entite_id))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Unable to journal action %s on %s %s", action, entite, entite_id)


__all__ = ["log_action"]
