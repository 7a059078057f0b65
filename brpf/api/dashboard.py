"""Home screen counters of the signed-in user."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from brpf import statistics
from brpf.models import User, get_db
from brpf.security import get_current_user

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats")
def dashboard_stats(db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> dict:
    return statistics.tableau_de_bord(db, user)
