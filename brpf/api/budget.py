"""Yearly budget envelope: base allocation plus top-ups voted during the year."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from brpf import serializers
from brpf.audit import log_action
from brpf.errors import NotFoundError
from brpf.models import BudgetAnnuel, User, get_db
from brpf.security import get_current_user, require_admin

router = APIRouter(prefix="/api/budget", tags=["budget"])


class BudgetRequest(BaseModel):
    annee: int = Field(..., ge=2000, le=2100)
    budget_base: float = Field(..., ge=0)
    abondements: Optional[float] = Field(0.0, ge=0)


def _render(budget: BudgetAnnuel) -> dict:
    data = serializers.columns(budget)
    data.update(
        {
            "total": budget.total,
            "cree_par": serializers.user_summary(budget.cree_par),
            "modifie_par": serializers.user_summary(budget.modifie_par),
        }
    )
    return data


@router.get("")
def list_budgets(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    return [_render(budget) for budget in db.query(BudgetAnnuel).order_by(BudgetAnnuel.annee.desc()).all()]


@router.get("/{annee}")
def get_budget(annee: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    budget = db.query(BudgetAnnuel).filter(BudgetAnnuel.annee == annee).first()
    if budget is None:
        raise NotFoundError("Budget non trouvé pour cette année")
    return _render(budget)


@router.post("")
def save_budget(payload: BudgetRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    """Create the budget of ``annee`` or overwrite its amounts."""

    budget = db.query(BudgetAnnuel).filter(BudgetAnnuel.annee == payload.annee).first()
    if budget is None:
        budget = BudgetAnnuel(annee=payload.annee, cree_par_id=admin.id)
        db.add(budget)
        action = "CREATE_BUDGET"
    else:
        action = "UPDATE_BUDGET"
    budget.budget_base = payload.budget_base
    budget.abondements = payload.abondements or 0.0
    budget.modifie_par_id = admin.id
    db.commit()
    db.refresh(budget)
    log_action(db, admin.id, action, f"Budget {budget.annee} : {budget.total:.2f} €", "BudgetAnnuel", budget.id)
    return _render(budget)
