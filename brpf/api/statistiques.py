"""Activity statistics endpoints, each scoped to a year of reception."""
from __future__ import annotations

from datetime import date
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from brpf import statistics
from brpf.models import get_db
from brpf.security import get_current_user

router = APIRouter(prefix="/api/statistiques", tags=["statistiques"], dependencies=[Depends(get_current_user)])


def selected_year(year: Optional[int] = Query(None, ge=1900, le=2999)) -> int:
    return year or date.today().year


@router.get("/annees")
def annees(db: Session = Depends(get_db)) -> list:
    return statistics.annees_disponibles(db)


@router.get("/administratives")
def administratives(year: int = Depends(selected_year), db: Session = Depends(get_db)) -> dict:
    return statistics.administratives(db, year)


@router.get("/qualite-demandeur")
def qualite_demandeur(year: int = Depends(selected_year), db: Session = Depends(get_db)) -> list:
    return statistics.qualite_demandeur(db, year)


@router.get("/bap")
def bap(year: int = Depends(selected_year), db: Session = Depends(get_db)) -> list:
    return statistics.bap(db, year)


@router.get("/badges")
def badges(year: int = Depends(selected_year), db: Session = Depends(get_db)) -> list:
    return statistics.badges(db, year)


@router.get("/flux-mensuels")
def flux_mensuels(year: int = Depends(selected_year), db: Session = Depends(get_db)) -> dict:
    return statistics.flux_mensuels(db, year)


@router.get("/flux-hebdomadaires")
def flux_hebdomadaires(year: int = Depends(selected_year), db: Session = Depends(get_db)) -> dict:
    return statistics.flux_hebdomadaires(db, year)


@router.get("/flux-hebdomadaires/recent")
def flux_recent(limit: int = Query(10, ge=1, le=520), db: Session = Depends(get_db)) -> dict:
    return statistics.recent_weeks(db, limit)


@router.get("/budgetaires")
def budgetaires(year: int = Depends(selected_year), db: Session = Depends(get_db)) -> dict:
    return statistics.budgetaires(db, year)


@router.get("/auto-controle")
def auto_controle(year: int = Depends(selected_year), db: Session = Depends(get_db)) -> dict:
    return statistics.auto_controle(db, year)


def _repartition_endpoint(field: str, column: Any) -> Callable[..., list]:
    def endpoint(year: int = Depends(selected_year), db: Session = Depends(get_db)) -> list:
        return statistics.repartition(db, year, field, column)

    endpoint.__name__ = f"repartition_{field}"
    return endpoint


for _path, (_field, _column) in statistics.REPARTITIONS.items():
    router.add_api_route(f"/{_path}", _repartition_endpoint(_field, _column), methods=["GET"])
