"""SQLAlchemy models for the BRPF back end."""
from __future__ import annotations

from brpf.models.administration import ROLES, BudgetAnnuel, Log, TemplateVersion, User
from brpf.models.cases import (
    CONVENTION_TYPES,
    DECISION_LABELS,
    DECISION_TYPES,
    DEMANDE_TYPES,
    OUI_NON,
    POSITIONS,
    QUALITES_BENEFICIAIRE,
    TYPES_FACTURATION,
    Convention,
    Decision,
    Demande,
    Dossier,
    Paiement,
)
from brpf.models.db import Base, SessionLocal, get_db, init_db
from brpf.models.reference import Avocat, Badge, Bap, Diligence, Grade, Pce, Sgami, Visa

__all__ = [
    "Avocat",
    "Badge",
    "Bap",
    "Base",
    "BudgetAnnuel",
    "CONVENTION_TYPES",
    "Convention",
    "DECISION_LABELS",
    "DECISION_TYPES",
    "DEMANDE_TYPES",
    "Decision",
    "Demande",
    "Diligence",
    "Dossier",
    "Grade",
    "Log",
    "OUI_NON",
    "POSITIONS",
    "Paiement",
    "Pce",
    "QUALITES_BENEFICIAIRE",
    "ROLES",
    "SessionLocal",
    "Sgami",
    "TYPES_FACTURATION",
    "TemplateVersion",
    "User",
    "Visa",
    "get_db",
    "init_db",
]
