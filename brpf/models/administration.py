"""Accounts, audit journal, document template versions and yearly budgets."""
from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from brpf.models.db import Base, TimestampMixin, new_id, now

ROLES = ("ADMIN", "REDACTEUR", "GREFFIER")


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    identifiant = Column(String(120), nullable=False, unique=True)
    password = Column(String(255), nullable=False)
    nom = Column(String(120), nullable=False)
    prenom = Column(String(120), nullable=False)
    initiales = Column(String(10), nullable=True)
    mail = Column(String(255), nullable=False, unique=True)
    grade = Column(String(60), nullable=True)
    telephone = Column(String(40), nullable=True)
    role = Column(String(20), nullable=False, default="REDACTEUR")
    active = Column(Boolean, nullable=False, default=True)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.grade, self.prenom, self.nom) if part)

    @property
    def short_name(self) -> str:
        return " ".join(part for part in (self.prenom, self.nom) if part)


class Log(Base):
    __tablename__ = "logs"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    action = Column(String(60), nullable=False, index=True)
    detail = Column(Text, nullable=True)
    entite = Column(String(60), nullable=True)
    entite_id = Column(String(36), nullable=True)
    timestamp = Column(DateTime, nullable=False, default=now, index=True)

    user = relationship("User")


class TemplateVersion(Base):
    __tablename__ = "template_versions"

    id = Column(String(36), primary_key=True, default=new_id)
    template_type = Column(String(20), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)
    filename = Column(String(255), nullable=False, unique=True)
    original_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)
    file_size = Column(Integer, nullable=False, default=0)
    uploaded_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=now)

    uploaded_by = relationship("User")


class BudgetAnnuel(TimestampMixin, Base):
    __tablename__ = "budgets_annuels"

    id = Column(String(36), primary_key=True, default=new_id)
    annee = Column(Integer, nullable=False, unique=True)
    budget_base = Column(Float, nullable=False, default=0.0)
    abondements = Column(Float, nullable=False, default=0.0)
    cree_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    modifie_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    cree_par = relationship("User", foreign_keys=[cree_par_id])
    modifie_par = relationship("User", foreign_keys=[modifie_par_id])

    @property
    def total(self) -> float:
        return (self.budget_base or 0.0) + (self.abondements or 0.0)


__all__ = ["BudgetAnnuel", "Log", "ROLES", "TemplateVersion", "User"]
