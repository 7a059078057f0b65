"""Administrative reference tables shared by every case."""
from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from brpf.models.db import Base, TimestampMixin, new_id


class Grade(TimestampMixin, Base):
    __tablename__ = "grades"

    id = Column(String(36), primary_key=True, default=new_id)
    ordre = Column(Integer, nullable=False, unique=True)
    grade_complet = Column(String(120), nullable=False, unique=True)
    grade_abrege = Column(String(40), nullable=False)


class Sgami(TimestampMixin, Base):
    __tablename__ = "sgamis"

    id = Column(String(36), primary_key=True, default=new_id)
    nom = Column(String(120), nullable=False, unique=True)
    format_court_nommage = Column(String(60), nullable=True)
    texte_convention = Column(Text, nullable=True)
    intitule_fiche_reglement = Column(Text, nullable=True)


class Bap(TimestampMixin, Base):
    __tablename__ = "baps"

    id = Column(String(36), primary_key=True, default=new_id)
    nom_bap = Column(String(120), nullable=False, unique=True)
    mail1 = Column(String(255), nullable=True)
    mail2 = Column(String(255), nullable=True)
    mail3 = Column(String(255), nullable=True)
    mail4 = Column(String(255), nullable=True)


class Pce(TimestampMixin, Base):
    __tablename__ = "pces"

    id = Column(String(36), primary_key=True, default=new_id)
    ordre = Column(Integer, nullable=False, unique=True)
    pce_detaille = Column(String(255), nullable=False, unique=True)
    pce_numerique = Column(String(60), nullable=False)
    code_marchandise = Column(String(60), nullable=False)


class Visa(TimestampMixin, Base):
    __tablename__ = "visas"

    id = Column(String(36), primary_key=True, default=new_id)
    type_visa = Column(String(120), nullable=False, unique=True)
    texte_visa = Column(Text, nullable=False)
    active = Column(Boolean, nullable=False, default=True)


class Badge(TimestampMixin, Base):
    __tablename__ = "badges"

    id = Column(String(36), primary_key=True, default=new_id)
    nom = Column(String(120), nullable=False, unique=True)
    couleur = Column(String(20), nullable=True)


class Diligence(TimestampMixin, Base):
    __tablename__ = "diligences"

    id = Column(String(36), primary_key=True, default=new_id)
    nom = Column(String(255), nullable=False)
    details = Column(Text, nullable=True)
    type_tarification = Column(String(20), nullable=False, default="FORFAITAIRE")
    active = Column(Boolean, nullable=False, default=True)
    cree_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    modifie_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    cree_par = relationship("User", foreign_keys=[cree_par_id])
    modifie_par = relationship("User", foreign_keys=[modifie_par_id])


class Avocat(TimestampMixin, Base):
    __tablename__ = "avocats"

    id = Column(String(36), primary_key=True, default=new_id)
    nom = Column(String(120), nullable=False)
    prenom = Column(String(120), nullable=True)
    region = Column(String(120), nullable=True)
    adresse_postale = Column(Text, nullable=True)
    telephone_public_1 = Column(String(40), nullable=True)
    telephone_public_2 = Column(String(40), nullable=True)
    telephone_prive = Column(String(40), nullable=True)
    email = Column(String(255), nullable=True)
    siret_ou_ridet = Column(String(40), nullable=True)
    villes_intervention = Column(JSON, nullable=False, default=list)
    specialisation = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    titulaire_compte_bancaire = Column(String(255), nullable=True)
    code_etablissement = Column(String(10), nullable=True)
    code_guichet = Column(String(10), nullable=True)
    numero_compte = Column(String(20), nullable=True)
    cle_rib = Column(String(4), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    cree_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    modifie_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)


__all__ = ["Avocat", "Badge", "Bap", "Diligence", "Grade", "Pce", "Sgami", "Visa"]
