"""Case records: demandes grouped in dossiers, and what the bureau issues for them."""
from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from brpf.models.db import Base, TimestampMixin, new_id, now

DEMANDE_TYPES = ("VICTIME", "MIS_EN_CAUSE")
POSITIONS = ("EN_SERVICE", "HORS_SERVICE")
DECISION_TYPES = ("AJ", "AJE", "PJ", "REJET")
DECISION_LABELS = {
    "AJ": "Assistance judiciaire",
    "AJE": "Assistance judiciaire élargie",
    "PJ": "Protection juridique",
    "REJET": "Rejet",
}
CONVENTION_TYPES = ("CONVENTION", "AVENANT")
TYPES_FACTURATION = ("FORFAITAIRE", "DEMI_JOURNEE", "ASSISES")
OUI_NON = ("OUI", "NON")
QUALITES_BENEFICIAIRE = (
    "Avocat",
    "Commissaire de justice",
    "Militaire de la gendarmerie nationale",
    "Régisseur du tribunal judiciaire",
    "Médecin",
    "Victime",
)


def _link_table(name: str, left: str, right: str) -> Table:
    left_table, left_key = left.split(".")
    right_table, right_key = right.split(".")
    return Table(
        name,
        Base.metadata,
        Column(left_key, String(36), ForeignKey(f"{left_table}.id", ondelete="CASCADE"), primary_key=True),
        Column(right_key, String(36), ForeignKey(f"{right_table}.id", ondelete="CASCADE"), primary_key=True),
    )


demande_badges = _link_table("demande_badges", "demandes.demande_id", "badges.badge_id")
demande_baps = _link_table("demande_baps", "demandes.demande_id", "baps.bap_id")
dossier_badges = _link_table("dossier_badges", "dossiers.dossier_id", "badges.badge_id")
decision_demandes = _link_table("decision_demandes", "decisions.decision_id", "demandes.demande_id")
convention_demandes = _link_table("convention_demandes", "conventions.convention_id", "demandes.demande_id")
convention_diligences = _link_table(
    "convention_diligences", "conventions.convention_id", "diligences.diligence_id"
)
convention_decisions = _link_table("convention_decisions", "conventions.convention_id", "decisions.decision_id")
paiement_decisions = _link_table("paiement_decisions", "paiements.paiement_id", "decisions.decision_id")


class Dossier(TimestampMixin, Base):
    __tablename__ = "dossiers"

    id = Column(String(36), primary_key=True, default=new_id)
    numero = Column(String(20), nullable=False, unique=True)
    nom_dossier = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    sgami_id = Column(String(36), ForeignKey("sgamis.id"), nullable=True)
    bap_id = Column(String(36), ForeignKey("baps.id"), nullable=True)
    assigne_a_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    cree_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    modifie_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    sgami = relationship("Sgami")
    bap = relationship("Bap")
    assigne_a = relationship("User", foreign_keys=[assigne_a_id])
    cree_par = relationship("User", foreign_keys=[cree_par_id])
    modifie_par = relationship("User", foreign_keys=[modifie_par_id])
    badges = relationship("Badge", secondary=dossier_badges)
    demandes = relationship("Demande", back_populates="dossier")
    decisions = relationship("Decision", back_populates="dossier")
    conventions = relationship("Convention", back_populates="dossier")
    paiements = relationship("Paiement", back_populates="dossier")


class Demande(TimestampMixin, Base):
    __tablename__ = "demandes"

    id = Column(String(36), primary_key=True, default=new_id)
    numero_ds = Column(String(60), nullable=False, unique=True)
    type = Column(String(20), nullable=False)
    nigend = Column(String(20), nullable=True)
    grade_id = Column(String(36), ForeignKey("grades.id"), nullable=True)
    statut_demandeur = Column(String(120), nullable=True)
    branche = Column(String(120), nullable=True)
    formation_administrative = Column(String(120), nullable=True)
    departement = Column(String(10), nullable=True)
    nom = Column(String(120), nullable=False)
    prenom = Column(String(120), nullable=False)
    adresse_postale_ligne1 = Column(String(255), nullable=True)
    adresse_postale_ligne2 = Column(String(255), nullable=True)
    telephone_professionnel = Column(String(40), nullable=True)
    telephone_personnel = Column(String(40), nullable=True)
    email_professionnel = Column(String(255), nullable=True)
    email_personnel = Column(String(255), nullable=True)
    unite = Column(String(255), nullable=True)
    date_faits = Column(Date, nullable=True)
    commune = Column(String(120), nullable=True)
    code_postal = Column(String(10), nullable=True)
    position = Column(String(20), nullable=True)
    contexte_missionnel = Column(String(255), nullable=True)
    qualification_infraction = Column(String(255), nullable=True)
    resume = Column(Text, nullable=True)
    blessures = Column(Text, nullable=True)
    partie_civile = Column(Boolean, nullable=False, default=False)
    montant_partie_civile = Column(Float, nullable=True)
    qualifications_penales = Column(Text, nullable=True)
    date_audience = Column(Date, nullable=True)
    soutien_psychologique = Column(Boolean, nullable=False, default=False)
    soutien_sociale = Column(Boolean, nullable=False, default=False)
    soutien_medical = Column(Boolean, nullable=False, default=False)
    commentaire_decision = Column(Text, nullable=True)
    commentaire_convention = Column(Text, nullable=True)
    date_reception = Column(DateTime, nullable=False, default=now, index=True)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=True, index=True)
    assigne_a_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    cree_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    modifie_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    grade = relationship("Grade")
    dossier = relationship("Dossier", back_populates="demandes")
    assigne_a = relationship("User", foreign_keys=[assigne_a_id])
    cree_par = relationship("User", foreign_keys=[cree_par_id])
    modifie_par = relationship("User", foreign_keys=[modifie_par_id])
    badges = relationship("Badge", secondary=demande_badges)
    baps = relationship("Bap", secondary=demande_baps)
    decisions = relationship("Decision", secondary=decision_demandes, back_populates="demandes")
    conventions = relationship("Convention", secondary=convention_demandes, back_populates="demandes")


class Decision(TimestampMixin, Base):
    __tablename__ = "decisions"

    id = Column(String(36), primary_key=True, default=new_id)
    numero = Column(String(20), nullable=False)
    type = Column(String(10), nullable=False)
    motif_rejet = Column(Text, nullable=True)
    visa_id = Column(String(36), ForeignKey("visas.id"), nullable=False)
    avis_hierarchiques = Column(Boolean, nullable=False, default=False)
    type_vict_mec = Column(String(20), nullable=True)
    considerant = Column(Text, nullable=True)
    date_signature = Column(Date, nullable=True)
    date_envoi = Column(Date, nullable=True)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=False, index=True)
    cree_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    modifie_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    visa = relationship("Visa")
    dossier = relationship("Dossier", back_populates="decisions")
    cree_par = relationship("User", foreign_keys=[cree_par_id])
    modifie_par = relationship("User", foreign_keys=[modifie_par_id])
    demandes = relationship("Demande", secondary=decision_demandes, back_populates="decisions")
    conventions = relationship("Convention", secondary=convention_decisions, back_populates="decisions")
    paiements = relationship("Paiement", secondary=paiement_decisions, back_populates="decisions")


class Convention(TimestampMixin, Base):
    __tablename__ = "conventions"

    id = Column(String(36), primary_key=True, default=new_id)
    numero = Column(Integer, nullable=False, unique=True)
    type = Column(String(20), nullable=False)
    victime_ou_mis_en_cause = Column(String(20), nullable=False)
    instance = Column(String(255), nullable=False)
    montant_ht = Column(Float, nullable=False)
    montant_ht_gage_precedemment = Column(Float, nullable=True)
    type_facturation = Column(String(20), nullable=True)
    date_creation = Column(DateTime, nullable=False, default=now)
    date_retour_signe = Column(Date, nullable=True)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=False, index=True)
    avocat_id = Column(String(36), ForeignKey("avocats.id"), nullable=False)
    cree_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    modifie_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    dossier = relationship("Dossier", back_populates="conventions")
    avocat = relationship("Avocat")
    cree_par = relationship("User", foreign_keys=[cree_par_id])
    modifie_par = relationship("User", foreign_keys=[modifie_par_id])
    demandes = relationship("Demande", secondary=convention_demandes, back_populates="conventions")
    diligences = relationship("Diligence", secondary=convention_diligences)
    decisions = relationship("Decision", secondary=convention_decisions, back_populates="conventions")


class Paiement(TimestampMixin, Base):
    __tablename__ = "paiements"

    id = Column(String(36), primary_key=True, default=new_id)
    numero = Column(Integer, nullable=False, unique=True)
    facture = Column(String(120), nullable=True)
    montant_ttc = Column(Float, nullable=False)
    emission_titre_perception = Column(String(3), nullable=False, default="NON")
    qualite_beneficiaire = Column(String(60), nullable=False)
    identite_beneficiaire = Column(String(255), nullable=False)
    date_service_fait = Column(Date, nullable=True)
    convention_jointe_fri = Column(String(3), nullable=False, default="NON")
    adresse_beneficiaire = Column(Text, nullable=True)
    siret_ou_ridet = Column(String(40), nullable=True)
    titulaire_compte_bancaire = Column(String(255), nullable=True)
    code_etablissement = Column(String(10), nullable=True)
    code_guichet = Column(String(10), nullable=True)
    numero_compte = Column(String(20), nullable=True)
    cle_rib = Column(String(4), nullable=True)
    fiche_reglement = Column(String(255), nullable=True)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=False, index=True)
    sgami_id = Column(String(36), ForeignKey("sgamis.id"), nullable=False)
    avocat_id = Column(String(36), ForeignKey("avocats.id"), nullable=True)
    pce_id = Column(String(36), ForeignKey("pces.id"), nullable=False)
    cree_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    modifie_par_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    dossier = relationship("Dossier", back_populates="paiements")
    sgami = relationship("Sgami")
    avocat = relationship("Avocat")
    pce = relationship("Pce")
    cree_par = relationship("User", foreign_keys=[cree_par_id])
    modifie_par = relationship("User", foreign_keys=[modifie_par_id])
    decisions = relationship("Decision", secondary=paiement_decisions, back_populates="paiements")


__all__ = [
    "CONVENTION_TYPES",
    "Convention",
    "DECISION_LABELS",
    "DECISION_TYPES",
    "DEMANDE_TYPES",
    "Decision",
    "Demande",
    "Dossier",
    "OUI_NON",
    "POSITIONS",
    "Paiement",
    "QUALITES_BENEFICIAIRE",
    "TYPES_FACTURATION",
    "convention_demandes",
    "convention_decisions",
    "convention_diligences",
    "decision_demandes",
    "demande_badges",
    "demande_baps",
    "dossier_badges",
    "paiement_decisions",
]
