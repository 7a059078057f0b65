"""Initial data: administrator account and the reference tables the forms rely on."""
from __future__ import annotations

import argparse
import json
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from brpf.config import configure_logging
from brpf.models import Badge, Diligence, Grade, Sgami, SessionLocal, User, Visa, init_db
from brpf.security import hash_password

logger = logging.getLogger(__name__)

SGAMIS = (
    "SGAMI Ouest",
    "SGAMI Est",
    "SGAMI Nord",
    "SGAMI Sud",
    "SGAMI Centre",
    "SGAMI Île-de-France",
    "SGAMI Outre-mer",
)

BADGES = (
    ("Urgent", "#ef4444"),
    ("Complexe", "#f97316"),
    ("Médical", "#10b981"),
    ("Juridique", "#3b82f6"),
    ("Social", "#8b5cf6"),
    ("Psychologique", "#ec4899"),
    ("Prioritaire", "#dc2626"),
    ("Suivi particulier", "#059669"),
)

GRADES = (
    ("Général", "GAL"),
    ("Colonel", "COL"),
    ("Lieutenant-colonel", "LCL"),
    ("Chef d'escadron", "CEN"),
    ("Capitaine", "CNE"),
    ("Lieutenant", "LTN"),
    ("Sous-lieutenant", "SLT"),
    ("Aspirant", "ASP"),
    ("Major", "MAJ"),
    ("Adjudant-chef", "ADC"),
    ("Adjudant", "ADJ"),
    ("Maréchal des logis-chef", "MDC"),
    ("Gendarme", "GND"),
    ("Maréchal des logis", "MDL"),
    ("Brigadier-chef", "BRC"),
    ("Brigadier", "BRI"),
    ("Gendarme adjoint volontaire", "GAV"),
    ("Personnel civil", "CIV"),
)

VISAS = (
    (
        "Protection fonctionnelle",
        "Vu le code général de la fonction publique, notamment ses articles L. 134-1 et suivants ;",
    ),
    (
        "Code de la défense",
        "Vu le code de la défense, notamment son article L. 4123-10 ;",
    ),
)

DILIGENCES = (
    ("Consultation", "Entretien et conseil préalable à l'engagement d'une procédure"),
    ("Constitution de partie civile", "Rédaction et dépôt des conclusions de partie civile"),
    ("Assistance à l'audience", "Présence et plaidoirie à l'audience correctionnelle"),
    ("Audition", "Assistance lors d'une audition libre ou d'une garde à vue"),
    ("Cour d'assises", "Plaidoirie devant la cour d'assises, par demi-journée d'audience"),
)


def tarification(details: str) -> str:
    """Diligences performed in court are billed per half day, the others at a flat rate."""

    lowered = details.lower()
    if any(word in lowered for word in ("audience", "présence", "plaidoirie")):
        return "DEMI_JOURNEE"
    return "FORFAITAIRE"


def seed_admin(db: Session, identifiant: str, password: str) -> bool:
    if db.query(User).filter(User.identifiant == identifiant).first() is not None:
        return False
    db.add(
        User(
            identifiant=identifiant,
            password=hash_password(password),
            nom="Administrateur",
            prenom="Système",
            mail=f"{identifiant}@brpf.local",
            role="ADMIN",
            grade="Administrateur",
        )
    )
    db.commit()
    return True


def seed_reference(db: Session) -> Dict[str, int]:
    """Insert the missing reference rows and report how many of each were created."""

    created = {"sgamis": 0, "badges": 0, "grades": 0, "visas": 0, "diligences": 0}
    for nom in SGAMIS:
        if db.query(Sgami).filter(Sgami.nom == nom).first() is None:
            db.add(Sgami(nom=nom))
            created["sgamis"] += 1
    for nom, couleur in BADGES:
        if db.query(Badge).filter(Badge.nom == nom).first() is None:
            db.add(Badge(nom=nom, couleur=couleur))
            created["badges"] += 1
    for ordre, (complet, abrege) in enumerate(GRADES, start=1):
        if db.query(Grade).filter(Grade.grade_complet == complet).first() is None:
            db.add(Grade(ordre=ordre, grade_complet=complet, grade_abrege=abrege))
            created["grades"] += 1
    for type_visa, texte in VISAS:
        if db.query(Visa).filter(Visa.type_visa == type_visa).first() is None:
            db.add(Visa(type_visa=type_visa, texte_visa=texte))
            created["visas"] += 1
    for nom, details in DILIGENCES:
        if db.query(Diligence).filter(Diligence.nom == nom).first() is None:
            db.add(Diligence(nom=nom, details=details, type_tarification=tarification(details)))
            created["diligences"] += 1
    db.commit()
    return created


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="brpf-seed", description=__doc__)
    parser.add_argument("--admin", default="admin", help="identifiant of the administrator account")
    parser.add_argument("--password", default="admin123", help="initial password of the administrator")
    parser.add_argument("--skip-reference", action="store_true", help="only create the administrator")
    args = parser.parse_args(argv)

    configure_logging()
    init_db()
    db = SessionLocal()
    try:
        report: Dict[str, object] = {"admin_created": seed_admin(db, args.admin, args.password)}
        if not args.skip_reference:
            report.update(seed_reference(db))
    finally:
        db.close()
    logger.info("Seeding complete")
    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()
