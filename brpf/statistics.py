"""Activity statistics of the bureau.

Every computation works on a civil year of reception (``year``). A demande is
*traitée* once at least one of its decisions carries a signature date; the
date of its first signed decision is the moment it leaves the stock.
"""
from __future__ import annotations

import math
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from brpf.models import ROLES, Badge, Bap, BudgetAnnuel, Convention, Decision, Demande, Dossier, User

MOIS = (
    "Janvier",
    "Février",
    "Mars",
    "Avril",
    "Mai",
    "Juin",
    "Juillet",
    "Août",
    "Septembre",
    "Octobre",
    "Novembre",
    "Décembre",
)
NON_RENSEIGNE = "Non renseigné"


class IsoWeek(NamedTuple):
    year: int
    week: int
    start: date
    end: date

    @property
    def key(self) -> str:
        return f"{self.year}-{self.week:02d}"


def _as_date(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


def iso_week(value: date) -> IsoWeek:
    """ISO week of ``value`` with its Monday and Sunday."""

    day = _as_date(value)
    year, week, weekday = day.isocalendar()
    monday = day - timedelta(days=weekday - 1)
    return IsoWeek(year, week, monday, monday + timedelta(days=6))


def week_key(value: date) -> str:
    return iso_week(value).key


def year_range(year: int) -> Tuple[date, date]:
    return date(year, 1, 1), date(year + 1, 1, 1)


def month_range(year: int, month: int) -> Tuple[date, date]:
    if month == 12:
        return date(year, 12, 1), date(year + 1, 1, 1)
    return date(year, month, 1), date(year, month + 1, 1)


def months_before(moment: datetime, months: int) -> datetime:
    month_index = moment.year * 12 + moment.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    start, end = month_range(year, month)
    return moment.replace(year=year, month=month, day=min(moment.day, (end - start).days))


def _midnight(value: date) -> datetime:
    return datetime(value.year, value.month, value.day)


def sum_by_property(items: Iterable[Mapping[str, Any]], key: str) -> float:
    return sum(item.get(key) or 0 for item in items)


def average_by_property(items: Sequence[Mapping[str, Any]], key: str) -> float:
    if not items:
        return 0
    return sum_by_property(items, key) / len(items)


def group_and_sum(items: Iterable[Mapping[str, Any]], group_key: str, value_key: str) -> Dict[Any, float]:
    groups: Dict[Any, float] = {}
    for item in items:
        group = item.get(group_key)
        groups[group] = groups.get(group, 0) + (item.get(value_key) or 0)
    return groups


def round_half_up(value: float, digits: int = 0) -> float:
    """Rounding used for every published figure (2.5 -> 3, unlike ``round``)."""

    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if digits == 0 else rounded


def percentage(part: float, total: float) -> float:
    return part / total * 100 if total > 0 else 0


def _received_in(start: date, end: date) -> list:
    return [Demande.date_reception >= _midnight(start), Demande.date_reception < _midnight(end)]


def _first_signature(demande: Demande) -> Optional[date]:
    signed = [decision.date_signature for decision in demande.decisions if decision.date_signature is not None]
    return min(signed) if signed else None


def _first_signatures(decisions: Iterable[Decision]) -> Dict[str, date]:
    first: Dict[str, date] = {}
    for decision in decisions:
        for demande in decision.demandes:
            current = first.get(demande.id)
            if current is None or decision.date_signature < current:
                first[demande.id] = decision.date_signature
    return first


def _signed_decisions(db: Session, start: date, end: date) -> List[Decision]:
    return (
        db.query(Decision)
        .options(selectinload(Decision.demandes))
        .filter(Decision.date_signature.isnot(None), Decision.date_signature >= start, Decision.date_signature < end)
        .all()
    )


def _demandes_of_year(db: Session, year: int, *criteria: Any) -> List[Demande]:
    start, end = year_range(year)
    return (
        db.query(Demande)
        .options(selectinload(Demande.decisions), selectinload(Demande.baps))
        .filter(*_received_in(start, end), *criteria)
        .all()
    )


def annees_disponibles(db: Session) -> List[int]:
    years = {received.year for (received,) in db.query(Demande.date_reception).all()}
    return sorted(years, reverse=True)


def administratives(db: Session, year: int) -> Dict[str, Any]:
    start, end = year_range(year)
    demandes = _demandes_of_year(db, year)
    traitees = [demande for demande in demandes if _first_signature(demande) is not None]
    generales = {
        "demandes_total": len(demandes),
        "demandes_traitees": len(traitees),
        "demandes_en_instance": sum(
            1 for demande in demandes if demande.assigne_a_id is not None and _first_signature(demande) is None
        ),
        "demandes_non_affectees": sum(1 for demande in demandes if demande.assigne_a_id is None),
    }

    users = db.query(User).filter(User.active.is_(True), User.role.in_(ROLES)).all()
    user_ids = [user.id for user in users]
    signed_links = (
        db.query(Demande.assigne_a_id, Decision.type)
        .join(Demande.decisions)
        .filter(
            Demande.assigne_a_id.in_(user_ids),
            Decision.date_signature.isnot(None),
            Decision.date_signature >= start,
            Decision.date_signature < end,
        )
        .all()
    )

    def signed_this_year(demande: Demande, kind: str) -> bool:
        return any(
            decision.type == kind and decision.date_signature is not None and start <= decision.date_signature < end
            for decision in demande.decisions
        )

    utilisateurs = []
    for user in users:
        own = [demande for demande in demandes if demande.assigne_a_id == user.id]
        if not own:
            continue
        par_type = dict.fromkeys(("PJ", "AJE", "AJ", "REJET"), 0)
        for assigne_a_id, kind in signed_links:
            if assigne_a_id == user.id and kind in par_type:
                par_type[kind] += 1
        en_cours = [demande for demande in own if _first_signature(demande) is None]
        utilisateurs.append(
            {
                "id": user.id,
                "nom": user.nom,
                "prenom": user.prenom,
                "role": user.role,
                "grade": user.grade,
                "demandes_attribuees": len(own),
                "demandes_propres": sum(1 for demande in own if not demande.baps),
                "demandes_bap": sum(1 for demande in own if demande.baps),
                "decisions_repartition": par_type,
                "passage_aje_vers_pj": sum(
                    1 for demande in own if signed_this_year(demande, "AJE") and signed_this_year(demande, "PJ")
                ),
                "en_cours": len(en_cours),
                "en_cours_propre": sum(1 for demande in en_cours if not demande.baps),
                "en_cours_bap": sum(1 for demande in en_cours if demande.baps),
            }
        )
    utilisateurs.sort(key=lambda entry: entry["demandes_attribuees"], reverse=True)
    return {"generales": generales, "utilisateurs": utilisateurs}


def qualite_demandeur(db: Session, year: int) -> List[Dict[str, Any]]:
    start, end = year_range(year)
    counts = dict(
        db.query(Demande.type, func.count(Demande.id)).filter(*_received_in(start, end)).group_by(Demande.type).all()
    )
    total = sum(counts.values())
    return [
        {"qualite": qualite, "nombre_demandes": counts.get(qualite, 0), "pourcentage": percentage(counts.get(qualite, 0), total)}
        for qualite in ("VICTIME", "MIS_EN_CAUSE")
    ]


REPARTITIONS = {
    "type-infraction": ("qualification_infraction", Demande.qualification_infraction),
    "contexte-missionnel": ("contexte_missionnel", Demande.contexte_missionnel),
    "formation-administrative": ("formation_administrative", Demande.formation_administrative),
    "branche": ("branche", Demande.branche),
    "statut-demandeur": ("statut_demandeur", Demande.statut_demandeur),
}


def repartition(db: Session, year: int, field: str, column: Any) -> List[Dict[str, Any]]:
    """Share of the year's demandes per value of ``column``; blanks count as "Non renseigné"."""

    start, end = year_range(year)
    counts = Counter(value or NON_RENSEIGNE for (value,) in db.query(column).filter(*_received_in(start, end)).all())
    total = sum(counts.values())
    return [
        {field: value, "nombre_demandes": count, "pourcentage": percentage(count, total)}
        for value, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


def _count_by_label(db: Session, year: int, label: Any, relation: Any) -> List[Tuple[str, int]]:
    start, end = year_range(year)
    rows = (
        db.query(label, func.count(Demande.id))
        .select_from(Demande)
        .join(relation)
        .filter(*_received_in(start, end))
        .group_by(label)
        .all()
    )
    rows = sorted(rows, key=lambda row: row[0])
    return sorted(((name, count) for name, count in rows if count > 0), key=lambda row: row[1], reverse=True)


def bap(db: Session, year: int) -> List[Dict[str, Any]]:
    return [
        {"nom_bap": name, "nombre_demandes": count} for name, count in _count_by_label(db, year, Bap.nom_bap, Demande.baps)
    ]


def badges(db: Session, year: int) -> List[Dict[str, Any]]:
    start, end = year_range(year)
    total = db.query(func.count(Demande.id)).filter(*_received_in(start, end)).scalar() or 0
    return [
        {"badge": name, "nombre_demandes": count, "pourcentage": percentage(count, total)}
        for name, count in _count_by_label(db, year, Badge.nom, Demande.badges)
    ]


def flux_mensuels(db: Session, year: int) -> Dict[str, Any]:
    previous_year = year - 1
    start, end = year_range(year)
    received = Counter(
        (moment.year, moment.month)
        for (moment,) in db.query(Demande.date_reception)
        .filter(*_received_in(year_range(previous_year)[0], end))
        .all()
    )
    sortants = Counter(
        decision.date_signature.month
        for decision in _signed_decisions(db, start, end)
        if any(start <= demande.date_reception.date() < end for demande in decision.demandes)
    )
    flux = [
        {
            "mois": MOIS[month - 1],
            "entrants_annee": received[(year, month)],
            "sortants_annee": sortants[month],
            "entrants_annee_precedente": received[(previous_year, month)],
        }
        for month in range(1, 13)
    ]
    moyennes = {"mois": "MOYENNE / MOIS"}
    for key in ("entrants_annee", "sortants_annee", "entrants_annee_precedente"):
        moyennes[key] = round_half_up(average_by_property(flux, key), 2)
    return {"flux_mensuels": flux, "moyennes": moyennes, "annee": year, "annee_precedente": previous_year}


def _week_entry(week: IsoWeek) -> Dict[str, Any]:
    return {
        "numero_semaine": week.week,
        "date_debut": week.start.strftime("%d/%m"),
        "date_fin": week.end.strftime("%d/%m"),
        "entrants_annee": 0,
        "sortants_annee": 0,
        "entrants_annee_precedente": 0,
        "iso_year": week.year,
        "week_key": week.key,
    }


def _touches_year(week: IsoWeek, year: int) -> bool:
    return week.year == year or week.start.year <= year <= week.end.year


def flux_hebdomadaires(db: Session, year: int) -> Dict[str, Any]:
    """Entrées and sorties per ISO week, next to last year's entrées of the same week number."""

    previous_year = year - 1
    start, end = year_range(year)
    window_start, window_end = date(year - 1, 12, 20), date(year + 1, 1, 10)
    weeks: Dict[str, Dict[str, Any]] = {}

    def entry(week: IsoWeek) -> Dict[str, Any]:
        return weeks.setdefault(week.key, _week_entry(week))

    for (received,) in db.query(Demande.date_reception).filter(*_received_in(window_start, window_end)).all():
        week = iso_week(received)
        if _touches_year(week, year):
            entry(week)["entrants_annee"] += 1

    decisions = [
        decision
        for decision in _signed_decisions(db, window_start, window_end)
        if any(start <= demande.date_reception.date() < end for demande in decision.demandes)
    ]
    for signed in _first_signatures(decisions).values():
        week = iso_week(signed)
        if _touches_year(week, year):
            entry(week)["sortants_annee"] += 1

    previous_window = _received_in(date(previous_year - 1, 12, 20), date(previous_year + 1, 1, 10))
    for (received,) in db.query(Demande.date_reception).filter(*previous_window).all():
        week = iso_week(received)
        if week.year == previous_year:
            current = weeks.get(f"{year}-{week.week:02d}")
            if current is not None:
                current["entrants_annee_precedente"] += 1

    flux = sorted(weeks.values(), key=lambda item: item["numero_semaine"])
    return {"flux_hebdomadaires": flux, "annee": year, "annee_precedente": previous_year}


def recent_weeks(db: Session, limit: int = 10, today: Optional[date] = None) -> Dict[str, Any]:
    """Latest ``limit`` weeks, most recent first, with the running stock of open demandes."""

    current_year = (today or date.today()).year
    start, end = date(current_year - 2, 1, 1), date(current_year + 1, 1, 1)
    weeks: Dict[str, Dict[str, Any]] = {}

    def entry(week: IsoWeek) -> Dict[str, Any]:
        return weeks.setdefault(
            week.key,
            {
                "year": week.year,
                "semaine": week.week,
                "week_key": week.key,
                "start_date": week.start.isoformat(),
                "end_date": week.end.isoformat(),
                "entrantes": 0,
                "sortantes": 0,
                "stock": 0,
            },
        )

    for (received,) in db.query(Demande.date_reception).filter(*_received_in(start, end)).all():
        entry(iso_week(received))["entrantes"] += 1
    for signed in _first_signatures(_signed_decisions(db, start, end)).values():
        entry(iso_week(signed))["sortantes"] += 1

    ordered = sorted(weeks.values(), key=lambda item: item["week_key"])
    stock = 0
    for week in ordered:
        stock += week["entrantes"] - week["sortantes"]
        week["stock"] = stock
    recent = list(reversed(ordered[-limit:])) if limit > 0 else []
    return {"weeks": recent, "total_weeks": len(ordered)}


def _montants(conventions: Iterable[Convention]) -> List[float]:
    return [convention.montant_ht for convention in conventions if convention.montant_ht is not None]


def _engagement(libelle: str, montant: float, budget_total: float, bold: bool = False) -> Dict[str, Any]:
    figure = {
        "libelle": libelle,
        "nombre": round_half_up(montant),
        "pourcentage": round_half_up(percentage(montant, budget_total), 2),
        "type": "currency_with_percentage",
        "show_previsions": True,
        "prevision10": round_half_up(montant * 1.1),
        "prevision20": round_half_up(montant * 1.1 * 1.2),
        "pourcentage_prevision10": round_half_up(percentage(montant * 1.1, budget_total), 2),
        "pourcentage_prevision20": round_half_up(percentage(montant * 1.1 * 1.2, budget_total), 2),
    }
    if bold:
        figure["bold"] = True
    return figure


def budgetaires(db: Session, year: int) -> Dict[str, Any]:
    """Conventions and avenants of the year against the annual budget (base plus abondements)."""

    start, end = year_range(year)
    created = (
        db.query(Convention)
        .filter(Convention.date_creation >= _midnight(start), Convention.date_creation < _midnight(end))
        .all()
    )
    signed = (
        db.query(Convention)
        .filter(Convention.date_retour_signe >= start, Convention.date_retour_signe < end)
        .all()
    )
    budget = db.query(BudgetAnnuel).filter(BudgetAnnuel.annee == year).first()
    budget_total = budget.total if budget is not None else 0

    def of_type(conventions: List[Convention], kind: str) -> List[Convention]:
        return [convention for convention in conventions if convention.type == kind]

    dossiers_annee = (
        db.query(func.count(Dossier.id))
        .filter(Dossier.created_at >= _midnight(start), Dossier.created_at < _midnight(end))
        .scalar()
    )
    engagements = [
        {"type": convention.type, "montant_ht": convention.montant_ht}
        for convention in created
        if convention.montant_ht is not None
    ]
    montants_par_type = group_and_sum(engagements, "type", "montant_ht")

    def moyenne(kind: str) -> float:
        return round_half_up(average_by_property([row for row in engagements if row["type"] == kind], "montant_ht"))

    statistiques = [
        {"libelle": "Dossiers toutes années", "nombre": db.query(func.count(Dossier.id)).scalar() or 0},
        {"libelle": f"Dossiers {year}", "nombre": dossiers_annee or 0},
        {"libelle": "Conventions créées", "nombre": len(of_type(created, "CONVENTION"))},
        {"libelle": "Convention signées (avocat)", "nombre": len(of_type(signed, "CONVENTION"))},
        {"libelle": "Avenants créés", "nombre": len(of_type(created, "AVENANT"))},
        {"libelle": "Avenants signés (avocat)", "nombre": len(of_type(signed, "AVENANT"))},
        {
            "libelle": "Montant moyen gagé par convention",
            "nombre": moyenne("CONVENTION"),
            "type": "currency",
        },
        {
            "libelle": "Montant moyen gagé par avenant",
            "nombre": moyenne("AVENANT"),
            "type": "currency",
        },
        _engagement("Montant HT gagé (signés)", sum(_montants(signed)), budget_total),
        _engagement("Montant HT gagé total", sum(montants_par_type.values()), budget_total, bold=True),
    ]
    return {"statistiques": statistiques, "budget_total": budget_total}


def _average_days(spans: List[int]) -> float:
    return round_half_up(sum(spans) / len(spans), 2) if spans else 0


def auto_controle(db: Session, year: int, moment: Optional[datetime] = None) -> Dict[str, Any]:
    """Backlog age and processing delays, split between BAP-followed demandes and the bureau's own."""

    moment = moment or datetime.now()
    demandes = _demandes_of_year(db, year)
    open_ages: Dict[str, List[int]] = {"all": [], "bap": [], "brpf": []}
    delays: Dict[str, List[int]] = {"all": [], "bap": [], "brpf": []}
    pj_sans_convention = 0

    for demande in demandes:
        scope = "bap" if demande.baps else "brpf"
        first = _first_signature(demande)
        if first is None:
            age = (moment - demande.date_reception).days
            open_ages["all"].append(age)
            open_ages[scope].append(age)
        else:
            delay = (_midnight(first) - demande.date_reception).days
            if delay >= 0:
                delays["all"].append(delay)
                delays[scope].append(delay)
        has_pj = any(decision.type == "PJ" and decision.date_signature is not None for decision in demande.decisions)
        if has_pj and not demande.conventions:
            pj_sans_convention += 1

    return {
        "pj_en_attente_convention": pj_sans_convention,
        "anciennete_moyenne_non_traites": _average_days(open_ages["all"]),
        "anciennete_moyenne_bap": _average_days(open_ages["bap"]),
        "anciennete_moyenne_brpf": _average_days(open_ages["brpf"]),
        "delai_traitement_moyen": _average_days(delays["all"]),
        "delai_traitement_bap": _average_days(delays["bap"]),
        "delai_traitement_brpf": _average_days(delays["brpf"]),
    }


def tableau_de_bord(db: Session, user: User, moment: Optional[datetime] = None) -> Dict[str, int]:
    """Counters of the home screen for ``user``: what they created or were assigned."""

    moment = moment or datetime.now()
    dossiers = (
        db.query(func.count(Dossier.id))
        .filter(or_(Dossier.cree_par_id == user.id, Dossier.assigne_a_id == user.id))
        .scalar()
    )
    demandes = (
        db.query(Demande)
        .options(selectinload(Demande.decisions))
        .filter(or_(Demande.cree_par_id == user.id, Demande.assigne_a_id == user.id))
        .all()
    )
    limite = months_before(moment, 2)
    sans_decision = sum(
        1 for demande in demandes if _first_signature(demande) is None and demande.date_reception < limite
    )
    return {
        "total_dossiers": dossiers or 0,
        "total_demandes": len(demandes),
        "demandes_sans_2_mois": sans_decision,
    }


__all__ = [
    "IsoWeek",
    "MOIS",
    "REPARTITIONS",
    "administratives",
    "annees_disponibles",
    "auto_controle",
    "average_by_property",
    "badges",
    "bap",
    "budgetaires",
    "flux_hebdomadaires",
    "flux_mensuels",
    "group_and_sum",
    "iso_week",
    "month_range",
    "months_before",
    "percentage",
    "qualite_demandeur",
    "recent_weeks",
    "repartition",
    "round_half_up",
    "sum_by_property",
    "tableau_de_bord",
    "week_key",
    "year_range",
]
