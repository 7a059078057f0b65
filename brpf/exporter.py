"""Export utilities: Excel workbooks of the list screens and the PDF renderings of dossiers and personal data."""
from __future__ import annotations

import io
import textwrap
from datetime import date, datetime
from typing import Any, Iterable, List, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from brpf.documents.formatting import format_date, format_montant
from brpf.models import DECISION_LABELS, Dossier

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_HEADER_FONT = Font(name="Calibri", size=12, bold=True, color="FFFFFFFF")
_HEADER_FILL = PatternFill(fill_type="solid", fgColor="FF366092")
_DATE_FORMAT = "DD/MM/YYYY"
_MIN_WIDTH = 10


def _cell(value: Any) -> Any:
    if isinstance(value, bool):
        return "Oui" if value else "Non"
    return value


def _shown(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return format_date(value)
    return str(value)


def xlsx_bytes(sheet_name: str, headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> bytes:
    """Single-sheet workbook with a styled header row and columns sized to their content.

    Dates stay real date cells shown as dd/mm/yyyy; booleans read Oui/Non.
    """

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_name[:31]
    sheet.append(list(headers))
    widths = [max(len(header), _MIN_WIDTH) for header in headers]

    for row in rows:
        values = [_cell(value) for value in row]
        sheet.append(values)
        for index, value in enumerate(values):
            if isinstance(value, (date, datetime)):
                sheet.cell(row=sheet.max_row, column=index + 1).number_format = _DATE_FORMAT
            widths[index] = max(widths[index], len(_shown(value)))

    for cell in sheet[1]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center")
    sheet.freeze_panes = "A2"
    for index, width in enumerate(widths, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def export_filename(prefix: str) -> str:
    return f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"


def _montant(value) -> str:
    # Standard PDF fonts lack the narrow no-break space.
    return format_montant(value).replace("\u202f", " ")


def _draw_header(pdf: canvas.Canvas, title: str, subtitle: str) -> float:
    _, height = A4
    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawString(56, height - 64, title)
    pdf.setFont("Helvetica", 10)
    pdf.drawString(56, height - 80, subtitle)
    return height - 104


def _draw_footer(pdf: canvas.Canvas, page_number: int) -> None:
    pdf.setFont("Helvetica", 9)
    pdf.drawString(56, 36, f"Édité le {datetime.now().strftime('%d/%m/%Y %H:%M')}")
    pdf.drawRightString(A4[0] - 56, 36, f"Page {page_number}")


def _maybe_new_page(pdf: canvas.Canvas, y_position: float, page_number: int) -> Tuple[float, int]:
    if y_position < 64:
        _draw_footer(pdf, page_number)
        pdf.showPage()
        page_number += 1
        pdf.setFont("Helvetica", 10)
        return A4[1] - 64, page_number
    return y_position, page_number


def _section(pdf: canvas.Canvas, y: float, page_number: int, title: str, lines: List[str], empty: str):
    y, page_number = _maybe_new_page(pdf, y - 6, page_number)
    pdf.setFont("Helvetica-Bold", 12)
    pdf.drawString(56, y, title)
    y -= 16
    pdf.setFont("Helvetica", 10)
    for line in lines or [empty]:
        y, page_number = _maybe_new_page(pdf, y, page_number)
        pdf.drawString(72, y, line)
        y -= 14
    return y, page_number


def dossier_pdf(dossier: Dossier) -> bytes:
    """PDF summary of a dossier and everything attached to it."""

    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    page_number = 1
    subtitle = " | ".join(
        part
        for part in (
            dossier.nom_dossier,
            f"SGAMI : {dossier.sgami.nom}" if dossier.sgami else None,
            f"Rédacteur : {dossier.assigne_a.full_name}" if dossier.assigne_a else None,
        )
        if part
    )
    y = _draw_header(pdf, f"Dossier n° {dossier.numero}", subtitle)

    total_ht = sum(convention.montant_ht or 0.0 for convention in dossier.conventions)
    total_ttc = sum(paiement.montant_ttc or 0.0 for paiement in dossier.paiements)
    pdf.setFont("Helvetica", 10)
    pdf.drawString(56, y, f"Demandes : {len(dossier.demandes)}   Décisions : {len(dossier.decisions)}")
    y -= 14
    pdf.drawString(
        56,
        y,
        f"Conventions : {_montant(total_ht)} € HT   Paiements : {_montant(total_ttc)} € TTC",
    )
    y -= 20

    demandes = [
        f"{demande.numero_ds}  {demande.prenom} {demande.nom.upper()} ({demande.type}) "
        f"reçue le {format_date(demande.date_reception)}"
        for demande in dossier.demandes
    ]
    y, page_number = _section(pdf, y, page_number, "Demandes", demandes, "Aucune demande")

    decisions = [
        f"n° {decision.numero}  {DECISION_LABELS.get(decision.type, decision.type)}"
        + (f"  signée le {format_date(decision.date_signature)}" if decision.date_signature else "")
        for decision in dossier.decisions
    ]
    y, page_number = _section(pdf, y, page_number, "Décisions", decisions, "Aucune décision")

    conventions = [
        f"{convention.type.capitalize()} n° {convention.numero}  "
        f"{convention.avocat.nom if convention.avocat else ''}  {_montant(convention.montant_ht)} € HT"
        for convention in dossier.conventions
    ]
    y, page_number = _section(pdf, y, page_number, "Conventions", conventions, "Aucune convention")

    paiements = [
        f"n° {paiement.numero}  {paiement.identite_beneficiaire}  {_montant(paiement.montant_ttc)} € TTC"
        for paiement in dossier.paiements
    ]
    _, page_number = _section(pdf, y, page_number, "Paiements", paiements, "Aucun paiement")

    _draw_footer(pdf, page_number)
    pdf.save()
    return buffer.getvalue()


def _flatten(data: Any, prefix: str = "") -> List[str]:
    if isinstance(data, dict):
        lines: List[str] = []
        for key, value in data.items():
            lines.extend(_flatten(value, f"{prefix}{key}."))
        return lines
    if isinstance(data, list):
        lines = []
        for index, value in enumerate(data, start=1):
            lines.extend(_flatten(value, f"{prefix}{index}."))
        return lines
    if data is None or data == "":
        return []
    return [f"{prefix.rstrip('.')} : {_shown(_cell(data))}"]


def rgpd_pdf(export: dict) -> bytes:
    """Printable rendering of a personal data export, one line per stored value."""

    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    page_number = 1
    y = _draw_header(
        pdf,
        "Export de données personnelles",
        f"{export['person_type']} | édité par {export['exported_by']} | {export['metadata']['export_reason']}",
    )
    lines = [chunk for line in _flatten(export["person_data"]) for chunk in textwrap.wrap(line, 100)]
    _, page_number = _section(pdf, y, page_number, "Données", lines, "Aucune donnée")
    _draw_footer(pdf, page_number)
    pdf.save()
    return buffer.getvalue()


__all__ = ["XLSX_MEDIA_TYPE", "dossier_pdf", "export_filename", "rgpd_pdf", "xlsx_bytes"]
