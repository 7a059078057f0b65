from __future__ import annotations

import io
from datetime import date, datetime

from fastapi.testclient import TestClient
from openpyxl import load_workbook

from brpf import exporter


def _sheet(content: bytes):
    assert content.startswith(b"PK")
    return load_workbook(io.BytesIO(content)).active


def _rows(content: bytes) -> list:
    return [list(row) for row in _sheet(content).iter_rows(values_only=True)]


def test_xlsx_bytes_formats_cells() -> None:
    content = exporter.xlsx_bytes(
        "Essai", ["A", "Bénéficiaire", "C", "D"], [[None, True, date(2024, 5, 6), "Élodie Tranchant-Beaulieu"]]
    )
    sheet = _sheet(content)
    assert sheet.title == "Essai"
    assert _rows(content) == [
        ["A", "Bénéficiaire", "C", "D"],
        [None, "Oui", datetime(2024, 5, 6), "Élodie Tranchant-Beaulieu"],
    ]
    assert sheet["C2"].number_format == "DD/MM/YYYY"
    assert sheet["A1"].font.bold
    assert sheet.freeze_panes == "A2"

    assert sheet.column_dimensions["A"].width == 10
    assert sheet.column_dimensions["B"].width == 12
    assert sheet.column_dimensions["D"].width == len("Élodie Tranchant-Beaulieu")


def test_long_sheet_names_are_cut() -> None:
    sheet = _sheet(exporter.xlsx_bytes("Demandes sans décision ni convention PJ", ["A"], []))
    assert sheet.title == "Demandes sans décision ni conve"


def test_export_filename() -> None:
    name = exporter.export_filename("demandes")
    assert name.startswith("demandes_")
    assert name.endswith(".xlsx")
    assert len(name) == len("demandes_20240101_120000.xlsx")


def test_export_demandes_applies_filters(client: TestClient, headers, admin_headers, new_demande) -> None:
    new_demande(partie_civile=True)
    new_demande(type="MIS_EN_CAUSE", nom="Roux")

    response = client.get("/api/exports/demandes", params={"type": "VICTIME"}, headers=headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == exporter.XLSX_MEDIA_TYPE
    assert 'filename="demandes_' in response.headers["content-disposition"]
    assert _sheet(response.content).title == "Demandes"
    header, *rows = _rows(response.content)
    assert header[0] == "Numéro DS"
    assert len(rows) == 1
    assert rows[0][2] == "Bernard"
    assert rows[0][header.index("Partie civile")] == "Oui"
    assert rows[0][header.index("Date de réception")] == datetime(2024, 3, 1, 10, 0)

    assert "EXPORT_DEMANDES" in client.get("/api/logs/actions", headers=admin_headers).json()


def test_export_case_tables(
    client: TestClient, headers, avocat, sgami, pce, new_demande, new_dossier, new_decision
) -> None:
    demande = new_demande()
    dossier = new_dossier(selected_demande_ids=[demande["id"]], sgami_id=sgami.id)
    decision = new_decision(dossier["id"], [demande["id"]], date_signature="2024-04-02")
    client.post(
        "/api/conventions",
        json={"type": "CONVENTION", "victime_ou_mis_en_cause": "VICTIME", "instance": "TJ Rennes",
              "montant_ht": 900.5, "dossier_id": dossier["id"], "avocat_id": avocat.id},
        headers=headers,
    )
    client.post(
        "/api/paiements",
        json={"montant_ttc": 120, "emission_titre_perception": "NON", "convention_jointe_fri": "NON",
              "qualite_beneficiaire": "Avocat", "identite_beneficiaire": "Maître Anne Lefebvre",
              "dossier_id": dossier["id"], "sgami_id": sgami.id, "pce_id": pce.id, "decisions": [decision["id"]]},
        headers=headers,
    )

    _, dossier_row = _rows(client.get("/api/exports/dossiers", headers=headers).content)
    assert dossier_row[:3] == ["1", "Agression en service", "SGAMI Ouest"]
    assert dossier_row[6] == "Luc Bernard"

    response = client.get("/api/exports/decisions", headers=headers)
    assert _sheet(response.content).title == "Décisions"
    _, decision_row = _rows(response.content)
    assert decision_row[0] == "1"
    assert decision_row[7] == datetime(2024, 4, 2)

    _, convention_row = _rows(client.get("/api/exports/conventions", headers=headers).content)
    assert convention_row[3] == "Anne Lefebvre"
    assert convention_row[7] == 900.5

    _, paiement_row = _rows(client.get("/api/exports/paiements", headers=headers).content)
    assert paiement_row[1:4] == ["1", "SGAMI Ouest", "Frais de justice"]


def test_revue_exports(client: TestClient, headers, new_demande, new_dossier, new_decision) -> None:
    new_demande(nom="Attente", commentaire_decision="Pièces manquantes")
    granted = new_demande(nom="Accorde")
    dossier = new_dossier(selected_demande_ids=[granted["id"]])
    new_decision(dossier["id"], [granted["id"]], date_signature="2024-04-02")

    response = client.get("/api/exports/revue-decisions", headers=headers)
    assert _sheet(response.content).title == "Demandes sans décision"
    header, *rows = _rows(response.content)
    assert header == ["Nom", "Prénom", "Qualité", "Date de réception", "Dossier", "Commentaire"]
    assert rows == [["Attente", "Luc", "Victime", datetime(2024, 3, 1, 10, 0), "Non lié", "Pièces manquantes"]]

    response = client.get("/api/exports/revue-conventions", headers=headers)
    assert _sheet(response.content).title == "Demandes PJ sans convention"
    header, *rows = _rows(response.content)
    assert header[-1] == "Date décision PJ"
    assert rows == [
        ["Accorde", "Luc", "Victime", datetime(2024, 3, 1, 10, 0), "1", "Aucun commentaire", datetime(2024, 4, 2)]
    ]
