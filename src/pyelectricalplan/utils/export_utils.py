"""
Export utilities for circuit lists and bills of materials.

CSV output uses the standard ``csv`` module; Excel workbooks are written
with openpyxl using a bold, grey-filled header row.
"""

import csv
import os
from collections.abc import Iterable

from pyelectricalplan.catalog import Catalog
from pyelectricalplan.model.constants import HINT_LABELS, ROLE_LABELS
from pyelectricalplan.model.parts import Building, DerivedCircuit, RcdGroup
from pyelectricalplan.rcd_grouping import find_group_for_circuit

CIRCUIT_LIST_HEADERS = [
    "Verteiler",
    "Stromkreis",
    "Bezeichnung",
    "Raum",
    "Typ",
    "Symbole",
    "Schutzgeraete",
    "FI-Gruppe",
]


def _ensure_parent(filepath: str) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(filepath)), exist_ok=True)


def _device_labels(circuit: DerivedCircuit, catalog: Catalog) -> str:
    labels = []
    for device in circuit.resolved_devices:
        found = catalog.find_device(device.device_id)
        labels.append(found.label if found else device.device_id)
    return ", ".join(labels)


def circuit_list_rows(
    circuits: Iterable[DerivedCircuit],
    rcd_groups: Iterable[RcdGroup],
    catalog: Catalog,
    building: Building | None = None,
) -> list[list[str]]:
    """Build the circuit list table, one row per circuit, without header."""
    groups = list(rcd_groups)
    rows = []
    for circuit in circuits:
        group = find_group_for_circuit(groups, circuit.id)
        room = building.room_name(circuit.room_id) if building else circuit.room_id
        rows.append(
            [
                circuit.verteiler_id,
                circuit.id,
                circuit.name,
                room,
                HINT_LABELS.get(circuit.grouping_hint, circuit.grouping_hint),
                " ".join(circuit.symbol_ids),
                _device_labels(circuit, catalog),
                group.id if group else "",
            ]
        )
    return rows


def export_circuit_list(filepath: str, rows: Iterable[list[str]]) -> None:
    """
    Write the circuit list to a CSV file.

    Args:
        filepath: Path to the CSV file; parent directories are created.
        rows: Rows as returned by ``circuit_list_rows``.
    """
    _ensure_parent(filepath)
    with open(filepath, "w", newline="", encoding="utf-8") as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(CIRCUIT_LIST_HEADERS)
        writer.writerows(rows)


def _write_sheet(ws, headers: list[str], rows: list[list], widths: list[int]) -> None:
    from openpyxl.styles import Alignment, Font, PatternFill
    from openpyxl.utils import get_column_letter

    header_font = Font(bold=True)
    header_fill = PatternFill(start_color="D9D9D9", end_color="D9D9D9", fill_type="solid")
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="left")

    for row_idx, row in enumerate(rows, 2):
        for col, value in enumerate(row, 1):
            cell = ws.cell(row=row_idx, column=col, value=value)
            if isinstance(value, (int, float)):
                cell.alignment = Alignment(horizontal="right")

    for col, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(col)].width = width


def export_bom_workbook(filepath: str, bom_rows, device_lines, catalog_roles=None) -> None:
    """
    Write the bill of materials to an Excel workbook.

    The first sheet ("Stueckliste") lists the aggregated article lines, the
    second ("Schutzgeraete") the protective devices for the cabinet.

    Args:
        filepath: Path to the .xlsx file; parent directories are created.
        bom_rows: ``BomRow`` records.
        device_lines: ``DeviceLine`` records.
        catalog_roles: Optional mapping of device id to role, used to fill
            the role column of the device sheet.
    """
    from openpyxl import Workbook

    catalog_roles = catalog_roles or {}
    wb = Workbook()
    ws = wb.active
    ws.title = "Stueckliste"
    _write_sheet(
        ws,
        ["Bezeichnung", "Typ", "Menge", "Einheit", "Einzelpreis", "Gesamt"],
        [
            [r.designation, r.kind, r.quantity, r.unit, r.unit_price, r.total]
            for r in bom_rows
        ],
        [40, 12, 8, 8, 12, 12],
    )

    ws = wb.create_sheet("Schutzgeraete")
    _write_sheet(
        ws,
        ["Geraet", "Artikel", "Funktion", "Menge", "Einzelpreis", "Gesamt"],
        [
            [
                line.label,
                line.device_id,
                ROLE_LABELS.get(catalog_roles.get(line.device_id, ""), ""),
                line.quantity,
                line.unit_price,
                line.total,
            ]
            for line in device_lines
        ],
        [30, 20, 20, 8, 12, 12],
    )

    _ensure_parent(filepath)
    wb.save(filepath)
