"""Bill of materials and order list aggregation."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from pyelectricalplan.catalog import Catalog
from pyelectricalplan.model.constants import ArticleKind
from pyelectricalplan.model.parts import DerivedCircuit, PlacedSymbol, RcdGroup
from pyelectricalplan.rcd_grouping import circuit_devices_without_rcd


@dataclass(frozen=True)
class BomRow:
    """One aggregated line of the bill of materials (Stueckliste)."""

    designation: str
    kind: str
    quantity: float
    unit: str
    unit_price: float

    @property
    def total(self) -> float:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class OrderRow:
    """One aggregated material line of the order list (Bestellliste)."""

    designation: str
    quantity: float
    unit: str


@dataclass(frozen=True)
class DeviceLine:
    """Count of one protective device across all circuits and RCD groups."""

    device_id: str
    label: str
    quantity: int
    unit_price: float

    @property
    def total(self) -> float:
        return self.quantity * self.unit_price


def bill_of_materials(symbols: Iterable[PlacedSymbol]) -> list[BomRow]:
    """
    Aggregate the article lines of all placed symbols.

    Lines with equal designation, kind, unit and unit price are summed.
    Rows are sorted by designation.
    """
    quantities: dict[tuple[str, str, str, float], float] = {}
    for symbol in symbols:
        for article in symbol.articles:
            key = (article.designation, article.kind, article.unit, article.unit_price)
            quantities[key] = quantities.get(key, 0) + article.quantity
    rows = [
        BomRow(designation, kind, qty, unit, price)
        for (designation, kind, unit, price), qty in quantities.items()
    ]
    return sorted(rows, key=lambda r: (r.designation, r.kind, r.unit, r.unit_price))


def bom_total(rows: Iterable[BomRow]) -> float:
    return sum(r.total for r in rows)


def order_list(symbols: Iterable[PlacedSymbol]) -> list[OrderRow]:
    """Aggregate material lines only, by designation and unit."""
    quantities: dict[tuple[str, str], float] = {}
    for symbol in symbols:
        for article in symbol.articles:
            if article.kind != ArticleKind.MATERIAL:
                continue
            key = (article.designation, article.unit)
            quantities[key] = quantities.get(key, 0) + article.quantity
    rows = [OrderRow(d, q, u) for (d, u), q in quantities.items()]
    return sorted(rows, key=lambda r: (r.designation, r.unit))


def symbol_summary(
    symbols: Iterable[PlacedSymbol], catalog: Catalog
) -> list[tuple[str, int]]:
    """Count placed symbols per label; unknown types count under their key."""
    counts: dict[str, int] = {}
    for symbol in symbols:
        definition = catalog.find_symbol(symbol.symbol_key)
        label = definition.label if definition else symbol.symbol_key
        counts[label] = counts.get(label, 0) + 1
    return sorted(counts.items())


def protective_device_lines(
    circuits: Iterable[DerivedCircuit],
    rcd_groups: Iterable[RcdGroup],
    catalog: Catalog,
) -> list[DeviceLine]:
    """
    Count the protective devices needed for the cabinet.

    Circuits in an RCD group contribute their devices without the RCD; each
    group contributes its shared RCD once. Device ids missing from the
    catalog are skipped.
    """
    groups = list(rcd_groups)
    grouped = {cid for g in groups for cid in g.circuit_ids}

    counts: dict[str, int] = {}
    for circuit in circuits:
        devices = (
            circuit_devices_without_rcd(circuit)
            if circuit.id in grouped
            else circuit.resolved_devices
        )
        for d in devices:
            counts[d.device_id] = counts.get(d.device_id, 0) + 1
    for group in groups:
        if group.shared_device is not None:
            device_id = group.shared_device.device_id
            counts[device_id] = counts.get(device_id, 0) + 1

    lines = []
    for device_id, qty in counts.items():
        device = catalog.find_device(device_id)
        if device is None:
            continue
        lines.append(DeviceLine(device_id, device.label, qty, device.price))
    return sorted(lines, key=lambda line: (line.label, line.device_id))
