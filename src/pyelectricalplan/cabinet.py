"""
Cabinet rail occupancy per distribution board.

Lists the devices a board carries on its mounting rail in cabinet order:
the upstream chain first, then every RCD group (shared RCD followed by the
devices of its circuits), then the circuits without a shared RCD. Only the
sequence and widths are computed here, no geometry.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from pyelectricalplan.catalog import Catalog
from pyelectricalplan.model.constants import UNKNOWN_DEVICE_TE_WIDTH
from pyelectricalplan.model.parts import (
    DerivedCircuit,
    NetzKonfiguration,
    RcdGroup,
    ResolvedDevice,
)
from pyelectricalplan.rcd_grouping import circuit_devices_without_rcd
from pyelectricalplan.upstream import resolve_upstream_devices


@dataclass(frozen=True)
class RailEntry:
    """
    One device on the rail.

    Attributes:
        section: ``"upstream"``, ``"rcd_group"`` or ``"circuit"``.
        label: Device label (or the device id if not in the catalog).
        te_width: Occupied width in TE.
        device_id: Catalog id, empty for upstream slots without a device.
        owner_id: Group id or circuit id the entry belongs to.
    """

    section: str
    label: str
    te_width: int
    device_id: str = ""
    owner_id: str = ""


def _device_entry(
    section: str, device: ResolvedDevice, owner_id: str, catalog: Catalog
) -> RailEntry:
    found = catalog.find_device(device.device_id)
    if found is None:
        return RailEntry(
            section, device.device_id, UNKNOWN_DEVICE_TE_WIDTH, device.device_id, owner_id
        )
    return RailEntry(section, found.label, found.te_width, found.id, owner_id)


def board_rail_entries(
    verteiler_id: str,
    circuits: Iterable[DerivedCircuit],
    rcd_groups: Iterable[RcdGroup],
    catalog: Catalog,
    netz: NetzKonfiguration | None = None,
) -> list[RailEntry]:
    """
    Build the rail sequence of one board.

    Args:
        verteiler_id: The board.
        circuits: Derived circuits (other boards are ignored).
        rcd_groups: RCD groups (other boards are ignored).
        catalog: Device catalog for labels and widths.
        netz: Primary feed of the board, if any.

    Returns:
        Rail entries in cabinet order. Upstream slots without a footprint
        are left out.
    """
    board_circuits = {c.id: c for c in circuits if c.verteiler_id == verteiler_id}
    board_groups = [g for g in rcd_groups if g.verteiler_id == verteiler_id]
    entries: list[RailEntry] = []

    if netz is not None:
        for up in resolve_upstream_devices(netz, catalog):
            if up.te_width == 0:
                continue
            entries.append(
                RailEntry(
                    "upstream",
                    up.label,
                    up.te_width,
                    up.device.id if up.device else "",
                    up.slot,
                )
            )

    grouped: set[str] = set()
    for group in board_groups:
        if group.shared_device is not None:
            entries.append(_device_entry("rcd_group", group.shared_device, group.id, catalog))
        for circuit_id in group.circuit_ids:
            circuit = board_circuits.get(circuit_id)
            if circuit is None:
                continue
            grouped.add(circuit_id)
            for device in circuit_devices_without_rcd(circuit):
                entries.append(_device_entry("circuit", device, circuit_id, catalog))

    for circuit_id, circuit in board_circuits.items():
        if circuit_id in grouped:
            continue
        for device in circuit.resolved_devices:
            entries.append(_device_entry("circuit", device, circuit_id, catalog))

    return entries


def board_te_width(entries: Iterable[RailEntry]) -> int:
    """Total rail width of a board in TE."""
    return sum(e.te_width for e in entries)
