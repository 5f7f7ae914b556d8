"""
Upstream supply-chain resolution.

Resolves the ordered chain of supply-side devices feeding a distribution
board from a ``NetzKonfiguration``:

    Einspeisung -> SLS -> SPD (vor Zaehler) -> Zaehler -> SPD (nach Zaehler) -> Hauptschalter

The incoming supply is always present and has no rail footprint. Every
other slot appears only when enabled. A surge protection device may be
preceded by its own pre-fuse.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pyelectricalplan.catalog import Catalog
from pyelectricalplan.model.constants import (
    NETZFORM_LABELS,
    UPSTREAM_FALLBACK_WIDTHS,
    SpdPosition,
    UpstreamSlot,
)
from pyelectricalplan.model.parts import (
    NetzKonfiguration,
    SurgeProtection,
    UpstreamDevice,
)
from pyelectricalplan.utils.utils import format_number

logger = logging.getLogger(__name__)

_SLOT_LABELS = {
    UpstreamSlot.EINSPEISUNG: "Einspeisung",
    UpstreamSlot.ZAEHLERVORSICHERUNG: "SLS",
    UpstreamSlot.SPD_VORSICHERUNG: "Vorsicherung SPD",
    UpstreamSlot.UEBERSPANNUNGSSCHUTZ: "SPD",
    UpstreamSlot.ZAEHLER: "Zaehler",
    UpstreamSlot.HAUPTSCHALTER: "Hauptschalter",
}

_SPD_POSITION_LABELS = {
    SpdPosition.VOR_ZAEHLER: "vor Zaehler",
    SpdPosition.NACH_ZAEHLER: "nach Zaehler",
}


def find_netz_for_verteiler(
    netze: Iterable[NetzKonfiguration], verteiler_id: str
) -> NetzKonfiguration | None:
    """Return the first network configuration feeding *verteiler_id*."""
    for netz in netze:
        if verteiler_id in netz.verteiler_ids:
            return netz
    return None


def find_all_netze_for_verteiler(
    netze: Iterable[NetzKonfiguration], verteiler_id: str
) -> list[NetzKonfiguration]:
    """Return every network configuration feeding *verteiler_id*, in input order."""
    return [n for n in netze if verteiler_id in n.verteiler_ids]


def _catalog_slot(
    catalog: Catalog, slot: str, device_id: str, sublabel: str
) -> UpstreamDevice:
    device = catalog.find_device(device_id) if device_id else None
    if device is None and device_id:
        logger.debug("Upstream slot %s: device '%s' not in catalog", slot, device_id)
    return UpstreamDevice(
        slot=slot,
        label=device.label if device else _SLOT_LABELS[slot],
        sublabel=sublabel,
        device=device,
        te_width=device.te_width if device else getattr(UPSTREAM_FALLBACK_WIDTHS, slot),
    )


def _spd_devices(catalog: Catalog, spd: SurgeProtection) -> list[UpstreamDevice]:
    devices = []
    if spd.vorsicherung.enabled:
        devices.append(
            UpstreamDevice(
                slot=UpstreamSlot.SPD_VORSICHERUNG,
                label=_SLOT_LABELS[UpstreamSlot.SPD_VORSICHERUNG],
                sublabel=f"{format_number(spd.vorsicherung.ampere)}A",
                device=None,
                te_width=UPSTREAM_FALLBACK_WIDTHS.spd_vorsicherung,
            )
        )
    devices.append(
        _catalog_slot(
            catalog,
            UpstreamSlot.UEBERSPANNUNGSSCHUTZ,
            spd.device_id,
            _SPD_POSITION_LABELS.get(spd.position, spd.position),
        )
    )
    return devices


def resolve_upstream_devices(
    netz: NetzKonfiguration, catalog: Catalog
) -> list[UpstreamDevice]:
    """
    Resolve the upstream protection chain of a network configuration.

    Args:
        netz: The network configuration.
        catalog: Catalog used to look up slot devices by id.

    Returns:
        Upstream devices in supply order, starting with the incoming supply.
    """
    einspeisung = netz.einspeisung
    sublabel = NETZFORM_LABELS.get(einspeisung.netzform, einspeisung.netzform)
    if einspeisung.als_klemmenblock:
        sublabel += " (KB)"
    devices = [
        UpstreamDevice(
            slot=UpstreamSlot.EINSPEISUNG,
            label=_SLOT_LABELS[UpstreamSlot.EINSPEISUNG],
            sublabel=sublabel,
            device=None,
            te_width=UPSTREAM_FALLBACK_WIDTHS.einspeisung,
        )
    ]

    sls = netz.zaehlervorsicherung
    if sls.enabled:
        devices.append(
            _catalog_slot(
                catalog,
                UpstreamSlot.ZAEHLERVORSICHERUNG,
                sls.device_id,
                f"{format_number(sls.ampere)}A",
            )
        )

    spd = netz.ueberspannungsschutz
    if spd.enabled and spd.position == SpdPosition.VOR_ZAEHLER:
        devices.extend(_spd_devices(catalog, spd))

    if netz.zaehler.enabled:
        devices.append(
            _catalog_slot(catalog, UpstreamSlot.ZAEHLER, netz.zaehler.device_id, "")
        )

    if spd.enabled and spd.position == SpdPosition.NACH_ZAEHLER:
        devices.extend(_spd_devices(catalog, spd))

    main = netz.hauptschalter
    if main.enabled:
        devices.append(
            _catalog_slot(
                catalog,
                UpstreamSlot.HAUPTSCHALTER,
                main.device_id,
                f"{format_number(main.ampere)}A",
            )
        )

    return devices


def upstream_te_width(devices: Iterable[UpstreamDevice]) -> int:
    """Total rail width of an upstream chain."""
    return sum(d.te_width for d in devices)
