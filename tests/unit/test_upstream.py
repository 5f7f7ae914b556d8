"""Tests for upstream supply-chain resolution."""

from pyelectricalplan.catalog import Catalog
from pyelectricalplan.model.constants import UPSTREAM_FALLBACK_WIDTHS, SpdPosition, UpstreamSlot
from pyelectricalplan.model.parts import (
    Einspeisung,
    FuseSlot,
    MeterSlot,
    NetzKonfiguration,
    SurgeProtection,
)
from pyelectricalplan.upstream import (
    find_all_netze_for_verteiler,
    find_netz_for_verteiler,
    resolve_upstream_devices,
    upstream_te_width,
)


def _slots(devices):
    return [d.slot for d in devices]


def test_minimal_chain_is_incoming_supply_only(catalog):
    devices = resolve_upstream_devices(NetzKonfiguration("n1"), catalog)
    assert len(devices) == 1
    supply = devices[0]
    assert supply.slot == UpstreamSlot.EINSPEISUNG
    assert supply.device is None
    assert supply.te_width == 0


def test_meter_and_main_switch_only(catalog):
    """Disabled pre-fuse and surge protection leave three entries in order."""
    netz = NetzKonfiguration(
        "n1",
        zaehlervorsicherung=FuseSlot(enabled=False),
        zaehler=MeterSlot(enabled=True, device_id="zaehler-ehz"),
        hauptschalter=FuseSlot(enabled=True, ampere=63, device_id="hs-63"),
        ueberspannungsschutz=SurgeProtection(enabled=False),
    )
    devices = resolve_upstream_devices(netz, catalog)
    assert _slots(devices) == [
        UpstreamSlot.EINSPEISUNG,
        UpstreamSlot.ZAEHLER,
        UpstreamSlot.HAUPTSCHALTER,
    ]
    assert devices[1].te_width == 4
    assert devices[2].label == "Hauptschalter 63A"
    assert devices[2].sublabel == "63A"


def test_full_chain_spd_before_meter(catalog):
    netz = NetzKonfiguration(
        "n1",
        zaehlervorsicherung=FuseSlot(True, 50, "sls-50"),
        zaehler=MeterSlot(True, "zaehler-ehz"),
        hauptschalter=FuseSlot(True, 63, "hs-63"),
        ueberspannungsschutz=SurgeProtection(
            True, "spd-t1t2", SpdPosition.VOR_ZAEHLER, FuseSlot(True, 32)
        ),
    )
    devices = resolve_upstream_devices(netz, catalog)
    assert _slots(devices) == [
        UpstreamSlot.EINSPEISUNG,
        UpstreamSlot.ZAEHLERVORSICHERUNG,
        UpstreamSlot.SPD_VORSICHERUNG,
        UpstreamSlot.UEBERSPANNUNGSSCHUTZ,
        UpstreamSlot.ZAEHLER,
        UpstreamSlot.HAUPTSCHALTER,
    ]
    assert devices[1].sublabel == "50A"
    assert devices[2].sublabel == "32A"
    assert devices[2].te_width == 1
    assert devices[3].sublabel == "vor Zaehler"
    assert upstream_te_width(devices) == 0 + 3 + 1 + 4 + 4 + 3


def test_spd_after_meter_without_prefuse(catalog):
    netz = NetzKonfiguration(
        "n1",
        zaehler=MeterSlot(True, "zaehler-ehz"),
        ueberspannungsschutz=SurgeProtection(
            True, "spd-t1t2", SpdPosition.NACH_ZAEHLER, FuseSlot(False)
        ),
    )
    devices = resolve_upstream_devices(netz, catalog)
    assert _slots(devices) == [
        UpstreamSlot.EINSPEISUNG,
        UpstreamSlot.ZAEHLER,
        UpstreamSlot.UEBERSPANNUNGSSCHUTZ,
    ]
    assert devices[2].sublabel == "nach Zaehler"


def test_catalog_miss_falls_back(catalog):
    netz = NetzKonfiguration(
        "n1",
        zaehlervorsicherung=FuseSlot(True, 35, "sls-unknown"),
        hauptschalter=FuseSlot(True, 40, ""),
    )
    sls, main = resolve_upstream_devices(netz, Catalog())[1:]
    assert sls.device is None
    assert sls.label == "SLS"
    assert sls.te_width == UPSTREAM_FALLBACK_WIDTHS.zaehlervorsicherung
    assert main.label == "Hauptschalter"
    assert main.te_width == UPSTREAM_FALLBACK_WIDTHS.hauptschalter
    assert main.sublabel == "40A"


def test_incoming_supply_label():
    netz = NetzKonfiguration("n1", einspeisung=Einspeisung("TT", als_klemmenblock=True))
    supply = resolve_upstream_devices(netz, Catalog())[0]
    assert supply.sublabel.endswith(" (KB)")
    assert "TT" in supply.sublabel


def test_deterministic(catalog):
    netz = NetzKonfiguration("n1", zaehler=MeterSlot(True, "zaehler-ehz"))
    assert resolve_upstream_devices(netz, catalog) == resolve_upstream_devices(netz, catalog)


class TestNetzLookup:
    def test_first_and_all(self):
        netze = [
            NetzKonfiguration("n1", verteiler_ids=("V1",)),
            NetzKonfiguration("n2", verteiler_ids=("V1", "V2")),
        ]
        assert find_netz_for_verteiler(netze, "V1").id == "n1"
        assert find_netz_for_verteiler(netze, "V2").id == "n2"
        assert [n.id for n in find_all_netze_for_verteiler(netze, "V1")] == ["n1", "n2"]

    def test_unlinked_board(self):
        netze = [NetzKonfiguration("n1", verteiler_ids=("V1",))]
        assert find_netz_for_verteiler(netze, "V9") is None
        assert find_all_netze_for_verteiler(netze, "V9") == []
