"""
Typed state for installation planning.

Provides the immutable snapshot of everything the derivation engine reads,
plus conversion to and from plain dicts for persistence.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from pyelectricalplan.model.constants import DEFAULT_MAX_PER_RCD, SCHEMA_VERSION
from pyelectricalplan.model.migrations import migrate
from pyelectricalplan.model.parts import (
    ArticleLine,
    Building,
    Cable,
    CircuitGroupOverride,
    DistributionBoard,
    Einspeisung,
    Floor,
    FuseSlot,
    KnxProperties,
    MeterSlot,
    NetzKonfiguration,
    PlacedSymbol,
    ProtectionRequirement,
    RcdGroupingStrategy,
    RcdGroupOverride,
    ResolvedDevice,
    Room,
    Selection,
    SurgeProtection,
    SymbolAttributes,
)


def empty_building() -> Building:
    return Building(id="building", name="")


@dataclass(frozen=True)
class ProjectState:
    """
    Immutable snapshot of a planning project.

    Attributes:
        building: Building/room tree.
        boards: Distribution boards.
        placed_symbols: All placed symbols.
        cables: Cable runs.
        circuit_group_overrides: Manual circuit annotations, keyed by circuit id.
        rcd_overrides: Manual RCD group pins.
        rcd_strategy: Extra automatic RCD grouping dimensions.
        max_per_rcd: Maximum circuits per shared RCD.
        netz_konfigurationen: Supply network configurations.
        selection: Current selection target.
    """

    building: Building = field(default_factory=empty_building)
    boards: tuple[DistributionBoard, ...] = ()
    placed_symbols: tuple[PlacedSymbol, ...] = ()
    cables: tuple[Cable, ...] = ()
    circuit_group_overrides: tuple[CircuitGroupOverride, ...] = ()
    rcd_overrides: tuple[RcdGroupOverride, ...] = ()
    rcd_strategy: RcdGroupingStrategy = field(default_factory=RcdGroupingStrategy)
    max_per_rcd: int = DEFAULT_MAX_PER_RCD
    netz_konfigurationen: tuple[NetzKonfiguration, ...] = ()
    selection: Selection = field(default_factory=Selection)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict at the current schema version."""
        data = asdict(self)
        data["version"] = SCHEMA_VERSION
        return data

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ProjectState":
        """
        Create from a persisted dict of any known schema version.

        Missing optional fields take their defaults, so partially written or
        older state loads without errors.
        """
        d = migrate(d)
        return cls(
            building=_building(d.get("building")),
            boards=tuple(
                DistributionBoard(b["id"], b.get("name", b["id"])) for b in d.get("boards", [])
            ),
            placed_symbols=tuple(_symbol(s) for s in d.get("placed_symbols", [])),
            cables=tuple(_cable(c) for c in d.get("cables", [])),
            circuit_group_overrides=tuple(
                _circuit_override(o) for o in d.get("circuit_group_overrides", [])
            ),
            rcd_overrides=tuple(
                RcdGroupOverride(o["circuit_id"], o.get("rcd_group_id"))
                for o in d.get("rcd_overrides", [])
            ),
            rcd_strategy=RcdGroupingStrategy(**(d.get("rcd_strategy") or {})),
            max_per_rcd=int(d.get("max_per_rcd", DEFAULT_MAX_PER_RCD)),
            netz_konfigurationen=tuple(_netz(n) for n in d.get("netz_konfigurationen", [])),
            selection=Selection(**(d.get("selection") or {})),
        )


# ---------------------------------------------------------------------------
# Record conversion
# ---------------------------------------------------------------------------


def _building(d: dict | None) -> Building:
    if not d:
        return empty_building()
    return Building(
        id=d.get("id", "building"),
        name=d.get("name", ""),
        floors=tuple(
            Floor(
                f["id"],
                f.get("name", ""),
                tuple(Room(r["id"], r.get("name", "")) for r in f.get("rooms", [])),
            )
            for f in d.get("floors", [])
        ),
    )


def _requirements(items: list | None) -> tuple[ProtectionRequirement, ...] | None:
    if items is None:
        return None
    return tuple(ProtectionRequirement(**r) for r in items)


def _symbol(d: dict) -> PlacedSymbol:
    return PlacedSymbol(
        id=d["id"],
        symbol_key=d["symbol_key"],
        room_id=d.get("room_id", ""),
        x=d.get("x", 0.0),
        y=d.get("y", 0.0),
        rotation=d.get("rotation", 0.0),
        attributes=SymbolAttributes(**(d.get("attributes") or {})),
        knx=KnxProperties(**(d.get("knx") or {})),
        articles=tuple(ArticleLine(**a) for a in d.get("articles", [])),
        verteiler_id=d.get("verteiler_id"),
        protection_overrides=_requirements(d.get("protection_overrides")),
        circuit_group_id=d.get("circuit_group_id"),
    )


def _cable(d: dict) -> Cable:
    return Cable(
        id=d["id"],
        cable_type=d.get("cable_type", ""),
        symbol_ids=tuple(d.get("symbol_ids", [])),
        length=d.get("length"),
    )


def _circuit_override(d: dict) -> CircuitGroupOverride:
    devices = d.get("device_overrides")
    return CircuitGroupOverride(
        group_id=d["group_id"],
        name=d.get("name"),
        verteiler_id=d.get("verteiler_id"),
        device_overrides=(
            None if devices is None else tuple(ResolvedDevice(**x) for x in devices)
        ),
    )


def _fuse(d: dict | None) -> FuseSlot:
    return FuseSlot(**(d or {}))


def _netz(d: dict) -> NetzKonfiguration:
    spd = dict(d.get("ueberspannungsschutz") or {})
    if "vorsicherung" in spd:
        spd["vorsicherung"] = _fuse(spd["vorsicherung"])
    return NetzKonfiguration(
        id=d["id"],
        bezeichnung=d.get("bezeichnung", ""),
        netzwerk_typ=d.get("netzwerk_typ", "hausanschluss"),
        einspeisung=Einspeisung(**(d.get("einspeisung") or {})),
        zaehlervorsicherung=_fuse(d.get("zaehlervorsicherung")),
        zaehler=MeterSlot(**(d.get("zaehler") or {})),
        hauptschalter=_fuse(d.get("hauptschalter")),
        ueberspannungsschutz=SurgeProtection(**spd),
        verteiler_ids=tuple(d.get("verteiler_ids", [])),
    )
