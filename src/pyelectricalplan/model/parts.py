"""
Records of the installation planning model.

This module holds the immutable value types shared by the derivation
engine and the project state:
- Catalog-level definitions (symbol types, protection profiles, devices)
- Placed instances (symbols, cables) and the building/room tree
- Manual overrides for circuits and RCD groups
- Derived results (circuits, RCD groups, upstream chains)
- Supply network configurations

All records are frozen dataclasses; collections are tuples so that derived
values compare by value and can be used as dictionary keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .constants import ArticleKind, GroupingHint, SpdPosition

# ---------------------------------------------------------------------------
# Protection requirements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProtectionRequirement:
    """
    A demand for one class of protective device.

    Attributes:
        role: One of ``ProtectionRole`` (e.g. ``"mcb"``, ``"rcd"``).
        rated_current: Rated current in A, or None if unspecified.
        characteristic: Trip characteristic for MCB/RCBO (e.g. ``"B"``).
        fault_current: Rated residual current in mA for RCD roles.
        rcd_type: RCD type (e.g. ``"A"``, ``"B"``, ``"F"``).
        poles: Pole count (e.g. 2 for 1+N, 4 for 3+N).
    """

    role: str
    rated_current: float | None = None
    characteristic: str | None = None
    fault_current: float | None = None
    rcd_type: str | None = None
    poles: int | None = None

    def signature(self) -> tuple:
        """
        Identity of all fields; requirements with equal signatures merge trivially.

        Numbers are normalised (``16`` and ``16.0`` give the same signature)
        so that ids built from signatures depend on values only.
        """
        return (
            self.role,
            _as_float(self.rated_current),
            self.characteristic,
            _as_float(self.fault_current),
            self.rcd_type,
            None if self.poles is None else int(self.poles),
        )


def _as_float(value: float | None) -> float | None:
    return None if value is None else float(value)


@dataclass(frozen=True)
class ProtectionProfile:
    """
    Protection demanded by a symbol type.

    Attributes:
        requirements: Ordered protection requirements.
        dedicated_circuit: True if the symbol never shares its circuit.
        grouping_hint: One of ``GroupingHint``.
    """

    requirements: tuple[ProtectionRequirement, ...] = ()
    dedicated_circuit: bool = False
    grouping_hint: str = GroupingHint.SOCKET


# ---------------------------------------------------------------------------
# Catalog records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ArticleLine:
    """A billable material or service position attached to a symbol."""

    id: str
    designation: str
    kind: str = ArticleKind.MATERIAL
    quantity: float = 1.0
    unit: str = "Stk"
    unit_price: float = 0.0


@dataclass(frozen=True)
class SymbolAttributes:
    color: str = ""
    mount_height: float = 0.0
    cable_type: str = ""


@dataclass(frozen=True)
class KnxProperties:
    device_type: str = ""
    variant: str = "Standard"


@dataclass(frozen=True)
class SymbolDefinition:
    """
    A symbol type from the catalog.

    Attributes:
        key: Unique key referenced by placed symbols (e.g. "grounded_socket").
        label: Human-readable name.
        category: Library category (socket, light, homedevice, ...).
        protection: Protection profile, or None for non-electrical symbols.
        default_attributes: Attributes copied onto new placements.
        default_knx: KNX properties copied onto new placements.
        default_articles: Article lines copied onto new placements.
        is_distributor: True for distribution board symbols.
    """

    key: str
    label: str
    category: str = "others"
    protection: ProtectionProfile | None = None
    default_attributes: SymbolAttributes = field(default_factory=SymbolAttributes)
    default_knx: KnxProperties = field(default_factory=KnxProperties)
    default_articles: tuple[ArticleLine, ...] = ()
    is_distributor: bool = False


@dataclass(frozen=True)
class Device:
    """
    A physical device from the cabinet catalog.

    Attributes:
        id: Catalog id (e.g. "mcb-b16-1p").
        label: Display label (e.g. "LSS B16").
        role: ``ProtectionRole`` or ``UpstreamRole`` value.
        te_width: Rail width in TE.
        poles: Pole count, or None if not applicable.
        rated_current: Rated current in A.
        fault_current: Rated residual current in mA.
        rcd_type: RCD type for residual current devices.
        characteristic: Trip characteristic for breakers.
        price: Unit price used for the bill of materials.
    """

    id: str
    label: str
    role: str
    te_width: int = 1
    poles: int | None = None
    rated_current: float | None = None
    fault_current: float | None = None
    rcd_type: str | None = None
    characteristic: str | None = None
    price: float = 0.0


# ---------------------------------------------------------------------------
# Building and placement
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Room:
    id: str
    name: str


@dataclass(frozen=True)
class Floor:
    id: str
    name: str
    rooms: tuple[Room, ...] = ()


@dataclass(frozen=True)
class Building:
    """Building/room tree, used for room-name resolution only."""

    id: str
    name: str
    floors: tuple[Floor, ...] = ()

    def rooms(self) -> list[Room]:
        return [room for floor in self.floors for room in floor.rooms]

    def room_name(self, room_id: str) -> str:
        """Return the room's name, or the id itself if the room is unknown."""
        for room in self.rooms():
            if room.id == room_id:
                return room.name
        return room_id


@dataclass(frozen=True)
class DistributionBoard:
    """A distribution board (Verteiler)."""

    id: str
    name: str


@dataclass(frozen=True)
class PlacedSymbol:
    """
    A device instance placed in a room.

    Attributes:
        id: Unique instance id.
        symbol_key: Key of the catalog ``SymbolDefinition``.
        room_id: Room the symbol is placed in.
        x, y, rotation: Canvas position (not used by the engine).
        attributes: Free-form attributes (color, mount height, cable type).
        knx: KNX properties.
        articles: Billable article/service lines.
        verteiler_id: Assigned distribution board, None for automatic.
        protection_overrides: Per-instance requirements replacing the
            catalog profile's requirements, None to use the profile.
        circuit_group_id: Explicit circuit group to join, None for automatic.
    """

    id: str
    symbol_key: str
    room_id: str
    x: float = 0.0
    y: float = 0.0
    rotation: float = 0.0
    attributes: SymbolAttributes = field(default_factory=SymbolAttributes)
    knx: KnxProperties = field(default_factory=KnxProperties)
    articles: tuple[ArticleLine, ...] = ()
    verteiler_id: str | None = None
    protection_overrides: tuple[ProtectionRequirement, ...] | None = None
    circuit_group_id: str | None = None


@dataclass(frozen=True)
class Cable:
    """A cable run connecting one or more placed symbols."""

    id: str
    cable_type: str = ""
    symbol_ids: tuple[str, ...] = ()
    length: float | None = None


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolvedDevice:
    """A concrete catalog device chosen for one protection role."""

    role: str
    device_id: str


@dataclass(frozen=True)
class CircuitGroupOverride:
    """
    Manual annotations for one circuit, keyed by circuit id.

    ``device_overrides`` set to a tuple marks manual device selection; None
    means the devices are resolved automatically.
    """

    group_id: str
    name: str | None = None
    verteiler_id: str | None = None
    device_overrides: tuple[ResolvedDevice, ...] | None = None


@dataclass(frozen=True)
class RcdGroupOverride:
    """Pins a circuit to an RCD group id; None re-enters automatic grouping."""

    circuit_id: str
    rcd_group_id: str | None = None


@dataclass(frozen=True)
class RcdGroupingStrategy:
    """
    Extra dimensions for the automatic RCD grouping key.

    Attributes:
        separate_by_room: Circuits of different rooms never share an RCD.
        separate_by_rated_current: Key on the circuit's MCB rated current.
        separate_by_type: Key on the circuit's grouping hint.
    """

    separate_by_room: bool = False
    separate_by_rated_current: bool = False
    separate_by_type: bool = False


# ---------------------------------------------------------------------------
# Derived results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DerivedCircuit:
    """
    A circuit derived from placed symbols.

    Attributes:
        id: Stable id derived from the grouping key.
        name: Display name.
        verteiler_id: Owning distribution board.
        room_id: Room of the first member symbol.
        grouping_hint: Grouping hint of the circuit.
        symbol_ids: Member symbol ids, sorted.
        merged_requirements: One requirement per role, merged over members.
        resolved_devices: Concrete devices per merged requirement.
        cable_ids: Cables connected to any member, sorted.
        manual_devices: True if ``resolved_devices`` came from an override.
        conflicts: Roles whose members disagree on a non-numeric field.
    """

    id: str
    name: str
    verteiler_id: str
    room_id: str
    grouping_hint: str
    symbol_ids: tuple[str, ...]
    merged_requirements: tuple[ProtectionRequirement, ...]
    resolved_devices: tuple[ResolvedDevice, ...] = ()
    cable_ids: tuple[str, ...] = ()
    manual_devices: bool = False
    conflicts: tuple[str, ...] = ()

    @property
    def is_consistent(self) -> bool:
        return not self.conflicts

    def has_role(self, role: str) -> bool:
        return any(r.role == role for r in self.merged_requirements)

    def requirement_for(self, role: str) -> ProtectionRequirement | None:
        for req in self.merged_requirements:
            if req.role == role:
                return req
        return None


@dataclass(frozen=True)
class RcdGroup:
    """
    Circuits sharing one physical RCD.

    Attributes:
        id: Deterministic group id.
        verteiler_id: Owning distribution board.
        shared_requirement: Requirement the shared RCD must satisfy.
        shared_device: Resolved shared RCD, None if the catalog has no match.
        circuit_ids: Member circuit ids, ascending.
        has_manual_override: True if formed from manual assignments.
    """

    id: str
    verteiler_id: str
    shared_requirement: ProtectionRequirement
    shared_device: ResolvedDevice | None
    circuit_ids: tuple[str, ...]
    has_manual_override: bool = False


# ---------------------------------------------------------------------------
# Supply network
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Einspeisung:
    """Incoming supply: network form and terminal-block flag."""

    netzform: str = "TN-C-S"
    als_klemmenblock: bool = False


@dataclass(frozen=True)
class FuseSlot:
    enabled: bool = False
    ampere: float = 63.0
    device_id: str = ""


@dataclass(frozen=True)
class MeterSlot:
    enabled: bool = False
    device_id: str = ""


@dataclass(frozen=True)
class SurgeProtection:
    """Surge protection device with its position and optional own pre-fuse."""

    enabled: bool = False
    device_id: str = ""
    position: str = SpdPosition.NACH_ZAEHLER
    vorsicherung: FuseSlot = field(default_factory=lambda: FuseSlot(ampere=32.0))


@dataclass(frozen=True)
class NetzKonfiguration:
    """
    One incoming-supply path and the distribution boards it feeds.

    Attributes:
        id: Unique id.
        bezeichnung: Display name.
        netzwerk_typ: Free-form network type (e.g. "hausanschluss").
        einspeisung: Incoming supply.
        zaehlervorsicherung: Meter pre-fuse.
        zaehler: Meter.
        hauptschalter: Main switch.
        ueberspannungsschutz: Surge protection.
        verteiler_ids: Boards fed by this configuration.
    """

    id: str
    bezeichnung: str = ""
    netzwerk_typ: str = "hausanschluss"
    einspeisung: Einspeisung = field(default_factory=Einspeisung)
    zaehlervorsicherung: FuseSlot = field(default_factory=FuseSlot)
    zaehler: MeterSlot = field(default_factory=MeterSlot)
    hauptschalter: FuseSlot = field(default_factory=FuseSlot)
    ueberspannungsschutz: SurgeProtection = field(default_factory=SurgeProtection)
    verteiler_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class UpstreamDevice:
    """
    One resolved step of a supply chain.

    Attributes:
        slot: One of ``UpstreamSlot``.
        label: Display label (device label or the slot's generic label).
        sublabel: Secondary label (ampacity, position, network form).
        device: Catalog device, None if the slot has none or the lookup missed.
        te_width: Occupied rail width in TE.
    """

    slot: str
    label: str
    sublabel: str
    device: Device | None
    te_width: int


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Selection:
    """
    The current selection target as a tagged variant.

    ``kind`` is ``"none"``, ``"symbol"`` or ``"cable"``; ``target_id`` is
    None exactly when kind is ``"none"``.
    """

    kind: str = "none"
    target_id: str | None = None

    def __post_init__(self):
        if self.kind not in ("none", "symbol", "cable"):
            raise ValueError(f"Unknown selection kind '{self.kind}'")
        if (self.kind == "none") != (self.target_id is None):
            raise ValueError("target_id must be set exactly when kind is not 'none'")

    @classmethod
    def nothing(cls) -> "Selection":
        return cls()

    @classmethod
    def symbol(cls, symbol_id: str) -> "Selection":
        return cls("symbol", symbol_id)

    @classmethod
    def cable(cls, cable_id: str) -> "Selection":
        return cls("cable", cable_id)
