"""
PyElectricalPlan Library.
"""

from .catalog import (
    Catalog,
    default_catalog,
    default_devices,
    default_symbols,
    load_catalog_csv,
    parse_requirements,
)
from .circuits import circuit_for_symbol, derive_circuits, merge_requirements
from .exceptions import (
    IncompatibleRequirementError,
    NetzNotFoundError,
    PlanningError,
    SchemaVersionError,
    SymbolNotFoundError,
    UnknownDeviceError,
    UnknownSymbolTypeError,
)
from .model.constants import (
    DEFAULT_MAX_PER_RCD,
    SCHEMA_VERSION,
    UNASSIGNED_VERTEILER,
    ArticleKind,
    GroupingHint,
    ProtectionRole,
    SpdPosition,
    UpstreamRole,
    UpstreamSlot,
)
from .model.parts import (
    ArticleLine,
    Building,
    Cable,
    CircuitGroupOverride,
    DerivedCircuit,
    Device,
    DistributionBoard,
    Einspeisung,
    Floor,
    FuseSlot,
    MeterSlot,
    NetzKonfiguration,
    PlacedSymbol,
    ProtectionProfile,
    ProtectionRequirement,
    RcdGroup,
    RcdGroupingStrategy,
    RcdGroupOverride,
    ResolvedDevice,
    Room,
    Selection,
    SurgeProtection,
    SymbolDefinition,
    UpstreamDevice,
)
from .model.state import ProjectState
from .project import PlanningProject
from .rcd_grouping import group_by_shared_rcd
from .upstream import (
    find_all_netze_for_verteiler,
    find_netz_for_verteiler,
    resolve_upstream_devices,
    upstream_te_width,
)

__all__ = [
    # Engine
    "derive_circuits",
    "merge_requirements",
    "circuit_for_symbol",
    "group_by_shared_rcd",
    "resolve_upstream_devices",
    "find_netz_for_verteiler",
    "find_all_netze_for_verteiler",
    "upstream_te_width",
    # Catalog
    "Catalog",
    "default_catalog",
    "default_devices",
    "default_symbols",
    "load_catalog_csv",
    "parse_requirements",
    # State
    "PlanningProject",
    "ProjectState",
    # Exceptions
    "PlanningError",
    "UnknownSymbolTypeError",
    "UnknownDeviceError",
    "IncompatibleRequirementError",
    "SymbolNotFoundError",
    "NetzNotFoundError",
    "SchemaVersionError",
    # Constants
    "DEFAULT_MAX_PER_RCD",
    "SCHEMA_VERSION",
    "UNASSIGNED_VERTEILER",
    "ArticleKind",
    "GroupingHint",
    "ProtectionRole",
    "SpdPosition",
    "UpstreamRole",
    "UpstreamSlot",
    # Records
    "ArticleLine",
    "Building",
    "Cable",
    "CircuitGroupOverride",
    "DerivedCircuit",
    "Device",
    "DistributionBoard",
    "Einspeisung",
    "Floor",
    "FuseSlot",
    "MeterSlot",
    "NetzKonfiguration",
    "PlacedSymbol",
    "ProtectionProfile",
    "ProtectionRequirement",
    "RcdGroup",
    "RcdGroupingStrategy",
    "RcdGroupOverride",
    "ResolvedDevice",
    "Room",
    "Selection",
    "SurgeProtection",
    "SymbolDefinition",
    "UpstreamDevice",
]
