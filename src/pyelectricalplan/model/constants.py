"""
Global constants for the installation planner.
All library-level defaults for circuit derivation, RCD grouping and
upstream resolution are defined here.
Project-specific settings (max circuits per RCD, grouping strategy) live on
the project state, not here.
"""
from dataclasses import dataclass

# Schema
SCHEMA_VERSION = 2

# Distribution boards
UNASSIGNED_VERTEILER = "unassigned"  # bucket for symbols without a board

# RCD grouping
DEFAULT_MAX_PER_RCD = 6
DEFAULT_RCD_FAULT_CURRENT = 30.0  # mA
DEFAULT_RCD_TYPE = "A"
DEFAULT_RCD_POLES = 2
DEFAULT_SHARED_RCD_RATED_CURRENT = 40.0  # A

# Device width used when a resolved device id is not in the catalog
UNKNOWN_DEVICE_TE_WIDTH = 1


class ProtectionRole:
    """
    Protective device roles a symbol can demand.
    """
    MCB = "mcb"  # Leitungsschutzschalter
    RCD = "rcd"  # FI-Schutzschalter
    RCBO = "rcbo"  # FI/LS-Kombination
    AFDD = "afdd"  # Brandschutzschalter
    RCD_TYPE_B = "rcd_type_b"  # allstromsensitiver FI

    ALL = (MCB, RCD, RCBO, AFDD, RCD_TYPE_B)
    RCD_ROLES = (RCD, RCD_TYPE_B)


ROLE_LABELS = {
    ProtectionRole.MCB: "LSS (MCB)",
    ProtectionRole.RCD: "FI (RCD)",
    ProtectionRole.RCBO: "FI/LS (RCBO)",
    ProtectionRole.AFDD: "AFDD",
    ProtectionRole.RCD_TYPE_B: "RCD Typ B",
}


class GroupingHint:
    """Grouping hints used as a tie-breaker when forming circuits."""
    SOCKET = "socket"
    LIGHT = "light"
    DEDICATED = "dedicated"
    SPECIAL = "special"


HINT_LABELS = {
    GroupingHint.SOCKET: "Steckdosen",
    GroupingHint.LIGHT: "Beleuchtung",
    GroupingHint.DEDICATED: "Einzelstromkreis",
    GroupingHint.SPECIAL: "Sonderstromkreis",
}


class UpstreamRole:
    """Catalog roles for devices on the supply side of a board."""
    SLS = "sls"  # selektiver Hauptleitungsschutzschalter
    METER = "meter"
    MAIN_SWITCH = "main_switch"
    SPD = "spd"


class UpstreamSlot:
    """Slots of a supply chain, in their fixed order."""
    EINSPEISUNG = "einspeisung"
    ZAEHLERVORSICHERUNG = "zaehlervorsicherung"
    SPD_VORSICHERUNG = "spd_vorsicherung"
    UEBERSPANNUNGSSCHUTZ = "ueberspannungsschutz"
    ZAEHLER = "zaehler"
    HAUPTSCHALTER = "hauptschalter"


class SpdPosition:
    VOR_ZAEHLER = "vor_zaehler"
    NACH_ZAEHLER = "nach_zaehler"


NETZFORM_LABELS = {
    "TN-C": "TN-C-System",
    "TN-S": "TN-S-System",
    "TN-C-S": "TN-C-S-System",
    "TT": "TT-System",
    "IT": "IT-System",
}


class ArticleKind:
    MATERIAL = "material"
    SERVICE = "service"


@dataclass(frozen=True)
class UpstreamWidths:
    """
    Fallback rail widths (TE) for upstream slots whose device is not in the
    catalog.

    Attributes:
        einspeisung: Incoming supply, no physical footprint on the rail.
        zaehlervorsicherung: Meter pre-fuse (SLS).
        zaehler: Meter.
        ueberspannungsschutz: Surge protection device.
        spd_vorsicherung: Surge protection pre-fuse.
        hauptschalter: Main switch.
    """
    einspeisung: int = 0
    zaehlervorsicherung: int = 3
    zaehler: int = 4
    ueberspannungsschutz: int = 4
    spd_vorsicherung: int = 1
    hauptschalter: int = 3


UPSTREAM_FALLBACK_WIDTHS = UpstreamWidths()
