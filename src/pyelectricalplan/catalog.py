"""
Symbol and device catalog.

The catalog is a pure lookup table: symbol type keys map to
``SymbolDefinition`` records and device ids map to ``Device`` records. The
only logic here is device selection for a protection requirement, which
follows a closest-fit-above policy:

- the device role must equal the requirement role,
- pole count, RCD type and trip characteristic must match when both sides
  set them,
- rated current and fault current must be >= the requirement's value when
  the requirement sets one,
- among the candidates the smallest rated current wins, then the smallest
  fault current, then the narrowest rail width, then the lowest device id.

Catalog tables can be loaded from CSV files. Requirement lists inside the
symbol table use the compact form ``"mcb rated=16 char=B; rcd fault=30 type=A poles=2"``.
"""

from __future__ import annotations

import csv
import logging
import math
from collections.abc import Iterable

from pyelectricalplan.exceptions import UnknownDeviceError
from pyelectricalplan.model.constants import (
    ArticleKind,
    GroupingHint,
    ProtectionRole,
    UpstreamRole,
)
from pyelectricalplan.model.parts import (
    ArticleLine,
    Device,
    ProtectionProfile,
    ProtectionRequirement,
    ResolvedDevice,
    SymbolAttributes,
    SymbolDefinition,
)

logger = logging.getLogger(__name__)

_EXACT_FIELDS = ("poles", "rcd_type", "characteristic")
_MINIMUM_FIELDS = ("rated_current", "fault_current")


def _num(value: float | None) -> float:
    return math.inf if value is None else value


def device_satisfies(device: Device, requirement: ProtectionRequirement) -> bool:
    """Return True if *device* can serve *requirement* under the closest-fit-above policy."""
    if device.role != requirement.role:
        return False
    for name in _EXACT_FIELDS:
        want = getattr(requirement, name)
        have = getattr(device, name)
        if want is not None and have is not None and want != have:
            return False
    for name in _MINIMUM_FIELDS:
        want = getattr(requirement, name)
        if want is None:
            continue
        have = getattr(device, name)
        if have is None or have < want:
            return False
    return True


def _fit_key(device: Device) -> tuple:
    return (
        _num(device.rated_current),
        _num(device.fault_current),
        device.te_width,
        device.id,
    )


class Catalog:
    """
    Lookup table for symbol types and devices.

    Args:
        symbols: Symbol type definitions; later entries win on duplicate keys.
        devices: Device records; later entries win on duplicate ids.
    """

    def __init__(
        self,
        symbols: Iterable[SymbolDefinition] = (),
        devices: Iterable[Device] = (),
    ):
        self._symbols: dict[str, SymbolDefinition] = {s.key: s for s in symbols}
        self._devices: dict[str, Device] = {d.id: d for d in devices}

    def __repr__(self) -> str:
        return f"Catalog({len(self._symbols)} symbols, {len(self._devices)} devices)"

    @property
    def symbols(self) -> list[SymbolDefinition]:
        return list(self._symbols.values())

    @property
    def devices(self) -> list[Device]:
        return list(self._devices.values())

    def find_symbol(self, key: str) -> SymbolDefinition | None:
        return self._symbols.get(key)

    def find_device(self, device_id: str) -> Device | None:
        return self._devices.get(device_id)

    def require_device(self, device_id: str, role: str = "") -> Device:
        """
        Like ``find_device``, but raise for unknown ids or a role mismatch.

        Raises:
            UnknownDeviceError: If *device_id* is not in the catalog, or if
                *role* is given and the device serves a different role.
        """
        device = self._devices.get(device_id)
        if device is None or (role and device.role != role):
            raise UnknownDeviceError(device_id, role)
        return device

    def devices_for_role(self, role: str) -> list[Device]:
        """All devices of *role*, smallest rating first (for manual selection lists)."""
        return sorted(
            (d for d in self._devices.values() if d.role == role), key=_fit_key
        )

    def select_device(self, requirement: ProtectionRequirement) -> Device | None:
        """
        Select the closest-fit-above device for a requirement.

        Args:
            requirement: The (merged) protection requirement.

        Returns:
            The best matching device, or None if no device qualifies.
        """
        candidates = [
            d for d in self._devices.values() if device_satisfies(d, requirement)
        ]
        if not candidates:
            return None
        return min(candidates, key=_fit_key)

    def resolve_devices(
        self, requirements: Iterable[ProtectionRequirement]
    ) -> tuple[ResolvedDevice, ...]:
        """
        Resolve one device per requirement.

        Requirements without a matching device are left out of the result.
        """
        resolved = []
        for req in requirements:
            device = self.select_device(req)
            if device is None:
                logger.warning("No catalog device satisfies %s", req)
                continue
            resolved.append(ResolvedDevice(req.role, device.id))
        return tuple(resolved)


# ---------------------------------------------------------------------------
# CSV loading
# ---------------------------------------------------------------------------

_REQUIREMENT_KEYS = {
    "rated": ("rated_current", float),
    "char": ("characteristic", str),
    "fault": ("fault_current", float),
    "type": ("rcd_type", str),
    "poles": ("poles", int),
}


def parse_requirements(text: str) -> tuple[ProtectionRequirement, ...]:
    """
    Parse a compact requirement list.

    Args:
        text: Entries separated by ``;``. Each entry starts with a role,
            followed by ``key=value`` tokens (rated, char, fault, type, poles).

    Returns:
        Tuple of requirements in the order given.

    Example::

        parse_requirements("mcb rated=16 char=B; rcd fault=30 type=A poles=2")
    """
    requirements = []
    for entry in text.split(";"):
        tokens = entry.split()
        if not tokens:
            continue
        role = tokens[0]
        if role not in ProtectionRole.ALL:
            raise ValueError(f"Unknown protection role '{role}' in '{entry.strip()}'")
        kwargs = {}
        for token in tokens[1:]:
            key, sep, value = token.partition("=")
            if not sep or key not in _REQUIREMENT_KEYS:
                raise ValueError(f"Invalid requirement token '{token}'")
            field_name, conv = _REQUIREMENT_KEYS[key]
            kwargs[field_name] = conv(value)
        requirements.append(ProtectionRequirement(role, **kwargs))
    return tuple(requirements)


def _opt(row: dict, name: str, conv):
    value = (row.get(name) or "").strip()
    return conv(value) if value else None


def _flag(row: dict, name: str) -> bool:
    return (row.get(name) or "").strip().lower() in ("1", "true", "yes", "ja")


def read_devices_csv(path: str) -> list[Device]:
    """Read device records from a CSV file with a header row."""
    devices = []
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            devices.append(
                Device(
                    id=row["id"].strip(),
                    label=row["label"].strip(),
                    role=row["role"].strip(),
                    te_width=_opt(row, "te_width", int) or 0,
                    poles=_opt(row, "poles", int),
                    rated_current=_opt(row, "rated_current", float),
                    fault_current=_opt(row, "fault_current", float),
                    rcd_type=_opt(row, "rcd_type", str),
                    characteristic=_opt(row, "characteristic", str),
                    price=_opt(row, "price", float) or 0.0,
                )
            )
    return devices


def read_symbols_csv(path: str) -> list[SymbolDefinition]:
    """
    Read symbol type definitions from a CSV file.

    Columns: key, label, category, requirements, dedicated_circuit,
    grouping_hint, is_distributor. An empty ``requirements`` cell means the
    symbol type has no protection profile.
    """
    symbols = []
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            req_text = (row.get("requirements") or "").strip()
            profile = None
            if req_text:
                profile = ProtectionProfile(
                    requirements=parse_requirements(req_text),
                    dedicated_circuit=_flag(row, "dedicated_circuit"),
                    grouping_hint=(row.get("grouping_hint") or "").strip()
                    or GroupingHint.SOCKET,
                )
            symbols.append(
                SymbolDefinition(
                    key=row["key"].strip(),
                    label=row["label"].strip(),
                    category=(row.get("category") or "others").strip(),
                    protection=profile,
                    is_distributor=_flag(row, "is_distributor"),
                )
            )
    return symbols


def load_catalog_csv(symbols_path: str, devices_path: str) -> Catalog:
    """Build a ``Catalog`` from a symbol table and a device table."""
    return Catalog(read_symbols_csv(symbols_path), read_devices_csv(devices_path))


# ---------------------------------------------------------------------------
# Sample catalog
# ---------------------------------------------------------------------------

_SOCKET_REQS = parse_requirements("mcb rated=16 char=B; rcd fault=30 type=A poles=2")
_LIGHT_REQS = parse_requirements("mcb rated=10 char=B; rcd fault=30 type=A poles=2")


def _material(key: str, designation: str, price: float) -> ArticleLine:
    return ArticleLine(f"{key}-mat", designation, ArticleKind.MATERIAL, 1, "Stk", price)


def _service(key: str, designation: str, hours: float) -> ArticleLine:
    return ArticleLine(f"{key}-svc", designation, ArticleKind.SERVICE, hours, "h", 65.0)


def _symbol(key, label, category, profile=None, price=0.0, hours=0.0, **kwargs):
    articles = []
    if price:
        articles.append(_material(key, label, price))
    if hours:
        articles.append(_service(key, f"Montage {label}", hours))
    return SymbolDefinition(
        key=key,
        label=label,
        category=category,
        protection=profile,
        default_articles=tuple(articles),
        **kwargs,
    )


def _dedicated(text: str, hint: str = GroupingHint.DEDICATED) -> ProtectionProfile:
    return ProtectionProfile(parse_requirements(text), True, hint)


def default_symbols() -> list[SymbolDefinition]:
    """Symbol types of a typical German residential installation."""
    socket = ProtectionProfile(_SOCKET_REQS, False, GroupingHint.SOCKET)
    light = ProtectionProfile(_LIGHT_REQS, False, GroupingHint.LIGHT)
    return [
        _symbol("grounded_socket", "Schuko-Steckdose", "socket", socket, 8.5, 0.25,
                default_attributes=SymbolAttributes("reinweiss", 30, "NYM-J 3x2,5")),
        _symbol("double_socket", "Doppelsteckdose", "socket", socket, 14.9, 0.3,
                default_attributes=SymbolAttributes("reinweiss", 30, "NYM-J 3x2,5")),
        _symbol("afdd_socket", "Steckdose Schlafraum (AFDD)", "socket",
                ProtectionProfile(
                    parse_requirements("afdd rated=16; mcb rated=16 char=B; rcd fault=30 type=A poles=2"),
                    False,
                    GroupingHint.SOCKET,
                ), 8.5, 0.25),
        _symbol("bathroom_socket", "Steckdose Bad (RCBO)", "socket",
                ProtectionProfile(
                    parse_requirements("rcbo rated=16 char=B fault=30 type=A poles=2"),
                    False,
                    GroupingHint.SOCKET,
                ), 9.9, 0.25),
        _symbol("ceiling_light", "Deckenauslass", "light", light, 4.2, 0.3,
                default_attributes=SymbolAttributes("", 250, "NYM-J 3x1,5")),
        _symbol("wall_light", "Wandauslass", "light", light, 4.2, 0.3,
                default_attributes=SymbolAttributes("", 180, "NYM-J 3x1,5")),
        _symbol("switch", "Ausschalter", "switch", None, 6.9, 0.25,
                default_attributes=SymbolAttributes("reinweiss", 105, "NYM-J 3x1,5")),
        _symbol("stove", "Herdanschlussdose", "homedevice",
                _dedicated("mcb rated=16 char=B poles=3; rcd fault=30 type=A poles=4"), 12.5, 0.5,
                default_attributes=SymbolAttributes("", 30, "NYM-J 5x2,5")),
        _symbol("dishwasher", "Geschirrspueler", "homedevice",
                _dedicated("mcb rated=16 char=B; rcd fault=30 type=A poles=2"), 8.5, 0.25),
        _symbol("washing_machine", "Waschmaschine", "homedevice",
                _dedicated("mcb rated=16 char=B; rcd fault=30 type=A poles=2"), 8.5, 0.25),
        _symbol("wallbox", "Wallbox 11 kW", "homedevice",
                _dedicated("mcb rated=20 char=B poles=3; rcd_type_b fault=30 type=B poles=4",
                           GroupingHint.SPECIAL), 890.0, 3.0,
                default_attributes=SymbolAttributes("", 120, "NYM-J 5x6")),
        _symbol("smoke_detector", "Rauchwarnmelder", "safety", None, 24.9, 0.2),
        _symbol("network_socket", "Netzwerkdose", "network", None, 19.5, 0.5),
        _symbol("distributor", "Unterverteilung", "distributor", None, 189.0, 4.0,
                is_distributor=True),
    ]


def default_devices() -> list[Device]:
    """Protective and upstream devices used by the sample catalog."""
    P, U = ProtectionRole, UpstreamRole
    return [
        Device("mcb-b10", "LSS B10", P.MCB, 1, 1, 10, characteristic="B", price=4.8),
        Device("mcb-b13", "LSS B13", P.MCB, 1, 1, 13, characteristic="B", price=4.8),
        Device("mcb-b16", "LSS B16", P.MCB, 1, 1, 16, characteristic="B", price=4.8),
        Device("mcb-b20", "LSS B20", P.MCB, 1, 1, 20, characteristic="B", price=5.2),
        Device("mcb-c16", "LSS C16", P.MCB, 1, 1, 16, characteristic="C", price=5.6),
        Device("mcb-b16-3p", "LSS B16 3-polig", P.MCB, 3, 3, 16, characteristic="B", price=18.9),
        Device("mcb-b20-3p", "LSS B20 3-polig", P.MCB, 3, 3, 20, characteristic="B", price=19.9),
        Device("mcb-b32-3p", "LSS B32 3-polig", P.MCB, 3, 3, 32, characteristic="B", price=21.5),
        Device("rcd-25-30-a-2p", "FI 25A/30mA Typ A 2-polig", P.RCD, 2, 2, 25, 30, "A", price=29.0),
        Device("rcd-40-30-a-2p", "FI 40A/30mA Typ A 2-polig", P.RCD, 2, 2, 40, 30, "A", price=32.0),
        Device("rcd-63-30-a-2p", "FI 63A/30mA Typ A 2-polig", P.RCD, 2, 2, 63, 30, "A", price=45.0),
        Device("rcd-40-30-a-4p", "FI 40A/30mA Typ A 4-polig", P.RCD, 4, 4, 40, 30, "A", price=49.0),
        Device("rcd-63-30-a-4p", "FI 63A/30mA Typ A 4-polig", P.RCD, 4, 4, 63, 30, "A", price=59.0),
        Device("rcd-40-30-b-4p", "FI 40A/30mA Typ B 4-polig", P.RCD_TYPE_B, 4, 4, 40, 30, "B", price=289.0),
        Device("rcd-63-30-b-4p", "FI 63A/30mA Typ B 4-polig", P.RCD_TYPE_B, 4, 4, 63, 30, "B", price=329.0),
        Device("rcbo-b16-30-a", "FI/LS B16 30mA", P.RCBO, 2, 2, 16, 30, "A", "B", price=39.0),
        Device("rcbo-b20-30-a", "FI/LS B20 30mA", P.RCBO, 2, 2, 20, 30, "A", "B", price=41.0),
        Device("afdd-16", "Brandschutzschalter 16A", P.AFDD, 2, 2, 16, price=119.0),
        Device("afdd-20", "Brandschutzschalter 20A", P.AFDD, 2, 2, 20, price=125.0),
        Device("sls-35", "SLS E35", U.SLS, 3, 3, 35, price=149.0),
        Device("sls-50", "SLS E50", U.SLS, 3, 3, 50, price=159.0),
        Device("sls-63", "SLS E63", U.SLS, 3, 3, 63, price=169.0),
        Device("zaehler-ehz", "Zaehlerplatz eHZ", U.METER, 4, price=89.0),
        Device("spd-t1t2", "Kombiableiter Typ 1+2", U.SPD, 4, 4, price=249.0),
        Device("hs-63", "Hauptschalter 63A", U.MAIN_SWITCH, 3, 3, 63, price=39.0),
        Device("hs-100", "Hauptschalter 100A", U.MAIN_SWITCH, 3, 3, 100, price=54.0),
    ]


def default_catalog() -> Catalog:
    """Return the sample residential catalog."""
    return Catalog(default_symbols(), default_devices())
