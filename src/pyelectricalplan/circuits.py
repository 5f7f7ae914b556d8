"""
Circuit derivation.

Groups placed symbols into circuits per distribution board and resolves the
protective devices each circuit needs. ``derive_circuits`` is a pure
function of its inputs: the same snapshot always yields value-equal
circuits, and circuit ids are derived from the grouping key rather than
from input order, so unrelated edits never renumber existing circuits.

Grouping rules:
    - symbols without protection requirements get no circuit
    - ``dedicated_circuit`` symbols always get a singleton circuit
    - symbols with ``circuit_group_id`` join that named group, provided they
      sit on the group's board; a dedicated circuit's id is never joined
    - all other symbols group by (board, grouping hint, requirement signature)

Names are ``"<hint label> <room>"``; names repeated on one board are
numbered in id order.

Requirements are merged per role: numeric fields take the maximum, and
non-numeric fields must be identical. Automatic grouping keys on every
non-numeric field, so disagreements can only arise inside an explicit
group; such circuits list the offending roles in ``conflicts``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from pyelectricalplan.catalog import Catalog
from pyelectricalplan.exceptions import IncompatibleRequirementError
from pyelectricalplan.model.constants import (
    HINT_LABELS,
    UNASSIGNED_VERTEILER,
    GroupingHint,
)
from pyelectricalplan.model.parts import (
    Building,
    Cable,
    CircuitGroupOverride,
    DerivedCircuit,
    PlacedSymbol,
    ProtectionProfile,
    ProtectionRequirement,
    ResolvedDevice,
    SymbolDefinition,
)
from pyelectricalplan.utils.utils import key_digest, natural_sort_key

logger = logging.getLogger(__name__)

_IDENTITY_FIELDS = ("characteristic", "rcd_type", "poles")


# ---------------------------------------------------------------------------
# Requirement helpers
# ---------------------------------------------------------------------------


def effective_verteiler(symbol: PlacedSymbol) -> str:
    """Return the symbol's board, or the unassigned bucket."""
    return symbol.verteiler_id or UNASSIGNED_VERTEILER


def effective_requirements(
    symbol: PlacedSymbol, definition: SymbolDefinition
) -> tuple[ProtectionRequirement, ...]:
    """Instance-level overrides if present, else the catalog profile's requirements."""
    if symbol.protection_overrides is not None:
        return tuple(symbol.protection_overrides)
    if definition.protection is None:
        return ()
    return definition.protection.requirements


def requirement_signature(requirements: Iterable[ProtectionRequirement]) -> tuple:
    """Order-independent signature of a requirement list."""
    return tuple(sorted({r.signature() for r in requirements}, key=repr))


def _max_opt(a: float | None, b: float | None) -> float | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def merge_requirements(
    requirements: Iterable[ProtectionRequirement], strict: bool = False
) -> tuple[tuple[ProtectionRequirement, ...], tuple[str, ...]]:
    """
    Merge requirements into one requirement per role.

    Numeric fields (rated current, fault current) take the maximum. The
    non-numeric fields (characteristic, RCD type, poles) must be identical;
    on disagreement the first value is kept and the role is reported.

    Args:
        requirements: Requirements of all circuit members, in member order.
        strict: Raise instead of reporting disagreements.

    Returns:
        Tuple of (merged requirements in first-seen role order, conflicting roles).

    Raises:
        IncompatibleRequirementError: If *strict* and a non-numeric field differs.
    """
    by_role: dict[str, ProtectionRequirement] = {}
    conflicts: list[str] = []
    for req in requirements:
        current = by_role.get(req.role)
        if current is None:
            by_role[req.role] = req
            continue
        for name in _IDENTITY_FIELDS:
            a, b = getattr(current, name), getattr(req, name)
            if a == b:
                continue
            if strict:
                raise IncompatibleRequirementError(req.role, name, [a, b])
            if req.role not in conflicts:
                conflicts.append(req.role)
        by_role[req.role] = replace(
            current,
            rated_current=_max_opt(current.rated_current, req.rated_current),
            fault_current=_max_opt(current.fault_current, req.fault_current),
        )
    return tuple(by_role.values()), tuple(conflicts)


# ---------------------------------------------------------------------------
# Internal data structures
# ---------------------------------------------------------------------------


@dataclass
class _Member:
    symbol: PlacedSymbol
    requirements: tuple[ProtectionRequirement, ...]
    profile: ProtectionProfile


@dataclass
class _Bucket:
    """Internal candidate circuit collected during partitioning."""

    circuit_id: str
    verteiler_id: str
    grouping_hint: str
    members: list[_Member] = field(default_factory=list)


def _candidates(
    placed_symbols: Iterable[PlacedSymbol], catalog: Catalog
) -> list[_Member]:
    members = []
    for symbol in sorted(placed_symbols, key=lambda s: s.id):
        definition = catalog.find_symbol(symbol.symbol_key)
        if definition is None:
            logger.warning(
                "Skipping symbol %s: unknown symbol type '%s'",
                symbol.id,
                symbol.symbol_key,
            )
            continue
        requirements = effective_requirements(symbol, definition)
        if not requirements:
            continue
        profile = definition.protection or ProtectionProfile(
            grouping_hint=GroupingHint.SPECIAL
        )
        members.append(_Member(symbol, requirements, profile))
    return members


def _auto_key(member: _Member) -> tuple[str, tuple]:
    board = effective_verteiler(member.symbol)
    hint = member.profile.grouping_hint
    if member.profile.dedicated_circuit:
        return f"sk-{board}-{member.symbol.id}", (board, hint)
    signature = requirement_signature(member.requirements)
    digest = key_digest((board, hint, signature))
    return f"sk-{board}-{hint}-{digest}", (board, hint)


def _partition(members: list[_Member]) -> list[_Bucket]:
    buckets: dict[str, _Bucket] = {}
    auto_keys = {m.symbol.id: _auto_key(m) for m in members}

    # Dedicated circuit ids are never joinable. An explicit id that equals an
    # automatic circuit id is anchored on that circuit's board; any other
    # explicit group is anchored on its lowest-id member's board.
    dedicated_ids: set[str] = set()
    group_boards: dict[str, str] = {}
    for member in members:
        circuit_id, (board, _) = auto_keys[member.symbol.id]
        if member.profile.dedicated_circuit:
            dedicated_ids.add(circuit_id)
        else:
            group_boards[circuit_id] = board
    for member in members:
        gid = member.symbol.circuit_group_id
        if gid and not member.profile.dedicated_circuit:
            group_boards.setdefault(gid, effective_verteiler(member.symbol))

    for member in members:
        board = effective_verteiler(member.symbol)
        gid = member.symbol.circuit_group_id
        if member.profile.dedicated_circuit:
            if gid:
                logger.debug(
                    "Symbol %s is dedicated; ignoring circuit group '%s'",
                    member.symbol.id,
                    gid,
                )
            gid = None
        elif gid in dedicated_ids:
            logger.debug(
                "Symbol %s cannot join dedicated circuit '%s'", member.symbol.id, gid
            )
            gid = None
        elif gid and group_boards[gid] != board:
            logger.debug(
                "Symbol %s on board '%s' cannot join group '%s' on board '%s'",
                member.symbol.id,
                board,
                gid,
                group_boards[gid],
            )
            gid = None

        if gid:
            circuit_id, hint = gid, member.profile.grouping_hint
        else:
            circuit_id, (board, hint) = auto_keys[member.symbol.id]

        bucket = buckets.get(circuit_id)
        if bucket is None:
            bucket = _Bucket(circuit_id, board, hint)
            buckets[circuit_id] = bucket
        bucket.members.append(member)
    return list(buckets.values())


# ---------------------------------------------------------------------------
# Circuit assembly
# ---------------------------------------------------------------------------


def _circuit_name(bucket: _Bucket, building: Building | None) -> str:
    label = HINT_LABELS.get(bucket.grouping_hint, bucket.grouping_hint)
    room_ids = sorted({m.symbol.room_id for m in bucket.members})
    if len(room_ids) > 1:
        return f"{label} ({len(room_ids)} Raeume)"
    room = building.room_name(room_ids[0]) if building else room_ids[0]
    return f"{label} {room}"


def _number_duplicate_names(circuits: list[DerivedCircuit]) -> list[DerivedCircuit]:
    """Suffix ``" 1"``, ``" 2"``, ... to names repeated on one board, in id order."""
    by_name: dict[tuple[str, str], list[str]] = {}
    for c in circuits:
        by_name.setdefault((c.verteiler_id, c.name), []).append(c.id)

    numbered = []
    for c in circuits:
        ids = by_name[(c.verteiler_id, c.name)]
        if len(ids) > 1:
            ids = sorted(ids, key=natural_sort_key)
            c = replace(c, name=f"{c.name} {ids.index(c.id) + 1}")
        numbered.append(c)
    return numbered


def _resolve_devices(
    circuit_id: str,
    merged: tuple[ProtectionRequirement, ...],
    override: CircuitGroupOverride | None,
    catalog: Catalog,
) -> tuple[tuple[ResolvedDevice, ...], bool]:
    if override is not None and override.device_overrides is not None:
        kept = []
        for device in override.device_overrides:
            if catalog.find_device(device.device_id) is None:
                logger.warning(
                    "Circuit %s: dropping unknown device '%s' from manual selection",
                    circuit_id,
                    device.device_id,
                )
                continue
            kept.append(device)
        return tuple(kept), True
    return catalog.resolve_devices(merged), False


def _build_circuit(
    bucket: _Bucket,
    catalog: Catalog,
    building: Building | None,
    override: CircuitGroupOverride | None,
    cables: list[Cable],
) -> DerivedCircuit:
    all_requirements = [req for m in bucket.members for req in m.requirements]
    merged, conflicts = merge_requirements(all_requirements)
    if conflicts:
        logger.warning(
            "Circuit %s has conflicting requirements for roles %s",
            bucket.circuit_id,
            ", ".join(conflicts),
        )

    devices, manual = _resolve_devices(bucket.circuit_id, merged, override, catalog)

    symbol_ids = tuple(m.symbol.id for m in bucket.members)
    member_set = set(symbol_ids)
    cable_ids = tuple(
        sorted(c.id for c in cables if member_set.intersection(c.symbol_ids))
    )

    name = _circuit_name(bucket, building)
    verteiler_id = bucket.verteiler_id
    if override is not None:
        name = override.name or name
        verteiler_id = override.verteiler_id or verteiler_id

    return DerivedCircuit(
        id=bucket.circuit_id,
        name=name,
        verteiler_id=verteiler_id,
        room_id=bucket.members[0].symbol.room_id,
        grouping_hint=bucket.grouping_hint,
        symbol_ids=symbol_ids,
        merged_requirements=merged,
        resolved_devices=devices,
        cable_ids=cable_ids,
        manual_devices=manual,
        conflicts=conflicts,
    )


def derive_circuits(
    placed_symbols: Iterable[PlacedSymbol],
    catalog: Catalog,
    building: Building | None = None,
    circuit_group_overrides: Iterable[CircuitGroupOverride] = (),
    cables: Iterable[Cable] = (),
) -> list[DerivedCircuit]:
    """
    Derive circuits from placed symbols.

    Args:
        placed_symbols: All placed symbols of the project.
        catalog: Symbol and device catalog.
        building: Room tree, used for circuit names only.
        circuit_group_overrides: Manual name/board/device overrides keyed by
            circuit id. Overrides for ids that no longer exist are ignored.
        cables: Cables; each circuit lists those touching its members.

    Returns:
        Circuits sorted by board and id. Symbols with unknown types or without
        requirements are left out.

    Example::

        circuits = derive_circuits(symbols, default_catalog())
        for c in circuits:
            print(c.id, c.symbol_ids, c.resolved_devices)
    """
    overrides = {o.group_id: o for o in circuit_group_overrides}
    cable_list = list(cables)

    circuits = [
        _build_circuit(
            bucket, catalog, building, overrides.get(bucket.circuit_id), cable_list
        )
        for bucket in _partition(_candidates(placed_symbols, catalog))
    ]
    circuits.sort(key=lambda c: (c.verteiler_id, natural_sort_key(c.id)))
    return _number_duplicate_names(circuits)


def circuit_for_symbol(
    circuits: Iterable[DerivedCircuit], symbol_id: str
) -> DerivedCircuit | None:
    """Return the circuit containing *symbol_id*, or None."""
    for circuit in circuits:
        if symbol_id in circuit.symbol_ids:
            return circuit
    return None
