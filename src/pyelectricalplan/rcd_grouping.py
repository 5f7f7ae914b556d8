"""
Shared RCD grouping.

Finds circuits that can share one residual current device. A circuit is
eligible if its merged requirements contain an ``rcd`` or ``rcd_type_b``
role and no ``rcbo`` role (an RCBO carries its own RCD).

Manual assignments come first: a circuit pinned to a group id by an
``RcdGroupOverride`` joins that group regardless of compatibility. If the
pinned id names an automatic group on the same board, the circuit joins
that group; otherwise a manual group with exactly that id is formed. All
other eligible circuits group automatically by board, fault current, RCD
type and pole count, plus the dimensions enabled by the strategy.

Buckets larger than ``max_per_group`` are split into consecutive chunks.
Chunk 0 keeps the base id, later chunks get the suffix ``-n``, skipping any
id that is already used by a pinned group.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from pyelectricalplan.catalog import Catalog
from pyelectricalplan.model.constants import (
    DEFAULT_MAX_PER_RCD,
    DEFAULT_RCD_FAULT_CURRENT,
    DEFAULT_RCD_POLES,
    DEFAULT_RCD_TYPE,
    DEFAULT_SHARED_RCD_RATED_CURRENT,
    ProtectionRole,
)
from pyelectricalplan.model.parts import (
    DerivedCircuit,
    ProtectionRequirement,
    RcdGroup,
    RcdGroupingStrategy,
    RcdGroupOverride,
    ResolvedDevice,
)
from pyelectricalplan.utils.utils import format_number, natural_sort_key

logger = logging.getLogger(__name__)

AUTO_GROUP_PREFIX = "rcd-group-"


def rcd_requirement(circuit: DerivedCircuit) -> ProtectionRequirement | None:
    """
    Return the circuit's standalone RCD requirement, or None if the circuit
    cannot take part in RCD sharing.
    """
    if circuit.has_role(ProtectionRole.RCBO):
        return None
    for req in circuit.merged_requirements:
        if req.role in ProtectionRole.RCD_ROLES:
            return req
    return None


def rcd_key(
    circuit: DerivedCircuit,
    req: ProtectionRequirement,
    strategy: RcdGroupingStrategy | None = None,
) -> str:
    """Automatic grouping key of an eligible circuit."""
    fault = req.fault_current if req.fault_current is not None else DEFAULT_RCD_FAULT_CURRENT
    parts = [
        circuit.verteiler_id,
        format_number(fault),
        req.rcd_type or DEFAULT_RCD_TYPE,
        format_number(req.poles if req.poles is not None else DEFAULT_RCD_POLES),
    ]
    if strategy is not None:
        if strategy.separate_by_room:
            parts.append(circuit.room_id)
        if strategy.separate_by_rated_current:
            mcb = circuit.requirement_for(ProtectionRole.MCB)
            parts.append(format_number(mcb.rated_current if mcb else 0))
        if strategy.separate_by_type:
            parts.append(circuit.grouping_hint)
    return "::".join(parts)


# ---------------------------------------------------------------------------
# Internal data structures
# ---------------------------------------------------------------------------


@dataclass
class _Candidate:
    circuit: DerivedCircuit
    rcd_req: ProtectionRequirement


@dataclass
class _Bucket:
    """Internal group under construction."""

    base_id: str
    verteiler_id: str
    manual: list[_Candidate] = field(default_factory=list)
    auto: list[_Candidate] = field(default_factory=list)

    def ordered(self) -> list[_Candidate]:
        # Pinned circuits lead so they stay in the group id they were pinned to.
        return sorted(self.manual, key=_circuit_id) + sorted(self.auto, key=_circuit_id)


def _circuit_id(candidate: _Candidate) -> str:
    return candidate.circuit.id


def _build_group(
    group_id: str,
    members: list[_Candidate],
    has_manual: bool,
    catalog: Catalog,
) -> RcdGroup:
    max_rated = max(
        m.rcd_req.rated_current
        if m.rcd_req.rated_current is not None
        else DEFAULT_SHARED_RCD_RATED_CURRENT
        for m in members
    )
    shared_req = replace(members[0].rcd_req, rated_current=max_rated)
    device = catalog.select_device(shared_req)
    if device is None:
        logger.warning("RCD group %s: no catalog device satisfies %s", group_id, shared_req)
    return RcdGroup(
        id=group_id,
        verteiler_id=members[0].circuit.verteiler_id,
        shared_requirement=shared_req,
        shared_device=ResolvedDevice(shared_req.role, device.id) if device else None,
        circuit_ids=tuple(m.circuit.id for m in members),
        has_manual_override=has_manual,
    )


def _split(
    bucket: _Bucket, max_per_group: int, catalog: Catalog, taken: set[str]
) -> list[RcdGroup]:
    """Chunk a bucket; chunk ids skip indices whose id is already in *taken*."""
    members = bucket.ordered()
    groups = []
    index = 0
    for start in range(0, len(members), max_per_group):
        chunk = members[start : start + max_per_group]
        group_id = bucket.base_id
        if start:
            index += 1
            while f"{bucket.base_id}-{index}" in taken:
                index += 1
            group_id = f"{bucket.base_id}-{index}"
            taken.add(group_id)
        has_manual = any(m in bucket.manual for m in chunk)
        groups.append(_build_group(group_id, chunk, has_manual, catalog))
    return groups


def _collect_manual(
    overrides: Iterable[RcdGroupOverride],
    circuit_by_id: dict[str, DerivedCircuit],
) -> dict[str, tuple[str, _Candidate]]:
    """Return circuit id -> (pinned group id, candidate) for valid overrides; last override wins."""
    pinned: dict[str, tuple[str, _Candidate]] = {}
    for ov in overrides:
        if ov.rcd_group_id is None:
            pinned.pop(ov.circuit_id, None)
            continue
        circuit = circuit_by_id.get(ov.circuit_id)
        if circuit is None:
            logger.debug("Ignoring stale RCD override for circuit %s", ov.circuit_id)
            continue
        req = rcd_requirement(circuit)
        if req is None:
            logger.debug("Ignoring RCD override for ineligible circuit %s", circuit.id)
            continue
        pinned[circuit.id] = (ov.rcd_group_id, _Candidate(circuit, req))
    return pinned


def group_by_shared_rcd(
    circuits: Iterable[DerivedCircuit],
    catalog: Catalog,
    max_per_group: int = DEFAULT_MAX_PER_RCD,
    manual_overrides: Iterable[RcdGroupOverride] = (),
    strategy: RcdGroupingStrategy | None = None,
) -> list[RcdGroup]:
    """
    Identify RCD sharing opportunities across derived circuits.

    Args:
        circuits: Derived circuits of all boards.
        catalog: Catalog used to resolve each group's shared RCD.
        max_per_group: Maximum circuits per RCD (values below 1 count as 1).
        manual_overrides: Pins of circuits to group ids; stale or ineligible
            entries are ignored, a None group id means automatic.
        strategy: Additional automatic grouping dimensions.

    Returns:
        RCD groups sorted by board and id. Singleton groups are included.
    """
    max_per_group = max(int(max_per_group), 1)
    circuit_list = list(circuits)
    circuit_by_id = {c.id: c for c in circuit_list}
    pinned = _collect_manual(manual_overrides, circuit_by_id)

    buckets: dict[tuple[str, str], _Bucket] = {}

    def bucket_for(base_id: str, verteiler_id: str) -> _Bucket:
        key = (verteiler_id, base_id)
        if key not in buckets:
            buckets[key] = _Bucket(base_id, verteiler_id)
        return buckets[key]

    for circuit in circuit_list:
        if circuit.id in pinned:
            continue
        req = rcd_requirement(circuit)
        if req is None:
            continue
        base_id = AUTO_GROUP_PREFIX + rcd_key(circuit, req, strategy)
        bucket_for(base_id, circuit.verteiler_id).auto.append(_Candidate(circuit, req))

    for group_id, candidate in pinned.values():
        bucket_for(group_id, candidate.circuit.verteiler_id).manual.append(candidate)

    # A manual id reused on several boards becomes one group per board.
    boards_by_id: dict[str, list[str]] = {}
    for board, base_id in buckets:
        boards_by_id.setdefault(base_id, []).append(board)
    for (board, base_id), bucket in buckets.items():
        owners = boards_by_id[base_id]
        if len(owners) > 1 and board != min(owners):
            bucket.base_id = f"{base_id}@{board}"

    taken = {bucket.base_id for bucket in buckets.values()}
    groups = []
    for _, bucket in sorted(buckets.items()):
        groups.extend(_split(bucket, max_per_group, catalog, taken))
    return sorted(groups, key=lambda g: (g.verteiler_id, natural_sort_key(g.id)))


# ---------------------------------------------------------------------------
# Lookup helpers for consumers
# ---------------------------------------------------------------------------


def circuit_devices_without_rcd(circuit: DerivedCircuit) -> tuple[ResolvedDevice, ...]:
    """Return a circuit's devices without the RCD, which is provided by its group."""
    return tuple(
        d for d in circuit.resolved_devices if d.role not in ProtectionRole.RCD_ROLES
    )


def find_group_for_circuit(groups: Iterable[RcdGroup], circuit_id: str) -> RcdGroup | None:
    for group in groups:
        if circuit_id in group.circuit_ids:
            return group
    return None


def compatible_groups(groups: Iterable[RcdGroup], circuit: DerivedCircuit) -> list[RcdGroup]:
    """Groups a circuit can be moved to: same board, excluding its current group."""
    groups = list(groups)
    current = find_group_for_circuit(groups, circuit.id)
    return [
        g
        for g in groups
        if g.verteiler_id == circuit.verteiler_id and (current is None or g.id != current.id)
    ]


def new_manual_group_id(verteiler_id: str, token: str | int) -> str:
    """Id for a new manual group, e.g. ``"manual-V1-1712345678"``."""
    return f"manual-{verteiler_id}-{token}"
