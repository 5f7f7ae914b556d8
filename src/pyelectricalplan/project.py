"""
PlanningProject -- mutable container around the derivation engine.

The PlanningProject owns the building, boards, placed symbols, cables,
manual overrides and supply network configurations of one installation.
Every mutation replaces whole tuples of frozen records, so snapshots taken
with ``snapshot()`` never change afterwards. Derived circuits and RCD groups
are recomputed lazily after a mutation.
"""

import logging
import uuid
from dataclasses import fields, replace

from pyelectricalplan.bom import (
    bill_of_materials,
    order_list,
    protective_device_lines,
)
from pyelectricalplan.cabinet import RailEntry, board_rail_entries
from pyelectricalplan.catalog import Catalog, default_catalog
from pyelectricalplan.circuits import derive_circuits
from pyelectricalplan.exceptions import (
    NetzNotFoundError,
    SymbolNotFoundError,
    UnknownSymbolTypeError,
)
from pyelectricalplan.model.constants import DEFAULT_MAX_PER_RCD
from pyelectricalplan.model.parts import (
    Building,
    Cable,
    CircuitGroupOverride,
    DerivedCircuit,
    DistributionBoard,
    NetzKonfiguration,
    PlacedSymbol,
    ProtectionRequirement,
    RcdGroup,
    RcdGroupingStrategy,
    RcdGroupOverride,
    ResolvedDevice,
    Selection,
    UpstreamDevice,
)
from pyelectricalplan.model.state import ProjectState, empty_building
from pyelectricalplan.rcd_grouping import group_by_shared_rcd
from pyelectricalplan.upstream import (
    find_all_netze_for_verteiler,
    find_netz_for_verteiler,
    resolve_upstream_devices,
)
from pyelectricalplan.utils.export_utils import (
    circuit_list_rows,
    export_bom_workbook,
    export_circuit_list,
)

logger = logging.getLogger(__name__)

_SYMBOL_FIELDS = {f.name for f in fields(PlacedSymbol)}


def _new_id() -> str:
    return uuid.uuid4().hex


class PlanningProject:
    """Mutable planning project for one building installation.

    PlanningProject is the only mutable object of the library. It holds the
    editable state and exposes the derived circuits, RCD groups and upstream
    chains as read-only values, recomputed after each mutation.

    Example::

        project = PlanningProject(building=my_building)
        project.add_board("V1", "Hauptverteiler")
        s1 = project.add_symbol("grounded_socket", "r-wohn", verteiler_id="V1")
        s2 = project.add_symbol("ceiling_light", "r-wohn", verteiler_id="V1")
        for circuit in project.circuits():
            print(circuit.id, circuit.symbol_ids)
        project.export_bom_excel("out/stueckliste.xlsx")

    Args:
        catalog: Symbol and device catalog (defaults to the sample catalog).
        building: Building/room tree.
        max_per_rcd: Maximum circuits per shared RCD.
        strategy: Extra dimensions for automatic RCD grouping.
    """

    def __init__(
        self,
        catalog: Catalog | None = None,
        building: Building | None = None,
        max_per_rcd: int = DEFAULT_MAX_PER_RCD,
        strategy: RcdGroupingStrategy | None = None,
    ):
        self.catalog = catalog or default_catalog()
        self._state = ProjectState(
            building=building or empty_building(),
            max_per_rcd=max_per_rcd,
            rcd_strategy=strategy or RcdGroupingStrategy(),
        )
        self._revision = 0
        self._circuits: tuple[int, list[DerivedCircuit]] | None = None
        self._rcd_groups: tuple[int, list[RcdGroup]] | None = None

    @classmethod
    def from_state(
        cls, state: ProjectState, catalog: Catalog | None = None
    ) -> "PlanningProject":
        project = cls(catalog=catalog)
        project._state = state
        return project

    @classmethod
    def from_dict(cls, data: dict, catalog: Catalog | None = None) -> "PlanningProject":
        """Load a project from persisted state of any known schema version."""
        return cls.from_state(ProjectState.from_dict(data), catalog)

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def state(self) -> ProjectState:
        return self._state

    @property
    def revision(self) -> int:
        """Counter incremented by every mutation except selection changes."""
        return self._revision

    def snapshot(self) -> ProjectState:
        """Return the current immutable state."""
        return self._state

    def to_dict(self) -> dict:
        return self._state.to_dict()

    def _commit(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        self._revision += 1

    def find_symbol(self, symbol_id: str) -> PlacedSymbol | None:
        for symbol in self._state.placed_symbols:
            if symbol.id == symbol_id:
                return symbol
        return None

    def _require_symbol(self, symbol_id: str) -> PlacedSymbol:
        symbol = self.find_symbol(symbol_id)
        if symbol is None:
            raise SymbolNotFoundError(symbol_id)
        return symbol

    def _require_netz(self, netz_id: str) -> NetzKonfiguration:
        for netz in self._state.netz_konfigurationen:
            if netz.id == netz_id:
                return netz
        raise NetzNotFoundError(netz_id)

    def _replace_symbol(self, updated: PlacedSymbol) -> None:
        self._commit(
            placed_symbols=tuple(
                updated if s.id == updated.id else s for s in self._state.placed_symbols
            )
        )

    # ------------------------------------------------------------------
    # Building and boards
    # ------------------------------------------------------------------

    def set_building(self, building: Building) -> None:
        self._commit(building=building)

    def add_board(self, board_id: str, name: str = "") -> DistributionBoard:
        """Register a distribution board; re-adding an id renames it."""
        board = DistributionBoard(board_id, name or board_id)
        others = tuple(b for b in self._state.boards if b.id != board_id)
        self._commit(boards=others + (board,))
        return board

    def set_max_per_rcd(self, max_per_rcd: int) -> None:
        self._commit(max_per_rcd=max_per_rcd)

    def set_rcd_strategy(self, strategy: RcdGroupingStrategy) -> None:
        self._commit(rcd_strategy=strategy)

    # ------------------------------------------------------------------
    # Placed symbols
    # ------------------------------------------------------------------

    def add_symbol(
        self,
        symbol_key: str,
        room_id: str,
        x: float = 0.0,
        y: float = 0.0,
        id: str | None = None,
        verteiler_id: str | None = None,
    ) -> PlacedSymbol:
        """Place a new symbol of a catalog type.

        The new symbol copies the type's default attributes, KNX properties
        and article lines (with fresh ids) and becomes the selection.

        Raises:
            UnknownSymbolTypeError: If *symbol_key* is not in the catalog.
        """
        definition = self.catalog.find_symbol(symbol_key)
        if definition is None:
            raise UnknownSymbolTypeError(symbol_key)
        symbol = PlacedSymbol(
            id=id or _new_id(),
            symbol_key=symbol_key,
            room_id=room_id,
            x=x,
            y=y,
            attributes=definition.default_attributes,
            knx=definition.default_knx,
            articles=tuple(replace(a, id=_new_id()) for a in definition.default_articles),
            verteiler_id=verteiler_id,
        )
        self._commit(
            placed_symbols=self._state.placed_symbols + (symbol,),
            selection=Selection.symbol(symbol.id),
        )
        return symbol

    def update_symbol(self, symbol_id: str, **patch) -> PlacedSymbol:
        """Replace fields of a placed symbol.

        Raises:
            SymbolNotFoundError: If the symbol does not exist.
            TypeError: If *patch* names an unknown field or tries to change the id.
        """
        symbol = self._require_symbol(symbol_id)
        if "id" in patch:
            raise TypeError("The id of a placed symbol cannot be changed")
        unknown = set(patch) - _SYMBOL_FIELDS
        if unknown:
            raise TypeError(f"Unknown placed symbol fields: {sorted(unknown)}")
        if patch.get("protection_overrides") is not None:
            patch["protection_overrides"] = tuple(patch["protection_overrides"])
        if "articles" in patch:
            patch["articles"] = tuple(patch["articles"])
        updated = replace(symbol, **patch)
        self._replace_symbol(updated)
        return updated

    def move_symbol(self, symbol_id: str, x: float, y: float) -> PlacedSymbol:
        return self.update_symbol(symbol_id, x=x, y=y)

    def set_protection_overrides(
        self, symbol_id: str, requirements: list[ProtectionRequirement] | None
    ) -> PlacedSymbol:
        return self.update_symbol(symbol_id, protection_overrides=requirements)

    def remove_symbol(self, symbol_id: str) -> None:
        """Remove a symbol, detach it from its cables and drop empty cables.

        The selection is cleared if it pointed at the symbol or at a cable
        that was dropped.
        """
        self._require_symbol(symbol_id)
        cables = []
        dropped = set()
        for cable in self._state.cables:
            if symbol_id in cable.symbol_ids:
                remaining = tuple(s for s in cable.symbol_ids if s != symbol_id)
                if not remaining:
                    dropped.add(cable.id)
                    continue
                cable = replace(cable, symbol_ids=remaining)
            cables.append(cable)

        selection = self._state.selection
        if (selection.kind == "symbol" and selection.target_id == symbol_id) or (
            selection.kind == "cable" and selection.target_id in dropped
        ):
            selection = Selection.nothing()

        self._commit(
            placed_symbols=tuple(s for s in self._state.placed_symbols if s.id != symbol_id),
            cables=tuple(cables),
            selection=selection,
        )

    # ------------------------------------------------------------------
    # Cables
    # ------------------------------------------------------------------

    def add_cable(
        self,
        symbol_ids: list[str],
        cable_type: str = "",
        length: float | None = None,
        id: str | None = None,
    ) -> Cable:
        for symbol_id in symbol_ids:
            self._require_symbol(symbol_id)
        cable = Cable(id or _new_id(), cable_type, tuple(symbol_ids), length)
        self._commit(cables=self._state.cables + (cable,))
        return cable

    def remove_cable(self, cable_id: str) -> None:
        selection = self._state.selection
        if selection.kind == "cable" and selection.target_id == cable_id:
            selection = Selection.nothing()
        self._commit(
            cables=tuple(c for c in self._state.cables if c.id != cable_id),
            selection=selection,
        )

    # ------------------------------------------------------------------
    # Overrides
    # ------------------------------------------------------------------

    def set_circuit_group_override(self, group_id: str, **changes) -> CircuitGroupOverride:
        """Merge *changes* into the override of circuit *group_id*.

        Accepted keys are ``name``, ``verteiler_id`` and ``device_overrides``.
        Passing ``device_overrides=None`` returns the circuit to automatic
        device selection.

        Raises:
            UnknownDeviceError: If a manual device is missing from the catalog.
        """
        current = next(
            (o for o in self._state.circuit_group_overrides if o.group_id == group_id),
            CircuitGroupOverride(group_id),
        )
        if changes.get("device_overrides") is not None:
            changes["device_overrides"] = tuple(
                d if isinstance(d, ResolvedDevice) else ResolvedDevice(**d)
                for d in changes["device_overrides"]
            )
            for device in changes["device_overrides"]:
                self.catalog.require_device(device.device_id, device.role)
        updated = replace(current, **changes)
        others = tuple(
            o for o in self._state.circuit_group_overrides if o.group_id != group_id
        )
        self._commit(circuit_group_overrides=others + (updated,))
        return updated

    def clear_circuit_group_override(self, group_id: str) -> None:
        self._commit(
            circuit_group_overrides=tuple(
                o for o in self._state.circuit_group_overrides if o.group_id != group_id
            )
        )

    def set_rcd_group_override(self, circuit_id: str, rcd_group_id: str | None) -> None:
        """Pin *circuit_id* to an RCD group, or return it to automatic grouping."""
        others = tuple(o for o in self._state.rcd_overrides if o.circuit_id != circuit_id)
        if rcd_group_id is None:
            self._commit(rcd_overrides=others)
        else:
            self._commit(rcd_overrides=others + (RcdGroupOverride(circuit_id, rcd_group_id),))

    # ------------------------------------------------------------------
    # Network configurations
    # ------------------------------------------------------------------

    def add_netz(self, netz: NetzKonfiguration) -> NetzKonfiguration:
        """Add or replace a network configuration."""
        others = tuple(n for n in self._state.netz_konfigurationen if n.id != netz.id)
        self._commit(netz_konfigurationen=others + (netz,))
        return netz

    def update_netz(self, netz_id: str, **changes) -> NetzKonfiguration:
        updated = replace(self._require_netz(netz_id), **changes)
        self._commit(
            netz_konfigurationen=tuple(
                updated if n.id == netz_id else n for n in self._state.netz_konfigurationen
            )
        )
        return updated

    def remove_netz(self, netz_id: str) -> None:
        self._require_netz(netz_id)
        self._commit(
            netz_konfigurationen=tuple(
                n for n in self._state.netz_konfigurationen if n.id != netz_id
            )
        )

    def link_verteiler_to_netz(self, netz_id: str, verteiler_id: str) -> NetzKonfiguration:
        netz = self._require_netz(netz_id)
        if verteiler_id in netz.verteiler_ids:
            return netz
        return self.update_netz(netz_id, verteiler_ids=netz.verteiler_ids + (verteiler_id,))

    def unlink_verteiler_from_netz(
        self, netz_id: str, verteiler_id: str
    ) -> NetzKonfiguration:
        netz = self._require_netz(netz_id)
        return self.update_netz(
            netz_id, verteiler_ids=tuple(v for v in netz.verteiler_ids if v != verteiler_id)
        )

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, selection: Selection) -> None:
        # Selection does not feed derivation; the revision stays put.
        self._state = replace(self._state, selection=selection)

    @property
    def selection(self) -> Selection:
        return self._state.selection

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def circuits(self) -> list[DerivedCircuit]:
        """Derived circuits of the current state."""
        if self._circuits is None or self._circuits[0] != self._revision:
            s = self._state
            derived = derive_circuits(
                s.placed_symbols,
                self.catalog,
                building=s.building,
                circuit_group_overrides=s.circuit_group_overrides,
                cables=s.cables,
            )
            logger.debug("Derived %d circuits at revision %d", len(derived), self._revision)
            self._circuits = (self._revision, derived)
        return list(self._circuits[1])

    def rcd_groups(self) -> list[RcdGroup]:
        """RCD groups of the current circuits."""
        if self._rcd_groups is None or self._rcd_groups[0] != self._revision:
            s = self._state
            groups = group_by_shared_rcd(
                self.circuits(),
                self.catalog,
                max_per_group=s.max_per_rcd,
                manual_overrides=s.rcd_overrides,
                strategy=s.rcd_strategy,
            )
            self._rcd_groups = (self._revision, groups)
        return list(self._rcd_groups[1])

    def upstream_devices(self, verteiler_id: str) -> list[UpstreamDevice]:
        """Upstream chain of the board's primary feed; empty if none feeds it."""
        netz = find_netz_for_verteiler(self._state.netz_konfigurationen, verteiler_id)
        if netz is None:
            return []
        return resolve_upstream_devices(netz, self.catalog)

    def all_upstream_chains(
        self, verteiler_id: str
    ) -> list[tuple[NetzKonfiguration, list[UpstreamDevice]]]:
        """Every feed of the board with its resolved chain."""
        return [
            (netz, resolve_upstream_devices(netz, self.catalog))
            for netz in find_all_netze_for_verteiler(
                self._state.netz_konfigurationen, verteiler_id
            )
        ]

    def rail_entries(self, verteiler_id: str) -> list[RailEntry]:
        netz = find_netz_for_verteiler(self._state.netz_konfigurationen, verteiler_id)
        return board_rail_entries(
            verteiler_id, self.circuits(), self.rcd_groups(), self.catalog, netz
        )

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------

    def bill_of_materials(self):
        return bill_of_materials(self._state.placed_symbols)

    def order_list(self):
        return order_list(self._state.placed_symbols)

    def export_circuit_list_csv(self, path: str) -> "PlanningProject":
        """Write the circuit list (one row per derived circuit) to CSV."""
        rows = circuit_list_rows(
            self.circuits(), self.rcd_groups(), self.catalog, self._state.building
        )
        export_circuit_list(path, rows)
        return self

    def export_bom_excel(self, path: str) -> "PlanningProject":
        """Write the bill of materials and device list to an Excel workbook."""
        device_lines = protective_device_lines(
            self.circuits(), self.rcd_groups(), self.catalog
        )
        roles = {d.id: d.role for d in self.catalog.devices}
        export_bom_workbook(path, self.bill_of_materials(), device_lines, roles)
        return self
