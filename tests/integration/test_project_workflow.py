"""
End-to-end tests for PlanningProject.

Builds a small house, places symbols, applies overrides and network
configurations, and checks the derived circuits, RCD groups, upstream chains
and exports.
"""

import csv

import pytest
from openpyxl import load_workbook

from pyelectricalplan import (
    FuseSlot,
    MeterSlot,
    NetzKonfiguration,
    NetzNotFoundError,
    PlanningProject,
    ProtectionRequirement,
    ResolvedDevice,
    Selection,
    SymbolNotFoundError,
    UnknownDeviceError,
    UnknownSymbolTypeError,
    UpstreamSlot,
)


@pytest.fixture
def project(building):
    p = PlanningProject(building=building)
    p.add_board("V1", "Hauptverteiler")
    p.add_board("V2", "Unterverteilung OG")
    return p


@pytest.fixture
def furnished(project):
    """Living room sockets and lights, kitchen appliances, bathroom on V2."""
    project.add_symbol("grounded_socket", "r-wohn", id="s1", verteiler_id="V1")
    project.add_symbol("double_socket", "r-wohn", id="s2", verteiler_id="V1")
    project.add_symbol("ceiling_light", "r-wohn", id="l1", verteiler_id="V1")
    project.add_symbol("switch", "r-wohn", id="sw1", verteiler_id="V1")
    project.add_symbol("dishwasher", "r-kueche", id="d1", verteiler_id="V1")
    project.add_symbol("stove", "r-kueche", id="h1", verteiler_id="V1")
    project.add_symbol("bathroom_socket", "r-bad", id="b1", verteiler_id="V2")
    project.add_symbol("ceiling_light", "r-bad", id="l2", verteiler_id="V2")
    return project


def _circuit_of(project, symbol_id):
    return next(c for c in project.circuits() if symbol_id in c.symbol_ids)


class TestSymbols:
    def test_add_inherits_defaults(self, project, catalog):
        symbol = project.add_symbol("grounded_socket", "r-wohn", 10, 20)
        definition = catalog.find_symbol("grounded_socket")
        assert symbol.attributes == definition.default_attributes
        assert [a.designation for a in symbol.articles] == [
            a.designation for a in definition.default_articles
        ]
        assert {a.id for a in symbol.articles}.isdisjoint(
            a.id for a in definition.default_articles
        )
        assert project.selection == Selection.symbol(symbol.id)

    def test_unknown_type(self, project):
        with pytest.raises(UnknownSymbolTypeError):
            project.add_symbol("sauna_heater", "r-wohn")

    def test_update_and_move(self, furnished):
        furnished.move_symbol("s1", 5, 6)
        symbol = furnished.update_symbol("s1", verteiler_id="V2")
        assert (symbol.x, symbol.y) == (5, 6)
        assert _circuit_of(furnished, "s1").verteiler_id == "V2"

    def test_update_rejects_unknown_field_and_id(self, furnished):
        with pytest.raises(TypeError):
            furnished.update_symbol("s1", colour="red")
        with pytest.raises(TypeError):
            furnished.update_symbol("s1", id="s9")

    def test_missing_symbol(self, furnished):
        with pytest.raises(SymbolNotFoundError):
            furnished.update_symbol("nope", x=1)
        with pytest.raises(SymbolNotFoundError):
            furnished.remove_symbol("nope")

    def test_protection_override_splits_circuit(self, furnished):
        furnished.set_protection_overrides(
            "s2",
            [
                ProtectionRequirement("mcb", rated_current=20, characteristic="B"),
                ProtectionRequirement("rcd", fault_current=30, rcd_type="A", poles=2),
            ],
        )
        assert _circuit_of(furnished, "s1").symbol_ids == ("s1",)
        assert _circuit_of(furnished, "s2").symbol_ids == ("s2",)


class TestDerivation:
    def test_coverage(self, furnished):
        """Every symbol with requirements is in exactly one circuit; the switch in none."""
        members = [sid for c in furnished.circuits() for sid in c.symbol_ids]
        assert sorted(members) == sorted(["s1", "s2", "l1", "d1", "h1", "b1", "l2"])
        assert "sw1" not in members

    def test_dedicated_isolation(self, furnished):
        assert _circuit_of(furnished, "d1").symbol_ids == ("d1",)
        assert _circuit_of(furnished, "h1").symbol_ids == ("h1",)

    def test_rcbo_exclusion(self, furnished):
        rcbo_circuit = _circuit_of(furnished, "b1").id
        for group in furnished.rcd_groups():
            assert rcbo_circuit not in group.circuit_ids

    def test_board_isolation(self, furnished):
        by_id = {c.id: c for c in furnished.circuits()}
        for group in furnished.rcd_groups():
            assert {by_id[cid].verteiler_id for cid in group.circuit_ids} == {group.verteiler_id}

    def test_memoised_until_mutation(self, furnished):
        first = furnished.circuits()
        assert furnished.circuits() == first
        revision = furnished.revision
        furnished.move_symbol("s1", 1, 1)
        assert furnished.revision == revision + 1
        assert furnished.circuits() == first

    def test_selection_keeps_memoised_results(self, furnished):
        circuits = furnished.circuits()
        groups = furnished.rcd_groups()
        revision = furnished.revision
        furnished.select(Selection.symbol("s1"))
        assert furnished.selection == Selection.symbol("s1")
        assert furnished.revision == revision
        # Cached lists are copied on return, but hold the same records.
        assert all(a is b for a, b in zip(furnished.circuits(), circuits, strict=True))
        assert all(a is b for a, b in zip(furnished.rcd_groups(), groups, strict=True))

    def test_group_size_bound(self, furnished):
        furnished.set_max_per_rcd(1)
        assert all(len(g.circuit_ids) == 1 for g in furnished.rcd_groups())


class TestRemoval:
    def test_remove_dedicated_member_removes_circuit(self, furnished):
        dishwasher = _circuit_of(furnished, "d1").id
        furnished.remove_symbol("d1")
        assert dishwasher not in [c.id for c in furnished.circuits()]

    def test_remove_member_keeps_other_ids(self, furnished):
        before = {c.id: c.symbol_ids for c in furnished.circuits()}
        socket = _circuit_of(furnished, "s1").id
        furnished.remove_symbol("s2")
        after = {c.id: c.symbol_ids for c in furnished.circuits()}
        assert set(after) == set(before)
        assert after[socket] == ("s1",)
        for cid in before:
            if cid != socket:
                assert after[cid] == before[cid]

    def test_cable_cascade(self, furnished):
        furnished.add_cable(["s1", "s2"], "NYM-J 3x2,5", id="c1")
        furnished.add_cable(["d1"], id="c2")
        furnished.select(Selection.cable("c2"))
        furnished.remove_symbol("s1")
        furnished.remove_symbol("d1")
        cables = {c.id: c for c in furnished.state.cables}
        assert cables["c1"].symbol_ids == ("s2",)
        assert "c2" not in cables
        assert furnished.selection == Selection.nothing()

    def test_remove_selected_symbol_clears_selection(self, furnished):
        furnished.select(Selection.symbol("l1"))
        furnished.remove_symbol("l1")
        assert furnished.selection == Selection.nothing()

    def test_add_cable_unknown_symbol(self, furnished):
        with pytest.raises(SymbolNotFoundError):
            furnished.add_cable(["s1", "ghost"])

    def test_remove_cable(self, furnished):
        furnished.add_cable(["s1"], id="c1")
        assert _circuit_of(furnished, "s1").cable_ids == ("c1",)
        furnished.remove_cable("c1")
        assert _circuit_of(furnished, "s1").cable_ids == ()


class TestOverrides:
    def test_manual_rcd_pin(self, furnished):
        """Pinning the dishwasher to a manual group leaves the others automatic."""
        dishwasher = _circuit_of(furnished, "d1").id
        furnished.set_rcd_group_override(dishwasher, "manual-V1-123")
        groups = {g.id: g for g in furnished.rcd_groups()}
        assert groups["manual-V1-123"].circuit_ids == (dishwasher,)
        auto = groups["rcd-group-V1::30::A::2"]
        assert dishwasher not in auto.circuit_ids
        assert _circuit_of(furnished, "s1").id in auto.circuit_ids

        furnished.set_rcd_group_override(dishwasher, None)
        groups = {g.id: g for g in furnished.rcd_groups()}
        assert "manual-V1-123" not in groups
        assert dishwasher in groups["rcd-group-V1::30::A::2"].circuit_ids

    def test_circuit_override_merge_and_reset(self, furnished):
        cid = _circuit_of(furnished, "s1").id
        furnished.set_circuit_group_override(cid, name="Steckdosen Sofa")
        furnished.set_circuit_group_override(
            cid, device_overrides=[{"role": "mcb", "device_id": "mcb-c16"}]
        )
        circuit = _circuit_of(furnished, "s1")
        assert circuit.name == "Steckdosen Sofa"
        assert circuit.manual_devices
        assert circuit.resolved_devices == (ResolvedDevice("mcb", "mcb-c16"),)

        furnished.set_circuit_group_override(cid, device_overrides=None)
        circuit = _circuit_of(furnished, "s1")
        assert circuit.name == "Steckdosen Sofa"
        assert not circuit.manual_devices

        furnished.clear_circuit_group_override(cid)
        assert _circuit_of(furnished, "s1").name == "Steckdosen Wohnzimmer"

    def test_manual_device_must_exist(self, furnished):
        cid = _circuit_of(furnished, "s1").id
        revision = furnished.revision
        with pytest.raises(UnknownDeviceError):
            furnished.set_circuit_group_override(
                cid, device_overrides=[ResolvedDevice("mcb", "mcb-x99")]
            )
        with pytest.raises(UnknownDeviceError):
            furnished.set_circuit_group_override(
                cid, device_overrides=[ResolvedDevice("rcd", "mcb-c16")]
            )
        assert furnished.revision == revision
        assert furnished.state.circuit_group_overrides == ()


class TestNetworks:
    def test_primary_and_all_chains(self, furnished):
        furnished.add_netz(
            NetzKonfiguration(
                "n1",
                "Hausanschluss",
                zaehlervorsicherung=FuseSlot(False),
                zaehler=MeterSlot(True, "zaehler-ehz"),
                hauptschalter=FuseSlot(True, 63, "hs-63"),
            )
        )
        furnished.add_netz(NetzKonfiguration("n2", "PV"))
        furnished.link_verteiler_to_netz("n1", "V1")
        furnished.link_verteiler_to_netz("n1", "V1")
        furnished.link_verteiler_to_netz("n2", "V1")

        chain = furnished.upstream_devices("V1")
        assert [d.slot for d in chain] == [
            UpstreamSlot.EINSPEISUNG,
            UpstreamSlot.ZAEHLER,
            UpstreamSlot.HAUPTSCHALTER,
        ]
        assert [n.id for n, _ in furnished.all_upstream_chains("V1")] == ["n1", "n2"]
        assert furnished.upstream_devices("V2") == []

        rail = furnished.rail_entries("V1")
        assert rail[0].section == "upstream"

        furnished.unlink_verteiler_from_netz("n1", "V1")
        assert [n.id for n, _ in furnished.all_upstream_chains("V1")] == ["n2"]
        furnished.remove_netz("n2")
        assert furnished.all_upstream_chains("V1") == []

    def test_missing_netz(self, project):
        with pytest.raises(NetzNotFoundError):
            project.link_verteiler_to_netz("nope", "V1")
        with pytest.raises(NetzNotFoundError):
            project.remove_netz("nope")


class TestPersistence:
    def test_snapshot_is_immutable_value(self, furnished):
        snap = furnished.snapshot()
        furnished.remove_symbol("s1")
        assert any(s.id == "s1" for s in snap.placed_symbols)

    def test_dict_round_trip(self, furnished, catalog):
        furnished.set_rcd_group_override(_circuit_of(furnished, "d1").id, "manual-V1-1")
        restored = PlanningProject.from_dict(furnished.to_dict(), catalog)
        assert restored.snapshot() == furnished.snapshot()
        assert restored.circuits() == furnished.circuits()
        assert restored.rcd_groups() == furnished.rcd_groups()


class TestExports:
    def test_circuit_list_csv(self, furnished, tmp_path):
        path = tmp_path / "stromkreise.csv"
        furnished.export_circuit_list_csv(str(path))
        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert len(rows) == 1 + len(furnished.circuits())

    def test_bom_excel(self, furnished, tmp_path):
        path = tmp_path / "stueckliste.xlsx"
        furnished.export_bom_excel(str(path))
        wb = load_workbook(path)
        devices = [row[1] for row in wb["Schutzgeraete"].iter_rows(min_row=2, values_only=True)]
        assert "rcbo-b16-30-a" in devices
        assert "mcb-b16-3p" in devices
        assert wb["Stueckliste"].max_row == 1 + len(furnished.bill_of_materials())
