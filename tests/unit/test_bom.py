"""Tests for bill of materials aggregation."""

import pytest

from pyelectricalplan.bom import (
    bill_of_materials,
    bom_total,
    order_list,
    protective_device_lines,
    symbol_summary,
)
from pyelectricalplan.circuits import derive_circuits
from pyelectricalplan.model.constants import ArticleKind
from pyelectricalplan.model.parts import ArticleLine
from pyelectricalplan.rcd_grouping import group_by_shared_rcd


@pytest.fixture
def symbols(make_symbol):
    steckdose = ArticleLine("a1", "Steckdose", ArticleKind.MATERIAL, 1, "Stk", 8.5)
    montage = ArticleLine("a2", "Montage", ArticleKind.SERVICE, 0.25, "h", 65.0)
    kabel = ArticleLine("a3", "NYM-J 3x2,5", ArticleKind.MATERIAL, 12, "m", 1.2)
    return [
        make_symbol("s1", "grounded_socket", articles=(steckdose, montage, kabel)),
        make_symbol("s2", "grounded_socket", articles=(steckdose, montage)),
        make_symbol("sw", "switch"),
    ]


def test_bill_of_materials_aggregates(symbols):
    rows = bill_of_materials(symbols)
    by_name = {r.designation: r for r in rows}
    assert [r.designation for r in rows] == ["Montage", "NYM-J 3x2,5", "Steckdose"]
    assert by_name["Steckdose"].quantity == 2
    assert by_name["Montage"].quantity == 0.5
    assert by_name["Montage"].total == pytest.approx(32.5)
    assert bom_total(rows) == pytest.approx(17.0 + 32.5 + 14.4)


def test_different_prices_stay_separate(make_symbol):
    cheap = ArticleLine("a", "Dose", unit_price=1.0)
    dear = ArticleLine("b", "Dose", unit_price=2.0)
    rows = bill_of_materials(
        [make_symbol("s1", "switch", articles=(cheap,)), make_symbol("s2", "switch", articles=(dear,))]
    )
    assert len(rows) == 2


def test_order_list_material_only(symbols):
    rows = order_list(symbols)
    assert [(r.designation, r.quantity, r.unit) for r in rows] == [
        ("NYM-J 3x2,5", 12, "m"),
        ("Steckdose", 2, "Stk"),
    ]


def test_symbol_summary(catalog, make_symbol):
    summary = symbol_summary(
        [
            make_symbol("s1", "grounded_socket"),
            make_symbol("s2", "grounded_socket"),
            make_symbol("x", "sauna_heater"),
        ],
        catalog,
    )
    assert summary == [("Schuko-Steckdose", 2), ("sauna_heater", 1)]


def test_protective_device_lines(catalog, make_symbol):
    """Grouped circuits share one RCD; an RCBO circuit brings its own device."""
    circuits = derive_circuits(
        [
            make_symbol("s1", "grounded_socket"),
            make_symbol("l1", "ceiling_light"),
            make_symbol("b1", "bathroom_socket"),
        ],
        catalog,
    )
    groups = group_by_shared_rcd(circuits, catalog)
    lines = {line.device_id: line for line in protective_device_lines(circuits, groups, catalog)}
    assert set(lines) == {"mcb-b16", "mcb-b10", "rcbo-b16-30-a", "rcd-40-30-a-2p"}
    assert lines["rcd-40-30-a-2p"].quantity == 1
    assert lines["rcbo-b16-30-a"].total == pytest.approx(39.0)
