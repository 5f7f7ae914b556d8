"""Tests for persisted-state migrations."""

import pytest

from pyelectricalplan.exceptions import SchemaVersionError
from pyelectricalplan.model.constants import DEFAULT_MAX_PER_RCD, SCHEMA_VERSION
from pyelectricalplan.model.migrations import MIGRATIONS, migrate

LEGACY_STORE = {
    "gebaeude": {
        "id": "g1",
        "name": "Haus",
        "stockwerke": [
            {"id": "eg", "name": "EG", "raeume": [{"id": "r-wohn", "name": "Wohnzimmer"}]}
        ],
    },
    "placedSymbols": [
        {
            "id": "p1",
            "symbolKey": "grounded_socket",
            "raumId": "r-wohn",
            "x": 10,
            "y": 20,
            "rotation": 90,
            "attribute": {"farbe": "reinweiss", "hoehe": 30, "kabeltyp": "NYM", "verteiler": "UV1"},
            "knx": {"geraetetyp": "Schaltaktor", "variante": "Standard"},
            "artikel": [
                {
                    "id": "a1",
                    "bezeichnung": "Steckdose",
                    "typ": "material",
                    "menge": 1,
                    "einheit": "Stk",
                    "einzelpreis": 8.5,
                }
            ],
        },
        {"id": "p2", "symbolKey": "switch", "raumId": "r-wohn", "attribute": {}},
    ],
}


def test_chain_is_ordered_and_complete():
    assert [v for v, _ in MIGRATIONS] == list(range(SCHEMA_VERSION))


def test_legacy_store_migrates():
    data = migrate(LEGACY_STORE)
    assert data["version"] == SCHEMA_VERSION

    symbol = data["placed_symbols"][0]
    assert symbol["symbol_key"] == "grounded_socket"
    assert symbol["room_id"] == "r-wohn"
    assert symbol["verteiler_id"] == "UV1"
    assert symbol["attributes"] == {"color": "reinweiss", "mount_height": 30, "cable_type": "NYM"}
    assert symbol["knx"]["device_type"] == "Schaltaktor"
    assert symbol["articles"][0]["designation"] == "Steckdose"
    assert symbol["articles"][0]["unit_price"] == 8.5
    assert data["placed_symbols"][1]["verteiler_id"] is None

    assert data["building"]["floors"][0]["rooms"] == [{"id": "r-wohn", "name": "Wohnzimmer"}]
    assert data["boards"] == [{"id": "UV1", "name": "UV1"}]
    assert data["max_per_rcd"] == DEFAULT_MAX_PER_RCD
    assert data["rcd_overrides"] == []


def test_v1_keeps_existing_fields():
    data = migrate({"version": 1, "placed_symbols": [], "max_per_rcd": 4, "boards": []})
    assert data["max_per_rcd"] == 4
    assert data["boards"] == []
    assert data["cables"] == []


def test_input_not_mutated():
    v1 = {"version": 1, "placed_symbols": []}
    migrate(v1)
    assert v1 == {"version": 1, "placed_symbols": []}


def test_current_version_returned_as_is():
    data = {"version": SCHEMA_VERSION, "placed_symbols": []}
    assert migrate(data) is data


def test_newer_version_rejected():
    with pytest.raises(SchemaVersionError) as exc:
        migrate({"version": SCHEMA_VERSION + 1})
    assert exc.value.supported == SCHEMA_VERSION
