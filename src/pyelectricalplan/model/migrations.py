"""
Schema migrations for persisted project state.

Persisted state is a plain dict carrying a ``"version"`` key (absent in the
oldest layout, which counts as version 0). ``migrate`` applies every step
from the stored version up to ``SCHEMA_VERSION`` in order. Each step takes a
dict at its source version and returns a new dict at the next version; steps
never mutate their input.

Version history:
    0: Legacy editor store. camelCase keys, German field names, the board is
       free text in ``attribute.verteiler``.
    1: snake_case records, ``verteiler_id`` on placed symbols.
    2: Override lists, RCD strategy, ``max_per_rcd``, network configurations
       and the board list.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

from pyelectricalplan.exceptions import SchemaVersionError
from pyelectricalplan.model.constants import DEFAULT_MAX_PER_RCD, SCHEMA_VERSION

Migration = Callable[[dict[str, Any]], dict[str, Any]]


def _v0_article(a: dict) -> dict:
    return {
        "id": a.get("id", ""),
        "designation": a.get("bezeichnung", ""),
        "kind": a.get("typ", "material"),
        "quantity": a.get("menge", 1),
        "unit": a.get("einheit", "Stk"),
        "unit_price": a.get("einzelpreis", 0.0),
    }


def _v0_symbol(s: dict) -> dict:
    attribute = s.get("attribute", {})
    knx = s.get("knx", {})
    return {
        "id": s["id"],
        "symbol_key": s.get("symbolKey", ""),
        "room_id": s.get("raumId", ""),
        "x": s.get("x", 0.0),
        "y": s.get("y", 0.0),
        "rotation": s.get("rotation", 0.0),
        "attributes": {
            "color": attribute.get("farbe", ""),
            "mount_height": attribute.get("hoehe", 0.0),
            "cable_type": attribute.get("kabeltyp", ""),
        },
        "knx": {
            "device_type": knx.get("geraetetyp", ""),
            "variant": knx.get("variante", "Standard"),
        },
        "articles": [_v0_article(a) for a in s.get("artikel", [])],
        "verteiler_id": attribute.get("verteiler") or None,
    }


def _v0_building(g: dict | None) -> dict | None:
    if g is None:
        return None
    return {
        "id": g.get("id", ""),
        "name": g.get("name", ""),
        "floors": [
            {
                "id": sw.get("id", ""),
                "name": sw.get("name", ""),
                "rooms": [{"id": r["id"], "name": r.get("name", "")} for r in sw.get("raeume", [])],
            }
            for sw in g.get("stockwerke", [])
        ],
    }


def _v0_to_v1(data: dict[str, Any]) -> dict[str, Any]:
    """Translate the legacy camelCase store into snake_case records."""
    return {
        "version": 1,
        "building": _v0_building(data.get("gebaeude")),
        "placed_symbols": [_v0_symbol(s) for s in data.get("placedSymbols", [])],
    }


def _v1_to_v2(data: dict[str, Any]) -> dict[str, Any]:
    """Add override lists, grouping settings, networks and boards."""
    out = copy.deepcopy(data)
    out["version"] = 2
    out.setdefault("cables", [])
    out.setdefault("circuit_group_overrides", [])
    out.setdefault("rcd_overrides", [])
    out.setdefault("rcd_strategy", {})
    out.setdefault("max_per_rcd", DEFAULT_MAX_PER_RCD)
    out.setdefault("netz_konfigurationen", [])
    if "boards" not in out:
        board_ids = sorted(
            {s["verteiler_id"] for s in out.get("placed_symbols", []) if s.get("verteiler_id")}
        )
        out["boards"] = [{"id": b, "name": b} for b in board_ids]
    return out


MIGRATIONS: list[tuple[int, Migration]] = [
    (0, _v0_to_v1),
    (1, _v1_to_v2),
]


def migrate(data: dict[str, Any]) -> dict[str, Any]:
    """
    Bring persisted state up to ``SCHEMA_VERSION``.

    Args:
        data: Persisted state at any known version.

    Returns:
        A dict at the current version; *data* itself if already current.

    Raises:
        SchemaVersionError: If *data* is newer than this library.
    """
    version = int(data.get("version", 0))
    if version > SCHEMA_VERSION:
        raise SchemaVersionError(version, SCHEMA_VERSION)
    for from_version, step in MIGRATIONS:
        if version == from_version:
            data = step(data)
            version = from_version + 1
    return data
