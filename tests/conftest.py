import pytest

from pyelectricalplan.catalog import default_catalog
from pyelectricalplan.model.parts import Building, Floor, PlacedSymbol, Room


@pytest.fixture
def catalog():
    """The sample residential catalog."""
    return default_catalog()


@pytest.fixture
def building():
    """Two floors with three rooms."""
    return Building(
        id="b1",
        name="Einfamilienhaus",
        floors=(
            Floor(
                "eg",
                "Erdgeschoss",
                (Room("r-wohn", "Wohnzimmer"), Room("r-kueche", "Kueche")),
            ),
            Floor("og", "Obergeschoss", (Room("r-bad", "Bad"),)),
        ),
    )


@pytest.fixture
def make_symbol():
    """
    Factory for placed symbols.

    Usage:
        def test_something(make_symbol):
            s = make_symbol("s1", "grounded_socket", board="V1")
    """

    def _make(symbol_id, symbol_key, room_id="r-wohn", board="V1", **kwargs):
        return PlacedSymbol(
            id=symbol_id,
            symbol_key=symbol_key,
            room_id=room_id,
            verteiler_id=board,
            **kwargs,
        )

    return _make
