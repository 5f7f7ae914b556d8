"""
Utility functions shared by the derivation modules.
Contains helpers for deterministic ids and ordering.
"""

from __future__ import annotations

import hashlib
import re


def natural_sort_key(tag: str) -> list[int | str]:
    """
    Return a sort key that orders numeric suffixes naturally.

    Splits the tag into alternating text and number parts so that
    ``"SK4"`` sorts before ``"SK10"``.

    Args:
        tag: A string tag to generate a sort key for.

    Returns:
        A list of ``str`` and ``int`` parts suitable for use as a sort key.

    Example::

        sorted(["SK10", "SK2", "SK1"], key=natural_sort_key)
        # -> ["SK1", "SK2", "SK10"]
    """
    return [int(p) if p.isdigit() else p for p in re.split(r"(\d+)", tag)]


def format_number(value: float | int | None) -> str:
    """Format a numeric field for ids and labels: ``16.0`` -> ``"16"``, None -> ``"-"``."""
    if value is None:
        return "-"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def key_digest(parts: tuple, length: int = 8) -> str:
    """
    Return a short, stable hex digest of a composite key.

    The digest depends only on the ``repr`` of *parts*, never on insertion
    order or object identity, so ids built from it survive re-derivation.

    Args:
        parts: Tuple of str/int/float/None values (nested tuples allowed).
        length: Number of hex characters to keep.
    """
    return hashlib.sha1(repr(parts).encode("utf-8")).hexdigest()[:length]
