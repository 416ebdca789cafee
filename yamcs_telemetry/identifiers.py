"""Conversion between Yamcs qualified names and local identifiers.

Yamcs names every space system and parameter with a slash-delimited path
(``/Sat/Power/Voltage``). Hosts key objects by flat strings, so the path
separator is swapped for a sentinel that never appears in a legal name.
"""

from __future__ import annotations

SEPARATOR = "/"
SENTINEL = "~"


class MalformedIdentifier(ValueError):
    """Raised when a string cannot take part in the identifier mapping."""


def to_identifier(qualified_name: str) -> str:
    """Return the local identifier for ``qualified_name``."""

    if SENTINEL in qualified_name:
        raise MalformedIdentifier(
            f"Qualified name {qualified_name!r} contains reserved character {SENTINEL!r}"
        )
    return qualified_name.replace(SEPARATOR, SENTINEL)


def to_qualified_name(identifier: str) -> str:
    """Return the qualified name encoded by ``identifier``."""

    if SEPARATOR in identifier:
        raise MalformedIdentifier(
            f"Identifier {identifier!r} was not produced from a qualified name"
        )
    return identifier.replace(SENTINEL, SEPARATOR)
