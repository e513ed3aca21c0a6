"""Size specifiers.

A size specifier is one of:

  1024          # bare number: strictly less than 1024 bytes
  "1MB"         # number + unit: strictly less than 1 MiB
  ">=1.5K"      # mark + number + unit, mark in > < = >= <=

Units are B, K, M, G, T, P, E, each optionally followed by B, all base 1024.
"""

import operator
import re
from dataclasses import dataclass
from typing import Callable, Union

from .errors import ParseError

SizeSpecifier = Union[int, float, str]

UNIT_FACTORS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
    "PB": 1024**5,
    "EB": 1024**6,
}

MARKS: dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    "<": operator.lt,
    "=": operator.eq,
    ">=": operator.ge,
    "<=": operator.le,
}

_SIZE_RE = re.compile(
    r"^\s*(?P<mark>>=|<=|>|<|=)?\s*(?P<number>\d+(?:\.\d+)?)\s*(?P<unit>[A-Za-z]*)\s*$"
)


@dataclass(frozen=True)
class SizeLimit:
    mark: str
    limit: float

    def matches(self, size: float) -> bool:
        return MARKS[self.mark](size, self.limit)


def convert_to_bytes(number: float, unit: str | None) -> float:
    """Convert ``number`` expressed in ``unit`` to bytes.

    A missing unit means bytes; a single letter without a trailing ``B`` is
    normalized (``K`` -> ``KB``).

    Raises:
        ParseError: If the unit is not recognized.
    """
    if not unit:
        unit = "B"
    if len(unit) == 1 and not unit.endswith("B"):
        unit += "B"
    try:
        factor = UNIT_FACTORS[unit]
    except KeyError:
        raise ParseError(f"Invalid size unit: {unit}") from None
    return number * factor


def parse_size(specifier: SizeSpecifier) -> SizeLimit:
    """Parse a size specifier into a comparison mark and a byte limit.

    Raises:
        ParseError: If the specifier is malformed or uses an unknown unit.
    """
    # bool is an int subclass, but True is not a size
    if isinstance(specifier, bool):
        raise ParseError(f"Invalid size specifier: {specifier!r}")
    if isinstance(specifier, (int, float)):
        if specifier < 0:
            raise ParseError(f"Size must not be negative: {specifier!r}")
        return SizeLimit("<", specifier)
    if not isinstance(specifier, str):
        raise ParseError(f"Invalid size specifier: {specifier!r}")

    match = _SIZE_RE.match(specifier)
    if match is None:
        raise ParseError(f"Invalid size specifier: {specifier!r}")

    number_str = match.group("number")
    number = float(number_str) if "." in number_str else int(number_str)
    limit = convert_to_bytes(number, match.group("unit"))
    return SizeLimit(match.group("mark") or "<", limit)


def match_size(size: float, specifier: SizeSpecifier) -> bool:
    """Return whether an observed byte count satisfies ``specifier``."""
    return parse_size(specifier).matches(size)
