"""Best-effort numeric parsing for hand-entered shift fields.

Every derivation rule reads field values through :func:`parse_number` so the coercion
policy lives in one place:

* numbers pass through (``NaN``/``inf`` become ``0.0``),
* text is stripped of everything except digits, ``.`` and ``-`` and the first valid
  numeric substring is used (one optional leading minus, at most one decimal point),
* ``None``, empty and unparsable text become ``0.0``.
"""

from __future__ import annotations

import math
import re
from decimal import Decimal
from numbers import Real

__all__ = ["parse_number", "parse_quantity", "has_number", "parse_optional"]

_STRIP = re.compile(r"[^0-9.\-]")
_NUMBER = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")


def _coerce(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (Real, Decimal)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None
    text = _STRIP.sub("", str(value))
    if not text:
        return None
    match = _NUMBER.search(text)
    if match is None:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


def parse_optional(value: object) -> float | None:
    """Return the parsed number, or ``None`` when no numeric content is present."""

    return _coerce(value)


def parse_number(value: object) -> float:
    """Parse ``value`` into a float, returning ``0.0`` for anything unparsable.

    Examples
    --------
    >>> parse_number("2.4m")
    2.4
    >>> parse_number("1,234")
    1234.0
    >>> parse_number("n/a")
    0.0
    """

    number = _coerce(value)
    return 0.0 if number is None else number


def parse_quantity(value: object) -> float:
    """Parse ``value`` as a non-negative quantity (negatives clamp to ``0.0``)."""

    return max(parse_number(value), 0.0)


def has_number(value: object) -> bool:
    """Return ``True`` when ``value`` carries a usable numeric substring."""

    return _coerce(value) is not None
