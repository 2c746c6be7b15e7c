"""Shared value types."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterator
from dataclasses import dataclass

from .errors import InvalidDateRangeError

__all__ = ["DateRange", "MIN_DATE", "MAX_DATE", "iter_days", "parse_date"]

MIN_DATE = dt.date(1, 1, 1)
MAX_DATE = dt.date(9999, 12, 31)


def parse_date(value: str | dt.date | None, *, default: dt.date) -> dt.date:
    """Parse an ISO ``YYYY-MM-DD`` string (or pass a date through)."""

    if value is None:
        return default
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    text = str(value).strip()
    if not text:
        return default
    try:
        return dt.date.fromisoformat(text)
    except ValueError as exc:
        raise InvalidDateRangeError(f"Invalid date '{value}' (expected YYYY-MM-DD)") from exc


def iter_days(start: dt.date, end: dt.date) -> Iterator[dt.date]:
    """Yield every calendar day from ``start`` to ``end`` inclusive."""

    day = start
    step = dt.timedelta(days=1)
    while day <= end:
        yield day
        if day == MAX_DATE:
            return
        day += step


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive calendar range; omitted bounds default to an effectively unbounded span."""

    start: dt.date = MIN_DATE
    end: dt.date = MAX_DATE

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidDateRangeError(
                f"Date range start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )

    @classmethod
    def from_strings(
        cls,
        start: str | dt.date | None = None,
        end: str | dt.date | None = None,
    ) -> DateRange:
        return cls(parse_date(start, default=MIN_DATE), parse_date(end, default=MAX_DATE))

    @property
    def is_unbounded_start(self) -> bool:
        return self.start == MIN_DATE

    @property
    def is_unbounded_end(self) -> bool:
        return self.end == MAX_DATE

    def contains(self, day: dt.date) -> bool:
        return self.start <= day <= self.end

    def clamp(self, first: dt.date | None, last: dt.date | None) -> DateRange | None:
        """Replace unbounded ends with the observed data span.

        Returns ``None`` when an unbounded end has no observation to clamp to, or when the
        clamped span is empty.
        """

        start = self.start
        end = self.end
        if self.is_unbounded_start:
            if first is None:
                return None
            start = max(first, self.start)
        if self.is_unbounded_end:
            if last is None:
                return None
            end = min(last, self.end)
        if start > end:
            return None
        return DateRange(start, end)

    def to_dict(self) -> dict[str, str]:
        return {"from": self.start.isoformat(), "to": self.end.isoformat()}
