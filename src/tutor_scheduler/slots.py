"""Slot value type and slot generation.

A slot is one period on one calendar day. On the wire it is the string key
``YYYY-MM-DD_<period>``; everywhere else it is a :class:`Slot`.
"""
from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .errors import SlotKeyError

KEY_SEPARATOR = "_"


@dataclass(frozen=True, order=True)
class Slot:
    date: datetime.date
    period: int

    @classmethod
    def parse(cls, key: str) -> "Slot":
        """Parse ``"2026-07-21_2"`` into ``Slot(date(2026, 7, 21), 2)``."""
        if not isinstance(key, str):
            raise SlotKeyError(f"Slot key must be a string, got {type(key).__name__}")
        date_part, sep, period_part = key.rpartition(KEY_SEPARATOR)
        if not sep:
            raise SlotKeyError(f"Slot key '{key}' has no period separator")
        try:
            date = datetime.date.fromisoformat(date_part)
        except ValueError as exc:
            raise SlotKeyError(f"Slot key '{key}' has an invalid date") from exc
        if not period_part.isdigit() or int(period_part) < 1:
            raise SlotKeyError(f"Slot key '{key}' has an invalid period")
        return cls(date, int(period_part))

    @property
    def key(self) -> str:
        return f"{self.date.isoformat()}{KEY_SEPARATOR}{self.period}"

    @property
    def weekday(self) -> int:
        """0 = Monday ... 6 = Sunday."""
        return self.date.weekday()

    def shifted(self, delta: int) -> "Slot":
        """Same day, ``delta`` periods later (may be a period that does not exist)."""
        return Slot(self.date, self.period + delta)

    def __str__(self) -> str:
        return self.key


def dates_in_range(
    start: Optional[datetime.date],
    end: Optional[datetime.date],
    holidays: Iterable[datetime.date] = (),
) -> List[datetime.date]:
    """Calendar dates from ``start`` to ``end`` inclusive, holidays excluded."""
    if start is None or end is None:
        return []
    skip = set(holidays)
    dates = []
    cursor = start
    while cursor <= end:
        if cursor not in skip:
            dates.append(cursor)
        cursor += datetime.timedelta(days=1)
    return dates


def build_slots(
    start: Optional[datetime.date],
    end: Optional[datetime.date],
    periods_per_day: int,
    holidays: Iterable[datetime.date] = (),
) -> List[Slot]:
    """Every (date, period) for the non-holiday dates in range, chronologically."""
    if periods_per_day <= 0:
        return []
    return [
        Slot(date, period)
        for date in dates_in_range(start, end, holidays)
        for period in range(1, periods_per_day + 1)
    ]


def ordered_dates(slots: Iterable[Slot]) -> List[datetime.date]:
    """Distinct dates of ``slots`` in first-seen order."""
    seen: List[datetime.date] = []
    for slot in slots:
        if slot.date not in seen:
            seen.append(slot.date)
    return seen


__all__ = [
    "Slot",
    "build_slots",
    "dates_in_range",
    "ordered_dates",
]
