from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Sequence

from .models import Period


@dataclass(frozen=True)
class _Span:
    """Normalised inclusive bounds of one period; missing bounds collapse to a point."""

    start: date | None
    end: date | None

    @classmethod
    def of(cls, period: Period) -> "_Span":
        return cls(period.span_start, period.span_finish)


def ordered_periods(periods: Sequence[Period]) -> list[Period]:
    """Periods in plan order (sequence, then id)."""
    return sorted(periods, key=lambda p: (p.sequence, p.id))


class IntervalIndex:
    """
    Answer "which period holds this date" for an ordered list of periods.

    Lookups prefer the period whose inclusive range contains the date (the last
    one in sequence order when periods overlap). Otherwise the period with the
    latest end on or before the date wins. Periods with inverted bounds never
    contain a date but can still match as "already ended".
    """

    def __init__(self, periods: Sequence[Period]):
        self.periods = list(periods)
        self._spans = [_Span.of(p) for p in self.periods]

    def __len__(self) -> int:
        return len(self.periods)

    def locate(self, when: date) -> int | None:
        contained: int | None = None
        last_ended: int | None = None
        last_end: date | None = None

        for idx, span in enumerate(self._spans):
            if span.end is None:
                continue
            if span.end <= when and (last_end is None or span.end >= last_end):
                last_ended = idx
                last_end = span.end
            if span.start is not None and span.start <= when <= span.end:
                contained = idx

        return contained if contained is not None else last_ended

    def period_at(self, when: date) -> Period | None:
        idx = self.locate(when)
        return None if idx is None else self.periods[idx]


def locate(periods: Sequence[Period], when: date) -> int | None:
    """Index into `periods` of the period matching `when`, or None (see IntervalIndex)."""
    return IntervalIndex(periods).locate(when)
