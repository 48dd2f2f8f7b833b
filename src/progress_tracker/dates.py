from __future__ import annotations

import datetime as _dt
import logging
import math
from typing import Any, Iterator

logger = logging.getLogger(__name__)


def coerce_date(value: Any, context: str = "") -> _dt.date | None:
    """
    Return a date for ISO strings, dates or datetimes; None when absent or unparseable.

    Unparseable values are logged and treated as missing so that a single bad
    row never aborts a computation.
    """

    if value is None or value == "":
        return None
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if isinstance(value, str):
        try:
            return _dt.date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    logger.warning("Ignoring unparseable date %r%s", value, f" ({context})" if context else "")
    return None


def coerce_datetime(value: Any, context: str = "") -> _dt.datetime | None:
    """Return a naive UTC datetime for ISO strings/datetimes; None when unusable."""

    if value is None or value == "":
        return None
    parsed: _dt.datetime | None = None
    if isinstance(value, _dt.datetime):
        parsed = value
    elif isinstance(value, _dt.date):
        parsed = _dt.datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = _dt.datetime.fromisoformat(text)
        except ValueError:
            parsed = None
    if parsed is None:
        logger.warning("Ignoring unparseable timestamp %r%s", value, f" ({context})" if context else "")
        return None
    return to_naive_utc(parsed)


def to_naive_utc(value: _dt.datetime) -> _dt.datetime:
    """Aware datetimes are converted to UTC and stripped; naive ones are taken as UTC already."""
    if value.tzinfo is not None:
        return value.astimezone(_dt.timezone.utc).replace(tzinfo=None)
    return value


def utc_now() -> _dt.datetime:
    return to_naive_utc(_dt.datetime.now(_dt.timezone.utc))


def coerce_number(value: Any) -> float | None:
    """Finite float or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def month_key(value: _dt.date) -> str:
    """Calendar month key in YYYY-MM form."""
    return f"{value.year:04d}-{value.month:02d}"


def month_start(key: str) -> _dt.date:
    year, month = key.split("-")
    return _dt.date(int(year), int(month), 1)


def iter_month_keys(first: str, last: str) -> Iterator[str]:
    """Yield every month key from first to last inclusive."""
    current = month_start(first)
    stop = month_start(last)
    while current <= stop:
        yield month_key(current)
        if current.month == 12:
            current = _dt.date(current.year + 1, 1, 1)
        else:
            current = _dt.date(current.year, current.month + 1, 1)
