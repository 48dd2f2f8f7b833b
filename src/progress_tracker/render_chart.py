from __future__ import annotations

import datetime as dt
import math
from importlib import metadata
from pathlib import Path
from typing import Sequence

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.dates as mdates
import matplotlib.pyplot as plt

from .aggregation import DISPLAY_CLAMP
from .models import MergedRow, Window

FONT_SCALE = 1.0
TITLE_FONT = 14 * FONT_SCALE
LABEL_FONT = 10 * FONT_SCALE
FOOTER_FONT = 8 * FONT_SCALE
TICK_FONT = 9 * FONT_SCALE
TIMELINE_PAD_DAYS = 7  # breathing room around the plan window
TO_DATE_PAD_DAYS = 1  # tighter zoom when stopping at the last report
ESTIMATED_COLOR = "#1f77b4"
REAL_COLOR = "#ff7f0e"
WINDOW_COLOR = "#d9d9d9"


def render_progress_chart(
    rows: Sequence[MergedRow],
    out_path: str,
    title: str,
    window: Window | None = None,
    to_date: bool = False,
    unit: str | None = None,
) -> None:
    """
    Render the estimated vs real S-curve of a merged series to an SVG file.

    - Blank cells break the lines instead of dropping to zero.
    - The plan window is shaded; the x-range pads it by a week (a day when
      zoomed to date).
    - Percent charts are capped at the display clamp, quantity charts scale
      to the data.
    """

    if not rows:
        raise ValueError("rows must not be empty")

    dates = [mdates.date2num(row.date) for row in rows]
    estimated = [_plot_value(row.estimated, unit) for row in rows]
    real = [_plot_value(row.real, unit) for row in rows]

    fig, ax = plt.subplots(figsize=(12.0, 6.0))
    ax.plot(dates, estimated, color=ESTIMATED_COLOR, linewidth=2.0, label="Estimated", drawstyle="steps-post")
    ax.plot(dates, real, color=REAL_COLOR, linewidth=2.0, marker="o", markersize=3, label="Real", drawstyle="steps-post")

    x_min, x_max = _resolve_x_range(rows, window, to_date)
    ax.set_xlim(mdates.date2num(x_min), mdates.date2num(x_max))
    if window is not None:
        ax.axvspan(
            mdates.date2num(window.start),
            mdates.date2num(window.end),
            color=WINDOW_COLOR,
            alpha=0.35,
            zorder=0,
        )

    if unit is None:
        ax.set_ylim(0, DISPLAY_CLAMP)
        ax.set_ylabel("Cumulative progress (%)", fontsize=LABEL_FONT)
    else:
        ax.set_ylim(bottom=0)
        ax.set_ylabel(f"Cumulative quantity ({unit})", fontsize=LABEL_FONT)

    span_days = (x_max - x_min).days + 1
    major_locator, major_formatter = _major_tick_strategy(span_days)
    ax.xaxis.set_major_locator(major_locator)
    ax.xaxis.set_major_formatter(major_formatter)
    ax.grid(True, axis="both", which="major", linestyle="--", alpha=0.4)
    ax.tick_params(axis="x", labelrotation=30, labelsize=TICK_FONT)
    ax.legend(loc="upper left", fontsize=LABEL_FONT)

    fig.suptitle(title, x=0.5, fontsize=TITLE_FONT)
    footer = f"progress-tracker v{_tool_version()}"
    fig.text(0.99, 0.01, footer, ha="right", va="bottom", fontsize=FOOTER_FONT, alpha=0.8)

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format="svg", bbox_inches="tight")
    plt.close(fig)


def _plot_value(value: float | None, unit: str | None) -> float:
    if value is None:
        return math.nan
    if unit is None:
        return min(value, DISPLAY_CLAMP)
    return value


def _resolve_x_range(rows: Sequence[MergedRow], window: Window | None, to_date: bool) -> tuple[dt.date, dt.date]:
    data_min = min(row.date for row in rows)
    data_max = max(row.date for row in rows)
    base_min = window.start if window else data_min
    base_max = window.end if window else data_max
    pad = dt.timedelta(days=TO_DATE_PAD_DAYS if to_date else TIMELINE_PAD_DAYS)
    return base_min - pad, max(base_max, base_min) + pad


def _tool_version() -> str:
    try:
        return metadata.version("progress-tracker")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def _major_tick_strategy(span_days: int) -> tuple[mdates.DateLocator, mdates.DateFormatter]:
    """Choose a major tick locator/formatter to avoid overlapping labels."""
    if span_days > 180:
        return mdates.MonthLocator(interval=1), mdates.DateFormatter("%b %Y")
    if span_days > 90:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=2), mdates.DateFormatter("%b %d")
    if span_days > 45:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=1), mdates.DateFormatter("%b %d")
    return mdates.DayLocator(interval=2), mdates.DateFormatter("%b %d")
