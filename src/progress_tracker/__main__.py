from __future__ import annotations

import argparse
import logging
import sys
import webbrowser
from pathlib import Path

import yaml

from .aggregation import build_aggregate_estimate_curve, build_aggregate_real_curve
from .merge import merge_series
from .models import Window, WorkItem
from .monthly import to_monthly_matrix
from .parse_project import ProjectSnapshot, load_snapshot
from .plan_tree import PlanStructureError, ProjectValidationError
from .render_chart import render_progress_chart
from .render_rows import to_grid_rows
from .summary import summarize_project
from .weights import QuantityViewEligibility, WeightResolver
from .windows import plan_window, to_date_window, visible_months

logger = logging.getLogger("progress_tracker")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Construction progress tracker: estimated vs real progress",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("project", help="Path to project snapshot YAML")
    parser.add_argument("--out", default="output/progress_chart.svg", help="Output SVG path")
    parser.add_argument("--item", dest="items", action="append", default=[], help="Item id to include (repeatable)")
    parser.add_argument("--group", help="Restrict to the items of one group id")
    parser.add_argument("--zoom", choices=("plan", "to-date"), default="plan", help="Visible window")
    parser.add_argument("--mode", choices=("pct", "qty"), default="pct", help="Percent or quantity view")
    parser.add_argument("--grid", action="store_true", help="Print the monthly planning grid")
    parser.add_argument("--summary", action="store_true", help="Print the dashboard summary")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--view",
        dest="view",
        action="store_true",
        default=True,
        help="Best-effort open the output file after rendering",
    )
    parser.add_argument(
        "--no-view",
        dest="view",
        action="store_false",
        help="Do not open the output file after rendering",
    )
    return parser


def _select_items(snapshot: ProjectSnapshot, item_ids: list[str], group_id: str | None) -> list[WorkItem]:
    items = snapshot.tree.items
    if group_id:
        items = [item for item in items if item.group_id == group_id]
    if item_ids:
        wanted = set(item_ids)
        items = [item for item in items if item.id in wanted]
    return items


def _print_grid(snapshot: ProjectSnapshot, items: list[WorkItem], plan: Window | None, to_date: bool) -> None:
    """Print grid rows touching the selection; headings aggregate every item of their node."""
    all_items = snapshot.tree.items
    matrix = to_monthly_matrix(all_items, snapshot.periods, snapshot.estimates, snapshot.reports)
    months = visible_months(matrix.months, plan, matrix.last_real_month(), "to-date" if to_date else "plan")
    rows = to_grid_rows(snapshot.tree, matrix, months=months, weights=WeightResolver.for_items(all_items))
    wanted = {item.id for item in items}
    print("\t".join(["row"] + months))
    for row in rows:
        if not wanted.intersection(row.item_ids):
            continue
        label = "  " * row.indent + (f"{row.code} {row.name}".strip())
        cells = [f"{cell.estimated:.1f}/{cell.real:.1f}" for cell in row.cells]
        print("\t".join([label] + cells))


def _print_summary(snapshot: ProjectSnapshot) -> None:
    summary = summarize_project(snapshot.tree, snapshot.reports)
    print(f"Project progress: {summary.progress:.2f}%")
    print(f"Completed items: {summary.completed_items}/{summary.total_items}")
    print(f"Executed: {summary.total_executed:,.2f} of {summary.total_scope:,.2f}")
    for group in summary.groups:
        print(f"  {group.name}: {group.progress:.2f}% ({group.completed_count}/{group.item_count})")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    project_path = Path(args.project)

    try:
        snapshot = load_snapshot(str(project_path))
    except (yaml.YAMLError, ProjectValidationError, PlanStructureError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: project file not found: {project_path}", file=sys.stderr)
        return 1
    except Exception as exc:  # Unexpected
        print(f"Unexpected error while loading project: {exc}", file=sys.stderr)
        return 1

    items = _select_items(snapshot, args.items, args.group)
    if not items:
        print("Error: no work items match the selection", file=sys.stderr)
        return 2
    item_ids = [item.id for item in items]

    weights = WeightResolver.for_items(items)
    eligibility = QuantityViewEligibility.for_items(items)
    quantity = args.mode == "qty"
    if quantity and not eligibility.enabled:
        logger.warning("Quantity view unavailable for this selection (missing or mixed units); using percent")
        quantity = False

    estimate_curve = build_aggregate_estimate_curve(items, snapshot.periods, snapshot.estimates, weights, eligibility)
    real_curve = build_aggregate_real_curve(items, snapshot.reports, weights, eligibility)
    plan = plan_window(item_ids, snapshot.periods, snapshot.estimates)
    to_date = args.zoom == "to-date"
    window = to_date_window(plan, snapshot.reports, item_ids) if to_date else plan
    cutoff = window.end if (to_date and window is not None) else None
    rows = merge_series(estimate_curve, real_curve, plan_window=plan, cutoff=cutoff, quantity=quantity)

    if args.summary:
        _print_summary(snapshot)

    if args.grid:
        _print_grid(snapshot, items, plan, to_date)

    if not rows:
        print("Nothing to chart: no estimates or reports for the selection", file=sys.stderr)
        return 0

    try:
        render_progress_chart(
            rows=rows,
            out_path=args.out,
            title=snapshot.name,
            window=window,
            to_date=to_date,
            unit=eligibility.unit if quantity else None,
        )
    except Exception as exc:
        print(f"Unexpected error while rendering: {exc}", file=sys.stderr)
        return 1

    if args.view:
        try:
            webbrowser.open(Path(args.out).resolve().as_uri())
        except Exception:
            logger.debug("Could not open %s in a browser", args.out)

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
