"""``waypoint rank`` — print templates in precedence order.

Builds a route table from the given templates and prints its sorted view
with each template's score, segment breakdown, and specificity.
"""

import argparse
import sys

from waypoint.errors import ConfigurationError
from waypoint.routing.route import RouteDescriptor
from waypoint.routing.table import RouteTable


def _noop(params: dict[str, object]) -> None:
    return None


def build_table(templates: list[str]) -> RouteTable:
    """Build a table of placeholder routes, exiting on a bad template."""
    try:
        return RouteTable(RouteDescriptor(path, _noop) for path in templates)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


def run_rank(args: argparse.Namespace) -> None:
    """Print a table of RANK, SCORE, S/D/O/W/DEPTH, SPEC, and TEMPLATE."""
    table = build_table(args.templates)

    rows: list[tuple[str, str, str, str, str]] = []
    for rank, route in enumerate(table.sorted_view(), start=1):
        pattern = route.pattern
        b = pattern.breakdown
        counts = f"{b.static}/{b.dynamic}/{b.optional}/{b.wildcard}/{b.depth}"
        rows.append((str(rank), f"{pattern.score:.2f}", counts, f"{pattern.specificity:.2f}", route.path))

    headers = ("RANK", "SCORE", "S/D/O/W/DEPTH", "SPEC", "TEMPLATE")
    widths = [max(len(h), *(len(r[i]) for r in rows)) for i, h in enumerate(headers)]
    fmt = "  ".join(f"{{:<{w}}}" for w in widths[:-1]) + "  {}"
    print(fmt.format(*headers))
    print("-" * min(sum(widths) + 2 * (len(widths) - 1), 80))
    for row in rows:
        print(fmt.format(*row))
