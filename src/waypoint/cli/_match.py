"""``waypoint match`` — show which template wins for a pathname."""

import argparse
import sys

from waypoint.cli._rank import build_table
from waypoint.errors import NoMatch


def run_match(args: argparse.Namespace) -> None:
    """Resolve ``args.path`` and print the winning template and its params.

    Exits 1 when no template matches.
    """
    table = build_table(args.templates)
    try:
        resolved = table.resolve(args.path)
    except NoMatch as exc:
        print(f"No match: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    template = resolved.route.path if resolved.route is not None else "(passthrough)"
    print(f"template: {template}")
    print(f"local:    {resolved.pathname or '(empty)'}")
    if resolved.tail is not None:
        print(f"tail:     {resolved.tail or '(empty)'}")
    for name, value in resolved.params.items():
        print(f"  {name} = {value}")
