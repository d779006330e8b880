"""Waypoint CLI — inspect route precedence and matching.

Entry point registered as ``waypoint`` in ``pyproject.toml``::

    [project.scripts]
    waypoint = "waypoint.cli:main"
"""

import argparse
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``waypoint`` command."""
    parser = argparse.ArgumentParser(
        prog="waypoint",
        description="Waypoint — nested, guarded client-side routing.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- waypoint rank -----------------------------------------------------
    rank_parser = subparsers.add_parser("rank", help="List templates in precedence order")
    rank_parser.add_argument("templates", nargs="+", help="Path templates (e.g. /users/:id)")

    # -- waypoint match ----------------------------------------------------
    match_parser = subparsers.add_parser("match", help="Resolve a path against templates")
    match_parser.add_argument("templates", nargs="+", help="Path templates, in insertion order")
    match_parser.add_argument("--path", required=True, help="Pathname to resolve")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "rank":
        from waypoint.cli._rank import run_rank

        run_rank(args)
    elif args.command == "match":
        from waypoint.cli._match import run_match

        run_match(args)
