"""Waypoint exception hierarchy.

Shared across the pattern compiler, route table, navigation controller,
and navigator so every module raises and catches the same types.
"""


class WaypointError(Exception):
    """Base for all waypoint-specific errors."""


class ConfigurationError(WaypointError):
    """Raised when routing configuration is invalid."""


class InvalidTemplate(ConfigurationError):
    """A path template is structurally unusable.

    Raised by ``parse_template()`` for empty or numeric parameter names and
    for parameter names that appear twice in one template.
    """

    def __init__(self, template: str, reason: str) -> None:
        self.template = template
        self.reason = reason
        super().__init__(f"Invalid template {template!r}: {reason}")


class InvalidDescriptor(WaypointError):
    """A descriptor was refused by a route table.

    Never raised by the table itself. ``RouteTable.add()`` returns an
    instance inside a failed ``MutationResult`` and the caller decides
    what to do with it.
    """


class UnknownRoute(WaypointError):
    """A table mutation named a path or descriptor the table does not hold.

    Returned inside a failed ``MutationResult``, like ``InvalidDescriptor``.
    """


class NavigationError(WaypointError):
    """Base for errors raised out of ``navigate()``."""


class NoMatch(NavigationError):  # noqa: N818 — mirrors the resolution outcome
    """No descriptor and no fallback matched a pathname."""

    def __init__(self, pathname: str) -> None:
        self.pathname = pathname
        super().__init__(f"No route found for {pathname!r}")
