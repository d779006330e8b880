"""Navigation state — phases, committed state, and commit notifications."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from waypoint.routing.route import RouteDescriptor


def frozen_params(values: Mapping[str, Any]) -> Mapping[str, Any]:
    """Snapshot *values* into a read-only mapping."""
    return MappingProxyType(dict(values))


class NavigationPhase(Enum):
    """Phases a single ``navigate()`` call moves through.

    ``IDLE -> LEAVING_SELF -> LEAVING_CHILDREN -> MATCHING -> ENTERING -> COMMITTED``

    ``CANCELLED`` and ``FAILED`` are reachable from every non-terminal
    phase. A navigation superseded by a newer one ends ``CANCELLED``.
    """

    IDLE = "idle"
    LEAVING_SELF = "leaving_self"
    LEAVING_CHILDREN = "leaving_children"
    MATCHING = "matching"
    ENTERING = "entering"
    COMMITTED = "committed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            NavigationPhase.COMMITTED,
            NavigationPhase.CANCELLED,
            NavigationPhase.FAILED,
        )


@dataclass(frozen=True, slots=True)
class NavigationState:
    """A node's committed navigation state. Replaced whole on commit.

    ``pathname`` is ``None`` until the first commit. After a commit it is
    the locally consumed part of the navigated path (the full path minus
    any tail handed to children). ``requested_pathname`` is the path the
    committing ``navigate()`` call was given; table mutations re-resolve it.
    ``params`` and ``passed_params`` are read-only snapshots.
    """

    pathname: str | None = None
    requested_pathname: str | None = None
    route: RouteDescriptor | None = None
    params: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    passed_params: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def merged_params(self) -> dict[str, Any]:
        """URL params overlaid with passed params (passed params win)."""
        return {**self.params, **self.passed_params}


@dataclass(frozen=True, slots=True)
class LocationChanged:
    """Commit notification, dispatched as the ``detail`` of a host event.

    Shares the committed state's read-only param mappings.
    """

    local_path: str
    full_path: str
    params: Mapping[str, str]
    passed_params: Mapping[str, Any]
    route: RouteDescriptor | None
