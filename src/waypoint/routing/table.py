"""Route table — an ordered, mutable set of route descriptors.

Insertion order is the final tie-break; resolution walks a score-sorted
view that is cached against the identity of the live descriptor tuple and
recomputed only after a structural mutation.

Structural mutations made while the owning controller has a navigation in
flight are queued and replayed, in call order, once it settles::

    table = RouteTable([RouteDescriptor("/", home)])
    table.add(RouteDescriptor("/users/:id", user))
    table.resolve("/users/42").params  # {"id": "42"}
"""

import logging
from collections import deque
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from waypoint.config import NavigatorConfig
from waypoint.errors import (
    ConfigurationError,
    InvalidDescriptor,
    InvalidTemplate,
    NoMatch,
    UnknownRoute,
    WaypointError,
)
from waypoint.routing.pattern import (
    CompiledPattern,
    compile_pattern,
    match,
    normalize_pathname,
    tail_capture,
)
from waypoint.routing.route import RouteDescriptor, RouteMatch

logger = logging.getLogger("waypoint.routing")

# Fields ``update()`` may change; ``path`` is fixed for a descriptor's lifetime
_UPDATABLE = frozenset({"render", "enter", "leave", "name"})


class TableOwner(Protocol):
    """What a table needs from the controller that owns it."""

    @property
    def is_navigating(self) -> bool: ...

    def route_added(self, route: RouteDescriptor) -> None: ...

    def route_removed(self, route: RouteDescriptor) -> None: ...

    def route_updated(self, route: RouteDescriptor, changes: dict[str, Any]) -> None: ...

    def routes_cleared(self) -> None: ...


class MutationStatus(Enum):
    """Outcome of a table mutation."""

    APPLIED = "applied"
    DEFERRED = "deferred"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class MutationResult:
    """The outcome of a table mutation.

    Rejections are returned, never raised. The result is falsy only when
    rejected, so you can write::

        result = table.add(route)
        if not result:
            log.warning("route refused: %s", result.error)

    A deferred mutation is truthy: it will be applied once the owning
    controller's navigation settles.
    """

    status: MutationStatus
    route: RouteDescriptor | None = None
    error: WaypointError | None = None

    @property
    def applied(self) -> bool:
        return self.status is MutationStatus.APPLIED

    @property
    def deferred(self) -> bool:
        return self.status is MutationStatus.DEFERRED

    def __bool__(self) -> bool:
        return self.status is not MutationStatus.REJECTED


_DEFERRED = MutationResult(MutationStatus.DEFERRED)


def _rejected(error: WaypointError) -> MutationResult:
    return MutationResult(MutationStatus.REJECTED, error=error)


def check_descriptor(route: Any) -> InvalidDescriptor | None:
    """Return why *route* cannot be added to a table, or ``None``."""
    if not isinstance(route, RouteDescriptor):
        return InvalidDescriptor(f"Expected a RouteDescriptor, got {type(route).__name__}")
    if not isinstance(route.path, str) or not route.path:
        return InvalidDescriptor("Route is missing a non-empty path")
    if not callable(route.render):
        return InvalidDescriptor(f"Route {route.path!r} has no callable render")
    try:
        route.pattern  # noqa: B018 — compile now so bad templates fail at add time
    except InvalidTemplate as exc:
        return InvalidDescriptor(str(exc))
    return None


class RouteTable:
    """Ordered route descriptors plus an optional fallback.

    The fallback is matched through ``config.fallback_template`` (a deep
    wildcard by default) and only when no descriptor matches. It keeps its
    own identity, so a committed fallback is recognisable by ``is``.
    """

    __slots__ = (
        "_config",
        "_deferred",
        "_fallback",
        "_fallback_pattern",
        "_owner",
        "_routes",
        "_sorted",
        "_sorted_from",
    )

    def __init__(
        self,
        routes: Iterable[RouteDescriptor] = (),
        *,
        fallback: RouteDescriptor | None = None,
        config: NavigatorConfig | None = None,
    ) -> None:
        self._config = config or NavigatorConfig()
        self._routes: tuple[RouteDescriptor, ...] = ()
        self._sorted: tuple[RouteDescriptor, ...] = ()
        self._sorted_from: tuple[RouteDescriptor, ...] | None = None
        self._deferred: deque[Callable[[], MutationResult]] = deque()
        self._owner: TableOwner | None = None
        self._fallback_pattern: CompiledPattern = compile_pattern(self._config.fallback_template)
        self._fallback: RouteDescriptor | None = None

        for route in routes:
            result = self._add_now(route, None)
            if not result:
                raise ConfigurationError(str(result.error))
        if fallback is not None:
            self._check_fallback(fallback)
            self._fallback = fallback

    def bind(self, owner: TableOwner) -> None:
        """Attach the controller whose navigation state this table serves."""
        self._owner = owner

    # -- Read access ---------------------------------------------------------

    @property
    def fallback(self) -> RouteDescriptor | None:
        return self._fallback

    @property
    def is_empty(self) -> bool:
        """True when there are no descriptors and no fallback."""
        return not self._routes and self._fallback is None

    def get(self, path: str) -> RouteDescriptor | None:
        """Return the descriptor registered for template *path*."""
        for route in self._routes:
            if route.path == path:
                return route
        return None

    def has(self, path: str) -> bool:
        return self.get(path) is not None

    def list(self) -> list[RouteDescriptor]:
        """Return a copy of the descriptors in insertion order."""
        return list(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def __iter__(self) -> Iterator[RouteDescriptor]:
        return iter(self._routes)

    def __contains__(self, route: object) -> bool:
        return any(r is route for r in self._routes)

    def sorted_view(self) -> tuple[RouteDescriptor, ...]:
        """Descriptors in resolution order.

        Score descending, then specificity descending, then insertion order.
        Cached until the next structural mutation replaces ``_routes``.
        """
        if self._sorted_from is not self._routes:
            ranked = sorted(
                enumerate(self._routes),
                key=lambda item: (-item[1].pattern.score, -item[1].pattern.specificity, item[0]),
            )
            self._sorted = tuple(route for _, route in ranked)
            self._sorted_from = self._routes
        return self._sorted

    def resolve(self, pathname: str) -> RouteMatch:
        """Find the best descriptor for *pathname*.

        A table with no descriptors and no fallback behaves like a single
        ``/**`` route without a descriptor: the whole pathname becomes the
        tail and nothing is consumed locally.

        Raises ``NoMatch`` when neither a descriptor nor the fallback applies.
        """
        if self.is_empty:
            return RouteMatch(route=None, params={"0": pathname}, pathname="", tail=pathname)

        normalized = normalize_pathname(pathname)
        route: RouteDescriptor | None = None
        params: dict[str, str] | None = None
        for candidate in self.sorted_view():
            params = match(normalized, candidate.pattern)
            if params is not None:
                route = candidate
                break

        if route is None or params is None:
            if self._fallback is None:
                raise NoMatch(pathname)
            route = self._fallback
            params = match(normalized, self._fallback_pattern) or {}

        tail = tail_capture(params)
        local = normalized if tail is None else normalized[: len(normalized) - len(tail)]
        return RouteMatch(route=route, params=params, pathname=local, tail=tail)

    # -- Mutations -----------------------------------------------------------

    def add(self, route: RouteDescriptor, index: int | None = None) -> MutationResult:
        """Add *route*, at *index* in insertion order if given.

        Rejects (returns a falsy result carrying ``InvalidDescriptor``) a
        descriptor without a path, without a callable ``render``, with an
        unusable template, or whose path is already registered.
        """
        error = check_descriptor(route)
        if error is not None:
            logger.warning("Route rejected: %s", error)
            return _rejected(error)
        if self._must_defer():
            logger.debug("Deferring add of %r until navigation settles", route.path)
            self._deferred.append(lambda: self.add(route, index))
            return _DEFERRED
        return self._add_now(route, index)

    def remove(self, path_or_route: str | RouteDescriptor) -> MutationResult:
        """Remove a descriptor by template path or by identity."""
        if self._must_defer():
            logger.debug("Deferring remove of %r until navigation settles", path_or_route)
            self._deferred.append(lambda: self.remove(path_or_route))
            return _DEFERRED

        if isinstance(path_or_route, str):
            target = self.get(path_or_route)
        else:
            target = next((r for r in self._routes if r is path_or_route), None)
        if target is None:
            logger.warning("Route not found for removal: %r", path_or_route)
            return _rejected(UnknownRoute(f"No route {path_or_route!r} to remove"))

        self._routes = tuple(r for r in self._routes if r is not target)
        target.invalidate()
        logger.debug("Route removed: %s", target.path)
        if self._owner is not None:
            self._owner.route_removed(target)
        return MutationResult(MutationStatus.APPLIED, route=target)

    def update(self, path: str, /, **changes: Any) -> MutationResult:
        """Update fields of the descriptor registered for *path*.

        Only ``render``, ``enter``, ``leave`` and ``name`` can change; a
        descriptor's path is fixed. Passing ``None`` for ``enter``,
        ``leave`` or ``name`` clears it::

            table.update("/checkout", leave=None)  # drop the leave guard
        """
        unknown = set(changes) - _UPDATABLE
        if unknown:
            error = InvalidDescriptor(f"Cannot update {', '.join(sorted(unknown))} of {path!r}")
            return _rejected(error)
        if self._must_defer():
            logger.debug("Deferring update of %r until navigation settles", path)
            self._deferred.append(lambda: self.update(path, **changes))
            return _DEFERRED

        route = self.get(path)
        if route is None:
            logger.warning("Route not found for update: %r", path)
            return _rejected(UnknownRoute(f"No route {path!r} to update"))

        if "render" in changes and not callable(changes["render"]):
            return _rejected(InvalidDescriptor(f"Route {path!r} render must be callable"))
        for key, value in changes.items():
            setattr(route, key, value)
        logger.debug("Route updated: %s (%s)", path, ", ".join(sorted(changes)))
        if self._owner is not None:
            self._owner.route_updated(route, changes)
        return MutationResult(MutationStatus.APPLIED, route=route)

    def clear(self, *, keep_fallback: bool = True) -> MutationResult:
        """Remove every descriptor, and the fallback unless *keep_fallback*."""
        if self._must_defer():
            logger.debug("Deferring clear until navigation settles")
            self._deferred.append(lambda: self.clear(keep_fallback=keep_fallback))
            return _DEFERRED

        for route in self._routes:
            route.invalidate()
        self._routes = ()
        if not keep_fallback:
            self._fallback = None
        logger.debug("All routes cleared (keep_fallback=%s)", keep_fallback)
        if self._owner is not None:
            self._owner.routes_cleared()
        return MutationResult(MutationStatus.APPLIED)

    def set_fallback(self, route: RouteDescriptor | None) -> MutationResult:
        """Install or remove the fallback descriptor."""
        if route is not None:
            try:
                self._check_fallback(route)
            except ConfigurationError as exc:
                return _rejected(InvalidDescriptor(str(exc)))
        if self._must_defer():
            self._deferred.append(lambda: self.set_fallback(route))
            return _DEFERRED
        self._fallback = route
        return MutationResult(MutationStatus.APPLIED, route=route)

    def flush_deferred(self) -> None:
        """Replay queued mutations in call order.

        Called by the owning controller once its navigation has settled.
        Stops early if a replayed mutation finds a navigation in flight
        again; the rest stay queued behind it.
        """
        while self._deferred and not self._must_defer():
            result = self._deferred.popleft()()
            if not result:
                logger.warning("Deferred route mutation failed: %s", result.error)

    @property
    def pending_mutations(self) -> int:
        return len(self._deferred)

    # -- Internals -----------------------------------------------------------

    def _must_defer(self) -> bool:
        return self._owner is not None and self._owner.is_navigating

    def _add_now(self, route: RouteDescriptor, index: int | None) -> MutationResult:
        error = check_descriptor(route)
        if error is None and self.has(route.path):
            error = InvalidDescriptor(f"Route with path {route.path!r} already exists")
        if error is not None:
            logger.warning("Route rejected: %s", error)
            return _rejected(error)

        routes = list(self._routes)
        if index is not None and 0 <= index <= len(routes):
            routes.insert(index, route)
        else:
            routes.append(route)
        route.invalidate()
        self._routes = tuple(routes)
        logger.debug("Route added: %s", route.path)
        if self._owner is not None:
            self._owner.route_added(route)
        return MutationResult(MutationStatus.APPLIED, route=route)

    @staticmethod
    def _check_fallback(route: RouteDescriptor) -> None:
        if not isinstance(route, RouteDescriptor) or not callable(route.render):
            msg = "Fallback must be a RouteDescriptor with a callable render"
            raise ConfigurationError(msg)
