"""Navigation controller — the per-node navigation state machine.

One controller is mounted per routed UI subtree. ``navigate()`` runs the
guarded transition::

    leave guard (self) -> leave guards (subtree) -> resolve -> enter guard
    -> commit -> forward tail to children -> render + notify

Every call takes a token when it is issued. Only the newest token is
authoritative: older calls notice at their next checkpoint and stop
without committing. Calls on one node run strictly one after another;
children run their own navigations concurrently once a tail is forwarded.

Usage::

    host = HostElement()
    routes = NavigationController(host, [
        RouteDescriptor("/", render=home),
        RouteDescriptor("/client/*", render=client),
    ])
    routes.connect()
    await routes.navigate("/client/orders")
"""

import asyncio
import logging
import weakref
from collections.abc import Callable, Coroutine, Iterable, Mapping
from typing import Any

import anyio

from waypoint._internal.invoke import invoke, invoke_guard
from waypoint.config import NavigatorConfig
from waypoint.errors import NavigationError
from waypoint.navigation.host import Host, HostEvent
from waypoint.navigation.state import (
    LocationChanged,
    NavigationPhase,
    NavigationState,
    frozen_params,
)
from waypoint.navigation.tree import Announcement, ChildRegistry, announce
from waypoint.routing.pattern import tail_capture
from waypoint.routing.route import RouteDescriptor
from waypoint.routing.table import RouteTable

logger = logging.getLogger("waypoint.navigation")


class NavigationController:
    """Routes a pathname to a descriptor and keeps a subtree in sync.

    Owns its ``RouteTable``, its committed ``NavigationState`` and the set
    of child controllers it has claimed. Holds its parent weakly.
    """

    __slots__ = (
        "__weakref__",
        "_children",
        "_config",
        "_connected",
        "_host",
        "_parent",
        "_pending",
        "_phase",
        "_state",
        "_tasks",
        "_token",
        "_torn_down",
        "_unregister",
        "table",
    )

    def __init__(
        self,
        host: Host,
        routes: Iterable[RouteDescriptor] = (),
        *,
        fallback: RouteDescriptor | None = None,
        config: NavigatorConfig | None = None,
    ) -> None:
        self._config = config or NavigatorConfig()
        self._host = host
        self.table = RouteTable(routes, fallback=fallback, config=self._config)
        self.table.bind(self)
        self._state = NavigationState()
        self._phase = NavigationPhase.IDLE
        self._token = 0
        self._pending: asyncio.Future[None] | None = None
        self._children = ChildRegistry()
        self._parent: weakref.ref[NavigationController] | None = None
        self._unregister: Callable[[], None] | None = None
        self._connected = False
        self._torn_down = False
        self._tasks: set[asyncio.Task[Any]] = set()

    def __repr__(self) -> str:
        return f"NavigationController({self._host!r}, pathname={self._state.pathname!r})"

    # -- Introspection -------------------------------------------------------

    @property
    def host(self) -> Host:
        return self._host

    @property
    def config(self) -> NavigatorConfig:
        return self._config

    @property
    def state(self) -> NavigationState:
        """The committed state. Replaced whole by each commit."""
        return self._state

    @property
    def phase(self) -> NavigationPhase:
        """Phase of the most recently issued navigation."""
        return self._phase

    @property
    def params(self) -> Mapping[str, str]:
        """URL-derived params of the committed route (read-only)."""
        return self._state.params

    @property
    def pending_token(self) -> int | None:
        """Token of the authoritative navigation, or ``None`` when idle."""
        return self._token if self._pending is not None else None

    @property
    def is_navigating(self) -> bool:
        return self._pending is not None

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def parent(self) -> "NavigationController | None":
        return self._parent() if self._parent is not None else None

    @property
    def children(self) -> tuple["NavigationController", ...]:
        return tuple(self._children)

    # -- Lifecycle -----------------------------------------------------------

    def connect(self) -> None:
        """Activate: listen for child announcements, then announce self.

        If an active ancestor claims this controller and already holds a
        tail from its last commit, the tail is forwarded here immediately.
        """
        if self._connected:
            return
        self._connected = True
        self._torn_down = False
        event_type = self._config.routes_connected_event
        self._host.add_listener(event_type, self._on_routes_connected)
        announcement = announce(self._host, self, event_type)
        self._unregister = announcement.on_disconnect
        if announcement.claimed:
            logger.debug("%r claimed by %r", self, self.parent)

    def disconnect(self) -> None:
        """Deactivate: unregister from the parent before anything else.

        Any navigation in flight is abandoned; it will not commit.
        """
        if self._unregister is not None:
            self._unregister()
            self._unregister = None
        self._parent = None
        if self._connected:
            self._host.remove_listener(
                self._config.routes_connected_event, self._on_routes_connected
            )
        self._connected = False
        self._torn_down = True
        self._token += 1
        self._pending = None
        self.table.flush_deferred()

    def _on_routes_connected(self, event: HostEvent) -> None:
        announcement: Announcement = event.detail
        child = announcement.node
        # Our own announcement passes through our own host first
        if child is self:
            return

        event.stop_propagation()
        announcement.on_disconnect = self._children.claim(child)
        child._parent = weakref.ref(self)

        tail = tail_capture(self._state.params)
        if tail is not None:
            logger.debug("Forwarding pending tail %r to new child %r", tail, child)
            self._spawn(child.navigate(tail, self._state.passed_params))

    # -- Navigation ----------------------------------------------------------

    async def navigate(
        self,
        pathname: str,
        passed_params: Mapping[str, Any] | None = None,
    ) -> NavigationPhase:
        """Navigate this controller (and, via the tail, its children).

        Returns ``COMMITTED`` on success and ``CANCELLED`` when a guard
        returned ``False`` or a newer navigation superseded this one.
        Raises ``NoMatch`` when nothing matches, and lets guard exceptions
        propagate. On any non-commit outcome the committed state is left
        exactly as it was.

        Does not navigate parents. Children navigate in their own tasks;
        use ``settle()`` to wait for the whole subtree.
        """
        return await self._navigate(pathname, dict(passed_params or {}), skip_leave=False)

    async def recover(
        self,
        pathname: str,
        passed_params: Mapping[str, Any] | None = None,
    ) -> NavigationPhase:
        """Re-navigate to *pathname* without running any leave guard.

        Meant to be called once by the top-level caller after ``navigate()``
        raised, to bring committed state back in line with the real location
        without firing leave side effects a second time.
        """
        return await self._navigate(pathname, dict(passed_params or {}), skip_leave=True)

    async def _navigate(
        self,
        pathname: str,
        passed: dict[str, Any],
        *,
        skip_leave: bool,
    ) -> NavigationPhase:
        previous = self._pending
        settled: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._pending = settled
        self._token += 1
        token = self._token
        logger.debug("Navigation #%d to %r on %r", token, pathname, self)
        try:
            # Outcome of the previous call is not ours to report
            if previous is not None and not previous.done():
                await asyncio.wait([previous])
            return await self._perform(pathname, passed, token, skip_leave=skip_leave)
        finally:
            settled.set_result(None)
            if self._pending is settled:
                self._pending = None
                self.table.flush_deferred()

    async def _perform(
        self,
        pathname: str,
        passed: dict[str, Any],
        token: int,
        *,
        skip_leave: bool,
    ) -> NavigationPhase:
        try:
            return await self._transition(pathname, passed, token, skip_leave=skip_leave)
        except Exception:
            if self._is_current(token):
                self._phase = NavigationPhase.FAILED
            logger.debug("Navigation #%d to %r failed", token, pathname)
            raise

    async def _transition(
        self,
        pathname: str,
        passed: dict[str, Any],
        token: int,
        *,
        skip_leave: bool,
    ) -> NavigationPhase:
        if not self._is_current(token):
            return self._superseded(token)

        if not skip_leave:
            self._set_phase(token, NavigationPhase.LEAVING_SELF)
            current = self._state
            if current.route is not None and current.route.leave is not None:
                if not await invoke_guard(current.route.leave, current.merged_params()):
                    return self._vetoed(token, current.route.path)
            if not self._is_current(token):
                return self._superseded(token)

            self._set_phase(token, NavigationPhase.LEAVING_CHILDREN)
            if not await self.children_can_leave():
                return self._vetoed(token, "a child route")
            if not self._is_current(token):
                return self._superseded(token)

        self._set_phase(token, NavigationPhase.MATCHING)
        resolved = self.table.resolve(pathname)

        route = resolved.route
        if route is not None:
            self._set_phase(token, NavigationPhase.ENTERING)
            if route.enter is not None:
                if not await invoke_guard(route.enter, {**resolved.params, **passed}):
                    return self._vetoed(token, route.path)

        if not self._is_current(token):
            return self._superseded(token)

        self._state = NavigationState(
            pathname=resolved.pathname,
            requested_pathname=pathname,
            route=route,
            params=frozen_params(resolved.params),
            passed_params=frozen_params(passed),
        )
        self._phase = NavigationPhase.COMMITTED
        logger.debug(
            "Navigation #%d committed %r -> %s",
            token,
            pathname,
            route.path if route is not None else "<passthrough>",
        )

        if resolved.tail is not None:
            for child in self._children:
                self._spawn(child.navigate(resolved.tail, passed))

        if self._is_current(token):
            self._host.request_render()
            self._notify()
        return NavigationPhase.COMMITTED

    async def can_leave(self) -> bool:
        """Ask the committed route's leave guard, then the whole subtree."""
        state = self._state
        if state.route is not None and state.route.leave is not None:
            if not await invoke_guard(state.route.leave, state.merged_params()):
                return False
        return await self.children_can_leave()

    async def children_can_leave(self) -> bool:
        """Depth-first leave check over every registered child.

        Stops at the first ``False``.
        """
        for child in self._children:
            if not await child.can_leave():
                return False
        return True

    async def settle(self) -> None:
        """Wait until this controller and its whole subtree are idle."""
        while True:
            waiting: list[asyncio.Future[Any]] = [t for t in self._tasks if not t.done()]
            if self._pending is not None:
                waiting.append(self._pending)
            if waiting:
                await asyncio.wait(waiting)
                continue

            async with anyio.create_task_group() as tg:
                for child in self._children:
                    tg.start_soon(child.settle)

            if self._pending is None and not any(not t.done() for t in self._tasks):
                return

    # -- Rendering and links -------------------------------------------------

    def outlet(self) -> Any:
        """Render the committed route with merged params, or ``None``."""
        route = self._state.route
        if route is None:
            return None
        return route.render(self._state.merged_params())

    async def outlet_async(self) -> Any:
        """Like ``outlet()``, awaiting an async ``render``."""
        route = self._state.route
        if route is None:
            return None
        return await invoke(route.render, self._state.merged_params())

    def link(self, pathname: str | None = None) -> str:
        """Full URL path of the committed location, or of *pathname*.

        Absolute paths are returned unchanged. Anything else is appended
        to the parent chain's link. Relative paths (``./``, ``../``) are
        not supported.
        """
        if pathname and pathname.startswith("/"):
            return pathname
        if pathname and pathname.startswith("."):
            msg = f"Relative links are not supported: {pathname!r}"
            raise NavigationError(msg)
        local = pathname or self._state.pathname or ""
        parent = self.parent
        return (parent.link() if parent is not None else "") + local

    # -- Table owner hooks ---------------------------------------------------

    def route_added(self, route: RouteDescriptor) -> None:
        requested = self._state.requested_pathname
        if requested is None or not self._renavigates():
            return
        if route.pattern.test(requested):
            logger.debug("New route %s matches %r, re-navigating", route.path, requested)
            self._spawn(self.navigate(requested, self._state.passed_params))

    def route_removed(self, route: RouteDescriptor) -> None:
        requested = self._state.requested_pathname
        if route is not self._state.route or requested is None or not self._renavigates():
            return
        logger.debug("Removed the committed route %s, re-navigating", route.path)
        self._spawn(self.navigate(requested, self._state.passed_params))

    def route_updated(self, route: RouteDescriptor, changes: dict[str, Any]) -> None:
        if route is self._state.route and "render" in changes:
            self._host.request_render()

    def routes_cleared(self) -> None:
        requested = self._state.requested_pathname
        if requested is None or not self._renavigates():
            return
        logger.debug("Routes cleared, re-navigating %r", requested)
        self._spawn(self.navigate(requested, self._state.passed_params))

    # -- Internals -----------------------------------------------------------

    def _renavigates(self) -> bool:
        return self._config.renavigate_on_change and not self._torn_down

    def _is_current(self, token: int) -> bool:
        # A torn-down node may still have tail navigations queued by its parent
        return token == self._token and not self._torn_down

    def _set_phase(self, token: int, phase: NavigationPhase) -> None:
        if self._is_current(token):
            self._phase = phase

    def _vetoed(self, token: int, by: str) -> NavigationPhase:
        logger.debug("Navigation #%d vetoed by %s", token, by)
        self._set_phase(token, NavigationPhase.CANCELLED)
        return NavigationPhase.CANCELLED

    def _superseded(self, token: int) -> NavigationPhase:
        if self._torn_down:
            logger.debug("Navigation #%d abandoned: %r is disconnected", token, self)
        else:
            logger.debug("Navigation #%d superseded by #%d", token, self._token)
        return NavigationPhase.CANCELLED

    def _notify(self) -> None:
        state = self._state
        detail = LocationChanged(
            local_path=state.pathname or "",
            full_path=self.link(),
            params=state.params,
            passed_params=state.passed_params,
            route=state.route,
        )
        self._host.dispatch_event(
            HostEvent(type=self._config.location_changed_event, detail=detail)
        )

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.debug("No running event loop; %r will sync on its next navigation", self)
            return
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Detached navigation from %r failed", self, exc_info=exc)
