"""Root-level navigator — ties a controller tree to a location.

The navigator wraps the root ``NavigationController`` rather than
extending it. It splits URLs, hands query and fragment through as opaque
passed params, records the location only after a commit, and recovers
the tree after a failed navigation::

    location = MemoryLocation("/")
    nav = Navigator(NavigationController(HostElement(), routes), location)
    await nav.start()
    await nav.goto("/users/42?tab=posts")
    location.href  # "/users/42?tab=posts"
"""

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from waypoint.config import NavigatorConfig
from waypoint.errors import NavigationError
from waypoint.navigation.controller import NavigationController
from waypoint.navigation.state import NavigationPhase

logger = logging.getLogger("waypoint.navigator")


class Location(Protocol):
    """Where the navigator reads and records the current URL."""

    @property
    def href(self) -> str: ...

    @property
    def pathname(self) -> str: ...

    def push(self, url: str) -> None: ...

    def replace(self, url: str) -> None: ...


def split_url(url: str) -> tuple[str, str, str]:
    """Split *url* into ``(pathname, query, fragment)``.

    Query and fragment are returned raw, without their ``?``/``#``::

        split_url("/a/b?x=1#top")  -> ("/a/b", "x=1", "top")
    """
    rest, _, fragment = url.partition("#")
    pathname, _, query = rest.partition("?")
    return pathname, query, fragment


class MemoryLocation:
    """In-process location with a back/forward entry stack."""

    __slots__ = ("_entries", "_index")

    def __init__(self, url: str = "/") -> None:
        self._entries: list[str] = [url]
        self._index = 0

    def __repr__(self) -> str:
        return f"MemoryLocation({self.href!r})"

    @property
    def href(self) -> str:
        return self._entries[self._index]

    @property
    def pathname(self) -> str:
        return split_url(self.href)[0]

    @property
    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def push(self, url: str) -> None:
        del self._entries[self._index + 1 :]
        self._entries.append(url)
        self._index += 1

    def replace(self, url: str) -> None:
        self._entries[self._index] = url

    def back(self) -> str | None:
        if self._index == 0:
            return None
        self._index -= 1
        return self.href

    def forward(self) -> str | None:
        if self._index + 1 >= len(self._entries):
            return None
        self._index += 1
        return self.href


class Navigator:
    """Drives a root controller from URLs and keeps a ``Location`` in step."""

    __slots__ = ("_closed", "_location", "routes")

    def __init__(self, routes: NavigationController, location: Location | None = None) -> None:
        self.routes = routes
        self._location: Location = location if location is not None else MemoryLocation()
        self._closed = True

    @property
    def location(self) -> Location:
        return self._location

    @property
    def config(self) -> NavigatorConfig:
        return self.routes.config

    async def start(self) -> NavigationPhase | None:
        """Connect the root controller and navigate to the current location."""
        self._closed = False
        self.routes.connect()
        return await self.safe_goto(self._location.href)

    def close(self) -> None:
        """Disconnect the root controller. Later calls to ``goto`` do nothing."""
        self._closed = True
        self.routes.disconnect()

    async def goto(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
    ) -> NavigationPhase | None:
        """Navigate to *url* and record it once the navigation commits.

        A vetoed navigation leaves the location untouched. Errors from the
        controller (``NoMatch``, guard exceptions) propagate, also with the
        location untouched. Returns ``None`` once the navigator is closed.
        """
        if self._closed:
            return None

        url = url.strip() or "/"
        pathname, query, fragment = split_url(url)
        if not pathname:
            msg = f"Invalid URL {url!r}: pathname must be non-empty"
            raise NavigationError(msg)

        config = self.config
        passed = {**(params or {}), config.query_key: query, config.fragment_key: fragment}
        outcome = await self.routes.navigate(pathname, passed)

        if outcome is NavigationPhase.COMMITTED and url != self._location.href:
            if pathname == self._location.pathname:
                self._location.replace(url)
            else:
                self._location.push(url)
        return outcome

    async def safe_goto(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
    ) -> NavigationPhase | None:
        """Like ``goto()``, but log a failure and recover instead of raising.

        Recovery re-navigates the tree to the recorded location without
        running leave guards, so a failed attempt cannot fire them twice.
        """
        try:
            return await self.goto(url, params)
        except Exception:
            logger.exception("Navigation to %r failed", url)

        pathname = self._location.pathname
        try:
            await self.routes.recover(pathname)
        except Exception:
            logger.exception("Recovery navigation to %r also failed", pathname)
        else:
            logger.info("Recovered navigation state at %r", pathname)
        return NavigationPhase.FAILED

    async def restore(self) -> NavigationPhase | None:
        """Re-sync the tree after the location changed underneath us.

        Use after back/forward movement on the location.
        """
        return await self.safe_goto(self._location.href)

    async def settle(self) -> None:
        """Wait until the whole controller tree is idle."""
        await self.routes.settle()
