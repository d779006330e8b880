"""RouteDescriptor and RouteMatch dataclasses."""

from dataclasses import dataclass, field
from typing import Any

from waypoint._internal.types import Guard, Render
from waypoint.routing.pattern import CompiledPattern, compile_pattern


@dataclass(eq=False, slots=True)
class RouteDescriptor:
    """A route: a path template plus the callbacks bound to it.

    ``render`` is required. ``enter`` and ``leave`` are optional guards that
    may be sync or async and deny a transition only by returning ``False``.

    Descriptors compare by identity: the owning table removes them by
    reference and a controller recognises its committed route by ``is``.
    ``path`` cannot be reassigned once set; register a new descriptor
    instead. The compiled pattern is computed on first use.
    """

    path: str
    render: Render
    enter: Guard | None = None
    leave: Guard | None = None
    name: str | None = None
    _compiled: CompiledPattern | None = field(default=None, init=False, repr=False)

    def __setattr__(self, name: str, value: Any) -> None:
        # Tables sort and deduplicate by path, so it is fixed after __init__
        if name == "path" and hasattr(self, "path"):
            msg = f"RouteDescriptor.path is read-only (currently {self.path!r})"
            raise AttributeError(msg)
        object.__setattr__(self, name, value)

    @property
    def pattern(self) -> CompiledPattern:
        compiled = self._compiled
        if compiled is None:
            compiled = compile_pattern(self.path)
            self._compiled = compiled
        return compiled

    def invalidate(self) -> None:
        """Drop the cached compiled pattern."""
        self._compiled = None


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of resolving a pathname against a route table.

    ``route`` is ``None`` only for a table with no descriptors and no
    fallback, which passes the whole pathname through as its tail.
    ``pathname`` is the locally consumed part: the normalized input minus
    the tail.
    """

    route: RouteDescriptor | None
    params: dict[str, str]
    pathname: str
    tail: str | None = None
