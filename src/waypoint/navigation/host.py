"""Host surface — what a navigation controller needs from its UI subtree.

A controller is mounted on a *host*: the element that renders its outlet.
The controller asks the host to re-render after a commit and dispatches
events through it. Events bubble from the host towards the root, which is
how nested controllers find their nearest active ancestor.

``HostElement`` is an in-process host with a parent chain and bubbling
listeners, enough to run a tree of controllers without a UI toolkit::

    root = HostElement()
    child = HostElement(parent=root)
    root.add_listener("waypoint-location-changed", print)
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

from waypoint._internal.types import Listener


@dataclass(slots=True, eq=False)
class HostEvent:
    """An event dispatched through a host.

    ``detail`` carries the payload. Listeners may call
    ``stop_propagation()`` to keep a bubbling event from reaching ancestors
    and the remaining listeners on the current host.
    """

    type: str
    detail: Any = None
    bubbles: bool = True
    propagation_stopped: bool = field(default=False, init=False)

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


class Host(Protocol):
    """The calls a controller makes on its host."""

    def request_render(self) -> None: ...

    def dispatch_event(self, event: HostEvent) -> None: ...

    def add_listener(self, event_type: str, listener: Listener) -> None: ...

    def remove_listener(self, event_type: str, listener: Listener) -> None: ...


class HostElement:
    """A minimal host: parent chain, bubbling listeners, render counter."""

    __slots__ = ("_listeners", "name", "parent", "render_requests")

    def __init__(self, parent: "HostElement | None" = None, *, name: str = "") -> None:
        self.parent = parent
        self.name = name
        self.render_requests = 0
        self._listeners: dict[str, list[Listener]] = {}

    def __repr__(self) -> str:
        return f"HostElement({self.name!r})" if self.name else "HostElement()"

    def request_render(self) -> None:
        self.render_requests += 1

    def add_listener(self, event_type: str, listener: Listener) -> None:
        self._listeners.setdefault(event_type, []).append(listener)

    def remove_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def dispatch_event(self, event: HostEvent) -> None:
        """Deliver *event* here, then to each ancestor while it bubbles."""
        node: HostElement | None = self
        while node is not None:
            for listener in list(node._listeners.get(event.type, ())):
                listener(event)
                if event.propagation_stopped:
                    return
            if not event.bubbles:
                return
            node = node.parent
