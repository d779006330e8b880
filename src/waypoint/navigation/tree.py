"""Tree registration — how nested controllers find each other.

On activation a controller *announces* itself with a bubbling event from
its own host. The nearest active ancestor controller *claims* it: it adds
the child to its ``ChildRegistry``, stops the event, and hands back an
unregister callback through the announcement. The child calls that
callback first thing on deactivation, so it can never receive a tail meant
for a subtree that replaced it.

Children are held strongly by their parent's registry until they
unregister; the parent is held weakly by the child.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from waypoint.navigation.host import Host, HostEvent

if TYPE_CHECKING:
    from waypoint.navigation.controller import NavigationController


@dataclass(slots=True, eq=False)
class Announcement:
    """Payload of the announce event.

    ``on_disconnect`` is filled in by the claiming ancestor and stays
    ``None`` when no ancestor is active.
    """

    node: NavigationController
    on_disconnect: Callable[[], None] | None = None

    @property
    def claimed(self) -> bool:
        return self.on_disconnect is not None


class ChildRegistry:
    """The controllers a node has claimed, in claim order."""

    __slots__ = ("_children",)

    def __init__(self) -> None:
        self._children: list[NavigationController] = []

    def claim(self, child: NavigationController) -> Callable[[], None]:
        """Register *child* and return the callback that unregisters it."""
        self._children.append(child)

        def unregister() -> None:
            self.discard(child)

        return unregister

    def discard(self, child: NavigationController) -> None:
        for i, existing in enumerate(self._children):
            if existing is child:
                del self._children[i]
                return

    def __iter__(self) -> Iterator[NavigationController]:
        # Snapshot: children may unregister while a caller iterates
        return iter(tuple(self._children))

    def __len__(self) -> int:
        return len(self._children)

    def __contains__(self, child: object) -> bool:
        return any(existing is child for existing in self._children)


def announce(host: Host, node: NavigationController, event_type: str) -> Announcement:
    """Dispatch *node*'s announce event from *host* and return the result."""
    announcement = Announcement(node=node)
    host.dispatch_event(HostEvent(type=event_type, detail=announcement))
    return announcement
