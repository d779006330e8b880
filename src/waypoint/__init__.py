"""Waypoint — nested, guarded client-side routing.

Resolves a path against prioritized route templates and drives a tree of
navigation controllers through cancellable, guarded transitions.

Basic usage::

    from waypoint import HostElement, NavigationController, RouteDescriptor

    routes = NavigationController(HostElement(), [
        RouteDescriptor("/", render=lambda params: "home"),
        RouteDescriptor("/users/:id", render=lambda params: f"user {params['id']}"),
    ])
    await routes.navigate("/users/42")
    routes.outlet()  # "user 42"

Nested routes hand the tail of a wildcard match to child controllers::

    parent = NavigationController(app_host, [RouteDescriptor("/client/*", render=client)])
    child = NavigationController(panel_host, [RouteDescriptor("/orders", render=orders)])
"""

__version__ = "0.1.0-dev"
__all__ = [
    "ConfigurationError",
    "HostElement",
    "HostEvent",
    "InvalidDescriptor",
    "InvalidTemplate",
    "LocationChanged",
    "MemoryLocation",
    "MutationResult",
    "NavigationController",
    "NavigationError",
    "NavigationPhase",
    "NavigationState",
    "Navigator",
    "NavigatorConfig",
    "NoMatch",
    "RouteDescriptor",
    "RouteTable",
    "UnknownRoute",
    "WaypointError",
    "compile_pattern",
    "score",
    "with_deadline",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import waypoint`` fast while providing a clean top-level API.
    """
    if name == "NavigatorConfig":
        from waypoint.config import NavigatorConfig

        return NavigatorConfig

    if name == "RouteDescriptor":
        from waypoint.routing.route import RouteDescriptor

        return RouteDescriptor

    if name in ("RouteTable", "MutationResult"):
        from waypoint.routing import table as _table

        return getattr(_table, name)

    if name in ("compile_pattern", "score"):
        from waypoint.routing import pattern as _pattern

        return getattr(_pattern, name)

    if name == "NavigationController":
        from waypoint.navigation.controller import NavigationController

        return NavigationController

    if name in ("NavigationPhase", "NavigationState", "LocationChanged"):
        from waypoint.navigation import state as _state

        return getattr(_state, name)

    if name in ("HostElement", "HostEvent"):
        from waypoint.navigation import host as _host

        return getattr(_host, name)

    if name in ("Navigator", "MemoryLocation"):
        from waypoint import navigator as _navigator

        return getattr(_navigator, name)

    if name == "with_deadline":
        from waypoint._internal.invoke import with_deadline

        return with_deadline

    if name in (
        "ConfigurationError",
        "InvalidDescriptor",
        "InvalidTemplate",
        "NavigationError",
        "NoMatch",
        "UnknownRoute",
        "WaypointError",
    ):
        from waypoint import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
