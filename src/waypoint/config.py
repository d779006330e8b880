"""Navigator configuration.

NavigatorConfig is a frozen dataclass: immutable after creation,
IDE-autocompletable, no string-key dict lookups.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class NavigatorConfig:
    """Routing and navigation configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = NavigatorConfig(fallback_template="/*", renavigate_on_change=False)
    """

    # Template the table's fallback descriptor is implicitly bound to
    fallback_template: str = "/**"

    # Host event types
    routes_connected_event: str = "waypoint-routes-connected"
    location_changed_event: str = "waypoint-location-changed"

    # Re-resolve the committed pathname after add/remove/clear
    renavigate_on_change: bool = True

    # Passed-parameter keys for opaque query/fragment pass-through (Navigator)
    query_key: str = "query"
    fragment_key: str = "fragment"
