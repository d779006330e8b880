"""Shared type aliases used across waypoint modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

Params: TypeAlias = dict[str, Any]
Guard: TypeAlias = Callable[[Params], Any]
Render: TypeAlias = Callable[[Params], Any]
Listener: TypeAlias = Callable[[Any], None]
