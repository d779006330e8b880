"""Invoke helpers — call sync or async guards uniformly.

Route guards (``enter``/``leave``) and ``render`` callbacks can be ``def``
or ``async def``. Any code that calls a user-provided guard must handle
both cases. This module keeps the sync/async check and the guard verdict
rule in exactly one place.

Usage::

    from waypoint._internal.invoke import invoke_guard

    allowed = await invoke_guard(route.leave, params)
"""

import inspect
from collections.abc import Callable
from typing import Any

import anyio


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's awaitable."""
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


async def invoke_guard(guard: Callable[..., Any], params: dict[str, Any]) -> bool:
    """Run an enter/leave guard and return its verdict.

    Guards follow a three-valued contract: only an explicit ``False``
    denies. ``True``, ``None`` (a bare ``return``) and any other value
    permit the transition::

        def leave(params):
            if form.dirty:
                return False
            # falling off the end allows leaving

    Exceptions raised by the guard propagate unchanged.
    """
    return await invoke(guard, params) is not False


def with_deadline(guard: Callable[..., Any], seconds: float) -> Callable[..., Any]:
    """Wrap a guard so it fails with ``TimeoutError`` after *seconds*.

    The navigation engine never imposes a timeout of its own: a stalled
    guard only blocks later navigations on its own node. Callers that need
    bounded latency wrap their guards explicitly::

        RouteDescriptor("/checkout", render, leave=with_deadline(confirm, 5.0))
    """

    async def guarded(params: dict[str, Any]) -> Any:
        with anyio.fail_after(seconds):
            return await invoke(guard, params)

    guarded.__name__ = getattr(guard, "__name__", "guarded")
    guarded.__qualname__ = getattr(guard, "__qualname__", guarded.__name__)
    return guarded
