"""Tests for waypoint.navigation.controller — the navigation state machine."""

import asyncio
import logging
from typing import Any

import pytest

from waypoint.config import NavigatorConfig
from waypoint.errors import NavigationError, NoMatch
from waypoint.navigation.controller import NavigationController
from waypoint.navigation.host import HostElement, HostEvent
from waypoint.navigation.state import LocationChanged, NavigationPhase, NavigationState
from waypoint.routing.route import RouteDescriptor


def _render(params: dict[str, Any]) -> dict[str, Any]:
    return params


def _route(path: str, **kwargs: Any) -> RouteDescriptor:
    return RouteDescriptor(path, _render, **kwargs)


def _controller(*routes: RouteDescriptor, **kwargs: Any) -> NavigationController:
    return NavigationController(HostElement(), routes, **kwargs)


class TestCommit:
    @pytest.mark.anyio
    async def test_commits_route_and_params(self) -> None:
        user = _route("/users/:id")
        routes = _controller(_route("/"), user)

        outcome = await routes.navigate("/users/42", {"from": "test"})

        assert outcome is NavigationPhase.COMMITTED
        assert routes.phase is NavigationPhase.COMMITTED
        assert routes.state.route is user
        assert routes.params == {"id": "42"}
        assert routes.state.passed_params == {"from": "test"}
        assert routes.state.pathname == "/users/42"
        assert routes.state.requested_pathname == "/users/42"

    @pytest.mark.anyio
    async def test_requests_render(self) -> None:
        routes = _controller(_route("/"))
        await routes.navigate("/")
        assert routes.host.render_requests == 1  # type: ignore[attr-defined]

    @pytest.mark.anyio
    async def test_outlet_merges_passed_params_over_url_params(self) -> None:
        routes = _controller(_route("/users/:id"))
        assert routes.outlet() is None

        await routes.navigate("/users/42", {"id": "override", "extra": 1})
        assert routes.outlet() == {"id": "override", "extra": 1}

    @pytest.mark.anyio
    async def test_outlet_async(self) -> None:
        async def render(params: dict[str, Any]) -> str:
            return f"user {params['id']}"

        routes = _controller(RouteDescriptor("/users/:id", render))
        await routes.navigate("/users/7")
        assert await routes.outlet_async() == "user 7"

    @pytest.mark.anyio
    async def test_dispatches_location_changed(self) -> None:
        host = HostElement()
        seen: list[HostEvent] = []
        host.add_listener("waypoint-location-changed", seen.append)
        user = _route("/users/:id")
        routes = NavigationController(host, [user])

        await routes.navigate("/users/3", {"k": "v"})

        assert len(seen) == 1
        detail = seen[0].detail
        assert isinstance(detail, LocationChanged)
        assert detail.local_path == "/users/3"
        assert detail.full_path == "/users/3"
        assert detail.params == {"id": "3"}
        assert detail.passed_params == {"k": "v"}
        assert detail.route is user

    @pytest.mark.anyio
    async def test_committed_params_are_read_only(self) -> None:
        host = HostElement()
        seen: list[HostEvent] = []
        host.add_listener("waypoint-location-changed", seen.append)
        routes = NavigationController(host, [_route("/users/:id")])
        passed = {"tab": "posts"}
        await routes.navigate("/users/1", passed)

        with pytest.raises(TypeError):
            routes.params["id"] = "999"  # type: ignore[index]
        with pytest.raises(TypeError):
            seen[0].detail.params["id"] = "999"
        with pytest.raises(TypeError):
            seen[0].detail.passed_params["tab"] = "other"

        passed["tab"] = "changed"
        assert routes.state.params == {"id": "1"}
        assert routes.state.passed_params == {"tab": "posts"}

    @pytest.mark.anyio
    async def test_same_navigation_twice_is_idempotent(self) -> None:
        routes = _controller(_route("/users/:id"), _route("/"))
        await routes.navigate("/users/9", {"a": 1})
        once = routes.state

        await routes.navigate("/users/9", {"a": 1})
        assert routes.state == once

    @pytest.mark.anyio
    async def test_fallback_commits(self) -> None:
        fallback = _route("/")
        routes = _controller(_route("/a"), fallback=fallback)
        await routes.navigate("/missing")
        assert routes.state.route is fallback
        assert routes.state.pathname == ""

    @pytest.mark.anyio
    async def test_empty_table_passes_through(self) -> None:
        routes = _controller()
        await routes.navigate("/a/b")
        assert routes.state.route is None
        assert routes.state.pathname == ""
        assert routes.params == {"0": "/a/b"}
        assert routes.outlet() is None


class TestFailure:
    @pytest.mark.anyio
    async def test_no_match_raises_and_keeps_state(self) -> None:
        routes = _controller(_route("/a"))
        await routes.navigate("/a")
        before = routes.state

        with pytest.raises(NoMatch):
            await routes.navigate("/b")

        assert routes.state is before
        assert routes.phase is NavigationPhase.FAILED
        assert not routes.is_navigating

    @pytest.mark.anyio
    async def test_enter_exception_propagates_unchanged(self) -> None:
        class Boom(Exception):
            pass

        def enter(params: dict[str, Any]) -> None:
            raise Boom("no")

        routes = _controller(_route("/a"), _route("/b", enter=enter))
        await routes.navigate("/a")
        before = routes.state

        with pytest.raises(Boom):
            await routes.navigate("/b")
        assert routes.state is before
        assert routes.phase is NavigationPhase.FAILED

    @pytest.mark.anyio
    async def test_next_navigation_after_failure_works(self) -> None:
        routes = _controller(_route("/a"))
        with pytest.raises(NoMatch):
            await routes.navigate("/b")
        assert await routes.navigate("/a") is NavigationPhase.COMMITTED


class TestGuards:
    @pytest.mark.anyio
    async def test_enter_false_cancels(self) -> None:
        routes = _controller(_route("/a"), _route("/b", enter=lambda params: False))
        await routes.navigate("/a")
        before = routes.state

        assert await routes.navigate("/b") is NavigationPhase.CANCELLED
        assert routes.state == before
        assert routes.phase is NavigationPhase.CANCELLED
        assert routes.host.render_requests == 1  # type: ignore[attr-defined]

    @pytest.mark.anyio
    async def test_enter_none_permits(self) -> None:
        b = _route("/b", enter=lambda params: None)
        routes = _controller(b)
        assert await routes.navigate("/b") is NavigationPhase.COMMITTED
        assert routes.state.route is b

    @pytest.mark.anyio
    async def test_falsy_non_false_permits(self) -> None:
        b = _route("/b", enter=lambda params: 0)
        routes = _controller(b)
        assert await routes.navigate("/b") is NavigationPhase.COMMITTED

    @pytest.mark.anyio
    async def test_async_enter_receives_merged_params(self) -> None:
        received: list[dict[str, Any]] = []

        async def enter(params: dict[str, Any]) -> bool:
            received.append(params)
            return True

        routes = _controller(_route("/users/:id", enter=enter))
        await routes.navigate("/users/5", {"tab": "posts"})
        assert received == [{"id": "5", "tab": "posts"}]

    @pytest.mark.anyio
    async def test_leave_false_cancels_before_matching(self) -> None:
        entered: list[str] = []
        a = _route("/a", leave=lambda params: False)
        b = _route("/b", enter=lambda params: entered.append("b"))
        routes = _controller(a, b)
        await routes.navigate("/a", {"x": 1})
        before = routes.state

        assert await routes.navigate("/b") is NavigationPhase.CANCELLED
        assert routes.state == before
        assert routes.state.route is a
        assert routes.state.passed_params == {"x": 1}
        assert entered == []

    @pytest.mark.anyio
    async def test_leave_receives_current_merged_params(self) -> None:
        received: list[dict[str, Any]] = []
        routes = _controller(_route("/users/:id", leave=received.append), _route("/"))
        await routes.navigate("/users/1", {"p": True})
        await routes.navigate("/")
        assert received == [{"id": "1", "p": True}]

    @pytest.mark.anyio
    async def test_phases_visible_from_guards(self) -> None:
        phases: list[NavigationPhase] = []
        routes: NavigationController

        def leave(params: dict[str, Any]) -> None:
            phases.append(routes.phase)

        def enter(params: dict[str, Any]) -> None:
            phases.append(routes.phase)

        routes = _controller(_route("/a", leave=leave), _route("/b", enter=enter))
        await routes.navigate("/a")
        phases.clear()
        await routes.navigate("/b")
        assert phases == [NavigationPhase.LEAVING_SELF, NavigationPhase.ENTERING]


class TestRecover:
    @pytest.mark.anyio
    async def test_recover_skips_leave_guards(self) -> None:
        leaves: list[str] = []

        def leave(params: dict[str, Any]) -> None:
            leaves.append("a")
            raise RuntimeError("leave blew up")

        a = _route("/a", leave=leave)
        routes = _controller(a, _route("/b"))
        await routes.navigate("/a")

        with pytest.raises(RuntimeError):
            await routes.navigate("/b")
        assert leaves == ["a"]

        assert await routes.recover("/a") is NavigationPhase.COMMITTED
        assert leaves == ["a"]
        assert routes.state.route is a

    @pytest.mark.anyio
    async def test_recover_still_runs_enter(self) -> None:
        routes = _controller(_route("/a", enter=lambda params: False))
        assert await routes.recover("/a") is NavigationPhase.CANCELLED
        assert routes.state == NavigationState()


class TestCancellation:
    @pytest.mark.anyio
    async def test_newer_navigation_wins(self) -> None:
        release = asyncio.Event()

        async def slow_enter(params: dict[str, Any]) -> None:
            await release.wait()

        slow, b = _route("/slow", enter=slow_enter), _route("/b")
        routes = _controller(slow, b)

        first = asyncio.create_task(routes.navigate("/slow"))
        await asyncio.sleep(0)
        second = asyncio.create_task(routes.navigate("/b"))
        await asyncio.sleep(0)
        release.set()

        assert await first is NavigationPhase.CANCELLED
        assert await second is NavigationPhase.COMMITTED
        assert routes.state.route is b
        assert routes.host.render_requests == 1  # type: ignore[attr-defined]

    @pytest.mark.anyio
    async def test_back_to_back_calls_end_on_the_last(self) -> None:
        a, b = _route("/a"), _route("/b")
        routes = _controller(a, b)
        results = await asyncio.gather(routes.navigate("/a"), routes.navigate("/b"))
        assert NavigationPhase.COMMITTED in results
        assert routes.state.route is b

    @pytest.mark.anyio
    async def test_calls_are_serialized(self) -> None:
        events: list[str] = []
        release = asyncio.Event()

        async def slow_enter(params: dict[str, Any]) -> None:
            events.append("slow:enter")
            await release.wait()
            events.append("slow:done")

        def leave_slow(params: dict[str, Any]) -> None:
            events.append("slow:leave")

        routes = _controller(_route("/slow", enter=slow_enter, leave=leave_slow), _route("/b"))
        await routes.navigate("/b")

        first = asyncio.create_task(routes.navigate("/slow"))
        await asyncio.sleep(0)
        second = asyncio.create_task(routes.navigate("/b"))
        await asyncio.sleep(0)
        assert events == ["slow:enter"]

        release.set()
        await asyncio.gather(first, second)
        # The second call never overlapped the first and /slow never committed
        assert events == ["slow:enter", "slow:done"]
        assert routes.state.route is routes.table.get("/b")

    @pytest.mark.anyio
    async def test_pending_token_while_in_flight(self) -> None:
        release = asyncio.Event()
        seen: list[int | None] = []
        routes: NavigationController

        async def enter(params: dict[str, Any]) -> None:
            seen.append(routes.pending_token)
            await release.wait()

        routes = _controller(_route("/a", enter=enter))
        assert routes.pending_token is None

        task = asyncio.create_task(routes.navigate("/a"))
        await asyncio.sleep(0)
        assert routes.is_navigating
        release.set()
        await task

        assert seen == [1]
        assert routes.pending_token is None
        assert not routes.is_navigating

    @pytest.mark.anyio
    async def test_disconnect_abandons_navigation(self) -> None:
        release = asyncio.Event()

        async def enter(params: dict[str, Any]) -> None:
            await release.wait()

        routes = _controller(_route("/a", enter=enter))
        routes.connect()
        task = asyncio.create_task(routes.navigate("/a"))
        await asyncio.sleep(0)

        routes.disconnect()
        release.set()
        assert await task is NavigationPhase.CANCELLED
        assert routes.state == NavigationState()


class TestTableMutations:
    @pytest.mark.anyio
    async def test_added_route_supersedes_current_match(self) -> None:
        page = _route("/:page")
        routes = _controller(page)
        await routes.navigate("/about")
        assert routes.state.route is page

        about = _route("/about")
        assert routes.table.add(about).applied
        await routes.settle()
        assert routes.state.route is about

    @pytest.mark.anyio
    async def test_unrelated_add_does_not_renavigate(self) -> None:
        routes = _controller(_route("/a"))
        await routes.navigate("/a")
        routes.table.add(_route("/b"))
        await routes.settle()
        assert routes.host.render_requests == 1  # type: ignore[attr-defined]

    @pytest.mark.anyio
    async def test_removing_current_route_falls_back(self) -> None:
        a, fallback = _route("/a"), _route("/")
        routes = _controller(a, fallback=fallback)
        await routes.navigate("/a")

        routes.table.remove(a)
        await routes.settle()
        assert routes.state.route is fallback

    @pytest.mark.anyio
    async def test_failed_renavigation_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        a = _route("/a")
        routes = _controller(a, _route("/b"))
        await routes.navigate("/a")

        with caplog.at_level(logging.ERROR, logger="waypoint.navigation"):
            routes.table.remove(a)
            await routes.settle()

        assert routes.state.route is a
        assert any("Detached navigation" in r.message for r in caplog.records)

    @pytest.mark.anyio
    async def test_clear_renavigates_to_fallback(self) -> None:
        fallback = _route("/")
        routes = _controller(_route("/a"), fallback=fallback)
        await routes.navigate("/a")
        routes.table.clear()
        await routes.settle()
        assert routes.state.route is fallback

    @pytest.mark.anyio
    async def test_mutation_during_navigation_is_deferred(self) -> None:
        routes: NavigationController
        results: list[Any] = []

        def enter(params: dict[str, Any]) -> None:
            x = _route("/x")
            results.append(routes.table.add(x))
            results.append(routes.table.remove(x))
            results.append(routes.table.add(_route("/y")))
            results.append(len(routes.table))

        routes = _controller(_route("/a", enter=enter))
        await routes.navigate("/a")

        assert all(r.deferred for r in results[:3])
        assert results[3] == 1
        assert [r.path for r in routes.table] == ["/a", "/y"]
        assert routes.table.pending_mutations == 0

    @pytest.mark.anyio
    async def test_render_update_of_current_route_rerenders(self) -> None:
        routes = _controller(_route("/a"), _route("/b"))
        await routes.navigate("/a")
        routes.table.update("/a", render=lambda params: "new")
        routes.table.update("/b", render=lambda params: "other")
        assert routes.host.render_requests == 2  # type: ignore[attr-defined]
        assert routes.outlet() == "new"

    @pytest.mark.anyio
    async def test_cleared_leave_guard_no_longer_vetoes(self) -> None:
        routes = _controller(_route("/a", leave=lambda params: False), _route("/b"))
        await routes.navigate("/a")
        assert await routes.navigate("/b") is NavigationPhase.CANCELLED

        assert routes.table.update("/a", leave=None)
        assert await routes.navigate("/b") is NavigationPhase.COMMITTED

    @pytest.mark.anyio
    async def test_renavigation_can_be_disabled(self) -> None:
        page = _route("/:page")
        routes = _controller(page, config=NavigatorConfig(renavigate_on_change=False))
        await routes.navigate("/about")
        routes.table.add(_route("/about"))
        await routes.settle()
        assert routes.state.route is page


class TestLink:
    @pytest.mark.anyio
    async def test_link_without_parent(self) -> None:
        routes = _controller(_route("/users/:id"))
        await routes.navigate("/users/1")
        assert routes.link() == "/users/1"

    def test_absolute_link_unchanged(self) -> None:
        assert _controller().link("/elsewhere") == "/elsewhere"

    def test_relative_link_rejected(self) -> None:
        with pytest.raises(NavigationError):
            _controller().link("./sibling")

    def test_link_before_commit(self) -> None:
        assert _controller().link() == ""
