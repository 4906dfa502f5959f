"""Tests for label-to-resource dispatch."""

import asyncio

import pytest
import yaml

from stroke_engine.actions import (
    ActionDispatcher,
    ActionRequest,
    ActionRoute,
    default_routes,
    routes_from_list,
)
from stroke_engine.classifier import Label


class FakePlatform:
    """Records probe/open/notify calls; probes yield to the loop once."""

    def __init__(self, available=(), probe_errors=(), open_errors=(), delay=0.0, open_delay=0.0):
        self.available = set(available)
        self.probe_errors = set(probe_errors)
        self.open_errors = set(open_errors)
        self.delay = delay
        self.open_delay = open_delay
        self.probed: list[str] = []
        self.opened: list[str] = []
        self.notices: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def probe(self, resource_id: str) -> bool:
        self.probed.append(resource_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if resource_id in self.probe_errors:
                raise ValueError(f"malformed resource id: {resource_id}")
            return resource_id in self.available
        finally:
            self.in_flight -= 1

    async def open(self, resource_id: str) -> None:
        await asyncio.sleep(self.open_delay)
        if resource_id in self.open_errors:
            raise OSError(f"cannot open {resource_id}")
        self.opened.append(resource_id)

    def notify(self, title: str, message: str):
        self.notices.append((title, message))

    def dispatcher(self, routes=None, **kwargs) -> ActionDispatcher:
        return ActionDispatcher(self.probe, self.open, notifier=self.notify, routes=routes, **kwargs)


class TestActionRoute:
    def test_from_dict(self):
        route = ActionRoute.from_dict({"candidates": ["a://", "b://"], "fallback": "f://"})
        assert route.candidates == ["a://", "b://"]
        assert route.fallback == "f://"
        assert route.fallback_notice == ""

    def test_roundtrip(self):
        route = ActionRoute(candidates=["a://"], fallback="f://", fallback_notice="hi")
        assert ActionRoute.from_dict(route.to_dict()) == route

    def test_routes_from_list_unknown_label(self):
        with pytest.raises(ValueError):
            routes_from_list([{"label": "letter_z", "candidates": []}])


class TestDefaultRoutes:
    def test_every_recognized_label_routed(self):
        routes = default_routes()
        for label in Label:
            if label.recognized:
                assert label in routes
        assert Label.UNRECOGNIZED not in routes

    def test_tap_is_single_browser_resource(self):
        route = default_routes()[Label.TAP]
        assert route.candidates == ["https://www.google.com"]

    def test_camera_route(self):
        route = default_routes()[Label.SHAPE_C]
        assert route.candidates[0] == "camera://"
        assert route.fallback == "exp://camera"


class TestActionDispatcher:
    def test_request_for(self):
        d = FakePlatform().dispatcher()
        req = d.request_for(Label.LETTER_I)
        assert req == ActionRequest(label=Label.LETTER_I, candidates=("instagram://",), fallback=None)
        assert d.request_for(Label.UNRECOGNIZED) is None

    def test_candidate_order_respected(self):
        platform = FakePlatform(available={"B"})
        d = platform.dispatcher(routes={Label.SHAPE_B: ActionRoute(candidates=["A", "B"])})
        opened = asyncio.run(d.dispatch(Label.SHAPE_B))
        assert opened == "B"
        assert platform.probed == ["A", "B"]
        assert platform.opened == ["B"]

    def test_stops_at_first_available(self):
        platform = FakePlatform(available={"A", "B"})
        d = platform.dispatcher(routes={Label.SHAPE_B: ActionRoute(candidates=["A", "B"])})
        asyncio.run(d.dispatch(Label.SHAPE_B))
        assert platform.probed == ["A"]
        assert platform.opened == ["A"]

    def test_probes_are_sequential(self):
        platform = FakePlatform(delay=0.001)
        d = platform.dispatcher(routes={Label.SHAPE_C: ActionRoute(candidates=["A", "B", "C", "D"])})
        asyncio.run(d.dispatch(Label.SHAPE_C))
        assert platform.probed == ["A", "B", "C", "D"]
        assert platform.max_in_flight == 1

    def test_fallback_opened_once(self):
        platform = FakePlatform()
        d = platform.dispatcher(routes={
            Label.SHAPE_C: ActionRoute(candidates=["A", "B"], fallback="F", fallback_notice="Opening Default Camera"),
        })
        opened = asyncio.run(d.dispatch(Label.SHAPE_C))
        assert opened == "F"
        assert platform.opened == ["F"]
        assert platform.notices == [("Notice", "Opening Default Camera")]

    def test_unavailable_notice_without_fallback(self):
        platform = FakePlatform()
        d = platform.dispatcher(routes={Label.LETTER_I: ActionRoute(candidates=["instagram://"])})
        opened = asyncio.run(d.dispatch(Label.LETTER_I))
        assert opened is None
        assert platform.opened == []
        assert platform.notices == [("Notice", "Unable to open letter_i")]

    def test_probe_error_treated_as_unavailable(self):
        platform = FakePlatform(available={"B"}, probe_errors={"A"})
        d = platform.dispatcher(routes={Label.SHAPE_B: ActionRoute(candidates=["A", "B"])})
        assert asyncio.run(d.dispatch(Label.SHAPE_B)) == "B"

    def test_open_error_moves_to_next_candidate(self):
        platform = FakePlatform(available={"A", "B"}, open_errors={"A"})
        d = platform.dispatcher(routes={Label.SHAPE_B: ActionRoute(candidates=["A", "B"])})
        assert asyncio.run(d.dispatch(Label.SHAPE_B)) == "B"
        assert platform.opened == ["B"]

    def test_failing_fallback_notifies(self):
        platform = FakePlatform(open_errors={"F"})
        d = platform.dispatcher(routes={Label.SHAPE_B: ActionRoute(candidates=["A"], fallback="F")})
        assert asyncio.run(d.dispatch(Label.SHAPE_B)) is None
        assert platform.notices == [("Notice", "Unable to open shape_b")]

    def test_unrouted_label_is_noop(self):
        platform = FakePlatform(available={"A"})
        d = platform.dispatcher(routes={})
        assert asyncio.run(d.dispatch(Label.SHAPE_C)) is None
        assert platform.probed == []
        assert platform.notices == []

    def test_tap(self):
        platform = FakePlatform(available={"https://www.google.com"})
        d = platform.dispatcher()
        assert asyncio.run(d.tap()) == "https://www.google.com"

    def test_notifier_error_is_contained(self):
        platform = FakePlatform()

        def bad_notify(title, message):
            raise RuntimeError("no display")

        d = ActionDispatcher(platform.probe, platform.open, notifier=bad_notify,
                             routes={Label.LETTER_I: ActionRoute(candidates=["x://"])})
        assert asyncio.run(d.dispatch(Label.LETTER_I)) is None


class TestOverlappingDispatch:
    async def _overlap(self, dispatcher):
        first = asyncio.create_task(dispatcher.dispatch(Label.SHAPE_C))
        await asyncio.sleep(0)  # let the first dispatch start probing
        second = asyncio.create_task(dispatcher.dispatch(Label.TAP))
        return await first, await second

    def test_latest_dispatch_wins(self):
        platform = FakePlatform(available={"camera://", "https://www.google.com"}, delay=0.01)
        d = platform.dispatcher()
        first, second = asyncio.run(self._overlap(d))
        assert first is None
        assert second == "https://www.google.com"
        assert platform.opened == ["https://www.google.com"]

    def test_interleaving_when_supersede_disabled(self):
        platform = FakePlatform(available={"camera://", "https://www.google.com"}, delay=0.01)
        d = platform.dispatcher(supersede=False)
        first, second = asyncio.run(self._overlap(d))
        assert first == "camera://"
        assert second == "https://www.google.com"
        assert sorted(platform.opened) == ["camera://", "https://www.google.com"]

    def test_dispatch_during_slow_open_does_not_open_again(self):
        platform = FakePlatform(available={"instagram://", "https://www.google.com"}, open_delay=0.05)
        d = platform.dispatcher()

        async def run():
            first = asyncio.create_task(d.dispatch(Label.LETTER_I))
            await asyncio.sleep(0.01)  # first dispatch is now inside open()
            second = asyncio.create_task(d.dispatch(Label.TAP))
            return await first, await second

        first, second = asyncio.run(run())
        assert first == "instagram://"
        assert second is None
        assert platform.opened == ["instagram://"]
        assert platform.notices == []

    def test_dispatch_after_failed_open_still_opens(self):
        platform = FakePlatform(
            available={"instagram://", "https://www.google.com"},
            open_errors={"instagram://"},
            open_delay=0.05,
        )
        d = platform.dispatcher()

        async def run():
            first = asyncio.create_task(d.dispatch(Label.LETTER_I))
            await asyncio.sleep(0.01)
            second = asyncio.create_task(d.dispatch(Label.TAP))
            return await first, await second

        first, second = asyncio.run(run())
        assert first is None
        assert second == "https://www.google.com"
        assert platform.opened == ["https://www.google.com"]
        assert platform.notices == []

    def test_dispatcher_reused_across_event_loops(self):
        platform = FakePlatform(available={"https://www.google.com"})
        d = platform.dispatcher()
        assert asyncio.run(d.tap()) == "https://www.google.com"
        assert asyncio.run(d.tap()) == "https://www.google.com"

    def test_sequential_dispatches_both_open(self):
        platform = FakePlatform(available={"camera://", "https://www.google.com"})
        d = platform.dispatcher()

        async def run():
            a = await d.dispatch(Label.SHAPE_C)
            b = await d.dispatch(Label.TAP)
            return a, b

        assert asyncio.run(run()) == ("camera://", "https://www.google.com")


class TestDispatcherYaml:
    def test_yaml_roundtrip(self, tmp_path):
        platform = FakePlatform()
        d = platform.dispatcher()
        path = tmp_path / "routes.yml"
        d.to_yaml(path)

        loaded = ActionDispatcher.from_yaml(path, platform.probe, platform.open)
        assert loaded.routes == d.routes

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "routes.yml"
        path.write_text(yaml.dump({"routes": [
            {"label": "letter_w", "candidates": ["whatsapp://"], "fallback": "https://web.whatsapp.com"},
        ]}))
        platform = FakePlatform()
        d = ActionDispatcher.from_yaml(path, platform.probe, platform.open)
        assert list(d.routes) == [Label.LETTER_W]
        assert d.routes[Label.LETTER_W].fallback == "https://web.whatsapp.com"
