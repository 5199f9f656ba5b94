from __future__ import annotations

from typing import List, Tuple

from chronoghost.window_controller import HitRegion, WindowController


class FakeHost:
    def __init__(self, size: Tuple[int, int] = (500, 200), scale: float = 1.0) -> None:
        self.size = size
        self.scale = scale
        self.calls: List[tuple] = []
        self.fail: set[str] = set()

    def _record(self, name: str, *args) -> None:
        if name in self.fail:
            raise RuntimeError(f"{name} failed")
        self.calls.append((name, *args))

    def current_size(self) -> Tuple[int, int]:
        if "current_size" in self.fail:
            raise RuntimeError("no window")
        return self.size

    def scale_factor(self) -> float:
        return self.scale

    def resize(self, width: int, height: int) -> None:
        self._record("resize", width, height)

    def set_resizable(self, resizable: bool) -> None:
        self._record("set_resizable", resizable)

    def set_ignore_cursor_events(self, ignore: bool) -> None:
        self._record("set_ignore_cursor_events", ignore)

    def start_drag(self) -> None:
        self._record("start_drag")

    def minimize(self) -> None:
        self._record("minimize")

    def close(self) -> None:
        self._record("close")


def _controller(host: FakeHost, logs: List[str]) -> WindowController:
    return WindowController(host, log_fn=lambda msg, *args: logs.append(msg % args))


def test_resize_keeps_current_height_and_scales_width() -> None:
    host = FakeHost(size=(1000, 420), scale=2.0)
    logs: List[str] = []
    controller = _controller(host, logs)
    controller.set_toolbar_width(160)

    width = controller.resize_for(2, toolbar_collapsed=False)

    assert width == 431 * 2 + 160
    assert host.calls == [("resize", width, 420)]
    assert controller.last_width == width


def test_resize_failure_is_logged_and_swallowed() -> None:
    host = FakeHost()
    host.fail.add("resize")
    logs: List[str] = []
    controller = _controller(host, logs)

    assert controller.resize_for(1, toolbar_collapsed=True) is None
    assert controller.last_width is None
    assert any("Window resize failed" in line for line in logs)


def test_size_query_failure_skips_resize() -> None:
    host = FakeHost()
    host.fail.add("current_size")
    logs: List[str] = []
    controller = _controller(host, logs)

    assert controller.resize_for(1, toolbar_collapsed=True) is None
    assert host.calls == []


def test_click_through_is_idempotent_unless_forced() -> None:
    host = FakeHost()
    controller = _controller(host, [])

    controller.set_click_through(True)
    controller.set_click_through(True)
    controller.set_click_through(True, force=True)
    controller.set_click_through(False)

    assert host.calls == [
        ("set_ignore_cursor_events", True),
        ("set_ignore_cursor_events", True),
        ("set_ignore_cursor_events", False),
    ]


def test_drag_requires_background_and_unpinned() -> None:
    host = FakeHost()
    controller = _controller(host, [])

    assert controller.request_drag(HitRegion.CONTROL, pinned=False) is False
    assert controller.request_drag(HitRegion.BACKGROUND, pinned=True) is False
    assert controller.request_drag(HitRegion.BACKGROUND, pinned=False) is True
    assert host.calls == [("start_drag",)]


def test_drag_failure_reports_false() -> None:
    host = FakeHost()
    host.fail.add("start_drag")
    controller = _controller(host, [])

    assert controller.request_drag(HitRegion.BACKGROUND, pinned=False) is False


def test_toolbar_width_is_non_negative() -> None:
    controller = _controller(FakeHost(), [])
    controller.set_toolbar_width(-5)
    assert controller.toolbar_width == 0
