import os

import pytest


class AfterHarness:
    """Manual stand-in for ``after``/``after_cancel`` scheduling."""

    def __init__(self) -> None:
        self.scheduled: list[tuple[str, int, object]] = []
        self.cancelled: list[object] = []

    def after(self, ms: int, cb) -> str:
        handle = f"h{len(self.scheduled) + 1}"
        self.scheduled.append((handle, ms, cb))
        return handle

    def cancel(self, handle: object) -> None:
        self.cancelled.append(handle)

    def run(self, handle: str) -> None:
        for h, _ms, cb in list(self.scheduled):
            if h == handle:
                cb()
                return
        raise AssertionError(f"Handle {handle} not found")

    def latest(self) -> str:
        assert self.scheduled, "nothing scheduled"
        return self.scheduled[-1][0]

    def run_latest(self) -> None:
        self.run(self.latest())

    def delay_of(self, handle: str) -> int:
        for h, ms, _cb in self.scheduled:
            if h == handle:
                return ms
        raise AssertionError(f"Handle {handle} not found")


@pytest.fixture
def harness() -> AfterHarness:
    return AfterHarness()


def pytest_configure(config):
    config.addinivalue_line("markers", "pyqt_required: needs a PyQt6 display; set PYQT_TESTS=1 to run")


def pytest_runtest_setup(item):
    if item.get_closest_marker("pyqt_required"):
        if not os.getenv("PYQT_TESTS"):
            pytest.skip("PYQT_TESTS not set; skipping PyQt-dependent test")
