"""Shared pytest fixtures for hrosc unit tests.

- fake_clock: Manually advanced monotonic clock for throttle tests
- mock_sink: Mock AvatarOSCSink recording sends without a socket
- wait_for: Poll a predicate until true or timeout (threaded pacer tests)
"""

import time
from unittest.mock import Mock

import pytest

from hrosc.osc import AvatarOSCSink


class FakeClock:
    """Callable clock returning a manually advanced time in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def mock_sink():
    """Mock sink; every send reports success."""
    sink = Mock(spec=AvatarOSCSink)
    sink.send_pulse.return_value = True
    sink.send_heart_rate.return_value = True
    sink.send_heart_rate_parameter.return_value = False
    return sink


@pytest.fixture
def wait_for():
    """Return a helper that polls predicate() every 10ms until timeout."""
    def _wait_for(predicate, timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()
    return _wait_for
