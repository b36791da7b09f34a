"""Pytest fixtures for integration tests.

- avatar_capture: OSC capture standing in for the avatar endpoint
- live_bridge: HeartRateBridge sending real UDP to avatar_capture
"""

import pytest

from hrosc.bridge import HeartRateBridge
from hrosc.config import BridgeConfig
from tests.integration.utils import OSCMessageCapture


@pytest.fixture
def avatar_capture():
    capture = OSCMessageCapture()
    capture.start()
    yield capture
    capture.stop()


@pytest.fixture
def live_bridge(avatar_capture):
    """Bridge with reference bounds wired to the capture port."""
    bridge = HeartRateBridge(BridgeConfig(osc_host="127.0.0.1", osc_port=avatar_capture.port))
    yield bridge
    bridge.stop()
