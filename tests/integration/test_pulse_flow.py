"""Integration tests for notification → bridge → OSC flow.

Sends real UDP to a local capture server. Checks that:
1. Heart rate text reaches /chatbox/input
2. Pulses arrive once per interval, spaced by the interval
3. A burst after a gap is trimmed instead of replayed in full
4. Malformed notifications don't disturb the stream
"""

from hrosc.decoder import encode_measurement
from hrosc.simulator.hrm_emulator import HRMEmulator

PULSE = "/avatar/parameters/HeartBeat"
CHATBOX = "/chatbox/input"


class TestNotificationToAvatar:

    def test_heart_rate_text_arrives(self, live_bridge, avatar_capture):
        live_bridge.handle_notification("hr", bytes([0x00, 72]))

        ts, addr, args = avatar_capture.wait_for_message(CHATBOX, timeout=2.0)

        assert args == ("🤍 72", True, False)

    def test_pulses_follow_intervals(self, live_bridge, avatar_capture):
        live_bridge.handle_notification("hr", encode_measurement(150, [0.4, 0.4, 0.4]))

        messages = avatar_capture.wait_for_count(PULSE, 3, timeout=3.0)

        assert all(args == (True,) for _, _, args in messages)
        gaps = [b[0] - a[0] for a, b in zip(messages, messages[1:])]
        for gap in gaps:
            assert 0.3 < gap < 0.6

    def test_burst_after_gap_is_trimmed(self, live_bridge, avatar_capture):
        """Ten seconds of held-back beats replay as at most a few pulses."""
        emulator = HRMEmulator(live_bridge.handle_notification, bpm=75.0,
                               rr_jitter_s=0.0, seed=3)
        emulator.trigger_burst(notifications=10)
        for _ in range(10):
            emulator.tick()

        # Catch-up runs at the next drain step, before the second pulse
        avatar_capture.wait_for_count(PULSE, 2, timeout=3.0)
        assert live_bridge.pacer.intervals_skipped >= 5
        assert live_bridge.pacer.pending() <= 3

    def test_malformed_notification_ignored(self, live_bridge, avatar_capture):
        live_bridge.handle_notification("hr", bytes([0x11, 0x48]))
        live_bridge.handle_notification("hr", bytes([0x00, 64]))

        ts, addr, args = avatar_capture.wait_for_message(CHATBOX, timeout=2.0)

        assert args[0] == "🤍 64"
        assert live_bridge.stats.get('malformed_notifications') == 1
