#!/usr/bin/env python3
"""
Heart Rate Monitor Emulator - Testing without a peripheral

Emits genuine Heart Rate Measurement (0x2A37) payloads at the notification
cadence of a chest strap, carrying RR intervals for every beat that
occurred since the previous notification.

Features:
- Configurable BPM with Gaussian RR jitter
- 8-bit or 16-bit heart rate encoding
- Dropout injection (notifications lost)
- Burst injection (notifications held back, then delivered together)
- Malformed payload injection
"""

import threading
import time
from typing import Callable, List, Optional

import numpy as np

from hrosc.decoder import encode_measurement
from hrosc.log import get_logger

logger = get_logger(__name__)

BPM_MIN = 30.0
BPM_MAX = 240.0


class HRMEmulator:
    """Emulated heart rate strap with controllable rhythm and delivery faults.

    Args:
        on_notification: Called as on_notification(sender, payload)
        bpm: Initial heart rate (default: 75)
        rr_jitter_s: Std dev of beat-to-beat variation in seconds (default: 0.02)
        notify_interval_s: Notification period (default: 1.0)
        uint16: Encode heart rate as 16-bit
        seed: Random seed for reproducible jitter
    """

    SENDER = "hrm-emulator"

    def __init__(
        self,
        on_notification: Callable[[str, bytes], object],
        bpm: float = 75.0,
        rr_jitter_s: float = 0.02,
        notify_interval_s: float = 1.0,
        uint16: bool = False,
        seed: Optional[int] = None
    ):
        self.on_notification = on_notification
        self.bpm = max(BPM_MIN, min(BPM_MAX, bpm))
        self.rr_jitter_s = max(0.0, rr_jitter_s)
        self.notify_interval_s = notify_interval_s
        self.uint16 = uint16
        self.rng = np.random.default_rng(seed)

        self.lock = threading.Lock()

        # Time left until the next beat, and the interval that beat closes
        self.current_rr = self._draw_rr()
        self.until_next_beat = self.current_rr

        # Fault injection
        self.dropout_remaining = 0
        self.burst_remaining = 0
        self.held: List[bytes] = []
        self.malformed_pending = False

        self.message_count = 0
        self.beat_count = 0

        self.running = False
        self.thread: Optional[threading.Thread] = None

    def _draw_rr(self) -> float:
        rr = 60.0 / self.bpm
        if self.rr_jitter_s > 0:
            rr += float(self.rng.normal(0.0, self.rr_jitter_s))
        return max(0.05, rr)

    def set_bpm(self, bpm: float):
        """Set heart rate (thread-safe), clamped to 30-240."""
        with self.lock:
            self.bpm = max(BPM_MIN, min(BPM_MAX, bpm))

    def trigger_dropout(self, notifications: int = 3):
        """Lose the next N notifications entirely."""
        with self.lock:
            self.dropout_remaining = notifications

    def trigger_burst(self, notifications: int = 5):
        """Hold the next N notifications, then deliver them back to back."""
        with self.lock:
            self.burst_remaining = notifications

    def trigger_malformed(self):
        """Replace the next notification with a truncated payload."""
        with self.lock:
            self.malformed_pending = True

    def advance(self, elapsed_s: float) -> List[float]:
        """Advance the simulated heart by elapsed_s.

        Returns:
            RR intervals (seconds) of the beats that completed
        """
        intervals = []
        with self.lock:
            remaining = elapsed_s
            while self.until_next_beat <= remaining:
                remaining -= self.until_next_beat
                intervals.append(self.current_rr)
                self.beat_count += 1
                self.current_rr = self._draw_rr()
                self.until_next_beat = self.current_rr
            self.until_next_beat -= remaining
        return intervals

    def next_payloads(self, elapsed_s: float) -> List[bytes]:
        """Build the payloads to deliver after elapsed_s of simulated time.

        Usually one payload; empty during dropouts or while a burst is held,
        several when a held burst is released.
        """
        intervals = self.advance(elapsed_s)
        with self.lock:
            bpm = self.bpm
        payload = encode_measurement(
            int(round(bpm)), intervals, uint16=self.uint16, sensor_contact=True
        )

        with self.lock:
            if self.malformed_pending:
                self.malformed_pending = False
                # RR flag set, trailing byte missing
                return [payload[:-1] if intervals else bytes([0x10 | 0x01, 0x48])]

            if self.dropout_remaining > 0:
                self.dropout_remaining -= 1
                return []

            if self.burst_remaining > 0:
                self.burst_remaining -= 1
                self.held.append(payload)
                if self.burst_remaining == 0:
                    released, self.held = self.held, []
                    return released
                return []

        return [payload]

    def tick(self, elapsed_s: Optional[float] = None) -> int:
        """Deliver the payloads for one notification period.

        Returns:
            Number of payloads delivered
        """
        if elapsed_s is None:
            elapsed_s = self.notify_interval_s
        payloads = self.next_payloads(elapsed_s)
        for payload in payloads:
            self.on_notification(self.SENDER, payload)
            self.message_count += 1
        return len(payloads)

    def _run(self):
        next_tick = time.monotonic()
        while self.running:
            self.tick()
            # Sleep with drift compensation
            next_tick += self.notify_interval_s
            sleep_time = next_tick - time.monotonic()
            if sleep_time > 0:
                time.sleep(sleep_time)

    def start(self):
        """Start emitting notifications from a background thread."""
        if self.running:
            return
        self.running = True
        self.thread = threading.Thread(target=self._run, name="HRMEmulator", daemon=True)
        self.thread.start()
        logger.info(f"HRM emulator started: {self.bpm:.0f} BPM, "
                    f"notifications every {self.notify_interval_s:.1f}s")

    def stop(self):
        """Stop the emulator thread."""
        if not self.running:
            return
        self.running = False
        if self.thread is not None and self.thread is not threading.current_thread():
            self.thread.join(timeout=self.notify_interval_s + 1.0)
        logger.info(f"HRM emulator stopped: {self.message_count} notifications, "
                    f"{self.beat_count} beats")
