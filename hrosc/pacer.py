#!/usr/bin/env python3
"""
Beat Pacer - Real-time replay of beat-to-beat intervals

Heart rate peripherals deliver RR intervals in batches, typically once per
second, and deliver late batches in bursts after radio dropouts or
reconnects. The pacer turns that backlog into one pulse per interval, spaced
by the interval itself, so the avatar beats with the wearer's rhythm rather
than with the notification cadence.

ARCHITECTURE:
- FIFO queue of validated intervals (seconds), one producer, one consumer
- Engine state: IDLE (no pacing thread) or DRAINING (one pacing thread)
- enqueue() on an IDLE pacer starts exactly one pacing thread
- Each drain step first applies catch-up, then dequeues one interval
- Pacing thread emits a pulse, then waits for the dequeued interval
- Empty queue after catch-up: DRAINING → IDLE, thread exits (stall)

CATCH-UP:
    While sum(queue) > max_backlog_s or len(queue) > max_backlog_count,
    drop the oldest interval. Defaults: 2 x rri_max seconds (3.0s at 40 bpm)
    and 2 x hr_max / 60 intervals (6.67 at 200 bpm). Latency after a burst
    is bounded at the cost of skipping a few beats.

THREADING:
- One lock protects queue contents, engine state and counters
- IDLE → DRAINING check and DRAINING → IDLE transition both happen under
  the lock, so an enqueue racing a stall can't be lost
- Pulse callback and the inter-beat wait run outside the lock; the producer
  never blocks for longer than one append
- The wait is on a threading.Event so stop() interrupts it immediately

USAGE:
    pacer = BeatPacer(on_pulse=sink.send_pulse)
    pacer.enqueue_many([0.81, 0.79])   # from each notification
    ...
    pacer.stop()
"""

import threading
from collections import deque
from typing import Callable, Iterable, Optional

from hrosc.config import (
    HR_MIN,
    HR_MAX,
    CATCHUP_DURATION_FACTOR,
    CATCHUP_COUNT_FACTOR,
)
from hrosc.intervals import rri_bounds
from hrosc.log import get_logger

logger = get_logger(__name__)

STOP_JOIN_TIMEOUT_S = 2.0


class BeatPacer:
    """Drains queued intervals in real time, one pulse per interval.

    Args:
        on_pulse: Called from the pacing thread once per dequeued interval.
            Exceptions are logged and do not stop the pacer.
        hr_min: Lowest plausible heart rate, sets rri_max (bpm)
        hr_max: Highest plausible heart rate, sets rri_min (bpm)

    Attributes:
        max_backlog_s (float): Queued duration that triggers catch-up
        max_backlog_count (float): Queued count that triggers catch-up
        pulses_emitted (int): Pulses delivered to on_pulse
        intervals_skipped (int): Intervals discarded by catch-up
        stalls (int): DRAINING → IDLE transitions on an empty queue
        loops_started (int): Pacing threads started
    """

    STATE_IDLE = "idle"
    STATE_DRAINING = "draining"

    def __init__(self, on_pulse: Callable[[], object],
                 hr_min: int = HR_MIN, hr_max: int = HR_MAX) -> None:
        self.on_pulse = on_pulse
        _, rri_max = rri_bounds(hr_min, hr_max)
        self.max_backlog_s = CATCHUP_DURATION_FACTOR * rri_max
        self.max_backlog_count = CATCHUP_COUNT_FACTOR * hr_max / 60.0

        self.queue: deque = deque()
        self.state = self.STATE_IDLE
        self.lock = threading.Lock()
        self.stop_event = threading.Event()
        self.pacing_thread: Optional[threading.Thread] = None

        self.pulses_emitted: int = 0
        self.intervals_skipped: int = 0
        self.stalls: int = 0
        self.loops_started: int = 0

    def enqueue(self, interval: float) -> bool:
        """Append one validated interval (seconds).

        Returns:
            False if the pacer has been stopped, True otherwise
        """
        return self.enqueue_many((interval,))

    def enqueue_many(self, intervals: Iterable[float]) -> bool:
        """Append intervals from one notification in a single critical section.

        Starts the pacing thread if the pacer is idle and something was added.

        Returns:
            False if the pacer has been stopped, True otherwise
        """
        started = False
        with self.lock:
            if self.stop_event.is_set():
                return False
            self.queue.extend(intervals)
            if self.state == self.STATE_IDLE and self.queue:
                self.state = self.STATE_DRAINING
                self.loops_started += 1
                self.pacing_thread = threading.Thread(
                    target=self._pacing_loop,
                    name=f"BeatPacer-{self.loops_started}",
                    daemon=True
                )
                self.pacing_thread.start()
                started = True

        if started:
            logger.info("Idle → Draining")
        return True

    def _catch_up(self) -> int:
        """Drop oldest intervals until the backlog is within bounds.

        Must be called with self.lock held.

        Returns:
            Number of intervals dropped
        """
        dropped = 0
        while self.queue and (sum(self.queue) > self.max_backlog_s
                              or len(self.queue) > self.max_backlog_count):
            self.queue.popleft()
            dropped += 1
        self.intervals_skipped += dropped
        return dropped

    def _drain_step(self) -> Optional[float]:
        """Catch up, then dequeue one interval.

        Returns:
            Interval to pace, or None after switching to IDLE
        """
        with self.lock:
            if self.stop_event.is_set():
                self.state = self.STATE_IDLE
                return None

            dropped = self._catch_up()
            if dropped:
                logger.info(f"Catch-up: skipped {dropped} stale interval(s), "
                            f"{len(self.queue)} left ({sum(self.queue):.2f}s)")

            if not self.queue:
                self.state = self.STATE_IDLE
                self.stalls += 1
                logger.info("Draining → Idle (queue empty)")
                return None

            interval = self.queue.popleft()
            self.pulses_emitted += 1
            return interval

    def _pacing_loop(self) -> None:
        """Pacing thread body: pulse, wait one interval, repeat until stall."""
        while True:
            interval = self._drain_step()
            if interval is None:
                return

            try:
                self.on_pulse()
            except Exception:
                logger.exception("Pulse callback failed")

            logger.debug(f"Pulse, next in {interval * 1000.0:.0f}ms "
                         f"({60.0 / interval:.0f} bpm)")

            self.stop_event.wait(interval)

    def get_state(self) -> str:
        """Current engine state: "idle" or "draining"."""
        with self.lock:
            return self.state

    def pending(self) -> int:
        """Number of queued intervals."""
        with self.lock:
            return len(self.queue)

    def queued_duration(self) -> float:
        """Sum of queued intervals in seconds."""
        with self.lock:
            return sum(self.queue)

    def is_stopped(self) -> bool:
        return self.stop_event.is_set()

    def stop(self) -> None:
        """Stop the pacing thread and discard queued intervals.

        Interrupts the current inter-beat wait and joins the thread with a 2s
        timeout. Safe to call multiple times. Later enqueues are ignored.
        """
        self.stop_event.set()
        with self.lock:
            self.queue.clear()
            thread_to_join = self.pacing_thread

        if thread_to_join is not None and thread_to_join is not threading.current_thread():
            thread_to_join.join(timeout=STOP_JOIN_TIMEOUT_S)
            if thread_to_join.is_alive():
                logger.warning(f"Pacing thread did not stop within {STOP_JOIN_TIMEOUT_S:.0f}s")
