"""Rate limiting for heart rate display updates."""

import time
from typing import Callable, Optional

from hrosc.config import THROTTLE_WINDOW_S, DEFAULT_LABEL

TREND_UP = "🔺"
TREND_DOWN = "🔻"


class HeartRateThrottle:
    """Decides which heart rate values reach the chatbox.

    A value is forwarded only when it differs from the last *forwarded*
    value and at least window_s seconds have passed since that send.
    Suppressed values leave the throttle untouched, so the next change
    after the window opens is compared against what the avatar shows.

    Args:
        window_s: Minimum seconds between two forwarded values
        label: Text placed before the number
        show_trend: Append TREND_UP/TREND_DOWN relative to the last sent value
        clock: Monotonic time source in seconds (injectable for tests)

    Attributes:
        last_sent_value (int): Last forwarded heart rate (0 before the first)
        last_sent_time (float): Clock reading at the last forward, None before
    """

    def __init__(self, window_s: float = THROTTLE_WINDOW_S, label: str = DEFAULT_LABEL,
                 show_trend: bool = False, clock: Callable[[], float] = time.monotonic):
        self.window_s = window_s
        self.label = label
        self.show_trend = show_trend
        self.clock = clock

        self.last_sent_value: int = 0
        self.last_sent_time: Optional[float] = None
        self.suppressed_count: int = 0

    def trend(self, heart_rate: int) -> str:
        if heart_rate > self.last_sent_value:
            return TREND_UP
        if heart_rate < self.last_sent_value:
            return TREND_DOWN
        return ""

    def format(self, heart_rate: int) -> str:
        """Build the display text for a heart rate."""
        text = f"{self.label} {heart_rate}" if self.label else str(heart_rate)
        if self.show_trend:
            text += self.trend(heart_rate)
        return text

    def offer(self, heart_rate: int) -> Optional[str]:
        """Submit a freshly decoded heart rate.

        Returns:
            Display text if the value should be sent now, None otherwise
        """
        if heart_rate == self.last_sent_value:
            return None

        now = self.clock()
        if self.last_sent_time is not None and now - self.last_sent_time < self.window_s:
            self.suppressed_count += 1
            return None

        text = self.format(heart_rate)
        self.last_sent_value = heart_rate
        self.last_sent_time = now
        return text
