"""Beat-to-beat interval bounds correction."""

import math
from typing import Tuple

from hrosc.config import HR_MIN, HR_MAX, FALLBACK_INTERVAL_S


def rri_bounds(hr_min: int = HR_MIN, hr_max: int = HR_MAX) -> Tuple[float, float]:
    """Return (rri_min, rri_max) in seconds for the given bpm bounds."""
    return 60.0 / hr_max, 60.0 / hr_min


def validate_interval(rri: float, last_heart_rate: float,
                      hr_min: int = HR_MIN, hr_max: int = HR_MAX) -> float:
    """Correct an RR interval that lies outside physiological bounds.

    A single corrupt sample must never stall the pacing loop, so this always
    returns a usable interval:

    1. Sample within [rri_min, rri_max] is returned unchanged.
    2. Otherwise 60 / last_heart_rate, if hr_min < last_heart_rate < hr_max.
    3. Otherwise FALLBACK_INTERVAL_S (60 bpm).

    Args:
        rri: Raw interval in seconds
        last_heart_rate: Most recently decoded heart rate (0 if none yet)
        hr_min: Lower bpm bound
        hr_max: Upper bpm bound

    Returns:
        Interval in seconds within [rri_min, rri_max]

    Examples:
        >>> validate_interval(0.8, 75)
        0.8
        >>> validate_interval(5.0, 60)
        1.0
        >>> validate_interval(5.0, 0)
        1.0
    """
    rri_min, rri_max = rri_bounds(hr_min, hr_max)

    # NaN fails both comparisons and falls through to the substitutes
    if rri_min <= rri <= rri_max:
        return rri

    if hr_min < last_heart_rate < hr_max:
        return 60.0 / last_heart_rate

    return min(max(FALLBACK_INTERVAL_S, rri_min), rri_max)


def is_valid_interval(rri: float, hr_min: int = HR_MIN, hr_max: int = HR_MAX) -> bool:
    rri_min, rri_max = rri_bounds(hr_min, hr_max)
    return not math.isnan(rri) and rri_min <= rri <= rri_max
