"""
Bridge configuration - physiological bounds, pacing thresholds, OSC targets.

Module constants hold the reference tuning. BridgeConfig bundles them per
instance so tests and the CLI can override individual values, and
load_config() reads the same fields from an optional YAML file:

    osc:
      host: 127.0.0.1
      port: 9000
      pulse_parameter: HeartBeat
      hr_parameter: null
    heart_rate:
      min_bpm: 40
      max_bpm: 200
      throttle_window_s: 1.5
    display:
      label: "🤍"
      show_trend: false
    device:
      name: null
      address: null
      reconnect_delay_s: 1.0
"""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

import yaml


# Physiological heart rate bounds (bpm)
HR_MIN = 40
HR_MAX = 200

# Beat-to-beat interval bounds (seconds) derived from the heart rate bounds
RRI_MIN = 60.0 / HR_MAX
RRI_MAX = 60.0 / HR_MIN

# Substitute interval when neither the sample nor the last heart rate is usable
FALLBACK_INTERVAL_S = 1.0

# Minimum time between two forwarded heart rate updates
THROTTLE_WINDOW_S = 1.5

# Catch-up thresholds: queue may hold at most 2 x RRI_MAX seconds
# and 2 x (HR_MAX / 60) intervals before the oldest are skipped
CATCHUP_DURATION_FACTOR = 2
CATCHUP_COUNT_FACTOR = 2

# Wire scale of RR-interval samples (units of 1/1024 s)
RR_INTERVAL_RESOLUTION = 1024

# Default OSC endpoint (VRChat listens on 9000)
DEFAULT_OSC_HOST = "127.0.0.1"
DEFAULT_OSC_PORT = 9000
DEFAULT_PULSE_PARAMETER = "HeartBeat"
DEFAULT_LABEL = "🤍"

# Delay between BLE reconnect attempts
RECONNECT_DELAY_S = 1.0


@dataclass
class BridgeConfig:
    """Runtime configuration for one bridge instance.

    Attributes:
        hr_min: Lowest plausible heart rate (bpm)
        hr_max: Highest plausible heart rate (bpm)
        throttle_window_s: Minimum seconds between forwarded heart rate texts
        osc_host: Avatar OSC endpoint host
        osc_port: Avatar OSC endpoint UDP port
        pulse_parameter: Avatar bool parameter toggled once per beat
        hr_parameter: Optional avatar int parameter mirroring the heart rate
        label: Text placed before the heart rate in the chatbox
        show_trend: Append a rising/falling marker to the chatbox text
        device_name: Substring of the peripheral's advertised name
        device_address: Explicit peripheral address (skips name matching)
        reconnect_delay_s: Wait between BLE reconnect attempts
    """
    hr_min: int = HR_MIN
    hr_max: int = HR_MAX
    throttle_window_s: float = THROTTLE_WINDOW_S
    osc_host: str = DEFAULT_OSC_HOST
    osc_port: int = DEFAULT_OSC_PORT
    pulse_parameter: str = DEFAULT_PULSE_PARAMETER
    hr_parameter: Optional[str] = None
    label: str = DEFAULT_LABEL
    show_trend: bool = False
    device_name: Optional[str] = None
    device_address: Optional[str] = None
    reconnect_delay_s: float = RECONNECT_DELAY_S

    def with_overrides(self, **overrides) -> "BridgeConfig":
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown config fields: {', '.join(sorted(unknown))}")
        applied = {k: v for k, v in overrides.items() if v is not None}
        config = replace(self, **applied)
        validate_config(config)
        return config


# YAML section/key → BridgeConfig field
_YAML_FIELDS = {
    ('osc', 'host'): 'osc_host',
    ('osc', 'port'): 'osc_port',
    ('osc', 'pulse_parameter'): 'pulse_parameter',
    ('osc', 'hr_parameter'): 'hr_parameter',
    ('heart_rate', 'min_bpm'): 'hr_min',
    ('heart_rate', 'max_bpm'): 'hr_max',
    ('heart_rate', 'throttle_window_s'): 'throttle_window_s',
    ('display', 'label'): 'label',
    ('display', 'show_trend'): 'show_trend',
    ('device', 'name'): 'device_name',
    ('device', 'address'): 'device_address',
    ('device', 'reconnect_delay_s'): 'reconnect_delay_s',
}


def validate_config(config: BridgeConfig) -> None:
    """Check value ranges.

    Raises:
        ValueError: If any field is out of range
    """
    if not (0 < config.hr_min < config.hr_max):
        raise ValueError(
            f"heart_rate bounds must satisfy 0 < min_bpm < max_bpm, "
            f"got {config.hr_min}-{config.hr_max}"
        )
    if config.throttle_window_s < 0:
        raise ValueError(f"throttle_window_s must be >= 0, got {config.throttle_window_s}")
    if not (1 <= config.osc_port <= 65535):
        raise ValueError(f"osc port must be in range 1-65535, got {config.osc_port}")
    if not config.pulse_parameter:
        raise ValueError("osc pulse_parameter must not be empty")
    if config.reconnect_delay_s < 0:
        raise ValueError(f"reconnect_delay_s must be >= 0, got {config.reconnect_delay_s}")


def load_config(config_path: str) -> BridgeConfig:
    """Load and validate a YAML configuration file.

    Missing sections and keys keep their defaults.

    Args:
        config_path: Path to the YAML file

    Returns:
        Validated BridgeConfig

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config validation fails
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be a mapping, got {type(raw).__name__}")

    values = {}
    for section_name, section in raw.items():
        if not isinstance(section, dict):
            raise ValueError(f"Config section '{section_name}' must be a mapping")
        for key, value in section.items():
            target = _YAML_FIELDS.get((section_name, key))
            if target is None:
                raise ValueError(f"Unknown config key: {section_name}.{key}")
            values[target] = value

    config = BridgeConfig(**values)
    try:
        validate_config(config)
    except TypeError as e:
        raise ValueError(f"Invalid config value type: {e}") from e
    return config
