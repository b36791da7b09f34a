#!/usr/bin/env python3
"""
Heart Rate Bridge - BLE heart rate strap to avatar OSC

Receives Heart Rate Measurement notifications from a BLE peripheral and
drives two independent avatar outputs:

    Chatbox text     throttled heart rate ("🤍 72"), at most one update per
                     throttle window and only when the value changes
    Beat parameter   one pulse per RR interval, paced in real time by
                     BeatPacer so bursty delivery doesn't bunch the beats

PIPELINE:
    notification bytes
      → decode_measurement()        heart rate + RR intervals
      → HeartRateThrottle.offer()   → AvatarOSCSink.send_heart_rate()
      → validate_interval()         → BeatPacer.enqueue_many()
                                    → AvatarOSCSink.send_pulse() per beat

Malformed notifications are logged and dropped without touching any state.

USAGE:
    # Connect to the first device advertising the Heart Rate service
    python3 -m hrosc

    # Pick a device by name, send to another host
    python3 -m hrosc --device "Polar H10" --host 192.168.1.20

    # No hardware: emulated strap at 80 BPM
    python3 -m hrosc --simulate --sim-bpm 80

    # YAML config (CLI flags override file values)
    python3 -m hrosc --config hrosc.yaml
"""

import argparse
import asyncio
import os
import sys
import time
from typing import Optional

from hrosc import osc
from hrosc.config import BridgeConfig, load_config
from hrosc.decoder import Measurement, MalformedPayload, decode_measurement
from hrosc.intervals import is_valid_interval, validate_interval
from hrosc.log import get_logger, set_level
from hrosc.pacer import BeatPacer
from hrosc.throttle import HeartRateThrottle

logger = get_logger(__name__)


class HeartRateBridge:
    """Owns all per-process state: last heart rate, throttle, pacer, sink.

    handle_notification() is the only producer entry point and may be passed
    directly to bleak's start_notify().

    Args:
        config: Bridge configuration (defaults if None)
        sink: Output sink (AvatarOSCSink built from config if None)
        throttle: Heart rate throttle (built from config if None)
        pacer: Beat pacer (built from config if None, pulses go to sink)
        stats: Shared counters

    Attributes:
        last_heart_rate (int): Last decoded heart rate, 0 before the first;
            fallback for out-of-range intervals
        last_contact (Optional[bool]): Last reported sensor contact state
    """

    def __init__(self, config: Optional[BridgeConfig] = None, sink=None,
                 throttle: Optional[HeartRateThrottle] = None,
                 pacer: Optional[BeatPacer] = None,
                 stats: Optional[osc.MessageStatistics] = None):
        self.config = config if config is not None else BridgeConfig()
        self.stats = stats if stats is not None else osc.MessageStatistics()

        if sink is None:
            sink = osc.AvatarOSCSink(
                host=self.config.osc_host,
                port=self.config.osc_port,
                pulse_parameter=self.config.pulse_parameter,
                hr_parameter=self.config.hr_parameter,
                stats=self.stats
            )
        self.sink = sink

        self.throttle = throttle if throttle is not None else HeartRateThrottle(
            window_s=self.config.throttle_window_s,
            label=self.config.label,
            show_trend=self.config.show_trend
        )
        self.pacer = pacer if pacer is not None else BeatPacer(
            on_pulse=self.sink.send_pulse,
            hr_min=self.config.hr_min,
            hr_max=self.config.hr_max
        )

        self.last_heart_rate: int = 0
        self.last_contact: Optional[bool] = None
        self.stopped = False

    def handle_notification(self, sender, data) -> Optional[Measurement]:
        """Process one raw notification.

        Args:
            sender: Characteristic (bleak) or any identifier, used for logging
            data: Raw payload bytes

        Returns:
            Decoded Measurement, or None if the payload was dropped
        """
        self.stats.increment('notifications')

        try:
            measurement = decode_measurement(data)
        except MalformedPayload as e:
            self.stats.increment('malformed_notifications')
            logger.warning(f"Dropped notification from {sender}: {e} "
                           f"(payload {bytes(data).hex()})")
            return None

        self._track_contact(measurement.sensor_contact)

        heart_rate = measurement.heart_rate
        self.last_heart_rate = heart_rate

        text = self.throttle.offer(heart_rate)
        if text is not None:
            self.sink.send_heart_rate(text)
            self.sink.send_heart_rate_parameter(heart_rate)
            logger.info(f"Heart rate: {heart_rate} BPM")

        validated = []
        for rri in measurement.intervals:
            interval = validate_interval(rri, self.last_heart_rate,
                                         self.config.hr_min, self.config.hr_max)
            if not is_valid_interval(rri, self.config.hr_min, self.config.hr_max):
                self.stats.increment('corrected_intervals')
                logger.debug(f"RR interval {rri:.3f}s out of range, using {interval:.3f}s")
            validated.append(interval)

        if validated:
            self.pacer.enqueue_many(validated)

        logger.debug(f"HR={heart_rate}, RR={[round(r, 3) for r in measurement.intervals]}, "
                     f"queued={self.pacer.pending()}")
        return measurement

    def _track_contact(self, contact: Optional[bool]) -> None:
        if contact is None or contact == self.last_contact:
            return
        if contact:
            if self.last_contact is not None:
                logger.info("Sensor contact restored")
        else:
            logger.warning("Sensor contact lost")
        self.last_contact = contact

    def stop(self) -> None:
        """Stop pacing and close the sink. Safe to call multiple times."""
        if self.stopped:
            return
        self.stopped = True
        self.pacer.stop()
        self.stats.increment('pulses_paced', self.pacer.pulses_emitted)
        self.stats.increment('intervals_skipped', self.pacer.intervals_skipped)
        self.stats.increment('stalls', self.pacer.stalls)
        self.stats.increment('suppressed_heart_rates', self.throttle.suppressed_count)
        self.sink.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False


def run_simulated(bridge: HeartRateBridge, bpm: float) -> None:
    """Feed the bridge from an emulated strap until Ctrl+C."""
    from hrosc.simulator.hrm_emulator import HRMEmulator

    emulator = HRMEmulator(bridge.handle_notification, bpm=bpm)
    emulator.start()
    try:
        while True:
            time.sleep(1.0)
    finally:
        emulator.stop()


def run_ble(bridge: HeartRateBridge) -> None:
    """Feed the bridge from a BLE peripheral until Ctrl+C."""
    from hrosc.ble import HeartRateMonitor

    monitor = HeartRateMonitor(
        bridge.handle_notification,
        device_name=bridge.config.device_name,
        address=bridge.config.device_address,
        reconnect_delay_s=bridge.config.reconnect_delay_s
    )
    asyncio.run(monitor.run())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Heart Rate Bridge - BLE heart rate to avatar OSC"
    )
    parser.add_argument("--config", help="Path to YAML config file")
    parser.add_argument("--device", help="Substring of the peripheral's name")
    parser.add_argument("--address", help="Peripheral address (skips name matching)")
    parser.add_argument("--host", help=f"Avatar OSC host (default: {BridgeConfig.osc_host})")
    parser.add_argument(
        "--port",
        type=int,
        help=f"Avatar OSC port (default: {osc.PORT_AVATAR_INPUT})"
    )
    parser.add_argument("--pulse-parameter", help="Avatar bool parameter pulsed per beat")
    parser.add_argument("--hr-parameter", help="Avatar int parameter mirroring heart rate")
    parser.add_argument(
        "--show-trend",
        action="store_true",
        default=None,
        help="Append a rising/falling marker to the chatbox text"
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use an emulated heart rate strap instead of BLE"
    )
    parser.add_argument(
        "--sim-bpm",
        type=float,
        default=75.0,
        help="Emulated heart rate (default: 75)"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable per-notification debug logging"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("HROSC_LOG_LEVEL", "INFO"),
        help="Logging verbosity (default: INFO)"
    )
    return parser


def main(argv=None):
    """Main entry point with command-line argument parsing.

    Exits with code 1 on an invalid port or config file.
    """
    args = build_parser().parse_args(argv)

    if args.verbose:
        args.log_level = "DEBUG"
    set_level(args.log_level)

    if args.port is not None:
        try:
            osc.validate_port(args.port)
        except ValueError as e:
            logger.error(f"OSC port: {e}")
            sys.exit(1)

    try:
        config = load_config(args.config) if args.config else BridgeConfig()
        config = config.with_overrides(
            osc_host=args.host,
            osc_port=args.port,
            pulse_parameter=args.pulse_parameter,
            hr_parameter=args.hr_parameter,
            show_trend=args.show_trend,
            device_name=args.device,
            device_address=args.address
        )
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Config: {e}")
        sys.exit(1)

    try:
        bridge = HeartRateBridge(config)
    except (OSError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"Sending to {config.osc_host}:{config.osc_port} "
                f"(pulse: {bridge.sink.pulse_address})")
    logger.info(f"Heart rate bounds {config.hr_min}-{config.hr_max} BPM, "
                f"throttle {config.throttle_window_s:.1f}s")

    try:
        if args.simulate:
            run_simulated(bridge, args.sim_bpm)
        else:
            run_ble(bridge)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        bridge.stop()
        bridge.stats.print_stats("HEART RATE BRIDGE STATISTICS")


if __name__ == "__main__":
    main()
