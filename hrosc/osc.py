#!/usr/bin/env python3
"""
hrosc OSC output - avatar endpoint client, address helpers, statistics.

Delivers the two outbound message kinds to the avatar OSC endpoint:

    /chatbox/input [text, True, False]
        Heart rate display text. Second arg sends immediately (skips the
        keyboard), third arg suppresses the notification sound.

    /avatar/parameters/{pulse_parameter} True
        One message per paced heartbeat.

    /avatar/parameters/{hr_parameter} int      (optional)
        Raw heart rate for avatars that animate from a number.

Sends are fire-and-forget: UDP gives no delivery confirmation, and a socket
error is logged and counted but never propagated to the caller.

Classes:
    - AvatarOSCSink: SimpleUDPClient wrapper with the message kinds above
    - MessageStatistics: Thread-safe message counter with formatted output

Functions:
    - validate_port(port): Validate port in range 1-65535
    - validate_parameter_name(name): Validate avatar parameter name
    - parameter_address(name): Build /avatar/parameters/{name}
"""

import re
import threading
from typing import Optional

from pythonosc import udp_client

from hrosc.log import get_logger

logger = get_logger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

# Avatar endpoint input port (VRChat listens on 9000)
PORT_AVATAR_INPUT = 9000

CHATBOX_ADDRESS = "/chatbox/input"
PARAMETER_PREFIX = "/avatar/parameters/"

# Chatbox text limit enforced by the endpoint
CHATBOX_MAX_CHARS = 144

PORT_MIN = 1
PORT_MAX = 65535

PARAMETER_NAME_PATTERN = re.compile(r'^[A-Za-z0-9_][A-Za-z0-9_/.\-]*$')


# ============================================================================
# VALIDATION FUNCTIONS
# ============================================================================

def validate_port(port: int) -> None:
    """Validate UDP port number is in valid range.

    Raises:
        ValueError: If port is outside range 1-65535

    Examples:
        >>> validate_port(9000)  # OK
        >>> validate_port(0)  # Raises ValueError
    """
    if port < PORT_MIN or port > PORT_MAX:
        raise ValueError(f"Port must be in range {PORT_MIN}-{PORT_MAX}, got {port}")


def validate_parameter_name(name: str) -> None:
    """Validate an avatar parameter name.

    Raises:
        ValueError: If name is empty or contains characters outside
            letters, digits, '_', '/', '.', '-'
    """
    if not name or not PARAMETER_NAME_PATTERN.match(name):
        raise ValueError(f"Invalid avatar parameter name: {name!r}")


def parameter_address(name: str) -> str:
    """Return the OSC address for an avatar parameter.

    Examples:
        >>> parameter_address("HeartBeat")
        '/avatar/parameters/HeartBeat'
    """
    return f"{PARAMETER_PREFIX}{name}"


# ============================================================================
# AVATAR SINK
# ============================================================================

class AvatarOSCSink:
    """Fire-and-forget sender for heart rate text and beat pulses.

    Args:
        host: Avatar OSC endpoint host
        port: Avatar OSC endpoint UDP port
        pulse_parameter: Bool parameter set once per beat
        hr_parameter: Optional int parameter mirroring the heart rate
        stats: Shared counters (created if not given)
        client: Pre-built UDP client, mainly for tests

    Attributes:
        stats (MessageStatistics): pulse_messages, heart_rate_messages,
            send_failures
    """

    def __init__(self, host: str = "127.0.0.1", port: int = PORT_AVATAR_INPUT,
                 pulse_parameter: str = "HeartBeat", hr_parameter: Optional[str] = None,
                 stats: Optional["MessageStatistics"] = None, client=None):
        validate_port(port)
        validate_parameter_name(pulse_parameter)
        if hr_parameter is not None:
            validate_parameter_name(hr_parameter)

        self.host = host
        self.port = port
        self.pulse_address = parameter_address(pulse_parameter)
        self.hr_address = parameter_address(hr_parameter) if hr_parameter else None
        self.stats = stats if stats is not None else MessageStatistics()
        self.client = client if client is not None else udp_client.SimpleUDPClient(host, port)

    def _send(self, address: str, value, counter: str) -> bool:
        """Send one message, logging instead of raising on socket errors."""
        try:
            self.client.send_message(address, value)
        except OSError as e:
            self.stats.increment('send_failures')
            logger.warning(f"OSC send to {self.host}:{self.port}{address} failed: {e}")
            return False
        self.stats.increment(counter)
        return True

    def send_heart_rate(self, text: str) -> bool:
        """Show text in the chatbox. Returns False if the send failed."""
        text = text[:CHATBOX_MAX_CHARS]
        return self._send(CHATBOX_ADDRESS, [text, True, False], 'heart_rate_messages')

    def send_heart_rate_parameter(self, heart_rate: int) -> bool:
        """Mirror heart rate into the int parameter, if one is configured."""
        if self.hr_address is None:
            return False
        return self._send(self.hr_address, int(heart_rate), 'heart_rate_parameter_messages')

    def send_pulse(self) -> bool:
        """Trigger one heartbeat pulse. Returns False if the send failed."""
        return self._send(self.pulse_address, True, 'pulse_messages')

    def close(self):
        """Close the UDP socket."""
        sock = getattr(self.client, '_sock', None)
        if sock is not None:
            sock.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


# ============================================================================
# MESSAGE STATISTICS
# ============================================================================

class MessageStatistics:
    """Thread-safe message statistics tracker with formatted output.

    Maintains counters for various message categories and provides formatted
    statistics display on shutdown. All counter increments are thread-safe.

    Typical counters:
        - notifications: Heart rate notifications received
        - malformed_notifications: Notifications dropped by the decoder
        - corrected_intervals: Intervals replaced by the validator
        - heart_rate_messages: Chatbox updates sent
        - pulse_messages: Beat pulses sent
        - send_failures: OSC sends that raised a socket error

    Examples:
        >>> stats = MessageStatistics()
        >>> stats.increment('notifications')
        >>> stats.print_stats("HEART RATE BRIDGE")
    """

    def __init__(self):
        self.counters = {}
        self.lock = threading.Lock()

    def increment(self, counter_name: str, amount: int = 1) -> None:
        """Increment a counter by specified amount (thread-safe).

        Creates the counter if it doesn't exist.
        """
        with self.lock:
            self.counters[counter_name] = self.counters.get(counter_name, 0) + amount

    def get(self, counter_name: str) -> int:
        """Get current value of a counter, or 0 if it doesn't exist."""
        with self.lock:
            return self.counters.get(counter_name, 0)

    def snapshot(self) -> dict:
        with self.lock:
            return dict(self.counters)

    def print_stats(self, title: str = "STATISTICS") -> None:
        """Print formatted statistics to console.

        Output format:
            ============================================================
            TITLE
            ============================================================
            Counter Name: value
            ...
            ============================================================
        """
        print("\n" + "=" * 60)
        print(title)
        print("=" * 60)

        # Print without holding lock (slow I/O)
        snapshot = self.snapshot()
        for name in sorted(snapshot.keys()):
            display_name = name.replace('_', ' ').title()
            print(f"{display_name}: {snapshot[name]}")

        print("=" * 60)
