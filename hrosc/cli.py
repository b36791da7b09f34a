#!/usr/bin/env python3
"""
Send a single OSC message to the avatar endpoint.

Useful for checking that the avatar reacts to the pulse parameter or that
the chatbox is reachable, without a heart rate strap.

Usage:
    python -m hrosc.cli <address> [arg1] [arg2] ...
"""

import os
import sys

from pythonosc import udp_client

from hrosc.osc import CHATBOX_ADDRESS, PORT_AVATAR_INPUT, parameter_address, validate_port


def expand_address(address: str) -> str:
    """Expand shorthand addresses.

    - "chatbox" → /chatbox/input
    - bare names ("HeartBeat") → /avatar/parameters/HeartBeat
    - anything starting with "/" is used as is
    """
    if address.startswith("/"):
        return address
    if address == "chatbox":
        return CHATBOX_ADDRESS
    return parameter_address(address)


def parse_argument(arg: str):
    """Parse a command-line argument to the appropriate type.

    Converts "true"/"false" to bool, then tries int and float, preserving
    strings if conversion fails.
    """
    lowered = arg.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(arg)
    except ValueError:
        pass
    try:
        return float(arg)
    except ValueError:
        pass
    return arg


def send_osc_message(address: str, args: list, host: str = "127.0.0.1",
                     port: int = PORT_AVATAR_INPUT):
    """Send an OSC message to the avatar endpoint."""
    validate_port(port)
    client = udp_client.SimpleUDPClient(host, port)
    try:
        client.send_message(address, args)
    finally:
        client._sock.close()
    print(f"Sent to {host}:{port} → {address} {args}")


def main():
    """CLI entry point for sending OSC messages.

    Target host/port come from HROSC_OSC_HOST / HROSC_OSC_PORT
    (default 127.0.0.1:9000).
    """
    if len(sys.argv) < 2:
        print("Usage: python -m hrosc.cli <address> [arg1] [arg2] ...")
        print()
        print("Examples:")
        print("  python -m hrosc.cli HeartBeat true")
        print("  python -m hrosc.cli chatbox '🤍 72' true false")
        print("  python -m hrosc.cli /avatar/parameters/HeartRate 72")
        print()
        print("Target: HROSC_OSC_HOST / HROSC_OSC_PORT (default 127.0.0.1:9000)")
        sys.exit(1)

    host = os.getenv("HROSC_OSC_HOST", "127.0.0.1")
    try:
        port = int(os.getenv("HROSC_OSC_PORT", str(PORT_AVATAR_INPUT)))
        validate_port(port)
    except ValueError as e:
        print(f"Invalid HROSC_OSC_PORT: {e}")
        sys.exit(1)

    address = expand_address(sys.argv[1])
    args = [parse_argument(arg) for arg in sys.argv[2:]]

    send_osc_message(address, args, host=host, port=port)


if __name__ == "__main__":
    main()
