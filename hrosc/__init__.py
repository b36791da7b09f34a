"""
hrosc - BLE heart rate to avatar OSC bridge.

Modules:
    decoder: Heart Rate Measurement (0x2A37) payload decoding
    intervals: RR interval bounds correction
    pacer: Real-time beat pacing queue
    throttle: Heart rate display rate limiting
    osc: Avatar OSC sink, constants and statistics
    bridge: Pipeline owner and command-line entry point
    ble: BLE peripheral connection (bleak)
"""

__version__ = "0.1.0"

# Note: Modules are imported on-demand so that decoding and pacing can be
# used without bleak installed.
# Use: from hrosc import decoder, pacer, etc.
