"""Emulated peripherals for running the bridge without hardware."""
