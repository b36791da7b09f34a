"""Integration tests: notification → bridge → UDP → OSC capture."""
