#!/usr/bin/env python3
"""
Entry point for running the bridge as a module.

Usage:
    python -m hrosc [--device NAME] [--host HOST] [--port PORT] ...
"""

from hrosc.bridge import main

main()
