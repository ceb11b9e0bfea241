#!/usr/bin/env python3
"""
SKYSHIELD C2 Console - tracking core

Maintains the telemetry connection, reports operator position and holds
the live threat track for the tactical display.
"""

__version__ = '0.1.0'
