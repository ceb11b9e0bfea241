#!/usr/bin/env python3
"""Tracking core components independent of any display implementation."""

from .location_provider import (
    LocationError,
    LocationErrorCode,
    LocationProvider,
    SimulatedLocationProvider,
    UnavailableLocationProvider,
)
from .network_client import SocketIOConnection
from .position_reporter import PositionReporter
from .threat_store import ThreatStateStore

__all__ = [
    'LocationError',
    'LocationErrorCode',
    'LocationProvider',
    'SimulatedLocationProvider',
    'UnavailableLocationProvider',
    'SocketIOConnection',
    'PositionReporter',
    'ThreatStateStore',
]
