#!/usr/bin/env python3
"""Device location providers for the position reporter."""

import logging
import time
from enum import Enum
from typing import Optional

from common.data_models import GeoPosition
from common.geodesy import destination_point

logger = logging.getLogger(__name__)


class LocationErrorCode(Enum):
    """Why a location fix could not be produced."""

    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"


class LocationError(Exception):
    """Raised when a provider cannot supply a fix."""

    def __init__(self, code: LocationErrorCode, message: str = ""):
        super().__init__(message or code.value)
        self.code = code


class LocationProvider:
    """Base class for asynchronous location sources."""

    available = True

    async def get_current_position(self, maximum_age: float = 0.0) -> GeoPosition:
        """Sample the device location.

        Args:
            maximum_age: Oldest cached fix accepted, in seconds (0 forces a fresh fix)

        Returns:
            Current position

        Raises:
            LocationError: If no fix can be produced
        """
        raise NotImplementedError


class UnavailableLocationProvider(LocationProvider):
    """Provider for runtimes without any location hardware."""

    available = False

    async def get_current_position(self, maximum_age: float = 0.0) -> GeoPosition:
        raise LocationError(LocationErrorCode.POSITION_UNAVAILABLE, "Location sampling is not available")


class SimulatedLocationProvider(LocationProvider):
    """Simulates GPS position updates for running without hardware."""

    SAFE_LATITUDE_RANGE = (-89.9, 89.9)

    def __init__(self, start_lat: float = 52.52, start_lng: float = 13.4, step_m: float = 1.0):
        """Initialize GPS simulator.

        Args:
            start_lat: Starting latitude (default: Berlin)
            start_lng: Starting longitude
            step_m: Distance moved per unit of forward input (meters)
        """
        self.position = GeoPosition(lat=start_lat, lng=start_lng)
        self.heading = 0.0
        self.step_m = step_m
        self.last_fix_time: Optional[float] = None
        self._cached_fix: Optional[GeoPosition] = None

    def update(self, forward: float = 0, turn: float = 0):
        """Update position based on movement.

        Args:
            forward: Forward movement (+1 = forward, -1 = backward)
            turn: Turn rate (+1 = right, -1 = left)
        """
        if turn != 0:
            self.heading = (self.heading + turn * 2.0) % 360  # degrees per update

        if forward != 0:
            moved = destination_point(self.position, self.heading, forward * self.step_m)
            lat = max(self.SAFE_LATITUDE_RANGE[0], min(self.SAFE_LATITUDE_RANGE[1], moved.lat))
            self.position = GeoPosition(lat=lat, lng=moved.lng)

    async def get_current_position(self, maximum_age: float = 0.0) -> GeoPosition:
        now = time.monotonic()
        if (
            self._cached_fix is not None
            and maximum_age > 0
            and now - self.last_fix_time <= maximum_age
        ):
            return self._cached_fix

        self._cached_fix = self.position
        self.last_fix_time = now
        return self._cached_fix
