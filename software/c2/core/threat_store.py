#!/usr/bin/env python3
"""Authoritative state for operator position, threat feed and detection radius."""

import logging
from typing import List, Optional, Tuple

from common.config_loader import DETECTION_RADIUS_RANGE
from common.data_models import GeoPosition, ThreatUpdatePayload
from common.geodesy import DEFAULT_RING_SEGMENTS, range_ring_polygon
from common.network_base import NetworkConnection
from common.protocol import ConnectionStatus

logger = logging.getLogger(__name__)

DEFAULT_POSITION = GeoPosition(lat=52.52, lng=13.4)
DEFAULT_RADIUS = 5000.0  # meters
MIN_RADIUS, MAX_RADIUS = DETECTION_RADIUS_RANGE
RADIUS_PRESETS = (5000.0, 10000.0, 50000.0)


class ThreatStateStore:
    """Holds the latest threat payload and the operator position.

    Values are immutable and replaced by single assignment, so a reader on
    the event loop always sees a complete payload.
    """

    def __init__(self, initial_position: GeoPosition = DEFAULT_POSITION,
                 detection_radius: float = DEFAULT_RADIUS,
                 connection: Optional[NetworkConnection] = None):
        """Initialize store.

        Args:
            initial_position: Operator position until the first fix or override
            detection_radius: Initial range ring radius (meters)
            connection: Connection whose status is reported by get_connection_status
        """
        self._operator_position = initial_position
        self._latest_threat: Optional[ThreatUpdatePayload] = None
        self._detection_radius = self._validate_radius(detection_radius)
        self._connection = connection
        self.updates_applied = 0

    def bind_connection(self, connection: NetworkConnection):
        self._connection = connection

    def get_operator_position(self) -> GeoPosition:
        return self._operator_position

    def set_operator_position(self, position: GeoPosition):
        """Replace the operator position.

        Args:
            position: New operator position (device fix or manual override)
        """
        if not isinstance(position, GeoPosition):
            raise TypeError(f"Operator position must be a GeoPosition, got {type(position).__name__}")
        self._operator_position = position

    def get_latest_threat(self) -> Optional[ThreatUpdatePayload]:
        """Get the latest threat payload.

        Returns:
            Last payload received, or None if no telemetry has arrived yet
        """
        return self._latest_threat

    def apply_inbound_payload(self, payload: ThreatUpdatePayload):
        """Replace the stored payload wholesale (last write wins)."""
        previous = self._latest_threat
        self._latest_threat = payload
        self.updates_applied += 1

        track = payload.threat_track
        previous_track = previous.threat_track if previous else None
        if track is not None and (previous_track is None or previous_track.track_id != track.track_id):
            logger.warning(
                f"Threat track {track.track_id} active: {track.classification} "
                f"({track.confidence:.0f}%) at {track.distance:.0f} m, bearing {track.bearing:.0f}"
            )
        elif track is None and previous_track is not None:
            logger.info(f"Threat track {previous_track.track_id} cleared")

    @property
    def is_threat_active(self) -> bool:
        return self._latest_threat is not None and self._latest_threat.has_threat

    def get_connection_status(self) -> ConnectionStatus:
        if self._connection is None:
            return ConnectionStatus.CONNECTING
        return self._connection.status

    @staticmethod
    def _validate_radius(radius: float) -> float:
        radius = float(radius)
        if not MIN_RADIUS <= radius <= MAX_RADIUS:
            raise ValueError(f"Detection radius {radius} m outside [{MIN_RADIUS:.0f}, {MAX_RADIUS:.0f}]")
        return radius

    def get_detection_radius(self) -> float:
        return self._detection_radius

    def set_detection_radius(self, radius: float):
        """Select the detection radius.

        Args:
            radius: Range ring radius in meters

        Raises:
            ValueError: If radius is outside the selectable range
        """
        self._detection_radius = self._validate_radius(radius)
        logger.info(f"Detection radius set to {self._detection_radius:.0f} m")

    def get_range_ring(self, segments: int = DEFAULT_RING_SEGMENTS) -> List[Tuple[float, float]]:
        """Range ring around the current operator position at the current radius."""
        return range_ring_polygon(self._operator_position, self._detection_radius, segments)
