#!/usr/bin/env python3
"""Shared data models for C2 console and telemetry communication."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class GeoPosition:
    """Point on the mean-radius spherical earth."""
    lat: float  # degrees, -90 to 90
    lng: float  # degrees, -180 to 180


@dataclass(frozen=True)
class ThreatTrack:
    """Single live detection reported by the telemetry source."""
    track_id: int  # Stable across updates for the same physical track
    position: GeoPosition
    bearing: float  # Relative to operator (degrees, 0=North, clockwise)
    distance: float  # From operator (meters)
    classification: str
    confidence: float  # Percent (0-100)
    last_update_time: int  # Epoch milliseconds


@dataclass(frozen=True)
class ThreatUpdatePayload:
    """Unit delivered on the threatUpdate channel."""
    system_position: GeoPosition
    threat_track: Optional[ThreatTrack] = None  # None = no active threat

    @property
    def has_threat(self) -> bool:
        return self.threat_track is not None
