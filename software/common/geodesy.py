#!/usr/bin/env python3
"""Spherical-earth geodesy for range rings and track projection."""

import math
from typing import List, Tuple

import numpy as np

from common.data_models import GeoPosition

EARTH_RADIUS_M = 6371000.0
DEFAULT_RING_SEGMENTS = 64


def _normalize_longitude(lng):
    """Wrap longitude degrees into (-180, 180]."""
    wrapped = np.mod(lng + 180.0, 360.0) - 180.0
    return np.where(wrapped == -180.0, 180.0, wrapped)


def _project(lat: float, lng: float, bearings_deg: np.ndarray, distance_m: float) -> Tuple[np.ndarray, np.ndarray]:
    """Solve the direct problem for one origin and an array of bearings.

    Args:
        lat: Origin latitude (degrees)
        lng: Origin longitude (degrees)
        bearings_deg: Initial bearings (degrees, 0=North, clockwise)
        distance_m: Great-circle distance (meters)

    Returns:
        Tuple of (latitudes, longitudes) in degrees
    """
    phi1 = math.radians(lat)
    lambda1 = math.radians(lng)
    theta = np.radians(bearings_deg)
    delta = distance_m / EARTH_RADIUS_M

    sin_phi2 = math.sin(phi1) * math.cos(delta) + math.cos(phi1) * math.sin(delta) * np.cos(theta)
    phi2 = np.arcsin(np.clip(sin_phi2, -1.0, 1.0))

    y = np.sin(theta) * math.sin(delta) * math.cos(phi1)
    x = math.cos(delta) - math.sin(phi1) * np.sin(phi2)
    lambda2 = lambda1 + np.arctan2(y, x)

    return np.degrees(phi2), _normalize_longitude(np.degrees(lambda2))


def destination_point(origin: GeoPosition, bearing_deg: float, distance_m: float) -> GeoPosition:
    """Project a point from an origin along an initial bearing.

    Args:
        origin: Start point
        bearing_deg: Initial bearing (degrees, 0=North, clockwise)
        distance_m: Great-circle distance (meters)

    Returns:
        Destination point with longitude in (-180, 180]
    """
    lats, lngs = _project(origin.lat, origin.lng, np.array([bearing_deg], dtype=float), distance_m)
    return GeoPosition(lat=float(lats[0]), lng=float(lngs[0]))


def range_ring_polygon(
    center: GeoPosition, radius_m: float, segments: int = DEFAULT_RING_SEGMENTS
) -> List[Tuple[float, float]]:
    """Approximate a circle of fixed radius as an open polygon.

    Points are ordered by ascending bearing starting at north. The first
    point is not repeated at the end.

    Args:
        center: Ring center (usually the operator position)
        radius_m: Ring radius (meters)
        segments: Number of vertices (>= 3)

    Returns:
        List of (lng, lat) tuples

    Raises:
        ValueError: If segments < 3
    """
    if segments < 3:
        raise ValueError(f"Range ring needs at least 3 segments, got {segments}")

    bearings = np.arange(segments, dtype=float) * (360.0 / segments)
    lats, lngs = _project(center.lat, center.lng, bearings, radius_m)
    return [(float(lng), float(lat)) for lng, lat in zip(lngs, lats)]


def haversine_distance(a: GeoPosition, b: GeoPosition) -> float:
    """Calculate great-circle distance in meters between two points"""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    delta_lat = math.radians(b.lat - a.lat)
    delta_lng = math.radians(b.lng - a.lng)

    h = math.sin(delta_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lng / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def initial_bearing(a: GeoPosition, b: GeoPosition) -> float:
    """Calculate initial bearing from point a to point b (degrees, 0-360)"""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    delta_lng = math.radians(b.lng - a.lng)

    y = math.sin(delta_lng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(delta_lng)
    return (math.degrees(math.atan2(y, x)) + 360) % 360
