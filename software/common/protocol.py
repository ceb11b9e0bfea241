#!/usr/bin/env python3
"""Channel protocol definitions for C2 console <-> telemetry source communication."""

import math
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Optional

from common.data_models import GeoPosition, ThreatTrack, ThreatUpdatePayload


class ChannelName(Enum):
    """Logical channel names multiplexed over the telemetry connection."""

    # Console → telemetry source (Upstream)
    SYSTEM_UPDATE = "systemUpdate"

    # Telemetry source → console (Downstream)
    THREAT_UPDATE = "threatUpdate"


class ConnectionStatus(Enum):
    """Connection status."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class ProtocolError(ValueError):
    """Raised when inbound wire data does not match the expected shape."""


# Allowed status transitions (from -> set of targets)
ALLOWED_TRANSITIONS: Dict[ConnectionStatus, FrozenSet[ConnectionStatus]] = {
    ConnectionStatus.CONNECTING: frozenset({ConnectionStatus.CONNECTED, ConnectionStatus.ERROR}),
    ConnectionStatus.CONNECTED: frozenset({ConnectionStatus.DISCONNECTED, ConnectionStatus.ERROR}),
    ConnectionStatus.DISCONNECTED: frozenset({ConnectionStatus.CONNECTING, ConnectionStatus.ERROR}),
    ConnectionStatus.ERROR: frozenset({ConnectionStatus.CONNECTING}),
}


def is_transition_allowed(current: ConnectionStatus, target: ConnectionStatus) -> bool:
    """Check whether the connection state machine permits a transition.

    Args:
        current: Status the connection is in now
        target: Status being requested

    Returns:
        True if the transition is legal, False otherwise
    """
    return target in ALLOWED_TRANSITIONS[current]


def _require(data: Dict[str, Any], key: str, context: str) -> Any:
    if key not in data or data[key] is None:
        raise ProtocolError(f"{context}: missing required field '{key}'")
    return data[key]


def _as_number(value: Any, key: str, context: str) -> float:
    # bool is an int subclass but never a valid coordinate or measurement
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProtocolError(f"{context}: field '{key}' must be numeric, got {type(value).__name__}")
    try:
        number = float(value)
    except OverflowError:
        raise ProtocolError(f"{context}: field '{key}' is too large") from None
    if not math.isfinite(number):
        raise ProtocolError(f"{context}: field '{key}' must be finite")
    return number


def _as_integer(value: Any, key: str, context: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProtocolError(f"{context}: field '{key}' must be an integer, got {type(value).__name__}")
    return value


def _as_object(value: Any, context: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ProtocolError(f"{context}: expected an object, got {type(value).__name__}")
    return value


def decode_geo_position(data: Any, context: str = "position") -> GeoPosition:
    """Decode a `{lat, lng}` object.

    Args:
        data: Decoded JSON value
        context: Field path used in error messages

    Returns:
        GeoPosition

    Raises:
        ProtocolError: If a field is missing, non-numeric or out of range
    """
    data = _as_object(data, context)
    lat = _as_number(_require(data, "lat", context), "lat", context)
    lng = _as_number(_require(data, "lng", context), "lng", context)

    if not -90.0 <= lat <= 90.0:
        raise ProtocolError(f"{context}: latitude {lat} out of range [-90, 90]")
    if not -180.0 <= lng <= 180.0:
        raise ProtocolError(f"{context}: longitude {lng} out of range [-180, 180]")

    return GeoPosition(lat=lat, lng=lng)


def decode_threat_track(data: Any) -> ThreatTrack:
    """Decode a threat track object.

    Raises:
        ProtocolError: If the track is malformed
    """
    context = "threatTrack"
    data = _as_object(data, context)

    track_id = _as_integer(_require(data, "trackId", context), "trackId", context)
    position = decode_geo_position(_require(data, "position", context), f"{context}.position")
    bearing = _as_number(_require(data, "bearing", context), "bearing", context)
    distance = _as_number(_require(data, "distance", context), "distance", context)
    confidence = _as_number(_require(data, "confidence", context), "confidence", context)
    last_update_time = _as_integer(_require(data, "lastUpdateTime", context), "lastUpdateTime", context)

    classification = _require(data, "classification", context)
    if not isinstance(classification, str):
        raise ProtocolError(f"{context}: field 'classification' must be a string")

    if not 0.0 <= bearing < 360.0:
        raise ProtocolError(f"{context}: bearing {bearing} out of range [0, 360)")
    if distance < 0.0:
        raise ProtocolError(f"{context}: distance {distance} must be non-negative")
    if not 0.0 <= confidence <= 100.0:
        raise ProtocolError(f"{context}: confidence {confidence} out of range [0, 100]")

    return ThreatTrack(
        track_id=track_id,
        position=position,
        bearing=bearing,
        distance=distance,
        classification=classification,
        confidence=confidence,
        last_update_time=last_update_time,
    )


def decode_threat_update(data: Any) -> ThreatUpdatePayload:
    """Decode a `threatUpdate` frame.

    A missing or null `threatTrack` means the telemetry source reports no
    active threat.

    Args:
        data: Decoded JSON value received on the threatUpdate channel

    Returns:
        ThreatUpdatePayload

    Raises:
        ProtocolError: If the frame is malformed
    """
    data = _as_object(data, "threatUpdate")
    system_position = decode_geo_position(
        _require(data, "systemPosition", "threatUpdate"), "threatUpdate.systemPosition"
    )

    raw_track = data.get("threatTrack")
    threat_track = decode_threat_track(raw_track) if raw_track is not None else None

    return ThreatUpdatePayload(system_position=system_position, threat_track=threat_track)


def encode_geo_position(position: GeoPosition) -> Dict[str, float]:
    """Encode an operator position for the systemUpdate channel."""
    return {"lat": position.lat, "lng": position.lng}


# Decoders applied at the connection boundary before dispatch
INBOUND_DECODERS: Dict[ChannelName, Callable[[Any], Any]] = {
    ChannelName.THREAT_UPDATE: decode_threat_update,
}


def get_decoder(channel: str) -> Optional[Callable[[Any], Any]]:
    """Look up the decoder for an inbound channel name, if one is registered."""
    try:
        return INBOUND_DECODERS.get(ChannelName(channel))
    except ValueError:
        return None
