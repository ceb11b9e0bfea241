"""Tests for channel protocol structure and wire decoding.

These tests verify the essential wire format contracts, not implementation details.
"""

import copy

import pytest
from common.data_models import GeoPosition, ThreatUpdatePayload
from common.protocol import (
    ALLOWED_TRANSITIONS,
    ChannelName,
    ConnectionStatus,
    ProtocolError,
    decode_geo_position,
    decode_threat_update,
    encode_geo_position,
    get_decoder,
    is_transition_allowed,
)

TRACK = {
    "trackId": 7,
    "position": {"lat": 52.55, "lng": 13.45},
    "bearing": 42.5,
    "distance": 4800.0,
    "classification": "Quadcopter",
    "confidence": 87.0,
    "lastUpdateTime": 1760000000000,
}

FRAME = {"systemPosition": {"lat": 52.52, "lng": 13.4}, "threatTrack": TRACK}


def frame_with(**track_overrides):
    frame = copy.deepcopy(FRAME)
    frame["threatTrack"].update(track_overrides)
    return frame


class TestChannelNames:
    """Channel names must match what the telemetry source emits."""

    def test_threat_update_channel(self):
        assert ChannelName.THREAT_UPDATE.value == "threatUpdate"

    def test_system_update_channel(self):
        assert ChannelName.SYSTEM_UPDATE.value == "systemUpdate"

    def test_threat_update_has_decoder(self):
        assert get_decoder("threatUpdate") is decode_threat_update

    def test_outbound_and_unknown_channels_have_no_decoder(self):
        assert get_decoder("systemUpdate") is None
        assert get_decoder("notAChannel") is None


class TestStatusTransitions:
    """Test the connection state machine table."""

    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(ConnectionStatus)

    @pytest.mark.parametrize("current,target", [
        (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED),
        (ConnectionStatus.CONNECTED, ConnectionStatus.DISCONNECTED),
        (ConnectionStatus.DISCONNECTED, ConnectionStatus.CONNECTING),
        (ConnectionStatus.CONNECTING, ConnectionStatus.ERROR),
        (ConnectionStatus.ERROR, ConnectionStatus.CONNECTING),
    ])
    def test_allowed_transitions(self, current, target):
        assert is_transition_allowed(current, target)

    @pytest.mark.parametrize("current", [ConnectionStatus.DISCONNECTED, ConnectionStatus.ERROR])
    def test_cannot_reach_connected_without_connecting(self, current):
        assert not is_transition_allowed(current, ConnectionStatus.CONNECTED)

    def test_error_reachable_from_any_other_status(self):
        for status in ConnectionStatus:
            if status != ConnectionStatus.ERROR:
                assert is_transition_allowed(status, ConnectionStatus.ERROR)


class TestThreatUpdateDecoding:
    """Test decoding of inbound threatUpdate frames."""

    def test_decodes_full_frame(self):
        payload = decode_threat_update(FRAME)

        assert isinstance(payload, ThreatUpdatePayload)
        assert payload.system_position == GeoPosition(52.52, 13.4)
        track = payload.threat_track
        assert track.track_id == 7
        assert track.position == GeoPosition(52.55, 13.45)
        assert track.bearing == 42.5
        assert track.distance == 4800.0
        assert track.classification == "Quadcopter"
        assert track.confidence == 87.0
        assert track.last_update_time == 1760000000000

    def test_null_track_means_no_threat(self):
        payload = decode_threat_update({"systemPosition": {"lat": 52.52, "lng": 13.4}, "threatTrack": None})

        assert payload.threat_track is None
        assert payload.has_threat is False

    def test_missing_track_means_no_threat(self):
        payload = decode_threat_update({"systemPosition": {"lat": 52.52, "lng": 13.4}})

        assert payload.threat_track is None

    def test_integer_coordinates_accepted(self):
        payload = decode_threat_update({"systemPosition": {"lat": 52, "lng": 13}})

        assert payload.system_position == GeoPosition(52.0, 13.0)

    def test_bearing_and_distance_taken_verbatim(self):
        """Feed-supplied bearing and distance are never recomputed."""
        payload = decode_threat_update(frame_with(bearing=359.5, distance=0.0))

        assert payload.threat_track.bearing == 359.5
        assert payload.threat_track.distance == 0.0

    def test_rejects_missing_system_position(self):
        with pytest.raises(ProtocolError):
            decode_threat_update({"threatTrack": None})

    @pytest.mark.parametrize("field", list(TRACK.keys()))
    def test_rejects_track_missing_required_field(self, field):
        frame = copy.deepcopy(FRAME)
        del frame["threatTrack"][field]

        with pytest.raises(ProtocolError):
            decode_threat_update(frame)

    @pytest.mark.parametrize("overrides", [
        {"trackId": "7"},
        {"trackId": 7.5},
        {"trackId": True},
        {"bearing": "north"},
        {"bearing": 360.0},
        {"bearing": -1.0},
        {"distance": -5.0},
        {"distance": 10**400},
        {"confidence": 101.0},
        {"confidence": float("nan")},
        {"classification": 3},
        {"lastUpdateTime": "yesterday"},
        {"position": {"lat": 95.0, "lng": 0.0}},
        {"position": [52.5, 13.4]},
    ])
    def test_rejects_invalid_track_values(self, overrides):
        with pytest.raises(ProtocolError):
            decode_threat_update(frame_with(**overrides))

    def test_rejects_integer_too_large_for_float(self):
        with pytest.raises(ProtocolError, match="too large"):
            decode_threat_update({"systemPosition": {"lat": 10**400, "lng": 0.0}})

    @pytest.mark.parametrize("frame", [None, "frame", [FRAME], 42])
    def test_rejects_non_object_frames(self, frame):
        with pytest.raises(ProtocolError):
            decode_threat_update(frame)

    def test_protocol_error_is_value_error(self):
        assert issubclass(ProtocolError, ValueError)


class TestPositionCodec:
    """Test operator position encoding for systemUpdate."""

    def test_encode_uses_wire_keys(self):
        assert encode_geo_position(GeoPosition(52.52, 13.4)) == {"lat": 52.52, "lng": 13.4}

    def test_decode_rejects_out_of_range_longitude(self):
        with pytest.raises(ProtocolError):
            decode_geo_position({"lat": 0.0, "lng": 181.0})

    def test_decode_rejects_boolean_coordinates(self):
        with pytest.raises(ProtocolError):
            decode_geo_position({"lat": True, "lng": 0.0})
