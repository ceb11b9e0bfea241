"""Tests for the threat state store."""

import pytest
from common.data_models import GeoPosition, ThreatTrack, ThreatUpdatePayload
from common.geodesy import haversine_distance
from common.protocol import ConnectionStatus
from c2.core.threat_store import DEFAULT_POSITION, RADIUS_PRESETS, ThreatStateStore
from tests.fixtures.fake_transport import LoopbackConnection


def make_payload(track_id=None, lat=52.52, lng=13.4):
    track = None
    if track_id is not None:
        track = ThreatTrack(
            track_id=track_id,
            position=GeoPosition(52.56, 13.41),
            bearing=10.0,
            distance=4500.0,
            classification="Fixed-wing",
            confidence=64.0,
            last_update_time=1760000000000,
        )
    return ThreatUpdatePayload(system_position=GeoPosition(lat, lng), threat_track=track)


class TestOperatorPosition:
    """Operator position is always defined."""

    def test_defaults_to_initial_position(self):
        store = ThreatStateStore()

        assert store.get_operator_position() == DEFAULT_POSITION

    def test_set_replaces_position(self):
        store = ThreatStateStore()

        store.set_operator_position(GeoPosition(48.1, 11.6))

        assert store.get_operator_position() == GeoPosition(48.1, 11.6)

    def test_rejects_non_position_values(self):
        store = ThreatStateStore()

        with pytest.raises(TypeError):
            store.set_operator_position({"lat": 1.0, "lng": 2.0})

        assert store.get_operator_position() == DEFAULT_POSITION

    def test_inbound_payload_does_not_move_operator(self):
        store = ThreatStateStore(initial_position=GeoPosition(1.0, 1.0))

        store.apply_inbound_payload(make_payload(lat=52.52, lng=13.4))

        assert store.get_operator_position() == GeoPosition(1.0, 1.0)


class TestThreatPayload:
    """Threat payloads are replaced wholesale in arrival order."""

    def test_no_telemetry_is_distinct_from_no_threat(self):
        store = ThreatStateStore()

        assert store.get_latest_threat() is None

        store.apply_inbound_payload(make_payload(track_id=None))

        assert store.get_latest_threat() is not None
        assert store.get_latest_threat().threat_track is None
        assert store.is_threat_active is False

    def test_track_sets_active_flag(self):
        store = ThreatStateStore()

        store.apply_inbound_payload(make_payload(track_id=3))

        assert store.is_threat_active is True
        assert store.get_latest_threat().threat_track.track_id == 3

    def test_last_write_wins(self):
        store = ThreatStateStore()

        store.apply_inbound_payload(make_payload(track_id=1))
        store.apply_inbound_payload(make_payload(track_id=2))
        store.apply_inbound_payload(make_payload(track_id=None))

        assert store.is_threat_active is False
        assert store.updates_applied == 3

    def test_stored_payload_is_the_same_object(self):
        store = ThreatStateStore()
        payload = make_payload(track_id=5)

        store.apply_inbound_payload(payload)

        assert store.get_latest_threat() is payload


class TestConnectionStatus:
    """Status reads delegate to the bound connection."""

    def test_connecting_before_connection_bound(self):
        assert ThreatStateStore().get_connection_status() == ConnectionStatus.CONNECTING

    def test_delegates_to_connection(self):
        conn = LoopbackConnection()
        store = ThreatStateStore(connection=conn)

        conn.simulate_connected()

        assert store.get_connection_status() == ConnectionStatus.CONNECTED

    def test_bind_connection_later(self):
        conn = LoopbackConnection()
        conn.simulate_error()
        store = ThreatStateStore()

        store.bind_connection(conn)

        assert store.get_connection_status() == ConnectionStatus.ERROR


class TestDetectionRadius:
    """Radius selection and derived range ring."""

    def test_default_radius(self):
        assert ThreatStateStore().get_detection_radius() == 5000.0

    @pytest.mark.parametrize("radius", RADIUS_PRESETS)
    def test_presets_are_selectable(self, radius):
        store = ThreatStateStore()

        store.set_detection_radius(radius)

        assert store.get_detection_radius() == radius

    @pytest.mark.parametrize("radius", [0, 999.0, 100001.0, -5000.0])
    def test_rejects_radius_outside_slider_range(self, radius):
        store = ThreatStateStore()

        with pytest.raises(ValueError):
            store.set_detection_radius(radius)

        assert store.get_detection_radius() == 5000.0

    def test_range_ring_follows_position_and_radius(self):
        store = ThreatStateStore()
        store.set_operator_position(GeoPosition(10.0, 20.0))
        store.set_detection_radius(20000.0)

        ring = store.get_range_ring(segments=16)

        assert len(ring) == 16
        for lng, lat in ring:
            assert haversine_distance(GeoPosition(10.0, 20.0), GeoPosition(lat, lng)) == pytest.approx(20000.0, rel=1e-6)
