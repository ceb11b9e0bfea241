#!/usr/bin/env python3
"""Composition root for the C2 tracking core."""

import logging
from typing import List, Optional, Tuple

from common.config_loader import C2Config
from common.data_models import GeoPosition, ThreatUpdatePayload
from common.network_base import NetworkConnection
from common.protocol import ChannelName, ConnectionStatus
from c2.core.location_provider import LocationProvider
from c2.core.network_client import SocketIOConnection
from c2.core.position_reporter import PositionReporter
from c2.core.threat_store import ThreatStateStore

logger = logging.getLogger(__name__)


class ThreatSystem:
    """Owns the telemetry connection, state store and position reporter.

    Use as an async context manager so the connection is always released:

        async with ThreatSystem(config) as system:
            ...
    """

    def __init__(self, config: Optional[C2Config] = None,
                 location_provider: Optional[LocationProvider] = None,
                 connection: Optional[NetworkConnection] = None):
        """Initialize threat system.

        Args:
            config: Core settings (defaults if None)
            location_provider: Device location source; None reports the stored position
            connection: Pre-built connection, defaults to a Socket.IO client
        """
        self.config = config or C2Config()

        self.connection = connection or SocketIOConnection(
            source_id=self.config.source_id,
            server_url=self.config.backend_url,
            reconnect_delay=self.config.reconnect_delay,
            reconnect_delay_max=self.config.reconnect_delay_max,
            connect_timeout=self.config.connect_timeout,
        )
        self.store = ThreatStateStore(
            initial_position=self.config.initial_position,
            detection_radius=self.config.detection_radius,
            connection=self.connection,
        )
        self.reporter = PositionReporter(
            self.connection,
            self.store,
            provider=location_provider,
            interval=self.config.report_interval,
            timeout=self.config.geolocation_timeout,
        )

        self.connection.on_message(ChannelName.THREAT_UPDATE.value, self.store.apply_inbound_payload)

    @property
    def status(self) -> ConnectionStatus:
        return self.store.get_connection_status()

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED

    @property
    def threat_data(self) -> Optional[ThreatUpdatePayload]:
        return self.store.get_latest_threat()

    @property
    def operator_position(self) -> GeoPosition:
        return self.store.get_operator_position()

    async def set_operator_position(self, position: GeoPosition):
        """Manual operator relocation (e.g., click-to-relocate on the map)."""
        self.store.set_operator_position(position)
        logger.info(f"Operator position overridden to {position.lat:.5f}, {position.lng:.5f}")
        if self.config.report_on_override:
            await self.reporter.report_now()

    def set_detection_radius(self, radius: float):
        self.store.set_detection_radius(radius)

    def range_ring(self) -> List[Tuple[float, float]]:
        return self.store.get_range_ring(self.config.ring_segments)

    async def open(self):
        logger.info(f"Attempting to connect to telemetry source at {self.config.backend_url}")
        self.reporter.start()
        await self.connection.open()

    async def close(self):
        """Stop reporting, then close the connection."""
        try:
            await self.reporter.stop()
        finally:
            await self.connection.close()

    async def __aenter__(self):
        try:
            await self.open()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
