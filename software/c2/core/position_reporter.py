#!/usr/bin/env python3
"""Periodic operator position reporting over the systemUpdate channel."""

import asyncio
import logging
import time
from typing import Optional

from common.data_models import GeoPosition
from common.network_base import NetworkConnection
from common.protocol import ChannelName, ConnectionStatus, encode_geo_position
from c2.core.location_provider import LocationError, LocationProvider
from c2.core.threat_store import ThreatStateStore

logger = logging.getLogger(__name__)


class PositionReporter:
    """Samples device location and reports it while the channel is connected."""

    REPORT_INTERVAL = 5.0  # seconds
    GEOLOCATION_TIMEOUT = 5.0  # seconds
    MAXIMUM_AGE = 0.0  # force a fresh fix

    def __init__(self, connection: NetworkConnection, store: ThreatStateStore,
                 provider: Optional[LocationProvider] = None,
                 interval: float = None, timeout: float = None):
        """Initialize position reporter.

        Args:
            connection: Channel the reports are sent on
            store: Store holding the operator position
            provider: Device location source; None falls back to the stored position
            interval: Seconds between reports
            timeout: Seconds to wait for a location fix
        """
        self.connection = connection
        self.store = store
        self.provider = provider
        self.interval = interval or self.REPORT_INTERVAL
        self.timeout = timeout or self.GEOLOCATION_TIMEOUT

        self._sleep = asyncio.sleep
        self._clock = time.monotonic
        self._task: Optional[asyncio.Task] = None
        self._report_lock = asyncio.Lock()
        self.running = False

        self.reports_sent = 0
        self.fallback_reports = 0

    def start(self):
        """Follow the connection status; reporting begins on CONNECTED."""
        if self.running:
            return
        self.running = True
        self.connection.add_status_listener(self._on_status_change)
        if self.connection.status == ConnectionStatus.CONNECTED:
            self._start_loop()

    async def stop(self):
        """Cancel the report loop. Fixes that complete afterwards are discarded."""
        if not self.running:
            return
        self.running = False
        self.connection.remove_status_listener(self._on_status_change)
        await self._cancel_loop()
        logger.info(f"Position reporter stopped after {self.reports_sent} reports")

    def _on_status_change(self, old_status: ConnectionStatus, new_status: ConnectionStatus):
        if new_status == ConnectionStatus.CONNECTED:
            self._start_loop()
        else:
            self._stop_loop()

    def _start_loop(self):
        if self._task is not None and not self._task.done():
            return
        logger.debug("Starting position report loop")
        self._task = asyncio.create_task(self._report_loop())

    def _stop_loop(self):
        if self._task is not None and not self._task.done():
            logger.debug("Cancelling position report loop")
            self._task.cancel()
        self._task = None

    async def _cancel_loop(self):
        task = self._task
        self._stop_loop()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def _report_loop(self):
        """Report immediately, then on a fixed schedule of one per interval.

        Deadlines are anchored to the loop start so slow location fixes do
        not push later reports back. A report that overruns whole intervals
        skips the missed slots instead of bursting to catch up.
        """
        next_report = self._clock()
        while True:
            await self.report_once()
            next_report += self.interval
            now = self._clock()
            while next_report < now:
                next_report += self.interval
            await self._sleep(next_report - now)

    async def report_now(self):
        """Out-of-cadence report; a no-op unless the channel is connected."""
        if self.running and self.connection.status == ConnectionStatus.CONNECTED:
            await self.report_once()

    async def report_once(self) -> bool:
        """Sample the device location and send one systemUpdate.

        Returns:
            True if the report was handed to the connection
        """
        async with self._report_lock:
            position = await self._sample_location()
            if not self.running:
                return False

            if position is None:
                position = self.store.get_operator_position()
                self.fallback_reports += 1
            else:
                self.store.set_operator_position(position)

            sent = await self.connection.send(ChannelName.SYSTEM_UPDATE.value, encode_geo_position(position))
            if sent:
                self.reports_sent += 1
            return sent

    async def _sample_location(self) -> Optional[GeoPosition]:
        if self.provider is None or not self.provider.available:
            return None

        try:
            return await asyncio.wait_for(
                self.provider.get_current_position(maximum_age=self.MAXIMUM_AGE), timeout=self.timeout
            )
        except LocationError as e:
            logger.warning(f"Location sampling failed ({e.code.value}), resending last known position")
        except asyncio.TimeoutError:
            logger.warning(f"Location fix timed out after {self.timeout:.1f}s, resending last known position")
        except Exception as e:
            logger.error(f"Location provider failed: {e}, resending last known position", exc_info=True)
        return None
