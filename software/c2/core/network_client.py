#!/usr/bin/env python3
"""Socket.IO network client for the C2 console to reach the telemetry source."""

import asyncio
import logging
from typing import Any, Optional

import socketio

from common.network_base import NetworkConnection
from common.protocol import ConnectionStatus

logger = logging.getLogger(__name__)


class SocketIOConnection(NetworkConnection):
    """Telemetry channel over a single long-lived Socket.IO session."""

    DEFAULT_URL = "http://localhost:3001"
    RECONNECT_DELAY = 1.0  # seconds
    RECONNECT_DELAY_MAX = 5.0  # seconds
    CONNECT_TIMEOUT = 5.0  # seconds

    def __init__(self, source_id: str, server_url: str = None,
                 reconnect_delay: float = None, reconnect_delay_max: float = None,
                 connect_timeout: float = None, sio: Optional[socketio.AsyncClient] = None):
        """Initialize Socket.IO connection.

        Args:
            source_id: Unique identifier (e.g., "SKYSHIELD-C2-01")
            server_url: Telemetry source address
            reconnect_delay: First retry delay after a failure or drop
            reconnect_delay_max: Upper bound for the exponential retry delay
            connect_timeout: Seconds to wait for the Socket.IO handshake
            sio: Pre-built client, mainly for tests
        """
        super().__init__(source_id=source_id)

        self.server_url = server_url or self.DEFAULT_URL
        self.reconnect_delay = reconnect_delay or self.RECONNECT_DELAY
        self.reconnect_delay_max = max(reconnect_delay_max or self.RECONNECT_DELAY_MAX, self.reconnect_delay)
        self.connect_timeout = connect_timeout or self.CONNECT_TIMEOUT

        # Retries are driven by _run so every attempt passes through CONNECTING
        self.sio = sio or socketio.AsyncClient(reconnection=False, logger=False, engineio_logger=False)
        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)
        self.sio.on("connect_error", self._on_connect_error)

        self._sleep = asyncio.sleep
        self.connect_attempts = 0

    def _subscribe(self, channel: str):
        def handle_frame(*args):
            self._enqueue_inbound(channel, args[0] if args else None)

        self.sio.on(channel, handle_frame)

    async def _on_connect(self):
        logger.info(f"Socket connected to {self.server_url} (sid={self.sio.sid})")
        self._set_status(ConnectionStatus.CONNECTED)

    async def _on_disconnect(self, *args):
        reason = args[0] if args else "unknown"
        logger.warning(f"Socket disconnected ({reason})")
        self._set_status(ConnectionStatus.DISCONNECTED)

    async def _on_connect_error(self, *args):
        logger.error(f"Socket connection error: {args[0] if args else 'unknown'}")
        self._set_status(ConnectionStatus.ERROR)

    async def _run(self):
        """Connect, wait for the session to end, back off, repeat."""
        delay = self.reconnect_delay

        while True:
            self._set_status(ConnectionStatus.CONNECTING)
            self.connect_attempts += 1
            logger.info(f"Connecting to telemetry source at {self.server_url} (attempt {self.connect_attempts})")

            try:
                await self.sio.connect(self.server_url, transports=["websocket"],
                                       wait_timeout=self.connect_timeout)
            except socketio.exceptions.ConnectionError as e:
                logger.error(f"Connection failed: {e}")
                self._set_status(ConnectionStatus.ERROR)
            except Exception as e:
                logger.error(f"Unexpected connection failure: {e}", exc_info=True)
                self._set_status(ConnectionStatus.ERROR)
            else:
                delay = self.reconnect_delay
                self._set_status(ConnectionStatus.CONNECTED)
                await self.sio.wait()
                self._set_status(ConnectionStatus.DISCONNECTED)

            logger.info(f"Retrying connection in {delay:.1f}s")
            await self._sleep(delay)
            delay = min(delay * 2, self.reconnect_delay_max)

    async def _emit(self, channel: str, payload: Any):
        await self.sio.emit(channel, payload)

    async def _shutdown_transport(self):
        # sio.connected stays False until the namespace handshake completes,
        # so a close during connect() must still tear the transport down
        await self.sio.disconnect()
