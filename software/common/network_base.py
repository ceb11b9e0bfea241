#!/usr/bin/env python3
"""Base networking classes for C2 telemetry communication."""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Optional

from common.protocol import ConnectionStatus, ProtocolError, get_decoder, is_transition_allowed

logger = logging.getLogger(__name__)

StatusListener = Callable[[ConnectionStatus, ConnectionStatus], None]


class NetworkConnection:
    """Base class for telemetry channel management.

    Owns the connection status state machine, the per-channel handler
    registry and the inbound dispatch queue. Subclasses provide the
    transport by overriding `_run`, `_emit` and `_shutdown_transport`, and
    feed received frames into `_enqueue_inbound`.
    """

    def __init__(self, source_id: str):
        """Initialize network connection.

        Args:
            source_id: Unique identifier (e.g., "SKYSHIELD-C2-01")
        """
        self.source_id = source_id
        self._status = ConnectionStatus.CONNECTING

        self.recv_callbacks: Dict[str, Callable] = {}
        self._status_listeners: List[StatusListener] = []

        self._inbound: Optional[asyncio.Queue] = None
        self._dispatch_task: Optional[asyncio.Task] = None
        self._run_task: Optional[asyncio.Task] = None

        self.opened = False
        self.closed = False

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED

    def add_status_listener(self, listener: StatusListener):
        """Register an observer called with (old, new) on every transition."""
        if listener not in self._status_listeners:
            self._status_listeners.append(listener)

    def remove_status_listener(self, listener: StatusListener):
        if listener in self._status_listeners:
            self._status_listeners.remove(listener)

    def _set_status(self, new_status: ConnectionStatus) -> bool:
        """Move the state machine to a new status.

        Args:
            new_status: Requested status

        Returns:
            True if the transition happened, False if it was ignored
        """
        if self.closed:
            return False

        old_status = self._status
        if new_status == old_status:
            return False

        if not is_transition_allowed(old_status, new_status):
            logger.warning(f"Ignoring invalid status transition {old_status.value} -> {new_status.value}")
            return False

        self._status = new_status
        logger.info(f"Connection status: {old_status.value} -> {new_status.value}")
        self._notify_status(old_status, new_status)
        return True

    def _notify_status(self, old_status: ConnectionStatus, new_status: ConnectionStatus):
        for listener in list(self._status_listeners):
            try:
                listener(old_status, new_status)
            except Exception as e:
                logger.error(f"Status listener error: {e}", exc_info=True)

    def on_message(self, channel: str, handler: Callable):
        """Register handler for an inbound channel.

        Only one handler is kept per channel; a later registration replaces
        the earlier one.

        Args:
            channel: Logical channel name (e.g., "threatUpdate")
            handler: Function or coroutine function called with the decoded payload
        """
        if channel in self.recv_callbacks:
            logger.debug(f"Replacing handler for channel: {channel}")
        self.recv_callbacks[channel] = handler
        self._subscribe(channel)

    def _subscribe(self, channel: str):
        """Hook for transports that must be told about new channel names."""

    async def send(self, channel: str, payload: Any) -> bool:
        """Send a message on a channel, best-effort.

        Messages sent while not connected are dropped, not queued.

        Args:
            channel: Logical channel name (e.g., "systemUpdate")
            payload: JSON-serialisable payload

        Returns:
            True if the message was handed to the transport, False if dropped
        """
        if self._status != ConnectionStatus.CONNECTED:
            logger.debug(f"Dropping {channel} message, channel is {self._status.value}")
            return False

        try:
            await self._emit(channel, payload)
            return True
        except Exception as e:
            logger.error(f"Send error on {channel}: {e}")
            return False

    async def _emit(self, channel: str, payload: Any):
        raise NotImplementedError

    def _enqueue_inbound(self, channel: str, data: Any):
        """Queue a received frame for in-order dispatch."""
        if self.closed or self._inbound is None:
            return
        self._inbound.put_nowait((channel, data))

    async def _dispatch_loop(self):
        """Consume inbound frames one at a time, in arrival order."""
        while True:
            channel, data = await self._inbound.get()
            try:
                await self._dispatch_message(channel, data)
            except Exception as e:
                logger.error(f"Dispatch error for {channel}: {e}", exc_info=True)
            finally:
                self._inbound.task_done()

    async def _dispatch_message(self, channel: str, data: Any):
        """Decode a received frame and pass it to the registered handler."""
        handler = self.recv_callbacks.get(channel)
        if handler is None:
            logger.debug(f"No callback registered for channel: {channel}")
            return

        decoder = get_decoder(channel)
        if decoder is not None:
            try:
                data = decoder(data)
            except ProtocolError as e:
                logger.warning(f"Dropping malformed {channel} message: {e}")
                return
            except Exception as e:
                logger.error(f"Failed to decode {channel} message: {e}", exc_info=True)
                return

        try:
            result = handler(data)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Callback error for {channel}: {e}", exc_info=True)

    async def drain(self):
        """Wait until every queued inbound frame has been dispatched."""
        if self._inbound is not None:
            await self._inbound.join()

    async def open(self):
        """Start the connection; status stays CONNECTING until the transport reports."""
        if self.opened or self.closed:
            return

        self.opened = True
        logger.info(f"Network connection starting (source_id={self.source_id})")

        self._inbound = asyncio.Queue()
        self._dispatch_task = asyncio.create_task(self._dispatch_loop())
        self._run_task = asyncio.create_task(self._run())

    async def _run(self):
        """Transport supervisor; runs until cancelled."""
        raise NotImplementedError

    async def close(self):
        """Stop the connection and release the transport. Safe to call repeatedly."""
        if self.closed:
            return

        logger.info("Stopping network connection")
        if self._status == ConnectionStatus.CONNECTED:
            self._set_status(ConnectionStatus.DISCONNECTED)
        self.closed = True

        for task in (self._run_task, self._dispatch_task):
            if task is not None and not task.done():
                task.cancel()
        await asyncio.gather(
            *(t for t in (self._run_task, self._dispatch_task) if t is not None), return_exceptions=True
        )

        try:
            await self._shutdown_transport()
        except Exception as e:
            logger.debug(f"Error closing transport: {e}")

        self._status_listeners.clear()
        logger.info("Network connection stopped")

    async def _shutdown_transport(self):
        """Release transport resources. Default is a no-op."""

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
