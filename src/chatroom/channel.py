"""
Duplex Channel Adapter

This module wraps a raw WebSocket connection and exposes connect, send and
close plus callback registration for inbound deliveries, errors and
closure. It knows nothing about the chat protocol: deliveries are handed
over exactly as received.

Architecture:
    - Uses the websockets library for the underlying connection
    - Supports dependency injection for the network layer (for testability)
    - A background reader task pushes deliveries to the registered callback
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed

from .errors import TransportError

logger = logging.getLogger(__name__)

Delivery = Union[str, bytes]


class WebSocketChannel:
    """
    A single duplex connection to the chat server.

    Attributes:
        url: WebSocket URL of the chat server
        websocket: Active WebSocket connection (None if not connected)
    """

    def __init__(
        self,
        url: str,
        websocket_factory: Optional[Callable] = None,
    ):
        """
        Initialize the channel.

        Args:
            url: WebSocket URL of the chat server
            websocket_factory: Optional coroutine function returning a
                connected WebSocket (for dependency injection/testing)
        """
        self.url = url
        self.websocket: Optional[Any] = None
        self._websocket_factory = websocket_factory or websockets.connect
        self._reader_task: Optional[asyncio.Task] = None
        self._open = False
        self._close_reported = False

        self._on_delivery: Optional[Callable[[Delivery], None]] = None
        self._on_error: Optional[Callable[[Exception], None]] = None
        self._on_close: Optional[Callable[[], None]] = None

    @property
    def is_open(self) -> bool:
        """Check if the channel can currently transmit."""
        return self._open and self.websocket is not None

    def set_on_delivery(self, callback: Callable[[Delivery], None]) -> None:
        """
        Register the callback that receives every inbound delivery.

        Args:
            callback: Function that receives the raw delivery
        """
        self._on_delivery = callback

    def set_on_error(self, callback: Callable[[Exception], None]) -> None:
        """Register the callback for transport errors."""
        self._on_error = callback

    def set_on_close(self, callback: Callable[[], None]) -> None:
        """Register the callback invoked once when the channel closes."""
        self._on_close = callback

    async def connect(self) -> None:
        """
        Open the WebSocket connection and start reading.

        Raises:
            TransportError: If the connection cannot be established
        """
        if self.is_open:
            return

        try:
            logger.info("Connecting to %s...", self.url)
            self.websocket = await self._websocket_factory(self.url)
        except Exception as e:
            logger.error("Failed to connect to %s: %s", self.url, e)
            raise TransportError(
                f"Could not connect to {self.url}: {e}"
            ) from e

        self._open = True
        self._close_reported = False
        self._reader_task = asyncio.create_task(self._read_loop())
        logger.info("Channel open to %s", self.url)

    async def send(self, data: str) -> None:
        """
        Transmit one frame.

        Raises:
            TransportError: If the channel is not open or the send fails
        """
        if not self.is_open:
            raise TransportError("Channel is not open")

        logger.debug("Sending frame: %s", data)
        try:
            await self.websocket.send(data)
        except ConnectionClosed as e:
            self._open = False
            raise TransportError(f"Channel closed while sending: {e}") from e
        except OSError as e:
            raise TransportError(f"Send failed: {e}") from e

    async def close(self) -> None:
        """Close the connection and stop the reader."""
        if self.websocket is None:
            return

        self._open = False
        websocket = self.websocket
        self.websocket = None

        try:
            await websocket.close()
        except Exception as e:
            logger.warning("Error while closing channel: %s", e)

        task = self._reader_task
        self._reader_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        logger.info("Channel to %s closed", self.url)
        self._report_close()

    async def _read_loop(self) -> None:
        """Receive deliveries until the connection ends."""
        websocket = self.websocket
        try:
            async for delivery in websocket:
                self._deliver(delivery)
        except ConnectionClosed as e:
            logger.warning("Connection closed by server: %s", e)
            self._report_error(e)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error in channel reader: %s", e)
            self._report_error(e)
        finally:
            self._open = False
            if self.websocket is websocket:
                self.websocket = None
            self._report_close()

    def _deliver(self, delivery: Delivery) -> None:
        logger.debug("Received delivery: %s", delivery)
        if self._on_delivery is None:
            return
        try:
            self._on_delivery(delivery)
        except Exception:
            # A failing consumer must not tear down the channel
            logger.exception("Delivery handler raised")

    def _report_error(self, error: Exception) -> None:
        if self._on_error is not None:
            self._on_error(error)

    def _report_close(self) -> None:
        if self._close_reported:
            return
        self._close_reported = True
        if self._on_close is not None:
            self._on_close()
