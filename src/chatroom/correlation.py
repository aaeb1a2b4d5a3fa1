"""
Correlation Engine

This module multiplexes many concurrent command/response exchanges over one
duplex channel. Every correlated command gets a fresh integer id; the
response carrying the same id settles the caller's pending completion.

A Connection lives for exactly one channel session. Reconnecting means a new
Connection with a new id space; nothing in flight is carried over.

Usage:
    connection = Connection(channel)
    room_data = await connection.join("r1")
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .codec import ResponseFrame, encode_command
from .errors import CommandTimeoutError, ProtocolError, TransportError
from .schemas import (
    BaseCommand,
    JoinCommand,
    LeaveCommand,
    MarkReadCommand,
    PublishCommand,
)

logger = logging.getLogger(__name__)


@dataclass
class PendingCompletion:
    """
    One in-flight correlated command.

    Attributes:
        correlation_id: ID the command was sent under
        command_name: Wire name of the command (for logging)
        future: Settled exactly once with the response data or an error
    """

    correlation_id: int
    command_name: str
    future: asyncio.Future = field(repr=False)

    @property
    def settled(self) -> bool:
        return self.future.done()

    def resolve(self, data: Any) -> bool:
        """Resolve with response data. Returns False if already settled."""
        if self.future.done():
            return False
        self.future.set_result(data)
        return True

    def reject(self, error: Exception) -> bool:
        """Reject with an error. Returns False if already settled."""
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True


class Connection:
    """
    Command multiplexer bound to one channel.

    Attributes:
        channel: The duplex channel frames are sent through
        next_correlation_id: ID the next correlated command will get
        pending: Map of correlation id to pending completion
    """

    def __init__(self, channel: Any):
        """
        Initialize the connection.

        Args:
            channel: Object with an async ``send(str)`` that raises on
                transmission failure
        """
        self.channel = channel
        self.next_correlation_id = 1
        self.pending: Dict[int, PendingCompletion] = {}
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _allocate_id(self) -> int:
        correlation_id = self.next_correlation_id
        self.next_correlation_id += 1
        return correlation_id

    async def send_command(
        self,
        command: BaseCommand,
        expect_response: bool = True,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Send a command and wait for its response.

        Args:
            command: The command to send
            expect_response: False for fire-and-forget commands, which are
                sent without an id and complete once transmitted
            timeout: Seconds to wait for the response, None to wait forever

        Returns:
            The ``data`` field of a successful response (None for
            fire-and-forget commands)

        Raises:
            TransportError: If the frame could not be transmitted or the
                connection closed before a response arrived
            ProtocolError: If the response carried a non-success code
            CommandTimeoutError: If the timeout expired first
        """
        if self._closed:
            raise TransportError("Connection is closed")

        if not expect_response:
            await self._transmit(encode_command(command))
            logger.debug("Sent fire-and-forget %s", command.command_name)
            return None

        correlation_id = self._allocate_id()
        pending = PendingCompletion(
            correlation_id=correlation_id,
            command_name=command.command_name,
            future=asyncio.get_running_loop().create_future(),
        )
        self.pending[correlation_id] = pending

        try:
            await self._transmit(encode_command(command, correlation_id))
        except TransportError as e:
            self.pending.pop(correlation_id, None)
            pending.reject(e)
            logger.error(
                "Failed to send %s #%d: %s",
                command.command_name,
                correlation_id,
                e,
            )
            return await pending.future

        logger.debug("Sent %s #%d", command.command_name, correlation_id)

        if timeout is None:
            return await pending.future

        try:
            return await asyncio.wait_for(
                asyncio.shield(pending.future), timeout
            )
        except asyncio.TimeoutError:
            self.discard(correlation_id)
            raise CommandTimeoutError(
                f"No response to {command.command_name} #{correlation_id} "
                f"within {timeout}s"
            )

    def handle_response(self, frame: ResponseFrame) -> bool:
        """
        Settle the pending completion matching a response frame.

        The entry is removed from the table before it is settled, so a
        caller that reacts by sending new commands never observes it.

        Args:
            frame: Decoded response frame

        Returns:
            True if a pending command was settled, False if the response
            was late or duplicate and was discarded.
        """
        pending = self.pending.pop(frame.correlation_id, None)
        if pending is None:
            logger.warning(
                "Discarding response for unknown id %d (code %d)",
                frame.correlation_id,
                frame.response_code,
            )
            return False

        if frame.ok:
            logger.debug(
                "%s #%d succeeded (%d)",
                pending.command_name,
                frame.correlation_id,
                frame.response_code,
            )
            pending.resolve(frame.data)
        else:
            logger.info(
                "%s #%d failed (%d): %s",
                pending.command_name,
                frame.correlation_id,
                frame.response_code,
                frame.error,
            )
            pending.reject(ProtocolError(frame.response_code, frame.error))
        return True

    def discard(self, correlation_id: int) -> bool:
        """
        Forget a pending command without settling it.

        Used by timeout paths; a response arriving afterwards is dropped.
        """
        return self.pending.pop(correlation_id, None) is not None

    def close(self, reason: str = "channel closed") -> int:
        """
        Close the connection and reject every pending command.

        Args:
            reason: Error message given to the rejected callers

        Returns:
            Number of commands rejected
        """
        self._closed = True
        pending, self.pending = self.pending, {}
        for entry in pending.values():
            entry.reject(TransportError(reason))
        if pending:
            logger.warning(
                "Rejected %d pending command(s): %s", len(pending), reason
            )
        return len(pending)

    async def join(self, room_id: str, timeout: Optional[float] = None) -> Any:
        """Join a room; returns the room payload from the response."""
        return await self.send_command(JoinCommand(room_id), timeout=timeout)

    async def leave(
        self,
        room_id: str,
        unsubscribe: bool = False,
        timeout: Optional[float] = None,
    ) -> Any:
        """Leave a room, optionally dropping the subscription."""
        return await self.send_command(
            LeaveCommand(room_id, unsubscribe), timeout=timeout
        )

    async def publish(self, room_id: str, content: str) -> None:
        """Publish a message (fire-and-forget)."""
        await self.send_command(
            PublishCommand(room_id, content), expect_response=False
        )

    async def mark_read(
        self, room_id: str, seq_id: int, timeout: Optional[float] = None
    ) -> Any:
        """Record the read position in a room."""
        return await self.send_command(
            MarkReadCommand(room_id, seq_id), timeout=timeout
        )

    async def _transmit(self, frame: str) -> None:
        try:
            await self.channel.send(frame)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"Send failed: {e}") from e
