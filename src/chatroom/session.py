"""
Chat Session

This module provides ChatSession, the session-scoped owner of the duplex
channel, the correlation engine, the notification dispatcher and the state
reconciler. It is the only surface the UI talks to.

Architecture:
    - WebSocketChannel carries raw deliveries
    - Frames are decoded and routed: responses to the Connection,
      notifications to the dispatcher, push messages to the reconciler
    - StateReconciler owns rooms, roster and the open room's messages
    - Callback hooks notify the UI after state has been updated

Usage:
    session = ChatSession(config, api=RestClient(config.api_url))
    await session.start()
    await session.open_room("room-id")
    await session.publish("hello")
"""

import logging
from typing import Any, Callable, List, Optional

from .channel import Delivery, WebSocketChannel
from .codec import NotificationFrame, ResponseFrame, decode_delivery
from .config import ClientConfig
from .correlation import Connection
from .dispatcher import NotificationDispatcher, NotificationHandler
from .errors import ChatClientError, RoomStateError, TransportError
from .models import Message, Room, Subscriber, Subscription
from .reconciler import RoomPhase, StateReconciler
from .schemas import (
    MessageNotification,
    PresenceNotification,
    RoomDeletedNotification,
    SubscriptionChangeNotification,
)
from .validation import validate_message_content, validate_room_id

logger = logging.getLogger(__name__)


class _CallbackSlots(NotificationHandler):
    """Forwards each notification kind to an optional UI callback."""

    def __init__(self):
        self.presence: Optional[Callable[[PresenceNotification], None]] = None
        self.subscription_change: Optional[
            Callable[[SubscriptionChangeNotification], None]
        ] = None
        self.room_deleted: Optional[
            Callable[[RoomDeletedNotification], None]
        ] = None
        self.message: Optional[Callable[[MessageNotification], None]] = None

    def on_presence(self, notification: PresenceNotification) -> None:
        if self.presence:
            self.presence(notification)

    def on_subscription_change(
        self, notification: SubscriptionChangeNotification
    ) -> None:
        if self.subscription_change:
            self.subscription_change(notification)

    def on_room_deleted(self, notification: RoomDeletedNotification) -> None:
        if self.room_deleted:
            self.room_deleted(notification)

    def on_message(self, notification: MessageNotification) -> None:
        if self.message:
            self.message(notification)


class ChatSession:
    """
    One client session against a chat server.

    Attributes:
        config: Client configuration
        api: HTTP collaborator providing list_subscriptions/get_messages
            (optional; without it the room list starts empty and history
            is not loaded)
        state: The state reconciler
        dispatcher: Notification dispatcher (reconciler first, then UI)
        channel: Current duplex channel (None when disconnected)
        connection: Correlation engine bound to the current channel
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        api: Optional[Any] = None,
        websocket_factory: Optional[Callable] = None,
        channel_factory: Optional[Callable[[], Any]] = None,
    ):
        """
        Initialize the session.

        Args:
            config: Client configuration (defaults apply when omitted)
            api: HTTP collaborator, typically a RestClient
            websocket_factory: Optional factory for WebSocket connections
                (for dependency injection/testing)
            channel_factory: Optional factory returning a channel object;
                overrides websocket_factory
        """
        self.config = config or ClientConfig()
        self.api = api
        self._channel_factory = channel_factory or (
            lambda: WebSocketChannel(self.config.ws_url, websocket_factory)
        )

        self.channel: Optional[Any] = None
        self.connection: Optional[Connection] = None

        self.state = StateReconciler()
        self.state.set_on_message_added(self._message_added)
        self._slots = _CallbackSlots()
        self.dispatcher = NotificationDispatcher([self.state, self._slots])

        self._on_message: Optional[Callable[[Message], None]] = None
        self._on_rooms_changed: Optional[Callable[[List[Room]], None]] = None
        self._on_error: Optional[Callable[[Exception], None]] = None
        self._on_disconnected: Optional[Callable[[], None]] = None

    # Callback registration

    def set_on_presence(
        self, callback: Callable[[PresenceNotification], None]
    ) -> None:
        """Register callback for presence notifications."""
        self._slots.presence = callback

    def set_on_subscription_change(
        self, callback: Callable[[SubscriptionChangeNotification], None]
    ) -> None:
        """Register callback for subscription change notifications."""
        self._slots.subscription_change = callback

    def set_on_room_deleted(
        self, callback: Callable[[RoomDeletedNotification], None]
    ) -> None:
        """Register callback for room deletion notifications."""
        self._slots.room_deleted = callback

    def set_on_message_notification(
        self, callback: Callable[[MessageNotification], None]
    ) -> None:
        """
        Register callback for new-message notifications.

        Fires for every room, open or not; use set_on_message for the
        messages that were actually appended to the open room.
        """
        self._slots.message = callback

    def set_on_message(self, callback: Callable[[Message], None]) -> None:
        """
        Register callback for messages appended to the open room.

        Args:
            callback: Function that receives the new Message
        """
        self._on_message = callback

    def set_on_rooms_changed(
        self, callback: Callable[[List[Room]], None]
    ) -> None:
        """
        Register callback for room list changes.

        Args:
            callback: Function that receives the rooms in display order
        """
        self._on_rooms_changed = callback

    def set_on_error(self, callback: Callable[[Exception], None]) -> None:
        """Register callback for errors nobody is awaiting."""
        self._on_error = callback

    def set_on_disconnected(self, callback: Callable[[], None]) -> None:
        """Register callback for an unexpected channel closure."""
        self._on_disconnected = callback

    # Queries

    @property
    def is_connected(self) -> bool:
        return self.connection is not None and not self.connection.is_closed

    @property
    def rooms(self) -> List[Room]:
        return list(self.state.rooms.values())

    @property
    def open_room_id(self) -> Optional[str]:
        return self.state.open_room_id

    @property
    def messages(self) -> List[Message]:
        return list(self.state.messages.messages)

    @property
    def subscribers(self) -> List[Subscriber]:
        return self.state.subscribers

    # Lifecycle

    async def start(self) -> None:
        """
        Connect to the server and seed the room list.

        Raises:
            TransportError: If the channel cannot be opened
            ApiError: If the subscription snapshot cannot be fetched
        """
        await self._open_channel()
        await self.refresh_rooms()

    async def refresh_rooms(self) -> List[Subscription]:
        """Re-fetch the subscription snapshot and reseed the room list."""
        if self.api is None:
            return []
        subscriptions = await self.api.list_subscriptions()
        self.state.seed(subscriptions)
        self._rooms_changed()
        return subscriptions

    async def reconnect(self) -> None:
        """
        Replace the channel and resynchronise.

        Commands still pending on the old connection are rejected. The new
        connection starts a fresh correlation id sequence; the snapshot is
        re-fetched and the previously open room is joined again.
        """
        logger.info("Reconnecting to %s", self.config.ws_url)
        previous_room = self.state.reset()
        self._rooms_changed()
        await self._drop_channel()

        await self._open_channel()
        await self.refresh_rooms()

        if previous_room is not None and previous_room in self.state.rooms:
            logger.info("Re-joining room %s", previous_room)
            await self.open_room(previous_room)

    async def close(self) -> None:
        """Close the channel; pending commands are rejected."""
        await self._drop_channel()
        logger.info("Session closed")

    # Room operations

    async def open_room(self, room_id: str) -> Optional[Room]:
        """
        Switch to a room.

        If another room is joined it is left first; the join is only sent
        once that leave has succeeded. A failed leave aborts the switch.

        Args:
            room_id: External ID of the room to open

        Returns:
            The opened room

        Raises:
            ValueError: If the room ID is empty
            ChatClientError: If the leave or the join fails
        """
        is_valid, error = validate_room_id(room_id)
        if not is_valid:
            raise ValueError(error)

        if self.state.phase == RoomPhase.JOINED:
            if self.state.open_room_id == room_id:
                return self.state.open_room
            await self.leave_room()

        connection = self._require_connection()
        transition = self.state.begin_join(room_id)
        try:
            data = await connection.join(
                room_id, timeout=self.config.command_timeout
            )
        except BaseException:
            self.state.rollback(transition)
            self._rooms_changed()
            raise

        self.state.commit(transition, data)
        self._rooms_changed()

        if self.api is not None and self.state.is_open(room_id):
            try:
                await self.load_history()
            except ChatClientError as e:
                logger.warning("Could not load history for %s: %s", room_id, e)
                self._report_error(e)
        return self.state.open_room

    async def leave_room(self, unsubscribe: bool = False) -> None:
        """
        Leave the open room.

        Args:
            unsubscribe: Also drop the subscription (the room disappears
                from the room list)

        Raises:
            RoomStateError: If no room is joined
            ChatClientError: If the leave fails; local state is restored
        """
        connection = self._require_connection()
        transition = self.state.begin_leave(unsubscribe)
        if unsubscribe:
            self._rooms_changed()
        try:
            await connection.leave(
                transition.room_id,
                unsubscribe,
                timeout=self.config.command_timeout,
            )
        except BaseException:
            self.state.rollback(transition)
            self._rooms_changed()
            raise

        self.state.commit(transition)
        self._rooms_changed()

    async def publish(self, content: str) -> None:
        """
        Send a message to the open room.

        The message is not added locally; it arrives back as a push.

        Raises:
            ValueError: If the content is invalid
            RoomStateError: If no room is joined
            TransportError: If the frame could not be sent
        """
        is_valid, error = validate_message_content(content)
        if not is_valid:
            raise ValueError(error)
        if self.state.phase != RoomPhase.JOINED:
            raise RoomStateError("No room is open")

        await self._require_connection().publish(
            self.state.open_room_id, content
        )

    async def mark_read(
        self, room_id: Optional[str] = None, seq_id: Optional[int] = None
    ) -> bool:
        """
        Record the read position in a room.

        Args:
            room_id: Room to mark (defaults to the open room)
            seq_id: Position to record (defaults to the room's latest)

        Returns:
            False if the position did not move and nothing was sent

        Raises:
            ChatClientError: If the command fails; the previous read
                position is restored
        """
        room_id = room_id or self.state.open_room_id
        room = self.state.get_room(room_id) if room_id else None
        if room is None:
            return False
        if seq_id is None:
            seq_id = room.seq_id

        connection = self._require_connection()
        previous = room.last_read_seq_id
        if not self.state.mark_read(room_id, seq_id):
            return False
        marked = room.last_read_seq_id
        self._rooms_changed()

        try:
            await connection.mark_read(
                room_id, marked, timeout=self.config.command_timeout
            )
        except BaseException:
            if self.state.revert_read(room_id, marked, previous):
                self._rooms_changed()
            raise
        return True

    async def load_history(self) -> List[Message]:
        """
        Fetch the next page of older messages for the open room.

        Returns:
            The messages that were new, in seq order (empty when the
            history is exhausted)
        """
        room_id = self.state.open_room_id
        if self.state.phase != RoomPhase.JOINED or room_id is None:
            raise RoomStateError("No room is open")
        if self.api is None or not self.state.messages.has_more:
            return []

        page_size = self.config.history_page_size
        before = self.state.messages.oldest_seq or 0
        page = await self.api.get_messages(
            room_id, before=before, limit=page_size
        )
        added = self.state.apply_history(room_id, page, page_size)
        if added:
            self._rooms_changed()
        return added

    # Channel plumbing

    async def _open_channel(self) -> None:
        channel = self._channel_factory()
        connection = Connection(channel)

        channel.set_on_delivery(self._on_delivery)
        channel.set_on_error(self._on_channel_error)
        channel.set_on_close(lambda: self._on_channel_close(channel))

        self.channel = channel
        self.connection = connection
        try:
            await channel.connect()
        except TransportError:
            connection.close("connect failed")
            self.channel = None
            self.connection = None
            raise

    async def _drop_channel(self) -> None:
        channel, connection = self.channel, self.connection
        self.channel = None
        self.connection = None
        if connection is not None:
            connection.close("channel closed")
        if channel is not None:
            await channel.close()

    def _require_connection(self) -> Connection:
        if self.connection is None or self.connection.is_closed:
            raise TransportError("Not connected")
        return self.connection

    def _on_delivery(self, delivery: Delivery) -> None:
        """Route every frame of a delivery, in order."""
        for frame in decode_delivery(delivery):
            if isinstance(frame, ResponseFrame):
                if self.connection is not None:
                    self.connection.handle_response(frame)
            elif isinstance(frame, NotificationFrame):
                if self.dispatcher.dispatch(frame.payload) is not None:
                    self._rooms_changed()
            else:
                self.state.apply_push_message(frame.message)
                self._rooms_changed()

    def _on_channel_error(self, error: Exception) -> None:
        logger.warning("Channel error: %s", error)
        self._report_error(error)

    def _on_channel_close(self, channel: Any) -> None:
        if channel is not self.channel:
            # Closed on purpose by close() or reconnect()
            return
        logger.warning("Channel closed unexpectedly")
        if self.connection is not None:
            self.connection.close("channel closed")
        if self._on_disconnected:
            self._fire(self._on_disconnected)

    # Callback helpers

    def _message_added(self, message: Message) -> None:
        if self._on_message:
            self._fire(self._on_message, message)

    def _rooms_changed(self) -> None:
        if self._on_rooms_changed:
            self._fire(self._on_rooms_changed, self.rooms)

    def _report_error(self, error: Exception) -> None:
        if self._on_error:
            self._fire(self._on_error, error)

    @staticmethod
    def _fire(callback: Callable, *args: Any) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception("Callback %r raised", callback)
