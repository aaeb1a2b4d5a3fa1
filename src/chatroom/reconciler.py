"""
State Reconciler

Keeps the local room list, the open room's roster and message log, and the
read-position counters consistent with command results and server-pushed
notifications.

Open-room lifecycle:

    CLOSED -> JOINING -> JOINED -> LEAVING -> CLOSED

Each move out of a stable phase (CLOSED, JOINED) creates a Transition that
is later committed (command succeeded) or rolled back (command failed),
which puts the room back in the stable phase it started from and undoes any
optimistic edit.

Notification handling is idempotent: replaying a notification, or
receiving an older sequence number after a newer one, leaves the state
unchanged.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from .dispatcher import NotificationHandler
from .errors import RoomStateError
from .message_log import DEFAULT_MAX_LOG_SIZE, MessageLog
from .models import Message, Room, Subscriber, Subscription
from .schemas import (
    MessageNotification,
    PresenceNotification,
    RoomDeletedNotification,
    SubscriptionChangeNotification,
)

logger = logging.getLogger(__name__)


class RoomPhase(Enum):
    """Lifecycle phase of the open room."""

    CLOSED = "closed"
    JOINING = "joining"
    JOINED = "joined"
    LEAVING = "leaving"


class TransitionStatus(Enum):
    """Outcome of a pending transition."""

    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class Transition:
    """
    A pending join or leave.

    Attributes:
        action: "join" or "leave"
        room_id: Room the transition applies to
        prior_phase: Stable phase to return to on rollback
        unsubscribe: Leave also drops the room from the local list
        removed_room: Room optimistically removed by an unsubscribe
        removed_index: Position the removed room held in the list
        status: Pending, committed or rolled back
    """

    action: str
    room_id: str
    prior_phase: RoomPhase
    unsubscribe: bool = False
    removed_room: Optional[Room] = None
    removed_index: int = 0
    status: TransitionStatus = TransitionStatus.PENDING


class StateReconciler(NotificationHandler):
    """
    Owner of the client-side room state.

    Attributes:
        rooms: Subscribed rooms by external ID, in display order
        open_room_id: Room that is joining, joined or leaving
        phase: Lifecycle phase of the open room
        roster: Subscribers of the open room by user ID
        messages: Message log of the open room
    """

    def __init__(self, max_log_size: int = DEFAULT_MAX_LOG_SIZE):
        self.rooms: Dict[str, Room] = {}
        self.open_room_id: Optional[str] = None
        self.phase = RoomPhase.CLOSED
        self.roster: Dict[int, Subscriber] = {}
        self.messages = MessageLog(max_size=max_log_size)
        self._transition: Optional[Transition] = None
        self._on_message_added: Optional[Callable[[Message], None]] = None

    def set_on_message_added(
        self, callback: Callable[[Message], None]
    ) -> None:
        """
        Register callback for messages appended to the open room's log.

        Not called for history pages; apply_history returns those.

        Args:
            callback: Function that receives the added message
        """
        self._on_message_added = callback

    # Queries

    @property
    def open_room(self) -> Optional[Room]:
        """The open room's summary, if it is in the room list."""
        if self.open_room_id is None:
            return None
        return self.rooms.get(self.open_room_id)

    @property
    def subscribers(self) -> List[Subscriber]:
        return list(self.roster.values())

    @property
    def pending_transition(self) -> Optional[Transition]:
        return self._transition

    def is_open(self, room_id: Optional[str]) -> bool:
        """Check whether a room is the currently open one."""
        return (
            room_id is not None
            and room_id == self.open_room_id
            and self.phase != RoomPhase.CLOSED
        )

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    # Snapshot

    def seed(self, subscriptions: Iterable[Subscription]) -> None:
        """
        Replace the room list with a subscription snapshot.

        Open-room state is kept if the open room is still subscribed and
        cleared otherwise.
        """
        previous = self.rooms
        self.rooms = {}
        for subscription in subscriptions:
            room = subscription.room
            old = previous.get(room.room_id)
            if old is not None:
                # Local sequence numbers may be ahead of the snapshot
                room.advance_seq(old.seq_id)
                room.advance_read(old.last_read_seq_id)
            self.rooms[room.room_id] = room

        logger.info("Room list seeded with %d room(s)", len(self.rooms))

        if self.open_room_id and self.open_room_id not in self.rooms:
            if self.phase == RoomPhase.JOINED:
                logger.info(
                    "Open room %s is no longer subscribed", self.open_room_id
                )
                self._clear_open_room()

    # Transitions

    def begin_join(self, room_id: str) -> Transition:
        """
        Start opening a room (CLOSED -> JOINING).

        Raises:
            RoomStateError: If a room is already open or a transition is
                pending
        """
        if self.phase != RoomPhase.CLOSED or self._transition is not None:
            raise RoomStateError(
                f"Cannot join {room_id} while {self.phase.value}"
            )

        self.messages.clear()
        self.roster.clear()
        self.open_room_id = room_id
        self.phase = RoomPhase.JOINING
        self._transition = Transition(
            action="join", room_id=room_id, prior_phase=RoomPhase.CLOSED
        )
        logger.debug("Room %s: closed -> joining", room_id)
        return self._transition

    def begin_leave(self, unsubscribe: bool = False) -> Transition:
        """
        Start leaving the open room (JOINED -> LEAVING).

        With unsubscribe the room is optimistically removed from the room
        list; a rollback puts it back at its old position.

        Raises:
            RoomStateError: If no room is joined or a transition is pending
        """
        if self.phase != RoomPhase.JOINED or self._transition is not None:
            raise RoomStateError(f"Cannot leave while {self.phase.value}")

        room_id = self.open_room_id
        transition = Transition(
            action="leave",
            room_id=room_id,
            prior_phase=RoomPhase.JOINED,
            unsubscribe=unsubscribe,
        )
        if unsubscribe and room_id in self.rooms:
            transition.removed_index = list(self.rooms).index(room_id)
            transition.removed_room = self.rooms.pop(room_id)

        self.phase = RoomPhase.LEAVING
        self._transition = transition
        logger.debug("Room %s: joined -> leaving", room_id)
        return transition

    def commit(self, transition: Transition, data: Any = None) -> bool:
        """
        Apply the successful outcome of a transition.

        Args:
            transition: Transition returned by begin_join/begin_leave
            data: Join response payload (ignored for leave)

        Returns:
            False if the transition is no longer current (e.g. the room was
            deleted meanwhile) and nothing was changed.
        """
        if not self._is_current(transition):
            return False

        if transition.action == "join":
            self.phase = RoomPhase.JOINED
            self._populate_from_join(transition.room_id, data)
            logger.info("Room %s: joining -> joined", transition.room_id)
        else:
            self._clear_open_room()
            logger.info("Room %s: leaving -> closed", transition.room_id)

        transition.status = TransitionStatus.COMMITTED
        self._transition = None
        return True

    def rollback(self, transition: Transition) -> bool:
        """
        Undo a failed transition and return to the prior stable phase.

        Returns:
            False if the transition is no longer current.
        """
        if not self._is_current(transition):
            return False

        if transition.action == "join":
            self._clear_open_room()
        else:
            self.phase = RoomPhase.JOINED
            if transition.removed_room is not None:
                self._insert_room(
                    transition.removed_room, transition.removed_index
                )

        logger.info(
            "Room %s: %s rolled back to %s",
            transition.room_id,
            transition.action,
            transition.prior_phase.value,
        )
        transition.status = TransitionStatus.ROLLED_BACK
        self._transition = None
        return True

    def reset(self) -> Optional[str]:
        """
        Drop all open-room state, keeping the room list.

        Returns:
            The room that was joined (or joining), so it can be re-joined
        """
        previous = None
        if self.phase in (RoomPhase.JOINED, RoomPhase.JOINING):
            previous = self.open_room_id
        if self._transition is not None:
            self._transition.status = TransitionStatus.ROLLED_BACK
            if self._transition.removed_room is not None:
                self._insert_room(
                    self._transition.removed_room,
                    self._transition.removed_index,
                )
            self._transition = None
        self._clear_open_room()
        return previous

    # Local updates

    def apply_push_message(self, message: Message) -> bool:
        """
        Apply a chat message broadcast to the open room.

        Push messages are only sent to sessions inside the room, so a
        message whose room is not in the list is attributed to the open
        room.

        Returns:
            True if the message was added to the open room's log
        """
        room_id = message.room_id
        if room_id not in self.rooms:
            room_id = self.open_room_id
        if room_id is None:
            logger.debug("Push message %s with no open room", message.seq_id)
            return False
        message.room_id = room_id
        return self._post(room_id, message.seq_id, message)

    def apply_history(
        self, room_id: str, page: Iterable[Message], page_size: int
    ) -> List[Message]:
        """
        Merge a page of backfilled history into the open room's log.

        Args:
            room_id: Room the page belongs to
            page: Messages in any order
            page_size: Requested page size; a short page ends the history

        Returns:
            Messages that were new, in seq order
        """
        if not self.is_open(room_id):
            logger.debug("Ignoring history for room %s (not open)", room_id)
            return []

        page = list(page)
        if len(page) < page_size:
            self.messages.has_more = False

        room = self.rooms.get(room_id)
        for message in page:
            message.room_id = room_id
            if room is not None:
                room.advance_seq(message.seq_id)
        return self.messages.merge(page)

    def mark_read(self, room_id: str, seq_id: int) -> bool:
        """Move a room's read position forward, up to the room's seq_id."""
        room = self.rooms.get(room_id)
        if room is None:
            return False
        return room.advance_read(min(seq_id, room.seq_id))

    def revert_read(self, room_id: str, seq_id: int, previous: int) -> bool:
        """
        Undo a mark_read the server rejected.

        Only reverts while the read position is still the one that was
        set; a later advance wins.
        """
        room = self.rooms.get(room_id)
        if room is None or room.last_read_seq_id != seq_id:
            return False
        room.last_read_seq_id = previous
        logger.info(
            "Room %s: read position reverted to %d", room_id, previous
        )
        return True

    # Notification slots

    def on_message(self, notification: MessageNotification) -> None:
        self._post(
            notification.room_id, notification.seq_id, notification.message
        )

    def on_presence(self, notification: PresenceNotification) -> None:
        if notification.is_room_level:
            room = self.rooms.get(notification.room_id)
            if room is not None:
                room.is_online = notification.present
            return

        if not self.is_open(notification.room_id):
            return
        subscriber = self.roster.get(notification.user_id)
        if subscriber is not None:
            subscriber.is_present = notification.present

    def on_subscription_change(
        self, notification: SubscriptionChangeNotification
    ) -> None:
        if not self.is_open(notification.room_id):
            return

        user = notification.user
        if notification.subscribed:
            if user.user_id not in self.roster:
                self.roster[user.user_id] = Subscriber(
                    user_id=user.user_id,
                    username=user.username,
                    is_present=user.is_present,
                )
        else:
            self.roster.pop(user.user_id, None)

    def on_room_deleted(self, notification: RoomDeletedNotification) -> None:
        room_id = notification.room_id
        self.rooms.pop(room_id, None)

        transition = self._transition
        if transition is not None and transition.room_id == room_id:
            transition.removed_room = None
            transition.status = TransitionStatus.ROLLED_BACK
            self._transition = None

        if self.open_room_id == room_id:
            logger.info("Open room %s was deleted", room_id)
            self._clear_open_room()

    # Internals

    def _post(
        self, room_id: str, seq_id: int, message: Optional[Message]
    ) -> bool:
        room = self.rooms.get(room_id)
        if room is not None:
            room.advance_seq(seq_id)
        if message is None or not self.is_open(room_id):
            return False
        if not self.messages.add(message):
            return False
        if self._on_message_added is not None:
            self._on_message_added(message)
        return True

    def _populate_from_join(self, room_id: str, data: Any) -> None:
        room = self.rooms.get(room_id)
        if room is None:
            room = Room(room_id=room_id, name=room_id)
            self.rooms[room_id] = room

        if isinstance(data, dict):
            room.name = data.get("name") or room.name
            room.description = data.get("description") or room.description
            seq_id = data.get("seq_id")
            if isinstance(seq_id, int) and not isinstance(seq_id, bool):
                room.advance_seq(seq_id)
            self.roster.clear()
            for entry in data.get("subscribers") or []:
                try:
                    subscriber = Subscriber.from_dict(entry)
                except (ValueError, TypeError, AttributeError) as e:
                    logger.warning("Skipping malformed subscriber: %s", e)
                    continue
                self.roster[subscriber.user_id] = subscriber

        room.is_online = True

    def _clear_open_room(self) -> None:
        self.open_room_id = None
        self.phase = RoomPhase.CLOSED
        self.roster.clear()
        self.messages.clear()

    def _insert_room(self, room: Room, index: int) -> None:
        items = [(k, v) for k, v in self.rooms.items() if k != room.room_id]
        items.insert(min(index, len(items)), (room.room_id, room))
        self.rooms = dict(items)

    def _is_current(self, transition: Transition) -> bool:
        if (
            transition is not self._transition
            or transition.status != TransitionStatus.PENDING
        ):
            logger.info(
                "Ignoring stale %s transition for room %s",
                transition.action,
                transition.room_id,
            )
            return False
        return True
