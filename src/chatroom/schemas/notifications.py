"""
Notification Schema Definitions

This module defines the typed payloads of the unsolicited notifications the
server pushes: presence changes, subscription changes, room deletion and
new-message notices.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..models import Message, Subscriber
from .base import BasePayload


class NotificationKind(Enum):
    """The closed set of notification kinds, keyed by their wire field."""

    PRESENCE = "presence"
    SUBSCRIPTION_CHANGE = "subscription_change"
    ROOM_DELETED = "room_deleted"
    MESSAGE = "message"


def _room_id(data: Dict[str, Any]) -> str:
    room_id = data["room_id"]
    if room_id is None or room_id == "":
        raise ValueError("room_id cannot be empty")
    return str(room_id)


@dataclass
class PresenceNotification(BasePayload):
    """
    A user's (or the whole room's) presence changed.

    Without a user_id the notification describes the room itself going
    online or offline.

    Attributes:
        room_id: External ID of the room
        present: New presence state
        user_id: Affected user, or None for room-level presence
    """

    room_id: str
    present: bool
    user_id: Optional[int] = None

    @property
    def is_room_level(self) -> bool:
        return self.user_id is None

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "PresenceNotification":
        """Create from notification data dictionary."""
        user_id = data.get("user_id")
        return cls(
            room_id=_room_id(data),
            present=bool(data.get("present", False)),
            # user_id 0 is the server's "no user" value
            user_id=int(user_id) if user_id else None,
        )


@dataclass
class SubscriptionChangeNotification(BasePayload):
    """
    A user subscribed to or unsubscribed from a room.

    Attributes:
        room_id: External ID of the room
        subscribed: True when the user subscribed, False when they left
        user: The affected user
    """

    room_id: str
    subscribed: bool
    user: Subscriber

    @classmethod
    def _from_data(
        cls, data: Dict[str, Any]
    ) -> "SubscriptionChangeNotification":
        """Create from notification data dictionary."""
        return cls(
            room_id=_room_id(data),
            subscribed=bool(data.get("subscribed", False)),
            user=Subscriber.from_dict(data["user"]),
        )


@dataclass
class RoomDeletedNotification(BasePayload):
    """
    A room was deleted.

    Attributes:
        room_id: External ID of the deleted room
    """

    room_id: str

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "RoomDeletedNotification":
        """Create from notification data dictionary."""
        return cls(room_id=_room_id(data))


@dataclass
class MessageNotification(BasePayload):
    """
    A message was posted to a room.

    The server always sends the room and sequence number; the message body
    is included only when the payload carries content.

    Attributes:
        room_id: External ID of the room
        seq_id: Sequence number of the new message
        message: The posted message, if the payload carried one
    """

    room_id: str
    seq_id: int
    message: Optional[Message] = None

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "MessageNotification":
        """Create from notification data dictionary."""
        room_id = _room_id(data)
        message = None
        if "content" in data:
            message = Message.from_dict(data)
            message.room_id = room_id
        seq_id = data["seq_id"]
        if isinstance(seq_id, bool) or not isinstance(seq_id, int):
            raise ValueError(f"seq_id must be an integer: {seq_id!r}")
        return cls(room_id=room_id, seq_id=seq_id, message=message)


NOTIFICATION_TYPES = {
    NotificationKind.PRESENCE: PresenceNotification,
    NotificationKind.SUBSCRIPTION_CHANGE: SubscriptionChangeNotification,
    NotificationKind.ROOM_DELETED: RoomDeletedNotification,
    NotificationKind.MESSAGE: MessageNotification,
}
