"""
Client Data Model

Local representations of rooms, roster entries, messages and subscription
snapshot entries. These are built from server payloads (join responses,
notifications, push messages and HTTP snapshots) and mutated only by the
state reconciler.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


def _require_seq(value: Any, name: str = "seq_id") -> int:
    """Return value as a sequence number, rejecting bools and negatives."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer: {value!r}")
    return value


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class Room:
    """
    A room the user is subscribed to.

    The unread count is derived from the two sequence numbers every time it
    is read, so it can never drift from them.

    Attributes:
        room_id: Stable external identifier of the room
        name: Display name
        description: Room description
        seq_id: Last known sequence number of the room's message stream
        last_read_seq_id: Sequence number of the last message the user read
        is_online: Whether the room currently has active sessions
    """

    room_id: str
    name: str
    description: str = ""
    seq_id: int = 0
    last_read_seq_id: int = 0
    is_online: bool = False

    @property
    def unread_count(self) -> int:
        """Number of messages after the read position, never negative."""
        return max(0, self.seq_id - self.last_read_seq_id)

    def advance_seq(self, seq_id: int) -> bool:
        """
        Move the room's sequence number forward.

        Args:
            seq_id: Sequence number seen in a message or notification

        Returns:
            True if the sequence number changed, False for stale or
            duplicate values.
        """
        if seq_id <= self.seq_id:
            return False
        self.seq_id = seq_id
        return True

    def advance_read(self, seq_id: int) -> bool:
        """Move the read position forward; older positions are ignored."""
        if seq_id <= self.last_read_seq_id:
            return False
        self.last_read_seq_id = seq_id
        return True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Room":
        """
        Create from a room payload.

        Accepts both the HTTP shape (``external_id``) and the join response
        shape (``room_id`` or ``external_id``).
        """
        if not isinstance(data, dict):
            raise ValueError("room payload must be an object")
        room_id = data.get("external_id") or data.get("room_id")
        if not room_id:
            raise ValueError("room payload is missing external_id")
        return cls(
            room_id=str(room_id),
            name=data.get("name") or "",
            description=data.get("description") or "",
            seq_id=_require_seq(data.get("seq_id", 0)),
            last_read_seq_id=_require_seq(
                data.get("last_read_seq_id", 0), "last_read_seq_id"
            ),
            is_online=bool(data.get("is_online", False)),
        )


@dataclass
class Subscriber:
    """
    A roster entry of the currently open room.

    Attributes:
        user_id: Account identifier
        username: Display name
        is_present: Whether the user has a live session in the room
    """

    user_id: int
    username: str = ""
    is_present: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subscriber":
        """Create from a user payload (``id`` or ``user_id``)."""
        if not isinstance(data, dict):
            raise ValueError("subscriber payload must be an object")
        user_id = data.get("id", data.get("user_id"))
        if user_id is None:
            raise ValueError("subscriber payload is missing id")
        return cls(
            user_id=int(user_id),
            username=data.get("username") or "",
            is_present=bool(data.get("is_present", False)),
        )


@dataclass
class Message:
    """
    A chat message.

    Attributes:
        seq_id: Per-room sequence number used for ordering
        content: Message body
        user_id: Author's account identifier
        room_id: External room identifier, if the payload carried one
        message_id: Server-assigned identifier, if any
        timestamp: ISO 8601 timestamp as sent by the server
    """

    seq_id: int
    content: str = ""
    user_id: Optional[int] = None
    room_id: Optional[str] = None
    message_id: Optional[str] = None
    timestamp: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Create from a message payload."""
        if not isinstance(data, dict):
            raise ValueError("message payload must be an object")
        user_id = data.get("user_id")
        return cls(
            seq_id=_require_seq(data.get("seq_id")),
            content=data.get("content") or "",
            user_id=int(user_id) if user_id is not None else None,
            room_id=_optional_str(data.get("room_id")),
            message_id=_optional_str(data.get("id")),
            timestamp=data.get("timestamp") or "",
        )


@dataclass
class Subscription:
    """
    One entry of the subscription snapshot used to seed the room list.

    Attributes:
        subscription_id: Server identifier of the subscription
        room: The room the subscription refers to
        last_read_seq_id: Caller's read position in that room
    """

    subscription_id: Optional[int]
    room: Room
    last_read_seq_id: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subscription":
        """Create from a ``GET /api/subscriptions`` entry."""
        room = Room.from_dict(data.get("room") or {})
        last_read = _require_seq(
            data.get("last_read_seq_id", 0), "last_read_seq_id"
        )
        room.last_read_seq_id = last_read
        return cls(
            subscription_id=data.get("id"),
            room=room,
            last_read_seq_id=last_read,
        )
