"""
Command Schema Definitions

This module defines the client-to-server commands carried over the duplex
channel: joining and leaving rooms, publishing messages and marking
messages as read.
"""

from dataclasses import dataclass

from .base import BaseCommand


@dataclass
class JoinCommand(BaseCommand):
    """
    Request to join (open) a room.

    Attributes:
        room_id: External ID of the room to join
    """

    room_id: str

    @property
    def command_name(self) -> str:
        """Return the wire name for join commands."""
        return "join"


@dataclass
class LeaveCommand(BaseCommand):
    """
    Request to leave the open room.

    Attributes:
        room_id: External ID of the room to leave
        unsubscribe: Also drop the subscription to the room
    """

    room_id: str
    unsubscribe: bool = False

    @property
    def command_name(self) -> str:
        """Return the wire name for leave commands."""
        return "leave"


@dataclass
class PublishCommand(BaseCommand):
    """
    Request to publish a message to a room.

    Attributes:
        room_id: External ID of the room
        content: The message content
    """

    room_id: str
    content: str

    @property
    def command_name(self) -> str:
        """Return the wire name for publish commands."""
        return "publish"


@dataclass
class MarkReadCommand(BaseCommand):
    """
    Record the caller's read position in a room.

    Attributes:
        room_id: External ID of the room
        seq_id: Sequence number of the last message read
    """

    room_id: str
    seq_id: int

    @property
    def command_name(self) -> str:
        """Return the wire name for mark-read commands."""
        return "mark_read"
