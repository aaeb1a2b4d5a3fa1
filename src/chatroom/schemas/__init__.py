"""
Schemas Package

This package contains the wire schemas for the duplex channel. Schemas are
organized by direction: commands sent by the client and notification
payloads pushed by the server.

The package provides base classes (BaseCommand, BasePayload) that
eliminate code duplication for serialization and deserialization methods.
"""

from .base import BaseCommand, BasePayload
from .commands import (
    JoinCommand,
    LeaveCommand,
    PublishCommand,
    MarkReadCommand,
)
from .notifications import (
    NotificationKind,
    PresenceNotification,
    SubscriptionChangeNotification,
    RoomDeletedNotification,
    MessageNotification,
    NOTIFICATION_TYPES,
)

__all__ = [
    # Base classes
    "BaseCommand",
    "BasePayload",
    # Commands
    "JoinCommand",
    "LeaveCommand",
    "PublishCommand",
    "MarkReadCommand",
    # Notifications
    "NotificationKind",
    "PresenceNotification",
    "SubscriptionChangeNotification",
    "RoomDeletedNotification",
    "MessageNotification",
    "NOTIFICATION_TYPES",
]
