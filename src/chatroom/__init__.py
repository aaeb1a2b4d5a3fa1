"""
Chatroom Package

This package provides the real-time session client for the chat server:
one duplex WebSocket channel multiplexing correlated commands and
server-pushed notifications, and the state reconciliation that keeps the
room list, roster, unread counters and presence flags consistent.

Modules:
    - channel: WebSocket duplex channel adapter
    - codec: Frame splitting, decoding and classification
    - correlation: Command/response multiplexing
    - dispatcher: Notification routing to handler slots
    - reconciler: Room state and the open-room lifecycle
    - session: ChatSession, the surface used by the UI
"""

from .api_client import RestClient
from .channel import WebSocketChannel
from .config import ClientConfig
from .correlation import Connection, PendingCompletion
from .dispatcher import NotificationDispatcher, NotificationHandler
from .errors import (
    ApiError,
    ChatClientError,
    CommandTimeoutError,
    FrameDecodeError,
    ProtocolError,
    RoomStateError,
    TransportError,
)
from .message_log import MessageLog
from .models import Message, Room, Subscriber, Subscription
from .reconciler import RoomPhase, StateReconciler, Transition
from .session import ChatSession

__all__ = [
    # Session
    "ChatSession",
    "ClientConfig",
    "RestClient",
    # Protocol engine
    "WebSocketChannel",
    "Connection",
    "PendingCompletion",
    "NotificationDispatcher",
    "NotificationHandler",
    # State
    "StateReconciler",
    "RoomPhase",
    "Transition",
    "MessageLog",
    "Room",
    "Subscriber",
    "Message",
    "Subscription",
    # Errors
    "ChatClientError",
    "TransportError",
    "ProtocolError",
    "CommandTimeoutError",
    "FrameDecodeError",
    "RoomStateError",
    "ApiError",
]
