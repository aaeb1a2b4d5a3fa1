"""
Notification Dispatcher

Routes uncorrelated server notifications to handlers. A notification is
classified by which of its fields is populated; the set of kinds is closed
(see NotificationKind). Anything unrecognised is logged and dropped so a
malformed or newer message never tears down the channel.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from .schemas import (
    NOTIFICATION_TYPES,
    MessageNotification,
    NotificationKind,
    PresenceNotification,
    RoomDeletedNotification,
    SubscriptionChangeNotification,
)

logger = logging.getLogger(__name__)

# Order in which fields are checked when a payload populates several
DISPATCH_ORDER = (
    NotificationKind.ROOM_DELETED,
    NotificationKind.PRESENCE,
    NotificationKind.SUBSCRIPTION_CHANGE,
    NotificationKind.MESSAGE,
)


class NotificationHandler:
    """
    Handler-slot interface: one method per notification kind.

    Every slot defaults to a no-op, so implementations override only the
    kinds they care about.
    """

    def on_presence(self, notification: PresenceNotification) -> None:
        pass

    def on_subscription_change(
        self, notification: SubscriptionChangeNotification
    ) -> None:
        pass

    def on_room_deleted(self, notification: RoomDeletedNotification) -> None:
        pass

    def on_message(self, notification: MessageNotification) -> None:
        pass


_SLOTS = {
    NotificationKind.PRESENCE: "on_presence",
    NotificationKind.SUBSCRIPTION_CHANGE: "on_subscription_change",
    NotificationKind.ROOM_DELETED: "on_room_deleted",
    NotificationKind.MESSAGE: "on_message",
}


def classify(payload: Dict[str, Any]) -> Optional[NotificationKind]:
    """
    Determine the kind of a notification payload.

    Args:
        payload: The object found under the frame's 'notification' field

    Returns:
        The notification kind, or None if no known field is populated
    """
    for kind in DISPATCH_ORDER:
        if payload.get(kind.value) is not None:
            return kind
    return None


class NotificationDispatcher:
    """
    Dispatches notifications to registered handlers.

    Handlers are invoked in registration order. A handler that raises is
    logged and skipped; the remaining handlers still run.
    """

    def __init__(self, handlers: Optional[List[NotificationHandler]] = None):
        self._handlers: List[NotificationHandler] = list(handlers or [])

    def add_handler(self, handler: NotificationHandler) -> None:
        """Register a handler."""
        self._handlers.append(handler)

    def remove_handler(self, handler: NotificationHandler) -> None:
        """Unregister a handler; unknown handlers are ignored."""
        if handler in self._handlers:
            self._handlers.remove(handler)

    def parse(
        self, payload: Dict[str, Any]
    ) -> Optional[Tuple[NotificationKind, Any]]:
        """
        Classify and parse a notification payload.

        Returns:
            (kind, typed notification), or None if the payload is unknown
            or malformed
        """
        if not isinstance(payload, dict):
            logger.warning("Ignoring non-object notification: %r", payload)
            return None

        kind = classify(payload)
        if kind is None:
            logger.warning(
                "Unknown notification type: %s", sorted(payload.keys())
            )
            return None

        try:
            notification = NOTIFICATION_TYPES[kind].from_dict(
                payload[kind.value]
            )
        except ValueError as e:
            logger.error("Malformed %s notification: %s", kind.value, e)
            return None
        return kind, notification

    def dispatch(self, payload: Dict[str, Any]) -> Optional[NotificationKind]:
        """
        Route one notification to the matching slot of every handler.

        Args:
            payload: The object found under the frame's 'notification' field

        Returns:
            The kind that was dispatched, or None if it was dropped
        """
        parsed = self.parse(payload)
        if parsed is None:
            return None

        kind, notification = parsed
        slot = _SLOTS[kind]
        logger.debug("Dispatching %s notification", kind.value)

        for handler in list(self._handlers):
            try:
                getattr(handler, slot)(notification)
            except Exception:
                logger.exception(
                    "Handler %r failed on %s notification",
                    handler,
                    kind.value,
                )
        return kind
