"""
Message Log for the Open Room

This module keeps the messages of the currently open room in strictly
increasing sequence order. Messages arrive through two paths, paged history
backfill (oldest pages last) and live push, and can overlap or arrive out
of order; the log merges both.

Architecture:
    - Uses binary search for efficient insertion (O(log n))
    - Maintains sorted order by seq_id
    - Drops duplicates by seq_id and by message id
    - Limits log size to prevent memory exhaustion

Usage:
    log = MessageLog()
    log.add(message)
    for msg in log.messages:
        render(msg)
"""

import logging
from typing import Iterable, List, Optional, Set

from .models import Message

logger = logging.getLogger(__name__)

# Maximum number of messages to keep for the open room
DEFAULT_MAX_LOG_SIZE = 1000


class MessageLog:
    """
    Ordered, de-duplicated message list for one room.

    Attributes:
        messages: Messages sorted by seq_id
        max_size: Maximum number of messages retained
        has_more: Whether older history may still be fetched
    """

    def __init__(self, max_size: int = DEFAULT_MAX_LOG_SIZE):
        self.messages: List[Message] = []
        self.max_size = max_size
        self.has_more = True
        self._seen_message_ids: Set[str] = set()

    def __len__(self) -> int:
        return len(self.messages)

    @property
    def oldest_seq(self) -> Optional[int]:
        """Sequence number of the oldest message held (history cursor)."""
        return self.messages[0].seq_id if self.messages else None

    @property
    def newest_seq(self) -> Optional[int]:
        """Sequence number of the newest message held."""
        return self.messages[-1].seq_id if self.messages else None

    def add(self, message: Message) -> bool:
        """
        Insert a message at its sequence position.

        Args:
            message: Message to insert

        Returns:
            bool: True if the message was added, False if it was a duplicate
        """
        if message.message_id and message.message_id in self._seen_message_ids:
            logger.debug("Duplicate message ignored: %s", message.message_id)
            return False

        insert_pos = self._find_insert_position(message.seq_id)

        if (
            insert_pos < len(self.messages)
            and self.messages[insert_pos].seq_id == message.seq_id
        ):
            logger.debug("Duplicate seq_id ignored: %s", message.seq_id)
            return False

        self.messages.insert(insert_pos, message)
        if message.message_id:
            self._seen_message_ids.add(message.message_id)

        logger.debug(
            "Message added at position %s (seq: %s)",
            insert_pos,
            message.seq_id,
        )

        self._enforce_size_limit()
        return True

    def merge(self, messages: Iterable[Message]) -> List[Message]:
        """
        Add a batch of messages (e.g. a history page) in any order.

        Returns:
            The messages that were actually added, in seq order.
        """
        added = [msg for msg in messages if self.add(msg)]
        # A later insert in the batch may have evicted an earlier one
        added = [msg for msg in added if msg in self.messages]
        return sorted(added, key=lambda m: m.seq_id)

    def clear(self) -> None:
        """
        Clear the log and reset state.

        This should be called when leaving a room or disconnecting.
        """
        self.messages.clear()
        self._seen_message_ids.clear()
        self.has_more = True
        logger.debug("Message log cleared")

    def _find_insert_position(self, seq_id: int) -> int:
        """
        Find the correct insert position using binary search.

        Args:
            seq_id: The sequence number to find position for.

        Returns:
            Index where message should be inserted.
        """
        left, right = 0, len(self.messages)
        while left < right:
            mid = (left + right) // 2
            if self.messages[mid].seq_id < seq_id:
                left = mid + 1
            else:
                right = mid
        return left

    def _enforce_size_limit(self) -> None:
        """
        Remove oldest messages if the log exceeds its maximum size.

        The newest messages are the ones on screen, so trimming starts at
        the oldest end.
        """
        if len(self.messages) > self.max_size:
            excess = len(self.messages) - self.max_size
            removed = self.messages[:excess]
            self.messages = self.messages[excess:]

            for msg in removed:
                if msg.message_id:
                    self._seen_message_ids.discard(msg.message_id)

            logger.warning(
                "Message log limit exceeded, removed %s oldest messages",
                excess,
            )
