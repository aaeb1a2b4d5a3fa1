"""
Validation Utilities

Contains utility functions for validating outbound command content.
"""

from typing import Optional, Tuple

# Message validation constants
MAX_MESSAGE_LENGTH = 5000


def validate_message_content(content: str) -> Tuple[bool, Optional[str]]:
    """
    Validate message content before it is published.

    Args:
        content: The message content to validate

    Returns:
        tuple: (is_valid, error_message)
            - is_valid: True if content is valid, False otherwise
            - error_message: Error message if invalid, None if valid
    """
    if not content or not content.strip():
        return False, "Message content cannot be empty"

    if len(content) > MAX_MESSAGE_LENGTH:
        return (
            False,
            f"Message content too long (max {MAX_MESSAGE_LENGTH} characters)",
        )

    return True, None


def validate_room_id(room_id: str) -> Tuple[bool, Optional[str]]:
    """Check that a room identifier is a non-empty string."""
    if not isinstance(room_id, str) or not room_id.strip():
        return False, "Room ID cannot be empty"
    return True, None
