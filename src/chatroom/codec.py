"""
Frame Codec

One physical delivery from the channel may hold several logical frames
separated by newlines. This module splits a delivery, decodes each frame on
its own and classifies it as exactly one of:

    - ResponseFrame:     {"id": 3, "response": {"response_code": 200, ...}}
    - NotificationFrame: {"notification": {"presence": {...}}}
    - PushMessageFrame:  {"message": {"seq_id": 7, "content": "hi", ...}}

A frame that fails to decode is logged and skipped; the rest of the batch is
still decoded.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Union

from .errors import FrameDecodeError
from .models import Message
from .schemas.base import BaseCommand

logger = logging.getLogger(__name__)

FRAME_DELIMITER = "\n"

# Top-level fields that decide a frame's category
RESPONSE_FIELD = "response"
NOTIFICATION_FIELD = "notification"
MESSAGE_FIELD = "message"
FRAME_FIELDS = (RESPONSE_FIELD, NOTIFICATION_FIELD, MESSAGE_FIELD)


@dataclass
class ResponseFrame:
    """
    Response to a correlated command.

    Attributes:
        correlation_id: ID of the command this answers
        response_code: Status code, 2xx on success
        data: Response payload
        error: Error detail on failure
    """

    correlation_id: int
    response_code: int
    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.response_code <= 299


@dataclass
class NotificationFrame:
    """Unsolicited notification; payload is the object under 'notification'."""

    payload: Dict[str, Any]


@dataclass
class PushMessageFrame:
    """A chat message broadcast to the subscribers of a room."""

    message: Message
    correlation_id: Optional[int] = None


Frame = Union[ResponseFrame, NotificationFrame, PushMessageFrame]


def split_delivery(delivery: Union[str, bytes]) -> List[str]:
    """
    Split a physical delivery into logical frames.

    Blank segments (e.g. from a trailing newline) are dropped.

    Args:
        delivery: Text or UTF-8 bytes as received from the channel

    Returns:
        Frame strings in delivery order
    """
    if isinstance(delivery, (bytes, bytearray)):
        delivery = delivery.decode("utf-8", errors="replace")
    return [
        segment
        for segment in delivery.split(FRAME_DELIMITER)
        if segment.strip()
    ]


def decode_frame(raw: str) -> Frame:
    """
    Decode and classify a single logical frame.

    Args:
        raw: JSON text of one frame

    Returns:
        The classified frame

    Raises:
        FrameDecodeError: If the text is not a JSON object, does not carry
            exactly one of the known top-level fields, or the field's
            content is malformed.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise FrameDecodeError(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise FrameDecodeError("frame is not a JSON object")

    present = [name for name in FRAME_FIELDS if data.get(name) is not None]
    if len(present) != 1:
        raise FrameDecodeError(
            f"frame must carry exactly one of {FRAME_FIELDS}, got {present}"
        )

    kind = present[0]
    if kind == RESPONSE_FIELD:
        return _decode_response(data)
    if kind == NOTIFICATION_FIELD:
        payload = data[NOTIFICATION_FIELD]
        if not isinstance(payload, dict):
            raise FrameDecodeError("notification must be an object")
        return NotificationFrame(payload=payload)

    try:
        message = Message.from_dict(data[MESSAGE_FIELD])
    except (ValueError, TypeError) as e:
        raise FrameDecodeError(f"invalid message: {e}") from e
    return PushMessageFrame(
        message=message, correlation_id=_optional_id(data.get("id"))
    )


def decode_delivery(delivery: Union[str, bytes]) -> Iterator[Frame]:
    """
    Decode every frame of a delivery, isolating failures.

    A frame that cannot be decoded is logged and skipped; the frames after
    it are still yielded, in their original order.

    Args:
        delivery: One physical delivery from the channel

    Yields:
        Decoded frames in delivery order
    """
    segments = split_delivery(delivery)
    for index, segment in enumerate(segments):
        try:
            frame = decode_frame(segment)
        except FrameDecodeError as e:
            logger.error(
                "Dropping frame %d of %d: %s", index + 1, len(segments), e
            )
            continue
        yield frame


def encode_command(
    command: BaseCommand, correlation_id: Optional[int] = None
) -> str:
    """Serialize a command for transmission."""
    return command.to_json(correlation_id)


def _decode_response(data: Dict[str, Any]) -> ResponseFrame:
    correlation_id = _optional_id(data.get("id"))
    if correlation_id is None:
        raise FrameDecodeError("response frame has no id")

    response = data[RESPONSE_FIELD]
    if not isinstance(response, dict):
        raise FrameDecodeError("response must be an object")

    code = response.get("response_code")
    if isinstance(code, bool) or not isinstance(code, int):
        raise FrameDecodeError(f"invalid response_code: {code!r}")

    return ResponseFrame(
        correlation_id=correlation_id,
        response_code=code,
        data=response.get("data"),
        error=response.get("error") or None,
    )


def _optional_id(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise FrameDecodeError(f"invalid id: {value!r}")
    return value
