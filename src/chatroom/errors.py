"""
Client Error Types

Exceptions raised by the session client. Every error is either surfaced to
the caller of a specific command or logged and absorbed when nobody is
waiting on it.
"""

from typing import Optional


class ChatClientError(Exception):
    """Base class for all chat client errors."""


class TransportError(ChatClientError, ConnectionError):
    """The channel is not open, or closed while a command was in flight."""


class ProtocolError(ChatClientError):
    """
    The server answered a command with a non-success status code.

    Attributes:
        response_code: Status code embedded in the response
        detail: Server-supplied error detail, if any
    """

    def __init__(self, response_code: int, detail: Optional[str] = None):
        self.response_code = response_code
        self.detail = detail or "unknown error"
        super().__init__(f"{self.detail} (code {response_code})")


class CommandTimeoutError(ChatClientError, TimeoutError):
    """No response arrived before the caller's timeout expired."""


class FrameDecodeError(ChatClientError, ValueError):
    """A logical frame could not be decoded or classified."""


class RoomStateError(ChatClientError):
    """A room transition was requested from the wrong phase."""


class ApiError(ChatClientError):
    """
    The HTTP API returned an error.

    Attributes:
        status: HTTP status code
    """

    def __init__(self, status: int, message: str):
        self.status = status
        super().__init__(message)
