"""
Client Configuration

Settings for the chat client, read from the environment with defaults
suitable for a local development server.

Environment variables:
    CHAT_WS_URL: WebSocket endpoint of the chat server
    CHAT_API_URL: Base URL of the HTTP API
    CHAT_COMMAND_TIMEOUT: Seconds to wait for a command response (0 = no limit)
    CHAT_HISTORY_PAGE_SIZE: Number of messages per history page
    CHAT_LOG_LEVEL: Logging level name
    CHAT_LOG_FILE: File the client logs to
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_WS_URL = "ws://localhost:8000/ws"
DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_COMMAND_TIMEOUT = 10.0
DEFAULT_HISTORY_PAGE_SIZE = 10
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_LOG_FILE = "chat_client.log"


@dataclass
class ClientConfig:
    """
    Runtime configuration for a chat session.

    Attributes:
        ws_url: WebSocket URL of the chat server
        api_url: Base URL of the HTTP API
        command_timeout: Seconds to wait for a response, None to wait forever
        history_page_size: Messages fetched per history page
        log_level: Logging level name
        log_file: Log file path
    """

    ws_url: str = DEFAULT_WS_URL
    api_url: str = DEFAULT_API_URL
    command_timeout: Optional[float] = DEFAULT_COMMAND_TIMEOUT
    history_page_size: int = DEFAULT_HISTORY_PAGE_SIZE
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: str = DEFAULT_LOG_FILE

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "ClientConfig":
        """
        Build a configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            ClientConfig populated from the environment

        Raises:
            ValueError: If a numeric setting cannot be parsed or is negative
        """
        env = os.environ if environ is None else environ

        timeout = _parse_float(
            env.get("CHAT_COMMAND_TIMEOUT"),
            DEFAULT_COMMAND_TIMEOUT,
            "CHAT_COMMAND_TIMEOUT",
        )
        page_size = _parse_int(
            env.get("CHAT_HISTORY_PAGE_SIZE"),
            DEFAULT_HISTORY_PAGE_SIZE,
            "CHAT_HISTORY_PAGE_SIZE",
        )
        if page_size < 1:
            raise ValueError("CHAT_HISTORY_PAGE_SIZE must be at least 1")

        config = cls(
            ws_url=env.get("CHAT_WS_URL", DEFAULT_WS_URL),
            api_url=env.get("CHAT_API_URL", DEFAULT_API_URL).rstrip("/"),
            command_timeout=timeout if timeout > 0 else None,
            history_page_size=page_size,
            log_level=env.get("CHAT_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
            log_file=env.get("CHAT_LOG_FILE", DEFAULT_LOG_FILE),
        )
        logger.debug("Loaded client configuration: %s", config)
        return config


def _parse_float(raw: Optional[str], default: float, name: str) -> float:
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} cannot be negative")
    return value


def _parse_int(raw: Optional[str], default: int, name: str) -> int:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
