"""
Tests for Client Configuration and Validation
"""

import pytest

from src.chatroom.config import (
    DEFAULT_API_URL,
    DEFAULT_HISTORY_PAGE_SIZE,
    DEFAULT_WS_URL,
    ClientConfig,
)
from src.chatroom.validation import (
    MAX_MESSAGE_LENGTH,
    validate_message_content,
    validate_room_id,
)


class TestClientConfig:
    """Tests for reading configuration from the environment."""

    def test_defaults(self):
        config = ClientConfig.from_env({})
        assert config.ws_url == DEFAULT_WS_URL
        assert config.api_url == DEFAULT_API_URL
        assert config.history_page_size == DEFAULT_HISTORY_PAGE_SIZE
        assert config.command_timeout == 10.0
        assert config.log_level == "WARNING"

    def test_values_from_environment(self):
        config = ClientConfig.from_env(
            {
                "CHAT_WS_URL": "wss://chat.example/ws",
                "CHAT_API_URL": "https://chat.example/",
                "CHAT_COMMAND_TIMEOUT": "2.5",
                "CHAT_HISTORY_PAGE_SIZE": "25",
                "CHAT_LOG_LEVEL": "debug",
                "CHAT_LOG_FILE": "/tmp/chat.log",
            }
        )
        assert config.ws_url == "wss://chat.example/ws"
        assert config.api_url == "https://chat.example"
        assert config.command_timeout == 2.5
        assert config.history_page_size == 25
        assert config.log_level == "DEBUG"
        assert config.log_file == "/tmp/chat.log"

    def test_zero_timeout_means_no_limit(self):
        config = ClientConfig.from_env({"CHAT_COMMAND_TIMEOUT": "0"})
        assert config.command_timeout is None

    @pytest.mark.parametrize(
        "environ",
        [
            {"CHAT_COMMAND_TIMEOUT": "soon"},
            {"CHAT_COMMAND_TIMEOUT": "-1"},
            {"CHAT_HISTORY_PAGE_SIZE": "ten"},
            {"CHAT_HISTORY_PAGE_SIZE": "0"},
        ],
    )
    def test_invalid_values_rejected(self, environ):
        with pytest.raises(ValueError):
            ClientConfig.from_env(environ)


class TestValidation:
    """Tests for outbound content validation."""

    def test_valid_message(self):
        assert validate_message_content("hello") == (True, None)

    @pytest.mark.parametrize("content", ["", "   ", "\n"])
    def test_empty_message_rejected(self, content):
        is_valid, error = validate_message_content(content)
        assert not is_valid
        assert "empty" in error

    def test_message_length_limit(self):
        assert validate_message_content("x" * MAX_MESSAGE_LENGTH)[0]
        is_valid, error = validate_message_content(
            "x" * (MAX_MESSAGE_LENGTH + 1)
        )
        assert not is_valid
        assert "too long" in error

    def test_room_id(self):
        assert validate_room_id("r1") == (True, None)
        assert not validate_room_id("")[0]
        assert not validate_room_id(None)[0]
