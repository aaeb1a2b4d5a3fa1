#!/usr/bin/env python3
"""
Chat Client Application

Entry point for the chat client. Reads configuration from the environment,
sets up file logging (so the terminal UI is not disturbed) and runs the
Textual interface.
"""

import logging
import sys

from .api_client import RestClient
from .config import ClientConfig
from .session import ChatSession

logger = logging.getLogger(__name__)


def configure_logging(config: ClientConfig) -> None:
    """Log to the configured file to avoid interfering with the UI."""
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler(config.log_file, mode="a")],
    )


def main():
    """Main entry point for the chat client."""
    try:
        config = ClientConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid configuration: {e}")
        sys.exit(2)

    configure_logging(config)
    logger.info("Starting chat client against %s", config.ws_url)

    from .ui import ChatApp

    session = ChatSession(config, api=RestClient(config.api_url))
    app = ChatApp(session)
    try:
        app.run()
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
