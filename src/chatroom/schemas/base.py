"""
Base Schema Classes

This module provides base classes for outbound commands and inbound
notification payloads with common serialization and deserialization
methods to avoid code duplication.
"""

import json
from dataclasses import asdict, fields
from typing import Any, Dict, Optional, Type, TypeVar

T = TypeVar("T", bound="BasePayload")


class BaseCommand:
    """
    Base class for command schemas.

    A command is serialized as ``{"id": <int>, "<command_name>": {fields}}``.
    Fire-and-forget commands are sent without an ``id``.
    """

    def to_dict(self, correlation_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Convert to dictionary for JSON serialization.

        Args:
            correlation_id: Identifier tying the command to its response,
                or None for fire-and-forget commands.

        Returns:
            Dictionary with an optional 'id' key and the command body keyed
            by the command name.
        """
        body = asdict(self) if fields(self) else {}
        message: Dict[str, Any] = {}
        if correlation_id is not None:
            message["id"] = correlation_id
        message[self.command_name] = body
        return message

    def to_json(self, correlation_id: Optional[int] = None) -> str:
        """
        Convert to JSON string.

        Returns:
            JSON string representation of the command.
        """
        return json.dumps(self.to_dict(correlation_id))

    @property
    def command_name(self) -> str:
        """
        Name of the command field on the wire.

        Should be overridden by subclasses to provide the specific name.
        """
        raise NotImplementedError("Subclasses must define command_name")


class BasePayload:
    """
    Base class for inbound payload schemas.

    Provides common deserialization from the dictionary found under a
    notification field.
    """

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        """
        Create instance from dictionary.

        Args:
            data: Dictionary containing payload data.

        Returns:
            Instance of the payload class.

        Raises:
            ValueError: If the payload is not an object or lacks a field.
        """
        if not isinstance(data, dict):
            raise ValueError(f"{cls.__name__} payload must be an object")
        try:
            return cls._from_data(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"invalid {cls.__name__} payload: {e}") from e

    @classmethod
    def _from_data(cls: Type[T], data: Dict[str, Any]) -> T:
        """
        Create instance from payload data dictionary.

        Should be overridden by subclasses for custom deserialization.
        """
        return cls(**data)
