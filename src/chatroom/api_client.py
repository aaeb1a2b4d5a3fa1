"""
HTTP API Client

Read-only adapter over the chat server's HTTP API. The session needs only
two of its operations: the subscription snapshot that seeds the room list,
and paged message history for the open room.
"""

import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .config import DEFAULT_HISTORY_PAGE_SIZE
from .errors import ApiError
from .models import Message, Subscription

logger = logging.getLogger(__name__)


class RestClient:
    """
    Client for the chat server's HTTP API.

    Attributes:
        base_url: Server base URL, e.g. "http://localhost:8000"
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Server base URL
            session: Optional aiohttp session; one is created on first use
                (and closed by close()) when omitted
        """
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    async def list_subscriptions(self) -> List[Subscription]:
        """
        Fetch the caller's subscriptions.

        Returns:
            One entry per subscribed room, in server order. Malformed
            entries are logged and skipped.
        """
        payload = await self._get("/api/subscriptions")
        subscriptions = []
        for entry in payload or []:
            try:
                subscriptions.append(Subscription.from_dict(entry))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning("Skipping malformed subscription: %s", e)
        return subscriptions

    async def get_messages(
        self,
        room_id: str,
        before: int = 0,
        limit: int = DEFAULT_HISTORY_PAGE_SIZE,
    ) -> List[Message]:
        """
        Fetch one page of a room's history.

        Args:
            room_id: External room ID
            before: Only return messages with a lower seq_id (0 = latest)
            limit: Maximum number of messages

        Returns:
            Messages as sent by the server (newest first); empty when the
            room has no more history
        """
        params: Dict[str, Any] = {"room_id": room_id, "limit": limit}
        if before > 0:
            params["before"] = before

        payload = await self._get("/api/messages", params)
        messages = []
        for entry in payload or []:
            try:
                message = Message.from_dict(entry)
            except (ValueError, TypeError) as e:
                logger.warning(
                    "Skipping malformed message in %s: %s", room_id, e
                )
                continue
            message.room_id = room_id
            messages.append(message)
        logger.debug(
            "Fetched %d message(s) for %s before %d",
            len(messages),
            room_id,
            before,
        )
        return messages

    async def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/json"}
            )
            self._owns_session = True
        return self._session

    async def _get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        session = self._get_session()
        try:
            async with session.get(url, params=params) as response:
                if response.status < 200 or response.status > 299:
                    raise ApiError(
                        response.status, await self._error_message(response)
                    )
                if response.status == 204:
                    return None
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    logger.error("GET %s returned invalid JSON: %s", url, e)
                    raise ApiError(
                        response.status, f"Invalid JSON body from {endpoint}"
                    ) from e
        except aiohttp.ClientError as e:
            logger.error("GET %s failed: %s", url, e)
            raise ApiError(0, f"Request to {endpoint} failed: {e}") from e

    @staticmethod
    async def _error_message(response: Any) -> str:
        try:
            payload = await response.json(content_type=None)
        except (ValueError, aiohttp.ContentTypeError):
            payload = None
        if isinstance(payload, dict) and payload.get("message"):
            return str(payload["message"])
        return f"HTTP {response.status}"
