"""
Shared test fixtures.

Provides in-memory stand-ins for the network layer: a WebSocket that can be
fed deliveries, a channel that records frames, and an HTTP collaborator
serving canned subscriptions and history.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from src.chatroom.config import ClientConfig
from src.chatroom.errors import TransportError
from src.chatroom.models import Message, Subscription
from src.chatroom.session import ChatSession

_CLOSE = object()


class MockWebSocket:
    """WebSocket double supporting send, close and ``async for``."""

    def __init__(self):
        self.sent_messages: List[str] = []
        self.closed = False
        self.fail_send: Optional[Exception] = None
        self._incoming: Optional[asyncio.Queue] = None

    @property
    def incoming(self) -> asyncio.Queue:
        if self._incoming is None:
            self._incoming = asyncio.Queue()
        return self._incoming

    def feed(self, delivery: Any) -> None:
        """Queue a delivery for the reader."""
        self.incoming.put_nowait(delivery)

    def hang_up(self) -> None:
        """End the stream as if the server closed the connection."""
        self.incoming.put_nowait(_CLOSE)

    async def send(self, message: str) -> None:
        if self.fail_send is not None:
            raise self.fail_send
        self.sent_messages.append(message)

    async def close(self) -> None:
        self.closed = True
        self.incoming.put_nowait(_CLOSE)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.incoming.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        return item


class FakeChannel:
    """Channel double: records sent frames, deliveries are pushed by hand."""

    def __init__(self, fail_connect: bool = False):
        self.sent: List[str] = []
        self.connected = False
        self.closed = False
        self.fail_connect = fail_connect
        self.fail_send = False
        self._on_delivery = None
        self._on_error = None
        self._on_close = None

    def set_on_delivery(self, callback) -> None:
        self._on_delivery = callback

    def set_on_error(self, callback) -> None:
        self._on_error = callback

    def set_on_close(self, callback) -> None:
        self._on_close = callback

    async def connect(self) -> None:
        if self.fail_connect:
            raise TransportError("Could not connect")
        self.connected = True

    async def send(self, data: str) -> None:
        if self.fail_send or self.closed:
            raise TransportError("Channel is not open")
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True
        if self._on_close:
            self._on_close()

    # Test helpers

    def deliver(self, *frames: Dict[str, Any]) -> None:
        """Push one delivery holding the given frames."""
        self._on_delivery("\n".join(json.dumps(f) for f in frames))

    def deliver_raw(self, delivery: str) -> None:
        self._on_delivery(delivery)

    def drop(self) -> None:
        """Simulate the server closing the connection."""
        self.closed = True
        if self._on_close:
            self._on_close()

    @property
    def frames(self) -> List[Dict[str, Any]]:
        return [json.loads(s) for s in self.sent]

    @property
    def last_frame(self) -> Dict[str, Any]:
        return json.loads(self.sent[-1])

    def respond(
        self,
        frame: Dict[str, Any],
        code: int = 200,
        data: Any = None,
        error: Optional[str] = None,
    ) -> None:
        """Answer a sent command frame."""
        response: Dict[str, Any] = {"response_code": code}
        if data is not None:
            response["data"] = data
        if error is not None:
            response["error"] = error
        self.deliver({"id": frame["id"], "response": response})

    async def wait_sent(self, count: int) -> None:
        """Yield to the loop until at least count frames were sent."""
        for _ in range(100):
            if len(self.sent) >= count:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"expected {count} frames, got {len(self.sent)}")


class FakeApi:
    """HTTP collaborator double."""

    def __init__(
        self,
        subscriptions: Optional[List[Dict[str, Any]]] = None,
        history: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    ):
        self.subscriptions = subscriptions or []
        self.history = history or {}
        self.history_calls: List[tuple] = []
        self.closed = False

    async def list_subscriptions(self) -> List[Subscription]:
        return [Subscription.from_dict(s) for s in self.subscriptions]

    async def get_messages(
        self, room_id: str, before: int = 0, limit: int = 10
    ) -> List[Message]:
        self.history_calls.append((room_id, before, limit))
        entries = [
            m
            for m in self.history.get(room_id, [])
            if before == 0 or m["seq_id"] < before
        ]
        entries.sort(key=lambda m: m["seq_id"], reverse=True)
        return [Message.from_dict(m) for m in entries[:limit]]

    async def close(self) -> None:
        self.closed = True


def subscription(
    room_id: str, name: str = "", seq_id: int = 0, last_read: int = 0
) -> Dict[str, Any]:
    """Build a subscription snapshot entry."""
    return {
        "id": ord(room_id[0]),
        "last_read_seq_id": last_read,
        "room": {
            "external_id": room_id,
            "name": name or room_id.upper(),
            "description": "",
            "seq_id": seq_id,
        },
    }


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def api():
    return FakeApi(
        subscriptions=[
            subscription("a", "Room A", seq_id=3, last_read=1),
            subscription("b", "Room B", seq_id=5, last_read=5),
        ]
    )


@pytest.fixture
def make_session(api):
    """Factory for sessions whose channels are FakeChannels."""

    def _make(**kwargs) -> ChatSession:
        channels: List[FakeChannel] = []

        def channel_factory():
            ch = FakeChannel()
            channels.append(ch)
            return ch

        session = ChatSession(
            config=kwargs.pop("config", ClientConfig(command_timeout=None)),
            api=kwargs.pop("api", api),
            channel_factory=channel_factory,
        )
        session.channels = channels
        return session

    return _make
