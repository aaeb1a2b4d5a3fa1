"""
Tests for the Client Data Model and Message Log

Tests room counters, payload parsing and the ordered, de-duplicated
message log used for the open room.
"""

import pytest

from src.chatroom.message_log import MessageLog
from src.chatroom.models import Message, Room, Subscriber, Subscription


def make_message(seq_id, content=None, message_id=None):
    return Message(
        seq_id=seq_id,
        content=content or f"message {seq_id}",
        message_id=message_id,
    )


class TestRoom:
    """Tests for Room counters."""

    def test_unread_count_is_difference(self):
        room = Room("r1", "General", seq_id=10, last_read_seq_id=4)
        assert room.unread_count == 6

    def test_unread_count_never_negative(self):
        room = Room("r1", "General", seq_id=3, last_read_seq_id=8)
        assert room.unread_count == 0

    def test_seq_only_moves_forward(self):
        room = Room("r1", "General")
        for seq_id in [5, 3, 7]:
            room.advance_seq(seq_id)
        assert room.seq_id == 7

    def test_advance_seq_reports_change(self):
        room = Room("r1", "General", seq_id=5)
        assert not room.advance_seq(5)
        assert not room.advance_seq(2)
        assert room.advance_seq(6)

    def test_read_position_only_moves_forward(self):
        room = Room("r1", "General", seq_id=10, last_read_seq_id=6)
        assert not room.advance_read(4)
        assert room.last_read_seq_id == 6
        assert room.advance_read(9)
        assert room.unread_count == 1

    def test_from_http_payload(self):
        room = Room.from_dict(
            {
                "external_id": "abc",
                "name": "General",
                "description": "Chit-chat",
                "seq_id": 12,
            }
        )
        assert room.room_id == "abc"
        assert room.name == "General"
        assert room.description == "Chit-chat"
        assert room.seq_id == 12

    def test_from_payload_without_id_fails(self):
        with pytest.raises(ValueError):
            Room.from_dict({"name": "General"})

    def test_from_payload_with_bad_seq_fails(self):
        with pytest.raises(ValueError):
            Room.from_dict({"external_id": "abc", "seq_id": "12"})


class TestPayloadParsing:
    """Tests for Subscriber, Message and Subscription parsing."""

    def test_subscriber_accepts_id_or_user_id(self):
        assert Subscriber.from_dict({"id": 3, "username": "ann"}).user_id == 3
        assert Subscriber.from_dict({"user_id": 4}).user_id == 4

    def test_subscriber_without_id_fails(self):
        with pytest.raises(ValueError):
            Subscriber.from_dict({"username": "ann"})

    def test_non_object_payloads_fail(self):
        with pytest.raises(ValueError):
            Subscriber.from_dict("ann")
        with pytest.raises(ValueError):
            Room.from_dict(["r1"])

    def test_message_fields(self):
        message = Message.from_dict(
            {
                "id": 77,
                "seq_id": 3,
                "room_id": "r1",
                "user_id": 5,
                "content": "hi",
                "timestamp": "2024-01-01T10:00:00Z",
            }
        )
        assert message.message_id == "77"
        assert message.seq_id == 3
        assert message.room_id == "r1"
        assert message.user_id == 5
        assert message.content == "hi"
        assert message.timestamp == "2024-01-01T10:00:00Z"

    def test_message_requires_seq(self):
        with pytest.raises(ValueError):
            Message.from_dict({"content": "hi"})

    def test_subscription_sets_room_read_position(self):
        subscription = Subscription.from_dict(
            {
                "id": 1,
                "last_read_seq_id": 4,
                "room": {"external_id": "r1", "name": "General", "seq_id": 9},
            }
        )
        assert subscription.subscription_id == 1
        assert subscription.last_read_seq_id == 4
        assert subscription.room.last_read_seq_id == 4
        assert subscription.room.unread_count == 5


class TestMessageLog:
    """Tests for the ordered message log."""

    def test_messages_kept_in_seq_order(self):
        log = MessageLog()
        for seq_id in [3, 1, 2]:
            log.add(make_message(seq_id))
        assert [m.seq_id for m in log.messages] == [1, 2, 3]

    def test_duplicate_seq_is_dropped(self):
        log = MessageLog()
        assert log.add(make_message(1))
        assert not log.add(make_message(1, content="again"))
        assert len(log) == 1
        assert log.messages[0].content == "message 1"

    def test_duplicate_message_id_is_dropped(self):
        log = MessageLog()
        assert log.add(make_message(1, message_id="m1"))
        assert not log.add(make_message(2, message_id="m1"))
        assert len(log) == 1

    def test_merge_history_with_live_messages(self):
        log = MessageLog()
        log.add(make_message(8))
        log.add(make_message(9))

        # A history page arrives newest first and overlaps the live ones
        page = [make_message(s) for s in [9, 8, 7, 6, 5]]
        added = log.merge(page)

        assert [m.seq_id for m in added] == [5, 6, 7]
        assert [m.seq_id for m in log.messages] == [5, 6, 7, 8, 9]

    def test_oldest_and_newest(self):
        log = MessageLog()
        assert log.oldest_seq is None
        assert log.newest_seq is None
        log.merge([make_message(4), make_message(2)])
        assert log.oldest_seq == 2
        assert log.newest_seq == 4

    def test_size_limit_drops_oldest(self):
        log = MessageLog(max_size=3)
        for seq_id in range(1, 6):
            log.add(make_message(seq_id))
        assert [m.seq_id for m in log.messages] == [3, 4, 5]

    def test_clear_resets_state(self):
        log = MessageLog()
        log.add(make_message(1, message_id="m1"))
        log.has_more = False

        log.clear()

        assert len(log) == 0
        assert log.has_more
        assert log.add(make_message(1, message_id="m1"))
