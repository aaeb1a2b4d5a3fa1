"""
Tests for Command and Notification Schemas
"""

import json

import pytest

from src.chatroom.schemas import (
    LeaveCommand,
    MarkReadCommand,
    MessageNotification,
    PresenceNotification,
    SubscriptionChangeNotification,
)


class TestCommands:
    """Tests for command serialization."""

    def test_leave_command_with_id(self):
        assert LeaveCommand("r1", unsubscribe=True).to_dict(5) == {
            "id": 5,
            "leave": {"room_id": "r1", "unsubscribe": True},
        }

    def test_mark_read_command_json(self):
        data = json.loads(MarkReadCommand("r1", 12).to_json(2))
        assert data == {"id": 2, "mark_read": {"room_id": "r1", "seq_id": 12}}


class TestNotifications:
    """Tests for notification payload parsing."""

    @pytest.mark.parametrize("user_id", [None, 0])
    def test_presence_without_user_is_room_level(self, user_id):
        notification = PresenceNotification.from_dict(
            {"room_id": "r1", "user_id": user_id, "present": True}
        )
        assert notification.is_room_level
        assert notification.user_id is None

    def test_presence_for_user(self):
        notification = PresenceNotification.from_dict(
            {"room_id": "r1", "user_id": 7, "present": False}
        )
        assert not notification.is_room_level
        assert notification.user_id == 7
        assert notification.present is False

    def test_subscription_change_requires_user(self):
        with pytest.raises(ValueError):
            SubscriptionChangeNotification.from_dict(
                {"room_id": "r1", "subscribed": True}
            )

    @pytest.mark.parametrize("user", ["bob", 7, ["bob"]])
    def test_subscription_change_with_non_object_user(self, user):
        with pytest.raises(ValueError):
            SubscriptionChangeNotification.from_dict(
                {"room_id": "r1", "subscribed": True, "user": user}
            )

    def test_message_notification_with_content(self):
        notification = MessageNotification.from_dict(
            {"room_id": "r1", "seq_id": 4, "user_id": 2, "content": "hi"}
        )
        assert notification.message.content == "hi"
        assert notification.message.room_id == "r1"

    def test_message_notification_rejects_bad_seq(self):
        with pytest.raises(ValueError):
            MessageNotification.from_dict({"room_id": "r1", "seq_id": "4"})

    def test_empty_room_id_rejected(self):
        with pytest.raises(ValueError):
            PresenceNotification.from_dict({"room_id": "", "present": True})

    def test_non_object_payload_rejected(self):
        with pytest.raises(ValueError):
            PresenceNotification.from_dict(["r1"])
