"""Tests for the room store, message formatting and sanitizing."""
from datetime import datetime, timezone

import pytest

from borderchat.chat.store import RoomStore, format_message, format_time, sanitize_html


class TestSanitize:
    def test_escapes_angle_brackets(self):
        assert sanitize_html("<b>hi</b>") == "&lt;b&gt;hi&lt;/b&gt;"

    def test_leaves_other_characters_alone(self):
        text = "fish & chips \"quoted\" 'single'"
        assert sanitize_html(text) == text


class TestFormatting:
    def test_time_rendered_in_named_zone(self):
        moment = datetime(2024, 5, 1, 23, 5, tzinfo=timezone.utc)
        assert format_time("Asia/Brunei", moment) == "07:05"
        assert format_time("UTC", moment) == "23:05"

    def test_format_message_layout(self):
        moment = datetime(2024, 5, 1, 6, 30, tzinfo=timezone.utc)
        line = format_message("amber", "<hi>", "Asia/Brunei", moment)
        assert line == "amber @ 14:30: &lt;hi&gt;"

    def test_format_time_defaults_to_now(self):
        rendered = format_time("Asia/Brunei")
        assert len(rendered) == 5 and rendered[2] == ":"


class TestRoomStore:
    def test_unseen_room_is_empty(self):
        store = RoomStore()
        assert store.get_history("north") == []
        assert store.message_count("north") == 0

    def test_append_preserves_order(self):
        store = RoomStore()
        store.append("north", "a")
        store.append("north", "b")
        assert store.get_history("north") == ["a", "b"]

    def test_rooms_are_isolated(self):
        store = RoomStore()
        store.append("north", "a")
        store.append("south", "b")
        assert store.get_history("north") == ["a"]
        assert store.get_history("south") == ["b"]

    def test_history_never_exceeds_limit(self):
        store = RoomStore(history_limit=5)
        for i in range(23):
            store.append("north", str(i))
            assert store.message_count("north") <= 5

    def test_eviction_keeps_last_entries_in_order(self):
        store = RoomStore(history_limit=3)
        for i in range(7):
            store.append("north", f"m{i}")
        assert store.get_history("north") == ["m4", "m5", "m6"]

    def test_default_limit_is_one_hundred(self):
        store = RoomStore()
        for i in range(150):
            store.append("north", str(i))
        history = store.get_history("north")
        assert len(history) == 100
        assert history[0] == "50"
        assert history[-1] == "149"

    def test_append_returns_snapshot(self):
        store = RoomStore(history_limit=2)
        store.append("north", "a")
        snapshot = store.append("north", "b")
        store.append("north", "c")
        assert snapshot == ["a", "b"]

    def test_get_history_returns_copy(self):
        store = RoomStore()
        store.append("north", "a")
        history = store.get_history("north")
        history.append("tampered")
        assert store.get_history("north") == ["a"]

    def test_add_message_formats_and_sanitizes(self):
        moment = datetime(2024, 5, 1, 6, 30, tzinfo=timezone.utc)
        store = RoomStore(timezone="Asia/Brunei", clock=lambda: moment)
        line = store.add_message("north", "amber", "a<b>c")
        assert line == "amber @ 14:30: a&lt;b&gt;c"
        assert store.get_history("north") == [line]

    def test_rejects_zero_limit(self):
        with pytest.raises(ValueError):
            RoomStore(history_limit=0)
