#!/usr/bin/env python3
"""
Tests for BreathStore

Tests cover:
- Submit (filtered app path and raw legacy path)
- Cap and newest-first ordering
- Lookup/delete by id and by the legacy messageId alias
- Mark-consumed and its companion ledger events
"""

import pytest

from core_heart.core.error_handler import NotFoundError, ValidationError
from core_heart.testing.helpers import read_json, read_jsonl


class TestSubmit:
    """Storing inbound fragments."""

    def test_submit_stores_trimmed_text_with_received_at(self, heart):
        result = heart.breath.submit({"text": "  오늘 너무 불안해  ", "roomId": "room-1"})

        assert result.ok is True
        assert result.dropped is False
        assert result.item.text == "오늘 너무 불안해"
        assert result.item.received_at > 0
        assert result.item.room_id == "room-1"

    def test_empty_text_is_validation_error(self, heart):
        with pytest.raises(ValidationError) as exc:
            heart.breath.submit({"text": "   "})
        assert exc.value.code == "text_empty"

    def test_missing_payload_is_validation_error(self, heart):
        with pytest.raises(ValidationError):
            heart.breath.submit(None)

    def test_id_prefers_payload_id_then_message_id(self, heart):
        assert heart.breath.submit({"text": "a", "id": "given", "messageId": "m1"}).item.id == "given"
        assert heart.breath.submit({"text": "b", "messageId": "m2"}).item.id == "m2"

    def test_generated_id_when_none_given(self, heart):
        item = heart.breath.submit({"text": "c"}).item
        assert item.id.startswith("inhale-")

    def test_filtered_text_is_dropped_not_stored(self, heart):
        result = heart.breath.submit({"text": "ㅋ" * 10})

        assert result.ok is True
        assert result.dropped is True
        assert result.item is None
        assert heart.breath.recent() == []

    def test_app_path_ignores_unknown_fields(self, heart):
        item = heart.breath.submit({"text": "hi", "score": 3, "personaHints": ["x"]}).item
        stored = heart.breath.snapshot()["items"][0]

        assert "score" not in stored
        assert "personaHints" not in stored
        assert item.extra == {}

    def test_raw_path_keeps_extra_fields_and_skips_filter(self, heart):
        result = heart.breath.submit(
            {"text": "ㅋ" * 10, "score": 3, "centralTopics": ["약속"]},
            apply_filter=False
        )
        stored = heart.breath.snapshot()["items"][0]

        assert result.dropped is False
        assert stored["score"] == 3
        assert stored["centralTopics"] == ["약속"]
        assert stored["text"] == "ㅋ" * 10

    def test_persisted_as_json_document(self, heart, config):
        heart.breath.submit({"text": "hello", "messageId": "m1"})
        document = read_json(config.breath_log_path)

        assert document["ok"] is True
        assert document["items"][0]["messageId"] == "m1"
        assert document["schemaVersion"] == 1


class TestCapAndOrdering:

    def test_newest_first(self, heart):
        for n in range(3):
            heart.breath.submit({"text": f"breath {n}"})

        texts = [item.text for item in heart.breath.recent()]
        assert texts == ["breath 2", "breath 1", "breath 0"]

    def test_cap_evicts_oldest(self, small_heart, small_config):
        for n in range(small_config.breath_log_cap + 3):
            small_heart.breath.submit({"text": f"breath {n}"})

        items = small_heart.breath.snapshot()["items"]
        assert len(items) == small_config.breath_log_cap
        assert items[0]["text"] == "breath 7"
        assert items[-1]["text"] == "breath 3"

    def test_default_cap_is_300(self, config):
        assert config.breath_log_cap == 300

    @pytest.mark.parametrize("limit, expected", [(None, 10), ("2", 2), (0, 1), (-5, 1), ("junk", 10), (999, 12)])
    def test_recent_limit_is_clamped(self, heart, limit, expected):
        for n in range(12):
            heart.breath.submit({"text": f"b{n}"})
        assert len(heart.breath.recent(limit)) == expected

    def test_recent_inhales_default_and_max(self, heart):
        for n in range(40):
            heart.breath.submit({"text": f"b{n}"})

        assert len(heart.breath.recent_inhales()) == 30
        assert len(heart.breath.recent_inhales(1000)) == 40


class TestLookup:

    def test_get_by_id(self, heart):
        heart.breath.submit({"text": "x", "id": "breath-1"})
        assert heart.breath.get_by_id("breath-1").text == "x"

    def test_get_by_legacy_message_id(self, heart):
        heart.breath.submit({"text": "x", "id": "primary", "messageId": "legacy"})
        assert heart.breath.get_by_id("legacy").id == "primary"

    def test_get_missing_is_not_found(self, heart):
        with pytest.raises(NotFoundError):
            heart.breath.get_by_id("nope")

    def test_get_with_unsafe_only_id_is_validation_error(self, heart):
        with pytest.raises(ValidationError) as exc:
            heart.breath.get_by_id("!!!")
        assert exc.value.code == "id_empty"

    def test_id_is_sanitized_before_lookup(self, heart):
        heart.breath.submit({"text": "x", "id": "abc"})
        assert heart.breath.get_by_id("a/b.c").id == "abc"

    def test_delete_reports_count(self, heart):
        heart.breath.submit({"text": "x", "id": "gone"})

        assert heart.breath.delete_by_id("gone") == 1
        assert heart.breath.delete_by_id("gone") == 0
        assert heart.breath.recent() == []


class TestMarkConsumed:

    def test_sets_consumed_fields(self, heart):
        heart.breath.submit({"text": "x", "id": "b1"})

        result = heart.breath.mark_consumed("b1", to="room-x", reason="USED", tags=["t"])

        assert result.ok is True
        assert result.warning is None
        stored = heart.breath.get_by_id("b1")
        assert stored.is_consumed
        assert stored.consumed_to == "room-x"
        assert stored.consumed_reason == "USED"
        assert stored.consumed_tags == ["t"]

    def test_defaults(self, heart):
        heart.breath.submit({"text": "x", "id": "b1"})
        heart.breath.mark_consumed("b1")

        stored = heart.breath.get_by_id("b1")
        assert stored.consumed_to == "meaning-cross"
        assert stored.consumed_reason == "MOVED"
        assert stored.consumed_tags == []

    def test_missing_item_is_warning_not_failure(self, heart, config):
        result = heart.breath.mark_consumed("ghost")

        assert result.ok is True
        assert result.warning == "not found"
        assert not config.hacoin_events_path.exists()

    def test_blank_id_is_validation_error(self, heart):
        with pytest.raises(ValidationError):
            heart.breath.mark_consumed("  ")

    def test_emits_action_and_reward_events(self, heart, config):
        heart.breath.submit({"text": "x", "id": "b1"})
        heart.breath.mark_consumed("b1", user_id="u1", persona="mina", tags=["a"])

        action, reward = read_jsonl(config.hacoin_events_path)

        assert action["type"] == "action"
        assert action["delta"] == 0
        assert action["reason"] == "BREATH_CONSUME"
        assert reward["type"] == "reward"
        assert reward["delta"] == 1
        assert reward["reason"] == "BREATH_CONSUME_TO_CROSS"

        for event in (action, reward):
            assert event["messageId"] == "b1"
            assert event["userId"] == "u1"
            assert event["persona"] == "mina"
            assert event["meta"] == {"to": "meaning-cross", "reason": "MOVED", "tags": ["a"]}
        assert action["at"] == reward["at"]
        assert action["id"] != reward["id"]

    def test_reward_reason_for_other_destination(self, heart, config):
        heart.breath.submit({"text": "x", "id": "b1"})
        heart.breath.mark_consumed("b1", to="elsewhere")

        _, reward = read_jsonl(config.hacoin_events_path)
        assert reward["reason"] == "BREATH_CONSUME"

    def test_secondary_log_is_append_only(self, heart, config):
        heart.breath.submit({"text": "x", "id": "b1"})
        heart.breath.mark_consumed("b1")
        heart.breath.mark_consumed("b1")

        assert len(read_jsonl(config.hacoin_events_path)) == 4


class TestRemoveMatching:
    """Best-effort removal used by the purify bin."""

    def test_message_id_beats_text(self, heart):
        heart.breath.submit({"text": "same", "id": "a", "messageId": "m-a"})
        heart.breath.submit({"text": "same", "id": "b", "messageId": "m-b"})

        removed = heart.breath.remove_matching(message_id="m-a", text="same")

        assert removed.id == "a"
        assert [item.id for item in heart.breath.recent()] == ["b"]

    def test_received_at_match(self, heart):
        item = heart.breath.submit({"text": "one", "id": "a"}).item
        heart.breath.submit({"text": "two", "id": "b"})

        removed = heart.breath.remove_matching(received_at=item.received_at, text="nothing")
        assert removed is not None

    def test_text_fallback(self, heart):
        heart.breath.submit({"text": "exact text", "id": "a"})
        assert heart.breath.remove_matching(message_id="other", text="exact text").id == "a"

    def test_miss_returns_none(self, heart):
        heart.breath.submit({"text": "x", "id": "a"})
        assert heart.breath.remove_matching(message_id="zzz", text="no match") is None
        assert len(heart.breath.recent()) == 1
