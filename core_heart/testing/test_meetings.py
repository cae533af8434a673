#!/usr/bin/env python3
"""
Tests for MeetingStore

Tests cover:
- Create (validation, id sanitizing, template seeding, createdAt preservation)
- Get / list
- After-language versions, promotion record, close
- Legacy candidate shape migration
"""

import pytest

from core_heart.core.datashapes import MeetingStatus
from core_heart.core.error_handler import NotFoundError, ValidationError
from core_heart.testing.helpers import read_json, write_json


class TestCreate:

    def test_create_writes_one_file(self, heart, config):
        meeting = heart.meetings.create("약속을 지키고 싶어", message_id="m1", room_id="r1")

        path = config.meetings_dir / f"{meeting.meeting_id}.json"
        document = read_json(path)
        assert document["meetingId"] == meeting.meeting_id
        assert document["status"] == "open"
        assert document["source"] == {"from": "breath", "messageId": "m1", "roomId": "r1", "text": "약속을 지키고 싶어"}
        assert document["afterLanguage"] == {"currentVersion": 1, "versions": []}
        assert len(document["autoCandidates"]) == 3

    def test_empty_text_is_validation_error(self, heart):
        with pytest.raises(ValidationError):
            heart.meetings.create("   ")

    def test_generated_id(self, heart):
        assert heart.meetings.create("hello").meeting_id.startswith("meet-")

    def test_caller_id_is_sanitized(self, heart):
        meeting = heart.meetings.create("hello", meeting_id="../etc/pass wd")
        assert meeting.meeting_id == "etcpasswd"

    def test_unusable_caller_id_falls_back_to_generated(self, heart):
        assert heart.meetings.create("hello", meeting_id="///").meeting_id.startswith("meet-")

    def test_reused_id_overwrites_but_keeps_created_at(self, heart):
        first = heart.meetings.create("first", meeting_id="same")
        second = heart.meetings.create("second", meeting_id="same")

        assert second.created_at == first.created_at
        assert heart.meetings.get("same").source.text == "second"

    @pytest.mark.parametrize("template", [
        {"afterLanguage": ["v1"]},
        {"afterLanguage": {"currentVersion": "two", "versions": "none"}},
        {"source": "seed", "autoCandidates": 3},
    ])
    def test_malformed_template_still_creates(self, heart, config, template):
        write_json(config.meeting_template_path, template)

        meeting = heart.meetings.create("오늘 너무 불안해")

        assert meeting.source.text == "오늘 너무 불안해"
        assert meeting.after_language.versions == []
        assert len(meeting.auto_candidates) == 3

    def test_seed_template_fields_survive(self, heart, config):
        write_json(config.meeting_template_path, {
            "createdAt": 1234,
            "facilitator": "haru",
            "afterLanguage": {"currentVersion": 1, "versions": [{"v": 1, "createdAt": "t", "lines": ["seed"]}]},
        })

        meeting = heart.meetings.create("hello")

        assert meeting.created_at == 1234
        assert meeting.extra["facilitator"] == "haru"
        assert meeting.after_language.versions[0].lines == ["seed"]
        assert read_json(config.meetings_dir / f"{meeting.meeting_id}.json")["facilitator"] == "haru"

    def test_candidates_follow_source_text(self, heart):
        meeting = heart.meetings.create("오늘 너무 불안해")
        assert "두려움" in meeting.auto_candidates[0]


class TestGetAndList:

    def test_get_missing_is_not_found(self, heart):
        with pytest.raises(NotFoundError):
            heart.meetings.get("nope")

    def test_get_blank_is_validation_error(self, heart):
        with pytest.raises(ValidationError) as exc:
            heart.meetings.get("%%%")
        assert exc.value.code == "meeting_id_empty"

    def test_list_ids(self, heart):
        heart.meetings.create("a", meeting_id="m-a")
        heart.meetings.create("b", meeting_id="m-b")
        assert sorted(heart.meetings.list_ids()) == ["m-a", "m-b"]

    def test_list_ids_empty(self, heart):
        assert heart.meetings.list_ids() == []

    def test_legacy_candidate_objects_are_migrated(self, heart, config):
        write_json(config.meetings_dir / "old.json", {
            "meetingId": "old",
            "createdAt": 1,
            "status": "open",
            "source": {"from": "breath", "text": "old text"},
            "autoCandidates": [{"text": "one"}, {"text": "two"}, {"text": "three"}],
        })

        meeting = heart.meetings.get("old")

        assert meeting.auto_candidates == ["one", "two", "three"]

    @pytest.mark.parametrize("document", [
        {"afterLanguage": {"currentVersion": "two"}},
        {"afterLanguage": ["v1"]},
        {"afterLanguage": {"versions": [{"v": "x", "lines": "not a list"}, "junk"]}},
        {"source": "just text", "emotions": "sad", "autoCandidates": "one"},
        {"status": ["open"]},
    ])
    def test_hand_edited_shapes_fall_back_to_defaults(self, heart, config, document):
        write_json(config.meetings_dir / "edited.json", document)

        meeting = heart.meetings.get("edited")

        assert meeting.meeting_id == "edited"
        assert meeting.status == MeetingStatus.OPEN
        assert meeting.after_language.current_version >= 1
        assert all(isinstance(v.lines, list) for v in meeting.after_language.versions)
        assert isinstance(meeting.source.text, str)

    def test_hand_edited_meeting_accepts_new_versions(self, heart, config):
        write_json(config.meetings_dir / "edited.json", {"afterLanguage": ["v1"], "source": 7})

        version = heart.meetings.add_after_language_version("edited", ["line"])

        assert version.v == 1
        assert read_json(config.meetings_dir / "edited.json")["source"] == {"from": "breath", "text": ""}

    def test_missed_lookups_are_not_cached(self, heart):
        for call in (heart.meetings.get, heart.meetings.close):
            with pytest.raises(NotFoundError):
                call("ghost")
        heart.meetings.record_promotion("ghost", "def-1")

        assert heart.meetings._stores == {}

    def test_created_meeting_is_cached(self, heart):
        heart.meetings.create("x", meeting_id="m1")
        assert list(heart.meetings._stores) == ["m1"]


class TestAfterLanguage:

    def test_versions_increment_and_become_current(self, heart):
        heart.meetings.create("x", meeting_id="m1")

        v1 = heart.meetings.add_after_language_version("m1", ["첫 줄", "  ", "둘째 줄"])
        v2 = heart.meetings.add_after_language_version("m1", "다시 쓴 줄", spec_snapshot={"k": 1})

        meeting = heart.meetings.get("m1")
        assert (v1.v, v2.v) == (1, 2)
        assert v1.lines == ["첫 줄", "둘째 줄"]
        assert meeting.after_language.current_version == 2
        assert meeting.after_language.current.spec_snapshot == {"k": 1}
        assert meeting.after_language.current.promotion.promoted is False

    def test_no_lines_is_validation_error(self, heart):
        heart.meetings.create("x", meeting_id="m1")
        with pytest.raises(ValidationError) as exc:
            heart.meetings.add_after_language_version("m1", ["", "  "])
        assert exc.value.code == "lines_empty"

    def test_unknown_meeting_is_not_found(self, heart):
        with pytest.raises(NotFoundError):
            heart.meetings.add_after_language_version("ghost", ["line"])

    def test_record_promotion_marks_current_version(self, heart):
        heart.meetings.create("x", meeting_id="m1")
        heart.meetings.add_after_language_version("m1", ["line"])

        heart.meetings.record_promotion("m1", "def-1")

        promotion = heart.meetings.get("m1").after_language.current.promotion
        assert promotion.promoted is True
        assert promotion.central_definition_id == "def-1"

    def test_record_promotion_is_best_effort(self, heart):
        assert heart.meetings.record_promotion("ghost", "def-1") is None
        heart.meetings.create("x", meeting_id="m1")
        assert heart.meetings.record_promotion("m1", "def-1") is None


class TestClose:

    def test_close_sets_done(self, heart):
        heart.meetings.create("x", meeting_id="m1")
        heart.meetings.close("m1")
        assert heart.meetings.get("m1").status == MeetingStatus.DONE

    def test_close_missing_is_not_found(self, heart):
        with pytest.raises(NotFoundError):
            heart.meetings.close("ghost")

    def test_recreate_reopens(self, heart):
        heart.meetings.create("x", meeting_id="m1")
        heart.meetings.close("m1")
        heart.meetings.create("y", meeting_id="m1")
        assert heart.meetings.get("m1").status == MeetingStatus.OPEN
