#!/usr/bin/env python3
"""
Tests for meeting auto-candidate generation

Tests cover:
- Emotion and topic detection, first match wins
- Defaults when nothing matches
- Exactly three deterministic sentences
"""

import pytest

from core_heart.meetings.candidates import (
    DEFAULT_EMOTION,
    DEFAULT_TOPIC,
    detect_emotion,
    detect_topic,
    generate_auto_candidates,
)


class TestDetectEmotion:

    @pytest.mark.parametrize("text, expected", [
        ("오늘 너무 불안해", "두려움"),
        ("눈물이 나", "슬픔"),
        ("진짜 짜증나", "분노"),
        ("내일이 설레", "기대감"),
        ("너무 피곤해", "무기력"),
    ])
    def test_keyword_rows(self, text, expected):
        assert detect_emotion(text) == expected

    def test_first_row_wins(self):
        """Fear is checked before sadness."""
        assert detect_emotion("무섭고 외롭다") == "두려움"

    def test_default(self):
        assert detect_emotion("밥을 먹었다") == DEFAULT_EMOTION
        assert detect_emotion("") == DEFAULT_EMOTION


class TestDetectTopic:

    def test_each_topic(self):
        for topic in ("진심", "약속", "연결", "선택", "회의"):
            assert detect_topic(f"나는 {topic}에 대해 생각해") == topic

    def test_first_topic_wins(self):
        assert detect_topic("약속보다 진심이 중요해") == "진심"

    def test_default(self):
        assert detect_topic("그냥 하루") == DEFAULT_TOPIC


class TestGenerateAutoCandidates:

    def test_three_sentences(self):
        candidates = generate_auto_candidates("오늘 너무 불안해")
        assert len(candidates) == 3
        assert all(isinstance(c, str) and c for c in candidates)

    def test_emotion_in_first_candidate(self):
        candidates = generate_auto_candidates("오늘 너무 불안해")
        assert "두려움" in candidates[0]

    def test_topic_in_second_candidate(self):
        candidates = generate_auto_candidates("약속을 지키고 싶어")
        assert '"약속"' in candidates[1]

    def test_third_candidate_mixes_both(self):
        candidates = generate_auto_candidates("연결이 끊겨서 슬프다")
        assert "슬픔" in candidates[2]
        assert "연결" in candidates[2]

    def test_deterministic(self):
        text = "기대되는 선택"
        assert generate_auto_candidates(text) == generate_auto_candidates(text)

    def test_defaults_when_nothing_matches(self):
        candidates = generate_auto_candidates("hello")
        assert DEFAULT_EMOTION in candidates[0]
        assert DEFAULT_TOPIC in candidates[1]
