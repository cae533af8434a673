"""
Auto-candidate phrasings for a new meeting.

Light keyword heuristics: the first matching row wins, and the same text
always yields the same three sentences.
"""
from typing import List, Tuple

DEFAULT_EMOTION = "고요"
DEFAULT_TOPIC = "오늘"

# (keywords, emotion) - checked in order
EMOTION_KEYWORDS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("두려", "무섭", "겁", "불안"), "두려움"),
    (("슬프", "눈물", "허전", "외롭"), "슬픔"),
    (("화나", "분노", "짜증"), "분노"),
    (("기대", "설레", "두근"), "기대감"),
    (("지치", "피곤", "무기력"), "무기력"),
)

TOPIC_KEYWORDS: Tuple[str, ...] = ("진심", "약속", "연결", "선택", "회의")

CANDIDATE_TEMPLATES = (
    "너의 {emotion}은 피해야 할 언어가 아니야. 우리, 그 {emotion}의 근원을 한 겹씩 살펴보면 어때?",
    '너는 지금 "{topic}" 쪽으로 계속 돌아오고 있어. 우리, 오늘은 그 {topic}을 지키는 작은 선택 하나를 해볼까?',
    "너의 마음이 보내는 신호가 보여. 우리, {emotion}과 {topic}이 만나는 지점을 찾아서 한 문장으로 정리해볼래?",
)


def detect_emotion(text: str) -> str:
    t = text or ""
    for keywords, emotion in EMOTION_KEYWORDS:
        if any(keyword in t for keyword in keywords):
            return emotion
    return DEFAULT_EMOTION


def detect_topic(text: str) -> str:
    t = text or ""
    for topic in TOPIC_KEYWORDS:
        if topic in t:
            return topic
    return DEFAULT_TOPIC


def generate_auto_candidates(source_text: str) -> List[str]:
    """Exactly three sentences built from the detected emotion and topic."""
    emotion = detect_emotion(source_text)
    topic = detect_topic(source_text)
    return [template.format(emotion=emotion, topic=topic) for template in CANDIDATE_TEMPLATES]
