"""
Inbound text filter for the breath log.

No correction, no warning, no masking - a text that trips the filter is
simply not stored. Best-effort heuristics only; false positives and
negatives are accepted.
"""
import re
from typing import Optional

# Strong profanity / threats / slurs. Minimal set, extend slowly.
HARD_DENYLIST = (
    "씨발", "시발", "병신", "좆", "존나", "꺼져", "죽어",
    "좃나", "쌍", "개새끼", "미친놈", "미친년",
)

_DENYLIST_PATTERN = re.compile("|".join(re.escape(term) for term in HARD_DENYLIST))


class DropReason:
    EMPTY = "empty"
    DENYLIST = "denylist"
    REPEATED_CHAR = "repeated_char"
    TOO_LONG = "too_long"


def drop_reason(text, max_length: int = 2000, repeat_run: int = 8) -> Optional[str]:
    """
    Return why `text` should be dropped, or None to keep it.

    Checked in order: empty after trim, denylist hit, one character
    repeated `repeat_run` or more times in a row (ㅋㅋㅋㅋㅋㅋㅋㅋ, ........),
    longer than `max_length` characters.
    """
    t = str(text or "").strip()

    if not t:
        return DropReason.EMPTY

    if _DENYLIST_PATTERN.search(t):
        return DropReason.DENYLIST

    if re.search(r"(.)\1{%d,}" % (repeat_run - 1), t):
        return DropReason.REPEATED_CHAR

    if len(t) > max_length:
        return DropReason.TOO_LONG

    return None


def should_drop(text, max_length: int = 2000, repeat_run: int = 8) -> bool:
    return drop_reason(text, max_length=max_length, repeat_run=repeat_run) is not None
