"""
Identifier and clock helpers shared by every store.

Ids are timestamp + short random suffix. Collisions are not expected at
the scale of a single journaling backend, so nothing here coordinates.
"""
import re
import time
import uuid
from datetime import datetime, timezone

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9\-_]")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

MAX_ID_LENGTH = 80


def now_ms() -> int:
    """Server clock in epoch milliseconds."""
    return int(time.time() * 1000)


def now_iso() -> str:
    """Server clock as an ISO-8601 UTC string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_id(prefix: str) -> str:
    """`<prefix>-<ms>-<5 random chars>`, e.g. `meet-1733212800000-a1b2c`."""
    return f"{prefix}-{now_ms()}-{uuid.uuid4().hex[:5]}"


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def ledger_event_id() -> str:
    """`evt_<base36 ms>_<6 random chars>` - sorts roughly by creation time."""
    return f"evt_{_base36(now_ms())}_{uuid.uuid4().hex[:6]}"


def sanitize_id(raw) -> str:
    """
    Make an id safe to use as a file name.

    Keeps ASCII letters, digits, '-' and '_', truncated to 80 chars.
    Returns '' when nothing survives, callers treat that as "no id".
    """
    if raw is None:
        return ""
    return _UNSAFE_ID_CHARS.sub("", str(raw).strip())[:MAX_ID_LENGTH]
