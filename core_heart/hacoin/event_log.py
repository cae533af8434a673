"""
Secondary Ha-Coin ledger: unbounded, line-oriented, append-only.

Lifecycle operations (breath consume) write correlated events here.
Nothing in the pipeline reads it back; it is an audit trail and is
deliberately not reconciled with the primary ledger.
"""
import logging
from typing import Optional, Dict, Any

from core_heart.core.datashapes import HaCoinEvent
from core_heart.core.error_handler import ErrorHandler, ErrorCategory
from core_heart.core.identifiers import now_id, now_iso
from core_heart.core.jsonl_log import JsonlAppender

logger = logging.getLogger(__name__)


class HaCoinEventLog:

    def __init__(self, path, error_handler: Optional[ErrorHandler] = None):
        self._appender = JsonlAppender(path, error_handler=error_handler, category=ErrorCategory.HACOIN)

    @property
    def path(self):
        return self._appender.path

    def record(
        self,
        event_type: str,
        delta: float,
        reason: str,
        user_id: Optional[str] = None,
        message_id: Optional[str] = None,
        persona: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
        at: Optional[str] = None
    ) -> HaCoinEvent:
        """
        Build and append one event. Zero deltas are allowed here
        (companion "action" events).
        """
        event = HaCoinEvent(
            id=now_id("evt"),
            at=at or now_iso(),
            type=event_type,
            delta=delta,
            reason=reason,
            user_id=user_id,
            message_id=message_id,
            persona=persona,
            meta=meta,
        )
        if self._appender.append(event.to_dict()):
            logger.debug(f"Ha-coin {event_type} {delta:+} ({reason}) for {message_id}")
        return event
