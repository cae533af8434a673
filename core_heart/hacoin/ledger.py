"""
Primary Ha-Coin ledger: one JSON document holding a capped event array.

post_event() only accepts non-zero finite deltas; the type follows the
sign (promote / penalty). The oldest events are evicted once the cap is
exceeded, and reads return the tail of the array.
"""
import logging
import math
from typing import Optional, Dict, Any, List

from core_heart.core.config import CoreHeartConfig, clamp_limit
from core_heart.core.datashapes import HaCoinEvent, HaCoinEventType
from core_heart.core.error_handler import ErrorHandler, ErrorCategory, ErrorCodes, ValidationError
from core_heart.core.identifiers import ledger_event_id, now_iso
from core_heart.core.json_store import JsonDocumentStore, coerce_list

logger = logging.getLogger(__name__)

LEDGER_VERSION = "hacoin-ledger-v1"


def _default_ledger() -> Dict[str, Any]:
    return {"version": LEDGER_VERSION, "events": []}


def _coerce_events(document):
    """v0 -> v1: events must be a list of objects"""
    document.setdefault("version", LEDGER_VERSION)
    return coerce_list(document, "events")


def parse_delta(raw):
    """
    Turn a caller-supplied delta into a number.

    Rejects missing, boolean, non-numeric, non-finite and zero values.
    Integral values come back as int so the ledger stays readable.
    """
    if raw is None or isinstance(raw, bool):
        raise ValidationError("delta must be non-zero number", ErrorCodes.DELTA_INVALID)
    try:
        delta = float(raw)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("delta must be non-zero number", ErrorCodes.DELTA_INVALID)
    if not math.isfinite(delta) or delta == 0:
        raise ValidationError("delta must be non-zero number", ErrorCodes.DELTA_INVALID)
    return int(delta) if delta.is_integer() else delta


class HaCoinLedger:

    def __init__(self, config: CoreHeartConfig, error_handler: Optional[ErrorHandler] = None):
        self.config = config
        self.store = JsonDocumentStore(
            config.hacoin_ledger_path,
            _default_ledger,
            migrations=[_coerce_events],
            category=ErrorCategory.HACOIN,
            error_handler=error_handler,
        )

    def post_event(
        self,
        delta,
        reason: str = "",
        user_id: str = "",
        message_id: str = "",
        inhale_id: str = "",
        summary: str = ""
    ) -> HaCoinEvent:
        delta = parse_delta(delta)

        event = HaCoinEvent(
            id=ledger_event_id(),
            at=now_iso(),
            type=HaCoinEventType.PROMOTE if delta > 0 else HaCoinEventType.PENALTY,
            delta=delta,
            reason=str(reason or ""),
            user_id=str(user_id or ""),
            message_id=str(message_id or ""),
            inhale_id=str(inhale_id or ""),
            summary=str(summary or ""),
        )

        with self.store.lock:
            ledger = self.store.load()
            ledger["events"].append(event.to_dict())
            if len(ledger["events"]) > self.config.ledger_cap:
                ledger["events"] = ledger["events"][-self.config.ledger_cap:]
            self.store.save(ledger)

        logger.info(f"Ha-coin {event.type} {event.delta:+} recorded as {event.id}")
        return event

    def get_ledger(self, limit=None) -> Dict[str, Any]:
        """The ledger document with only the last `limit` events, oldest first."""
        limit = clamp_limit(limit, self.config.ledger_read_default, 1, self.config.ledger_read_max)
        ledger = self.store.load()
        ledger["events"] = ledger["events"][-limit:]
        return ledger

    def events(self, limit=None) -> List[HaCoinEvent]:
        return [HaCoinEvent.from_dict(e) for e in self.get_ledger(limit)["events"]]
