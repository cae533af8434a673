"""
Breath Log - capped, newest-first store of inbound fragments

The breath log is the source stage of the pipeline. Nothing here promotes
to central memory; items only leave by explicit delete or by being moved
into the purify bin.

Invariants:
- items are ordered newest-first (prepend on insert)
- never more than `breath_log_cap` items; the oldest fall off silently
- every stored item has a primary `id`; `messageId` is only a lookup alias
"""
import logging
from typing import Dict, List, Optional, Any

from core_heart.breath_log.content_filter import drop_reason
from core_heart.core.config import CoreHeartConfig, clamp_limit
from core_heart.core.datashapes import BreathItem, SubmitResult, ConsumeResult, HaCoinEventType
from core_heart.core.error_handler import (
    ErrorHandler,
    ErrorCategory,
    ErrorCodes,
    NotFoundError,
    ValidationError,
)
from core_heart.core.identifiers import now_id, now_ms, now_iso, sanitize_id
from core_heart.core.json_store import JsonDocumentStore, coerce_list
from core_heart.hacoin.event_log import HaCoinEventLog

logger = logging.getLogger(__name__)

CONSUME_DEFAULT_TO = "meaning-cross"

# Fields the filtered app path keeps; everything else in the payload is ignored.
_APP_FIELDS = ("roomId", "userId", "messageId", "kind", "inhaleId", "summary")


def _default_log() -> Dict[str, Any]:
    return {"ok": True, "items": []}


def _backfill_primary_ids(document):
    """v0 -> v1: items must be objects, and every item gets a primary id"""
    document = coerce_list(document, "items")
    for entry in document["items"]:
        if not entry.get("id"):
            entry["id"] = str(entry.get("messageId") or now_id("inhale"))
    return document


def _optional_str(value) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


class BreathStore:
    """
    File-backed breath log.

    Mark-consumed writes its companion reward events to the secondary
    ha-coin log it was constructed with.
    """

    def __init__(
        self,
        config: CoreHeartConfig,
        event_log: HaCoinEventLog,
        error_handler: Optional[ErrorHandler] = None
    ):
        self.config = config
        self.event_log = event_log
        self.store = JsonDocumentStore(
            config.breath_log_path,
            _default_log,
            migrations=[_backfill_primary_ids],
            category=ErrorCategory.BREATH_LOG,
            error_handler=error_handler,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def submit(self, payload: Dict[str, Any], apply_filter: bool = True) -> SubmitResult:
        """
        Store one inbound fragment.

        apply_filter=True is the app path: unsafe text is dropped silently
        (ok=True, dropped=True) and only the known correlation fields are kept.
        apply_filter=False is the legacy raw path: no filter, and every
        payload field is kept as sent.

        Raises:
            ValidationError: text is empty after trimming
        """
        payload = payload or {}
        text = str(payload.get("text") or "").strip()
        if not text:
            raise ValidationError("text is empty", ErrorCodes.TEXT_EMPTY)

        if apply_filter:
            reason = drop_reason(
                text,
                max_length=self.config.filter_max_length,
                repeat_run=self.config.filter_repeat_run,
            )
            if reason:
                logger.info(f"Breath dropped ({reason}): {text[:20]!r}")
                return SubmitResult(ok=True, dropped=True)

        item_id = str(payload.get("id") or payload.get("messageId") or now_id("inhale"))

        if apply_filter:
            fields = {key: _optional_str(payload.get(key)) for key in _APP_FIELDS}
            entry = {key: value for key, value in fields.items() if value is not None}
            if payload.get("createdAt") is not None:
                entry["createdAt"] = payload["createdAt"]
        else:
            entry = dict(payload)

        entry.update({"id": item_id, "text": text, "receivedAt": now_ms()})
        item = BreathItem.from_dict(entry)

        self._prepend(item)
        logger.info(f"Received breath {item.id} (message {item.message_id}, room {item.room_id})")
        return SubmitResult(ok=True, item=item)

    def add_restored(self, text: str, message_id: str, room_id: str, restored_from: str) -> BreathItem:
        """Re-enter a fragment that came back from quarantine as a brand new item."""
        item = BreathItem(
            id=now_id("restored"),
            text=text,
            received_at=now_ms(),
            message_id=message_id,
            room_id=room_id,
            restored_from=restored_from,
        )
        self._prepend(item)
        logger.info(f"Restored breath {item.id} from {restored_from}")
        return item

    def _prepend(self, item: BreathItem) -> None:
        with self.store.lock:
            log = self.store.load()
            log["items"].insert(0, item.to_dict())
            log["items"] = log["items"][:self.config.breath_log_cap]
            self.store.save(log)

    def delete_by_id(self, raw_id) -> int:
        """Remove the item addressed by id (or its messageId alias). Returns 0 or 1."""
        key = self._require_key(raw_id)
        with self.store.lock:
            log = self.store.load()
            index = self._find_index(log["items"], key)
            if index is None:
                return 0
            del log["items"][index]
            self.store.save(log)
        logger.info(f"Deleted breath {key}")
        return 1

    def remove_matching(
        self,
        message_id: Optional[str] = None,
        received_at: Optional[int] = None,
        text: Optional[str] = None
    ) -> Optional[BreathItem]:
        """
        Best-effort removal used when a fragment moves to quarantine.

        Looks for a match by messageId first, then receivedAt, then exact
        text. Nothing found is not an error - returns None.
        """
        with self.store.lock:
            log = self.store.load()
            items = log["items"]

            index = None
            if message_id:
                index = next((i for i, it in enumerate(items)
                              if it.get("messageId") and str(it["messageId"]) == str(message_id)), None)
            if index is None and received_at:
                index = next((i for i, it in enumerate(items)
                              if it.get("receivedAt") and it["receivedAt"] == received_at), None)
            if index is None and text:
                index = next((i for i, it in enumerate(items)
                              if str(it.get("text") or "").strip() == text), None)

            if index is None:
                return None

            removed = items.pop(index)
            self.store.save(log)

        return BreathItem.from_dict(removed)

    def mark_consumed(
        self,
        raw_id,
        to: Optional[str] = None,
        reason: Optional[str] = None,
        user_id: Optional[str] = None,
        persona: Optional[str] = None,
        tags: Optional[List[Any]] = None
    ) -> ConsumeResult:
        """
        Annotate a breath as consumed and emit its action/reward event pair.

        A missing item is reported as a warning, never a failure, so the
        client's flow is not interrupted.

        Raises:
            ValidationError: id is blank
        """
        key = str(raw_id or "").strip()
        if not key:
            raise ValidationError("id is empty", ErrorCodes.ID_EMPTY)

        to = str(to or CONSUME_DEFAULT_TO).strip()
        reason = str(reason or "MOVED").strip()
        user_id = str(user_id or "web").strip()
        persona = str(persona or "haru").strip()
        tags = list(tags) if isinstance(tags, list) else []

        with self.store.lock:
            log = self.store.load()
            index = self._find_index(log["items"], key)
            if index is None:
                logger.warning(f"Consume requested for unknown breath {key}")
                return ConsumeResult(ok=True, warning="not found")

            item = BreathItem.from_dict(log["items"][index])
            item.consumed_at = now_ms()
            item.consumed_to = to
            item.consumed_reason = reason
            item.consumed_tags = tags
            log["items"][index] = item.to_dict()
            self.store.save(log)

        at = now_iso()
        meta = {"to": to, "reason": reason, "tags": tags}
        correlation = {"user_id": user_id, "persona": persona, "message_id": key, "meta": meta, "at": at}
        self.event_log.record(HaCoinEventType.ACTION, 0, "BREATH_CONSUME", **correlation)
        self.event_log.record(
            HaCoinEventType.REWARD,
            1,
            "BREATH_CONSUME_TO_CROSS" if to == CONSUME_DEFAULT_TO else "BREATH_CONSUME",
            **correlation
        )

        logger.info(f"Breath {key} consumed to {to} ({reason})")
        return ConsumeResult(ok=True, item=item)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """The whole stored document."""
        return self.store.load()

    def items(self) -> List[BreathItem]:
        return [BreathItem.from_dict(entry) for entry in self.store.load()["items"]]

    def recent(self, limit=None) -> List[BreathItem]:
        limit = clamp_limit(limit, self.config.breath_recent_default, 1, self.config.breath_log_cap)
        return self.items()[:limit]

    def recent_inhales(self, limit=None) -> List[BreathItem]:
        """Same storage viewed as recall units, with the inhale page size."""
        limit = clamp_limit(limit, self.config.inhale_recent_default, 1, self.config.inhale_recent_max)
        return self.items()[:limit]

    def get_by_id(self, raw_id) -> BreathItem:
        """
        Raises:
            ValidationError: id is blank after sanitizing
            NotFoundError: no item with that id or messageId
        """
        key = self._require_key(raw_id)
        items = self.store.load()["items"]
        index = self._find_index(items, key)
        if index is None:
            raise NotFoundError(f"no breath {key}", ErrorCodes.NOT_FOUND)
        return BreathItem.from_dict(items[index])

    # ------------------------------------------------------------------

    @staticmethod
    def _require_key(raw_id) -> str:
        key = sanitize_id(raw_id)
        if not key:
            raise ValidationError("id is empty", ErrorCodes.ID_EMPTY)
        return key

    @staticmethod
    def _find_index(items: List[Dict[str, Any]], key: str) -> Optional[int]:
        for index, entry in enumerate(items):
            if BreathItem.from_dict(entry).matches(key):
                return index
        return None
