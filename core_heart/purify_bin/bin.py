"""
Purify Bin - quarantine between the breath log and meetings

A fragment lives in at most one of {breath log, purify bin}. Every move is
remove-from-source first, then add-to-destination; the two files are
written separately, there is no shared transaction.
"""
import logging
from typing import Dict, List, Optional, Any

from core_heart.breath_log.store import BreathStore
from core_heart.core.config import CoreHeartConfig
from core_heart.core.datashapes import BreathItem, MeetingData, PurifyItem, PurifySource
from core_heart.core.error_handler import (
    ErrorHandler,
    ErrorCategory,
    ErrorCodes,
    NotFoundError,
    ValidationError,
)
from core_heart.core.identifiers import now_id, now_ms
from core_heart.core.json_store import JsonDocumentStore, coerce_list
from core_heart.meetings.store import MeetingStore

logger = logging.getLogger(__name__)

RESTORED_FROM = "purify-bin"
BIN_VERSION = 1


def _default_bin() -> Dict[str, Any]:
    return {"version": BIN_VERSION, "updatedAt": now_ms(), "items": []}


def _coerce_items(document):
    """v0 -> v1: items must be a list of objects"""
    document.setdefault("version", BIN_VERSION)
    return coerce_list(document, "items")


class PurifyBin:

    def __init__(
        self,
        config: CoreHeartConfig,
        breath_store: BreathStore,
        meeting_store: MeetingStore,
        error_handler: Optional[ErrorHandler] = None
    ):
        self.config = config
        self.breath_store = breath_store
        self.meeting_store = meeting_store
        self.store = JsonDocumentStore(
            config.purify_bin_path,
            _default_bin,
            migrations=[_coerce_items],
            category=ErrorCategory.PURIFY_BIN,
            error_handler=error_handler,
        )

    def move(
        self,
        text,
        reason: Optional[str] = None,
        room_id: Optional[str] = None,
        message_id: Optional[str] = None,
        received_at=None,
        tags: Optional[List[Any]] = None
    ) -> PurifyItem:
        """
        Quarantine a fragment.

        The matching breath (messageId, then receivedAt, then exact text)
        is removed if it can be found; a miss is not an error.

        Raises:
            ValidationError: text is empty after trimming
        """
        text = str(text or "").strip()
        if not text:
            raise ValidationError("text is empty", ErrorCodes.TEXT_EMPTY)

        message_id = str(message_id) if message_id else None
        room_id = str(room_id) if room_id else None
        received_at = self._parse_received_at(received_at)

        removed = self.breath_store.remove_matching(message_id=message_id, received_at=received_at, text=text)
        if removed is None:
            logger.warning(f"No breath matched the fragment moved to purify bin ({text[:20]!r})")

        item = PurifyItem(
            id=now_id("purify"),
            text=text,
            moved_at=now_ms(),
            reason=str(reason or "hold").strip() or "hold",
            source=PurifySource(room_id=room_id, message_id=message_id, received_at=received_at),
            tags=list(tags) if isinstance(tags, list) else [],
        )

        with self.store.lock:
            purify = self.store.load()
            purify["items"].insert(0, item.to_dict())
            self._save(purify)

        logger.info(f"Moved to purify bin as {item.id} ({item.reason})")
        return item

    def restore(self, raw_id) -> BreathItem:
        """
        Send a quarantined fragment back to the breath log as a new item.

        Raises:
            ValidationError: id is blank
            NotFoundError: no bin item with that id
        """
        item = self._take(raw_id)
        source = item.source
        restored = self.breath_store.add_restored(
            text=item.text,
            message_id=source.message_id or f"restored-{now_ms()}",
            room_id=source.room_id or RESTORED_FROM,
            restored_from=RESTORED_FROM,
        )
        logger.info(f"Restored purify item {item.id} as breath {restored.id}")
        return restored

    def send_to_meeting(self, raw_id) -> MeetingData:
        """
        Hand a quarantined fragment to a fresh meeting.

        Raises:
            ValidationError: id is blank, or the stored text is empty
            NotFoundError: no bin item with that id
        """
        item = self._take(raw_id)
        meeting = self.meeting_store.create(
            item.text,
            message_id=item.source.message_id,
            room_id=item.source.room_id,
            received_at=item.source.received_at,
        )
        logger.info(f"Purify item {item.id} sent to meeting {meeting.meeting_id}")
        return meeting

    def delete(self, raw_id) -> PurifyItem:
        """
        Raises:
            ValidationError: id is blank
            NotFoundError: no bin item with that id
        """
        item = self._take(raw_id)
        logger.info(f"Deleted purify item {item.id}")
        return item

    def list(self) -> Dict[str, Any]:
        """The whole bin document, as stored."""
        return self.store.load()

    def items(self) -> List[PurifyItem]:
        return [PurifyItem.from_dict(entry) for entry in self.store.load()["items"]]

    # ------------------------------------------------------------------

    def _take(self, raw_id) -> PurifyItem:
        """Remove and return one bin item by exact id."""
        key = str(raw_id or "").strip()
        if not key:
            raise ValidationError("id is empty", ErrorCodes.ID_EMPTY)

        with self.store.lock:
            purify = self.store.load()
            for index, entry in enumerate(purify["items"]):
                if str(entry.get("id")) == key:
                    break
            else:
                raise NotFoundError(f"no purify item {key}", ErrorCodes.NOT_FOUND)

            del purify["items"][index]
            self._save(purify)

        return PurifyItem.from_dict(entry)

    def _save(self, purify: Dict[str, Any]) -> None:
        purify["updatedAt"] = now_ms()
        self.store.save(purify)

    @staticmethod
    def _parse_received_at(value) -> Optional[int]:
        if value is None or value == "" or isinstance(value, bool):
            return None
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return None
