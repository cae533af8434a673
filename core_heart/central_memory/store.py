"""
Central Memory - the durable, capped list of promoted definitions

Promotion is the only way in: either from a meeting (promote) or the
explicit direct-write path for apps that have no meeting. Definitions are
never edited or removed here.
"""
import logging
from typing import Dict, List, Optional, Any

from core_heart.core.config import CoreHeartConfig
from core_heart.core.datashapes import CentralDefinition
from core_heart.core.error_handler import (
    ErrorHandler,
    ErrorCategory,
    ErrorCodes,
    ValidationError,
)
from core_heart.core.identifiers import now_id, now_iso, sanitize_id
from core_heart.core.json_store import JsonDocumentStore, coerce_list

logger = logging.getLogger(__name__)

DIRECT_WRITE_META = {"from": "app-direct"}


def _default_central() -> Dict[str, Any]:
    return {"ok": True, "items": []}


def _rename_legacy_central_key(document):
    """v0 -> v1: early files kept the list under `central`"""
    if not isinstance(document.get("items"), list) and isinstance(document.get("central"), list):
        document["items"] = document.pop("central")
    return document


def _coerce_items(document):
    """v1 -> v2: items must be a list of objects"""
    return coerce_list(document, "items")


def _optional_str(value) -> Optional[str]:
    return str(value) if value else None


class CentralMemory:

    def __init__(self, config: CoreHeartConfig, error_handler: Optional[ErrorHandler] = None):
        self.config = config
        self.store = JsonDocumentStore(
            config.central_memory_path,
            _default_central,
            migrations=[_rename_legacy_central_key, _coerce_items],
            category=ErrorCategory.CENTRAL_MEMORY,
            error_handler=error_handler,
        )

    def promote(self, meeting_id, text, summary=None, topic=None) -> CentralDefinition:
        """
        Commit a meeting's chosen sentence.

        Raises:
            ValidationError: meetingId empty after sanitizing, or text empty
        """
        safe_meeting_id = sanitize_id(meeting_id)
        final_text = str(text or "").strip()
        if not safe_meeting_id:
            raise ValidationError("meetingId is required", ErrorCodes.MEETING_ID_EMPTY)
        if not final_text:
            raise ValidationError("text is required", ErrorCodes.TEXT_EMPTY)

        definition = CentralDefinition(
            id=now_id("def"),
            text=final_text,
            summary=str(summary or final_text).strip(),
            topic=_optional_str(topic),
            promoted_at=now_iso(),
            meta={"meetingId": safe_meeting_id},
        )
        self._prepend(definition)

        logger.info(f"Central definition stored: {definition.id} from meeting {safe_meeting_id}")
        return definition

    def direct_write(self, payload: Dict[str, Any]) -> CentralDefinition:
        """
        Store a definition without a meeting.

        Accepts `body` or `text`, `title` or `summary`, and optionally `id`,
        `topic`, `promotedAt` and `meta` (default {"from": "app-direct"}).

        Raises:
            ValidationError: body/text empty
        """
        payload = payload or {}
        text = str(payload.get("body") or payload.get("text") or "").strip()
        if not text:
            raise ValidationError("body/text is empty", ErrorCodes.TEXT_EMPTY)

        meta = payload.get("meta")
        definition = CentralDefinition(
            id=str(payload.get("id") or now_id("def")),
            text=text,
            summary=str(payload.get("title") or payload.get("summary") or text).strip(),
            topic=_optional_str(payload.get("topic")),
            promoted_at=str(payload["promotedAt"]) if payload.get("promotedAt") else now_iso(),
            meta=meta if meta is not None else dict(DIRECT_WRITE_META),
        )
        self._prepend(definition)

        logger.info(f"Central definition stored directly: {definition.id}")
        return definition

    def list(self) -> Dict[str, Any]:
        """The whole capped document, newest first."""
        return self.store.load()

    def definitions(self) -> List[CentralDefinition]:
        return [CentralDefinition.from_dict(entry) for entry in self.store.load()["items"]]

    def _prepend(self, definition: CentralDefinition) -> None:
        with self.store.lock:
            central = self.store.load()
            central["items"].insert(0, definition.to_dict())
            central["items"] = central["items"][:self.config.central_memory_cap]
            self.store.save(central)
