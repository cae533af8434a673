"""
Meeting Store - one JSON file per deliberation, meetings/<meetingId>.json

Meetings are created from a breath or a purify item, carry three
auto-generated candidate phrasings and a versioned after-language
history. They are archived (status "done"), never deleted here.
"""
import logging
import threading
from typing import Dict, List, Optional, Any

from core_heart.core.config import CoreHeartConfig
from core_heart.core.datashapes import (
    AfterLanguage,
    AfterLanguageVersion,
    MeetingData,
    MeetingSource,
    MeetingStatus,
    PromotionRecord,
)
from core_heart.core.error_handler import (
    ErrorHandler,
    ErrorCategory,
    ErrorCodes,
    NotFoundError,
    ValidationError,
)
from core_heart.core.identifiers import now_id, now_iso, now_ms, sanitize_id
from core_heart.core.json_store import JsonDocumentStore, SCHEMA_VERSION_KEY
from core_heart.meetings.candidates import generate_auto_candidates

logger = logging.getLogger(__name__)


def _default_meeting() -> Dict[str, Any]:
    return {}


def _candidates_as_strings(document):
    """v0 -> v1: autoCandidates were stored as [{"text": ...}]"""
    candidates = document.get("autoCandidates")
    if isinstance(candidates, list):
        document["autoCandidates"] = [
            str(c.get("text", "")) if isinstance(c, dict) else str(c) for c in candidates
        ]
    else:
        document["autoCandidates"] = []
    return document


def _coerce_meeting_shape(document):
    """v1 -> v2: source and afterLanguage must be objects, versions numbered"""
    source = document.get("source")
    if "source" in document and not isinstance(source, dict):
        document["source"] = {}
    document["afterLanguage"] = AfterLanguage.from_dict(document.get("afterLanguage")).to_dict()
    return document


MEETING_MIGRATIONS = [_candidates_as_strings, _coerce_meeting_shape]


class MeetingStore:

    def __init__(self, config: CoreHeartConfig, error_handler: Optional[ErrorHandler] = None):
        self.config = config
        self.error_handler = error_handler
        self._stores: Dict[str, JsonDocumentStore] = {}
        self._stores_lock = threading.Lock()
        self.template = JsonDocumentStore(
            config.meeting_template_path,
            _default_meeting,
            migrations=MEETING_MIGRATIONS,
            category=ErrorCategory.MEETING,
            error_handler=error_handler,
        )

    def _store_for(self, meeting_id: str, create: bool = False) -> JsonDocumentStore:
        """Shared store for a meeting. Only meetings on disk (or being created) are cached."""
        with self._stores_lock:
            store = self._stores.get(meeting_id)
            if store is None:
                store = JsonDocumentStore(
                    self.config.meetings_dir / f"{meeting_id}.json",
                    _default_meeting,
                    migrations=MEETING_MIGRATIONS,
                    category=ErrorCategory.MEETING,
                    error_handler=self.error_handler,
                )
                if create or store.exists():
                    self._stores[meeting_id] = store
            return store

    def create(
        self,
        source_text,
        meeting_id: Optional[str] = None,
        message_id: Optional[str] = None,
        room_id: Optional[str] = None,
        created_at=None,
        received_at=None
    ) -> MeetingData:
        """
        Write a fresh meeting for `source_text`.

        Reusing an id overwrites the record but keeps its createdAt.
        Whatever the seed template carries beyond the known fields is kept.

        Raises:
            ValidationError: source text is empty after trimming
        """
        text = str(source_text or "").strip()
        if not text:
            raise ValidationError("source text is empty", ErrorCodes.TEXT_EMPTY)

        meeting_id = sanitize_id(meeting_id) or sanitize_id(now_id("meet"))
        store = self._store_for(meeting_id, create=True)

        template = self.template.load()
        template.pop(SCHEMA_VERSION_KEY, None)

        with store.lock:
            existing = store.load() if store.exists() else {}

            meeting = MeetingData.from_dict(template)
            meeting.meeting_id = meeting_id
            meeting.created_at = existing.get("createdAt") or template.get("createdAt") or now_ms()
            meeting.status = MeetingStatus.OPEN
            meeting.source = MeetingSource(
                text=text,
                message_id=message_id,
                room_id=room_id,
                created_at=created_at,
                received_at=received_at,
            )
            meeting.auto_candidates = generate_auto_candidates(text)

            store.save(meeting.to_dict())

        logger.info(f"Created meeting {meeting_id} (message {message_id})")
        return meeting

    def get(self, raw_id) -> MeetingData:
        """
        Raises:
            ValidationError: id is blank after sanitizing
            NotFoundError: no file for that meeting
        """
        meeting_id = self._require_id(raw_id)
        store = self._store_for(meeting_id)
        if not store.exists():
            raise NotFoundError(f"no meeting {meeting_id}", ErrorCodes.NOT_FOUND)
        return self._read(store, meeting_id)

    def list_ids(self) -> List[str]:
        """Meeting ids on disk, most recently written first."""
        directory = self.config.meetings_dir
        if not directory.is_dir():
            return []
        files = sorted(directory.glob("*.json"), key=lambda p: p.stat().st_mtime, reverse=True)
        return [path.stem for path in files]

    def add_after_language_version(
        self,
        raw_id,
        lines,
        spec_snapshot: Optional[Any] = None
    ) -> AfterLanguageVersion:
        """
        Append the next after-language revision and make it current.

        Raises:
            ValidationError: blank id, or no non-blank lines
            NotFoundError: no such meeting
        """
        meeting_id = self._require_id(raw_id)
        if isinstance(lines, str):
            lines = lines.splitlines()
        lines = [str(line).strip() for line in lines or [] if str(line).strip()]
        if not lines:
            raise ValidationError("lines are empty", ErrorCodes.LINES_EMPTY)

        store = self._store_for(meeting_id)
        with store.lock:
            if not store.exists():
                raise NotFoundError(f"no meeting {meeting_id}", ErrorCodes.NOT_FOUND)
            meeting = self._read(store, meeting_id)

            version = AfterLanguageVersion(
                v=len(meeting.after_language.versions) + 1,
                created_at=now_iso(),
                lines=lines,
                spec_snapshot=spec_snapshot,
                promotion=PromotionRecord(),
            )
            meeting.after_language.versions.append(version)
            meeting.after_language.current_version = version.v
            store.save(meeting.to_dict())

        logger.info(f"Meeting {meeting_id} after-language v{version.v} ({len(lines)} lines)")
        return version

    def record_promotion(self, raw_id, definition_id: str) -> Optional[AfterLanguageVersion]:
        """
        Mark the current after-language version as promoted.

        Best-effort: a missing meeting or a meeting with no versions yet is
        logged and ignored.
        """
        meeting_id = sanitize_id(raw_id)
        store = self._store_for(meeting_id) if meeting_id else None
        if store is None or not store.exists():
            logger.warning(f"Promotion {definition_id} refers to unknown meeting {raw_id!r}")
            return None

        with store.lock:
            meeting = self._read(store, meeting_id)
            current = meeting.after_language.current
            if current is None:
                logger.info(f"Meeting {meeting_id} has no after-language version to mark promoted")
                return None
            current.promotion = PromotionRecord(promoted=True, central_definition_id=definition_id)
            store.save(meeting.to_dict())

        return current

    def close(self, raw_id) -> MeetingData:
        """
        Raises:
            ValidationError: id is blank after sanitizing
            NotFoundError: no such meeting
        """
        meeting_id = self._require_id(raw_id)
        store = self._store_for(meeting_id)
        with store.lock:
            if not store.exists():
                raise NotFoundError(f"no meeting {meeting_id}", ErrorCodes.NOT_FOUND)
            meeting = self._read(store, meeting_id)
            meeting.status = MeetingStatus.DONE
            store.save(meeting.to_dict())

        logger.info(f"Closed meeting {meeting_id}")
        return meeting

    # ------------------------------------------------------------------

    @staticmethod
    def _read(store: JsonDocumentStore, meeting_id: str) -> MeetingData:
        document = store.load()
        document.setdefault("meetingId", meeting_id)
        return MeetingData.from_dict(document)

    @staticmethod
    def _require_id(raw_id) -> str:
        meeting_id = sanitize_id(raw_id)
        if not meeting_id:
            raise ValidationError("meetingId is empty", ErrorCodes.MEETING_ID_EMPTY)
        return meeting_id
