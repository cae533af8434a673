#!/usr/bin/env python3
"""
datashapes.py - Centralized Data Shape Definitions

All dataclasses and enums persisted by the lifecycle stores live here.
No store logic - just what the data looks like on disk and in memory.

Persisted JSON keeps the camelCase field names clients already send
(`receivedAt`, `messageId`, ...). Each shape owns its `to_dict()` /
`from_dict()` pair so the stores never poke at raw keys.

Other files import from here to ensure consistent structures:
    from core_heart.core.datashapes import BreathItem, PurifyItem, MeetingData
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any


# =============================================================================
# HELPERS - camelCase <-> snake_case field maps
# =============================================================================

def _pack(obj: Any, field_map: Dict[str, str]) -> Dict[str, Any]:
    """Serialize mapped attributes, skipping the ones that were never set."""
    data = {}
    for json_key, attr in field_map.items():
        value = getattr(obj, attr)
        if value is not None:
            data[json_key] = value
    return data


def _unpack(data: Dict[str, Any], field_map: Dict[str, str]) -> Dict[str, Any]:
    """Pick mapped keys out of a raw dict as constructor kwargs."""
    return {attr: data[json_key] for json_key, attr in field_map.items() if json_key in data}


def _extra(data: Dict[str, Any], field_map: Dict[str, str]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if k not in field_map}


def _as_int(value: Any, default: int) -> int:
    """Hand-edited files can hold anything where a counter belongs."""
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


# =============================================================================
# ENUMS / CONSTANT SETS
# =============================================================================

class MeetingStatus(Enum):
    """Meeting lifecycle. Meetings are archived, never deleted."""
    OPEN = "open"
    DONE = "done"


class HaCoinEventType:
    """
    Known ledger event types.

    Open taxonomy - stored as plain strings, so new types don't need a
    schema change. These are the ones the core itself writes.
    """
    PROMOTE = "promote"      # primary ledger, delta > 0
    PENALTY = "penalty"      # primary ledger, delta < 0
    ACTION = "action"        # secondary ledger, delta 0 companion event
    REWARD = "reward"        # secondary ledger, consume reward


# =============================================================================
# BREATH LOG
# =============================================================================

@dataclass
class BreathItem:
    """
    One inbound fragment from a client room.

    Addressed by `id` (primary key). `message_id` is accepted as a deprecated
    alias on lookup, but every stored item carries its own `id`.

    `consumed_*` fields are set once by mark-consumed and never cleared.
    `extra` is the escape hatch for payload fields we don't model
    (score, centralTopics, personaHints, inhale, ...) on the legacy raw path.
    """
    # === Identity ===
    id: str
    text: str

    # === Timing ===
    received_at: int                      # server ms, authoritative
    created_at: Optional[int] = None      # client ms, informational

    # === Correlation ===
    room_id: Optional[str] = None
    user_id: Optional[str] = None
    message_id: Optional[str] = None
    kind: Optional[str] = None
    inhale_id: Optional[str] = None
    summary: Optional[str] = None
    restored_from: Optional[str] = None

    # === Consumption ===
    consumed_at: Optional[int] = None
    consumed_to: Optional[str] = None
    consumed_reason: Optional[str] = None
    consumed_tags: Optional[List[Any]] = None

    extra: Dict[str, Any] = field(default_factory=dict)

    FIELDS = {
        "id": "id",
        "text": "text",
        "receivedAt": "received_at",
        "createdAt": "created_at",
        "roomId": "room_id",
        "userId": "user_id",
        "messageId": "message_id",
        "kind": "kind",
        "inhaleId": "inhale_id",
        "summary": "summary",
        "restoredFrom": "restored_from",
        "consumedAt": "consumed_at",
        "consumedTo": "consumed_to",
        "consumedReason": "consumed_reason",
        "consumedTags": "consumed_tags",
    }

    @property
    def is_consumed(self) -> bool:
        return self.consumed_at is not None

    def matches(self, key: str) -> bool:
        """Primary key match, falling back to the legacy messageId alias."""
        if not key:
            return False
        return self.id == key or (self.message_id is not None and self.message_id == key)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update(_pack(self, self.FIELDS))
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BreathItem':
        kwargs = _unpack(data, cls.FIELDS)
        kwargs.setdefault("id", "")
        kwargs["id"] = str(kwargs["id"])
        kwargs["text"] = str(kwargs.get("text") or "")
        kwargs.setdefault("received_at", 0)
        return cls(extra=_extra(data, cls.FIELDS), **kwargs)


@dataclass
class SubmitResult:
    """Outcome of a breath submission. `dropped` means filtered, not failed."""
    ok: bool = True
    dropped: bool = False
    item: Optional[BreathItem] = None


@dataclass
class ConsumeResult:
    """Outcome of mark-consumed. A missing item is a warning, not a failure."""
    ok: bool = True
    warning: Optional[str] = None
    item: Optional[BreathItem] = None


# =============================================================================
# PURIFY BIN
# =============================================================================

@dataclass
class PurifySource:
    """Back-reference to where a quarantined fragment came from. Not ownership."""
    room_id: Optional[str] = None
    message_id: Optional[str] = None
    received_at: Optional[int] = None

    FIELDS = {
        "roomId": "room_id",
        "messageId": "message_id",
        "receivedAt": "received_at",
    }

    def to_dict(self) -> Dict[str, Any]:
        return _pack(self, self.FIELDS)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PurifySource':
        return cls(**_unpack(data or {}, cls.FIELDS))


@dataclass
class PurifyItem:
    """A quarantined fragment. Its id is independent of the breath it came from."""
    id: str
    text: str
    moved_at: int
    reason: str = "hold"
    source: PurifySource = field(default_factory=PurifySource)
    tags: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "reason": self.reason,
            "movedAt": self.moved_at,
            "source": self.source.to_dict(),
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PurifyItem':
        tags = data.get("tags")
        return cls(
            id=str(data.get("id") or ""),
            text=str(data.get("text") or ""),
            moved_at=data.get("movedAt") or 0,
            reason=str(data.get("reason") or "hold"),
            source=PurifySource.from_dict(data.get("source")),
            tags=list(tags) if isinstance(tags, list) else [],
        )


# =============================================================================
# MEETINGS
# =============================================================================

@dataclass
class MeetingSource:
    """Denormalized snapshot of the triggering text - not a live reference."""
    text: str
    origin: str = "breath"
    message_id: Optional[str] = None
    room_id: Optional[str] = None
    created_at: Optional[int] = None
    received_at: Optional[int] = None

    FIELDS = {
        "from": "origin",
        "messageId": "message_id",
        "roomId": "room_id",
        "text": "text",
        "createdAt": "created_at",
        "receivedAt": "received_at",
    }

    def to_dict(self) -> Dict[str, Any]:
        return _pack(self, self.FIELDS)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'MeetingSource':
        kwargs = _unpack(data if isinstance(data, dict) else {}, cls.FIELDS)
        kwargs["text"] = str(kwargs.get("text") or "")
        return cls(**kwargs)


@dataclass
class PromotionRecord:
    promoted: bool = False
    central_definition_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"promoted": self.promoted, "centralDefinitionId": self.central_definition_id}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PromotionRecord':
        data = data or {}
        return cls(
            promoted=bool(data.get("promoted", False)),
            central_definition_id=data.get("centralDefinitionId"),
        )


@dataclass
class AfterLanguageVersion:
    """One revision of the line-set a meeting is working towards."""
    v: int
    created_at: str                       # ISO
    lines: List[str] = field(default_factory=list)
    spec_snapshot: Optional[Any] = None
    promotion: Optional[PromotionRecord] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"v": self.v, "createdAt": self.created_at, "lines": list(self.lines)}
        if self.spec_snapshot is not None:
            data["specSnapshot"] = self.spec_snapshot
        if self.promotion is not None:
            data["promotion"] = self.promotion.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AfterLanguageVersion':
        promotion = data.get("promotion")
        lines = data.get("lines")
        return cls(
            v=_as_int(data.get("v") or 0, 0),
            created_at=str(data.get("createdAt") or ""),
            lines=[str(line) for line in lines] if isinstance(lines, list) else [],
            spec_snapshot=data.get("specSnapshot"),
            promotion=PromotionRecord.from_dict(promotion) if isinstance(promotion, dict) else None,
        )


@dataclass
class AfterLanguage:
    current_version: int = 1
    versions: List[AfterLanguageVersion] = field(default_factory=list)

    @property
    def current(self) -> Optional[AfterLanguageVersion]:
        for version in self.versions:
            if version.v == self.current_version:
                return version
        return self.versions[-1] if self.versions else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentVersion": self.current_version,
            "versions": [v.to_dict() for v in self.versions],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AfterLanguage':
        if not isinstance(data, dict):
            data = {}
        versions = data.get("versions")
        return cls(
            current_version=_as_int(data.get("currentVersion") or 1, 1),
            versions=[AfterLanguageVersion.from_dict(v) for v in versions if isinstance(v, dict)]
            if isinstance(versions, list) else [],
        )


@dataclass
class MeetingData:
    """
    One deliberation session, persisted as meetings/<meeting_id>.json.

    `extra` carries whatever the seed template added that we don't model,
    so template-driven fields survive a read/write cycle.
    """
    meeting_id: str
    created_at: int
    source: MeetingSource
    status: MeetingStatus = MeetingStatus.OPEN
    topic: Optional[str] = None
    emotions: Optional[List[str]] = None
    auto_candidates: List[str] = field(default_factory=list)
    after_language: AfterLanguage = field(default_factory=AfterLanguage)
    extra: Dict[str, Any] = field(default_factory=dict)

    KNOWN_KEYS = (
        "meetingId", "createdAt", "status", "source", "topic",
        "emotions", "autoCandidates", "afterLanguage",
    )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "meetingId": self.meeting_id,
            "createdAt": self.created_at,
            "status": self.status.value,
            "source": self.source.to_dict(),
            "autoCandidates": list(self.auto_candidates),
            "afterLanguage": self.after_language.to_dict(),
        })
        if self.topic is not None:
            data["topic"] = self.topic
        if self.emotions is not None:
            data["emotions"] = list(self.emotions)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MeetingData':
        try:
            status = MeetingStatus(data.get("status", "open"))
        except (ValueError, TypeError):
            status = MeetingStatus.OPEN

        emotions = data.get("emotions")
        candidates = []
        raw_candidates = data.get("autoCandidates")
        for candidate in raw_candidates if isinstance(raw_candidates, list) else []:
            # Older records stored candidates as {"text": ...}
            if isinstance(candidate, dict):
                candidate = candidate.get("text", "")
            candidates.append(str(candidate))

        return cls(
            meeting_id=str(data.get("meetingId") or ""),
            created_at=data.get("createdAt") or 0,
            source=MeetingSource.from_dict(data.get("source")),
            status=status,
            topic=data.get("topic"),
            emotions=[str(e) for e in emotions] if isinstance(emotions, list) else None,
            auto_candidates=candidates,
            after_language=AfterLanguage.from_dict(data.get("afterLanguage")),
            extra={k: v for k, v in data.items() if k not in cls.KNOWN_KEYS},
        )


# =============================================================================
# CENTRAL MEMORY
# =============================================================================

@dataclass
class CentralDefinition:
    """A promoted, durable statement. Never mutated after creation."""
    id: str
    text: str
    summary: str
    promoted_at: str                      # ISO
    topic: Optional[str] = None
    route: str = "central"
    source: str = "meeting"
    meta: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "text": self.text,
            "summary": self.summary,
            "route": self.route,
            "source": self.source,
            "promotedAt": self.promoted_at,
        }
        if self.topic is not None:
            data["topic"] = self.topic
        if self.meta is not None:
            data["meta"] = self.meta
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CentralDefinition':
        text = str(data.get("text") or "")
        return cls(
            id=str(data.get("id") or ""),
            text=text,
            summary=str(data.get("summary") or text),
            promoted_at=str(data.get("promotedAt") or ""),
            topic=data.get("topic"),
            route=str(data.get("route") or "central"),
            source=str(data.get("source") or "meeting"),
            meta=data.get("meta"),
        )


# =============================================================================
# HA-COIN LEDGER
# =============================================================================

@dataclass
class HaCoinEvent:
    """
    One ledger entry. Created on a lifecycle transition, never mutated.

    Primary ledger events always carry the string correlation fields
    (empty when unknown); secondary events add `persona` and `meta`.
    """
    id: str
    at: str                               # ISO
    type: str
    delta: float
    reason: str = ""
    user_id: Optional[str] = None
    message_id: Optional[str] = None
    inhale_id: Optional[str] = None
    persona: Optional[str] = None
    summary: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None

    FIELDS = {
        "id": "id",
        "at": "at",
        "type": "type",
        "delta": "delta",
        "reason": "reason",
        "userId": "user_id",
        "messageId": "message_id",
        "inhaleId": "inhale_id",
        "persona": "persona",
        "summary": "summary",
        "meta": "meta",
    }

    def to_dict(self) -> Dict[str, Any]:
        return _pack(self, self.FIELDS)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HaCoinEvent':
        kwargs = _unpack(data, cls.FIELDS)
        kwargs.setdefault("id", "")
        kwargs.setdefault("at", "")
        kwargs.setdefault("type", "")
        kwargs.setdefault("delta", 0)
        return cls(**kwargs)
