from core_heart.meetings.store import MeetingStore

__all__ = ["MeetingStore"]
