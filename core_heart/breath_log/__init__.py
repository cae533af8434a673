from core_heart.breath_log.store import BreathStore

__all__ = ["BreathStore"]
