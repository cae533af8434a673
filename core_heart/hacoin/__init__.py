from core_heart.hacoin.event_log import HaCoinEventLog
from core_heart.hacoin.ledger import HaCoinLedger

__all__ = ["HaCoinEventLog", "HaCoinLedger"]
