"""
CoreHeart - every lifecycle store wired from one configuration

Build one of these at process start and hand it to the HTTP layer or the
inspector. Stores never look each other up; the cross-store links
(purify bin -> breath log / meetings, breath log -> secondary ledger) are
passed in here.
"""
import logging
from typing import Optional

from core_heart.breath_log.store import BreathStore
from core_heart.central_memory.store import CentralMemory
from core_heart.core.config import CoreHeartConfig, get_config
from core_heart.core.error_handler import ErrorHandler
from core_heart.hacoin.event_log import HaCoinEventLog
from core_heart.hacoin.ledger import HaCoinLedger
from core_heart.meetings.store import MeetingStore
from core_heart.purify_bin.bin import PurifyBin

logger = logging.getLogger(__name__)


class CoreHeart:

    def __init__(self, config: Optional[CoreHeartConfig] = None, error_handler: Optional[ErrorHandler] = None):
        self.config = config or get_config()
        self.error_handler = error_handler or ErrorHandler(debug_mode=self.config.debug)

        issues = self.config.validate_config()
        for issue in issues:
            logger.warning(f"Config: {issue}")

        self.config.ensure_directories()

        self.event_log = HaCoinEventLog(self.config.hacoin_events_path, error_handler=self.error_handler)
        self.ledger = HaCoinLedger(self.config, error_handler=self.error_handler)
        self.breath = BreathStore(self.config, self.event_log, error_handler=self.error_handler)
        self.meetings = MeetingStore(self.config, error_handler=self.error_handler)
        self.purify = PurifyBin(self.config, self.breath, self.meetings, error_handler=self.error_handler)
        self.central = CentralMemory(self.config, error_handler=self.error_handler)

        logger.info(f"Core heart ready at {self.config.base_dir}")
