#!/usr/bin/env python3
"""
JsonlAppender - append-only JSON Lines file.

This is the audit-trail layer: one JSON object per line, never rewritten,
never truncated, never read back by the pipeline itself.

Design principle: an audit write failing NEVER fails the lifecycle
operation that triggered it. Failures are routed to the ErrorHandler and
reported through the return value.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any

from core_heart.core.error_handler import ErrorHandler, ErrorCategory, ErrorSeverity


class JsonlAppender:
    """
    Appends one JSON object per line.

    Usage:
        log = JsonlAppender("public/data/hacoin-events.jsonl")
        log.append({"type": "action", "delta": 0})
    """

    def __init__(
        self,
        path,
        error_handler: Optional[ErrorHandler] = None,
        category: ErrorCategory = ErrorCategory.FILE_OPERATIONS
    ):
        self.path = Path(path)
        self.error_handler = error_handler
        self.category = category
        self._logger = logging.getLogger(__name__)

    def append(self, entry: Dict[str, Any]) -> bool:
        """
        Append a single entry.

        Returns:
            True if the line was written, False if the write failed
        """
        try:
            line = json.dumps(entry, ensure_ascii=False) + "\n"
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)
            return True
        except (OSError, TypeError, ValueError) as e:
            self._handle_error(e)
            return False

    def _handle_error(self, error: Exception) -> None:
        if self.error_handler:
            self.error_handler.handle_error(
                error=error,
                category=self.category,
                severity=ErrorSeverity.MEDIUM_ALERT,
                context=str(self.path),
                operation="jsonl_append"
            )
        else:
            self._logger.warning(f"JSONL append failed ({self.path}): {error}")
