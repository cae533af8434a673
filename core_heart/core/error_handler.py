#!/usr/bin/env python3
"""
ErrorHandler - Centralized exception handling for the lifecycle stores

Two halves:
- Exceptions the stores raise (ValidationError, NotFoundError, ...). They
  carry a short machine-readable `code` that the HTTP boundary hands back.
- ErrorHandler, which records and logs failures that get absorbed instead
  of propagated (recovered storage corruption, best-effort misses,
  unexpected errors caught at the operation boundary).

Design principle: nothing in the core crashes the process.
"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List


# =============================================================================
# EXCEPTIONS
# =============================================================================

class CoreHeartError(Exception):
    """Base class for failures a caller can act on."""

    code = "internal_error"

    def __init__(self, message: str = "", code: Optional[str] = None):
        super().__init__(message or self.__class__.__name__)
        if code:
            self.code = code
        self.message = message or self.__class__.__name__


class ValidationError(CoreHeartError):
    """A required field is empty or invalid (blank text, blank id, bad delta)."""
    code = "invalid"


class NotFoundError(CoreHeartError):
    """The referenced id does not exist in the store."""
    code = "not_found"


class StorageWriteError(CoreHeartError):
    """Writing a collection back to disk failed (disk full, permissions, etc.)."""
    code = "storage_write_failed"


class ErrorCodes:
    """Machine-readable reasons returned to callers."""
    TEXT_EMPTY = "text_empty"
    ID_EMPTY = "id_empty"
    MEETING_ID_EMPTY = "meeting_id_empty"
    LINES_EMPTY = "lines_empty"
    DELTA_INVALID = "delta_invalid"
    NOT_FOUND = "not_found"
    NO_JSON = "no_json"
    INTERNAL = "internal_error"


# =============================================================================
# SEVERITY / CATEGORY
# =============================================================================

class ErrorSeverity(Enum):
    """Error severity levels with clear action mappings"""
    CRITICAL_STOP = "critical_stop"       # Data could not be persisted
    HIGH_DEGRADE = "high_degrade"         # Operation failed, caller got an error
    MEDIUM_ALERT = "medium_alert"         # Worth a look, operation continued
    LOW_DEBUG = "low_debug"               # Recovered silently (corrupt file, best-effort miss)


class ErrorCategory(Enum):
    """Where the error happened"""
    BREATH_LOG = "breath_log"
    PURIFY_BIN = "purify_bin"
    MEETING = "meeting"
    CENTRAL_MEMORY = "central_memory"
    HACOIN = "hacoin"

    FILE_OPERATIONS = "file_ops"             # File read/write operations

    GENERAL = "general"


_LOG_LEVELS = {
    ErrorSeverity.CRITICAL_STOP: logging.CRITICAL,
    ErrorSeverity.HIGH_DEGRADE: logging.ERROR,
    ErrorSeverity.MEDIUM_ALERT: logging.WARNING,
    ErrorSeverity.LOW_DEBUG: logging.WARNING,
}


class ErrorHandler:
    """Central place every absorbed error is reported to"""

    MAX_RECENT_ERRORS = 100

    def __init__(self, debug_mode: bool = False):
        self.debug_mode = debug_mode

        self.error_counts = defaultdict(int)        # category_ErrorType -> count
        self.suppressed_errors = defaultdict(int)   # category_ErrorType -> count
        self.last_error_time = {}                   # category_ErrorType -> datetime
        self.recent_errors: List[Dict[str, Any]] = []

        self.logger = logging.getLogger(__name__)

    def handle_error(self,
                     error: Exception,
                     category: ErrorCategory,
                     severity: ErrorSeverity,
                     context: str = "",
                     operation: str = "",
                     suppress_duplicate_seconds: int = 0) -> bool:
        """
        Record and log an error.

        Args:
            error: The exception that occurred
            category: What part of the pipeline it came from
            severity: How severe this error is
            context: Additional context (file path, id, ...)
            operation: What operation was being performed
            suppress_duplicate_seconds: Don't re-log the same error key inside this window

        Returns:
            bool: True if the error was absorbed, False if the caller should re-raise
        """
        error_key = f"{category.value}_{type(error).__name__}"
        current_time = datetime.now()

        self.error_counts[error_key] += 1

        if self._should_suppress_error(error_key, current_time, suppress_duplicate_seconds):
            self.suppressed_errors[error_key] += 1
            return True

        self.last_error_time[error_key] = current_time

        error_message = self._format_error_message(error, category, context, operation)

        self.recent_errors.append({
            'error_id': str(uuid.uuid4()),
            'timestamp': current_time,
            'category': category.value,
            'severity': severity.value,
            'error_type': type(error).__name__,
            'message': str(error),
            'context': context,
            'operation': operation,
        })
        if len(self.recent_errors) > self.MAX_RECENT_ERRORS:
            self.recent_errors.pop(0)

        self.logger.log(
            _LOG_LEVELS.get(severity, logging.ERROR),
            f"{category.value}: {error_message}",
            exc_info=self.debug_mode and severity != ErrorSeverity.LOW_DEBUG,
        )

        return severity != ErrorSeverity.CRITICAL_STOP

    def _should_suppress_error(self, error_key: str, current_time: datetime, window_seconds: int) -> bool:
        if window_seconds <= 0 or error_key not in self.last_error_time:
            return False
        return (current_time - self.last_error_time[error_key]).total_seconds() < window_seconds

    def _format_error_message(self, error: Exception, category: ErrorCategory,
                              context: str, operation: str) -> str:
        """Format error message consistently with all metadata"""
        base_msg = str(error)
        if len(base_msg) > 100:
            base_msg = base_msg[:100] + "..."

        if context:
            base_msg = f"{context}: {base_msg}"

        if operation:
            base_msg = f"During {operation} - {base_msg}"

        error_key = f"{category.value}_{type(error).__name__}"
        count = self.error_counts.get(error_key, 1)
        if count > 1:
            base_msg += f" (#{count})"

        suppressed_count = self.suppressed_errors.get(error_key, 0)
        if suppressed_count > 0:
            base_msg += f" [+{suppressed_count} suppressed]"
            self.suppressed_errors[error_key] = 0

        return base_msg

    def get_error_summary(self) -> Dict[str, Any]:
        """Summary of error patterns, exposed on the health endpoint"""
        total_errors = sum(self.error_counts.values())
        return {
            'total_errors': total_errors,
            'error_counts_by_type': dict(self.error_counts),
            'recent_error_count': len(self.recent_errors),
            'categories_with_errors': sorted(set(e['category'] for e in self.recent_errors)),
            'most_common_errors': sorted(self.error_counts.items(), key=lambda x: x[1], reverse=True)[:5],
        }

    def create_context_manager(self, category: ErrorCategory, severity: ErrorSeverity,
                               operation: str = "", context: str = ""):
        """Create a context manager for wrapping best-effort operations"""
        return ErrorContext(self, category, severity, operation, context)


class ErrorContext:
    """Context manager for handling errors in specific operations"""

    def __init__(self, error_handler: ErrorHandler, category: ErrorCategory,
                 severity: ErrorSeverity, operation: str = "", context: str = ""):
        self.error_handler = error_handler
        self.category = category
        self.severity = severity
        self.operation = operation
        self.context = context

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and issubclass(exc_type, Exception):
            return self.error_handler.handle_error(
                error=exc_val,
                category=self.category,
                severity=self.severity,
                context=self.context,
                operation=self.operation
            )
        return False
