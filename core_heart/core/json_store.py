#!/usr/bin/env python3
"""
json_store.py - Whole-document JSON persistence for one collection

Every lifecycle store sits on one of these. The contract is deliberately
narrow - load() the whole document, save() the whole document - so the
backing can later be swapped for something transactional without touching
call sites.

Follows the migration pattern from the sidebar persistence layer:
- Documents carry a `schemaVersion`
- Migrations run in order, once, at load time
- Each migration is a plain function named after what it fixes

Reads never fail: a missing file is the default document, a corrupt or
wrongly shaped file is reported as StorageCorruptionRecovered and replaced
by the default.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from core_heart.core.error_handler import (
    ErrorHandler,
    ErrorCategory,
    ErrorSeverity,
    StorageWriteError,
)

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
Migration = Callable[[Document], Document]

SCHEMA_VERSION_KEY = "schemaVersion"


class StorageCorruptionRecovered(Exception):
    """Reported (never raised) when a document had to be replaced by its default."""
    pass


def coerce_list(document: Document, key: str) -> Document:
    """Force document[key] to a list of objects, dropping anything else."""
    value = document.get(key)
    if not isinstance(value, list):
        document[key] = []
    else:
        document[key] = [entry for entry in value if isinstance(entry, dict)]
    return document


class JsonDocumentStore:
    """
    One JSON document on disk, read and written as a whole.

    Usage:
        store = JsonDocumentStore(path, lambda: {"ok": True, "items": []},
                                  migrations=[_coerce_items])
        with store.lock:
            doc = store.load()
            doc["items"].insert(0, new_item)
            store.save(doc)

    `lock` serializes read-modify-write cycles inside this process.
    Other processes writing the same file still race (last writer wins).
    """

    def __init__(
        self,
        path,
        default_factory: Callable[[], Document],
        migrations: Optional[List[Migration]] = None,
        category: ErrorCategory = ErrorCategory.FILE_OPERATIONS,
        error_handler: Optional[ErrorHandler] = None
    ):
        self.path = Path(path)
        self.default_factory = default_factory
        self.migrations = list(migrations or [])
        self.schema_version = len(self.migrations)
        self.category = category
        self.error_handler = error_handler
        self.lock = threading.RLock()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Document:
        """Read the whole document, migrated to the current schema."""
        if not self.path.exists():
            return self._fresh()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            self._report_corruption(f"unreadable document ({type(e).__name__}: {e})")
            return self._fresh()

        if not isinstance(document, dict):
            self._report_corruption(f"expected an object, found {type(document).__name__}")
            return self._fresh()

        return self._migrate(document)

    def save(self, document: Document) -> None:
        """Write the whole document atomically (temp file + rename)."""
        document[SCHEMA_VERSION_KEY] = self.schema_version
        payload = json.dumps(document, ensure_ascii=False, indent=2)

        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                delete=False,
                dir=str(self.path.parent),
                prefix=self.path.name + ".tmp.",
            ) as f:
                tmp_path = Path(f.name)
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(str(tmp_path), str(self.path))
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            if self.error_handler:
                self.error_handler.handle_error(
                    e, self.category, ErrorSeverity.CRITICAL_STOP,
                    context=str(self.path), operation="save"
                )
            raise StorageWriteError(f"could not write {self.path.name}: {e}") from e

    def _fresh(self) -> Document:
        document = self.default_factory()
        document[SCHEMA_VERSION_KEY] = self.schema_version
        return document

    def _migrate(self, document: Document) -> Document:
        version = document.get(SCHEMA_VERSION_KEY, 0)
        if not isinstance(version, int) or version < 0:
            version = 0

        if version >= self.schema_version:
            return document

        logger.info(f"Migrating {self.path.name} from v{version} to v{self.schema_version}")
        for migration in self.migrations[version:]:
            document = migration(document)
            logger.debug(f"Applied {migration.__name__} to {self.path.name}")

        document[SCHEMA_VERSION_KEY] = self.schema_version
        return document

    def _report_corruption(self, detail: str) -> None:
        error = StorageCorruptionRecovered(detail)
        if self.error_handler:
            self.error_handler.handle_error(
                error, self.category, ErrorSeverity.LOW_DEBUG,
                context=str(self.path), operation="load"
            )
        else:
            logger.warning(f"{self.path}: {detail} - using default document")
