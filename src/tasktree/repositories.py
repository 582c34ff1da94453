from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from threading import RLock
from typing import Dict, Optional, Union

from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class DocumentStore(ABC):
    """
    Opaque key-value persistence for serialized task documents.

    Stores never raise on save: failures are logged and dropped, the in-memory
    tree stays authoritative until the next successful save.
    """

    backend_name: str = "abstract"

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """Return the text stored under key, or None if absent or unreadable."""

    @abstractmethod
    def save(self, key: str, value: str) -> None:
        """Store text under key, replacing any previous value."""


class InMemoryDocumentStore(DocumentStore):
    """
    Thread-safe in-memory store suitable for testing and default runtime.
    """

    backend_name = "memory"

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._lock = RLock()
        self._items: Dict[str, str] = dict(initial or {})
        self.save_count = 0

    def load(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def save(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value
            self.save_count += 1


class JsonFileDocumentStore(DocumentStore):
    """
    One `<key>.json` file per key inside a directory.

    Writes go to a temporary file that replaces the target, so a crash mid-save
    leaves the previous document intact.
    """

    backend_name = "json"

    def __init__(self, directory: Union[str, Path]) -> None:
        self._dir = Path(directory)
        self._lock = RLock()

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError:
            logger.exception("Failed to read task document path=%s", path)
            return None

    def save(self, key: str, value: str) -> None:
        path = self._path(key)
        with self._lock:
            try:
                self._dir.mkdir(parents=True, exist_ok=True)
                fd, tmp = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=str(self._dir))
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        f.write(value)
                    os.replace(tmp, path)
                except BaseException:
                    with contextlib.suppress(OSError):
                        os.unlink(tmp)
                    raise
            except OSError:
                logger.exception("Failed to save task document path=%s", path)
                return
        logger.debug("Saved task document path=%s bytes=%d", path, len(value))


# PUBLIC_INTERFACE
def get_document_store(settings: Optional[Settings] = None) -> DocumentStore:
    """
    Factory to return the configured document store based on settings.
    - memory: InMemoryDocumentStore
    - json: JsonFileDocumentStore in settings.data_dir
    - sqlite: SQLiteDocumentStore at settings.sqlite_db_path
    """
    settings = settings or get_settings()
    if settings.storage_backend == "sqlite":
        from .db import SQLiteDocumentStore

        return SQLiteDocumentStore(settings.sqlite_db_path)
    if settings.storage_backend == "json":
        return JsonFileDocumentStore(settings.data_dir)
    return InMemoryDocumentStore()
