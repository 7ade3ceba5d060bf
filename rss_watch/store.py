from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .models import Bookmark

logger = logging.getLogger(__name__)

_COLLECTION_PREFIX = "collection-"


class KeyValueStore(Protocol):
    def get_value(self, key: str, default: Any = None) -> Any:  # pragma: no cover - interface
        ...

    def set_value(self, key: str, value: Any) -> None:  # pragma: no cover - interface
        ...


class BookmarkStore(Protocol):
    def get(self, identity: str) -> Bookmark:  # pragma: no cover - interface
        ...


def collection_key(collection_id: str) -> str:
    return _COLLECTION_PREFIX + collection_id


def get_collection(store: KeyValueStore, collection_id: str) -> List[str]:
    """Ordered feed identities of a collection; unknown collections are empty."""
    ids = store.get_value(collection_key(collection_id), [])
    return [str(i) for i in ids or []]


def set_collection(store: KeyValueStore, collection_id: str, identities: Iterable[str]) -> None:
    store.set_value(collection_key(collection_id), list(identities))


class MemoryStore:
    """Thread-safe in-memory key-value store. Values are copied on the way in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})
        self._lock = threading.Lock()

    def get_value(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._data:
                return default
            return copy.deepcopy(self._data[key])

    def set_value(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)
            self._changed()

    def _changed(self) -> None:
        pass


class JsonFileStore(MemoryStore):
    """
    MemoryStore persisted to a JSON file after every write.

    The file is replaced atomically so that a crash mid-write never leaves a
    truncated state file behind.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        initial: Dict[str, Any] = {}
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as fh:
                try:
                    initial = json.load(fh)
                except json.JSONDecodeError:
                    logger.warning("State file %s is not valid JSON; starting empty", path)
                    initial = {}
        super().__init__(initial)

    def _changed(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp = tempfile.mkstemp(prefix=".rss_watch-", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


class MemoryBookmarks:
    """Bookmark store over a plain mapping of identity -> Bookmark."""

    def __init__(self, bookmarks: Iterable[Bookmark] = ()) -> None:
        self._bookmarks: Dict[str, Bookmark] = {b.id: b for b in bookmarks}

    def add(self, bookmark: Bookmark) -> None:
        self._bookmarks[bookmark.id] = bookmark

    def get(self, identity: str) -> Bookmark:
        try:
            return self._bookmarks[identity]
        except KeyError:
            raise KeyError(f"Unknown bookmark: {identity}") from None
