# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Document store for game records.

Every record the scorekeeper persists is a JSON-serialisable dict addressed
by ``(collection, key)``.  Collections may be nested with ``/`` so that a
game's plays live together (``at_bats/<game_id>``).  Two backends share one
interface:

- :class:`MemoryStore` keeps documents in process memory (tests, previews).
- :class:`JsonFileStore` keeps one JSON file per document under a root
  directory, written atomically.

Both backends provide a re-entrant lock per game for serialising
multi-step writes, a conditional ``put_if_absent`` for append-only
records, and change watches that fire after each successful write.

Usage::

    from data.store import JsonFileStore

    store = JsonFileStore("/tmp/softball")
    store.put("game_states", "g1", {"inning": 1})
    store.get("game_states", "g1")
    with store.lock("g1"):
        created = store.put_if_absent("at_bats/g1", "g1_001", {...})
    unwatch = store.watch("game_states", on_change, key="g1")
"""

from __future__ import annotations

import copy
import json
import logging
import re
import shutil
import threading
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Watcher = Callable[[str, str, Optional[dict]], None]

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class StoreError(Exception):
    """Raised when a document cannot be read or written."""

    def __init__(self, message: str, collection: str | None = None,
                 key: str | None = None):
        self.collection = collection
        self.key = key
        super().__init__(message)


def _check_segment(value: str, what: str) -> None:
    if not value or not _SEGMENT_RE.match(value) or value in (".", ".."):
        raise StoreError(f"Invalid {what}: {value!r}")


def _check_address(collection: str, key: str | None = None) -> None:
    for part in collection.split("/"):
        _check_segment(part, "collection")
    if key is not None:
        _check_segment(key, "key")


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------

class DocumentStore:
    """Shared locking and change-watch machinery for store backends."""

    def __init__(self) -> None:
        self._game_locks: dict[str, threading.RLock] = {}
        self._guard = threading.Lock()
        self._watchers: dict[tuple[str, str | None], list[Watcher]] = {}

    # -- locking -----------------------------------------------------------

    def lock(self, game_id: str) -> threading.RLock:
        """Return the re-entrant lock that serialises writes for *game_id*."""
        with self._guard:
            lock = self._game_locks.get(game_id)
            if lock is None:
                lock = self._game_locks[game_id] = threading.RLock()
            return lock

    # -- watches -----------------------------------------------------------

    def watch(self, collection: str, callback: Watcher,
              key: str | None = None) -> Callable[[], None]:
        """Call *callback(collection, key, doc)* after writes.

        With *key* None the callback sees every document in the collection.
        Returns a function that removes the watch.
        """
        _check_address(collection, key)
        target = (collection, key)
        with self._guard:
            self._watchers.setdefault(target, []).append(callback)

        def unwatch() -> None:
            with self._guard:
                callbacks = self._watchers.get(target, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._watchers.pop(target, None)

        return unwatch

    def _emit(self, collection: str, key: str, doc: dict | None) -> None:
        with self._guard:
            callbacks = list(self._watchers.get((collection, key), []))
            callbacks += self._watchers.get((collection, None), [])
        for callback in callbacks:
            try:
                callback(collection, key, copy.deepcopy(doc))
            except Exception as exc:
                logger.warning("Watcher for %s/%s failed: %s", collection, key, exc)

    # -- document API (implemented by backends) ----------------------------

    def get(self, collection: str, key: str) -> dict | None:
        raise NotImplementedError

    def put(self, collection: str, key: str, doc: dict) -> None:
        raise NotImplementedError

    def put_if_absent(self, collection: str, key: str, doc: dict) -> bool:
        raise NotImplementedError

    def delete(self, collection: str, key: str) -> bool:
        raise NotImplementedError

    def list(self, collection: str) -> list[dict]:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------

class MemoryStore(DocumentStore):
    """Documents held in a dict; copies go in and out so callers can't alias."""

    def __init__(self) -> None:
        super().__init__()
        self._docs: dict[str, dict[str, dict]] = {}
        self._data_lock = threading.Lock()

    def get(self, collection: str, key: str) -> dict | None:
        _check_address(collection, key)
        with self._data_lock:
            doc = self._docs.get(collection, {}).get(key)
            return copy.deepcopy(doc)

    def put(self, collection: str, key: str, doc: dict) -> None:
        _check_address(collection, key)
        with self._data_lock:
            self._docs.setdefault(collection, {})[key] = copy.deepcopy(doc)
        self._emit(collection, key, doc)

    def put_if_absent(self, collection: str, key: str, doc: dict) -> bool:
        _check_address(collection, key)
        with self._data_lock:
            docs = self._docs.setdefault(collection, {})
            if key in docs:
                return False
            docs[key] = copy.deepcopy(doc)
        self._emit(collection, key, doc)
        return True

    def delete(self, collection: str, key: str) -> bool:
        _check_address(collection, key)
        with self._data_lock:
            removed = self._docs.get(collection, {}).pop(key, None)
        if removed is None:
            return False
        self._emit(collection, key, None)
        return True

    def list(self, collection: str) -> list[dict]:
        _check_address(collection)
        with self._data_lock:
            docs = self._docs.get(collection, {})
            return [copy.deepcopy(docs[k]) for k in sorted(docs)]


# ---------------------------------------------------------------------------
# JSON file backend
# ---------------------------------------------------------------------------

class JsonFileStore(DocumentStore):
    """One JSON file per document::

        <root>/game_states/g1.json
        <root>/at_bats/g1/g1_001.json

    Args:
        root_dir: Directory holding the collections.  Created on first write.
            Defaults to ``data/games/`` beside this file.
    """

    def __init__(self, root_dir: str | Path | None = None) -> None:
        super().__init__()
        if root_dir is None:
            root_dir = Path(__file__).resolve().parent / "games"
        self._root = Path(root_dir)
        self._write_lock = threading.Lock()

    @property
    def root_dir(self) -> Path:
        return self._root

    def get(self, collection: str, key: str) -> dict | None:
        path = self._path_for(collection, key)
        if not path.exists():
            return None
        return self._read(path, collection, key)

    def put(self, collection: str, key: str, doc: dict) -> None:
        path = self._path_for(collection, key)
        with self._write_lock:
            self._write(path, doc, collection, key)
        self._emit(collection, key, doc)

    def put_if_absent(self, collection: str, key: str, doc: dict) -> bool:
        path = self._path_for(collection, key)
        with self._write_lock:
            if path.exists():
                return False
            self._write(path, doc, collection, key)
        self._emit(collection, key, doc)
        return True

    def delete(self, collection: str, key: str) -> bool:
        path = self._path_for(collection, key)
        with self._write_lock:
            if not path.exists():
                return False
            try:
                path.unlink()
            except OSError as exc:
                raise StoreError(f"Failed to delete {collection}/{key}: {exc}",
                                 collection, key) from exc
        self._emit(collection, key, None)
        return True

    def list(self, collection: str) -> list[dict]:
        _check_address(collection)
        directory = self._root / collection
        if not directory.is_dir():
            return []
        return [self._read(p, collection, p.stem) for p in sorted(directory.glob("*.json"))]

    def clear(self) -> int:
        """Delete every stored document.  Returns how many were removed."""
        if not self._root.exists():
            return 0
        count = sum(1 for _ in self._root.rglob("*.json"))
        shutil.rmtree(self._root)
        return count

    # -- helpers -----------------------------------------------------------

    def _path_for(self, collection: str, key: str) -> Path:
        _check_address(collection, key)
        return self._root / collection / f"{key}.json"

    @staticmethod
    def _read(path: Path, collection: str, key: str) -> dict:
        try:
            with open(path) as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            raise StoreError(f"Failed to read {collection}/{key}: {exc}",
                             collection, key) from exc

    @staticmethod
    def _write(path: Path, doc: dict, collection: str, key: str) -> None:
        tmp_path = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                json.dump(doc, f, separators=(",", ":"))
            tmp_path.replace(path)  # atomic rename
        except (OSError, TypeError, ValueError) as exc:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(f"Failed to write {collection}/{key}: {exc}",
                             collection, key) from exc
