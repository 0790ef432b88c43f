# /// script
# requires-python = ">=3.12"
# dependencies = ["pytest>=7.0"]
# ///
"""Tests for the document store and change subscriptions.

Validates the storage layer:
  1. Memory and JSON file backends share get/put/delete/list semantics
  2. put_if_absent never overwrites an existing document
  3. JSON files live under <root>/<collection>/<key>.json
  4. Invalid collection and key names are rejected
  5. Watches fire after writes and can be removed
  6. Subscriptions share one store watch per topic and release it on last close
  7. ChangeBroadcast signals listeners without a payload
"""

import json
import sys
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from data.store import JsonFileStore, MemoryStore, StoreError
from data.subscriptions import ChangeBroadcast, SubscriptionManager


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return JsonFileStore(tmp_path / "games")


# ---------------------------------------------------------------------------
# Step 1: Shared document API
# ---------------------------------------------------------------------------

class TestDocumentApi:
    """Both backends behave the same."""

    def test_get_missing_returns_none(self, store):
        assert store.get("game_states", "g1") is None

    def test_put_then_get(self, store):
        store.put("game_states", "g1", {"inning": 3})
        assert store.get("game_states", "g1") == {"inning": 3}

    def test_put_overwrites(self, store):
        store.put("game_states", "g1", {"inning": 3})
        store.put("game_states", "g1", {"inning": 4})
        assert store.get("game_states", "g1") == {"inning": 4}

    def test_returned_documents_are_copies(self, store):
        doc = {"runners": {"first": "p1"}}
        store.put("game_states", "g1", doc)
        doc["runners"]["first"] = "p2"
        loaded = store.get("game_states", "g1")
        loaded["runners"]["first"] = "p3"
        assert store.get("game_states", "g1") == {"runners": {"first": "p1"}}

    def test_delete(self, store):
        store.put("game_states", "g1", {})
        assert store.delete("game_states", "g1") is True
        assert store.get("game_states", "g1") is None
        assert store.delete("game_states", "g1") is False

    def test_list_is_sorted_by_key(self, store):
        store.put("at_bats/g1", "g1_002", {"index": 2})
        store.put("at_bats/g1", "g1_001", {"index": 1})
        assert [d["index"] for d in store.list("at_bats/g1")] == [1, 2]

    def test_list_empty_collection(self, store):
        assert store.list("at_bats/none") == []


# ---------------------------------------------------------------------------
# Step 2: Conditional writes
# ---------------------------------------------------------------------------

class TestPutIfAbsent:
    """Append-only records are written once."""

    def test_creates_when_absent(self, store):
        assert store.put_if_absent("at_bats/g1", "g1_001", {"index": 1}) is True
        assert store.get("at_bats/g1", "g1_001") == {"index": 1}

    def test_refuses_to_overwrite(self, store):
        store.put_if_absent("at_bats/g1", "g1_001", {"index": 1})
        assert store.put_if_absent("at_bats/g1", "g1_001", {"index": 99}) is False
        assert store.get("at_bats/g1", "g1_001") == {"index": 1}


# ---------------------------------------------------------------------------
# Step 3: JSON file layout
# ---------------------------------------------------------------------------

class TestJsonFileLayout:
    """One file per document."""

    def test_file_path(self, tmp_path):
        store = JsonFileStore(tmp_path)
        store.put("at_bats/g1", "g1_001", {"index": 1})
        path = tmp_path / "at_bats" / "g1" / "g1_001.json"
        assert path.exists()
        assert json.loads(path.read_text()) == {"index": 1}

    def test_no_temp_file_left_behind(self, tmp_path):
        store = JsonFileStore(tmp_path)
        store.put("game_states", "g1", {"inning": 1})
        assert list((tmp_path / "game_states").glob("*.tmp")) == []

    def test_corrupt_file_raises_store_error(self, tmp_path):
        store = JsonFileStore(tmp_path)
        (tmp_path / "game_states").mkdir()
        (tmp_path / "game_states" / "g1.json").write_text("{not json")
        with pytest.raises(StoreError) as exc_info:
            store.get("game_states", "g1")
        assert exc_info.value.collection == "game_states"
        assert exc_info.value.key == "g1"

    def test_unserialisable_document_raises(self, tmp_path):
        store = JsonFileStore(tmp_path)
        with pytest.raises(StoreError):
            store.put("game_states", "g1", {"when": object()})
        assert store.get("game_states", "g1") is None

    def test_clear(self, tmp_path):
        store = JsonFileStore(tmp_path / "games")
        store.put("game_states", "g1", {})
        store.put("at_bats/g1", "g1_001", {})
        assert store.clear() == 2
        assert store.get("game_states", "g1") is None

    def test_clear_missing_root(self, tmp_path):
        assert JsonFileStore(tmp_path / "missing").clear() == 0

    def test_default_root(self):
        store = JsonFileStore()
        assert store.root_dir.name == "games"
        assert store.root_dir.parent.name == "data"


# ---------------------------------------------------------------------------
# Step 4: Address validation
# ---------------------------------------------------------------------------

class TestAddressValidation:
    """Names that could escape the store root are rejected."""

    @pytest.mark.parametrize("key", ["", "..", "a/b", "g 1", "../etc"])
    def test_bad_key(self, store, key):
        with pytest.raises(StoreError):
            store.get("game_states", key)

    def test_bad_collection(self, store):
        with pytest.raises(StoreError):
            store.put("at_bats/../x", "k", {})


# ---------------------------------------------------------------------------
# Step 5: Watches
# ---------------------------------------------------------------------------

class TestWatches:
    """Callbacks fire after successful writes."""

    def test_key_watch(self, store):
        seen = []
        store.watch("game_states", lambda c, k, d: seen.append((k, d)), key="g1")
        store.put("game_states", "g1", {"inning": 1})
        store.put("game_states", "g2", {"inning": 5})
        assert seen == [("g1", {"inning": 1})]

    def test_collection_watch(self, store):
        seen = []
        store.watch("at_bats/g1", lambda c, k, d: seen.append(k))
        store.put_if_absent("at_bats/g1", "g1_001", {})
        store.put_if_absent("at_bats/g1", "g1_001", {})
        store.put("at_bats/g1", "g1_002", {})
        assert seen == ["g1_001", "g1_002"]

    def test_delete_notifies_with_none(self, store):
        seen = []
        store.put("game_states", "g1", {})
        store.watch("game_states", lambda c, k, d: seen.append(d), key="g1")
        store.delete("game_states", "g1")
        assert seen == [None]

    def test_unwatch(self, store):
        seen = []
        unwatch = store.watch("game_states", lambda c, k, d: seen.append(k))
        unwatch()
        store.put("game_states", "g1", {})
        assert seen == []

    def test_failing_watcher_does_not_block_write(self, store):
        def boom(c, k, d):
            raise RuntimeError("view crashed")
        store.watch("game_states", boom)
        store.put("game_states", "g1", {"inning": 2})
        assert store.get("game_states", "g1") == {"inning": 2}

    def test_lock_is_per_game_and_reentrant(self, store):
        lock = store.lock("g1")
        assert store.lock("g1") is lock
        assert store.lock("g2") is not lock
        with lock:
            with store.lock("g1"):
                pass


# ---------------------------------------------------------------------------
# Step 6: Shared subscriptions
# ---------------------------------------------------------------------------

class TestSubscriptionManager:
    """Reference-counted topics."""

    def _subscribe(self, manager, store, seen):
        return manager.subscribe("game_states", "g1", seen.append,
                                 lambda: store.get("game_states", "g1"))

    def test_first_snapshot_delivered_immediately(self):
        store = MemoryStore()
        store.put("game_states", "g1", {"inning": 1})
        manager = SubscriptionManager(store)
        seen = []
        self._subscribe(manager, store, seen)
        assert seen == [{"inning": 1}]

    def test_changes_fan_out(self):
        store = MemoryStore()
        manager = SubscriptionManager(store)
        a, b = [], []
        self._subscribe(manager, store, a)
        self._subscribe(manager, store, b)
        store.put("game_states", "g1", {"inning": 2})
        assert a[-1] == {"inning": 2}
        assert b[-1] == {"inning": 2}
        assert manager.observer_count("game_states", "g1") == 2

    def test_late_joiner_gets_latest_snapshot(self):
        store = MemoryStore()
        manager = SubscriptionManager(store)
        self._subscribe(manager, store, [])
        store.put("game_states", "g1", {"inning": 4})
        late = []
        self._subscribe(manager, store, late)
        assert late == [{"inning": 4}]

    def test_one_store_watch_per_topic(self):
        store = MemoryStore()
        calls = []
        manager = SubscriptionManager(store)
        manager.subscribe("game_states", "g1", lambda s: None,
                          lambda: calls.append(1))
        manager.subscribe("game_states", "g1", lambda s: None,
                          lambda: calls.append(2))
        store.put("game_states", "g1", {})
        # initial load plus one reload per change, regardless of observers
        assert calls == [1, 1]

    def test_last_close_releases_watch(self):
        store = MemoryStore()
        manager = SubscriptionManager(store)
        seen = []
        first = self._subscribe(manager, store, seen)
        second = self._subscribe(manager, store, [])
        first.close()
        assert manager.is_open("game_states", "g1")
        second.close()
        assert not manager.is_open("game_states", "g1")
        store.put("game_states", "g1", {"inning": 9})
        assert {"inning": 9} not in seen

    def test_close_is_idempotent(self):
        store = MemoryStore()
        manager = SubscriptionManager(store)
        sub = self._subscribe(manager, store, [])
        sub.close()
        sub.close()
        assert sub.closed
        assert manager.observer_count("game_states", "g1") == 0


# ---------------------------------------------------------------------------
# Step 7: Broadcast
# ---------------------------------------------------------------------------

class TestChangeBroadcast:
    """Payload-free game-changed signal."""

    def test_signal_reaches_listeners_for_game(self):
        broadcast = ChangeBroadcast()
        seen = []
        broadcast.listen("g1", seen.append)
        broadcast.signal("g1")
        broadcast.signal("g2")
        assert seen == ["g1"]

    def test_closed_listener_is_silent(self):
        broadcast = ChangeBroadcast()
        seen = []
        sub = broadcast.listen("g1", seen.append)
        sub.close()
        broadcast.signal("g1")
        assert seen == []

    def test_last_listener_leaving_drops_game(self):
        broadcast = ChangeBroadcast()
        first = broadcast.listen("g1", lambda game_id: None)
        second = broadcast.listen("g1", lambda game_id: None)
        assert broadcast.listener_count("g1") == 2
        first.close()
        assert broadcast.listener_count("g1") == 1
        second.close()
        assert broadcast.listener_count("g1") == 0
        assert "g1" not in broadcast._listeners
