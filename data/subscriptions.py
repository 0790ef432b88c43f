# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Reference-counted change subscriptions.

Several views usually watch the same game at once (scoreboard, play log,
box score).  :class:`SubscriptionManager` opens a single backing-store
watch per topic when the first observer arrives, fans every change out to
all observers, hands late joiners the latest snapshot immediately, and
closes the store watch when the last observer leaves.

:class:`ChangeBroadcast` is the lighter cross-view signal: "something
about game X changed, refresh if you care", with no payload.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from data.store import DocumentStore

logger = logging.getLogger(__name__)

Topic = tuple[str, Optional[str]]
Observer = Callable[[Any], None]


class Subscription:
    """Handle returned to an observer; ``close()`` is safe to call twice."""

    def __init__(self, on_close: Callable[[], None]) -> None:
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._on_close()


@dataclass
class _TopicState:
    load: Callable[[], Any]
    observers: list[Observer] = field(default_factory=list)
    snapshot: Any = None
    unwatch: Optional[Callable[[], None]] = None


class SubscriptionManager:
    """Shares one store watch per ``(collection, key)`` topic."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._topics: dict[Topic, _TopicState] = {}
        self._lock = threading.RLock()

    def subscribe(self, collection: str, key: str | None,
                  observer: Observer, load: Callable[[], Any]) -> Subscription:
        """Register *observer* for changes to ``(collection, key)``.

        *load* rebuilds the snapshot handed to observers; it runs once when
        the topic opens and again after every change.  The observer is
        called with the current snapshot before this method returns.
        """
        topic = (collection, key)
        with self._lock:
            state = self._topics.get(topic)
            if state is None:
                state = _TopicState(load=load)
                state.snapshot = load()
                self._topics[topic] = state
                state.unwatch = self._store.watch(
                    collection, lambda c, k, doc: self._refresh(topic), key=key,
                )
                logger.debug("Opened subscription %s/%s", collection, key or "*")
            state.observers.append(observer)
            snapshot = state.snapshot
        self._deliver(observer, snapshot, topic)
        return Subscription(lambda: self._release(topic, observer))

    def observer_count(self, collection: str, key: str | None) -> int:
        with self._lock:
            state = self._topics.get((collection, key))
            return len(state.observers) if state else 0

    def is_open(self, collection: str, key: str | None) -> bool:
        with self._lock:
            return (collection, key) in self._topics

    # -- helpers -----------------------------------------------------------

    def _refresh(self, topic: Topic) -> None:
        with self._lock:
            state = self._topics.get(topic)
            if state is None:
                return
            state.snapshot = state.load()
            observers = list(state.observers)
            snapshot = state.snapshot
        for observer in observers:
            self._deliver(observer, snapshot, topic)

    def _release(self, topic: Topic, observer: Observer) -> None:
        with self._lock:
            state = self._topics.get(topic)
            if state is None:
                return
            if observer in state.observers:
                state.observers.remove(observer)
            if state.observers:
                return
            del self._topics[topic]
        if state.unwatch is not None:
            state.unwatch()
        logger.debug("Closed subscription %s/%s", topic[0], topic[1] or "*")

    @staticmethod
    def _deliver(observer: Observer, snapshot: Any, topic: Topic) -> None:
        try:
            observer(snapshot)
        except Exception as exc:
            logger.warning("Observer for %s/%s failed: %s", topic[0], topic[1] or "*", exc)


class ChangeBroadcast:
    """Payload-free "game changed" signal shared between views."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Callable[[str], None]]] = {}
        self._lock = threading.Lock()

    def listen(self, game_id: str, callback: Callable[[str], None]) -> Subscription:
        with self._lock:
            self._listeners.setdefault(game_id, []).append(callback)

        def remove() -> None:
            with self._lock:
                callbacks = self._listeners.get(game_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._listeners.pop(game_id, None)

        return Subscription(remove)

    def listener_count(self, game_id: str) -> int:
        with self._lock:
            return len(self._listeners.get(game_id, []))

    def signal(self, game_id: str) -> None:
        with self._lock:
            callbacks = list(self._listeners.get(game_id, []))
        for callback in callbacks:
            try:
                callback(game_id)
            except Exception as exc:
                logger.warning("Broadcast listener for %s failed: %s", game_id, exc)
