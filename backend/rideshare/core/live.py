"""
Live queries: subscriptions that re-run whenever their tables change.

A subscriber gets the current value as soon as it subscribes and a new value
after every committed transaction touching one of its topics. Values are
delivered through a per-subscriber queue that holds only the newest value;
a reader that falls behind sees the latest snapshot, not the ones in between.
"""
import logging
import queue
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Set

logger = logging.getLogger(__name__)

_CLOSED = object()


class SubscriptionClosed(Exception):
    """Raised by `Subscription.get` once the subscription is closed."""
    pass


class Subscription:
    """A single live query. Iterate it, or pull values with `get()`."""

    def __init__(self, hub: "LiveQueryHub", topics: Set[str], query: Callable[[], Any], name: str = ""):
        self._hub = hub
        self._query = query
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=1)
        self._closed = threading.Event()
        self._refresh_lock = threading.Lock()
        self.topics = frozenset(topics)
        self.name = name or ",".join(sorted(self.topics))

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def refresh(self) -> None:
        """Re-run the query and deliver its value."""
        if self.closed:
            return
        # Serialized so values arrive in the order they were computed
        with self._refresh_lock:
            if self.closed:
                return
            try:
                value = self._query()
            except Exception:
                logger.exception("Live query %s failed; skipping this update", self.name)
                return
            self._offer(value)

    def _offer(self, item: Any) -> None:
        # Callers hold _refresh_lock, so this is the only producer
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                pass
            self._queue.put_nowait(item)

    def get(self, timeout: Optional[float] = None) -> Any:
        """Next value. Raises queue.Empty on timeout and SubscriptionClosed after close()."""
        if self.closed and self._queue.empty():
            raise SubscriptionClosed(self.name)
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            raise SubscriptionClosed(self.name)
        return item

    def latest(self, timeout: Optional[float] = None) -> Any:
        """Drain pending values and return the newest one (waits for one if none is pending)."""
        value = self.get(timeout=timeout)
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return value
            if item is _CLOSED:
                return value
            value = item

    def close(self) -> None:
        if self.closed:
            return
        self._closed.set()
        self._hub._unregister(self)
        with self._refresh_lock:
            self._offer(_CLOSED)

    def __iter__(self) -> Iterator[Any]:
        while True:
            try:
                yield self.get()
            except SubscriptionClosed:
                return

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class LiveQueryHub:
    """Routes change notifications (by topic) to the subscriptions watching them."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, Set[Subscription]] = defaultdict(set)

    def watch(self, topics: Iterable[str], query: Callable[[], Any], name: str = "") -> Subscription:
        """Subscribe `query` to `topics` and deliver its current value immediately."""
        subscription = Subscription(self, set(topics), query, name=name)
        with self._lock:
            for topic in subscription.topics:
                self._subscriptions[topic].add(subscription)
        subscription.refresh()
        return subscription

    def publish(self, *topics: str) -> None:
        """Notify every subscription watching any of `topics`."""
        if not topics:
            return
        with self._lock:
            targets: Set[Subscription] = set()
            for topic in topics:
                targets.update(self._subscriptions.get(topic, ()))
        for subscription in targets:
            subscription.refresh()

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        with self._lock:
            if topic is not None:
                return len(self._subscriptions.get(topic, ()))
            unique: Set[Subscription] = set()
            for subs in self._subscriptions.values():
                unique.update(subs)
            return len(unique)

    def close_all(self) -> None:
        with self._lock:
            unique: Set[Subscription] = set()
            for subs in self._subscriptions.values():
                unique.update(subs)
        for subscription in unique:
            subscription.close()

    def _unregister(self, subscription: Subscription) -> None:
        with self._lock:
            for topic in subscription.topics:
                subs = self._subscriptions.get(topic)
                if subs is None:
                    continue
                subs.discard(subscription)
                if not subs:
                    del self._subscriptions[topic]
