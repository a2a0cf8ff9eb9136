import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from ametrica import event
from ametrica import storage

logger = logging.getLogger(__name__)

MAX_EVENTS = 200
TTL_MS = 60 * 60 * 1000


class EventStore:
    """
    A persisted, newest-first log of captured events.

    The store holds at most `max_events` entries, and entries older than `ttl_ms`
    are dropped. There is no timer: both bounds are enforced lazily whenever the
    store is read or written.
    """

    def __init__(
        self,
        storage: storage.Storage,
        max_events: int = MAX_EVENTS,
        ttl_ms: int = TTL_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage
        self.max_events = max_events
        self.ttl_ms = ttl_ms
        self.clock = clock
        # Guards the read-modify-write cycles below.
        self.lock = threading.Lock()

    def __len__(self) -> int:
        return len(self.read_fresh())

    def now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _load(self) -> list[Any]:
        events = self.storage.get(storage.EVENTS, [])
        if not isinstance(events, list):
            logger.debug(f"Discarding malformed event list in {self.storage.path}.")
            return []
        return events

    def _fresh(self, events: list[Any]) -> list[dict[str, Any]]:
        now = self.now_ms()
        fresh = []
        for state in events:
            ts = event.capture_time(state)
            if ts is not None and now - ts <= self.ttl_ms:
                fresh.append(state)
        return fresh

    def append(self, ev: event.Event) -> None:
        with self.lock:
            events = self._fresh(self._load())
            events.insert(0, ev.get_state())
            del events[self.max_events :]
            self.storage.put(storage.EVENTS, events)

    def read_fresh(self) -> list[event.Event]:
        with self.lock:
            events = self._load()
            fresh = self._fresh(events)
            if len(fresh) != len(events):
                self.storage.put(storage.EVENTS, fresh)
        return [event.Event.from_state(state) for state in fresh]

    def clear(self) -> None:
        with self.lock:
            self.storage.put(storage.EVENTS, [])
