import json
import threading

import pytest

from ametrica import event
from ametrica import eventstore
from ametrica import storage

NOW = 1_700_000_000.0
NOW_MS = int(NOW * 1000)


class Clock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def tevent(ts_ms: int = NOW_MS, event_id: str = "") -> event.Event:
    return event.Event(captured_at="", captured_at_ms=ts_ms, event_id=event_id)


@pytest.fixture
def st(tmp_path):
    return storage.Storage(tmp_path / "ametrica.json")


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(st, clock):
    return eventstore.EventStore(st, clock=clock)


def test_empty(store, st):
    assert store.read_fresh() == []
    assert len(store) == 0
    assert not st.path.exists()


def test_append_newest_first(store):
    store.append(tevent(event_id="1"))
    store.append(tevent(event_id="2"))
    assert [ev.event_id for ev in store.read_fresh()] == ["2", "1"]


def test_capacity(store, st):
    for i in range(250):
        store.append(tevent(event_id=str(i)))
    events = store.read_fresh()
    assert len(events) == eventstore.MAX_EVENTS
    assert [ev.event_id for ev in events] == [str(i) for i in range(249, 49, -1)]
    assert len(st.get(storage.EVENTS)) == eventstore.MAX_EVENTS


def test_freshness(store, st):
    ttl = eventstore.TTL_MS
    st.put(
        storage.EVENTS,
        [
            tevent(NOW_MS - ttl + 1, "fresh").get_state(),
            tevent(NOW_MS - ttl, "edge").get_state(),
            tevent(NOW_MS - ttl - 1, "stale").get_state(),
        ],
    )
    assert [ev.event_id for ev in store.read_fresh()] == ["fresh", "edge"]


def test_append_prunes(store, st):
    st.put(storage.EVENTS, [tevent(NOW_MS - eventstore.TTL_MS - 1, "stale").get_state()])
    store.append(tevent(event_id="new"))
    assert [e["event_id"] for e in st.get(storage.EVENTS)] == ["new"]


def test_expiry_over_time(store, clock):
    store.append(tevent(event_id="old"))
    clock.now += 30 * 60
    store.append(tevent(int(clock.now * 1000), "new"))
    assert len(store) == 2
    clock.now += 30 * 60 + 1
    assert [ev.event_id for ev in store.read_fresh()] == ["new"]


def test_read_writes_back_only_when_pruned(store, st, monkeypatch):
    store.append(tevent(event_id="a"))
    writes = []
    orig_put = st.put

    def put(key, value):
        writes.append(key)
        orig_put(key, value)

    monkeypatch.setattr(st, "put", put)

    store.read_fresh()
    assert writes == []

    st.path.write_text(
        json.dumps(
            {
                "events": [
                    tevent(event_id="a").get_state(),
                    tevent(NOW_MS - eventstore.TTL_MS - 1, "b").get_state(),
                ]
            }
        )
    )
    assert [ev.event_id for ev in store.read_fresh()] == ["a"]
    assert writes == [storage.EVENTS]
    assert len(json.loads(st.path.read_text())["events"]) == 1


@pytest.mark.parametrize(
    "persisted",
    [
        {"events": {"not": "a list"}},
        {"events": "text"},
        {"events": None},
        {"events": [None, 1, "x", [], {"captured_at_ms": "soon"}, {"no": "ts"}]},
    ],
)
def test_malformed_state(store, st, persisted):
    st.path.write_text(json.dumps(persisted))
    assert store.read_fresh() == []
    store.append(tevent(event_id="new"))
    assert [e["event_id"] for e in st.get(storage.EVENTS)] == ["new"]


def test_corrupt_document(store, st):
    st.path.write_text("{broken")
    assert store.read_fresh() == []
    store.append(tevent(event_id="new"))
    assert len(store) == 1


def test_clear(store, st):
    store.append(tevent())
    store.clear()
    assert store.read_fresh() == []
    assert st.get(storage.EVENTS) == []

    # clear always writes, even when the store is already empty
    st.path.unlink()
    store.clear()
    assert st.get(storage.EVENTS) == []


def test_keeps_other_keys(store, st):
    st.put(storage.LOGGING_ENABLED, True)
    store.append(tevent())
    store.clear()
    assert st.get(storage.LOGGING_ENABLED) is True


def test_custom_bounds(st, clock):
    store = eventstore.EventStore(st, max_events=3, ttl_ms=10, clock=clock)
    for i in range(5):
        store.append(tevent(event_id=str(i)))
    assert [ev.event_id for ev in store.read_fresh()] == ["4", "3", "2"]
    clock.now += 1
    assert store.read_fresh() == []


def test_concurrent_appends(store):
    def work(n):
        for i in range(20):
            store.append(tevent(event_id=f"{n}-{i}"))

    threads = [threading.Thread(target=work, args=(n,)) for n in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    events = store.read_fresh()
    assert len(events) == 100
    assert len({ev.event_id for ev in events}) == 100
