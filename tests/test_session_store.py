import json
import threading

import pytest

from assistant.conversation import handle_turn
from assistant.session import DialogueState, InMemorySessionStore, RedisSessionStore, Session, Slots
from util.exceptions import SessionLockError


def test_get_or_create_returns_same_session(store):
    a = store.get_or_create("abc")
    a.add("user", "hi")
    assert store.get_or_create("abc") is a
    assert store.get("other") is None
    assert len(store) == 1


def test_delete(store):
    store.get_or_create("abc")
    store.delete("abc")
    assert store.get("abc") is None


def test_idle_sessions_expire():
    now = [1000.0]
    store = InMemorySessionStore(ttl_seconds=60, clock=lambda: now[0])
    sess = store.get_or_create("abc")
    sess.slots.origin = "London"
    now[0] += 30
    assert store.get("abc") is sess
    now[0] += 61
    assert store.get("abc") is None
    assert store.get_or_create("abc").slots.origin is None


def test_lock_is_per_session(store):
    with store.lock("a"):
        with store.lock("b"):
            pass


def test_truncate_keeps_system_turn():
    sess = Session()
    sess.add("system", "rules")
    for i in range(15):
        sess.add("user" if i % 2 == 0 else "assistant", str(i))
    sess.truncate(10)
    assert len(sess.history) == 11
    assert sess.history[0] == {"role": "system", "content": "rules"}
    assert sess.history[-1]["content"] == "14"
    assert sess.history[1]["content"] == "5"


def test_recent_history_skips_system():
    sess = Session()
    sess.add("system", "rules")
    sess.add("user", "hey")
    assert sess.recent_history(5) == [{"role": "user", "content": "hey"}]


def test_redis_store_serializes_sessions(make_redis):
    client = make_redis()
    store = RedisSessionStore(client, ttl_seconds=600)
    sess = Session(slots=Slots("London", "Dubai", None), state=DialogueState.AWAITING_DATE, greeted=True)
    sess.add("user", "from London to Dubai")
    with store.lock("s1"):
        store.upsert("s1", sess)

    assert client.ttls["session:s1"] == 600
    assert json.loads(client.data["session:s1"])["state"] == "awaiting_date"

    loaded = store.get("s1")
    assert loaded.slots == Slots("London", "Dubai", None)
    assert loaded.state is DialogueState.AWAITING_DATE
    assert loaded.greeted is True
    assert loaded.history == sess.history

    store.delete("s1")
    assert store.get("s1") is None


def test_redis_lock_is_released(make_redis):
    client = make_redis()
    store = RedisSessionStore(client)
    with store.lock("s1"):
        assert client.locks[0].released is False
    assert client.locks[0].released is True


def test_redis_lock_timeout_raises(make_redis):
    store = RedisSessionStore(make_redis(lock_available=False))
    with pytest.raises(SessionLockError):
        with store.lock("s1"):
            pytest.fail("lock body must not run")


def test_same_session_lock_waits_for_holder(store):
    acquired = threading.Event()

    def second():
        with store.lock("a"):
            acquired.set()

    with store.lock("a"):
        worker = threading.Thread(target=second)
        worker.start()
        assert not acquired.wait(0.2)
    worker.join(timeout=2)
    assert acquired.is_set()


def test_concurrent_turns_on_one_session_merge(store, today, llm, provider):
    start = threading.Barrier(2)

    def turn(text):
        start.wait()
        with store.lock("s1"):
            handle_turn(store.get_or_create("s1"), text, provider=provider, llm=llm, today=today)

    workers = [threading.Thread(target=turn, args=(text,)) for text in ("from London to Dubai", "next Monday")]
    for w in workers:
        w.start()
    for w in workers:
        w.join(timeout=5)

    assert provider.calls == [("London", "Dubai", "2026-10-26")]
    assert [t["role"] for t in store.get("s1").history] == ["system", "user", "assistant", "user", "assistant"]
