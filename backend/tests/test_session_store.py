from app.utils.session_store import SessionStore


def make_store(clock):
    return SessionStore(timeout_minutes=30, clock=clock)


def test_set_get_clear(clock):
    store = make_store(clock)
    store.set("whatsapp:+1", {"state": "awaiting_habit_name"})

    assert store.get("whatsapp:+1") == {"state": "awaiting_habit_name"}
    assert store.clear("whatsapp:+1") is True
    assert store.clear("whatsapp:+1") is False
    assert store.get("whatsapp:+1") is None


def test_get_returns_a_copy(clock):
    store = make_store(clock)
    store.set("whatsapp:+1", {"state": "a"})
    store.get("whatsapp:+1")["state"] = "b"
    assert store.get("whatsapp:+1") == {"state": "a"}


def test_idle_sessions_expire(clock):
    store = make_store(clock)
    store.set("whatsapp:+1", {"state": "a"})
    store.set("whatsapp:+2", {"state": "b"})

    clock.advance(minutes=20)
    store.get("whatsapp:+2")
    clock.advance(minutes=15)

    assert store.cleanup_expired_sessions() == 1
    assert len(store) == 1
    assert store.get("whatsapp:+1") is None
    assert store.get("whatsapp:+2") == {"state": "b"}
