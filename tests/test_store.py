import random

from conftest import make_notification
from realtime_notifications.client.store import NotificationStore


def ids(store):
    return [n.id for n in store.snapshot()]


def test_insert_prepends(store):
    for name in ("a", "b", "c"):
        store.insert(make_notification(name))
    assert ids(store) == ["c", "b", "a"]


def test_mark_read_keeps_order_and_updates_unread(store):
    store.insert(make_notification("A"))
    store.insert(make_notification("B"))
    store.mark_read("A")
    assert ids(store) == ["B", "A"]
    assert store.unread_count == 1


def test_duplicate_ids_are_ignored(store):
    assert store.insert(make_notification("x"))
    assert not store.insert(make_notification("x"))
    assert len(store) == 1


def test_unknown_id_is_a_noop(store):
    store.insert(make_notification("x"))
    store.mark_read("nope")
    assert store.unread_count == 1


def test_mark_all_read_and_clear(store):
    for name in ("a", "b"):
        store.insert(make_notification(name))
    store.mark_all_read()
    assert store.unread_count == 0
    store.clear()
    assert len(store) == 0
    assert store.insert(make_notification("a"))


def test_default_store_keeps_every_notification():
    store = NotificationStore()
    for i in range(250):
        store.insert(make_notification(f"n{i}"))
    assert len(store) == 250
    assert store.get("n0") is not None


def test_capacity_evicts_the_oldest():
    store = NotificationStore(max_items=2)
    for name in ("a", "b", "c"):
        store.insert(make_notification(name))
    assert ids(store) == ["c", "b"]
    assert store.get("a") is None
    # The evicted id may arrive again.
    assert store.insert(make_notification("a"))


def test_snapshot_returns_copies(store):
    store.insert(make_notification("a"))
    copy = store.snapshot()[0]
    copy.read = True
    assert store.unread_count == 1
    assert store.get("a").read is False


def test_unread_count_matches_records_for_random_operations():
    rng = random.Random(42)
    store = NotificationStore(max_items=0)
    expected = {}
    for step in range(500):
        op = rng.choice(["insert", "insert", "read", "read_all", "clear"])
        if op == "insert":
            nid = f"n{rng.randrange(60)}"
            if store.insert(make_notification(nid)):
                expected[nid] = False
        elif op == "read":
            nid = f"n{rng.randrange(60)}"
            store.mark_read(nid)
            if nid in expected:
                expected[nid] = True
        elif op == "read_all" and rng.random() < 0.1:
            store.mark_all_read()
            expected = {k: True for k in expected}
        elif op == "clear" and rng.random() < 0.05:
            store.clear()
            expected = {}
        assert store.unread_count == sum(1 for r in expected.values() if not r)
        assert store.unread_count == sum(1 for n in store.snapshot() if not n.read)
