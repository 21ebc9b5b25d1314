"""
测试内存缓存

覆盖：
- 提交后读取到新值
- 失败记录保留上一次成功的值
- 并发读写时读者不会看到不一致的快照
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from network_monitor.cache import CacheSlot, SnapshotStore
from network_monitor.errors import TransportError, UpstreamError
from network_monitor.models import NodeStatus


def test_empty_slot_is_unpopulated():
    slot = CacheSlot("node_status")
    snapshot = slot.read()

    assert snapshot.value is None
    assert snapshot.populated is False
    assert snapshot.fetched_at is None
    assert snapshot.consecutive_failures == 0


def test_write_then_read():
    slot = CacheSlot("node_status")
    value = NodeStatus(batch_producer="online", rpc_endpoint="online")

    slot.write(value)
    snapshot = slot.read()

    assert snapshot.value == value
    assert snapshot.populated
    assert snapshot.fetched_at == snapshot.attempted_at
    assert snapshot.last_error is None


def test_write_rejects_none():
    slot = CacheSlot("node_status")
    with pytest.raises(ValueError):
        slot.write(None)


def test_record_error_keeps_previous_value():
    slot = CacheSlot("balances")
    t0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
    slot.write("good", at=t0)

    for i in range(3):
        slot.record_error(TransportError("refused"), at=t0 + timedelta(seconds=i + 1))

    snapshot = slot.read()
    assert snapshot.value == "good"
    assert snapshot.fetched_at == t0
    assert snapshot.attempted_at == t0 + timedelta(seconds=3)
    assert snapshot.consecutive_failures == 3
    assert snapshot.last_error.kind == "transport_error"
    assert snapshot.last_error.message == "refused"


def test_record_error_keeps_upstream_code():
    slot = CacheSlot("bridge_status")
    slot.record_error(UpstreamError("not found", code=-32000))

    error = slot.read().last_error
    assert error.kind == "upstream_error"
    assert error.code == -32000
    assert not slot.populated


def test_unclassified_error_recorded_as_malformed():
    slot = CacheSlot("activity_stats")
    slot.record_error(RuntimeError("boom"))

    assert slot.read().last_error.kind == "malformed_response"


def test_write_after_failure_resets_error():
    slot = CacheSlot("balances")
    slot.write("old")
    slot.record_error(TransportError("refused"))
    slot.write("new")

    snapshot = slot.read()
    assert snapshot.value == "new"
    assert snapshot.last_error is None
    assert snapshot.consecutive_failures == 0


def test_concurrent_readers_see_consistent_snapshots():
    """读者拿到的 value 与 fetched_at 总是来自同一次提交"""
    slot = CacheSlot("balances")
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    slot.write(0, at=base)

    stop = threading.Event()
    torn = []

    def writer():
        for i in range(1, 5000):
            slot.write(i, at=base + timedelta(seconds=i))
        stop.set()

    def reader():
        while not stop.is_set():
            snapshot = slot.read()
            if snapshot.fetched_at != base + timedelta(seconds=snapshot.value):
                torn.append(snapshot)

    readers = [threading.Thread(target=reader) for _ in range(4)]
    for t in readers:
        t.start()
    w = threading.Thread(target=writer)
    w.start()
    w.join()
    for t in readers:
        t.join()

    assert torn == []
    assert slot.read().value == 4999


def test_store_unknown_domain_reads_empty():
    store = SnapshotStore(["node_status"])

    assert "node_status" in store
    assert "nope" not in store
    assert store.read("nope").populated is False


def test_store_rejects_duplicate_domain():
    store = SnapshotStore(["balances"])
    with pytest.raises(ValueError):
        store.add_slot("balances")


def test_store_domains_keep_order():
    store = SnapshotStore(["node_status", "bundler_health", "balances"])
    assert list(store.domains()) == ["node_status", "bundler_health", "balances"]
