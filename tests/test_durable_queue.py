"""Tests for the durable scan queue."""

import json
import logging

import pytest

from nutriscan.domain.errors import PersistenceError
from nutriscan.domain.scans import SyncState
from nutriscan.services.queue import QUEUE_KEY, DurableQueue, OfflineModePreference
from tests.conftest import InMemoryPersistence, make_records


def test_enqueue_persists_before_acknowledging(
    persistence: InMemoryPersistence, queue: DurableQueue
) -> None:
    (record,) = make_records(1)

    assert queue.enqueue(record) is True

    restarted = DurableQueue(persistence)
    restarted.reload()
    assert restarted.snapshot() == queue.snapshot() == (record,)


def test_enqueue_same_id_is_noop(
    persistence: InMemoryPersistence, queue: DurableQueue
) -> None:
    first, second = make_records(2)
    queue.enqueue(first)
    queue.enqueue(second)
    saves = persistence.saves
    before = queue.snapshot()

    assert queue.enqueue(first) is False

    assert queue.snapshot() == before
    assert persistence.saves == saves


def test_snapshot_preserves_fifo_order(queue: DurableQueue) -> None:
    records = make_records(3)
    for record in records:
        queue.enqueue(record)

    assert [record.id for record in queue.snapshot()] == [r.id for r in records]


def test_remove_ignores_absent_ids(
    persistence: InMemoryPersistence, queue: DurableQueue
) -> None:
    first, second, third = make_records(3)
    for record in (first, second, third):
        queue.enqueue(record)

    queue.remove([second.id, "missing"])
    saves = persistence.saves
    queue.remove(["missing"])

    assert queue.snapshot() == (first, third)
    assert persistence.saves == saves


def test_failed_write_rolls_back_memory(
    persistence: InMemoryPersistence, queue: DurableQueue
) -> None:
    first, second = make_records(2)
    queue.enqueue(first)
    persistence.fail_saves = True

    with pytest.raises(PersistenceError):
        queue.enqueue(second)
    with pytest.raises(PersistenceError):
        queue.remove([first.id])
    with pytest.raises(PersistenceError):
        queue.update_state(first.id, SyncState.SYNCING)

    assert queue.snapshot() == (first,)
    restarted = DurableQueue(persistence)
    restarted.reload()
    assert restarted.snapshot() == (first,)


def test_corrupt_snapshot_reloads_empty_and_is_overwritten(
    persistence: InMemoryPersistence,
    caplog: pytest.LogCaptureFixture,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(logging.getLogger("nutriscan"), "propagate", True)
    persistence.blobs[QUEUE_KEY] = b"{not json"
    queue = DurableQueue(persistence)

    queue.reload()

    assert queue.snapshot() == ()
    assert "corrupt" in caplog.text.lower()

    (record,) = make_records(1)
    queue.enqueue(record)
    payload = json.loads(persistence.blobs[QUEUE_KEY])
    assert [item["id"] for item in payload] == [record.id]


def test_snapshot_with_invalid_nutrients_is_treated_as_corrupt(
    persistence: InMemoryPersistence,
) -> None:
    (record,) = make_records(1)
    queue = DurableQueue(persistence)
    queue.reload()
    queue.enqueue(record)
    payload = json.loads(persistence.blobs[QUEUE_KEY])
    payload[0]["nutrients"]["sodium"] = -5
    persistence.blobs[QUEUE_KEY] = json.dumps(payload).encode()

    restarted = DurableQueue(persistence)
    restarted.reload()

    assert restarted.snapshot() == ()


def test_snapshot_uses_stable_schema(
    persistence: InMemoryPersistence, queue: DurableQueue
) -> None:
    (record,) = make_records(1)
    queue.enqueue(record)

    (item,) = json.loads(persistence.blobs[QUEUE_KEY])

    assert set(item) == {
        "id",
        "nutrients",
        "condition",
        "flags",
        "recommendations",
        "createdAt",
        "syncState",
    }
    assert item["condition"] == "hypertensive"
    assert item["syncState"] == "pending"
    assert item["flags"][0] == {
        "level": "good",
        "message": "Suitable for your health condition",
    }
    assert item["createdAt"].startswith("2024-05-01T12:00:00")


def test_reload_reverts_interrupted_and_drops_synced_records(
    persistence: InMemoryPersistence, queue: DurableQueue
) -> None:
    first, second = make_records(2)
    queue.enqueue(first)
    queue.enqueue(second)
    queue.update_state(first.id, SyncState.SYNCING)
    payload = json.loads(persistence.blobs[QUEUE_KEY])
    payload[1]["syncState"] = "synced"
    payload.append(dict(payload[0]))
    persistence.blobs[QUEUE_KEY] = json.dumps(payload).encode()

    restarted = DurableQueue(persistence)
    restarted.reload()

    assert restarted.snapshot() == (first,)
    assert restarted.snapshot()[0].sync_state is SyncState.PENDING


def test_update_state_rejects_synced_and_unknown(queue: DurableQueue) -> None:
    (record,) = make_records(1)
    queue.enqueue(record)

    with pytest.raises(ValueError):
        queue.update_state(record.id, SyncState.SYNCED)
    with pytest.raises(KeyError):
        queue.update_state("missing", SyncState.FAILED)


def test_offline_mode_preference_round_trip(persistence: InMemoryPersistence) -> None:
    preference = OfflineModePreference(persistence)

    assert preference.enabled() is False
    assert preference.toggle() is True
    assert OfflineModePreference(persistence).enabled() is True
    preference.set(False)
    assert preference.enabled() is False


def test_snapshot_with_string_amount_is_treated_as_corrupt(
    persistence: InMemoryPersistence, queue: DurableQueue
) -> None:
    (record,) = make_records(1)
    queue.enqueue(record)
    payload = json.loads(persistence.blobs[QUEUE_KEY])
    payload[0]["nutrients"]["sodium"] = "5"
    persistence.blobs[QUEUE_KEY] = json.dumps(payload).encode()

    restarted = DurableQueue(persistence)
    restarted.reload()

    assert restarted.snapshot() == ()
