"""Durable FIFO queue of scan records awaiting remote delivery."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from nutriscan.domain.errors import CorruptSnapshotError, PersistenceError
from nutriscan.domain.scans import ScanRecord, SyncState
from nutriscan.services.snapshot import decode_snapshot, encode_snapshot

QUEUE_KEY = "scan_queue"
OFFLINE_MODE_KEY = "offline_mode"

_logger = logging.getLogger(__name__)


class Persistence(Protocol):
    """Key-value blob store."""

    def load(self, key: str) -> bytes | None:
        """Return the stored bytes for a key, or None when absent."""

    def save(self, key: str, data: bytes) -> None:
        """Store bytes under a key, raising on failure."""


@dataclass
class DurableQueue:
    """Queue whose in-memory state never runs ahead of its persisted snapshot.

    Every mutation builds the next snapshot, writes it through the
    persistence collaborator and only then swaps it in. A failed write
    raises ``PersistenceError`` and leaves the previous state untouched.
    """

    persistence: Persistence
    key: str = QUEUE_KEY
    _records: tuple[ScanRecord, ...] = field(default=(), init=False, repr=False)

    def reload(self) -> None:
        """Rebuild the queue from the last persisted snapshot."""
        data = self.persistence.load(self.key)
        if data is None:
            self._records = ()
            return
        try:
            records = decode_snapshot(data)
        except CorruptSnapshotError as exc:
            _logger.warning("Discarding corrupt queue snapshot: %s", exc)
            self._records = ()
            return
        self._records = _normalize(records)
        _logger.info("Reloaded %s queued scan(s)", len(self._records))

    def snapshot(self) -> tuple[ScanRecord, ...]:
        """Return the queued records in FIFO order."""
        return self._records

    def get(self, record_id: str) -> ScanRecord | None:
        """Return a queued record by id."""
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def pending_count(self) -> int:
        """Return the number of records not yet delivered."""
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return any(record.id == record_id for record in self._records)

    def enqueue(self, record: ScanRecord) -> bool:
        """Append a record unless its id is queued; return True when added."""
        if record.id in self:
            return False
        if record.sync_state is SyncState.SYNCED:
            raise ValueError(f"Record {record.id} is already synced")
        self._commit((*self._records, record))
        return True

    def remove(self, record_ids: Iterable[str]) -> None:
        """Remove records by id; unknown ids are ignored."""
        doomed = set(record_ids)
        remaining = tuple(record for record in self._records if record.id not in doomed)
        if len(remaining) == len(self._records):
            return
        self._commit(remaining)

    def update_state(self, record_id: str, state: SyncState) -> ScanRecord:
        """Persist a new sync state for a queued record and return it."""
        if state is SyncState.SYNCED:
            raise ValueError("Synced records are removed, not retained")
        updated: ScanRecord | None = None
        records: list[ScanRecord] = []
        for record in self._records:
            if record.id == record_id:
                updated = record.with_state(state)
                records.append(updated)
            else:
                records.append(record)
        if updated is None:
            raise KeyError(record_id)
        self._commit(tuple(records))
        return updated

    def release(self, record_id: str) -> None:
        """Show a stranded ``syncing`` record as pending without writing.

        Only used when persisting a state change failed after submission.
        The stored ``syncing`` copy already reloads as pending.
        """
        self._records = tuple(
            record.with_state(SyncState.PENDING)
            if record.id == record_id and record.sync_state is SyncState.SYNCING
            else record
            for record in self._records
        )

    def _commit(self, records: tuple[ScanRecord, ...]) -> None:
        data = encode_snapshot(records)
        try:
            self.persistence.save(self.key, data)
        except Exception as exc:
            raise PersistenceError(f"Failed to persist queue snapshot: {exc}") from exc
        self._records = records


@dataclass
class OfflineModePreference:
    """Persisted boolean preference that keeps new scans local."""

    persistence: Persistence
    key: str = OFFLINE_MODE_KEY

    def enabled(self) -> bool:
        """Return True when offline mode is switched on."""
        data = self.persistence.load(self.key)
        return data is not None and data.strip().lower() == b"true"

    def set(self, enabled: bool) -> None:
        """Persist the preference."""
        try:
            self.persistence.save(self.key, b"true" if enabled else b"false")
        except Exception as exc:
            raise PersistenceError(f"Failed to persist offline mode: {exc}") from exc

    def toggle(self) -> bool:
        """Flip the preference and return the new value."""
        enabled = not self.enabled()
        self.set(enabled)
        return enabled


def _normalize(records: list[ScanRecord]) -> tuple[ScanRecord, ...]:
    """Drop synced and duplicate records; interrupted submissions go back to pending."""
    seen: set[str] = set()
    normalized: list[ScanRecord] = []
    for record in records:
        if record.id in seen or record.sync_state is SyncState.SYNCED:
            continue
        seen.add(record.id)
        if record.sync_state is SyncState.SYNCING:
            record = record.with_state(SyncState.PENDING)
        normalized.append(record)
    return tuple(normalized)
