"""Domain models for scan records and queue status."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from nutriscan.domain.nutrients import HealthCondition, HealthFlag, NutrientProfile


class SyncState(str, Enum):
    """Delivery state of a scan record."""

    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    FAILED = "failed"


class DrainOutcome(str, Enum):
    """Terminal state of a drain cycle."""

    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially_failed"
    ABORTED_OFFLINE = "aborted_offline"


class SyncTrigger(str, Enum):
    """Result of asking the coordinator to sync."""

    ACCEPTED = "accepted"
    ALREADY_DRAINING = "already_draining"


@dataclass(frozen=True)
class Evaluation:
    """Rule engine output."""

    flags: tuple[HealthFlag, ...]
    recommendations: tuple[str, ...]


@dataclass(frozen=True)
class ScanRecord:
    """Analysis result awaiting or past delivery to the remote store."""

    id: str
    nutrients: NutrientProfile
    condition: HealthCondition
    flags: tuple[HealthFlag, ...]
    recommendations: tuple[str, ...]
    created_at: datetime
    sync_state: SyncState = SyncState.PENDING
    dish_name: str | None = None
    user_id: str | None = None

    def with_state(self, state: SyncState) -> "ScanRecord":
        """Return a copy of the record in a different sync state."""
        return replace(self, sync_state=state)


@dataclass(frozen=True)
class QueueStatus:
    """Caller-facing view of the sync queue."""

    pending_count: int
    last_sync_result: DrainOutcome | None
    draining: bool
    consecutive_failures: int
    persistent_failure: bool
    last_error: str | None = None
