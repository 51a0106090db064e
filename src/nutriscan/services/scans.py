"""Caller-facing service for recording and syncing scans."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from nutriscan.domain.nutrients import HealthCondition, NutrientProfile
from nutriscan.domain.scans import Evaluation, QueueStatus, ScanRecord, SyncTrigger
from nutriscan.services.connectivity import ConnectivityMonitor
from nutriscan.services.queue import DurableQueue, OfflineModePreference
from nutriscan.services.records import ScanRecordBuilder
from nutriscan.services.rules import RuleEngine
from nutriscan.services.sync import SyncCoordinator

_logger = logging.getLogger(__name__)


@dataclass
class ScanService:
    """Evaluates profiles, queues results durably and triggers delivery."""

    rule_engine: RuleEngine
    builder: ScanRecordBuilder
    queue: DurableQueue
    monitor: ConnectivityMonitor
    coordinator: SyncCoordinator
    offline_mode: OfflineModePreference

    def evaluate(
        self, profile: NutrientProfile | Mapping[str, object], condition: HealthCondition
    ) -> Evaluation:
        """Return flags and recommendations without recording anything."""
        return self.rule_engine.evaluate(_as_profile(profile), condition)

    def record_scan(
        self,
        profile: NutrientProfile | Mapping[str, object],
        condition: HealthCondition,
        *,
        dish_name: str | None = None,
        user_id: str | None = None,
    ) -> ScanRecord:
        """Build a record, persist it in the queue and start a sync if possible.

        The record is durable once this returns. Delivery is attempted
        immediately only when online and offline mode is off.
        """
        record = self.builder.build(
            _as_profile(profile), condition, dish_name=dish_name, user_id=user_id
        )
        self.queue.enqueue(record)
        _logger.info("Recorded scan %s (%s)", record.id, condition.value)
        if self.monitor.is_online and not self.offline_mode.enabled():
            self.coordinator.request_sync()
        return record

    def get_pending_count(self) -> int:
        """Return how many scans are waiting for delivery."""
        return self.queue.pending_count()

    def request_sync(self) -> SyncTrigger:
        """Ask for a drain cycle; returns immediately."""
        return self.coordinator.request_sync()

    def get_queue_status(self) -> QueueStatus:
        """Return the pending count and the last drain result."""
        return self.coordinator.status()

    def is_offline_mode(self) -> bool:
        """Return the persisted offline-mode preference."""
        return self.offline_mode.enabled()

    def set_offline_mode(self, enabled: bool) -> None:
        """Persist the offline-mode preference."""
        self.offline_mode.set(enabled)

    def toggle_offline_mode(self) -> bool:
        """Flip offline mode and return the new value."""
        return self.offline_mode.toggle()


def _as_profile(profile: NutrientProfile | Mapping[str, object]) -> NutrientProfile:
    if isinstance(profile, NutrientProfile):
        return profile
    return NutrientProfile(profile)
