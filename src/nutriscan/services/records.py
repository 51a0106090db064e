"""Scan record construction."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from nutriscan.domain.nutrients import HealthCondition, NutrientProfile
from nutriscan.domain.scans import ScanRecord, SyncState
from nutriscan.services.rules import RuleEngine


def _new_record_id() -> str:
    return f"scan_{uuid4().hex}"


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class ScanRecordBuilder:
    """Stamps rule engine output with identity and a timestamp."""

    rule_engine: RuleEngine
    id_generator: Callable[[], str] = field(default=_new_record_id)
    clock: Callable[[], datetime] = field(default=_utc_now)

    def build(
        self,
        profile: NutrientProfile,
        condition: HealthCondition,
        *,
        dish_name: str | None = None,
        user_id: str | None = None,
    ) -> ScanRecord:
        """Evaluate the profile and return a pending scan record."""
        evaluation = self.rule_engine.evaluate(profile, condition)
        return ScanRecord(
            id=self.id_generator(),
            nutrients=profile,
            condition=condition,
            flags=evaluation.flags,
            recommendations=evaluation.recommendations,
            created_at=self.clock(),
            sync_state=SyncState.PENDING,
            dish_name=dish_name,
            user_id=user_id,
        )
