"""Pydantic models for the HTTP API."""

from datetime import datetime

from pydantic import BaseModel, Field

from nutriscan.domain.nutrients import FlagLevel, HealthCondition
from nutriscan.domain.scans import DrainOutcome, ScanRecord, SyncState, SyncTrigger


class EvaluateRequest(BaseModel):
    """Nutrient profile and condition to evaluate."""

    nutrients: dict[str, object]
    condition: HealthCondition = HealthCondition.NORMAL


class ScanRequest(EvaluateRequest):
    """Scan to evaluate and queue for delivery."""

    dish_name: str | None = Field(default=None, max_length=200)
    user_id: str | None = Field(default=None, max_length=200)


class FlagModel(BaseModel):
    """Health flag payload."""

    level: FlagLevel
    message: str


class EvaluationResponse(BaseModel):
    """Rule engine result."""

    flags: list[FlagModel]
    recommendations: list[str]
    health_score: int
    highest_level: FlagLevel


class ScanResponse(BaseModel):
    """Recorded scan payload."""

    id: str
    nutrients: dict[str, float]
    condition: HealthCondition
    flags: list[FlagModel]
    recommendations: list[str]
    created_at: datetime
    sync_state: SyncState
    dish_name: str | None = None
    user_id: str | None = None

    @classmethod
    def from_record(cls, record: ScanRecord) -> "ScanResponse":
        """Build the response for a domain record."""
        return cls(
            id=record.id,
            nutrients=record.nutrients.to_dict(),
            condition=record.condition,
            flags=[FlagModel(level=f.level, message=f.message) for f in record.flags],
            recommendations=list(record.recommendations),
            created_at=record.created_at,
            sync_state=record.sync_state,
            dish_name=record.dish_name,
            user_id=record.user_id,
        )


class QueueStatusResponse(BaseModel):
    """Queue status with the records still waiting."""

    pending_count: int
    last_sync_result: DrainOutcome | None
    draining: bool
    consecutive_failures: int
    persistent_failure: bool
    last_error: str | None
    online: bool
    offline_mode: bool
    records: list[ScanResponse]


class SyncResponse(BaseModel):
    """Outcome of a sync request."""

    status: SyncTrigger


class ConnectivityUpdate(BaseModel):
    """Host connectivity event."""

    online: bool


class OfflineModeUpdate(BaseModel):
    """Offline-mode preference."""

    enabled: bool
