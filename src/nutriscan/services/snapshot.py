"""JSON codec for persisted queue snapshots."""

from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from nutriscan.domain.errors import CorruptSnapshotError, ValidationError
from nutriscan.domain.nutrients import (
    FlagLevel,
    HealthCondition,
    HealthFlag,
    NutrientProfile,
)
from nutriscan.domain.scans import ScanRecord, SyncState


class FlagPayload(BaseModel):
    """Serialized health flag."""

    level: FlagLevel
    message: str


class ScanRecordPayload(BaseModel):
    """Stable wire schema for a scan record."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    nutrients: dict[str, StrictFloat | StrictInt]
    condition: HealthCondition
    flags: list[FlagPayload]
    recommendations: list[str]
    created_at: datetime = Field(alias="createdAt")
    sync_state: SyncState = Field(alias="syncState")
    dish_name: str | None = Field(default=None, alias="dishName")
    user_id: str | None = Field(default=None, alias="userId")

    @classmethod
    def from_record(cls, record: ScanRecord) -> "ScanRecordPayload":
        """Build the payload for a domain record."""
        return cls(
            id=record.id,
            nutrients=record.nutrients.to_dict(),
            condition=record.condition,
            flags=[
                FlagPayload(level=flag.level, message=flag.message)
                for flag in record.flags
            ],
            recommendations=list(record.recommendations),
            created_at=record.created_at,
            sync_state=record.sync_state,
            dish_name=record.dish_name,
            user_id=record.user_id,
        )

    def to_record(self) -> ScanRecord:
        """Convert the payload back into a domain record."""
        return ScanRecord(
            id=self.id,
            nutrients=NutrientProfile(self.nutrients),
            condition=self.condition,
            flags=tuple(HealthFlag(flag.level, flag.message) for flag in self.flags),
            recommendations=tuple(self.recommendations),
            created_at=self.created_at,
            sync_state=self.sync_state,
            dish_name=self.dish_name,
            user_id=self.user_id,
        )

    def to_json_dict(self) -> dict[str, object]:
        """Return the JSON-compatible dict using wire field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


_SNAPSHOT_ADAPTER = TypeAdapter(list[ScanRecordPayload])


def encode_snapshot(records: Iterable[ScanRecord]) -> bytes:
    """Serialize records as an ordered JSON list."""
    payloads = [ScanRecordPayload.from_record(record) for record in records]
    return _SNAPSHOT_ADAPTER.dump_json(payloads, by_alias=True, exclude_none=True)


def decode_snapshot(data: bytes) -> list[ScanRecord]:
    """Parse a snapshot, raising ``CorruptSnapshotError`` on any defect."""
    try:
        payloads = _SNAPSHOT_ADAPTER.validate_json(data)
        records = [payload.to_record() for payload in payloads]
    except (PydanticValidationError, ValidationError) as exc:
        raise CorruptSnapshotError(str(exc)) from exc
    return records
