"""Supabase-backed remote sink for scan records."""

import asyncio
from dataclasses import dataclass

from supabase import Client

from nutriscan.domain.scans import ScanRecord, SyncState
from nutriscan.services.snapshot import ScanRecordPayload
from nutriscan.services.sync import RemoteSink


@dataclass
class SupabaseScanSink(RemoteSink):
    """Upserts scan records by id so resubmission never duplicates rows."""

    client: Client
    table: str = "scan_records"

    async def submit(self, record: ScanRecord) -> None:
        """Upsert the record row, raising when Supabase returns nothing."""
        row = _to_row(record)
        response = await asyncio.to_thread(self._upsert, row)
        if not response.data:
            raise RuntimeError(f"Failed to store scan record {record.id}")

    def _upsert(self, row: dict[str, object]):  # type: ignore[no-untyped-def]
        return self.client.table(self.table).upsert(row, on_conflict="id").execute()


def _to_row(record: ScanRecord) -> dict[str, object]:
    payload = ScanRecordPayload.from_record(record.with_state(SyncState.SYNCED))
    data = payload.model_dump(mode="json")
    return {
        "id": data["id"],
        "nutrients_json": data["nutrients"],
        "condition": data["condition"],
        "flags_json": data["flags"],
        "recommendations_json": data["recommendations"],
        "created_at": data["created_at"],
        "dish_name": data["dish_name"],
        "user_id": data["user_id"],
    }
