"""HTTP remote sink for scan records."""

from dataclasses import dataclass

import httpx

from nutriscan.domain.scans import ScanRecord
from nutriscan.services.snapshot import ScanRecordPayload
from nutriscan.services.sync import RemoteSink


@dataclass
class HttpxScanSink(RemoteSink):
    """POSTs each record to an ingestion endpoint."""

    url: str
    http_client: httpx.AsyncClient
    token: str | None = None
    timeout_seconds: float = 15

    @classmethod
    def create(cls, url: str, token: str | None = None) -> "HttpxScanSink":
        """Create a sink with a managed httpx session."""
        return cls(url=url, token=token, http_client=httpx.AsyncClient())

    async def submit(self, record: ScanRecord) -> None:
        """Submit the record; transport errors and non-2xx responses raise."""
        headers: dict[str, str] = {"Idempotency-Key": record.id}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = await self.http_client.post(
            self.url,
            json=ScanRecordPayload.from_record(record).to_json_dict(),
            headers=headers,
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
