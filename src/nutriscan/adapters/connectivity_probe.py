"""HTTP reachability probe that reports into the connectivity monitor."""

import asyncio
import logging
from dataclasses import dataclass

import httpx

from nutriscan.services.connectivity import ConnectivityMonitor

_logger = logging.getLogger(__name__)


@dataclass
class HttpxConnectivityProbe:
    """Checks a URL and forwards reachability changes to a monitor."""

    url: str
    monitor: ConnectivityMonitor
    http_client: httpx.AsyncClient
    interval_seconds: float = 15
    timeout_seconds: float = 5

    @classmethod
    def create(
        cls, url: str, monitor: ConnectivityMonitor, interval_seconds: float = 15
    ) -> "HttpxConnectivityProbe":
        """Create a probe with a managed httpx session."""
        return cls(
            url=url,
            monitor=monitor,
            http_client=httpx.AsyncClient(),
            interval_seconds=interval_seconds,
        )

    async def check(self) -> bool:
        """Return True when the URL answers without a server error."""
        try:
            response = await self.http_client.head(
                self.url, timeout=self.timeout_seconds
            )
        except httpx.HTTPError as exc:
            _logger.debug("Connectivity probe failed: %s", exc)
            return False
        return response.status_code < 500

    async def report(self) -> bool:
        """Probe once and report the result to the monitor."""
        online = await self.check()
        self.monitor.set_online(online)
        return online

    async def run(self) -> None:
        """Report reachability until cancelled."""
        while True:
            await self.report()
            await asyncio.sleep(self.interval_seconds)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
