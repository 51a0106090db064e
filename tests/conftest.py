"""Shared test fixtures."""

import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from nutriscan.config import Settings
from nutriscan.containers import AppContainer
from nutriscan.domain.nutrients import HealthCondition, NutrientProfile
from nutriscan.domain.scans import ScanRecord
from nutriscan.services.connectivity import ConnectivityMonitor
from nutriscan.services.queue import DurableQueue, OfflineModePreference, Persistence
from nutriscan.services.records import ScanRecordBuilder
from nutriscan.services.rules import RuleEngine
from nutriscan.services.scans import ScanService
from nutriscan.services.sync import RemoteSink, SyncCoordinator


@dataclass
class InMemoryPersistence(Persistence):
    """In-memory blob store that can be told to fail writes."""

    blobs: dict[str, bytes] = field(default_factory=dict)
    fail_saves: bool = False
    failing_attempts: set[int] = field(default_factory=set)
    save_attempts: int = 0
    saves: int = 0

    def load(self, key: str) -> bytes | None:
        return self.blobs.get(key)

    def save(self, key: str, data: bytes) -> None:
        self.save_attempts += 1
        if self.fail_saves or self.save_attempts in self.failing_attempts:
            raise OSError("disk full")
        self.saves += 1
        self.blobs[key] = data


@dataclass
class FakeRemoteSink(RemoteSink):
    """Remote sink that succeeds, fails or hangs on demand."""

    submitted: list[str] = field(default_factory=list)
    attempts: list[str] = field(default_factory=list)
    fail_ids: set[str] = field(default_factory=set)
    fail_all: bool = False
    hang: bool = False
    started: asyncio.Event | None = None
    release: asyncio.Event | None = None

    def hold(self) -> None:
        """Make the next submissions wait until ``release`` is set."""
        self.hang = True
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def submit(self, record: ScanRecord) -> None:
        self.attempts.append(record.id)
        if self.hang and self.started is not None and self.release is not None:
            self.started.set()
            await self.release.wait()
        if self.fail_all or record.id in self.fail_ids:
            raise RuntimeError(f"rejected {record.id}")
        self.submitted.append(record.id)


class SequentialIds:
    """Deterministic id generator."""

    def __init__(self, prefix: str = "scan") -> None:
        self._counter = itertools.count(1)
        self._prefix = prefix

    def __call__(self) -> str:
        return f"{self._prefix}-{next(self._counter)}"


class SteppingClock:
    """Clock that advances one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self._current = start or datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        value = self._current
        self._current += timedelta(seconds=1)
        return value


def make_builder() -> ScanRecordBuilder:
    return ScanRecordBuilder(
        RuleEngine(), id_generator=SequentialIds(), clock=SteppingClock()
    )


def make_records(count: int) -> list[ScanRecord]:
    builder = make_builder()
    return [
        builder.build(
            NutrientProfile({"calories": 100 * index, "sodium": 50 * index}),
            HealthCondition.HYPERTENSIVE,
        )
        for index in range(1, count + 1)
    ]


@pytest.fixture
def persistence() -> InMemoryPersistence:
    return InMemoryPersistence()


@pytest.fixture
def queue(persistence: InMemoryPersistence) -> DurableQueue:
    durable_queue = DurableQueue(persistence)
    durable_queue.reload()
    return durable_queue


@pytest.fixture
def monitor() -> ConnectivityMonitor:
    return ConnectivityMonitor(online=True)


@pytest.fixture
def sink() -> FakeRemoteSink:
    return FakeRemoteSink()


@pytest.fixture
def coordinator(
    queue: DurableQueue, monitor: ConnectivityMonitor, sink: FakeRemoteSink
) -> SyncCoordinator:
    return SyncCoordinator(
        queue=queue,
        monitor=monitor,
        sink=sink,
        retry_backoff_seconds=0,
        max_retries=2,
    )


@pytest.fixture
def scan_service(
    persistence: InMemoryPersistence,
    queue: DurableQueue,
    monitor: ConnectivityMonitor,
    coordinator: SyncCoordinator,
) -> ScanService:
    rule_engine = RuleEngine()
    return ScanService(
        rule_engine=rule_engine,
        builder=ScanRecordBuilder(
            rule_engine, id_generator=SequentialIds(), clock=SteppingClock()
        ),
        queue=queue,
        monitor=monitor,
        coordinator=coordinator,
        offline_mode=OfflineModePreference(persistence),
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        data_dir=tmp_path / "data",
        remote_sink="http",
        sink_url="https://sink.example.com/scans",
        sync_retry_backoff_seconds=0,
    )


@pytest.fixture
def container(
    settings: Settings,
    queue: DurableQueue,
    monitor: ConnectivityMonitor,
    coordinator: SyncCoordinator,
    scan_service: ScanService,
) -> AppContainer:
    async def close_resources() -> None:
        await coordinator.close()

    return AppContainer(
        settings=settings,
        monitor=monitor,
        queue=queue,
        coordinator=coordinator,
        scan_service=scan_service,
        connectivity_probe=None,
        close_resources=close_resources,
    )
