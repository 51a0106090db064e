"""Drains the durable queue into the remote sink."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from nutriscan.domain.errors import PersistenceError, SyncError
from nutriscan.domain.scans import (
    DrainOutcome,
    QueueStatus,
    ScanRecord,
    SyncState,
    SyncTrigger,
)
from nutriscan.services.connectivity import ConnectivityMonitor, Subscription
from nutriscan.services.queue import DurableQueue

_logger = logging.getLogger(__name__)


class RemoteSink(Protocol):
    """Destination for delivered scan records."""

    async def submit(self, record: ScanRecord) -> None:
        """Deliver a record, raising on transport or rejection errors."""


@dataclass
class SyncCoordinator:
    """Runs drain cycles one at a time.

    A cycle walks the queue in FIFO order and stops at the first failed
    submission. Triggers that arrive while a cycle is running collapse into a
    single re-run. A failed cycle schedules one retry after
    ``retry_backoff_seconds``; after ``max_retries`` consecutive failures the
    status reports a persistent failure and automatic retries stop until the
    next trigger.
    """

    queue: DurableQueue
    monitor: ConnectivityMonitor
    sink: RemoteSink
    retry_backoff_seconds: float = 30.0
    max_retries: int = 3
    last_result: DrainOutcome | None = field(default=None, init=False)
    last_error: str | None = field(default=None, init=False)
    consecutive_failures: int = field(default=0, init=False)
    _loop: asyncio.AbstractEventLoop | None = field(default=None, init=False)
    _subscription: Subscription | None = field(default=None, init=False)
    _drain_task: "asyncio.Task[None] | None" = field(default=None, init=False)
    _retry_task: "asyncio.Task[None] | None" = field(default=None, init=False)
    _submission: "asyncio.Future[None] | None" = field(default=None, init=False)
    _rerun_requested: bool = field(default=False, init=False)
    _cancelled_by_offline: bool = field(default=False, init=False)

    def start(self) -> None:
        """Bind to the running loop and listen for connectivity changes."""
        self._loop = asyncio.get_running_loop()
        if self._subscription is None:
            self._subscription = self.monitor.subscribe(self._on_connectivity_change)

    async def close(self) -> None:
        """Stop listening and cancel any running cycle or scheduled retry."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        tasks = [
            task
            for task in (self._retry_task, self._drain_task)
            if task is not None and not task.done()
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)

    @property
    def draining(self) -> bool:
        """Return True while a drain cycle is in progress."""
        return self._drain_task is not None and not self._drain_task.done()

    @property
    def persistent_failure(self) -> bool:
        """Return True once consecutive failures exceed the retry budget."""
        return self.consecutive_failures > self.max_retries

    def request_sync(self) -> SyncTrigger:
        """Start a drain cycle, or mark a re-run if one is already going."""
        if self.draining:
            self._rerun_requested = True
            return SyncTrigger.ALREADY_DRAINING
        loop = self._loop or asyncio.get_running_loop()
        self._rerun_requested = False
        self._drain_task = loop.create_task(self._run(), name="nutriscan-drain")
        return SyncTrigger.ACCEPTED

    def status(self) -> QueueStatus:
        """Return a snapshot of the queue and sync state."""
        return QueueStatus(
            pending_count=self.queue.pending_count(),
            last_sync_result=self.last_result,
            draining=self.draining,
            consecutive_failures=self.consecutive_failures,
            persistent_failure=self.persistent_failure,
            last_error=self.last_error,
        )

    async def wait_idle(self) -> None:
        """Wait for the current cycle, including a coalesced re-run."""
        task = self._drain_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def wait_settled(self) -> None:
        """Wait until no cycle is running and no retry is scheduled."""
        while True:
            pending = {
                task
                for task in (self._drain_task, self._retry_task)
                if task is not None and not task.done()
            }
            if not pending:
                return
            await asyncio.wait(pending)

    async def _run(self) -> None:
        self._cancel_retry()
        outcome = DrainOutcome.COMPLETED
        while True:
            self._rerun_requested = False
            try:
                outcome = await self._drain_once()
            except Exception as exc:
                _logger.exception("Drain cycle crashed")
                self.last_error = str(exc)
                outcome = DrainOutcome.PARTIALLY_FAILED
            self._record_outcome(outcome)
            if not self._rerun_requested or not self.monitor.is_online:
                break
            _logger.info("Running coalesced drain cycle")
        if outcome is DrainOutcome.PARTIALLY_FAILED:
            self._schedule_retry()

    async def _drain_once(self) -> DrainOutcome:
        records = self.queue.snapshot()
        _logger.info("Drain cycle started: %s queued record(s)", len(records))
        for record in records:
            if not self.monitor.is_online:
                _logger.info("Drain cycle aborted: offline")
                return DrainOutcome.ABORTED_OFFLINE
            if record.id not in self.queue:
                continue
            try:
                in_flight = self.queue.update_state(record.id, SyncState.SYNCING)
            except PersistenceError as exc:
                _logger.error("Drain cycle stopped: %s", exc)
                self.last_error = str(exc)
                return DrainOutcome.PARTIALLY_FAILED
            outcome = await self._deliver(in_flight)
            if outcome is not None:
                return outcome
        _logger.info("Drain cycle completed")
        return DrainOutcome.COMPLETED

    async def _deliver(self, record: ScanRecord) -> DrainOutcome | None:
        """Submit one record; return an outcome when the cycle must stop."""
        self._cancelled_by_offline = False
        self._submission = asyncio.ensure_future(self.sink.submit(record))
        try:
            await self._submission
        except asyncio.CancelledError:
            self._restore_state(record.id, SyncState.PENDING)
            current = asyncio.current_task()
            if self._cancelled_by_offline and not (current and current.cancelling()):
                _logger.info("Submission of %s cancelled: offline", record.id)
                return DrainOutcome.ABORTED_OFFLINE
            raise
        except Exception as exc:
            error = SyncError(record.id, exc)
            _logger.warning("%s", error)
            self.last_error = str(error)
            self._restore_state(record.id, SyncState.FAILED)
            return DrainOutcome.PARTIALLY_FAILED
        finally:
            self._submission = None
            self._cancelled_by_offline = False

        try:
            self.queue.remove([record.id])
        except PersistenceError as exc:
            _logger.error("Delivered %s but could not dequeue it: %s", record.id, exc)
            self.last_error = str(exc)
            self._restore_state(record.id, SyncState.PENDING)
            return DrainOutcome.PARTIALLY_FAILED
        return None

    def _restore_state(self, record_id: str, state: SyncState) -> None:
        try:
            self.queue.update_state(record_id, state)
        except PersistenceError:
            _logger.exception("Failed to persist %s state for %s", state.value, record_id)
            self.queue.release(record_id)
        except KeyError:
            _logger.warning("Record %s left the queue during submission", record_id)

    def _record_outcome(self, outcome: DrainOutcome) -> None:
        self.last_result = outcome
        if outcome is DrainOutcome.COMPLETED:
            self.consecutive_failures = 0
            self.last_error = None
        elif outcome is DrainOutcome.PARTIALLY_FAILED:
            self.consecutive_failures += 1
            if self.persistent_failure:
                _logger.warning(
                    "Sync failing persistently: %s failures, %s record(s) pending",
                    self.consecutive_failures,
                    self.queue.pending_count(),
                )

    def _schedule_retry(self) -> None:
        if self.persistent_failure or not self.monitor.is_online:
            return
        loop = self._loop or asyncio.get_running_loop()
        self._retry_task = loop.create_task(
            self._retry_after_backoff(), name="nutriscan-drain-retry"
        )

    async def _retry_after_backoff(self) -> None:
        await asyncio.sleep(self.retry_backoff_seconds)
        self._retry_task = None
        if self.monitor.is_online and not self.draining:
            _logger.info(
                "Retrying sync (attempt %s/%s)",
                self.consecutive_failures + 1,
                self.max_retries + 1,
            )
            self.request_sync()

    def _cancel_retry(self) -> None:
        task = self._retry_task
        self._retry_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _on_connectivity_change(self, online: bool) -> None:
        loop = self._loop
        if loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._handle_transition(online)
        else:
            loop.call_soon_threadsafe(self._handle_transition, online)

    def _handle_transition(self, online: bool) -> None:
        if online:
            if self.queue.pending_count():
                self.request_sync()
            return
        self._cancel_retry()
        submission = self._submission
        if submission is not None and not submission.done():
            self._cancelled_by_offline = True
            submission.cancel()
