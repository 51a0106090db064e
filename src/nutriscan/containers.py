"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from nutriscan.adapters.connectivity_probe import HttpxConnectivityProbe
from nutriscan.adapters.file_persistence import FilePersistence
from nutriscan.adapters.http_scan_sink import HttpxScanSink
from nutriscan.adapters.supabase_scan_sink import SupabaseScanSink
from nutriscan.config import Settings
from nutriscan.services.connectivity import ConnectivityMonitor
from nutriscan.services.queue import DurableQueue, OfflineModePreference
from nutriscan.services.records import ScanRecordBuilder
from nutriscan.services.rules import RuleEngine
from nutriscan.services.scans import ScanService
from nutriscan.services.sync import RemoteSink, SyncCoordinator


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    monitor: ConnectivityMonitor
    queue: DurableQueue
    coordinator: SyncCoordinator
    scan_service: ScanService
    connectivity_probe: HttpxConnectivityProbe | None
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    persistence = FilePersistence.create(resolved_settings.data_dir)
    queue = DurableQueue(persistence)
    queue.reload()
    monitor = ConnectivityMonitor(online=resolved_settings.start_online)
    sink, close_sink = _build_sink(resolved_settings)
    coordinator = SyncCoordinator(
        queue=queue,
        monitor=monitor,
        sink=sink,
        retry_backoff_seconds=resolved_settings.sync_retry_backoff_seconds,
        max_retries=resolved_settings.sync_max_retries,
    )
    rule_engine = RuleEngine()
    scan_service = ScanService(
        rule_engine=rule_engine,
        builder=ScanRecordBuilder(rule_engine),
        queue=queue,
        monitor=monitor,
        coordinator=coordinator,
        offline_mode=OfflineModePreference(persistence),
    )
    probe = None
    if resolved_settings.connectivity_probe_url:
        probe = HttpxConnectivityProbe.create(
            resolved_settings.connectivity_probe_url,
            monitor,
            interval_seconds=resolved_settings.connectivity_probe_interval_seconds,
        )

    async def close_resources() -> None:
        await coordinator.close()
        if probe is not None:
            await probe.close()
        if close_sink is not None:
            await close_sink()

    return AppContainer(
        settings=resolved_settings,
        monitor=monitor,
        queue=queue,
        coordinator=coordinator,
        scan_service=scan_service,
        connectivity_probe=probe,
        close_resources=close_resources,
    )


def _build_sink(
    settings: Settings,
) -> tuple[RemoteSink, Callable[[], Awaitable[None]] | None]:
    """Create the configured remote sink and its close hook, if any."""
    if settings.remote_sink == "http":
        if not settings.sink_url:
            raise ValueError("NUTRISCAN_SINK_URL is required for the http sink")
        http_sink = HttpxScanSink.create(settings.sink_url, token=settings.sink_token)
        return http_sink, http_sink.close
    if not settings.supabase_url or not settings.supabase_service_key:
        raise ValueError(
            "NUTRISCAN_SUPABASE_URL and NUTRISCAN_SUPABASE_SERVICE_KEY are required"
        )
    client = create_client(settings.supabase_url, settings.supabase_service_key)
    return SupabaseScanSink(client, table=settings.supabase_table), None
