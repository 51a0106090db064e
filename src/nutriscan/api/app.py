"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from nutriscan.api.models import (
    ConnectivityUpdate,
    EvaluateRequest,
    EvaluationResponse,
    FlagModel,
    OfflineModeUpdate,
    QueueStatusResponse,
    ScanRequest,
    ScanResponse,
    SyncResponse,
)
from nutriscan.app_logging import configure_logging
from nutriscan.containers import AppContainer
from nutriscan.domain.errors import PersistenceError, ValidationError
from nutriscan.services.rules import health_score, highest_level


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        state_container.coordinator.start()
        probe_task = None
        if state_container.connectivity_probe is not None:
            probe_task = asyncio.create_task(state_container.connectivity_probe.run())
        service = state_container.scan_service
        if (
            service.get_pending_count()
            and state_container.monitor.is_online
            and not service.is_offline_mode()
        ):
            logger.info(
                "Resuming sync of %s queued scan(s)", service.get_pending_count()
            )
            service.request_sync()
        yield
        if probe_task is not None:
            probe_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await probe_task
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(ValidationError)
    async def handle_validation_error(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc)},
        )

    @app.exception_handler(PersistenceError)
    async def handle_persistence_error(
        request: Request, exc: PersistenceError
    ) -> JSONResponse:
        logger.error("Persistence failure: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Scan could not be stored. Try again."},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/evaluate")
    async def evaluate(payload: EvaluateRequest, request: Request) -> EvaluationResponse:
        """Evaluate a nutrient profile without recording it."""
        state_container: AppContainer = request.app.state.container
        evaluation = state_container.scan_service.evaluate(
            payload.nutrients, payload.condition
        )
        return EvaluationResponse(
            flags=[
                FlagModel(level=flag.level, message=flag.message)
                for flag in evaluation.flags
            ],
            recommendations=list(evaluation.recommendations),
            health_score=health_score(evaluation.flags),
            highest_level=highest_level(evaluation.flags),
        )

    @app.post("/scans", status_code=status.HTTP_201_CREATED)
    async def record_scan(payload: ScanRequest, request: Request) -> ScanResponse:
        """Evaluate and durably queue a scan."""
        state_container: AppContainer = request.app.state.container
        record = state_container.scan_service.record_scan(
            payload.nutrients,
            payload.condition,
            dish_name=payload.dish_name,
            user_id=payload.user_id,
        )
        return ScanResponse.from_record(record)

    @app.get("/queue")
    async def queue_status(request: Request) -> QueueStatusResponse:
        """Return sync status and the queued scans."""
        state_container: AppContainer = request.app.state.container
        service = state_container.scan_service
        queue_state = service.get_queue_status()
        return QueueStatusResponse(
            pending_count=queue_state.pending_count,
            last_sync_result=queue_state.last_sync_result,
            draining=queue_state.draining,
            consecutive_failures=queue_state.consecutive_failures,
            persistent_failure=queue_state.persistent_failure,
            last_error=queue_state.last_error,
            online=state_container.monitor.is_online,
            offline_mode=service.is_offline_mode(),
            records=[
                ScanResponse.from_record(record)
                for record in state_container.queue.snapshot()
            ],
        )

    @app.post("/sync", status_code=status.HTTP_202_ACCEPTED)
    async def request_sync(request: Request) -> SyncResponse:
        """Start a drain cycle in the background."""
        state_container: AppContainer = request.app.state.container
        return SyncResponse(status=state_container.scan_service.request_sync())

    @app.post("/connectivity")
    async def connectivity(
        payload: ConnectivityUpdate, request: Request
    ) -> dict[str, bool]:
        """Receive a host connectivity event."""
        state_container: AppContainer = request.app.state.container
        changed = state_container.monitor.set_online(payload.online)
        return {"online": payload.online, "changed": changed}

    @app.get("/offline-mode")
    async def get_offline_mode(request: Request) -> OfflineModeUpdate:
        """Return the offline-mode preference."""
        state_container: AppContainer = request.app.state.container
        return OfflineModeUpdate(enabled=state_container.scan_service.is_offline_mode())

    @app.put("/offline-mode")
    async def set_offline_mode(
        payload: OfflineModeUpdate, request: Request
    ) -> OfflineModeUpdate:
        """Persist the offline-mode preference."""
        state_container: AppContainer = request.app.state.container
        state_container.scan_service.set_offline_mode(payload.enabled)
        return payload

    @app.post("/offline-mode/toggle")
    async def toggle_offline_mode(request: Request) -> OfflineModeUpdate:
        """Flip the offline-mode preference."""
        state_container: AppContainer = request.app.state.container
        return OfflineModeUpdate(
            enabled=state_container.scan_service.toggle_offline_mode()
        )

    return app
