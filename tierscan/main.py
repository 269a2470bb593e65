from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from tierscan.modules.scheduling.adapters.http_collaborators import (
    EnrichmentBackendClient,
    HttpBatchLauncher,
    HttpListingRefresher,
    HttpPriorityClassifier,
    HttpRecalculationTrigger,
    HttpScoreRecalculator,
)
from tierscan.modules.scheduling.api.v1.scheduler import router as scheduler_router
from tierscan.modules.scheduling.domain.calendar_gate import CalendarGate
from tierscan.modules.scheduling.domain.orchestrator import TieredScanOrchestrator
from tierscan.shared.core.config import (
    Settings,
    get_settings,
    reload_settings_from_environment,
)
from tierscan.shared.core.exceptions import TierscanException
from tierscan.shared.core.http import (
    close_http_client,
    get_http_client,
    init_http_client,
)
from tierscan.shared.core.logging import setup_logging
from tierscan.shared.core.middleware import RequestIDMiddleware
from tierscan.shared.core.ops_metrics import API_ERRORS_TOTAL

setup_logging()
settings = get_settings()
logger = structlog.get_logger()


def build_orchestrator(settings: Settings) -> TieredScanOrchestrator:
    """Wire the HTTP collaborators and calendar gate into an orchestrator."""
    backend = EnrichmentBackendClient.for_deadline(
        get_http_client(), settings.EXTERNAL_CALL_TIMEOUT_SECONDS
    )
    launcher = HttpBatchLauncher(backend)
    return TieredScanOrchestrator(
        classifier=HttpPriorityClassifier(backend),
        launcher=launcher,
        status_source=launcher,
        recalculator=HttpRecalculationTrigger(backend),
        listing_refresher=HttpListingRefresher(backend),
        score_recalculator=HttpScoreRecalculator(backend),
        calendar_gate=CalendarGate.from_settings(settings),
        call_timeout_seconds=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
        monitor_interval_minutes=settings.MONITOR_INTERVAL_MINUTES,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    global settings
    settings = reload_settings_from_environment()
    logger.info("app_starting", app_name=settings.APP_NAME)

    await init_http_client()

    scheduler = build_orchestrator(settings)
    if settings.TESTING:
        logger.info("scheduler_skipped_in_testing")
    elif not settings.SCHEDULER_ENABLED:
        logger.warning("scheduler_disabled", msg="Set SCHEDULER_ENABLED=true to run triggers")
    else:
        scheduler.start()
    app.state.scheduler = scheduler

    yield

    logger.info("app_shutting_down")
    scheduler.stop()
    await close_http_client()


tierscan_app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
)
app = tierscan_app

__all__ = ["app", "tierscan_app", "lifespan", "build_orchestrator"]


@tierscan_app.exception_handler(TierscanException)
async def tierscan_exception_handler(
    request: Request, exc: TierscanException
) -> JSONResponse:
    """Handle custom application exceptions."""
    API_ERRORS_TOTAL.labels(
        path=request.url.path, method=request.method, status_code=exc.status_code
    ).inc()
    logger.warning(
        "api_application_error",
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code,
        error=exc.message,
    )
    is_prod = settings.ENVIRONMENT.lower() in {"production", "staging"}
    message = (
        "An error occurred while processing your request" if is_prod else exc.message
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "code": exc.code, "message": message},
    )


@tierscan_app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions with standardized format."""
    detail_text = str(exc.detail) if isinstance(exc.detail, str) else "Request failed"
    API_ERRORS_TOTAL.labels(
        path=request.url.path, method=request.method, status_code=exc.status_code
    ).inc()
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": detail_text, "code": "HTTP_ERROR", "message": detail_text},
    )


@tierscan_app.get("/health", tags=["Lifecycle"])
async def health_check(request: Request) -> dict[str, Any]:
    """Liveness plus a short scheduler summary."""
    health: dict[str, Any] = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.VERSION,
    }
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        status = scheduler.get_scheduler_status()
        health["scheduler"] = {
            "running": status["running"],
            "active_jobs": status["active_jobs"],
            "run_allowed_today": status["run_allowed_today"],
            "skip_reason": status["skip_reason"],
        }
    return health


tierscan_app.add_middleware(RequestIDMiddleware)
tierscan_app.include_router(scheduler_router, prefix="/api/v1/scheduler")

Instrumentator().instrument(tierscan_app).expose(tierscan_app)
