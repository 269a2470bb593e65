import secrets
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, field_validator, model_validator

from tierscan.modules.scheduling.domain.orchestrator import TieredScanOrchestrator
from tierscan.modules.scheduling.domain.tiers import Mode, Tier
from tierscan.shared.core.config import get_settings

router = APIRouter(tags=["Scheduler"])
logger = structlog.get_logger()


async def validate_admin_key(
    request: Request, x_admin_key: str = Header(..., alias="X-Admin-Key")
) -> bool:
    """Dependency to validate the admin API key."""
    settings = get_settings()

    if not settings.ADMIN_API_KEY:
        logger.error("admin_key_not_configured")
        raise HTTPException(
            status_code=503, detail="Admin endpoint not configured. Set ADMIN_API_KEY."
        )

    if not secrets.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        client_host = request.client.host if request.client else "unknown"
        logger.warning(
            "admin_auth_failed",
            client_ip=client_host,
            path=request.url.path,
        )
        raise HTTPException(status_code=403, detail="Forbidden")

    return True


def get_orchestrator(request: Request) -> TieredScanOrchestrator:
    scheduler: Optional[TieredScanOrchestrator] = getattr(
        request.app.state, "scheduler", None
    )
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not initialized")
    return scheduler


class ScanRequest(BaseModel):
    tier: Tier
    mode: Optional[Mode] = None

    @model_validator(mode="before")
    @classmethod
    def _expand_full_hot_label(cls, data: Any) -> Any:
        # "1full" is the HOT tier in FULL mode unless a mode is given.
        if isinstance(data, dict) and str(data.get("tier", "")).strip().lower() == "1full":
            data = {**data, "tier": Tier.HOT}
            if not data.get("mode"):
                data["mode"] = Mode.FULL
        return data

    @field_validator("tier", mode="before")
    @classmethod
    def _coerce_tier(cls, value: Any) -> Any:
        # Tier._missing_ accepts "HOT", "1" and friends; pydantic only tries values.
        return Tier(value) if isinstance(value, (str, int)) else value

    @field_validator("mode", mode="before")
    @classmethod
    def _coerce_mode(cls, value: Any) -> Any:
        return Mode(value) if isinstance(value, str) else value


class ChainRequest(ScanRequest):
    after_job_id: str
    mode: Optional[Mode] = Mode.STANDARD


class ScanResponse(BaseModel):
    status: str
    job_id: Optional[str] = None
    tier: Optional[str] = None
    mode: Optional[str] = None
    count: int = 0
    estimated_cost: float = 0.0
    estimated_minutes: float = 0.0


class ChainResponse(BaseModel):
    status: str
    queue_length: int


class MonitorResponse(BaseModel):
    finished: int
    active_jobs: int
    active_job_details: dict[str, Any]


@router.get("/status")
async def get_status(
    _: bool = Depends(validate_admin_key),
    scheduler: TieredScanOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Scheduler state snapshot: active jobs, chain queue, last runs, calendar."""
    return scheduler.get_scheduler_status()


@router.post("/scan", response_model=ScanResponse)
async def launch_scan(
    body: ScanRequest,
    _: bool = Depends(validate_admin_key),
    scheduler: TieredScanOrchestrator = Depends(get_orchestrator),
) -> ScanResponse:
    """Manually launch a tier scan. Bypasses the calendar gate."""
    logger.info(
        "manual_scan_requested",
        tier=body.tier.value,
        mode=body.mode.value if body.mode else None,
    )
    handle = await scheduler.launch_tier_scan(body.tier, body.mode)
    if handle is None:
        return ScanResponse(status="empty", tier=body.tier.value)
    return ScanResponse(
        status="launched",
        job_id=handle.job_id,
        tier=handle.tier.value,
        mode=handle.mode.value,
        count=handle.entity_count,
        estimated_cost=float(handle.estimated_cost),
        estimated_minutes=float(handle.estimated_minutes),
    )


@router.post("/chain", response_model=ChainResponse)
async def chain_scan(
    body: ChainRequest,
    _: bool = Depends(validate_admin_key),
    scheduler: TieredScanOrchestrator = Depends(get_orchestrator),
) -> ChainResponse:
    queue_length = scheduler.chain_after(
        body.after_job_id, body.tier, body.mode or Mode.STANDARD
    )
    return ChainResponse(status="chained", queue_length=queue_length)


@router.post("/monitor", response_model=MonitorResponse)
async def run_monitor(
    _: bool = Depends(validate_admin_key),
    scheduler: TieredScanOrchestrator = Depends(get_orchestrator),
) -> MonitorResponse:
    """Force one monitor pass instead of waiting for the next tick."""
    finished = await scheduler.monitor_jobs()
    status = scheduler.get_scheduler_status()
    return MonitorResponse(
        finished=finished,
        active_jobs=status["active_jobs"],
        active_job_details=status["active_job_details"],
    )
