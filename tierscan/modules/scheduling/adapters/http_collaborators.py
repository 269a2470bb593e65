"""
HTTP adapters for the enrichment backend

Implement the collaborator protocols the scan orchestrator depends on. All
adapters share one pooled httpx.AsyncClient. Only idempotent GETs are retried;
POSTs are sent exactly once.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tierscan.modules.scheduling.domain.collaborators import (
    JobStatusReport,
    PriorityClassification,
    parse_classification,
    parse_job_status,
)
from tierscan.modules.scheduling.domain.tiers import Mode
from tierscan.shared.core.exceptions import ExternalAPIError, JobStatusError

logger = structlog.get_logger()

PRIORITIES_PATH = "/api/enrichment/priorities"
BATCH_BY_IDS_PATH = "/api/enrichment/batch-by-ids"
BATCH_STATUS_PATH = "/api/enrichment/batch/{job_id}"
RECALCULATE_TOUCHED_PATH = "/api/enrichment/recalculate-touched"
LISTINGS_REFRESH_PATH = "/api/listings/refresh"
RECALCULATE_ALL_PATH = "/api/enrichment/recalculate-iai-all"

GET_RETRY_ATTEMPTS = 3


class EnrichmentBackendClient:
    """Thin JSON wrapper over the shared client with uniform error mapping."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        retry_attempts: int = GET_RETRY_ATTEMPTS,
        retry_min_wait: float = 0.5,
        retry_max_wait: float = 5.0,
        request_timeout: Optional[float] = None,
    ):
        self.client = client
        self.retry_attempts = retry_attempts
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait
        # Bounds each GET attempt; None keeps the client default.
        self.request_timeout = request_timeout

    @classmethod
    def for_deadline(
        cls, client: httpx.AsyncClient, deadline_seconds: float
    ) -> "EnrichmentBackendClient":
        """
        Size the per-attempt timeout so every retry and its backoff fit inside
        ``deadline_seconds``; one extra share is left for the waits.
        """
        return cls(
            client, request_timeout=deadline_seconds / (GET_RETRY_ATTEMPTS + 1)
        )

    async def get_json(
        self, path: str, *, allow_not_found: bool = False
    ) -> Optional[Any]:
        """GET with retries on transport errors. Returns None on 404 when allowed."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(
                    multiplier=1, min=self.retry_min_wait, max=self.retry_max_wait
                ),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            "enrichment_backend_get_retry",
                            path=path,
                            attempt=attempt.retry_state.attempt_number,
                        )
                    response = await self.client.get(path, **self._timeout_kwargs())
        except httpx.TransportError as exc:
            raise ExternalAPIError(
                f"Enrichment backend unreachable for GET {path}: {exc}",
                details={"path": path},
            ) from exc

        if allow_not_found and response.status_code == 404:
            return None
        return self._decode(response, "GET", path)

    async def post_json(self, path: str, payload: Optional[dict[str, Any]] = None) -> Any:
        try:
            response = await self.client.post(path, json=payload or {})
        except httpx.TransportError as exc:
            raise ExternalAPIError(
                f"Enrichment backend unreachable for POST {path}: {exc}",
                details={"path": path},
            ) from exc
        return self._decode(response, "POST", path)

    def _timeout_kwargs(self) -> dict[str, Any]:
        if self.request_timeout is None:
            return {}
        return {"timeout": self.request_timeout}

    @staticmethod
    def _decode(response: httpx.Response, method: str, path: str) -> Any:
        if response.is_error:
            logger.warning(
                "enrichment_backend_error_status",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise ExternalAPIError(
                f"Enrichment backend {method} {path} failed with status {response.status_code}",
                details={"path": path, "status_code": response.status_code},
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ExternalAPIError(
                f"Enrichment backend {method} {path} returned invalid JSON",
                details={"path": path},
            ) from exc


class HttpPriorityClassifier:
    def __init__(self, backend: EnrichmentBackendClient):
        self.backend = backend

    async def calculate_all_priorities(self) -> PriorityClassification:
        payload = await self.backend.get_json(PRIORITIES_PATH)
        if not isinstance(payload, dict):
            raise ExternalAPIError("Invalid priorities payload from enrichment backend")
        try:
            return parse_classification(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise ExternalAPIError(
                f"Malformed priorities payload: {exc}"
            ) from exc


class HttpBatchLauncher:
    """Batch launcher and job status source; both live on the same backend route."""

    def __init__(self, backend: EnrichmentBackendClient):
        self.backend = backend

    async def enrich_by_ids(self, ids: Sequence[int], mode: Mode) -> str:
        payload = await self.backend.post_json(
            BATCH_BY_IDS_PATH, {"complexIds": list(ids), "mode": Mode(mode).value}
        )
        job_id = payload.get("jobId") if isinstance(payload, dict) else None
        if not job_id:
            raise ExternalAPIError(
                "Batch launcher response carried no jobId",
                details={"count": len(ids), "mode": Mode(mode).value},
            )
        return str(job_id)

    async def get_job_status(self, job_id: str) -> Optional[JobStatusReport]:
        try:
            payload = await self.backend.get_json(
                BATCH_STATUS_PATH.format(job_id=job_id), allow_not_found=True
            )
        except ExternalAPIError as exc:
            raise JobStatusError(
                f"Status lookup failed for job {job_id}",
                details={"job_id": job_id, **exc.details},
            ) from exc
        if payload is None:
            return None
        try:
            return parse_job_status(payload)
        except (KeyError, TypeError, ValueError):
            # Unknown status values are treated as "not yet known".
            logger.warning("job_status_unparseable", job_id=job_id)
            return None


class HttpRecalculationTrigger:
    def __init__(self, backend: EnrichmentBackendClient):
        self.backend = backend

    async def recalculate_touched_since(self, since: datetime) -> None:
        await self.backend.post_json(
            RECALCULATE_TOUCHED_PATH, {"since": since.isoformat()}
        )


class HttpListingRefresher:
    def __init__(self, backend: EnrichmentBackendClient):
        self.backend = backend

    async def refresh_listings(self) -> None:
        await self.backend.post_json(LISTINGS_REFRESH_PATH)


class HttpScoreRecalculator:
    def __init__(self, backend: EnrichmentBackendClient):
        self.backend = backend

    async def recalculate_all(self) -> None:
        await self.backend.post_json(RECALCULATE_ALL_PATH)
