"""
Async HTTP Client Shared Infrastructure

One pooled httpx.AsyncClient shared by every enrichment backend adapter, created
in the FastAPI lifespan and closed on shutdown.
"""

from typing import Optional

import httpx
import structlog

from tierscan.shared.core.config import get_settings
from tierscan.shared.core.exceptions import ConfigurationError

logger = structlog.get_logger()

_client: Optional[httpx.AsyncClient] = None


def _build_client() -> httpx.AsyncClient:
    settings = get_settings()
    if not settings.ENRICHMENT_API_URL.startswith(("http://", "https://")):
        raise ConfigurationError(
            "ENRICHMENT_API_URL must be an absolute http(s) URL",
            details={"value": settings.ENRICHMENT_API_URL},
        )
    headers = {"User-Agent": f"{settings.APP_NAME}/{settings.VERSION}"}
    if settings.ENRICHMENT_API_KEY:
        headers["X-API-Key"] = settings.ENRICHMENT_API_KEY
    return httpx.AsyncClient(
        base_url=settings.ENRICHMENT_API_URL,
        timeout=httpx.Timeout(settings.EXTERNAL_CALL_TIMEOUT_SECONDS, connect=10.0),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
        headers=headers,
    )


def get_http_client() -> httpx.AsyncClient:
    """Returns the shared client, creating it lazily if the lifespan did not."""
    global _client
    if _client is None:
        logger.warning(
            "http_client_lazy_initialized", msg="Client was not pre-initialized"
        )
        _client = _build_client()
    return _client


async def init_http_client() -> None:
    global _client
    if _client is not None:
        logger.warning("http_client_already_initialized")
        return
    _client = _build_client()
    logger.info("http_client_initialized", base_url=str(_client.base_url))


async def close_http_client() -> None:
    """Gracefully shuts down the shared client, flushing its pool."""
    global _client
    if _client is None:
        return
    await _client.aclose()
    _client = None
    logger.info("http_client_closed")
