"""
Timeout helpers for external collaborator calls

Every call the scheduler makes to the enrichment backend is time-bounded so a
single slow request cannot starve the other triggers sharing the event loop.
"""

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from tierscan.shared.core.exceptions import ExternalAPIError
from tierscan.shared.core.ops_metrics import record_timeout_metrics

logger = structlog.get_logger()

T = TypeVar("T")


async def call_with_timeout(
    operation: str, awaitable: Awaitable[T], timeout_seconds: float
) -> T:
    """Await ``awaitable`` for at most ``timeout_seconds``.

    Raises:
        ExternalAPIError: with code ``timeout_error`` when the deadline passes.
    """
    start_time = time.perf_counter()
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        execution_time = time.perf_counter() - start_time
        record_timeout_metrics(operation)
        logger.warning(
            "operation_timed_out",
            operation=operation,
            execution_time_seconds=round(execution_time, 3),
            timeout_seconds=timeout_seconds,
        )
        raise ExternalAPIError(
            f"{operation} timed out after {timeout_seconds} seconds",
            code="timeout_error",
            details={"operation": operation, "timeout_seconds": timeout_seconds},
        )
