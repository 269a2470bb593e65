"""
Operational Metrics for the tiered scan scheduler

Prometheus metrics tracking scan launches, job lifecycles, chain depth,
estimated enrichment spend and trigger health.
"""

from prometheus_client import Counter, Gauge, Histogram

# --- Scan Launches ---
SCAN_LAUNCHES_TOTAL = Counter(
    "tierscan_scan_launches_total",
    "Total number of enrichment scan jobs launched",
    ["tier", "mode"],
)

SCAN_LAUNCH_FAILURES_TOTAL = Counter(
    "tierscan_scan_launch_failures_total",
    "Total number of tier scan launches rejected by the batch launcher",
    ["tier", "reason"],  # reason: rejected, timeout, classifier, duplicate
)

SCAN_ESTIMATED_COST_USD = Counter(
    "tierscan_scan_estimated_cost_usd_total",
    "Estimated enrichment spend of finished scan jobs in USD",
    ["tier", "mode"],
)

# --- Job Lifecycle ---
ACTIVE_SCAN_JOBS = Gauge(
    "tierscan_active_scan_jobs",
    "Current number of scan jobs tracked in the job registry",
)

CHAIN_QUEUE_DEPTH = Gauge(
    "tierscan_chain_queue_depth",
    "Current number of pending chained launches",
)

SCAN_JOB_DURATION = Histogram(
    "tierscan_scan_job_duration_seconds",
    "Wall-clock duration of finished scan jobs",
    ["tier", "status"],
    buckets=(60, 300, 900, 1800, 3600, 7200, 14400, 28800, 86400),
)

SCAN_JOBS_FINISHED_TOTAL = Counter(
    "tierscan_scan_jobs_finished_total",
    "Total number of scan jobs observed in a terminal state",
    ["tier", "status"],
)

# --- Triggers ---
TRIGGER_RUNS_TOTAL = Counter(
    "tierscan_trigger_runs_total",
    "Total number of scheduler trigger runs by outcome",
    ["trigger", "outcome"],  # outcome: success, skipped, failure
)

# --- External Calls ---
EXTERNAL_CALL_TIMEOUTS_TOTAL = Counter(
    "tierscan_external_call_timeouts_total",
    "Total number of external calls that exceeded their timeout",
    ["operation"],
)

API_ERRORS_TOTAL = Counter(
    "tierscan_api_errors_total",
    "Total number of API errors by status code and path",
    ["path", "method", "status_code"],
)


def record_registry_gauges(active_jobs: int, chain_depth: int) -> None:
    """Publish the current registry and chain queue sizes."""
    ACTIVE_SCAN_JOBS.set(active_jobs)
    CHAIN_QUEUE_DEPTH.set(chain_depth)


def record_timeout_metrics(operation: str) -> None:
    """Record a timed-out external call."""
    EXTERNAL_CALL_TIMEOUTS_TOTAL.labels(operation=operation).inc()
