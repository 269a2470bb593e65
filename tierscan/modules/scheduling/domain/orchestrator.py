from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger

from tierscan.modules.scheduling.domain.calendar_gate import (
    CalendarGate,
    holidays_as_dicts,
    is_first_or_third_week,
    is_first_week_of_month,
    next_biweekly_toggle,
)
from tierscan.modules.scheduling.domain.collaborators import (
    BatchLauncher,
    JobStatusReport,
    JobStatusSource,
    ListingRefresher,
    PriorityClassifier,
    RecalculationTrigger,
    ScoreRecalculator,
)
from tierscan.modules.scheduling.domain.state import (
    ChainEntry,
    JobHandle,
    RankingSnapshot,
    RunStat,
    SchedulerState,
)
from tierscan.modules.scheduling.domain.tiers import (
    Mode,
    Tier,
    default_mode_for,
    estimate_cost,
    estimate_monthly_budget,
)
from tierscan.shared.core.exceptions import (
    ClassifierError,
    ScanLaunchError,
    TierscanException,
)
from tierscan.shared.core.ops_metrics import (
    SCAN_ESTIMATED_COST_USD,
    SCAN_JOB_DURATION,
    SCAN_JOBS_FINISHED_TOTAL,
    SCAN_LAUNCH_FAILURES_TOTAL,
    SCAN_LAUNCHES_TOTAL,
    TRIGGER_RUNS_TOTAL,
    record_registry_gauges,
)
from tierscan.shared.core.timeout import call_with_timeout

logger = structlog.get_logger()

TriggerHandler = Callable[[datetime], Awaitable[None]]


@dataclass(frozen=True)
class TriggerRule:
    id: str
    description: str
    trigger: BaseTrigger
    calendar_gated: bool
    handler: TriggerHandler


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TieredScanOrchestrator:
    """
    Launches tiered enrichment scans, tracks them by polling and chains
    follow-up tiers when a prerequisite job finishes.

    Runs on a single event loop. Collaborators are injected; state is
    memory-resident and owned by this instance.
    """

    def __init__(
        self,
        classifier: PriorityClassifier,
        launcher: BatchLauncher,
        status_source: JobStatusSource,
        recalculator: RecalculationTrigger,
        listing_refresher: ListingRefresher,
        score_recalculator: ScoreRecalculator,
        calendar_gate: CalendarGate,
        state: Optional[SchedulerState] = None,
        call_timeout_seconds: float = 30.0,
        monitor_interval_minutes: int = 2,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.classifier = classifier
        self.launcher = launcher
        self.status_source = status_source
        self.recalculator = recalculator
        self.listing_refresher = listing_refresher
        self.score_recalculator = score_recalculator
        self.calendar_gate = calendar_gate
        self.state = state or SchedulerState()
        self.call_timeout_seconds = call_timeout_seconds
        self.monitor_interval_minutes = monitor_interval_minutes
        self.clock = clock
        self.scheduler = AsyncIOScheduler(timezone=calendar_gate.timezone)
        self.rules: Dict[str, TriggerRule] = {r.id: r for r in self._build_rules()}

    # ------------------------------------------------------------------
    # Launching
    # ------------------------------------------------------------------

    async def launch_tier_scan(
        self,
        tier: Tier | str,
        mode_override: Mode | str | None = None,
        monthly_refresh: bool = False,
    ) -> Optional[JobHandle]:
        """
        Classify the population afresh and start an enrichment job for one tier.

        Returns the registered handle, or None when the tier has no candidates.
        Never waits for the job itself to finish.

        Raises:
            ClassifierError: the classifier failed or timed out.
            ScanLaunchError: the batch launcher rejected the job or timed out.
        """
        async with self.state.lock:
            return await self._launch_locked(
                Tier(tier),
                Mode(mode_override) if mode_override else None,
                monthly_refresh,
            )

    async def _launch_locked(
        self, tier: Tier, mode_override: Optional[Mode], monthly_refresh: bool = False
    ) -> Optional[JobHandle]:
        mode = mode_override or default_mode_for(tier, monthly_refresh)

        try:
            classification = await call_with_timeout(
                "calculate_all_priorities",
                self.classifier.calculate_all_priorities(),
                self.call_timeout_seconds,
            )
        except Exception as exc:
            SCAN_LAUNCH_FAILURES_TOTAL.labels(tier=tier.value, reason="classifier").inc()
            logger.error("scheduler_classifier_failed", tier=tier.value, error=str(exc))
            raise ClassifierError(
                f"Priority classification failed for tier {tier.value}",
                details={"tier": tier.value, "error": str(exc)},
            ) from exc

        ids = classification.tier(tier).ids
        if not ids:
            logger.info("scheduler_tier_empty", tier=tier.value, mode=mode.value)
            return None

        cost = estimate_cost(len(ids), mode)

        try:
            job_id = await call_with_timeout(
                "enrich_by_ids",
                self.launcher.enrich_by_ids(ids, mode),
                self.call_timeout_seconds,
            )
        except Exception as exc:
            reason = (
                "timeout"
                if isinstance(exc, TierscanException) and exc.code == "timeout_error"
                else "rejected"
            )
            SCAN_LAUNCH_FAILURES_TOTAL.labels(tier=tier.value, reason=reason).inc()
            logger.error(
                "scheduler_scan_launch_failed",
                tier=tier.value,
                mode=mode.value,
                count=len(ids),
                reason=reason,
                error=str(exc),
            )
            raise ScanLaunchError(
                f"Batch launcher rejected tier {tier.value} scan",
                details={"tier": tier.value, "mode": mode.value, "reason": reason},
            ) from exc

        handle = JobHandle(
            job_id=str(job_id),
            tier=tier,
            mode=mode,
            entity_count=len(ids),
            started_at=self.clock(),
            estimated_cost=cost,
        )
        try:
            self.state.register(handle)
        except ValueError as exc:
            SCAN_LAUNCH_FAILURES_TOTAL.labels(tier=tier.value, reason="duplicate").inc()
            raise ScanLaunchError(
                f"Launcher returned an already tracked job id {handle.job_id}",
                details={"tier": tier.value, "job_id": handle.job_id},
            ) from exc

        SCAN_LAUNCHES_TOTAL.labels(tier=tier.value, mode=mode.value).inc()
        record_registry_gauges(len(self.state.registry), len(self.state.chain_queue))
        logger.info(
            "scheduler_scan_launched",
            job_id=handle.job_id,
            tier=tier.value,
            mode=mode.value,
            count=len(ids),
            estimated_cost=float(cost),
        )
        return handle

    def chain_after(self, after_job_id: str, tier: Tier | str, mode: Mode | str) -> int:
        """Launch ``tier`` in ``mode`` once ``after_job_id`` finishes.

        The anchor is not validated: it may be a job launched but not yet
        observed. Returns the chain queue length.
        """
        entry = ChainEntry(
            after_job_id=after_job_id,
            tier=Tier(tier),
            mode=Mode(mode),
            created_at=self.clock(),
        )
        self.state.chain_queue.append(entry)
        record_registry_gauges(len(self.state.registry), len(self.state.chain_queue))
        logger.info(
            "scheduler_chain_registered",
            after_job_id=after_job_id,
            tier=entry.tier.value,
            mode=entry.mode.value,
            queue_length=len(self.state.chain_queue),
        )
        return len(self.state.chain_queue)

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    async def monitor_jobs(self) -> int:
        """
        Poll every registered job once and finalize those that reached a
        terminal status. Returns the number of jobs finalized.
        """
        if not self.state.registry:
            return 0

        finished = 0
        for job_id in list(self.state.registry):
            try:
                report = await call_with_timeout(
                    "get_job_status",
                    self.status_source.get_job_status(job_id),
                    self.call_timeout_seconds,
                )
            except Exception as exc:
                logger.warning("scheduler_job_status_failed", job_id=job_id, error=str(exc))
                continue

            if report is None or not report.is_terminal:
                continue

            try:
                async with self.state.lock:
                    if await self._finalize_locked(job_id, report):
                        finished += 1
            except Exception as exc:
                logger.error(
                    "scheduler_job_finalize_failed",
                    job_id=job_id,
                    error=str(exc),
                    exc_info=True,
                )

        record_registry_gauges(len(self.state.registry), len(self.state.chain_queue))
        return finished

    async def _finalize_locked(self, job_id: str, report: JobStatusReport) -> bool:
        # Registry membership is the only idempotence gate.
        handle = self.state.registry.get(job_id)
        if handle is None:
            return False

        completed_at = report.completed_at or self.clock()
        duration = max(0.0, (completed_at - handle.started_at).total_seconds())
        self.state.run_stats[handle.tier] = RunStat(
            job_id=job_id,
            mode=handle.mode,
            status=report.status.value,
            enriched=report.enriched,
            total=report.total,
            fields_updated=report.total_fields_updated,
            errors=report.errors,
            cost=handle.estimated_cost,
            duration_seconds=duration,
            completed_at=completed_at,
        )
        self.state.total_cost += handle.estimated_cost

        SCAN_JOBS_FINISHED_TOTAL.labels(tier=handle.tier.value, status=report.status.value).inc()
        SCAN_JOB_DURATION.labels(tier=handle.tier.value, status=report.status.value).observe(duration)
        SCAN_ESTIMATED_COST_USD.labels(tier=handle.tier.value, mode=handle.mode.value).inc(
            float(handle.estimated_cost)
        )
        logger.info(
            "scheduler_job_finished",
            job_id=job_id,
            tier=handle.tier.value,
            status=report.status.value,
            enriched=report.enriched,
            total=report.total,
            fields=report.total_fields_updated,
            errors=report.errors,
            duration_seconds=round(duration, 1),
            cost=float(handle.estimated_cost),
        )

        await self._fire_chain_locked(job_id)
        await self._recalculate_after(handle)
        self.state.release(job_id)
        return True

    async def _fire_chain_locked(self, finished_job_id: str) -> Optional[JobHandle]:
        # Errored jobs fire their dependents too.
        while True:
            entry = self.state.take_chain_entry(finished_job_id)
            if entry is None:
                return None

            logger.info(
                "scheduler_chain_triggered",
                after_job_id=finished_job_id,
                tier=entry.tier.value,
                mode=entry.mode.value,
            )
            try:
                handle = await self._launch_locked(entry.tier, entry.mode)
            except TierscanException as exc:
                logger.error(
                    "scheduler_chain_launch_failed",
                    after_job_id=finished_job_id,
                    tier=entry.tier.value,
                    error=exc.message,
                )
                handle = None

            if handle is not None:
                moved = self.state.repoint_chain(finished_job_id, handle.job_id)
                if moved:
                    logger.info(
                        "scheduler_chain_repointed",
                        old_job_id=finished_job_id,
                        new_job_id=handle.job_id,
                        entries=moved,
                    )
                return handle
            # Nothing launched; let the next dependent of the same anchor fire.

    async def _recalculate_after(self, handle: JobHandle) -> None:
        try:
            await call_with_timeout(
                "recalculate_touched_since",
                self.recalculator.recalculate_touched_since(handle.started_at),
                self.call_timeout_seconds,
            )
            logger.info("scheduler_recalc_after_batch", job_id=handle.job_id)
        except Exception as exc:
            logger.warning("scheduler_recalc_failed", job_id=handle.job_id, error=str(exc))

    # ------------------------------------------------------------------
    # Trigger handlers
    # ------------------------------------------------------------------

    async def hot_tier_job(self, now: datetime) -> None:
        if is_first_week_of_month(self.calendar_gate.localize(now)):
            logger.info("scheduler_hot_monthly_full_scan")
            handle = await self.launch_tier_scan(Tier.HOT, monthly_refresh=True)
            if handle is not None:
                self.chain_after(handle.job_id, Tier.ACTIVE, Mode.STANDARD)
            return

        logger.info("scheduler_hot_weekly_scan")
        await self.launch_tier_scan(Tier.HOT)

    async def active_tier_job(self, now: datetime) -> None:
        self.state.biweekly_toggle = next_biweekly_toggle(self.state.biweekly_toggle)
        if not self.state.biweekly_toggle:
            logger.info("scheduler_active_skip_week")
            return

        logger.info("scheduler_active_biweekly_scan")
        await self.launch_tier_scan(Tier.ACTIVE)

    async def dormant_tier_job(self, now: datetime) -> None:
        if not is_first_or_third_week(self.calendar_gate.localize(now)):
            logger.info("scheduler_dormant_off_week")
            return

        logger.info("scheduler_dormant_scan")
        await self.launch_tier_scan(Tier.DORMANT)

    async def monitor_trigger_job(self, now: datetime) -> None:
        await self.monitor_jobs()

    async def listing_refresh_job(self, now: datetime) -> None:
        logger.info("scheduler_listing_refresh")
        await call_with_timeout(
            "refresh_listings",
            self.listing_refresher.refresh_listings(),
            self.call_timeout_seconds,
        )

    async def score_recalc_job(self, now: datetime) -> None:
        logger.info("scheduler_score_recalc")
        await call_with_timeout(
            "recalculate_all",
            self.score_recalculator.recalculate_all(),
            self.call_timeout_seconds,
        )

    async def rerank_job(self, now: datetime) -> None:
        """Re-query the classifier for observability only; launches nothing."""
        classification = await call_with_timeout(
            "calculate_all_priorities",
            self.classifier.calculate_all_priorities(),
            self.call_timeout_seconds,
        )
        counts = {tier.value: classification.tier(tier).count for tier in Tier}
        self.state.last_ranking = RankingSnapshot(
            taken_at=self.clock(),
            tier_counts=counts,
            top=[
                {"id": e.id, "name": e.name, "city": e.city, "score": e.priority_score}
                for e in list(classification.top)[:5]
            ],
        )
        logger.info("scheduler_rerank_completed", **counts)

    # ------------------------------------------------------------------
    # Trigger set
    # ------------------------------------------------------------------

    def _build_rules(self) -> list[TriggerRule]:
        tz = self.calendar_gate.timezone
        return [
            TriggerRule(
                id="job_monitor",
                description=f"Every {self.monitor_interval_minutes} minutes",
                trigger=CronTrigger(minute=f"*/{self.monitor_interval_minutes}", timezone=tz),
                calendar_gated=False,
                handler=self.monitor_trigger_job,
            ),
            TriggerRule(
                id="tier_hot_scan",
                description="Sun 08:00 STANDARD (FULL first week of month, then ACTIVE)",
                trigger=CronTrigger(day_of_week="sun", hour=8, minute=0, timezone=tz),
                calendar_gated=True,
                handler=self.hot_tier_job,
            ),
            TriggerRule(
                id="tier_active_scan",
                description="Mon 08:00 STANDARD (bi-weekly)",
                trigger=CronTrigger(day_of_week="mon", hour=8, minute=0, timezone=tz),
                calendar_gated=True,
                handler=self.active_tier_job,
            ),
            TriggerRule(
                id="tier_dormant_scan",
                description="Tue 08:00 FAST (days 1-7 and 15-21)",
                trigger=CronTrigger(day_of_week="tue", hour=8, minute=0, timezone=tz),
                calendar_gated=True,
                handler=self.dormant_tier_job,
            ),
            TriggerRule(
                id="daily_listing_refresh",
                description="Daily 07:00 (incl. rest days)",
                trigger=CronTrigger(hour=7, minute=0, timezone=tz),
                calendar_gated=False,
                handler=self.listing_refresh_job,
            ),
            TriggerRule(
                id="daily_score_recalc",
                description="Daily 09:00 (incl. rest days)",
                trigger=CronTrigger(hour=9, minute=0, timezone=tz),
                calendar_gated=False,
                handler=self.score_recalc_job,
            ),
            TriggerRule(
                id="midweek_rerank",
                description="Wed 06:00",
                trigger=CronTrigger(day_of_week="wed", hour=6, minute=0, timezone=tz),
                calendar_gated=True,
                handler=self.rerank_job,
            ),
        ]

    async def run_trigger(self, trigger_id: str, now: Optional[datetime] = None) -> str:
        """
        Run one trigger rule with calendar gating and fault isolation.

        Returns "success", "skipped" or "failure"; never raises.
        """
        rule = self.rules[trigger_id]
        now = now or self.clock()

        with structlog.contextvars.bound_contextvars(trigger=trigger_id):
            if rule.calendar_gated:
                decision = self.calendar_gate.should_skip_today(now)
                if decision.skip:
                    logger.info("scheduler_trigger_skipped", reason=decision.reason)
                    TRIGGER_RUNS_TOTAL.labels(trigger=trigger_id, outcome="skipped").inc()
                    return "skipped"

            try:
                await rule.handler(now)
            except Exception as exc:
                logger.error("scheduler_trigger_failed", error=str(exc), exc_info=True)
                TRIGGER_RUNS_TOTAL.labels(trigger=trigger_id, outcome="failure").inc()
                return "failure"

        TRIGGER_RUNS_TOTAL.labels(trigger=trigger_id, outcome="success").inc()
        return "success"

    def start(self) -> None:
        """Registers every trigger rule and starts APScheduler."""
        for rule in self.rules.values():
            self.scheduler.add_job(
                self.run_trigger,
                trigger=rule.trigger,
                id=rule.id,
                args=[rule.id],
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        self.scheduler.start()
        logger.info("scheduler_started", triggers=list(self.rules))

    def stop(self) -> None:
        if not self.scheduler.running:
            logger.debug("scheduler_stop_skipped_not_running")
            return
        self.scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def _monthly_budget(self) -> Optional[Dict[str, float]]:
        if self.state.last_ranking is None:
            return None
        budget = estimate_monthly_budget(self.state.last_ranking.tier_counts)
        return {key: float(round(value, 2)) for key, value in budget.items()}

    def get_scheduler_status(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or self.clock()
        decision = self.calendar_gate.should_skip_today(now)
        active = {}
        for job_id, handle in self.state.registry.items():
            details = handle.to_dict()
            details["running_minutes"] = round(
                (now - handle.started_at).total_seconds() / 60, 1
            )
            active[job_id] = details

        return {
            "running": self.scheduler.running,
            "active_jobs": len(self.state.registry),
            "active_job_details": active,
            "chain_queue": [entry.to_dict() for entry in self.state.chain_queue],
            "last_runs": {
                tier.value: stat.to_dict() for tier, stat in self.state.run_stats.items()
            },
            "last_ranking": self.state.last_ranking.to_dict()
            if self.state.last_ranking
            else None,
            "monthly_budget": self._monthly_budget(),
            "biweekly_toggle": self.state.biweekly_toggle,
            "stats": {
                "total_scans": self.state.total_scans,
                "total_cost": float(round(self.state.total_cost, 2)),
            },
            "schedule": {rule.id: rule.description for rule in self.rules.values()},
            "triggers": [job.id for job in self.scheduler.get_jobs()],
            "run_allowed_today": not decision.skip,
            "skip_reason": decision.reason,
            "upcoming_holidays": holidays_as_dicts(
                self.calendar_gate.upcoming_holidays(now)
            ),
        }
