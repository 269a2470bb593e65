"""
In-memory scheduler state

Owned by one orchestrator instance and never persisted: a process restart
drops in-flight job tracking (the external jobs still run to completion).
Every mutation sequence that spans an ``await`` must hold ``lock``.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from tierscan.modules.scheduling.domain.tiers import Mode, Tier, estimate_duration_minutes


@dataclass
class JobHandle:
    job_id: str
    tier: Tier
    mode: Mode
    entity_count: int
    started_at: datetime
    estimated_cost: Decimal

    @property
    def estimated_minutes(self) -> Decimal:
        return estimate_duration_minutes(self.entity_count, self.mode)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "tier": self.tier.value,
            "mode": self.mode.value,
            "count": self.entity_count,
            "started_at": self.started_at.isoformat(),
            "estimated_cost": float(self.estimated_cost),
            "estimated_minutes": float(self.estimated_minutes),
        }


@dataclass
class ChainEntry:
    after_job_id: str
    tier: Tier
    mode: Mode
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "after_job_id": self.after_job_id,
            "tier": self.tier.value,
            "mode": self.mode.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class RunStat:
    job_id: str
    mode: Mode
    status: str
    enriched: int
    total: int
    fields_updated: int
    errors: int
    cost: Decimal
    duration_seconds: float
    completed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "mode": self.mode.value,
            "status": self.status,
            "enriched": self.enriched,
            "total": self.total,
            "fields": self.fields_updated,
            "errors": self.errors,
            "cost": float(self.cost),
            "duration_seconds": round(self.duration_seconds, 1),
            "completed_at": self.completed_at.isoformat(),
        }


@dataclass(frozen=True)
class RankingSnapshot:
    taken_at: datetime
    tier_counts: dict[str, int]
    top: list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.taken_at.isoformat(),
            "tiers": dict(self.tier_counts),
            "top5": list(self.top),
        }


@dataclass
class SchedulerState:
    registry: dict[str, JobHandle] = field(default_factory=dict)
    chain_queue: list[ChainEntry] = field(default_factory=list)
    run_stats: dict[Tier, RunStat] = field(default_factory=dict)
    total_scans: int = 0
    total_cost: Decimal = Decimal("0")
    # Flipped on every allowed ACTIVE trigger; the tier runs when it reads True.
    biweekly_toggle: bool = False
    last_ranking: Optional[RankingSnapshot] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def register(self, handle: JobHandle) -> None:
        if handle.job_id in self.registry:
            raise ValueError(f"job {handle.job_id} is already registered")
        self.registry[handle.job_id] = handle
        self.total_scans += 1

    def release(self, job_id: str) -> Optional[JobHandle]:
        """Remove a handle; a second release of the same id is a no-op."""
        return self.registry.pop(job_id, None)

    def take_chain_entry(self, after_job_id: str) -> Optional[ChainEntry]:
        for index, entry in enumerate(self.chain_queue):
            if entry.after_job_id == after_job_id:
                return self.chain_queue.pop(index)
        return None

    def repoint_chain(self, old_job_id: str, new_job_id: str) -> int:
        moved = 0
        for entry in self.chain_queue:
            if entry.after_job_id == old_job_id:
                entry.after_job_id = new_job_id
                moved += 1
        return moved
