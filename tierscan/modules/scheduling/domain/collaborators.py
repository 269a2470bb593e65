"""
Collaborator contracts consumed by the scan orchestrator

The classifier, batch launcher, job status API and the recalculation and
listing services live in the enrichment backend. The orchestrator only
depends on these protocols; HTTP implementations are in
tierscan.modules.scheduling.adapters.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol, Sequence

from tierscan.modules.scheduling.domain.tiers import Mode, Tier


@dataclass(frozen=True)
class ScoredEntity:
    id: int
    priority_score: float = 0.0
    name: Optional[str] = None
    city: Optional[str] = None


@dataclass(frozen=True)
class TierView:
    count: int
    entities: Sequence[ScoredEntity] = ()

    @property
    def ids(self) -> list[int]:
        return [e.id for e in self.entities]


@dataclass(frozen=True)
class PriorityClassification:
    """One classifier pass: disjoint tiers plus the bounded top-N view."""

    top: Sequence[ScoredEntity]
    tiers: dict[Tier, TierView] = field(default_factory=dict)

    def tier(self, tier: Tier) -> TierView:
        return self.tiers.get(tier, TierView(count=0))


class JobState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not JobState.RUNNING


@dataclass(frozen=True)
class JobStatusReport:
    status: JobState
    enriched: int = 0
    total: int = 0
    total_fields_updated: int = 0
    errors: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class PriorityClassifier(Protocol):
    async def calculate_all_priorities(self) -> PriorityClassification: ...


class BatchLauncher(Protocol):
    async def enrich_by_ids(self, ids: Sequence[int], mode: Mode) -> str:
        """Start an asynchronous enrichment job and return its id."""
        ...


class JobStatusSource(Protocol):
    async def get_job_status(self, job_id: str) -> Optional[JobStatusReport]: ...


class RecalculationTrigger(Protocol):
    async def recalculate_touched_since(self, since: datetime) -> None: ...


class ListingRefresher(Protocol):
    async def refresh_listings(self) -> None: ...


class ScoreRecalculator(Protocol):
    async def recalculate_all(self) -> None: ...


def parse_classification(payload: dict[str, Any]) -> PriorityClassification:
    """Build a classification from the backend's JSON shape.

    ``{"top_50": [...], "tiers": {"hot": {"count": n, "complexes": [...]}, ...}}``
    """

    def _entity(raw: dict[str, Any]) -> ScoredEntity:
        return ScoredEntity(
            id=int(raw["id"]),
            priority_score=float(raw.get("pss") or raw.get("priority_score") or 0.0),
            name=raw.get("name"),
            city=raw.get("city"),
        )

    tiers: dict[Tier, TierView] = {}
    for key, raw_view in (payload.get("tiers") or {}).items():
        entities = tuple(_entity(e) for e in raw_view.get("complexes") or [])
        tiers[Tier(key)] = TierView(
            count=int(raw_view.get("count", len(entities))), entities=entities
        )

    top = tuple(_entity(e) for e in payload.get("top_50") or payload.get("top") or [])
    return PriorityClassification(top=top, tiers=tiers)


def parse_job_status(payload: dict[str, Any]) -> JobStatusReport:
    def _ts(value: Any) -> Optional[datetime]:
        if not value:
            return None
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        # The backend stamps in UTC; some rows omit the offset.
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    return JobStatusReport(
        status=JobState(payload["status"]),
        enriched=int(payload.get("enriched") or 0),
        total=int(payload.get("total") or 0),
        total_fields_updated=int(payload.get("totalFieldsUpdated") or 0),
        errors=int(payload.get("errors") or 0),
        started_at=_ts(payload.get("startedAt")),
        completed_at=_ts(payload.get("completedAt")),
    )
