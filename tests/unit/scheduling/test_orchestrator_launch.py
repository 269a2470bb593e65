import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from tierscan.modules.scheduling.domain.tiers import Mode, Tier
from tierscan.shared.core.exceptions import ClassifierError, ScanLaunchError
from tests.fakes import build_orchestrator, make_classification


@pytest.mark.asyncio
async def test_launch_registers_handle_with_default_mode(orchestrator, backend, clock):
    handle = await orchestrator.launch_tier_scan(Tier.HOT)

    assert handle is not None
    assert handle.job_id == "job-1"
    assert handle.mode is Mode.STANDARD
    assert handle.entity_count == 50
    assert handle.estimated_cost == Decimal("13.00")
    assert handle.started_at == clock.now

    ids, mode = backend.launches[0]
    assert ids == list(range(1, 51))
    assert mode is Mode.STANDARD
    assert orchestrator.state.registry == {"job-1": handle}
    assert orchestrator.state.total_scans == 1


@pytest.mark.asyncio
async def test_launch_honours_mode_override_and_string_inputs(orchestrator, backend):
    handle = await orchestrator.launch_tier_scan("3", "turbo")
    assert handle.tier is Tier.DORMANT
    assert handle.mode is Mode.TURBO
    assert backend.launches[0][1] is Mode.TURBO


@pytest.mark.asyncio
async def test_monthly_refresh_runs_hot_tier_in_full_mode(orchestrator):
    handle = await orchestrator.launch_tier_scan(Tier.HOT, monthly_refresh=True)
    assert handle.mode is Mode.FULL
    assert handle.estimated_cost == Decimal("61.50")


@pytest.mark.asyncio
async def test_empty_tier_is_a_no_op(backend, clock):
    backend.classification = make_classification(active=[])
    orch = build_orchestrator(backend, clock)

    assert await orch.launch_tier_scan(Tier.ACTIVE) is None
    assert backend.launches == []
    assert orch.state.registry == {}
    assert orch.state.total_scans == 0


@pytest.mark.asyncio
async def test_launch_rejection_raises_and_registers_nothing(orchestrator, backend):
    backend.enrich_by_ids = AsyncMock(side_effect=RuntimeError("backend busy"))

    with pytest.raises(ScanLaunchError) as exc:
        await orchestrator.launch_tier_scan(Tier.HOT)

    assert exc.value.details["reason"] == "rejected"
    assert orchestrator.state.registry == {}
    assert orchestrator.state.total_scans == 0


@pytest.mark.asyncio
async def test_launch_timeout_is_a_launch_failure(backend, clock):
    async def slow_launch(ids, mode):
        await asyncio.sleep(1)
        return "never"

    backend.enrich_by_ids = slow_launch
    orch = build_orchestrator(backend, clock, call_timeout_seconds=0.01)

    with pytest.raises(ScanLaunchError) as exc:
        await orch.launch_tier_scan(Tier.HOT)

    assert exc.value.details["reason"] == "timeout"
    assert orch.state.registry == {}


@pytest.mark.asyncio
async def test_classifier_failure_raises_classifier_error(orchestrator, backend):
    backend.calculate_all_priorities = AsyncMock(side_effect=ConnectionError("db down"))

    with pytest.raises(ClassifierError):
        await orchestrator.launch_tier_scan(Tier.HOT)
    assert backend.launches == []


@pytest.mark.asyncio
async def test_duplicate_job_id_from_launcher_is_rejected(orchestrator, backend):
    first = await orchestrator.launch_tier_scan(Tier.HOT)
    backend.enrich_by_ids = AsyncMock(return_value=first.job_id)

    with pytest.raises(ScanLaunchError):
        await orchestrator.launch_tier_scan(Tier.ACTIVE)

    assert orchestrator.state.registry[first.job_id] is first
    assert orchestrator.state.total_scans == 1


@pytest.mark.asyncio
async def test_chain_after_returns_queue_length_without_validating_anchor(orchestrator):
    assert orchestrator.chain_after("not-yet-seen", Tier.ACTIVE, Mode.STANDARD) == 1
    assert orchestrator.chain_after("not-yet-seen", "dormant", "fast") == 2

    entry = orchestrator.state.chain_queue[1]
    assert entry.tier is Tier.DORMANT
    assert entry.mode is Mode.FAST
