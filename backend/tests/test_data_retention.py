"""
Tests for the retention sweep.

Covers:
- Step sequencing and totals
- Idempotence of a repeated sweep, including buckets cut by the horizon or the cap
- Per-target error isolation
- Dry run totals matching a live sweep
- Data age statistics
"""

from datetime import datetime, timedelta

import pytest

from repositories import ProbeResultRepository
from services.data_retention import (
    RetentionOrchestrator,
    RetentionSweepResult,
    get_data_age_stats,
)
from services.retention_tiering import RetentionTieringEngine

from conftest import NOW, add_target, seed_results, set_retention_days


class FailingTieringEngine(RetentionTieringEngine):
    """Raises for one target, tiers the rest normally."""

    def __init__(self, db, failing_target_id):
        super().__init__(db)
        self.failing_target_id = failing_target_id

    async def tier_target(self, target_id, **kwargs):
        if target_id == self.failing_target_id:
            raise RuntimeError("simulated tiering failure")
        return await super().tier_target(target_id, **kwargs)


def _hour_of_minutes(start, count=60):
    return [(start + timedelta(minutes=i), True, 30 + (i % 5)) for i in range(count)]


async def _total(db):
    async with db.session() as session:
        return await ProbeResultRepository(session).count_between()


class TestRetentionSweep:

    @pytest.mark.asyncio
    async def test_sweep_runs_every_step(self, db):
        target_id = await add_target(db)
        await set_retention_days(db, 100)
        await seed_results(db, target_id, _hour_of_minutes((NOW - timedelta(days=45)).replace(minute=0)))
        await seed_results(db, target_id, [(NOW - timedelta(days=150), False, None)])
        await seed_results(db, target_id, [(NOW - timedelta(minutes=i), True, 20) for i in range(30)])

        result = await RetentionOrchestrator(db, max_results_per_target=40).run_retention_sweep(now=NOW)

        assert result.targets_processed == 1
        assert result.tiered_deleted > 0
        assert result.cutoff_deleted == 1
        assert result.retention_days == 100
        assert result.capped_deleted > 0
        assert result.total_deleted == (
            result.tiered_deleted + result.cutoff_deleted + result.capped_deleted
        )
        assert result.per_target_errors == {}
        assert result.step_errors == {}
        assert await _total(db) == 40

    @pytest.mark.asyncio
    async def test_second_sweep_deletes_nothing(self, db):
        target_id = await add_target(db)
        await set_retention_days(db, 365)
        await seed_results(db, target_id, _hour_of_minutes((NOW - timedelta(days=45)).replace(minute=0)))
        await seed_results(db, target_id, _hour_of_minutes((NOW - timedelta(days=120)).replace(minute=0)))

        orchestrator = RetentionOrchestrator(db)
        first = await orchestrator.run_retention_sweep(now=NOW)
        second = await orchestrator.run_retention_sweep(now=NOW)

        assert first.total_deleted > 0
        assert second.total_deleted == 0

    @pytest.mark.asyncio
    async def test_failing_target_does_not_stop_sweep(self, db):
        broken = await add_target(db, "broken")
        healthy = await add_target(db, "healthy")
        await set_retention_days(db, 365)
        hour_start = (NOW - timedelta(days=45)).replace(minute=0)
        await seed_results(db, broken, _hour_of_minutes(hour_start))
        await seed_results(db, healthy, _hour_of_minutes(hour_start))

        orchestrator = RetentionOrchestrator(db, tiering=FailingTieringEngine(db, broken))
        result = await orchestrator.run_retention_sweep(now=NOW)

        assert list(result.per_target_errors) == [broken]
        assert "simulated" in result.per_target_errors[broken]
        assert result.targets_processed == 1
        assert result.tiered_deleted > 0

        async with db.session() as session:
            assert await ProbeResultRepository(session).count_for_target(broken) == 60

    @pytest.mark.asyncio
    async def test_disabled_targets_are_not_tiered(self, db):
        target_id = await add_target(db, enabled=False)
        await set_retention_days(db, 365)
        await seed_results(db, target_id, _hour_of_minutes((NOW - timedelta(days=45)).replace(minute=0)))

        result = await RetentionOrchestrator(db).run_retention_sweep(now=NOW)

        assert result.targets_processed == 0
        assert result.total_deleted == 0

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self, db):
        target_id = await add_target(db)
        await set_retention_days(db, 60)
        await seed_results(db, target_id, _hour_of_minutes((NOW - timedelta(days=45)).replace(minute=0)))
        await seed_results(db, target_id, [(NOW - timedelta(days=70), True, 20)])

        result = await RetentionOrchestrator(db).run_retention_sweep(now=NOW, dry_run=True)

        assert result.dry_run is True
        assert result.tiered_deleted > 0
        assert result.cutoff_deleted == 1
        assert await _total(db) == 61


def _flapping_day(day_start, count, step_minutes):
    """Rows across one day with a short outage every 11 probes."""
    return [
        (day_start + timedelta(minutes=i * step_minutes), i % 11 not in (0, 1), 20 + (i * 37) % 50)
        for i in range(count)
    ]


def _blips(day_start, count=200):
    """Rows every 5 minutes with a single failed probe every 20."""
    return [
        (day_start + timedelta(minutes=i * 5), i % 20 != 10, 20 + (i * 13) % 40)
        for i in range(count)
    ]


async def _bucket_split_by_horizon(db):
    # Horizon 100d before NOW lands at noon on 2026-03-07
    target_id = await add_target(db)
    await set_retention_days(db, 100)
    await seed_results(db, target_id, _flapping_day(datetime(2026, 3, 7), 172, 8))
    return RetentionOrchestrator(db)


async def _bucket_split_by_cap(db):
    target_id = await add_target(db)
    await set_retention_days(db, 365)
    await seed_results(db, target_id, _blips((NOW - timedelta(days=120)).replace(hour=0, minute=0)))
    return RetentionOrchestrator(db, max_results_per_target=20)


async def _tiered_rows_beyond_horizon(db):
    target_id = await add_target(db)
    await set_retention_days(db, 40)
    await seed_results(db, target_id, _hour_of_minutes((NOW - timedelta(days=45)).replace(minute=0)))
    return RetentionOrchestrator(db)


class TestRepeatedSweeps:

    @pytest.mark.asyncio
    async def test_horizon_inside_a_bucket(self, db):
        orchestrator = await _bucket_split_by_horizon(db)

        first = await orchestrator.run_retention_sweep(now=NOW)
        second = await orchestrator.run_retention_sweep(now=NOW)

        assert first.cutoff_deleted == 90
        assert first.tiered_deleted > 0
        assert second.total_deleted == 0

    @pytest.mark.asyncio
    async def test_cap_inside_a_bucket(self, db):
        orchestrator = await _bucket_split_by_cap(db)

        first = await orchestrator.run_retention_sweep(now=NOW)
        second = await orchestrator.run_retention_sweep(now=NOW)

        assert first.capped_deleted > 0
        assert second.total_deleted == 0
        assert await _total(db) <= 20

    @pytest.mark.asyncio
    async def test_rows_older_than_horizon_are_not_tiered(self, db):
        orchestrator = await _tiered_rows_beyond_horizon(db)

        result = await orchestrator.run_retention_sweep(now=NOW)

        assert result.tiered_deleted == 0
        assert result.cutoff_deleted == 60
        assert result.total_deleted == 60


class TestDryRunMatchesLiveSweep:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("scenario", [
        _bucket_split_by_horizon,
        _bucket_split_by_cap,
        _tiered_rows_beyond_horizon,
    ])
    async def test_preview_totals_match_live(self, db, scenario):
        orchestrator = await scenario(db)
        rows_before = await _total(db)

        preview = await orchestrator.run_retention_sweep(now=NOW, dry_run=True)
        assert await _total(db) == rows_before
        live = await orchestrator.run_retention_sweep(now=NOW)

        assert preview.total_deleted == live.total_deleted
        assert preview.tiered_deleted == live.tiered_deleted
        assert preview.cutoff_deleted == live.cutoff_deleted
        assert preview.capped_deleted == live.capped_deleted
        assert preview.total_deleted <= rows_before
        assert await _total(db) == rows_before - live.total_deleted

    @pytest.mark.asyncio
    async def test_sweep_result_defaults(self):
        result = RetentionSweepResult()
        assert result.timestamp is None
        assert result.per_target_errors == {}


class TestDataAgeStats:

    @pytest.mark.asyncio
    async def test_counts_by_tier(self, db):
        target_id = await add_target(db)
        await seed_results(db, target_id, [
            (NOW - timedelta(days=1), True, 10),
            (NOW - timedelta(days=2), True, 10),
            (NOW - timedelta(days=40), True, 10),
            (NOW - timedelta(days=100), True, 10),
        ])

        stats = await get_data_age_stats(db, now=NOW)

        assert stats["probe_results"] == {"raw": 2, "hourly": 1, "daily": 1, "total": 4}
        assert stats["daily_stats"] == 0
