"""Tests for the retention horizon and the per-target row cap."""

from datetime import timedelta

import pytest

from config import settings
from repositories import ProbeResultRepository
from services.hard_cutoff import HardCutoffEnforcer

from conftest import NOW, add_target, seed_results, set_retention_days


async def _timestamps(db, target_id):
    async with db.session() as session:
        rows = await ProbeResultRepository(session).list_for_target(target_id)
    return [r.timestamp for r in rows]


async def _ids(db, target_id):
    """Row ids oldest first."""
    async with db.session() as session:
        rows = await ProbeResultRepository(session).list_for_target(target_id)
    return [r.id for r in rows]


class TestCleanupOldData:

    @pytest.mark.asyncio
    async def test_deletes_only_beyond_horizon(self, db):
        target_id = await add_target(db)
        await set_retention_days(db, 7)
        await seed_results(db, target_id, [
            (NOW - timedelta(days=10), True, 20),
            (NOW - timedelta(days=3), True, 20),
        ])

        result = await HardCutoffEnforcer(db).cleanup_old_data(now=NOW)

        assert result.deleted == 1
        assert result.retention_days == 7
        assert result.cutoff == NOW - timedelta(days=7)
        assert await _timestamps(db, target_id) == [NOW - timedelta(days=3)]

    @pytest.mark.asyncio
    async def test_uses_default_when_unset(self, db):
        enforcer = HardCutoffEnforcer(db)
        assert await enforcer.get_retention_days() == settings.DEFAULT_DATA_RETENTION_DAYS

        assert await HardCutoffEnforcer(db, default_retention_days=14).get_retention_days() == 14

    @pytest.mark.asyncio
    async def test_applies_to_every_target(self, db):
        first = await add_target(db, "first")
        second = await add_target(db, "second", enabled=False)
        await set_retention_days(db, 30)
        old = [(NOW - timedelta(days=40), True, 20)]
        await seed_results(db, first, old)
        await seed_results(db, second, old)

        result = await HardCutoffEnforcer(db).cleanup_old_data(now=NOW)

        assert result.deleted == 2

    @pytest.mark.asyncio
    async def test_dry_run_counts_without_deleting(self, db):
        target_id = await add_target(db)
        await set_retention_days(db, 7)
        await seed_results(db, target_id, [(NOW - timedelta(days=10), False, None)])

        result = await HardCutoffEnforcer(db).cleanup_old_data(now=NOW, dry_run=True)

        assert result.deleted == 1
        assert len(await _timestamps(db, target_id)) == 1

    @pytest.mark.asyncio
    async def test_dry_run_skips_excluded_ids(self, db):
        target_id = await add_target(db)
        await set_retention_days(db, 7)
        await seed_results(db, target_id, [
            (NOW - timedelta(days=12), True, 20),
            (NOW - timedelta(days=10), True, 20),
        ])
        older, newer = await _ids(db, target_id)

        result = await HardCutoffEnforcer(db).cleanup_old_data(
            now=NOW, dry_run=True, exclude_ids={older}
        )

        assert result.deleted == 1
        assert result.doomed_ids == [newer]


class TestCapPerTarget:

    @pytest.mark.asyncio
    async def test_keeps_most_recent_rows(self, db):
        target_id = await add_target(db)
        await seed_results(db, target_id, [
            (NOW - timedelta(minutes=i), True, 20) for i in range(150)
        ])

        result = await HardCutoffEnforcer(db).cap_per_target(100)

        assert result.deleted == 50
        assert result.targets_capped == {target_id: 50}
        remaining = await _timestamps(db, target_id)
        assert len(remaining) == 100
        assert min(remaining) == NOW - timedelta(minutes=99)

    @pytest.mark.asyncio
    async def test_exact_count_with_tied_timestamps(self, db):
        target_id = await add_target(db)
        await seed_results(db, target_id, [(NOW, True, 20)] * 12)

        result = await HardCutoffEnforcer(db).cap_per_target(5)

        assert result.deleted == 7
        assert len(await _timestamps(db, target_id)) == 5

    @pytest.mark.asyncio
    async def test_targets_under_cap_untouched(self, db):
        small = await add_target(db, "small")
        large = await add_target(db, "large")
        await seed_results(db, small, [(NOW - timedelta(minutes=i), True, 20) for i in range(3)])
        await seed_results(db, large, [(NOW - timedelta(minutes=i), True, 20) for i in range(8)])

        result = await HardCutoffEnforcer(db).cap_per_target(5)

        assert result.targets_capped == {large: 3}
        assert len(await _timestamps(db, small)) == 3

    @pytest.mark.asyncio
    async def test_dry_run(self, db):
        target_id = await add_target(db)
        await seed_results(db, target_id, [(NOW - timedelta(minutes=i), True, 20) for i in range(8)])

        result = await HardCutoffEnforcer(db).cap_per_target(5, dry_run=True)

        assert result.deleted == 3
        assert len(await _timestamps(db, target_id)) == 8

    @pytest.mark.asyncio
    async def test_dry_run_ranks_without_excluded_ids(self, db):
        target_id = await add_target(db)
        await seed_results(db, target_id, [(NOW - timedelta(minutes=i), True, 20) for i in range(8)])
        ids = await _ids(db, target_id)

        # With the two newest rows already gone only the oldest is past the cap
        result = await HardCutoffEnforcer(db).cap_per_target(
            5, dry_run=True, exclude_ids=set(ids[-2:])
        )

        assert result.deleted == 1
        assert result.doomed_ids == [ids[0]]
        assert result.targets_capped == {target_id: 1}

    @pytest.mark.asyncio
    async def test_rejects_non_positive_cap(self, db):
        with pytest.raises(ValueError):
            await HardCutoffEnforcer(db).cap_per_target(0)
