"""Concurrent check-then-write paths, each in its own transaction/connection."""

import asyncio

import pytest
from sqlalchemy import func, select

from palletrack.database import Database
from palletrack.middleware.exceptions import Conflict, InsufficientAvailability, InvalidState
from palletrack.models.discount import Discount
from palletrack.models.movement import Movement, MovementKind
from palletrack.models.task import Task
from palletrack.services import allocator, discounts, ledger


async def _in_own_transaction(database: Database, operation):
    async with database.unit_of_work() as db:
        return await operation(db)


@pytest.mark.slow
@pytest.mark.asyncio
class TestConcurrentWrites:

    async def test_concurrent_task_creation_cannot_overdraw(self, database: Database):
        async with database.unit_of_work() as db:
            lot = await ledger.record_intake(db, "ACME", 50, "maria")

        results = await asyncio.gather(
            _in_own_transaction(
                database,
                lambda db: allocator.create_task(db, lot.id, "ACME", 30, "A1", None, "planner-1"),
            ),
            _in_own_transaction(
                database,
                lambda db: allocator.create_task(db, lot.id, "ACME", 30, "A2", None, "planner-2"),
            ),
            return_exceptions=True,
        )

        created = [r for r in results if isinstance(r, Task)]
        rejected = [r for r in results if isinstance(r, InsufficientAvailability)]
        assert len(created) == 1
        assert len(rejected) == 1
        assert rejected[0].available == 20

        async with database.unit_of_work() as db:
            assert await ledger.availability(db, lot.id) == 20

    async def test_concurrent_claims_have_one_winner(self, database: Database):
        async with database.unit_of_work() as db:
            lot = await ledger.record_intake(db, "ACME", 50, "maria")
            task = await allocator.create_task(db, lot.id, "ACME", 10, "A1", None, "planner")

        actors = ["worker-a", "worker-b", "worker-c"]
        results = await asyncio.gather(
            *[
                _in_own_transaction(database, lambda db, actor=actor: allocator.claim(db, task.id, actor))
                for actor in actors
            ],
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, Task)]
        losers = [r for r in results if isinstance(r, Conflict)]
        assert len(winners) == 1
        assert len(losers) == 2
        assert all(c.holder == winners[0].holder for c in losers)

        async with database.unit_of_work() as db:
            claims = await db.scalar(
                select(func.count()).select_from(Movement).where(Movement.kind == MovementKind.TOMA_POSESION)
            )
        assert claims == 1

    async def test_concurrent_discounts_by_holder_apply_once(self, database: Database):
        async with database.unit_of_work() as db:
            lot = await ledger.record_intake(db, "ACME", 50, "maria")
            task = await allocator.create_task(db, lot.id, "ACME", 40, "A1", None, "planner")
            await allocator.claim(db, task.id, "worker-a")

        results = await asyncio.gather(
            _in_own_transaction(database, lambda db: discounts.apply_to_task(db, task.id, 30, "worker-a")),
            _in_own_transaction(database, lambda db: discounts.apply_to_task(db, task.id, 30, "worker-a")),
            return_exceptions=True,
        )

        applied = [r for r in results if isinstance(r, Discount)]
        rejected = [r for r in results if isinstance(r, InvalidState)]
        assert len(applied) == 1
        assert len(rejected) == 1

        async with database.unit_of_work() as db:
            assert await allocator.pending_quantity(db, task.id) == 10
