"""Administrative bulk operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from palletrack.models.discount import Discount
from palletrack.models.lot import Lot
from palletrack.models.movement import Movement
from palletrack.models.task import Task
from palletrack.services.ledger import clean_text

logger = logging.getLogger("palletrack.admin")


@dataclass
class PurgeResult:
    movements: int
    discounts: int
    tasks: int
    lots: int


async def purge_all(db: AsyncSession, actor: str) -> PurgeResult:
    """Delete every movement, discount, task and lot.

    Children go first so foreign keys hold at every step.  Runs in the
    caller's transaction: either everything is gone or nothing is.
    """
    actor = clean_text(actor, "actor")

    counts = {}
    for name, model in (
        ("movements", Movement),
        ("discounts", Discount),
        ("tasks", Task),
        ("lots", Lot),
    ):
        result = await db.execute(
            delete(model).execution_options(synchronize_session=False)
        )
        counts[name] = result.rowcount

    result = PurgeResult(**counts)
    logger.warning(
        "Purge by %s: %s movements, %s discounts, %s tasks, %s lots deleted",
        actor, result.movements, result.discounts, result.tasks, result.lots,
    )
    return result
