"""Discount applier — deductions against a claimed task or straight from a lot.

A discount against a task requires the caller to hold the task's lock.  Every
such discount gives the lock back, partial or not; the task is completed when
nothing is left pending.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from palletrack.middleware.exceptions import (
    Conflict,
    Forbidden,
    InvalidQuantity,
    InvalidState,
    ValidationError,
)
from palletrack.models.discount import Discount
from palletrack.models.movement import MovementKind
from palletrack.models.task import LockState, Task, TaskState
from palletrack.services import allocator, ledger, movements

logger = logging.getLogger("palletrack.discounts")


def _require_int(quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")


async def apply_to_task(
    db: AsyncSession,
    task_id: int,
    quantity: int,
    actor: str,
) -> Discount:
    """Discount `quantity` from a task held by `actor`.

    Raises:
        NotFound: unknown task.
        InvalidState: task not pending, or not claimed.
        Forbidden: claimed by another actor.
        InvalidQuantity: quantity <= 0 or above the task's pending quantity.
        Conflict: the lock changed hands while the discount was being applied.
    """
    actor = ledger.clean_text(actor, "actor")
    _require_int(quantity)

    task = await allocator.get_task(db, task_id, for_update=True)
    if task.state != TaskState.PENDING:
        raise InvalidState(f"Task {task_id} is {task.state.value}, cannot be discounted")
    if task.lock_state != LockState.IN_PROGRESS:
        raise InvalidState(f"Task {task_id} must be claimed before discounting")
    if task.holder != actor:
        raise Forbidden(f"Task {task_id} is held by {task.holder}, not {actor}")

    pending = await allocator.pending_quantity(db, task_id)
    if quantity <= 0 or quantity > pending:
        raise InvalidQuantity(pending=pending, requested=quantity)

    discount = Discount(
        lot_id=task.lot_id,
        task_id=task.id,
        client=task.client,
        quantity=quantity,
        created_by=actor,
    )
    db.add(discount)
    await db.flush()  # populate discount.id

    remaining = pending - quantity
    values = {"lock_state": LockState.FREE, "holder": None, "claimed_at": None}
    if remaining == 0:
        values.update(state=TaskState.COMPLETED, completed_at=datetime.utcnow())

    result = await db.execute(
        update(Task)
        .where(
            Task.id == task_id,
            Task.state == TaskState.PENDING,
            Task.lock_state == LockState.IN_PROGRESS,
            Task.holder == actor,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = await allocator.get_task(db, task_id)
        raise Conflict(task_id, current.holder)

    await movements.append(
        db, MovementKind.DESCUENTO,
        actor=actor,
        client=task.client,
        quantity=quantity,
        lot_id=task.lot_id,
        task_id=task.id,
        discount_id=discount.id,
        aisle=task.aisle,
    )
    await db.flush()

    logger.info(
        "Discount %s: %s from task %s by %s (remaining %s)",
        discount.id, quantity, task_id, actor, remaining,
    )
    return discount


async def apply_direct(
    db: AsyncSession,
    lot_id: int,
    quantity: int,
    actor: str,
) -> Discount:
    """Discount `quantity` straight from a lot's availability.

    Raises:
        NotFound: unknown lot.
        InvalidQuantity: quantity <= 0 or above the lot's availability.
    """
    actor = ledger.clean_text(actor, "actor")
    _require_int(quantity)

    lot = await ledger.get_lot(db, lot_id, for_update=True)
    available = await ledger.availability(db, lot.id)
    if quantity <= 0 or quantity > available:
        raise InvalidQuantity(pending=available, requested=quantity)

    discount = Discount(
        lot_id=lot.id,
        task_id=None,
        client=lot.client,
        quantity=quantity,
        created_by=actor,
    )
    db.add(discount)
    await db.flush()

    await movements.append(
        db, MovementKind.DESCUENTO_DIRECTO,
        actor=actor,
        client=lot.client,
        quantity=quantity,
        lot_id=lot.id,
        discount_id=discount.id,
    )
    await db.flush()

    logger.info("Direct discount %s: %s from lot %s by %s", discount.id, quantity, lot.id, actor)
    return discount
