"""Task allocator — discount tasks and their cooperative lock.

A task reserves `requested_quantity` of a lot at creation time.  While it is
pending, one worker at a time may hold it:

    claim    free → in_progress   (TOMA_POSESION, only on the transition)
    release  in_progress → free   (DESBLOQUEO_TAREA, holder only)
    cancel   pending → cancelled  (CANCELACION_TAREA)

Lock transitions are compare-and-swap UPDATEs whose WHERE clause repeats the
state that was expected; a rowcount of 0 means someone else got there first
and the current row is re-read only to report why.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from palletrack.middleware.exceptions import (
    Conflict,
    Forbidden,
    InsufficientAvailability,
    InvalidState,
    NotFound,
    ValidationError,
)
from palletrack.models.discount import Discount
from palletrack.models.movement import MovementKind
from palletrack.models.task import LockState, Task, TaskState
from palletrack.services import ledger, movements

logger = logging.getLogger("palletrack.allocator")

PRIORITY_MAX_LENGTH = 20


@dataclass
class TaskBalance:
    """A task together with how much has been discounted against it."""
    task: Task
    discounted: int

    @property
    def pending(self) -> int:
        return max(0, self.task.requested_quantity - self.discounted)


def _discounted_expr():
    return (
        select(func.coalesce(func.sum(Discount.quantity), 0))
        .where(Discount.task_id == Task.id)
        .correlate(Task)
        .scalar_subquery()
    )


# ── Lookups ──────────────────────────────────────────────────

async def get_task(db: AsyncSession, task_id: int, *, for_update: bool = False) -> Task:
    """Load a task (fresh from the DB) or raise NotFound."""
    stmt = (
        select(Task)
        .where(Task.id == task_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    task = (await db.execute(stmt)).scalar_one_or_none()
    if task is None:
        raise NotFound("Task", task_id)
    return task


async def discounted_quantity(db: AsyncSession, task_id: int) -> int:
    result = await db.scalar(
        select(func.coalesce(func.sum(Discount.quantity), 0))
        .where(Discount.task_id == task_id)
    )
    return int(result)


async def pending_quantity(db: AsyncSession, task_id: int) -> int:
    """Requested quantity of the task not yet covered by discounts."""
    task = await get_task(db, task_id)
    return max(0, task.requested_quantity - await discounted_quantity(db, task_id))


async def pending_map(db: AsyncSession, task_ids: list[int]) -> dict[int, int]:
    """Return {task_id: pending} for several tasks in a single query."""
    if not task_ids:
        return {}
    result = await db.execute(
        select(Task.id, Task.requested_quantity - _discounted_expr())
        .where(Task.id.in_(task_ids))
    )
    return {row[0]: max(0, int(row[1])) for row in result.all()}


async def balance(db: AsyncSession, task_id: int) -> TaskBalance:
    task = await get_task(db, task_id)
    return TaskBalance(task=task, discounted=await discounted_quantity(db, task_id))


async def list_tasks(
    db: AsyncSession,
    state: TaskState | None = TaskState.PENDING,
    search: str = "",
    holder: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[TaskBalance], int]:
    """Tasks with their discounted/pending amounts.

    Prioritised tasks come first, then newest first.

    The pending listing only returns tasks that still have something to
    discount.
    """
    discounted = _discounted_expr()

    conditions = []
    if state is not None:
        conditions.append(Task.state == state)
    if state == TaskState.PENDING:
        conditions.append(Task.requested_quantity - discounted > 0)
    if search:
        conditions.append(Task.client.ilike(f"%{search}%"))
    if holder:
        conditions.append(Task.holder == holder)

    total = await db.scalar(
        select(func.count()).select_from(
            select(Task.id).where(*conditions).subquery()
        )
    ) or 0

    result = await db.execute(
        select(Task, discounted)
        .where(*conditions)
        .order_by(Task.priority.is_(None), Task.id.desc())
        .limit(limit)
        .offset(offset)
    )
    items = [TaskBalance(task=row[0], discounted=int(row[1])) for row in result.all()]
    return items, total


# ── Create ───────────────────────────────────────────────────

def _clean_priority(priority: str | None) -> str | None:
    if priority is None or not str(priority).strip():
        return None
    priority = str(priority).strip()
    if len(priority) > PRIORITY_MAX_LENGTH:
        raise ValidationError(f"priority must be at most {PRIORITY_MAX_LENGTH} characters")
    return priority


async def create_task(
    db: AsyncSession,
    lot_id: int,
    client: str,
    quantity: int,
    aisle: str,
    priority: str | None,
    actor: str,
) -> Task:
    """Reserve `quantity` of a lot as a new pending task.

    The lot row is locked and its availability recomputed before the insert,
    so two concurrent requests cannot both reserve the same stock.

    Raises:
        ValidationError: empty client/aisle/actor, client not matching the lot.
        NotFound: unknown lot.
        InsufficientAvailability: quantity <= 0 or above what is available.
    """
    client = ledger.clean_text(client, "client")
    aisle = ledger.clean_text(aisle, "aisle")
    actor = ledger.clean_text(actor, "actor")
    priority = _clean_priority(priority)
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")

    lot = await ledger.get_lot(db, lot_id, for_update=True)
    if client != lot.client:
        raise ValidationError(f"client '{client}' does not match lot {lot.id} ('{lot.client}')")

    available = await ledger.availability(db, lot.id)
    if quantity <= 0 or quantity > available:
        raise InsufficientAvailability(available=available, requested=quantity)

    task = Task(
        lot_id=lot.id,
        client=lot.client,
        requested_quantity=quantity,
        aisle=aisle,
        priority=priority,
        state=TaskState.PENDING,
        lock_state=LockState.FREE,
        created_by=actor,
    )
    db.add(task)
    await db.flush()  # populate task.id

    await movements.append(
        db, MovementKind.CREACION_TAREA,
        actor=actor,
        client=task.client,
        quantity=quantity,
        lot_id=lot.id,
        task_id=task.id,
        aisle=aisle,
    )
    await db.flush()

    logger.info(
        "Task %s created on lot %s for %s (available before: %s) by %s",
        task.id, lot.id, quantity, available, actor,
    )
    return task


# ── Claim / release ──────────────────────────────────────────

async def claim(db: AsyncSession, task_id: int, actor: str) -> Task:
    """Take the task's lock for `actor`.

    Claiming a task you already hold is a no-op (no second TOMA_POSESION).

    Raises:
        NotFound, InvalidState (not pending), Conflict (held by another actor).
    """
    actor = ledger.clean_text(actor, "actor")

    result = await db.execute(
        update(Task)
        .where(
            Task.id == task_id,
            Task.state == TaskState.PENDING,
            Task.lock_state == LockState.FREE,
        )
        .values(
            lock_state=LockState.IN_PROGRESS,
            holder=actor,
            claimed_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    task = await get_task(db, task_id)

    if result.rowcount != 1:
        if task.state != TaskState.PENDING:
            raise InvalidState(f"Task {task_id} is {task.state.value}, cannot be claimed")
        if task.lock_state == LockState.IN_PROGRESS and task.holder == actor:
            return task
        raise Conflict(task_id, task.holder)

    await movements.append(
        db, MovementKind.TOMA_POSESION,
        actor=actor,
        client=task.client,
        quantity=await pending_quantity(db, task_id),
        lot_id=task.lot_id,
        task_id=task.id,
        aisle=task.aisle,
    )
    await db.flush()

    logger.info("Task %s claimed by %s", task_id, actor)
    return task


async def release(db: AsyncSession, task_id: int, actor: str) -> Task:
    """Give the task's lock back.

    Raises:
        NotFound, InvalidState (not pending or not in progress),
        Forbidden (held by another actor).
    """
    actor = ledger.clean_text(actor, "actor")

    result = await db.execute(
        update(Task)
        .where(
            Task.id == task_id,
            Task.state == TaskState.PENDING,
            Task.lock_state == LockState.IN_PROGRESS,
            Task.holder == actor,
        )
        .values(lock_state=LockState.FREE, holder=None, claimed_at=None)
        .execution_options(synchronize_session=False)
    )
    task = await get_task(db, task_id)

    if result.rowcount != 1:
        if task.state != TaskState.PENDING:
            raise InvalidState(f"Task {task_id} is {task.state.value}, cannot be released")
        if task.lock_state != LockState.IN_PROGRESS:
            raise InvalidState(f"Task {task_id} is not in progress")
        raise Forbidden(f"Task {task_id} is held by {task.holder}, not {actor}")

    await movements.append(
        db, MovementKind.DESBLOQUEO_TAREA,
        actor=actor,
        client=task.client,
        quantity=await pending_quantity(db, task_id),
        lot_id=task.lot_id,
        task_id=task.id,
        aisle=task.aisle,
    )
    await db.flush()

    logger.info("Task %s released by %s", task_id, actor)
    return task


# ── Cancel ───────────────────────────────────────────────────

async def cancel(db: AsyncSession, task_id: int, actor: str) -> Task:
    """Cancel a pending task, returning its undiscounted remainder to the lot.

    A task held by another actor cannot be cancelled; the holder itself may
    cancel.

    Raises:
        NotFound, InvalidState.
    """
    actor = ledger.clean_text(actor, "actor")

    task = await get_task(db, task_id, for_update=True)
    if task.state != TaskState.PENDING:
        raise InvalidState(f"Task {task_id} is {task.state.value}, only pending tasks can be cancelled")
    if task.lock_state == LockState.IN_PROGRESS and task.holder != actor:
        raise InvalidState(f"Task {task_id} is being processed by {task.holder}")

    remaining = await pending_quantity(db, task_id)

    result = await db.execute(
        update(Task)
        .where(
            Task.id == task_id,
            Task.state == TaskState.PENDING,
            or_(Task.lock_state == LockState.FREE, Task.holder == actor),
        )
        .values(
            state=TaskState.CANCELLED,
            lock_state=LockState.FREE,
            holder=None,
            claimed_at=None,
            cancelled_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = await get_task(db, task_id)
        raise Conflict(task_id, current.holder)

    await movements.append(
        db, MovementKind.CANCELACION_TAREA,
        actor=actor,
        client=task.client,
        quantity=remaining,
        lot_id=task.lot_id,
        task_id=task.id,
        aisle=task.aisle,
    )
    await db.flush()

    logger.info("Task %s cancelled by %s (%s returned to lot %s)", task_id, actor, remaining, task.lot_id)
    return await get_task(db, task_id)
