"""Read-only KPIs for the dashboard."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from palletrack.models.discount import Discount
from palletrack.models.lot import Lot
from palletrack.models.movement import DISCOUNT_KINDS, Movement, MovementKind
from palletrack.models.task import Task, TaskState
from palletrack.services import ledger, movements

TIMESTAMP_FORMAT = "%d/%m/%Y, %H:%M:%S"
NO_ACTION = "–"


@dataclass
class StatusReport:
    pending_total: int
    processed_total: int
    cancelled_total: int
    in_tasks_total: int
    last_action: str


def describe(movement: Movement | None) -> str:
    """One-line summary of an intake or discount movement."""
    if movement is None:
        return NO_ACTION
    when = movement.created_at.strftime(TIMESTAMP_FORMAT)
    if movement.kind == MovementKind.INGRESO:
        return f"Ingreso {movement.client} ({movement.quantity}) a las {when}"
    return f"Descontado {movement.quantity} de {movement.client} a las {when}"


def _newest(*candidates: Movement | None) -> Movement | None:
    present = [m for m in candidates if m is not None]
    if not present:
        return None
    return max(present, key=lambda m: (m.created_at, m.id))


async def status(db: AsyncSession) -> StatusReport:
    per_lot = select(ledger.available_expr().label("available")).select_from(Lot).subquery()
    pending_total = await db.scalar(
        select(func.coalesce(func.sum(per_lot.c.available), 0))
    )

    direct_total = await db.scalar(
        select(func.coalesce(func.sum(Discount.quantity), 0))
        .where(Discount.task_id.is_(None))
    )
    completed_total = await db.scalar(
        select(func.coalesce(func.sum(Discount.quantity), 0))
        .select_from(Discount)
        .join(Task, Discount.task_id == Task.id)
        .where(Task.state == TaskState.COMPLETED)
    )

    cancelled_total = await db.scalar(
        select(func.coalesce(func.sum(Task.requested_quantity), 0))
        .where(Task.state == TaskState.CANCELLED)
    )

    requested_pending = await db.scalar(
        select(func.coalesce(func.sum(Task.requested_quantity), 0))
        .where(Task.state == TaskState.PENDING)
    )
    discounted_pending = await db.scalar(
        select(func.coalesce(func.sum(Discount.quantity), 0))
        .select_from(Discount)
        .join(Task, Discount.task_id == Task.id)
        .where(Task.state == TaskState.PENDING)
    )

    last_intake = await movements.latest(db, [MovementKind.INGRESO])
    last_discount = await movements.latest(db, DISCOUNT_KINDS)

    return StatusReport(
        pending_total=int(pending_total),
        processed_total=int(direct_total) + int(completed_total),
        cancelled_total=int(cancelled_total),
        in_tasks_total=int(requested_pending) - int(discounted_pending),
        last_action=describe(_newest(last_intake, last_discount)),
    )
