"""Inventory ledger — pallet intake lots and their running availability.

Availability is derived on every read, never stored:

    consumed  = Σ requested_quantity of the lot's non-cancelled tasks
              + Σ discounts already applied against its cancelled tasks
              + Σ direct discounts against the lot
    available = total_quantity − consumed        (never reported below 0)

A non-cancelled task keeps its whole request reserved (once completed, that
quantity has been discounted).  Cancelling a task gives back only what was
not yet discounted from it.

Callers that decide on availability and then write (task creation, direct
discounts) must read the lot with `get_lot(..., for_update=True)` and compute
availability inside the same unit of work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from palletrack.middleware.exceptions import NotFound, ValidationError
from palletrack.models.discount import Discount
from palletrack.models.lot import Lot
from palletrack.models.movement import MovementKind
from palletrack.models.task import Task, TaskState
from palletrack.services import movements

logger = logging.getLogger("palletrack.ledger")

# client, aisle and actor columns are String(50)
TEXT_MAX_LENGTH = 50


@dataclass
class LotBalance:
    """A lot together with its derived quantities."""
    lot: Lot
    in_tasks: int
    discounted_direct: int

    @property
    def available(self) -> int:
        return max(0, self.lot.total_quantity - self.in_tasks - self.discounted_direct)


# ── Validation helpers ───────────────────────────────────────

def clean_text(value: str | None, field_name: str, max_length: int = TEXT_MAX_LENGTH) -> str:
    """Strip a required text field, raising ValidationError when empty or too long."""
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required and must be a non-empty string")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")
    return value


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ── Derived quantity expressions ─────────────────────────────

def _in_tasks_expr():
    """Correlated subquery: quantity held by the lot's tasks."""
    reserved = (
        select(func.coalesce(func.sum(Task.requested_quantity), 0))
        .where(Task.lot_id == Lot.id, Task.state != TaskState.CANCELLED)
        .correlate(Lot)
        .scalar_subquery()
    )
    served_then_cancelled = (
        select(func.coalesce(func.sum(Discount.quantity), 0))
        .select_from(Discount)
        .join(Task, Discount.task_id == Task.id)
        .where(Discount.lot_id == Lot.id, Task.state == TaskState.CANCELLED)
        .correlate(Lot)
        .scalar_subquery()
    )
    return reserved + served_then_cancelled


def _direct_expr():
    """Correlated subquery: quantity discounted straight from the lot."""
    return (
        select(func.coalesce(func.sum(Discount.quantity), 0))
        .where(Discount.lot_id == Lot.id, Discount.task_id.is_(None))
        .correlate(Lot)
        .scalar_subquery()
    )


def available_expr():
    """SQL expression for a lot's availability, clamped at zero."""
    raw = Lot.total_quantity - _in_tasks_expr() - _direct_expr()
    return case((raw < 0, 0), else_=raw)


# ── Intake ───────────────────────────────────────────────────

async def record_intake(
    db: AsyncSession,
    client: str,
    quantity: int,
    actor: str,
) -> Lot:
    """Create a Lot and its INGRESO movement.

    Raises:
        ValidationError: empty client/actor or quantity not a positive integer.
    """
    client = clean_text(client, "client")
    actor = clean_text(actor, "actor")
    if not _is_int(quantity) or quantity <= 0:
        raise ValidationError("quantity is required and must be a positive integer")

    lot = Lot(client=client, total_quantity=quantity, created_by=actor)
    db.add(lot)
    await db.flush()  # populate lot.id

    await movements.append(
        db, MovementKind.INGRESO,
        actor=actor,
        client=client,
        quantity=quantity,
        lot_id=lot.id,
    )
    await db.flush()

    logger.info("Intake lot=%s client=%s quantity=%s by %s", lot.id, client, quantity, actor)
    return lot


# ── Lookups ──────────────────────────────────────────────────

async def get_lot(db: AsyncSession, lot_id: int, *, for_update: bool = False) -> Lot:
    """Load a lot or raise NotFound.

    With for_update=True the row stays locked until the transaction ends.
    """
    stmt = select(Lot).where(Lot.id == lot_id)
    if for_update:
        stmt = stmt.with_for_update()
    lot = (await db.execute(stmt)).scalar_one_or_none()
    if lot is None:
        raise NotFound("Lot", lot_id)
    return lot


async def balance(db: AsyncSession, lot_id: int) -> LotBalance:
    result = await db.execute(
        select(Lot, _in_tasks_expr(), _direct_expr()).where(Lot.id == lot_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFound("Lot", lot_id)
    return LotBalance(lot=row[0], in_tasks=int(row[1]), discounted_direct=int(row[2]))


async def availability(db: AsyncSession, lot_id: int) -> int:
    """Quantity of the lot not yet reserved by tasks or discounted directly."""
    return (await balance(db, lot_id)).available


async def availability_map(db: AsyncSession, lot_ids: list[int]) -> dict[int, int]:
    """Return {lot_id: available} for several lots in a single query."""
    if not lot_ids:
        return {}
    result = await db.execute(
        select(Lot.id, available_expr()).where(Lot.id.in_(lot_ids))
    )
    return {row[0]: int(row[1]) for row in result.all()}


async def list_available_lots(
    db: AsyncSession,
    search: str = "",
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[LotBalance], int]:
    """Lots that still have availability, newest first, optionally by client."""
    in_tasks = _in_tasks_expr()
    direct = _direct_expr()
    raw_available = Lot.total_quantity - in_tasks - direct

    base = select(Lot.id).where(raw_available > 0)
    if search:
        base = base.where(Lot.client.ilike(f"%{search}%"))

    total = await db.scalar(select(func.count()).select_from(base.subquery())) or 0

    stmt = (
        select(Lot, in_tasks, direct)
        .where(raw_available > 0)
        .order_by(Lot.id.desc())
        .limit(limit)
        .offset(offset)
    )
    if search:
        stmt = stmt.where(Lot.client.ilike(f"%{search}%"))

    result = await db.execute(stmt)
    items = [
        LotBalance(lot=row[0], in_tasks=int(row[1]), discounted_direct=int(row[2]))
        for row in result.all()
    ]
    return items, total
