"""Movement log — append-only audit trail.

Usage:
    await movements.append(
        db, MovementKind.INGRESO, actor="maria",
        client=lot.client, quantity=lot.total_quantity, lot_id=lot.id,
    )

The row is added to the current session and committed with the enclosing
transaction, so it is written if and only if the change it documents is.
Callers append as the last step of an operation, after every check passed.
"""

from __future__ import annotations

import csv
import io
from datetime import date, datetime, timedelta
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from palletrack.models.movement import Movement, MovementKind

CSV_COLUMNS = [
    "id", "kind", "created_at", "actor", "client", "quantity",
    "aisle", "lot_id", "task_id", "discount_id",
]


async def append(
    db: AsyncSession,
    kind: MovementKind,
    *,
    actor: str,
    client: str,
    quantity: int,
    lot_id: int | None = None,
    task_id: int | None = None,
    discount_id: int | None = None,
    aisle: str | None = None,
) -> Movement:
    """Append a movement to the current DB session."""
    entry = Movement(
        kind=kind,
        actor=actor,
        client=client,
        quantity=quantity,
        lot_id=lot_id,
        task_id=task_id,
        discount_id=discount_id,
        aisle=aisle,
        created_at=datetime.utcnow(),
    )
    db.add(entry)
    return entry


def _upper_bound(date_to: date | datetime) -> tuple[datetime, bool]:
    """Return (bound, inclusive). A bare date covers the whole day."""
    if isinstance(date_to, datetime):
        return date_to, True
    return datetime.combine(date_to + timedelta(days=1), datetime.min.time()), False


def _lower_bound(date_from: date | datetime) -> datetime:
    if isinstance(date_from, datetime):
        return date_from
    return datetime.combine(date_from, datetime.min.time())


def _filtered(
    stmt,
    date_from: date | datetime | None,
    date_to: date | datetime | None,
    kind: MovementKind | None,
    client: str | None,
):
    if date_from is not None:
        stmt = stmt.where(Movement.created_at >= _lower_bound(date_from))
    if date_to is not None:
        bound, inclusive = _upper_bound(date_to)
        stmt = stmt.where(
            Movement.created_at <= bound if inclusive else Movement.created_at < bound
        )
    if kind is not None:
        stmt = stmt.where(Movement.kind == kind)
    if client:
        stmt = stmt.where(Movement.client.ilike(f"%{client}%"))
    return stmt


async def query(
    db: AsyncSession,
    date_from: date | datetime | None = None,
    date_to: date | datetime | None = None,
    *,
    kind: MovementKind | None = None,
    client: str | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[Movement]:
    """Return movements in the window, newest first."""
    stmt = _filtered(select(Movement), date_from, date_to, kind, client)
    stmt = stmt.order_by(Movement.created_at.desc(), Movement.id.desc()).offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def latest(db: AsyncSession, kinds: Iterable[MovementKind]) -> Movement | None:
    """Most recent movement among the given kinds, or None."""
    result = await db.execute(
        select(Movement)
        .where(Movement.kind.in_(list(kinds)))
        .order_by(Movement.created_at.desc(), Movement.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def export_csv(rows: Iterable[Movement]) -> str:
    """Render movements as CSV text with a header row."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_COLUMNS)
    for m in rows:
        writer.writerow([
            m.id,
            m.kind.value,
            m.created_at.isoformat(sep=" ", timespec="seconds"),
            m.actor,
            m.client,
            m.quantity,
            m.aisle or "",
            m.lot_id if m.lot_id is not None else "",
            m.task_id if m.task_id is not None else "",
            m.discount_id if m.discount_id is not None else "",
        ])
    return output.getvalue()
