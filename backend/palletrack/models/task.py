"""Task — a request to discount a quantity from a Lot.

Lifecycle:  pending → completed | cancelled   (both terminal)

While pending, a task also carries a cooperative lock so that only one
worker discounts from it at a time:

    lock_state:  free ⇄ in_progress   (holder + claimed_at set while held)

The lock lives in the row, so every service instance sees the same holder.
All lock transitions are compare-and-swap UPDATEs (see services.allocator).
"""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from palletrack.database import Base


class TaskState(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LockState(str, enum.Enum):
    FREE = "free"
    IN_PROGRESS = "in_progress"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lot_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("lots.id"), nullable=False, index=True
    )

    # ── Request ──────────────────────────────────────────────
    client: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    requested_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    aisle: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[str | None] = mapped_column(String(20))

    # ── Lifecycle ────────────────────────────────────────────
    state: Mapped[TaskState] = mapped_column(
        SAEnum(TaskState, native_enum=False, length=20, values_callable=_enum_values),
        default=TaskState.PENDING,
        nullable=False,
        index=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Cooperative lock ─────────────────────────────────────
    lock_state: Mapped[LockState] = mapped_column(
        SAEnum(LockState, native_enum=False, length=20, values_callable=_enum_values),
        default=LockState.FREE,
        nullable=False,
    )
    holder: Mapped[str | None] = mapped_column(String(50), index=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Metadata ─────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
    created_by: Mapped[str] = mapped_column(String(50), nullable=False)

    # ── Relationships ────────────────────────────────────────
    lot = relationship("Lot", back_populates="tasks")
    discounts = relationship("Discount", back_populates="task")
