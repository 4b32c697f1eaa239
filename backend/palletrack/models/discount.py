"""Discount — an applied deduction ("pallet descontado").

Either against a Task (task_id set) or directly against a Lot (task_id
NULL).  lot_id is always set so that per-lot sums need no join.
Immutable once written.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from palletrack.database import Base


class Discount(Base):
    __tablename__ = "discounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lot_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("lots.id"), nullable=False, index=True
    )
    task_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("tasks.id"), index=True
    )

    client: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
    created_by: Mapped[str] = mapped_column(String(50), nullable=False)

    lot = relationship("Lot", back_populates="discounts")
    task = relationship("Task", back_populates="discounts")
