"""Lot — a pallet intake record ("ingreso") from a client.

A Lot is created once when pallets arrive and is never edited afterwards.
Its availability is derived, never stored: total_quantity minus what tasks
have reserved and what was discounted directly (see services.ledger).
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from palletrack.database import Base


class Lot(Base):
    __tablename__ = "lots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # ── Intake ───────────────────────────────────────────────
    client: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    total_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    # ── Metadata ─────────────────────────────────────────────
    received_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
    created_by: Mapped[str] = mapped_column(String(50), nullable=False)

    # ── Relationships ────────────────────────────────────────
    tasks = relationship("Task", back_populates="lot")
    discounts = relationship("Discount", back_populates="lot")
