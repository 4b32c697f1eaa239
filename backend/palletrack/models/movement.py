"""Movement — immutable audit trail for every state change.

One row per intake, task creation, claim, release, discount and
cancellation, written in the same transaction as the change it documents.
Rows are never updated; only the administrative purge deletes them.
"""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from palletrack.database import Base


class MovementKind(str, enum.Enum):
    INGRESO = "INGRESO"
    CREACION_TAREA = "CREACION_TAREA"
    TOMA_POSESION = "TOMA_POSESION"
    DESBLOQUEO_TAREA = "DESBLOQUEO_TAREA"
    DESCUENTO = "DESCUENTO"
    DESCUENTO_DIRECTO = "DESCUENTO_DIRECTO"
    CANCELACION_TAREA = "CANCELACION_TAREA"


DISCOUNT_KINDS = (MovementKind.DESCUENTO, MovementKind.DESCUENTO_DIRECTO)


class Movement(Base):
    __tablename__ = "movements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # ── What ───────────────────────────────────────────────────
    kind: Mapped[MovementKind] = mapped_column(
        SAEnum(
            MovementKind,
            native_enum=False,
            length=30,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        index=True,
    )

    # ── Target ─────────────────────────────────────────────────
    lot_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("lots.id"))
    task_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("tasks.id"))
    discount_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("discounts.id"))

    # ── Context ────────────────────────────────────────────────
    client: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    aisle: Mapped[str | None] = mapped_column(String(50))

    # ── Who / when ─────────────────────────────────────────────
    actor: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
