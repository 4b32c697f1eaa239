"""Aggregate model imports for create_all and Alembic auto-detection."""

from palletrack.models.lot import Lot
from palletrack.models.task import LockState, Task, TaskState
from palletrack.models.discount import Discount
from palletrack.models.movement import DISCOUNT_KINDS, Movement, MovementKind

__all__ = [
    "Lot",
    "Task", "TaskState", "LockState",
    "Discount",
    "Movement", "MovementKind", "DISCOUNT_KINDS",
]
