"""Pydantic schemas for the movement log."""

from datetime import datetime

from pydantic import BaseModel

from palletrack.models.movement import MovementKind


class MovementOut(BaseModel):
    id: int
    kind: MovementKind
    lot_id: int | None
    task_id: int | None
    discount_id: int | None
    client: str
    quantity: int
    aisle: str | None
    actor: str
    created_at: datetime

    model_config = {"from_attributes": True}
