"""Pydantic schemas for applied discounts."""

from datetime import datetime

from pydantic import BaseModel, Field, StrictInt

from palletrack.models.task import TaskState


class DiscountRequest(BaseModel):
    """Payload for POST /api/tasks/{task_id}/discount."""
    quantity: StrictInt
    actor: str = Field(..., max_length=50)


class DiscountOut(BaseModel):
    id: int
    lot_id: int
    task_id: int | None
    client: str
    quantity: int
    created_at: datetime
    created_by: str

    # State right after the discount
    task_state: TaskState | None = None
    task_pending: int | None = None
    lot_available: int | None = None

    model_config = {"from_attributes": True}
