"""Pydantic schemas for discount tasks."""

from datetime import datetime

from pydantic import BaseModel, Field, StrictInt

from palletrack.models.task import LockState, TaskState


class TaskCreate(BaseModel):
    """Payload for POST /api/tasks/."""
    lot_id: int
    client: str = Field(..., max_length=50)
    quantity: StrictInt
    aisle: str = Field(..., max_length=50)
    priority: str | None = Field(None, max_length=20)
    actor: str = Field(..., max_length=50)


class TaskOut(BaseModel):
    id: int
    lot_id: int
    client: str
    requested_quantity: int
    aisle: str
    priority: str | None
    state: TaskState
    lock_state: LockState
    holder: str | None
    claimed_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    created_by: str

    # Derived
    discounted: int = 0
    pending: int = 0

    model_config = {"from_attributes": True}

    @classmethod
    def from_balance(cls, balance) -> "TaskOut":
        data = cls.model_validate(balance.task)
        data.discounted = balance.discounted
        data.pending = balance.pending
        return data
