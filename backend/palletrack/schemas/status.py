"""Pydantic schemas for KPIs and administration."""

from pydantic import BaseModel


class StatusOut(BaseModel):
    pending_total: int
    processed_total: int
    cancelled_total: int
    in_tasks_total: int
    last_action: str

    model_config = {"from_attributes": True}


class PurgeOut(BaseModel):
    movements: int
    discounts: int
    tasks: int
    lots: int

    model_config = {"from_attributes": True}
