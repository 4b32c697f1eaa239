"""Pydantic schemas for intake lots."""

from datetime import datetime

from pydantic import BaseModel, Field, StrictInt


# ── Create ───────────────────────────────────────────────────

class LotCreate(BaseModel):
    """Payload for POST /api/lots/ (an intake)."""
    client: str = Field(..., max_length=50)
    quantity: StrictInt
    actor: str = Field(..., max_length=50)


class DirectDiscountRequest(BaseModel):
    """Payload for POST /api/lots/{lot_id}/discount."""
    quantity: StrictInt
    actor: str = Field(..., max_length=50)


# ── Response ─────────────────────────────────────────────────

class LotOut(BaseModel):
    id: int
    client: str
    total_quantity: int
    received_at: datetime
    created_by: str

    # Derived
    in_tasks: int = 0
    discounted_direct: int = 0
    available: int = 0

    model_config = {"from_attributes": True}

    @classmethod
    def from_balance(cls, balance) -> "LotOut":
        data = cls.model_validate(balance.lot)
        data.in_tasks = balance.in_tasks
        data.discounted_direct = balance.discounted_direct
        data.available = balance.available
        return data
