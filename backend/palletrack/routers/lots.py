"""Lot router — pallet intake and availability.

Endpoints:
    POST  /api/lots/                  Record an intake
    GET   /api/lots/                  Lots with availability (search by client)
    GET   /api/lots/{lot_id}          Single lot with derived quantities
    POST  /api/lots/{lot_id}/discount Discount straight from the lot
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from palletrack.database import get_db
from palletrack.schemas.common import PaginatedResponse
from palletrack.schemas.discount import DiscountOut
from palletrack.schemas.lot import DirectDiscountRequest, LotCreate, LotOut
from palletrack.services import discounts, ledger

router = APIRouter()


@router.post("/", response_model=LotOut, status_code=status.HTTP_201_CREATED)
async def create_lot(
    body: LotCreate,
    db: AsyncSession = Depends(get_db),
):
    lot = await ledger.record_intake(db, body.client, body.quantity, body.actor)
    return LotOut.from_balance(await ledger.balance(db, lot.id))


@router.get("/", response_model=PaginatedResponse[LotOut])
async def list_lots(
    search: str = Query("", max_length=50),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Lots that still have pallets available, newest first."""
    items, total = await ledger.list_available_lots(db, search.strip(), limit, offset)
    return PaginatedResponse(
        items=[LotOut.from_balance(b) for b in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{lot_id}", response_model=LotOut)
async def get_lot(
    lot_id: int,
    db: AsyncSession = Depends(get_db),
):
    return LotOut.from_balance(await ledger.balance(db, lot_id))


@router.post(
    "/{lot_id}/discount",
    response_model=DiscountOut,
    status_code=status.HTTP_201_CREATED,
)
async def discount_from_lot(
    lot_id: int,
    body: DirectDiscountRequest,
    db: AsyncSession = Depends(get_db),
):
    discount = await discounts.apply_direct(db, lot_id, body.quantity, body.actor)
    data = DiscountOut.model_validate(discount)
    data.lot_available = await ledger.availability(db, lot_id)
    return data
