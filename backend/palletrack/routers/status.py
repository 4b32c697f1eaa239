"""Status router — dashboard KPIs."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from palletrack.database import get_db
from palletrack.schemas.status import StatusOut
from palletrack.services import reporting

router = APIRouter()


@router.get("", response_model=StatusOut)
async def get_status(db: AsyncSession = Depends(get_db)):
    """Pending, processed and cancelled totals plus the latest action."""
    report = await reporting.status(db)
    return StatusOut.model_validate(report)
