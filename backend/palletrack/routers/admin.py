"""Admin router — destructive maintenance operations.

Endpoints:
    DELETE  /api/admin/purge?confirm=true&actor=...  Delete all data
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from palletrack.database import get_db
from palletrack.schemas.status import PurgeOut
from palletrack.services import admin

router = APIRouter()


@router.delete("/purge", response_model=PurgeOut)
async def purge(
    actor: str = Query(..., max_length=50),
    confirm: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    """Delete every lot, task, discount and movement."""
    if not confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Purge requires confirm=true",
        )
    result = await admin.purge_all(db, actor)
    return PurgeOut.model_validate(result)
