"""Movement router — the audit log and its CSV export.

Endpoints:
    GET  /api/movements/        Movements in a date window (newest first)
    GET  /api/movements/export  Same filters, as a CSV attachment
"""

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from palletrack.database import get_db
from palletrack.models.movement import MovementKind
from palletrack.schemas.movement import MovementOut
from palletrack.services import movements

router = APIRouter()


def _csv_response(csv_text: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/", response_model=list[MovementOut])
async def list_movements(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    kind: MovementKind | None = Query(None),
    client: str | None = Query(None, max_length=50),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Movements between two dates, both days included."""
    rows = await movements.query(
        db, date_from, date_to,
        kind=kind, client=client, limit=limit, offset=offset,
    )
    return rows


@router.get("/export")
async def export_movements(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    kind: MovementKind | None = Query(None),
    client: str | None = Query(None, max_length=50),
    db: AsyncSession = Depends(get_db),
):
    rows = await movements.query(db, date_from, date_to, kind=kind, client=client)
    filename = f"movements_{datetime.utcnow():%Y%m%d_%H%M%S}.csv"
    return _csv_response(movements.export_csv(rows), filename)
