"""Task router — discount tasks and their lock.

Endpoints:
    POST  /api/tasks/                    Create a task against a lot
    GET   /api/tasks/                    List tasks (state, client, holder)
    GET   /api/tasks/{task_id}           Single task with pending quantity
    POST  /api/tasks/{task_id}/claim     Take the task
    POST  /api/tasks/{task_id}/release   Give the task back
    POST  /api/tasks/{task_id}/cancel    Cancel a pending task
    POST  /api/tasks/{task_id}/discount  Discount from a held task
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from palletrack.database import get_db
from palletrack.models.task import TaskState
from palletrack.schemas.common import ActorRequest, PaginatedResponse
from palletrack.schemas.discount import DiscountOut, DiscountRequest
from palletrack.schemas.task import TaskCreate, TaskOut
from palletrack.services import allocator, discounts, ledger

router = APIRouter()


async def _task_out(db: AsyncSession, task_id: int) -> TaskOut:
    return TaskOut.from_balance(await allocator.balance(db, task_id))


@router.post("/", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreate,
    db: AsyncSession = Depends(get_db),
):
    task = await allocator.create_task(
        db,
        lot_id=body.lot_id,
        client=body.client,
        quantity=body.quantity,
        aisle=body.aisle,
        priority=body.priority,
        actor=body.actor,
    )
    return await _task_out(db, task.id)


@router.get("/", response_model=PaginatedResponse[TaskOut])
async def list_tasks(
    task_state: str = Query("pending", alias="state", pattern="^(pending|completed|cancelled|all)$"),
    search: str = Query("", max_length=50),
    holder: str | None = Query(None, max_length=50),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Tasks with discounted and pending quantities.

    Defaults to pending tasks that still have something to discount;
    `state=all` lists every task.
    """
    state = None if task_state == "all" else TaskState(task_state)
    items, total = await allocator.list_tasks(
        db, state, search.strip(), holder, limit, offset,
    )
    return PaginatedResponse(
        items=[TaskOut.from_balance(b) for b in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await _task_out(db, task_id)


# ── Lock ─────────────────────────────────────────────────────

@router.post("/{task_id}/claim", response_model=TaskOut)
async def claim_task(
    task_id: int,
    body: ActorRequest,
    db: AsyncSession = Depends(get_db),
):
    await allocator.claim(db, task_id, body.actor)
    return await _task_out(db, task_id)


@router.post("/{task_id}/release", response_model=TaskOut)
async def release_task(
    task_id: int,
    body: ActorRequest,
    db: AsyncSession = Depends(get_db),
):
    await allocator.release(db, task_id, body.actor)
    return await _task_out(db, task_id)


@router.post("/{task_id}/cancel", response_model=TaskOut)
async def cancel_task(
    task_id: int,
    body: ActorRequest,
    db: AsyncSession = Depends(get_db),
):
    await allocator.cancel(db, task_id, body.actor)
    return await _task_out(db, task_id)


# ── Discount ─────────────────────────────────────────────────

@router.post(
    "/{task_id}/discount",
    response_model=DiscountOut,
    status_code=status.HTTP_201_CREATED,
)
async def discount_from_task(
    task_id: int,
    body: DiscountRequest,
    db: AsyncSession = Depends(get_db),
):
    discount = await discounts.apply_to_task(db, task_id, body.quantity, body.actor)
    balance = await allocator.balance(db, task_id)

    data = DiscountOut.model_validate(discount)
    data.task_state = balance.task.state
    data.task_pending = balance.pending
    data.lot_available = await ledger.availability(db, discount.lot_id)
    return data
