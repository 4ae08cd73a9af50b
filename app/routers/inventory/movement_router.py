from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.constants.movement_type import MovementType
from app.utils.check_roles import require_role, ADMIN_ROLES, READ_ROLES
from app.utils.response import success_response, APIResponse
from app.services.inventory.movement_service import record_movement, list_movements
from app.schemas.inventory.movement_schemas import (
    MovementCreate,
    MovementOut,
    MovementListData,
)

router = APIRouter(
    prefix="/inventory/moves",
    tags=["Stock Movements"],
)


@router.post("", response_model=APIResponse[MovementOut], status_code=201)
async def create_movement_api(
    payload: MovementCreate,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(ADMIN_ROLES)),
):
    movement = await record_movement(db, payload, actor)
    return success_response("Movement recorded successfully", movement)


@router.get("", response_model=APIResponse[MovementListData])
async def list_movements_api(
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(READ_ROLES)),
    item_id: int | None = Query(None, ge=1),
    warehouse_id: int | None = Query(None, ge=1),
    transfer_id: str | None = Query(None),
    type: MovementType | None = Query(None),
    date_from: datetime | None = Query(None, alias="from"),
    date_to: datetime | None = Query(None, alias="to"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
):
    data = await list_movements(
        db,
        item_id=item_id,
        warehouse_id=warehouse_id,
        transfer_id=transfer_id,
        movement_type=type,
        date_from=date_from,
        date_to=date_to,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return success_response("Movements fetched successfully", data)
