from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.utils.check_roles import require_role, ADMIN_ROLES, READ_ROLES
from app.utils.response import success_response, APIResponse
from app.services.inventory.warehouse_service import (
    create_warehouse,
    list_warehouses,
    get_warehouse,
    update_warehouse,
    deactivate_warehouse,
    reactivate_warehouse,
)
from app.services.inventory.warehouse_retirement_service import purge_warehouse
from app.schemas.inventory.warehouse_schemas import (
    WarehouseCreate,
    WarehouseUpdate,
    WarehousePurge,
    WarehouseOut,
    WarehouseListData,
    WarehouseRetirementResult,
)

router = APIRouter(
    prefix="/warehouses",
    tags=["Warehouses"],
)


# =========================
# LIST / GET
# =========================
@router.get("", response_model=APIResponse[WarehouseListData])
async def list_warehouses_api(
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(READ_ROLES)),
    q: str | None = Query(None),
    active: bool | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    sort_by: str = Query("name"),
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
):
    data = await list_warehouses(
        db,
        q=q,
        active=active,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return success_response("Warehouses fetched successfully", data)


@router.get("/{warehouse_id}", response_model=APIResponse[WarehouseOut])
async def get_warehouse_api(
    warehouse_id: int,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(READ_ROLES)),
):
    return success_response("Warehouse fetched successfully", await get_warehouse(db, warehouse_id))


# =========================
# CREATE / UPDATE
# =========================
@router.post("", response_model=APIResponse[WarehouseOut], status_code=201)
async def create_warehouse_api(
    payload: WarehouseCreate,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(ADMIN_ROLES)),
):
    warehouse = await create_warehouse(db, payload, actor)
    return success_response("Warehouse created successfully", warehouse)


@router.patch("/{warehouse_id}", response_model=APIResponse[WarehouseOut])
async def update_warehouse_api(
    warehouse_id: int,
    payload: WarehouseUpdate,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(ADMIN_ROLES)),
):
    warehouse = await update_warehouse(db, warehouse_id, payload, actor)
    return success_response("Warehouse updated successfully", warehouse)


# =========================
# DEACTIVATE / REACTIVATE
# =========================
@router.delete("/{warehouse_id}", response_model=APIResponse[WarehouseOut])
async def deactivate_warehouse_api(
    warehouse_id: int,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(ADMIN_ROLES)),
):
    warehouse = await deactivate_warehouse(db, warehouse_id, actor)
    return success_response("Warehouse deactivated successfully", warehouse)


@router.patch("/{warehouse_id}/activate", response_model=APIResponse[WarehouseOut])
async def reactivate_warehouse_api(
    warehouse_id: int,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(ADMIN_ROLES)),
):
    warehouse = await reactivate_warehouse(db, warehouse_id, actor)
    return success_response("Warehouse reactivated successfully", warehouse)


# =========================
# PURGE (RETIREMENT)
# =========================
@router.delete("/{warehouse_id}/purge", response_model=APIResponse[WarehouseRetirementResult])
async def purge_warehouse_api(
    warehouse_id: int,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(ADMIN_ROLES)),
    target_warehouse_id: int | None = Query(None, ge=1),
    payload: WarehousePurge | None = Body(None),
):
    if target_warehouse_id is None and payload is not None:
        target_warehouse_id = payload.target_warehouse_id

    result = await purge_warehouse(
        db,
        warehouse_id,
        actor=actor,
        target_warehouse_id=target_warehouse_id,
    )
    return success_response("Warehouse removed and movements reassigned", result)
