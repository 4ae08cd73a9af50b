from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.utils.check_roles import require_role, ADMIN_ROLES, READ_ROLES
from app.utils.response import success_response, APIResponse
from app.services.inventory.item_service import (
    create_item,
    list_items,
    get_item,
    update_item,
    deactivate_item,
    reactivate_item,
    purge_item,
)
from app.services.inventory.stock_query_service import item_stock
from app.schemas.inventory.item_schemas import (
    ItemCreate,
    ItemUpdate,
    ItemOut,
    ItemListData,
)
from app.schemas.inventory.stock_schemas import ItemStockOut

router = APIRouter(
    prefix="/inventory/items",
    tags=["Inventory Items"],
)


# =========================
# LIST
# =========================
@router.get("", response_model=APIResponse[ItemListData])
async def list_items_api(
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(READ_ROLES)),
    q: str | None = Query(None),
    category: str | None = Query(None),
    active: bool | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    sort_by: str = Query("name"),
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
):
    data = await list_items(
        db,
        q=q,
        category=category,
        active=active,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return success_response("Items fetched successfully", data)


# =========================
# GET
# =========================
@router.get("/{item_id}", response_model=APIResponse[ItemOut])
async def get_item_api(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(READ_ROLES)),
):
    return success_response("Item fetched successfully", await get_item(db, item_id))


@router.get("/{item_id}/stock", response_model=APIResponse[ItemStockOut])
async def get_item_stock_api(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(READ_ROLES)),
    warehouse_id: int | None = Query(None, ge=1),
):
    data = await item_stock(db, item_id, warehouse_id)
    return success_response("Item stock fetched successfully", data)


# =========================
# CREATE
# =========================
@router.post("", response_model=APIResponse[ItemOut], status_code=201)
async def create_item_api(
    payload: ItemCreate,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(ADMIN_ROLES)),
):
    item = await create_item(db, payload, actor)
    return success_response("Item created successfully", item)


# =========================
# UPDATE
# =========================
@router.patch("/{item_id}", response_model=APIResponse[ItemOut])
async def update_item_api(
    item_id: int,
    payload: ItemUpdate,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(ADMIN_ROLES)),
):
    item = await update_item(db, item_id, payload, actor)
    return success_response("Item updated successfully", item)


# =========================
# DEACTIVATE / REACTIVATE
# =========================
@router.delete("/{item_id}", response_model=APIResponse[ItemOut])
async def deactivate_item_api(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(ADMIN_ROLES)),
):
    item = await deactivate_item(db, item_id, actor)
    return success_response("Item deactivated successfully", item)


@router.patch("/{item_id}/activate", response_model=APIResponse[ItemOut])
async def reactivate_item_api(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(ADMIN_ROLES)),
):
    item = await reactivate_item(db, item_id, actor)
    return success_response("Item reactivated successfully", item)


# =========================
# PURGE
# =========================
@router.delete("/{item_id}/purge", response_model=APIResponse[dict])
async def purge_item_api(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(ADMIN_ROLES)),
):
    data = await purge_item(db, item_id, actor)
    return success_response("Item permanently deleted", data)
