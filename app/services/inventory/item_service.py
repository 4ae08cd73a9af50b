from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.exc import IntegrityError

from app.core.config import MAX_PAGE_SIZE
from app.models.inventory.item_models import InventoryItem
from app.models.inventory.ledger_head_models import StockLedgerHead
from app.models.inventory.stock_movement_models import StockMovement
from app.schemas.auth.actor_schemas import Actor
from app.schemas.inventory.item_schemas import (
    ItemCreate,
    ItemUpdate,
    ItemOut,
    ItemListData,
)
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.utils.activity_helpers import emit_activity
from app.utils.logger import get_logger
from app.utils.time_utils import as_utc

logger = get_logger(__name__)

ITEM_SORT_FIELDS = {
    "name": InventoryItem.name,
    "category": InventoryItem.category,
    "min_stock": InventoryItem.min_stock,
    "created_at": InventoryItem.created_at,
    "updated_at": InventoryItem.updated_at,
}


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _clean_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise AppException(400, "Item name is required", ErrorCode.VALIDATION_ERROR)
    return name


def map_item(i: InventoryItem) -> ItemOut:
    return ItemOut(
        id=i.id,
        name=i.name,
        category=i.category,
        unit=i.unit,
        min_stock=i.min_stock,
        is_active=i.is_active,
        version=i.version,
        created_at=as_utc(i.created_at),
        updated_at=as_utc(i.updated_at),
        created_by=i.created_by,
        updated_by=i.updated_by,
    )


async def get_item_or_404(db: AsyncSession, item_id: int) -> InventoryItem:
    item = await db.get(InventoryItem, item_id, populate_existing=True)
    if not item:
        raise AppException(404, "Item not found", ErrorCode.NOT_FOUND, {"item_id": item_id})
    return item


def apply_item_filters(query, *, q: str | None = None, category: str | None = None, active: bool | None = None):
    if active is not None:
        query = query.where(InventoryItem.is_active.is_(active))
    if category and category.strip():
        query = query.where(InventoryItem.category == category.strip())
    if q and q.strip():
        term = f"%{q.strip()}%"
        query = query.where(
            or_(
                InventoryItem.name.ilike(term),
                InventoryItem.category.ilike(term),
            )
        )
    return query


# =====================================================
# CREATE
# =====================================================
async def create_item(db: AsyncSession, payload: ItemCreate, actor: Actor) -> ItemOut:
    logger.info("Create inventory item", extra={"item_name": payload.name})

    item = InventoryItem(
        name=_clean_name(payload.name),
        category=_clean_optional(payload.category),
        unit=_clean_optional(payload.unit),
        min_stock=payload.min_stock,
        is_active=payload.is_active,
        version=1,
        created_by=actor.id,
        updated_by=actor.id,
    )
    db.add(item)
    await db.flush()

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.CREATE_ITEM,
        target_name=item.name,
    )

    await db.commit()
    await db.refresh(item)
    return map_item(item)


# =====================================================
# READ
# =====================================================
async def list_items(
    db: AsyncSession,
    *,
    q: str | None = None,
    category: str | None = None,
    active: bool | None = None,
    page: int = 1,
    page_size: int = 50,
    sort_by: str = "name",
    sort_order: str = "asc",
) -> ItemListData:
    logger.info("List inventory items", extra={"q": q, "category": category, "active": active})

    page = max(1, page)
    page_size = min(MAX_PAGE_SIZE, max(1, page_size))

    query = apply_item_filters(select(InventoryItem), q=q, category=category, active=active)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    sort_column = ITEM_SORT_FIELDS.get(sort_by, InventoryItem.name)
    order = sort_column.desc() if sort_order == "desc" else sort_column.asc()

    result = await db.execute(
        query.order_by(order, InventoryItem.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )

    return ItemListData(
        total=total or 0,
        page=page,
        page_size=page_size,
        items=[map_item(i) for i in result.scalars().all()],
    )


async def get_item(db: AsyncSession, item_id: int) -> ItemOut:
    return map_item(await get_item_or_404(db, item_id))


# =====================================================
# UPDATE
# =====================================================
async def update_item(
    db: AsyncSession,
    item_id: int,
    payload: ItemUpdate,
    actor: Actor,
) -> ItemOut:
    current = await get_item_or_404(db, item_id)

    updates = payload.model_dump(exclude_unset=True, exclude={"version"})
    if "name" in updates:
        updates["name"] = _clean_name(updates["name"])
    for field in ("category", "unit"):
        if field in updates:
            updates[field] = _clean_optional(updates[field])
    if "min_stock" in updates and updates["min_stock"] is None:
        updates.pop("min_stock")

    if not updates:
        raise AppException(400, "No changes detected", ErrorCode.VALIDATION_ERROR)

    changes: list[str] = []
    for k, v in updates.items():
        old = getattr(current, k)
        if old != v:
            changes.append(f"{k}: {old} -> {v}")

    if not changes:
        raise AppException(400, "No actual changes detected", ErrorCode.VALIDATION_ERROR)

    result = await db.execute(
        update(InventoryItem)
        .where(
            InventoryItem.id == item_id,
            InventoryItem.version == payload.version,
        )
        .values(
            **updates,
            version=InventoryItem.version + 1,
            updated_by=actor.id,
        )
        .returning(InventoryItem)
        .execution_options(populate_existing=True)
    )
    item = result.scalar_one_or_none()

    if not item:
        raise AppException(
            409,
            "Item modified by another process",
            ErrorCode.VERSION_CONFLICT,
            {"current_version": current.version},
        )

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.UPDATE_ITEM,
        target_name=item.name,
        changes=", ".join(changes),
    )

    await db.commit()
    return map_item(item)


# =====================================================
# ACTIVE FLAG
# =====================================================
async def _set_active(db: AsyncSession, item_id: int, actor: Actor, *, active: bool) -> ItemOut:
    await get_item_or_404(db, item_id)

    result = await db.execute(
        update(InventoryItem)
        .where(
            InventoryItem.id == item_id,
            InventoryItem.is_active.is_(not active),
        )
        .values(
            is_active=active,
            version=InventoryItem.version + 1,
            updated_by=actor.id,
        )
        .returning(InventoryItem)
        .execution_options(populate_existing=True)
    )
    item = result.scalar_one_or_none()

    if not item:
        raise AppException(
            409,
            "Item already active" if active else "Item already inactive",
            ErrorCode.STATE_CONFLICT,
        )

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.REACTIVATE_ITEM if active else ActivityCode.DEACTIVATE_ITEM,
        target_name=item.name,
    )

    await db.commit()
    return map_item(item)


async def deactivate_item(db: AsyncSession, item_id: int, actor: Actor) -> ItemOut:
    return await _set_active(db, item_id, actor, active=False)


async def reactivate_item(db: AsyncSession, item_id: int, actor: Actor) -> ItemOut:
    return await _set_active(db, item_id, actor, active=True)


# =====================================================
# PURGE
# =====================================================
async def purge_item(db: AsyncSession, item_id: int, actor: Actor) -> dict:
    """Hard delete; only items that never had a movement in any warehouse."""
    item = await get_item_or_404(db, item_id)

    moves = await db.scalar(
        select(func.count(StockMovement.id)).where(StockMovement.item_id == item_id)
    )
    if moves:
        raise AppException(
            409,
            "Item has stock movements and cannot be deleted",
            ErrorCode.ITEM_HAS_MOVES,
            {"item_id": item_id, "movements": moves},
        )

    name = item.name

    try:
        await db.execute(delete(StockLedgerHead).where(StockLedgerHead.item_id == item_id))
        await db.execute(delete(InventoryItem).where(InventoryItem.id == item_id))
    except IntegrityError:
        # a movement landed after the count
        await db.rollback()
        raise AppException(
            409,
            "Item has stock movements and cannot be deleted",
            ErrorCode.ITEM_HAS_MOVES,
            {"item_id": item_id},
        )

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.PURGE_ITEM,
        target_name=name,
    )

    await db.commit()

    logger.info("Inventory item purged", extra={"item_id": item_id})
    return {"id": item_id, "name": name}
