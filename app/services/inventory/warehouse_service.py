from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, or_
from sqlalchemy.exc import IntegrityError

from app.core.config import MAX_PAGE_SIZE
from app.models.inventory.warehouse_models import Warehouse
from app.schemas.auth.actor_schemas import Actor
from app.schemas.inventory.warehouse_schemas import (
    WarehouseCreate,
    WarehouseUpdate,
    WarehouseOut,
    WarehouseListData,
)
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.utils.activity_helpers import emit_activity
from app.utils.logger import get_logger
from app.utils.time_utils import as_utc

logger = get_logger(__name__)

WAREHOUSE_SORT_FIELDS = {
    "name": Warehouse.name,
    "code": Warehouse.code,
    "created_at": Warehouse.created_at,
    "updated_at": Warehouse.updated_at,
}


def normalize_code(code: str) -> str:
    code = (code or "").strip().upper()
    if not code:
        raise AppException(400, "Warehouse code is required", ErrorCode.VALIDATION_ERROR)
    return code


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise AppException(400, "Warehouse name is required", ErrorCode.VALIDATION_ERROR)
    return name


def map_warehouse(w: Warehouse) -> WarehouseOut:
    return WarehouseOut(
        id=w.id,
        code=w.code,
        name=w.name,
        description=w.description,
        is_active=w.is_active,
        is_primary=w.is_primary,
        version=w.version,
        created_at=as_utc(w.created_at),
        updated_at=as_utc(w.updated_at),
        created_by=w.created_by,
        updated_by=w.updated_by,
    )


def _duplicate_code(code: str) -> AppException:
    return AppException(
        409,
        "Warehouse code already exists",
        ErrorCode.DUPLICATE_CODE,
        {"code": code},
    )


async def _code_taken(db: AsyncSession, code: str, exclude_id: int | None = None) -> bool:
    query = select(Warehouse.id).where(Warehouse.code == code)
    if exclude_id is not None:
        query = query.where(Warehouse.id != exclude_id)
    return (await db.scalar(query)) is not None


async def _clear_other_primaries(db: AsyncSession, warehouse_id: int) -> None:
    # at most one warehouse carries the primary flag
    await db.execute(
        update(Warehouse)
        .where(Warehouse.id != warehouse_id, Warehouse.is_primary.is_(True))
        .values(is_primary=False)
        .execution_options(synchronize_session=False)
    )


async def get_warehouse_or_404(db: AsyncSession, warehouse_id: int) -> Warehouse:
    warehouse = await db.get(Warehouse, warehouse_id, populate_existing=True)
    if not warehouse:
        raise AppException(
            404,
            "Warehouse not found",
            ErrorCode.NOT_FOUND,
            {"warehouse_id": warehouse_id},
        )
    return warehouse


# =====================================================
# CREATE
# =====================================================
async def create_warehouse(db: AsyncSession, payload: WarehouseCreate, actor: Actor) -> WarehouseOut:
    code = normalize_code(payload.code)
    logger.info("Create warehouse", extra={"code": code})

    if await _code_taken(db, code):
        raise _duplicate_code(code)

    warehouse = Warehouse(
        code=code,
        name=_clean_name(payload.name),
        description=(payload.description or "").strip() or None,
        is_active=payload.is_active,
        is_primary=payload.is_primary,
        version=1,
        created_by=actor.id,
        updated_by=actor.id,
    )
    db.add(warehouse)

    try:
        await db.flush()
    except IntegrityError:
        # concurrent create with the same code
        await db.rollback()
        raise _duplicate_code(code)

    if warehouse.is_primary:
        await _clear_other_primaries(db, warehouse.id)

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.CREATE_WAREHOUSE,
        target_name=warehouse.code,
    )

    await db.commit()
    await db.refresh(warehouse)
    return map_warehouse(warehouse)


# =====================================================
# READ
# =====================================================
async def list_warehouses(
    db: AsyncSession,
    *,
    q: str | None = None,
    active: bool | None = None,
    page: int = 1,
    page_size: int = 50,
    sort_by: str = "name",
    sort_order: str = "asc",
) -> WarehouseListData:
    logger.info("List warehouses", extra={"q": q, "active": active})

    page = max(1, page)
    page_size = min(MAX_PAGE_SIZE, max(1, page_size))

    query = select(Warehouse)

    if active is not None:
        query = query.where(Warehouse.is_active.is_(active))

    if q and q.strip():
        term = f"%{q.strip()}%"
        query = query.where(
            or_(
                Warehouse.code.ilike(term),
                Warehouse.name.ilike(term),
                Warehouse.description.ilike(term),
            )
        )

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    sort_column = WAREHOUSE_SORT_FIELDS.get(sort_by, Warehouse.name)
    order = sort_column.desc() if sort_order == "desc" else sort_column.asc()

    result = await db.execute(
        query.order_by(order, Warehouse.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )

    return WarehouseListData(
        total=total or 0,
        page=page,
        page_size=page_size,
        items=[map_warehouse(w) for w in result.scalars().all()],
    )


async def get_warehouse(db: AsyncSession, warehouse_id: int) -> WarehouseOut:
    return map_warehouse(await get_warehouse_or_404(db, warehouse_id))


# =====================================================
# UPDATE
# =====================================================
async def update_warehouse(
    db: AsyncSession,
    warehouse_id: int,
    payload: WarehouseUpdate,
    actor: Actor,
) -> WarehouseOut:
    current = await get_warehouse_or_404(db, warehouse_id)

    updates = payload.model_dump(exclude_unset=True, exclude={"version"})
    if "code" in updates:
        updates["code"] = normalize_code(updates["code"])
    if "name" in updates:
        updates["name"] = _clean_name(updates["name"])
    if "description" in updates:
        updates["description"] = (updates["description"] or "").strip() or None
    if "is_primary" in updates and updates["is_primary"] is None:
        updates.pop("is_primary")

    if not updates:
        raise AppException(400, "No changes detected", ErrorCode.VALIDATION_ERROR)

    # -------------------------------------------------
    # UNIQUE CODE CHECK (pre-validation)
    # -------------------------------------------------
    if "code" in updates and updates["code"] != current.code:
        if await _code_taken(db, updates["code"], exclude_id=warehouse_id):
            raise _duplicate_code(updates["code"])

    # -------------------------------------------------
    # CHANGE TRACKING
    # -------------------------------------------------
    changes: list[str] = []
    for k, v in updates.items():
        old = getattr(current, k)
        if old != v:
            changes.append(f"{k}: {old} -> {v}")

    if not changes:
        raise AppException(400, "No actual changes detected", ErrorCode.VALIDATION_ERROR)

    stmt = (
        update(Warehouse)
        .where(
            Warehouse.id == warehouse_id,
            Warehouse.version == payload.version,
        )
        .values(
            **updates,
            version=Warehouse.version + 1,
            updated_by=actor.id,
        )
        .returning(Warehouse)
        .execution_options(populate_existing=True)
    )

    try:
        result = await db.execute(stmt)
        warehouse = result.scalar_one_or_none()
    except IntegrityError:
        # race-condition safety net
        await db.rollback()
        raise _duplicate_code(updates.get("code", current.code))

    if not warehouse:
        raise AppException(
            409,
            "Warehouse modified by another process",
            ErrorCode.VERSION_CONFLICT,
            {"current_version": current.version},
        )

    if updates.get("is_primary"):
        await _clear_other_primaries(db, warehouse_id)

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.UPDATE_WAREHOUSE,
        target_name=warehouse.code,
        changes=", ".join(changes),
    )

    await db.commit()
    return map_warehouse(warehouse)


# =====================================================
# ACTIVE FLAG
# =====================================================
async def _set_active(
    db: AsyncSession,
    warehouse_id: int,
    actor: Actor,
    *,
    active: bool,
) -> WarehouseOut:
    await get_warehouse_or_404(db, warehouse_id)

    stmt = (
        update(Warehouse)
        .where(
            Warehouse.id == warehouse_id,
            Warehouse.is_active.is_(not active),
        )
        .values(
            is_active=active,
            version=Warehouse.version + 1,
            updated_by=actor.id,
        )
        .returning(Warehouse)
        .execution_options(populate_existing=True)
    )

    result = await db.execute(stmt)
    warehouse = result.scalar_one_or_none()

    if not warehouse:
        raise AppException(
            409,
            "Warehouse already active" if active else "Warehouse already inactive",
            ErrorCode.STATE_CONFLICT,
        )

    await emit_activity(
        db,
        actor=actor,
        code=ActivityCode.REACTIVATE_WAREHOUSE if active else ActivityCode.DEACTIVATE_WAREHOUSE,
        target_name=warehouse.code,
    )

    await db.commit()
    return map_warehouse(warehouse)


async def deactivate_warehouse(db: AsyncSession, warehouse_id: int, actor: Actor) -> WarehouseOut:
    """Soft flag flip; existing movements are untouched."""
    return await _set_active(db, warehouse_id, actor, active=False)


async def reactivate_warehouse(db: AsyncSession, warehouse_id: int, actor: Actor) -> WarehouseOut:
    return await _set_active(db, warehouse_id, actor, active=True)
