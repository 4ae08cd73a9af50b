from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import MAX_PAGE_SIZE
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.constants.movement_type import MovementType
from app.models.inventory.item_models import InventoryItem
from app.models.inventory.warehouse_models import Warehouse
from app.models.inventory.stock_movement_models import StockMovement
from app.schemas.auth.actor_schemas import Actor
from app.schemas.inventory.movement_schemas import (
    MovementCreate,
    MovementOut,
    MovementListData,
)
from app.services.inventory.ledger_transaction import ledger_transaction
from app.services.inventory.stock_calculator import stock_of
from app.services.inventory.idempotency_service import (
    MOVEMENT_SCOPE,
    hash_payload,
    find_replay,
    remember,
)
from app.utils.activity_helpers import emit_activity
from app.utils.logger import get_logger
from app.utils.time_utils import as_utc

logger = get_logger(__name__)

NOTE_MAX_LENGTH = 500

MOVEMENT_SORT_FIELDS = {
    "created_at": StockMovement.created_at,
    "createdAt": StockMovement.created_at,
    "movement_type": StockMovement.movement_type,
    "type": StockMovement.movement_type,
    "quantity": StockMovement.quantity,
    "qty": StockMovement.quantity,
}


# =====================================================
# MAPPERS / VALIDATION
# =====================================================
def map_movement(m: StockMovement) -> MovementOut:
    return MovementOut(
        id=m.id,
        item_id=m.item_id,
        warehouse_id=m.warehouse_id,
        movement_type=m.movement_type,
        quantity=m.quantity,
        target_quantity=m.target_quantity,
        note=m.note,
        transfer_id=m.transfer_id,
        created_by=m.created_by,
        created_at=as_utc(m.created_at),
    )


def _invalid(message: str, **details) -> AppException:
    return AppException(400, message, ErrorCode.VALIDATION_ERROR, details or None)


def require_id(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise _invalid(f"{field} must be a positive integer id", field=field)
    return value


def require_quantity(value, field: str = "qty") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise _invalid(f"{field} must be an integer greater than 0", field=field)
    return value


def require_target(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise _invalid("to must be an integer greater than or equal to 0", field="to")
    return value


def clean_note(note: str | None) -> str | None:
    if note is None:
        return None
    if not isinstance(note, str):
        raise _invalid("note must be text", field="note")
    note = note.strip()
    if len(note) > NOTE_MAX_LENGTH:
        raise _invalid(f"note must be at most {NOTE_MAX_LENGTH} characters", field="note")
    return note or None


def clean_idempotency_key(key: str | None) -> str | None:
    if key is None:
        return None
    key = str(key).strip()
    if not key or len(key) > 128:
        raise _invalid("idempotencyKey must be 1-128 characters", field="idempotencyKey")
    return key


# =====================================================
# LOADERS (inside the ledger boundary)
# =====================================================
async def load_item(db: AsyncSession, item_id: int) -> InventoryItem:
    item = await db.get(InventoryItem, item_id)
    if not item:
        raise AppException(404, "Item not found", ErrorCode.NOT_FOUND, {"item_id": item_id})
    return item


async def load_active_warehouse(
    db: AsyncSession,
    warehouse_id: int,
    label: str = "Warehouse",
) -> Warehouse:
    warehouse = await db.get(Warehouse, warehouse_id, populate_existing=True)
    if not warehouse:
        raise AppException(
            404,
            f"{label} not found",
            ErrorCode.NOT_FOUND,
            {"warehouse_id": warehouse_id},
        )
    if not warehouse.is_active:
        raise AppException(
            400,
            f"{label} is inactive",
            ErrorCode.VALIDATION_ERROR,
            {"warehouse_id": warehouse_id},
        )
    return warehouse


# =====================================================
# WRITES
# =====================================================
async def _append_single(
    db: AsyncSession,
    *,
    kind: MovementType,
    item_id: int,
    warehouse_id: int,
    value: int,
    note: str | None,
    actor: Actor,
    idempotency_key: str | None,
) -> MovementOut:
    payload_hash = None
    if idempotency_key:
        payload_hash = hash_payload(
            {
                "type": kind.value,
                "item_id": item_id,
                "warehouse_id": warehouse_id,
                "value": value,
                "note": note,
            }
        )

    async with ledger_transaction(db, [(item_id, warehouse_id)]) as ledger:
        if idempotency_key:
            prior = await find_replay(
                db,
                scope=MOVEMENT_SCOPE,
                key=idempotency_key,
                payload_hash=payload_hash,
            )
            if prior:
                movement = await db.get(StockMovement, prior.movement_id, populate_existing=True)
                return map_movement(movement)

        await load_item(db, item_id)
        await load_active_warehouse(db, warehouse_id)
        await ledger.lock_heads()

        current = await stock_of(db, item_id, warehouse_id)

        if kind is MovementType.IN:
            quantity, target = value, None
        elif kind is MovementType.OUT:
            if current - value < 0:
                raise AppException(
                    409,
                    "Insufficient stock for this movement",
                    ErrorCode.STOCK_NEGATIVE_NOT_ALLOWED,
                    {"available": current, "requested": value},
                )
            quantity, target = value, None
        else:
            quantity, target = value - current, value

        movement = await ledger.append(
            item_id=item_id,
            warehouse_id=warehouse_id,
            movement_type=kind,
            quantity=quantity,
            target_quantity=target,
            note=note,
            actor=actor,
        )

        if idempotency_key:
            remember(
                db,
                scope=MOVEMENT_SCOPE,
                key=idempotency_key,
                payload_hash=payload_hash,
                actor=actor,
                movement_id=movement.id,
            )

        if kind is MovementType.ADJUST:
            await emit_activity(
                db,
                actor=actor,
                code=ActivityCode.STOCK_ADJUSTMENT,
                item_id=item_id,
                warehouse_id=warehouse_id,
                target=target,
                delta=quantity,
            )
        else:
            await emit_activity(
                db,
                actor=actor,
                code=ActivityCode.STOCK_MOVEMENT,
                movement_type=kind.value,
                quantity=quantity,
                item_id=item_id,
                warehouse_id=warehouse_id,
            )

    logger.info(
        "Stock movement recorded",
        extra={
            "movement_id": movement.id,
            "type": kind.value,
            "item_id": item_id,
            "warehouse_id": warehouse_id,
            "quantity": quantity,
            "stock_before": current,
        },
    )
    return map_movement(movement)


async def record_in(
    db: AsyncSession,
    *,
    item_id: int,
    warehouse_id: int,
    qty: int,
    actor: Actor,
    note: str | None = None,
    idempotency_key: str | None = None,
) -> MovementOut:
    return await _append_single(
        db,
        kind=MovementType.IN,
        item_id=require_id(item_id, "itemId"),
        warehouse_id=require_id(warehouse_id, "warehouseId"),
        value=require_quantity(qty),
        note=clean_note(note),
        actor=actor,
        idempotency_key=clean_idempotency_key(idempotency_key),
    )


async def record_out(
    db: AsyncSession,
    *,
    item_id: int,
    warehouse_id: int,
    qty: int,
    actor: Actor,
    note: str | None = None,
    idempotency_key: str | None = None,
) -> MovementOut:
    return await _append_single(
        db,
        kind=MovementType.OUT,
        item_id=require_id(item_id, "itemId"),
        warehouse_id=require_id(warehouse_id, "warehouseId"),
        value=require_quantity(qty),
        note=clean_note(note),
        actor=actor,
        idempotency_key=clean_idempotency_key(idempotency_key),
    )


async def record_adjust(
    db: AsyncSession,
    *,
    item_id: int,
    warehouse_id: int,
    target: int,
    actor: Actor,
    note: str | None = None,
    idempotency_key: str | None = None,
) -> MovementOut:
    """Set stock of the pair to ``target``; the stored quantity is ``target - stock``."""
    return await _append_single(
        db,
        kind=MovementType.ADJUST,
        item_id=require_id(item_id, "itemId"),
        warehouse_id=require_id(warehouse_id, "warehouseId"),
        value=require_target(target),
        note=clean_note(note),
        actor=actor,
        idempotency_key=clean_idempotency_key(idempotency_key),
    )


async def record_movement(
    db: AsyncSession,
    payload: MovementCreate,
    actor: Actor,
) -> MovementOut:
    common = dict(
        item_id=payload.item_id,
        warehouse_id=payload.warehouse_id,
        note=payload.note,
        actor=actor,
        idempotency_key=payload.idempotency_key,
    )

    if payload.type is MovementType.IN:
        return await record_in(db, qty=payload.qty, **common)
    if payload.type is MovementType.OUT:
        return await record_out(db, qty=payload.qty, **common)
    if payload.type is MovementType.ADJUST:
        return await record_adjust(db, target=payload.to, **common)

    raise _invalid("Unsupported movement type", field="type")


# =====================================================
# HISTORY
# =====================================================
async def list_movements(
    db: AsyncSession,
    *,
    item_id: int | None = None,
    warehouse_id: int | None = None,
    transfer_id: str | None = None,
    movement_type: MovementType | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = 1,
    page_size: int = 50,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> MovementListData:
    logger.info(
        "List stock movements",
        extra={"item_id": item_id, "warehouse_id": warehouse_id, "transfer_id": transfer_id},
    )

    page = max(1, page)
    page_size = min(MAX_PAGE_SIZE, max(1, page_size))

    query = select(StockMovement)

    if item_id is not None:
        query = query.where(StockMovement.item_id == item_id)
    if warehouse_id is not None:
        query = query.where(StockMovement.warehouse_id == warehouse_id)
    if transfer_id:
        query = query.where(StockMovement.transfer_id == transfer_id)
    if movement_type is not None:
        query = query.where(StockMovement.movement_type == movement_type)
    if date_from is not None:
        query = query.where(StockMovement.created_at >= as_utc(date_from))
    if date_to is not None:
        query = query.where(StockMovement.created_at <= as_utc(date_to))

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    sort_column = MOVEMENT_SORT_FIELDS.get(sort_by, StockMovement.created_at)
    if sort_order == "asc":
        order = (sort_column.asc(), StockMovement.id.asc())
    else:
        order = (sort_column.desc(), StockMovement.id.desc())

    result = await db.execute(
        query.order_by(*order)
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )

    return MovementListData(
        total=total or 0,
        page=page,
        page_size=page_size,
        items=[map_movement(m) for m in result.scalars().all()],
    )
