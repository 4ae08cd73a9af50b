import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.constants.movement_type import MovementType
from app.models.inventory.stock_movement_models import StockMovement
from app.schemas.auth.actor_schemas import Actor
from app.schemas.inventory.movement_schemas import TransferCreate, TransferResult
from app.services.inventory.ledger_transaction import ledger_transaction
from app.services.inventory.stock_calculator import stock_of
from app.services.inventory.idempotency_service import (
    TRANSFER_SCOPE,
    hash_payload,
    find_replay,
    remember,
)
from app.services.inventory.movement_service import (
    map_movement,
    require_id,
    require_quantity,
    clean_note,
    clean_idempotency_key,
    load_item,
    load_active_warehouse,
)
from app.utils.activity_helpers import emit_activity
from app.utils.logger import get_logger

logger = get_logger(__name__)


def _build_result(out_movement: StockMovement, in_movement: StockMovement) -> TransferResult:
    return TransferResult(
        transfer_id=out_movement.transfer_id,
        item_id=out_movement.item_id,
        from_warehouse_id=out_movement.warehouse_id,
        to_warehouse_id=in_movement.warehouse_id,
        quantity=out_movement.quantity,
        out_movement=map_movement(out_movement),
        in_movement=map_movement(in_movement),
    )


async def _load_legs(db: AsyncSession, transfer_id: str) -> TransferResult | None:
    rows = (
        await db.execute(
            select(StockMovement)
            .where(StockMovement.transfer_id == transfer_id)
            .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
            .execution_options(populate_existing=True)
        )
    ).scalars().all()

    out_leg = next((m for m in rows if m.movement_type == MovementType.OUT), None)
    in_leg = next((m for m in rows if m.movement_type == MovementType.IN), None)
    if out_leg is None or in_leg is None:
        return None
    return _build_result(out_leg, in_leg)


async def transfer_stock(
    db: AsyncSession,
    *,
    item_id: int,
    from_warehouse_id: int,
    to_warehouse_id: int,
    qty: int,
    actor: Actor,
    note: str | None = None,
    idempotency_key: str | None = None,
) -> TransferResult:
    """Move ``qty`` units between two warehouses as one OUT + IN pair.

    Both ledgers are locked before either append, and both movements commit
    or neither does.
    """
    item_id = require_id(item_id, "itemId")
    from_warehouse_id = require_id(from_warehouse_id, "fromWarehouseId")
    to_warehouse_id = require_id(to_warehouse_id, "toWarehouseId")
    qty = require_quantity(qty)
    note = clean_note(note)
    idempotency_key = clean_idempotency_key(idempotency_key)

    if from_warehouse_id == to_warehouse_id:
        raise AppException(
            400,
            "Source and destination warehouse must differ",
            ErrorCode.SAME_WAREHOUSE_NOT_ALLOWED,
        )

    payload_hash = None
    if idempotency_key:
        payload_hash = hash_payload(
            {
                "item_id": item_id,
                "from": from_warehouse_id,
                "to": to_warehouse_id,
                "qty": qty,
                "note": note,
            }
        )

    pairs = [(item_id, from_warehouse_id), (item_id, to_warehouse_id)]

    async with ledger_transaction(db, pairs) as ledger:
        if idempotency_key:
            prior = await find_replay(
                db,
                scope=TRANSFER_SCOPE,
                key=idempotency_key,
                payload_hash=payload_hash,
            )
            if prior:
                replayed = await _load_legs(db, prior.transfer_id)
                if replayed is None:
                    raise AppException(
                        409,
                        "Original transfer is no longer available",
                        ErrorCode.STATE_CONFLICT,
                        {"transfer_id": prior.transfer_id},
                    )
                return replayed

        await load_item(db, item_id)
        await load_active_warehouse(db, from_warehouse_id, "Source warehouse")
        await load_active_warehouse(db, to_warehouse_id, "Destination warehouse")
        await ledger.lock_heads()

        available = await stock_of(db, item_id, from_warehouse_id)
        if available - qty < 0:
            raise AppException(
                409,
                "Insufficient stock at source warehouse",
                ErrorCode.STOCK_NEGATIVE_NOT_ALLOWED,
                {"available": available, "requested": qty},
            )

        transfer_id = str(uuid.uuid4())

        out_movement = await ledger.append(
            item_id=item_id,
            warehouse_id=from_warehouse_id,
            movement_type=MovementType.OUT,
            quantity=qty,
            note=note,
            transfer_id=transfer_id,
            actor=actor,
        )
        in_movement = await ledger.append(
            item_id=item_id,
            warehouse_id=to_warehouse_id,
            movement_type=MovementType.IN,
            quantity=qty,
            note=note,
            transfer_id=transfer_id,
            actor=actor,
        )

        if idempotency_key:
            remember(
                db,
                scope=TRANSFER_SCOPE,
                key=idempotency_key,
                payload_hash=payload_hash,
                actor=actor,
                transfer_id=transfer_id,
            )

        await emit_activity(
            db,
            actor=actor,
            code=ActivityCode.STOCK_TRANSFER,
            quantity=qty,
            item_id=item_id,
            from_warehouse_id=from_warehouse_id,
            to_warehouse_id=to_warehouse_id,
            transfer_id=transfer_id,
        )

    logger.info(
        "Stock transferred",
        extra={
            "transfer_id": transfer_id,
            "item_id": item_id,
            "from_warehouse_id": from_warehouse_id,
            "to_warehouse_id": to_warehouse_id,
            "quantity": qty,
        },
    )
    return _build_result(out_movement, in_movement)


async def create_transfer(
    db: AsyncSession,
    payload: TransferCreate,
    actor: Actor,
) -> TransferResult:
    return await transfer_stock(
        db,
        item_id=payload.item_id,
        from_warehouse_id=payload.from_warehouse_id,
        to_warehouse_id=payload.to_warehouse_id,
        qty=payload.qty,
        note=payload.note,
        actor=actor,
        idempotency_key=payload.idempotency_key,
    )


async def get_transfer(db: AsyncSession, transfer_id: str) -> TransferResult:
    result = await _load_legs(db, transfer_id)
    if result is None:
        raise AppException(
            404,
            "Transfer not found",
            ErrorCode.NOT_FOUND,
            {"transfer_id": transfer_id},
        )
    return result
