"""Stock is never stored; it is replayed from the movement ledger.

Replay of one (item, warehouse) ledger, in (created_at, id) order:

* start at 0
* IN adds its quantity
* OUT subtracts its quantity
* ADJUST sets the running value to its ``target_quantity``

Stock of an item across warehouses is the sum of the per-warehouse replays;
ADJUST is absolute only within its own warehouse.
"""

from collections import defaultdict
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.movement_type import MovementType
from app.models.inventory.stock_movement_models import StockMovement
from app.utils.logger import get_logger
from app.utils.time_utils import as_utc

logger = get_logger(__name__)

# Plain columns: rows are read fresh from the database, never from the identity map.
_REPLAY_COLUMNS = (
    StockMovement.id,
    StockMovement.item_id,
    StockMovement.warehouse_id,
    StockMovement.movement_type,
    StockMovement.quantity,
    StockMovement.target_quantity,
    StockMovement.created_at,
)


def order_key(movement) -> tuple:
    return (as_utc(movement.created_at), movement.id)


def apply_movement(running: int, movement) -> int:
    kind = MovementType(movement.movement_type)

    if kind is MovementType.IN:
        return running + movement.quantity
    if kind is MovementType.OUT:
        return running - movement.quantity
    if movement.target_quantity is None:
        raise ValueError(f"ADJUST movement {movement.id} has no target quantity")
    return movement.target_quantity


def replay(movements: Iterable) -> int:
    """Fold one ledger into its current quantity. Input must be in creation order."""
    running = 0
    previous = None

    for movement in movements:
        key = order_key(movement)
        if previous is not None and key < previous:
            raise ValueError(
                f"Movement {movement.id} is out of creation order"
            )
        previous = key
        running = apply_movement(running, movement)

    return running


def _unavailable(exc: Exception, **context) -> AppException:
    logger.exception("Stock calculation failed", extra=context)
    return AppException(
        503,
        "Current stock could not be calculated",
        ErrorCode.STOCK_UNAVAILABLE,
    )


async def stock_of(db: AsyncSession, item_id: int, warehouse_id: int) -> int:
    try:
        rows = (
            await db.execute(
                select(*_REPLAY_COLUMNS)
                .where(
                    StockMovement.item_id == item_id,
                    StockMovement.warehouse_id == warehouse_id,
                )
                .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
            )
        ).all()
    except SQLAlchemyError as exc:
        raise _unavailable(exc, item_id=item_id, warehouse_id=warehouse_id)

    try:
        return replay(rows)
    except ValueError as exc:
        raise _unavailable(exc, item_id=item_id, warehouse_id=warehouse_id)


async def stock_by_warehouse(
    db: AsyncSession,
    item_ids: Iterable[int] | None = None,
    warehouse_ids: Iterable[int] | None = None,
) -> dict[int, dict[int, int]]:
    """Replay many ledgers in one read: ``{item_id: {warehouse_id: qty}}``.

    Pairs without movements are absent from the result.
    """
    stmt = select(*_REPLAY_COLUMNS)

    if item_ids is not None:
        item_ids = list(item_ids)
        if not item_ids:
            return {}
        stmt = stmt.where(StockMovement.item_id.in_(item_ids))

    if warehouse_ids is not None:
        warehouse_ids = list(warehouse_ids)
        if not warehouse_ids:
            return {}
        stmt = stmt.where(StockMovement.warehouse_id.in_(warehouse_ids))

    stmt = stmt.order_by(
        StockMovement.item_id,
        StockMovement.warehouse_id,
        StockMovement.created_at.asc(),
        StockMovement.id.asc(),
    )

    try:
        rows = (await db.execute(stmt)).all()
    except SQLAlchemyError as exc:
        raise _unavailable(exc)

    ledgers: dict[tuple[int, int], list] = defaultdict(list)
    for row in rows:
        ledgers[(row.item_id, row.warehouse_id)].append(row)

    result: dict[int, dict[int, int]] = defaultdict(dict)
    for (item_id, warehouse_id), ledger in ledgers.items():
        try:
            result[item_id][warehouse_id] = replay(ledger)
        except ValueError as exc:
            raise _unavailable(exc, item_id=item_id, warehouse_id=warehouse_id)

    return dict(result)


def total_stock(per_warehouse: dict[int, int] | None) -> int:
    return sum((per_warehouse or {}).values())
