"""Warehouse retirement (purge).

A warehouse is hard-removed only after every movement it holds has been
reassigned to a surviving warehouse, in the same transaction that deletes it.
Reassigned movements keep their original ``created_at``, so the target's
ledger becomes the two histories interleaved by time.

Interleaving is exact for IN/OUT. An ADJUST is absolute, so a merged replay
can differ from the sum of the two separate replays when either side holds
ADJUST entries. Whenever that happens, a reconciling ADJUST is appended at the
target that sets the item to the pre-retirement total.
"""

from sqlalchemy import select, update, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import PRIMARY_WAREHOUSE_CODES
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.constants.movement_type import MovementType
from app.models.inventory.ledger_head_models import StockLedgerHead
from app.models.inventory.stock_movement_models import StockMovement
from app.models.inventory.warehouse_models import Warehouse
from app.schemas.auth.actor_schemas import Actor
from app.schemas.inventory.warehouse_schemas import WarehouseRetirementResult
from app.services.inventory.ledger_transaction import ledger_transaction
from app.services.inventory.movement_service import map_movement, require_id
from app.services.inventory.stock_calculator import stock_by_warehouse
from app.services.inventory.warehouse_service import get_warehouse_or_404, map_warehouse
from app.utils.activity_helpers import emit_activity
from app.utils.logger import get_logger
from app.utils.time_utils import as_utc

logger = get_logger(__name__)


# =====================================================
# TARGET RESOLUTION
# =====================================================
async def resolve_target(
    db: AsyncSession,
    removed: Warehouse,
    target_warehouse_id: int | None = None,
) -> Warehouse:
    """Pick the warehouse that absorbs the retired warehouse's ledger.

    1. the caller's explicit target (must exist, be active, and differ)
    2. an active primary warehouse (flag first, then configured codes)
    3. any other active warehouse by code, then name
    """
    if target_warehouse_id is not None:
        target = await db.get(Warehouse, target_warehouse_id, populate_existing=True)
        if not target:
            raise AppException(
                404,
                "Target warehouse not found",
                ErrorCode.NOT_FOUND,
                {"warehouse_id": target_warehouse_id},
            )
        if target.id == removed.id:
            raise AppException(
                400,
                "Target warehouse must differ from the warehouse being removed",
                ErrorCode.VALIDATION_ERROR,
            )
        if not target.is_active:
            raise AppException(
                400,
                "Target warehouse is inactive",
                ErrorCode.VALIDATION_ERROR,
                {"warehouse_id": target.id},
            )
        return target

    candidates = select(Warehouse).where(
        Warehouse.id != removed.id,
        Warehouse.is_active.is_(True),
    )

    primary = await db.scalar(
        candidates.where(
            or_(
                Warehouse.is_primary.is_(True),
                Warehouse.code.in_(PRIMARY_WAREHOUSE_CODES),
            )
        )
        .order_by(Warehouse.is_primary.desc(), Warehouse.code.asc(), Warehouse.name.asc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    if primary:
        return primary

    fallback = await db.scalar(
        candidates.order_by(Warehouse.code.asc(), Warehouse.name.asc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    if fallback:
        return fallback

    raise AppException(
        409,
        "No active warehouse is available to receive the movements",
        ErrorCode.NO_TARGET_WAREHOUSE,
        {"warehouse_id": removed.id},
    )


async def _affected_items(db: AsyncSession, warehouse_id: int) -> set[int]:
    moved = await db.scalars(
        select(StockMovement.item_id)
        .where(StockMovement.warehouse_id == warehouse_id)
        .distinct()
    )
    heads = await db.scalars(
        select(StockLedgerHead.item_id).where(StockLedgerHead.warehouse_id == warehouse_id)
    )
    return set(moved.all()) | set(heads.all())


async def _lock_warehouse(db: AsyncSession, warehouse_id: int) -> Warehouse | None:
    return await db.scalar(
        select(Warehouse)
        .where(Warehouse.id == warehouse_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def _changed_during_retirement() -> AppException:
    return AppException(
        409,
        "Warehouses changed during retirement, retry",
        ErrorCode.CONFLICT,
    )


# =====================================================
# PURGE
# =====================================================
async def purge_warehouse(
    db: AsyncSession,
    warehouse_id: int,
    *,
    actor: Actor,
    target_warehouse_id: int | None = None,
) -> WarehouseRetirementResult:
    warehouse_id = require_id(warehouse_id, "warehouseId")
    if target_warehouse_id is not None:
        target_warehouse_id = require_id(target_warehouse_id, "targetWarehouseId")

    removed = await get_warehouse_or_404(db, warehouse_id)
    target = await resolve_target(db, removed, target_warehouse_id)
    target_id = target.id

    item_ids = sorted(await _affected_items(db, warehouse_id))
    pairs = [(i, warehouse_id) for i in item_ids] + [(i, target_id) for i in item_ids]

    logger.info(
        "Retire warehouse",
        extra={"warehouse_id": warehouse_id, "target_id": target_id, "items": len(item_ids)},
    )

    async with ledger_transaction(db, pairs) as ledger:
        # heads before warehouse rows: writers lock in the same order
        await ledger.lock_heads()

        removed = await _lock_warehouse(db, warehouse_id)
        if removed is None:
            raise AppException(
                404,
                "Warehouse not found",
                ErrorCode.NOT_FOUND,
                {"warehouse_id": warehouse_id},
            )
        target = await _lock_warehouse(db, target_id)
        if target is None or not target.is_active:
            raise _changed_during_retirement()

        if await _affected_items(db, warehouse_id) - set(item_ids):
            raise _changed_during_retirement()

        before = await stock_by_warehouse(
            db,
            item_ids=item_ids,
            warehouse_ids=[warehouse_id, target_id],
        )
        expected = {i: sum(before.get(i, {}).values()) for i in item_ids}

        # the one sanctioned rewrite of ledger rows; bypasses the ORM immutability guard
        result = await db.execute(
            update(StockMovement)
            .where(StockMovement.warehouse_id == warehouse_id)
            .values(warehouse_id=target_id)
            .execution_options(synchronize_session=False)
        )
        moved = result.rowcount or 0

        for item_id in item_ids:
            old_head = ledger.heads[(item_id, warehouse_id)]
            new_head = ledger.heads[(item_id, target_id)]
            new_head.movement_count = (new_head.movement_count or 0) + (old_head.movement_count or 0)
            stamps = [
                s for s in (as_utc(old_head.last_movement_at), as_utc(new_head.last_movement_at))
                if s is not None
            ]
            new_head.last_movement_at = max(stamps) if stamps else None

        await db.execute(
            delete(StockLedgerHead).where(StockLedgerHead.warehouse_id == warehouse_id)
        )
        await db.execute(delete(Warehouse).where(Warehouse.id == warehouse_id))

        after = await stock_by_warehouse(db, item_ids=item_ids, warehouse_ids=[target_id])

        reconciliations = []
        for item_id in item_ids:
            merged = after.get(item_id, {}).get(target_id, 0)
            if merged == expected[item_id]:
                continue

            logger.warning(
                "Merged ledger diverged, appending reconciliation",
                extra={"item_id": item_id, "merged": merged, "expected": expected[item_id]},
            )
            movement = await ledger.append(
                item_id=item_id,
                warehouse_id=target_id,
                movement_type=MovementType.ADJUST,
                quantity=expected[item_id] - merged,
                target_quantity=expected[item_id],
                note=f"Reconciled after retiring warehouse {removed.code}",
                actor=actor,
            )
            reconciliations.append(movement)

            await emit_activity(
                db,
                actor=actor,
                code=ActivityCode.RETIREMENT_RECONCILIATION,
                item_id=item_id,
                warehouse_id=target_id,
                target=expected[item_id],
            )

        await emit_activity(
            db,
            actor=actor,
            code=ActivityCode.PURGE_WAREHOUSE,
            target_name=removed.code,
            target_warehouse=target.code,
            moved=moved,
        )

    logger.info(
        "Warehouse retired",
        extra={
            "warehouse_id": warehouse_id,
            "target_id": target_id,
            "moved": moved,
            "reconciled": len(reconciliations),
        },
    )

    return WarehouseRetirementResult(
        removed_warehouse_id=warehouse_id,
        removed_code=removed.code,
        target=map_warehouse(target),
        moved=moved,
        reconciliations=[map_movement(m) for m in reconciliations],
    )
