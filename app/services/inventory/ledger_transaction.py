from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppException
from app.core.ledger_locks import ledger_locks, PairKey
from app.constants.error_codes import ErrorCode
from app.constants.movement_type import MovementType
from app.models.inventory.ledger_head_models import StockLedgerHead
from app.models.inventory.stock_movement_models import StockMovement
from app.schemas.auth.actor_schemas import Actor
from app.utils.logger import get_logger
from app.utils.time_utils import utcnow, as_utc

logger = get_logger(__name__)


class LedgerWriter:
    """Appends movements for the pairs held by the enclosing ledger transaction."""

    def __init__(self, db: AsyncSession, pairs: list[PairKey]):
        self.db = db
        self.pairs = pairs
        self.heads: dict[PairKey, StockLedgerHead] = {}

    async def lock_heads(self) -> dict[PairKey, StockLedgerHead]:
        """Row-lock (or create) the ledger head of every held pair, in key order.

        Call only after item and warehouse existence has been checked, a new
        head row references both.
        """
        for item_id, warehouse_id in self.pairs:
            head = await self.db.scalar(
                select(StockLedgerHead)
                .where(
                    StockLedgerHead.item_id == item_id,
                    StockLedgerHead.warehouse_id == warehouse_id,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            )

            if head is None:
                head = StockLedgerHead(
                    item_id=item_id,
                    warehouse_id=warehouse_id,
                    movement_count=0,
                    last_movement_at=None,
                )
                self.db.add(head)
                await self.db.flush()

            self.heads[(item_id, warehouse_id)] = head

        return self.heads

    async def append(
        self,
        *,
        item_id: int,
        warehouse_id: int,
        movement_type: MovementType,
        quantity: int,
        actor: Actor,
        target_quantity: int | None = None,
        note: str | None = None,
        transfer_id: str | None = None,
    ) -> StockMovement:
        key = (item_id, warehouse_id)
        head = self.heads.get(key)
        if head is None:
            raise RuntimeError(f"Ledger head {key} is not locked by this transaction")

        # per-pair timestamps never run backwards, even across hosts with skewed clocks
        created_at = utcnow()
        last = as_utc(head.last_movement_at)
        if last is not None and last > created_at:
            created_at = last

        movement = StockMovement(
            item_id=item_id,
            warehouse_id=warehouse_id,
            movement_type=movement_type,
            quantity=quantity,
            target_quantity=target_quantity,
            note=note,
            transfer_id=transfer_id,
            created_by=actor.id,
            created_at=created_at,
        )
        self.db.add(movement)

        head.movement_count = (head.movement_count or 0) + 1
        head.last_movement_at = created_at

        await self.db.flush()
        return movement


@asynccontextmanager
async def ledger_transaction(
    db: AsyncSession,
    pairs: Iterable[PairKey],
) -> AsyncIterator[LedgerWriter]:
    """Serialize writers on ``pairs`` and run the body as one commit-or-rollback unit."""
    ordered = sorted(set(pairs))

    async with ledger_locks.hold(ordered):
        writer = LedgerWriter(db, ordered)
        try:
            yield writer
            await db.commit()

        except AppException:
            await db.rollback()
            raise

        except IntegrityError:
            await db.rollback()
            logger.warning("Ledger write rejected by constraint", extra={"pairs": ordered})
            raise AppException(
                409,
                "Concurrent ledger update detected",
                ErrorCode.CONFLICT,
            )

        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Ledger transaction failed", extra={"pairs": ordered})
            raise AppException(
                503,
                "Stock is temporarily unavailable",
                ErrorCode.STOCK_UNAVAILABLE,
            )

        except BaseException:
            # cancellation included: nothing from this unit may survive
            await db.rollback()
            raise
