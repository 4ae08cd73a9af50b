import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

from app.core.exceptions import AppException, LedgerImmutabilityError
from app.core.ledger_locks import ledger_locks
from app.constants.error_codes import ErrorCode
from app.constants.movement_type import MovementType
from app.models.inventory.stock_movement_models import StockMovement
from app.services.inventory.ledger_transaction import ledger_transaction
from app.services.inventory.movement_service import record_in, record_out
from app.services.inventory.stock_calculator import stock_of

pytestmark = pytest.mark.anyio


async def test_movement_cannot_be_updated(db, admin, bolt, w1):
    created = await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=5, actor=admin)

    movement = await db.get(StockMovement, created.id)
    movement.quantity = 500

    with pytest.raises(LedgerImmutabilityError):
        await db.flush()
    await db.rollback()

    assert await stock_of(db, bolt.id, w1.id) == 5


async def test_movement_cannot_be_deleted(db, admin, bolt, w1):
    created = await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=5, actor=admin)

    movement = await db.get(StockMovement, created.id)
    await db.delete(movement)

    with pytest.raises(LedgerImmutabilityError):
        await db.flush()
    await db.rollback()

    assert await stock_of(db, bolt.id, w1.id) == 5


async def test_failure_inside_boundary_rolls_back_every_append(db, admin, bolt, w1, w2):
    pairs = [(bolt.id, w1.id), (bolt.id, w2.id)]

    with pytest.raises(RuntimeError):
        async with ledger_transaction(db, pairs) as ledger:
            await ledger.lock_heads()
            await ledger.append(
                item_id=bolt.id, warehouse_id=w1.id, movement_type=MovementType.IN, quantity=3, actor=admin
            )
            raise RuntimeError("boom")

    assert await db.scalar(select(func.count()).select_from(StockMovement)) == 0


async def test_append_requires_locked_head(db, admin, bolt, w1):
    with pytest.raises(RuntimeError):
        async with ledger_transaction(db, [(bolt.id, w1.id)]) as ledger:
            await ledger.append(
                item_id=bolt.id, warehouse_id=w1.id, movement_type=MovementType.IN, quantity=3, actor=admin
            )


async def test_constraint_violation_is_reported_as_conflict(db, admin, bolt, w1):
    with pytest.raises(AppException) as exc:
        async with ledger_transaction(db, [(bolt.id, w1.id)]) as ledger:
            await ledger.lock_heads()
            await ledger.append(
                item_id=bolt.id,
                warehouse_id=w1.id,
                movement_type=MovementType.ADJUST,
                quantity=0,
                target_quantity=None,  # violates the ADJUST check constraint
                actor=admin,
            )

    assert exc.value.status_code == 409
    assert exc.value.error_code == ErrorCode.CONFLICT
    assert await db.scalar(select(func.count()).select_from(StockMovement)) == 0


async def test_pair_locks_are_held_only_inside_the_boundary(db, admin, bolt, w1):
    pair = (bolt.id, w1.id)
    assert not ledger_locks.is_locked(pair)

    async with ledger_transaction(db, [pair]) as ledger:
        assert ledger_locks.is_locked(pair)
        await ledger.lock_heads()

    assert not ledger_locks.is_locked(pair)


async def test_store_failure_is_stock_unavailable(session_factory, db, admin, bolt, w1, monkeypatch):
    await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=10, actor=admin)

    execute = db.execute

    async def failing_execute(statement, *args, **kwargs):
        if "FROM stock_movements" in str(statement):
            raise OperationalError(str(statement), None, Exception("disk I/O error"))
        return await execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", failing_execute)

    with pytest.raises(AppException) as exc:
        await record_out(db, item_id=bolt.id, warehouse_id=w1.id, qty=4, actor=admin)

    assert exc.value.status_code == 503
    assert exc.value.error_code == ErrorCode.STOCK_UNAVAILABLE
    assert not ledger_locks.is_locked((bolt.id, w1.id))

    async with session_factory() as fresh:
        assert await fresh.scalar(select(func.count()).select_from(StockMovement)) == 1
        assert await stock_of(fresh, bolt.id, w1.id) == 10
