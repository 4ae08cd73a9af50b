import pytest
from sqlalchemy import select, func

from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.models.inventory.stock_movement_models import StockMovement
from app.services.inventory.idempotency_service import hash_payload
from app.services.inventory.movement_service import record_in, record_out
from app.services.inventory.stock_calculator import stock_of
from app.services.inventory.transfer_service import transfer_stock

pytestmark = pytest.mark.anyio


async def _movements(db):
    return await db.scalar(select(func.count()).select_from(StockMovement))


def test_payload_hash_ignores_key_order():
    assert hash_payload({"a": 1, "b": 2}) == hash_payload({"b": 2, "a": 1})
    assert hash_payload({"a": 1}) != hash_payload({"a": 2})


async def test_retried_out_is_applied_once(db, admin, bolt, w1):
    await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=10, actor=admin)

    first = await record_out(db, item_id=bolt.id, warehouse_id=w1.id, qty=4, actor=admin, idempotency_key="req-1")
    again = await record_out(db, item_id=bolt.id, warehouse_id=w1.id, qty=4, actor=admin, idempotency_key="req-1")

    assert again.id == first.id
    assert await stock_of(db, bolt.id, w1.id) == 6
    assert await _movements(db) == 2


async def test_key_reuse_with_other_payload_is_rejected(db, admin, bolt, w1):
    await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=10, actor=admin, idempotency_key="req-2")

    with pytest.raises(AppException) as exc:
        await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=11, actor=admin, idempotency_key="req-2")

    assert exc.value.status_code == 409
    assert exc.value.error_code == ErrorCode.IDEMPOTENCY_KEY_REUSED
    assert await stock_of(db, bolt.id, w1.id) == 10


async def test_rejected_write_does_not_consume_key(db, admin, bolt, w1):
    with pytest.raises(AppException):
        await record_out(db, item_id=bolt.id, warehouse_id=w1.id, qty=5, actor=admin, idempotency_key="req-3")

    await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=5, actor=admin)
    done = await record_out(db, item_id=bolt.id, warehouse_id=w1.id, qty=5, actor=admin, idempotency_key="req-3")
    assert done.quantity == 5
    assert await stock_of(db, bolt.id, w1.id) == 0


async def test_retried_transfer_is_applied_once(db, admin, bolt, w1, w2):
    await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=10, actor=admin)

    args = dict(item_id=bolt.id, from_warehouse_id=w1.id, to_warehouse_id=w2.id, qty=6, actor=admin)
    first = await transfer_stock(db, idempotency_key="xfer-1", **args)
    again = await transfer_stock(db, idempotency_key="xfer-1", **args)

    assert again.transfer_id == first.transfer_id
    assert again.out_movement.id == first.out_movement.id
    assert await stock_of(db, bolt.id, w1.id) == 4
    assert await stock_of(db, bolt.id, w2.id) == 6
    assert await _movements(db) == 3
