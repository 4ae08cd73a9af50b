from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.movement_type import MovementType
from app.services.inventory import stock_calculator
from app.services.inventory.movement_service import record_in, record_out, record_adjust
from app.services.inventory.stock_calculator import replay, stock_of, stock_by_warehouse

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _mv(id, kind, quantity, target=None, minutes=0):
    return SimpleNamespace(
        id=id,
        movement_type=kind,
        quantity=quantity,
        target_quantity=target,
        created_at=T0 + timedelta(minutes=minutes),
    )


def test_replay_of_empty_ledger_is_zero():
    assert replay([]) == 0


def test_replay_applies_in_out_and_adjust():
    ledger = [
        _mv(1, MovementType.IN, 100, minutes=0),
        _mv(2, MovementType.OUT, 30, minutes=1),
        _mv(3, MovementType.ADJUST, -20, target=50, minutes=2),
        _mv(4, MovementType.IN, 5, minutes=3),
    ]
    assert replay(ledger) == 55


def test_adjust_sets_absolute_value_not_delta():
    ledger = [
        _mv(1, MovementType.IN, 10, minutes=0),
        # stored delta is stale on purpose; only the target counts
        _mv(2, MovementType.ADJUST, 999, target=4, minutes=1),
    ]
    assert replay(ledger) == 4


def test_equal_timestamps_are_ordered_by_id():
    ledger = [
        _mv(1, MovementType.IN, 10),
        _mv(2, MovementType.OUT, 10),
    ]
    assert replay(ledger) == 0

    with pytest.raises(ValueError):
        replay(list(reversed(ledger)))


def test_replay_rejects_out_of_order_input():
    ledger = [
        _mv(1, MovementType.IN, 10, minutes=5),
        _mv(2, MovementType.OUT, 3, minutes=1),
    ]
    with pytest.raises(ValueError):
        replay(ledger)


def test_naive_timestamps_are_treated_as_utc():
    aware = _mv(1, MovementType.IN, 10, minutes=0)
    naive = _mv(2, MovementType.IN, 5, minutes=1)
    naive.created_at = naive.created_at.replace(tzinfo=None)
    assert replay([aware, naive]) == 15


@pytest.mark.anyio
async def test_stock_of_pair_without_movements_is_zero(db, bolt, w1):
    assert await stock_of(db, bolt.id, w1.id) == 0


@pytest.mark.anyio
async def test_stock_by_warehouse_replays_each_pair(db, admin, bolt, w1, w2, make_item):
    nut = await make_item("Nut")

    await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=10, actor=admin)
    await record_in(db, item_id=bolt.id, warehouse_id=w2.id, qty=4, actor=admin)
    await record_adjust(db, item_id=bolt.id, warehouse_id=w2.id, target=7, actor=admin)
    await record_in(db, item_id=nut.id, warehouse_id=w1.id, qty=3, actor=admin)
    await record_out(db, item_id=nut.id, warehouse_id=w1.id, qty=1, actor=admin)

    stock = await stock_by_warehouse(db)
    assert stock == {
        bolt.id: {w1.id: 10, w2.id: 7},
        nut.id: {w1.id: 2},
    }

    scoped = await stock_by_warehouse(db, item_ids=[bolt.id], warehouse_ids=[w2.id])
    assert scoped == {bolt.id: {w2.id: 7}}

    assert await stock_by_warehouse(db, item_ids=[]) == {}


@pytest.mark.anyio
async def test_unreplayable_ledger_is_stock_unavailable(db, admin, bolt, w1, monkeypatch):
    await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=10, actor=admin)

    def broken(running, movement):
        raise ValueError(f"ADJUST movement {movement.id} has no target quantity")

    monkeypatch.setattr(stock_calculator, "apply_movement", broken)

    with pytest.raises(AppException) as exc:
        await stock_of(db, bolt.id, w1.id)
    assert exc.value.status_code == 503
    assert exc.value.error_code == ErrorCode.STOCK_UNAVAILABLE

    with pytest.raises(AppException) as exc:
        await stock_by_warehouse(db, item_ids=[bolt.id])
    assert exc.value.error_code == ErrorCode.STOCK_UNAVAILABLE
