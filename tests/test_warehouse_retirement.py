import pytest
from sqlalchemy import select

from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.movement_type import MovementType
from app.models.inventory.ledger_head_models import StockLedgerHead
from app.models.inventory.stock_movement_models import StockMovement
from app.models.inventory.warehouse_models import Warehouse
from app.services.inventory.movement_service import record_in, record_out, record_adjust
from app.services.inventory.stock_calculator import stock_of, stock_by_warehouse
from app.services.inventory.transfer_service import transfer_stock
from app.services.inventory import warehouse_retirement_service as retirement
from app.services.inventory.warehouse_retirement_service import purge_warehouse
from app.services.inventory.warehouse_service import deactivate_warehouse

pytestmark = pytest.mark.anyio


async def test_purge_into_explicit_target_preserves_total(db, admin, bolt, w1, w2):
    await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=100, actor=admin)
    await record_out(db, item_id=bolt.id, warehouse_id=w1.id, qty=30, actor=admin)
    await record_adjust(db, item_id=bolt.id, warehouse_id=w1.id, target=50, actor=admin)
    await transfer_stock(db, item_id=bolt.id, from_warehouse_id=w1.id, to_warehouse_id=w2.id, qty=20, actor=admin)

    result = await purge_warehouse(db, w2.id, target_warehouse_id=w1.id, actor=admin)

    assert result.target.id == w1.id
    assert result.removed_code == "W2"
    assert result.moved == 1
    assert await stock_of(db, bolt.id, w1.id) == 50
    assert await db.scalar(select(Warehouse.id).where(Warehouse.id == w2.id)) is None

    remaining = await db.scalars(select(StockMovement.warehouse_id).distinct())
    assert remaining.all() == [w1.id]


async def test_purge_keeps_original_timestamps(db, admin, bolt, w1, w2):
    moved = await record_in(db, item_id=bolt.id, warehouse_id=w2.id, qty=4, actor=admin)

    await purge_warehouse(db, w2.id, target_warehouse_id=w1.id, actor=admin)

    row = (
        await db.execute(
            select(StockMovement.warehouse_id, StockMovement.created_at).where(StockMovement.id == moved.id)
        )
    ).one()
    assert row.warehouse_id == w1.id
    assert row.created_at.replace(tzinfo=None) == moved.created_at.replace(tzinfo=None)


async def test_conservation_for_every_item(db, admin, make_item, w1, w2):
    bolt = await make_item("Bolt")
    nut = await make_item("Nut")
    washer = await make_item("Washer")

    await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=9, actor=admin)
    await record_in(db, item_id=bolt.id, warehouse_id=w2.id, qty=4, actor=admin)
    await record_out(db, item_id=bolt.id, warehouse_id=w2.id, qty=1, actor=admin)
    await record_in(db, item_id=nut.id, warehouse_id=w2.id, qty=7, actor=admin)
    await record_in(db, item_id=washer.id, warehouse_id=w1.id, qty=2, actor=admin)

    before = await stock_by_warehouse(db)
    expected = {item: sum(per.values()) for item, per in before.items()}

    result = await purge_warehouse(db, w2.id, target_warehouse_id=w1.id, actor=admin)

    assert result.reconciliations == []
    after = await stock_by_warehouse(db)
    assert {item: per[w1.id] for item, per in after.items()} == expected
    assert all(list(per) == [w1.id] for per in after.values())


async def test_interleaved_adjusts_are_reconciled(db, admin, bolt, w1, w2):
    await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=10, actor=admin)
    await record_in(db, item_id=bolt.id, warehouse_id=w2.id, qty=5, actor=admin)
    await record_adjust(db, item_id=bolt.id, warehouse_id=w1.id, target=3, actor=admin)

    # separately: W1 = 3, W2 = 5; merged naively the later ADJUST would win with 3
    result = await purge_warehouse(db, w2.id, target_warehouse_id=w1.id, actor=admin)

    assert await stock_of(db, bolt.id, w1.id) == 8
    assert len(result.reconciliations) == 1
    fix = result.reconciliations[0]
    assert fix.movement_type == MovementType.ADJUST
    assert fix.warehouse_id == w1.id
    assert fix.target_quantity == 8
    assert fix.quantity == 5


async def test_ledger_heads_are_merged(db, admin, bolt, w1, w2):
    await record_in(db, item_id=bolt.id, warehouse_id=w1.id, qty=1, actor=admin)
    await record_in(db, item_id=bolt.id, warehouse_id=w2.id, qty=1, actor=admin)
    await record_in(db, item_id=bolt.id, warehouse_id=w2.id, qty=1, actor=admin)

    await purge_warehouse(db, w2.id, target_warehouse_id=w1.id, actor=admin)

    heads = (
        await db.execute(
            select(StockLedgerHead.warehouse_id, StockLedgerHead.movement_count)
            .where(StockLedgerHead.item_id == bolt.id)
        )
    ).all()
    assert [(h.warehouse_id, h.movement_count) for h in heads] == [(w1.id, 3)]

    # the merged ledger accepts new writes
    await record_out(db, item_id=bolt.id, warehouse_id=w1.id, qty=3, actor=admin)
    assert await stock_of(db, bolt.id, w1.id) == 0


async def test_default_target_prefers_primary_code(db, admin, make_warehouse):
    await make_warehouse("AAA")
    principal = await make_warehouse("PRINCIPAL")
    doomed = await make_warehouse("OLD")

    result = await purge_warehouse(db, doomed.id, actor=admin)
    assert result.target.id == principal.id


async def test_default_target_prefers_primary_flag_over_code(db, admin, make_warehouse):
    await make_warehouse("PRINCIPAL")
    flagged = await make_warehouse("ZZZ", is_primary=True)
    doomed = await make_warehouse("OLD")

    result = await purge_warehouse(db, doomed.id, actor=admin)
    assert result.target.id == flagged.id


async def test_default_target_falls_back_to_code_order(db, admin, make_warehouse):
    await make_warehouse("CCC")
    first = await make_warehouse("BBB")
    inactive = await make_warehouse("AAA")
    await deactivate_warehouse(db, inactive.id, admin)
    doomed = await make_warehouse("OLD")

    result = await purge_warehouse(db, doomed.id, actor=admin)
    assert result.target.id == first.id


async def test_no_target_available(db, admin, w1):
    with pytest.raises(AppException) as exc:
        await purge_warehouse(db, w1.id, actor=admin)

    assert exc.value.status_code == 409
    assert exc.value.error_code == ErrorCode.NO_TARGET_WAREHOUSE
    assert await db.scalar(select(Warehouse.id).where(Warehouse.id == w1.id)) == w1.id


async def test_explicit_target_validation(db, admin, w1, w2):
    with pytest.raises(AppException) as exc:
        await purge_warehouse(db, w1.id, target_warehouse_id=9999, actor=admin)
    assert exc.value.status_code == 404

    with pytest.raises(AppException) as exc:
        await purge_warehouse(db, w1.id, target_warehouse_id=w1.id, actor=admin)
    assert exc.value.error_code == ErrorCode.VALIDATION_ERROR

    await deactivate_warehouse(db, w2.id, admin)
    with pytest.raises(AppException) as exc:
        await purge_warehouse(db, w1.id, target_warehouse_id=w2.id, actor=admin)
    assert exc.value.error_code == ErrorCode.VALIDATION_ERROR


async def test_unknown_warehouse_is_not_found(db, admin, w1):
    with pytest.raises(AppException) as exc:
        await purge_warehouse(db, 9999, actor=admin)
    assert exc.value.status_code == 404


async def test_first_write_during_retirement_aborts_it(session_factory, db, admin, make_item, w1, w2, monkeypatch):
    bolt = await make_item("Bolt")
    nut = await make_item("Nut")
    await record_in(db, item_id=bolt.id, warehouse_id=w2.id, qty=4, actor=admin)

    affected = retirement._affected_items
    scans = []

    async def scan_then_receive(session, warehouse_id):
        found = await affected(session, warehouse_id)
        scans.append(found)
        if len(scans) == 1:
            # a new pair at the retiring warehouse appears after the first scan
            async with session_factory() as other:
                await record_in(other, item_id=nut.id, warehouse_id=w2.id, qty=7, actor=admin)
        return found

    monkeypatch.setattr(retirement, "_affected_items", scan_then_receive)

    with pytest.raises(AppException) as exc:
        await purge_warehouse(db, w2.id, target_warehouse_id=w1.id, actor=admin)

    assert exc.value.status_code == 409
    assert exc.value.error_code == ErrorCode.CONFLICT
    assert scans[0] == {bolt.id}
    assert scans[1] == {bolt.id, nut.id}

    assert await db.scalar(select(Warehouse.id).where(Warehouse.id == w2.id)) == w2.id
    assert await stock_of(db, nut.id, w2.id) == 7
    assert await stock_of(db, bolt.id, w2.id) == 4
    assert await stock_of(db, bolt.id, w1.id) == 0
