import pytest

from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.schemas.inventory.warehouse_schemas import WarehouseCreate, WarehouseUpdate
from app.services.inventory.warehouse_service import (
    create_warehouse,
    list_warehouses,
    get_warehouse,
    update_warehouse,
    deactivate_warehouse,
    reactivate_warehouse,
)

pytestmark = pytest.mark.anyio


async def test_code_is_trimmed_and_upper_cased(db, admin):
    created = await create_warehouse(db, WarehouseCreate(code="  north-1 ", name=" North "), admin)

    assert created.code == "NORTH-1"
    assert created.name == "North"
    assert created.is_active is True
    assert created.version == 1
    assert created.created_by == "admin-1"


async def test_duplicate_code_is_case_insensitive(db, admin, make_warehouse):
    await make_warehouse("MAIN")

    with pytest.raises(AppException) as exc:
        await create_warehouse(db, WarehouseCreate(code="main", name="Other"), admin)

    assert exc.value.status_code == 409
    assert exc.value.error_code == ErrorCode.DUPLICATE_CODE


async def test_update_cannot_introduce_colliding_code(db, admin, w1, w2):
    with pytest.raises(AppException) as exc:
        await update_warehouse(db, w2.id, WarehouseUpdate(code="w1", version=w2.version), admin)

    assert exc.value.error_code == ErrorCode.DUPLICATE_CODE


async def test_update_bumps_version_and_rejects_stale_writes(db, admin, w1):
    updated = await update_warehouse(
        db, w1.id, WarehouseUpdate(name="Dock A", description="East side", version=1), admin
    )
    assert updated.name == "Dock A"
    assert updated.description == "East side"
    assert updated.version == 2

    with pytest.raises(AppException) as exc:
        await update_warehouse(db, w1.id, WarehouseUpdate(name="Dock B", version=1), admin)
    assert exc.value.error_code == ErrorCode.VERSION_CONFLICT


async def test_update_without_changes_is_rejected(db, admin, w1):
    with pytest.raises(AppException) as exc:
        await update_warehouse(db, w1.id, WarehouseUpdate(name=w1.name, version=w1.version), admin)
    assert exc.value.error_code == ErrorCode.VALIDATION_ERROR


async def test_only_one_warehouse_is_primary(db, admin, make_warehouse):
    first = await make_warehouse("A1", is_primary=True)
    second = await make_warehouse("B1", is_primary=True)

    assert (await get_warehouse(db, first.id)).is_primary is False
    assert (await get_warehouse(db, second.id)).is_primary is True

    await update_warehouse(db, first.id, WarehouseUpdate(is_primary=True, version=first.version), admin)
    assert (await get_warehouse(db, first.id)).is_primary is True
    assert (await get_warehouse(db, second.id)).is_primary is False


async def test_deactivate_and_reactivate(db, admin, w1):
    off = await deactivate_warehouse(db, w1.id, admin)
    assert off.is_active is False

    with pytest.raises(AppException) as exc:
        await deactivate_warehouse(db, w1.id, admin)
    assert exc.value.error_code == ErrorCode.STATE_CONFLICT

    on = await reactivate_warehouse(db, w1.id, admin)
    assert on.is_active is True
    assert on.version == off.version + 1


async def test_missing_warehouse_is_not_found(db, admin):
    with pytest.raises(AppException) as exc:
        await get_warehouse(db, 404)
    assert exc.value.status_code == 404


async def test_list_filters_searches_and_sorts(db, admin, make_warehouse):
    await make_warehouse("ZED", "Zed Yard", description="overflow")
    await make_warehouse("ALPHA", "Alpha Dock")
    gone = await make_warehouse("MID", "Middle")
    await deactivate_warehouse(db, gone.id, admin)

    everything = await list_warehouses(db)
    assert [w.code for w in everything.items] == ["ALPHA", "MID", "ZED"]

    active = await list_warehouses(db, active=True, sort_by="code", sort_order="desc")
    assert [w.code for w in active.items] == ["ZED", "ALPHA"]

    searched = await list_warehouses(db, q="overflow")
    assert searched.total == 1
    assert searched.items[0].code == "ZED"
