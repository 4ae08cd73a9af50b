from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.inventory.item_models import InventoryItem
from app.models.inventory.warehouse_models import Warehouse
from app.schemas.inventory.stock_schemas import (
    ItemStockOut,
    WarehouseStock,
    StockSummaryRow,
    StockSummaryData,
)
from app.services.inventory.item_service import apply_item_filters, get_item_or_404
from app.services.inventory.stock_calculator import stock_by_warehouse, total_stock
from app.services.inventory.warehouse_service import get_warehouse_or_404
from app.utils.logger import get_logger

logger = get_logger(__name__)


def scoped_stock(per_warehouse: dict[int, int] | None, warehouse_id: int | None) -> int:
    if warehouse_id is None:
        return total_stock(per_warehouse)
    return (per_warehouse or {}).get(warehouse_id, 0)


async def stock_summary(
    db: AsyncSession,
    *,
    q: str | None = None,
    category: str | None = None,
    active: bool | None = None,
    warehouse_id: int | None = None,
) -> StockSummaryData:
    """Current stock of every matching item, in one warehouse or across all of them."""
    if warehouse_id is not None:
        await get_warehouse_or_404(db, warehouse_id)

    items = (
        await db.execute(
            apply_item_filters(select(InventoryItem), q=q, category=category, active=active)
            .order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
            .execution_options(populate_existing=True)
        )
    ).scalars().all()

    stock = await stock_by_warehouse(
        db,
        item_ids=[i.id for i in items],
        warehouse_ids=[warehouse_id] if warehouse_id is not None else None,
    )

    return StockSummaryData(
        warehouse_id=warehouse_id,
        items=[
            StockSummaryRow(
                item_id=i.id,
                name=i.name,
                category=i.category,
                unit=i.unit,
                min_stock=i.min_stock,
                is_active=i.is_active,
                stock=scoped_stock(stock.get(i.id), warehouse_id),
            )
            for i in items
        ],
    )


async def item_stock(
    db: AsyncSession,
    item_id: int,
    warehouse_id: int | None = None,
) -> ItemStockOut:
    item = await get_item_or_404(db, item_id)
    if warehouse_id is not None:
        await get_warehouse_or_404(db, warehouse_id)

    per_warehouse = (await stock_by_warehouse(db, item_ids=[item_id])).get(item_id, {})

    codes = {}
    if per_warehouse:
        rows = await db.execute(
            select(Warehouse.id, Warehouse.code).where(Warehouse.id.in_(list(per_warehouse)))
        )
        codes = {row.id: row.code for row in rows}

    breakdown = [
        WarehouseStock(warehouse_id=wid, warehouse_code=codes.get(wid), stock=qty)
        for wid, qty in sorted(per_warehouse.items())
        if warehouse_id is None or wid == warehouse_id
    ]

    return ItemStockOut(
        item_id=item.id,
        name=item.name,
        min_stock=item.min_stock,
        warehouse_id=warehouse_id,
        stock=scoped_stock(per_warehouse, warehouse_id),
        warehouses=breakdown,
    )
