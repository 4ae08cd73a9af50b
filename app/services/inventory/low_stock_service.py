from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.inventory.item_models import InventoryItem
from app.schemas.inventory.stock_schemas import LowStockRow, LowStockData
from app.services.inventory.item_service import apply_item_filters
from app.services.inventory.stock_calculator import stock_by_warehouse
from app.services.inventory.stock_query_service import scoped_stock
from app.services.inventory.warehouse_service import get_warehouse_or_404
from app.utils.logger import get_logger

logger = get_logger(__name__)


async def low_stock_alerts(
    db: AsyncSession,
    *,
    q: str | None = None,
    category: str | None = None,
    warehouse_id: int | None = None,
) -> LowStockData:
    """Active items whose stock is at or below ``min_stock``.

    Advisory only: no locks are taken, so the figures may already be stale.
    Ordered by stock, then name.
    """
    if warehouse_id is not None:
        await get_warehouse_or_404(db, warehouse_id)

    items = (
        await db.execute(
            apply_item_filters(select(InventoryItem), q=q, category=category, active=True)
            .execution_options(populate_existing=True)
        )
    ).scalars().all()

    stock = await stock_by_warehouse(
        db,
        item_ids=[i.id for i in items],
        warehouse_ids=[warehouse_id] if warehouse_id is not None else None,
    )

    rows = []
    for item in items:
        qty = scoped_stock(stock.get(item.id), warehouse_id)
        if qty <= item.min_stock:
            rows.append(
                LowStockRow(
                    item_id=item.id,
                    name=item.name,
                    category=item.category,
                    unit=item.unit,
                    min_stock=item.min_stock,
                    stock=qty,
                    shortfall=item.min_stock - qty,
                )
            )

    rows.sort(key=lambda r: (r.stock, r.name, r.item_id))

    logger.info(
        "Low-stock scan",
        extra={"warehouse_id": warehouse_id, "scanned": len(items), "alerts": len(rows)},
    )
    return LowStockData(warehouse_id=warehouse_id, total=len(rows), items=rows)
