from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.utils.check_roles import require_role, READ_ROLES
from app.utils.response import success_response, APIResponse
from app.services.inventory.stock_query_service import stock_summary
from app.services.inventory.low_stock_service import low_stock_alerts
from app.schemas.inventory.stock_schemas import StockSummaryData, LowStockData

router = APIRouter(
    prefix="/inventory",
    tags=["Inventory Stock"],
)


@router.get("/stock", response_model=APIResponse[StockSummaryData])
async def stock_summary_api(
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(READ_ROLES)),
    q: str | None = Query(None),
    category: str | None = Query(None),
    active: bool | None = Query(None),
    warehouse_id: int | None = Query(None, ge=1),
):
    data = await stock_summary(
        db,
        q=q,
        category=category,
        active=active,
        warehouse_id=warehouse_id,
    )
    return success_response("Stock summary fetched successfully", data)


@router.get("/alerts/low-stock", response_model=APIResponse[LowStockData])
async def low_stock_alerts_api(
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(READ_ROLES)),
    q: str | None = Query(None),
    category: str | None = Query(None),
    warehouse_id: int | None = Query(None, ge=1),
):
    data = await low_stock_alerts(
        db,
        q=q,
        category=category,
        warehouse_id=warehouse_id,
    )
    return success_response("Low-stock alerts fetched successfully", data)
