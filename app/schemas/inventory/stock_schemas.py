from pydantic import BaseModel
from typing import Optional, List


class WarehouseStock(BaseModel):
    warehouse_id: int
    warehouse_code: Optional[str]
    stock: int


class ItemStockOut(BaseModel):
    item_id: int
    name: str
    min_stock: int
    warehouse_id: Optional[int]
    stock: int
    warehouses: List[WarehouseStock]


class StockSummaryRow(BaseModel):
    item_id: int
    name: str
    category: Optional[str]
    unit: Optional[str]
    min_stock: int
    is_active: bool
    stock: int


class StockSummaryData(BaseModel):
    warehouse_id: Optional[int]
    items: List[StockSummaryRow]


class LowStockRow(BaseModel):
    item_id: int
    name: str
    category: Optional[str]
    unit: Optional[str]
    min_stock: int
    stock: int
    shortfall: int


class LowStockData(BaseModel):
    warehouse_id: Optional[int]
    total: int
    items: List[LowStockRow]
