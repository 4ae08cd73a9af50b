from sqlalchemy import Column, Integer, DateTime, ForeignKey
from app.core.db import Base


class StockLedgerHead(Base):
    """One row per (item, warehouse) ledger. Writers lock it; it holds no stock figure."""

    __tablename__ = "stock_ledger_heads"

    item_id = Column(Integer, ForeignKey("inventory_items.id", ondelete="RESTRICT"), primary_key=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id", ondelete="RESTRICT"), primary_key=True)
    movement_count = Column(Integer, nullable=False, default=0)
    last_movement_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<StockLedgerHead item_id={self.item_id} warehouse_id={self.warehouse_id} count={self.movement_count}>"
