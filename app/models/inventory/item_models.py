from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint, Index
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, AuditMixin, VersionMixin


class InventoryItem(Base, TimestampMixin, AuditMixin, VersionMixin):
    __tablename__ = "inventory_items"

    id = Column(Integer, primary_key=True)
    name = Column(String(160), nullable=False, index=True)
    category = Column(String(120), nullable=True, index=True)
    unit = Column(String(32), nullable=True)
    min_stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("min_stock >= 0", name="ck_inventory_item_min_stock_non_negative"),
        Index("ix_inventory_item_active", "is_active"),
    )

    def __repr__(self):
        return f"<InventoryItem id={self.id} name={self.name} min_stock={self.min_stock}>"
