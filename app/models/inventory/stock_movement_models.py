from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Enum,
    ForeignKey,
    CheckConstraint,
    Index,
    event,
)
from sqlalchemy.sql import func

from app.core.db import Base
from app.core.exceptions import LedgerImmutabilityError
from app.constants.movement_type import MovementType


class StockMovement(Base):
    """Ledger entry. APPEND-ONLY: replayed in (created_at, id) order per item and warehouse."""

    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey("inventory_items.id", ondelete="RESTRICT"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False, index=True)
    movement_type = Column(Enum(MovementType, name="stock_movement_type"), nullable=False, index=True)
    # IN/OUT: positive quantity. ADJUST: signed delta against the stock seen at write time.
    quantity = Column(Integer, nullable=False)
    # ADJUST only: the absolute value the running stock is set to.
    target_quantity = Column(Integer, nullable=True)
    note = Column(String(500), nullable=True)
    transfer_id = Column(String(36), nullable=True, index=True)
    created_by = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "movement_type = 'ADJUST' OR quantity > 0",
            name="ck_stock_movement_in_out_positive",
        ),
        CheckConstraint(
            "(movement_type = 'ADJUST' AND target_quantity IS NOT NULL AND target_quantity >= 0) "
            "OR (movement_type <> 'ADJUST' AND target_quantity IS NULL)",
            name="ck_stock_movement_adjust_target",
        ),
        Index("ix_stock_movement_pair_order", "item_id", "warehouse_id", "created_at", "id"),
    )

    def __repr__(self):
        return (
            f"<StockMovement id={self.id} item_id={self.item_id} warehouse_id={self.warehouse_id} "
            f"{self.movement_type} qty={self.quantity} to={self.target_quantity}>"
        )


# Flushing a change to a persisted movement is refused. Warehouse retirement
# reassigns rows with a bulk UPDATE statement, which does not pass through here.
@event.listens_for(StockMovement, "before_update")
def _refuse_movement_update(mapper, connection, target):
    raise LedgerImmutabilityError(f"Stock movement {target.id} is immutable")


@event.listens_for(StockMovement, "before_delete")
def _refuse_movement_delete(mapper, connection, target):
    raise LedgerImmutabilityError(f"Stock movement {target.id} cannot be deleted")
