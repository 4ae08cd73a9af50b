from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from app.core.db import Base
from app.models.base.mixins import TimestampMixin


class LedgerIdempotencyKey(Base, TimestampMixin):
    __tablename__ = "ledger_idempotency_keys"

    id = Column(Integer, primary_key=True)
    scope = Column(String(32), nullable=False)
    key = Column(String(128), nullable=False)
    payload_hash = Column(String(64), nullable=False)
    movement_id = Column(Integer, ForeignKey("stock_movements.id", ondelete="RESTRICT"), nullable=True)
    transfer_id = Column(String(36), nullable=True)
    created_by = Column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint("scope", "key", name="uq_ledger_idempotency_scope_key"),
    )

    def __repr__(self):
        return f"<LedgerIdempotencyKey scope={self.scope} key={self.key}>"
