from sqlalchemy import Column, Integer, String, Boolean, Index
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, AuditMixin, VersionMixin


class Warehouse(Base, TimestampMixin, AuditMixin, VersionMixin):
    __tablename__ = "warehouses"

    id = Column(Integer, primary_key=True)
    code = Column(String(32), nullable=False, unique=True, index=True)  # stored upper-cased
    name = Column(String(120), nullable=False, index=True)
    description = Column(String(240), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_primary = Column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("ix_warehouse_active", "is_active"),)

    def __repr__(self):
        return f"<Warehouse id={self.id} code={self.code} active={self.is_active} primary={self.is_primary}>"
