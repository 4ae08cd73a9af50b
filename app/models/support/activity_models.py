from sqlalchemy import Column, Integer, String, Index
from app.core.db import Base
from app.models.base.mixins import TimestampMixin


class ActivityLog(Base, TimestampMixin):
    """Immutable audit log. APPEND-ONLY. Never updated, never deleted."""

    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True)
    actor_id = Column(String(64), nullable=False, index=True)
    actor_role = Column(String(50), nullable=False)
    code = Column(String(64), nullable=False, index=True)
    message = Column(String, nullable=False)

    __table_args__ = (Index("ix_activity_log_actor_created", "actor_id", "created_at"),)

    def __repr__(self):
        return f"<ActivityLog id={self.id} actor={self.actor_id} code={self.code}>"
