from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func


class TimestampMixin:
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        onupdate=func.now()
    )


class AuditMixin:
    """Opaque actor ids from the authorization context; no user table here."""

    created_by = Column(String(64), nullable=True, index=True)
    updated_by = Column(String(64), nullable=True)


class VersionMixin:
    version = Column(Integer, nullable=False, default=1)
