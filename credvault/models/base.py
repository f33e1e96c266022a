"""Common model mixins."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """created_at / updated_at columns maintained by the ORM."""

    created_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
        comment="Row creation time"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
        comment="Last update time"
    )


class TenantScopedMixin:
    """tenant_id column; every query must filter on it."""

    tenant_id = Column(
        String(255),
        nullable=False,
        index=True,
        comment="Owning tenant"
    )
