"""
AdPulse — Database Models
The durable side of the repository: a key-value document table holding the
clients, campaigns and secrets collections, plus the activity log.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Text, DateTime, JSON, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from adpulse.database import Base


def _utcnow() -> datetime:
    """Naive UTC now — matches DB columns (TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _uuid_str() -> str:
    return str(uuid.uuid4())


# ══════════════════════════════════════════════════════════════════════
#  DOCUMENTS: one row per entity, keyed by (collection, key)
# ══════════════════════════════════════════════════════════════════════

class Document(Base):
    """
    A single entity of a named collection.
    clients are keyed by id, campaigns by campaign_id, secrets by type.
    """
    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    collection: Mapped[str] = mapped_column(String(64), nullable=False)
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("collection", "key", name="uq_documents_collection_key"),
        Index("ix_documents_collection", "collection"),
    )


# ══════════════════════════════════════════════════════════════════════
#  ACTIVITY LOG: admin actions (client changes, secrets, forced syncs)
# ══════════════════════════════════════════════════════════════════════

class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    resource: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="success")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("ix_activity_logs_created_at", "created_at"),
    )
