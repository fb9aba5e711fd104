"""
Durable document store — the eventually-consistent backup behind the repository.

Each collection is a keyed set of JSON documents; ``replace_collection`` makes
the stored set match the given one exactly (upsert present keys, drop the rest).
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adpulse.models import ActivityLog, Document

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    @abstractmethod
    async def fetch_collection(self, name: str) -> list[dict]:
        """Return every document of a collection."""

    @abstractmethod
    async def replace_collection(self, name: str, documents: dict[str, dict]) -> None:
        """Replace a collection with ``documents`` (key → document)."""

    @abstractmethod
    async def append_activity(self, entry: dict) -> None:
        """Append one activity log entry."""

    @abstractmethod
    async def recent_activity(self, limit: int = 50) -> list[dict]:
        """Most recent activity entries, newest first."""


class SqlDocumentStore(DocumentStore):
    """Document store on the SQLAlchemy async engine (Postgres in production)."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        if session_factory is None:
            from adpulse.database import async_session
            session_factory = async_session
        self._session_factory = session_factory

    async def fetch_collection(self, name: str) -> list[dict]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Document).where(Document.collection == name).order_by(Document.key)
            )
            return [row.data for row in result.scalars().all()]

    async def replace_collection(self, name: str, documents: dict[str, dict]) -> None:
        async with self._session_factory() as db:
            try:
                await self._replace(db, name, documents)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    @staticmethod
    async def _replace(db: AsyncSession, name: str, documents: dict[str, dict]) -> None:
        result = await db.execute(select(Document).where(Document.collection == name))
        existing = {row.key: row for row in result.scalars().all()}

        for key, data in documents.items():
            row = existing.get(key)
            if row is None:
                db.add(Document(collection=name, key=key, data=data))
            else:
                row.data = data

        stale = [key for key in existing if key not in documents]
        if stale:
            await db.execute(
                delete(Document).where(Document.collection == name, Document.key.in_(stale))
            )
        await db.flush()
        logger.info(f"Stored {len(documents)} '{name}' documents ({len(stale)} removed)")

    async def append_activity(self, entry: dict) -> None:
        async with self._session_factory() as db:
            db.add(ActivityLog(
                action=entry.get("action", ""),
                resource=entry.get("resource", ""),
                description=entry.get("description"),
                status=entry.get("status", "success"),
            ))
            await db.commit()

    async def recent_activity(self, limit: int = 50) -> list[dict]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(ActivityLog).order_by(ActivityLog.created_at.desc()).limit(limit)
            )
            return [
                {
                    "id": row.id,
                    "timestamp": row.created_at.isoformat() if row.created_at else None,
                    "action": row.action,
                    "resource": row.resource,
                    "description": row.description or "",
                    "status": row.status,
                }
                for row in result.scalars().all()
            ]
