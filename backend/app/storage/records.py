"""
SQLAlchemy Content Store

ContentStore implementation over an async_sessionmaker. Each operation runs
in its own short transaction, so the request path and background pipeline
runs never share a session.

Driver errors are wrapped as StoreError; callers decide whether that is
fatal (pipeline) or a 500 (API).
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import StoreError
from app.models.content import ContentItemRecord, utcnow
from app.schemas.content import ContentItem, NewContentItem, ProcessingStatus
from app.storage.base import ContentStore, check_mutable

logger = logging.getLogger(__name__)


def _to_column(name: str, value: Any) -> Any:
    """Convert schema values (enums, pydantic models) to column values."""
    if isinstance(value, ProcessingStatus):
        return value.value
    if name == "quiz_items" and value is not None:
        return [q.model_dump() if hasattr(q, "model_dump") else q for q in value]
    return value


class SqlAlchemyContentStore(ContentStore):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def create(self, item: NewContentItem) -> ContentItem:
        now = utcnow()
        record = ContentItemRecord(
            id=str(uuid.uuid4()),
            owner_id=item.owner_id,
            title=item.title,
            content_type=item.content_type.value,
            source_file_name=item.source_file_name,
            source_url=item.source_url,
            status=ProcessingStatus.PENDING.value,
            processing_options=item.processing_options.model_dump(),
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._sessions() as session, session.begin():
                session.add(record)
        except SQLAlchemyError as exc:
            logger.exception("Content create failed | owner=%s", item.owner_id)
            raise StoreError(f"Failed to create content item: {exc}") from exc

        logger.info(
            "Content created | id=%s owner=%s type=%s",
            record.id, record.owner_id, record.content_type,
        )
        return ContentItem.model_validate(record)

    async def get(self, content_id: str) -> ContentItem | None:
        try:
            async with self._sessions() as session:
                record = await session.get(ContentItemRecord, content_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read content item {content_id}: {exc}") from exc
        return ContentItem.model_validate(record) if record else None

    async def update(self, content_id: str, **changes: Any) -> ContentItem | None:
        check_mutable(changes)
        try:
            async with self._sessions() as session, session.begin():
                record = await session.get(ContentItemRecord, content_id)
                if record is None:
                    return None
                for name, value in changes.items():
                    setattr(record, name, _to_column(name, value))
                record.updated_at = utcnow()
        except SQLAlchemyError as exc:
            logger.exception("Content update failed | id=%s fields=%s", content_id, sorted(changes))
            raise StoreError(f"Failed to update content item {content_id}: {exc}") from exc

        logger.debug("Content updated | id=%s fields=%s", content_id, sorted(changes))
        return ContentItem.model_validate(record)

    async def list_by_owner(self, owner_id: str) -> list[ContentItem]:
        stmt = (
            select(ContentItemRecord)
            .where(ContentItemRecord.owner_id == owner_id)
            .order_by(ContentItemRecord.created_at.desc())
        )
        try:
            async with self._sessions() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to list content for owner {owner_id}: {exc}") from exc
        return [ContentItem.model_validate(r) for r in rows]

    async def delete(self, content_id: str) -> bool:
        try:
            async with self._sessions() as session, session.begin():
                result = await session.execute(
                    delete(ContentItemRecord).where(ContentItemRecord.id == content_id)
                )
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to delete content item {content_id}: {exc}") from exc
        return (result.rowcount or 0) > 0

    async def list_stale(
        self,
        statuses: Iterable[ProcessingStatus],
        updated_before: datetime,
    ) -> list[ContentItem]:
        stmt = select(ContentItemRecord).where(
            ContentItemRecord.status.in_([s.value for s in statuses]),
            ContentItemRecord.updated_at < updated_before,
        )
        try:
            async with self._sessions() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to scan for stale content: {exc}") from exc
        return [ContentItem.model_validate(r) for r in rows]
