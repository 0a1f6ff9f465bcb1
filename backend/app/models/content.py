"""
SQLAlchemy ORM Models — Content Items

Maps the content_items table. SQLAlchemy 2.x typed mapped classes for full
async support.

Column types are portable: JSON/String with PostgreSQL variants (JSONB)
so the same model runs on asyncpg in production and aiosqlite in tests.
Timestamps are assigned in Python so updated_at is refreshed on every
mutation regardless of dialect.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


_JSON = JSON().with_variant(JSONB(), "postgresql")


# ---------------------------------------------------------------------------
# Declarative base: shared across all models
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# ContentItemRecord: content_items
# ---------------------------------------------------------------------------

class ContentItemRecord(Base):
    """
    Tracks a single submission from upload → extraction → derived artifacts.

    State machine (status column):
        pending    — record created, pipeline not yet started
        processing — pipeline running extraction / derivation stages
        completed  — all gated stages attempted; fatal stages succeeded
        failed     — a fatal stage failed (see error_message)

    Exactly one of source_file_name / source_url is set, depending on
    content_type (video → url; document/image → file name).
    """

    __tablename__ = "content_items"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="content_items_status_check",
        ),
        CheckConstraint(
            "content_type IN ('document', 'image', 'video')",
            name="content_items_type_check",
        ),
        Index("idx_content_items_owner_created", "owner_id", "created_at"),
        Index("idx_content_items_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(String(16), nullable=False)

    source_file_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")

    extracted_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    audio_locator: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Artifact key: audio_<id>.mp3",
    )
    quiz_items: Mapped[Optional[list]] = mapped_column(_JSON, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Populated only when status='failed'",
    )

    processing_options: Mapped[dict] = mapped_column(_JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def __repr__(self) -> str:
        return (
            f"<ContentItemRecord id={self.id} owner={self.owner_id} "
            f"type={self.content_type} status={self.status}>"
        )
