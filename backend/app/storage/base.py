"""
Storage — Abstract Bases

Two persistence seams used by the pipeline and the API:

  ContentStore   durable record of a content item's lifecycle state
                 (create, point read, partial update, list-by-owner, delete)
  ArtifactStore  durable binary artifacts (synthesized audio) keyed by name

The rest of the application only speaks these protocols, so backends are
swappable without changing pipeline or API code.

Error contract (enforced by ALL implementations):
  - Persistence failures are raised as StoreError, never as driver errors.
  - Missing records are not errors: get/update return None, delete False.
  - ArtifactStore.read raises FileNotFoundError for an unknown key.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable

from app.schemas.content import ContentItem, NewContentItem, ProcessingStatus

# Fields the pipeline may change after creation; everything else is frozen.
MUTABLE_FIELDS: frozenset[str] = frozenset(
    {
        "status",
        "extracted_text",
        "summary",
        "audio_locator",
        "quiz_items",
        "error_message",
    }
)


# ---------------------------------------------------------------------------
# Content record store
# ---------------------------------------------------------------------------

class ContentStore(ABC):
    """Record store for ContentItem. Every mutation refreshes updated_at."""

    @abstractmethod
    async def create(self, item: NewContentItem) -> ContentItem:
        """Persist a new record with status=pending and a fresh id."""

    @abstractmethod
    async def get(self, content_id: str) -> ContentItem | None:
        """Point read by id."""

    @abstractmethod
    async def update(self, content_id: str, **changes: Any) -> ContentItem | None:
        """
        Partial update of MUTABLE_FIELDS. Returns the updated record, or None
        if the id does not exist. Unknown field names raise ValueError.
        """

    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> list[ContentItem]:
        """All records of an owner, most recent first."""

    @abstractmethod
    async def delete(self, content_id: str) -> bool:
        """Hard delete. Returns False if the id does not exist."""

    @abstractmethod
    async def list_stale(
        self,
        statuses: Iterable[ProcessingStatus],
        updated_before: datetime,
    ) -> list[ContentItem]:
        """Records in one of `statuses` not touched since `updated_before`."""


def check_mutable(changes: dict[str, Any]) -> None:
    unknown = set(changes) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")


# ---------------------------------------------------------------------------
# Artifact store
# ---------------------------------------------------------------------------

class ArtifactStore(ABC):
    """Binary artifacts addressed by a flat key such as audio_<id>.mp3."""

    @abstractmethod
    async def save(self, key: str, data: bytes, content_type: str) -> str:
        """Write `data` under `key`; returns the locator to store in the record."""

    @abstractmethod
    async def read(self, key: str) -> bytes:
        """Return the artifact bytes; FileNotFoundError if absent."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """True if an artifact is stored under `key`."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove the artifact; False if it was already absent."""


def audio_key(content_id: str, ext: str = "mp3") -> str:
    """Artifact key for a content item's narration."""
    return f"audio_{content_id}.{ext}"
