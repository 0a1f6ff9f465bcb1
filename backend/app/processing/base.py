"""
Extraction Backends — Abstract Bases

Every source kind has one narrow async contract. Implementations:
  - Receive raw bytes or a URL (never a client-supplied path)
  - Return the extracted text, possibly empty; emptiness is judged by the
    orchestrator, not the backend
  - Wrap their own failures as ExtractionError("Failed to <action>: <cause>")
  - Are safe for concurrent use (no shared mutable state)
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class DocumentTextExtractor(ABC):
    """Text layer of an uploaded document file (PDF, DOCX)."""

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Short name used in logs and ExtractionResult.source."""

    @abstractmethod
    async def extract(self, data: bytes) -> str:
        ...


class ImageTextExtractor(ABC):
    """Visible text and an accessibility description of an image."""

    @abstractmethod
    async def extract(self, image_bytes: bytes, mime_type: str) -> str:
        ...


class VideoTextExtractor(ABC):
    """Transcript of a video referenced by URL."""

    @abstractmethod
    async def extract(self, url: str) -> str:
        ...
