"""
Text Extraction Orchestrator
════════════════════════════

Selects the extractor for a content item and enforces the one rule every
backend shares: the result must contain non-whitespace text.

Dispatch:
  document  →  lower-cased file extension
                 .pdf   → PdfTextExtractor   (pypdf)
                 .docx  → DocxTextExtractor  (python-docx)
                 other  → UnsupportedFormatError
  image     →  ImageTextExtractor (vision model, see ocr.py)
  video     →  VideoTextExtractor (see video.py)

Parsers are synchronous libraries; they run in the default thread executor
so a large document never blocks the event loop.

This module is the only place that knows about the dispatch table.
The pipeline only sees ExtractionResult.
"""

from __future__ import annotations

import asyncio
import io
import logging
import mimetypes
import os
import time
from dataclasses import dataclass

from app.core.exceptions import (
    EmptyExtractionError,
    ExtractionError,
    UnsupportedFormatError,
)
from app.processing.base import (
    DocumentTextExtractor,
    ImageTextExtractor,
    VideoTextExtractor,
)
from app.schemas.content import ContentItem, ContentType

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME = "image/jpeg"


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExtractionResult:
    """
    text        : extracted text, guaranteed non-empty after strip()
    source      : "pdf" | "docx" | "image" | "video"
    elapsed_ms  : extraction wall time (ms)
    """
    text:       str
    source:     str
    elapsed_ms: float

    @property
    def total_chars(self) -> int:
        return len(self.text)


# ---------------------------------------------------------------------------
# Document parsers
# ---------------------------------------------------------------------------

class PdfTextExtractor(DocumentTextExtractor):
    """
    Reads the native PDF text layer with pypdf, pages joined by blank lines.
    Image-only pages contribute nothing; there is no OCR fallback.
    """

    @property
    def format_name(self) -> str:
        return "pdf"

    async def extract(self, data: bytes) -> str:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._extract_sync, data)
        except Exception as exc:
            raise ExtractionError(f"Failed to extract text from PDF: {exc}") from exc

    @staticmethod
    def _extract_sync(data: bytes) -> str:
        """Blocking extraction, run in thread executor."""
        from pypdf import PdfReader

        reader = PdfReader(io.BytesIO(data))
        pages = [(page.extract_text() or "") for page in reader.pages]
        logger.debug("pypdf | pages=%d", len(pages))
        return "\n\n".join(pages)


class DocxTextExtractor(DocumentTextExtractor):
    """Paragraph text of a .docx body, one paragraph per line."""

    @property
    def format_name(self) -> str:
        return "docx"

    async def extract(self, data: bytes) -> str:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._extract_sync, data)
        except Exception as exc:
            raise ExtractionError(f"Failed to extract text from DOCX: {exc}") from exc

    @staticmethod
    def _extract_sync(data: bytes) -> str:
        from docx import Document

        document = Document(io.BytesIO(data))
        return "\n".join(paragraph.text for paragraph in document.paragraphs)


def default_document_extractors() -> dict[str, DocumentTextExtractor]:
    """Extension → parser table for the supported document formats."""
    return {".pdf": PdfTextExtractor(), ".docx": DocxTextExtractor()}


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class TextExtractorOrchestrator:
    """
    Stateless dispatcher over the injected extraction backends.

    Usage:
        orchestrator = TextExtractorOrchestrator(documents, image, video)
        result = await orchestrator.extract(item, upload_bytes)
    """

    def __init__(
        self,
        documents: dict[str, DocumentTextExtractor],
        image:     ImageTextExtractor,
        video:     VideoTextExtractor,
    ) -> None:
        self._documents = {ext.lower(): extractor for ext, extractor in documents.items()}
        self._image     = image
        self._video     = video

    @property
    def supported_extensions(self) -> list[str]:
        return list(self._documents)

    async def extract(self, item: ContentItem, data: bytes | None) -> ExtractionResult:
        """
        Run the extractor matching item.content_type.

        Raises:
            UnsupportedFormatError : document extension has no parser
            EmptyExtractionError   : backend returned blank text
            ExtractionError        : any backend failure
        """
        t0 = time.monotonic()

        if item.content_type is ContentType.DOCUMENT:
            extractor = self._document_extractor(item.source_file_name or "")
            text      = await extractor.extract(self._require_upload(data))
            source    = extractor.format_name
        elif item.content_type is ContentType.IMAGE:
            mime_type = guess_image_mime(item.source_file_name or "")
            text      = await self._image.extract(self._require_upload(data), mime_type)
            source    = "image"
        else:
            text   = await self._video.extract(item.source_url or "")
            source = "video"

        if not text or not text.strip():
            raise EmptyExtractionError("No text could be extracted from the content")

        result = ExtractionResult(
            text=text,
            source=source,
            elapsed_ms=(time.monotonic() - t0) * 1000,
        )
        logger.info(
            "Extraction | content_id=%s source=%s total_chars=%d elapsed_ms=%.0f",
            item.id, result.source, result.total_chars, result.elapsed_ms,
        )
        return result

    def _document_extractor(self, file_name: str) -> DocumentTextExtractor:
        ext = os.path.splitext(file_name)[1].lower()
        extractor = self._documents.get(ext)
        if extractor is None:
            raise UnsupportedFormatError(
                f"Unsupported document format: {ext or '(none)'}. "
                f"Supported formats: {', '.join(self.supported_extensions)}"
            )
        return extractor

    @staticmethod
    def _require_upload(data: bytes | None) -> bytes:
        if data is None:
            raise ExtractionError("Failed to read upload: no file is available for this item")
        return data


def guess_image_mime(file_name: str) -> str:
    mime_type, _ = mimetypes.guess_type(file_name)
    if mime_type and mime_type.startswith("image/"):
        return mime_type
    return DEFAULT_IMAGE_MIME
