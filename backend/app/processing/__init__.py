"""
Content Extraction Package
══════════════════════════

Turns an uploaded file or a video URL into plain text, the input of every
later pipeline stage.

Modules
───────
  base.py       Abstract extractor contracts per source kind
  extractor.py  PDF / DOCX parsers and the orchestrator that dispatches on type
  ocr.py        Vision-model image transcription
  video.py      Video transcript backend (currently unavailable)

Design principles
─────────────────
  • Every component is stateless and dependency-injected.
  • Blocking parsers run in the thread executor, never on the event loop.
  • Blank output is an error, whichever backend produced it.
"""

from app.processing.extractor import (
    ExtractionResult,
    TextExtractorOrchestrator,
    default_document_extractors,
)
from app.processing.ocr import VisionImageExtractor
from app.processing.video import UnavailableVideoExtractor

__all__ = [
    "ExtractionResult",
    "TextExtractorOrchestrator",
    "default_document_extractors",
    "VisionImageExtractor",
    "UnavailableVideoExtractor",
]
