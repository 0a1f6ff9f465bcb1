"""
Error taxonomy for the content pipeline.

  ContentPipelineError
  ├── InvalidInputError            submission rejected, item never created (400)
  │   └── PayloadTooLargeError     upload over the size ceiling (413)
  ├── ContentNotFoundError         unknown content id (404)
  ├── ExtractionError              fatal to the item
  │   ├── UnsupportedFormatError
  │   ├── EmptyExtractionError
  │   └── ExtractionNotImplementedError
  ├── GenerationError              fatal for summaries, tolerated for audio
  └── StoreError                   record / artifact persistence failure

Submission-time errors carry an HTTP status and a stable error code so the
API layer can render them without a lookup table. Pipeline-stage errors are
never sent to a client directly; only their message lands in the record.
"""

from __future__ import annotations

from fastapi import status


class ContentPipelineError(Exception):
    """Base class for every error raised by this application."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class InvalidInputError(ContentPipelineError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "INVALID_INPUT"


class PayloadTooLargeError(InvalidInputError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    error_code = "FILE_TOO_LARGE"


class ContentNotFoundError(ContentPipelineError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "CONTENT_NOT_FOUND"


class ExtractionError(ContentPipelineError):
    error_code = "EXTRACTION_FAILED"


class UnsupportedFormatError(ExtractionError):
    error_code = "UNSUPPORTED_FORMAT"


class EmptyExtractionError(ExtractionError):
    error_code = "EMPTY_EXTRACTION"


class ExtractionNotImplementedError(ExtractionError):
    error_code = "NOT_IMPLEMENTED"


class GenerationError(ContentPipelineError):
    error_code = "GENERATION_FAILED"


class StoreError(ContentPipelineError):
    error_code = "STORE_ERROR"
