"""
Content Items — Pydantic Request/Response Schemas

Covers the full lifecycle of a submitted learning item:
  - Processing options snapshot (frozen at submission)
  - Quiz item shape produced by the quiz stage
  - The ContentItem record returned by every read endpoint
  - All structured error bodies (400, 404, 413, 500)

Design decisions:
  - id is always server-generated (UUID4); never client-supplied.
  - Wire format is camelCase (matches the web client); Python code uses
    snake_case attributes. populate_by_name lets either spelling in.
  - status is the async pipeline state, separate from HTTP status.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ContentType(str, Enum):
    DOCUMENT = "document"
    IMAGE    = "image"
    VIDEO    = "video"


class ProcessingStatus(str, Enum):
    """
    Maps to content_items.status.
    Transitions: pending → processing → completed | failed
    """
    PENDING    = "pending"      # record created, pipeline not yet started
    PROCESSING = "processing"   # pipeline actively running stages
    COMPLETED  = "completed"    # all gated stages attempted, fatal ones succeeded
    FAILED     = "failed"       # a fatal stage failed (see error_message)

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


# ---------------------------------------------------------------------------
# Processing options: immutable snapshot taken at submission time
# ---------------------------------------------------------------------------

class ProcessingOptions(CamelModel):
    """
    Governs which derivation stages run. Unknown fields are ignored; known
    fields are strict, so "no", "0" or 1 are rejected instead of coerced.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    generate_audio:   StrictBool       = True
    generate_summary: StrictBool       = True
    generate_quiz:    StrictBool       = False
    voice_id:         StrictStr | None = None


# ---------------------------------------------------------------------------
# Quiz
# ---------------------------------------------------------------------------

class QuizItem(CamelModel):
    """One multiple-choice question; correct_option_index is 0-based."""
    question_text:        str       = Field(..., min_length=1)
    option_texts:         list[str] = Field(..., min_length=2)
    correct_option_index: int

    @model_validator(mode="after")
    def _index_in_bounds(self) -> "QuizItem":
        if not 0 <= self.correct_option_index < len(self.option_texts):
            raise ValueError(
                f"correct_option_index {self.correct_option_index} is outside "
                f"0..{len(self.option_texts) - 1}"
            )
        return self


# ---------------------------------------------------------------------------
# Content item record
# ---------------------------------------------------------------------------

class NewContentItem(BaseModel):
    """Everything the submission handler knows when it creates a record."""
    owner_id:           str
    title:              str = Field(..., min_length=1)
    content_type:       ContentType
    source_file_name:   str | None = None
    source_url:         str | None = None
    processing_options: ProcessingOptions

    @model_validator(mode="after")
    def _one_source(self) -> "NewContentItem":
        if self.content_type is ContentType.VIDEO:
            if not self.source_url or self.source_file_name:
                raise ValueError("video content requires source_url and no source_file_name")
        elif not self.source_file_name or self.source_url:
            raise ValueError(
                f"{self.content_type.value} content requires source_file_name and no source_url"
            )
        return self


class ContentItem(CamelModel):
    """The persisted record of a content item and its processing outcome."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id:                 str
    owner_id:           str
    title:              str
    content_type:       ContentType
    source_file_name:   str | None = None
    source_url:         str | None = None
    status:             ProcessingStatus = ProcessingStatus.PENDING
    extracted_text:     str | None = None
    summary:            str | None = None
    audio_locator:      str | None = None
    quiz_items:         list[QuizItem] | None = None
    error_message:      str | None = None
    processing_options: ProcessingOptions
    created_at:         datetime
    updated_at:         datetime


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class VideoSubmissionRequest(CamelModel):
    """JSON body of POST /content/video. URL syntax is checked by the service."""
    title:              str | None = None
    url:                str | None = None
    processing_options: dict | str | None = None


class DeleteResponse(BaseModel):
    message: str = "Content deleted successfully"


# ---------------------------------------------------------------------------
# Structured error bodies
# ---------------------------------------------------------------------------

class ErrorDetail(CamelModel):
    """Single structured error; may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str        = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(CamelModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `errorCode` for programmatic handling.
    """
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")


class ContentErrors:
    """Factories for every documented error case."""

    @staticmethod
    def from_exception(exc, request_id: str | None = None) -> ErrorResponse:
        details = []
        if getattr(exc, "field", None):
            details.append(ErrorDetail(field=exc.field, message=exc.message, code=exc.error_code))
        return ErrorResponse(
            error_code=exc.error_code,
            message=exc.message,
            details=details,
            request_id=request_id,
        )

    @staticmethod
    def audio_not_found(content_id: str, request_id: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error_code="AUDIO_NOT_FOUND",
            message=f"No audio is available for content '{content_id}'.",
            request_id=request_id,
        )

    @staticmethod
    def internal_error(request_id: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred. Our team has been notified.",
            request_id=request_id,
        )
