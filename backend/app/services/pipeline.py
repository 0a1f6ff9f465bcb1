"""
Content Processing Pipeline
═══════════════════════════

Drives one content item from pending to a terminal state:

  pending ──► processing ──► completed
                        └──► failed

Stages, in fixed order, each gated by the item's processing options:

  ┌──────────────┬────────────────────┬──────────────────────────────────┐
  │ Stage        │ Gate               │ On failure                       │
  ├──────────────┼────────────────────┼──────────────────────────────────┤
  │ extraction   │ always             │ FATAL  → failed, rest skipped    │
  │ summary      │ generate_summary   │ FATAL  → failed, rest skipped    │
  │ audio        │ generate_audio     │ tolerated → no audio locator     │
  │ quiz         │ generate_quiz      │ malformed output → empty quiz;   │
  │              │                    │ transport error → FATAL          │
  └──────────────┴────────────────────┴──────────────────────────────────┘

Each stage yields a typed result; the run ends in exactly one outcome
(CompletedOutcome | FailedOutcome) whose to_changes() is written to the
record store in a single update.

Guarantees:
  - Terminal states are absorbing: a completed or failed item is never re-run.
  - The transient upload file is removed however the run ends.
  - StoreError (record or artifact) ends the run; the item is then marked
    failed on a best-effort basis.
  - No retries and no pipeline-level timeout; backend timeouts surface as
    ordinary stage failures.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from app.core.exceptions import ContentPipelineError, ExtractionError, StoreError
from app.generation.base import AudioResult, QuizResult, SummaryResult
from app.observability.metrics import (
    AUDIO_FAILURES,
    ITEMS_COMPLETED,
    ITEMS_FAILED,
    QUIZ_PARSE_FAILURES,
    PipelineMetrics,
)
from app.observability.tracing import traced
from app.processing.extractor import ExtractionResult
from app.schemas.content import ContentItem, ProcessingStatus
from app.services.backends import PipelineBackends
from app.storage.base import ArtifactStore, ContentStore, audio_key

logger = logging.getLogger(__name__)

AUDIO_CONTENT_TYPE = "audio/mpeg"


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompletedOutcome:
    extraction: ExtractionResult
    summary:    SummaryResult | None = None
    audio:      AudioResult | None = None
    quiz:       QuizResult | None = None

    status = ProcessingStatus.COMPLETED

    def to_changes(self) -> dict[str, Any]:
        return {
            "status":         ProcessingStatus.COMPLETED,
            "extracted_text": self.extraction.text,
            "summary":        self.summary.text if self.summary else None,
            "audio_locator":  self.audio.locator if self.audio else None,
            "quiz_items":     self.quiz.quiz_items if self.quiz else None,
            "error_message":  None,
        }


@dataclass(frozen=True)
class FailedOutcome:
    error_message: str

    status = ProcessingStatus.FAILED

    def to_changes(self) -> dict[str, Any]:
        return {
            "status":         ProcessingStatus.FAILED,
            "extracted_text": None,
            "summary":        None,
            "audio_locator":  None,
            "quiz_items":     None,
            "error_message":  self.error_message,
        }


Outcome = Union[CompletedOutcome, FailedOutcome]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class ProcessingPipeline:
    """
    Stateless between runs; one instance serves every item concurrently.

    Usage:
        pipeline = ProcessingPipeline(backends, store, artifacts, metrics)
        await pipeline.run(content_id, upload_path)
    """

    def __init__(
        self,
        backends:  PipelineBackends,
        store:     ContentStore,
        artifacts: ArtifactStore,
        metrics:   PipelineMetrics,
        default_voice_id: str = "alloy",
    ) -> None:
        self._backends  = backends
        self._extractor = backends.extractor()
        self._store     = store
        self._artifacts = artifacts
        self._metrics   = metrics
        self._default_voice_id = default_voice_id

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, content_id: str, upload_path: str | None = None) -> ProcessingStatus | None:
        """
        Process one item to a terminal state.

        Returns the status the item ended in, or None if the record could
        not be found or written.
        """
        try:
            return await self._run(content_id, upload_path)
        finally:
            await self._remove_upload(upload_path)

    async def _run(self, content_id: str, upload_path: str | None) -> ProcessingStatus | None:
        try:
            item = await self._store.get(content_id)
            if item is None:
                logger.error("Pipeline abort: content record not found | content_id=%s", content_id)
                return None

            if item.status.is_terminal:
                logger.warning(
                    "Pipeline skip: item already terminal | content_id=%s status=%s",
                    content_id, item.status.value,
                )
                return item.status

            item = await self._store.update(content_id, status=ProcessingStatus.PROCESSING)
            if item is None:
                logger.error("Pipeline abort: content record vanished | content_id=%s", content_id)
                return None

            logger.info(
                "Pipeline start | content_id=%s type=%s options=%s",
                content_id, item.content_type.value,
                item.processing_options.model_dump(),
            )
            outcome = await self._process(item, upload_path)
            try:
                return await self._finish(item, outcome)
            except StoreError:
                # the record will not point at the narration, so drop it
                if isinstance(outcome, CompletedOutcome):
                    await self._discard_audio(outcome.audio)
                raise

        except StoreError as exc:
            logger.error("Pipeline store failure | content_id=%s error=%s", content_id, exc.message)
            self._metrics.increment(ITEMS_FAILED)
            await self._mark_failed_best_effort(content_id, exc.message)
            return ProcessingStatus.FAILED

    # ------------------------------------------------------------------
    # Stage sequencing
    # ------------------------------------------------------------------

    async def _process(self, item: ContentItem, upload_path: str | None) -> Outcome:
        options = item.processing_options
        audio: AudioResult | None = None

        try:
            data       = await self._read_upload(upload_path)
            extraction = await self._extract(item, data)
            text       = extraction.text

            summary = await self._summarize(text) if options.generate_summary else None

            if options.generate_audio:
                audio = await self._synthesize(item, text)

            quiz = await self._generate_quiz(text) if options.generate_quiz else None

        except StoreError:
            await self._discard_audio(audio)
            raise
        except ContentPipelineError as exc:
            await self._discard_audio(audio)
            return FailedOutcome(error_message=exc.message)
        except Exception as exc:
            logger.exception("Unexpected pipeline error | content_id=%s", item.id)
            await self._discard_audio(audio)
            return FailedOutcome(error_message=f"Unexpected processing error: {exc}")

        return CompletedOutcome(extraction=extraction, summary=summary, audio=audio, quiz=quiz)

    async def _finish(self, item: ContentItem, outcome: Outcome) -> ProcessingStatus | None:
        updated = await self._store.update(item.id, **outcome.to_changes())
        if updated is None:
            logger.warning("Content deleted during processing | content_id=%s", item.id)
            if isinstance(outcome, CompletedOutcome):
                await self._discard_audio(outcome.audio)
            return None

        if isinstance(outcome, CompletedOutcome):
            self._metrics.increment(ITEMS_COMPLETED)
            logger.info(
                "Pipeline completed | content_id=%s chars=%d summary=%s audio=%s quiz_items=%d",
                item.id, outcome.extraction.total_chars,
                outcome.summary is not None,
                outcome.audio is not None and outcome.audio.succeeded,
                len(outcome.quiz.questions) if outcome.quiz else 0,
            )
        else:
            self._metrics.increment(ITEMS_FAILED)
            logger.warning(
                "Pipeline failed | content_id=%s error=%s",
                item.id, outcome.error_message,
            )
        return outcome.status

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    @traced("pipeline.extract")
    async def _extract(self, item: ContentItem, data: bytes | None) -> ExtractionResult:
        return await self._extractor.extract(item, data)

    @traced("pipeline.summarize")
    async def _summarize(self, text: str) -> SummaryResult:
        return SummaryResult(text=await self._backends.summarizer.summarize(text))

    @traced("pipeline.audio")
    async def _synthesize(self, item: ContentItem, text: str) -> AudioResult:
        voice_id = item.processing_options.voice_id or self._default_voice_id
        try:
            audio_bytes = await self._backends.speech.synthesize(text, voice_id)
        except Exception as exc:
            self._metrics.increment(AUDIO_FAILURES)
            logger.warning(
                "Audio generation failed, continuing without audio | content_id=%s error=%s",
                item.id, exc,
            )
            return AudioResult(error=str(exc))

        locator = await self._artifacts.save(audio_key(item.id), audio_bytes, AUDIO_CONTENT_TYPE)
        return AudioResult(locator=locator)

    @traced("pipeline.quiz")
    async def _generate_quiz(self, text: str) -> QuizResult:
        result = await self._backends.quiz.generate(text)
        if result.malformed:
            self._metrics.increment(QUIZ_PARSE_FAILURES)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _read_upload(self, upload_path: str | None) -> bytes | None:
        if upload_path is None:
            return None
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, Path(upload_path).read_bytes)
        except OSError as exc:
            raise ExtractionError(f"Failed to read upload: {exc}") from exc

    async def _remove_upload(self, upload_path: str | None) -> None:
        if upload_path is None:
            return
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, os.remove, upload_path)
            logger.debug("Upload removed | path=%s", upload_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to remove upload | path=%s error=%s", upload_path, exc)

    async def _discard_audio(self, audio: AudioResult | None) -> None:
        """Remove narration stored by a run that did not complete."""
        if audio is None or audio.locator is None:
            return
        try:
            await self._artifacts.delete(audio.locator)
        except StoreError as exc:
            logger.warning("Orphaned audio artifact | key=%s error=%s", audio.locator, exc.message)

    async def _mark_failed_best_effort(self, content_id: str, message: str) -> None:
        try:
            await self._store.update(content_id, **FailedOutcome(error_message=message).to_changes())
        except StoreError as exc:
            logger.error(
                "Could not mark item failed, record may remain in processing | "
                "content_id=%s error=%s",
                content_id, exc.message,
            )
