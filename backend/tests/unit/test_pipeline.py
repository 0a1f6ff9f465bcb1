"""
Unit Tests — ProcessingPipeline
═══════════════════════════════
Every stage outcome and state transition of a pipeline run.

All tests:
  • Use the in-memory stores and AsyncMock backends from conftest.py
  • Drive pipeline.run() directly (no runner, no HTTP)

Coverage targets:
  ✅ PDF happy path with summary only
  ✅ Audio stored as audio_<id>.mp3, voice selection
  ✅ Quiz items persisted
  ✅ Unsupported extension, blank extraction, extractor failure → failed
  ✅ Summary failure → failed, later stages skipped
  ✅ Audio failure alone → completed without audio
  ✅ Malformed quiz → completed, empty quiz, metric counted
  ✅ Quiz transport failure → failed, stored audio discarded
  ✅ Video against the unavailable backend → failed
  ✅ Upload removed on every path
  ✅ Terminal items are not re-run; missing records abort
  ✅ StoreError → best-effort failed
"""

from __future__ import annotations

import os
from unittest.mock import AsyncMock, patch

import pytest

from app.core.exceptions import ExtractionError, GenerationError, StoreError
from app.generation.base import QuizResult
from app.observability.metrics import (
    AUDIO_FAILURES,
    ITEMS_COMPLETED,
    ITEMS_FAILED,
    QUIZ_PARSE_FAILURES,
)
from app.schemas.content import ContentType, ProcessingStatus

NO_EXTRAS = {"generate_audio": False, "generate_summary": False, "generate_quiz": False}


@pytest.mark.unit
@pytest.mark.pipeline
class TestPipelineHappyPath:

    async def test_pdf_with_summary_only(self, make_pipeline, make_item, write_upload, content_store, metrics):
        item = await make_item(
            "hello.pdf", generate_audio=False, generate_summary=True, generate_quiz=False,
        )
        pipeline = make_pipeline()

        status = await pipeline.run(item.id, write_upload())

        stored = await content_store.get(item.id)
        assert status is ProcessingStatus.COMPLETED
        assert stored.status is ProcessingStatus.COMPLETED
        assert stored.extracted_text == "Hello world."
        assert stored.summary
        assert stored.audio_locator is None
        assert stored.quiz_items is None
        assert stored.error_message is None
        assert metrics.get(ITEMS_COMPLETED) == 1

    async def test_audio_saved_under_content_key(
        self, make_pipeline, make_item, write_upload, content_store, artifact_store,
    ):
        item = await make_item("hello.pdf", generate_audio=True, generate_summary=False)
        pipeline = make_pipeline(audio=b"mp3-bytes")

        await pipeline.run(item.id, write_upload())

        stored = await content_store.get(item.id)
        assert stored.audio_locator == f"audio_{item.id}.mp3"
        assert artifact_store.objects[stored.audio_locator] == (b"mp3-bytes", "audio/mpeg")

    async def test_default_voice_is_alloy(self, make_backends, make_pipeline, make_item, write_upload):
        backends = make_backends()
        item = await make_item("hello.pdf", generate_audio=True, generate_summary=False)

        await make_pipeline(backends).run(item.id, write_upload())

        backends.speech.synthesize.assert_awaited_once_with("Hello world.", "alloy")

    async def test_requested_voice_is_used(self, make_backends, make_pipeline, make_item, write_upload):
        backends = make_backends()
        item = await make_item("hello.pdf", generate_audio=True, voice_id="nova")

        await make_pipeline(backends).run(item.id, write_upload())

        backends.speech.synthesize.assert_awaited_once_with("Hello world.", "nova")

    async def test_quiz_items_persisted(self, make_pipeline, make_item, write_upload, content_store):
        item = await make_item("hello.pdf", generate_audio=False, generate_quiz=True)

        await make_pipeline().run(item.id, write_upload())

        stored = await content_store.get(item.id)
        assert len(stored.quiz_items) == 1
        quiz = stored.quiz_items[0]
        assert 0 <= quiz.correct_option_index < len(quiz.option_texts)

    async def test_docx_dispatch(self, make_backends, make_pipeline, make_item, write_upload, content_store):
        backends = make_backends()
        item = await make_item("Notes.DOCX", **NO_EXTRAS)

        await make_pipeline(backends).run(item.id, write_upload(b"PK docx"))

        backends.documents[".docx"].extract.assert_awaited_once_with(b"PK docx")
        backends.documents[".pdf"].extract.assert_not_awaited()
        assert (await content_store.get(item.id)).extracted_text.startswith("Paragraph one.")

    async def test_image_sent_with_guessed_mime(self, make_backends, make_pipeline, make_item, write_upload, content_store):
        backends = make_backends()
        item = await make_item("diagram.png", content_type=ContentType.IMAGE, **NO_EXTRAS)

        await make_pipeline(backends).run(item.id, write_upload(b"\x89PNG"))

        backends.image.extract.assert_awaited_once_with(b"\x89PNG", "image/png")
        assert (await content_store.get(item.id)).status is ProcessingStatus.COMPLETED

    async def test_summary_not_requested_is_not_generated(self, make_backends, make_pipeline, make_item, write_upload, content_store):
        backends = make_backends()
        item = await make_item("hello.pdf", **NO_EXTRAS)

        await make_pipeline(backends).run(item.id, write_upload())

        backends.summarizer.summarize.assert_not_awaited()
        assert (await content_store.get(item.id)).summary is None


@pytest.mark.unit
@pytest.mark.pipeline
class TestPipelineFatalFailures:

    async def test_unsupported_extension_fails(self, make_backends, make_pipeline, make_item, write_upload, content_store, metrics):
        backends = make_backends()
        item = await make_item("notes.txt")

        status = await make_pipeline(backends).run(item.id, write_upload(b"plain"))

        stored = await content_store.get(item.id)
        assert status is ProcessingStatus.FAILED
        assert ".pdf" in stored.error_message
        assert ".docx" in stored.error_message
        assert ".txt" in stored.error_message
        backends.summarizer.summarize.assert_not_awaited()
        assert metrics.get(ITEMS_FAILED) == 1

    async def test_blank_extraction_fails(self, make_pipeline, make_item, write_upload, content_store):
        item = await make_item("diagram.jpg", content_type=ContentType.IMAGE)

        await make_pipeline(image_text="  \n\t ").run(item.id, write_upload(b"jpeg"))

        stored = await content_store.get(item.id)
        assert stored.status is ProcessingStatus.FAILED
        assert stored.error_message == "No text could be extracted from the content"

    async def test_extractor_error_leaves_derived_fields_empty(self, make_pipeline, make_item, write_upload, content_store):
        item = await make_item("broken.pdf", generate_quiz=True)
        pipeline = make_pipeline(pdf_text=ExtractionError("Failed to extract text from PDF: EOF marker not found"))

        await pipeline.run(item.id, write_upload())

        stored = await content_store.get(item.id)
        assert stored.status is ProcessingStatus.FAILED
        assert stored.error_message == "Failed to extract text from PDF: EOF marker not found"
        assert stored.extracted_text is None
        assert stored.summary is None
        assert stored.audio_locator is None
        assert stored.quiz_items is None

    async def test_missing_upload_file_fails(self, make_pipeline, make_item, content_store, tmp_path):
        item = await make_item("hello.pdf")

        await make_pipeline().run(item.id, str(tmp_path / "gone.pdf"))

        stored = await content_store.get(item.id)
        assert stored.status is ProcessingStatus.FAILED
        assert stored.error_message.startswith("Failed to read upload")

    async def test_summary_failure_is_fatal(self, make_backends, make_pipeline, make_item, write_upload, content_store):
        backends = make_backends(summary=GenerationError("Failed to generate summary: timeout"))
        item = await make_item("hello.pdf", generate_audio=True, generate_quiz=True)

        await make_pipeline(backends).run(item.id, write_upload())

        stored = await content_store.get(item.id)
        assert stored.status is ProcessingStatus.FAILED
        assert stored.error_message == "Failed to generate summary: timeout"
        backends.speech.synthesize.assert_not_awaited()
        backends.quiz.generate.assert_not_awaited()

    async def test_quiz_transport_failure_discards_audio(
        self, make_pipeline, make_item, write_upload, content_store, artifact_store,
    ):
        item = await make_item("hello.pdf", generate_audio=True, generate_quiz=True)
        pipeline = make_pipeline(quiz=GenerationError("Failed to generate quiz: connection reset"))

        await pipeline.run(item.id, write_upload())

        stored = await content_store.get(item.id)
        assert stored.status is ProcessingStatus.FAILED
        assert stored.audio_locator is None
        assert artifact_store.objects == {}

    async def test_video_fails_as_not_implemented(self, make_pipeline, make_item, content_store):
        item = await make_item(
            url="https://videos.example.com/watch/42",
            content_type=ContentType.VIDEO,
            generate_quiz=True,
        )

        status = await make_pipeline().run(item.id)

        stored = await content_store.get(item.id)
        assert status is ProcessingStatus.FAILED
        assert "not implemented" in stored.error_message.lower()
        assert stored.quiz_items is None

    async def test_unexpected_backend_exception_fails_item(self, make_pipeline, make_item, write_upload, content_store):
        item = await make_item("hello.pdf")

        await make_pipeline(summary=RuntimeError("kaboom")).run(item.id, write_upload())

        stored = await content_store.get(item.id)
        assert stored.status is ProcessingStatus.FAILED
        assert "kaboom" in stored.error_message


@pytest.mark.unit
@pytest.mark.pipeline
class TestPipelineTolerance:

    async def test_audio_failure_alone_still_completes(
        self, make_pipeline, make_item, write_upload, content_store, metrics,
    ):
        item = await make_item("hello.pdf", generate_audio=True)
        pipeline = make_pipeline(audio=GenerationError("Failed to generate audio: 500"))

        status = await pipeline.run(item.id, write_upload())

        stored = await content_store.get(item.id)
        assert status is ProcessingStatus.COMPLETED
        assert stored.audio_locator is None
        assert stored.error_message is None
        assert stored.summary
        assert metrics.get(AUDIO_FAILURES) == 1

    async def test_malformed_quiz_completes_with_empty_quiz(
        self, make_pipeline, make_item, write_upload, content_store, metrics,
    ):
        item = await make_item("hello.pdf", generate_audio=False, generate_quiz=True)
        pipeline = make_pipeline(quiz=QuizResult(questions=(), malformed=True))

        await pipeline.run(item.id, write_upload())

        stored = await content_store.get(item.id)
        assert stored.status is ProcessingStatus.COMPLETED
        assert stored.quiz_items is None
        assert metrics.get(QUIZ_PARSE_FAILURES) == 1


@pytest.mark.unit
@pytest.mark.pipeline
class TestPipelineLifecycle:

    async def test_upload_removed_after_success(self, make_pipeline, make_item, write_upload):
        item = await make_item("hello.pdf", **NO_EXTRAS)
        path = write_upload()

        await make_pipeline().run(item.id, path)

        assert not os.path.exists(path)

    async def test_upload_removed_after_failure(self, make_pipeline, make_item, write_upload):
        item = await make_item("notes.txt")
        path = write_upload()

        await make_pipeline().run(item.id, path)

        assert not os.path.exists(path)

    async def test_missing_record_aborts_and_cleans_up(self, make_backends, make_pipeline, write_upload):
        backends = make_backends()
        path = write_upload()

        status = await make_pipeline(backends).run("does-not-exist", path)

        assert status is None
        assert not os.path.exists(path)
        backends.documents[".pdf"].extract.assert_not_awaited()

    @pytest.mark.parametrize("terminal", [ProcessingStatus.COMPLETED, ProcessingStatus.FAILED])
    async def test_terminal_item_is_not_rerun(
        self, terminal, make_backends, make_pipeline, make_item, write_upload, content_store,
    ):
        backends = make_backends()
        item = await make_item("hello.pdf")
        await content_store.update(item.id, status=terminal)
        path = write_upload()

        status = await make_pipeline(backends).run(item.id, path)

        assert status is terminal
        assert (await content_store.get(item.id)).status is terminal
        backends.documents[".pdf"].extract.assert_not_awaited()
        assert not os.path.exists(path)

    async def test_store_error_on_initial_read_marks_failed(
        self, make_backends, make_pipeline, make_item, write_upload, content_store, metrics,
    ):
        backends = make_backends()
        item = await make_item("hello.pdf", **NO_EXTRAS)
        path = write_upload()

        with patch.object(
            content_store, "get",
            new=AsyncMock(side_effect=StoreError("Failed to load content item: connection reset")),
        ):
            status = await make_pipeline(backends).run(item.id, path)

        stored = await content_store.get(item.id)
        assert status is ProcessingStatus.FAILED
        assert stored.status is ProcessingStatus.FAILED
        assert stored.error_message == "Failed to load content item: connection reset"
        assert metrics.get(ITEMS_FAILED) == 1
        backends.documents[".pdf"].extract.assert_not_awaited()
        assert not os.path.exists(path)

    async def test_store_error_on_final_update_marks_failed(
        self, make_pipeline, make_item, write_upload, content_store, artifact_store, metrics,
    ):
        item = await make_item(
            "hello.pdf", generate_audio=True, generate_summary=False, generate_quiz=False,
        )
        real_update = content_store.update
        calls = {"n": 0}

        async def flaky_update(content_id, **changes):
            calls["n"] += 1
            if calls["n"] == 2:
                raise StoreError("Failed to update content item: database is locked")
            return await real_update(content_id, **changes)

        with patch.object(content_store, "update", new=AsyncMock(side_effect=flaky_update)):
            status = await make_pipeline().run(item.id, write_upload())

        stored = await content_store.get(item.id)
        assert status is ProcessingStatus.FAILED
        assert stored.status is ProcessingStatus.FAILED
        assert stored.error_message == "Failed to update content item: database is locked"
        assert stored.audio_locator is None
        assert artifact_store.objects == {}
        assert metrics.get(ITEMS_FAILED) == 1

    async def test_artifact_write_failure_is_fatal(
        self, make_pipeline, make_item, write_upload, content_store, artifact_store,
    ):
        item = await make_item("hello.pdf", generate_audio=True)

        with patch.object(
            artifact_store, "save",
            new=AsyncMock(side_effect=StoreError("Failed to write artifact: disk full")),
        ):
            await make_pipeline().run(item.id, write_upload())

        stored = await content_store.get(item.id)
        assert stored.status is ProcessingStatus.FAILED
        assert stored.error_message == "Failed to write artifact: disk full"

    async def test_best_effort_failure_marking_can_fail_too(
        self, make_pipeline, make_item, write_upload, content_store,
    ):
        item = await make_item("hello.pdf", **NO_EXTRAS)
        real_update = content_store.update
        calls = {"n": 0}

        async def update_once(content_id, **changes):
            calls["n"] += 1
            if calls["n"] > 1:
                raise StoreError("Failed to update content item: connection lost")
            return await real_update(content_id, **changes)

        with patch.object(content_store, "update", new=AsyncMock(side_effect=update_once)):
            status = await make_pipeline().run(item.id, write_upload())

        assert status is ProcessingStatus.FAILED
        assert (await content_store.get(item.id)).status is ProcessingStatus.PROCESSING
