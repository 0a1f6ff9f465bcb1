"""
Content Ingestion Service

Orchestrates a submission:
  1. Validate processing options (JSON string or object; unknown keys ignored)
  2. Validate the payload: uploaded file (present, named, non-empty, within
     max_upload_bytes) or video URL (absolute http/https)
  3. Write the upload to upload_dir under a server-generated name
  4. Insert the content record (status=pending)
  5. Publish the pipeline run to the background runner
  6. Return the pending record

Invariants enforced here:
  - Invalid submissions never create a record (InvalidInputError → 400/413).
  - The client filename is never used as a path; it is kept, sanitized, only
    as source_file_name for format dispatch and display.
  - owner_id comes from settings, never from the request body.
  - If the record insert fails, the written upload is removed before the
    StoreError propagates.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import uuid
from pathlib import Path

from fastapi import UploadFile
from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from app.core.config import Settings
from app.core.exceptions import (
    InvalidInputError,
    PayloadTooLargeError,
    StoreError,
)
from app.schemas.content import (
    ContentItem,
    ContentType,
    NewContentItem,
    ProcessingOptions,
    ProcessingStatus,
)
from app.storage.base import ContentStore
from app.workers.runner import TaskPublisher

logger = logging.getLogger(__name__)

_URL_ADAPTER = TypeAdapter(AnyHttpUrl)
_EXT_RE = re.compile(r"^\.[a-z0-9]{1,10}$")

# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def parse_processing_options(raw: str | dict | None) -> ProcessingOptions:
    """
    Accept processing options as a JSON string (multipart form field) or an
    already-decoded object (JSON body). Absent or blank means all defaults.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return ProcessingOptions()

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise InvalidInputError(
                f"processingOptions is not valid JSON: {exc.msg}",
                field="processingOptions",
            ) from exc

    if not isinstance(raw, dict):
        raise InvalidInputError(
            "processingOptions must be a JSON object",
            field="processingOptions",
        )

    try:
        return ProcessingOptions.model_validate(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise InvalidInputError(
            f"processingOptions.{location}: {first['msg']}",
            field="processingOptions",
        ) from exc


def validate_video_url(url: str | None) -> str:
    url = (url or "").strip()
    if not url:
        raise InvalidInputError("A video URL is required", field="url")
    try:
        _URL_ADAPTER.validate_python(url)
    except ValidationError as exc:
        raise InvalidInputError(f"Invalid video URL: {url}", field="url") from exc
    return url


def _get_extension(filename: str) -> str:
    """Return the lower-cased extension including the dot, or "" if unusable."""
    ext = os.path.splitext(filename)[1].lower()
    return ext if _EXT_RE.match(ext) else ""


def _sanitize_filename(filename: str) -> str:
    """
    Strip path components and replace unsafe characters.
    Returns only the basename with OS-safe characters.
    """
    basename = filename.replace("\\", "/").rsplit("/", 1)[-1]
    safe = re.sub(r"[^a-zA-Z0-9._\-]", "_", basename)
    return safe[-200:]  # keep the tail so the extension survives the cap


# ---------------------------------------------------------------------------
# Core ingestion orchestrator
# ---------------------------------------------------------------------------

class IngestionService:
    """
    Stateless service object shared by all requests.
    All dependencies are injected (testable, no hidden globals).
    """

    def __init__(
        self,
        store:     ContentStore,
        publisher: TaskPublisher,
        settings:  Settings,
    ) -> None:
        self._store     = store
        self._publisher = publisher
        self._settings  = settings

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def submit_upload(
        self,
        content_type:       ContentType,
        file:               UploadFile | None,
        title:              str | None,
        processing_options: str | dict | None,
    ) -> ContentItem:
        """Document or image submission. Returns the pending record."""
        options = parse_processing_options(processing_options)
        data    = await self._read_upload(file)

        original_name = file.filename or ""
        safe_name     = _sanitize_filename(original_name)
        upload_path   = await self._save_upload(data, _get_extension(original_name))

        logger.info(
            "Ingest start | type=%s file=%s size=%d upload=%s",
            content_type.value, safe_name, len(data), upload_path,
        )

        new_item = NewContentItem(
            owner_id=self._settings.default_owner_id,
            title=(title or "").strip() or original_name,
            content_type=content_type,
            source_file_name=safe_name,
            processing_options=options,
        )
        try:
            item = await self._store.create(new_item)
        except StoreError:
            await self._remove_upload(upload_path)
            raise

        return await self._publish(item, upload_path)

    async def submit_video(
        self,
        title:              str | None,
        url:                str | None,
        processing_options: str | dict | None,
    ) -> ContentItem:
        """Video submission by URL. Returns the pending record."""
        options = parse_processing_options(processing_options)
        url     = validate_video_url(url)

        logger.info("Ingest start | type=video url=%s", url)

        item = await self._store.create(
            NewContentItem(
                owner_id=self._settings.default_owner_id,
                title=(title or "").strip() or url,
                content_type=ContentType.VIDEO,
                source_url=url,
                processing_options=options,
            )
        )
        return await self._publish(item, None)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _read_upload(self, file: UploadFile | None) -> bytes:
        """
        Read the upload into memory with a hard size ceiling.
        Raises InvalidInputError / PayloadTooLargeError.
        """
        if file is None or not file.filename:
            raise InvalidInputError("A file is required", field="file")
        if not _sanitize_filename(file.filename):
            raise InvalidInputError(
                f"The file name {file.filename!r} has no usable basename", field="file",
            )

        limit = self._settings.max_upload_bytes
        data  = await file.read(limit + 1)

        if not data:
            raise InvalidInputError("The uploaded file is empty", field="file")

        if len(data) > limit:
            raise PayloadTooLargeError(
                f"File exceeds the maximum upload size of {limit // (1024 * 1024)} MB",
                field="file",
            )
        return data

    async def _save_upload(self, data: bytes, ext: str) -> str:
        path = Path(self._settings.upload_dir) / f"{uuid.uuid4().hex}{ext}"
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write, path, data)
        except OSError as exc:
            raise StoreError(f"Failed to store upload: {exc}") from exc
        return str(path)

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def _remove_upload(self, upload_path: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, os.remove, upload_path)
        except OSError as exc:
            logger.warning("Failed to remove upload | path=%s error=%s", upload_path, exc)

    async def _publish(self, item: ContentItem, upload_path: str | None) -> ContentItem:
        """
        Hand the run to the background runner. An item whose run cannot be
        scheduled is marked failed and returned in that state.
        """
        try:
            self._publisher.publish_processing_task(item.id, upload_path)
        except RuntimeError as exc:
            logger.error("Failed to publish processing task | content_id=%s error=%s", item.id, exc)
            if upload_path is not None:
                await self._remove_upload(upload_path)
            failed = await self._store.update(
                item.id,
                status=ProcessingStatus.FAILED,
                error_message=f"Failed to schedule processing: {exc}",
            )
            return failed or item
        return item
