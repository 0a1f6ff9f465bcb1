"""
Content API Router
/api/v1/content

Implements:
  - Document and image submission (multipart upload)
  - Video submission (JSON body with URL)
  - Record reads for polling the async pipeline
  - Narration download
  - Hard delete of record + audio artifact
  - Structured error responses for all 4xx/5xx cases

Request lifecycle (submission):
  ┌─────────────────────────────────────────────────────────┐
  │ 1. processingOptions parsed (JSON string or object)     │
  │ 2. Payload validated (file / URL) → 400 / 413           │
  │ 3. Upload written under a server-generated name         │
  │ 4. Record inserted (status=pending)                     │
  │ 5. Pipeline run handed to the background runner         │
  │ 6. Pending record returned; client polls GET /{id}      │
  └─────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, File, Form, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response

from app.core.dependencies import Artifacts, CurrentOwner, Ingestion, Store
from app.core.exceptions import ContentNotFoundError, StoreError
from app.schemas.content import (
    ContentErrors,
    ContentItem,
    ContentType,
    DeleteResponse,
    ErrorResponse,
    VideoSubmissionRequest,
)
from app.services.pipeline import AUDIO_CONTENT_TYPE

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/content",
    tags=["Content"],
)

_SUBMIT_RESPONSES = {
    200: {"model": ContentItem, "description": "Item accepted; status=pending"},
    400: {"model": ErrorResponse, "description": "Invalid file, URL or processingOptions"},
    413: {"model": ErrorResponse, "description": "File exceeds the upload size limit"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}


# ---------------------------------------------------------------------------
# POST /content/document, /content/image
# ---------------------------------------------------------------------------

@router.post(
    "/document",
    response_model=ContentItem,
    summary="Submit a document (PDF or DOCX) for processing",
    responses=_SUBMIT_RESPONSES,
)
async def submit_document(
    ingestion: Ingestion,
    file:  Optional[UploadFile] = File(None, description="Document file (.pdf, .docx)"),
    title: Optional[str]        = Form(None, description="Display title; defaults to the file name"),
    processing_options: Optional[str] = Form(
        None,
        alias="processingOptions",
        description="JSON object: generateAudio, generateSummary, generateQuiz, voiceId",
    ),
) -> ContentItem:
    return await ingestion.submit_upload(ContentType.DOCUMENT, file, title, processing_options)


@router.post(
    "/image",
    response_model=ContentItem,
    summary="Submit an image for text extraction and description",
    responses=_SUBMIT_RESPONSES,
)
async def submit_image(
    ingestion: Ingestion,
    file:  Optional[UploadFile] = File(None, description="Image file"),
    title: Optional[str]        = Form(None, description="Display title; defaults to the file name"),
    processing_options: Optional[str] = Form(None, alias="processingOptions"),
) -> ContentItem:
    return await ingestion.submit_upload(ContentType.IMAGE, file, title, processing_options)


# ---------------------------------------------------------------------------
# POST /content/video
# ---------------------------------------------------------------------------

@router.post(
    "/video",
    response_model=ContentItem,
    summary="Submit a video URL for processing",
    responses={k: v for k, v in _SUBMIT_RESPONSES.items() if k != 413},
)
async def submit_video(body: VideoSubmissionRequest, ingestion: Ingestion) -> ContentItem:
    return await ingestion.submit_video(body.title, body.url, body.processing_options)


# ---------------------------------------------------------------------------
# GET /content: list the owner's items
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[ContentItem],
    summary="List content items, most recent first",
)
async def list_content(store: Store, owner_id: CurrentOwner) -> list[ContentItem]:
    return await store.list_by_owner(owner_id)


# ---------------------------------------------------------------------------
# GET /content/{content_id}
# ---------------------------------------------------------------------------

@router.get(
    "/{content_id}",
    response_model=ContentItem,
    summary="Fetch one content item (poll for processing status)",
    responses={404: {"model": ErrorResponse}},
)
async def get_content(content_id: str, store: Store, owner_id: CurrentOwner) -> ContentItem:
    return await _get_owned(store, content_id, owner_id)


# ---------------------------------------------------------------------------
# GET /content/{content_id}/audio
# ---------------------------------------------------------------------------

@router.get(
    "/{content_id}/audio",
    summary="Download the narration of a content item",
    response_class=Response,
    responses={
        200: {"content": {AUDIO_CONTENT_TYPE: {}}, "description": "MP3 narration"},
        404: {"model": ErrorResponse, "description": "Unknown item or no audio available"},
    },
)
async def get_content_audio(
    content_id: str,
    request:    Request,
    store:      Store,
    artifacts:  Artifacts,
    owner_id:   CurrentOwner,
) -> Response:
    item = await _get_owned(store, content_id, owner_id)

    if not item.audio_locator:
        return _audio_not_found(request, content_id)
    try:
        audio = await artifacts.read(item.audio_locator)
    except FileNotFoundError:
        logger.warning(
            "Audio artifact missing | content_id=%s key=%s",
            content_id, item.audio_locator,
        )
        return _audio_not_found(request, content_id)

    return Response(
        content=audio,
        media_type=AUDIO_CONTENT_TYPE,
        headers={"Content-Disposition": f'inline; filename="{item.audio_locator}"'},
    )


# ---------------------------------------------------------------------------
# DELETE /content/{content_id}: hard delete
# ---------------------------------------------------------------------------

@router.delete(
    "/{content_id}",
    response_model=DeleteResponse,
    summary="Delete a content item and its audio",
    responses={404: {"model": ErrorResponse}},
)
async def delete_content(
    content_id: str,
    store:      Store,
    artifacts:  Artifacts,
    owner_id:   CurrentOwner,
) -> DeleteResponse:
    item = await _get_owned(store, content_id, owner_id)

    if item.audio_locator:
        try:
            await artifacts.delete(item.audio_locator)
        except StoreError as exc:
            logger.warning(
                "Audio delete failed, artifact orphaned | content_id=%s key=%s error=%s",
                content_id, item.audio_locator, exc.message,
            )

    if not await store.delete(content_id):
        raise ContentNotFoundError(f"Content '{content_id}' was not found.", field="contentId")

    logger.info("Content deleted | content_id=%s", content_id)
    return DeleteResponse()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _get_owned(store, content_id: str, owner_id: str) -> ContentItem:
    item = await store.get(content_id)
    if item is None or item.owner_id != owner_id:
        raise ContentNotFoundError(f"Content '{content_id}' was not found.", field="contentId")
    return item


def _audio_not_found(request: Request, content_id: str) -> JSONResponse:
    body = ContentErrors.audio_not_found(content_id, getattr(request.state, "request_id", None))
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=body.model_dump(mode="json", by_alias=True),
    )
