"""
Image Text Extraction — Vision Model
═════════════════════════════════════

Images are sent to a multimodal chat model rather than a classic OCR
engine: the model transcribes visible text AND describes diagrams, charts
and other visual elements, which is what an accessible reading needs.

Request shape (OpenAI chat completions, via LLMGateway):

  HumanMessage(content=[
      {"type": "text",      "text": IMAGE_EXTRACTION_PROMPT},
      {"type": "image_url", "image_url": {"url": "data:<mime>;base64,<...>"}},
  ])

The image never leaves the process except inside that request; nothing is
uploaded to a public URL.
"""

from __future__ import annotations

import base64
import logging
import time

from langchain_core.messages import HumanMessage

from app.core.exceptions import ExtractionError
from app.llm.gateway import LLMGateway
from app.llm.prompts import IMAGE_EXTRACTION_PROMPT
from app.processing.base import ImageTextExtractor

logger = logging.getLogger(__name__)


def build_image_content(image_bytes: bytes, mime_type: str) -> list[dict]:
    """Content parts for a single-image vision request."""
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return [
        {"type": "text", "text": IMAGE_EXTRACTION_PROMPT},
        {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
    ]


class VisionImageExtractor(ImageTextExtractor):
    """Transcribes and describes an image through the configured vision model."""

    def __init__(self, gateway: LLMGateway, model: str) -> None:
        self._gateway = gateway
        self._model   = model

    async def extract(self, image_bytes: bytes, mime_type: str) -> str:
        t0 = time.monotonic()
        messages = [HumanMessage(content=build_image_content(image_bytes, mime_type))]
        try:
            response = await self._gateway.invoke(messages, model=self._model)
        except Exception as exc:
            raise ExtractionError(f"Failed to extract text from image: {exc}") from exc

        logger.info(
            "Vision extraction | model=%s mime=%s bytes=%d chars=%d elapsed_ms=%.0f",
            self._model, mime_type, len(image_bytes),
            len(response.content), (time.monotonic() - t0) * 1000,
        )
        return response.content
