"""
Video transcript extraction.

No transcription backend is wired in yet, so the default extractor fails
every call. Video items therefore always end in status=failed with a
message saying so, instead of hanging in processing.
"""

from __future__ import annotations

import logging

from app.core.exceptions import ExtractionNotImplementedError
from app.processing.base import VideoTextExtractor

logger = logging.getLogger(__name__)


class UnavailableVideoExtractor(VideoTextExtractor):

    async def extract(self, url: str) -> str:
        logger.info("Video extraction requested but unavailable | url=%s", url)
        raise ExtractionNotImplementedError(
            "Video processing is not implemented: transcript extraction from "
            "video URLs is not available"
        )
