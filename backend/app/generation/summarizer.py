"""
LLM-backed summarizer.
"""

from __future__ import annotations

import logging

from app.core.exceptions import GenerationError
from app.generation.base import Summarizer
from app.llm.gateway import LLMGateway
from app.llm.prompts import SUMMARY_SYSTEM_PROMPT, SUMMARY_USER_TEMPLATE

logger = logging.getLogger(__name__)


class LLMSummarizer(Summarizer):
    """Concise, accessibility-oriented summary of the extracted text."""

    def __init__(self, gateway: LLMGateway) -> None:
        self._gateway = gateway

    async def summarize(self, text: str) -> str:
        messages = LLMGateway.build_messages(
            SUMMARY_SYSTEM_PROMPT,
            SUMMARY_USER_TEMPLATE.format(text=text),
        )
        try:
            response = await self._gateway.invoke(messages)
        except Exception as exc:
            raise GenerationError(f"Failed to generate summary: {exc}") from exc

        summary = response.content.strip()
        if not summary:
            raise GenerationError("Failed to generate summary: model returned no text")

        logger.info(
            "Summary generated | input_chars=%d summary_chars=%d",
            len(text), len(summary),
        )
        return summary
