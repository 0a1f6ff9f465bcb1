"""
LLM Gateway Package

Provides a single injectable interface over the OpenAI chat models used by
the image extractor, the summarizer and the quiz generator.

Public API::

    from app.llm import LLMGateway

    gateway = LLMGateway(settings)
    response = await gateway.invoke(messages, json_mode=True)
"""

from app.llm.gateway import GatewayResponse, LLMGateway
from app.llm.prompts import (
    IMAGE_EXTRACTION_PROMPT,
    QUIZ_SYSTEM_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
)

__all__ = [
    "GatewayResponse",
    "LLMGateway",
    "IMAGE_EXTRACTION_PROMPT",
    "QUIZ_SYSTEM_PROMPT",
    "SUMMARY_SYSTEM_PROMPT",
]
