"""
LLM Gateway — Unified Entry Point for all Chat-Model Requests

The gateway is the single call site for the generation backends and the
image extractor. It composes:

  ┌─────────────────────────────────────────────────────┐
  │  LLMGateway.invoke()                                │
  │       │                                             │
  │       ▼                                             │
  │  _build_chat_model()   ← ChatOpenAI from settings   │
  │       │                                             │
  │       ▼                                             │
  │  BaseChatModel.ainvoke()                            │
  │       │                                             │
  │       ▼                                             │
  │  structured log line (model, latency, sizes)        │
  │       │                                             │
  │       ▼                                             │
  │  GatewayResponse                                    │
  └─────────────────────────────────────────────────────┘

One gateway instance is built at startup and injected into every backend
that needs it; nothing in the pipeline reaches for a module-level client.
No retry or provider fallback happens here: a failed call surfaces to the
backend, which decides how to report it.

Usage::

    gateway = LLMGateway(settings)
    response = await gateway.invoke(
        LLMGateway.build_messages(system_prompt, text),
        json_mode=True,
    )
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from app.core.config import Settings

logger = logging.getLogger(__name__)

ChatModelFactory = Callable[[str, bool], BaseChatModel]


# ---------------------------------------------------------------------------
# Token usage estimation (approximate)
# ---------------------------------------------------------------------------

def _estimate_tokens(messages: list[BaseMessage]) -> int:
    """
    Rough token count: 4 chars ≈ 1 token (OpenAI heuristic).
    Only used for log lines; image parts are not counted.
    """
    total_chars = sum(len(m.content) for m in messages if isinstance(m.content, str))
    return max(1, total_chars // 4)


def _content_text(content: str | list) -> str:
    """Flatten a chat message content payload to plain text."""
    if isinstance(content, str):
        return content
    parts = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


# ---------------------------------------------------------------------------
# LLMGateway
# ---------------------------------------------------------------------------

class LLMGateway:
    """
    Provider interface for chat completions.

    All public methods are async and safe for concurrent use; a chat model
    client is built per call so no connection state is shared between
    pipeline runs.
    """

    def __init__(
        self,
        settings: Settings,
        chat_model_factory: ChatModelFactory | None = None,
    ) -> None:
        self._settings = settings
        self._factory  = chat_model_factory or self._build_chat_model

    # -----------------------------------------------------------------------
    # Non-streaming invoke
    # -----------------------------------------------------------------------

    async def invoke(
        self,
        messages:  list[BaseMessage],
        *,
        model:     str | None = None,
        json_mode: bool = False,
    ) -> "GatewayResponse":
        """
        Invoke the chat model and return its text content.

        Args:
            messages:  LangChain message list (SystemMessage + HumanMessage).
            model:     Override of settings.llm_model (e.g. the vision model).
            json_mode: Ask the provider for a JSON object response.
        """
        model_id = model or self._settings.llm_model
        chat     = self._factory(model_id, json_mode)

        t0      = time.perf_counter()
        result  = await chat.ainvoke(messages)
        latency = (time.perf_counter() - t0) * 1000

        content = _content_text(result.content)
        response = GatewayResponse(
            content       = content,
            model_used    = model_id,
            input_tokens  = _estimate_tokens(messages),
            output_tokens = max(1, len(content) // 4),
            latency_ms    = latency,
            request_id    = str(uuid.uuid4()),
        )

        logger.info(
            "LLMGateway | model=%s json_mode=%s tokens_in=%d tokens_out=%d latency_ms=%.1f",
            response.model_used, json_mode,
            response.input_tokens, response.output_tokens, response.latency_ms,
        )
        return response

    # -----------------------------------------------------------------------
    # Provider builder
    # -----------------------------------------------------------------------

    def _build_chat_model(self, model_id: str, json_mode: bool) -> BaseChatModel:
        from langchain_openai import ChatOpenAI

        model_kwargs: dict = {}
        if json_mode:
            model_kwargs["response_format"] = {"type": "json_object"}

        return ChatOpenAI(
            model=model_id,
            api_key=self._settings.openai_api_key,
            temperature=self._settings.llm_temperature,
            max_tokens=self._settings.llm_max_tokens,
            timeout=self._settings.llm_timeout_seconds,
            max_retries=0,
            model_kwargs=model_kwargs,
        )

    # -----------------------------------------------------------------------
    # Convenience: build message list
    # -----------------------------------------------------------------------

    @staticmethod
    def build_messages(system_prompt: str, user_content: str | list) -> list[BaseMessage]:
        """
        Build a standard [SystemMessage, HumanMessage] list.

        `user_content` may be a list of content parts (text + image_url) for
        vision requests.
        """
        return [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_content),
        ]


# ---------------------------------------------------------------------------
# Response dataclass
# ---------------------------------------------------------------------------

@dataclass
class GatewayResponse:
    """The result of a single non-streaming LLM gateway call."""
    content:       str
    model_used:    str
    input_tokens:  int
    output_tokens: int
    latency_ms:    float
    request_id:    str
