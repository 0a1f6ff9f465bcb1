"""
Speech synthesis through the OpenAI text-to-speech endpoint.

Output is MP3. The endpoint accepts at most TTS_MAX_INPUT_CHARS characters;
longer text is truncated and the truncation is logged, so long documents get
a narration of their opening rather than no audio at all.
"""

from __future__ import annotations

import logging

from openai import AsyncOpenAI

from app.core.exceptions import GenerationError
from app.generation.base import SpeechSynthesizer

logger = logging.getLogger(__name__)

TTS_MAX_INPUT_CHARS = 4096


class OpenAISpeechSynthesizer(SpeechSynthesizer):

    def __init__(
        self,
        api_key: str,
        model: str = "tts-1",
        timeout: float = 120.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._api_key = api_key
        self._model   = model
        self._timeout = timeout
        self._client  = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout, max_retries=0)
        return self._client

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        if len(text) > TTS_MAX_INPUT_CHARS:
            logger.warning(
                "Speech input truncated | chars=%d limit=%d",
                len(text), TTS_MAX_INPUT_CHARS,
            )
            text = text[:TTS_MAX_INPUT_CHARS]

        try:
            response = await self._get_client().audio.speech.create(
                model=self._model,
                voice=voice_id,
                input=text,
            )
        except Exception as exc:
            raise GenerationError(f"Failed to generate audio: {exc}") from exc

        audio = response.content
        logger.info(
            "Speech synthesized | model=%s voice=%s input_chars=%d bytes=%d",
            self._model, voice_id, len(text), len(audio),
        )
        return audio
