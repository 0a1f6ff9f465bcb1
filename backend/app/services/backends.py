"""
Pipeline capability bundle.

The pipeline receives every external capability through one PipelineBackends
value built at startup. Tests build their own bundle from fakes.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.core.config import Settings
from app.generation.base import QuizGenerator, SpeechSynthesizer, Summarizer
from app.generation.quiz import LLMQuizGenerator
from app.generation.speech import OpenAISpeechSynthesizer
from app.generation.summarizer import LLMSummarizer
from app.llm.gateway import LLMGateway
from app.processing.base import (
    DocumentTextExtractor,
    ImageTextExtractor,
    VideoTextExtractor,
)
from app.processing.extractor import TextExtractorOrchestrator, default_document_extractors
from app.processing.ocr import VisionImageExtractor
from app.processing.video import UnavailableVideoExtractor


@dataclass(frozen=True)
class PipelineBackends:
    documents:   dict[str, DocumentTextExtractor]
    image:       ImageTextExtractor
    video:       VideoTextExtractor
    summarizer:  Summarizer
    speech:      SpeechSynthesizer
    quiz:        QuizGenerator

    def extractor(self) -> TextExtractorOrchestrator:
        return TextExtractorOrchestrator(self.documents, self.image, self.video)


def build_default_backends(settings: Settings, gateway: LLMGateway) -> PipelineBackends:
    """Production wiring: pypdf / python-docx, OpenAI vision, chat and TTS."""
    return PipelineBackends(
        documents=default_document_extractors(),
        image=VisionImageExtractor(gateway, model=settings.vision_model),
        video=UnavailableVideoExtractor(),
        summarizer=LLMSummarizer(gateway),
        speech=OpenAISpeechSynthesizer(
            api_key=settings.openai_api_key,
            model=settings.tts_model,
            timeout=settings.llm_timeout_seconds,
        ),
        quiz=LLMQuizGenerator(gateway),
    )
