"""
Generation Backends — Abstract Bases + Stage Results

Three derivations are produced from the extracted text:

  Summarizer         text → concise accessible summary      (fatal on failure)
  SpeechSynthesizer  text → narrated audio bytes            (tolerated failure)
  QuizGenerator      text → multiple-choice questions        (malformed output tolerated)

Error contract:
  - Transport / provider failures raise GenerationError("Failed to <action>: <cause>").
  - QuizGenerator.generate MUST NOT raise on malformed model output; it returns
    an empty QuizResult with malformed=True instead.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from app.schemas.content import QuizItem


# ---------------------------------------------------------------------------
# Stage results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SummaryResult:
    text: str


@dataclass(frozen=True)
class AudioResult:
    """
    locator : artifact key of the stored narration, None if synthesis failed
    error   : failure message when locator is None
    """
    locator: str | None = None
    error:   str | None = None

    @property
    def succeeded(self) -> bool:
        return self.locator is not None


@dataclass(frozen=True)
class QuizResult:
    questions: tuple[QuizItem, ...] = ()
    malformed: bool = False

    @property
    def quiz_items(self) -> list[QuizItem] | None:
        """Persisted form: an empty quiz is stored as null."""
        return list(self.questions) if self.questions else None


# ---------------------------------------------------------------------------
# Backend contracts
# ---------------------------------------------------------------------------

class Summarizer(ABC):

    @abstractmethod
    async def summarize(self, text: str) -> str:
        ...


class QuizGenerator(ABC):

    @abstractmethod
    async def generate(self, text: str) -> QuizResult:
        ...


class SpeechSynthesizer(ABC):

    @abstractmethod
    async def synthesize(self, text: str, voice_id: str) -> bytes:
        """Return MP3 bytes narrating `text` in `voice_id`."""
