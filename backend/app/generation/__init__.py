"""
Generation Package — summaries, narration and quizzes derived from text.
"""

from app.generation.base import (
    AudioResult,
    QuizGenerator,
    QuizResult,
    SpeechSynthesizer,
    Summarizer,
    SummaryResult,
)
from app.generation.quiz import LLMQuizGenerator
from app.generation.speech import OpenAISpeechSynthesizer
from app.generation.summarizer import LLMSummarizer

__all__ = [
    "AudioResult",
    "QuizGenerator",
    "QuizResult",
    "SpeechSynthesizer",
    "Summarizer",
    "SummaryResult",
    "LLMQuizGenerator",
    "OpenAISpeechSynthesizer",
    "LLMSummarizer",
]
