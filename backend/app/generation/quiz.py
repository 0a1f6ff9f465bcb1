"""
Quiz Generation — LLM JSON Output → QuizItem list
═════════════════════════════════════════════════

The model is asked (in JSON mode) for:

    {"questions": [{"question": str, "options": [str, ...], "correctAnswer": int}]}

Parsing is strict about shape and lenient about transport:

  - Markdown code fences around the JSON are stripped.
  - Any decode error, missing "questions" list or invalid question makes the
    whole output malformed: the result is empty with malformed=True and a
    warning is logged. Partially valid quizzes are not stored.
  - An empty "questions" list is a valid, empty quiz.
  - Only the model call itself can raise (GenerationError).
"""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from app.core.exceptions import GenerationError
from app.generation.base import QuizGenerator, QuizResult
from app.llm.gateway import LLMGateway
from app.llm.prompts import QUIZ_SYSTEM_PROMPT, QUIZ_USER_TEMPLATE
from app.schemas.content import QuizItem

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)


class MalformedQuizError(ValueError):
    """Model output does not match the quiz shape."""


def parse_quiz_output(raw: str) -> tuple[QuizItem, ...]:
    """
    Parse raw model output into QuizItems.

    Raises:
        MalformedQuizError: output is not the documented JSON shape
    """
    cleaned = _FENCE_RE.sub("", raw.strip())
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedQuizError(f"invalid JSON: {exc}") from exc

    if not isinstance(payload, dict) or not isinstance(payload.get("questions"), list):
        raise MalformedQuizError("expected an object with a 'questions' list")

    items: list[QuizItem] = []
    for position, entry in enumerate(payload["questions"]):
        if not isinstance(entry, dict):
            raise MalformedQuizError(f"question {position} is not an object")
        try:
            items.append(
                QuizItem(
                    question_text=entry.get("question"),
                    option_texts=entry.get("options"),
                    correct_option_index=entry.get("correctAnswer"),
                )
            )
        except ValidationError as exc:
            raise MalformedQuizError(
                f"question {position} is invalid: {exc.error_count()} error(s)"
            ) from exc
    return tuple(items)


class LLMQuizGenerator(QuizGenerator):
    """3–5 multiple-choice questions about the extracted text."""

    def __init__(self, gateway: LLMGateway) -> None:
        self._gateway = gateway

    async def generate(self, text: str) -> QuizResult:
        messages = LLMGateway.build_messages(
            QUIZ_SYSTEM_PROMPT,
            QUIZ_USER_TEMPLATE.format(text=text),
        )
        try:
            response = await self._gateway.invoke(messages, json_mode=True)
        except Exception as exc:
            raise GenerationError(f"Failed to generate quiz: {exc}") from exc

        try:
            questions = parse_quiz_output(response.content)
        except MalformedQuizError as exc:
            logger.warning(
                "Quiz output malformed, storing empty quiz | reason=%s output_chars=%d",
                exc, len(response.content),
            )
            return QuizResult(questions=(), malformed=True)

        logger.info("Quiz generated | questions=%d", len(questions))
        return QuizResult(questions=questions)
