"""
Prompt templates for the generation and vision backends.

Kept as module constants: there is one active version of each prompt and
no per-owner variation.
"""

from __future__ import annotations

from typing import Final

IMAGE_EXTRACTION_PROMPT: Final[str] = (
    "Extract all text from this image. If there are diagrams, charts, or visual "
    "elements, describe them in detail for accessibility. Format your response "
    "as plain text that can be read aloud."
)

SUMMARY_SYSTEM_PROMPT: Final[str] = """\
You are an educational assistant. Create concise, accessible summaries that \
highlight key concepts and learning objectives. Make the summary suitable for \
students with disabilities.
"""

SUMMARY_USER_TEMPLATE: Final[str] = """\
Please summarize the following educational content, focusing on key concepts and main ideas:

{text}"""

QUIZ_SYSTEM_PROMPT: Final[str] = """\
You are an educational quiz generator. Create accessible multiple-choice \
questions that test understanding of key concepts. Respond with JSON in this \
format: { "questions": [{ "question": "string", "options": ["string"], \
"correctAnswer": number }] } where correctAnswer is the zero-based index of \
the correct option.
"""

QUIZ_USER_TEMPLATE: Final[str] = """\
Generate 3-5 multiple choice questions based on this content:

{text}"""
