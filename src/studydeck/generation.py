"""Quiz and flashcard generation from PDF text through external collaborators.

Neither the language model nor PDF parsing lives here. This module builds
prompts, enforces preconditions, and decodes the model's JSON reply.
"""

from __future__ import annotations

import json
import logging
from typing import Protocol

from .config import GenerationSettings
from .errors import GenerationError
from .models import Flashcard, Question
from .serialization import flashcard_from_dict, question_from_dict
from .text_import import strip_code_fence

logger = logging.getLogger(__name__)


class PdfTextExtractor(Protocol):
    """Returns plain text of a PDF, or an empty string when it cannot be read."""

    async def extract_text(self, path: str) -> str: ...


class ContentGenerator(Protocol):
    """Sends a prompt to a language model and returns its raw text reply."""

    async def generate(self, prompt: str, settings: GenerationSettings) -> str: ...


def truncate_text(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars]


def build_quiz_prompt(text: str, count: int) -> str:
    return f"""You are an expert quiz generator. Generate exactly {count} multiple-choice questions based on the following study material.

Study Material:
{text}

Generate questions in the following JSON format (array of question objects):
[
  {{
    "id": 1,
    "text": "Question text here?",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "answerIndices": [0],
    "explanation": "Brief explanation of why the correct answer is correct."
  }}
]

Requirements:
- Generate exactly {count} questions
- Each question must have exactly 4 options
- answerIndices lists the 0-based positions of every correct option
- Each question must include a concise "explanation" referencing the material
- Return ONLY valid JSON, no additional text

Return the JSON array now:
"""


def build_flashcard_prompt(text: str, count: int) -> str:
    return f"""You are an expert study assistant. Create exactly {count} flashcards based on the following study material.

Study Material:
{text}

Return flashcards in the following JSON format (array of flashcard objects):
[
  {{
    "id": 1,
    "front": "Term or question",
    "back": "Definition or answer",
    "explanation": "Optional extra context, or null"
  }}
]

Requirements:
- Generate exactly {count} flashcards
- Keep the front short and the back precise
- Return ONLY valid JSON, no additional text

Return the JSON array now:
"""


def _decode_reply(reply: str, what: str) -> list[object]:
    try:
        decoded = json.loads(strip_code_fence(reply))
    except json.JSONDecodeError as exc:
        raise GenerationError(f"Could not parse generated {what}: {exc}") from exc
    if not isinstance(decoded, list):
        raise GenerationError(f"Generated {what} response is not a JSON array.")
    if not decoded:
        raise GenerationError(f"No {what} were generated.")
    return decoded


async def _source_text(extractor: PdfTextExtractor, settings: GenerationSettings, pdf_path: str) -> str:
    if not settings.has_api_key:
        raise GenerationError("No API key configured. Set STUDYDECK_API_KEY to enable generation.")
    text = (await extractor.extract_text(pdf_path)).strip()
    if not text:
        raise GenerationError(f"No text could be extracted from {pdf_path}.")
    return truncate_text(text, settings.max_text_chars)


async def generate_questions(
    extractor: PdfTextExtractor,
    generator: ContentGenerator,
    settings: GenerationSettings,
    pdf_path: str,
    count: int | None = None,
) -> list[Question]:
    """Generate a quiz from a PDF. Generator failures propagate unchanged."""
    text = await _source_text(extractor, settings, pdf_path)
    requested = count or settings.question_count
    logger.info("Requesting %d questions from %s for %s", requested, settings.model, pdf_path)
    reply = await generator.generate(build_quiz_prompt(text, requested), settings)
    return [question_from_dict(item) for item in _decode_reply(reply, "questions")]


async def generate_flashcards(
    extractor: PdfTextExtractor,
    generator: ContentGenerator,
    settings: GenerationSettings,
    pdf_path: str,
    count: int | None = None,
) -> list[Flashcard]:
    """Generate a flashcard set from a PDF. Generator failures propagate unchanged."""
    text = await _source_text(extractor, settings, pdf_path)
    requested = count or settings.flashcard_count
    logger.info("Requesting %d flashcards from %s for %s", requested, settings.model, pdf_path)
    reply = await generator.generate(build_flashcard_prompt(text, requested), settings)
    return [flashcard_from_dict(item) for item in _decode_reply(reply, "flashcards")]
