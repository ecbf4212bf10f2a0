"""Turn pasted text into questions or flashcards.

Strict JSON arrays are tried first. Anything that is not JSON falls back to
a line-oriented format, one item per blank-line separated block::

    Q: What is 2 + 2?
    A) 3
    B) 4 (correct)
    C) 5

    Front: mitochondria
    Back: powerhouse of the cell

Prefixes are matched literally; blocks that do not parse are skipped.
"""

from __future__ import annotations

import json
from typing import Any

from .errors import ImportFormatError, MalformedContent
from .models import Flashcard, Question
from .serialization import flashcard_from_dict, question_from_dict

QUESTION_PREFIXES = ("Question:", "Q:")
OPTION_LETTERS = "ABCDabcd"
CORRECT_MARKERS = ("(correct)", "(CORRECT)", "✓", "✔")
ANSWER_PREFIX = "Answer:"


def strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence, as model output often has."""
    stripped = text.strip()
    if stripped.startswith("```json"):
        stripped = stripped[7:]
    elif stripped.startswith("```"):
        stripped = stripped[3:]
    if stripped.endswith("```"):
        stripped = stripped[:-3]
    return stripped.strip()


def _decode_json_array(text: str) -> list[Any]:
    """Decode a JSON array. Raises ``json.JSONDecodeError`` when ``text`` is not JSON."""
    decoded = json.loads(text)
    if not isinstance(decoded, list):
        raise MalformedContent("Pasted JSON must be an array of items.")
    return decoded


def split_blocks(text: str) -> list[list[str]]:
    """Split on blank lines into blocks of stripped, non-empty lines."""
    blocks: list[list[str]] = []
    current: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            if current:
                blocks.append(current)
                current = []
            continue
        current.append(stripped)
    if current:
        blocks.append(current)
    return blocks


def _after_colon(line: str) -> str:
    return line[line.index(":") + 1 :].strip()


def _option_body(line: str) -> str | None:
    """Text of an option line (``A) ...`` or ``1. ...``), or None."""
    if len(line) >= 2 and line[0] in OPTION_LETTERS and line[1] == ")":
        return line[2:].strip()
    digits = 0
    while digits < len(line) and line[digits].isdigit():
        digits += 1
    if digits and digits < len(line) and line[digits] == ".":
        return line[digits + 1 :].strip()
    return None


def _strip_correct_marker(option: str) -> tuple[str, bool]:
    for marker in CORRECT_MARKERS:
        if option.endswith(marker):
            return option[: -len(marker)].strip(), True
    return option, False


def _answer_positions(value: str, option_count: int) -> list[int]:
    """Indices named on an ``Answer:`` line, e.g. ``B`` or ``A, C`` or ``2``."""
    positions: list[int] = []
    for token in value.replace(";", ",").replace(" ", ",").split(","):
        token = token.strip().rstrip(").")
        if not token:
            continue
        if len(token) == 1 and token.upper() in "ABCDEFGH":
            index = "ABCDEFGH".index(token.upper())
        elif token.isdigit():
            index = int(token) - 1
        else:
            continue
        if 0 <= index < option_count and index not in positions:
            positions.append(index)
    return positions


def _question_from_block(lines: list[str], question_id: int) -> Question | None:
    text: str | None = None
    options: list[str] = []
    marked: list[int] = []
    answer_line: str | None = None

    for line in lines:
        if line.startswith(QUESTION_PREFIXES):
            text = _after_colon(line)
            continue
        if line.startswith(ANSWER_PREFIX):
            answer_line = _after_colon(line)
            continue
        body = _option_body(line)
        if body is not None:
            option, correct = _strip_correct_marker(body)
            if correct:
                marked.append(len(options))
            options.append(option)
            continue
        if text is None:
            text = line
        elif not options:
            text = f"{text} {line}"

    if not text or len(options) < 2:
        return None
    answers = marked
    if not answers and answer_line is not None:
        answers = _answer_positions(answer_line, len(options))
    if not answers:
        answers = [0]
    return Question(id=question_id, text=text, options=options, answer_indices=answers)


def _flashcard_from_block(lines: list[str], card_id: int) -> Flashcard | None:
    front: str | None = None
    back: str | None = None
    explanation: str | None = None

    for line in lines:
        if line.startswith(("Front:", "Q:")):
            front = _after_colon(line)
        elif line.startswith(("Back:", "A:")):
            back = _after_colon(line)
        elif line.startswith("Explanation:"):
            explanation = _after_colon(line)
        elif front is None and back is None and "\t" in line:
            term, _, definition = line.partition("\t")
            front, back = term.strip(), definition.strip()
        elif front is None:
            front = line
        elif back is None:
            back = line
        elif explanation is None:
            explanation = line

    if not front or not back:
        return None
    return Flashcard(id=card_id, front=front, back=back, explanation=explanation or None)


def _require_content(text: str) -> str:
    stripped = strip_code_fence(text)
    if not stripped:
        raise ImportFormatError("No content provided.")
    return stripped


def parse_questions(text: str) -> list[Question]:
    """Parse questions from JSON or the ``Q:``/``A)`` text layout."""
    content = _require_content(text)
    try:
        raw_items = _decode_json_array(content)
    except json.JSONDecodeError:
        pass
    else:
        return [question_from_dict(item) for item in raw_items]

    questions: list[Question] = []
    for block in split_blocks(content):
        try:
            question = _question_from_block(block, len(questions) + 1)
        except MalformedContent:
            continue
        if question is not None:
            questions.append(question)

    if not questions:
        raise ImportFormatError(
            "Could not find any questions. Paste a JSON array or blocks like "
            "'Q: question' followed by options 'A) ...', 'B) ...' separated by blank lines."
        )
    return questions


def parse_flashcards(text: str) -> list[Flashcard]:
    """Parse flashcards from JSON, ``Front:``/``Back:`` blocks, or tab-separated lines."""
    content = _require_content(text)
    try:
        raw_items = _decode_json_array(content)
    except json.JSONDecodeError:
        pass
    else:
        return [flashcard_from_dict(item) for item in raw_items]

    flashcards: list[Flashcard] = []
    for block in split_blocks(content):
        card = _flashcard_from_block(block, len(flashcards) + 1)
        if card is not None:
            flashcards.append(card)

    if not flashcards:
        raise ImportFormatError(
            "Could not parse flashcards from text. "
            "Please ensure the text is in JSON format or a supported text format."
        )
    return flashcards
