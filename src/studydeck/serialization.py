"""Convert content models to and from their JSON wire format."""

from __future__ import annotations

import json
from typing import Any

from .errors import MalformedContent
from .models import Course, Flashcard, Question, QuizResult, QuizSortingPreference, now_millis


def _require(raw: dict[str, Any], key: str, kind: type, what: str) -> Any:
    """Return ``raw[key]`` after checking presence and type."""
    if key not in raw:
        raise MalformedContent(f"{what} is missing required field '{key}'.")
    value = raw[key]
    # bool is an int subclass; never accept it where a number is expected.
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise MalformedContent(f"{what} field '{key}' must be {kind.__name__}, got {type(value).__name__}.")
    return value


def _optional_str(raw: dict[str, Any], key: str, what: str) -> str | None:
    value = raw.get(key)
    if value is not None and not isinstance(value, str):
        raise MalformedContent(f"{what} field '{key}' must be a string or null.")
    return value


def _as_object(raw: object, what: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise MalformedContent(f"{what} must be a JSON object, got {type(raw).__name__}.")
    return raw


def question_from_dict(raw: object) -> Question:
    """Build a question from decoded JSON, accepting legacy ``answerIndex``."""
    data = _as_object(raw, "Question")
    what = f"Question {data.get('id', '<unknown>')}"
    options = _require(data, "options", list, what)
    if not all(isinstance(option, str) for option in options):
        raise MalformedContent(f"{what} options must all be strings.")

    if "answerIndices" in data:
        indices = _require(data, "answerIndices", list, what)
    elif "answerIndex" in data:
        indices = [_require(data, "answerIndex", int, what)]
    else:
        raise MalformedContent(f"{what} must contain either answerIndex or answerIndices.")
    if not all(isinstance(index, int) and not isinstance(index, bool) for index in indices):
        raise MalformedContent(f"{what} answer indices must all be integers.")

    return Question(
        id=_require(data, "id", int, what),
        text=_require(data, "text", str, what),
        options=list(options),
        answer_indices=list(indices),
        explanation=_optional_str(data, "explanation", what),
    )


def question_to_dict(question: Question) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": question.id,
        "text": question.text,
        "options": list(question.options),
        "answerIndices": list(question.answer_indices),
    }
    if question.explanation is not None:
        payload["explanation"] = question.explanation
    return payload


def flashcard_from_dict(raw: object) -> Flashcard:
    data = _as_object(raw, "Flashcard")
    what = f"Flashcard {data.get('id', '<unknown>')}"
    return Flashcard(
        id=_require(data, "id", int, what),
        front=_require(data, "front", str, what),
        back=_require(data, "back", str, what),
        explanation=_optional_str(data, "explanation", what),
    )


def flashcard_to_dict(card: Flashcard) -> dict[str, Any]:
    return {"id": card.id, "front": card.front, "back": card.back, "explanation": card.explanation}


def _names_from_json(raw: object, what: str) -> dict[int, str]:
    """Decode a position-keyed name map; JSON object keys arrive as strings."""
    if raw is None:
        return {}
    data = _as_object(raw, what)
    names: dict[int, str] = {}
    for key, value in data.items():
        try:
            index = int(key)
        except (TypeError, ValueError):
            raise MalformedContent(f"{what} key {key!r} is not an index.") from None
        if not isinstance(value, str):
            raise MalformedContent(f"{what}[{key}] must be a string.")
        names[index] = value
    return names


def _names_to_json(names: dict[int, str]) -> dict[str, str]:
    return {str(index): names[index] for index in sorted(names)}


def _list_field(data: dict[str, Any], key: str, what: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedContent(f"{what} field '{key}' must be a list.")
    return value


def course_from_dict(raw: object) -> Course:
    """Build a course from one element of the stored course array."""
    data = _as_object(raw, "Course")
    what = f"Course {data.get('id', '<unknown>')}"
    quizzes = []
    for quiz in _list_field(data, "quizzes", what):
        if not isinstance(quiz, list):
            raise MalformedContent(f"{what} quiz entries must be lists of questions.")
        quizzes.append([question_from_dict(item) for item in quiz])
    flashcards = []
    for card_set in _list_field(data, "flashcards", what):
        if not isinstance(card_set, list):
            raise MalformedContent(f"{what} flashcard entries must be lists of flashcards.")
        flashcards.append([flashcard_from_dict(item) for item in card_set])
    pdfs = _list_field(data, "pdfs", what)
    if not all(isinstance(path, str) for path in pdfs):
        raise MalformedContent(f"{what} pdf paths must be strings.")

    raw_preference = data.get("quizSortingPreference", QuizSortingPreference.RANDOM.value)
    try:
        preference = QuizSortingPreference(raw_preference)
    except ValueError:
        raise MalformedContent(f"{what} has unknown quizSortingPreference {raw_preference!r}.") from None

    now = now_millis()
    created_at = data.get("createdAt")
    updated_at = data.get("updatedAt")
    return Course(
        id=_require(data, "id", str, what),
        name=_require(data, "name", str, what),
        quizzes=quizzes,
        flashcards=flashcards,
        pdfs=list(pdfs),
        quiz_names=_names_from_json(data.get("quizNames"), f"{what} quizNames"),
        flashcard_set_names=_names_from_json(data.get("flashcardSetNames"), f"{what} flashcardSetNames"),
        pdf_names=_names_from_json(data.get("pdfNames"), f"{what} pdfNames"),
        quiz_sorting_preference=preference,
        created_at=created_at if isinstance(created_at, int) else now,
        updated_at=updated_at if isinstance(updated_at, int) else now,
    )


def course_to_dict(course: Course) -> dict[str, Any]:
    return {
        "id": course.id,
        "name": course.name,
        "quizzes": [[question_to_dict(question) for question in quiz] for quiz in course.quizzes],
        "flashcards": [[flashcard_to_dict(card) for card in card_set] for card_set in course.flashcards],
        "pdfs": list(course.pdfs),
        "quizNames": _names_to_json(course.quiz_names),
        "flashcardSetNames": _names_to_json(course.flashcard_set_names),
        "pdfNames": _names_to_json(course.pdf_names),
        "quizSortingPreference": course.quiz_sorting_preference.value,
        "createdAt": course.created_at,
        "updatedAt": course.updated_at,
    }


def quiz_result_from_dict(raw: object) -> QuizResult:
    data = _as_object(raw, "QuizResult")
    what = "QuizResult"
    duration = data.get("duration")
    if duration is not None and (not isinstance(duration, int) or isinstance(duration, bool)):
        raise MalformedContent("QuizResult field 'duration' must be an integer or null.")
    return QuizResult(
        course_id=_require(data, "courseId", str, what),
        quiz_index=_require(data, "quizIndex", int, what),
        quiz_name=_require(data, "quizName", str, what),
        score=_require(data, "score", int, what),
        total_questions=_require(data, "totalQuestions", int, what),
        timestamp=_require(data, "timestamp", int, what),
        duration=duration,
    )


def quiz_result_to_dict(result: QuizResult) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "courseId": result.course_id,
        "quizIndex": result.quiz_index,
        "quizName": result.quiz_name,
        "score": result.score,
        "totalQuestions": result.total_questions,
        "percentage": result.percentage,
        "timestamp": result.timestamp,
    }
    if result.duration is not None:
        payload["duration"] = result.duration
    return payload


def _decode_array(text: str, what: str) -> list[Any]:
    """Decode stored JSON that must be an array. Raises ``json.JSONDecodeError``."""
    decoded = json.loads(text)
    if not isinstance(decoded, list):
        raise MalformedContent(f"Stored {what} must be a JSON array.")
    return decoded


def decode_courses(text: str) -> list[Course]:
    return [course_from_dict(item) for item in _decode_array(text, "courses")]


def encode_courses(courses: list[Course]) -> str:
    return json.dumps([course_to_dict(course) for course in courses])


def decode_quiz_results(text: str) -> list[QuizResult]:
    return [quiz_result_from_dict(item) for item in _decode_array(text, "quiz results")]


def encode_quiz_results(results: list[QuizResult]) -> str:
    return json.dumps([quiz_result_to_dict(result) for result in results])
