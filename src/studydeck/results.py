"""Append-only quiz attempt history, stored per course."""

from __future__ import annotations

import json
import logging

from .errors import PersistenceError, StudyDeckError
from .models import QuizResult
from .serialization import decode_quiz_results, encode_quiz_results
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


def results_key(course_id: str) -> str:
    return f"quiz_results_{course_id}"


class QuizResultStore:
    """Reads and appends quiz results through a key-value store."""

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    async def _load(self, course_id: str) -> list[QuizResult]:
        raw = await self._kv.get_string(results_key(course_id))
        if not raw:
            return []
        try:
            return decode_quiz_results(raw)
        except (json.JSONDecodeError, StudyDeckError) as exc:
            raise PersistenceError(f"Stored quiz results for course {course_id} are unreadable: {exc}") from exc

    async def save(self, result: QuizResult) -> None:
        """Append one result; history stays in chronological order."""
        results = await self._load(result.course_id)
        results.append(result)
        await self._kv.set_string(results_key(result.course_id), encode_quiz_results(results))
        logger.info(
            "Saved result %d/%d for quiz %d in course %s",
            result.score,
            result.total_questions,
            result.quiz_index,
            result.course_id,
        )

    async def for_course(self, course_id: str) -> list[QuizResult]:
        return await self._load(course_id)

    async def for_quiz(self, course_id: str, quiz_index: int) -> list[QuizResult]:
        return [result for result in await self._load(course_id) if result.quiz_index == quiz_index]

    async def most_recent(self, course_id: str, quiz_index: int) -> QuizResult | None:
        results = await self.for_quiz(course_id, quiz_index)
        if not results:
            return None
        return max(results, key=lambda item: item.timestamp)

    async def average_percentage(self, course_id: str, quiz_index: int) -> float | None:
        results = await self.for_quiz(course_id, quiz_index)
        if not results:
            return None
        return sum(result.percentage for result in results) / len(results)

    async def delete_for_course(self, course_id: str) -> None:
        await self._kv.remove(results_key(course_id))
        logger.info("Deleted quiz history for course %s", course_id)


def performance_by_quiz(results: list[QuizResult]) -> dict[str, float]:
    """Average percentage per quiz, labelled with the newest name snapshot."""
    grouped: dict[int, list[QuizResult]] = {}
    for result in results:
        grouped.setdefault(result.quiz_index, []).append(result)

    performance: dict[str, float] = {}
    for quiz_index in sorted(grouped):
        attempts = grouped[quiz_index]
        label = max(attempts, key=lambda item: item.timestamp).quiz_name
        if label in performance:
            label = f"{label} (#{quiz_index + 1})"
        performance[label] = sum(item.percentage for item in attempts) / len(attempts)
    return performance
