"""Course CRUD, reorder, and rename operations over a key-value store."""

from __future__ import annotations

import json
import logging
import zlib
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from .errors import IndexOutOfRange, NotFoundError, PersistenceError, StudyDeckError, ValidationError
from .models import ContentKind, Course, Flashcard, Question, QuizSortingPreference, now_millis
from .results import QuizResultStore
from .serialization import decode_courses, encode_courses
from .storage import FileStore, KeyValueStore

logger = logging.getLogger(__name__)

COURSES_KEY = "studydeck_courses"

_FIELDS: dict[ContentKind, tuple[str, str]] = {
    ContentKind.QUIZ: ("quizzes", "quiz_names"),
    ContentKind.FLASHCARD_SET: ("flashcards", "flashcard_set_names"),
    ContentKind.PDF: ("pdfs", "pdf_names"),
}

_LABELS: dict[ContentKind, str] = {
    ContentKind.QUIZ: "Quiz",
    ContentKind.FLASHCARD_SET: "Flashcard set",
    ContentKind.PDF: "PDF",
}


def _check_index(course: Course, kind: ContentKind, index: int) -> None:
    length = len(course.items(kind))
    if not 0 <= index < length:
        raise IndexOutOfRange(_LABELS[kind], index, length)


def moved_order(length: int, old_index: int, new_index: int) -> list[int]:
    """Old index found at each new slot after moving ``old_index`` to ``new_index``."""
    order = list(range(length))
    moved = order.pop(old_index)
    order.insert(new_index, moved)
    return order


def apply_reorder(course: Course, kind: ContentKind, old_index: int, new_index: int, updated_at: int) -> Course:
    """Move one item and carry every name, custom or default, along with its item."""
    _check_index(course, kind, old_index)
    _check_index(course, kind, new_index)
    items = list(course.items(kind))
    item = items.pop(old_index)
    items.insert(new_index, item)
    order = moved_order(len(items), old_index, new_index)
    names = {slot: course.display_name(kind, previous) for slot, previous in enumerate(order)}
    items_field, names_field = _FIELDS[kind]
    return replace(course, **{items_field: items, names_field: names}, updated_at=updated_at)


def apply_delete(course: Course, kind: ContentKind, index: int, updated_at: int) -> Course:
    """Remove one item; names above it shift down so keys stay valid."""
    _check_index(course, kind, index)
    items = list(course.items(kind))
    del items[index]
    names: dict[int, str] = {}
    for key, name in course.names(kind).items():
        if key < index:
            names[key] = name
        elif key > index:
            names[key - 1] = name
    items_field, names_field = _FIELDS[kind]
    return replace(course, **{items_field: items, names_field: names}, updated_at=updated_at)


def apply_append(course: Course, kind: ContentKind, item: object, name: str | None, updated_at: int) -> Course:
    items = [*course.items(kind), item]
    names = dict(course.names(kind))
    if name is not None and name.strip():
        names[len(items) - 1] = name.strip()
    items_field, names_field = _FIELDS[kind]
    return replace(course, **{items_field: items, names_field: names}, updated_at=updated_at)


def apply_rename(course: Course, kind: ContentKind, index: int, new_name: str, updated_at: int) -> Course:
    trimmed = new_name.strip()
    if not trimmed:
        raise ValidationError(f"{_LABELS[kind]} name cannot be empty.")
    _check_index(course, kind, index)
    names = {**course.names(kind), index: trimmed}
    _, names_field = _FIELDS[kind]
    return replace(course, **{names_field: names}, updated_at=updated_at)


class CourseStore:
    """Owns every mutation of the stored course list.

    Each mutation reads the whole list, changes one course, and writes the
    whole list back. Callers must await one mutation before issuing the next.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        files: FileStore,
        pdf_root: Path | str,
        results: QuizResultStore | None = None,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self._kv = kv
        self._files = files
        self._pdf_root = Path(pdf_root)
        self._results = results
        self._clock = clock

    async def list_courses(self) -> list[Course]:
        """Return all stored courses in creation order."""
        raw = await self._kv.get_string(COURSES_KEY)
        if not raw:
            return []
        try:
            return decode_courses(raw)
        except (json.JSONDecodeError, StudyDeckError) as exc:
            logger.warning("Stored course list is unreadable", exc_info=True)
            raise PersistenceError(f"Stored course list is unreadable: {exc}") from exc

    async def _save(self, courses: list[Course]) -> None:
        await self._kv.set_string(COURSES_KEY, encode_courses(courses))

    async def get_course(self, course_id: str) -> Course:
        for course in await self.list_courses():
            if course.id == course_id:
                return course
        raise NotFoundError(f"Course with id {course_id} not found.")

    async def _mutate(self, course_id: str, change: Callable[[Course], Course]) -> Course:
        """Apply ``change`` to one course and persist the full list."""
        courses = await self.list_courses()
        for position, course in enumerate(courses):
            if course.id == course_id:
                updated = change(course)
                courses[position] = updated
                await self._save(courses)
                return updated
        raise NotFoundError(f"Course with id {course_id} not found.")

    async def create_course(self, name: str) -> Course:
        trimmed = name.strip()
        if not trimmed:
            raise ValidationError("Course name cannot be empty.")
        now = self._clock()
        course = Course(
            id=f"course_{now}_{zlib.crc32(trimmed.encode('utf-8'))}",
            name=trimmed,
            created_at=now,
            updated_at=now,
        )
        courses = await self.list_courses()
        courses.append(course)
        await self._save(courses)
        logger.info("Created course %s (%s)", course.id, trimmed)
        return course

    async def rename_course(self, course_id: str, new_name: str) -> Course:
        trimmed = new_name.strip()
        if not trimmed:
            raise ValidationError("Course name cannot be empty.")
        return await self._mutate(course_id, lambda course: replace(course, name=trimmed, updated_at=self._clock()))

    async def update_course(self, course: Course) -> None:
        """Replace the stored course with the same id, or append it."""
        courses = await self.list_courses()
        for position, existing in enumerate(courses):
            if existing.id == course.id:
                courses[position] = replace(course, updated_at=self._clock())
                break
        else:
            courses.append(course)
        await self._save(courses)

    async def delete_course(self, course_id: str) -> None:
        """Delete a course, its copied PDFs, and its quiz history."""
        courses = await self.list_courses()
        remaining = [course for course in courses if course.id != course_id]
        if len(remaining) == len(courses):
            raise NotFoundError(f"Course with id {course_id} not found.")
        removed = next(course for course in courses if course.id == course_id)
        await self._save(remaining)
        for path in removed.pdfs:
            await self._files.delete_file(path)
        if self._results is not None:
            await self._results.delete_for_course(course_id)
        logger.info("Deleted course %s", course_id)

    async def add_quiz(self, course_id: str, questions: list[Question], name: str | None = None) -> int:
        """Append a quiz and return its index."""
        if not questions:
            raise ValidationError("A quiz needs at least one question.")
        course = await self._mutate(
            course_id, lambda course: apply_append(course, ContentKind.QUIZ, list(questions), name, self._clock())
        )
        logger.info("Added quiz with %d question(s) to course %s", len(questions), course_id)
        return course.quiz_count - 1

    async def add_flashcard_set(self, course_id: str, flashcards: list[Flashcard], name: str | None = None) -> int:
        """Append a flashcard set and return its index."""
        if not flashcards:
            raise ValidationError("A flashcard set needs at least one card.")
        course = await self._mutate(
            course_id,
            lambda course: apply_append(course, ContentKind.FLASHCARD_SET, list(flashcards), name, self._clock()),
        )
        logger.info("Added flashcard set with %d card(s) to course %s", len(flashcards), course_id)
        return course.flashcard_set_count - 1

    async def add_pdf(self, course_id: str, source_path: str, name: str | None = None) -> str:
        """Copy a PDF into the course directory and return the stored path."""
        await self.get_course(course_id)
        destination = await self._files.copy_file(source_path, str(self._pdf_root / course_id))
        try:
            await self._mutate(
                course_id, lambda course: apply_append(course, ContentKind.PDF, destination, name, self._clock())
            )
        except (StudyDeckError, OSError):
            await self._files.delete_file(destination)
            raise
        logger.info("Added PDF %s to course %s", destination, course_id)
        return destination

    async def delete_item(self, course_id: str, kind: ContentKind, index: int) -> Course:
        kind = ContentKind(kind)
        removed_path: str | None = None

        def change(course: Course) -> Course:
            nonlocal removed_path
            updated = apply_delete(course, kind, index, self._clock())
            if kind is ContentKind.PDF:
                removed_path = course.pdfs[index]
            return updated

        course = await self._mutate(course_id, change)
        if removed_path is not None:
            await self._files.delete_file(removed_path)
        logger.info("Deleted %s %d from course %s", kind, index, course_id)
        return course

    async def delete_quiz(self, course_id: str, index: int) -> Course:
        return await self.delete_item(course_id, ContentKind.QUIZ, index)

    async def delete_flashcard_set(self, course_id: str, index: int) -> Course:
        return await self.delete_item(course_id, ContentKind.FLASHCARD_SET, index)

    async def delete_pdf(self, course_id: str, index: int) -> Course:
        return await self.delete_item(course_id, ContentKind.PDF, index)

    async def reorder(self, course_id: str, kind: ContentKind, old_index: int, new_index: int) -> Course:
        kind = ContentKind(kind)
        course = await self._mutate(
            course_id, lambda course: apply_reorder(course, kind, old_index, new_index, self._clock())
        )
        logger.info("Reordered %s %d -> %d in course %s", kind, old_index, new_index, course_id)
        return course

    async def reorder_quiz(self, course_id: str, old_index: int, new_index: int) -> Course:
        return await self.reorder(course_id, ContentKind.QUIZ, old_index, new_index)

    async def reorder_flashcard_set(self, course_id: str, old_index: int, new_index: int) -> Course:
        return await self.reorder(course_id, ContentKind.FLASHCARD_SET, old_index, new_index)

    async def reorder_pdf(self, course_id: str, old_index: int, new_index: int) -> Course:
        return await self.reorder(course_id, ContentKind.PDF, old_index, new_index)

    async def rename(self, course_id: str, kind: ContentKind, index: int, new_name: str) -> Course:
        kind = ContentKind(kind)
        if not new_name.strip():
            raise ValidationError(f"{_LABELS[kind]} name cannot be empty.")
        return await self._mutate(
            course_id, lambda course: apply_rename(course, kind, index, new_name, self._clock())
        )

    async def toggle_quiz_sorting_preference(self, course_id: str) -> QuizSortingPreference:
        course = await self._mutate(
            course_id,
            lambda course: replace(
                course,
                quiz_sorting_preference=course.quiz_sorting_preference.toggled(),
                updated_at=self._clock(),
            ),
        )
        return course.quiz_sorting_preference
