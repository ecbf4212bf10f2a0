"""In-memory course view with optimistic updates over a ``CourseStore``."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from .config import GenerationSettings
from .course_store import CourseStore, apply_reorder
from .errors import StudyDeckError
from .generation import ContentGenerator, PdfTextExtractor, generate_flashcards, generate_questions
from .models import ContentKind, Course, now_millis
from .text_import import parse_flashcards, parse_questions

logger = logging.getLogger(__name__)

LibraryListener = Callable[["CourseLibrary"], None]


class CourseLibrary:
    """Keeps the loaded course list and the selected course in sync with storage.

    Operations return ``True``/``False`` and leave a user-facing message in
    ``error`` on failure. Reorders update memory first; if persisting fails,
    the optimistic state is dropped and everything is reloaded from storage.
    """

    def __init__(
        self,
        store: CourseStore,
        extractor: PdfTextExtractor | None = None,
        generator: ContentGenerator | None = None,
        generation: GenerationSettings | None = None,
    ) -> None:
        self.store = store
        self.extractor = extractor
        self.generator = generator
        self.generation = generation or GenerationSettings()
        self.courses: list[Course] = []
        self.selected: Course | None = None
        self.error: str | None = None
        self._listeners: list[LibraryListener] = []

    def subscribe(self, listener: LibraryListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _fail(self, message: str, exc: BaseException) -> bool:
        logger.warning("%s: %s", message, exc, exc_info=True)
        self.error = f"{message}: {exc}"
        self._notify()
        return False

    async def reload(self) -> bool:
        """Load all courses; keeps the selection if that course still exists."""
        try:
            courses = await self.store.list_courses()
        except (StudyDeckError, OSError) as exc:
            return self._fail("Failed to load courses", exc)
        self.courses = courses
        selected_id = self.selected.id if self.selected else None
        self.selected = next((course for course in courses if course.id == selected_id), None)
        self._notify()
        return True

    def select(self, course_id: str | None) -> Course | None:
        self.selected = next((course for course in self.courses if course.id == course_id), None)
        self.error = None
        self._notify()
        return self.selected

    def clear_error(self) -> None:
        self.error = None
        self._notify()

    async def create_course(self, name: str) -> bool:
        if not name.strip():
            return False
        try:
            course = await self.store.create_course(name)
        except (StudyDeckError, OSError) as exc:
            return self._fail("Failed to create course", exc)
        await self.reload()
        self.select(course.id)
        return True

    async def delete_course(self, course_id: str) -> bool:
        try:
            await self.store.delete_course(course_id)
        except (StudyDeckError, OSError) as exc:
            return self._fail("Failed to delete course", exc)
        if self.selected is not None and self.selected.id == course_id:
            self.selected = None
        return await self.reload()

    def _replace_local(self, course: Course) -> None:
        self.courses = [course if existing.id == course.id else existing for existing in self.courses]
        if self.selected is not None and self.selected.id == course.id:
            self.selected = course

    async def reorder(self, kind: ContentKind, old_index: int, new_index: int) -> bool:
        """Move an item of the selected course, showing the result before it is saved."""
        if self.selected is None:
            return False
        course_id = self.selected.id
        try:
            optimistic = apply_reorder(self.selected, ContentKind(kind), old_index, new_index, now_millis())
        except StudyDeckError as exc:
            return self._fail("Cannot reorder", exc)
        self._replace_local(optimistic)
        self._notify()
        try:
            persisted = await self.store.reorder(course_id, kind, old_index, new_index)
        except (StudyDeckError, OSError) as exc:
            logger.warning("Reorder of %s in course %s failed; reloading", kind, course_id)
            self.error = f"Failed to save new order: {exc}"
            await self.reload()
            return False
        self._replace_local(persisted)
        self._notify()
        return True

    async def _run(self, message: str, operation: Callable[[str], Awaitable[object]]) -> bool:
        """Await ``operation(course_id)`` for the selected course, then reload."""
        if self.selected is None:
            return False
        try:
            await operation(self.selected.id)
        except (StudyDeckError, OSError) as exc:
            return self._fail(message, exc)
        self.error = None
        return await self.reload()

    async def rename(self, kind: ContentKind, index: int, new_name: str) -> bool:
        if not new_name.strip():
            return False
        return await self._run("Failed to rename", lambda cid: self.store.rename(cid, kind, index, new_name))

    async def delete_item(self, kind: ContentKind, index: int) -> bool:
        return await self._run("Failed to delete", lambda cid: self.store.delete_item(cid, kind, index))

    async def toggle_sorting(self) -> bool:
        return await self._run("Failed to change sorting", self.store.toggle_quiz_sorting_preference)

    async def import_quiz_text(self, text: str, name: str | None = None) -> bool:
        try:
            questions = parse_questions(text)
        except StudyDeckError as exc:
            return self._fail("Could not import quiz", exc)
        return await self._run("Failed to save quiz", lambda cid: self.store.add_quiz(cid, questions, name))

    async def import_flashcard_text(self, text: str, name: str | None = None) -> bool:
        try:
            cards = parse_flashcards(text)
        except StudyDeckError as exc:
            return self._fail("Could not import flashcards", exc)
        return await self._run(
            "Failed to save flashcards", lambda cid: self.store.add_flashcard_set(cid, cards, name)
        )

    async def add_pdf(self, source_path: str, name: str | None = None) -> bool:
        return await self._run(
            "Unable to add that PDF file", lambda cid: self.store.add_pdf(cid, source_path, name)
        )

    def _generation_source(self, pdf_index: int) -> tuple[Course, str] | None:
        """Selected course and PDF path to generate from, or None with ``error`` set."""
        if self.selected is None:
            return None
        if self.extractor is None or self.generator is None:
            self.error = "Content generation is not configured."
            self._notify()
            return None
        if not 0 <= pdf_index < self.selected.pdf_count:
            self.error = f"PDF index {pdf_index} out of range."
            self._notify()
            return None
        return self.selected, self.selected.pdfs[pdf_index]

    async def generate_quiz_from_pdf(self, pdf_index: int, count: int | None = None) -> bool:
        source = self._generation_source(pdf_index)
        if source is None or self.extractor is None or self.generator is None:
            return False
        course, pdf_path = source
        try:
            questions = await generate_questions(self.extractor, self.generator, self.generation, pdf_path, count)
            await self.store.add_quiz(course.id, questions, f"{course.pdf_name(pdf_index)} quiz")
        except Exception as exc:
            # Generator errors are surfaced verbatim, whatever their type.
            return self._fail("Failed to generate questions", exc)
        return await self.reload()

    async def generate_flashcards_from_pdf(self, pdf_index: int, count: int | None = None) -> bool:
        source = self._generation_source(pdf_index)
        if source is None or self.extractor is None or self.generator is None:
            return False
        course, pdf_path = source
        try:
            cards = await generate_flashcards(self.extractor, self.generator, self.generation, pdf_path, count)
            await self.store.add_flashcard_set(course.id, cards, f"{course.pdf_name(pdf_index)} cards")
        except Exception as exc:
            # Generator errors are surfaced verbatim, whatever their type.
            return self._fail("Failed to generate flashcards", exc)
        return await self.reload()
