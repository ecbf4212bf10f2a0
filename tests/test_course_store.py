import asyncio
from pathlib import Path

import pytest

from studydeck.course_store import COURSES_KEY, CourseStore, apply_delete, apply_reorder, moved_order
from studydeck.errors import IndexOutOfRange, NotFoundError, PersistenceError, ValidationError
from studydeck.models import ContentKind, Course, Flashcard, Question, QuizResult, QuizSortingPreference
from studydeck.results import QuizResultStore, results_key
from studydeck.storage import MemoryKeyValueStore


def _questions(label: str) -> list[Question]:
    return [Question(id=1, text=f"{label}?", options=["yes", "no"], answer_indices=[0])]


def _course_with_quizzes(store: CourseStore, names: list[str]) -> str:
    async def build() -> str:
        course = await store.create_course("Physics")
        for name in names:
            await store.add_quiz(course.id, _questions(name), name=name)
        return course.id

    return asyncio.run(build())


def test_create_course_trims_name_and_persists(store: CourseStore, kv: MemoryKeyValueStore) -> None:
    course = asyncio.run(store.create_course("  Algebra  "))
    assert course.name == "Algebra"
    assert course.id.startswith("course_")
    assert course.created_at == course.updated_at
    assert COURSES_KEY in kv.data
    assert asyncio.run(store.list_courses()) == [course]


def test_create_course_rejects_blank_name(store: CourseStore, kv: MemoryKeyValueStore) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(store.create_course("   "))
    assert kv.data == {}


def test_get_course_unknown_id(store: CourseStore) -> None:
    with pytest.raises(NotFoundError, match="missing"):
        asyncio.run(store.get_course("missing"))


def test_rename_course(store: CourseStore) -> None:
    course = asyncio.run(store.create_course("Old"))
    renamed = asyncio.run(store.rename_course(course.id, " New "))
    assert renamed.name == "New"
    assert renamed.updated_at > course.updated_at
    with pytest.raises(ValidationError):
        asyncio.run(store.rename_course(course.id, ""))


def test_update_course_replaces_or_appends(store: CourseStore) -> None:
    course = asyncio.run(store.create_course("One"))
    asyncio.run(store.update_course(Course(id=course.id, name="Changed", created_at=1, updated_at=1)))
    extra = Course(id="imported", name="Imported", created_at=2, updated_at=2)
    asyncio.run(store.update_course(extra))
    courses = asyncio.run(store.list_courses())
    assert [item.name for item in courses] == ["Changed", "Imported"]
    assert courses[0].updated_at > 1


def test_add_quiz_returns_index_and_stores_name(store: CourseStore) -> None:
    course_id = _course_with_quizzes(store, ["Intro"])
    index = asyncio.run(store.add_quiz(course_id, _questions("second")))
    course = asyncio.run(store.get_course(course_id))
    assert index == 1
    assert course.quiz_name(0) == "Intro"
    assert course.quiz_name(1) == "Quiz 2"


def test_add_empty_quiz_or_flashcard_set_is_rejected(store: CourseStore) -> None:
    course = asyncio.run(store.create_course("Empty"))
    with pytest.raises(ValidationError):
        asyncio.run(store.add_quiz(course.id, []))
    with pytest.raises(ValidationError):
        asyncio.run(store.add_flashcard_set(course.id, []))


def test_add_flashcard_set(store: CourseStore) -> None:
    course = asyncio.run(store.create_course("Lang"))
    cards = [Flashcard(id=1, front="hola", back="hello")]
    index = asyncio.run(store.add_flashcard_set(course.id, cards, name="Greetings"))
    stored = asyncio.run(store.get_course(course.id))
    assert index == 0
    assert stored.flashcards == [cards]
    assert stored.flashcard_set_name(0) == "Greetings"


def test_reorder_carries_names_with_items(store: CourseStore) -> None:
    course_id = _course_with_quizzes(store, ["A", "B", "C"])
    course = asyncio.run(store.reorder_quiz(course_id, 0, 2))
    assert [quiz[0].text for quiz in course.quizzes] == ["B?", "C?", "A?"]
    assert course.quiz_names == {0: "B", 1: "C", 2: "A"}
    assert asyncio.run(store.get_course(course_id)) == course


def test_reorder_materializes_default_names(store: CourseStore) -> None:
    course = asyncio.run(store.create_course("Defaults"))
    for label in ("x", "y"):
        asyncio.run(store.add_quiz(course.id, _questions(label)))
    moved = asyncio.run(store.reorder(course.id, ContentKind.QUIZ, 1, 0))
    assert moved.quiz_names == {0: "Quiz 2", 1: "Quiz 1"}


def test_reorder_out_of_range_leaves_course_unchanged(store: CourseStore) -> None:
    course_id = _course_with_quizzes(store, ["A", "B"])
    before = asyncio.run(store.get_course(course_id))
    with pytest.raises(IndexOutOfRange):
        asyncio.run(store.reorder_quiz(course_id, 0, 5))
    assert asyncio.run(store.get_course(course_id)) == before


def test_delete_quiz_shifts_names_down(store: CourseStore) -> None:
    course_id = _course_with_quizzes(store, ["A", "B", "C"])
    course = asyncio.run(store.delete_quiz(course_id, 1))
    assert [quiz[0].text for quiz in course.quizzes] == ["A?", "C?"]
    assert course.quiz_names == {0: "A", 1: "C"}


def test_delete_quiz_out_of_range(store: CourseStore) -> None:
    course_id = _course_with_quizzes(store, ["A"])
    before = asyncio.run(store.get_course(course_id))
    with pytest.raises(IndexOutOfRange, match="99"):
        asyncio.run(store.delete_quiz(course_id, 99))
    assert asyncio.run(store.get_course(course_id)) == before


def test_rename_item(store: CourseStore) -> None:
    course_id = _course_with_quizzes(store, ["A"])
    course = asyncio.run(store.rename(course_id, ContentKind.QUIZ, 0, "  Final  "))
    assert course.quiz_name(0) == "Final"
    with pytest.raises(ValidationError):
        asyncio.run(store.rename(course_id, ContentKind.QUIZ, 0, " "))
    with pytest.raises(IndexOutOfRange):
        asyncio.run(store.rename(course_id, ContentKind.QUIZ, 3, "Nope"))


def test_toggle_quiz_sorting_preference(store: CourseStore) -> None:
    course = asyncio.run(store.create_course("Sort"))
    assert course.quiz_sorting_preference is QuizSortingPreference.RANDOM
    assert asyncio.run(store.toggle_quiz_sorting_preference(course.id)) is QuizSortingPreference.SEQUENTIAL
    assert asyncio.run(store.toggle_quiz_sorting_preference(course.id)) is QuizSortingPreference.RANDOM


def test_add_and_delete_pdf(store: CourseStore, tmp_path: Path) -> None:
    source = tmp_path / "notes.pdf"
    source.write_bytes(b"%PDF-1.4 test")
    course = asyncio.run(store.create_course("Docs"))

    stored_path = asyncio.run(store.add_pdf(course.id, str(source)))
    assert Path(stored_path).read_bytes() == b"%PDF-1.4 test"
    assert Path(stored_path).parent == tmp_path / "courses" / course.id
    stored = asyncio.run(store.get_course(course.id))
    assert stored.pdfs == [stored_path]
    assert stored.pdf_name(0) == "notes.pdf"

    asyncio.run(store.delete_pdf(course.id, 0))
    assert not Path(stored_path).exists()
    assert asyncio.run(store.get_course(course.id)).pdfs == []
    assert source.exists()


def test_add_pdf_missing_source(store: CourseStore, tmp_path: Path) -> None:
    course = asyncio.run(store.create_course("Docs"))
    with pytest.raises(PersistenceError):
        asyncio.run(store.add_pdf(course.id, str(tmp_path / "absent.pdf")))
    assert asyncio.run(store.get_course(course.id)).pdfs == []


def test_delete_course_removes_files_and_history(
    store: CourseStore, kv: MemoryKeyValueStore, tmp_path: Path
) -> None:
    source = tmp_path / "slides.pdf"
    source.write_bytes(b"%PDF")
    keep = asyncio.run(store.create_course("Keep"))
    gone = asyncio.run(store.create_course("Gone"))
    stored_path = asyncio.run(store.add_pdf(gone.id, str(source)))
    asyncio.run(
        QuizResultStore(kv).save(
            QuizResult(course_id=gone.id, quiz_index=0, quiz_name="Q", score=1, total_questions=1, timestamp=1)
        )
    )

    asyncio.run(store.delete_course(gone.id))

    assert [course.id for course in asyncio.run(store.list_courses())] == [keep.id]
    assert not Path(stored_path).exists()
    assert results_key(gone.id) not in kv.data
    with pytest.raises(NotFoundError):
        asyncio.run(store.delete_course(gone.id))


def test_corrupt_store_raises_instead_of_returning_empty(store: CourseStore, kv: MemoryKeyValueStore) -> None:
    kv.data[COURSES_KEY] = "{not json"
    with pytest.raises(PersistenceError):
        asyncio.run(store.list_courses())
    with pytest.raises(PersistenceError):
        asyncio.run(store.create_course("New"))
    assert kv.data[COURSES_KEY] == "{not json"


def test_moved_order() -> None:
    assert moved_order(3, 0, 2) == [1, 2, 0]
    assert moved_order(3, 2, 0) == [2, 0, 1]
    assert moved_order(1, 0, 0) == [0]


def test_pure_helpers_keep_name_keys_valid() -> None:
    course = Course(
        id="c",
        name="n",
        quizzes=[_questions("a"), _questions("b"), _questions("c")],
        quiz_names={2: "Last"},
    )
    reordered = apply_reorder(course, ContentKind.QUIZ, 2, 0, updated_at=5)
    assert reordered.quiz_names == {0: "Last", 1: "Quiz 1", 2: "Quiz 2"}
    deleted = apply_delete(course, ContentKind.QUIZ, 0, updated_at=6)
    assert deleted.quiz_names == {1: "Last"}
    assert deleted.updated_at == 6
