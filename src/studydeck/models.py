"""Core content models: questions, flashcards, courses, and quiz results."""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import PurePath

from .errors import MalformedContent


def now_millis() -> int:
    """Current time in milliseconds since the epoch."""
    return int(datetime.now(UTC).timestamp() * 1000)


class QuizSortingPreference(StrEnum):
    """How questions of a quiz are ordered when it is started."""

    RANDOM = "random"
    SEQUENTIAL = "sequential"

    def toggled(self) -> QuizSortingPreference:
        if self is QuizSortingPreference.RANDOM:
            return QuizSortingPreference.SEQUENTIAL
        return QuizSortingPreference.RANDOM


class ContentKind(StrEnum):
    """Ordered collections owned by a course."""

    QUIZ = "quiz"
    FLASHCARD_SET = "flashcard_set"
    PDF = "pdf"


@dataclass(frozen=True)
class Question:
    """One multiple-choice question.

    More than one entry in ``answer_indices`` makes it a multi-select
    question that has to be confirmed explicitly.
    """

    id: int
    text: str
    options: list[str]
    answer_indices: list[int]
    explanation: str | None = None

    def __post_init__(self) -> None:
        if len(self.options) < 2:
            raise MalformedContent(f"Question {self.id} needs at least 2 options, got {len(self.options)}.")
        if not self.answer_indices:
            raise MalformedContent(f"Question {self.id} has no correct answer.")
        if len(set(self.answer_indices)) != len(self.answer_indices):
            raise MalformedContent(f"Question {self.id} repeats an answer index: {self.answer_indices}.")
        for index in self.answer_indices:
            if not 0 <= index < len(self.options):
                raise MalformedContent(
                    f"Answer index {index} of question {self.id} is out of bounds for {len(self.options)} options."
                )

    @property
    def is_multi_select(self) -> bool:
        return len(self.answer_indices) > 1

    def is_correct_selection(self, selected: set[int] | frozenset[int]) -> bool:
        """Exact set match: same size and every selected index is correct."""
        correct = set(self.answer_indices)
        return len(selected) == len(correct) and all(index in correct for index in selected)

    def with_shuffled_options(self, rng: random.Random | None = None) -> Question:
        """Return a copy with options permuted and answer indices remapped."""
        rng = rng or random.Random()
        order = list(range(len(self.options)))
        rng.shuffle(order)
        old_to_new = {old: new for new, old in enumerate(order)}
        return replace(
            self,
            options=[self.options[old] for old in order],
            answer_indices=sorted(old_to_new[old] for old in self.answer_indices),
        )


@dataclass(frozen=True)
class Flashcard:
    """Two-sided study card."""

    id: int
    front: str
    back: str
    explanation: str | None = None


@dataclass(frozen=True)
class Course:
    """Named container of ordered quizzes, flashcard sets, and PDFs.

    The ``*_names`` maps are keyed by position in their collection. Every key
    must be a valid index; the content store re-keys them on reorder/delete.
    """

    id: str
    name: str
    quizzes: list[list[Question]] = field(default_factory=list)
    flashcards: list[list[Flashcard]] = field(default_factory=list)
    pdfs: list[str] = field(default_factory=list)
    quiz_names: dict[int, str] = field(default_factory=dict)
    flashcard_set_names: dict[int, str] = field(default_factory=dict)
    pdf_names: dict[int, str] = field(default_factory=dict)
    quiz_sorting_preference: QuizSortingPreference = QuizSortingPreference.RANDOM
    created_at: int = 0
    updated_at: int = 0

    def __post_init__(self) -> None:
        for kind in ContentKind:
            length = len(self.items(kind))
            for key in self.names(kind):
                if not 0 <= key < length:
                    raise MalformedContent(
                        f"Course '{self.id}' has a {kind} name for index {key} but only {length} item(s)."
                    )

    def items(self, kind: ContentKind) -> list:
        """Ordered collection for one content kind."""
        if kind is ContentKind.QUIZ:
            return self.quizzes
        if kind is ContentKind.FLASHCARD_SET:
            return self.flashcards
        return self.pdfs

    def names(self, kind: ContentKind) -> dict[int, str]:
        """Position-keyed display names for one content kind."""
        if kind is ContentKind.QUIZ:
            return self.quiz_names
        if kind is ContentKind.FLASHCARD_SET:
            return self.flashcard_set_names
        return self.pdf_names

    def display_name(self, kind: ContentKind, index: int) -> str:
        """Stored name at ``index`` or the generated default."""
        stored = self.names(kind).get(index)
        if stored is not None:
            return stored
        if kind is ContentKind.QUIZ:
            return f"Quiz {index + 1}"
        if kind is ContentKind.FLASHCARD_SET:
            return f"Flashcard Set {index + 1}"
        if 0 <= index < len(self.pdfs):
            return pdf_display_name(self.pdfs[index])
        return f"PDF {index + 1}"

    def quiz_name(self, index: int) -> str:
        return self.display_name(ContentKind.QUIZ, index)

    def flashcard_set_name(self, index: int) -> str:
        return self.display_name(ContentKind.FLASHCARD_SET, index)

    def pdf_name(self, index: int) -> str:
        return self.display_name(ContentKind.PDF, index)

    @property
    def quiz_count(self) -> int:
        return len(self.quizzes)

    @property
    def flashcard_set_count(self) -> int:
        return len(self.flashcards)

    @property
    def pdf_count(self) -> int:
        return len(self.pdfs)

    @property
    def total_question_count(self) -> int:
        return sum(len(quiz) for quiz in self.quizzes)


def pdf_display_name(path: str) -> str:
    """File name of a stored PDF without its ``<millis>_`` copy prefix."""
    name = PurePath(path).name
    prefix, sep, rest = name.partition("_")
    if sep and prefix.isdigit() and rest:
        return rest
    return name


@dataclass(frozen=True)
class QuizResult:
    """Snapshot of one finished quiz attempt."""

    course_id: str
    quiz_index: int
    quiz_name: str
    score: int
    total_questions: int
    timestamp: int
    duration: int | None = None

    @property
    def percentage(self) -> float:
        if self.total_questions <= 0:
            return 0.0
        return self.score / self.total_questions * 100
