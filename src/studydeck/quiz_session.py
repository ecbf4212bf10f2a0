"""Quiz-taking state: selection, reveal, scoring, and navigation."""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass

from .errors import IndexOutOfRange, ValidationError
from .models import Question, QuizResult, QuizSortingPreference


@dataclass(frozen=True)
class QuestionAnswer:
    """Saved answer for one question, restored when navigating back to it."""

    selected_indices: frozenset[int]
    revealed: bool


@dataclass(frozen=True)
class IncorrectAnswer:
    question: Question
    selected_indices: tuple[int, ...]


@dataclass(frozen=True)
class QuizState:
    """Snapshot handed to listeners after every mutation."""

    current_index: int
    total_questions: int
    score: int
    selected_indices: tuple[int, ...]
    revealed: bool
    transitioning: bool


QuizListener = Callable[[QuizState], None]


def prepare_questions(
    questions: list[Question], preference: QuizSortingPreference, rng: random.Random | None = None
) -> list[Question]:
    """Return questions in play order for a course's sorting preference.

    ``random`` shuffles question order and the options of each question;
    ``sequential`` keeps the stored order untouched.
    """
    if preference is QuizSortingPreference.SEQUENTIAL:
        return list(questions)
    rng = rng or random.Random()
    shuffled = [question.with_shuffled_options(rng) for question in questions]
    rng.shuffle(shuffled)
    return shuffled


class QuizSession:
    """State machine for one pass through a quiz.

    Each question goes Unanswered -> Revealed once per attempt. Single-answer
    questions reveal on selection; multi-select questions reveal on
    ``check_answer``. Score only changes the first time a question is revealed.
    """

    def __init__(self, questions: list[Question]) -> None:
        if not questions:
            raise ValidationError("A quiz session needs at least one question.")
        self.questions = list(questions)
        self._current_index = 0
        self._score = 0
        self._selected: set[int] = set()
        self._revealed = False
        self._transitioning = False
        self._incorrect: list[IncorrectAnswer] = []
        self._answers: dict[int, QuestionAnswer] = {}
        self._listeners: list[QuizListener] = []

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def score(self) -> int:
        return self._score

    @property
    def selected_indices(self) -> list[int]:
        return sorted(self._selected)

    @property
    def reveal_answer(self) -> bool:
        return self._revealed

    @property
    def is_transitioning(self) -> bool:
        return self._transitioning

    @property
    def incorrect_answers(self) -> tuple[IncorrectAnswer, ...]:
        return tuple(self._incorrect)

    @property
    def current_question(self) -> Question:
        return self.questions[self._current_index]

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def is_first_question(self) -> bool:
        return self._current_index == 0

    @property
    def is_last_question(self) -> bool:
        return self._current_index >= len(self.questions) - 1

    @property
    def progress(self) -> float:
        return (self._current_index + 1) / len(self.questions)

    @property
    def state(self) -> QuizState:
        return QuizState(
            current_index=self._current_index,
            total_questions=len(self.questions),
            score=self._score,
            selected_indices=tuple(sorted(self._selected)),
            revealed=self._revealed,
            transitioning=self._transitioning,
        )

    def answer_for(self, index: int) -> QuestionAnswer | None:
        return self._answers.get(index)

    def is_correct(self, index: int) -> bool | None:
        """Whether the saved answer at ``index`` was right; None if unanswered."""
        answer = self._answers.get(index)
        if answer is None:
            return None
        return self.questions[index].is_correct_selection(answer.selected_indices)

    def subscribe(self, listener: QuizListener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> QuizState:
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot

    def select_option(self, index: int) -> QuizState:
        """Select an option; reveals immediately for single-answer questions."""
        if self._transitioning or self._revealed:
            return self.state
        option_count = len(self.current_question.options)
        if not 0 <= index < option_count:
            raise IndexOutOfRange("Option", index, option_count)

        if self.current_question.is_multi_select:
            if index in self._selected:
                self._selected.remove(index)
            else:
                self._selected.add(index)
            return self._notify()

        self._selected = {index}
        self.check_answer()
        return self.state

    def check_answer(self) -> bool:
        """Reveal the current question. Returns False when nothing changed."""
        if self._transitioning or self._revealed or not self._selected:
            return False

        self._revealed = True
        first_answer = self._current_index not in self._answers
        self._answers[self._current_index] = QuestionAnswer(frozenset(self._selected), True)

        if first_answer:
            if self.current_question.is_correct_selection(self._selected):
                self._score += 1
            else:
                self._incorrect.append(IncorrectAnswer(self.current_question, tuple(sorted(self._selected))))

        self._notify()
        return True

    def begin_transition(self) -> QuizState:
        """Lock selection while the view animates away from the question."""
        self._transitioning = True
        return self._notify()

    def move_to_next_question(self) -> bool:
        """Advance one question. Returns True when the quiz is already complete."""
        if self.is_last_question:
            return True
        self._current_index += 1
        self._load_question_state()
        self._notify()
        return False

    def move_to_previous_question(self) -> QuizState:
        if self.is_first_question:
            return self.state
        self._current_index -= 1
        self._load_question_state()
        return self._notify()

    def _load_question_state(self) -> None:
        saved = self._answers.get(self._current_index)
        if saved is None:
            self._selected = set()
            self._revealed = False
        else:
            self._selected = set(saved.selected_indices)
            self._revealed = saved.revealed
        self._transitioning = False

    def reset(self) -> QuizState:
        self._current_index = 0
        self._score = 0
        self._selected = set()
        self._revealed = False
        self._transitioning = False
        self._incorrect.clear()
        self._answers.clear()
        return self._notify()

    def to_result(
        self, course_id: str, quiz_index: int, quiz_name: str, timestamp: int, duration: int | None = None
    ) -> QuizResult:
        """Snapshot the score under the quiz's current display name."""
        return QuizResult(
            course_id=course_id,
            quiz_index=quiz_index,
            quiz_name=quiz_name,
            score=self._score,
            total_questions=len(self.questions),
            timestamp=timestamp,
            duration=duration,
        )
