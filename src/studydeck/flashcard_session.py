"""Flashcard study state: current card and per-card flip state."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .errors import ValidationError
from .models import Flashcard


@dataclass(frozen=True)
class FlashcardState:
    current_index: int
    total_cards: int
    flipped: bool


FlashcardListener = Callable[[FlashcardState], None]


class FlashcardSession:
    """Navigation over a flashcard set; flip state is kept per index."""

    def __init__(self, flashcards: list[Flashcard]) -> None:
        if not flashcards:
            raise ValidationError("A flashcard session needs at least one card.")
        self.flashcards = list(flashcards)
        self._current_index = 0
        self._flipped: dict[int, bool] = {}
        self._listeners: list[FlashcardListener] = []

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def total_cards(self) -> int:
        return len(self.flashcards)

    @property
    def current_card(self) -> Flashcard:
        return self.flashcards[self._current_index]

    @property
    def is_first_card(self) -> bool:
        return self._current_index == 0

    @property
    def is_last_card(self) -> bool:
        return self._current_index >= len(self.flashcards) - 1

    @property
    def progress(self) -> float:
        return (self._current_index + 1) / len(self.flashcards)

    def is_card_flipped(self, index: int) -> bool:
        return self._flipped.get(index, False)

    @property
    def is_current_card_flipped(self) -> bool:
        return self.is_card_flipped(self._current_index)

    @property
    def state(self) -> FlashcardState:
        return FlashcardState(self._current_index, len(self.flashcards), self.is_current_card_flipped)

    def subscribe(self, listener: FlashcardListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> FlashcardState:
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot

    def flip_current_card(self) -> FlashcardState:
        self._flipped[self._current_index] = not self.is_current_card_flipped
        return self._notify()

    def next_card(self) -> FlashcardState:
        if self.is_last_card:
            return self.state
        self._current_index += 1
        return self._notify()

    def previous_card(self) -> FlashcardState:
        if self.is_first_card:
            return self.state
        self._current_index -= 1
        return self._notify()

    def go_to_card(self, index: int) -> FlashcardState:
        """Jump to ``index``; out-of-range targets leave the position unchanged."""
        if not 0 <= index < len(self.flashcards):
            return self.state
        self._current_index = index
        return self._notify()

    def reset(self) -> FlashcardState:
        self._current_index = 0
        self._flipped.clear()
        return self._notify()
