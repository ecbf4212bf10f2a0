"""Exception hierarchy shared by the content store, parser, and sessions."""

from __future__ import annotations


class StudyDeckError(Exception):
    """Base class for all studydeck failures."""


class ValidationError(StudyDeckError, ValueError):
    """Input rejected before any state was mutated."""


class MalformedContent(ValidationError):
    """Question, flashcard, or course data violates the content model."""


class NotFoundError(StudyDeckError, LookupError):
    """Unknown course id or collection index."""


class IndexOutOfRange(NotFoundError, IndexError):
    """Collection index outside the current bounds."""

    def __init__(self, what: str, index: int, length: int) -> None:
        super().__init__(f"{what} index {index} out of range for {length} item(s).")
        self.index = index
        self.length = length


class ImportFormatError(StudyDeckError, ValueError):
    """Pasted text could not be parsed as JSON or as any supported text layout.

    The message is meant to be shown to the user as-is.
    """


class PersistenceError(StudyDeckError):
    """Reading or writing the backing store failed."""


class GenerationError(StudyDeckError):
    """Content generation could not be attempted or its output was unusable."""
