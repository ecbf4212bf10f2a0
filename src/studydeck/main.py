"""CLI entrypoint for course-based quiz and flashcard study."""

from __future__ import annotations

import argparse
import asyncio
import logging
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

from .config import Settings, load_settings
from .course_store import CourseStore
from .flashcard_session import FlashcardSession
from .library import CourseLibrary
from .models import ContentKind, Course, now_millis
from .quiz_session import QuizSession, prepare_questions
from .results import QuizResultStore, performance_by_quiz
from .storage import LocalFileStore, SqliteKeyValueStore

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
T = TypeVar("T")

MENU_QUIT_COMMANDS = {"q"}
MENU_BACK_COMMANDS = {"b"}
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}
PREVIOUS_COMMANDS = {":p", ":prev"}
KIND_CHOICES = {"q": ContentKind.QUIZ, "f": ContentKind.FLASHCARD_SET, "p": ContentKind.PDF}


class QuitApp(Exception):
    """Signal immediate app exit from nested menu flows."""


@dataclass
class App:
    """Wired services for one shell run."""

    library: CourseLibrary
    results: QuizResultStore
    kv: SqliteKeyValueStore

    def close(self) -> None:
        self.kv.close()


def _wait(awaitable: Coroutine[Any, Any, T]) -> T:
    """Run one store coroutine to completion from the synchronous shell."""
    return asyncio.run(awaitable)


def build_app(settings: Settings) -> App:
    kv = SqliteKeyValueStore(settings.db_path)
    results = QuizResultStore(kv)
    store = CourseStore(kv, LocalFileStore(), settings.pdf_dir, results=results)
    return App(library=CourseLibrary(store, generation=settings.generation), results=results, kv=kv)


def _app() -> App:
    """Create services from environment settings."""
    return build_app(load_settings())


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    settings = load_settings()
    parser = argparse.ArgumentParser(prog="studydeck", description="Courses of quizzes, flashcards, and PDFs")
    parser.add_argument("command", nargs="?", default="play", choices=["play"])
    parser.add_argument("--log-level", default=settings.log_level, help="logging level (default: %(default)s)")
    args = parser.parse_args(argv)
    logging.basicConfig(level=str(args.log_level).upper(), format="%(levelname)s %(name)s: %(message)s")
    return play_shell()


def play_shell(input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run persistent menu-driven shell."""
    app = _app()
    try:
        _wait(app.library.reload())
        while True:
            course_id = _select_course(app, input_fn, print_fn)
            if course_id is None:
                return 0
            try:
                _course_menu(app, course_id, input_fn, print_fn)
            except QuitApp:
                return 0
    finally:
        app.close()


def _show_error(app: App, print_fn: PrintFn) -> None:
    if app.library.error:
        print_fn(app.library.error)
        app.library.clear_error()


def _select_course(app: App, input_fn: InputFn, print_fn: PrintFn) -> str | None:
    """Select, create, or delete a course. Returns the chosen id or None to quit."""
    library = app.library
    while True:
        print_fn("\n=== Courses ===")
        if library.courses:
            for idx, course in enumerate(library.courses, start=1):
                print_fn(f"{idx}) {course.name} ({course.quiz_count} quizzes, {course.flashcard_set_count} sets)")
        else:
            print_fn("No courses yet.")
        print_fn("n) New course")
        print_fn("d) Delete course")
        print_fn("q) Quit")

        choice = input_fn("Select course: ").strip().lower()
        if choice in MENU_QUIT_COMMANDS:
            return None
        if choice == "n":
            name = input_fn("New course name: ").strip()
            if not name:
                print_fn("Course name is required.")
                continue
            if _wait(library.create_course(name)) and library.selected is not None:
                return library.selected.id
            _show_error(app, print_fn)
            continue
        if choice == "d":
            _delete_course_flow(app, input_fn, print_fn)
            continue
        if choice.isdigit():
            index = int(choice) - 1
            if 0 <= index < len(library.courses):
                selected = library.select(library.courses[index].id)
                if selected is not None:
                    return selected.id
        print_fn("Invalid course selection.")


def _delete_course_flow(app: App, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Delete a course with explicit confirmation safeguard."""
    courses = app.library.courses
    if not courses:
        print_fn("No courses available to delete.")
        return
    for idx, course in enumerate(courses, start=1):
        print_fn(f"{idx}) {course.name}")
    choice = input_fn("Choose course to delete: ").strip().lower()
    if not choice.isdigit() or not (0 <= int(choice) - 1 < len(courses)):
        print_fn("Invalid choice.")
        return
    target = courses[int(choice) - 1]
    print_fn(f"WARNING: This permanently deletes course '{target.name}', its PDFs, and its quiz history.")
    if input_fn("Type YES to confirm deletion: ").strip() != "YES":
        print_fn("Deletion cancelled.")
        return
    if _wait(app.library.delete_course(target.id)):
        print_fn(f"Deleted course '{target.name}'.")
    else:
        _show_error(app, print_fn)


def _current(app: App, course_id: str) -> Course:
    selected = app.library.selected
    if selected is None or selected.id != course_id:
        selected = app.library.select(course_id)
    if selected is None:
        raise QuitApp()
    return selected


def _course_menu(app: App, course_id: str, input_fn: InputFn, print_fn: PrintFn) -> None:
    while True:
        course = _current(app, course_id)
        print_fn(f"\n=== {course.name} ===")
        print_fn(
            f"{course.quiz_count} quizzes ({course.total_question_count} questions), "
            f"{course.flashcard_set_count} flashcard sets, {course.pdf_count} PDFs, "
            f"order: {course.quiz_sorting_preference}"
        )
        print_fn("1) Take a quiz")
        print_fn("2) Study flashcards")
        print_fn("3) Import quiz from text file")
        print_fn("4) Import flashcards from text file")
        print_fn("5) Add PDF")
        print_fn("6) Manage contents")
        print_fn("7) Quiz history")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Choose: ").strip().lower()

        if choice == "1":
            _take_quiz_flow(app, course, input_fn, print_fn)
        elif choice == "2":
            _flashcard_flow(course, input_fn, print_fn)
        elif choice == "3":
            _import_flow(app, ContentKind.QUIZ, input_fn, print_fn)
        elif choice == "4":
            _import_flow(app, ContentKind.FLASHCARD_SET, input_fn, print_fn)
        elif choice == "5":
            _add_pdf_flow(app, input_fn, print_fn)
        elif choice == "6":
            _manage_flow(app, course_id, input_fn, print_fn)
        elif choice == "7":
            _history_flow(app, course, print_fn)
        elif choice in MENU_BACK_COMMANDS:
            return
        elif choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        else:
            print_fn("Invalid choice.")


def _choose_index(count: int, label: str, input_fn: InputFn, print_fn: PrintFn) -> int | None:
    """Ask for a 1-based item number; returns a 0-based index or None."""
    choice = input_fn(f"Choose {label}: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return None
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if not choice.isdigit() or not (0 <= int(choice) - 1 < count):
        print_fn("Invalid choice.")
        return None
    return int(choice) - 1


def _list_items(course: Course, kind: ContentKind, print_fn: PrintFn) -> None:
    for index, item in enumerate(course.items(kind)):
        size = f" ({len(item)} items)" if kind is not ContentKind.PDF else ""
        print_fn(f"{index + 1}) {course.display_name(kind, index)}{size}")


def _parse_picks(raw: str, option_count: int) -> list[int] | None:
    """Parse ``1,3`` style option numbers into distinct 0-based indices."""
    picks: list[int] = []
    for token in raw.replace(" ", ",").split(","):
        if not token:
            continue
        if not token.isdigit() or not (1 <= int(token) <= option_count):
            return None
        if int(token) - 1 not in picks:
            picks.append(int(token) - 1)
    return picks or None


def _print_question(session: QuizSession, print_fn: PrintFn) -> None:
    question = session.current_question
    kind = "select all that apply" if question.is_multi_select else "select one"
    print_fn(f"\nQuestion {session.current_index + 1}/{session.total_questions} ({kind})")
    print_fn(question.text)
    selected = set(session.selected_indices)
    for index, option in enumerate(question.options):
        marker = ""
        if session.reveal_answer:
            if index in question.answer_indices:
                marker = " [correct]"
            elif index in selected:
                marker = " [your answer]"
        print_fn(f"  {index + 1}) {option}{marker}")
    if session.reveal_answer:
        print_fn("Correct." if session.is_correct(session.current_index) else "Incorrect.")
        if question.explanation:
            print_fn(f"Explanation: {question.explanation}")


def _take_quiz_flow(app: App, course: Course, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Run one quiz attempt and record its result."""
    if not course.quizzes:
        print_fn("No quizzes in this course yet.")
        return
    _list_items(course, ContentKind.QUIZ, print_fn)
    quiz_index = _choose_index(course.quiz_count, "quiz", input_fn, print_fn)
    if quiz_index is None:
        return

    session = QuizSession(prepare_questions(course.quizzes[quiz_index], course.quiz_sorting_preference))
    started = time.monotonic()
    while True:
        _print_question(session, print_fn)
        if not session.reveal_answer:
            raw = input_fn("Answer (e.g. 2 or 1,3; :p back, :q quit): ").strip().lower()
            if raw in FLOW_EXIT_COMMANDS:
                print_fn(f"\nQuiz ended early: {session.score}/{session.total_questions}")
                return
            if raw in PREVIOUS_COMMANDS:
                session.move_to_previous_question()
                continue
            picks = _parse_picks(raw, len(session.current_question.options))
            if picks is None or (not session.current_question.is_multi_select and len(picks) != 1):
                print_fn("Invalid answer.")
                continue
            for pick in picks:
                session.select_option(pick)
            session.check_answer()
            continue

        raw = input_fn("Enter for next (:p back, :q quit): ").strip().lower()
        if raw in FLOW_EXIT_COMMANDS:
            print_fn(f"\nQuiz ended early: {session.score}/{session.total_questions}")
            return
        if raw in PREVIOUS_COMMANDS:
            session.move_to_previous_question()
            continue
        if session.move_to_next_question():
            break

    result = session.to_result(
        course.id,
        quiz_index,
        course.quiz_name(quiz_index),
        timestamp=now_millis(),
        duration=int(time.monotonic() - started),
    )
    _wait(app.results.save(result))
    print_fn(f"\nQuiz complete: {result.score}/{result.total_questions} ({result.percentage:.1f}%)")
    for miss in session.incorrect_answers:
        answers = ", ".join(miss.question.options[index] for index in miss.question.answer_indices)
        print_fn(f"- {miss.question.text} -> {answers}")


def _flashcard_flow(course: Course, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Study one flashcard set."""
    if not course.flashcards:
        print_fn("No flashcard sets in this course yet.")
        return
    _list_items(course, ContentKind.FLASHCARD_SET, print_fn)
    set_index = _choose_index(course.flashcard_set_count, "flashcard set", input_fn, print_fn)
    if set_index is None:
        return

    session = FlashcardSession(course.flashcards[set_index])
    while True:
        card = session.current_card
        side = "Back" if session.is_current_card_flipped else "Front"
        print_fn(f"\nCard {session.current_index + 1}/{session.total_cards} [{side}]")
        print_fn(card.back if session.is_current_card_flipped else card.front)
        if session.is_current_card_flipped and card.explanation:
            print_fn(f"Explanation: {card.explanation}")
        raw = input_fn("Enter flips, n next, p previous, number jumps, :q quit: ").strip().lower()
        if raw in FLOW_EXIT_COMMANDS:
            return
        if raw == "":
            session.flip_current_card()
        elif raw == "n":
            if session.is_last_card:
                print_fn("Last card.")
            session.next_card()
        elif raw == "p":
            session.previous_card()
        elif raw.isdigit():
            session.go_to_card(int(raw) - 1)
        else:
            print_fn("Invalid choice.")


def _import_flow(app: App, kind: ContentKind, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Import a quiz or flashcard set from a pasted-text file."""
    path = input_fn("Path to text or JSON file: ").strip()
    if not path:
        return
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except OSError as exc:
        print_fn(f"Could not read file: {exc}")
        return
    name = input_fn("Name (blank for default): ").strip() or None
    if kind is ContentKind.QUIZ:
        imported = _wait(app.library.import_quiz_text(text, name))
    else:
        imported = _wait(app.library.import_flashcard_text(text, name))
    if imported:
        print_fn("Imported.")
    else:
        _show_error(app, print_fn)


def _add_pdf_flow(app: App, input_fn: InputFn, print_fn: PrintFn) -> None:
    path = input_fn("Path to PDF: ").strip()
    if not path:
        return
    name = input_fn("Name (blank for file name): ").strip() or None
    if _wait(app.library.add_pdf(path, name)):
        print_fn("PDF added.")
    else:
        _show_error(app, print_fn)


def _manage_flow(app: App, course_id: str, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Rename, move, or delete quizzes, flashcard sets, and PDFs."""
    library = app.library
    print_fn("\nManage: q) quizzes  f) flashcard sets  p) PDFs  s) toggle quiz order  b) back")
    choice = input_fn("Choose: ").strip().lower()
    if choice == "s":
        if _wait(library.toggle_sorting()):
            print_fn(f"Quiz order is now {_current(app, course_id).quiz_sorting_preference}.")
        else:
            _show_error(app, print_fn)
        return
    kind = KIND_CHOICES.get(choice)
    if kind is None:
        if choice not in MENU_BACK_COMMANDS:
            print_fn("Invalid choice.")
        return

    course = _current(app, course_id)
    count = len(course.items(kind))
    if count == 0:
        print_fn("Nothing to manage.")
        return
    _list_items(course, kind, print_fn)
    index = _choose_index(count, "item", input_fn, print_fn)
    if index is None:
        return

    action = input_fn("r) rename  m) move  d) delete: ").strip().lower()
    if action == "r":
        ok = _wait(library.rename(kind, index, input_fn("New name: ")))
    elif action == "m":
        target = _choose_index(count, "new position", input_fn, print_fn)
        if target is None:
            return
        ok = _wait(library.reorder(kind, index, target))
    elif action == "d":
        if input_fn(f"Delete '{course.display_name(kind, index)}'? Type YES: ").strip() != "YES":
            print_fn("Deletion cancelled.")
            return
        ok = _wait(library.delete_item(kind, index))
    else:
        print_fn("Invalid choice.")
        return
    if ok:
        print_fn("Done.")
    else:
        print_fn(library.error or "Nothing changed.")
        library.clear_error()


def _history_flow(app: App, course: Course, print_fn: PrintFn) -> None:
    """Print quiz attempts and per-quiz averages for a course."""
    results = _wait(app.results.for_course(course.id))
    print_fn(f"\n=== History: {course.name} ===")
    if not results:
        print_fn("No quiz attempts yet.")
        return
    name_width = max(len("Quiz"), max(len(result.quiz_name) for result in results))
    header = f"{'Quiz':<{name_width}} {'Score':>7} {'Percent':>8}"
    print_fn(header)
    print_fn("-" * len(header))
    for result in results:
        score = f"{result.score}/{result.total_questions}"
        print_fn(f"{result.quiz_name:<{name_width}} {score:>7} {result.percentage:>7.1f}%")
    print_fn("\nAverages:")
    for label, average in performance_by_quiz(results).items():
        print_fn(f"- {label}: {average:.1f}%")


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
