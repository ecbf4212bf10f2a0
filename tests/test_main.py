from pathlib import Path
from typing import Any

import studydeck.main as main
from studydeck.config import Settings

QUIZ_TEXT = "Q: 2+2?\nA) 3\nB) 4 (correct)\nC) 5"
CARD_TEXT = "Front: H\nBack: Hydrogen\nExplanation: atomic number 1\n\nFront: He\nBack: Helium"


def _prepared_app(tmp_path: Path) -> main.App:
    app = main.build_app(Settings(data_dir=tmp_path))
    library = app.library
    main._wait(library.create_course("Math"))
    main._wait(library.import_quiz_text(QUIZ_TEXT, "Arithmetic"))
    main._wait(library.import_flashcard_text(CARD_TEXT, "Elements"))
    # sequential order keeps option numbering predictable
    main._wait(library.toggle_sorting())
    return app


def _play(monkeypatch: Any, app: main.App, answers: list[str]) -> list[str]:
    monkeypatch.setattr(main, "_app", lambda: app)
    inputs = iter(answers)
    outputs: list[str] = []
    assert main.play_shell(input_fn=lambda _: next(inputs), print_fn=outputs.append) == 0
    return outputs


def test_run_enters_play_shell(monkeypatch: Any) -> None:
    monkeypatch.setattr(main, "play_shell", lambda: 0)
    assert main.run([]) == 0
    assert main.run(["play", "--log-level", "debug"]) == 0


def test_play_shell_quit_at_course_selection(monkeypatch: Any, tmp_path: Path) -> None:
    outputs = _play(monkeypatch, main.build_app(Settings(data_dir=tmp_path)), ["q"])
    assert "No courses yet." in outputs


def test_create_course_persists(monkeypatch: Any, tmp_path: Path) -> None:
    _play(monkeypatch, main.build_app(Settings(data_dir=tmp_path)), ["n", "", "n", "Biology", "q"])

    reopened = main.build_app(Settings(data_dir=tmp_path))
    try:
        main._wait(reopened.library.reload())
        assert [course.name for course in reopened.library.courses] == ["Biology"]
    finally:
        reopened.close()


def test_invalid_course_selection(monkeypatch: Any, tmp_path: Path) -> None:
    outputs = _play(monkeypatch, main.build_app(Settings(data_dir=tmp_path)), ["7", "q"])
    assert "Invalid course selection." in outputs


def test_take_quiz_records_result_and_history(monkeypatch: Any, tmp_path: Path) -> None:
    app = _prepared_app(tmp_path)
    outputs = _play(monkeypatch, app, ["1", "1", "1", "9", "2", "", "7", "q"])

    assert "Invalid answer." in outputs
    assert "  2) 4 [correct]" in outputs
    assert "Quiz complete: 1/1 (100.0%)" in outputs
    assert any(line.startswith("Arithmetic") and "1/1" in line for line in outputs)
    assert "- Arithmetic: 100.0%" in outputs


def test_wrong_answer_is_listed_after_quiz(monkeypatch: Any, tmp_path: Path) -> None:
    outputs = _play(monkeypatch, _prepared_app(tmp_path), ["1", "1", "1", "1", "", "q"])
    assert "  1) 3 [your answer]" in outputs
    assert "Quiz complete: 0/1 (0.0%)" in outputs
    assert "- 2+2? -> 4" in outputs


def test_quiz_can_end_early(monkeypatch: Any, tmp_path: Path) -> None:
    outputs = _play(monkeypatch, _prepared_app(tmp_path), ["1", "1", "1", ":q", "7", "q"])
    assert "\nQuiz ended early: 0/1" in outputs
    assert "No quiz attempts yet." in outputs


def test_flashcard_flow(monkeypatch: Any, tmp_path: Path) -> None:
    outputs = _play(monkeypatch, _prepared_app(tmp_path), ["1", "2", "1", "", "n", "n", "?", ":q", "q"])
    assert "H" in outputs
    assert "Hydrogen" in outputs
    assert "Explanation: atomic number 1" in outputs
    assert "He" in outputs
    assert "Last card." in outputs
    assert "Invalid choice." in outputs


def test_import_flow(monkeypatch: Any, tmp_path: Path) -> None:
    source = tmp_path / "quiz.txt"
    source.write_text("Q: Capital of Peru?\nA) Lima\nB) Quito\nAnswer: A", encoding="utf-8")
    app = _prepared_app(tmp_path)
    outputs = _play(monkeypatch, app, ["1", "3", str(source), "Geography", "3", str(tmp_path / "missing.txt"), "q"])
    assert "Imported." in outputs
    assert any(line.startswith("Could not read file") for line in outputs)
    assert any("2 quizzes" in line for line in outputs)


def test_import_flow_reports_parse_errors(monkeypatch: Any, tmp_path: Path) -> None:
    source = tmp_path / "cards.txt"
    source.write_text("one lonely line", encoding="utf-8")
    outputs = _play(monkeypatch, _prepared_app(tmp_path), ["1", "4", str(source), "", "q"])
    assert any("Could not parse flashcards" in line for line in outputs)


def test_add_pdf_flow(monkeypatch: Any, tmp_path: Path) -> None:
    pdf = tmp_path / "syllabus.pdf"
    pdf.write_bytes(b"%PDF-1.4")
    outputs = _play(monkeypatch, _prepared_app(tmp_path), ["1", "5", str(pdf), "", "6", "p", "b", "q"])
    assert "PDF added." in outputs
    assert "1) syllabus.pdf" in outputs


def test_manage_rename_move_and_delete(monkeypatch: Any, tmp_path: Path) -> None:
    app = _prepared_app(tmp_path)
    main._wait(app.library.import_quiz_text(QUIZ_TEXT, "Second"))
    outputs = _play(
        monkeypatch,
        app,
        [
            "1",
            "6", "q", "1", "r", "Warmup",
            "6", "q", "2", "m", "1",
            "6", "q", "2", "d", "no",
            "6", "q", "2", "d", "YES",
            "6", "q", "1", "r", "Kept",
            "q",
        ],
    )
    assert outputs.count("Done.") == 4
    assert "Deletion cancelled." in outputs
    assert "1) Second (1 items)" in outputs
    assert "2) Warmup (1 items)" in outputs
    assert any("1 quizzes" in line for line in outputs)


def test_manage_toggle_sorting(monkeypatch: Any, tmp_path: Path) -> None:
    outputs = _play(monkeypatch, _prepared_app(tmp_path), ["1", "6", "s", "q"])
    assert "Quiz order is now random." in outputs


def test_delete_course_requires_typed_confirmation(monkeypatch: Any, tmp_path: Path) -> None:
    app = _prepared_app(tmp_path)
    outputs = _play(monkeypatch, app, ["d", "1", "yes", "d", "1", "YES", "q"])
    assert "Deletion cancelled." in outputs
    assert "Deleted course 'Math'." in outputs
    assert outputs[-4:].count("No courses yet.") == 1


def test_back_returns_to_course_list(monkeypatch: Any, tmp_path: Path) -> None:
    outputs = _play(monkeypatch, _prepared_app(tmp_path), ["1", "x", "b", "q"])
    assert "Invalid choice." in outputs
    assert outputs.count("\n=== Courses ===") == 2
