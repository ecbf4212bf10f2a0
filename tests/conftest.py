from __future__ import annotations

import shutil
import sys
from collections.abc import Iterator
from pathlib import Path
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from studydeck.course_store import CourseStore  # noqa: E402
from studydeck.results import QuizResultStore  # noqa: E402
from studydeck.storage import LocalFileStore, MemoryKeyValueStore  # noqa: E402


def _tmp_path_fixture() -> Iterator[Path]:
    """Provide per-test temporary directory path inside the workspace.

    Overrides pytest's builtin ``tmp_path`` so copied PDFs and SQLite files
    stay under ``.tmp_pytest/`` in the project directory.
    """
    base = ROOT / ".tmp_pytest"
    base.mkdir(parents=True, exist_ok=True)
    path = base / str(uuid4())
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        try:
            next(base.iterdir())
        except StopIteration:
            base.rmdir()
        except FileNotFoundError:
            pass


tmp_path = pytest.fixture(name="tmp_path")(_tmp_path_fixture)


class TickingClock:
    """Deterministic millisecond clock that advances on every read."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv: MemoryKeyValueStore, tmp_path: Path, clock: TickingClock) -> CourseStore:
    return CourseStore(
        kv,
        LocalFileStore(clock=clock),
        tmp_path / "courses",
        results=QuizResultStore(kv),
        clock=clock,
    )
