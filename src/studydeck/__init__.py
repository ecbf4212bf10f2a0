"""studydeck: courses of quizzes, flashcard sets, and PDFs."""

from __future__ import annotations

import re
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["__version__"]


def _version_from_pyproject() -> str | None:
    """Best-effort version lookup from a local pyproject.toml for source runs."""
    for base in Path(__file__).resolve().parents:
        pyproject = base / "pyproject.toml"
        if not pyproject.exists():
            continue
        in_project = False
        for line in pyproject.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if stripped.startswith("[") and stripped.endswith("]"):
                in_project = stripped == "[project]"
            elif in_project and (match := re.match(r'^version\s*=\s*"([^"]+)"\s*$', stripped)):
                return match.group(1)
    return None


def _resolve_version() -> str:
    local = _version_from_pyproject()
    if local is not None:
        return local
    try:
        return version("studydeck")
    except PackageNotFoundError:
        return "0+unknown"


__version__ = _resolve_version()
