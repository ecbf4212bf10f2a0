"""Runtime settings resolved from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_HOME = ".studydeck"
DEFAULT_MODEL = "gemini-1.5-flash"


@dataclass(frozen=True)
class GenerationSettings:
    """Credentials and limits passed explicitly to the content generator."""

    api_key: str | None = None
    model: str = DEFAULT_MODEL
    question_count: int = 10
    flashcard_count: int = 15
    # Roughly ten pages of extracted PDF text.
    max_text_chars: int = 20_000

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    log_level: str = "WARNING"
    generation: GenerationSettings = field(default_factory=GenerationSettings)

    @property
    def db_path(self) -> Path:
        return self.data_dir / "studydeck.db"

    @property
    def pdf_dir(self) -> Path:
        return self.data_dir / "courses"


def _int_setting(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}.") from None
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {value}.")
    return value


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from ``STUDYDECK_*`` environment variables."""
    env = os.environ if environ is None else environ
    generation = GenerationSettings(
        api_key=env.get("STUDYDECK_API_KEY") or None,
        model=env.get("STUDYDECK_MODEL", "").strip() or DEFAULT_MODEL,
        question_count=_int_setting(env, "STUDYDECK_QUESTION_COUNT", 10),
        flashcard_count=_int_setting(env, "STUDYDECK_FLASHCARD_COUNT", 15),
        max_text_chars=_int_setting(env, "STUDYDECK_MAX_TEXT_CHARS", 20_000),
    )
    return Settings(
        data_dir=Path(env.get("STUDYDECK_HOME", "").strip() or DEFAULT_HOME),
        log_level=env.get("STUDYDECK_LOG_LEVEL", "").strip().upper() or "WARNING",
        generation=generation,
    )
