from pathlib import Path

import studydeck


def _project_version() -> str:
    pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
    in_project = False
    for line in pyproject.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if stripped.startswith("[") and stripped.endswith("]"):
            in_project = stripped == "[project]"
            continue
        if in_project and stripped.startswith('version = "'):
            return stripped.split('"', 2)[1]
    raise AssertionError("Could not find [project].version in pyproject.toml")


def test_package_version_matches_pyproject() -> None:
    assert studydeck.__version__ == _project_version()


def test_version_falls_back_when_not_installed(monkeypatch) -> None:
    def missing(name: str) -> str:
        raise studydeck.PackageNotFoundError(name)

    monkeypatch.setattr(studydeck, "_version_from_pyproject", lambda: None)
    monkeypatch.setattr(studydeck, "version", missing)
    assert studydeck._resolve_version() == "0+unknown"

    monkeypatch.setattr(studydeck, "version", lambda name: "9.9.9")
    assert studydeck._resolve_version() == "9.9.9"
