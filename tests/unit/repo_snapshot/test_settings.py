from datetime import datetime
from pathlib import Path

import pytest
from pydantic import ValidationError

from repo_snapshot.settings import Settings, default_output_name


@pytest.mark.unit
def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REPO_SNAPSHOT_WORKERS", raising=False)
    monkeypatch.delenv("REPO_SNAPSHOT_LOG_FILE", raising=False)

    settings = Settings()

    assert settings.root.resolve() == Path.cwd().resolve()
    assert settings.output is None
    assert settings.use_gitignore is None
    assert settings.sample_bytes == 1024
    assert settings.workers is None
    assert not settings.log_file


@pytest.mark.unit
def test_settings_reads_environment_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPO_SNAPSHOT_WORKERS", "3")
    monkeypatch.setenv("REPO_SNAPSHOT_LOG_FILE", "run.log")

    settings = Settings()

    assert settings.workers == 3
    assert settings.log_file == "run.log"


@pytest.mark.unit
def test_settings_normalizes_extensions() -> None:
    settings = Settings(extensions=[".PY", " md ", "txt"])

    assert settings.extensions == ["py", "md", "txt"]


@pytest.mark.unit
def test_settings_rejects_non_positive_bounds() -> None:
    with pytest.raises(ValidationError):
        Settings(sample_bytes=0)
    with pytest.raises(ValidationError):
        Settings(workers=0)


@pytest.mark.unit
def test_output_path_defaults_to_timestamped_name() -> None:
    now = datetime(2024, 1, 31, 23, 59, 58)

    assert default_output_name(now) == "snapshot_20240131_235958.md"
    assert Settings().output_path(now) == Path("snapshot_20240131_235958.md")
    assert Settings(output=Path("out.md")).output_path(now) == Path("out.md")
