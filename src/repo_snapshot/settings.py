from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

from dotenv import find_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from repo_snapshot.config import DEFAULT_SAMPLE_BYTES

ENV_FILE = find_dotenv(usecwd=True)

OUTPUT_PREFIX = "snapshot"
WORKERS_ENV = "REPO_SNAPSHOT_WORKERS"


def _env_workers() -> int | None:
    raw = os.environ.get(WORKERS_ENV, "").strip()
    return int(raw) if raw else None


def default_output_name(now: datetime | None = None) -> str:
    """Timestamped report file name, e.g. `snapshot_20240131_235959.md`."""
    stamp = (now or datetime.now().astimezone()).strftime("%Y%m%d_%H%M%S")
    return f"{OUTPUT_PREFIX}_{stamp}.md"


class Settings(BaseModel):
    """Configuration settings for a snapshot run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    root: Path = Field(default_factory=Path.cwd, description="Directory to scan.")
    output: Path | None = Field(default=None, description="Report file; timestamped name when unset.")
    use_gitignore: bool | None = Field(
        default=None,
        description="Apply ignore rules; None asks when .gitignore files exist.",
    )
    extensions: list[str] = Field(default_factory=list, description="Extensions to extract.")
    all_extensions: bool = Field(default=False, description="Extract every discovered extension.")
    sample_bytes: int = Field(
        default=DEFAULT_SAMPLE_BYTES,
        ge=1,
        description="Bytes sampled when deciding whether a file is UTF-8 text.",
    )
    workers: int | None = Field(
        default_factory=_env_workers,
        ge=1,
        description="Worker threads for the raw walk.",
    )
    log_file: str = Field(
        default_factory=lambda: os.environ.get("REPO_SNAPSHOT_LOG_FILE", ""),
        description="Log file path.",
    )
    timings: bool = Field(default=False, description="Print per-stage timings.")

    @field_validator("extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        return [ext.strip().lstrip(".").lower() for ext in value]

    def output_path(self, now: datetime | None = None) -> Path:
        """Resolve where the report goes."""
        return self.output if self.output is not None else Path(default_output_name(now))
