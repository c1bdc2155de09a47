from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field

_ = Path()

ROOT_KEY = "."
EMPTY_TREE_NOTICE = "(No files or directories found to list)"
DEFAULT_SAMPLE_BYTES = 1024
COPY_CHUNK_BYTES = 64 * 1024
GIT_DIR_NAME = ".git"
GITIGNORE_NAME = ".gitignore"
IGNORE_FILE_NAMES = (GITIGNORE_NAME, ".ignore")
NO_EXTENSION_LABEL = "no extension"


class FileType(StrEnum):
    """Categorization of files by extension, used to pick a code fence tag."""

    TEXT = auto()
    PYTHON = auto()
    RUST = auto()
    JAVASCRIPT = auto()
    TYPESCRIPT = auto()
    GO = auto()
    JAVA = auto()
    C = auto()
    CPP = auto()
    HTML = auto()
    CSS = auto()
    JSON = auto()
    XML = auto()
    YAML = auto()
    TOML = auto()
    MARKDOWN = auto()
    BASH = auto()
    SQL = auto()
    DOCKERFILE = auto()
    MAKEFILE = auto()
    OTHER = auto()


EXT2TYPE: dict[str, FileType] = {
    "bash": FileType.BASH,
    "c": FileType.C,
    "cc": FileType.CPP,
    "cpp": FileType.CPP,
    "css": FileType.CSS,
    "cxx": FileType.CPP,
    "dockerfile": FileType.DOCKERFILE,
    "go": FileType.GO,
    "h": FileType.C,
    "hpp": FileType.C,
    "html": FileType.HTML,
    "java": FileType.JAVA,
    "js": FileType.JAVASCRIPT,
    "json": FileType.JSON,
    "makefile": FileType.MAKEFILE,
    "md": FileType.MARKDOWN,
    "py": FileType.PYTHON,
    "rs": FileType.RUST,
    "sh": FileType.BASH,
    "sql": FileType.SQL,
    "toml": FileType.TOML,
    "ts": FileType.TYPESCRIPT,
    "txt": FileType.TEXT,
    "xml": FileType.XML,
    "yaml": FileType.YAML,
    "yml": FileType.YAML,
}

_FENCE_LANGUAGE: dict[FileType, str] = {
    FileType.PYTHON: "python",
    FileType.RUST: "rust",
    FileType.JAVASCRIPT: "javascript",
    FileType.TYPESCRIPT: "typescript",
    FileType.GO: "go",
    FileType.JAVA: "java",
    FileType.C: "c",
    FileType.CPP: "cpp",
    FileType.HTML: "html",
    FileType.CSS: "css",
    FileType.JSON: "json",
    FileType.XML: "xml",
    FileType.YAML: "yaml",
    FileType.TOML: "toml",
    FileType.MARKDOWN: "markdown",
    FileType.BASH: "bash",
    FileType.SQL: "sql",
    FileType.DOCKERFILE: "dockerfile",
    FileType.MAKEFILE: "makefile",
    FileType.TEXT: "",
    FileType.OTHER: "",
}


def guess_file_type(extension: str) -> FileType:
    """Map a bare, lower-case extension (no dot) to its file type.

    Args:
        extension (str): the extension, e.g. "py"; "" for files without one

    Returns:
        FileType: the matching file type, or FileType.OTHER if unknown.
    """
    return EXT2TYPE.get(extension, FileType.OTHER)


def guess_language(extension: str) -> str:
    """Get the code fence language tag for an extension.

    Args:
        extension (str): the bare, lower-case extension

    Returns:
        str: the fence language, or empty string for unrecognized extensions.
    """
    return _FENCE_LANGUAGE.get(guess_file_type(extension), "")


class FileRecord(BaseModel):
    """A text file selected during collection.

    Attributes:
        path: Absolute path to the file on disk (identity key).
        rel: Path relative to the scan root, with POSIX separators.
        extension: Lower-case extension without the dot, "" if none.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to the scan root")
    extension: str = Field("", description="Lower-case extension, no leading dot")

    @computed_field
    @property
    def language(self) -> str:
        """Get the code fence language tag based on the extension."""
        return guess_language(self.extension)


class IgnoreFileRecord(BaseModel):
    """A `.gitignore` file discovered under the scan root (disclosure only)."""

    model_config = ConfigDict(frozen=True)

    rel: str = Field(..., description="Path relative to the scan root")


class RenderSummary(BaseModel):
    """Outcome of streaming a report to its sink."""

    model_config = ConfigDict(frozen=True)

    files_written: int = Field(0, ge=0)
    files_failed: int = Field(0, ge=0)
