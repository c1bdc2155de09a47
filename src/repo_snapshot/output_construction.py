from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, BinaryIO

from repo_snapshot.config import COPY_CHUNK_BYTES, FileRecord, RenderSummary
from repo_snapshot.exceptions import AllFilesFailedError, FileProcessingError, OutputWriteError
from repo_snapshot.logging import log_warning

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repo_snapshot.logging import WarningReporter

REPORT_TITLE = "# Project Analysis Report"


def write_text(sink: BinaryIO, text: str) -> None:
    """Write UTF-8 text to the sink, turning I/O failures into `OutputWriteError`.

    Args:
        sink (BinaryIO): the output stream
        text (str): the text to encode and write

    Raises:
        OutputWriteError: if the sink rejects the write
    """
    write_bytes(sink, text.encode("utf-8"))


def write_bytes(sink: BinaryIO, data: bytes) -> None:
    try:
        sink.write(data)
    except (OSError, ValueError) as e:
        raise OutputWriteError(target=str(getattr(sink, "name", sink)), reason=str(e)) from e


def write_preamble(sink: BinaryIO, tree_text: str) -> None:
    """Write the report title and the file structure block."""
    write_text(sink, f"{REPORT_TITLE}\n\n")
    write_text(sink, f"## File Structure\n\n```\n{tree_text}```\n\n")
    write_text(sink, "## File Contents\n\n")


def copy_file_section(sink: BinaryIO, rec: FileRecord, chunk_bytes: int = COPY_CHUNK_BYTES) -> None:
    """Stream one file into the sink as a fenced markdown section.

    The file is opened before anything is written, so a file that vanished or
    became unreadable since collection leaves no trace in the output. The
    body is copied byte-for-byte, one line (at most `chunk_bytes`) at a time.
    When it does not end with a newline, one is added before the closing
    fence.

    Args:
        sink (BinaryIO): the output stream
        rec (FileRecord): the file to copy
        chunk_bytes (int): upper bound on a single read

    Raises:
        FileProcessingError: if the file cannot be opened or read
        OutputWriteError: if the sink rejects a write
    """
    try:
        src = rec.path.open("rb")
    except OSError as e:
        raise FileProcessingError(path=rec.path, reason=str(e)) from e

    with src:
        write_text(sink, f"### `{rec.rel}`\n\n```{rec.language}\n")
        last = b""
        reader = partial(src.readline, chunk_bytes)
        while True:
            try:
                chunk = reader()
            except OSError as e:
                raise FileProcessingError(path=rec.path, reason=str(e)) from e
            if not chunk:
                break
            write_bytes(sink, chunk)
            last = chunk
        if last and not last.endswith(b"\n"):
            write_bytes(sink, b"\n")
        write_text(sink, "```\n\n")


def write_report(
    recs: Sequence[FileRecord],
    tree_text: str,
    sink: BinaryIO,
    *,
    report: WarningReporter = log_warning,
) -> RenderSummary:
    """Write the whole report (structure, then each file) to `sink`.

    Files are copied one at a time in the given order, which callers sort by
    relative path. A file that fails to read is reported, counted and
    skipped; the render carries on with the next file.

    Args:
        recs (Sequence[FileRecord]): the files to include, sorted by relative path
        tree_text (str): the rendered file structure
        sink (BinaryIO): the output stream, owned by this call for its duration
        report (WarningReporter): sink for non-fatal diagnostics

    Raises:
        AllFilesFailedError: if there were files to copy and none could be read
        OutputWriteError: if the sink rejects a write

    Returns:
        RenderSummary: how many files were written and how many failed
    """
    write_preamble(sink, tree_text)

    written = 0
    failed = 0
    for rec in recs:
        try:
            copy_file_section(sink, rec)
        except FileProcessingError as e:
            report("Failed to read file", path=rec.rel, error=e.reason)
            failed += 1
        else:
            written += 1

    try:
        sink.flush()
    except (OSError, ValueError) as e:
        raise OutputWriteError(target=str(getattr(sink, "name", sink)), reason=str(e)) from e

    if written == 0 and failed > 0:
        raise AllFilesFailedError(failed=failed)
    return RenderSummary(files_written=written, files_failed=failed)
