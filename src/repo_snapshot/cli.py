"""
repo_snapshot — Write a reproducible, greppable snapshot of a directory.

Overview
--------
The tool scans the current directory (or `--root`) for UTF-8 text files,
optionally honoring `.gitignore` rules, lets you pick which extensions to
extract, and writes one markdown report holding:

1) a tree of the selected files, and
2) the content of every selected file in a fenced code block.

Files are copied in bounded chunks, so large inputs never sit in memory as a
whole. A file that cannot be read at write time is logged and skipped.

Usage
-----
Run `python -m repo_snapshot.cli --help` for full options. Common examples:
    - Interactive (asks about .gitignore and extensions):
        uv run repo-snapshot

    - Non-interactive, Python and TOML files only, honoring ignore rules:
        uv run repo-snapshot --gitignore --ext py --ext toml --output snapshot.md

    - Everything, raw walk on 8 threads, with stage timings:
        uv run repo-snapshot --no-gitignore --all-extensions --workers 8 --timings
"""

from __future__ import annotations

import argparse
import os
import time
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from repo_snapshot import __version__
from repo_snapshot.config import NO_EXTENSION_LABEL
from repo_snapshot.exceptions import OutputWriteError, SnapshotError
from repo_snapshot.file_manipulation import (
    available_extensions,
    build_tree,
    collect_files,
    filter_by_extensions,
    find_ignore_files,
    order_recs,
)
from repo_snapshot.logging import logger, setup_logging
from repo_snapshot.output_construction import write_report
from repo_snapshot.settings import ENV_FILE, WORKERS_ENV, Settings

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from repo_snapshot.config import IgnoreFileRecord

    InputFn = Callable[[str], str]

TIMING_STAGES = ("locate", "collect", "tree", "write")


class timed:  # noqa: N801
    """Record the wall-clock duration of a block, in microseconds, under `stage`."""

    def __init__(self, timings: dict[str, int], stage: str) -> None:
        self.timings = timings
        self.stage = stage
        self.start = 0.0

    def __enter__(self) -> None:
        self.start = time.perf_counter()

    def __exit__(self, *exc_info: object) -> None:
        self.timings[self.stage] = int((time.perf_counter() - self.start) * 1_000_000)


def print_timings(timings: dict[str, int]) -> None:
    print("\nStage timings (µs):")
    print("-" * 43)
    for stage in TIMING_STAGES:
        print(f"{stage:<26} {timings.get(stage, 0):>10}")
    print("-" * 43)
    total = sum(timings.values())
    print(f"{'total':<26} {total:>10}")
    print(f"{'':<26} {total // 1000:>10} ms")


def positive_int(value: str) -> int:
    """Argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return number


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = argparse.ArgumentParser(
        prog="repo-snapshot",
        description="Write the tree and contents of a directory's text files to one markdown report.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--root", type=str, default=".", help="Directory to scan.")
    p.add_argument("--output", type=str, default=None, help="Report file (default: timestamped name).")
    p.add_argument(
        "--gitignore",
        dest="use_gitignore",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Apply .gitignore rules (asked interactively when omitted).",
    )
    selection = p.add_mutually_exclusive_group()
    selection.add_argument(
        "--ext",
        dest="extensions",
        action="append",
        default=[],
        help="Extension to extract, without the dot (repeatable).",
    )
    selection.add_argument(
        "--all-extensions",
        action="store_true",
        help="Extract every discovered extension.",
    )
    p.add_argument("--sample-bytes", type=positive_int, default=None, help="Bytes sampled for UTF-8 detection.")
    p.add_argument(
        "--workers",
        type=positive_int,
        default=os.environ.get(WORKERS_ENV, "").strip() or None,
        help=f"Worker threads for the raw walk (default: ${WORKERS_ENV} or the executor's default).",
    )
    p.add_argument("--log-file", type=str, default=None, help="Log file path.")
    p.add_argument("--timings", action="store_true", help="Print per-stage timings.")
    args = p.parse_args(argv)
    values = {k: v for k, v in vars(args).items() if v is not None}
    return Settings(**values)


def print_ignore_files(ignore_files: Sequence[IgnoreFileRecord]) -> None:
    print("\nFound the following .gitignore files:")
    for info in ignore_files:
        print(f"  - {info.rel}")


def ask_apply_gitignore(input_fn: InputFn = input) -> bool:
    """Ask whether the discovered `.gitignore` rules should be applied."""
    answer = input_fn("\nApply .gitignore rules? (y/n): ")
    return answer.strip().lower() == "y"


def parse_extension_selection(raw: str, extensions: Sequence[str]) -> set[str]:
    """Turn a prompt answer into a set of extensions.

    `a` selects everything; otherwise the answer is a space-separated list
    of 1-based indices into `extensions`. Tokens that are not numbers or
    fall outside the list are ignored.

    Args:
        raw (str): the user's answer
        extensions (Sequence[str]): the numbered extensions

    Returns:
        set[str]: the selected extensions
    """
    if raw.strip().lower() == "a":
        return set(extensions)
    selected: set[str] = set()
    for token in raw.split():
        if not token.isdigit():
            continue
        idx = int(token)
        if 1 <= idx <= len(extensions):
            selected.add(extensions[idx - 1])
    return selected


def ask_extensions(extensions: Sequence[str], input_fn: InputFn = input) -> set[str]:
    """List the discovered extensions and ask which ones to extract."""
    print("\nFound the following UTF-8 file types:")
    for i, ext in enumerate(extensions, start=1):
        print(f"{i}. {ext or NO_EXTENSION_LABEL}")
    answer = input_fn("\nEnter file type numbers to extract (space-separated, 'a' for all types): ")
    return parse_extension_selection(answer, extensions)


def resolve_selection(settings: Settings, extensions: Sequence[str], input_fn: InputFn) -> set[str]:
    if settings.all_extensions:
        return set(extensions)
    if settings.extensions:
        return set(settings.extensions)
    return ask_extensions(extensions, input_fn)


def run(settings: Settings, input_fn: InputFn = input) -> int:
    """Execute one snapshot run.

    Args:
        settings (Settings): the run configuration
        input_fn (InputFn): reads answers to interactive prompts

    Raises:
        AllFilesFailedError: if every selected file failed to read
        OutputWriteError: if the report cannot be created or written

    Returns:
        int: process exit code
    """
    timings: dict[str, int] = {}
    root = Path(settings.root).resolve()
    print(f"Scanning {root} and subdirectories...")

    with timed(timings, "locate"):
        ignore_files = find_ignore_files(root)

    if ignore_files:
        print_ignore_files(ignore_files)
    use_gitignore = settings.use_gitignore
    if use_gitignore is None:
        use_gitignore = bool(ignore_files) and ask_apply_gitignore(input_fn)

    with timed(timings, "collect"):
        recs = collect_files(
            root,
            use_gitignore=use_gitignore,
            sample_bytes=settings.sample_bytes,
            workers=settings.workers,
        )
    logger.info("Collected files", root=str(root), count=len(recs), use_gitignore=use_gitignore)

    if not recs:
        print("No UTF-8 readable files found.")
    elif not (selected := resolve_selection(settings, available_extensions(recs), input_fn)):
        print("No file types selected.")
    elif not (ordered := order_recs(filter_by_extensions(recs, selected))):
        print("No matching files found.")
    else:
        with timed(timings, "tree"):
            tree_text = build_tree(r.rel for r in ordered)

        out_path = settings.output_path()
        with timed(timings, "write"):
            try:
                sink = out_path.open("wb")
            except OSError as e:
                raise OutputWriteError(target=str(out_path), reason=str(e)) from e
            with sink:
                summary = write_report(ordered, tree_text, sink)

        print(f"Successfully processed {summary.files_written} files ({summary.files_failed} failed)")
        print(f"\nFile contents successfully extracted to: {out_path}")

    if settings.timings:
        print_timings(timings)
    return 0


def main(argv: Sequence[str] | None = None, input_fn: InputFn = input) -> int:
    load_dotenv(ENV_FILE)
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    try:
        return run(settings, input_fn)
    except SnapshotError as e:
        logger.error("Snapshot failed", error=repr(e))
        print(f"Error: {e!r}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
