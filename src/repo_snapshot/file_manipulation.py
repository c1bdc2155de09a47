from __future__ import annotations

import codecs
import os
import stat
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import TYPE_CHECKING

from repo_snapshot.config import (
    DEFAULT_SAMPLE_BYTES,
    EMPTY_TREE_NOTICE,
    GIT_DIR_NAME,
    GITIGNORE_NAME,
    ROOT_KEY,
    FileRecord,
    IgnoreFileRecord,
)
from repo_snapshot.ignore_rules import base_layers, is_ignored, load_directory_layers
from repo_snapshot.logging import log_warning

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Sequence

    from repo_snapshot.ignore_rules import IgnoreLayer
    from repo_snapshot.logging import WarningReporter


def display_name(text: str) -> str:
    """Replace undecodable file-name bytes with U+FFFD so the name encodes as UTF-8."""
    return os.fsencode(text).decode("utf-8", "replace")


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
            Bytes that are not valid UTF-8 come out as U+FFFD.
    """
    try:
        rel = str(path.relative_to(root))
    except ValueError:
        rel = str(path)
    return display_name(rel).replace("\\", "/")


def file_extension(path: Path) -> str:
    """Lower-case extension of `path` without the dot ("" for none or for dot-files)."""
    return display_name(path.suffix[1:]).lower()


def is_text_file(path: Path, nbytes: int = DEFAULT_SAMPLE_BYTES) -> bool:
    """Check if path points to a UTF-8 encoded text file.

    Only the first `nbytes` bytes are sampled, so invalid UTF-8 further into
    the file goes unnoticed and the file is still reported as text. A
    multi-byte sequence cut by the sample boundary is accepted; one cut by
    the end of the file is not. Empty files are text.

    Args:
        path (Path): path to test.
        nbytes (int, optional): number of bytes to sample. Defaults to 1024.

    Returns:
        bool: True if the sampled prefix is valid UTF-8, False otherwise,
            including when the file cannot be opened or read.
    """
    try:
        with path.open("rb") as f:
            chunk = f.read(nbytes)
        at_eof = len(chunk) < nbytes
        codecs.getincrementaldecoder("utf-8")().decode(chunk, final=at_eof)
    except (OSError, UnicodeDecodeError):
        return False
    else:
        return True


def is_regular_file(path: Path) -> bool:
    """Check if a file is regular, without following symlinks.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is regular, False otherwise.
    """
    try:
        st = path.lstat()
        return stat.S_ISREG(st.st_mode)
    except OSError:
        return False


def make_record(path: Path, root: Path) -> FileRecord:
    """Build the record of a collected file."""
    return FileRecord(path=path, rel=relpath(path, root), extension=file_extension(path))


def find_ignore_files(root: Path, report: WarningReporter = log_warning) -> list[IgnoreFileRecord]:
    """List every `.gitignore` under `root`, for disclosure to the user.

    The `.git` directory is skipped and symlinked `.gitignore` files are left
    out. Unreadable directories are reported and skipped.

    Args:
        root (Path): the directory to search
        report (WarningReporter): sink for non-fatal diagnostics

    Returns:
        list[IgnoreFileRecord]: the discovered files, sorted by relative path
    """

    def on_error(err: OSError) -> None:
        report("Failed to read directory while looking for .gitignore files", path=err.filename, error=err.strerror)

    found: list[IgnoreFileRecord] = []
    for dirpath, dirs, files in os.walk(root, onerror=on_error):
        dirs[:] = [d for d in dirs if d != GIT_DIR_NAME]
        if GITIGNORE_NAME in files:
            p = Path(dirpath) / GITIGNORE_NAME
            if is_regular_file(p):
                found.append(IgnoreFileRecord(rel=relpath(p, root)))
    return sorted(found, key=lambda r: r.rel)


def collect_files_with_gitignore(
    root: Path,
    *,
    sample_bytes: int = DEFAULT_SAMPLE_BYTES,
    report: WarningReporter = log_warning,
) -> list[FileRecord]:
    """Walk `root` honoring layered ignore files and keep the text files.

    Ignore files are applied ancestor before descendant (global excludes,
    `.git/info/exclude`, ancestors of `root`, then each visited directory),
    deeper rules overriding shallower ones. Ignored directories are pruned,
    `.git` is always pruned, and symlinks are neither followed nor collected.

    Args:
        root (Path): the directory to walk
        sample_bytes (int): prefix size handed to the UTF-8 classifier
        report (WarningReporter): sink for non-fatal diagnostics

    Returns:
        list[FileRecord]: the collected text files, in walk order
    """
    root = root.resolve()

    def on_error(err: OSError) -> None:
        report("Failed to read directory", path=err.filename, error=err.strerror)

    layers_by_dir: dict[Path, list[IgnoreLayer]] = {root: base_layers(root, report)}
    records: dict[Path, FileRecord] = {}
    for dirpath, dirs, files in os.walk(root, onerror=on_error):
        current = Path(dirpath)
        layers = layers_by_dir.pop(current, [])
        layers = [*layers, *load_directory_layers(current, report)]

        kept_dirs: list[str] = []
        for d in sorted(dirs):
            child = current / d
            if d == GIT_DIR_NAME or child.is_symlink():
                continue
            if is_ignored(child, layers, is_dir=True):
                continue
            kept_dirs.append(d)
            layers_by_dir[child] = layers
        dirs[:] = kept_dirs

        for name in files:
            # a `.git` file is a worktree or submodule gitlink
            if name == GIT_DIR_NAME:
                continue
            p = current / name
            if not is_regular_file(p) or is_ignored(p, layers):
                continue
            if is_text_file(p, sample_bytes):
                records.setdefault(p, make_record(p, root))
    return list(records.values())


class RecordMap:
    """Thread-safe map from absolute path to record with insert-if-absent semantics."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[Path, FileRecord] = {}

    def insert(self, record: FileRecord) -> bool:
        """Insert `record` unless its path is already present; return True if inserted."""
        with self._lock:
            if record.path in self._records:
                return False
            self._records[record.path] = record
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def values(self) -> list[FileRecord]:
        with self._lock:
            return list(self._records.values())


def _list_directory(directory: Path, report: WarningReporter) -> tuple[list[Path], list[Path]]:
    subdirs: list[Path] = []
    files: list[Path] = []
    try:
        with os.scandir(directory) as it:
            for entry in it:
                try:
                    if entry.is_symlink():
                        continue
                    if entry.is_dir(follow_symlinks=False):
                        if entry.name != GIT_DIR_NAME:
                            subdirs.append(Path(entry.path))
                    elif entry.is_file(follow_symlinks=False):
                        files.append(Path(entry.path))
                except OSError as e:
                    report("Failed to inspect entry", path=entry.path, error=str(e))
    except OSError as e:
        report("Failed to read directory", path=str(directory), error=str(e))
    return subdirs, files


def _record_if_text(path: Path, root: Path, records: RecordMap, sample_bytes: int) -> None:
    if is_text_file(path, sample_bytes):
        records.insert(make_record(path, root))


def collect_files_raw(
    root: Path,
    *,
    sample_bytes: int = DEFAULT_SAMPLE_BYTES,
    workers: int | None = None,
    report: WarningReporter = log_warning,
) -> list[FileRecord]:
    """Collect every text file under `root` without evaluating ignore rules.

    Directory listings and per-file classification run on a fixed-size
    thread pool. Directories are dispatched breadth first from this thread
    as their parent's listing completes; records are merged into a
    `RecordMap` so a path enqueued twice is kept once. `.git` is skipped
    and symlinks are neither followed nor collected.

    Args:
        root (Path): the directory to walk
        sample_bytes (int): prefix size handed to the UTF-8 classifier
        workers (int | None): pool size; None lets the executor decide
        report (WarningReporter): sink for non-fatal diagnostics

    Returns:
        list[FileRecord]: the collected text files, order unspecified
    """
    root = root.resolve()
    records = RecordMap()
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="repo-snapshot") as pool:
        pending_dirs: set[Future[tuple[list[Path], list[Path]]]] = {
            pool.submit(_list_directory, root, report),
        }
        pending_files: list[Future[None]] = []
        while pending_dirs:
            done, pending_dirs = wait(pending_dirs, return_when=FIRST_COMPLETED)
            for future in done:
                subdirs, files = future.result()
                pending_dirs.update(pool.submit(_list_directory, d, report) for d in subdirs)
                pending_files.extend(
                    pool.submit(_record_if_text, f, root, records, sample_bytes) for f in files
                )
        for future in pending_files:
            future.result()
    return records.values()


def collect_files(
    root: Path,
    *,
    use_gitignore: bool,
    sample_bytes: int = DEFAULT_SAMPLE_BYTES,
    workers: int | None = None,
    report: WarningReporter = log_warning,
) -> list[FileRecord]:
    """Collect text files in ignore-aware or raw mode."""
    if use_gitignore:
        return collect_files_with_gitignore(root, sample_bytes=sample_bytes, report=report)
    return collect_files_raw(root, sample_bytes=sample_bytes, workers=workers, report=report)


def available_extensions(recs: Iterable[FileRecord]) -> list[str]:
    """Distinct extensions of `recs`, sorted ("" sorts first)."""
    return sorted({r.extension for r in recs})


def filter_by_extensions(recs: Iterable[FileRecord], selected: Collection[str]) -> list[FileRecord]:
    """Keep the records whose extension is in `selected`."""
    return [r for r in recs if r.extension in selected]


def order_recs(recs: Sequence[FileRecord]) -> list[FileRecord]:
    """Sort records by relative path, the order used for both tree and contents."""
    return sorted(recs, key=lambda r: r.rel)


def build_path_map(rel_paths: Iterable[str]) -> dict[str, set[str]]:
    """Map each directory key to the names of its immediate children.

    Every proper ancestor of every path is inserted as an implicit node, so
    each non-root key also appears as a child of its own parent. Only
    directories holding at least one of the given paths show up.

    Args:
        rel_paths (Iterable[str]): file paths relative to the root, using POSIX separators

    Returns:
        dict[str, set[str]]: directory key ("." for the root) to child names
    """
    known: set[str] = set()
    for raw in rel_paths:
        rp = raw.replace("\\", "/").strip("/")
        if not rp:
            continue
        parts = rp.split("/")
        known.update("/".join(parts[:i]) for i in range(1, len(parts)))
        known.add(rp)

    path_map: dict[str, set[str]] = {}
    for p in known:
        parent, _, name = p.rpartition("/")
        path_map.setdefault(parent or ROOT_KEY, set()).add(name)
    return path_map


def render_tree(path_map: dict[str, set[str]]) -> str:
    """Render a path map as a box-drawing tree rooted at ".".

    Children are listed in lexicographic order. A child is expanded when it
    is itself a key of `path_map`. The walk uses an explicit stack so deep
    trees do not hit the recursion limit.

    Args:
        path_map (dict[str, set[str]]): output of `build_path_map`

    Returns:
        str: the tree, one node per line, newline-terminated
    """
    if not path_map.get(ROOT_KEY):
        return f"{ROOT_KEY}\n{EMPTY_TREE_NOTICE}\n"

    lines: list[str] = [ROOT_KEY]
    stack: list[tuple[str, str, str, bool]] = []

    def push_children(key: str, prefix: str) -> None:
        children = sorted(path_map.get(key, ()))
        last_idx = len(children) - 1
        for idx in range(last_idx, -1, -1):
            stack.append((key, children[idx], prefix, idx == last_idx))

    push_children(ROOT_KEY, "")
    while stack:
        parent, name, prefix, last = stack.pop()
        lines.append(prefix + ("└── " if last else "├── ") + name)
        child_key = name if parent == ROOT_KEY else f"{parent}/{name}"
        if child_key in path_map:
            push_children(child_key, prefix + ("   " if last else "│  "))
    return "\n".join(lines) + "\n"


def build_tree(rel_paths: Iterable[str]) -> str:
    """Render the tree of the given relative file paths (order-independent)."""
    return render_tree(build_path_map(rel_paths))
