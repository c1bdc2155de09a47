"""Layered `.gitignore` evaluation.

Rules are compiled with `pathspec.GitIgnoreSpec`; this module only decides
which ignore files apply to a path and in which order. Layers are kept
shallow to deep, so the last layer with a matching pattern (ignore or
negation) decides, which gives deeper files precedence over shallower ones.
"""

from __future__ import annotations

import os
import subprocess  # noqa: S404
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from pathspec import GitIgnoreSpec

from repo_snapshot.config import GIT_DIR_NAME, IGNORE_FILE_NAMES
from repo_snapshot.logging import log_warning

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repo_snapshot.logging import WarningReporter


@dataclass(frozen=True)
class IgnoreLayer:
    """Compiled rules of one ignore file, anchored at `directory`."""

    directory: Path
    spec: GitIgnoreSpec
    source: Path

    def decide(self, path: Path, *, is_dir: bool) -> bool | None:
        """Return True (ignored), False (re-included) or None (no pattern matched)."""
        try:
            rel = path.relative_to(self.directory).as_posix()
        except ValueError:
            return None
        if is_dir:
            rel += "/"
        return self.spec.check_file(rel).include


def _valid_lines(source: Path, lines: Sequence[str], report: WarningReporter) -> list[str]:
    """Drop the lines pathspec cannot compile (git skips them silently)."""
    valid: list[str] = []
    for number, line in enumerate(lines, start=1):
        try:
            GitIgnoreSpec.from_lines([line])
        except ValueError as e:
            report("Skipping invalid ignore pattern", path=str(source), line=number, pattern=line, error=str(e))
            continue
        valid.append(line)
    return valid


def read_layer(source: Path, directory: Path, report: WarningReporter = log_warning) -> IgnoreLayer | None:
    """Compile one ignore file.

    Args:
        source (Path): the ignore file to read
        directory (Path): the directory its patterns are relative to
        report (WarningReporter): sink for non-fatal diagnostics

    Returns:
        IgnoreLayer | None: the compiled layer, or None when the file is
            missing, unreadable, or holds no patterns.
    """
    if not source.is_file():
        return None
    try:
        lines = source.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as e:
        report("Failed to read ignore file", path=str(source), error=str(e))
        return None
    try:
        spec = GitIgnoreSpec.from_lines(lines)
    except ValueError:
        spec = GitIgnoreSpec.from_lines(_valid_lines(source, lines, report))
    if all(p.include is None for p in spec.patterns):
        return None
    return IgnoreLayer(directory=directory, spec=spec, source=source)


def load_directory_layers(directory: Path, report: WarningReporter = log_warning) -> list[IgnoreLayer]:
    """Load the ignore files that live directly in `directory`.

    `.gitignore` comes first and `.ignore` second, so `.ignore` wins when both match.
    """
    layers: list[IgnoreLayer] = []
    for name in IGNORE_FILE_NAMES:
        layer = read_layer(directory / name, directory, report)
        if layer is not None:
            layers.append(layer)
    return layers


def find_repository_top(root: Path) -> Path | None:
    """Return the closest directory at or above `root` that holds a `.git` entry."""
    for candidate in (root, *root.parents):
        if (candidate / GIT_DIR_NAME).exists():
            return candidate
    return None


def global_excludes_file() -> Path | None:
    """Locate the user's global Git excludes file.

    Asks `git config core.excludesFile` first and falls back to the XDG
    default location when Git is missing or the option is unset.
    """
    try:
        out = subprocess.run(
            ["git", "config", "--path", "--get", "core.excludesFile"],  # noqa: S607
            text=True,
            capture_output=True,
            check=False,
        )
        configured = out.stdout.strip()
        if out.returncode == 0 and configured:
            return Path(configured).expanduser()
    except OSError:
        pass
    xdg = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(xdg) / "git" / "ignore"


def base_layers(root: Path, report: WarningReporter = log_warning) -> list[IgnoreLayer]:
    """Build the layers that apply before any file inside `root` is read.

    Lowest precedence first: global excludes, `.git/info/exclude` of the
    enclosing repository, then the ignore files of each ancestor of `root`
    from the repository top level down. The root's own ignore files are
    not included; the walker loads them like any other directory's.

    Args:
        root (Path): the scan root (absolute)
        report (WarningReporter): sink for non-fatal diagnostics

    Returns:
        list[IgnoreLayer]: the base layers, shallow to deep
    """
    top = find_repository_top(root)
    anchor = top or root
    layers: list[IgnoreLayer] = []

    excludes = global_excludes_file()
    if excludes is not None:
        layer = read_layer(excludes, anchor, report)
        if layer is not None:
            layers.append(layer)

    if top is not None:
        layer = read_layer(top / GIT_DIR_NAME / "info" / "exclude", top, report)
        if layer is not None:
            layers.append(layer)
        ancestors = [p for p in root.parents if p == top or top in p.parents]
        for ancestor in reversed(ancestors):
            layers.extend(load_directory_layers(ancestor, report))
    return layers


def is_ignored(path: Path, layers: Sequence[IgnoreLayer], *, is_dir: bool = False) -> bool:
    """Check whether `path` is excluded by the given layers.

    Args:
        path (Path): absolute path of the entry to test
        layers (Sequence[IgnoreLayer]): applicable layers, shallow to deep
        is_dir (bool): whether the entry is a directory, so directory-only
            patterns (`build/`) apply

    Returns:
        bool: True if the deepest matching pattern ignores the path.
    """
    ignored = False
    for layer in layers:
        decision = layer.decide(path, is_dir=is_dir)
        if decision is not None:
            ignored = decision
    return ignored
