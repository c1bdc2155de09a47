from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from pathspec import GitIgnoreSpec

from repo_snapshot import ignore_rules
from repo_snapshot.ignore_rules import (
    IgnoreLayer,
    base_layers,
    find_repository_top,
    is_ignored,
    load_directory_layers,
    read_layer,
)

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def _layer(directory: Path, *lines: str) -> IgnoreLayer:
    return IgnoreLayer(directory=directory, spec=GitIgnoreSpec.from_lines(lines), source=directory / ".gitignore")


@pytest.mark.unit
def test_directory_only_pattern_needs_is_dir(tmp_path: Path) -> None:
    layers = [_layer(tmp_path, "build/")]

    assert is_ignored(tmp_path / "build", layers, is_dir=True)
    assert not is_ignored(tmp_path / "build", layers, is_dir=False)


@pytest.mark.unit
def test_deeper_layer_wins(tmp_path: Path) -> None:
    layers = [_layer(tmp_path, "*.log"), _layer(tmp_path / "pkg", "!keep.log")]

    assert is_ignored(tmp_path / "top.log", layers)
    assert is_ignored(tmp_path / "pkg" / "other.log", layers)
    assert not is_ignored(tmp_path / "pkg" / "keep.log", layers)


@pytest.mark.unit
def test_layer_ignores_paths_outside_its_directory(tmp_path: Path) -> None:
    layers = [_layer(tmp_path / "pkg", "*.txt")]

    assert not is_ignored(tmp_path / "readme.txt", layers)
    assert is_ignored(tmp_path / "pkg" / "notes.txt", layers)


@pytest.mark.unit
def test_anchored_pattern_is_relative_to_layer_directory(tmp_path: Path) -> None:
    layers = [_layer(tmp_path / "pkg", "/generated.py")]

    assert is_ignored(tmp_path / "pkg" / "generated.py", layers)
    assert not is_ignored(tmp_path / "pkg" / "sub" / "generated.py", layers)


@pytest.mark.unit
def test_load_directory_layers_orders_gitignore_before_ignore(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("*.tmp\n", encoding="utf-8")
    (tmp_path / ".ignore").write_text("!keep.tmp\n", encoding="utf-8")

    layers = load_directory_layers(tmp_path)

    assert [layer.source.name for layer in layers] == [".gitignore", ".ignore"]
    assert not is_ignored(tmp_path / "keep.tmp", layers)
    assert is_ignored(tmp_path / "drop.tmp", layers)


@pytest.mark.unit
def test_read_layer_skips_missing_and_comment_only_files(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("# nothing here\n\n", encoding="utf-8")

    assert read_layer(tmp_path / ".gitignore", tmp_path) is None
    assert read_layer(tmp_path / "absent", tmp_path) is None


@pytest.mark.unit
def test_read_layer_drops_patterns_git_would_skip(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("build/\n!\n\\\n*.log\n", encoding="utf-8")
    warnings: list[tuple[str, dict[str, object]]] = []

    layer = read_layer(tmp_path / ".gitignore", tmp_path, lambda event, **kw: warnings.append((event, kw)))

    assert layer is not None
    assert is_ignored(tmp_path / "build", [layer], is_dir=True)
    assert is_ignored(tmp_path / "app.log", [layer])
    assert [(kw["line"], kw["pattern"]) for _, kw in warnings] == [(2, "!"), (3, "\\")]


@pytest.mark.unit
def test_read_layer_with_only_invalid_patterns_is_empty(tmp_path: Path) -> None:
    (tmp_path / ".ignore").write_text("!\n", encoding="utf-8")

    assert read_layer(tmp_path / ".ignore", tmp_path, lambda event, **kw: None) is None


@pytest.mark.unit
def test_find_repository_top_walks_up(tmp_path: Path) -> None:
    (tmp_path / ".git").mkdir()
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)

    assert find_repository_top(nested) == tmp_path


@pytest.mark.unit
def test_base_layers_precedence(tmp_path: Path, mocker: MockerFixture) -> None:
    global_file = tmp_path / "global-ignore"
    global_file.write_text("*.bak\n", encoding="utf-8")
    mocker.patch.object(ignore_rules, "global_excludes_file", return_value=global_file)
    (tmp_path / ".git" / "info").mkdir(parents=True)
    (tmp_path / ".git" / "info" / "exclude").write_text("!keep.bak\n", encoding="utf-8")
    (tmp_path / ".gitignore").write_text("*.cache\n", encoding="utf-8")
    root = tmp_path / "project"
    root.mkdir()

    layers = base_layers(root)

    assert [layer.source for layer in layers] == [
        global_file,
        tmp_path / ".git" / "info" / "exclude",
        tmp_path / ".gitignore",
    ]
    assert is_ignored(root / "old.bak", layers)
    assert not is_ignored(root / "keep.bak", layers)
    assert is_ignored(root / "x.cache", layers)
