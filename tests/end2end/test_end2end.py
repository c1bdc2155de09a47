import os
import subprocess
import sys
from pathlib import Path

from repo_snapshot import cli


def test_end_to_end_markdown_snapshot(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    (repo / "src").mkdir(parents=True)
    (repo / "src" / "app.py").write_text("print('hello')\n", encoding="utf-8")
    (repo / "README.md").write_text("# demo\n", encoding="utf-8")
    (repo / ".git").mkdir()
    (repo / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    output = tmp_path / "export.md"

    exit_code = cli.main(
        ["--root", str(repo), "--no-gitignore", "--all-extensions", "--output", str(output)],
    )

    assert exit_code == 0
    content = output.read_text(encoding="utf-8")
    assert "├── README.md\n└── src\n   └── app.py\n" in content
    assert "### `src/app.py`\n\n```python\nprint('hello')\n```" in content
    assert ".git/HEAD" not in content


def test_end_to_end_module_entrypoint(tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("snapshot me\n", encoding="utf-8")
    output = tmp_path / "snap.md"
    src = Path(__file__).resolve().parents[2] / "src"
    env = {**os.environ, "PYTHONPATH": os.pathsep.join(filter(None, [str(src), os.environ.get("PYTHONPATH")]))}

    result = subprocess.run(
        [
            sys.executable,
            "-m",
            "repo_snapshot.cli",
            "--root",
            str(tmp_path),
            "--no-gitignore",
            "--ext",
            "txt",
            "--output",
            str(output),
        ],
        capture_output=True,
        text=True,
        check=False,
        env=env,
    )

    assert result.returncode == 0, result.stderr
    assert "snapshot me" in output.read_text(encoding="utf-8")
