"""Run every example script and compare its stdout with the inline ``# =>`` comments."""

from __future__ import annotations

import ast
import os
import subprocess
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
EXAMPLES_ROOT = REPO_ROOT / "examples"
SRC_ROOT = REPO_ROOT / "src"

EXPECTATION_MARKER = "# =>"


def example_scripts() -> list[Path]:
    return sorted(EXAMPLES_ROOT.glob("ex_*/01_*.py"))


def expected_stdout(path: Path) -> list[str]:
    """Collect the expectation written after every ``print()`` call, in source order."""
    source = path.read_text(encoding="utf-8")
    lines = source.splitlines()

    calls = sorted(
        (
            node
            for node in ast.walk(ast.parse(source, filename=str(path)))
            if isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id == "print"
        ),
        key=lambda node: (node.lineno, node.col_offset),
    )

    expected: list[str] = []
    for call in calls:
        line = lines[(call.end_lineno or call.lineno) - 1]
        if EXPECTATION_MARKER not in line:
            pytest.fail(f"{path.name}:{call.lineno}: print() without an expected output comment")
        expected.append(line.split(EXPECTATION_MARKER, maxsplit=1)[1].strip())
    return expected


def run_example(path: Path) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    env["PYTHONPATH"] = os.pathsep.join(
        part for part in (str(SRC_ROOT), env.get("PYTHONPATH", "")) if part
    )
    env["PYTHONIOENCODING"] = "utf-8"
    return subprocess.run(  # noqa: S603
        [sys.executable, str(path)],
        cwd=path.parent,
        env=env,
        capture_output=True,
        text=True,
        encoding="utf-8",
        check=False,
    )


def test_every_topic_has_an_example() -> None:
    topics = sorted(path for path in EXAMPLES_ROOT.glob("ex_*") if path.is_dir())

    assert topics
    assert [path.parent for path in example_scripts()] == topics


@pytest.mark.parametrize(
    "path",
    example_scripts(),
    ids=lambda path: path.parent.name,
)
def test_example_output(path: Path) -> None:
    if "pydantic_settings" in path.parent.name:
        pytest.importorskip("pydantic_settings")

    completed = run_example(path)

    assert completed.returncode == 0, completed.stderr
    assert completed.stderr == ""
    assert completed.stdout.splitlines() == expected_stdout(path)
