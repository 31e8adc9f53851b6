"""Tests for the progress views."""

import io
from pathlib import Path

import pytest
from rich.console import Console

from git_relay.git_wrapper import Result
from git_relay.operation import Operation
from git_relay.progress import ProgressBoard
from git_relay.render import TaskView, first_line, indent_output
from git_relay.tasks import Task

TASKS = [
    Task("alice/alpha", "github", "u1", Path("/src/alpha")),
    Task("alice/alpha", "codeberg", "u2", Path("/src/alpha")),
    Task("alice/beta", "github", "u3", Path("/src/beta")),
]


@pytest.fixture
def board() -> ProgressBoard:
    return ProgressBoard(t.key for t in TASKS)


def _render(view: TaskView, console: Console, output: io.StringIO) -> str:
    console.print(view)
    return output.getvalue()


def test_helpers() -> None:
    assert first_line("error: one\nhint: two") == "error: one"
    assert indent_output("a\nb").plain == "    a\n    b"


def test_pending_and_running(
    board: ProgressBoard, console: Console, output: io.StringIO
) -> None:
    """Verifies the title, one line per task, and no summary while running."""
    board.start(TASKS[0].key)

    text = _render(TaskView(Operation.PUSH, TASKS, board), console, output)
    lines = text.splitlines()

    assert lines[0] == "Pushing repositories"
    assert lines[1] == ""
    assert lines[2].endswith(" alpha → github")
    assert not lines[2].startswith(("○", "✓", "✗"))
    assert lines[3] == "○ alpha → codeberg"
    assert lines[4] == "○ beta → github"
    assert "succeeded" not in text


def test_summary_and_failure_output(
    board: ProgressBoard, console: Console, output: io.StringIO
) -> None:
    """Verifies the first line of a failure and the final counts."""
    for task in TASKS:
        board.start(task.key)
    board.finish(TASKS[0].key, Result(output="Everything up-to-date"), True)
    failure = Result(output="fatal: denied\nfatal: again", exit_code=128)
    board.finish(TASKS[1].key, failure, False)
    board.finish(TASKS[2].key, Result(output="ok"), True)

    text = _render(TaskView(Operation.PUSH, TASKS, board), console, output)

    assert "✓ alpha → github\n" in text
    assert "✗ alpha → codeberg fatal: denied\n" in text
    assert "fatal: again" not in text
    assert "Everything up-to-date" not in text
    assert text.rstrip().endswith("1 failed, 2 succeeded")


def test_summary_without_failures(
    board: ProgressBoard, console: Console, output: io.StringIO
) -> None:
    for task in TASKS:
        board.start(task.key)
        board.finish(task.key, Result(), True)

    text = _render(TaskView(Operation.FETCH, TASKS, board), console, output)

    assert text.rstrip().endswith("3 succeeded")
    assert "failed" not in text


def test_verbose_shows_full_output(
    board: ProgressBoard, console: Console, output: io.StringIO
) -> None:
    board.start(TASKS[0].key)
    board.finish(TASKS[0].key, Result(output="line one\nline two"), True)

    view = TaskView(Operation.PULL, TASKS, board, verbose=True)
    text = _render(view, console, output)

    assert "✓ alpha → github\n    line one\n    line two\n" in text
