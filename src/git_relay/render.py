"""Rich renderables for the live progress views."""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from rich.console import Console, ConsoleOptions, RenderResult
from rich.spinner import Spinner
from rich.text import Text

from .operation import Operation
from .progress import ProgressBoard, TaskState
from .tasks import Task

if TYPE_CHECKING:
    from .bootstrap import RepoInit

GLYPH_PENDING = "○"
GLYPH_SUCCEEDED = "✓"
GLYPH_FAILED = "✗"

TITLE_STYLE = "bold magenta"
SUCCESS_STYLE = "green"
FAIL_STYLE = "red"
DIM_STYLE = "dim"
SPINNER_STYLE = "magenta"


def first_line(text: str) -> str:
    return text.split("\n", 1)[0]


def indent_output(text: str, prefix: str = "    ") -> Text:
    """Indents every line of `text` and dims it."""
    return Text(
        "\n".join(prefix + line for line in text.split("\n")), style=DIM_STYLE
    )


class _ProgressView:
    """Shared glyph handling for the task and init views.

    Views are pure functions of their board: the coordinating loop decides
    when to render, and the view never mutates anything except the spinner's
    animation clock.
    """

    def __init__(self, board: ProgressBoard, verbose: bool):
        self.board = board
        self.verbose = verbose
        self.spinner = Spinner("dots", style=SPINNER_STYLE)

    def glyph(self, state: TaskState, now: float) -> Text:
        if state is TaskState.PENDING:
            return Text(GLYPH_PENDING, style=DIM_STYLE)
        if state is TaskState.RUNNING:
            frame = self.spinner.render(now)
            return frame if isinstance(frame, Text) else Text(str(frame))
        if state is TaskState.SUCCEEDED:
            return Text(GLYPH_SUCCEEDED, style=SUCCESS_STYLE)
        return Text(GLYPH_FAILED, style=FAIL_STYLE)

    @property
    def done(self) -> bool:
        return self.board.all_done()


class TaskView(_ProgressView):
    """The live view of a pull, push or fetch run.

    One line per task: glyph, repository short name and remote name. Output is
    shown in full when verbose, or as its first line for failed tasks.
    A summary line follows once every task is terminal.
    """

    def __init__(
        self,
        operation: Operation,
        tasks: Sequence[Task],
        board: ProgressBoard,
        verbose: bool = False,
    ):
        super().__init__(board, verbose)
        self.operation = operation
        self.tasks = tasks

    def task_line(self, task: Task, now: float) -> Text:
        state = self.board.state(task.key)
        line = Text.assemble(
            self.glyph(state, now), f" {task.short_name} → {task.remote_name}"
        )

        result = self.board.results.get(task.key)
        if result is not None and result.output:
            if self.verbose:
                line.append("\n")
                line.append_text(indent_output(result.output))
            elif state is TaskState.FAILED:
                line.append(" " + first_line(result.output), style=DIM_STYLE)
        return line

    def summary(self) -> Text:
        succeeded, failed = self.board.counts()
        text = Text()
        if failed > 0:
            text.append(f"{failed} failed", style=FAIL_STYLE)
            text.append(", ")
        text.append(f"{succeeded} succeeded", style=SUCCESS_STYLE)
        return text

    def __rich_console__(
        self, console: Console, options: ConsoleOptions
    ) -> RenderResult:
        now = console.get_time()
        yield Text(f"{self.operation.verb} repositories", style=TITLE_STYLE)
        yield Text()
        for task in self.tasks:
            yield self.task_line(task, now)
        if self.done:
            yield Text()
            yield self.summary()


class InitView(_ProgressView):
    """The live view of first-time repository initialisation.

    One line per repository; output is shown in full when verbose or when the
    repository failed to initialise.
    """

    def __init__(
        self, inits: Sequence["RepoInit"], board: ProgressBoard, verbose: bool = False
    ):
        super().__init__(board, verbose)
        self.inits = inits

    def init_line(self, repo_init: "RepoInit", now: float) -> Text:
        state = self.board.state(repo_init.path)
        line = Text.assemble(self.glyph(state, now), f" {repo_init.short_name}")

        result = self.board.results.get(repo_init.path)
        if result is not None and result.output:
            if self.verbose or not result.success:
                line.append("\n")
                line.append_text(indent_output(result.output))
        return line

    def __rich_console__(
        self, console: Console, options: ConsoleOptions
    ) -> RenderResult:
        now = console.get_time()
        yield Text("Initialising repositories", style=TITLE_STYLE)
        yield Text()
        for repo_init in self.inits:
            yield self.init_line(repo_init, now)
        if self.done:
            yield Text()
