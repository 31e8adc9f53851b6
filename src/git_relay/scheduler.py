"""The coordinating event loop that runs tasks and drives the live view.

All state changes and all rendering happen in `EventLoop.run`. Each unit of
work runs as its own asyncio task and reports back only by putting a
completion event on the loop's queue; it never touches the board itself.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Hashable, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from rich.console import Console, RenderableType
from rich.live import Live

from .constants import APP_NAME
from .git_wrapper import GitExecutor, Result
from .operation import Operation
from .progress import ProgressBoard, TaskState
from .render import TaskView
from .tasks import Task, TaskKey

logger = logging.getLogger(APP_NAME)

Job = Callable[[], Awaitable[tuple[Any, bool]]]
"""A unit of work: returns its result and whether it succeeded."""

CrashHandler = Callable[[Hashable, Exception], Any]
"""Builds the result recorded for a job that raised instead of returning."""

REFRESH_PER_SECOND = 12.5


@dataclass
class TaskCompleted:
    """A unit of work finished (successfully or not)."""

    key: Hashable
    result: Any
    success: bool


@dataclass
class WorkerCrashed:
    """A unit of work raised instead of returning a result."""

    key: Hashable
    error: Exception


@dataclass
class Tick:
    """Time to redraw the spinner."""


@dataclass
class RunSummary:
    """The outcome of a whole run.

    Attributes:
        succeeded (int): Tasks that succeeded.
        failed (int): Tasks that failed.
        states (dict[TaskKey, TaskState]): Final state per task.
        results (dict[TaskKey, Result]): Final result per task.
    """

    succeeded: int = 0
    failed: int = 0
    states: dict[TaskKey, TaskState] = field(default_factory=dict)
    results: dict[TaskKey, Result] = field(default_factory=dict)

    @classmethod
    def from_board(cls, board: ProgressBoard) -> "RunSummary":
        succeeded, failed = board.counts()
        return cls(succeeded, failed, dict(board.states), dict(board.results))


class EventLoop:
    """Launches jobs and applies their completion events one at a time.

    Attributes:
        board (ProgressBoard): Progress state, owned by this loop.
        view (RenderableType): What to draw on each refresh.
        console (Console): Where to draw it.
        on_crash (CrashHandler): Turns an exception raised by a job into the
            result recorded for its FAILED task.
        queue (asyncio.Queue): Completion and tick events.
    """

    def __init__(
        self,
        board: ProgressBoard,
        view: RenderableType,
        console: Console,
        on_crash: CrashHandler,
    ):
        self.board = board
        self.view = view
        self.console = console
        self.on_crash = on_crash
        self.queue: asyncio.Queue = asyncio.Queue()
        self._workers: dict[Hashable, asyncio.Task] = {}

    def _launch(self, key: Hashable, job: Job) -> None:
        self.board.start(key)
        self._workers[key] = asyncio.create_task(self._work(key, job))

    async def _work(self, key: Hashable, job: Job) -> None:
        try:
            result, success = await job()
        except Exception as e:
            await self.queue.put(WorkerCrashed(key, e))
            return
        await self.queue.put(TaskCompleted(key, result, success))

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(1 / REFRESH_PER_SECOND)
            self.queue.put_nowait(Tick())

    async def _cancel_workers(self) -> None:
        workers = [w for w in self._workers.values() if not w.done()]
        for worker in workers:
            worker.cancel()
        if workers:
            running = ", ".join(str(key) for key in self.board.running())
            logger.info(f"Cancelling {len(workers)} running task(s): {running}")
            await asyncio.gather(*workers, return_exceptions=True)
        self._workers.clear()

    async def run(
        self, jobs: Sequence[tuple[Hashable, Job]], linear: bool = False
    ) -> None:
        """Runs every job to a terminal state.

        In parallel mode every job is launched up front. In linear mode only
        one job is outstanding at a time, launched in sequence order, and the
        next is launched only after the previous one completed.

        If this coroutine is cancelled (e.g. on Ctrl+C), running jobs are
        cancelled, which kills their git processes, and jobs that never
        started are never launched.

        A job that raises is recorded as FAILED with the result built by
        `on_crash`; the other jobs carry on.

        Args:
            jobs (Sequence[tuple[Hashable, Job]]): (board key, job) pairs.
            linear (bool, optional): Run one job at a time. Defaults to False.
        """
        waiting = deque(jobs)
        ticker = asyncio.create_task(self._tick())

        with Live(
            self.view, console=self.console, auto_refresh=False, transient=False
        ) as live:
            try:
                if linear:
                    if waiting:
                        self._launch(*waiting.popleft())
                else:
                    while waiting:
                        self._launch(*waiting.popleft())
                live.refresh()

                while not self.board.all_done():
                    event = await self.queue.get()

                    if isinstance(event, TaskCompleted):
                        self.board.finish(event.key, event.result, event.success)
                    elif isinstance(event, WorkerCrashed):
                        logger.info(
                            f"Task {event.key} raised {event.error!r}",
                            exc_info=event.error,
                        )
                        result = self.on_crash(event.key, event.error)
                        self.board.finish(event.key, result, False)
                    else:
                        live.refresh()
                        continue

                    self._workers.pop(event.key, None)
                    if linear and waiting:
                        self._launch(*waiting.popleft())
                    live.refresh()
            finally:
                ticker.cancel()
                await self._cancel_workers()


def _crash_result(key: Hashable, error: Exception) -> Result:
    return Result(output=f"{type(error).__name__}: {error}", error=error, exit_code=1)


async def _execute(
    git: GitExecutor, task: Task, operation: Operation, force: bool
) -> tuple[Result, bool]:
    """Runs one task against the git executor and logs its outcome."""
    op = task.operation or operation
    result = await git.execute(
        op, task.repo_path, task.remote_name, force=force and op is Operation.PUSH
    )
    if result.ok:
        logger.info(f"SUCCESS {task.repo_name} {task.remote_name}: {op.past_tense}.")
    else:
        logger.info(
            f"{op.value.upper()} ERROR {task.repo_name} {task.remote_name}: "
            f"{result.output}"
        )
    return result, result.ok


async def run_tasks(
    operation: Operation,
    tasks: Sequence[Task],
    git: GitExecutor,
    *,
    verbose: bool = False,
    force: bool = False,
    linear: bool = False,
    console: Console | None = None,
) -> RunSummary:
    """Runs resolved tasks with a live progress view.

    A failing task only fails itself; the remaining tasks keep running.

    Args:
        operation (Operation): The run's operation. Tasks with their own
            `operation` set (pull runs) use that instead.
        tasks (Sequence[Task]): Tasks in resolution order.
        git (GitExecutor): The git executor.
        verbose (bool, optional): Show full output for every task.
        force (bool, optional): Force pushes. Ignored for other operations.
        linear (bool, optional): Run one task at a time, in order.
        console (Console | None, optional): Output console.

    Returns:
        RunSummary: Counts plus the final state and result of every task.
    """
    board = ProgressBoard(task.key for task in tasks)
    view = TaskView(operation, tasks, board, verbose=verbose)
    loop = EventLoop(board, view, console or Console(), on_crash=_crash_result)

    jobs = [
        (task.key, partial(_execute, git, task, operation, force)) for task in tasks
    ]
    await loop.run(jobs, linear=linear)

    summary = RunSummary.from_board(board)
    logger.info(
        f"{operation.verb} finished: {summary.succeeded} succeeded, "
        f"{summary.failed} failed"
    )
    return summary
