"""Per-task progress state with monotonic transitions."""

from collections.abc import Hashable, Iterable
from enum import Enum
from typing import Any

from .exceptions import InvalidTransition


class TaskState(Enum):
    """Lifecycle of a task: PENDING -> RUNNING -> SUCCEEDED | FAILED."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.SUCCEEDED, TaskState.FAILED)


class ProgressBoard:
    """The state and latest result of every task in one run.

    The board is owned by a single coordinating loop; nothing else mutates it.
    Tasks move PENDING -> RUNNING -> terminal, and a terminal state is final.
    Any other transition raises `InvalidTransition`.

    Attributes:
        states (dict[Hashable, TaskState]): Current state per key, in launch order.
        results (dict[Hashable, Any]): Result per key, only for terminal keys.
    """

    def __init__(self, keys: Iterable[Hashable]):
        self.states: dict[Hashable, TaskState] = {}
        self.results: dict[Hashable, Any] = {}
        for key in keys:
            if key in self.states:
                raise ValueError(f"Duplicate task key: {key!r}")
            self.states[key] = TaskState.PENDING

    def state(self, key: Hashable) -> TaskState:
        return self.states[key]

    def start(self, key: Hashable) -> None:
        """Moves a task from PENDING to RUNNING."""
        current = self.states[key]
        if current is not TaskState.PENDING:
            raise InvalidTransition(f"{key!r}: cannot start from {current.value}")
        self.states[key] = TaskState.RUNNING

    def finish(self, key: Hashable, result: Any, success: bool) -> TaskState:
        """Records a running task's result and moves it to its terminal state.

        Args:
            key (Hashable): The task key.
            result (Any): The outcome to keep for rendering.
            success (bool): Whether the task succeeded.

        Returns:
            TaskState: The terminal state that was applied.

        Raises:
            InvalidTransition: If the task is not running.
        """
        current = self.states[key]
        if current is not TaskState.RUNNING:
            raise InvalidTransition(f"{key!r}: cannot finish from {current.value}")
        state = TaskState.SUCCEEDED if success else TaskState.FAILED
        self.states[key] = state
        self.results[key] = result
        return state

    def all_done(self) -> bool:
        """Whether every task has reached a terminal state."""
        return all(state.is_terminal for state in self.states.values())

    def running(self) -> list[Hashable]:
        return [k for k, s in self.states.items() if s is TaskState.RUNNING]

    def counts(self) -> tuple[int, int]:
        """Returns (succeeded, failed)."""
        succeeded = failed = 0
        for state in self.states.values():
            if state is TaskState.SUCCEEDED:
                succeeded += 1
            elif state is TaskState.FAILED:
                failed += 1
        return succeeded, failed
