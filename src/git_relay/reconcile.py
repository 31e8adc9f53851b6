"""Brings each working copy's remote URLs in line with the configuration."""

import logging
from dataclasses import dataclass
from pathlib import Path

from .constants import APP_NAME
from .git_wrapper import GitExecutor
from .tasks import Task, TaskKey

logger = logging.getLogger(APP_NAME)


@dataclass
class ReconcileError:
    """A remote that could not be added or updated.

    Attributes:
        path (Path): The working copy.
        remote_name (str): The remote being reconciled.
        output (str): What git reported.
    """

    path: Path
    remote_name: str
    output: str


async def sync_remotes(tasks: list[Task], git: GitExecutor) -> list[ReconcileError]:
    """Adds missing remotes and corrects stale remote URLs.

    Each distinct (path, remote) pair is visited once, in task order. Paths
    that are not working copies yet are left to initialisation. Running this
    twice without a configuration change makes no further changes.

    Args:
        tasks (list[Task]): The resolved tasks.
        git (GitExecutor): The git executor.

    Returns:
        list[ReconcileError]: Failures, which do not stop the remaining pairs.
    """
    errors: list[ReconcileError] = []
    seen: set[TaskKey] = set()
    valid: dict[Path, bool] = {}

    for task in tasks:
        if task.key in seen:
            continue
        seen.add(task.key)

        path = task.repo_path
        if path not in valid:
            valid[path] = await git.is_valid_repo(path)
        if not valid[path]:
            continue

        current = await git.get_remote_url(path, task.remote_name)
        if current == task.remote_url:
            continue

        if current is None:
            logger.info(f"Adding remote {task.remote_name} to {path}")
            result = await git.add_remote(path, task.remote_name, task.remote_url)
        else:
            logger.info(
                f"Updating remote {task.remote_name} in {path}: "
                f"{current} -> {task.remote_url}"
            )
            result = await git.set_remote_url(path, task.remote_name, task.remote_url)

        if not result.ok:
            logger.info(
                f"RECONCILE ERROR {path} {task.remote_name}: {result.output}"
            )
            errors.append(ReconcileError(path, task.remote_name, result.output))

    return errors
