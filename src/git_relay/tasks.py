"""Resolution of repository and remote selectors into units of work."""

import logging
from dataclasses import dataclass, replace
from pathlib import Path

from .config import Config, Repo
from .constants import ALL, APP_NAME
from .operation import Operation

logger = logging.getLogger(APP_NAME)

TaskKey = tuple[Path, str]


@dataclass(frozen=True)
class Task:
    """One (repository, remote, operation) unit of work.

    Attributes:
        repo_name (str): The tracked repository name (e.g. 'alice/project').
        remote_name (str): The canonical remote name.
        remote_url (str): The URL configured for that remote.
        repo_path (Path): The local working copy path.
        operation (Operation | None): The operation to run. None means the
            run's operation applies.
    """

    repo_name: str
    remote_name: str
    remote_url: str
    repo_path: Path
    operation: Operation | None = None

    @property
    def key(self) -> TaskKey:
        """The identity of the task within a run: (local path, remote name)."""
        return self.repo_path, self.remote_name

    @property
    def short_name(self) -> str:
        """The repository's base name, used for display."""
        return self.repo_name.rsplit("/", 1)[-1]


def resolve_repos(config: Config, selector: str) -> list[str]:
    """Resolves a repository selector to tracked repository names.

    Args:
        config (Config): The loaded configuration.
        selector (str): 'all', an exact name, a unique base name, or '.'.

    Returns:
        list[str]: The matching names, empty if nothing matched.
    """
    if selector == ALL:
        return config.all_repos()

    match = config.find_repo(selector)
    if match is None:
        logger.info(f"No tracked repository matches '{selector}'")
        return []
    return [match[0]]


def resolve_remotes(config: Config, repo: Repo, selectors: list[str]) -> list[str]:
    """Resolves remote selectors to canonical remote names for one repository.

    Args:
        config (Config): The loaded configuration.
        repo (Repo): The repository being resolved.
        selectors (list[str]): Remote names or aliases, or ['all'].

    Returns:
        list[str]: Canonical names, in selector order (or configured order
                   for the wildcard).
    """
    if ALL in selectors:
        return list(repo.remotes)
    return [config.resolve_alias(name) for name in selectors]


def build_tasks(
    config: Config, repo_selector: str, remote_selectors: list[str]
) -> list[Task]:
    """Turns a repository selector and remote selectors into tasks.

    One task is produced per (repository, remote) combination that has a
    configured URL. Combinations naming the same remote twice collapse into the
    first occurrence, so task keys are unique.

    Args:
        config (Config): The loaded configuration.
        repo_selector (str): See `resolve_repos`.
        remote_selectors (list[str]): See `resolve_remotes`.

    Returns:
        list[Task]: Tasks ordered by repository, then remote. May be empty.
    """
    tasks: list[Task] = []
    seen: set[TaskKey] = set()

    for full_name in resolve_repos(config, repo_selector):
        repo = config.repos[full_name]
        path = repo.expand_path()

        for remote_name in resolve_remotes(config, repo, remote_selectors):
            url = repo.remotes.get(remote_name)
            if url is None:
                logger.debug(f"{full_name} has no remote '{remote_name}'")
                continue

            task = Task(
                repo_name=full_name,
                remote_name=remote_name,
                remote_url=url,
                repo_path=path,
            )
            if task.key in seen:
                continue
            seen.add(task.key)
            tasks.append(task)

    return tasks


def adjust_pull_tasks(tasks: list[Task]) -> list[Task]:
    """Assigns pull or fetch to each task of a pull run.

    A working copy can only merge from one upstream at a time, so the first
    task for each path pulls and every later task for that path only fetches.

    Args:
        tasks (list[Task]): Tasks in resolution order.

    Returns:
        list[Task]: New tasks with `operation` set, in the same order.
    """
    pulled: set[Path] = set()
    adjusted = []

    for task in tasks:
        if task.repo_path in pulled:
            adjusted.append(replace(task, operation=Operation.FETCH))
        else:
            pulled.add(task.repo_path)
            adjusted.append(replace(task, operation=Operation.PULL))

    return adjusted
