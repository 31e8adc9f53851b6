"""First-time initialisation of working copies that do not exist yet."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

from rich.console import Console

from .constants import APP_NAME, DEFAULT_REMOTE_ALIAS
from .git_wrapper import GitExecutor
from .progress import ProgressBoard
from .render import InitView
from .scheduler import EventLoop
from .tasks import Task

logger = logging.getLogger(APP_NAME)


@dataclass
class RepoInit:
    """A working copy to create, with every remote it should end up with.

    Attributes:
        name (str): The tracked repository name.
        path (Path): Where the working copy goes.
        remotes (dict[str, str]): Remote name to URL, in resolution order.
            The first entry is the one cloned from.
    """

    name: str
    path: Path
    remotes: dict[str, str] = field(default_factory=dict)

    @property
    def short_name(self) -> str:
        return self.name.rsplit("/", 1)[-1]

    @property
    def primary(self) -> tuple[str, str]:
        """The (name, URL) of the remote used for the initial clone."""
        return next(iter(self.remotes.items()))


@dataclass
class InitResult:
    """The outcome of initialising one working copy.

    Attributes:
        repo (str): The tracked repository name.
        output (str): What happened, or what git reported on failure.
        error (Exception | None): The failure, if any.
        success (bool): Whether every step succeeded.
    """

    repo: str
    output: str = ""
    error: Exception | None = None
    success: bool = False


def collect_repo_init(tasks: Sequence[Task], path: Path, name: str) -> RepoInit:
    """Groups every task that targets `path` into a single RepoInit."""
    remotes: dict[str, str] = {}
    for task in tasks:
        if task.repo_path == path:
            remotes.setdefault(task.remote_name, task.remote_url)
    return RepoInit(name=name, path=path, remotes=remotes)


async def needs_init(tasks: Sequence[Task], git: GitExecutor) -> list[RepoInit]:
    """Finds the paths that are missing or are not valid working copies.

    Args:
        tasks (Sequence[Task]): The resolved tasks.
        git (GitExecutor): The git executor.

    Returns:
        list[RepoInit]: One entry per path needing initialisation, in task order.
    """
    inits: list[RepoInit] = []
    seen: set[Path] = set()

    for task in tasks:
        if task.repo_path in seen:
            continue
        seen.add(task.repo_path)

        if not task.repo_path.exists():
            logger.info(f"{task.repo_name}: {task.repo_path} does not exist")
        elif not await git.is_valid_repo(task.repo_path):
            logger.info(f"{task.repo_name}: {task.repo_path} is not a git repository")
        else:
            continue

        inits.append(collect_repo_init(tasks, task.repo_path, task.repo_name))

    return inits


async def init_repo(repo_init: RepoInit, git: GitExecutor) -> InitResult:
    """Clones a repository and wires up all of its remotes.

    Steps: create parent directories, clone from the first remote, rename the
    clone's 'origin' to that remote's name, then add the other remotes one at
    a time. The first failing step stops the sequence; the result names any
    remotes left unadded.

    Args:
        repo_init (RepoInit): What to create.
        git (GitExecutor): The git executor.

    Returns:
        InitResult: The outcome.
    """
    result = InitResult(repo=repo_init.name)

    if not repo_init.remotes:
        result.output = "No remotes configured"
        return result

    try:
        repo_init.path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        result.error = e
        result.output = str(e)
        return result

    primary_name, primary_url = repo_init.primary
    clone = await git.clone(primary_url, repo_init.path)
    if not clone.ok:
        result.error = clone.error
        result.output = clone.output
        return result

    outputs = [f"Cloned from {primary_name}"]

    if primary_name != DEFAULT_REMOTE_ALIAS:
        rename = await git.rename_remote(
            repo_init.path, DEFAULT_REMOTE_ALIAS, primary_name
        )
        if not rename.ok:
            result.error = rename.error
            result.output = _partial_output(rename.output, repo_init, primary_name)
            return result

    added = {primary_name}
    for name, url in repo_init.remotes.items():
        if name in added:
            continue
        add = await git.add_remote(repo_init.path, name, url)
        if not add.ok:
            result.error = add.error
            result.output = _partial_output(add.output, repo_init, *added)
            return result
        added.add(name)
        outputs.append(f"Added remote {name}")

    result.success = True
    result.output = "\n".join(outputs)
    return result


def _partial_output(output: str, repo_init: RepoInit, *added: str) -> str:
    """Appends the remotes that a failed initialisation left unadded."""
    missing = [name for name in repo_init.remotes if name not in added]
    if not missing:
        return output
    return f"{output}\nPartially initialised; remotes not added: {', '.join(missing)}"


async def _init_job(repo_init: RepoInit, git: GitExecutor) -> tuple[InitResult, bool]:
    result = await init_repo(repo_init, git)
    if result.success:
        steps = "; ".join(result.output.splitlines())
        logger.info(f"INIT {repo_init.name}: {steps}")
    else:
        logger.info(f"INIT ERROR {repo_init.name}: {result.output}")
    return result, result.success


async def run_init(
    inits: Sequence[RepoInit],
    git: GitExecutor,
    *,
    verbose: bool = False,
    console: Console | None = None,
) -> dict[Path, InitResult]:
    """Initialises every repository concurrently with its own live view.

    Args:
        inits (Sequence[RepoInit]): The repositories to create.
        git (GitExecutor): The git executor.
        verbose (bool, optional): Show output for successful repositories too.
        console (Console | None, optional): Output console.

    Returns:
        dict[Path, InitResult]: The result for each path.
    """
    board = ProgressBoard(repo_init.path for repo_init in inits)
    view = InitView(inits, board, verbose=verbose)
    names = {repo_init.path: repo_init.name for repo_init in inits}

    def on_crash(path: Path, error: Exception) -> InitResult:
        return InitResult(
            repo=names[path], output=f"{type(error).__name__}: {error}", error=error
        )

    loop = EventLoop(board, view, console or Console(), on_crash=on_crash)

    await loop.run([(i.path, partial(_init_job, i, git)) for i in inits])

    return dict(board.results)
