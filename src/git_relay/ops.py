import asyncio
import logging
from collections.abc import Sequence

from rich.console import Console

from .bootstrap import needs_init, run_init
from .config import Config
from .constants import APP_NAME
from .exceptions import InitError, NoTasksError
from .git_wrapper import GitExecutor
from .operation import Operation
from .reconcile import ReconcileError, sync_remotes
from .scheduler import RunSummary, run_tasks
from .tasks import Task, adjust_pull_tasks, build_tasks

console = Console()
logger = logging.getLogger(APP_NAME)


def report_reconcile_errors(
    errors: Sequence[ReconcileError], out: Console | None = None
) -> None:
    """Prints the remotes that could not be reconciled.

    Args:
        errors (Sequence[ReconcileError]): The failures to report.
        out (Console | None, optional): Output console. Defaults to the module
                                        console.
    """
    out = out or console
    out.print(
        f"[bold yellow]WARNING:[/bold yellow] {len(errors)} remote(s) "
        "could not be updated:"
    )
    for error in errors:
        detail = error.output.split("\n", 1)[0] if error.output else "unknown error"
        out.print(f"   {error.path} [cyan]{error.remote_name}[/cyan]: {detail}")


async def sync(
    operation: Operation,
    tasks: Sequence[Task],
    git: GitExecutor,
    *,
    verbose: bool = False,
    force: bool = False,
    linear: bool = False,
    out: Console | None = None,
) -> RunSummary:
    """Runs the full pipeline for already-resolved tasks.

    Steps:
    1. Reconciles remote URLs of existing working copies (reported, not fatal).
    2. For pull, initialises missing working copies; any failure aborts.
    3. For pull, downgrades all but the first remote per path to fetch.
    4. Runs the tasks.

    Args:
        operation (Operation): The requested operation.
        tasks (Sequence[Task]): Resolved tasks, in order.
        git (GitExecutor): The git executor.
        verbose (bool, optional): Show full git output.
        force (bool, optional): Force pushes.
        linear (bool, optional): Run one task at a time.
        out (Console | None, optional): Output console.

    Returns:
        RunSummary: The outcome of the sync tasks.

    Raises:
        InitError: If any repository failed to initialise.
    """
    out = out or console

    errors = await sync_remotes(list(tasks), git)
    if errors:
        report_reconcile_errors(errors, out)

    if operation is Operation.PULL:
        inits = await needs_init(tasks, git)
        if inits:
            results = await run_init(inits, git, verbose=verbose, console=out)
            failed = [
                repo_init.name
                for repo_init in inits
                if not results[repo_init.path].success
            ]
            if failed:
                raise InitError(failed)
        tasks = adjust_pull_tasks(list(tasks))

    return await run_tasks(
        operation,
        tasks,
        git,
        verbose=verbose,
        force=force,
        linear=linear,
        console=out,
    )


def run(
    config: Config,
    operation: Operation,
    repo_selector: str,
    remote_selectors: list[str],
    *,
    verbose: bool = False,
    force: bool = False,
    linear: bool = False,
    git: GitExecutor | None = None,
    out: Console | None = None,
) -> RunSummary:
    """Resolves a selection and synchronises it.

    Args:
        config (Config): The loaded configuration.
        operation (Operation): The requested operation.
        repo_selector (str): Repository selector ('all', a name, or '.').
        remote_selectors (list[str]): Remote names/aliases, or ['all'].
        verbose (bool, optional): Show full git output.
        force (bool, optional): Force pushes.
        linear (bool, optional): Run one task at a time.
        git (GitExecutor | None, optional): The git executor.
        out (Console | None, optional): Output console.

    Returns:
        RunSummary: The outcome of the sync tasks.

    Raises:
        NoTasksError: If the selection matched nothing. No git command runs.
        InitError: If any repository failed to initialise.
    """
    tasks = build_tasks(config, repo_selector, remote_selectors)
    if not tasks:
        raise NoTasksError()

    logger.info(
        f"{operation.verb} {len(tasks)} task(s) "
        f"({'linear' if linear else 'parallel'}{', forced' if force else ''})"
    )
    return asyncio.run(
        sync(
            operation,
            tasks,
            git or GitExecutor(),
            verbose=verbose,
            force=force,
            linear=linear,
            out=out,
        )
    )
