import asyncio
import contextlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .constants import APP_NAME, GIT_SSH_COMMAND
from .exceptions import GitError
from .operation import Operation

logger = logging.getLogger(APP_NAME)


@dataclass
class Result:
    """The outcome of a single git invocation.

    Attributes:
        output (str): Combined stdout and stderr, stripped.
        error (Exception | None): The failure, or None if the command succeeded.
        exit_code (int): The process exit code (1 if the process never started).
    """

    output: str = ""
    error: Exception | None = None
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        """Whether the command succeeded."""
        return self.error is None


class GitExecutor:
    """An asyncio wrapper around the Git command-line interface.

    Every method spawns a `git` subprocess and awaits it. If the awaiting
    coroutine is cancelled, the subprocess is killed before the cancellation
    propagates, so an interrupted run never leaves git processes behind.

    Attributes:
        binary (str): The git executable to invoke.
    """

    def __init__(self, binary: str = "git"):
        """Initializes the executor.

        Args:
            binary (str, optional): The git executable. Defaults to 'git'.
        """
        self.binary = binary

    async def _run(
        self, args: list[str], cwd: Path | None = None, network: bool = False
    ) -> Result:
        """Executes a git command and captures its output.

        Args:
            args (list[str]): Arguments to pass to the git command.
            cwd (Path | None, optional): Directory to run the command in.
                                         Defaults to the current directory.
            network (bool, optional): Whether the command talks to a remote, in
                                      which case a non-interactive SSH command
                                      is exported. Defaults to False.

        Returns:
            Result: The captured output, with `error` set on non-zero exit.
        """
        env = None
        if network:
            env = os.environ.copy()
            env["GIT_SSH_COMMAND"] = GIT_SSH_COMMAND

        logger.debug(f"Running git {' '.join(args)} in {cwd or Path.cwd()}")
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                cwd=cwd,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.info(f"Could not start git {' '.join(args)}: {e}")
            return Result(output=str(e), error=e, exit_code=1)

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            logger.info(f"Killed git {' '.join(args)} (cancelled)")
            raise

        output = (
            stdout.decode("utf-8", errors="replace")
            + stderr.decode("utf-8", errors="replace")
        ).strip()
        exit_code = process.returncode or 0

        if exit_code != 0:
            return Result(
                output=output,
                error=GitError(args, exit_code, output),
                exit_code=exit_code,
            )
        return Result(output=output)

    async def current_branch(self, path: Path) -> str:
        """Retrieves the checked-out branch, or an empty string if there is none.

        Args:
            path (Path): The working copy.

        Returns:
            str: The branch name ('HEAD' when detached, '' on error).
        """
        result = await self._run(["rev-parse", "--abbrev-ref", "HEAD"], cwd=path)
        return result.output if result.ok else ""

    async def execute(
        self, operation: Operation, path: Path, remote_name: str, force: bool = False
    ) -> Result:
        """Runs a pull, push or fetch against a single remote.

        Pull targets the current branch, falling back to 'HEAD' when no branch
        is checked out.

        Args:
            operation (Operation): The operation to run.
            path (Path): The working copy.
            remote_name (str): The remote to operate against.
            force (bool, optional): Force the push. Defaults to False.

        Returns:
            Result: The outcome of the git command.
        """
        branch = ""
        if operation is Operation.PULL:
            branch = await self.current_branch(path)
        args = operation.build_args(remote_name, branch=branch, force=force)
        return await self._run(args, cwd=path, network=True)

    async def clone(self, url: str, path: Path) -> Result:
        """Clones `url` into `path`."""
        return await self._run(["clone", url, str(path)], network=True)

    async def add_remote(self, path: Path, name: str, url: str) -> Result:
        """Adds a new remote to the working copy."""
        return await self._run(["remote", "add", name, url], cwd=path)

    async def rename_remote(self, path: Path, old: str, new: str) -> Result:
        """Renames an existing remote."""
        return await self._run(["remote", "rename", old, new], cwd=path)

    async def set_remote_url(self, path: Path, name: str, url: str) -> Result:
        """Points an existing remote at a new URL."""
        return await self._run(["remote", "set-url", name, url], cwd=path)

    async def get_remote_url(self, path: Path, name: str) -> str | None:
        """Returns the URL configured for a remote, or None if it is absent."""
        result = await self._run(["remote", "get-url", name], cwd=path)
        if not result.ok or not result.output:
            return None
        return result.output

    async def is_valid_repo(self, path: Path) -> bool:
        """Checks whether `path` is the root of a git working copy.

        A directory nested inside some other working copy does not count.

        Args:
            path (Path): The directory to check.

        Returns:
            bool: True if `path` is the top level of a working copy.
        """
        if not path.is_dir():
            return False
        result = await self._run(["rev-parse", "--show-toplevel"], cwd=path)
        if not result.ok:
            return False
        try:
            return Path(result.output).resolve() == path.resolve()
        except OSError as e:
            logger.debug(f"Could not resolve {path}: {e}")
            return False
