import asyncio
import os
import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from git_relay.constants import GIT_SSH_COMMAND
from git_relay.exceptions import GitError
from git_relay.git_wrapper import GitExecutor
from git_relay.operation import Operation


def _process(
    mocker: MagicMock, stdout: bytes = b"", stderr: bytes = b"", code: int = 0
) -> MagicMock:
    process = MagicMock()
    process.communicate = mocker.AsyncMock(return_value=(stdout, stderr))
    process.wait = mocker.AsyncMock(return_value=code)
    process.returncode = code
    return process


@pytest.mark.asyncio
async def test_run_captures_combined_output(mocker: MagicMock) -> None:
    """Verifies that stdout and stderr are merged and failures carry a GitError."""
    process = _process(mocker, b"To origin\n", b"! [rejected] main -> main\n", 1)
    mocker.patch("asyncio.create_subprocess_exec", return_value=process)

    result = await GitExecutor()._run(["push", "origin"])

    assert not result.ok
    assert result.exit_code == 1
    assert result.output == "To origin\n! [rejected] main -> main"
    assert isinstance(result.error, GitError)
    assert "git push origin exited with 1" in str(result.error)


@pytest.mark.asyncio
async def test_run_reports_missing_binary(mocker: MagicMock) -> None:
    mocker.patch(
        "asyncio.create_subprocess_exec",
        side_effect=FileNotFoundError("No such file or directory: 'git'"),
    )

    result = await GitExecutor()._run(["status"])

    assert not result.ok
    assert result.exit_code == 1
    assert "No such file" in result.output


@pytest.mark.asyncio
async def test_network_commands_are_non_interactive(
    mocker: MagicMock, tmp_path: Path
) -> None:
    """Verifies that network operations export the batch-mode SSH command."""
    mock_exec = mocker.patch(
        "asyncio.create_subprocess_exec", return_value=_process(mocker)
    )

    result = await GitExecutor().execute(
        Operation.PUSH, tmp_path, "github", force=True
    )

    assert result.ok
    args, kwargs = mock_exec.call_args
    assert args == ("git", "push", "--force", "github")
    assert kwargs["cwd"] == tmp_path
    assert kwargs["env"]["GIT_SSH_COMMAND"] == GIT_SSH_COMMAND
    assert kwargs["stdin"] == asyncio.subprocess.DEVNULL


@pytest.mark.asyncio
async def test_pull_targets_current_branch(mocker: MagicMock, tmp_path: Path) -> None:
    git = GitExecutor()
    mocker.patch.object(git, "current_branch", return_value="main")
    mock_run = mocker.patch.object(git, "_run")

    await git.execute(Operation.PULL, tmp_path, "codeberg")

    mock_run.assert_called_once_with(
        ["pull", "codeberg", "main"], cwd=tmp_path, network=True
    )


@pytest.mark.asyncio
async def test_cancel_kills_process(mocker: MagicMock) -> None:
    """Verifies that cancelling an in-flight command kills its process."""
    started = asyncio.Event()

    async def hang() -> tuple[bytes, bytes]:
        started.set()
        await asyncio.Event().wait()
        return b"", b""

    process = _process(mocker)
    process.communicate = hang
    mocker.patch("asyncio.create_subprocess_exec", return_value=process)

    task = asyncio.create_task(GitExecutor()._run(["fetch", "github"]))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    process.kill.assert_called_once()
    process.wait.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_remote_url_missing(mocker: MagicMock, tmp_path: Path) -> None:
    mocker.patch(
        "asyncio.create_subprocess_exec",
        return_value=_process(mocker, b"", b"error: No such remote 'gh'", 2),
    )
    assert await GitExecutor().get_remote_url(tmp_path, "gh") is None


@pytest.mark.asyncio
async def test_is_valid_repo_missing_directory(tmp_path: Path) -> None:
    assert not await GitExecutor().is_valid_repo(tmp_path / "missing")


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="needs git")


def _git(*args: str, cwd: Path | None = None) -> None:
    env = {
        **os.environ,
        "GIT_AUTHOR_NAME": "Test",
        "GIT_AUTHOR_EMAIL": "test@example.com",
        "GIT_COMMITTER_NAME": "Test",
        "GIT_COMMITTER_EMAIL": "test@example.com",
    }
    subprocess.run(["git", *args], cwd=cwd, env=env, check=True, capture_output=True)


@pytest.fixture
def upstream(tmp_path: Path) -> Path:
    """A bare repository with one commit on its default branch."""
    bare = tmp_path / "upstream.git"
    seed = tmp_path / "seed"
    _git("init", "--bare", str(bare))
    _git("init", str(seed))
    (seed / "README").write_text("hello\n")
    _git("add", "README", cwd=seed)
    _git("commit", "-m", "initial", cwd=seed)
    _git("push", str(bare), "HEAD", cwd=seed)
    return bare


@requires_git
@pytest.mark.asyncio
async def test_real_git_round_trip(upstream: Path, tmp_path: Path) -> None:
    """Clones, rewires remotes and syncs against local bare repositories.

    Args:
        upstream (Path): The bare repository to clone.
        tmp_path (Path): Where the working copy goes.
    """
    git = GitExecutor()
    mirror = tmp_path / "mirror.git"
    _git("clone", "--bare", str(upstream), str(mirror))
    work = tmp_path / "work"

    assert (await git.clone(str(upstream), work)).ok
    assert await git.is_valid_repo(work)
    assert await git.get_remote_url(work, "origin") == str(upstream)

    assert (await git.rename_remote(work, "origin", "primary")).ok
    assert (await git.add_remote(work, "mirror", str(mirror))).ok
    assert await git.get_remote_url(work, "origin") is None
    assert await git.get_remote_url(work, "mirror") == str(mirror)

    for operation, remote in [
        (Operation.FETCH, "mirror"),
        (Operation.PULL, "primary"),
        (Operation.PUSH, "mirror"),
    ]:
        result = await git.execute(operation, work, remote)
        assert result.ok, result.output

    failed = await git.execute(Operation.FETCH, work, "nowhere")
    assert not failed.ok
    assert isinstance(failed.error, GitError)


@requires_git
@pytest.mark.asyncio
async def test_real_git_nested_directory_is_not_a_repo(
    upstream: Path, tmp_path: Path
) -> None:
    git = GitExecutor()
    work = tmp_path / "work"
    await git.clone(str(upstream), work)
    nested = work / "nested"
    nested.mkdir()

    assert await git.is_valid_repo(work)
    assert not await git.is_valid_repo(nested)
    assert not await git.is_valid_repo(tmp_path)
