"""Shared fixtures: an in-memory git executor and a captured console."""

import asyncio
import io
from pathlib import Path

import pytest
from rich.console import Console

from git_relay.config import Config
from git_relay.exceptions import GitError
from git_relay.git_wrapper import Result
from git_relay.operation import Operation


class FakeGit:
    """Stands in for GitExecutor, keeping remotes per working copy in memory.

    Attributes:
        repos (dict[Path, dict[str, str]]): Valid working copies and their remotes.
        calls (list[tuple]): Every call made, in order.
        fail_on (set[tuple[str, str]]): (method, remote name or URL) pairs that
            should fail.
        delays (dict[str, float]): Seconds each remote's `execute` takes.
        block (set[str]): Remotes whose `execute` never returns until cancelled.
        started (list[tuple[Path, str]]): Order in which `execute` calls began.
        max_running (int): Peak number of concurrent `execute` calls.
        cancelled (list[tuple[Path, str]]): `execute` calls that were cancelled.
    """

    def __init__(self) -> None:
        self.repos: dict[Path, dict[str, str]] = {}
        self.calls: list[tuple] = []
        self.fail_on: set[tuple[str, str]] = set()
        self.delays: dict[str, float] = {}
        self.block: set[str] = set()
        self.started: list[tuple[Path, str]] = []
        self.running = 0
        self.max_running = 0
        self.cancelled: list[tuple[Path, str]] = []

    def _failure(self, method: str, output: str) -> Result:
        return Result(
            output=output, error=GitError([method], 1, output), exit_code=1
        )

    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("add_remote", "set_remote_url")]

    async def execute(
        self, operation: Operation, path: Path, remote_name: str, force: bool = False
    ) -> Result:
        self.calls.append(("execute", operation, path, remote_name, force))
        self.started.append((path, remote_name))
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            if remote_name in self.block:
                await asyncio.Event().wait()
            await asyncio.sleep(self.delays.get(remote_name, 0))
        except asyncio.CancelledError:
            self.cancelled.append((path, remote_name))
            raise
        finally:
            self.running -= 1

        if ("execute", remote_name) in self.fail_on:
            return self._failure("execute", f"fatal: could not read from {remote_name}")
        return Result(output=f"{operation.past_tense} {remote_name}")

    async def clone(self, url: str, path: Path) -> Result:
        self.calls.append(("clone", url, path))
        if ("clone", url) in self.fail_on:
            return self._failure("clone", f"fatal: repository '{url}' not found")
        path.mkdir(parents=True, exist_ok=True)
        self.repos[path] = {"origin": url}
        return Result(output=f"Cloning into '{path}'...")

    async def add_remote(self, path: Path, name: str, url: str) -> Result:
        self.calls.append(("add_remote", path, name, url))
        remotes = self.repos[path]
        if ("add_remote", name) in self.fail_on or name in remotes:
            return self._failure("add_remote", f"error: remote {name} already exists.")
        remotes[name] = url
        return Result()

    async def rename_remote(self, path: Path, old: str, new: str) -> Result:
        self.calls.append(("rename_remote", path, old, new))
        remotes = self.repos[path]
        if ("rename_remote", new) in self.fail_on or old not in remotes:
            return self._failure("rename_remote", f"error: No such remote: '{old}'")
        remotes[new] = remotes.pop(old)
        return Result()

    async def set_remote_url(self, path: Path, name: str, url: str) -> Result:
        self.calls.append(("set_remote_url", path, name, url))
        if ("set_remote_url", name) in self.fail_on:
            return self._failure("set_remote_url", "error: could not lock config file")
        self.repos[path][name] = url
        return Result()

    async def get_remote_url(self, path: Path, name: str) -> str | None:
        self.calls.append(("get_remote_url", path, name))
        return self.repos.get(path, {}).get(name)

    async def is_valid_repo(self, path: Path) -> bool:
        self.calls.append(("is_valid_repo", path))
        return path in self.repos


@pytest.fixture
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console(output: io.StringIO) -> Console:
    """A non-interactive console: live views print their final frame only."""
    return Console(file=output, width=240, color_system=None)


@pytest.fixture
def sample_config(tmp_path: Path) -> Config:
    """Two repositories tracked on two remotes each, rooted under tmp_path."""
    return Config.from_dict(
        {
            "remotes": {
                "github": {
                    "aliases": ["gh"],
                    "url": "git@github.com:${user}/${repo}.git",
                },
                "codeberg": {
                    "aliases": ["cb"],
                    "url": "https://codeberg.org/${user}/${repo}.git",
                },
            },
            "defaults": {
                "remotes": ["github", "codeberg"],
                "path_prefix": str(tmp_path / "src"),
            },
            "repos": {
                "alice/alpha": {},
                "alice/beta": {"remotes": ["github"]},
            },
        }
    )
