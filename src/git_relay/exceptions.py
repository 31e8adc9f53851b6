"""Exception hierarchy for Git Relay.

    RelayError (base)
    ├── ConfigError
    ├── NoTasksError
    ├── InitError
    ├── GitError
    └── InvalidTransition
"""


class RelayError(Exception):
    """Base exception for all Git Relay errors."""

    pass


class ConfigError(RelayError):
    """Raised when the configuration file is missing or malformed."""

    pass


class NoTasksError(RelayError):
    """Raised when a selection resolves to zero tasks."""

    def __init__(self, message: str = "no matching repositories or remotes found"):
        super().__init__(message)


class InitError(RelayError):
    """Raised when one or more repositories failed to initialise.

    Attributes:
        failed (list[str]): Names of the repositories that failed.
    """

    def __init__(self, failed: list[str]):
        self.failed = failed
        super().__init__(
            f"repository initialisation failed: {', '.join(failed)}"
            if failed
            else "repository initialisation failed"
        )


class GitError(RelayError):
    """Raised (or attached to a Result) when a git command exits non-zero.

    Attributes:
        args_ (list[str]): The git arguments that were run.
        exit_code (int): The process exit code.
    """

    def __init__(self, args: list[str], exit_code: int, output: str = ""):
        self.args_ = args
        self.exit_code = exit_code
        detail = f": {output}" if output else ""
        super().__init__(f"git {' '.join(args)} exited with {exit_code}{detail}")


class InvalidTransition(RelayError):
    """Raised when a task state change would break monotonic progress."""

    pass
