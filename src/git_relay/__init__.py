"""Git Relay: synchronise local working copies with several remotes at once.

This package provides the command-line interface, the task resolver, remote
reconciliation, first-time repository initialisation and the concurrent
scheduler with its live progress view.
"""

from . import (
    bootstrap,
    cli,
    config,
    constants,
    exceptions,
    git_wrapper,
    operation,
    ops,
    progress,
    reconcile,
    render,
    scheduler,
    tasks,
)

__all__ = [
    "bootstrap",
    "cli",
    "config",
    "constants",
    "exceptions",
    "git_wrapper",
    "operation",
    "ops",
    "progress",
    "reconcile",
    "render",
    "scheduler",
    "tasks",
]
