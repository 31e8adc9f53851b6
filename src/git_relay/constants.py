import os
from pathlib import Path

"""Global constants and path definitions for Git Relay.

This module defines the filesystem layout (adhering to XDG standards where
applicable), application identifiers, and the git environment used for
network operations.
"""

# --- Identity ---
APP_NAME = "git-relay"
"""str: The human-readable application name."""

VERSION = "0.1.0"
"""str: The application version reported by `git-relay version`."""

ALL = "all"
"""str: Selector wildcard meaning every tracked repository or every remote."""

DEFAULT_REMOTE_ALIAS = "origin"
"""str: The remote name `git clone` assigns to the source repository."""

# --- Paths ---
_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
_BASE_CONFIG = Path(_XDG_CONFIG) if _XDG_CONFIG else Path.home() / ".config"

CONFIG_DIR: Path = _BASE_CONFIG / "git-relay"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "git-relay"
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "git-relay.log"
"""Path: The file path for the run log."""

MAX_LOG_SIZE = 5 * 1024 * 1024
"""int: Max bytes for the log file before rotation."""

# --- Git ---
GIT_SSH_COMMAND = "ssh -o StrictHostKeyChecking=accept-new"
"""
str: SSH command for network operations, so that first contact with a host
does not stall on an interactive host-key prompt.
"""

URL_USER_PLACEHOLDER = "${user}"
"""str: Placeholder in remote URL templates replaced by the repository owner."""

URL_REPO_PLACEHOLDER = "${repo}"
"""str: Placeholder in remote URL templates replaced by the repository name."""
