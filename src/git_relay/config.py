import logging
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    URL_REPO_PLACEHOLDER,
    URL_USER_PLACEHOLDER,
)
from .exceptions import ConfigError
from .operation import Operation

logger = logging.getLogger(APP_NAME)


def expand_url(template: str, user: str, repo: str) -> str:
    """Substitutes the `${user}` and `${repo}` placeholders of a URL template."""
    return template.replace(URL_USER_PLACEHOLDER, user).replace(
        URL_REPO_PLACEHOLDER, repo
    )


def split_repo_name(name: str) -> tuple[str, str]:
    """Splits a tracked name such as 'alice/project' into (user, repo).

    Names without a slash have an empty user.
    """
    user, sep, repo = name.partition("/")
    if not sep:
        return "", user
    return user, repo


def _string_list(section_name: str, key: str, value: Any) -> list[str]:
    """Validates that a config value is a list of strings."""
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"[{section_name}].{key} must be a list of strings")
    return value


@dataclass
class RemoteDefinition:
    """A remote provider that repositories can be synchronised with.

    Attributes:
        aliases (list[str]): Alternative names accepted on the command line.
        url (str): URL template with `${user}` and `${repo}` placeholders.
    """

    aliases: list[str] = field(default_factory=list)
    url: str = ""


@dataclass
class OperationDefaults:
    """Per-operation overrides.

    Attributes:
        remotes (list[str]): Remote set used when none is given on the command line.
    """

    remotes: list[str] = field(default_factory=list)


@dataclass
class Defaults:
    """Global defaults.

    Attributes:
        remotes (list[str]): Remotes every repository is tracked on by default.
        path_prefix (str): Directory that repositories without a `path` live in.
        verbose (bool): Show full git output for every task.
        linear (bool): Run one task at a time.
        pull (OperationDefaults): Overrides for `pull`.
        push (OperationDefaults): Overrides for `push`.
        fetch (OperationDefaults): Overrides for `fetch`.
    """

    remotes: list[str] = field(default_factory=list)
    path_prefix: str = ""
    verbose: bool = False
    linear: bool = False
    pull: OperationDefaults = field(default_factory=OperationDefaults)
    push: OperationDefaults = field(default_factory=OperationDefaults)
    fetch: OperationDefaults = field(default_factory=OperationDefaults)

    def remotes_for(self, operation: Operation) -> list[str]:
        """Returns the default remote set for an operation.

        The per-operation list wins when it is non-empty; otherwise the global
        `remotes` list applies.
        """
        overrides: OperationDefaults = getattr(self, operation.value)
        if overrides.remotes:
            return overrides.remotes
        return self.remotes


@dataclass
class Repo:
    """A tracked repository after template expansion.

    Attributes:
        path (str): The local path, possibly starting with '~'.
        remotes (dict[str, str]): Canonical remote name to URL, in configured order.
    """

    path: str = ""
    remotes: dict[str, str] = field(default_factory=dict)

    def expand_path(self) -> Path:
        """Returns the local path with a leading '~' expanded."""
        return Path(self.path).expanduser()


@dataclass
class Config:
    """The fully expanded configuration.

    Attributes:
        remotes (dict[str, RemoteDefinition]): Remote providers by canonical name.
        defaults (Defaults): Global defaults.
        repos (dict[str, Repo]): Tracked repositories by name, in file order.
    """

    remotes: dict[str, RemoteDefinition] = field(default_factory=dict)
    defaults: Defaults = field(default_factory=Defaults)
    repos: dict[str, Repo] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads and expands the configuration file.

        Args:
            path (Path | None): Override for the config file location.

        Returns:
            Config: The expanded configuration.

        Raises:
            ConfigError: If the file is missing, is not valid TOML, or has an
                         invalid shape.
        """
        path = path or CONFIG_FILE
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {path}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Config syntax error in {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Could not read config {path}: {e}") from e

        logger.debug(f"Loaded config from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Builds a Config from parsed TOML, expanding every repository.

        Args:
            data (dict[str, Any]): The parsed document.

        Returns:
            Config: The expanded configuration.
        """
        instance = cls()

        unknown = set(data) - {"remotes", "defaults", "repos"}
        if unknown:
            logger.warning(
                f"Unknown config sections: {', '.join(sorted(unknown))}. Ignoring."
            )

        for name, raw in data.get("remotes", {}).items():
            if not isinstance(raw, dict):
                raise ConfigError(f"[remotes.{name}] must be a table")
            definition = _build_dataclass(f"remotes.{name}", RemoteDefinition, raw)
            _string_list(f"remotes.{name}", "aliases", definition.aliases)
            instance.remotes[name] = definition

        raw_defaults = data.get("defaults", {})
        if not isinstance(raw_defaults, dict):
            raise ConfigError("[defaults] must be a table")
        instance.defaults = _build_defaults(raw_defaults)

        for name, raw in data.get("repos", {}).items():
            instance.repos[name] = instance._expand_repo(name, raw)

        return instance

    def _expand_repo(self, name: str, raw: Any) -> Repo:
        """Expands one `[repos."user/name"]` entry into a Repo.

        Resolution order for each remote: an explicit `remotes` table wins
        outright; otherwise each listed remote (or `defaults.remotes`) is built
        from its definition's URL template, honouring per-remote `user`/`repo`
        overrides or a literal URL string.
        """
        if not isinstance(raw, dict):
            raise ConfigError(f'[repos."{name}"] must be a table')

        user, repo_name = split_repo_name(name)
        repo = Repo()

        if "path" in raw:
            repo.path = str(raw["path"])
        elif self.defaults.path_prefix:
            repo.path = str(Path(self.defaults.path_prefix) / repo_name)
        else:
            raise ConfigError(
                f"Repository '{name}' has no path and defaults.path_prefix is unset"
            )

        remote_list = self.defaults.remotes
        listed = raw.get("remotes")
        if isinstance(listed, dict):
            repo.remotes = {str(k): str(v) for k, v in listed.items()}
            return repo
        if listed is not None:
            remote_list = _string_list(f'repos."{name}"', "remotes", listed)

        for remote_name in remote_list:
            remote_user, remote_repo = user, repo_name

            override = raw.get(remote_name)
            if isinstance(override, str):
                repo.remotes[remote_name] = override
                continue
            if isinstance(override, dict):
                remote_user = override.get("user") or remote_user
                remote_repo = override.get("repo") or remote_repo

            definition = self.remotes.get(remote_name)
            if definition is None or not definition.url:
                logger.warning(
                    f"Repository '{name}' lists remote '{remote_name}' "
                    "which has no URL template. Skipping."
                )
                continue
            repo.remotes[remote_name] = expand_url(
                definition.url, remote_user, remote_repo
            )

        return repo

    def all_repos(self) -> list[str]:
        """Returns every tracked repository name, in configured order."""
        return list(self.repos)

    def find_repo(self, name: str) -> tuple[str, Repo] | None:
        """Looks up a repository by exact name, unique base name, or '.'.

        Args:
            name (str): The selector. '.' means the repository whose path is
                        the current directory.

        Returns:
            tuple[str, Repo] | None: The full name and the repository, or None
                                     if nothing (or more than one) matched.
        """
        if name == ".":
            return self.find_repo_by_path(Path.cwd())

        if name in self.repos:
            return name, self.repos[name]

        matches = [full for full in self.repos if full.rsplit("/", 1)[-1] == name]
        if len(matches) == 1:
            return matches[0], self.repos[matches[0]]
        if len(matches) > 1:
            logger.info(f"'{name}' is ambiguous: {', '.join(matches)}")
        return None

    def find_repo_by_path(self, path: Path) -> tuple[str, Repo] | None:
        """Finds the repository whose expanded path is `path`."""
        target = path.resolve()
        for name, repo in self.repos.items():
            if repo.expand_path().resolve() == target:
                return name, repo
        return None

    def resolve_alias(self, alias: str) -> str:
        """Maps a remote alias to its canonical name.

        Unknown names are returned unchanged.
        """
        for name, definition in self.remotes.items():
            if name == alias or alias in definition.aliases:
                return name
        return alias


def _build_dataclass(section_name: str, cls: type, updates: dict) -> Any:
    """Builds a dataclass from a table, warning on unknown keys."""
    valid_keys = {f.name for f in fields(cls)}

    invalid_keys = set(updates) - valid_keys
    if invalid_keys:
        logger.warning(
            f"Unknown config keys in [{section_name}]: "
            f"{', '.join(sorted(invalid_keys))}. Ignoring."
        )

    return cls(**{k: v for k, v in updates.items() if k in valid_keys})


def _build_defaults(raw: dict) -> Defaults:
    """Builds Defaults, including the nested per-operation tables."""
    raw = dict(raw)
    per_operation = {}
    for operation in Operation:
        table = raw.pop(operation.value, None)
        if table is None:
            continue
        if not isinstance(table, dict):
            raise ConfigError(f"[defaults.{operation.value}] must be a table")
        overrides = _build_dataclass(
            f"defaults.{operation.value}", OperationDefaults, table
        )
        _string_list(f"defaults.{operation.value}", "remotes", overrides.remotes)
        per_operation[operation.value] = overrides

    defaults = _build_dataclass("defaults", Defaults, raw)
    _string_list("defaults", "remotes", defaults.remotes)
    for key, overrides in per_operation.items():
        setattr(defaults, key, overrides)
    return defaults
