import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.table import Table

from . import ops
from .config import Config
from .constants import ALL, APP_NAME, CONFIG_FILE, LOG_FILE, MAX_LOG_SIZE, VERSION
from .exceptions import ConfigError, RelayError
from .operation import Operation

logger = logging.getLogger(APP_NAME)
console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool, log_file: Path = LOG_FILE) -> None:
    """Configures the logging subsystem.

    Warnings go to stderr. Everything from INFO up (DEBUG when verbose) is
    written to a rotating log file, so that git output from past runs can be
    inspected after the live view is gone.

    Args:
        verbose (bool): Whether to include debug records in the log file.
        log_file (Path, optional): Where to write the log file.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(logging.WARNING)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=MAX_LOG_SIZE, backupCount=5
        )
    except OSError as e:
        logger.warning(f"Could not open log file {log_file}: {e}")
        return
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


def list_repos(config: Config) -> None:
    """Lists every tracked repository with its path and remotes."""
    if not config.repos:
        console.print("[yellow]No repositories are tracked.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Repository", style="cyan")
    table.add_column("Path")
    table.add_column("Remotes", style="dim")

    home = str(Path.home())
    for name, repo in config.repos.items():
        path = repo.expand_path()
        display_path = str(path).replace(home, "~", 1)
        if not path.exists():
            display_path = f"[red]{display_path} (missing)[/red]"
        table.add_row(name, display_path, ", ".join(repo.remotes) or "-")

    console.print(table)


def apply_defaults(
    config: Config,
    operation: Operation,
    remotes: list[str],
    verbose: bool,
    linear: bool,
) -> tuple[list[str], bool, bool]:
    """Merges configured defaults into the command-line selection.

    Args:
        config (Config): The loaded configuration.
        operation (Operation): The requested operation.
        remotes (list[str]): Remote selectors from the command line.
        verbose (bool): The --verbose flag.
        linear (bool): The --linear flag.

    Returns:
        tuple[list[str], bool, bool]: The effective (remotes, verbose, linear).
    """
    verbose = verbose or config.defaults.verbose
    linear = linear or config.defaults.linear

    if not remotes or remotes == [ALL]:
        remotes = config.defaults.remotes_for(operation) or [ALL]

    return remotes, verbose, linear


class RelayHelpFormatter(argparse.HelpFormatter):
    """Groups the subcommands into categories in the help output."""

    def _format_action(self, action: argparse.Action) -> str:
        if isinstance(action, argparse._SubParsersAction):
            parts = []

            groups = {
                "Synchronisation": ["pull", "push", "fetch"],
                "Repositories": ["list"],
                "General": ["help", "version"],
            }

            subactions = list(self._iter_indented_subactions(action))

            for group_name, commands in groups.items():
                group_actions = [a for a in subactions if a.dest in commands]
                if not group_actions:
                    continue

                parts.append(f"\n  {group_name}:\n")

                self._indent()
                for subaction in group_actions:
                    parts.append(self._format_action(subaction))
                self._dedent()

            return self._join_parts(parts)

        return super()._format_action(action)


def _add_global_flags(parser: argparse.ArgumentParser, suppress: bool) -> None:
    """Adds --config and --verbose.

    Subcommands get copies with suppressed defaults so that the flags work on
    either side of the command name without clobbering each other.
    """
    default_config = argparse.SUPPRESS if suppress else None
    default_verbose = argparse.SUPPRESS if suppress else False
    parser.add_argument(
        "-c",
        "--config",
        default=default_config,
        help=f"Config file (default: {CONFIG_FILE})",
    )
    parser.add_argument(
        "-V",
        "--verbose",
        action="store_true",
        default=default_verbose,
        help="Show full git output for every task",
    )


def build_parser() -> argparse.ArgumentParser:
    """Builds the argument parser."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        usage=f"{APP_NAME} [flags] <command> [repo] [remotes...]",
        formatter_class=RelayHelpFormatter,
    )
    _add_global_flags(parser, suppress=False)
    parser.add_argument(
        "--version", action="version", version=f"{APP_NAME} {VERSION}"
    )

    subparsers = parser.add_subparsers(dest="command")

    descriptions = {
        Operation.PULL: "Pull from remote(s)",
        Operation.PUSH: "Push to remote(s)",
        Operation.FETCH: "Fetch from remote(s)",
    }
    for operation, description in descriptions.items():
        op_parser = subparsers.add_parser(operation.value, help=description)
        _add_global_flags(op_parser, suppress=True)
        op_parser.add_argument(
            "repo",
            nargs="?",
            default=ALL,
            help="Repository name, base name, '.' for the current directory, "
            "or 'all' (default)",
        )
        op_parser.add_argument(
            "remotes",
            nargs="*",
            help="Remote names or aliases (default: all configured)",
        )
        op_parser.add_argument(
            "-l",
            "--linear",
            action="store_true",
            help="Run one task at a time, in order",
        )
        if operation is Operation.PUSH:
            op_parser.add_argument(
                "-f",
                "--force",
                action="store_true",
                help="Force push (overwrites remote history)",
            )

    list_parser = subparsers.add_parser("list", help="List tracked repositories")
    _add_global_flags(list_parser, suppress=True)
    subparsers.add_parser("help", help="Show this help message")
    subparsers.add_parser("version", help="Show version")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Git Relay CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in (None, "help"):
        parser.print_help()
        return
    if args.command == "version":
        console.print(f"{APP_NAME} {VERSION}")
        return

    setup_logging(args.verbose)

    try:
        config = Config.load(Path(args.config) if args.config else None)
    except ConfigError as e:
        err_console.print(f"[bold red]Config Error:[/bold red] {e}")
        sys.exit(1)

    if args.command == "list":
        list_repos(config)
        return

    operation = Operation(args.command)
    remotes, verbose, linear = apply_defaults(
        config, operation, args.remotes, args.verbose, args.linear
    )

    try:
        ops.run(
            config,
            operation,
            args.repo,
            remotes,
            verbose=verbose,
            force=getattr(args, "force", False),
            linear=linear,
            out=console,
        )
    except RelayError as e:
        err_console.print(f"[bold red]ERROR:[/bold red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        err_console.print("[yellow]Interrupted.[/yellow]")
        sys.exit(130)
    except Exception as e:
        logger.exception("Run failed")
        err_console.print(f"[bold red]ERROR:[/bold red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
