import argparse
import logging
import platform
import subprocess
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console

from . import hooks, linker
from .config import Config
from .constants import APP_NAME, LOG_FILE, VERSION
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)
console = Console()


def setup_logging(verbose: bool = False, log_file: Path = LOG_FILE) -> None:
    """Configures the logging subsystem.

    Warnings and errors go to stderr (everything with `verbose`); the full
    INFO trail goes to a rotating log file, which is the only record left by
    hook-triggered runs.

    Args:
        verbose (bool, optional): Whether to echo INFO/DEBUG records to stderr.
        log_file (Path, optional): Path of the rotating log file.
    """
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=Config.load().limits.max_log_size,
            backupCount=5,
        )
    except OSError as e:
        logger.warning(f"Could not open log file {log_file}: {e}")
        return
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


def _policy(config: Config) -> linker.ConflictPolicy:
    return linker.ConflictPolicy.from_mode(config.link.on_conflict)


def _open_repo() -> GitRepo | None:
    """Wraps the repository in the current directory, reporting if there is none."""
    try:
        return GitRepo(Path.cwd())
    except ValueError:
        console.print("[bold red]Not a git repository.[/bold red]")
        return None


def print_report(report: linker.SyncReport) -> None:
    """Summarizes a synchronization run on the console."""
    for link in report.linked:
        console.print(f"[green]+[/green] {link}")
    for link in report.replaced:
        console.print(f"[yellow]~[/yellow] {link}")
    for link in report.failed:
        console.print(f"[red]![/red] {link}")

    summary = (
        f"{len(report.linked)} linked, {len(report.replaced)} replaced, "
        f"{len(report.unchanged)} unchanged"
    )
    if report.declined:
        summary += f", {len(report.declined)} kept"
    if report.failed:
        summary += f", [red]{len(report.failed)} failed[/red]"
    console.print(summary, style="dim")


def run_init() -> None:
    """Installs homelink into the repository in the current directory."""
    config = Config.load()
    try:
        hooks.install(policy=_policy(config), exclude=config.link.excluded_roots)
    except (RuntimeError, OSError) as e:
        logger.error(f"Setup failed: {e}")
        console.print(f"[bold red]ERROR:[/bold red] {e}")


def run_sync(full: bool) -> None:
    """Links tracked entries of the current repository into $HOME.

    Args:
        full (bool): Link every tracked entry instead of the latest commit's.
    """
    repo = _open_repo()
    if repo is None:
        return

    config = Config.load()
    sync = linker.full_sync if full else linker.incremental_sync
    report = sync(repo, policy=_policy(config), exclude=config.link.excluded_roots)
    print_report(report)


def run_clean() -> None:
    """Removes dangling dotfile links from $HOME."""
    with console.status("Scanning home directory...", spinner="dots"):
        removed = linker.clean_home()

    for link in removed:
        console.print(f"[red]-[/red] {link}")
    if removed:
        console.print(f"[bold green]✔ Removed {len(removed)} dead links.[/bold green]")
    else:
        console.print("No dead links found.", style="dim")


def show_log(lines: int = 200) -> None:
    """Prints the tail of the log file.

    Args:
        lines (int, optional): Number of lines to show. Defaults to 200.
    """
    if not LOG_FILE.exists():
        console.print(f"[red]No log file found yet at {LOG_FILE}.[/red]")
        return
    subprocess.run(["tail", "-n", str(lines), str(LOG_FILE)])


def version_string() -> str:
    """Returns the version banner."""
    return f"{APP_NAME} {VERSION} on python {platform.python_version()}"


class HomelinkHelpFormatter(argparse.HelpFormatter):
    """Help formatter that lists only documented subcommands.

    Subcommands registered without a help text (the hook entry point) are
    left out of the listing, and the default `{a,b,c}` metavar block is dropped.
    """

    def _format_action(self, action: argparse.Action) -> str:
        if isinstance(action, argparse._SubParsersAction):
            parts = ["\n  Commands:\n"]
            self._indent()
            for subaction in self._iter_indented_subactions(action):
                if subaction.help:
                    parts.append(self._format_action(subaction))
            self._dedent()
            return self._join_parts(parts)

        return super()._format_action(action)


def build_parser() -> argparse.ArgumentParser:
    """Builds the argument parser for the `homelink` command."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        usage=f"{APP_NAME} [-v] <command>",
        description="Keep your home directory linked to a git repository of dotfiles.",
        formatter_class=HomelinkHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Echo detailed logs to stderr"
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser(
        "init", help="Initialize the current directory as a homelink repository"
    )
    subparsers.add_parser(
        "rehash", help="Link everything again, in case a git hook didn't run"
    )
    subparsers.add_parser("clean", help="Remove dead symlinks from your home directory")
    log_parser = subparsers.add_parser("log", help="Show the end of the log file")
    log_parser.add_argument(
        "--lines", "-n", type=int, default=200, help="Lines to show (default: 200)"
    )
    subparsers.add_parser("version", help="Print the homelink version")
    subparsers.add_parser("help", help="Show this help message")

    # Entry point of the generated hook dispatcher.
    subparsers.add_parser("sync")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the homelink CLI.

    Args:
        argv (list[str] | None, optional): Arguments to parse. Defaults to sys.argv.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        console.print(version_string())
        return
    if args.command in (None, "help"):
        parser.print_help()
        return

    setup_logging(args.verbose)
    logger.debug(f"Running '{args.command}' in {Path.cwd()}")

    if args.command == "init":
        run_init()
    elif args.command == "rehash":
        run_sync(full=True)
    elif args.command == "sync":
        run_sync(full=False)
    elif args.command == "clean":
        run_clean()
    elif args.command == "log":
        show_log(args.lines)


if __name__ == "__main__":
    main()
