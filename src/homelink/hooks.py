"""Repository setup and git hook chaining.

`install` adopts (or creates) the repository in the current directory and
chains a line into `post-commit` and `post-merge` that execs the generated
dispatcher script, which in turn runs an incremental sync with a pinned
interpreter. Hooks written by other tools are appended to when they are bash
scripts and left alone otherwise.
"""

import logging
import os
import shlex
import stat
from collections.abc import Callable, Iterable
from enum import Enum
from pathlib import Path

from rich.console import Console
from rich.prompt import Confirm

from . import linker, system
from .constants import (
    APP_NAME,
    DISPATCHER_NAME,
    HOOK_NAMES,
    HOOK_SIGNATURE,
    INTERPRETER_WRAPPER_NAME,
    LEGACY_HOOK_SIGNATURES,
    SHELL_SHEBANG,
    SHELL_SHEBANGS,
)
from .git_wrapper import GitRepo

console = Console()
logger = logging.getLogger(APP_NAME)

DISPATCHER_TEMPLATE = f"""\
{SHELL_SHEBANG}
exec "$(dirname "$0")/{INTERPRETER_WRAPPER_NAME}" -m {APP_NAME} sync
"""


class HookState(Enum):
    """Compatibility of an existing hook file with chaining."""

    ABSENT = "absent"
    FOREIGN = "foreign-incompatible"
    APPENDABLE = "shell-appendable"
    INSTALLED = "already-installed"


def detect_hook(hook: Path) -> HookState:
    """Classifies the hook file at `hook`.

    The signature line is looked for before the shebang, so a hook we
    already chained into is reported as INSTALLED whatever its interpreter.

    Args:
        hook (Path): Path of the hook file.

    Returns:
        HookState: The state of the hook.
    """
    if not hook.exists():
        return HookState.ABSENT

    lines = hook.read_text(errors="ignore").splitlines()
    signatures = (HOOK_SIGNATURE, *LEGACY_HOOK_SIGNATURES)
    if any(line.strip() in signatures for line in lines):
        return HookState.INSTALLED
    if lines and lines[0].strip() in SHELL_SHEBANGS:
        return HookState.APPENDABLE
    return HookState.FOREIGN


def write_hook(hook: Path, state: HookState) -> bool:
    """Writes or appends the signature line according to `state`.

    Args:
        hook (Path): Path of the hook file.
        state (HookState): The state returned by `detect_hook`.

    Returns:
        bool: True if the file was written, False if it was left untouched.
    """
    if state is HookState.ABSENT:
        hook.write_text(f"{SHELL_SHEBANG}\n{HOOK_SIGNATURE}\n")
        return True

    if state is HookState.APPENDABLE:
        content = hook.read_text(errors="ignore")
        with open(hook, "a") as f:
            if content and not content.endswith("\n"):
                f.write("\n")
            f.write(f"{HOOK_SIGNATURE}\n")
        return True

    return False


def make_dispatcher(hooks_dir: Path) -> Path:
    """Creates the dispatcher script invoked by the chained hook lines.

    An existing dispatcher is left as it is.

    Returns:
        Path: The dispatcher path.
    """
    dispatcher = hooks_dir / DISPATCHER_NAME
    if not dispatcher.exists():
        dispatcher.write_text(DISPATCHER_TEMPLATE)
    return dispatcher


def make_interpreter_wrapper(
    hooks_dir: Path,
    interpreter: str | None = None,
    system_interpreter: str | None = None,
) -> Path:
    """Writes the wrapper that runs the dispatcher with a pinned interpreter.

    Git runs hooks with its own PATH, which usually finds the system python
    rather than the one homelink is installed into. When the current
    interpreter is not the system one, the wrapper puts its directory first
    on PATH before exec'ing it.

    Args:
        hooks_dir (Path): The hook directory.
        interpreter (str | None, optional): Absolute interpreter path.
                                            Defaults to the running interpreter.
        system_interpreter (str | None, optional): The system-wide interpreter path.
                                                   Defaults to the platform's.

    Returns:
        Path: The wrapper path.
    """
    if interpreter is None:
        interpreter = system.current_interpreter()
    if system_interpreter is None:
        system_interpreter = system.get_system().system_interpreter()

    if interpreter != system_interpreter:
        folder, name = os.path.split(interpreter)
        body = [
            SHELL_SHEBANG,
            "set -e",
            f"PATH={shlex.quote(folder)}:$PATH",
            f'exec {shlex.quote(name)} "$@"',
        ]
    else:
        body = [SHELL_SHEBANG, f'exec {shlex.quote(system_interpreter)} "$@"']

    wrapper = hooks_dir / INTERPRETER_WRAPPER_NAME
    wrapper.write_text("\n".join(body) + "\n")
    return wrapper


def make_executable(path: Path) -> None:
    """Adds the execute bits to `path`, like `chmod +x`."""
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def install_hooks(hooks_dir: Path, interpreter: str | None = None) -> dict[str, HookState]:
    """Chains the sync hook into post-commit and post-merge.

    Args:
        hooks_dir (Path): The repository's hook directory.
        interpreter (str | None, optional): Interpreter to pin. Defaults to the
                                            running interpreter.

    Returns:
        dict[str, HookState]: The state each hook was found in.
    """
    hooks_dir.mkdir(parents=True, exist_ok=True)

    states: dict[str, HookState] = {}
    scripts = []
    for name in HOOK_NAMES:
        hook = hooks_dir / name
        state = detect_hook(hook)
        states[name] = state

        if state is HookState.INSTALLED:
            console.print(f"{name}: {APP_NAME} hook already installed.", style="dim")
            scripts.append(hook)
        elif state is HookState.FOREIGN:
            logger.info(f"Left foreign {name} hook untouched: {hook}")
            console.print(
                f"[yellow]{name}[/yellow] hook exists and is not a bash script. "
                f"It was left untouched, so {name} will not trigger a sync."
            )
        else:
            if state is HookState.APPENDABLE:
                console.print(
                    f"{name} hook already uses bash; appending ourselves to it.",
                    style="dim",
                )
            write_hook(hook, state)
            scripts.append(hook)

    scripts.append(make_dispatcher(hooks_dir))
    scripts.append(make_interpreter_wrapper(hooks_dir, interpreter))
    for script in scripts:
        make_executable(script)

    return states


def prompt_for_adoption() -> bool:
    """Asks the operator whether an existing repository may populate $HOME."""
    console.print(
        f"{APP_NAME} found an existing git repository and will link its "
        "tracked files into your home directory."
    )
    try:
        return Confirm.ask("   Continue?", console=console, default=False)
    except EOFError:
        return False


def install(
    cwd: Path | None = None,
    home_dir: Path | None = None,
    policy: linker.ConflictPolicy | None = None,
    exclude: Iterable[str] = (),
    confirm: Callable[[], bool] = prompt_for_adoption,
    interpreter: str | None = None,
) -> dict[str, HookState]:
    """Sets up the current directory as a linked dotfiles repository.

    Adopting an existing repository runs a full sync first (after
    confirmation); otherwise an empty repository is created. Hooks are
    installed in both cases.

    Args:
        cwd (Path | None, optional): Repository directory. Defaults to the cwd.
        home_dir (Path | None, optional): Link destination. Defaults to $HOME.
        policy (ConflictPolicy | None, optional): Conflict policy for the adoption sync.
        exclude (Iterable[str], optional): Extra root names never linked.
        confirm (Callable[[], bool], optional): Adoption confirmation source.
        interpreter (str | None, optional): Interpreter to pin in the hooks.

    Returns:
        dict[str, HookState]: The state each hook was found in.

    Raises:
        SystemExit: On platforms without symlink support.
        RuntimeError: If `git init` fails or the hook directory cannot be resolved.
        OSError: If the hook scripts cannot be written.
    """
    system.exit_if_unsupported()
    if cwd is None:
        cwd = Path.cwd()

    if (cwd / ".git").exists():
        repo = GitRepo(cwd)
        if confirm():
            report = linker.full_sync(repo, home_dir, policy, exclude)
            console.print(
                f"Linked {report.changed} entries into your home directory.",
                style="green",
            )
        else:
            console.print("Skipping initial linking.", style="dim")
    else:
        repo = GitRepo.init(cwd)
        console.print(f"Initialized empty Git repository in {cwd / '.git'}")

    hooks_dir = repo.hooks_dir()
    states = install_hooks(hooks_dir, interpreter)
    console.print(f"[bold green]✔ {APP_NAME} was hooked into {hooks_dir}.[/bold green]")
    return states
