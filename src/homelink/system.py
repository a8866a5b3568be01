import logging
import os
import sys

from rich.console import Console

from .constants import APP_NAME, SYSTEM_PYTHON

console = Console()
logger = logging.getLogger(APP_NAME)


class SystemStrategy:
    """Base class defining the interface for platform-level capabilities."""

    name = "unknown"

    def supports_symlinks(self) -> bool:
        """Reports whether the platform has reliable symbolic-link semantics.

        Returns:
            bool: True if links in $HOME can be created without special privileges.
        """
        return True

    def system_interpreter(self) -> str:
        """Returns the interpreter git hooks find on a restricted PATH."""
        return SYSTEM_PYTHON


class MacOSStrategy(SystemStrategy):
    """System strategy implementation for macOS."""

    name = "macOS"


class LinuxStrategy(SystemStrategy):
    """System strategy implementation for Linux."""

    name = "Linux"


class WindowsStrategy(SystemStrategy):
    """System strategy implementation for Windows."""

    name = "Windows"

    def supports_symlinks(self) -> bool:
        """Symlinks need elevated privileges or developer mode on Windows."""
        return False


def get_system() -> SystemStrategy:
    """Factory function to retrieve the platform-specific system strategy.

    Returns:
        SystemStrategy: An instance of MacOSStrategy, LinuxStrategy,
        WindowsStrategy or the base SystemStrategy depending on the operating system.
    """
    if sys.platform == "darwin":
        return MacOSStrategy()
    elif sys.platform.startswith("linux"):
        return LinuxStrategy()
    elif sys.platform in ("win32", "cygwin"):
        return WindowsStrategy()
    else:
        return SystemStrategy()


def exit_if_unsupported() -> None:
    """Aborts the process when the platform cannot host the link overlay.

    Raises:
        SystemExit: With status 1 on platforms without symlink support.
    """
    strategy = get_system()
    if strategy.supports_symlinks():
        return
    logger.error(f"Unsupported platform: {strategy.name}")
    console.print(
        f"[bold red]ERROR:[/bold red] This is a {strategy.name} system, "
        f"and {APP_NAME} relies on symbolic links it cannot create reliably."
    )
    sys.exit(1)


def current_interpreter() -> str:
    """Resolves the absolute path of the running interpreter.

    Symlinks are not followed, so a virtualenv interpreter keeps its venv path.

    Returns:
        str: The absolute interpreter path.
    """
    return os.path.abspath(sys.executable)
