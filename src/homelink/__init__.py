"""homelink: a git repository of dotfiles, kept linked into your home directory.

This package provides the command-line interface, the symlink synchronizer and
the git hook installer that re-runs the synchronizer after every commit and merge.
"""

from . import (
    cli,
    config,
    constants,
    git_wrapper,
    hooks,
    linker,
    system,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "git_wrapper",
    "hooks",
    "linker",
    "system",
]
