import os
from pathlib import Path

"""Global constants and path definitions for homelink.

This module defines the filesystem layout (adhering to XDG standards where applicable),
the names of the generated hook scripts, and the fixed lists used while linking.
"""

# --- Identity ---
APP_NAME = "homelink"
"""str: The human-readable application name."""

VERSION = "0.4.0"
"""str: The release version reported by `homelink version`."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / APP_NAME
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "homelink.log"
"""Path: The rotating log file shared by interactive and hook-triggered runs."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/homelink"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

# --- Linking ---
EXCLUDED_ROOTS = (".gitignore", "README.md", "README")
"""tuple[str, ...]: Top-level repository entries that are never linked into $HOME."""

# --- Hooks ---
HOOK_NAMES = ("post-commit", "post-merge")
"""tuple[str, ...]: The git hooks that trigger an incremental sync."""

DISPATCHER_NAME = APP_NAME
"""str: File name of the generated dispatcher script inside the hook directory."""

INTERPRETER_WRAPPER_NAME = "force-python"
"""str: File name of the generated interpreter-pinning wrapper."""

SHELL_SHEBANG = "#!/usr/bin/env bash"
"""str: The shebang written at the top of freshly created hooks."""

SHELL_SHEBANGS = (SHELL_SHEBANG, "#!/bin/bash")
"""tuple[str, ...]: Shebangs of existing hooks we are allowed to append to."""

HOOK_SIGNATURE = f'( exec "$(dirname "$0")/{DISPATCHER_NAME}" )'
"""str: The line chained into post-commit/post-merge. Its presence marks a hook as installed.

The dispatcher is found next to the running hook, so the line works wherever
git keeps the hook directory (worktrees, submodules, `core.hooksPath`).
"""

LEGACY_HOOK_SIGNATURES = (f"( exec ./.git/hooks/{DISPATCHER_NAME} )",)
"""tuple[str, ...]: Lines chained by releases that assumed a `.git/hooks` directory."""

SYSTEM_PYTHON = "/usr/bin/python3"
"""str: The system-wide interpreter git hooks fall back to with a restricted PATH."""
