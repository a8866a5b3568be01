import logging
import subprocess
from pathlib import Path

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)


class GitRepo:
    """A wrapper around the Git command-line interface for a dotfiles repository.

    The synchronizer only needs two answers from git: the paths touched by a
    commit and the paths tracked on a branch. Both are obtained through
    plumbing commands run with `subprocess`, so callers can swap this object
    for a stub that returns fixed lists.

    Attributes:
        path (Path): The file system path to the repository root (the working tree).
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.

        Raises:
            ValueError: If the specified path does not contain a .git directory.
        """
        self.path = path
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    @classmethod
    def init(cls, path: Path) -> "GitRepo":
        """Creates an empty repository at `path` and wraps it.

        Args:
            path (Path): The directory to initialize.

        Returns:
            GitRepo: The wrapper for the new repository.

        Raises:
            RuntimeError: If `git init` fails.
        """
        try:
            subprocess.run(
                ["git", "init", "--quiet"],
                cwd=path,
                capture_output=True,
                text=True,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"Git error: {e.stderr or e}") from e
        return cls(path)

    def _run(self, args: list[str]) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.

        Returns:
            str: The stripped stdout of the command.

        Raises:
            RuntimeError: If the git command returns a non-zero exit code.
        """
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=True,
                text=True,
                check=True,
            )
            return res.stdout.strip()
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"Git error: {e.stderr or e}") from e

    def hooks_dir(self) -> Path:
        """Resolves the directory git runs hooks from.

        In linked worktrees and submodules `.git` is a file, and `core.hooksPath`
        can move the directory elsewhere, so git is asked instead of assuming
        `.git/hooks`.

        Returns:
            Path: The absolute hook directory.

        Raises:
            RuntimeError: If git cannot resolve the path.
        """
        hooks = Path(self._run(["rev-parse", "--git-path", "hooks"]))
        return hooks if hooks.is_absolute() else self.path / hooks

    def current_branch(self) -> str:
        """Retrieves the abbreviated name of the checked-out branch.

        Returns:
            str: The branch name (or 'HEAD' when detached).

        Raises:
            RuntimeError: If HEAD cannot be resolved (e.g. no commits yet).
        """
        return self._run(["rev-parse", "--abbrev-ref", "HEAD"])

    def changed_files(self, rev: str = "HEAD") -> list[str]:
        """Lists the paths touched by a single commit.

        Args:
            rev (str, optional): The commit to inspect. Defaults to 'HEAD'.

        Returns:
            list[str]: Repository-relative paths, in the order git reports them.
        """
        output = self._run(["show", "--pretty=format:", "--name-only", rev])
        return [line for line in output.splitlines() if line.strip()]

    def tracked_files(self, branch: str | None = None) -> list[str]:
        """Lists every path tracked at the tip of a branch.

        Args:
            branch (str | None, optional): The branch to list. Defaults to the
                                           current branch.

        Returns:
            list[str]: Repository-relative paths of all tracked files.
        """
        if branch is None:
            branch = self.current_branch()
        output = self._run(["ls-tree", "-r", branch, "--name-only"])
        return output.splitlines() if output else []
