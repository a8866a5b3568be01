"""Symlink synchronization between a dotfiles working tree and $HOME.

Every top-level entry tracked in the repository gets exactly one link in the
home directory (``~/.vimrc -> ~/dotfiles/.vimrc``, ``~/.config -> ~/dotfiles/.config``).
Entries are processed independently: one failing link never stops the batch.
"""

import logging
import os
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console

from .constants import APP_NAME, EXCLUDED_ROOTS
from .git_wrapper import GitRepo

console = Console()
logger = logging.getLogger(APP_NAME)

Ask = Callable[[Path, Path], str]
"""Decision source: receives (target, link) and returns the operator's raw answer."""


def get_roots(paths: Iterable[str], exclude: Iterable[str] = ()) -> set[str]:
    """Reduces tracked paths to the set of top-level entries to link.

    Args:
        paths (Iterable[str]): Repository-relative paths as reported by git.
        exclude (Iterable[str], optional): Extra names to drop, on top of the
                                           built-in exclusion list.

    Returns:
        set[str]: The distinct first path segments, minus exclusions.
    """
    roots = set()
    for raw in paths:
        path = raw.strip()
        # A leading separator yields an empty segment; keep the whole path then.
        roots.add(path.split("/", 1)[0] or path)

    roots.discard("")
    roots.difference_update(EXCLUDED_ROOTS)
    roots.difference_update(exclude)
    return roots


@dataclass(frozen=True)
class LinkPlan:
    """A single link to create.

    Attributes:
        target (Path): Absolute path inside the working tree.
        link (Path): Absolute path inside the home directory.
    """

    target: Path
    link: Path


def plan_links(roots: Iterable[str], work_dir: Path, home_dir: Path) -> list[LinkPlan]:
    """Maps root entries to (target, link) pairs by rebasing onto the home directory.

    Roots that normalize to the working tree itself or to a path outside of it
    are skipped.

    Args:
        roots (Iterable[str]): Root entries from `get_roots`.
        work_dir (Path): The repository working tree.
        home_dir (Path): The directory receiving the links.

    Returns:
        list[LinkPlan]: Plans sorted by link path.
    """
    work_dir = Path(os.path.abspath(work_dir))
    home_dir = Path(os.path.abspath(home_dir))

    plans = []
    for root in roots:
        target = Path(os.path.abspath(work_dir / root))
        try:
            relative = target.relative_to(work_dir)
        except ValueError:
            logger.warning(f"Skipping '{root}': {target} is outside {work_dir}")
            continue
        if not relative.parts:
            logger.warning(f"Skipping '{root}': refers to the working tree itself")
            continue
        plans.append(LinkPlan(target=target, link=home_dir / relative))

    return sorted(plans, key=lambda p: p.link)


def points_into(link: Path, work_dir: Path) -> bool:
    """Checks whether `link` is a symlink whose target lies inside `work_dir`.

    Relative link targets are interpreted against the link's parent directory.
    The comparison is lexical; the target does not have to exist.
    """
    if not link.is_symlink():
        return False
    target = Path(os.readlink(link))
    if not target.is_absolute():
        target = link.parent / target
    target = Path(os.path.normpath(target))
    return target.is_relative_to(Path(os.path.abspath(work_dir)))


def prompt_for_overwrite(target: Path, link: Path) -> str:
    """Asks the operator on the terminal whether `link` may be replaced.

    Returns:
        str: The raw answer. Closed stdin (git hooks) reads as an empty answer.
    """
    console.print(
        f"[yellow]{link}[/yellow] conflicts with [cyan]{target}[/cyan]. "
        f"Remove {link}? \\[y/n/a/s]"
    )
    console.print('To always overwrite, type "A". To never overwrite, type "S".')
    try:
        return console.input("> ")
    except EOFError:
        logger.debug(f"No answer available for {link}; keeping it.")
        return ""


@dataclass
class ConflictPolicy:
    """Decides whether an existing entry in $HOME may be replaced by a link.

    The two sticky flags live for as long as the caller keeps the policy,
    normally one synchronization run.

    Attributes:
        always_overwrite (bool): Grant every further conflict without asking.
        never_overwrite (bool): Deny every further conflict without asking.
        ask (Ask): Decision source consulted when neither flag is set.
    """

    always_overwrite: bool = False
    never_overwrite: bool = False
    ask: Ask = field(default=prompt_for_overwrite, repr=False)

    @classmethod
    def from_mode(cls, mode: str, ask: Ask = prompt_for_overwrite) -> "ConflictPolicy":
        """Builds a policy from the `on_conflict` setting ('prompt', 'always', 'never')."""
        return cls(
            always_overwrite=mode == "always",
            never_overwrite=mode == "never",
            ask=ask,
        )

    def allows(self, target: Path, link: Path) -> bool:
        """Returns True if `link` may be removed and replaced with a link to `target`."""
        if self.never_overwrite:
            return False
        if self.always_overwrite:
            return True

        answer = self.ask(target, link).strip().upper()
        if answer == "Y":
            return True
        if answer == "A":
            self.always_overwrite = True
            return True
        if answer == "S":
            self.never_overwrite = True
        return False


@dataclass
class SyncReport:
    """Outcome of one synchronization run, as lists of link paths.

    Attributes:
        linked (list[Path]): New links created where nothing existed.
        replaced (list[Path]): Conflicting entries removed and replaced.
        unchanged (list[Path]): Links that already pointed into the working tree.
        declined (list[Path]): Conflicts the policy refused to overwrite.
        failed (list[Path]): Entries where a filesystem operation failed.
    """

    linked: list[Path] = field(default_factory=list)
    replaced: list[Path] = field(default_factory=list)
    unchanged: list[Path] = field(default_factory=list)
    declined: list[Path] = field(default_factory=list)
    failed: list[Path] = field(default_factory=list)

    @property
    def changed(self) -> int:
        """Number of links written during the run."""
        return len(self.linked) + len(self.replaced)


def remove_entry(path: Path) -> None:
    """Deletes a file, a symlink, or a whole directory tree."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def link_one(
    plan: LinkPlan, work_dir: Path, policy: ConflictPolicy, report: SyncReport
) -> None:
    """Creates the link for a single plan, recording the outcome in `report`.

    Filesystem errors are logged and recorded, never raised.
    """
    target, link = plan.target, plan.link
    try:
        if not os.path.lexists(link):
            link.symlink_to(target)
            report.linked.append(link)
            logger.info(f"Linked {link} -> {target}")
            return

        if points_into(link, work_dir):
            report.unchanged.append(link)
            return

        if work_dir.is_relative_to(link):
            logger.error(
                f"Refusing to replace {link} with a link to {target}: "
                f"it contains the working tree {work_dir}"
            )
            report.failed.append(link)
            return

        if not policy.allows(target, link):
            logger.info(f"Kept existing {link} (not linked to {target})")
            report.declined.append(link)
            return

        remove_entry(link)
        link.symlink_to(target)
        report.replaced.append(link)
        logger.info(f"Replaced {link} with link to {target}")
    except (OSError, ValueError) as e:
        logger.error(f"Failed to symlink {target} to {link}: {e}")
        report.failed.append(link)


def symlink_list(
    paths: Iterable[str],
    work_dir: Path,
    home_dir: Path,
    policy: ConflictPolicy | None = None,
    exclude: Iterable[str] = (),
) -> SyncReport:
    """Links every root entry of `paths` from `home_dir` into `work_dir`.

    Args:
        paths (Iterable[str]): Tracked paths, relative to `work_dir`.
        work_dir (Path): The repository working tree.
        home_dir (Path): The directory receiving the links.
        policy (ConflictPolicy | None, optional): Conflict policy for this run.
                                                  Defaults to an interactive one.
        exclude (Iterable[str], optional): Extra root names to skip.

    Returns:
        SyncReport: What happened to each planned link.
    """
    if policy is None:
        policy = ConflictPolicy()
    work_dir = Path(os.path.abspath(work_dir))

    report = SyncReport()
    for plan in plan_links(get_roots(paths, exclude), work_dir, home_dir):
        link_one(plan, work_dir, policy, report)
    return report


def incremental_sync(
    repo: GitRepo,
    home_dir: Path | None = None,
    policy: ConflictPolicy | None = None,
    exclude: Iterable[str] = (),
) -> SyncReport:
    """Links the entries touched by the most recent commit.

    Returns:
        SyncReport: The run outcome; empty if git could not list the commit.
    """
    try:
        paths = repo.changed_files("HEAD")
    except RuntimeError as e:
        logger.error(f"Could not list files changed by HEAD in {repo.path}: {e}")
        return SyncReport()
    return symlink_list(paths, repo.path, home_dir or Path.home(), policy, exclude)


def full_sync(
    repo: GitRepo,
    home_dir: Path | None = None,
    policy: ConflictPolicy | None = None,
    exclude: Iterable[str] = (),
) -> SyncReport:
    """Links every entry tracked at the tip of the current branch.

    Returns:
        SyncReport: The run outcome; empty if git could not list the tree
        (for instance in a repository without commits).
    """
    try:
        paths = repo.tracked_files()
    except RuntimeError as e:
        logger.error(f"Could not list tracked files in {repo.path}: {e}")
        return SyncReport()
    return symlink_list(paths, repo.path, home_dir or Path.home(), policy, exclude)


def clean_home(home_dir: Path | None = None) -> list[Path]:
    """Removes dangling dotfile links directly under the home directory.

    Only dotted entries that are symlinks to a missing target are deleted.
    Directories are not descended into.

    Returns:
        list[Path]: The links that were removed.
    """
    if home_dir is None:
        home_dir = Path.home()

    removed = []
    with os.scandir(home_dir) as entries:
        candidates = sorted(
            Path(e.path) for e in entries if e.name.startswith(".") and e.is_symlink()
        )

    for link in candidates:
        if link.exists():
            continue
        try:
            target = os.readlink(link)
            link.unlink()
            removed.append(link)
            logger.info(f"Removed dangling link {link} -> {target}")
        except OSError as e:
            logger.error(f"Failed to remove dangling link {link}: {e}")

    return removed
