"""Worktree registry service for git-worktree-keeper."""

import os
from typing import Dict, List, Optional, Tuple

import git

from git_worktree_keeper.exceptions import ExternalToolFailure
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.repository import Repository
from git_worktree_keeper.models.worktree import Worktree
from git_worktree_keeper.services.git.operations import git_failure, run_git
from git_worktree_keeper.utils.paths import normalize_path

logger = get_logger(__name__)

HEADS_PREFIX = "refs/heads/"


def parse_porcelain(output: str, repository: Optional[Repository] = None) -> List[Worktree]:
    """Parse `git worktree list --porcelain` output.

    Format (one record per worktree, blank line between records):
        worktree /path/to/worktree
        HEAD <sha>
        branch refs/heads/<name>      (absent when detached)
        detached | bare | locked [reason] | prunable [reason]

    A branch line always belongs to the most recent worktree line. The first
    record is the primary checkout.

    Args:
        output: Raw porcelain output
        repository: Repository the records belong to

    Returns:
        Worktree records in registry order
    """
    records: List[Dict[str, object]] = []
    current: Optional[Dict[str, object]] = None

    for line in output.splitlines():
        line = line.rstrip("\n")
        if not line.strip():
            current = None
            continue

        tag, _, value = line.partition(" ")
        if tag == "worktree":
            current = {"path": value}
            records.append(current)
            continue
        if current is None:
            logger.debug(f"Ignoring porcelain line outside a record: {line}")
            continue

        if tag == "HEAD":
            current["head"] = value
        elif tag == "branch":
            current["branch"] = value[len(HEADS_PREFIX):] if value.startswith(HEADS_PREFIX) else value
        elif tag == "detached":
            current["branch"] = ""
        elif tag in ("bare", "locked", "prunable"):
            current[tag] = True

    return [
        Worktree(
            path=str(record["path"]),
            branch=str(record.get("branch", "")),
            head=str(record.get("head", "")),
            repository=repository,
            is_primary=index == 0,
            is_bare=bool(record.get("bare", False)),
            locked=bool(record.get("locked", False)),
            prunable=bool(record.get("prunable", False)),
        )
        for index, record in enumerate(records)
    ]


class WorktreeRegistry:
    """Read and mutate git's worktree registry for one repository.

    Worktrees are always re-read from git; nothing is cached across mutations.
    """

    def __init__(self, repository: Repository):
        """Initialize the registry.

        Args:
            repository: Repository whose registry is managed
        """
        self.repository = repository
        self.repo_path = repository.path

    def _get_repo(self):
        """Get a fresh git.Repo instance.

        Returns:
            git.Repo: A fresh repository instance
        """
        return git.Repo(self.repo_path)

    def list(self) -> List[Worktree]:
        """Get all registered worktrees, primary checkout first.

        Raises:
            ExternalToolFailure: If git can't list the registry. A partial
                list is never returned.
        """
        try:
            output = self._get_repo().git.worktree("list", "--porcelain")
        except git.exc.GitCommandError as e:
            raise git_failure("git worktree list", e)
        except (git.exc.NoSuchPathError, git.exc.InvalidGitRepositoryError) as e:
            raise ExternalToolFailure("git worktree list", message=f"not a repository: {e}")

        worktrees = parse_porcelain(output, self.repository)
        logger.debug(f"Found {len(worktrees)} worktrees in {self.repository.name}")
        for wt in worktrees:
            logger.debug(f"  {wt}")
        return worktrees

    def find(self, path: str) -> Optional[Worktree]:
        """Registered worktree at path, if any."""
        target = normalize_path(path)
        for wt in self.list():
            if normalize_path(wt.path) == target:
                return wt
        return None

    def is_registered(self, path: str) -> bool:
        return self.find(path) is not None

    def add(self, path: str, branch: str, base: Optional[str] = None,
            new_branch: bool = True, no_checkout: bool = False) -> None:
        """Register a new worktree.

        Args:
            path: Directory to create
            branch: Branch to check out (created from base when new_branch)
            base: Start point for a new branch, or remote ref to track
            new_branch: Create the branch with -b
            no_checkout: Register without populating the directory

        Raises:
            ExternalToolFailure: If git refuses
        """
        args = ["worktree", "add"]
        if no_checkout:
            args.append("--no-checkout")
        if new_branch:
            args += ["-b", branch, path]
            if base:
                args.append(base)
        else:
            args += [path, branch]
        run_git(self.repo_path, *args, operation="git worktree add")
        logger.info(f"Added worktree {path} on {branch}")

    def add_tracking(self, path: str, branch: str, remote_ref: str) -> None:
        """Register a worktree on a new local branch tracking a remote branch."""
        run_git(self.repo_path, "worktree", "add", "--track", "-b", branch, path, remote_ref,
                operation="git worktree add")
        logger.info(f"Added worktree {path} tracking {remote_ref}")

    def remove(self, path: str, force: bool = False) -> Tuple[bool, Optional[str]]:
        """Remove a worktree at the specified path.

        Args:
            path: Path to the worktree directory
            force: Force removal even if working tree is dirty or locked

        Returns:
            Tuple of (success, error_message). error_message is None on success.
        """
        args = ["remove", path]
        if force:
            args.append("--force")
        try:
            self._get_repo().git.worktree(*args)
            logger.info(f"Removed worktree at {path}")
            return True, None
        except git.exc.GitCommandError as e:
            error_msg = str(git_failure("git worktree remove", e))
            logger.debug(f"Failed to remove worktree at {path}: {error_msg}")
            return False, error_msg

    def prune(self) -> Tuple[bool, Optional[str]]:
        """Prune registrations whose directories are gone.

        Returns:
            Tuple of (success, error_message). error_message is None on success.
        """
        try:
            self._get_repo().git.worktree("prune")
            logger.info(f"Pruned stale worktree metadata in {self.repository.name}")
            return True, None
        except git.exc.GitCommandError as e:
            error_msg = str(git_failure("git worktree prune", e))
            logger.error(f"Failed to prune worktrees: {error_msg}")
            return False, error_msg

    def move(self, source: str, destination: str) -> None:
        """Move a worktree with git's native command.

        Raises:
            ExternalToolFailure: If git refuses or doesn't support the move
        """
        run_git(self.repo_path, "worktree", "move", source, destination,
                operation="git worktree move")
        logger.info(f"Moved worktree {source} -> {destination}")


def read_gitdir_pointer(worktree_path: str) -> Optional[str]:
    """Resolve the `gitdir:` pointer of a linked worktree.

    Returns:
        Absolute path of the admin directory, None when the worktree has no
        pointer file (missing, or a primary checkout with a .git directory)
    """
    dot_git = os.path.join(worktree_path, ".git")
    if not os.path.isfile(dot_git):
        return None
    try:
        with open(dot_git, encoding="utf-8") as f:
            content = f.read().strip()
    except OSError as e:
        logger.debug(f"Could not read {dot_git}: {e}")
        return None
    if not content.startswith("gitdir:"):
        return None
    gitdir = content[len("gitdir:"):].strip()
    if not os.path.isabs(gitdir):
        gitdir = os.path.join(worktree_path, gitdir)
    return os.path.normpath(gitdir)


def repository_from_admin_dir(admin_dir: str) -> Optional[Repository]:
    """Primary checkout owning a worktree admin directory.

    `<repo>/.git/worktrees/<name>` -> `<repo>`; a `commondir` file, when
    present, names the shared .git directory.
    """
    common = os.path.normpath(os.path.join(admin_dir, "..", ".."))
    commondir_file = os.path.join(admin_dir, "commondir")
    if os.path.isfile(commondir_file):
        try:
            with open(commondir_file, encoding="utf-8") as f:
                value = f.read().strip()
            common = os.path.normpath(value if os.path.isabs(value) else os.path.join(admin_dir, value))
        except OSError as e:
            logger.debug(f"Could not read {commondir_file}: {e}")
    if os.path.basename(common) != ".git":
        return None
    return Repository.from_path(os.path.dirname(common))
