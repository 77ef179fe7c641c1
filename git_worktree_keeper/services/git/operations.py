"""Git operations service"""

import os
from typing import List, Optional, TYPE_CHECKING, Union

import git
from rich.console import Console

from git_worktree_keeper.constants import DEFAULT_GIT_TIMEOUT, DEFAULT_REMOTE
from git_worktree_keeper.exceptions import ExternalToolFailure
from git_worktree_keeper.logging_config import get_logger

if TYPE_CHECKING:
    from git_worktree_keeper.config import Config

console = Console()
logger = get_logger(__name__)

# Keep git from ever waiting on a credential prompt
NON_INTERACTIVE_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_ASKPASS": "true",
    "SSH_ASKPASS": "true",
}


def git_failure(operation: str, error: git.exc.GitCommandError) -> ExternalToolFailure:
    """Convert a GitCommandError into an ExternalToolFailure.

    Args:
        operation: Human readable git command, e.g. "git worktree remove"
        error: The error raised by GitPython

    Returns:
        ExternalToolFailure carrying exit status and stderr
    """
    stderr = error.stderr if hasattr(error, "stderr") else str(error)
    status = error.status if hasattr(error, "status") else "unknown"
    return ExternalToolFailure(operation, status=status, stderr=str(stderr or "").strip())


def run_git(cwd: str, *args: str, operation: Optional[str] = None,
            timeout: Optional[int] = None) -> str:
    """Run a git command inside a directory.

    Args:
        cwd: Directory the command runs in (a repository or one of its worktrees)
        *args: git arguments
        operation: Name used in error messages (defaults to the first two args)
        timeout: Kill the command after this many seconds

    Returns:
        Stripped stdout

    Raises:
        ExternalToolFailure: If git exits non-zero or can't be started
    """
    operation = operation or "git " + " ".join(args[:2])
    cmd = git.Git(cwd)
    cmd.update_environment(**NON_INTERACTIVE_ENV)
    logger.debug(f"[{cwd}] git {' '.join(args)}")
    try:
        return cmd.execute(["git", *args], kill_after_timeout=timeout)
    except git.exc.GitCommandError as e:
        raise git_failure(operation, e)
    except (git.exc.GitCommandNotFound, OSError) as e:
        raise ExternalToolFailure(operation, message=str(e))


class GitOperations:
    """Service for Git operations on one repository and its worktrees."""

    def __init__(self, repo_path: str, config: Union["Config", dict, None] = None):
        """Initialize the service.

        Args:
            repo_path: Path to the primary checkout (string path, not repo object)
            config: Configuration dictionary or Config object
        """
        config = config or {}
        self.repo_path = repo_path
        self.remote_name = config.get("remote_name", DEFAULT_REMOTE) or DEFAULT_REMOTE
        self.git_timeout = config.get("git_timeout", DEFAULT_GIT_TIMEOUT)

    def _get_repo(self):
        """Get a fresh git.Repo instance.

        GitPython repos are lightweight - they don't clone, just open the existing repo.

        Returns:
            git.Repo: A fresh repository instance
        """
        return git.Repo(self.repo_path)

    def _run(self, *args: str, cwd: Optional[str] = None, operation: Optional[str] = None,
             network: bool = False) -> str:
        timeout = self.git_timeout if network else None
        return run_git(cwd or self.repo_path, *args, operation=operation, timeout=timeout)

    # Branches

    def branch_exists(self, branch_name: str) -> bool:
        """Check if a local branch exists."""
        try:
            self._run("show-ref", "--verify", "--quiet", f"refs/heads/{branch_name}")
            return True
        except ExternalToolFailure:
            return False

    def delete_branch(self, branch_name: str) -> None:
        """Force-delete a local branch.

        Raises:
            ExternalToolFailure: If git refuses
        """
        self._run("branch", "-D", branch_name, operation="git branch -D")
        logger.info(f"Deleted local branch {branch_name}")

    def rename_branch(self, old_name: str, new_name: str) -> None:
        """Rename a local branch."""
        self._run("branch", "-m", old_name, new_name, operation="git branch -m")
        logger.info(f"Renamed branch {old_name} -> {new_name}")

    def current_branch(self, worktree_path: str) -> str:
        """Branch checked out in a worktree, empty string when detached."""
        return self._run("branch", "--show-current", cwd=worktree_path)

    # Remotes

    def has_remote(self) -> bool:
        """Check if the configured remote exists."""
        repo = self._get_repo()
        return self.remote_name in [remote.name for remote in repo.remotes]

    def remote_branch_exists(self, branch_name: str) -> bool:
        """Check if a branch exists on the remote (queries the remote itself)."""
        if not self.has_remote():
            return False
        try:
            self._run("ls-remote", "--exit-code", "--heads", self.remote_name, branch_name,
                      operation="git ls-remote", network=True)
            return True
        except ExternalToolFailure as e:
            # Exit 2 means the remote answered and has no such ref
            if str(e.status) != "2":
                logger.debug(f"Could not query remote for {branch_name}: {e}")
            return False

    def delete_remote_branch(self, branch_name: str) -> None:
        """Delete a branch on the remote.

        Raises:
            ExternalToolFailure: If the push fails
        """
        self._run("push", self.remote_name, "--delete", branch_name,
                  operation="git push --delete", network=True)
        logger.info(f"Deleted remote branch {self.remote_name}/{branch_name}")

    def fetch(self, cwd: Optional[str] = None) -> None:
        """Fetch from the remote, pruning deleted branches."""
        self._run("fetch", "--prune", self.remote_name, cwd=cwd, operation="git fetch", network=True)

    def list_remote_branches(self) -> List[str]:
        """Branch names present on the remote, without the remote prefix."""
        output = self._run("branch", "-r", "--format=%(refname:short)")
        prefix = f"{self.remote_name}/"
        branches = []
        for line in output.splitlines():
            line = line.strip()
            if not line.startswith(prefix) or line.endswith("/HEAD") or line == self.remote_name:
                continue
            branches.append(line[len(prefix):])
        return sorted(set(branches))

    # Working tree state

    def checkout(self, branch_name: str, cwd: Optional[str] = None) -> None:
        self._run("checkout", branch_name, cwd=cwd, operation="git checkout")

    def pull(self, cwd: Optional[str] = None) -> None:
        """Fast-forward the current branch from its upstream."""
        self._run("pull", "--ff-only", cwd=cwd, operation="git pull", network=True)

    def is_dirty(self, worktree_path: str) -> bool:
        """Check for uncommitted changes, untracked files included."""
        return bool(self._run("status", "--porcelain", cwd=worktree_path))

    def upstream(self, worktree_path: str) -> Optional[str]:
        """Upstream ref of the checked out branch, None when there is none."""
        try:
            return self._run("rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}",
                             cwd=worktree_path) or None
        except ExternalToolFailure:
            return None

    def rev_parse(self, ref: str, cwd: Optional[str] = None) -> str:
        return self._run("rev-parse", ref, cwd=cwd, operation="git rev-parse")

    def common_dir(self, worktree_path: str) -> str:
        """Absolute path of the shared .git directory for a worktree."""
        common = self._run("rev-parse", "--git-common-dir", cwd=worktree_path)
        if not os.path.isabs(common):
            common = os.path.join(worktree_path, common)
        return os.path.normpath(common)

    # History rewriting

    def rebase(self, onto: str, cwd: str) -> None:
        """Rebase the checked out branch, aborting on failure.

        Raises:
            ExternalToolFailure: If the rebase stops (the rebase is aborted first)
        """
        try:
            self._run("rebase", onto, cwd=cwd, operation="git rebase")
        except ExternalToolFailure:
            self.abort_rebase(cwd)
            raise

    def abort_rebase(self, cwd: str) -> None:
        try:
            self._run("rebase", "--abort", cwd=cwd)
        except ExternalToolFailure as e:
            logger.debug(f"Nothing to abort in {cwd}: {e}")

    def merge_ff_only(self, ref: str, cwd: str) -> None:
        self._run("merge", "--ff-only", ref, cwd=cwd, operation="git merge --ff-only")

    def create_empty_commit(self, message: str, cwd: str) -> None:
        """Record an empty commit in a worktree."""
        self._run("commit", "--allow-empty", "-m", message, cwd=cwd, operation="git commit")
