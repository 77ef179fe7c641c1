"""Trunk branch resolution."""

from typing import Iterable, Optional, Tuple

import git

from git_worktree_keeper.constants import MAIN_BRANCH_CANDIDATES
from git_worktree_keeper.exceptions import NoMainBranchError
from git_worktree_keeper.logging_config import get_logger

logger = get_logger(__name__)


class MainBranchResolver:
    """Picks the trunk branch of a repository from an ordered candidate list."""

    def __init__(self, candidates: Optional[Iterable[str]] = None):
        self.candidates: Tuple[str, ...] = tuple(candidates or MAIN_BRANCH_CANDIDATES)

    def resolve(self, repo_path: str) -> str:
        """
        Return the first candidate that exists as a local branch.

        Args:
            repo_path: Path to the repository

        Returns:
            Branch name

        Raises:
            NoMainBranchError: If no candidate exists
        """
        repo = git.Repo(repo_path)
        for name in self.candidates:
            try:
                repo.git.show_ref("--verify", "--quiet", f"refs/heads/{name}")
            except git.exc.GitCommandError:
                continue
            logger.debug(f"Main branch of {repo_path}: {name}")
            return name
        raise NoMainBranchError(repo_path, self.candidates)
