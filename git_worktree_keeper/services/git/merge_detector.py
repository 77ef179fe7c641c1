"""Merge detection service for git-worktree-keeper."""

from typing import Dict

import git

from git_worktree_keeper.exceptions import ExternalToolFailure
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.services.git.operations import git_failure

logger = get_logger(__name__)


class MergeDetector:
    """Service for detecting if branches have been merged into the trunk."""

    def __init__(self, repo_path: str):
        """Initialize the merge detector.

        Args:
            repo_path: Path to the git repository
        """
        self.repo_path = repo_path
        self._merge_status_cache: Dict[str, bool] = {}
        self._main_branch_sha_cache: Dict[str, str] = {}  # Track main branch SHA for cache invalidation

        logger.debug("Merge detector initialized")

    def _get_repo(self):
        """Get a fresh git.Repo instance.

        Returns:
            git.Repo: A fresh repository instance
        """
        return git.Repo(self.repo_path)

    def _get_main_branch_sha(self, main_branch: str) -> str:
        """Get the current SHA of the main branch."""
        try:
            return self._get_repo().refs[main_branch].commit.hexsha
        except (IndexError, ValueError) as e:
            logger.debug(f"Error getting main branch SHA: {e}")
            return ""

    def _invalidate_cache_if_needed(self, main_branch: str):
        """Invalidate cache if main branch has moved."""
        current_sha = self._get_main_branch_sha(main_branch)
        if not current_sha:
            return

        cached_sha = self._main_branch_sha_cache.get(main_branch)
        if cached_sha and cached_sha != current_sha:
            logger.debug(
                f"Main branch {main_branch} changed ({cached_sha[:7]} -> {current_sha[:7]}), invalidating cache"
            )
            self._merge_status_cache.clear()
        self._main_branch_sha_cache[main_branch] = current_sha

    def is_branch_merged(self, branch_name: str, main_branch: str) -> bool:
        """Check if a branch's tip is reachable from the main branch.

        Uses `git merge-base --is-ancestor`: exit 0 means merged, exit 1 means
        not merged, anything else is an error.

        Raises:
            ExternalToolFailure: If git can't answer (unknown branch, broken repo)
        """
        # A branch cannot be merged into itself
        if branch_name == main_branch:
            logger.debug(f"Skipping merge check: {branch_name} is the main branch")
            return False

        self._invalidate_cache_if_needed(main_branch)
        cache_key = f"{branch_name}:{main_branch}"
        if cache_key in self._merge_status_cache:
            return self._merge_status_cache[cache_key]

        try:
            self._get_repo().git.merge_base("--is-ancestor", branch_name, main_branch)
            merged = True
        except git.exc.GitCommandError as e:
            if e.status != 1:
                raise git_failure("git merge-base --is-ancestor", e)
            merged = False

        logger.debug(f"Branch {branch_name} merged into {main_branch}: {merged}")
        self._merge_status_cache[cache_key] = merged
        return merged

    def merged_branches(self, branches, main_branch: str) -> Dict[str, bool]:
        """Merge status for several branches; unknown branches count as unmerged."""
        result = {}
        for branch in branches:
            try:
                result[branch] = self.is_branch_merged(branch, main_branch)
            except ExternalToolFailure as e:
                logger.warning(f"Could not check whether {branch} is merged: {e}")
                result[branch] = False
        return result
