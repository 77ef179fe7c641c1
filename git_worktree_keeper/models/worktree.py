"""Worktree data models."""

import os
from dataclasses import dataclass
from typing import Optional

from git_worktree_keeper.models.repository import Repository


@dataclass(frozen=True)
class Worktree:
    """One record of git's worktree registry."""

    path: str
    branch: str  # Empty string means detached HEAD
    head: str
    repository: Optional[Repository] = None
    is_primary: bool = False  # First record of the registry
    is_bare: bool = False
    locked: bool = False
    prunable: bool = False

    @property
    def is_detached(self) -> bool:
        return not self.branch

    @property
    def name(self) -> str:
        """Directory name of the worktree."""
        return os.path.basename(self.path.rstrip(os.sep))

    def __str__(self) -> str:
        """String representation of worktree."""
        branch = self.branch or "(detached)"
        marker = " (primary)" if self.is_primary else ""
        return f"{branch} @ {self.path}{marker}"
