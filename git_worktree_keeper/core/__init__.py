"""Worktree lifecycle orchestration."""

from .worktree_keeper import WorktreeKeeper

__all__ = ["WorktreeKeeper"]
