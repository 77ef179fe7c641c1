"""Utility functions for git-worktree-keeper."""

from .paths import is_within, normalize_path

__all__ = ["is_within", "normalize_path"]
