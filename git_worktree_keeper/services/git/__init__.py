"""Git services for git-worktree-keeper."""

from .merge_detector import MergeDetector
from .operations import GitOperations, run_git
from .reconciliation import ReconciliationScanner, scan_worktree_directories
from .worktrees import WorktreeRegistry, parse_porcelain

__all__ = [
    "GitOperations",
    "MergeDetector",
    "ReconciliationScanner",
    "WorktreeRegistry",
    "parse_porcelain",
    "run_git",
    "scan_worktree_directories",
]
