"""Data models for git-worktree-keeper."""

from .branch import BranchSpec
from .repository import Repository
from .reports import (
    BatchItem,
    BatchReport,
    CleanResult,
    CreateResult,
    DeletionResult,
    InstallResult,
    ItemStatus,
    MoveResult,
    ReconciliationReport,
    UpdateOutcome,
)
from .worktree import Worktree

__all__ = [
    "BatchItem",
    "BatchReport",
    "BranchSpec",
    "CleanResult",
    "CreateResult",
    "DeletionResult",
    "InstallResult",
    "ItemStatus",
    "MoveResult",
    "ReconciliationReport",
    "Repository",
    "UpdateOutcome",
    "Worktree",
]
