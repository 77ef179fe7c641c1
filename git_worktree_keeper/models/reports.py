"""Result and report models returned by lifecycle operations."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class ItemStatus(Enum):
    """Outcome of one item in a batch."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class BatchItem:
    """Outcome for a single batch item."""
    item: str
    status: ItemStatus
    message: str = ""
    detail: Any = None  # Operation specific result, e.g. DeletionResult


@dataclass
class BatchReport:
    """Ordered per-item outcomes of a batch operation.

    Every input item appears exactly once.
    """
    operation: str
    items: List[BatchItem] = field(default_factory=list)
    interrupted: bool = False

    def add(self, item: str, status: ItemStatus, message: str = "", detail: Any = None) -> BatchItem:
        entry = BatchItem(item=item, status=status, message=message, detail=detail)
        self.items.append(entry)
        return entry

    def succeeded(self, item: str, message: str = "", detail: Any = None) -> BatchItem:
        return self.add(item, ItemStatus.SUCCESS, message, detail)

    def failed(self, item: str, message: str = "", detail: Any = None) -> BatchItem:
        return self.add(item, ItemStatus.FAILED, message, detail)

    def skipped(self, item: str, message: str = "", detail: Any = None) -> BatchItem:
        return self.add(item, ItemStatus.SKIPPED, message, detail)

    def _count(self, status: ItemStatus) -> int:
        return sum(1 for entry in self.items if entry.status == status)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def success_count(self) -> int:
        return self._count(ItemStatus.SUCCESS)

    @property
    def failed_count(self) -> int:
        return self._count(ItemStatus.FAILED)

    @property
    def skipped_count(self) -> int:
        return self._count(ItemStatus.SKIPPED)

    @property
    def has_failures(self) -> bool:
        return self.failed_count > 0


@dataclass(frozen=True)
class ReconciliationReport:
    """Partition of registered and on-disk worktree paths.

    Every path lands in exactly one of the three sets.
    """
    orphaned_directories: FrozenSet[str] = frozenset()  # On disk, not registered
    stale_references: FrozenSet[str] = frozenset()  # Registered, missing on disk
    current: FrozenSet[str] = frozenset()  # Registered and present

    @property
    def is_clean(self) -> bool:
        return not self.orphaned_directories and not self.stale_references


@dataclass
class DeletionResult:
    """Outcome of deleting one worktree."""
    path: str
    branch: Optional[str] = None
    repository: Optional[str] = None
    worktree_removed: bool = False
    branch_deleted: bool = False
    remote_branch_deleted: bool = False
    used_fallback: bool = False  # Directory removed by hand after git refused
    corrupted: bool = False  # Directory without git metadata
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class UpdateOutcome:
    """Outcome of updating one worktree."""
    path: str
    branch: str
    status: ItemStatus
    message: str = ""
    changed: bool = False  # HEAD moved


@dataclass
class InstallResult:
    """Outcome of a dependency installation."""
    ran: bool  # False when there was nothing to install
    success: bool
    package_manager: Optional[str] = None
    message: str = ""
    timed_out: bool = False


@dataclass
class CreateResult:
    """Outcome of creating or checking out a worktree."""
    path: str
    branch: str
    repository: str
    reused: bool = False  # An existing registered worktree was returned
    commit_created: bool = False
    install: Optional[InstallResult] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class CleanResult:
    """Plan and outcome of a clean run."""
    dry_run: bool
    main_branches: Dict[str, str] = field(default_factory=dict)  # Repository name -> trunk
    merged: List[str] = field(default_factory=list)  # Worktree paths to delete
    skipped_remote: List[str] = field(default_factory=list)  # Merged, branch still on remote
    reconciliation: ReconciliationReport = field(default_factory=ReconciliationReport)
    deletions: Optional[BatchReport] = None
    pruned: List[str] = field(default_factory=list)  # Repository names
    orphans_removed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.deletions and self.deletions.has_failures)


@dataclass
class MoveResult:
    """Outcome of moving or renaming a worktree."""
    source: str
    destination: str
    branch: str
    used_fallback: bool = False  # Moved without `git worktree move`
    branch_renamed_to: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
