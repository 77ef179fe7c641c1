"""Reconciliation of git's worktree registry with the worktrees root on disk."""

import os
from typing import Iterable, List, Optional, Set

from git_worktree_keeper.constants import SKIPPED_DIRECTORIES
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.reports import ReconciliationReport
from git_worktree_keeper.models.worktree import Worktree
from git_worktree_keeper.services.git.worktrees import read_gitdir_pointer
from git_worktree_keeper.utils.paths import is_within, normalize_path

logger = get_logger(__name__)


def scan_worktree_directories(root: str) -> List[str]:
    """Direct child directories of the worktrees root.

    Hidden directories and dependency caches are skipped. A missing root
    yields nothing.
    """
    root = normalize_path(root)
    try:
        entries = sorted(os.scandir(root), key=lambda entry: entry.name)
    except FileNotFoundError:
        logger.debug(f"Worktrees root {root} does not exist")
        return []

    directories = []
    for entry in entries:
        if entry.name.startswith(".") or entry.name in SKIPPED_DIRECTORIES:
            continue
        if entry.is_dir(follow_symlinks=False):
            directories.append(normalize_path(entry.path))
    return directories


def _exists(path: str) -> bool:
    try:
        os.stat(path)
    except (FileNotFoundError, NotADirectoryError):
        return False
    return True


def _registered_elsewhere(path: str) -> bool:
    """Whether a directory's `.git` pointer names an admin directory that still exists."""
    admin_dir = read_gitdir_pointer(path)
    return admin_dir is not None and os.path.isdir(admin_dir)


class ReconciliationScanner:
    """Partitions worktree paths into orphaned, stale and current."""

    def __init__(self, worktrees_root: str):
        self.worktrees_root = normalize_path(worktrees_root)

    def reconcile(
        self,
        registered: Iterable[Worktree],
        on_disk: Iterable[str],
        primary_paths: Optional[Iterable[str]] = None,
    ) -> ReconciliationReport:
        """
        Compare a registry snapshot with the directories found on disk.

        Only managed paths (below the worktrees root) take part. Nothing is
        modified.

        Args:
            registered: Registry records across all discovered repositories
            on_disk: Directories found under the worktrees root
            primary_paths: Primary checkouts, never reported as orphaned

        Returns:
            ReconciliationReport where every path is in exactly one set
        """
        primaries: Set[str] = {normalize_path(p) for p in (primary_paths or [])}
        registered_paths: Set[str] = set()
        for wt in registered:
            if wt.is_primary or wt.is_bare:
                primaries.add(normalize_path(wt.path))
                continue
            path = normalize_path(wt.path)
            if is_within(path, self.worktrees_root):
                registered_paths.add(path)

        stale = {path for path in registered_paths if not _exists(path)}
        current = registered_paths - stale

        orphaned = set()
        for directory in on_disk:
            path = normalize_path(directory)
            if path in registered_paths or path in primaries:
                continue
            if not is_within(path, self.worktrees_root):
                continue
            if _registered_elsewhere(path):
                # Belongs to a repository outside the discovered set
                logger.debug(f"{path} points at a live admin directory, treating as current")
                current.add(path)
                continue
            orphaned.add(path)

        report = ReconciliationReport(
            orphaned_directories=frozenset(orphaned),
            stale_references=frozenset(stale),
            current=frozenset(current),
        )
        logger.debug(
            f"Reconciliation: {len(report.current)} current, {len(report.stale_references)} stale, "
            f"{len(report.orphaned_directories)} orphaned"
        )
        return report

    def scan(self, registered: Iterable[Worktree],
             primary_paths: Optional[Iterable[str]] = None) -> ReconciliationReport:
        """Reconcile a registry snapshot against a fresh scan of the worktrees root."""
        return self.reconcile(registered, scan_worktree_directories(self.worktrees_root), primary_paths)
