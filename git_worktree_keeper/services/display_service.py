"""Display and formatting service for worktree reports"""
from typing import Dict, List, Optional

from rich.console import Console
from rich.table import Table

from git_worktree_keeper.constants import (
    SYMBOL_FAILED,
    SYMBOL_SKIPPED,
    SYMBOL_SUCCESS,
    SYMBOL_WARNING,
)
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.reports import (
    BatchReport,
    CleanResult,
    CreateResult,
    DeletionResult,
    ItemStatus,
    MoveResult,
)
from git_worktree_keeper.models.repository import Repository
from git_worktree_keeper.models.worktree import Worktree

console = Console()
logger = get_logger(__name__)

STATUS_STYLES = {
    ItemStatus.SUCCESS: ("green", SYMBOL_SUCCESS),
    ItemStatus.FAILED: ("red", SYMBOL_FAILED),
    ItemStatus.SKIPPED: ("yellow", SYMBOL_SKIPPED),
}


class DisplayService:
    def __init__(self, verbose: bool = False, debug: bool = False, output: Optional[Console] = None):
        self.verbose = verbose
        self.debug_mode = debug
        self.console = output or console

    def display_worktrees(self, groups: Dict[Repository, List[Worktree]]) -> None:
        """Display managed worktrees grouped by repository."""
        if not groups:
            self.console.print("No managed worktrees.")
            return

        table = Table()
        table.add_column("Repository")
        table.add_column("Worktree")
        table.add_column("Branch")
        table.add_column("HEAD")
        if self.verbose:
            table.add_column("Path")

        for repository in sorted(groups, key=lambda repo: repo.name.lower()):
            for index, wt in enumerate(groups[repository]):
                row = [
                    repository.name if index == 0 else "",
                    wt.name,
                    wt.branch or "[dim](detached)[/dim]",
                    wt.head[:7],
                ]
                if self.verbose:
                    row.append(wt.path)
                table.add_row(*row)

        self.console.print(table)
        total = sum(len(worktrees) for worktrees in groups.values())
        self.console.print(f"\n{total} worktree(s) in {len(groups)} repositor(ies)")

    def display_batch_report(self, report: BatchReport) -> None:
        """Display one line per item followed by the counters."""
        for entry in report.items:
            style, symbol = STATUS_STYLES[entry.status]
            line = f"[{style}]{symbol}[/{style}] {entry.item}"
            if entry.message:
                line += f" [dim]({entry.message})[/dim]"
            self.console.print(line)
            if isinstance(entry.detail, DeletionResult):
                self._display_warnings(entry.detail.warnings)

        self.console.print(
            f"\n{report.operation}: {report.success_count} succeeded, "
            f"{report.failed_count} failed, {report.skipped_count} skipped"
        )
        if report.interrupted:
            self.console.print("[yellow]Interrupted; remaining items were not processed[/yellow]")

    def display_clean_result(self, result: CleanResult) -> None:
        """Display the clean plan, and its outcome for real runs."""
        for name, main_branch in sorted(result.main_branches.items()):
            logger.info(f"{name}: trunk is {main_branch}")

        reconciliation = result.reconciliation
        verb = "Would delete" if result.dry_run else "Merged"
        self._display_paths(f"{verb} worktrees", result.merged)
        self._display_paths("Merged but still on the remote (use --include-remote)", result.skipped_remote)
        self._display_paths("Stale references (directory missing)", sorted(reconciliation.stale_references))
        self._display_paths("Orphaned directories (not registered)", sorted(reconciliation.orphaned_directories))
        if self.verbose:
            self._display_paths("Current worktrees", sorted(reconciliation.current))

        if not (result.merged or reconciliation.stale_references or reconciliation.orphaned_directories):
            self.console.print("[green]Nothing to clean.[/green]")

        if result.dry_run:
            self.console.print("\n[yellow]Dry run: nothing was changed.[/yellow]")
        else:
            if result.deletions:
                self.console.print()
                self.display_batch_report(result.deletions)
            for name in result.pruned:
                self.console.print(f"[green]{SYMBOL_SUCCESS}[/green] Pruned stale references in {name}")
            for directory in result.orphans_removed:
                self.console.print(f"[green]{SYMBOL_SUCCESS}[/green] Removed orphaned directory {directory}")
        self._display_warnings(result.warnings)

    def display_create_result(self, result: CreateResult) -> None:
        if result.reused:
            self.console.print(f"Using existing worktree {result.path} ({result.branch})")
        else:
            self.console.print(f"[bold]{result.repository}[/bold]: {result.branch}")
            self.console.print(f"  {result.path}")
        self._display_warnings(result.warnings)

    def display_move_result(self, result: MoveResult) -> None:
        how = " (manual fallback)" if result.used_fallback else ""
        self.console.print(f"{result.source} -> {result.destination}{how}")
        if result.branch_renamed_to:
            self.console.print(f"Branch renamed {result.branch} -> {result.branch_renamed_to}")
        self._display_warnings(result.warnings)

    def _display_paths(self, title: str, paths: List[str]) -> None:
        if not paths:
            return
        self.console.print(f"\n{title}:")
        for path in paths:
            self.console.print(f"  {path}")

    def _display_warnings(self, warnings: List[str]) -> None:
        for warning in warnings:
            self.console.print(f"  [yellow]{SYMBOL_WARNING} {warning}[/yellow]")
