"""Core functionality for git-worktree-keeper"""

import errno
import os
import shutil
import signal
import tempfile
import threading
from contextlib import contextmanager, nullcontext
from typing import Dict, List, Optional, Tuple, Union

from rich.console import Console
from rich.progress import Progress

from git_worktree_keeper.config import Config
from git_worktree_keeper.constants import COMMIT_TYPES, DEFAULT_COMMIT_TYPE, PROTECTED_BRANCHES
from git_worktree_keeper.core.rollback import CompensatingActions
from git_worktree_keeper.exceptions import (
    AlreadyExistsError,
    ExternalToolFailure,
    InvalidNameError,
    SelectionCancelled,
    TicketNotFoundError,
    WorktreeAlreadyExistsError,
    WorktreeKeeperError,
    WorktreeNotFoundError,
)
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.branch import BranchSpec
from git_worktree_keeper.models.reports import (
    BatchReport,
    CleanResult,
    CreateResult,
    DeletionResult,
    ItemStatus,
    MoveResult,
    UpdateOutcome,
)
from git_worktree_keeper.models.repository import Repository
from git_worktree_keeper.models.worktree import Worktree
from git_worktree_keeper.services.branch_names import BranchNameSynthesizer
from git_worktree_keeper.services.git import (
    GitOperations,
    MergeDetector,
    ReconciliationScanner,
    WorktreeRegistry,
    run_git,
)
from git_worktree_keeper.services.git.worktrees import read_gitdir_pointer, repository_from_admin_dir
from git_worktree_keeper.services.installer import DependencyInstaller
from git_worktree_keeper.services.main_branch import MainBranchResolver
from git_worktree_keeper.services.repository_locator import RepositoryLocator, is_repository
from git_worktree_keeper.services.selection_store import FileLastSelectionStore, LastSelectionStore
from git_worktree_keeper.services.tickets import TicketLookup, make_ticket_lookup
from git_worktree_keeper.ui.pickers import Picker
from git_worktree_keeper.utils.paths import is_within, normalize_path

console = Console()
logger = get_logger(__name__)

# Registry snapshot across repositories
Snapshot = Dict[Repository, List[Worktree]]


@contextmanager
def deferred_interrupts():
    """Hold SIGINT until the block finishes, then raise KeyboardInterrupt.

    Only the main thread can install signal handlers; elsewhere this is a no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    received = []

    def _record(signum, frame):
        received.append(signum)
        console.print("\n[yellow]Interrupt received, finishing setup first...[/yellow]")

    previous = signal.signal(signal.SIGINT, _record)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)
    if received:
        raise KeyboardInterrupt


def _move_directory(source: str, destination: str) -> None:
    """Rename a directory, copying when source and destination are on different filesystems."""
    try:
        os.rename(source, destination)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        logger.debug(f"Cross-device move, copying {source} -> {destination}")
        shutil.copytree(source, destination, symlinks=True)
        shutil.rmtree(source)


def _commit_type_labels() -> Dict[str, str]:
    """Picker label -> commit type name."""
    return {f"{ct.name:<9} {ct.emoji}  {ct.description}": ct.name for ct in COMMIT_TYPES}


class WorktreeKeeper:
    """Manages the lifecycle of per-branch worktrees under the worktrees root."""

    def __init__(
        self,
        config: Union[Config, dict],
        picker: Optional[Picker] = None,
        ticket_lookup: Optional[TicketLookup] = None,
        installer: Optional[DependencyInstaller] = None,
        store: Optional[LastSelectionStore] = None,
    ):
        """Initialize WorktreeKeeper.

        Args:
            config: Configuration dict or Config object
            picker: Interactive collaborator; None means non-interactive
            ticket_lookup: Ticket tracker (defaults to the configured provider)
            installer: Dependency installer (defaults to one using install_timeout)
            store: Last selection store (defaults to the configured state file)
        """
        if isinstance(config, dict):
            self.config = Config.from_dict(config)
        else:
            self.config = config

        self.worktrees_root = normalize_path(self.config.worktrees_root)
        self.picker = picker
        self.ticket_lookup = ticket_lookup
        self.installer = installer or DependencyInstaller(self.config.install_timeout)
        self.store = store if store is not None else FileLastSelectionStore(self.config.state_file)
        self.locator = RepositoryLocator(
            self.config.programming_root,
            worktrees_root=self.worktrees_root,
            max_depth=self.config.max_depth,
            store=self.store,
        )
        self.resolver = MainBranchResolver(self.config.main_branch_candidates)
        self.scanner = ReconciliationScanner(self.worktrees_root)

        logger.debug(f"Worktrees root: {self.worktrees_root}")
        logger.debug(f"Programming root: {self.locator.programming_root}")

    # Helpers

    def _ops(self, repository: Repository) -> GitOperations:
        return GitOperations(repository.path, self.config)

    def _require_picker(self, purpose: str) -> Picker:
        if self.picker is None:
            raise SelectionCancelled(f"Cannot {purpose} without an interactive terminal")
        return self.picker

    def _resolve_repository(self, repo_name: Optional[str]) -> Repository:
        return self.locator.resolve(repo_name, self.picker)

    def _is_managed(self, worktree: Worktree) -> bool:
        return not worktree.is_primary and is_within(worktree.path, self.worktrees_root)

    def snapshot(self, strict: bool = False) -> Snapshot:
        """Registry of every discovered repository.

        A repository whose registry can't be read is left out with a warning,
        unless strict.

        Raises:
            ExternalToolFailure: If strict and any registry can't be read
        """
        snapshot: Snapshot = {}
        for repository in self.locator.find_all():
            try:
                snapshot[repository] = WorktreeRegistry(repository).list()
            except ExternalToolFailure as e:
                if strict:
                    raise ExternalToolFailure(
                        "git worktree list",
                        f"cannot read the registry of {repository.name}: {e}",
                        status=e.status,
                        stderr=e.stderr,
                    ) from e
                logger.warning(f"Skipping {repository.name}: {e}")
        return snapshot

    def _managed(self, snapshot: Snapshot) -> Dict[Repository, List[Worktree]]:
        managed = {}
        for repository, worktrees in snapshot.items():
            entries = [wt for wt in worktrees if self._is_managed(wt)]
            if entries:
                managed[repository] = entries
        return managed

    @staticmethod
    def _find_in_snapshot(snapshot: Snapshot, path: str) -> Optional[Tuple[Repository, Worktree]]:
        target = normalize_path(path)
        for repository, worktrees in snapshot.items():
            for wt in worktrees:
                if normalize_path(wt.path) == target:
                    return repository, wt
        return None

    def _target_path(self, path_or_name: str) -> str:
        """A bare name refers to a directory under the worktrees root."""
        expanded = os.path.expanduser(path_or_name)
        if os.path.isabs(expanded) or os.sep in path_or_name or os.path.exists(expanded):
            return normalize_path(expanded)
        return normalize_path(os.path.join(self.worktrees_root, path_or_name))

    def _resolve_managed(self, path_or_name: str,
                         snapshot: Optional[Snapshot] = None) -> Tuple[Repository, Worktree]:
        """Registered, managed worktree for a path or a directory name.

        Raises:
            WorktreeNotFoundError: If the path is outside the root or not registered
        """
        path = self._target_path(path_or_name)
        if not is_within(path, self.worktrees_root):
            raise WorktreeNotFoundError(path, f"not under the worktrees root {self.worktrees_root}")
        found = self._find_in_snapshot(snapshot if snapshot is not None else self.snapshot(), path)
        if found is None or found[1].is_primary:
            raise WorktreeNotFoundError(path, "not a registered worktree")
        return found

    @staticmethod
    def _worktree_label(repository: Repository, worktree: Worktree) -> str:
        return f"{repository.name}: {worktree.name} [{worktree.branch or 'detached'}]"

    def _pick_worktrees(self, snapshot: Snapshot, prompt: str, many: bool) -> List[str]:
        """Let the user choose managed worktrees; returns their paths."""
        picker = self._require_picker("choose a worktree")
        labels: Dict[str, str] = {}
        for repository, worktrees in self._managed(snapshot).items():
            for wt in worktrees:
                labels[self._worktree_label(repository, wt)] = wt.path
        if not labels:
            raise WorktreeNotFoundError(self.worktrees_root, "no managed worktrees")
        if many:
            return [labels[label] for label in picker.select_many(prompt, list(labels))]
        return [labels[picker.select(prompt, list(labels))]]

    def choose_worktree(self, prompt: str) -> str:
        """Path of one managed worktree chosen by the user."""
        return self._pick_worktrees(self.snapshot(), prompt, many=False)[0]

    def _install(self, path: str, warnings: List[str]):
        install = self.installer.install(path)
        if install.ran or not install.success:
            level = "green" if install.success else "yellow"
            console.print(f"[{level}]{install.message}[/{level}]")
        if not install.success:
            warnings.append(install.message)
            logger.warning(install.message)
        return install

    # create

    def build_branch_spec(self, raw_input: str, repository: Repository,
                          commit_type: Optional[str] = None) -> BranchSpec:
        """
        Turn user input into a BranchSpec.

        Input matching the ticket pattern is looked up in the ticket tracker.
        When the lookup fails the user is asked for a description; an empty
        answer, or no way to ask, leaves the bare ticket id.
        """
        raw_input = raw_input.strip()
        ticket_id = None
        summary = None

        if self.config.ticket_regex.match(raw_input):
            ticket_id = raw_input
            lookup = self.ticket_lookup or make_ticket_lookup(self.config, repository.path)
            try:
                with console.status(f"Fetching ticket {ticket_id}..."):
                    summary = lookup.fetch_summary(ticket_id)
                console.print(f"[blue]{ticket_id}: {summary}[/blue]")
            except TicketNotFoundError as e:
                logger.warning(str(e))
                if self.picker is not None:
                    summary = self.picker.prompt_text(
                        f"Description for {ticket_id} (empty to use the ticket id only)"
                    ) or None

        if commit_type is None:
            if self.picker is not None:
                labels = _commit_type_labels()
                commit_type = labels[self.picker.select("Commit type", list(labels))]
            else:
                commit_type = DEFAULT_COMMIT_TYPE

        return BranchNameSynthesizer.build_spec(raw_input, ticket_id, summary, commit_type)

    def create(self, ticket_or_name: Optional[str] = None, repo_name: Optional[str] = None,
               commit_type: Optional[str] = None) -> CreateResult:
        """
        Create a worktree on a new branch cut from the trunk.

        Args:
            ticket_or_name: Ticket id or free-text description (asked for when None)
            repo_name: Repository name or path (picked interactively when None)
            commit_type: Conventional commit type of the initial commit

        Returns:
            CreateResult for the new worktree

        Raises:
            WorktreeAlreadyExistsError: If the target directory exists (nothing is touched)
            NoMainBranchError: If the repository has no trunk branch
            ExternalToolFailure: If git can't add the worktree
        """
        repository = self._resolve_repository(repo_name)
        main_branch = self.resolver.resolve(repository.path)

        if not ticket_or_name:
            ticket_or_name = self._require_picker("ask for a branch").prompt_text(
                "Ticket id or description"
            )
        if not ticket_or_name.strip():
            raise InvalidNameError(ticket_or_name)

        spec = self.build_branch_spec(ticket_or_name, repository, commit_type)
        path = os.path.join(self.worktrees_root, spec.sanitized_name)
        if os.path.lexists(path):
            raise WorktreeAlreadyExistsError(path)

        os.makedirs(self.worktrees_root, exist_ok=True)
        registry = WorktreeRegistry(repository)
        console.print(f"Creating worktree [bold]{spec.sanitized_name}[/bold] from {main_branch}...")
        registry.add(path, spec.sanitized_name, base=main_branch)
        try:
            with deferred_interrupts():
                result = CreateResult(path=path, branch=spec.sanitized_name, repository=repository.name)
                message = BranchNameSynthesizer.commit_message(spec, self.config.ticket_link)
                try:
                    self._ops(repository).create_empty_commit(message, cwd=path)
                    result.commit_created = True
                except ExternalToolFailure as e:
                    result.warnings.append(f"Initial commit failed: {e}")
                    logger.warning(f"Initial commit failed: {e}")
                result.install = self._install(path, result.warnings)
        except KeyboardInterrupt:
            console.print(f"[yellow]Interrupted. Worktree is usable at {path}[/yellow]")
            raise

        console.print(f"[green]Worktree ready at {path}[/green]")
        return result

    # checkout

    def checkout(self, branch: Optional[str] = None, repo_name: Optional[str] = None) -> CreateResult:
        """
        Create a worktree for an existing remote branch.

        An existing registered worktree at the target path is reused.

        Raises:
            WorktreeAlreadyExistsError: If the target exists but isn't a registered worktree
        """
        repository = self._resolve_repository(repo_name)
        ops = self._ops(repository)
        with console.status(f"Fetching {ops.remote_name}..."):
            ops.fetch()

        if not branch:
            remote_branches = ops.list_remote_branches()
            if not remote_branches:
                raise WorktreeNotFoundError(repository.path, f"no branches on {ops.remote_name}")
            branch = self._require_picker("choose a branch").select("Remote branch", remote_branches)

        name = BranchNameSynthesizer.sanitize(branch)
        path = os.path.join(self.worktrees_root, name)
        registry = WorktreeRegistry(repository)

        if os.path.lexists(path):
            existing = registry.find(path)
            if existing is None:
                raise WorktreeAlreadyExistsError(path)
            console.print(f"[yellow]Worktree already exists at {path}, reusing it[/yellow]")
            return CreateResult(path=path, branch=existing.branch, repository=repository.name, reused=True)

        os.makedirs(self.worktrees_root, exist_ok=True)
        if ops.branch_exists(branch):
            registry.add(path, branch, new_branch=False)
        else:
            registry.add_tracking(path, branch, f"{ops.remote_name}/{branch}")

        with deferred_interrupts():
            result = CreateResult(path=path, branch=branch, repository=repository.name)
            result.install = self._install(path, result.warnings)
        console.print(f"[green]Worktree ready at {path}[/green]")
        return result

    # list

    def list_worktrees(self, repo_name: Optional[str] = None) -> Dict[Repository, List[Worktree]]:
        """Managed worktrees grouped by repository."""
        if repo_name:
            repository = self.locator.resolve_by_name(repo_name)
            worktrees = [wt for wt in WorktreeRegistry(repository).list() if self._is_managed(wt)]
            return {repository: worktrees} if worktrees else {}
        return self._managed(self.snapshot())

    # delete

    def delete(self, paths: Optional[List[str]] = None, force: bool = False) -> BatchReport:
        """
        Delete worktrees and their branches.

        Items are processed one at a time; a failing item doesn't stop the
        others. Without paths the user picks worktrees and confirms unless force.

        Returns:
            BatchReport whose items carry DeletionResult details

        Raises:
            SelectionCancelled: If the user declines or aborts the selection
        """
        snapshot = self.snapshot()
        if not paths:
            paths = self._pick_worktrees(snapshot, "Worktrees to delete", many=True)
            if not force:
                picker = self._require_picker("confirm")
                if not picker.confirm(f"Delete {len(paths)} worktree(s) and their branches?"):
                    raise SelectionCancelled("Deletion cancelled")
        return self._delete_batch(paths, snapshot, "delete")

    def _delete_batch(self, paths: List[str], snapshot: Snapshot, operation: str) -> BatchReport:
        report = BatchReport(operation=operation)
        progress_context = Progress(console=console, transient=True) if len(paths) > 1 else nullcontext()

        with progress_context as progress:
            task = progress.add_task("Deleting worktrees...", total=len(paths)) if progress is not None else None
            for index, path in enumerate(paths):
                try:
                    result = self.delete_one(path, snapshot)
                except KeyboardInterrupt:
                    report.failed(path, "interrupted")
                    for remaining in paths[index + 1:]:
                        report.skipped(remaining, "not reached (interrupted)")
                    report.interrupted = True
                    break
                except (WorktreeKeeperError, OSError) as e:
                    logger.error(f"Failed to delete {path}: {e}")
                    report.failed(path, str(e))
                else:
                    if result.success:
                        report.succeeded(path, self._deletion_summary(result), detail=result)
                    else:
                        report.failed(path, result.error or "failed", detail=result)
                if progress is not None:
                    progress.advance(task)
        return report

    @staticmethod
    def _deletion_summary(result: DeletionResult) -> str:
        if result.corrupted:
            return "removed corrupted directory"
        parts = ["worktree removed"]
        if result.branch_deleted:
            parts.append(f"branch {result.branch} deleted")
        if result.remote_branch_deleted:
            parts.append("remote branch deleted")
        return ", ".join(parts)

    def _owning_repository(self, path: str) -> Optional[Repository]:
        """Repository of a linked worktree, from git or from its pointer file."""
        try:
            common = GitOperations(path, self.config).common_dir(path)
            if os.path.basename(common) == ".git":
                return Repository.from_path(os.path.dirname(common))
        except ExternalToolFailure as e:
            logger.debug(f"git rev-parse failed in {path}: {e}")
        admin_dir = read_gitdir_pointer(path)
        return repository_from_admin_dir(admin_dir) if admin_dir else None

    def _branch_for(self, path: str, repository: Repository, registered: Optional[Worktree],
                    ops: GitOperations) -> Optional[str]:
        """Branch of a worktree: from the worktree, the registry, then its directory name."""
        if os.path.isdir(path):
            try:
                branch = ops.current_branch(path)
                if branch:
                    return branch
            except ExternalToolFailure as e:
                logger.debug(f"Could not read branch in {path}: {e}")
        if registered is not None and registered.branch:
            return registered.branch
        name = os.path.basename(path)
        if ops.branch_exists(name):
            logger.debug(f"Guessed branch {name} from directory name")
            return name
        return None

    def delete_one(self, path: str, snapshot: Optional[Snapshot] = None) -> DeletionResult:
        """
        Delete one worktree, its local branch and its remote branch.

        Raises:
            WorktreeNotFoundError: If the path is neither on disk nor registered
                anywhere, or is not a managed worktree
        """
        path = self._target_path(path)
        result = DeletionResult(path=path)
        snapshot = snapshot if snapshot is not None else self.snapshot()

        if not is_within(path, self.worktrees_root):
            raise WorktreeNotFoundError(path, f"not under the worktrees root {self.worktrees_root}")

        found = self._find_in_snapshot(snapshot, path)
        if os.path.isdir(path):
            if not os.path.exists(os.path.join(path, ".git")):
                console.print(f"[yellow]{path} has no git metadata, removing directory[/yellow]")
                try:
                    shutil.rmtree(path)
                except OSError as e:
                    raise ExternalToolFailure("remove directory", str(e)) from e
                result.corrupted = True
                return result
            if is_repository(path):
                raise WorktreeNotFoundError(path, "is a repository, not a linked worktree")
            repository = found[0] if found else self._owning_repository(path)
        elif found is not None:
            repository = found[0]
        else:
            raise WorktreeNotFoundError(path, "not on disk and not registered")

        if repository is None:
            raise WorktreeNotFoundError(path, "cannot determine the owning repository")

        registered = found[1] if found else None
        result.repository = repository.name
        ops = self._ops(repository)
        registry = WorktreeRegistry(repository)
        result.branch = self._branch_for(path, repository, registered, ops)

        console.print(f"Removing worktree {path}...")
        removed, error = registry.remove(path)
        if not removed:
            logger.debug(f"Retrying with --force: {error}")
            removed, error = registry.remove(path, force=True)
        if not removed:
            result.used_fallback = True
            logger.warning(f"git could not remove {path}, removing directory and pruning")
            if os.path.isdir(path):
                try:
                    shutil.rmtree(path)
                except OSError as e:
                    result.error = f"could not remove directory: {e}"
                    return result
            registry.prune()
            if registry.is_registered(path):
                result.error = f"registration survived removal: {error}"
                return result
        result.worktree_removed = True

        if result.branch:
            self._delete_branches(result, ops)

        if os.path.isdir(path):
            try:
                shutil.rmtree(path)
            except OSError as e:
                result.warnings.append(f"Could not remove leftover directory: {e}")
                logger.warning(f"Could not remove leftover directory {path}: {e}")
        return result

    def _delete_branches(self, result: DeletionResult, ops: GitOperations) -> None:
        branch = result.branch
        if branch in PROTECTED_BRANCHES or branch in self.config.main_branch_candidates:
            result.warnings.append(f"Kept trunk branch {branch}")
            return

        try:
            ops.delete_branch(branch)
            result.branch_deleted = True
        except ExternalToolFailure as e:
            result.warnings.append(f"Could not delete branch {branch}: {e}")
            logger.warning(f"Could not delete branch {branch}: {e}")
            return

        if ops.remote_branch_exists(branch):
            try:
                ops.delete_remote_branch(branch)
                result.remote_branch_deleted = True
            except ExternalToolFailure as e:
                result.warnings.append(f"Could not delete remote branch {branch}: {e}")
                logger.warning(f"Could not delete remote branch {branch}: {e}")

    # clean

    def clean(self, dry_run: bool = False, force: bool = False, remove_orphans: bool = False,
              include_remote: bool = False) -> CleanResult:
        """
        Delete worktrees whose branches are merged and reconcile the registry.

        A dry run only reports what would happen and changes nothing.

        Raises:
            NoMainBranchError: If a repository with managed worktrees has no trunk
            ExternalToolFailure: If any repository's registry can't be read
            SelectionCancelled: If the user declines the confirmation
        """
        result = CleanResult(dry_run=dry_run)
        # A partial registry would make registered worktrees look orphaned
        snapshot = self.snapshot(strict=True)
        managed = self._managed(snapshot)

        for repository, worktrees in managed.items():
            main_branch = self.resolver.resolve(repository.path)
            result.main_branches[repository.name] = main_branch
            ops = self._ops(repository)
            if not dry_run:
                self._refresh_main(repository, main_branch, ops, result)

            detector = MergeDetector(repository.path)
            branches = [wt.branch for wt in worktrees if wt.branch]
            merged = detector.merged_branches(branches, main_branch)
            for wt in worktrees:
                if not wt.branch or not merged.get(wt.branch):
                    continue
                if not include_remote and ops.remote_branch_exists(wt.branch):
                    result.skipped_remote.append(wt.path)
                    continue
                result.merged.append(wt.path)

        registered = [wt for worktrees in snapshot.values() for wt in worktrees]
        result.reconciliation = self.scanner.scan(registered, [repo.path for repo in snapshot])

        if dry_run:
            return result

        orphans = sorted(result.reconciliation.orphaned_directories) if remove_orphans else []
        stale = result.reconciliation.stale_references
        # Stale registrations go through prune, not delete
        to_delete = [path for path in result.merged if normalize_path(path) not in stale]
        if not (to_delete or stale or orphans):
            return result

        if not force:
            picker = self._require_picker("confirm")
            summary = (f"Delete {len(to_delete)} merged worktree(s), prune {len(stale)} stale "
                       f"reference(s) and remove {len(orphans)} orphaned director(ies)?")
            if not picker.confirm(summary):
                raise SelectionCancelled("Clean cancelled")

        if to_delete:
            result.deletions = self._delete_batch(to_delete, snapshot, "clean")

        for repository, worktrees in snapshot.items():
            if any(normalize_path(wt.path) in stale for wt in worktrees):
                pruned, error = WorktreeRegistry(repository).prune()
                if pruned:
                    result.pruned.append(repository.name)
                else:
                    result.warnings.append(f"Could not prune {repository.name}: {error}")

        for directory in orphans:
            try:
                shutil.rmtree(directory)
                result.orphans_removed.append(directory)
            except OSError as e:
                result.warnings.append(f"Could not remove {directory}: {e}")
                logger.warning(f"Could not remove {directory}: {e}")

        return result

    def _refresh_main(self, repository: Repository, main_branch: str, ops: GitOperations,
                      result: CleanResult) -> None:
        """Check out and pull the trunk in the primary checkout; failures are warnings."""
        try:
            ops.checkout(main_branch)
            if ops.has_remote():
                with console.status(f"Pulling {main_branch} in {repository.name}..."):
                    ops.pull()
        except ExternalToolFailure as e:
            message = f"Could not refresh {main_branch} in {repository.name}: {e}"
            result.warnings.append(message)
            logger.warning(message)

    # move / rename

    def move(self, source: str, destination: str, force: bool = False) -> MoveResult:
        """
        Move a managed worktree.

        A destination that is an existing directory receives the source's
        directory name. An existing target is replaced only with force.
        """
        repository, worktree = self._resolve_managed(source)
        destination = normalize_path(os.path.expanduser(destination))
        if os.path.isdir(destination) and not os.path.exists(os.path.join(destination, ".git")):
            destination = os.path.join(destination, worktree.name)
        return self._relocate(repository, worktree, destination, force)

    def rename(self, old: str, new: str, force: bool = False, keep_branch: bool = False) -> MoveResult:
        """
        Rename a managed worktree within the worktrees root.

        The branch is renamed too when it carries the old directory name,
        unless keep_branch.
        """
        repository, worktree = self._resolve_managed(old)
        new_name = BranchNameSynthesizer.sanitize(new)
        destination = os.path.join(self.worktrees_root, new_name)
        result = self._relocate(repository, worktree, destination, force)

        if not keep_branch and worktree.branch and worktree.branch == worktree.name \
                and worktree.branch != new_name:
            ops = self._ops(repository)
            if ops.branch_exists(new_name):
                result.warnings.append(f"Branch {new_name} already exists, kept {worktree.branch}")
            else:
                try:
                    ops.rename_branch(worktree.branch, new_name)
                    result.branch_renamed_to = new_name
                except ExternalToolFailure as e:
                    result.warnings.append(f"Could not rename branch: {e}")
                    logger.warning(f"Could not rename branch {worktree.branch}: {e}")
        return result

    def _relocate(self, repository: Repository, worktree: Worktree, destination: str,
                  force: bool) -> MoveResult:
        source = normalize_path(worktree.path)
        if normalize_path(destination) == source:
            raise AlreadyExistsError(f"{source} is already at {destination}")
        if os.path.lexists(destination):
            if not force:
                raise WorktreeAlreadyExistsError(destination)
            self._clear_destination(destination)

        os.makedirs(os.path.dirname(destination), exist_ok=True)
        result = MoveResult(source=source, destination=destination, branch=worktree.branch)
        registry = WorktreeRegistry(repository)
        try:
            registry.move(source, destination)
        except ExternalToolFailure as e:
            logger.info(f"git worktree move unavailable ({e}), moving manually")
            self._manual_move(registry, worktree, source, destination)
            result.used_fallback = True
        console.print(f"[green]Moved {source} -> {destination}[/green]")
        return result

    def _clear_destination(self, destination: str) -> None:
        """Remove what's in the way of a forced move."""
        found = self._find_in_snapshot(self.snapshot(), destination)
        if found is not None:
            WorktreeRegistry(found[0]).remove(destination, force=True)
        if os.path.isdir(destination) and not os.path.islink(destination):
            shutil.rmtree(destination)
        elif os.path.lexists(destination):
            os.unlink(destination)
        if found is not None:
            WorktreeRegistry(found[0]).prune()

    def _manual_move(self, registry: WorktreeRegistry, worktree: Worktree, source: str,
                     destination: str) -> None:
        """
        Move a worktree without `git worktree move`.

        Steps, each undone in reverse order when a later one fails:
        1. Deregister by moving the admin directory aside.
        2. Move the directory (rename, or copy then delete across filesystems).
        3. Register the new path on the same branch and point it at the files.
        """
        admin_dir = read_gitdir_pointer(source)
        if not admin_dir or not os.path.isdir(admin_dir):
            raise ExternalToolFailure("worktree move", message=f"{source} has no registration to move")

        dot_git = os.path.join(source, ".git")
        with open(dot_git, encoding="utf-8") as f:
            old_pointer = f.read()

        backup_root = tempfile.mkdtemp(prefix="gwk-admin-")
        backup = os.path.join(backup_root, os.path.basename(admin_dir))
        staging_root = tempfile.mkdtemp(prefix=".gwk-", dir=os.path.dirname(destination))
        staging = os.path.join(staging_root, os.path.basename(destination))
        new_dot_git = os.path.join(destination, ".git")
        new_admin: List[str] = []

        def unregister():
            for admin in filter(None, new_admin):
                shutil.rmtree(admin, ignore_errors=True)
            with open(new_dot_git, "w", encoding="utf-8") as f:
                f.write(old_pointer)

        def register():
            if worktree.branch:
                registry.add(staging, worktree.branch, new_branch=False, no_checkout=True)
            else:
                run_git(registry.repo_path, "worktree", "add", "--no-checkout", "--detach",
                        staging, worktree.head, operation="git worktree add")
            try:
                admin = read_gitdir_pointer(staging)
                new_admin.append(admin)
                os.replace(os.path.join(staging, ".git"), new_dot_git)
                with open(os.path.join(admin, "gitdir"), "w", encoding="utf-8") as f:
                    f.write(new_dot_git + "\n")
                # --no-checkout leaves the index empty
                run_git(destination, "reset", "-q", operation="git reset")
            except BaseException:
                unregister()
                raise

        try:
            with CompensatingActions() as actions:
                actions.run("deregister worktree",
                            lambda: shutil.move(admin_dir, backup),
                            lambda: shutil.move(backup, admin_dir))
                actions.run("move directory",
                            lambda: _move_directory(source, destination),
                            lambda: _move_directory(destination, source))
                actions.run("register new path", register, unregister)
        except OSError as e:
            raise ExternalToolFailure("worktree move", message=str(e))
        finally:
            shutil.rmtree(staging_root, ignore_errors=True)
            shutil.rmtree(backup_root, ignore_errors=True)

    # update

    def update(self, target: Optional[str] = None, all_worktrees: bool = False,
               pull_only: bool = False, rebase_on_main: bool = False,
               repo_name: Optional[str] = None) -> BatchReport:
        """
        Bring worktrees up to date with their upstream branches.

        Worktrees with a detached HEAD, uncommitted changes or no upstream are
        skipped, never stashed. Conflicts abort the rebase and fail the item.

        Args:
            target: Worktree path or directory name
            all_worktrees: Update every managed worktree of the repository
            pull_only: Fast-forward only instead of rebasing
            rebase_on_main: Also rebase onto the remote trunk
            repo_name: Repository for all_worktrees or the interactive pick

        Returns:
            BatchReport whose items carry UpdateOutcome details
        """
        targets: List[Tuple[Repository, Worktree]] = []
        if all_worktrees:
            repository = self._resolve_repository(repo_name)
            targets = [(repository, wt) for wt in WorktreeRegistry(repository).list()
                       if self._is_managed(wt)]
        else:
            snapshot = self.snapshot()
            if not target:
                if repo_name:
                    repository = self.locator.resolve_by_name(repo_name)
                    snapshot = {repo: wts for repo, wts in snapshot.items() if repo == repository}
                target = self._pick_worktrees(snapshot, "Worktree to update", many=False)[0]
            targets = [self._resolve_managed(target, snapshot)]

        main_branches: Dict[Repository, str] = {}
        for repository, _ in targets:
            if repository not in main_branches:
                main_branches[repository] = self.resolver.resolve(repository.path)

        report = BatchReport(operation="update")
        for index, (repository, worktree) in enumerate(targets):
            try:
                outcome = self._update_one(repository, worktree, main_branches[repository],
                                           pull_only, rebase_on_main)
            except KeyboardInterrupt:
                report.failed(worktree.path, "interrupted")
                for _, remaining in targets[index + 1:]:
                    report.skipped(remaining.path, "not reached (interrupted)")
                report.interrupted = True
                break
            report.add(worktree.path, outcome.status, outcome.message, detail=outcome)
        return report

    def _update_one(self, repository: Repository, worktree: Worktree, main_branch: str,
                    pull_only: bool, rebase_on_main: bool) -> UpdateOutcome:
        path = worktree.path
        outcome = UpdateOutcome(path=path, branch=worktree.branch, status=ItemStatus.SKIPPED)
        ops = self._ops(repository)

        if worktree.is_detached:
            outcome.message = "detached HEAD"
            return outcome
        if not os.path.isdir(path):
            outcome.status = ItemStatus.FAILED
            outcome.message = "directory is missing (run clean)"
            return outcome

        try:
            if ops.is_dirty(path):
                outcome.message = "uncommitted changes"
                return outcome
            upstream = ops.upstream(path)
            if upstream is None:
                outcome.message = "no upstream branch"
                return outcome

            console.print(f"Updating {worktree.name} from {upstream}...")
            ops.fetch(cwd=path)
            before = ops.rev_parse("HEAD", cwd=path)
            if before != ops.rev_parse(upstream, cwd=path):
                if pull_only:
                    ops.merge_ff_only(upstream, cwd=path)
                else:
                    ops.rebase(upstream, cwd=path)
            if rebase_on_main:
                ops.rebase(f"{ops.remote_name}/{main_branch}", cwd=path)
            outcome.changed = ops.rev_parse("HEAD", cwd=path) != before
        except ExternalToolFailure as e:
            outcome.status = ItemStatus.FAILED
            outcome.message = str(e)
            logger.error(f"Update of {path} failed: {e}")
            return outcome

        outcome.status = ItemStatus.SUCCESS
        outcome.message = "updated" if outcome.changed else "already up to date"
        return outcome
