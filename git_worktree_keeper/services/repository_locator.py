"""Repository discovery and selection."""

import os
from collections import Counter
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional

from git_worktree_keeper.constants import DEFAULT_MAX_DEPTH, SKIPPED_DIRECTORIES
from git_worktree_keeper.exceptions import NotFoundError, RepositoryNotFoundError
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.repository import Repository
from git_worktree_keeper.services.selection_store import LastSelectionStore
from git_worktree_keeper.utils.paths import normalize_path

if TYPE_CHECKING:
    from git_worktree_keeper.ui.pickers import Picker

logger = get_logger(__name__)


def is_repository(path: str) -> bool:
    """A repository is a directory holding a .git directory.

    Linked worktrees hold a .git file and are not repositories.
    """
    return os.path.isdir(os.path.join(path, ".git"))


class RepositoryLocator:
    """Finds repositories under the programming root."""

    def __init__(
        self,
        programming_root: str,
        worktrees_root: Optional[str] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        store: Optional[LastSelectionStore] = None,
    ):
        """Initialize the locator.

        Args:
            programming_root: Directory scanned for repositories
            worktrees_root: Never scanned, even when below programming_root
            max_depth: How many directory levels to descend
            store: Where the last interactive choice is remembered
        """
        self.programming_root = normalize_path(programming_root)
        self.worktrees_root = normalize_path(worktrees_root) if worktrees_root else None
        self.max_depth = max_depth
        self.store = store

    def find_all(self, root: Optional[str] = None,
                 max_depth: Optional[int] = None) -> Iterator[Repository]:
        """
        Lazily yield repositories below root.

        Does not descend into repositories, hidden directories, dependency
        caches or the worktrees root. Every call scans afresh.

        Args:
            root: Directory to scan (defaults to the programming root)
            max_depth: Levels to scan, 1 means direct children only

        Yields:
            Repository for each directory holding a .git directory
        """
        root = normalize_path(root) if root else self.programming_root
        max_depth = max_depth if max_depth is not None else self.max_depth
        yield from self._walk(root, 1, max_depth)

    def _walk(self, directory: str, depth: int, max_depth: int) -> Iterator[Repository]:
        if depth > max_depth:
            return
        try:
            entries = sorted(os.scandir(directory), key=lambda entry: entry.name.lower())
        except OSError as e:
            logger.debug(f"Cannot scan {directory}: {e}")
            return

        for entry in entries:
            if entry.name.startswith(".") or entry.name in SKIPPED_DIRECTORIES:
                continue
            if not entry.is_dir(follow_symlinks=False):
                continue
            path = normalize_path(entry.path)
            if self.worktrees_root and path == self.worktrees_root:
                continue
            if is_repository(path):
                yield Repository.from_path(path)
                continue
            yield from self._walk(path, depth + 1, max_depth)

    def resolve_by_name(self, name: str, root: Optional[str] = None) -> Repository:
        """
        Find a repository by name.

        An existing path naming a repository is accepted directly. Otherwise
        an exact name match wins, then the first case-insensitive substring
        match.

        Raises:
            RepositoryNotFoundError: If nothing matches
        """
        candidate = os.path.expanduser(name)
        if (os.path.isabs(candidate) or os.sep in name) and is_repository(candidate):
            return Repository.from_path(normalize_path(candidate))

        repositories = list(self.find_all(root))
        for repo in repositories:
            if repo.name == name:
                return repo

        needle = name.lower()
        for repo in repositories:
            if needle in repo.name.lower():
                logger.debug(f"'{name}' matched repository {repo.name}")
                return repo

        raise RepositoryNotFoundError(name, root or self.programming_root)

    def select_interactively(self, picker: "Picker", root: Optional[str] = None,
                             prompt: str = "Select repository") -> Repository:
        """
        Let the user pick a repository.

        The last chosen repository is offered first. A single candidate is
        chosen without prompting. The choice is remembered.

        Raises:
            NotFoundError: If there are no repositories
            SelectionCancelled: If the user aborts
        """
        repositories = list(self.find_all(root))
        if not repositories:
            raise NotFoundError(f"No repositories found under {root or self.programming_root}")

        last = self.store.load() if self.store else None
        if last:
            repositories.sort(key=lambda repo: repo.name != last)

        if len(repositories) == 1:
            chosen = repositories[0]
            logger.info(f"Using the only repository found: {chosen.name}")
        else:
            labels = self._labels(repositories, root or self.programming_root)
            choice = picker.select(prompt, list(labels))
            chosen = labels[choice]

        if self.store:
            self.store.save(chosen.name)
        return chosen

    @staticmethod
    def _labels(repositories: List[Repository], root: str) -> Dict[str, Repository]:
        """Picker labels; duplicate names are shown with their relative path."""
        counts = Counter(repo.name for repo in repositories)
        labels = {}
        for repo in repositories:
            label = repo.name if counts[repo.name] == 1 else os.path.relpath(repo.path, root)
            labels[label] = repo
        return labels

    def resolve(self, name: Optional[str], picker: Optional["Picker"]) -> Repository:
        """Resolve by name when given, otherwise ask the picker."""
        if name:
            return self.resolve_by_name(name)
        if picker is None:
            raise RepositoryNotFoundError("(none given)", self.programming_root)
        return self.select_interactively(picker)
