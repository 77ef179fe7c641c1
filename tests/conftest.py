"""Pytest fixtures for git-worktree-keeper tests"""
import tempfile
from collections import deque
from pathlib import Path
from typing import List, Sequence

import git
import pytest

from git_worktree_keeper.config import Config
from git_worktree_keeper.core import WorktreeKeeper
from git_worktree_keeper.exceptions import SelectionCancelled, TicketNotFoundError
from git_worktree_keeper.models.reports import InstallResult
from git_worktree_keeper.services.selection_store import MemoryLastSelectionStore
from git_worktree_keeper.ui.pickers import Picker


class ScriptedPicker(Picker):
    """Picker answering from queues; an empty queue cancels."""

    def __init__(self, selections=None, many=None, confirms=None, texts=None):
        self.selections = deque(selections or [])
        self.many = deque(many or [])
        self.confirms = deque(confirms or [])
        self.texts = deque(texts or [])
        self.prompts: List[str] = []
        self.offered: List[List[str]] = []

    def _next(self, queue, prompt):
        self.prompts.append(prompt)
        if not queue:
            raise SelectionCancelled()
        return queue.popleft()

    def select(self, prompt: str, options: Sequence[str]) -> str:
        self.offered.append(list(options))
        answer = self._next(self.selections, prompt)
        # An int picks by position
        return options[answer] if isinstance(answer, int) else answer

    def select_many(self, prompt: str, options: Sequence[str]) -> List[str]:
        self.offered.append(list(options))
        answer = self._next(self.many, prompt)
        if answer == "all":
            return list(options)
        return [options[i] if isinstance(i, int) else i for i in answer]

    def confirm(self, prompt: str, default: bool = False) -> bool:
        return self._next(self.confirms, prompt)

    def prompt_text(self, prompt: str, default: str = "") -> str:
        return self._next(self.texts, prompt)


class StubTicketLookup:
    """Ticket lookup backed by a dictionary."""

    def __init__(self, summaries=None):
        self.summaries = summaries or {}
        self.requested: List[str] = []

    def fetch_summary(self, ticket_id: str) -> str:
        self.requested.append(ticket_id)
        if ticket_id not in self.summaries:
            raise TicketNotFoundError(ticket_id, "unknown")
        return self.summaries[ticket_id]


class StubInstaller:
    """Installer that records calls and never runs anything."""

    def __init__(self, result=None):
        self.result = result or InstallResult(ran=False, success=True, message="nothing to install")
        self.paths: List[str] = []

    def install(self, path: str) -> InstallResult:
        self.paths.append(path)
        return self.result


def init_repo(path: Path) -> git.Repo:
    """Initialize a repository on main with one commit."""
    path.mkdir(parents=True)
    repo = git.Repo.init(path)

    # Configure git user for commits
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")
        writer.set_value("commit", "gpgsign", "false")

    test_file = path / "README.md"
    test_file.write_text("# Test Repository\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")
    repo.git.branch("-M", "main")
    return repo


def _commit_file(repo_path, name: str, content: str, message: str) -> str:
    """Commit a file in a checkout and return the new HEAD."""
    repo = git.Repo(repo_path)
    (Path(repo_path) / name).write_text(content)
    repo.git.add(name)
    repo.git.commit("-m", message)
    return repo.head.commit.hexsha


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def programming_root(temp_dir):
    root = temp_dir / "Programming"
    root.mkdir()
    return root


@pytest.fixture
def worktrees_root(temp_dir):
    root = temp_dir / "Worktrees"
    root.mkdir()
    return root


@pytest.fixture
def git_repo(programming_root):
    """Create a real Git repository under the programming root."""
    repo = init_repo(programming_root / "test_repo")
    yield repo
    repo.close()


@pytest.fixture
def git_repo_with_remote(git_repo, temp_dir):
    """Repository whose origin is a local bare repository holding main."""
    remote_path = temp_dir / "remotes" / "test_repo.git"
    remote_path.parent.mkdir()
    git.Repo.init(remote_path, bare=True)
    git_repo.create_remote("origin", str(remote_path))
    git_repo.git.push("-u", "origin", "main")
    return git_repo


@pytest.fixture
def config(temp_dir, programming_root, worktrees_root):
    """Configuration confined to the temporary directory."""
    return Config(
        worktrees_root=str(worktrees_root),
        programming_root=str(programming_root),
        state_file=str(temp_dir / "state" / "last_repository"),
        ticket_provider="none",
    )


@pytest.fixture
def installer():
    return StubInstaller()


@pytest.fixture
def tickets():
    return StubTicketLookup({"ABC-123": "Fix the Login Bug!"})


@pytest.fixture
def keeper(config, installer, tickets):
    """Non-interactive keeper with stubbed collaborators."""
    return WorktreeKeeper(
        config,
        picker=None,
        ticket_lookup=tickets,
        installer=installer,
        store=MemoryLastSelectionStore(),
    )


@pytest.fixture
def make_keeper(config, installer, tickets):
    """Factory for keepers with a scripted picker."""
    def factory(picker=None, **kwargs):
        return WorktreeKeeper(
            config,
            picker=picker,
            ticket_lookup=kwargs.pop("ticket_lookup", tickets),
            installer=kwargs.pop("installer", installer),
            store=kwargs.pop("store", MemoryLastSelectionStore()),
        )
    return factory


@pytest.fixture
def commit_file():
    """Commit a file in a checkout: commit_file(path, name, content, message) -> sha."""
    return _commit_file


@pytest.fixture
def scripted_picker():
    """ScriptedPicker class, so tests can queue answers."""
    return ScriptedPicker
