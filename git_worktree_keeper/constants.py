"""Shared constants for git-worktree-keeper."""

from dataclasses import dataclass
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class CommitTypeDefinition:
    """Conventional commit type offered when creating a worktree."""

    name: str
    emoji: str
    description: str


# Order matters: the picker shows them as listed and "feat" is the default
COMMIT_TYPES: List[CommitTypeDefinition] = [
    CommitTypeDefinition("feat", "✨", "A new feature"),
    CommitTypeDefinition("fix", "🐛", "A bug fix"),
    CommitTypeDefinition("docs", "📚", "Documentation only changes"),
    CommitTypeDefinition("style", "💎", "Changes that do not affect the meaning of the code"),
    CommitTypeDefinition("refactor", "🔨", "A code change that neither fixes a bug nor adds a feature"),
    CommitTypeDefinition("test", "🧪", "Adding missing tests or correcting existing tests"),
    CommitTypeDefinition("chore", "🔧", "Changes to the build process or auxiliary tools"),
    CommitTypeDefinition("revert", "⏪", "Reverts a previous commit"),
    CommitTypeDefinition("build", "📦", "Changes that affect the build system or external dependencies"),
    CommitTypeDefinition("ci", "👷", "Changes to our CI configuration files and scripts"),
    CommitTypeDefinition("perf", "🚀", "A code change that improves performance"),
]

COMMIT_TYPES_BY_NAME: Dict[str, CommitTypeDefinition] = {ct.name: ct for ct in COMMIT_TYPES}

DEFAULT_COMMIT_TYPE = "feat"

# Trunk candidates, in order of preference
MAIN_BRANCH_CANDIDATES: Tuple[str, ...] = ("develop", "main", "master")

# Branches that delete/clean never remove
PROTECTED_BRANCHES = frozenset({"develop", "dev", "main", "master"})

DEFAULT_TICKET_PATTERN = r"^[A-Z]+-[0-9]+$"
DEFAULT_REMOTE = "origin"
DEFAULT_MAX_DEPTH = 3

# Seconds
DEFAULT_INSTALL_TIMEOUT = 300
DEFAULT_GIT_TIMEOUT = 60
TICKET_LOOKUP_TIMEOUT = 30

# Directory names never treated as repositories or worktrees
SKIPPED_DIRECTORIES = frozenset(
    {
        "node_modules",
        "__pycache__",
        "vendor",
        "venv",
        ".venv",
        "dist",
        "build",
        "target",
    }
)

# Lock file -> package manager, checked in this order
LOCK_FILES: List[Tuple[str, str]] = [
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
]
MANIFEST_FILE = "package.json"

# Status symbols used in CLI output
SYMBOL_SUCCESS = "✓"
SYMBOL_FAILED = "✗"
SYMBOL_SKIPPED = "-"
SYMBOL_WARNING = "⚠"
