"""Branch specification model."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BranchSpec:
    """Everything needed to name a new worktree branch and its first commit."""

    raw_input: str
    ticket_id: Optional[str]
    summary: Optional[str]
    commit_type: str
    sanitized_name: str  # Branch and directory name, computed once
