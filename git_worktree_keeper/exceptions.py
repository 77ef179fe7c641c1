"""Custom exceptions for git-worktree-keeper"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from git_worktree_keeper.models.reports import BatchReport


class WorktreeKeeperError(Exception):
    """Base exception for all git-worktree-keeper errors."""

    exit_code = 1


class SelectionCancelled(WorktreeKeeperError):
    """Raised when the user aborts an interactive selection or prompt."""

    exit_code = 130

    def __init__(self, message: str = "Selection cancelled"):
        super().__init__(message)


class ConfigError(WorktreeKeeperError):
    """Exception raised for invalid or unreadable configuration."""


class InvalidNameError(WorktreeKeeperError):
    """Exception raised when a branch or directory name sanitizes to nothing."""

    def __init__(self, raw_input: str):
        self.raw_input = raw_input
        super().__init__(f"Cannot build a branch name from {raw_input!r}")


class NotFoundError(WorktreeKeeperError):
    """A repository, worktree, branch or ticket does not exist."""


class RepositoryNotFoundError(NotFoundError):
    """Exception raised when no repository matches a name."""

    def __init__(self, name: str, root: Optional[str] = None):
        self.name = name
        self.root = root
        message = f"Repository '{name}' not found"
        if root:
            message += f" under {root}"
        super().__init__(message)


class WorktreeNotFoundError(NotFoundError):
    """Exception raised when a path is not a managed worktree."""

    def __init__(self, path: str, reason: Optional[str] = None):
        self.path = path
        message = f"Worktree '{path}' not found"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class NoMainBranchError(NotFoundError):
    """Exception raised when none of the trunk branch candidates exist."""

    def __init__(self, repo_path: str, candidates: tuple):
        self.repo_path = repo_path
        self.candidates = candidates
        super().__init__(
            f"No main branch found in {repo_path} (tried: {', '.join(candidates)})"
        )


class TicketNotFoundError(NotFoundError):
    """Exception raised when the ticket tracker has no summary for a ticket."""

    def __init__(self, ticket_id: str, message: Optional[str] = None):
        self.ticket_id = ticket_id
        error_msg = f"Ticket {ticket_id} not found"
        if message:
            error_msg += f": {message}"
        super().__init__(error_msg)


class AlreadyExistsError(WorktreeKeeperError):
    """A precondition failed because the target already exists."""


class WorktreeAlreadyExistsError(AlreadyExistsError):
    """Exception raised when a worktree directory is already present."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Worktree directory already exists: {path}")


class ExternalToolFailure(WorktreeKeeperError):
    """Exception raised when git or a collaborator process exits non-zero."""

    def __init__(
        self,
        operation: str,
        message: Optional[str] = None,
        status: Optional[object] = None,
        stderr: Optional[str] = None,
    ):
        self.operation = operation
        self.message = message
        self.status = status
        self.stderr = (stderr or "").strip()

        error_msg = f"'{operation}' failed"
        if status is not None:
            error_msg += f" (exit {status})"
        if message:
            error_msg += f": {message}"
        elif self.stderr:
            error_msg += f": {self.stderr}"

        super().__init__(error_msg)


class PartialBatchFailure(WorktreeKeeperError):
    """Raised after a batch finished with at least one failed item."""

    def __init__(self, operation: str, report: "BatchReport"):
        self.operation = operation
        self.report = report
        super().__init__(
            f"{operation}: {report.failed_count} of {report.total} item(s) failed"
        )
