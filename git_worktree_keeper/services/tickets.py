"""Ticket tracker lookups used to name new worktrees."""

import json
import re
import subprocess
from typing import TYPE_CHECKING, Optional, Protocol, Union
from urllib.parse import urlparse

import git
from github import Auth, Github, GithubException

from git_worktree_keeper.constants import TICKET_LOOKUP_TIMEOUT
from git_worktree_keeper.exceptions import TicketNotFoundError
from git_worktree_keeper.logging_config import get_logger

if TYPE_CHECKING:
    from git_worktree_keeper.config import Config

logger = get_logger(__name__)


class TicketLookup(Protocol):
    """Fetches a ticket summary from a tracker."""

    def fetch_summary(self, ticket_id: str) -> str:
        """Return the ticket's summary or raise TicketNotFoundError."""
        ...


class NullTicketLookup:
    """Lookup for setups without a tracker; every ticket is unknown."""

    def fetch_summary(self, ticket_id: str) -> str:
        raise TicketNotFoundError(ticket_id, "no ticket provider configured")


class AcliTicketLookup:
    """Jira lookup through the Atlassian CLI (`acli`)."""

    def __init__(self, timeout: int = TICKET_LOOKUP_TIMEOUT, executable: str = "acli"):
        self.timeout = timeout
        self.executable = executable

    def fetch_summary(self, ticket_id: str) -> str:
        cmd = [self.executable, "jira", "workitem", "view", ticket_id, "--json", "--fields", "summary"]
        logger.debug(f"Fetching ticket {ticket_id} with {self.executable}")
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, check=True, timeout=self.timeout
            )
        except FileNotFoundError:
            raise TicketNotFoundError(ticket_id, f"{self.executable} is not installed")
        except subprocess.TimeoutExpired:
            raise TicketNotFoundError(ticket_id, f"lookup timed out after {self.timeout}s")
        except subprocess.CalledProcessError as e:
            raise TicketNotFoundError(ticket_id, (e.stderr or "").strip() or f"exit {e.returncode}")

        return self.parse_summary(ticket_id, result.stdout)

    @staticmethod
    def parse_summary(ticket_id: str, output: str) -> str:
        """Extract `fields.summary` from the CLI's JSON output."""
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise TicketNotFoundError(ticket_id, f"unreadable response: {e}")

        summary = ""
        if isinstance(data, dict):
            fields = data.get("fields") or {}
            if isinstance(fields, dict):
                summary = str(fields.get("summary") or "").strip()
        if not summary:
            raise TicketNotFoundError(ticket_id, "response has no summary")
        return summary


def github_repo_from_url(remote_url: str) -> Optional[str]:
    """Parse "owner/repo" from a GitHub remote URL, None for other hosts."""
    if "github.com" not in remote_url:
        return None

    if remote_url.startswith("git@"):
        # Handle SSH URL format (git@github.com:org/repo.git)
        path = remote_url.split("github.com:", 1)[1]
    else:
        # Handle HTTPS URL format (https://github.com/org/repo.git)
        path = urlparse(remote_url).path.strip("/")

    if path.endswith(".git"):
        path = path[:-4]
    return path or None


class GitHubIssueLookup:
    """Uses GitHub issue titles as ticket summaries.

    The issue number is the trailing number of the ticket id (GH-42 -> #42);
    the repository comes from the origin remote.
    """

    def __init__(self, repo_path: str, token: Optional[str], remote_name: str = "origin",
                 client: Optional[Github] = None):
        self.repo_path = repo_path
        self.token = token
        self.remote_name = remote_name
        self._client = client

    def _github(self) -> Github:
        if self._client is None:
            self._client = Github(auth=Auth.Token(self.token)) if self.token else Github()
        return self._client

    def _repository_slug(self) -> Optional[str]:
        try:
            remote = git.Repo(self.repo_path).remote(self.remote_name)
            return github_repo_from_url(next(iter(remote.urls)))
        except (ValueError, StopIteration, git.exc.GitError) as e:
            logger.debug(f"[GitHub] No usable {self.remote_name} remote: {e}")
            return None

    def fetch_summary(self, ticket_id: str) -> str:
        match = re.search(r"(\d+)$", ticket_id)
        if not match:
            raise TicketNotFoundError(ticket_id, "no issue number in ticket id")

        slug = self._repository_slug()
        if not slug:
            raise TicketNotFoundError(ticket_id, "repository is not hosted on GitHub")

        try:
            issue = self._github().get_repo(slug).get_issue(int(match.group(1)))
        except GithubException as e:
            raise TicketNotFoundError(ticket_id, f"GitHub API error {e.status}")

        logger.debug(f"[GitHub] {slug}#{issue.number}: {issue.title}")
        if not issue.title:
            raise TicketNotFoundError(ticket_id, "issue has no title")
        return issue.title


def make_ticket_lookup(config: Union["Config", dict], repo_path: str) -> TicketLookup:
    """Build the lookup named by the ticket_provider setting."""
    provider = config.get("ticket_provider", "acli")
    if provider == "github":
        return GitHubIssueLookup(repo_path, config.get("github_token"), config.get("remote_name", "origin"))
    if provider == "acli":
        return AcliTicketLookup()
    return NullTicketLookup()
