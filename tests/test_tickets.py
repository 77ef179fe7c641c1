"""Tests for ticket tracker lookups"""
import json
import subprocess
from unittest.mock import Mock, patch

import pytest
from github import GithubException

from git_worktree_keeper.config import Config
from git_worktree_keeper.exceptions import TicketNotFoundError
from git_worktree_keeper.services.tickets import (
    AcliTicketLookup,
    GitHubIssueLookup,
    NullTicketLookup,
    github_repo_from_url,
    make_ticket_lookup,
)


class TestAcliTicketLookup:
    """Test the Jira lookup through acli."""

    def test_summary(self):
        output = json.dumps({"key": "ABC-123", "fields": {"summary": "Fix the login bug"}})
        with patch("git_worktree_keeper.services.tickets.subprocess.run") as mock_run:
            mock_run.return_value = Mock(stdout=output)
            assert AcliTicketLookup(timeout=5).fetch_summary("ABC-123") == "Fix the login bug"

        cmd = mock_run.call_args[0][0]
        assert cmd == ["acli", "jira", "workitem", "view", "ABC-123", "--json", "--fields", "summary"]
        assert mock_run.call_args[1]["timeout"] == 5

    def test_not_installed(self):
        with patch("git_worktree_keeper.services.tickets.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(TicketNotFoundError, match="not installed"):
                AcliTicketLookup().fetch_summary("ABC-123")

    def test_timeout(self):
        error = subprocess.TimeoutExpired(cmd="acli", timeout=30)
        with patch("git_worktree_keeper.services.tickets.subprocess.run", side_effect=error):
            with pytest.raises(TicketNotFoundError, match="timed out"):
                AcliTicketLookup().fetch_summary("ABC-123")

    def test_command_failure(self):
        error = subprocess.CalledProcessError(1, "acli", stderr="work item not found\n")
        with patch("git_worktree_keeper.services.tickets.subprocess.run", side_effect=error):
            with pytest.raises(TicketNotFoundError, match="work item not found"):
                AcliTicketLookup().fetch_summary("ABC-123")

    def test_parse_summary_errors(self):
        with pytest.raises(TicketNotFoundError):
            AcliTicketLookup.parse_summary("ABC-1", "not json")
        with pytest.raises(TicketNotFoundError):
            AcliTicketLookup.parse_summary("ABC-1", json.dumps({"fields": {"summary": "  "}}))
        with pytest.raises(TicketNotFoundError):
            AcliTicketLookup.parse_summary("ABC-1", json.dumps(["list"]))


class TestGitHubRepoFromUrl:
    """Test parsing GitHub remote URLs."""

    def test_ssh(self):
        assert github_repo_from_url("git@github.com:acme/web-app.git") == "acme/web-app"

    def test_https(self):
        assert github_repo_from_url("https://github.com/acme/web-app.git") == "acme/web-app"
        assert github_repo_from_url("https://github.com/acme/web-app") == "acme/web-app"

    def test_other_host(self):
        assert github_repo_from_url("git@gitlab.com:acme/web-app.git") is None


class TestGitHubIssueLookup:
    """Test issue titles as ticket summaries."""

    def test_issue_title(self, git_repo):
        git_repo.create_remote("origin", "git@github.com:acme/web-app.git")
        client = Mock()
        client.get_repo.return_value.get_issue.return_value = Mock(number=42, title="Add dark mode")

        lookup = GitHubIssueLookup(git_repo.working_dir, token="t", client=client)

        assert lookup.fetch_summary("GH-42") == "Add dark mode"
        client.get_repo.assert_called_once_with("acme/web-app")
        client.get_repo.return_value.get_issue.assert_called_once_with(42)

    def test_api_error(self, git_repo):
        git_repo.create_remote("origin", "https://github.com/acme/web-app.git")
        client = Mock()
        client.get_repo.side_effect = GithubException(404, {"message": "Not Found"}, None)

        with pytest.raises(TicketNotFoundError, match="404"):
            GitHubIssueLookup(git_repo.working_dir, token=None, client=client).fetch_summary("GH-7")

    def test_not_on_github(self, git_repo):
        lookup = GitHubIssueLookup(git_repo.working_dir, token=None, client=Mock())
        with pytest.raises(TicketNotFoundError, match="not hosted on GitHub"):
            lookup.fetch_summary("GH-7")

    def test_no_issue_number(self, git_repo):
        with pytest.raises(TicketNotFoundError):
            GitHubIssueLookup(git_repo.working_dir, token=None, client=Mock()).fetch_summary("GH-x")


class TestMakeTicketLookup:
    """Test provider selection."""

    def test_providers(self):
        assert isinstance(make_ticket_lookup(Config(ticket_provider="acli"), "/r"), AcliTicketLookup)
        assert isinstance(make_ticket_lookup(Config(ticket_provider="github"), "/r"), GitHubIssueLookup)
        assert isinstance(make_ticket_lookup(Config(ticket_provider="none"), "/r"), NullTicketLookup)

    def test_null_lookup(self):
        with pytest.raises(TicketNotFoundError):
            NullTicketLookup().fetch_summary("ABC-1")
