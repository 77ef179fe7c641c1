"""Tests for the command-line interface"""
from unittest.mock import patch

import pytest

from git_worktree_keeper.cli.args import parse_args
from git_worktree_keeper.cli.main import EXIT_CANCELLED, EXIT_FAILURE, EXIT_OK, main
from git_worktree_keeper.config import ENV_OVERRIDES


@pytest.fixture
def cli(temp_dir, programming_root, worktrees_root, monkeypatch):
    """Run main() against the temporary roots without prompts."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("WORKTREE_KEEPER_TICKET_PROVIDER", "none")

    def run(*argv):
        return main([
            "--config", str(temp_dir / "missing.yaml"),
            "--programming-root", str(programming_root),
            "--worktrees-root", str(worktrees_root),
            "--no-interactive",
            *argv,
        ])
    return run


class TestParseArgs:
    """Test argument parsing."""

    def test_create(self):
        args = parse_args(["create", "ABC-1", "--repo", "app", "--type", "fix"])
        assert args.command == "create"
        assert args.input == "ABC-1"
        assert args.repo == "app"
        assert args.commit_type == "fix"

    def test_update_flags(self):
        args = parse_args(["update", "--all", "--pull-only", "--rebase"])
        assert args.all_worktrees and args.pull_only and args.rebase_on_main
        assert args.worktree is None

    def test_clean_flags(self):
        args = parse_args(["clean", "--dry-run", "--remove-orphans", "--include-remote"])
        assert args.dry_run and args.remove_orphans and args.include_remote
        assert not args.force

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    def test_unknown_commit_type(self):
        with pytest.raises(SystemExit):
            parse_args(["create", "x", "--type", "wip"])


class TestMain:
    """Test commands end to end and their exit codes."""

    def test_create_list_delete(self, cli, git_repo, worktrees_root):
        assert cli("create", "Add login page", "--repo", "test_repo", "--type", "fix") == EXIT_OK
        assert (worktrees_root / "Add-login-page").is_dir()

        assert cli("list") == EXIT_OK
        assert cli("delete", "Add-login-page", "--force") == EXIT_OK
        assert not (worktrees_root / "Add-login-page").exists()

    def test_existing_target_fails(self, cli, git_repo, worktrees_root):
        (worktrees_root / "Add-thing").mkdir()
        assert cli("create", "Add thing", "--repo", "test_repo") == EXIT_FAILURE

    def test_partial_batch_failure(self, cli, git_repo):
        assert cli("delete", "ghost", "--force") == EXIT_FAILURE

    def test_unknown_repository(self, cli, git_repo):
        assert cli("list", "--repo", "nothing-like-it") == EXIT_FAILURE

    def test_selection_needs_a_terminal(self, cli, git_repo):
        assert cli("create", "Add thing", "--repo", "test_repo") == EXIT_OK
        assert cli("move") == EXIT_CANCELLED

    def test_clean_dry_run(self, cli, git_repo, worktrees_root):
        (worktrees_root / "orphan").mkdir()
        assert cli("clean", "--dry-run") == EXIT_OK
        assert (worktrees_root / "orphan").is_dir()

    def test_rename(self, cli, git_repo, worktrees_root):
        assert cli("create", "Old name", "--repo", "test_repo") == EXIT_OK
        assert cli("rename", "Old-name", "New name") == EXIT_OK
        assert (worktrees_root / "New-name").is_dir()
        assert "New-name" in [head.name for head in git_repo.heads]

    def test_invalid_config(self, cli, temp_dir, git_repo):
        (temp_dir / "missing.yaml").write_text("max_depth: 99\n")
        assert cli("list") == EXIT_FAILURE

    def test_keyboard_interrupt(self, cli, git_repo):
        with patch("git_worktree_keeper.cli.main.run_command", side_effect=KeyboardInterrupt):
            assert cli("list") == EXIT_CANCELLED
