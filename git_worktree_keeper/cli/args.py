"""Command-line argument parsing for git-worktree-keeper."""

import argparse
from typing import List, Optional

from git_worktree_keeper.__version__ import __version__
from git_worktree_keeper.constants import COMMIT_TYPES


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="git-worktree-keeper",
        description="Manage per-branch git worktrees under one worktrees root",
        epilog="Configuration: $XDG_CONFIG_HOME/git-worktree-keeper/config.yaml, overridden by "
        "WORKTREE_KEEPER_* environment variables and command-line flags.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information and write a log file"
    )
    parser.add_argument("--config", metavar="PATH", help="Configuration file to read")
    parser.add_argument(
        "--worktrees-root", metavar="DIR", help="Directory holding the worktrees"
    )
    parser.add_argument(
        "--programming-root", metavar="DIR", help="Directory scanned for repositories"
    )
    parser.add_argument(
        "--no-interactive",
        action="store_true",
        help="Never prompt (for scripts/automation)",
    )
    parser.add_argument("--version", action="version", version=f"git-worktree-keeper {__version__}")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    create = subparsers.add_parser("create", help="Create a worktree on a new branch")
    create.add_argument("input", nargs="?", help="Ticket id or description")
    create.add_argument("--repo", help="Repository name or path")
    create.add_argument(
        "--type",
        dest="commit_type",
        choices=[ct.name for ct in COMMIT_TYPES],
        help="Commit type of the initial commit (default: ask, or feat)",
    )

    list_cmd = subparsers.add_parser("list", help="List managed worktrees")
    list_cmd.add_argument("--repo", help="Only this repository")

    delete = subparsers.add_parser("delete", help="Delete worktrees and their branches")
    delete.add_argument("paths", nargs="*", help="Worktree paths or names (default: choose)")
    delete.add_argument("--force", action="store_true", help="Skip confirmations")

    clean = subparsers.add_parser("clean", help="Delete merged worktrees and reconcile the registry")
    clean.add_argument(
        "--dry-run", action="store_true", help="Preview mode - show the plan without changing anything"
    )
    clean.add_argument("--force", action="store_true", help="Skip confirmations")
    clean.add_argument(
        "--remove-orphans",
        action="store_true",
        help="Also remove directories git doesn't know about",
    )
    clean.add_argument(
        "--include-remote",
        action="store_true",
        help="Also delete merged branches that still exist on the remote",
    )

    move = subparsers.add_parser("move", help="Move a worktree")
    move.add_argument("source", nargs="?", help="Worktree path or name (default: choose)")
    move.add_argument("destination", nargs="?", help="Target path (default: ask)")
    move.add_argument("--force", action="store_true", help="Replace an existing target")

    rename = subparsers.add_parser("rename", help="Rename a worktree and its branch")
    rename.add_argument("old", nargs="?", help="Worktree path or name (default: choose)")
    rename.add_argument("new", nargs="?", help="New name (default: ask)")
    rename.add_argument("--force", action="store_true", help="Replace an existing target")
    rename.add_argument(
        "--keep-branch", action="store_true", help="Don't rename the branch"
    )

    checkout = subparsers.add_parser("checkout", help="Create a worktree for a remote branch")
    checkout.add_argument("branch", nargs="?", help="Remote branch (default: choose)")
    checkout.add_argument("--repo", help="Repository name or path")

    update = subparsers.add_parser("update", help="Update worktrees from their upstream")
    update.add_argument("worktree", nargs="?", help="Worktree path or name (default: choose)")
    update.add_argument(
        "--all", dest="all_worktrees", action="store_true",
        help="Update every worktree of the repository",
    )
    update.add_argument(
        "--pull-only", action="store_true", help="Fast-forward only, never rebase"
    )
    update.add_argument(
        "--rebase", dest="rebase_on_main", action="store_true",
        help="Also rebase onto the remote trunk branch",
    )
    update.add_argument("--repo", help="Repository name or path")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)
