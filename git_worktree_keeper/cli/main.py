"""Command-line interface for git-worktree-keeper"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from git_worktree_keeper.config import load_config
from git_worktree_keeper.core import WorktreeKeeper
from git_worktree_keeper.exceptions import PartialBatchFailure, SelectionCancelled, WorktreeKeeperError
from git_worktree_keeper.logging_config import get_logger, setup_logging
from git_worktree_keeper.models.reports import BatchReport
from git_worktree_keeper.services.display_service import DisplayService
from git_worktree_keeper.ui.pickers import NumberedPicker, Picker, default_picker

from .args import parse_args

console = Console()
logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130


def _finish_batch(report: BatchReport, display: DisplayService) -> int:
    display.display_batch_report(report)
    if report.interrupted:
        return EXIT_CANCELLED
    if report.has_failures:
        raise PartialBatchFailure(report.operation, report)
    return EXIT_OK


def _require(value: Optional[str], picker: Optional[Picker], prompt: str) -> str:
    """Argument value, asked for when missing and a picker is available."""
    if value:
        return value
    if picker is None:
        raise SelectionCancelled(f"Missing argument: {prompt}")
    answer = picker.prompt_text(prompt)
    if not answer:
        raise SelectionCancelled()
    return answer


def run_command(args: argparse.Namespace, keeper: WorktreeKeeper, display: DisplayService) -> int:
    """Dispatch a parsed command to the keeper and render its result."""
    picker = keeper.picker

    if args.command == "create":
        display.display_create_result(keeper.create(args.input, args.repo, args.commit_type))
        return EXIT_OK

    if args.command == "checkout":
        display.display_create_result(keeper.checkout(args.branch, args.repo))
        return EXIT_OK

    if args.command == "list":
        display.display_worktrees(keeper.list_worktrees(args.repo))
        return EXIT_OK

    if args.command == "delete":
        return _finish_batch(keeper.delete(args.paths, force=args.force), display)

    if args.command == "clean":
        result = keeper.clean(
            dry_run=args.dry_run,
            force=args.force,
            remove_orphans=args.remove_orphans,
            include_remote=args.include_remote,
        )
        display.display_clean_result(result)
        if result.deletions and result.deletions.interrupted:
            return EXIT_CANCELLED
        if result.has_failures:
            raise PartialBatchFailure("clean", result.deletions)
        return EXIT_OK

    if args.command == "move":
        source = args.source or keeper.choose_worktree("Worktree to move")
        destination = _require(args.destination, picker, "Destination path")
        display.display_move_result(keeper.move(source, destination, force=args.force))
        return EXIT_OK

    if args.command == "rename":
        old = args.old or keeper.choose_worktree("Worktree to rename")
        new = _require(args.new, picker, "New name")
        display.display_move_result(
            keeper.rename(old, new, force=args.force, keep_branch=args.keep_branch)
        )
        return EXIT_OK

    if args.command == "update":
        report = keeper.update(
            target=args.worktree,
            all_worktrees=args.all_worktrees,
            pull_only=args.pull_only,
            rebase_on_main=args.rebase_on_main,
            repo_name=args.repo,
        )
        return _finish_batch(report, display)

    raise WorktreeKeeperError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    debug = False
    try:
        parsed_args = parse_args(argv)
        debug = parsed_args.debug

        setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)

        config = load_config(
            Path(parsed_args.config).expanduser() if parsed_args.config else None,
            overrides={
                "worktrees_root": parsed_args.worktrees_root,
                "programming_root": parsed_args.programming_root,
                "verbose": parsed_args.verbose or None,
                "debug": parsed_args.debug or None,
            },
        )

        if parsed_args.debug:
            console.print("[yellow]Debug mode enabled[/yellow]")
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                if key == "github_token" and value:
                    value = "***"
                console.print(f"  {key}: {value}")

        if parsed_args.no_interactive:
            picker = None
        elif sys.stdin.isatty():
            picker = default_picker()
        else:
            picker = NumberedPicker()

        keeper = WorktreeKeeper(config, picker=picker)
        display = DisplayService(verbose=config.verbose, debug=config.debug)
        return run_command(parsed_args, keeper, display)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return EXIT_CANCELLED
    except SelectionCancelled as e:
        console.print(f"[yellow]{e}[/yellow]")
        return e.exit_code
    except WorktreeKeeperError as e:
        console.print(f"[red]Error: {e}[/red]")
        if debug:
            console.print_exception()
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())
