"""Command-line interface for workmux"""

import os
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from workmux.cli.args import parse_args
from workmux.constants import EXAMPLE_CONFIG, REPO_CONFIG_FILES
from workmux.core import Workflow, WorkflowContext
from workmux.exceptions import WorkmuxError
from workmux.formatters import format_worktree_table
from workmux.logging_config import get_logger, setup_logging
from workmux.services.git.operations import find_repository
from workmux.services.git.worktrees import WorktreeService

console = Console()
err_console = Console(stderr=True)
logger = get_logger(__name__)


def run_list(workflow: Workflow) -> None:
    rows = workflow.list_worktrees()
    if not rows:
        console.print("No worktrees found")
        return
    console.print(format_worktree_table(rows), markup=False, highlight=False, soft_wrap=True)


def run_init(cwd: Path) -> None:
    """Write an example config to the main worktree root."""
    repo = find_repository(cwd)
    try:
        root = WorktreeService(repo.working_tree_dir).get_main_worktree_root()
    finally:
        repo.close()

    for name in REPO_CONFIG_FILES:
        if (root / name).exists():
            raise WorkmuxError(f"{root / name} already exists")

    path = root / REPO_CONFIG_FILES[0]
    path.write_text(EXAMPLE_CONFIG, encoding="utf-8")
    console.print(f"[green]Created {path}[/green]", highlight=False)


def dispatch(args, cwd: Path) -> None:
    """Run the sub-command selected by ``args``."""
    if args.command == "init":
        run_init(cwd)
        return

    workflow = Workflow(WorkflowContext(cwd))

    if args.command == "add":
        workflow.add(args.branch, base=args.base, pr=args.pr, background=args.background)
    elif args.command == "open":
        workflow.open(args.branch, run_hooks=args.run_hooks, force_files=args.force_files)
    elif args.command == "merge":
        workflow.merge(
            args.branch,
            target=args.target,
            rebase=args.rebase,
            squash=args.squash,
            keep=args.keep,
            keep_branch=args.keep_branch,
            ignore_uncommitted=args.ignore_uncommitted,
            delete_remote=args.delete_remote,
        )
    elif args.command == "remove":
        # -f covers both the unmerged-commits prompt and uncommitted changes
        workflow.remove(
            args.branch,
            force=args.force,
            discard_changes=args.force,
            keep_branch=args.keep_branch,
            delete_remote=args.delete_remote,
        )
    elif args.command == "list":
        run_list(workflow)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose, debug=args.debug)

    try:
        dispatch(args, Path(os.getcwd()))
        return 0
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 130
    except WorkmuxError as e:
        err_console.print(f"[red]Error: {e}[/red]", highlight=False)
        if e.hint:
            err_console.print(e.hint, markup=False, highlight=False)
        if args.debug:
            err_console.print_exception()
        return 1
    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        err_console.print(f"[red]Error: {e}[/red]", highlight=False)
        if args.debug:
            err_console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
