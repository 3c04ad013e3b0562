"""Command-line argument parsing for workmux."""

import argparse
from typing import List, Optional

from workmux.__version__ import __version__


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number, got '{value}'")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the workmux argument parser."""
    parser = argparse.ArgumentParser(
        prog="workmux",
        description="Pair git worktrees with tmux windows: one branch, one directory, one window",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show debug information and write ~/.workmux/workmux.log",
    )
    parser.add_argument("--version", action="version", version=f"workmux {__version__}")

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    subparsers.required = True

    add = subparsers.add_parser("add", help="Create a worktree and tmux window for a branch")
    add.add_argument("branch", nargs="?", help="Branch name (defaults to the PR head branch with --pr)")
    add.add_argument("--base", help="Branch to create the new branch from (default: current branch)")
    add.add_argument("--pr", type=positive_int, metavar="N", help="Check out the head branch of pull request N")
    add.add_argument(
        "-b", "--background", action="store_true",
        help="Create the window without switching to it",
    )

    open_ = subparsers.add_parser("open", help="Open a tmux window for an existing worktree")
    open_.add_argument("branch", help="Branch whose worktree to open")
    open_.add_argument("--run-hooks", action="store_true", help="Re-run post_create hooks")
    open_.add_argument("--force-files", action="store_true", help="Re-apply file copy/symlink rules")

    merge = subparsers.add_parser("merge", help="Merge a branch into its target and clean it up")
    merge.add_argument("branch", nargs="?", help="Branch to merge (default: the current worktree's branch)")
    merge.add_argument("--target", help="Branch to merge into (default: the main branch)")
    strategy = merge.add_mutually_exclusive_group()
    strategy.add_argument("--rebase", action="store_true", help="Rebase onto the target, then fast-forward")
    strategy.add_argument("--squash", action="store_true", help="Squash all commits into one")
    merge.add_argument("--keep", action="store_true", help="Keep the worktree, window and branch after merging")
    merge.add_argument("--keep-branch", action="store_true", help="Keep the local branch after cleanup")
    merge.add_argument(
        "--ignore-uncommitted", action="store_true",
        help="Merge even if the worktree has uncommitted changes",
    )
    merge.add_argument(
        "-r", "--delete-remote", action="store_true",
        help="Also delete the branch on origin",
    )

    remove = subparsers.add_parser("remove", aliases=["rm"], help="Remove a worktree, its window and branch")
    remove.add_argument("branch", nargs="?", help="Branch to remove (default: the current worktree's branch)")
    remove.add_argument(
        "-f", "--force", action="store_true",
        help="Skip confirmation and remove even with uncommitted changes",
    )
    remove.add_argument("--keep-branch", action="store_true", help="Keep the local branch")
    remove.add_argument(
        "-r", "--delete-remote", action="store_true",
        help="Also delete the branch on origin",
    )

    subparsers.add_parser("list", aliases=["ls"], help="List worktrees with their window and merge status")

    subparsers.add_parser("init", help="Write an example .workmux.yaml to the repository root")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    args = build_parser().parse_args(argv)
    # Normalize aliases
    if args.command == "rm":
        args.command = "remove"
    elif args.command == "ls":
        args.command = "list"
    return args
