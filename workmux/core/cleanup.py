"""Tears down a branch's worktree, window and branch refs"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.console import Console

from workmux.core.context import WorkflowContext
from workmux.logging_config import get_logger
from workmux.services.hook_service import run_hooks

console = Console()
logger = get_logger(__name__)


@dataclass
class CleanupResult:
    """What cleanup did."""

    worktree_path: Path
    window_closed: bool = False
    close_scheduled: bool = False
    branch_deleted: bool = False
    remote_deleted: bool = False


def cleanup(context: WorkflowContext, branch_name: str, worktree_path: Path,
            keep_branch: bool = False, delete_remote: bool = False,
            navigate_to: Optional[str] = None) -> CleanupResult:
    """Remove a branch's worktree and window after the caller confirmed it.

    When the command runs inside the window being removed, the worktree and
    branch are deleted first and closing the window is handed to tmux as a
    delayed background job. Otherwise the window is closed first so no shell
    keeps the directory open.

    Args:
        context: Current workflow context
        branch_name: Branch being cleaned up
        worktree_path: Its worktree directory
        keep_branch: Keep the local branch ref
        delete_remote: Also delete the branch on origin
        navigate_to: Window to switch to once done (e.g. the merge target)
    """
    logger.info(f"cleanup:start branch={branch_name} path={worktree_path}")
    context.chdir_to_main_root()

    tmux = context.tmux
    window = context.window_name(branch_name)
    inside_target = tmux.current_window_name() == window
    result = CleanupResult(worktree_path=worktree_path)

    if not inside_target and tmux.window_exists(window):
        tmux.close_window_and_wait(window)
        result.window_closed = True

    if context.config.pre_delete and worktree_path.exists():
        run_hooks(context.config.pre_delete, worktree_path, "pre_delete")

    context.worktrees.remove_worktree(branch_name, keep_branch=keep_branch, force=True)
    result.branch_deleted = not keep_branch

    if delete_remote and not keep_branch:
        result.remote_deleted = context.git.delete_remote_branch(branch_name)

    target_window = navigate_to if navigate_to and tmux.window_exists(navigate_to) else None
    if inside_target:
        tmux.schedule_window_close(window, navigate_to=target_window)
        result.close_scheduled = True
    elif target_window:
        tmux.select_window(target_window)

    logger.info(f"cleanup:done branch={branch_name}")
    return result
