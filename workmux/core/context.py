"""Shared state for a single workmux command"""

import os
from pathlib import Path
from typing import Optional

from workmux.config import Config, load_config
from workmux.exceptions import NotFoundError
from workmux.logging_config import get_logger
from workmux.services.git.github import GitHubService
from workmux.services.git.operations import GitOperations, find_repository
from workmux.services.git.worktrees import WorktreeService
from workmux.services.tmux_service import TmuxService

logger = get_logger(__name__)


class WorkflowContext:
    """Repository, configuration and services resolved once per command."""

    def __init__(self, cwd: Optional[Path] = None, config: Optional[Config] = None,
                 tmux=None, global_config_path: Optional[Path] = None):
        """
        Args:
            cwd: Directory the command was invoked from (defaults to os.getcwd())
            config: Pre-resolved configuration; loaded from disk when None
            tmux: Session service; a TmuxService when None
            global_config_path: Override for the global config file
        """
        self.cwd = Path(cwd or os.getcwd())
        repo = find_repository(self.cwd)
        try:
            locator = WorktreeService(repo.working_tree_dir)
            self.main_root = locator.get_main_worktree_root()
        finally:
            repo.close()

        self.config = config or load_config(self.main_root, global_config_path)
        self.git = GitOperations(self.main_root)
        self.worktrees = WorktreeService(self.main_root, self.git, main_branch=self.config.main_branch)
        self.tmux = tmux or TmuxService(self.config)
        self.github = GitHubService(str(self.main_root))
        logger.debug(f"Context: main worktree {self.main_root}, cwd {self.cwd}")

    @property
    def main_branch(self) -> str:
        return self.worktrees.main_branch

    def window_name(self, branch_name: str) -> str:
        return self.config.window_name(branch_name)

    def resolve_branch(self, branch_name: Optional[str]) -> str:
        """Use ``branch_name`` or infer it from the worktree containing cwd."""
        if branch_name:
            return branch_name
        worktree = self.worktrees.find_worktree_containing(self.cwd)
        if worktree is None or worktree.is_main or worktree.branch_name is None:
            raise NotFoundError(
                message="Could not determine the branch from the current directory; "
                        "run this inside a worktree or pass the branch name"
            )
        logger.debug(f"Detected branch {worktree.branch_name} from {self.cwd}")
        return worktree.branch_name

    def chdir_to_main_root(self) -> None:
        """Leave any worktree that is about to be deleted."""
        os.chdir(self.main_root)
