"""Worktree data models."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class WorktreeInfo:
    """Information about a git worktree."""

    path: Path
    branch_name: Optional[str]  # None when HEAD is detached
    commit_sha: str
    is_main: bool  # Is this the main working tree?

    @property
    def is_detached(self) -> bool:
        return self.branch_name is None

    def __str__(self) -> str:
        """String representation of worktree."""
        main_marker = " (main)" if self.is_main else ""
        return f"{self.branch_name or '(detached)'} @ {self.path}{main_marker}"


@dataclass
class WorktreeRow:
    """One line of `workmux list`."""

    branch: str
    has_window: bool
    is_unmerged: bool
    path: Path
