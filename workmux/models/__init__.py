"""Data models for workmux."""

from .branch import BranchStatus
from .worktree import WorktreeInfo, WorktreeRow
from .pull_request import PrReference, PrState

__all__ = ["BranchStatus", "WorktreeInfo", "WorktreeRow", "PrReference", "PrState"]
