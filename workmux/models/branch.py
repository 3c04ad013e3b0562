"""Branch model and related enums"""
from enum import Enum


class BranchStatus(Enum):
    """Merge status of a branch relative to its base branch."""
    NO_WORKTREE = "no-worktree"
    CLEAN = "clean"
    UNMERGED = "unmerged"  # Has commits not reachable from its base branch
