"""Git-related services for workmux."""

from .operations import GitOperations
from .worktrees import WorktreeService
from .github import GitHubService

__all__ = [
    "GitOperations",
    "WorktreeService",
    "GitHubService",
]
