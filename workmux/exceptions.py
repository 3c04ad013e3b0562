"""Custom exceptions for workmux"""

from typing import Optional


class WorkmuxError(Exception):
    """Base exception for all workmux errors.

    ``hint`` carries recovery guidance that the CLI prints below the message.
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)


class GitOperationError(WorkmuxError):
    """Exception raised for errors in Git operations."""

    def __init__(self, operation: str, branch: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.branch = branch
        self.detail = message

        error_msg = f"Git operation '{operation}' failed"
        if branch:
            error_msg += f" for branch '{branch}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class RepositoryNotFound(WorkmuxError):
    """Raised when the current directory is not inside a git repository."""

    def __init__(self, path: str):
        super().__init__(f"Not a git repository: {path}")


class NotFoundError(WorkmuxError):
    """Raised when a branch has no worktree (or cannot be determined)."""

    def __init__(self, branch: Optional[str] = None, message: Optional[str] = None):
        self.branch = branch
        if message is None:
            message = f"No worktree found for branch '{branch}'"
        super().__init__(message)


class BranchConflictError(WorkmuxError):
    """Raised when a worktree for the branch already exists."""

    def __init__(self, branch: str, path: Optional[str] = None):
        self.branch = branch
        self.path = path
        message = f"A worktree for branch '{branch}' already exists"
        if path:
            message += f" at {path}"
        super().__init__(message, hint=f"Use 'workmux open {branch}' to open it")


class TabExistsError(WorkmuxError):
    """Raised when a tmux window with the target name already exists."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"A tmux window named '{name}' already exists")


class DirtyWorktreeError(WorkmuxError):
    """Raised when removal would discard uncommitted changes."""

    def __init__(self, branch: str, path: str):
        self.branch = branch
        self.path = path
        super().__init__(
            f"Worktree for '{branch}' has uncommitted changes: {path}",
            hint="Commit or stash the changes, or use -f to remove anyway",
        )


class DirtyUnstagedError(WorkmuxError):
    """Raised when the merge source has unstaged changes."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(
            f"Worktree for '{branch}' has unstaged changes",
            hint="Stage or stash them first, or use --ignore-uncommitted",
        )


class DirtyTargetError(WorkmuxError):
    """Raised when the merge target worktree has uncommitted changes."""

    def __init__(self, target: str, path: str):
        self.target = target
        self.path = path
        super().__init__(
            f"Target worktree for '{target}' has uncommitted changes: {path}",
            hint="Commit or stash the changes in the target worktree before merging",
        )


class PathTraversalError(WorkmuxError):
    """Raised when a file rule resolves outside the repository."""

    def __init__(self, pattern: str, path: str):
        self.pattern = pattern
        self.path = path
        super().__init__(
            f"Path traversal: '{pattern}' resolves to {path}, which is outside the repository"
        )


class UnsupportedCopyTargetError(WorkmuxError):
    """Raised when a copy rule matches a directory."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Cannot copy directory '{path}': only files are supported for copy; "
            f"use symlink for directories"
        )


class SelfMergeError(WorkmuxError):
    """Raised when the merge source and target are the same branch."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(f"Cannot merge branch '{branch}' into itself")


class TargetNotActiveError(WorkmuxError):
    """Raised when the merge target has no active worktree."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(
            f"Merge target '{target}' has no active worktree",
            hint=f"Run 'workmux add {target}' first or merge into the main branch",
        )


class ConflictingOptionsError(WorkmuxError):
    """Raised when mutually exclusive options are combined."""


class PrFetchFailedError(WorkmuxError):
    """Raised when `gh` fails to return PR details."""

    def __init__(self, number: int, stderr: str):
        self.number = number
        self.stderr = stderr
        super().__init__(f"Failed to fetch PR #{number}: {stderr.strip()}")


class CliNotFoundError(WorkmuxError):
    """Raised when a required command line tool is missing."""

    def __init__(self, tool: str, message: Optional[str] = None):
        self.tool = tool
        super().__init__(message or f"'{tool}' was not found on PATH")


class HookFailedError(WorkmuxError):
    """Raised when a configured hook command exits non-zero."""

    def __init__(self, command: str, returncode: int):
        self.command = command
        self.returncode = returncode
        super().__init__(f"Hook failed (exit {returncode}): {command}")


class MergeConflictError(WorkmuxError):
    """Raised when a merge, rebase or squash stops on conflicts."""


class MultiplexerError(WorkmuxError):
    """Raised when a tmux command fails."""

    def __init__(self, args: list, stderr: str):
        self.args_list = args
        self.stderr = stderr
        super().__init__(f"tmux {' '.join(args)} failed: {stderr.strip()}")


class MultiplexerNotRunning(WorkmuxError):
    """Raised when no tmux server is reachable."""

    def __init__(self):
        super().__init__("tmux is not running", hint="Start a tmux session first")


class ConfigError(WorkmuxError):
    """Raised for invalid configuration files or values."""
