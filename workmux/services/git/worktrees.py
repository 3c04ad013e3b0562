"""Worktree management service for workmux."""

import os
import shutil
from pathlib import Path
from typing import Dict, Iterator, Optional, Any

import git

from workmux.constants import WORKTREES_DIR_SUFFIX
from workmux.exceptions import (
    BranchConflictError,
    DirtyWorktreeError,
    GitOperationError,
    NotFoundError,
)
from workmux.logging_config import get_logger
from workmux.models.branch import BranchStatus
from workmux.models.worktree import WorktreeInfo
from workmux.services.git.operations import GitOperations, PathLike, format_git_error

logger = get_logger(__name__)


class WorktreeService:
    """Service for creating, finding and removing the worktree of each branch."""

    def __init__(self, repo_path: PathLike, git_ops: Optional[GitOperations] = None,
                 main_branch: Optional[str] = None):
        """Initialize the worktree service.

        Args:
            repo_path: Path to the git repository (any of its worktrees)
            git_ops: Shared GitOperations instance
            main_branch: Configured main branch, auto-detected when None
        """
        self.repo_path = str(repo_path)
        self.git_ops = git_ops or GitOperations(repo_path)
        self._configured_main_branch = main_branch
        self._main_branch: Optional[str] = None

    def _get_repo(self) -> git.Repo:
        return git.Repo(self.repo_path)

    @property
    def main_branch(self) -> str:
        if self._main_branch is None:
            self._main_branch = self.git_ops.get_main_branch(self._configured_main_branch)
        return self._main_branch

    def list_worktrees(self) -> Iterator[WorktreeInfo]:
        """Yield every worktree, the main one first, then in git's order.

        Parses ``git worktree list --porcelain`` lazily. Format::

            worktree /path/to/worktree
            HEAD commit_sha
            branch refs/heads/branch-name
            (blank line between worktrees)
        """
        output = self._get_repo().git.worktree("list", "--porcelain")

        current: Dict[str, Any] = {}
        is_first = True
        for line in output.split("\n") + [""]:
            line = line.strip()

            if not line:
                if current.get("path") and not current.get("bare"):
                    yield WorktreeInfo(
                        path=Path(current["path"]),
                        branch_name=current.get("branch"),
                        commit_sha=current.get("HEAD", ""),
                        is_main=is_first,
                    )
                if current:
                    is_first = False
                current = {}
                continue

            if line.startswith("worktree "):
                current["path"] = line.split(" ", 1)[1]
            elif line.startswith("HEAD "):
                current["HEAD"] = line.split(" ", 1)[1]
            elif line.startswith("branch "):
                branch_ref = line.split(" ", 1)[1]
                if branch_ref.startswith("refs/heads/"):
                    current["branch"] = branch_ref[len("refs/heads/"):]
            elif line == "bare":
                current["bare"] = True

    def get_main_worktree(self) -> WorktreeInfo:
        """The primary checkout of the repository."""
        for worktree in self.list_worktrees():
            return worktree
        raise GitOperationError("worktree_list", message="git reported no worktrees")

    def get_main_worktree_root(self) -> Path:
        return self.get_main_worktree().path

    def worktree_path_for(self, branch_name: str) -> Path:
        """Where the worktree for ``branch_name`` lives: <repo>/../<repo>__worktrees/<branch>."""
        root = self.get_main_worktree_root()
        return root.parent / f"{root.name}{WORKTREES_DIR_SUFFIX}" / branch_name

    def find_worktree(self, branch_name: str) -> Optional[WorktreeInfo]:
        """Find the worktree that has ``branch_name`` checked out."""
        for worktree in self.list_worktrees():
            if worktree.branch_name == branch_name:
                return worktree
        return None

    def get_worktree_path(self, branch_name: str) -> Path:
        """Path of the branch's worktree, raising NotFoundError when it has none."""
        worktree = self.find_worktree(branch_name)
        if worktree is None:
            raise NotFoundError(branch_name)
        return worktree.path

    def find_worktree_containing(self, path: PathLike) -> Optional[WorktreeInfo]:
        """Find the worktree whose directory contains ``path`` (deepest match wins)."""
        target = Path(os.path.realpath(path))
        best: Optional[WorktreeInfo] = None
        for worktree in self.list_worktrees():
            root = Path(os.path.realpath(worktree.path))
            if target == root or root in target.parents:
                if best is None or len(root.parts) > len(Path(os.path.realpath(best.path)).parts):
                    best = worktree
        return best

    def create_worktree(self, branch_name: str, base: Optional[str] = None,
                        path: Optional[Path] = None) -> Path:
        """Create a worktree for ``branch_name`` and record where it came from.

        Args:
            branch_name: Branch to check out; created from ``base`` if missing
            base: Branch or ref to start from (defaults to the current branch)
            path: Worktree location (defaults to the standard layout)

        Returns:
            Path of the new worktree
        """
        existing = self.find_worktree(branch_name)
        if existing is not None:
            raise BranchConflictError(branch_name, str(existing.path))

        path = Path(path) if path else self.worktree_path_for(branch_name)
        if path.exists():
            raise BranchConflictError(branch_name, str(path))
        path.parent.mkdir(parents=True, exist_ok=True)

        repo = self._get_repo()
        try:
            if self.git_ops.branch_exists(branch_name):
                logger.info(f"Checking out existing branch {branch_name} at {path}")
                repo.git.worktree("add", str(path), branch_name)
            else:
                if base is None:
                    base = self.git_ops.get_current_branch(self.repo_path) or self.main_branch
                logger.info(f"Creating branch {branch_name} from {base} at {path}")
                repo.git.worktree("add", "-b", branch_name, str(path), base)
        except git.exc.GitCommandError as e:
            raise GitOperationError("worktree_add", branch_name, format_git_error(e))

        if base is not None:
            self.git_ops.set_base_branch(branch_name, base)
        else:
            self.git_ops.unset_base_branch(branch_name)
        return path

    def remove_worktree(self, branch_name: str, keep_branch: bool = False, force: bool = False) -> Path:
        """Delete a branch's worktree and, unless kept, the branch itself.

        Args:
            branch_name: Branch whose worktree is removed
            keep_branch: Keep the local branch ref
            force: Discard uncommitted changes

        Returns:
            Path of the removed worktree
        """
        path = self.get_worktree_path(branch_name)

        if not force and path.exists() and self.git_ops.has_uncommitted_changes(path):
            raise DirtyWorktreeError(branch_name, str(path))

        if path.exists():
            logger.info(f"Removing worktree directory {path}")
            shutil.rmtree(path)
        self.prune_worktrees()

        if not keep_branch:
            if self.git_ops.branch_exists(branch_name):
                self.git_ops.delete_branch(branch_name, force=True)
            self.git_ops.unset_base_branch(branch_name)
        return path

    def prune_worktrees(self) -> None:
        """Prune administrative records of worktrees whose directory is gone."""
        try:
            self._get_repo().git.worktree("prune")
            logger.debug("Pruned orphaned worktree metadata")
        except git.exc.GitCommandError as e:
            raise GitOperationError("worktree_prune", message=format_git_error(e))

    def get_effective_base(self, branch_name: str) -> str:
        """Recorded base branch, or the main branch when none is recorded or it is gone."""
        base = self.git_ops.get_base_branch(branch_name)
        if base and self.git_ops.ref_exists(base):
            return base
        if base:
            logger.debug(f"Recorded base '{base}' of '{branch_name}' no longer exists")
        return self.main_branch

    def compute_status(self, branch_name: str) -> BranchStatus:
        """Classify a branch as having no worktree, clean, or unmerged against its base."""
        if self.find_worktree(branch_name) is None:
            return BranchStatus.NO_WORKTREE

        base = self.get_effective_base(branch_name)
        if base == branch_name:
            return BranchStatus.CLEAN
        if self.git_ops.count_commits_ahead(branch_name, base) > 0:
            return BranchStatus.UNMERGED
        return BranchStatus.CLEAN
