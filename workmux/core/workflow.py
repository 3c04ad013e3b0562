"""The add / open / merge / remove / list workflows"""

from pathlib import Path
from typing import List, Optional

from rich.console import Console

from workmux.core.cleanup import CleanupResult, cleanup
from workmux.core.context import WorkflowContext
from workmux.constants import DETACHED_LABEL
from workmux.exceptions import (
    BranchConflictError,
    ConflictingOptionsError,
    DirtyTargetError,
    DirtyUnstagedError,
    DirtyWorktreeError,
    GitOperationError,
    MergeConflictError,
    SelfMergeError,
    TabExistsError,
    TargetNotActiveError,
    WorkmuxError,
)
from workmux.logging_config import get_logger
from workmux.models.branch import BranchStatus
from workmux.models.pull_request import PrReference, PrState
from workmux.models.worktree import WorktreeRow
from workmux.services.file_service import FileService
from workmux.services.git.github import fork_remote_url, parse_github_remote
from workmux.services.hook_service import run_hooks

console = Console()
logger = get_logger(__name__)


class Workflow:
    """Runs workmux commands against one repository."""

    def __init__(self, context: WorkflowContext):
        self.context = context
        self.config = context.config
        self.git = context.git
        self.worktrees = context.worktrees
        self.tmux = context.tmux

    # add / open

    def add(self, branch_name: Optional[str] = None, base: Optional[str] = None,
            pr: Optional[int] = None, background: bool = False) -> Path:
        """Create a worktree and window for a branch.

        Args:
            branch_name: Branch to create or check out; defaults to the PR head with ``pr``
            base: Branch to create from (defaults to the current branch)
            pr: Pull request number to check out
            background: Create the window without switching to it

        Returns:
            Path of the new worktree
        """
        if pr is not None and base is not None:
            raise ConflictingOptionsError("--pr cannot be combined with --base; the PR head is used as the base")
        if branch_name is None and pr is None:
            raise ConflictingOptionsError("A branch name is required unless --pr is given")

        self.tmux.ensure_running()

        pr_ref = None
        if pr is not None:
            pr_ref = self.context.github.fetch_pr(pr)
            self._announce_pr(pr_ref)
            branch_name = branch_name or pr_ref.head_ref

        window = self.context.window_name(branch_name)
        existing = self.worktrees.find_worktree(branch_name)
        if existing is not None:
            # create_worktree repeats this check; failing here avoids fetching first
            raise BranchConflictError(branch_name, str(existing.path))
        if self.tmux.window_exists(window):
            raise TabExistsError(window)

        if pr_ref is not None:
            base = self._fetch_pr_head(pr_ref)
        elif base is None and not self.git.branch_exists(branch_name):
            base = self.git.get_current_branch(self.context.cwd)

        logger.info(f"add:start branch={branch_name} base={base}")
        path = self.worktrees.create_worktree(branch_name, base)
        console.print(f"Created worktree for [bold]{branch_name}[/bold] at {path}", highlight=False)

        try:
            if pr_ref is not None:
                self.git.set_upstream(branch_name, base)
            self._set_up_worktree(branch_name, path, apply_files=True, run_post_create=True,
                                  focus=not background)
        except WorkmuxError as e:
            if e.hint is None:
                e.hint = (f"The worktree was kept at {path}. Fix the problem, then run "
                          f"'workmux open {branch_name}', or discard it with 'workmux remove {branch_name}'")
            raise

        logger.info(f"add:done branch={branch_name}")
        return path

    def open(self, branch_name: str, run_hooks: bool = False, force_files: bool = False) -> Path:
        """Recreate the window for an existing worktree.

        Args:
            branch_name: Branch whose worktree is opened
            run_hooks: Re-run post_create hooks
            force_files: Re-apply file rules
        """
        self.tmux.ensure_running()
        path = self.worktrees.get_worktree_path(branch_name)
        window = self.context.window_name(branch_name)
        if self.tmux.window_exists(window):
            raise TabExistsError(window)

        self._set_up_worktree(branch_name, path, apply_files=force_files, run_post_create=run_hooks,
                              focus=True)
        console.print(f"Opened [bold]{branch_name}[/bold] in window {window}", highlight=False)
        return path

    def _set_up_worktree(self, branch_name: str, path: Path, apply_files: bool,
                         run_post_create: bool, focus: bool) -> None:
        """Materialize files, build the window, run hooks, then optionally switch to it."""
        if apply_files and not self.config.files.is_empty:
            FileService(self.context.main_root, path).apply_rules(self.config.files)

        window = self.context.window_name(branch_name)
        first_pane = self.tmux.create_window(window, path, focus=False)
        self.tmux.layout_panes(first_pane, self.config.panes, path)

        if run_post_create and self.config.post_create:
            run_hooks(self.config.post_create, path, "post_create")

        if focus:
            self.tmux.select_window(window)

    def _announce_pr(self, pr_ref: PrReference) -> None:
        console.print(f"PR #{pr_ref.number}: {pr_ref.title}", highlight=False)
        console.print(f"Author: {pr_ref.author}", highlight=False)
        if pr_ref.state == PrState.MERGED:
            console.print(f"[yellow]Warning: PR #{pr_ref.number} is already merged[/yellow]")
        elif pr_ref.state == PrState.CLOSED:
            console.print(f"[yellow]Warning: PR #{pr_ref.number} is closed[/yellow]")
        if pr_ref.is_draft:
            console.print(f"[yellow]Warning: PR #{pr_ref.number} is a draft[/yellow]")

    def _fetch_pr_head(self, pr_ref: PrReference) -> str:
        """Fetch the PR head branch and return the remote ref to branch from."""
        remote = self.git.remote_name
        origin_url = self.git.get_remote_url()
        parsed = parse_github_remote(origin_url) if origin_url else None
        if parsed is not None and pr_ref.head_owner and pr_ref.is_fork(parsed[0]):
            remote = pr_ref.head_owner
            if not self.git.remote_exists(remote):
                self.git.add_remote(remote, fork_remote_url(origin_url, remote))

        console.print(f"Fetching {remote}/{pr_ref.head_ref}...", highlight=False)
        self.git.fetch(remote, f"+refs/heads/{pr_ref.head_ref}:refs/remotes/{remote}/{pr_ref.head_ref}")
        return f"{remote}/{pr_ref.head_ref}"

    # merge

    def merge(self, branch_name: Optional[str] = None, target: Optional[str] = None,
              rebase: bool = False, squash: bool = False, keep: bool = False,
              keep_branch: bool = False, ignore_uncommitted: bool = False,
              delete_remote: bool = False) -> Optional[CleanupResult]:
        """Merge a branch into its target, then clean it up.

        All checks run before anything is changed. Unless ``keep`` is set the
        source worktree, window and branch are removed afterwards.
        """
        if rebase and squash:
            raise ConflictingOptionsError("--rebase and --squash cannot be used together")
        if keep and delete_remote:
            raise ConflictingOptionsError("--keep cannot be combined with --delete-remote")

        branch_name = self.context.resolve_branch(branch_name)
        target = target or self.context.main_branch
        if branch_name == target:
            raise SelfMergeError(branch_name)

        source_path = self.worktrees.get_worktree_path(branch_name)
        target_worktree = self.worktrees.find_worktree(target)
        if target_worktree is not None:
            target_path = target_worktree.path
        elif target == self.context.main_branch:
            target_path = self.context.main_root
        else:
            raise TargetNotActiveError(target)

        if self.git.has_uncommitted_changes(target_path):
            raise DirtyTargetError(target, str(target_path))
        if not ignore_uncommitted and self.git.has_unstaged_changes(source_path):
            raise DirtyUnstagedError(branch_name)

        logger.info(f"merge:start branch={branch_name} target={target}")
        self.context.chdir_to_main_root()

        if not ignore_uncommitted and self.git.has_staged_changes(source_path):
            console.print(f"Committing staged changes in {branch_name}...", highlight=False)
            self.git.commit_with_editor(source_path)

        if self.git.get_current_branch(target_path) != target:
            self.git.switch_branch(target_path, target)

        if rebase:
            self._merge_rebase(branch_name, target, source_path, target_path)
        elif squash:
            self._merge_squash(branch_name, target, source_path, target_path)
        else:
            self._merge_commit(branch_name, target, source_path, target_path)
        console.print(f"[green]Merged {branch_name} into {target}[/green]")

        if keep:
            logger.info(f"merge:keeping worktree for {branch_name}")
            return None

        result = cleanup(self.context, branch_name, source_path, keep_branch=keep_branch,
                         delete_remote=delete_remote, navigate_to=self.context.window_name(target))
        self._report_cleanup(branch_name, result)
        return result

    def _conflict_error(self, branch_name: str, target: str, source_path: Path) -> MergeConflictError:
        retry = f"workmux merge {branch_name}"
        if target != self.context.main_branch:
            retry += f" --target {target}"
        return MergeConflictError(
            "Merge failed due to conflicts. Target worktree kept clean.",
            hint=(f"Update your branch in the worktree at {source_path}:\n"
                  f"  git rebase {target}  (recommended)\n"
                  f"Or:\n"
                  f"  git merge {target}\n"
                  f"After resolving conflicts, retry: {retry}"),
        )

    def _merge_commit(self, branch_name: str, target: str, source_path: Path, target_path: Path) -> None:
        try:
            self.git.merge(target_path, branch_name)
        except GitOperationError as e:
            logger.info(f"merge failed, aborting in target worktree: {e}")
            try:
                self.git.abort_merge(target_path)
            except GitOperationError as abort_error:
                logger.warning(f"Could not abort merge: {abort_error}")
            raise self._conflict_error(branch_name, target, source_path)

    def _merge_rebase(self, branch_name: str, target: str, source_path: Path, target_path: Path) -> None:
        console.print(f"Rebasing '{branch_name}' onto '{target}'...")
        try:
            self.git.rebase(source_path, target)
        except GitOperationError:
            raise MergeConflictError(
                f"Rebase of '{branch_name}' onto '{target}' failed, likely due to conflicts.",
                hint=(f"Resolve them inside the worktree at {source_path}, then run "
                      f"'git rebase --continue' (or 'git rebase --abort' to cancel)"),
            )
        self.git.merge_fast_forward(target_path, branch_name)

    def _merge_squash(self, branch_name: str, target: str, source_path: Path, target_path: Path) -> None:
        try:
            self.git.merge_squash(target_path, branch_name)
        except GitOperationError as e:
            logger.info(f"squash merge failed, resetting target worktree: {e}")
            try:
                self.git.reset_hard(target_path)
            except GitOperationError as reset_error:
                logger.warning(f"Could not reset target worktree: {reset_error}")
            raise self._conflict_error(branch_name, target, source_path)

        console.print("Staged squashed changes. Please provide a commit message in your editor.")
        try:
            self.git.commit_with_editor(target_path)
        except GitOperationError as e:
            e.hint = f"The squashed changes are staged in {target_path}; commit them manually"
            raise

    # remove

    def remove(self, branch_name: Optional[str] = None, force: bool = False,
               discard_changes: bool = False, keep_branch: bool = False,
               delete_remote: bool = False) -> Optional[CleanupResult]:
        """Remove a branch's worktree, window and (unless kept) the branch.

        Args:
            branch_name: Branch to remove; inferred from cwd when None
            force: Skip the confirmation for branches with unmerged commits
            discard_changes: Remove even with uncommitted changes
            keep_branch: Keep the local branch ref
            delete_remote: Also delete the branch on origin

        Returns:
            CleanupResult, or None when the user declined
        """
        if keep_branch and delete_remote:
            raise ConflictingOptionsError("--keep-branch cannot be combined with --delete-remote")

        branch_name = self.context.resolve_branch(branch_name)
        path = self.worktrees.get_worktree_path(branch_name)

        if not discard_changes and path.exists() and self.git.has_uncommitted_changes(path):
            raise DirtyWorktreeError(branch_name, str(path))

        if not force and self.worktrees.compute_status(branch_name) == BranchStatus.UNMERGED:
            base = self.worktrees.get_effective_base(branch_name)
            count = self.git.count_commits_ahead(branch_name, base)
            if not self._confirm(
                f"Branch '{branch_name}' has {count} commit(s) not merged into '{base}'. "
                f"Remove it anyway? [y/N] "
            ):
                console.print("[yellow]Aborted[/yellow]")
                return None

        result = cleanup(self.context, branch_name, path, keep_branch=keep_branch,
                         delete_remote=delete_remote)
        self._report_cleanup(branch_name, result)
        return result

    def _confirm(self, prompt: str) -> bool:
        response = console.input(prompt)
        return response.strip().lower() == "y"

    def _report_cleanup(self, branch_name: str, result: CleanupResult) -> None:
        console.print(f"[green]Removed worktree {result.worktree_path}[/green]", highlight=False)
        if result.branch_deleted:
            console.print(f"Deleted branch {branch_name}")
        if result.close_scheduled:
            console.print("[dim]This window will close in a moment[/dim]")

    # list

    def list_worktrees(self) -> List[WorktreeRow]:
        """Collect one row per worktree, main worktree first."""
        windows = set(self.tmux.list_window_names())
        rows: List[WorktreeRow] = []
        for worktree in self.worktrees.list_worktrees():
            branch = worktree.branch_name
            unmerged = False
            if branch is not None and not worktree.is_main:
                try:
                    unmerged = self.worktrees.compute_status(branch) == BranchStatus.UNMERGED
                except GitOperationError as e:
                    logger.debug(f"Could not compute status of {branch}: {e}")
            rows.append(WorktreeRow(
                branch=branch or DETACHED_LABEL,
                has_window=branch is not None and self.context.window_name(branch) in windows,
                is_unmerged=unmerged,
                path=Path(worktree.path).resolve(),
            ))
        return rows
