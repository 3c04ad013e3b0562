"""Git operations service"""

import subprocess
from pathlib import Path
from typing import Optional, Union

import git
from rich.console import Console

from workmux.constants import PROVENANCE_CONFIG_KEY
from workmux.exceptions import GitOperationError, RepositoryNotFound
from workmux.logging_config import get_logger

console = Console()
logger = get_logger(__name__)

PathLike = Union[str, Path]


def format_git_error(e: git.exc.GitCommandError) -> str:
    """Extract a readable message from a failed git command."""
    stderr = (e.stderr if hasattr(e, "stderr") and e.stderr else str(e)).strip()
    status = e.status if hasattr(e, "status") else "unknown"
    # GitPython prefixes captured stderr with "stderr: '...'"
    if stderr.startswith("stderr:"):
        stderr = stderr[len("stderr:"):].strip().strip("'").strip()
    if stderr:
        return f"exit {status}: {stderr}"
    return f"exit code {status}"


def find_repository(path: PathLike) -> git.Repo:
    """Open the repository that contains ``path``."""
    try:
        return git.Repo(path, search_parent_directories=True)
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
        raise RepositoryNotFound(str(path))


class GitOperations:
    """Service for low-level Git operations shared by the worktree manager and workflows."""

    def __init__(self, repo_path: PathLike):
        """Initialize the service.

        Args:
            repo_path: Path to the git repository (any of its worktrees)
        """
        self.repo_path = str(repo_path)
        self.remote_name = "origin"

    def _get_repo(self) -> git.Repo:
        """Get a fresh git.Repo instance for the repository."""
        return git.Repo(self.repo_path)

    def _git_in(self, path: Optional[PathLike] = None) -> git.Git:
        """Get a git command runner bound to a working directory."""
        return git.Git(str(path) if path else self.repo_path)

    def _run(self, operation: str, path: Optional[PathLike], *args, branch: Optional[str] = None) -> str:
        """Run a git command and translate failures into GitOperationError."""
        logger.debug(f"git {' '.join(str(a) for a in args)} (in {path or self.repo_path})")
        try:
            return self._git_in(path).execute(["git", *[str(a) for a in args]])
        except git.exc.GitCommandError as e:
            raise GitOperationError(operation, branch, format_git_error(e))

    def _check(self, path: Optional[PathLike], *args) -> int:
        """Run a git command used as a predicate and return its exit status."""
        status, _, _ = self._git_in(path).execute(
            ["git", *[str(a) for a in args]],
            with_exceptions=False,
            with_extended_output=True,
        )
        return status

    def _run_interactive(self, operation: str, path: PathLike, *args) -> None:
        """Run git attached to the terminal so the user's editor can open."""
        logger.debug(f"git {' '.join(args)} (interactive, in {path})")
        result = subprocess.run(["git", *args], cwd=str(path))
        if result.returncode != 0:
            raise GitOperationError(operation, message=f"git {' '.join(args)} exited with {result.returncode}")

    # Branch queries

    def get_current_branch(self, path: Optional[PathLike] = None) -> Optional[str]:
        """Name of the branch checked out at ``path``; None when detached."""
        try:
            name = self._git_in(path).execute(["git", "branch", "--show-current"]).strip()
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not read current branch: {format_git_error(e)}")
            return None
        return name or None

    def branch_exists(self, branch_name: str) -> bool:
        """Check whether a local branch exists."""
        return self._check(None, "rev-parse", "--verify", "--quiet", f"refs/heads/{branch_name}") == 0

    def ref_exists(self, ref: str) -> bool:
        """Check whether any ref or revision resolves."""
        return self._check(None, "rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}") == 0

    def get_main_branch(self, configured: Optional[str] = None) -> str:
        """Determine the primary branch of the repository.

        Args:
            configured: Explicit override from configuration

        Returns:
            Branch name, e.g. "main"
        """
        if configured:
            return configured

        try:
            ref = self._git_in().execute(
                ["git", "symbolic-ref", "--quiet", f"refs/remotes/{self.remote_name}/HEAD"]
            ).strip()
            prefix = f"refs/remotes/{self.remote_name}/"
            if ref.startswith(prefix):
                return ref[len(prefix):]
        except git.exc.GitCommandError:
            logger.debug("origin/HEAD is not set, falling back to local branches")

        for candidate in ("main", "master"):
            if self.branch_exists(candidate):
                return candidate

        raise GitOperationError(
            "detect_main_branch",
            message="could not determine the main branch; set 'main_branch' in .workmux.yaml",
        )

    def count_commits_ahead(self, branch_name: str, base: str) -> int:
        """Number of commits on ``branch_name`` not reachable from ``base``."""
        output = self._run("rev_list", None, "rev-list", "--count", f"{base}..{branch_name}", branch=branch_name)
        return int(output.strip() or 0)

    # Provenance

    def _provenance_key(self, branch_name: str) -> str:
        return f"branch.{branch_name}.{PROVENANCE_CONFIG_KEY}"

    def get_base_branch(self, branch_name: str) -> Optional[str]:
        """Read the recorded base branch for ``branch_name``."""
        status, stdout, _ = self._git_in().execute(
            ["git", "config", "--local", "--get", self._provenance_key(branch_name)],
            with_exceptions=False,
            with_extended_output=True,
        )
        if status != 0:
            return None
        return stdout.strip() or None

    def set_base_branch(self, branch_name: str, base: str) -> None:
        """Record the base branch ``branch_name`` was created from."""
        self._run("record_base", None, "config", "--local", self._provenance_key(branch_name), base,
                  branch=branch_name)
        logger.debug(f"Recorded base '{base}' for '{branch_name}'")

    def unset_base_branch(self, branch_name: str) -> None:
        """Forget the recorded base branch; a missing entry is fine."""
        status = self._check(None, "config", "--local", "--unset", self._provenance_key(branch_name))
        # exit 5: the key did not exist
        if status not in (0, 5):
            logger.warning(f"Could not clear base branch for '{branch_name}' (git config exit {status})")

    # Working tree state

    def has_uncommitted_changes(self, path: PathLike) -> bool:
        """True when the worktree has staged, unstaged or untracked changes."""
        return bool(self._run("status", path, "status", "--porcelain").strip())

    def has_unstaged_changes(self, path: PathLike) -> bool:
        """True when tracked files differ from the index."""
        return self._check(path, "diff", "--quiet") != 0

    def has_staged_changes(self, path: PathLike) -> bool:
        """True when the index differs from HEAD."""
        return self._check(path, "diff", "--cached", "--quiet") != 0

    def commit_with_editor(self, path: PathLike) -> None:
        """Commit staged changes, letting the user write the message in their editor."""
        self._run_interactive("commit", path, "commit")

    # Merge primitives

    def switch_branch(self, path: PathLike, branch_name: str) -> None:
        self._run("switch", path, "switch", branch_name, branch=branch_name)

    def merge(self, path: PathLike, branch_name: str) -> None:
        """Merge ``branch_name`` into the branch checked out at ``path``."""
        self._run("merge", path, "merge", "--no-edit", branch_name, branch=branch_name)

    def merge_fast_forward(self, path: PathLike, branch_name: str) -> None:
        self._run("merge", path, "merge", "--ff-only", branch_name, branch=branch_name)

    def merge_squash(self, path: PathLike, branch_name: str) -> None:
        """Stage the combined changes of ``branch_name`` without committing."""
        self._run("merge_squash", path, "merge", "--squash", branch_name, branch=branch_name)

    def rebase(self, path: PathLike, onto: str) -> None:
        self._run("rebase", path, "rebase", onto, branch=onto)

    def abort_merge(self, path: PathLike) -> None:
        self._run("merge_abort", path, "merge", "--abort")

    def reset_hard(self, path: PathLike) -> None:
        self._run("reset", path, "reset", "--hard", "HEAD")

    # Branch and remote mutation

    def delete_branch(self, branch_name: str, force: bool = False) -> None:
        """Delete a local branch."""
        self._run("delete_branch", None, "branch", "-D" if force else "-d", branch_name, branch=branch_name)
        logger.info(f"Deleted local branch {branch_name}")

    def delete_remote_branch(self, branch_name: str) -> bool:
        """Delete the branch on origin. Failures are reported, not raised."""
        try:
            repo = self._get_repo()
            remote = repo.remote(self.remote_name)
            console.print(f"Deleting remote branch {branch_name}...")
            remote.push(refspec=f":{branch_name}").raise_if_error()
            return True
        except ValueError:
            console.print(f"[yellow]Warning: no '{self.remote_name}' remote; skipped remote branch deletion[/yellow]")
        except git.exc.GitCommandError as e:
            console.print(
                f"[yellow]Warning: could not delete remote branch {branch_name}: {format_git_error(e)}[/yellow]"
            )
        return False

    def get_remote_url(self, remote_name: Optional[str] = None) -> Optional[str]:
        try:
            return self._get_repo().remote(remote_name or self.remote_name).url
        except ValueError:
            return None

    def remote_exists(self, remote_name: str) -> bool:
        return remote_name in [r.name for r in self._get_repo().remotes]

    def add_remote(self, remote_name: str, url: str) -> None:
        self._run("remote_add", None, "remote", "add", remote_name, url)
        logger.info(f"Added remote {remote_name} -> {url}")

    def fetch(self, remote_name: str, refspec: str) -> None:
        self._run("fetch", None, "fetch", remote_name, refspec)

    def set_upstream(self, branch_name: str, upstream: str) -> None:
        self._run("set_upstream", None, "branch", f"--set-upstream-to={upstream}", branch_name,
                  branch=branch_name)
