"""Tests for WorktreeService and GitOperations"""
import shutil

import git
import pytest

from conftest import commit_file, worktree_path
from workmux.exceptions import BranchConflictError, DirtyWorktreeError, GitOperationError, NotFoundError
from workmux.models.branch import BranchStatus
from workmux.services.git import GitOperations, WorktreeService


@pytest.fixture
def service(repo_path):
    return WorktreeService(repo_path)


class TestLayout:
    """Test worktree locations and discovery."""

    def test_worktree_path_for(self, service, repo_path):
        """Test the sibling __worktrees layout."""
        assert service.worktree_path_for("feature") == repo_path.parent / "test_repo__worktrees" / "feature"

    def test_main_worktree_from_linked_worktree(self, service, repo_path):
        """Test that the main root is found from inside a linked worktree."""
        path = service.create_worktree("feature")
        assert WorktreeService(path).get_main_worktree_root() == repo_path

    def test_list_worktrees_main_first(self, service, repo_path):
        """Test listing order and flags."""
        service.create_worktree("b-feature")
        service.create_worktree("a-feature")
        worktrees = list(service.list_worktrees())

        assert worktrees[0].path == repo_path
        assert worktrees[0].is_main
        assert worktrees[0].branch_name == "main"
        assert sorted(w.branch_name for w in worktrees[1:]) == ["a-feature", "b-feature"]
        assert not any(w.is_main for w in worktrees[1:])

    def test_list_worktrees_is_lazy(self, service):
        """Test that listing returns an iterator."""
        worktrees = service.list_worktrees()
        assert iter(worktrees) is worktrees
        assert next(worktrees).is_main

    def test_detached_worktree(self, service, git_repo, repo_path):
        """Test that detached worktrees have no branch name."""
        detached = repo_path.parent / "detached"
        git_repo.git.worktree("add", "--detach", str(detached), "HEAD")
        entry = next(w for w in service.list_worktrees() if w.path == detached)
        assert entry.branch_name is None
        assert entry.is_detached

    def test_find_worktree_containing(self, service, repo_path):
        """Test mapping a nested directory to its worktree."""
        path = service.create_worktree("feature")
        nested = path / "src" / "pkg"
        nested.mkdir(parents=True)

        assert service.find_worktree_containing(nested).branch_name == "feature"
        assert service.find_worktree_containing(repo_path).is_main

    def test_get_worktree_path_missing(self, service):
        """Test NotFoundError for branches without a worktree."""
        with pytest.raises(NotFoundError, match="nope"):
            service.get_worktree_path("nope")


class TestCreateWorktree:
    """Test worktree creation and provenance."""

    def test_create_from_current_branch(self, service, repo_path):
        """Test creating a branch from the current branch."""
        path = service.create_worktree("feature")

        assert path == worktree_path(repo_path, "feature")
        assert (path / "README.md").exists()
        assert service.git_ops.branch_exists("feature")
        assert service.git_ops.get_base_branch("feature") == "main"

    def test_create_with_base(self, service, repo_path):
        """Test recording an explicit base."""
        first = service.create_worktree("f1")
        commit_file(first, "f1.txt")
        service.create_worktree("f2", base="f1")

        assert service.git_ops.get_base_branch("f2") == "f1"
        assert (worktree_path(repo_path, "f2") / "f1.txt").exists()

    def test_create_twice_conflicts(self, service):
        """Test BranchConflictError for an existing worktree."""
        service.create_worktree("feature")
        with pytest.raises(BranchConflictError):
            service.create_worktree("feature")

    def test_create_for_checked_out_branch_conflicts(self, service):
        """Test that the main worktree's branch cannot get a second worktree."""
        with pytest.raises(BranchConflictError):
            service.create_worktree("main")

    def test_create_existing_branch(self, service, git_repo):
        """Test checking out an existing branch without recording a base."""
        git_repo.git.branch("existing")
        path = service.create_worktree("existing")

        assert git.Repo(path).active_branch.name == "existing"
        assert service.git_ops.get_base_branch("existing") is None

    def test_create_with_unknown_base(self, service):
        """Test a git failure surfacing as GitOperationError."""
        with pytest.raises(GitOperationError, match="worktree_add"):
            service.create_worktree("feature", base="does-not-exist")


class TestComputeStatus:
    """Test merge status against provenance."""

    def test_no_worktree(self, service):
        """Test branches without worktrees."""
        assert service.compute_status("feature") == BranchStatus.NO_WORKTREE

    def test_clean_after_create(self, service):
        """Test that a fresh worktree is clean."""
        service.create_worktree("feature")
        assert service.compute_status("feature") == BranchStatus.CLEAN

    def test_unmerged_after_commit(self, service):
        """Test that a new commit makes the branch unmerged."""
        path = service.create_worktree("feature")
        commit_file(path, "new.txt")
        assert service.compute_status("feature") == BranchStatus.UNMERGED

    def test_stacked_branch_uses_provenance(self, service):
        """Test that a stacked branch is compared with its base, not main."""
        f1 = service.create_worktree("f1")
        commit_file(f1, "f1.txt")
        service.create_worktree("f2", base="f1")

        assert service.compute_status("f1") == BranchStatus.UNMERGED
        assert service.compute_status("f2") == BranchStatus.CLEAN

        commit_file(worktree_path(service.get_main_worktree_root(), "f2"), "f2.txt")
        assert service.compute_status("f2") == BranchStatus.UNMERGED

    def test_missing_base_falls_back_to_main(self, service, git_repo):
        """Test fallback when the recorded base no longer exists."""
        service.create_worktree("feature")
        git_repo.git.config("--local", "branch.feature.workmux-base", "gone")

        assert service.get_effective_base("feature") == "main"
        assert service.compute_status("feature") == BranchStatus.CLEAN


class TestRemoveWorktree:
    """Test worktree removal."""

    def test_remove(self, service, repo_path):
        """Test removing directory, admin record and branch."""
        path = service.create_worktree("feature")
        service.remove_worktree("feature")

        assert not path.exists()
        assert service.find_worktree("feature") is None
        assert not service.git_ops.branch_exists("feature")
        assert service.git_ops.get_base_branch("feature") is None

    def test_remove_keep_branch(self, service):
        """Test keeping the branch ref."""
        path = service.create_worktree("feature")
        commit_file(path, "work.txt")
        service.remove_worktree("feature", keep_branch=True)

        assert service.git_ops.branch_exists("feature")
        assert service.find_worktree("feature") is None

    def test_remove_dirty(self, service):
        """Test refusing to discard uncommitted changes."""
        path = service.create_worktree("feature")
        (path / "scratch.txt").write_text("wip")

        with pytest.raises(DirtyWorktreeError):
            service.remove_worktree("feature")
        assert path.exists()

    def test_remove_dirty_forced(self, service):
        """Test discarding uncommitted changes on request."""
        path = service.create_worktree("feature")
        (path / "scratch.txt").write_text("wip")
        service.remove_worktree("feature", force=True)
        assert not path.exists()

    def test_remove_missing(self, service):
        """Test NotFoundError when there is nothing to remove."""
        with pytest.raises(NotFoundError):
            service.remove_worktree("feature")

    def test_remove_then_add_has_fresh_provenance(self, service, git_repo):
        """Test that re-adding a branch does not inherit the old base."""
        f1 = service.create_worktree("f1")
        commit_file(f1, "f1.txt")
        service.create_worktree("f2", base="f1")
        service.remove_worktree("f2")

        service.create_worktree("f2", base="main")
        assert service.git_ops.get_base_branch("f2") == "main"
        assert service.compute_status("f2") == BranchStatus.CLEAN

    def test_remove_when_directory_already_gone(self, service):
        """Test cleaning up a worktree whose directory was deleted by hand."""
        path = service.create_worktree("feature")
        shutil.rmtree(path)

        service.remove_worktree("feature")
        assert service.find_worktree("feature") is None


class TestGitOperations:
    """Test low-level queries."""

    def test_main_branch_detection(self, repo_path):
        """Test falling back to a local main branch."""
        assert GitOperations(repo_path).get_main_branch() == "main"

    def test_main_branch_master(self, git_repo, repo_path):
        """Test falling back to master."""
        git_repo.git.branch("-M", "master")
        assert GitOperations(repo_path).get_main_branch() == "master"

    def test_main_branch_configured(self, repo_path):
        """Test the configured override."""
        assert GitOperations(repo_path).get_main_branch("trunk") == "trunk"

    def test_main_branch_undetectable(self, git_repo, repo_path):
        """Test failing when neither main nor master exists."""
        git_repo.git.branch("-M", "develop")
        with pytest.raises(GitOperationError, match="main_branch"):
            GitOperations(repo_path).get_main_branch()

    def test_change_detection(self, repo_path):
        """Test unstaged, staged and untracked detection."""
        ops = GitOperations(repo_path)
        assert not ops.has_uncommitted_changes(repo_path)

        (repo_path / "untracked.txt").write_text("x")
        assert ops.has_uncommitted_changes(repo_path)
        assert not ops.has_unstaged_changes(repo_path)
        assert not ops.has_staged_changes(repo_path)

        (repo_path / "README.md").write_text("changed\n")
        assert ops.has_unstaged_changes(repo_path)

        git.Repo(repo_path).index.add(["README.md"])
        assert ops.has_staged_changes(repo_path)
        assert not ops.has_unstaged_changes(repo_path)

    def test_provenance_round_trip(self, repo_path):
        """Test storing and clearing the base branch."""
        ops = GitOperations(repo_path)
        ops.set_base_branch("feature", "main")
        assert ops.get_base_branch("feature") == "main"
        ops.unset_base_branch("feature")
        assert ops.get_base_branch("feature") is None
        ops.unset_base_branch("feature")

    def test_current_branch(self, git_repo, repo_path):
        """Test reading the checked-out branch and detached HEAD."""
        ops = GitOperations(repo_path)
        assert ops.get_current_branch() == "main"
        git_repo.git.checkout("--detach")
        assert ops.get_current_branch() is None
