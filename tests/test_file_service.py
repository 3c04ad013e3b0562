"""Tests for FileService"""
import os
import shutil
from pathlib import Path

import pytest

from workmux.config import FileRules
from workmux.exceptions import PathTraversalError, UnsupportedCopyTargetError
from workmux.services.file_service import COPY, SYMLINK, FileOperation, FileService


@pytest.fixture
def trees(temp_dir):
    """Source and destination trees laid out like a repo and one of its worktrees."""
    base = temp_dir / "projects"
    source = base / "repo"
    dest = base / "repo__worktrees" / "feature"
    source.mkdir(parents=True)
    dest.mkdir(parents=True)
    return source, dest


class TestExpand:
    """Test glob expansion."""

    def test_expand_orders_copy_before_symlink(self, trees):
        """Test that copy operations come first."""
        source, dest = trees
        (source / ".env").write_text("A=1\n")
        (source / "node_modules").mkdir()
        ops = FileService(source, dest).expand(FileRules(copy=[".env"], symlink=["node_modules"]))
        assert [(op.kind, str(op.relative_path)) for op in ops] == [
            (COPY, ".env"),
            (SYMLINK, "node_modules"),
        ]

    def test_expand_glob(self, trees):
        """Test wildcard patterns."""
        source, dest = trees
        (source / "a.env").write_text("a")
        (source / "b.env").write_text("b")
        (source / "c.txt").write_text("c")
        ops = FileService(source, dest).expand(FileRules(copy=["*.env"]))
        assert sorted(str(op.relative_path) for op in ops) == ["a.env", "b.env"]

    def test_expand_recursive_glob(self, trees):
        """Test ** patterns."""
        source, dest = trees
        (source / "config" / "nested").mkdir(parents=True)
        (source / "config" / "nested" / "local.yaml").write_text("x")
        ops = FileService(source, dest).expand(FileRules(copy=["**/local.yaml"]))
        assert [str(op.relative_path) for op in ops] == [os.path.join("config", "nested", "local.yaml")]

    def test_no_matches(self, trees):
        """Test that patterns matching nothing expand to nothing."""
        source, dest = trees
        service = FileService(source, dest)
        assert service.expand(FileRules(copy=["nonexistent-*.txt"], symlink=["missing-dir"])) == []
        assert service.apply_rules(FileRules(copy=["nonexistent-*.txt"], symlink=["missing-dir"])) == 0


class TestCopy:
    """Test copy rules."""

    def test_copy_creates_regular_file(self, trees):
        """Test that copied files are independent regular files."""
        source, dest = trees
        (source / ".env").write_text("SECRET=1\n")
        FileService(source, dest).apply_rules(FileRules(copy=[".env"]))

        copied = dest / ".env"
        assert copied.is_file()
        assert not copied.is_symlink()
        assert copied.read_text() == "SECRET=1\n"

    def test_copy_creates_parent_directories(self, trees):
        """Test copying into nested directories."""
        source, dest = trees
        (source / "config").mkdir()
        (source / "config" / "app.env").write_text("x")
        FileService(source, dest).apply_rules(FileRules(copy=["config/app.env"]))
        assert (dest / "config" / "app.env").read_text() == "x"

    def test_copy_directory_fails(self, trees):
        """Test that directories cannot be copied."""
        source, dest = trees
        (source / "somedir").mkdir()
        with pytest.raises(UnsupportedCopyTargetError, match="use symlink for directories"):
            FileService(source, dest).apply_rules(FileRules(copy=["somedir"]))

    def test_copy_directory_fails_before_any_write(self, trees):
        """Test that a bad rule stops valid rules from being applied."""
        source, dest = trees
        (source / ".env").write_text("x")
        (source / "somedir").mkdir()
        with pytest.raises(UnsupportedCopyTargetError):
            FileService(source, dest).apply_rules(FileRules(copy=[".env", "somedir"]))
        assert not (dest / ".env").exists()

    def test_copy_replaces_symlink_without_touching_source(self, trees):
        """Test that copying over a symlink does not write through it."""
        source, dest = trees
        (source / ".env").write_text("original")
        os.symlink(os.path.relpath(source / ".env", dest), dest / ".env")

        (source / ".env").write_text("updated")
        FileService(source, dest).apply_rules(FileRules(copy=[".env"]))

        assert not (dest / ".env").is_symlink()
        assert (dest / ".env").read_text() == "updated"
        assert (source / ".env").read_text() == "updated"


class TestSymlink:
    """Test symlink rules."""

    def test_symlink_is_relative(self, trees):
        """Test that links are relative to the destination directory."""
        source, dest = trees
        (source / "node_modules").mkdir()
        (source / "node_modules" / "pkg.js").write_text("x")
        FileService(source, dest).apply_rules(FileRules(symlink=["node_modules"]))

        link = dest / "node_modules"
        assert link.is_symlink()
        target = os.readlink(link)
        assert not os.path.isabs(target)
        assert target == os.path.relpath(source / "node_modules", dest)
        assert (link / "pkg.js").read_text() == "x"

    def test_symlink_replaces_file(self, trees):
        """Test replacing a regular file in the destination."""
        source, dest = trees
        (source / "shared.txt").write_text("from source")
        (dest / "shared.txt").write_text("checked out")
        FileService(source, dest).apply_rules(FileRules(symlink=["shared.txt"]))

        assert (dest / "shared.txt").is_symlink()
        assert (dest / "shared.txt").read_text() == "from source"

    def test_symlink_replaces_directory(self, trees):
        """Test replacing a real directory in the destination."""
        source, dest = trees
        (source / "cache").mkdir()
        (dest / "cache").mkdir()
        (dest / "cache" / "stale").write_text("old")
        FileService(source, dest).apply_rules(FileRules(symlink=["cache"]))

        assert (dest / "cache").is_symlink()
        assert not (source / "cache" / "stale").exists()

    def test_symlink_replaces_existing_symlink(self, trees):
        """Test replacing a link that points elsewhere."""
        source, dest = trees
        (source / "data").write_text("new")
        (dest / "elsewhere").write_text("old")
        os.symlink("elsewhere", dest / "data")
        FileService(source, dest).apply_rules(FileRules(symlink=["data"]))
        assert (dest / "data").read_text() == "new"

    def test_idempotent(self, trees):
        """Test that applying the same rules twice gives the same result."""
        source, dest = trees
        (source / ".env").write_text("x")
        (source / "node_modules").mkdir()
        rules = FileRules(copy=[".env"], symlink=["node_modules"])
        service = FileService(source, dest)

        service.apply_rules(rules)
        first_link = os.readlink(dest / "node_modules")
        service.apply_rules(rules)

        assert os.readlink(dest / "node_modules") == first_link
        assert (dest / ".env").read_text() == "x"
        assert sorted(p.name for p in dest.iterdir()) == [".env", "node_modules"]

    def test_idempotent_with_overlapping_rules(self, trees):
        """Test re-applying a copy rule inside a symlinked directory."""
        source, dest = trees
        (source / "config").mkdir()
        (source / "config" / ".env").write_text("x")
        rules = FileRules(copy=["config/.env"], symlink=["config"])
        service = FileService(source, dest)

        service.apply_rules(rules)
        service.apply_rules(rules)

        assert (dest / "config").is_symlink()
        assert (dest / "config" / ".env").resolve() == (source / "config" / ".env").resolve()
        assert (source / "config" / ".env").read_text() == "x"

    def test_symlink_inside_symlinked_directory(self, trees):
        """Test that nested symlink rules never unlink files in the source tree."""
        source, dest = trees
        (source / "config").mkdir()
        (source / "config" / "settings.json").write_text("{}")
        rules = FileRules(symlink=["config", "config/settings.json"])

        FileService(source, dest).apply_rules(rules)
        FileService(source, dest).apply_rules(rules)

        assert not (source / "config" / "settings.json").is_symlink()
        assert (source / "config" / "settings.json").read_text() == "{}"

    def test_survives_relocation(self, trees, temp_dir):
        """Test that links still resolve after moving both trees together."""
        source, dest = trees
        (source / "node_modules").mkdir()
        (source / "node_modules" / "pkg.js").write_text("x")
        FileService(source, dest).apply_rules(FileRules(symlink=["node_modules"]))

        moved = temp_dir / "moved"
        shutil.move(str(source.parent), str(moved))

        link = moved / "repo__worktrees" / "feature" / "node_modules"
        assert (link / "pkg.js").read_text() == "x"


class TestContainment:
    """Test path traversal protection."""

    def test_copy_traversal(self, trees):
        """Test rejecting copy patterns that leave the repository."""
        source, dest = trees
        (source.parent / "sensitive_file").write_text("secret")
        with pytest.raises(PathTraversalError, match="outside"):
            FileService(source, dest).apply_rules(FileRules(copy=["../sensitive_file"]))
        assert not (dest / "sensitive_file").exists()
        assert list(dest.iterdir()) == []

    def test_symlink_traversal(self, trees):
        """Test rejecting symlink patterns that leave the repository."""
        source, dest = trees
        (source.parent / "some_dir").mkdir()
        with pytest.raises(PathTraversalError, match="Path traversal"):
            FileService(source, dest).apply_rules(FileRules(symlink=["../some_dir"]))

    def test_absolute_pattern_outside(self, trees, temp_dir):
        """Test rejecting absolute patterns outside the repository."""
        source, dest = trees
        outside = temp_dir / "outside.txt"
        outside.write_text("x")
        with pytest.raises(PathTraversalError):
            FileService(source, dest).apply_rules(FileRules(copy=[str(outside)]))

    def test_traversal_checked_before_any_write(self, trees):
        """Test that valid rules are not applied when another rule escapes."""
        source, dest = trees
        (source / ".env").write_text("x")
        (source.parent / "secret").write_text("s")
        with pytest.raises(PathTraversalError):
            FileService(source, dest).apply_rules(FileRules(copy=[".env"], symlink=["../secret"]))
        assert not (dest / ".env").exists()

    def test_symlink_inside_repo_pointing_outside(self, trees, temp_dir):
        """Test that matches resolving outside through a link are rejected."""
        source, dest = trees
        (temp_dir / "external").mkdir()
        os.symlink(temp_dir / "external", source / "linked")
        with pytest.raises(PathTraversalError):
            FileService(source, dest).apply_rules(FileRules(symlink=["linked"]))

    def test_dotdot_that_stays_inside(self, trees):
        """Test that '..' segments resolving inside the repository are allowed."""
        source, dest = trees
        (source / "sub").mkdir()
        (source / ".env").write_text("x")
        FileService(source, dest).apply_rules(FileRules(copy=["sub/../.env"]))
        assert (dest / ".env").read_text() == "x"

    @pytest.mark.parametrize("pattern", [".", "./"])
    def test_pattern_matching_the_root(self, trees, pattern):
        """Test that a rule matching the repository root never replaces the worktree."""
        source, dest = trees
        (dest / "keep.txt").write_text("uncommitted")
        with pytest.raises(PathTraversalError):
            FileService(source, dest).apply_rules(FileRules(symlink=[pattern]))
        assert not dest.is_symlink()
        assert (dest / "keep.txt").read_text() == "uncommitted"

    def test_apply_never_replaces_destination_root(self, trees):
        """Test the apply stage on its own refusing an operation targeting the root."""
        source, dest = trees
        (dest / "keep.txt").write_text("uncommitted")
        op = FileOperation(kind=SYMLINK, pattern=".", relative_path=Path("."), source=source)
        with pytest.raises(PathTraversalError):
            FileService(source, dest).apply([op])
        assert (dest / "keep.txt").exists()
