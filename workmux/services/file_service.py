"""Materializes configured files from the main checkout into a worktree.

Rules are applied in three stages so that nothing is written unless every
match is valid:

- expand: glob each pattern against the source root
- validate: every match must resolve inside the source root, and copy
  rules may only match regular files
- apply: copy files, or replace the destination with a relative symlink
"""

import glob
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List

from workmux.config import FileRules
from workmux.exceptions import PathTraversalError, UnsupportedCopyTargetError
from workmux.logging_config import get_logger

logger = get_logger(__name__)

COPY = "copy"
SYMLINK = "symlink"


@dataclass
class FileOperation:
    """A single copy or symlink derived from a rule match."""

    kind: str  # copy, symlink
    pattern: str
    relative_path: Path  # relative to both roots
    source: Path

    def destination(self, dest_root: Path) -> Path:
        return dest_root / self.relative_path


class FileService:
    """Applies file rules from a source tree to a destination tree."""

    def __init__(self, source_root: Path, dest_root: Path):
        """
        Args:
            source_root: Root of the main worktree
            dest_root: Root of the worktree being populated
        """
        self.source_root = Path(source_root)
        self.dest_root = Path(dest_root)
        self._resolved_root = self.source_root.resolve()

    def _is_inside_root(self, path: Path) -> bool:
        resolved = path.resolve()
        return resolved == self._resolved_root or self._resolved_root in resolved.parents

    def _check_pattern(self, pattern: str) -> None:
        """Reject patterns that point outside the root before globbing."""
        normalized = os.path.normpath(os.path.join(str(self.source_root), pattern))
        if not self._is_inside_root(Path(normalized)):
            raise PathTraversalError(pattern, normalized)

    def expand(self, rules: FileRules) -> List[FileOperation]:
        """Glob every rule pattern into concrete operations, copy rules first."""
        operations: List[FileOperation] = []
        for kind, patterns in ((COPY, rules.copy), (SYMLINK, rules.symlink)):
            for pattern in patterns:
                self._check_pattern(pattern)
                matches = sorted(glob.glob(pattern, root_dir=str(self.source_root), recursive=True))
                if not matches:
                    logger.debug(f"Pattern '{pattern}' matched nothing")
                for match in matches:
                    source = self.source_root / match
                    operations.append(FileOperation(
                        kind=kind,
                        pattern=pattern,
                        relative_path=Path(os.path.relpath(source, self.source_root)),
                        source=source,
                    ))
        return operations

    def validate(self, operations: List[FileOperation]) -> None:
        """Ensure every operation is safe to apply."""
        for op in operations:
            if not op.relative_path.parts:
                # "." or "./" would replace the whole worktree
                raise PathTraversalError(op.pattern, str(op.source.resolve()))
            if not self._is_inside_root(op.source):
                raise PathTraversalError(op.pattern, str(op.source.resolve()))
            if op.relative_path.parts[0] == "..":
                raise PathTraversalError(op.pattern, str(op.source))
            if op.kind == COPY and op.source.is_dir():
                raise UnsupportedCopyTargetError(str(op.relative_path))

    def apply(self, operations: List[FileOperation]) -> None:
        """Perform validated operations against the destination root."""
        for op in operations:
            dest = op.destination(self.dest_root)
            if dest.resolve() == self.dest_root.resolve():
                raise PathTraversalError(op.pattern, str(dest))
            if self._has_linked_parent(dest):
                # Already provided by a symlinked directory; writing here would touch the source tree
                logger.debug(f"Skipping {op.relative_path}: a parent directory is a symlink")
                continue
            dest.parent.mkdir(parents=True, exist_ok=True)
            if op.kind == COPY:
                self._copy(op.source, dest)
            else:
                self._symlink(op.source, dest)

    def apply_rules(self, rules: FileRules) -> int:
        """Expand, validate and apply ``rules``.

        Returns:
            Number of files copied or linked
        """
        operations = self.expand(rules)
        self.validate(operations)
        self.apply(operations)
        if operations:
            logger.info(f"Applied {len(operations)} file operation(s) to {self.dest_root}")
        return len(operations)

    def _has_linked_parent(self, dest: Path) -> bool:
        """Whether a directory between the destination root and ``dest`` is a symlink."""
        relative = dest.relative_to(self.dest_root)
        return any((self.dest_root / parent).is_symlink() for parent in relative.parents if parent.parts)

    def _copy(self, source: Path, dest: Path) -> None:
        # Writing through a symlink would modify the source file
        if dest.is_symlink():
            dest.unlink()
        shutil.copy2(source, dest)
        logger.debug(f"Copied {source} -> {dest}")

    def _symlink(self, source: Path, dest: Path) -> None:
        if dest.is_symlink() or dest.is_file():
            dest.unlink()
        elif dest.is_dir():
            shutil.rmtree(dest)
        target = os.path.relpath(source, dest.parent)
        os.symlink(target, dest)
        logger.debug(f"Linked {dest} -> {target}")
