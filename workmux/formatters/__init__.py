"""Formatting utilities for workmux output."""

from .table import format_worktree_table

__all__ = ["format_worktree_table"]
