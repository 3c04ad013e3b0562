"""Plain-text table for `workmux list`"""
from typing import List, Sequence

from workmux.constants import (
    COLUMN_GAP,
    LIST_COLUMNS,
    SYMBOL_ACTIVE_TAB,
    SYMBOL_NONE,
    SYMBOL_UNMERGED,
)
from workmux.models.worktree import WorktreeRow


def _row_cells(row: WorktreeRow) -> List[str]:
    return [
        row.branch,
        SYMBOL_ACTIVE_TAB if row.has_window else SYMBOL_NONE,
        SYMBOL_UNMERGED if row.is_unmerged else SYMBOL_NONE,
        str(row.path),
    ]


def _join(cells: Sequence[str], widths: Sequence[int]) -> str:
    gap = " " * COLUMN_GAP
    # The last column is never padded
    padded = [cell.ljust(width) for cell, width in zip(cells[:-1], widths)]
    return gap.join(padded + [cells[-1]])


def format_worktree_table(rows: Sequence[WorktreeRow]) -> str:
    """Render rows as a fixed-width table with a header and dashed separator.

    Each column is as wide as its widest cell; the separator under the last
    column matches its header.
    """
    labels = [column.label for column in LIST_COLUMNS]
    body = [_row_cells(row) for row in rows]
    widths = [
        max([len(labels[i])] + [len(cells[i]) for cells in body])
        for i in range(len(labels) - 1)
    ]

    lines = [
        _join(labels, widths),
        _join(["-" * width for width in widths] + ["-" * len(labels[-1])], widths),
    ]
    lines.extend(_join(cells, widths) for cells in body)
    return "\n".join(lines)
