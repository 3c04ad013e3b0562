"""Shared constants for workmux."""

from dataclasses import dataclass
from typing import List


@dataclass
class ColumnDefinition:
    """Definition of a table column."""

    key: str
    label: str


# Columns of `workmux list`, in display order
LIST_COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("branch", "BRANCH"),
    ColumnDefinition("tmux", "TMUX"),
    ColumnDefinition("unmerged", "UNMERGED"),
    ColumnDefinition("path", "PATH"),
]

# Minimum spacing between list columns
COLUMN_GAP = 4


# Symbol constants
SYMBOL_ACTIVE_TAB = "✓"
SYMBOL_UNMERGED = "●"
SYMBOL_NONE = "-"
DETACHED_LABEL = "(detached)"


# Defaults
DEFAULT_WINDOW_PREFIX = "wm"
WORKTREES_DIR_SUFFIX = "__worktrees"
PROVENANCE_CONFIG_KEY = "workmux-base"
AGENT_PLACEHOLDER = "<agent>"

# Config file locations
GLOBAL_CONFIG_DIR = "workmux"
GLOBAL_CONFIG_FILE = "config.yaml"
REPO_CONFIG_FILES = (".workmux.yaml", ".workmux.yml")

# Tab close timing
SCHEDULED_CLOSE_DELAY_SECONDS = 1
TAB_CLOSE_POLL_ATTEMPTS = 20
TAB_CLOSE_POLL_INTERVAL_SECONDS = 0.05


EXAMPLE_CONFIG = """\
# workmux project configuration
# Values here replace the matching keys from ~/.config/workmux/config.yaml.

# Prefix for tmux window names (windows are named <prefix>-<branch>)
# window_prefix: wm

# Branch used as the default merge target (auto-detected when unset)
# main_branch: main

# Command substituted for panes whose command is "<agent>"
# agent: claude

# Commands run in a new worktree after it is created
# post_create:
#   - npm install

# Commands run in a worktree before it is deleted
# pre_delete:
#   - docker compose down

# Files materialized from the main checkout into each new worktree
# files:
#   copy:
#     - .env
#   symlink:
#     - node_modules

# Pane layout; the first pane exists already, later panes split it
panes:
  - command: <agent>
    focus: true
  - split: horizontal
    size: 30
"""
