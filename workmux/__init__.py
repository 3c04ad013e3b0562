"""
workmux - git worktrees paired with tmux windows
"""

from .__version__ import __version__
from .core import Workflow
from .cli.main import main

__all__ = ["Workflow", "main", "__version__"]
