"""Core workflows for workmux."""

from .context import WorkflowContext
from .workflow import Workflow

__all__ = ["Workflow", "WorkflowContext"]
