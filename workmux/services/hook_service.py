"""Runs configured shell hooks inside a worktree"""

import subprocess
from pathlib import Path
from typing import Sequence

from rich.console import Console

from workmux.exceptions import HookFailedError
from workmux.logging_config import get_logger

console = Console()
logger = get_logger(__name__)


def run_hooks(commands: Sequence[str], cwd: Path, label: str) -> None:
    """Run ``commands`` in order through the shell, stopping at the first failure.

    Args:
        commands: Shell commands to run
        cwd: Working directory for every command
        label: Hook name shown to the user, e.g. "post_create"

    Raises:
        HookFailedError: a command exited non-zero
    """
    for command in commands:
        console.print(f"[dim]Running {label} hook:[/dim] {command}", highlight=False)
        logger.info(f"{label}: {command} (in {cwd})")
        result = subprocess.run(command, shell=True, cwd=str(cwd))
        if result.returncode != 0:
            raise HookFailedError(command, result.returncode)
