"""tmux window and pane management"""

import os
import shlex
import subprocess
import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from workmux.config import Config, PaneConfig
from workmux.constants import (
    SCHEDULED_CLOSE_DELAY_SECONDS,
    TAB_CLOSE_POLL_ATTEMPTS,
    TAB_CLOSE_POLL_INTERVAL_SECONDS,
)
from workmux.exceptions import CliNotFoundError, MultiplexerError, MultiplexerNotRunning, TabExistsError
from workmux.logging_config import get_logger

logger = get_logger(__name__)


def run(cmd: List[str]) -> Tuple[int, str, str]:
    """Run a command and return (exit code, stdout, stderr)."""
    try:
        proc = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=False,
        )
    except FileNotFoundError:
        raise CliNotFoundError(cmd[0])
    return proc.returncode, proc.stdout, proc.stderr


def shell_prehook(shell: str) -> str:
    """Command that runs the shell's prompt hooks so tools like direnv load first."""
    name = os.path.basename(shell)
    if name == "zsh":
        return 'for f in "${precmd_functions[@]}"; do "$f"; done'
    if name == "bash":
        return 'eval "${PROMPT_COMMAND:-}"'
    if name == "fish":
        return "emit fish_prompt"
    return "true"


def build_startup_command(command: str, shell: Optional[str] = None) -> str:
    """Wrap ``command`` to run in an interactive shell that stays open afterwards.

    The user's rc files and aliases are available to the command, and the pane
    drops into a login shell once it exits.
    """
    shell = shell or os.environ.get("SHELL") or "/bin/sh"
    inner = f"{shell_prehook(shell)}; {command}; exec {shell} -l"
    escaped = inner.replace("'", "'\\''")
    return f"{shell} -ic '{escaped}'"


class TmuxService:
    """Creates, finds, navigates and closes tmux windows."""

    def __init__(self, config: Config, shell: Optional[str] = None):
        self.config = config
        self.shell = shell

    def _tmux(self, *args: str) -> str:
        """Run a tmux command, raising MultiplexerError on failure."""
        cmd = ["tmux", *args]
        logger.debug(" ".join(shlex.quote(a) for a in cmd))
        code, out, err = run(cmd)
        if code != 0:
            raise MultiplexerError(list(args), err or f"exit {code}")
        return out

    def window_name(self, branch_name: str) -> str:
        return self.config.window_name(branch_name)

    def is_running(self) -> bool:
        """Whether a tmux server is reachable."""
        try:
            code, _, _ = run(["tmux", "has-session"])
        except CliNotFoundError:
            return False
        return code == 0

    def ensure_running(self) -> None:
        if not self.is_running():
            raise MultiplexerNotRunning()

    def list_window_names(self) -> List[str]:
        """Names of all windows in the current session."""
        try:
            output = self._tmux("list-windows", "-F", "#{window_name}")
        except (MultiplexerError, CliNotFoundError) as e:
            logger.debug(f"Could not list tmux windows: {e}")
            return []
        return [line for line in output.splitlines() if line]

    def window_exists(self, name: str) -> bool:
        return name in self.list_window_names()

    def current_window_name(self) -> Optional[str]:
        """Name of the window this process runs in, if it runs inside tmux."""
        if not os.environ.get("TMUX"):
            return None
        args = ["display-message", "-p"]
        pane = os.environ.get("TMUX_PANE")
        if pane:
            args += ["-t", pane]
        try:
            return self._tmux(*args, "#{window_name}").strip() or None
        except (MultiplexerError, CliNotFoundError) as e:
            logger.debug(f"Could not determine current window: {e}")
            return None

    def create_window(self, name: str, cwd: Path, focus: bool = True) -> str:
        """Create a window and return the id of its first pane.

        Raises:
            TabExistsError: a window with this name already exists
        """
        if self.window_exists(name):
            raise TabExistsError(name)
        args = ["new-window"]
        if not focus:
            args.append("-d")
        args += ["-n", name, "-c", str(cwd), "-P", "-F", "#{pane_id}"]
        pane_id = self._tmux(*args).strip()
        logger.info(f"Created tmux window {name} ({pane_id})")
        return pane_id

    def layout_panes(self, first_pane_id: str, panes: Sequence[PaneConfig], cwd: Path) -> List[str]:
        """Split the window into the configured panes and start their commands.

        Args:
            first_pane_id: Pane id returned by create_window
            panes: Pane layout; the first entry describes the existing pane
            cwd: Working directory for every pane

        Returns:
            Pane ids in configuration order
        """
        pane_ids = [first_pane_id]
        if not panes:
            return pane_ids

        first_command = self.config.pane_command(panes[0])
        if first_command:
            self._tmux("respawn-pane", "-k", "-t", first_pane_id, "-c", str(cwd),
                       build_startup_command(first_command, self.shell))

        for pane in panes[1:]:
            args = ["split-window", "-h" if pane.split == "horizontal" else "-v",
                    "-t", pane_ids[-1], "-c", str(cwd)]
            if pane.size is not None:
                args += ["-l", f"{pane.size}%"]
            args += ["-P", "-F", "#{pane_id}"]
            command = self.config.pane_command(pane)
            if command:
                args.append(build_startup_command(command, self.shell))
            pane_ids.append(self._tmux(*args).strip())

        focus_index = next((i for i, pane in enumerate(panes) if pane.focus), 0)
        self._tmux("select-pane", "-t", pane_ids[focus_index])
        return pane_ids

    def select_window(self, name: str) -> None:
        self._tmux("select-window", "-t", f"={name}")

    def kill_window(self, name: str) -> None:
        self._tmux("kill-window", "-t", f"={name}")
        logger.info(f"Closed tmux window {name}")

    def close_window_and_wait(self, name: str) -> None:
        """Close a window and wait briefly until tmux no longer lists it."""
        self.kill_window(name)
        for _ in range(TAB_CLOSE_POLL_ATTEMPTS):
            if not self.window_exists(name):
                return
            time.sleep(TAB_CLOSE_POLL_INTERVAL_SECONDS)
        logger.warning(f"tmux window {name} still listed after closing it")

    def schedule_window_close(self, name: str, navigate_to: Optional[str] = None,
                              delay: int = SCHEDULED_CLOSE_DELAY_SECONDS) -> None:
        """Close a window shortly after this process exits.

        The tmux server runs the delayed command in the background, so it does
        not depend on the current process or on the shell inside the window
        being closed. Failures are logged, never raised.
        """
        steps = [f"sleep {delay}"]
        if navigate_to:
            steps.append(f"tmux select-window -t {shlex.quote('=' + navigate_to)}")
        steps.append(f"tmux kill-window -t {shlex.quote('=' + name)}")
        script = f"({'; '.join(steps)}) >/dev/null 2>&1"
        try:
            self._tmux("run-shell", "-b", script)
            logger.info(f"Scheduled close of tmux window {name}")
        except (MultiplexerError, CliNotFoundError) as e:
            logger.warning(f"Could not schedule close of tmux window {name}: {e}")
