"""Logging configuration for workmux

Log output goes to stderr so it never mixes with command output such as the
`workmux list` table. With --debug a full log of the run is also written to
~/.workmux/workmux.log.
"""
import logging
import sys
from pathlib import Path

LOG_DIR = Path.home() / '.workmux'
LOG_FILE_NAME = 'workmux.log'

DETAILED_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
SHORT_FORMAT = '[%(name)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# GitPython loggers; only interesting when debugging. Our own modules log as
# git.operations, git.worktrees, etc. and must not be listed here.
NOISY_LOGGERS = ('git.cmd', 'git.config', 'git.remote', 'git.repo', 'git.util')


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name when stderr is a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None or not sys.stderr.isatty():
            return super().format(record)
        # Color a copy so other handlers (the log file) stay plain
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _level_for(verbose: bool, debug: bool) -> int:
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    return logging.WARNING


def _file_handler() -> logging.Handler:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(LOG_DIR / LOG_FILE_NAME, mode='w')
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt=DETAILED_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """
    Configure logging for a workmux run.

    Args:
        verbose: Show INFO messages (worktree, window and hook steps)
        debug: Show DEBUG messages including every git and tmux command,
            and write them to ~/.workmux/workmux.log
    """
    level = _level_for(verbose, debug)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    if debug:
        console_handler.setFormatter(ColoredFormatter(fmt=DETAILED_FORMAT, datefmt=DATE_FORMAT))
    else:
        console_handler.setFormatter(ColoredFormatter(fmt=SHORT_FORMAT))
    root_logger.addHandler(console_handler)

    if debug:
        root_logger.addHandler(_file_handler())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger named after the module without the package prefix, e.g. ``git.worktrees``."""
    for prefix in ('workmux.', 'services.'):
        if name.startswith(prefix):
            name = name[len(prefix):]
    return logging.getLogger(name)
