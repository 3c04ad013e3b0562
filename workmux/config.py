"""Configuration handling for workmux

Configuration comes from two YAML files: a global one under the XDG config
directory and an optional `.workmux.yaml` in the repository root. Keys set in
the repository file replace the global value for that key as a whole; lists
and nested mappings are never merged element-wise.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from workmux.constants import (
    AGENT_PLACEHOLDER,
    DEFAULT_WINDOW_PREFIX,
    GLOBAL_CONFIG_DIR,
    GLOBAL_CONFIG_FILE,
    REPO_CONFIG_FILES,
)
from workmux.exceptions import ConfigError
from workmux.logging_config import get_logger

logger = get_logger(__name__)

SPLIT_DIRECTIONS = ("horizontal", "vertical")


@dataclass
class PaneConfig:
    """One pane of a window layout."""

    command: Optional[str] = None
    split: Optional[str] = None  # horizontal, vertical; None only for the first pane
    size: Optional[int] = None  # percentage of the pane being split
    focus: bool = False

    def __post_init__(self):
        if self.command is not None and not isinstance(self.command, str):
            raise ConfigError(f"pane command must be a string, got {self.command!r}")
        if self.split is not None and self.split not in SPLIT_DIRECTIONS:
            raise ConfigError(
                f"pane split must be one of {list(SPLIT_DIRECTIONS)}, got '{self.split}'"
            )
        if self.size is not None:
            if isinstance(self.size, bool) or not isinstance(self.size, int) or not 1 <= self.size <= 99:
                raise ConfigError(f"pane size must be an integer between 1 and 99, got {self.size!r}")
        if not isinstance(self.focus, bool):
            raise ConfigError(f"pane focus must be true or false, got {self.focus!r}")

    @classmethod
    def from_dict(cls, pane_dict: dict) -> "PaneConfig":
        """Create a PaneConfig from a mapping."""
        if not isinstance(pane_dict, dict):
            raise ConfigError(f"each pane must be a mapping, got {pane_dict!r}")
        unknown = set(pane_dict) - {"command", "split", "size", "focus"}
        if unknown:
            raise ConfigError(f"unknown pane keys: {', '.join(sorted(unknown))}")
        return cls(**pane_dict)

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {}
        if self.command is not None:
            data["command"] = self.command
        if self.split is not None:
            data["split"] = self.split
        if self.size is not None:
            data["size"] = self.size
        if self.focus:
            data["focus"] = True
        return data


@dataclass
class FileRules:
    """Glob patterns materialized into new worktrees."""

    copy: List[str] = field(default_factory=list)
    symlink: List[str] = field(default_factory=list)

    def __post_init__(self):
        _validate_string_list("files.copy", self.copy)
        _validate_string_list("files.symlink", self.symlink)

    @property
    def is_empty(self) -> bool:
        return not self.copy and not self.symlink

    @classmethod
    def from_dict(cls, files_dict: Optional[dict]) -> "FileRules":
        if files_dict is None:
            return cls()
        if not isinstance(files_dict, dict):
            raise ConfigError(f"files must be a mapping with copy/symlink lists, got {files_dict!r}")
        unknown = set(files_dict) - {"copy", "symlink"}
        if unknown:
            raise ConfigError(f"unknown files keys: {', '.join(sorted(unknown))}")
        return cls(
            copy=files_dict.get("copy") or [],
            symlink=files_dict.get("symlink") or [],
        )

    def to_dict(self) -> dict:
        return {"copy": list(self.copy), "symlink": list(self.symlink)}


def _validate_string_list(key: str, value) -> None:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{key} must be a list of strings, got {value!r}")


@dataclass
class Config:
    """Effective workmux configuration with validation."""

    panes: List[PaneConfig] = field(default_factory=list)
    post_create: List[str] = field(default_factory=list)
    pre_delete: List[str] = field(default_factory=list)
    files: FileRules = field(default_factory=FileRules)
    window_prefix: str = DEFAULT_WINDOW_PREFIX
    agent: Optional[str] = None
    main_branch: Optional[str] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_panes()
        _validate_string_list("post_create", self.post_create)
        _validate_string_list("pre_delete", self.pre_delete)
        self._validate_window_prefix()
        self._validate_optional_string("agent")
        self._validate_optional_string("main_branch")

    def _validate_panes(self):
        """Validate the pane layout as a whole."""
        if not isinstance(self.panes, list):
            raise ConfigError("panes must be a list")
        for index, pane in enumerate(self.panes):
            if index == 0 and pane.split is not None:
                raise ConfigError("the first pane already exists and cannot declare 'split'")
            if index > 0 and pane.split is None:
                raise ConfigError(f"pane {index + 1} must declare 'split' (horizontal or vertical)")
            if index == 0 and pane.size is not None:
                raise ConfigError("the first pane cannot declare 'size'")
        focused = [pane for pane in self.panes if pane.focus]
        if len(focused) > 1:
            raise ConfigError("only one pane can have focus: true")

    def _validate_window_prefix(self):
        """Validate window_prefix is a non-empty string."""
        if not isinstance(self.window_prefix, str) or not self.window_prefix.strip():
            raise ConfigError("window_prefix cannot be empty")
        self.window_prefix = self.window_prefix.strip()

    def _validate_optional_string(self, key: str):
        value = getattr(self, key)
        if value is None:
            return
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"{key} must be a non-empty string")
        setattr(self, key, value.strip())

    def window_name(self, branch_name: str) -> str:
        """Name of the tmux window that belongs to a branch."""
        return f"{self.window_prefix}-{branch_name}"

    def pane_command(self, pane: PaneConfig) -> Optional[str]:
        """Resolve the command a pane should run, substituting the agent."""
        if pane.command is None:
            return None
        if pane.command.strip() == AGENT_PLACEHOLDER:
            if not self.agent:
                logger.warning(f"Pane command is {AGENT_PLACEHOLDER} but no agent is configured")
                return None
            return self.agent
        return pane.command

    def to_dict(self) -> dict:
        """Convert config to a dictionary."""
        return {
            "panes": [pane.to_dict() for pane in self.panes],
            "post_create": list(self.post_create),
            "pre_delete": list(self.pre_delete),
            "files": self.files.to_dict(),
            "window_prefix": self.window_prefix,
            "agent": self.agent,
            "main_branch": self.main_branch,
        }

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        known_fields = {
            "panes",
            "post_create",
            "pre_delete",
            "files",
            "window_prefix",
            "agent",
            "main_branch",
        }
        unknown = set(config_dict) - known_fields
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")

        filtered = {k: v for k, v in config_dict.items() if k in known_fields and v is not None}
        if "panes" in filtered:
            if not isinstance(filtered["panes"], list):
                raise ConfigError("panes must be a list")
            filtered["panes"] = [PaneConfig.from_dict(p) for p in filtered["panes"]]
        if "files" in filtered:
            filtered["files"] = FileRules.from_dict(filtered["files"])
        return cls(**filtered)


def merge_config_dicts(global_config: dict, repo_config: dict) -> dict:
    """Combine global and repository settings.

    Every key present in ``repo_config`` replaces the global value wholesale.
    Keys explicitly set to null in the repository file count as absent.
    """
    merged = dict(global_config)
    for key, value in repo_config.items():
        if value is not None:
            merged[key] = value
    return merged


def global_config_path() -> Path:
    """Location of the user-wide configuration file."""
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / GLOBAL_CONFIG_DIR / GLOBAL_CONFIG_FILE


def find_repo_config(repo_root: Path) -> Optional[Path]:
    """Return the repository config file if one exists."""
    for name in REPO_CONFIG_FILES:
        candidate = Path(repo_root) / name
        if candidate.is_file():
            return candidate
    return None


def load_yaml_file(path: Path) -> dict:
    """Read a YAML mapping from ``path``; a missing or empty file yields {}."""
    if not path.is_file():
        return {}
    try:
        with open(path, encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def load_config(repo_root: Path, global_path: Optional[Path] = None) -> Config:
    """Resolve the effective configuration for a repository.

    Args:
        repo_root: Root of the main worktree
        global_path: Override for the global config file location

    Returns:
        Validated Config
    """
    global_path = global_path or global_config_path()
    repo_path = find_repo_config(repo_root)

    global_data = load_yaml_file(global_path)
    repo_data = load_yaml_file(repo_path) if repo_path else {}
    logger.debug(f"Loaded config: global={global_path} ({len(global_data)} keys), "
                 f"repo={repo_path} ({len(repo_data)} keys)")

    try:
        return Config.from_dict(merge_config_dicts(global_data, repo_data))
    except ConfigError as e:
        sources = ", ".join(str(p) for p in (global_path, repo_path) if p and p.is_file())
        raise ConfigError(f"{e} (in {sources or 'defaults'})")
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}")
