"""Pytest fixtures for workmux tests"""
import os
import stat
import tempfile
from pathlib import Path
from typing import Optional

import git
import pytest

from workmux.config import Config
from workmux.core import Workflow, WorkflowContext
from workmux.exceptions import MultiplexerNotRunning, TabExistsError


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(os.path.realpath(tmpdir))


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, temp_dir):
    """Keep tests away from the user's cwd, tmux session and config."""
    monkeypatch.chdir(os.getcwd())
    monkeypatch.delenv("TMUX", raising=False)
    monkeypatch.delenv("TMUX_PANE", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(temp_dir / "xdg"))


@pytest.fixture
def git_repo(temp_dir):
    """A real repository with one commit on main and no remote.

    Worktrees are created next to it under test_repo__worktrees/.
    """
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()
    repo = git.Repo.init(repo_path)

    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Workmux Tester")
        writer.set_value("user", "email", "tester@workmux.invalid")

    (repo_path / "README.md").write_text("# Test Repository\n")
    repo.git.add("README.md")
    repo.git.commit("-m", "Initial commit")
    # Independent of the user's init.defaultBranch
    repo.git.branch("-M", "main")

    yield repo

    repo.close()


@pytest.fixture
def repo_path(git_repo):
    return Path(git_repo.working_dir)


def commit_file(path: Path, name: str, content: str = "content\n", message: Optional[str] = None) -> str:
    """Write a file in a worktree and commit it. Returns the new commit sha."""
    repo = git.Repo(path)
    try:
        file_path = Path(path) / name
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content)
        repo.git.add(name)
        repo.git.commit("-m", message or f"Add {name}")
        return repo.git.rev_parse("HEAD")
    finally:
        repo.close()


def worktree_path(repo_path: Path, branch: str) -> Path:
    return repo_path.parent / f"{repo_path.name}__worktrees" / branch


class FakeTmux:
    """In-memory stand-in for TmuxService."""

    def __init__(self, running: bool = True):
        self.running = running
        self.windows = {}
        self.current_window: Optional[str] = None
        self.selected: Optional[str] = None
        self.layouts = []
        self.closed = []
        self.scheduled = []

    def ensure_running(self):
        if not self.running:
            raise MultiplexerNotRunning()

    def list_window_names(self):
        return list(self.windows)

    def window_exists(self, name):
        return name in self.windows

    def current_window_name(self):
        return self.current_window

    def create_window(self, name, cwd, focus=True):
        if name in self.windows:
            raise TabExistsError(name)
        self.windows[name] = Path(cwd)
        return f"%{len(self.windows)}"

    def layout_panes(self, first_pane_id, panes, cwd):
        self.layouts.append((first_pane_id, list(panes), Path(cwd)))
        return [first_pane_id]

    def select_window(self, name):
        self.selected = name

    def close_window_and_wait(self, name):
        self.windows.pop(name, None)
        self.closed.append(name)

    def schedule_window_close(self, name, navigate_to=None, delay=1):
        self.scheduled.append((name, navigate_to))


@pytest.fixture
def fake_tmux():
    return FakeTmux()


@pytest.fixture
def make_workflow(repo_path, fake_tmux):
    """Factory building a Workflow on the test repository with a fake tmux."""

    def _make(config: Optional[Config] = None, cwd: Optional[Path] = None) -> Workflow:
        context = WorkflowContext(cwd or repo_path, config=config or Config(), tmux=fake_tmux)
        return Workflow(context)

    return _make


@pytest.fixture
def fake_editor(temp_dir, monkeypatch):
    """Point GIT_EDITOR at a script that writes a fixed commit message."""
    script = temp_dir / "fake_editor.sh"
    script.write_text('#!/bin/sh\necho "Commit from editor" > "$1"\n')
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    monkeypatch.setenv("GIT_EDITOR", str(script))
    return script
