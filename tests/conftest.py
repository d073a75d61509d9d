"""Shared pytest fixtures for postdesk tests."""

import shutil
import subprocess
from pathlib import Path

import pytest

from postdesk.config import Settings


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "git: mark test as needing the git executable"
    )


def pytest_collection_modifyitems(config, items):
    """Skip git tests when git is not installed."""
    if shutil.which("git") is not None:
        return
    skip_git = pytest.mark.skip(reason="git executable not available")
    for item in items:
        if "git" in item.keywords:
            item.add_marker(skip_git)


def git(cwd: Path, *args: str) -> str:
    """Run a git command in *cwd* and return its stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def _init_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "-q", "-b", "main")
    git(path, "config", "user.name", "Test Author")
    git(path, "config", "user.email", "author@example.com")
    git(path, "config", "commit.gpgsign", "false")
    (path / "README.md").write_text("# Blog\n", encoding="utf-8")
    git(path, "add", "README.md")
    git(path, "commit", "-q", "-m", "Initial commit")
    return path


@pytest.fixture
def run_git():
    """The ``git(cwd, *args)`` helper, for tests that set up repositories."""
    return git


@pytest.fixture
def workspace_dir(tmp_path):
    """A plain directory (no repository)."""
    root = tmp_path / "plain"
    root.mkdir()
    return root


@pytest.fixture
def repo_dir(tmp_path):
    """A repository with one commit and no remote."""
    return _init_repo(tmp_path / "blog")


@pytest.fixture
def bare_remote(tmp_path):
    remote = tmp_path / "remote.git"
    git(tmp_path, "init", "-q", "--bare", "-b", "main", str(remote))
    return remote


@pytest.fixture
def repo_with_remote(repo_dir, bare_remote):
    """A repository whose ``origin`` accepts pushes."""
    git(repo_dir, "remote", "add", "origin", str(bare_remote))
    git(repo_dir, "push", "-q", "origin", "main")
    return repo_dir


@pytest.fixture
def repo_with_broken_remote(repo_dir, tmp_path):
    """A repository whose ``origin`` points at a path that does not exist."""
    git(repo_dir, "remote", "add", "origin", str(tmp_path / "missing.git"))
    return repo_dir


@pytest.fixture
def make_settings():
    def _make(root: Path, **overrides) -> Settings:
        values = {"workspace_root": str(root)}
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def settings(workspace_dir, make_settings):
    return make_settings(workspace_dir)
