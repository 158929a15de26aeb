"""Shared test fixtures."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest
import tomlkit

from modver.config import VersionerConfig
from modver.shell import LocalSandbox


class GitRepo:
    """A throwaway git working copy driven directly through subprocess."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def git(self, *args: str) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=self.root,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()

    def commit(self, message: str, path: str = "file.txt", content: str | None = None) -> str:
        """Write ``path`` (appending a line by default) and commit it."""
        target = self.root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        if content is None:
            previous = target.read_text() if target.exists() else ""
            content = previous + f"{message}\n"
        target.write_text(content)
        self.git("add", "--", path)
        self.git("commit", "-q", "-m", message)
        return self.head()

    def tag(self, name: str, ref: str = "HEAD") -> None:
        self.git("tag", "-a", name, "-m", f"Release {name}", ref)

    def head(self) -> str:
        return self.git("rev-parse", "HEAD")

    def tags(self) -> list[str]:
        return sorted(self.git("tag", "-l").splitlines())

    def status(self) -> str:
        return self.git("status", "--porcelain")

    def sandbox(self, namespace: str = ".") -> LocalSandbox:
        return LocalSandbox(self.root, namespace, timeout=30)


@pytest.fixture
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate git from the user's configuration and pin an identity."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GIT_CONFIG_COUNT", raising=False)
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Author")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "author@example.com")


@pytest.fixture
def git_repo(tmp_path: Path, git_env: None) -> GitRepo:
    """An empty repository on branch main."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    root = tmp_path / "repo"
    root.mkdir()
    repo = GitRepo(root)
    repo.git("init", "-q")
    repo.git("symbolic-ref", "HEAD", "refs/heads/main")
    return repo


@pytest.fixture
def remote_repo(tmp_path: Path, git_repo: GitRepo) -> GitRepo:
    """A bare repository registered as ``origin`` of git_repo."""
    root = tmp_path / "remote.git"
    root.mkdir()
    remote = GitRepo(root)
    remote.git("init", "-q", "--bare")
    remote.git("symbolic-ref", "HEAD", "refs/heads/main")
    git_repo.git("remote", "add", "origin", str(root))
    return remote


@pytest.fixture
def config() -> VersionerConfig:
    return VersionerConfig()


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    content = """\
[project]
name = "test-package"
# keep this comment
version = "1.0.0"
dependencies = [
    "requests>=2.0",
]
"""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "my-package"
version = "2.0.0"

[tool.modver]
tag-prefix = "release-"
push_retries = 5
"""
    return tomlkit.parse(content)
