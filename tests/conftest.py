"""Pytest fixtures for crate-verify tests."""
import fnmatch
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from crate_verify.core.errors import GitOperationError
from crate_verify.repository.git import CommitRef


def run_git(repo_path: Path, *args: str) -> str:
    """Run a git command in repo_path and return its stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo_path,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def write_manifest(directory: Path, name: str, version: str = "0.1.0", extra: str = "") -> Path:
    """Write a minimal Cargo.toml declaring a package."""
    directory.mkdir(parents=True, exist_ok=True)
    manifest = directory / "Cargo.toml"
    manifest.write_text(
        f'[package]\nname = "{name}"\nversion = "{version}"\nedition = "2021"\n{extra}'
    )
    return manifest


@pytest.fixture
def crate_repo_fixture(tmp_path: Path) -> Dict[str, any]:
    """Create a git workspace repository holding crate "alpha" in crates/alpha.

    History on main:
        first  - initial workspace, tagged v0.1.0 (annotated)
        head   - changes crates/alpha/src/lib.rs
    Branch side (not merged): side - commit whose parent is first

    Returns dict with:
        - path: Path to repo
        - first_sha, head_sha, side_sha: commit SHAs
        - crate_dir: Path to crates/alpha
    """
    repo_path = tmp_path / "crate_repo"
    repo_path.mkdir()

    run_git(repo_path, "init", "--quiet")
    run_git(repo_path, "checkout", "--quiet", "-b", "main")
    run_git(repo_path, "config", "user.email", "test@example.com")
    run_git(repo_path, "config", "user.name", "Test User")
    run_git(repo_path, "config", "commit.gpgsign", "false")
    run_git(repo_path, "config", "tag.gpgsign", "false")

    (repo_path / "Cargo.toml").write_text('[workspace]\nmembers = ["crates/*"]\n')
    crate_dir = repo_path / "crates" / "alpha"
    write_manifest(
        crate_dir,
        "alpha",
        extra='repository = "https://github.com/org/workspace"\n',
    )
    (crate_dir / "src").mkdir()
    (crate_dir / "src" / "lib.rs").write_text("pub fn alpha() -> u32 {\n    1\n}\n")
    write_manifest(repo_path / "crates" / "beta", "beta")

    run_git(repo_path, "add", ".")
    run_git(repo_path, "commit", "--quiet", "-m", "Initial workspace")
    first_sha = run_git(repo_path, "rev-parse", "HEAD")
    run_git(repo_path, "tag", "-a", "v0.1.0", "-m", "Release 0.1.0")

    run_git(repo_path, "checkout", "--quiet", "-b", "side")
    (repo_path / "SIDE.md").write_text("side branch\n")
    run_git(repo_path, "add", "SIDE.md")
    run_git(repo_path, "commit", "--quiet", "-m", "Side work")
    side_sha = run_git(repo_path, "rev-parse", "HEAD")

    run_git(repo_path, "checkout", "--quiet", "main")
    (crate_dir / "src" / "lib.rs").write_text("pub fn alpha() -> u32 {\n    2\n}\n")
    run_git(repo_path, "commit", "--quiet", "-am", "Bump alpha")
    head_sha = run_git(repo_path, "rev-parse", "HEAD")

    return {
        "path": repo_path,
        "first_sha": first_sha,
        "head_sha": head_sha,
        "side_sha": side_sha,
        "crate_dir": crate_dir,
    }


class FakeGitBackend:
    """In-memory commit graph implementing the GitBackend protocol.

    Records every tag lookup and ancestry query so tests can assert which
    strategies the resolver touched.
    """

    def __init__(
        self,
        commits: Dict[str, Tuple[List[str], str]],
        head: str,
        tags: Optional[Dict[str, str]] = None,
        unloadable: Optional[set] = None,
    ):
        self.commits = commits
        self._head = head
        self.tags = tags or {}
        self.unloadable = unloadable or set()
        self.tag_lookups: List[str] = []
        self.ancestry_checks: List[Tuple[str, str]] = []
        self.checked_out: Optional[str] = None

    def head(self) -> str:
        return self._head

    def load_commit(self, commit_id: str) -> CommitRef:
        if commit_id not in self.commits or commit_id in self.unloadable:
            raise GitOperationError(f"cannot load {commit_id}")
        _, message = self.commits[commit_id]
        return CommitRef(
            id=commit_id,
            message=message,
            timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        self.ancestry_checks.append((ancestor, descendant))
        pending = [descendant]
        seen = set()
        while pending:
            current = pending.pop()
            if current == ancestor:
                return True
            if current in seen or current not in self.commits:
                continue
            seen.add(current)
            pending.extend(self.commits[current][0])
        return False

    def tags_matching(self, pattern: str) -> List[str]:
        self.tag_lookups.append(pattern)
        return sorted(name for name in self.tags if fnmatch.fnmatchcase(name, pattern))

    def resolve_tag(self, name: str) -> str:
        return self.tags[name]

    def checkout(self, commit_id: str) -> None:
        self.checked_out = commit_id


A = "a" * 40
B = "b" * 40
C = "c" * 40
D = "d" * 40


@pytest.fixture
def make_backend():
    """Factory for FakeGitBackend with a custom graph."""
    return FakeGitBackend


@pytest.fixture
def fake_backend() -> FakeGitBackend:
    """Linear history A <- B <- C (head) plus D branching off A.

    Tags: 1.0.0 -> A, v1.1.0 -> B, 2.0.0-side -> D
    """
    commits = {
        A: ([], "Initial commit"),
        B: ([A], "Second commit"),
        C: ([B], "Head commit"),
        D: ([A], "Side commit"),
    }
    tags = {"1.0.0": A, "v1.1.0": B, "2.0.0-side": D}
    return FakeGitBackend(commits, head=C, tags=tags)
