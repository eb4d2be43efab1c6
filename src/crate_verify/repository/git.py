"""Git backend: a small capability interface and its subprocess implementation."""
import logging
import re
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crate_verify.core.errors import GitOperationError

logger = logging.getLogger(__name__)

COMMIT_ID_PATTERN = re.compile(r"^[0-9a-f]{40}$")

# NUL-separated so commit messages can contain anything else
_COMMIT_FORMAT = "%H%x00%ct%x00%B"


def is_commit_id(value: Optional[str]) -> bool:
    """Return True if value is a full 40-character hex commit id."""
    return bool(value) and COMMIT_ID_PATTERN.match(value.lower()) is not None


class CommitRef(BaseModel):
    """A resolved commit of the cloned repository."""

    id: str = Field(..., description="Full 40-character commit SHA")
    message: str = Field(default="", description="Full commit message")
    timestamp: datetime = Field(..., description="Committer timestamp (UTC)")

    model_config = ConfigDict(frozen=True)

    @field_validator("id")
    @classmethod
    def validate_commit_sha(cls, v: str) -> str:
        """Ensure id is a full lowercase hex SHA."""
        v = v.lower()
        if not COMMIT_ID_PATTERN.match(v):
            raise ValueError(f"commit id must be 40 hexadecimal characters; got '{v}'")
        return v

    @property
    def summary(self) -> str:
        """First line of the commit message."""
        lines = self.message.strip().splitlines()
        return lines[0] if lines else ""

    def describe(self) -> str:
        """One-line human description: id, date and summary."""
        return (
            f"{self.id} ({self.timestamp.strftime('%d/%m/%Y %H:%M')}): "
            f"{self.summary or 'no commit message'}"
        )


@runtime_checkable
class GitBackend(Protocol):
    """Operations the commit resolver needs from a cloned repository."""

    def head(self) -> str:
        ...

    def load_commit(self, commit_id: str) -> CommitRef:
        ...

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        ...

    def tags_matching(self, pattern: str) -> List[str]:
        ...

    def resolve_tag(self, name: str) -> str:
        ...

    def checkout(self, commit_id: str) -> None:
        ...


def _run_git(args: List[str], cwd: Optional[Path] = None, timeout: float = 60.0) -> subprocess.CompletedProcess:
    """Run a git command, converting launch failures and timeouts to GitOperationError."""
    command = ["git"] + args
    try:
        return subprocess.run(
            command,
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise GitOperationError(f"git {args[0]} timed out after {timeout}s") from e
    except OSError as e:
        raise GitOperationError(f"Cannot run git: {e}") from e


class GitRepository:
    """A local git clone driven through the git executable."""

    def __init__(self, path: Path, timeout: float = 60.0):
        self.path = Path(path)
        self.timeout = timeout

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        result = _run_git(["-C", str(self.path)] + list(args), timeout=self.timeout)
        if check and result.returncode != 0:
            raise GitOperationError(
                f"git {' '.join(args)} failed: {result.stderr.strip()}"
            )
        return result

    def head(self) -> str:
        """Commit SHA the default branch pointed to at clone time (HEAD)."""
        return self._git("rev-parse", "HEAD").stdout.strip()

    def default_branch(self) -> str:
        """Short name of the checked out branch, or 'HEAD' when detached."""
        result = self._git("symbolic-ref", "--short", "-q", "HEAD", check=False)
        return result.stdout.strip() or "HEAD"

    def has_commit(self, commit_id: str) -> bool:
        """Return True if the object database holds the commit."""
        return self._git("cat-file", "-e", f"{commit_id}^{{commit}}", check=False).returncode == 0

    def load_commit(self, commit_id: str) -> CommitRef:
        result = self._git("log", "-1", f"--format={_COMMIT_FORMAT}", f"{commit_id}^{{commit}}", "--")
        sha, seconds, message = result.stdout.split("\x00", 2)
        return CommitRef(
            id=sha.strip(),
            message=message.strip(),
            timestamp=datetime.fromtimestamp(int(seconds), tz=timezone.utc),
        )

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """Return True if ancestor is reachable from descendant's parents (or equal).

        Uses ``git merge-base --is-ancestor``; only when that query itself
        fails is the descendant's linear history scanned instead.
        """
        if not self.has_commit(ancestor):
            return False

        result = self._git("merge-base", "--is-ancestor", ancestor, descendant, check=False)
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False

        logger.warning(
            f"merge-base failed ({result.stderr.strip()}), scanning history of {descendant[:12]}"
        )
        history = self._git("rev-list", descendant).stdout.split()
        return ancestor.lower() in history

    def tags_matching(self, pattern: str) -> List[str]:
        """Tag names matching a git glob pattern, in git's (lexical) order."""
        result = self._git("tag", "--list", pattern)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def resolve_tag(self, name: str) -> str:
        """Commit SHA a tag points to; annotated tags are peeled."""
        return self._git("rev-parse", "--verify", f"refs/tags/{name}^{{commit}}").stdout.strip()

    def checkout(self, commit_id: str) -> None:
        """Check out a commit's tree (detached HEAD)."""
        logger.info(f"Checking out {commit_id[:12]}")
        self._git("-c", "advice.detachedHead=false", "checkout", "--quiet", commit_id)


def clone_repository(repo_url: str, target_path: Path, timeout: float = 600.0, git_timeout: float = 60.0) -> GitRepository:
    """Clone repo_url into target_path.

    Returns:
        GitRepository handle on the fresh clone

    Raises:
        GitOperationError: If git clone fails or times out
    """
    target_path = Path(target_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Cloning {repo_url} to {target_path}")
    result = _run_git(["clone", "--quiet", repo_url, str(target_path)], timeout=timeout)

    if result.returncode != 0:
        raise GitOperationError(
            f"Failed to clone {repo_url}: {result.stderr.strip()}"
        )

    return GitRepository(target_path, timeout=git_timeout)
