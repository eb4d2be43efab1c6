"""Repository URL normalization: registry URL -> clonable git URL + subpath."""
import logging
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crate_verify.core.errors import InvalidUrlError

logger = logging.getLogger(__name__)

GIT_SUFFIX = ".git"
GITHUB_HOST = "github.com"

# /org/repo/tree/<ref>/<path...> splits into at least 6 segments
GITHUB_TREE_MIN_SEGMENTS = 6


class CanonicalRepo(BaseModel):
    """A directly clonable repository URL plus an optional crate subpath."""

    clone_url: str = Field(..., description="Absolute URL accepted by git clone")
    subpath: Optional[str] = Field(default=None, description="Crate directory inside the repository")

    model_config = ConfigDict(frozen=True)

    @field_validator("subpath")
    @classmethod
    def validate_subpath_relative(cls, v: Optional[str]) -> Optional[str]:
        """Ensure subpath is relative and uses POSIX separators."""
        if v is None:
            return v
        if v.startswith("/"):
            raise ValueError(f"subpath must be relative, got: {v}")
        return v


def _with_git_suffix(value: str) -> str:
    return value if value.endswith(GIT_SUFFIX) else value + GIT_SUFFIX


def normalize_repository_url(raw_url: str) -> CanonicalRepo:
    """Turn the repository URL typed by a crate author into a clone URL.

    Examples:
        https://github.com/org/repo -> https://github.com/org/repo.git
        https://github.com/org/repo/tree/main/sub/dir
            -> https://github.com/org/repo.git, subpath "sub/dir"
        https://gitlab.com/group/project -> https://gitlab.com/group/project.git

    Raises:
        InvalidUrlError: If the URL is not absolute, has no host, or is a
            GitHub URL without an organization/repository pair
    """
    url = (raw_url or "").strip()
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidUrlError(f"Cannot parse repository URL '{raw_url}': {e}") from e

    if not parsed.scheme or not parsed.netloc or not parsed.hostname:
        raise InvalidUrlError(f"Repository URL '{raw_url}' is not an absolute URL with a host")

    if url.endswith(GIT_SUFFIX):
        return CanonicalRepo(clone_url=url)

    if parsed.hostname == GITHUB_HOST:
        segments = parsed.path.split("/")
        if len(segments) < 3 or not segments[1] or not segments[2]:
            raise InvalidUrlError(
                f"GitHub URL '{raw_url}' does not reference an organization/repository pair"
            )

        org, repo = segments[1], segments[2]
        clone_url = f"{parsed.scheme}://{parsed.netloc}/{org}/{_with_git_suffix(repo)}"

        subpath = None
        if len(segments) >= GITHUB_TREE_MIN_SEGMENTS:
            rest = [s for s in segments[5:] if s]
            subpath = "/".join(rest) or None

        logger.debug(f"Normalized {raw_url} -> {clone_url} (subpath={subpath})")
        return CanonicalRepo(clone_url=clone_url, subpath=subpath)

    clone_url = _with_git_suffix(f"{parsed.scheme}://{parsed.netloc}{parsed.path.rstrip('/')}")
    logger.debug(f"Normalized {raw_url} -> {clone_url}")
    return CanonicalRepo(clone_url=clone_url)
