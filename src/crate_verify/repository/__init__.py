"""Repository handling: URL normalization, git access, commit resolution."""
from crate_verify.core.errors import InvalidUrlError, ResolutionError
from crate_verify.repository.git import CommitRef, GitBackend, GitRepository, clone_repository
from crate_verify.repository.resolver import (
    Resolution,
    ResolutionStrategy,
    resolve_commit,
    resolve_commit_with_strategy,
)
from crate_verify.repository.url import CanonicalRepo, normalize_repository_url

__all__ = [
    "CanonicalRepo",
    "CommitRef",
    "GitBackend",
    "GitRepository",
    "InvalidUrlError",
    "Resolution",
    "ResolutionError",
    "ResolutionStrategy",
    "clone_repository",
    "normalize_repository_url",
    "resolve_commit",
    "resolve_commit_with_strategy",
]
