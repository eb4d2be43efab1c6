"""Commit resolution: which commit does a published crate correspond to."""
import logging
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from crate_verify.core.errors import GitOperationError, ResolutionError, ResolutionFailureKind
from crate_verify.repository.git import CommitRef, GitBackend, is_commit_id

logger = logging.getLogger(__name__)


class ResolutionStrategy(str, Enum):
    ANNOUNCED = "announced"
    TAG = "tag"
    DEFAULT_BRANCH = "default_branch"


class Resolution(BaseModel):
    """Outcome of commit resolution and how it was reached."""

    commit: CommitRef
    strategy: ResolutionStrategy
    warnings: List[str] = Field(default_factory=list)

    @property
    def reduced_confidence(self) -> bool:
        return self.strategy == ResolutionStrategy.DEFAULT_BRANCH


def _resolve_announced(
    backend: GitBackend,
    head: str,
    announced_id: str,
) -> CommitRef:
    """Accept the announced commit if it is head or one of head's ancestors.

    Raises:
        ResolutionError: NOT_IN_HISTORY if rejected or unloadable
    """
    commit_id = announced_id.strip().lower()
    if not is_commit_id(commit_id):
        raise ResolutionError(
            f"Announced commit '{announced_id}' is not a valid commit id",
            kind=ResolutionFailureKind.NOT_IN_HISTORY,
        )

    if commit_id != head.lower() and not backend.is_ancestor(commit_id, head):
        raise ResolutionError(
            f"Commit {commit_id} is not in default branch history",
            kind=ResolutionFailureKind.NOT_IN_HISTORY,
        )

    try:
        return backend.load_commit(commit_id)
    except GitOperationError as e:
        raise ResolutionError(
            f"Commit {commit_id} is in history but cannot be loaded: {e}",
            kind=ResolutionFailureKind.NOT_IN_HISTORY,
        ) from e


def _resolve_version_tag(backend: GitBackend, version: str) -> CommitRef:
    """Find a tag named after the version (``1.2.3`` then ``v1.2.3``).

    When a pattern matches several tags the first one listed by the backend
    wins.

    Raises:
        ResolutionError: NO_MATCHING_TAG if no tag matches
    """
    for candidate in (version, f"v{version}"):
        tags = backend.tags_matching(candidate)
        if not tags:
            continue

        tag = tags[0]
        if len(tags) > 1:
            logger.warning(f"Several tags match {candidate}: {', '.join(tags)}; using {tag}")

        commit = backend.load_commit(backend.resolve_tag(tag))
        logger.info(f"Found matching version tag {tag} pointing to commit {commit.describe()}")
        return commit

    raise ResolutionError(
        f"No tag named {version} or v{version}",
        kind=ResolutionFailureKind.NO_MATCHING_TAG,
    )


def resolve_commit_with_strategy(
    backend: GitBackend,
    head: str,
    announced_id: Optional[str],
    version: str,
) -> Resolution:
    """Resolve the commit a crate was packaged from.

    1. The announced commit (from .cargo_vcs_info.json), if it is the default
       branch head or one of its ancestors.
    2. Otherwise a tag named ``version`` or ``v{version}``.

    Args:
        backend: Cloned repository
        head: Default branch head commit SHA
        announced_id: Commit SHA recorded by the registry, if any
        version: Published crate version

    Returns:
        Resolution with the commit and the strategy that found it

    Raises:
        ResolutionError: UNRESOLVABLE if neither strategy finds a commit;
            ``attempts`` lists the individual failures
        GitOperationError: If the backend itself fails
    """
    attempts: List[ResolutionError] = []
    warnings: List[str] = []

    if announced_id:
        logger.info(f"Sha1 announced by the registry is {announced_id}")
        try:
            commit = _resolve_announced(backend, head, announced_id)
            logger.info(f"Commit is in history: {commit.describe()}")
            return Resolution(commit=commit, strategy=ResolutionStrategy.ANNOUNCED)
        except ResolutionError as e:
            logger.warning(str(e))
            attempts.append(e)
            warnings.append(str(e))
    else:
        message = "No sha1 announced by the registry, crate packaged with --allow-dirty"
        logger.warning(message)
        warnings.append(message)

    logger.info("Trying to find matching version tag")
    try:
        commit = _resolve_version_tag(backend, version)
        return Resolution(commit=commit, strategy=ResolutionStrategy.TAG, warnings=warnings)
    except ResolutionError as e:
        logger.warning(str(e))
        attempts.append(e)

    raise ResolutionError(
        f"Cannot resolve a commit for version {version}",
        kind=ResolutionFailureKind.UNRESOLVABLE,
        attempts=attempts,
    )


def resolve_commit(
    backend: GitBackend,
    head: str,
    announced_id: Optional[str],
    version: str,
) -> CommitRef:
    """Resolve the commit a crate was packaged from (see resolve_commit_with_strategy)."""
    return resolve_commit_with_strategy(backend, head, announced_id, version).commit
