"""Verification pipeline: registry archive vs. repository source."""
import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from pydantic import BaseModel, Field

from crate_verify.core.config import VerifyConfig
from crate_verify.core.errors import ManifestError, MissingRepositoryError, ResolutionError
from crate_verify.crate.locator import locate_source_root
from crate_verify.crate.manifest import (
    BUILD_SCRIPT_FILE,
    ManifestInfo,
    VcsInfo,
    read_manifest,
    read_vcs_info,
)
from crate_verify.crate.registry import download_crate
from crate_verify.diff.differ import diff_directories
from crate_verify.diff.schemas import DiffReport
from crate_verify.repository.git import CommitRef, GitRepository, clone_repository
from crate_verify.repository.resolver import ResolutionStrategy, resolve_commit_with_strategy
from crate_verify.repository.url import CanonicalRepo, normalize_repository_url

logger = logging.getLogger(__name__)


class VerificationReport(BaseModel):
    """Result of comparing a published crate with its repository."""

    crate_name: str
    version: str
    repository: CanonicalRepo
    commit: CommitRef
    strategy: ResolutionStrategy
    reduced_confidence: bool = Field(default=False, description="True if no commit could be matched to the crate")
    warnings: List[str] = Field(default_factory=list)
    source_subpath: Optional[str] = Field(default=None, description="Crate directory inside the repository")
    build_script: Optional[str] = Field(default=None, description="package.build from Cargo.toml")
    has_build_rs: bool = False
    diff: DiffReport

    @property
    def matches(self) -> bool:
        return self.diff.is_empty


@contextmanager
def _work_directory(work_dir: Optional[Path]) -> Iterator[Path]:
    """Yield work_dir, or a temporary directory removed on exit."""
    if work_dir is not None:
        work_dir = Path(work_dir)
        work_dir.mkdir(parents=True, exist_ok=True)
        yield work_dir
        return

    with tempfile.TemporaryDirectory(prefix="crate-verify-") as tmpdir:
        yield Path(tmpdir)


def verify_source(
    archive_dir: Path,
    manifest: ManifestInfo,
    vcs_info: Optional[VcsInfo],
    repo: GitRepository,
    repository: CanonicalRepo,
    version: str,
    config: Optional[VerifyConfig] = None,
) -> VerificationReport:
    """Resolve the commit, locate the crate and diff it against the archive.

    Raises:
        CrateNotFoundError: If the crate cannot be found in the repository
        GitOperationError: If the clone is unusable
        DiffError: If a tree cannot be hashed
    """
    config = config or VerifyConfig()
    archive_dir = Path(archive_dir)
    warnings: List[str] = []

    head = repo.head()
    logger.info(f"Default branch is {repo.default_branch()}")

    announced_id = vcs_info.sha1 if vcs_info is not None else None
    try:
        resolution = resolve_commit_with_strategy(repo, head, announced_id, version)
        commit, strategy = resolution.commit, resolution.strategy
        warnings.extend(resolution.warnings)
    except ResolutionError as e:
        for attempt in e.attempts:
            if str(attempt) not in warnings:
                warnings.append(str(attempt))
        message = f"{e}; comparing against default branch head {head[:12]}"
        logger.warning(message)
        warnings.append(message)
        commit = repo.load_commit(head)
        strategy = ResolutionStrategy.DEFAULT_BRANCH

    repo.checkout(commit.id)

    hint = (vcs_info.subpath if vcs_info is not None else None) or repository.subpath
    source_root = locate_source_root(repo.path, hint, manifest.package_name)
    repo_root = repo.path.resolve()
    source_subpath = source_root.relative_to(repo_root).as_posix()

    has_build_rs = (archive_dir / BUILD_SCRIPT_FILE).is_file()
    if has_build_rs:
        logger.info("Has build.rs script")
    if manifest.build_script is not None:
        logger.info(f"Has build script configuration, build = {manifest.build_script}")

    diff = diff_directories(archive_dir, source_root, config.exclude, config.hash_workers)

    return VerificationReport(
        crate_name=manifest.package_name,
        version=version,
        repository=repository,
        commit=commit,
        strategy=strategy,
        reduced_confidence=strategy == ResolutionStrategy.DEFAULT_BRANCH,
        warnings=warnings,
        source_subpath=None if source_subpath == "." else source_subpath,
        build_script=manifest.build_script,
        has_build_rs=has_build_rs,
        diff=diff,
    )


def verify_archive(
    archive_dir: Path,
    config: Optional[VerifyConfig] = None,
    work_dir: Optional[Path] = None,
    version: Optional[str] = None,
) -> VerificationReport:
    """Verify an already unpacked crate archive against its repository.

    Raises:
        ManifestError: If the archive's Cargo.toml is missing or invalid
        MissingRepositoryError: If the manifest has no repository URL
        InvalidUrlError: If the repository URL cannot be normalized
        GitOperationError: If the clone fails
        CrateNotFoundError: If the crate cannot be found in the repository
    """
    config = config or VerifyConfig()
    archive_dir = Path(archive_dir)

    manifest = read_manifest(archive_dir)
    if not manifest.package_name:
        raise ManifestError(f"{archive_dir} has no [package] name in its Cargo.toml")
    if not manifest.repository_url:
        raise MissingRepositoryError(f"No repository URL configured on crate {manifest.package_name}")

    version = version or manifest.version
    if not version:
        raise ManifestError(f"No version known for crate {manifest.package_name}")

    repository = normalize_repository_url(manifest.repository_url)
    logger.info(f"Repository is {repository.clone_url}, subpath is {repository.subpath}")

    vcs_info = read_vcs_info(archive_dir)

    with _work_directory(work_dir) as root:
        clone_dir = root / "repo"
        if clone_dir.exists():
            logger.info(f"Removing previous clone at {clone_dir}")
            shutil.rmtree(clone_dir)
        repo = clone_repository(
            repository.clone_url,
            clone_dir,
            timeout=config.clone_timeout,
            git_timeout=config.git_timeout,
        )
        return verify_source(archive_dir, manifest, vcs_info, repo, repository, version, config)


def verify_crate(
    name: str,
    version: str,
    config: Optional[VerifyConfig] = None,
    work_dir: Optional[Path] = None,
) -> VerificationReport:
    """Download a crate from the registry and verify it against its repository."""
    config = config or VerifyConfig()
    with _work_directory(work_dir) as root:
        archive_dir = download_crate(name, version, root / "registry", config)
        return verify_archive(archive_dir, config, work_dir=root, version=version)
