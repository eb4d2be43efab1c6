"""Locate a crate's source root inside a cloned repository."""
import logging
import os
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional

from crate_verify.core.config import VCS_METADATA_DIRS
from crate_verify.core.errors import CrateNotFoundError
from crate_verify.crate.manifest import MANIFEST_FILE, read_package_name

logger = logging.getLogger(__name__)


def _safe_subpath(subpath: Optional[str]) -> Optional[PurePosixPath]:
    """Return subpath as a relative path, or None if it is empty or escapes the root."""
    if not subpath:
        return None
    candidate = PurePosixPath(subpath.replace("\\", "/"))
    if candidate.is_absolute() or ".." in candidate.parts:
        logger.warning(f"Ignoring subpath outside of the repository: {subpath}")
        return None
    if candidate == PurePosixPath("."):
        return None
    return candidate


def iter_manifests(repo_root: Path) -> Iterator[Path]:
    """Yield every Cargo.toml under repo_root, depth-first in lexical order.

    A directory's own manifest comes before those of its subdirectories.
    VCS metadata directories and directory symlinks are not entered. The
    walk is lazy: stopping iteration stops the walk.
    """
    for dirpath, dirnames, filenames in os.walk(repo_root, topdown=True):
        dirnames[:] = sorted(d for d in dirnames if d not in VCS_METADATA_DIRS)
        if MANIFEST_FILE in filenames:
            yield Path(dirpath) / MANIFEST_FILE


def is_crate_with_name(path: Path, package_name: str) -> bool:
    """Return True if path holds a Cargo.toml declaring package_name."""
    return read_package_name(path) == package_name


def find_crate(repo_root: Path, package_name: str) -> Optional[Path]:
    """Scan repo_root for the first manifest declaring package_name."""
    for manifest_path in iter_manifests(repo_root):
        if read_package_name(manifest_path.parent) == package_name:
            return manifest_path.parent
    return None


def locate_source_root(
    repo_root: Path,
    subpath: Optional[str],
    package_name: str,
) -> Path:
    """Find the directory holding the crate's Cargo.toml.

    The hinted subpath is tried first; only if it does not declare the
    crate is the whole repository scanned.

    Args:
        repo_root: Working tree of the cloned repository
        subpath: Hinted crate directory relative to repo_root
        package_name: Crate name to look for

    Returns:
        Absolute path of the crate's source root

    Raises:
        CrateNotFoundError: If no manifest declares package_name
    """
    repo_root = Path(repo_root).resolve()

    hint = _safe_subpath(subpath)
    candidate = repo_root / hint if hint is not None else repo_root
    if is_crate_with_name(candidate, package_name):
        logger.info(f"Found crate {package_name} in {candidate}")
        return candidate

    logger.info(f"No crate {package_name} at {candidate}, looking for crate")
    found = find_crate(repo_root, package_name)
    if found is None:
        raise CrateNotFoundError(
            f"No Cargo.toml in {repo_root} declares package '{package_name}'"
        )

    logger.info(f"Found crate {package_name} in {found}")
    return found
