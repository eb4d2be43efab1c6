"""Content-hash diff of two directory trees."""
import hashlib
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from crate_verify.core.config import VCS_METADATA_DIRS
from crate_verify.core.errors import DiffError
from crate_verify.diff.schemas import DiffEntry, DiffKind, DiffReport, EncodingHint

logger = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 64 * 1024


def compute_file_hash(file_path: Path) -> str:
    """SHA-256 of a file, read in fixed-size chunks.

    Raises:
        DiffError: If the file cannot be read
    """
    hasher = hashlib.sha256()
    try:
        with open(file_path, "rb") as f:
            for block in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
                hasher.update(block)
    except OSError as e:
        raise DiffError(f"Cannot hash {file_path}: {e}") from e
    return hasher.hexdigest()


def is_utf8_file(file_path: Path) -> bool:
    """Return True if every line of the file decodes as UTF-8."""
    try:
        with open(file_path, "rb") as f:
            for line in f:
                line.decode("utf-8")
    except (OSError, UnicodeDecodeError):
        return False
    return True


def display_path(rel_path: str) -> str:
    """Printable form of a relative path.

    Name bytes that are not valid UTF-8 arrive from os.walk as surrogate
    escapes; they are rendered as \\xNN so the path can be serialized.
    """
    return os.fsencode(rel_path).decode("utf-8", "backslashreplace")


def _is_excluded(rel_path: str, exclude: Sequence[str]) -> bool:
    return any(fnmatch(rel_path, pattern) for pattern in exclude)


def list_tree_files(root: Path, exclude: Sequence[str] = ()) -> List[str]:
    """Relative paths, joined with "/", of the regular files under root.

    Symlinks and VCS metadata directories are skipped, as are paths
    matching any fnmatch pattern in exclude.
    """
    root = Path(root)
    if not root.is_dir():
        raise DiffError(f"Not a directory: {root}")

    files = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in VCS_METADATA_DIRS]
        for name in filenames:
            path = Path(dirpath) / name
            if path.is_symlink() or not path.is_file():
                continue
            rel_path = "/".join(path.relative_to(root).parts)
            if exclude and _is_excluded(rel_path, exclude):
                continue
            files.append(rel_path)
    files.sort()
    return files


def hash_tree(
    root: Path,
    exclude: Sequence[str] = (),
    executor: Optional[ThreadPoolExecutor] = None,
) -> Dict[str, str]:
    """Map each regular file's relative path under root to its SHA-256."""
    root = Path(root)
    rel_paths = list_tree_files(root, exclude)
    paths = [root / rel_path for rel_path in rel_paths]

    if executor is None:
        digests: Iterable[str] = map(compute_file_hash, paths)
    else:
        digests = executor.map(compute_file_hash, paths)

    hashes = dict(zip(rel_paths, digests))
    logger.debug(f"Hashed {len(hashes)} files in {root}")
    return hashes


def _encoding_hint(*paths: Path) -> EncodingHint:
    for path in paths:
        if path.is_file() and not is_utf8_file(path):
            return EncodingHint.BINARY
    return EncodingHint.TEXT


def diff_directories(
    left: Path,
    right: Path,
    exclude: Sequence[str] = (),
    workers: int = 4,
) -> DiffReport:
    """Compare two trees by content hash.

    Args:
        left: Left tree (the registry archive)
        right: Right tree (the crate in the repository)
        exclude: fnmatch patterns of relative paths to leave out
        workers: Hashing threads; 1 hashes sequentially

    Returns:
        DiffReport with a MODIFIED, ONLY_IN_LEFT or ONLY_IN_RIGHT entry
        for every differing path

    Raises:
        DiffError: If either tree is missing or a file cannot be read
    """
    left = Path(left)
    right = Path(right)
    logger.info(f"Diffing {left} and {right}")

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            left_future = executor.submit(hash_tree, left, exclude)
            right_hashes = hash_tree(right, exclude, executor)
            left_hashes = left_future.result()
    else:
        left_hashes = hash_tree(left, exclude)
        right_hashes = hash_tree(right, exclude)

    entries: Dict[str, DiffEntry] = {}

    for rel_path, digest in left_hashes.items():
        other = right_hashes.get(rel_path)
        if other is None:
            kind = DiffKind.ONLY_IN_LEFT
            hint = _encoding_hint(left / rel_path)
        elif other != digest:
            kind = DiffKind.MODIFIED
            hint = _encoding_hint(left / rel_path, right / rel_path)
        else:
            continue
        name = display_path(rel_path)
        entries[name] = DiffEntry(relative_path=name, classification=kind, encoding_hint=hint)

    for rel_path in right_hashes.keys() - left_hashes.keys():
        name = display_path(rel_path)
        entries[name] = DiffEntry(
            relative_path=name,
            classification=DiffKind.ONLY_IN_RIGHT,
            encoding_hint=_encoding_hint(right / rel_path),
        )

    report = DiffReport(left=display_path(str(left)), right=display_path(str(right)), entries=entries)
    logger.info(f"Diff done: {report.counts()}")
    return report
