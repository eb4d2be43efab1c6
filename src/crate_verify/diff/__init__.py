"""Diff module: content-hash comparison of file trees."""
from crate_verify.diff.differ import compute_file_hash, diff_directories, display_path, hash_tree, is_utf8_file
from crate_verify.diff.schemas import DiffEntry, DiffKind, DiffReport, EncodingHint

__all__ = [
    "DiffEntry",
    "DiffKind",
    "DiffReport",
    "EncodingHint",
    "compute_file_hash",
    "diff_directories",
    "display_path",
    "hash_tree",
    "is_utf8_file",
]
