"""Core exception types for crate-verify."""
from enum import Enum
from typing import List, Optional


class CrateVerifyError(Exception):
    """Base exception for all crate-verify errors."""
    pass


class InvalidUrlError(CrateVerifyError):
    """Raised when a repository URL cannot be turned into a clone URL."""
    pass


class MissingRepositoryError(InvalidUrlError):
    """Raised when the crate manifest declares no repository URL."""
    pass


class GitOperationError(CrateVerifyError):
    """Raised when a git operation fails."""
    pass


class ManifestError(CrateVerifyError):
    """Raised when a Cargo.toml or .cargo_vcs_info.json cannot be parsed."""
    pass


class RegistryError(CrateVerifyError):
    """Raised when a crate cannot be downloaded or unpacked."""
    pass


class CrateNotFoundError(CrateVerifyError):
    """Raised when no manifest in the repository declares the crate name."""
    pass


class DiffError(CrateVerifyError):
    """Raised when a file tree cannot be hashed."""
    pass


class ConfigError(CrateVerifyError):
    """Raised when a configuration file is missing or invalid."""
    pass


class ResolutionFailureKind(str, Enum):
    NOT_IN_HISTORY = "not_in_history"
    NO_MATCHING_TAG = "no_matching_tag"
    UNRESOLVABLE = "unresolvable"


class ResolutionError(CrateVerifyError):
    """Raised when no commit can be matched to the published crate.

    Not fatal: callers fall back to the default branch head and flag the
    result as reduced-confidence. ``attempts`` holds the failures of the
    individual strategies that were tried.
    """

    def __init__(
        self,
        message: str,
        kind: ResolutionFailureKind = ResolutionFailureKind.UNRESOLVABLE,
        attempts: Optional[List["ResolutionError"]] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.attempts = list(attempts or [])
