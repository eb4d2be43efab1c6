"""DiffEntry and DiffReport schemas."""
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class DiffKind(str, Enum):
    MODIFIED = "modified"
    ONLY_IN_LEFT = "only_in_left"
    ONLY_IN_RIGHT = "only_in_right"


class EncodingHint(str, Enum):
    TEXT = "text"
    BINARY = "binary"


class DiffEntry(BaseModel):
    """One path whose content differs between the two trees."""

    relative_path: str = Field(..., description="Tree-relative path (POSIX separators)")
    classification: DiffKind
    encoding_hint: EncodingHint = Field(default=EncodingHint.TEXT)

    model_config = ConfigDict(frozen=True)

    @field_validator("relative_path")
    @classmethod
    def validate_relative_posix(cls, v: str) -> str:
        """Ensure relative_path is a non-empty relative path.

        Backslashes are ordinary file name characters on POSIX systems and
        are kept as they are.
        """
        if not v or v.startswith("/"):
            raise ValueError(f"relative_path must be a non-empty relative path, got: {v}")
        return v


class DiffReport(BaseModel):
    """All divergences between a left and a right tree, keyed by path.

    An empty report means every regular file is byte-identical on both
    sides.
    """

    left: str = Field(..., description="Left tree root (the registry archive)")
    right: str = Field(..., description="Right tree root (the repository crate)")
    entries: Dict[str, DiffEntry] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_keys_match_paths(self) -> "DiffReport":
        for key, entry in self.entries.items():
            if key != entry.relative_path:
                raise ValueError(f"entry key {key} does not match path {entry.relative_path}")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def sorted_entries(self) -> List[DiffEntry]:
        """Entries ordered by path."""
        return [self.entries[path] for path in sorted(self.entries)]

    def of_kind(self, kind: DiffKind) -> List[DiffEntry]:
        return [e for e in self.sorted_entries() if e.classification == kind]

    def counts(self) -> Dict[str, int]:
        """Number of entries per classification."""
        counts = {kind.value: 0 for kind in DiffKind}
        for entry in self.entries.values():
            counts[entry.classification.value] += 1
        return counts
