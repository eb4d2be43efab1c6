"""Cargo.toml and .cargo_vcs_info.json models."""
import logging
import tomllib
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from crate_verify.core.errors import ManifestError

logger = logging.getLogger(__name__)

MANIFEST_FILE = "Cargo.toml"
VCS_INFO_FILE = ".cargo_vcs_info.json"
BUILD_SCRIPT_FILE = "build.rs"


class ManifestInfo(BaseModel):
    """The fields of a crate manifest the verifier cares about."""

    package_name: Optional[str] = Field(default=None, description="package.name; None for virtual manifests")
    version: Optional[str] = Field(default=None, description="package.version")
    repository_url: Optional[str] = Field(default=None, description="package.repository")
    build_script: Optional[str] = Field(default=None, description="package.build setting, if any")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_toml(cls, data: dict) -> "ManifestInfo":
        """Build from a parsed Cargo.toml document."""
        package = data.get("package")
        if not isinstance(package, dict):
            return cls()

        build = package.get("build")
        if isinstance(build, bool):
            build = str(build).lower()

        def _str(value) -> Optional[str]:
            return value if isinstance(value, str) else None

        return cls(
            package_name=_str(package.get("name")),
            version=_str(package.get("version")),
            repository_url=_str(package.get("repository")),
            build_script=_str(build),
        )


class VcsGit(BaseModel):
    sha1: str


class VcsInfo(BaseModel):
    """Contents of .cargo_vcs_info.json, written by cargo package."""

    git: VcsGit
    path_in_vcs: Optional[str] = Field(default=None, description="Crate directory inside the repository")

    model_config = ConfigDict(extra="ignore")

    @property
    def sha1(self) -> str:
        return self.git.sha1

    @property
    def subpath(self) -> Optional[str]:
        """path_in_vcs, with the empty string (crate at repository root) as None."""
        return self.path_in_vcs or None


def read_manifest(path: Path) -> ManifestInfo:
    """Parse a Cargo.toml file.

    Args:
        path: Cargo.toml file, or a directory containing one

    Raises:
        ManifestError: If the file is missing or not valid TOML
    """
    path = Path(path)
    if path.is_dir():
        path = path / MANIFEST_FILE

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ManifestError(f"Cannot read {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ManifestError(f"Invalid TOML in {path}: {e}") from e

    return ManifestInfo.from_toml(data)


def read_package_name(directory: Path) -> Optional[str]:
    """Return the package name declared in directory/Cargo.toml, or None."""
    manifest_path = Path(directory) / MANIFEST_FILE
    if not manifest_path.is_file():
        return None
    try:
        return read_manifest(manifest_path).package_name
    except ManifestError as e:
        logger.debug(f"Skipping unparseable manifest: {e}")
        return None


def read_vcs_info(crate_dir: Path) -> Optional[VcsInfo]:
    """Read the commit announced by the registry archive, if any.

    Returns:
        VcsInfo, or None when the crate was packaged without one
        (``cargo package --allow-dirty`` on an uncommitted tree)

    Raises:
        ManifestError: If the file exists but is invalid
    """
    vcs_info_path = Path(crate_dir) / VCS_INFO_FILE
    if not vcs_info_path.is_file():
        return None

    try:
        return VcsInfo.model_validate_json(vcs_info_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, ValidationError) as e:
        raise ManifestError(f"Invalid {VCS_INFO_FILE} in {crate_dir}: {e}") from e
