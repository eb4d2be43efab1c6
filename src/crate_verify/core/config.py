"""Runtime configuration for crate-verify."""
import json
import logging
from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from crate_verify.core.errors import ConfigError

logger = logging.getLogger(__name__)

TOOL_VERSION = "0.1.0"

DEFAULT_REGISTRY_URL = "https://crates.io/api/v1/crates"

# Never entered when scanning or hashing trees
VCS_METADATA_DIRS = {".git", ".hg", ".svn"}


class VerifyConfig(BaseModel):
    """Settings shared by the download, clone and diff stages.

    Values come from an optional JSON file; CLI options override them
    through :meth:`merged`.
    """

    registry_url: str = Field(default=DEFAULT_REGISTRY_URL, description="Crate download API base URL")
    user_agent: str = Field(
        default=f"crate-verify/{TOOL_VERSION} (registry/source drift checker)",
        description="User-Agent sent to the registry",
    )
    download_timeout: float = Field(default=60.0, gt=0, description="HTTP timeout in seconds")
    clone_timeout: float = Field(default=600.0, gt=0, description="git clone timeout in seconds")
    git_timeout: float = Field(default=60.0, gt=0, description="Timeout for other git commands")
    hash_workers: int = Field(default=4, ge=1, description="Threads used to hash file trees")
    exclude: List[str] = Field(default_factory=list, description="fnmatch patterns left out of the diff")

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "registry_url": DEFAULT_REGISTRY_URL,
                "download_timeout": 60,
                "clone_timeout": 600,
                "git_timeout": 60,
                "hash_workers": 4,
                "exclude": ["Cargo.toml.orig", ".cargo_vcs_info.json"],
            }
        },
    )

    @field_validator("registry_url")
    @classmethod
    def validate_registry_url(cls, v: str) -> str:
        """Ensure the registry URL is http(s) and has no trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"registry_url must be an http(s) URL, got: {v}")
        return v.rstrip("/")

    def merged(self, **overrides) -> "VerifyConfig":
        """Return a copy with every non-empty override applied."""
        updates = {k: v for k, v in overrides.items() if v not in (None, (), [])}
        if not updates:
            return self
        return self.model_validate({**self.model_dump(), **updates})


def load_config(path: Path) -> VerifyConfig:
    """Load and validate a JSON configuration file.

    Raises:
        ConfigError: If the file is missing, not JSON, or fails validation
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    try:
        config = VerifyConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e

    logger.debug(f"Loaded config from {path}")
    return config
