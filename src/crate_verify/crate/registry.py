"""Download and unpack published crate archives."""
import logging
import tarfile
from pathlib import Path
from typing import Optional

import requests

from crate_verify.core.config import VerifyConfig
from crate_verify.core.errors import RegistryError

logger = logging.getLogger(__name__)

ARCHIVE_FILE_NAME = "archive.tar.gz"


def crate_download_url(name: str, version: str, registry_url: str) -> str:
    """Download endpoint for one crate version."""
    return f"{registry_url.rstrip('/')}/{name}/{version}/download"


def unpack_crate(archive_path: Path, dest_dir: Path, name: str, version: str) -> Path:
    """Extract a .crate (gzipped tar) archive.

    Returns:
        The ``{name}-{version}`` directory the archive unpacks to

    Raises:
        RegistryError: If the archive is corrupt or has an unexpected layout
    """
    dest_dir = Path(dest_dir)
    try:
        with tarfile.open(archive_path, "r:gz") as archive:
            archive.extractall(dest_dir, filter="data")
    except (tarfile.TarError, OSError) as e:
        raise RegistryError(f"Couldn't unpack crate archive {archive_path}: {e}") from e

    crate_dir = dest_dir / f"{name}-{version}"
    if not crate_dir.is_dir():
        raise RegistryError(
            f"Crate archive {archive_path} has no {name}-{version}/ directory"
        )
    return crate_dir


def download_crate(
    name: str,
    version: str,
    dest_dir: Path,
    config: Optional[VerifyConfig] = None,
) -> Path:
    """Download a crate version from the registry and unpack it into dest_dir.

    Args:
        name: Crate name
        version: Crate version
        dest_dir: Directory receiving archive.tar.gz and the unpacked crate
        config: Registry URL, User-Agent and timeout

    Returns:
        Path to the unpacked crate directory

    Raises:
        RegistryError: On HTTP, network or archive failures
    """
    config = config or VerifyConfig()
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    url = crate_download_url(name, version, config.registry_url)
    archive_path = dest_dir / ARCHIVE_FILE_NAME
    logger.info(f"Downloading {name}/{version} to {archive_path}")

    try:
        response = requests.get(
            url,
            headers={"User-Agent": config.user_agent},
            timeout=config.download_timeout,
        )
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        raise RegistryError(f"Couldn't download crate {name} {version} from {url}: {e}") from e
    except requests.exceptions.RequestException as e:
        raise RegistryError(f"Couldn't call crate download API at {url}: {e}") from e

    try:
        archive_path.write_bytes(response.content)
    except OSError as e:
        raise RegistryError(f"Couldn't write {archive_path}: {e}") from e

    return unpack_crate(archive_path, dest_dir, name, version)
