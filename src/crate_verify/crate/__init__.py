"""Crate handling: manifests, registry download, source-root location."""
from crate_verify.core.errors import CrateNotFoundError, ManifestError, RegistryError
from crate_verify.crate.locator import iter_manifests, locate_source_root
from crate_verify.crate.manifest import ManifestInfo, VcsInfo, read_manifest, read_vcs_info
from crate_verify.crate.registry import download_crate

__all__ = [
    "CrateNotFoundError",
    "ManifestError",
    "ManifestInfo",
    "RegistryError",
    "VcsInfo",
    "download_crate",
    "iter_manifests",
    "locate_source_root",
    "read_manifest",
    "read_vcs_info",
]
