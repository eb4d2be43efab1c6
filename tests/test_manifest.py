"""Tests for Cargo.toml and .cargo_vcs_info.json parsing."""
import json

import pytest
from pydantic import ValidationError

from crate_verify.core.errors import ManifestError
from crate_verify.crate.manifest import (
    ManifestInfo,
    read_manifest,
    read_package_name,
    read_vcs_info,
)


def test_read_manifest_fields(tmp_path):
    (tmp_path / "Cargo.toml").write_text(
        '[package]\n'
        'name = "demo"\n'
        'version = "1.2.3"\n'
        'repository = "https://github.com/org/demo"\n'
        'build = "tools/build.rs"\n'
    )
    manifest = read_manifest(tmp_path)
    assert manifest == ManifestInfo(
        package_name="demo",
        version="1.2.3",
        repository_url="https://github.com/org/demo",
        build_script="tools/build.rs",
    )


def test_boolean_build_setting(tmp_path):
    (tmp_path / "Cargo.toml").write_text('[package]\nname = "demo"\nbuild = false\n')
    assert read_manifest(tmp_path / "Cargo.toml").build_script == "false"


def test_workspace_inherited_fields_are_ignored(tmp_path):
    (tmp_path / "Cargo.toml").write_text(
        '[package]\nname = "demo"\nversion.workspace = true\nrepository.workspace = true\n'
    )
    manifest = read_manifest(tmp_path)
    assert manifest.package_name == "demo"
    assert manifest.version is None
    assert manifest.repository_url is None


def test_virtual_manifest_has_no_name(tmp_path):
    (tmp_path / "Cargo.toml").write_text('[workspace]\nmembers = ["a"]\n')
    assert read_manifest(tmp_path).package_name is None
    assert read_package_name(tmp_path) is None


def test_invalid_toml_raises(tmp_path):
    (tmp_path / "Cargo.toml").write_text("[package\n")
    with pytest.raises(ManifestError):
        read_manifest(tmp_path)
    assert read_package_name(tmp_path) is None


def test_missing_manifest_raises(tmp_path):
    with pytest.raises(ManifestError):
        read_manifest(tmp_path)


def test_manifest_info_is_frozen():
    manifest = ManifestInfo(package_name="demo")
    with pytest.raises(ValidationError):
        manifest.package_name = "other"


class TestVcsInfo:
    """.cargo_vcs_info.json handling."""

    def test_absent_vcs_info(self, tmp_path):
        assert read_vcs_info(tmp_path) is None

    def test_vcs_info_with_path(self, tmp_path):
        (tmp_path / ".cargo_vcs_info.json").write_text(
            json.dumps({"git": {"sha1": "a" * 40, "dirty": False}, "path_in_vcs": "crates/demo"})
        )
        vcs_info = read_vcs_info(tmp_path)
        assert vcs_info.sha1 == "a" * 40
        assert vcs_info.subpath == "crates/demo"

    def test_empty_path_in_vcs_means_root(self, tmp_path):
        (tmp_path / ".cargo_vcs_info.json").write_text(
            json.dumps({"git": {"sha1": "b" * 40}, "path_in_vcs": ""})
        )
        assert read_vcs_info(tmp_path).subpath is None

    def test_invalid_vcs_info_raises(self, tmp_path):
        (tmp_path / ".cargo_vcs_info.json").write_text('{"git": {}}')
        with pytest.raises(ManifestError):
            read_vcs_info(tmp_path)
