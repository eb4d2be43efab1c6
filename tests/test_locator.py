"""Tests for locating a crate inside a repository."""
from pathlib import Path

import pytest

from crate_verify.core.errors import CrateNotFoundError
from crate_verify.crate import locator
from crate_verify.crate.locator import iter_manifests, locate_source_root

from conftest import write_manifest


@pytest.fixture
def monorepo(tmp_path: Path) -> Path:
    """Repository tree with several crates and a .git directory."""
    root = tmp_path / "monorepo"
    (root / ".git").mkdir(parents=True)
    write_manifest(root / ".git" / "hidden", "target-crate")
    (root / "Cargo.toml").write_text('[workspace]\nmembers = ["crates/*"]\n')
    write_manifest(root / "crates" / "zeta", "target-crate")
    write_manifest(root / "crates" / "alpha", "alpha")
    write_manifest(root / "crates" / "beta", "target-crate")
    write_manifest(root / "crates" / "beta" / "nested", "target-crate")
    (root / "broken").mkdir()
    (root / "broken" / "Cargo.toml").write_text("[package\nname = ")
    return root


def test_hint_accepted_without_scan(monorepo, monkeypatch):
    def _fail(*args, **kwargs):
        raise AssertionError("full scan should not run")

    monkeypatch.setattr(locator, "find_crate", _fail)
    monkeypatch.setattr(locator, "iter_manifests", _fail)

    found = locate_source_root(monorepo, "crates/zeta", "target-crate")
    assert found == (monorepo / "crates" / "zeta").resolve()


def test_repo_root_used_when_no_hint(tmp_path):
    write_manifest(tmp_path, "single")
    assert locate_source_root(tmp_path, None, "single") == tmp_path.resolve()


def test_wrong_hint_falls_back_to_lexical_scan(monorepo):
    found = locate_source_root(monorepo, "crates/alpha", "target-crate")
    assert found == (monorepo / "crates" / "beta").resolve()


def test_missing_hint_directory_falls_back_to_scan(monorepo):
    found = locate_source_root(monorepo, "moved/away", "alpha")
    assert found == (monorepo / "crates" / "alpha").resolve()


def test_escaping_hint_is_ignored(monorepo):
    found = locate_source_root(monorepo, "../outside", "alpha")
    assert found == (monorepo / "crates" / "alpha").resolve()


def test_not_found_raises(monorepo):
    with pytest.raises(CrateNotFoundError):
        locate_source_root(monorepo, None, "missing-crate")


def test_vcs_metadata_never_matched(tmp_path):
    write_manifest(tmp_path / ".git" / "x", "only-in-git")
    with pytest.raises(CrateNotFoundError):
        locate_source_root(tmp_path, None, "only-in-git")


def test_iter_manifests_order(monorepo):
    relative = [p.relative_to(monorepo).as_posix() for p in iter_manifests(monorepo)]
    assert relative == [
        "Cargo.toml",
        "broken/Cargo.toml",
        "crates/alpha/Cargo.toml",
        "crates/beta/Cargo.toml",
        "crates/beta/nested/Cargo.toml",
        "crates/zeta/Cargo.toml",
    ]


def test_iter_manifests_is_lazy(monorepo):
    manifests = iter_manifests(monorepo)
    assert next(manifests) == monorepo / "Cargo.toml"
