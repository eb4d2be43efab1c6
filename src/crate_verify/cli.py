"""crate-verify CLI - compare published crates with their repository source."""
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from crate_verify.core.config import VerifyConfig, load_config
from crate_verify.core.errors import (
    ConfigError,
    CrateNotFoundError,
    CrateVerifyError,
    InvalidUrlError,
    RegistryError,
)
from crate_verify.diff.differ import diff_directories
from crate_verify.diff.schemas import DiffKind, DiffReport, EncodingHint
from crate_verify.repository.url import normalize_repository_url
from crate_verify.verify import verify_crate

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(name)s: %(message)s",
)
logger = logging.getLogger("crate_verify")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_URL = 3
EXIT_CRATE_NOT_FOUND = 4
EXIT_REGISTRY = 5
EXIT_DIVERGENCE = 6
EXIT_CONFIG = 7

_LABELS = {
    DiffKind.MODIFIED: "Files differ",
    DiffKind.ONLY_IN_LEFT: "Only in crate archive",
    DiffKind.ONLY_IN_RIGHT: "Only in repository",
}


def _echo_diff(report: DiffReport) -> None:
    for entry in report.sorted_entries():
        suffix = ", non utf-8, possibly binary file" if entry.encoding_hint == EncodingHint.BINARY else ""
        click.echo(f"  {_LABELS[entry.classification]}: {entry.relative_path}{suffix}")


def _load_config(config_path: Optional[Path]) -> VerifyConfig:
    if config_path is None:
        return VerifyConfig()
    return load_config(config_path)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """crate-verify - check that published crates match their source repository."""
    if verbose:
        logger.setLevel(logging.DEBUG)


@main.command()
@click.argument("name")
@click.argument("version")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="JSON configuration file",
)
@click.option(
    "--registry-url",
    default=None,
    help="Crate download API base URL (default: crates.io)",
)
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Keep downloaded crate and clone in this directory",
)
@click.option(
    "--exclude",
    multiple=True,
    help="fnmatch pattern of paths to leave out of the diff (repeatable)",
)
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
def verify(
    name: str,
    version: str,
    config_path: Optional[Path],
    registry_url: Optional[str],
    work_dir: Optional[Path],
    exclude: Tuple[str, ...],
    as_json: bool,
):
    """Verify crate NAME at VERSION against its repository.

    Examples:
        crate-verify verify serde 1.0.200
        crate-verify verify rand 0.8.5 --exclude Cargo.toml.orig --json

    Exit codes:
        0: Crate matches the repository
        1: Generic runtime failure
        2: Invalid CLI usage
        3: Invalid or missing repository URL
        4: Crate not found in repository
        5: Crate download failed
        6: Crate differs from the repository
        7: Configuration file error
    """
    try:
        config = _load_config(config_path)
        config = config.merged(
            registry_url=registry_url,
            exclude=list(config.exclude) + list(exclude),
        )
    except (ConfigError, ValueError) as e:
        logger.error(f"Invalid configuration: {str(e)}")
        sys.exit(EXIT_CONFIG)

    try:
        report = verify_crate(name, version, config=config, work_dir=work_dir)
    except InvalidUrlError as e:
        logger.error(f"Invalid repository: {str(e)}")
        sys.exit(EXIT_INVALID_URL)
    except CrateNotFoundError as e:
        logger.error(f"Crate not found: {str(e)}")
        sys.exit(EXIT_CRATE_NOT_FOUND)
    except RegistryError as e:
        logger.error(f"Couldn't download crate: {str(e)}")
        sys.exit(EXIT_REGISTRY)
    except CrateVerifyError as e:
        logger.error(f"Verification failed: {str(e)}")
        sys.exit(EXIT_FAILURE)

    if as_json:
        click.echo(report.model_dump_json(indent=2))
    else:
        click.echo(f"Crate: {report.crate_name} {report.version}")
        click.echo(f"  Repository: {report.repository.clone_url}")
        click.echo(f"  Commit: {report.commit.describe()}")
        click.echo(f"  Resolved by: {report.strategy.value}")
        click.echo(f"  Source: {report.source_subpath or '.'}")
        if report.reduced_confidence:
            click.echo("  [WARN] No commit matches the published crate; compared against default branch head")
        if report.has_build_rs or report.build_script is not None:
            click.echo(f"  Build script: {report.build_script or 'build.rs'}")
        _echo_diff(report.diff)

    if report.matches:
        if not as_json:
            click.echo(f"[OK] {report.crate_name} {report.version} matches its repository")
        sys.exit(EXIT_OK)

    if not as_json:
        counts = report.diff.counts()
        click.echo(
            f"[DIFF] {counts[DiffKind.MODIFIED.value]} modified, "
            f"{counts[DiffKind.ONLY_IN_LEFT.value]} only in crate, "
            f"{counts[DiffKind.ONLY_IN_RIGHT.value]} only in repository"
        )
    sys.exit(EXIT_DIVERGENCE)


@main.command()
@click.argument("left", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("right", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option(
    "--exclude",
    multiple=True,
    help="fnmatch pattern of paths to leave out of the diff (repeatable)",
)
@click.option("--workers", type=click.IntRange(min=1), default=4, help="Hashing threads")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
def diff(left: Path, right: Path, exclude: Tuple[str, ...], workers: int, as_json: bool):
    """Compare two directories by content hash.

    Exit codes:
        0: Trees are identical
        1: Generic runtime failure
        6: Trees differ
    """
    try:
        report = diff_directories(left, right, exclude=exclude, workers=workers)
    except CrateVerifyError as e:
        logger.error(f"Diff failed: {str(e)}")
        sys.exit(EXIT_FAILURE)

    if as_json:
        click.echo(report.model_dump_json(indent=2))
    else:
        _echo_diff(report)

    if report.is_empty:
        if not as_json:
            click.echo("[OK] Trees are identical")
        sys.exit(EXIT_OK)
    sys.exit(EXIT_DIVERGENCE)


@main.command(name="normalize-url")
@click.argument("url")
def normalize_url(url: str):
    """Print the clone URL and subpath for a repository URL."""
    try:
        repo = normalize_repository_url(url)
    except InvalidUrlError as e:
        logger.error(f"Invalid repository URL: {str(e)}")
        sys.exit(EXIT_INVALID_URL)

    click.echo(f"Clone URL: {repo.clone_url}")
    click.echo(f"Subpath: {repo.subpath or '-'}")


if __name__ == "__main__":
    main()
