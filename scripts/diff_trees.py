#!/usr/bin/env python
"""CLI script to diff two directory trees and write the report as JSON."""
import logging
import sys
from pathlib import Path

import click

from crate_verify.diff import DiffKind, diff_directories

logging.basicConfig(
    level=logging.INFO,
    format="%(name)s: %(message)s",
)
logger = logging.getLogger("diff_trees")


@click.command()
@click.option(
    "--left",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    required=True,
    help="Left tree, usually an unpacked crate archive",
)
@click.option(
    "--right",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    required=True,
    help="Right tree, usually the crate directory of a checkout",
)
@click.option(
    "--out",
    type=click.Path(file_okay=True, dir_okay=False, path_type=Path),
    default=Path("diff_report.json"),
    help="Output JSON file (default: diff_report.json)",
)
@click.option(
    "--exclude",
    multiple=True,
    help="fnmatch pattern of paths to leave out (repeatable)",
)
def main(left: Path, right: Path, out: Path, exclude):
    """Diff two trees by content hash and write diff_report.json.

    Example:
        python scripts/diff_trees.py \\
            --left /tmp/crates-io/serde-1.0.200 \\
            --right /tmp/git-clone/serde \\
            --exclude Cargo.toml.orig --out report.json
    """
    try:
        report = diff_directories(left, right, exclude=exclude)

        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(report.model_dump_json(indent=2))

        counts = report.counts()
        logger.info(f"Modified: {counts[DiffKind.MODIFIED.value]}")
        logger.info(f"Only in left: {counts[DiffKind.ONLY_IN_LEFT.value]}")
        logger.info(f"Only in right: {counts[DiffKind.ONLY_IN_RIGHT.value]}")

        click.echo(f"\n[OK] Compared {left} and {right}: {len(report.entries)} differences")
        click.echo(f"Report written to: {out}")

        sys.exit(0)

    except Exception as e:
        logger.error(f"Error: {str(e)}", exc_info=True)
        click.echo(f"[ERROR] {str(e)}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
