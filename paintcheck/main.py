import json
import logging
import sys

import click

from paintcheck.comparison.service import ComparisonService
from paintcheck.shared.schemas import ComparisonStatus
from paintcheck.storage.baseline_store import BaselineStore
from paintcheck.utils.config import ComparisonConfig

logger = logging.getLogger("cli")

MODES = click.Choice(["compositor", "pixel"])


def _setup(config_path, mode, verbose) -> ComparisonConfig:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)
    config = ComparisonConfig.from_env(config_path)
    if mode:
        config.mode = mode
    logger.debug(f"Config: {config.to_dict()}")
    return config


@click.group()
def cli():
    """Visual regression checks from compositor paint commands or screenshots."""
    pass


@cli.command()
@click.argument("name")
@click.option("--url", required=True, help="Page to capture")
@click.option("--config", "config_path", default=None, help="YAML config file")
@click.option("--mode", type=MODES, default=None, help="Override the comparison strategy")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def capture(name, url, config_path, mode, verbose):
    """Capture NAME without comparing it."""
    config = _setup(config_path, mode, verbose)
    with ComparisonService(config) as service:
        artifact = service.capture(name, url=url)
    if artifact.hash:
        click.echo(f"{artifact.name}: {artifact.hash} ({artifact.layer_count} layers, {len(artifact.commands or [])} commands)")
    else:
        click.echo(f"{artifact.name}: {len(artifact.image_bytes)} bytes")


@cli.command()
@click.argument("name")
@click.option("--url", required=True, help="Page to compare")
@click.option("--config", "config_path", default=None, help="YAML config file")
@click.option("--mode", type=MODES, default=None, help="Override the comparison strategy")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def compare(name, url, config_path, mode, verbose):
    """Compare NAME against its baseline, creating the baseline on first run."""
    config = _setup(config_path, mode, verbose)
    with ComparisonService(config) as service:
        result = service.compare(name, url=url)

    if result.status is ComparisonStatus.CREATED:
        click.echo(f"Baseline created: {result.baseline_ref}")
        return
    if result.status is ComparisonStatus.MATCH:
        click.echo("MATCH")
        return

    click.echo("MISMATCH")
    click.echo(f"Baseline: {result.baseline_ref}")
    click.echo(f"Actual:   {result.actual_ref}")
    if result.pixels:
        click.echo(f"Difference: {result.pixels.diff_percentage}% "
                   f"({result.pixels.mismatched_pixels}/{result.pixels.total_pixels} pixels)")
    if result.diff:
        click.echo(json.dumps(result.diff.to_dict(), indent=2))
    sys.exit(1)


@cli.command()
@click.argument("name", required=False)
@click.option("--config", "config_path", default=None, help="YAML config file")
def reset(name, config_path):
    """Delete stored artifacts for NAME, or for every name."""
    config = _setup(config_path, None, False)
    store = BaselineStore(config.baseline_dir, config.actual_dir, config.diff_dir)
    removed = store.reset(name)
    click.echo(f"Removed {len(removed)} files")


if __name__ == "__main__":
    cli()
