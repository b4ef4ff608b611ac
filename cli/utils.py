"""Shared utilities for CLI commands."""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import click
from tabulate import tabulate

from config import ArchiverConfig, describe_config, load_config, setup_logging
from s3_archiver.archiver import Compressor, format_size, get_compressor
from s3_archiver.models import RunResult
from s3_archiver.storage import ObjectStore, S3ObjectStore

logger = logging.getLogger(__name__)


def load_app_config(ctx: click.Context, overrides: Optional[Dict[str, object]] = None) -> ArchiverConfig:
    """Load configuration and switch logging to the configured log file.

    Args:
        ctx: Click context holding env_file and verbose
        overrides: Config fields given on the command line

    Returns:
        Validated ArchiverConfig

    Raises:
        ConfigError: If a required setting is missing or invalid
    """
    env_file = ctx.obj.get('env_file')
    verbose = ctx.obj.get('verbose', False)

    logger.info("🔧 Loading environment variables...")
    config = load_config(env_file=Path(env_file) if env_file else None, overrides=overrides)
    setup_logging(config.log_file, config.log_level, verbose)

    logger.debug("🔍 Configuration:")
    for key, value in describe_config(config).items():
        logger.debug(f"  {key}: {value}")
    logger.info("✅ All required environment variables are set.")
    return config


def build_services(config: ArchiverConfig) -> Tuple[ObjectStore, Compressor]:
    """Create the object store and compressor for a run."""
    return S3ObjectStore.from_config(config), get_compressor(config.compressor)


def handle_error(error: Exception, verbose: bool = False):
    """Handle and display errors consistently.

    Args:
        error: Exception to handle
        verbose: Whether to show full traceback
    """
    logger.error(f"❌ ERROR: {error}")
    click.echo(f"Error: {error}", err=True)
    if verbose:
        import traceback
        click.echo(traceback.format_exc(), err=True)
    sys.exit(1)


def run_summary_rows(result: RunResult) -> List[List[str]]:
    rows = []
    for file_result in result.files:
        rows.append([
            file_result.source.relative_path,
            format_size(file_result.source.size),
            file_result.state.value,
            '-' if file_result.age_days is None else str(file_result.age_days),
            file_result.error or '',
        ])
    return rows


def print_run_summary(result: RunResult) -> None:
    """Print a per-file table and totals for a finished run."""
    if result.files:
        click.echo(tabulate(
            run_summary_rows(result),
            headers=['File', 'Size', 'State', 'Age (days)', 'Error'],
            tablefmt='simple',
        ))

    counts = result.counts()
    click.echo(f"\nRun {result.run_timestamp}:")
    click.echo(f"  Retired:         {counts['retired']}")
    click.echo(f"  Retained:        {counts['retained']}")
    click.echo(f"  Archive failed:  {counts['archive_failed']}")
    click.echo(f"  Upload failed:   {counts['upload_failed']}")
    if result.failed:
        click.echo("\n❌ Run finished with failures")
    else:
        click.echo("\n✅ Run finished successfully")
