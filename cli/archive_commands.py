"""Archive commands: run the upload pipeline or preview it."""

import logging
import sys
from pathlib import Path

import click
from tabulate import tabulate

from cli import utils
from s3_archiver.archiver import format_size
from s3_archiver.enumerator import count_files
from s3_archiver.errors import ArchiverError
from s3_archiver.pipeline import ArchivePipeline
from s3_archiver.preflight import run_preflight

logger = logging.getLogger(__name__)


def register_commands(cli):
    """Register archive commands with main CLI."""

    @cli.command('run')
    @click.option('--dry-run', is_flag=True, help='Show what would be uploaded and deleted without doing it')
    @click.option('--source-dir', type=click.Path(file_okay=False, path_type=Path),
                  help='Directory to archive (overrides SOURCE_DIR)')
    @click.option('--prefix', help='S3 key prefix (overrides S3_PREFIX)')
    @click.option('--min-age-days', type=click.IntRange(min=0),
                  help='Minimum age before originals are deleted (overrides MIN_FILE_AGE_DAYS)')
    @click.option('--max-bandwidth', help='Upload rate cap, e.g. 2Mb/s (overrides MAX_BANDWIDTH)')
    @click.option('--temp-dir', type=click.Path(file_okay=False, path_type=Path),
                  help='Scratch directory for archives (overrides TEMP_DIR)')
    @click.option('--no-verify', is_flag=True, help='Skip the post-upload size check')
    @click.pass_context
    def run(ctx, dry_run, source_dir, prefix, min_age_days, max_bandwidth, temp_dir, no_verify):
        """Zip, upload and retire every file in the source directory.

        Files are processed one at a time, oldest first. A file that fails
        to zip or upload is left in place and the command exits with
        status 1 after all other files have been processed.

        Examples:
            # Normal scheduled run
            python -m main run

            # Preview without touching anything
            python -m main run --dry-run

            # Slower link, keep a month of files locally
            python -m main run --max-bandwidth 512K --min-age-days 30
        """
        verbose = ctx.obj['verbose']
        logger.info("🚀 Starting S3 upload...")

        overrides = {
            'source_dir': source_dir,
            's3_prefix': prefix,
            'min_file_age_days': min_age_days,
            'max_bandwidth': max_bandwidth,
            'temp_dir': temp_dir,
            'verify_upload': False if no_verify else None,
            'dry_run': True if dry_run else None,
        }

        try:
            config = utils.load_app_config(ctx, overrides)
            store, compressor = utils.build_services(config)

            report = run_preflight(config, store, compressor)
            report.raise_for_failures()

            logger.info(f"📄 Files to upload: {count_files(config.source_dir)}")
            result = ArchivePipeline(config, store, compressor).run()
        except ArchiverError as e:
            utils.handle_error(e, verbose)

        utils.print_run_summary(result)
        sys.exit(result.exit_code)

    @cli.command('plan')
    @click.option('--source-dir', type=click.Path(file_okay=False, path_type=Path),
                  help='Directory to inspect (overrides SOURCE_DIR)')
    @click.option('--min-age-days', type=click.IntRange(min=0),
                  help='Deletion threshold to evaluate (overrides MIN_FILE_AGE_DAYS)')
    @click.pass_context
    def plan(ctx, source_dir, min_age_days):
        """List files in processing order with their destination and retention.

        Nothing is contacted or written; the decision column assumes each
        upload succeeds.
        """
        verbose = ctx.obj['verbose']
        try:
            config = utils.load_app_config(
                ctx, {'source_dir': source_dir, 'min_file_age_days': min_age_days}
            )
            pipeline = ArchivePipeline(config, store=None, compressor=None)
            planned = pipeline.plan()
        except ArchiverError as e:
            utils.handle_error(e, verbose)

        rows = [
            [
                p.source.relative_path,
                format_size(p.source.size),
                p.decision.age_days,
                p.target.key,
                'delete' if p.decision.delete else 'keep',
            ]
            for p in planned
        ]
        click.echo(tabulate(
            rows,
            headers=['File', 'Size', 'Age (days)', 'Destination key', 'After upload'],
            tablefmt='simple',
        ))
        deletable = sum(1 for p in planned if p.decision.delete)
        click.echo(f"\n{len(planned)} file(s), {deletable} old enough to delete "
                   f"(MIN_FILE_AGE_DAYS={config.min_file_age_days})")
