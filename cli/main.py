"""Main CLI entry point - Root command group with global options."""

import click

from config import setup_logging
from version import __version__


@click.group()
@click.option('--env-file', type=click.Path(dir_okay=False),
              help='Read settings from this .env file (default: .env beside the program)')
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
@click.version_option(version=__version__, prog_name='S3 File Archiver')
@click.pass_context
def cli(ctx, env_file, verbose):
    """S3 File Archiver - scheduled archival of local files to S3.

    Each file in the source directory is zipped on its own, uploaded to
    s3://<bucket>/<prefix>/<timestamp>/<path>.zip at a capped bandwidth,
    and the original is deleted once it is older than MIN_FILE_AGE_DAYS.

    Settings come from the environment or a .env file:
    AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_DEFAULT_REGION, S3_BUCKET
    (required), SOURCE_DIR, S3_PREFIX, VERIFY_UPLOAD, MIN_FILE_AGE_DAYS,
    TEMP_DIR, MAX_BANDWIDTH.

    Examples:
        # Check credentials, bucket and tools
        python -m main check

        # See what a run would do
        python -m main plan

        # Archive everything (e.g. from cron)
        python -m main run
    """
    ctx.ensure_object(dict)
    ctx.obj['env_file'] = env_file
    ctx.obj['verbose'] = verbose

    # Console only until the configured log file is known
    setup_logging(None, verbose=verbose)


def register_all_commands():
    """Register all command modules with the main CLI."""
    from cli import archive_commands, maintenance_commands

    archive_commands.register_commands(cli)
    maintenance_commands.register_commands(cli)


# Register all commands when module is imported
register_all_commands()
