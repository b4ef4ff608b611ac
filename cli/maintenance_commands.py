"""Preflight and scratch-directory maintenance commands."""

import sys

import click

from cli import utils
from s3_archiver.archiver import format_size
from s3_archiver.errors import ArchiverError
from s3_archiver.preflight import run_preflight


def register_commands(cli):
    """Register maintenance commands with main CLI."""

    @cli.command('check')
    @click.pass_context
    def check(ctx):
        """Run the preflight checks without processing any files.

        Verifies required settings, AWS credentials, bucket access, the
        compression tool, the bandwidth setting and the temp directory.
        Exits with status 1 if any check fails.
        """
        verbose = ctx.obj['verbose']
        try:
            config = utils.load_app_config(ctx)
            store, compressor = utils.build_services(config)
            report = run_preflight(config, store, compressor)
        except ArchiverError as e:
            utils.handle_error(e, verbose)

        for result in report.checks:
            mark = '✓' if result.passed else '✗'
            click.echo(f"  {mark} {result.name}: {result.detail}")

        if not report.passed:
            click.echo(f"\n✗ {len(report.failures)} check(s) failed")
            sys.exit(1)
        click.echo("\n✓ Ready to upload")

    @cli.command('cleanup')
    @click.option('--yes', '-y', is_flag=True, help='Delete without asking for confirmation')
    @click.pass_context
    def cleanup(ctx, yes):
        """Remove archives left behind by interrupted runs."""
        verbose = ctx.obj['verbose']
        try:
            config = utils.load_app_config(ctx)
        except ArchiverError as e:
            utils.handle_error(e, verbose)

        scratch_dir = config.scratch_dir
        if not scratch_dir.exists():
            click.echo(f"✓ Temp directory does not exist: {scratch_dir}")
            return

        archives = sorted(scratch_dir.glob("*.zip"))
        if not archives:
            click.echo(f"✓ No orphaned archives found in: {scratch_dir}")
            return

        total_size = sum(f.stat().st_size for f in archives)
        click.echo(f"\nFound {len(archives)} orphaned archive(s) in: {scratch_dir}")
        click.echo(f"Total size: {format_size(total_size)}\n")
        for archive in archives:
            click.echo(f"  {archive.name}: {format_size(archive.stat().st_size)}")

        if not yes and not click.confirm("\nDelete these files?"):
            click.echo("Cancelled.")
            return

        deleted = 0
        for archive in archives:
            try:
                archive.unlink()
                deleted += 1
            except OSError as e:
                click.echo(f"⚠️ Could not delete {archive.name}: {e}")

        click.echo(f"\n✓ Deleted {deleted} file(s), freed {format_size(total_size)}")
