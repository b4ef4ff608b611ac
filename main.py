#!/usr/bin/env python3
"""S3 File Archiver - command line entry point.

Examples:
    # Get help
    python -m main --help

    # Verify configuration, credentials and bucket access
    python -m main check

    # Preview which files would be uploaded and deleted
    python -m main plan

    # Scheduled run (exit status 1 if any file failed)
    python -m main run

    # Remove archives left behind by an interrupted run
    python -m main cleanup --yes
"""

from cli.main import cli

if __name__ == '__main__':
    cli()
