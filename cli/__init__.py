"""Command line interface for the S3 file archiver."""
