"""S3 file archiver.

Zips files from a local directory one at a time, uploads them to S3 at a
capped bandwidth, and deletes originals once they are old enough.
"""

from .archiver import Compressor, ZipCliCompressor, ZipfileCompressor, archive, get_compressor
from .enumerator import enumerate_files
from .errors import (
    ArchiveError,
    ArchiverError,
    ConfigError,
    EmptySourceError,
    PreflightError,
    SourceNotFoundError,
    UploadError,
)
from .models import FileResult, FileState, RunResult, SourceFile, UploadOutcome, UploadStatus, UploadTarget
from .pipeline import ArchivePipeline
from .preflight import PreflightReport, run_preflight
from .retention import should_delete
from .storage import ObjectStore, S3ObjectStore
from .throttle import ThrottledReader, TokenBucket, parse_rate
from .uploader import ThrottledUploader

__all__ = [
    'ArchivePipeline',
    'ArchiveError',
    'ArchiverError',
    'Compressor',
    'ConfigError',
    'EmptySourceError',
    'FileResult',
    'FileState',
    'ObjectStore',
    'PreflightError',
    'PreflightReport',
    'RunResult',
    'S3ObjectStore',
    'SourceFile',
    'SourceNotFoundError',
    'ThrottledReader',
    'ThrottledUploader',
    'TokenBucket',
    'UploadError',
    'UploadOutcome',
    'UploadStatus',
    'UploadTarget',
    'ZipCliCompressor',
    'ZipfileCompressor',
    'archive',
    'enumerate_files',
    'get_compressor',
    'parse_rate',
    'run_preflight',
    'should_delete',
]
