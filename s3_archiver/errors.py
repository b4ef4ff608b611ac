"""Exception types for the archive pipeline.

Fatal errors (config, preflight, source) stop a run before any file is
touched. Per-file errors (archive, upload) are caught by the pipeline loop.
"""


class ArchiverError(Exception):
    """Base class for all archiver errors."""


class ConfigError(ArchiverError):
    """A required setting is missing or a setting has an invalid value."""


class PreflightError(ArchiverError):
    """Storage unreachable, bucket missing, or a required tool is absent."""


class SourceNotFoundError(ArchiverError):
    """The source directory does not exist."""


class EmptySourceError(ArchiverError):
    """The source directory contains no regular files."""


class ArchiveError(ArchiverError):
    """Creating the zip archive for a single file failed."""


class UploadError(ArchiverError):
    """Uploading an archive failed.

    ``started`` tells whether any bytes had been handed to the transport
    when the failure happened.
    """

    def __init__(self, message: str, started: bool = False, bytes_sent: int = 0):
        super().__init__(message)
        self.started = started
        self.bytes_sent = bytes_sent
