"""Records passed between the stages of the archive pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional


@dataclass(frozen=True)
class SourceFile:
    """A regular file discovered in the source directory."""
    path: Path
    relative_path: str
    mtime: float
    size: int

    @property
    def name(self) -> str:
        return self.path.name


def batch_prefix(prefix: str, run_timestamp: str) -> str:
    """Key prefix shared by every archive of one run."""
    return '/'.join(p for p in (prefix.strip('/'), run_timestamp) if p)


@dataclass(frozen=True)
class UploadTarget:
    """Destination of one archive: ``<prefix>/<run-timestamp>/<relative-path>.zip``."""
    bucket: str
    key: str

    @classmethod
    def for_file(cls, bucket: str, prefix: str, run_timestamp: str,
                 source: SourceFile) -> 'UploadTarget':
        base = batch_prefix(prefix, run_timestamp)
        name = f"{source.relative_path}.zip"
        return cls(bucket=bucket, key=f"{base}/{name}" if base else name)

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


class UploadStatus(str, Enum):
    SUCCESS = 'success'
    NOT_STARTED = 'not_started'
    INCOMPLETE = 'incomplete'


@dataclass
class UploadOutcome:
    """Result of a single throttled upload attempt."""
    status: UploadStatus
    key: str
    bytes_sent: int = 0
    duration: float = 0.0
    etag: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == UploadStatus.SUCCESS


class FileState(str, Enum):
    DISCOVERED = 'discovered'
    ARCHIVED = 'archived'
    UPLOADED = 'uploaded'
    RETIRED = 'retired'
    RETAINED = 'retained'
    ARCHIVE_FAILED = 'archive_failed'
    UPLOAD_FAILED = 'upload_failed'

    @property
    def is_failure(self) -> bool:
        return self in (FileState.ARCHIVE_FAILED, FileState.UPLOAD_FAILED)

    @property
    def is_terminal(self) -> bool:
        return self in (FileState.RETIRED, FileState.RETAINED,
                        FileState.ARCHIVE_FAILED, FileState.UPLOAD_FAILED)


@dataclass
class FileResult:
    """Final state of one source file after its pipeline step."""
    source: SourceFile
    state: FileState
    key: Optional[str] = None
    age_days: Optional[int] = None
    error: Optional[str] = None


@dataclass
class RunResult:
    """Aggregate outcome of one run.

    ``failed`` is only ever set, never cleared.
    """
    run_timestamp: str
    files: List[FileResult] = field(default_factory=list)
    failed: bool = False

    def record(self, result: FileResult) -> None:
        self.files.append(result)
        if result.state.is_failure:
            self.failed = True

    def count(self, state: FileState) -> int:
        return sum(1 for f in self.files if f.state == state)

    def counts(self) -> Dict[str, int]:
        return {state.value: self.count(state) for state in FileState if state.is_terminal}

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0
