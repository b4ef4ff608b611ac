"""Pipeline driver: enumerate, archive, upload and retire files one at a time.

Per-file states::

    DISCOVERED -> ARCHIVED -> UPLOADED -> RETIRED | RETAINED
    DISCOVERED -> ARCHIVE_FAILED
    ARCHIVED   -> UPLOAD_FAILED

A per-file failure marks the run failed and moves on to the next file.
Missing or empty source directories abort the run before anything is
archived.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from s3_archiver.archiver import Compressor, archive
from s3_archiver.enumerator import enumerate_files
from s3_archiver.errors import ArchiveError, UploadError
from s3_archiver.models import (
    FileResult,
    FileState,
    RunResult,
    SourceFile,
    UploadStatus,
    UploadTarget,
    batch_prefix,
)
from s3_archiver.retention import RetentionDecision, retire, should_delete
from s3_archiver.storage import ObjectStore
from s3_archiver.uploader import ThrottledUploader

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y%m%d_%H%M%S'


@dataclass
class PlannedFile:
    """What a run would do with one file, assuming its upload succeeds."""
    source: SourceFile
    target: UploadTarget
    decision: RetentionDecision


class ArchivePipeline:
    """Runs one archival pass over the configured source directory."""

    def __init__(self, config, store: ObjectStore, compressor: Compressor,
                 uploader: Optional[ThrottledUploader] = None,
                 clock: Callable[[], datetime] = datetime.now):
        """
        Args:
            config: Validated ArchiverConfig
            store: Object store handle that passed preflight
            compressor: Compression backend that passed preflight
            uploader: Uploader to use (built from config and store if omitted)
            clock: Source of the current time for run timestamps and file ages
        """
        self.config = config
        self.store = store
        self.compressor = compressor
        self.uploader = uploader or ThrottledUploader(
            store,
            storage_class=config.storage_class,
            verify=config.verify_upload,
        )
        self._clock = clock

    @property
    def scratch_dir(self) -> Path:
        return Path(self.config.scratch_dir)

    def target_for(self, source: SourceFile, run_timestamp: str) -> UploadTarget:
        return UploadTarget.for_file(
            self.config.s3_bucket, self.config.s3_prefix, run_timestamp, source
        )

    def destination_uri(self, run_timestamp: str) -> str:
        return f"s3://{self.config.s3_bucket}/{batch_prefix(self.config.s3_prefix, run_timestamp)}"

    def plan(self, files: Optional[Iterable[SourceFile]] = None,
             run_timestamp: Optional[str] = None) -> List[PlannedFile]:
        """Describe the run without archiving, uploading or deleting anything."""
        now = self._clock()
        if run_timestamp is None:
            run_timestamp = now.strftime(TIMESTAMP_FORMAT)
        if files is None:
            files = enumerate_files(self.config.source_dir)
        return [
            PlannedFile(
                source=source,
                target=self.target_for(source, run_timestamp),
                decision=should_delete(source, self.config.min_file_age_days,
                                       upload_succeeded=True, now=now.timestamp()),
            )
            for source in files
        ]

    def run(self) -> RunResult:
        """Process every discovered file once, oldest first.

        Returns:
            RunResult; ``exit_code`` is 1 if any file failed to archive or upload

        Raises:
            SourceNotFoundError, EmptySourceError: Before any file is processed
        """
        run_timestamp = self._clock().strftime(TIMESTAMP_FORMAT)
        files = enumerate_files(self.config.source_dir)

        logger.info(f"📂 Source: {self.config.source_dir}")
        logger.info(f"☁️ Destination: {self.destination_uri(run_timestamp)}")

        result = RunResult(run_timestamp=run_timestamp)

        if self.config.dry_run:
            logger.info("🧩 Dry run - no archives will be created, uploaded or deleted")
            for planned in self.plan(files, run_timestamp):
                logger.info(f"🧩 [Dry Run] {planned.source.relative_path} -> {planned.target.uri} "
                            f"({'delete' if planned.decision.delete else 'keep'}: "
                            f"{planned.decision.reason})")
            return result

        logger.info("⬆️ Uploading files...")
        for source in files:
            result.record(self.process_file(source, run_timestamp))

        counts = result.counts()
        logger.info(
            f"Run {run_timestamp} finished: {counts['retired']} retired, "
            f"{counts['retained']} retained, {counts['archive_failed']} archive failure(s), "
            f"{counts['upload_failed']} upload failure(s)"
        )
        if result.failed:
            logger.error("❌ One or more files failed; run marked as failed")
        return result

    def process_file(self, source: SourceFile, run_timestamp: str) -> FileResult:
        """Take one file from DISCOVERED to a terminal state."""
        target = self.target_for(source, run_timestamp)
        state = FileState.DISCOVERED
        logger.info(f"📦 Zipping: {source.relative_path}")

        try:
            zip_path = archive(source, self.scratch_dir, self.compressor)
            state = FileState.ARCHIVED
            self._upload(zip_path, target)
            state = FileState.UPLOADED
        except ArchiveError as e:
            logger.error(f"❌ Failed to create zip for {source.relative_path} "
                         f"(stage: {state.value}): {e}")
            return FileResult(source, FileState.ARCHIVE_FAILED, key=target.key, error=str(e))
        except UploadError as e:
            stage = 'transfer' if e.started else 'before transfer'
            logger.error(f"❌ Failed to upload zip for {source.relative_path} "
                         f"(stage: {stage}, {e.bytes_sent} bytes sent): {e}")
            return FileResult(source, FileState.UPLOAD_FAILED, key=target.key, error=str(e))

        return self._apply_retention(source, target)

    def _upload(self, zip_path: Path, target: UploadTarget) -> None:
        outcome = self.uploader.upload(zip_path, target, self.config.rate_limit)
        if not outcome.success:
            raise UploadError(
                outcome.error or outcome.status.value,
                started=outcome.status == UploadStatus.INCOMPLETE,
                bytes_sent=outcome.bytes_sent,
            )

    def _apply_retention(self, source: SourceFile, target: UploadTarget) -> FileResult:
        decision = should_delete(source, self.config.min_file_age_days,
                                 upload_succeeded=True, now=self._clock().timestamp())

        if not decision.delete:
            logger.info(f"⏳ Skipped deletion: {source.relative_path} ({decision.reason})")
            return FileResult(source, FileState.RETAINED, key=target.key,
                              age_days=decision.age_days)

        try:
            retire(source)
        except OSError as e:
            logger.error(f"❌ Could not delete original file {source.relative_path}: {e}")
            return FileResult(source, FileState.RETAINED, key=target.key,
                              age_days=decision.age_days, error=str(e))

        logger.info(f"🗑️ Deleted original file: {source.relative_path} "
                    f"(age: {decision.age_days} days)")
        return FileResult(source, FileState.RETIRED, key=target.key, age_days=decision.age_days)
