"""Throttled archive upload with guaranteed local cleanup."""

import logging
import sys
import time
from pathlib import Path
from typing import Callable, Optional, Tuple

from botocore.exceptions import ConnectTimeoutError, EndpointConnectionError
from tqdm import tqdm

from s3_archiver.models import UploadOutcome, UploadStatus, UploadTarget
from s3_archiver.storage import DEFAULT_STORAGE_CLASS, ObjectStore
from s3_archiver.throttle import ThrottledReader, TokenBucket

logger = logging.getLogger(__name__)

# Failures that happen before a connection exists; nothing can have been sent
_CONNECT_ERRORS = (EndpointConnectionError, ConnectTimeoutError)


class ThrottledUploader:
    """Streams archives to an ObjectStore at a capped rate."""

    def __init__(self, store: ObjectStore, storage_class: str = DEFAULT_STORAGE_CLASS,
                 verify: bool = True, clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep,
                 show_progress: Optional[bool] = None):
        self.store = store
        self.storage_class = storage_class
        self.verify = verify
        self._clock = clock
        self._sleep = sleep
        self.show_progress = sys.stderr.isatty() if show_progress is None else show_progress

    def upload(self, archive_path: Path, target: UploadTarget, rate_limit: int) -> UploadOutcome:
        """Upload ``archive_path`` to ``target`` at no more than ``rate_limit`` bytes/s.

        The local archive is deleted before returning, whatever the outcome.

        Args:
            archive_path: Local zip to send
            target: Destination bucket and key
            rate_limit: Bytes per second

        Returns:
            UploadOutcome; status tells success, not started, or incomplete
        """
        try:
            return self._upload(Path(archive_path), target, rate_limit)
        finally:
            self._remove_archive(Path(archive_path))

    def _upload(self, archive_path: Path, target: UploadTarget, rate_limit: int) -> UploadOutcome:
        try:
            file_size = archive_path.stat().st_size
        except OSError as e:
            logger.error(f"❌ Archive not found: {archive_path}")
            return UploadOutcome(UploadStatus.NOT_STARTED, target.key, error=str(e))

        logger.info(f"📤 Uploading zip: {archive_path.name}")
        logger.debug(f"  Destination: {target.uri}")
        logger.debug(f"  Storage class: {self.storage_class}, limit: {rate_limit} B/s")

        try:
            f = open(archive_path, 'rb')
        except OSError as e:
            logger.error(f"❌ Cannot open archive {archive_path}: {e}")
            return UploadOutcome(UploadStatus.NOT_STARTED, target.key, error=str(e))

        bucket = TokenBucket(rate_limit, clock=self._clock, sleep=self._sleep)
        start = self._clock()

        with tqdm(total=file_size, unit='B', unit_scale=True, desc="  Uploading",
                  leave=False, disable=not self.show_progress) as pbar:
            with f:
                reader = ThrottledReader(f, bucket, callback=pbar.update)
                try:
                    etag = self.store.put_object_stream(
                        target.bucket,
                        target.key,
                        reader,
                        storage_class=self.storage_class,
                        size=file_size,
                    )
                except Exception as e:
                    return self._failed(target, reader.bytes_read, start, e)

        duration = self._clock() - start

        if self.verify:
            mismatch, remote_etag = self._verify(target, file_size)
            etag = etag or remote_etag
            if mismatch:
                logger.error(f"❌ Upload verification failed for {target.key}: {mismatch}")
                return UploadOutcome(UploadStatus.INCOMPLETE, target.key,
                                     bytes_sent=reader.bytes_read, duration=duration,
                                     etag=etag, error=mismatch)

        rate = file_size / duration / (1024 * 1024) if duration > 0 else 0
        logger.info(f"✅ Uploaded zip: {archive_path.name} ({rate:.2f} MB/s, {duration:.1f}s)")
        return UploadOutcome(UploadStatus.SUCCESS, target.key, bytes_sent=reader.bytes_read,
                             duration=duration, etag=etag)

    def _failed(self, target: UploadTarget, bytes_sent: int, start: float,
                error: Exception) -> UploadOutcome:
        duration = self._clock() - start
        if bytes_sent == 0 or isinstance(error, _CONNECT_ERRORS):
            logger.error(f"❌ Upload never started for {target.key}: {error}")
            status = UploadStatus.NOT_STARTED
        else:
            logger.error(f"❌ Upload interrupted for {target.key} after {bytes_sent} bytes: {error}")
            status = UploadStatus.INCOMPLETE
        return UploadOutcome(status, target.key, bytes_sent=bytes_sent,
                             duration=duration, error=str(error))

    def _verify(self, target: UploadTarget,
                expected_size: int) -> Tuple[Optional[str], Optional[str]]:
        """Compare the remote object size with the local archive.

        Returns:
            (problem or None, remote ETag or None)
        """
        try:
            head = self.store.head_object(target.bucket, target.key)
        except Exception as e:
            return f"head_object failed: {e}", None
        if head is None:
            return "object not found after upload", None
        remote_etag = (head.get('ETag') or '').strip('"') or None
        remote_size = head.get('ContentLength')
        if remote_size != expected_size:
            return f"size mismatch (local {expected_size}, remote {remote_size})", remote_etag
        logger.debug(f"✓ Verified {target.key} ({remote_size} bytes)")
        return None, remote_etag

    @staticmethod
    def _remove_archive(archive_path: Path) -> None:
        try:
            archive_path.unlink()
            logger.info(f"🗑️ Temporary zip deleted: {archive_path.name}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"⚠️ Failed to delete temporary zip {archive_path}: {e}")
