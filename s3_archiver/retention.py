"""Decide whether an uploaded original may be deleted locally."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from s3_archiver.models import SourceFile

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


@dataclass
class RetentionDecision:
    delete: bool
    age_days: int
    reason: str


def file_age_days(source: SourceFile, now: Optional[float] = None) -> int:
    """Whole days since the file's last modification (floor division)."""
    if now is None:
        now = time.time()
    return int((now - source.mtime) // SECONDS_PER_DAY)


def should_delete(source: SourceFile, min_age_days: int, upload_succeeded: bool,
                  now: Optional[float] = None) -> RetentionDecision:
    """Delete only after a confirmed upload and when age >= ``min_age_days``.

    Age is measured from the file's mtime, not from when it was uploaded.
    """
    age = file_age_days(source, now)

    if not upload_succeeded:
        return RetentionDecision(False, age, "upload did not succeed")

    if age >= min_age_days:
        return RetentionDecision(True, age, f"age {age} days >= {min_age_days} days")

    return RetentionDecision(
        False, age, f"age: {age} days, must be at least {min_age_days} days old"
    )


def retire(source: SourceFile, dry_run: bool = False) -> bool:
    """Delete the original file. Returns False in dry-run mode."""
    if dry_run:
        logger.info(f"🧩 [Dry Run] Would delete: {source.relative_path}")
        return False
    source.path.unlink()
    return True
