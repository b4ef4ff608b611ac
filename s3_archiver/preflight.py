"""One-time startup checks that gate whether a run may start."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from s3_archiver.archiver import Compressor
from s3_archiver.errors import ArchiverError, PreflightError
from s3_archiver.storage import ObjectStore
from s3_archiver.throttle import parse_rate

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    name: str
    passed: bool
    detail: str = ""


@dataclass
class PreflightReport:
    """Outcome of every preflight check."""
    checks: List[CheckResult] = field(default_factory=list)

    def add(self, name: str, passed: bool, detail: str = "") -> CheckResult:
        check = CheckResult(name, passed, detail)
        self.checks.append(check)
        if passed:
            logger.info(f"✓ {name}: {detail}" if detail else f"✓ {name}")
        else:
            logger.error(f"✗ {name}: {detail}")
        return check

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.checks)

    @property
    def failures(self) -> List[CheckResult]:
        return [c for c in self.checks if not c.passed]

    def raise_for_failures(self) -> None:
        if not self.passed:
            summary = "; ".join(f"{c.name}: {c.detail}" for c in self.failures)
            raise PreflightError(f"Preflight failed - {summary}")


def check_scratch_dir(temp_dir: Path) -> str:
    """Create ``temp_dir`` if needed and prove it is writable.

    Raises:
        PreflightError: If it cannot be created or written to
    """
    temp_dir = Path(temp_dir)
    try:
        temp_dir.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        raise PreflightError(
            f"Cannot create temp directory: {temp_dir} (permission denied)"
        ) from e
    except OSError as e:
        raise PreflightError(f"Cannot create temp directory: {temp_dir} ({e})") from e

    test_file = temp_dir / ".write_test"
    try:
        test_file.write_text("test")
        test_file.unlink()
    except OSError as e:
        raise PreflightError(f"Cannot write to temp directory: {temp_dir} ({e})") from e
    return str(temp_dir)


def run_preflight(config, store: ObjectStore, compressor: Compressor) -> PreflightReport:
    """Check credentials, bucket access, tools and scratch space.

    Args:
        config: Validated ArchiverConfig
        store: Object store to probe
        compressor: Compression backend to probe

    Returns:
        PreflightReport with one entry per check
    """
    report = PreflightReport()
    logger.info("🔍 Running preflight checks...")

    credentials_ok = False
    try:
        identity = store.whoami()
        credentials_ok = True
        report.add("AWS credentials", True, identity)
    except ArchiverError as e:
        report.add("AWS credentials", False, str(e))

    if credentials_ok:
        if store.bucket_exists(config.s3_bucket):
            report.add("S3 bucket access", True, config.s3_bucket)
        else:
            report.add("S3 bucket access", False, f"Cannot access S3 bucket: {config.s3_bucket}")
            buckets = store.list_buckets()
            logger.info("🔍 Buckets you have access to:")
            for name in buckets:
                logger.info(f"  {name}")
    else:
        report.add("S3 bucket access", False, "skipped, credentials not verified")

    if compressor.is_available():
        report.add("Compression tool", True, compressor.name)
    else:
        report.add("Compression tool", False,
                   f"{compressor.name} not found. Please install it first.")

    try:
        rate = parse_rate(config.max_bandwidth)
        report.add("Bandwidth limit", True, f"{config.max_bandwidth} ({rate} B/s)")
    except ArchiverError as e:
        report.add("Bandwidth limit", False, str(e))

    try:
        report.add("Temp directory", True, check_scratch_dir(config.scratch_dir))
    except PreflightError as e:
        report.add("Temp directory", False, str(e))

    return report
