"""Single-file zip archives in the scratch directory."""

import logging
import shutil
import subprocess
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path

from s3_archiver.errors import ArchiveError, ConfigError
from s3_archiver.models import SourceFile

logger = logging.getLogger(__name__)


def format_size(bytes_size: int) -> str:
    """Format bytes as human-readable size."""
    if bytes_size == 0:
        return "0 B"
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_size < 1024.0:
            return f"{bytes_size:.2f} {unit}"
        bytes_size /= 1024.0
    return f"{bytes_size:.2f} PB"


class Compressor(ABC):
    """Compresses one input file into a single-entry archive."""

    name = 'compressor'

    @abstractmethod
    def compress_single_file(self, input_path: Path, output_path: Path) -> None:
        """Write ``output_path`` containing only ``input_path``'s base name.

        Raises:
            OSError or subprocess.CalledProcessError on failure
        """

    def is_available(self) -> bool:
        return True


class ZipfileCompressor(Compressor):
    """In-process zip using the standard library."""

    name = 'zipfile'

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED):
        self.compression = compression

    def compress_single_file(self, input_path: Path, output_path: Path) -> None:
        # strict_timestamps off: pre-1980 mtimes are clamped instead of raising
        with zipfile.ZipFile(output_path, 'w', self.compression,
                             strict_timestamps=False) as zf:
            zf.write(input_path, arcname=input_path.name)


class ZipCliCompressor(Compressor):
    """External ``zip`` utility, junking directory names (``-j``)."""

    name = 'zip'

    def __init__(self, executable: str = 'zip'):
        self.executable = executable

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def compress_single_file(self, input_path: Path, output_path: Path) -> None:
        subprocess.run(
            [self.executable, '-q', '-j', str(output_path), str(input_path)],
            check=True,
            capture_output=True,
        )


COMPRESSORS = {
    ZipfileCompressor.name: ZipfileCompressor,
    ZipCliCompressor.name: ZipCliCompressor,
}


def get_compressor(name: str) -> Compressor:
    """Build the compressor registered under ``name``."""
    try:
        return COMPRESSORS[name]()
    except KeyError:
        raise ConfigError(
            f"Unknown compressor '{name}'. Available: {', '.join(sorted(COMPRESSORS))}"
        )


def archive_path_for(source: SourceFile, scratch_dir: Path) -> Path:
    return Path(scratch_dir) / f"{source.name}.zip"


def archive(source: SourceFile, scratch_dir: Path, compressor: Compressor) -> Path:
    """Create ``<scratch_dir>/<basename>.zip`` holding only ``source``.

    The original file is only read. A partial archive is removed before
    ArchiveError is raised.

    Args:
        source: File to archive
        scratch_dir: Directory for the temporary archive
        compressor: Compression backend

    Returns:
        Path to the created archive
    """
    zip_path = archive_path_for(source, scratch_dir)

    try:
        # Leftover from an interrupted run; zip would append to it
        if zip_path.exists():
            logger.debug(f"Removing stale archive: {zip_path}")
            zip_path.unlink()

        compressor.compress_single_file(source.path, zip_path)
        zip_size = zip_path.stat().st_size
    except subprocess.CalledProcessError as e:
        zip_path.unlink(missing_ok=True)
        stderr = (e.stderr or b'').decode(errors='replace').strip()
        raise ArchiveError(
            f"{compressor.name} exited with status {e.returncode}: {stderr}"
        ) from e
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        zip_path.unlink(missing_ok=True)
        raise ArchiveError(str(e)) from e

    logger.info(f"✓ Zip created: {zip_path.name} (size: {format_size(zip_size)})")
    return zip_path
