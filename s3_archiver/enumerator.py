"""Discover source files for a run, oldest first."""

import logging
import os
import stat
from pathlib import Path
from typing import Iterator, List, Union

from s3_archiver.errors import EmptySourceError, SourceNotFoundError
from s3_archiver.models import SourceFile

logger = logging.getLogger(__name__)


def _scan(source_dir: Path) -> List[SourceFile]:
    files = []
    for dirpath, dirnames, filenames in os.walk(source_dir, followlinks=False):
        dirnames.sort()
        for filename in filenames:
            path = Path(dirpath) / filename
            try:
                st = os.lstat(path)
            except OSError as e:
                logger.warning(f"Could not stat {path}: {e}")
                continue

            # Same selection as `find -type f`: symlinks are never followed
            if not stat.S_ISREG(st.st_mode):
                logger.debug(f"Skipping non-regular file: {path}")
                continue

            files.append(SourceFile(
                path=path.absolute(),
                relative_path=path.relative_to(source_dir).as_posix(),
                mtime=st.st_mtime,
                size=st.st_size,
            ))
    return files


def enumerate_files(source_dir: Union[str, Path]) -> Iterator[SourceFile]:
    """Return the regular files under ``source_dir`` ordered oldest first.

    The directory is walked and sorted before this returns, so a missing or
    empty source fails immediately rather than on first iteration.

    Args:
        source_dir: Root directory to walk recursively

    Returns:
        Iterator of SourceFile ordered by (mtime, relative_path)

    Raises:
        SourceNotFoundError: If the directory does not exist
        EmptySourceError: If it contains no regular files
    """
    root = Path(source_dir)
    if not root.is_dir():
        raise SourceNotFoundError(f"SOURCE_DIR '{root}' does not exist.")

    files = _scan(root)
    if not files:
        raise EmptySourceError(f"SOURCE_DIR '{root}' is empty. Nothing to upload.")

    files.sort(key=lambda f: (f.mtime, f.relative_path))
    logger.debug(f"Discovered {len(files)} file(s) under {root}")
    return iter(files)


def count_files(source_dir: Union[str, Path]) -> int:
    """Number of regular files under ``source_dir`` (0 if it does not exist)."""
    root = Path(source_dir)
    if not root.is_dir():
        return 0
    return len(_scan(root))
