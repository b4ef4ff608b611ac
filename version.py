import logging
import subprocess
from importlib import metadata
from pathlib import Path

logger = logging.getLogger(__name__)

DIST_NAME = 's3-file-archiver'


def get_version():
    """Version from the git checkout, falling back to installed package metadata."""
    repo_dir = Path(__file__).resolve().parent
    try:
        described = subprocess.check_output(
            ['git', 'describe', '--tags', '--always', '--dirty=-dev'],
            cwd=repo_dir,
            stderr=subprocess.DEVNULL,
            text=True
        ).strip()
        if described:
            return described
    except (subprocess.CalledProcessError, FileNotFoundError):
        pass

    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        logger.debug("Could not determine version from git or package metadata")
        return "v0.0.0"


__version__ = get_version()
