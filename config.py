"""Configuration management for the S3 file archiver.

Settings come from the process environment, optionally seeded from a
``.env`` file. Values already set in the shell win over the file.
"""

import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, ValidationError, field_validator

from s3_archiver.archiver import COMPRESSORS
from s3_archiver.errors import ConfigError
from s3_archiver.throttle import parse_rate

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_ENV_FILE = PROJECT_ROOT / ".env"
DEFAULT_SOURCE_DIR = PROJECT_ROOT / "files"
DEFAULT_LOG_FILE = PROJECT_ROOT / "logs" / "upload.log"
SCRATCH_SUBDIR = "s3_archiver_zips"

REQUIRED_KEYS = (
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_DEFAULT_REGION",
    "S3_BUCKET",
)

# Environment variable -> ArchiverConfig field
ENV_FIELDS = {
    "AWS_ACCESS_KEY_ID": "aws_access_key_id",
    "AWS_SECRET_ACCESS_KEY": "aws_secret_access_key",
    "AWS_DEFAULT_REGION": "aws_default_region",
    "S3_BUCKET": "s3_bucket",
    "SOURCE_DIR": "source_dir",
    "S3_PREFIX": "s3_prefix",
    "VERIFY_UPLOAD": "verify_upload",
    "MIN_FILE_AGE_DAYS": "min_file_age_days",
    "TEMP_DIR": "temp_dir",
    "MAX_BANDWIDTH": "max_bandwidth",
    "S3_STORAGE_CLASS": "storage_class",
    "COMPRESSOR": "compressor",
    "LOG_FILE": "log_file",
    "LOG_LEVEL": "log_level",
}

FIELD_ENVS = {v: k for k, v in ENV_FIELDS.items()}


class ArchiverConfig(BaseModel):
    """Validated settings for one run."""
    aws_access_key_id: str
    aws_secret_access_key: str
    aws_default_region: str
    s3_bucket: str
    source_dir: str = str(DEFAULT_SOURCE_DIR)
    s3_prefix: str = "uploads"
    verify_upload: bool = True
    min_file_age_days: int = 10
    temp_dir: str = tempfile.gettempdir()
    max_bandwidth: str = "2Mb/s"
    storage_class: str = "STANDARD_IA"
    compressor: str = "zipfile"
    log_file: str = str(DEFAULT_LOG_FILE)
    log_level: str = "INFO"
    dry_run: bool = False

    @field_validator('aws_access_key_id', 'aws_secret_access_key',
                     'aws_default_region', 's3_bucket')
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator('source_dir', 'temp_dir', 'log_file', mode='before')
    @classmethod
    def expand_paths(cls, v):
        """Expand environment variables and user home directory."""
        return os.path.expanduser(os.path.expandvars(str(v)))

    @field_validator('min_file_age_days')
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be 0 or greater")
        return v

    @field_validator('max_bandwidth')
    @classmethod
    def valid_rate(cls, v: str) -> str:
        try:
            parse_rate(v)
        except ConfigError as e:
            raise ValueError(str(e))
        return v

    @field_validator('compressor')
    @classmethod
    def known_compressor(cls, v: str) -> str:
        if v not in COMPRESSORS:
            raise ValueError(f"must be one of {', '.join(sorted(COMPRESSORS))}")
        return v

    @field_validator('log_level')
    @classmethod
    def known_level(cls, v: str) -> str:
        v = v.upper()
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError(f"unknown log level '{v}'")
        return v

    @property
    def scratch_dir(self) -> Path:
        """Private subdirectory of TEMP_DIR that holds in-flight archives."""
        return Path(self.temp_dir) / SCRATCH_SUBDIR

    @property
    def rate_limit(self) -> int:
        """Bandwidth cap in bytes per second."""
        return parse_rate(self.max_bandwidth)


def load_config(env_file: Optional[Path] = None,
                overrides: Optional[Dict[str, object]] = None,
                environ: Optional[Mapping[str, str]] = None) -> ArchiverConfig:
    """Build the run configuration from the environment.

    Args:
        env_file: ``.env`` file to read (default: ``.env`` beside this module, if present)
        overrides: Field values that win over everything else (e.g. CLI flags);
                   None values are ignored
        environ: Environment mapping (default: ``os.environ``)

    Returns:
        Validated ArchiverConfig

    Raises:
        ConfigError: If a required setting is missing or a value is invalid
    """
    if environ is None:
        environ = os.environ

    values: Dict[str, str] = {}
    env_path = Path(env_file) if env_file else DEFAULT_ENV_FILE
    if env_path.is_file():
        values.update({k: v for k, v in dotenv_values(env_path).items() if v is not None})
    elif env_file:
        raise ConfigError(f"Env file not found: {env_file}")

    values.update(environ)

    data: Dict[str, object] = {}
    for env_name, field_name in ENV_FIELDS.items():
        value = values.get(env_name)
        if value is not None and value.strip() != "":
            data[field_name] = value.strip()

    for field_name, value in (overrides or {}).items():
        if value is not None:
            data[field_name] = value

    missing = [key for key in REQUIRED_KEYS if ENV_FIELDS[key] not in data]
    if missing:
        raise ConfigError(f"Missing required environment variable(s): {', '.join(missing)}")

    try:
        return ArchiverConfig(**data)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            field_name = str(error['loc'][0]) if error['loc'] else '?'
            problems.append(f"{FIELD_ENVS.get(field_name, field_name)}: {error['msg']}")
        raise ConfigError(f"Invalid configuration - {'; '.join(problems)}") from e


def mask(secret: str, visible: int = 4) -> str:
    return f"{secret[:visible]}..." if secret else ""


def describe_config(config: ArchiverConfig) -> Dict[str, str]:
    """Configuration summary with credentials masked."""
    return {
        "AWS_ACCESS_KEY_ID": mask(config.aws_access_key_id),
        "AWS_SECRET_ACCESS_KEY": mask(config.aws_secret_access_key),
        "AWS_DEFAULT_REGION": config.aws_default_region,
        "S3_BUCKET": config.s3_bucket,
        "SOURCE_DIR": config.source_dir,
        "S3_PREFIX": config.s3_prefix,
        "VERIFY_UPLOAD": str(config.verify_upload).lower(),
        "MIN_FILE_AGE_DAYS": str(config.min_file_age_days),
        "TEMP_DIR": config.temp_dir,
        "MAX_BANDWIDTH": config.max_bandwidth,
        "S3_STORAGE_CLASS": config.storage_class,
        "COMPRESSOR": config.compressor,
    }


def setup_logging(log_file: Optional[str] = None, level: str = "INFO", verbose: bool = False):
    """Log to stdout and, when ``log_file`` is set, append to that file."""
    root_logger = logging.getLogger()
    root_logger.handlers = []

    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(log_level)

    # Quiet all libraries
    for name in ('boto3', 'botocore', 's3transfer', 'urllib3'):
        logging.getLogger(name).setLevel(logging.WARNING)
