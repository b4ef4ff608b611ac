"""Object storage backends."""

import logging
from abc import ABC, abstractmethod
from typing import BinaryIO, Callable, Dict, List, Optional

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from s3_archiver.errors import PreflightError

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_CLASS = 'STANDARD_IA'


class ObjectStore(ABC):
    """Capabilities the pipeline needs from an object store."""

    @abstractmethod
    def whoami(self) -> str:
        """Return the principal behind the configured credentials.

        Raises:
            PreflightError: If the credentials are rejected
        """

    @abstractmethod
    def bucket_exists(self, bucket: str) -> bool:
        ...

    @abstractmethod
    def list_buckets(self) -> List[str]:
        ...

    @abstractmethod
    def put_object_stream(self, bucket: str, key: str, stream: BinaryIO,
                          storage_class: str = DEFAULT_STORAGE_CLASS,
                          size: Optional[int] = None,
                          callback: Optional[Callable[[int], None]] = None) -> Optional[str]:
        """Upload everything ``stream`` yields to ``bucket/key``; return the ETag if known."""

    @abstractmethod
    def head_object(self, bucket: str, key: str) -> Optional[Dict]:
        """Object metadata, or None if the key does not exist."""


class S3ObjectStore(ObjectStore):
    """boto3-backed store.

    Transfers run on the calling thread so the only reader of the throttled
    stream is the request being sent.
    """

    def __init__(self, region: str, access_key_id: Optional[str] = None,
                 secret_access_key: Optional[str] = None, s3_client=None, sts_client=None):
        self.region = region

        if s3_client is None or sts_client is None:
            session = boto3.session.Session(
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                region_name=region,
            )
            boto_config = BotoConfig(
                region_name=region,
                retries={'max_attempts': 3, 'mode': 'adaptive'}
            )
            s3_client = s3_client or session.client('s3', config=boto_config)
            sts_client = sts_client or session.client('sts', config=boto_config)

        self.s3_client = s3_client
        self.sts_client = sts_client
        self.transfer_config = TransferConfig(use_threads=False)

    @classmethod
    def from_config(cls, config) -> 'S3ObjectStore':
        return cls(
            region=config.aws_default_region,
            access_key_id=config.aws_access_key_id,
            secret_access_key=config.aws_secret_access_key,
        )

    def whoami(self) -> str:
        try:
            identity = self.sts_client.get_caller_identity()
        except ClientError as e:
            error = e.response['Error']
            raise PreflightError(
                f"AWS credentials test failed: {error.get('Code')} - {error.get('Message')}"
            ) from e
        except BotoCoreError as e:
            raise PreflightError(f"AWS credentials test failed: {e}") from e
        return identity['Arn']

    def bucket_exists(self, bucket: str) -> bool:
        try:
            self.s3_client.head_bucket(Bucket=bucket)
            return True
        except ClientError as e:
            error_code = e.response['Error']['Code']
            if error_code in ('404', 'NoSuchBucket'):
                logger.error(f"Bucket not found: {bucket}")
            elif error_code == '403':
                logger.error(f"Access denied to bucket: {bucket}")
            else:
                logger.error(f"Error accessing bucket {bucket}: {e}")
            return False
        except BotoCoreError as e:
            logger.error(f"Error accessing bucket {bucket}: {e}")
            return False

    def list_buckets(self) -> List[str]:
        try:
            response = self.s3_client.list_buckets()
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Could not list buckets: {e}")
            return []
        return [b['Name'] for b in response.get('Buckets', [])]

    def put_object_stream(self, bucket: str, key: str, stream: BinaryIO,
                          storage_class: str = DEFAULT_STORAGE_CLASS,
                          size: Optional[int] = None,
                          callback: Optional[Callable[[int], None]] = None) -> Optional[str]:
        extra_args = {
            'StorageClass': storage_class,
            'Metadata': {'created_by': 's3-file-archiver'},
        }
        if size is not None:
            extra_args['Metadata']['original_size'] = str(size)

        self.s3_client.upload_fileobj(
            stream,
            bucket,
            key,
            ExtraArgs=extra_args,
            Callback=callback,
            Config=self.transfer_config,
        )
        # upload_fileobj does not report the ETag; verification reads it back
        return None

    def head_object(self, bucket: str, key: str) -> Optional[Dict]:
        try:
            return self.s3_client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if e.response['Error']['Code'] in ('404', 'NoSuchKey', 'NotFound'):
                return None
            raise
