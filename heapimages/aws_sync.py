"""Sync an export directory to an S3 bucket."""

import logging
import mimetypes
import posixpath
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import Config
from .errors import SyncError
from .utils import file_md5, list_files


logger = logging.getLogger(__name__)

# The config is fetched fresh every time a heap is loaded.
CONFIG_CACHE_CONTROL = 'max-age=0'
# Media names carry an md5, so they can be cached forever.
ASSET_CACHE_CONTROL = 'max-age=315360000, public'

_HASHED_NAME_RE = re.compile(r'(-original)?-[a-z0-9]*\.')


@dataclass
class SyncResult:
    """What a sync did to the bucket."""

    uploaded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)


def attachment_name(file_name: str) -> str:
    """Strip the size/hash part of an exported name for downloads."""
    return _HASHED_NAME_RE.sub('.', Path(file_name).name, count=1)


def content_type(file_name: str) -> str:
    mime_type, _ = mimetypes.guess_type(file_name)
    if mime_type is None:
        return 'application/octet-stream'
    if mime_type.startswith('text/') or mime_type == 'application/json':
        return f"{mime_type}; charset=utf-8"
    return mime_type


def upload_args(file_path: Path, acl: str) -> Dict[str, Any]:
    """Extra S3 arguments (headers) for an exported file."""
    args = {'ACL': acl, 'ContentType': content_type(file_path.name)}
    if file_path.suffix == '.json':
        args['CacheControl'] = CONFIG_CACHE_CONTROL
    else:
        args['CacheControl'] = ASSET_CACHE_CONTROL
        args['ContentDisposition'] = f"attachment; filename={attachment_name(file_path.name)}"
    return args


def object_key(prefix: str, file_path: Path) -> str:
    return posixpath.normpath(posixpath.join(prefix, file_path.name)).lstrip('/')


def create_client(config: Config):
    """S3 client with bounded retries from the settings."""
    return boto3.client(
        's3',
        region_name=config.aws_region,
        config=BotoConfig(retries={'max_attempts': config.aws_max_attempts, 'mode': 'standard'}),
    )


class S3Syncer:
    """Mirror a local export directory under a bucket prefix.

    Anything under the prefix that is not part of the export is deleted.
    """

    def __init__(self, bucket: str, prefix: str, config: Optional[Config] = None, client=None):
        """Initialize syncer.

        Args:
            bucket: Target bucket
            prefix: Key prefix for this heap inside the bucket
            config: Settings, defaults to the built-in settings
            client: boto3 S3 client, created from the settings when None
        """
        self.bucket = bucket
        self.prefix = prefix.strip('/')
        self.config = config if config is not None else Config()
        self.client = client if client is not None else create_client(self.config)
        self.transfer_config = TransferConfig(
            multipart_threshold=self.config.multipart_threshold,
            multipart_chunksize=self.config.multipart_chunksize,
        )

    def remote_etag(self, key: str) -> Optional[str]:
        """ETag of a remote object, or None when it does not exist."""
        try:
            return self.client.head_object(Bucket=self.bucket, Key=key)['ETag']
        except ClientError as e:
            code = str(e.response.get('Error', {}).get('Code', ''))
            status = e.response.get('ResponseMetadata', {}).get('HTTPStatusCode')
            if status in (403, 404) or code in ('403', '404', 'NoSuchKey', 'NotFound'):
                return None
            raise SyncError(f"Error checking status of remote file {key}: {e}") from e

    def should_upload(self, file_path: Path, key: str) -> bool:
        return self.remote_etag(key) != f'"{file_md5(file_path)}"'

    def upload(self, file_path: Path, result: SyncResult) -> str:
        key = object_key(self.prefix, file_path)
        if not self.should_upload(file_path, key):
            logger.info("Skipping file %s", key)
            result.skipped.append(key)
            return key

        logger.info("Uploading file %s", key)
        try:
            self.client.upload_file(
                str(file_path), self.bucket, key,
                ExtraArgs=upload_args(file_path, self.config.aws_acl),
                Config=self.transfer_config,
            )
        except (BotoCoreError, ClientError) as e:
            raise SyncError(f"Error uploading file {key}: {e}") from e
        result.uploaded.append(key)
        return key

    def delete_stale(self, keep: List[str], result: SyncResult) -> None:
        """Delete every object under the prefix that is not in keep."""
        keep_set = set(keep)
        stale = []
        try:
            paginator = self.client.get_paginator('list_objects_v2')
            list_prefix = f"{self.prefix}/" if self.prefix else ''
            for page in paginator.paginate(Bucket=self.bucket, Prefix=list_prefix):
                for item in page.get('Contents', []):
                    if item['Key'] not in keep_set:
                        logger.warning("Deleting remote file %s", item['Key'])
                        stale.append(item['Key'])
        except (BotoCoreError, ClientError) as e:
            raise SyncError(f"Error indexing bucket {self.bucket}: {e}") from e

        # delete_objects accepts at most 1000 keys per request
        for start in range(0, len(stale), 1000):
            batch = stale[start:start + 1000]
            try:
                self.client.delete_objects(
                    Bucket=self.bucket,
                    Delete={'Objects': [{'Key': key} for key in batch]},
                )
            except (BotoCoreError, ClientError) as e:
                raise SyncError(f"Error deleting files: {e}") from e
            result.deleted.extend(batch)

    def sync(self, directory: Union[str, Path]) -> SyncResult:
        """Upload media first, then configs, then remove stale objects.

        Args:
            directory: Export directory

        Returns:
            SyncResult
        """
        directory = Path(directory)
        logger.info("Syncing to AWS [bucket: %s] %s", self.bucket, directory)

        files = list_files(directory)
        media = [path for path in files if path.suffix != '.json']
        configs = [path for path in files if path.suffix == '.json']

        result = SyncResult()
        keep = [self.upload(path, result) for path in media + configs]
        self.delete_stale(keep, result)

        logger.info("AWS Sync complete!")
        return result


def sync_to_aws(directory: Union[str, Path], bucket: str, prefix: str,
                config: Optional[Config] = None, client=None,
                remove_dir: Optional[bool] = None) -> SyncResult:
    """Sync an export directory and optionally remove it afterwards."""
    config = config if config is not None else Config()
    result = S3Syncer(bucket, prefix, config, client).sync(directory)

    if remove_dir is None:
        remove_dir = config.remove_staging_dir
    if remove_dir:
        logger.info("Removing temporary directory %s", directory)
        shutil.rmtree(directory, ignore_errors=True)
    return result
