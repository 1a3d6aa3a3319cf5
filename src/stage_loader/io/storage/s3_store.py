"""S3-backed object storage for manifests and staged files."""

from typing import Any, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from stage_loader.io.loader.models import ConfigurationError, StorageError
from stage_loader.utils.logging import get_logger

logger = get_logger(__name__)


def s3_url(bucket: str, key: str) -> str:
    return f"s3://{bucket}/{key}"


class BlobStore(Protocol):
    """Object storage collaborator used by the loader."""

    def put(self, bucket: str, key: str, body: bytes) -> str: ...

    def delete(self, bucket: str, key: str) -> None: ...


class S3BlobStore:
    """BlobStore over a boto3 S3 client."""

    def __init__(
        self,
        client: Optional[Any] = None,
        region_name: Optional[str] = None,
        profile_name: Optional[str] = None,
    ):
        if client is None:
            try:
                session = boto3.Session(profile_name=profile_name)
                if region_name:
                    client = session.client("s3", region_name=region_name)
                else:
                    client = session.client("s3")
            except BotoCoreError as exc:
                logger.error(
                    "storage.client.unavailable", profile=profile_name, error=str(exc)
                )
                raise ConfigurationError(f"Cannot create S3 client: {exc}") from exc
        self._client = client

    def put(self, bucket: str, key: str, body: bytes) -> str:
        try:
            self._client.put_object(Bucket=bucket, Key=key, Body=body)
        except (BotoCoreError, ClientError) as exc:
            logger.error(
                "storage.put.failed", bucket=bucket, key=key, error=str(exc)
            )
            raise StorageError(f"Failed to upload s3://{bucket}/{key}: {exc}") from exc
        return s3_url(bucket, key)

    def delete(self, bucket: str, key: str) -> None:
        try:
            self._client.delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.error(
                "storage.delete.failed", bucket=bucket, key=key, error=str(exc)
            )
            raise StorageError(f"Failed to delete s3://{bucket}/{key}: {exc}") from exc
        logger.debug("storage.object.deleted", bucket=bucket, key=key)
