"""
infra/blob_store.py — Raw CSV upload storage backed by S3 (or LocalStack).

The web process writes each accepted upload here and the import worker reads
it back by key. Nothing else in the application touches boto3 for storage.

Every boto3/botocore failure is re-raised as BlobStoreError so callers can
tell infrastructure trouble from their own bugs.
"""

from __future__ import annotations

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    """Raised when the object store cannot be reached or rejects a call."""


class S3BlobStore:

    def __init__(self, client, bucket: str) -> None:
        self._client = client
        self.bucket = bucket

    @classmethod
    def from_config(cls, config) -> "S3BlobStore":
        client = boto3.client(
            "s3",
            endpoint_url=config.get("AWS_S3_ENDPOINT"),
            region_name=config.get("AWS_S3_REGION"),
            aws_access_key_id=config.get("AWS_S3_ACCESS_KEY_ID"),
            aws_secret_access_key=config.get("AWS_S3_SECRET_ACCESS_KEY"),
        )
        return cls(client, config["AWS_S3_BUCKET"])

    def ensure_bucket(self) -> None:
        """Creates the bucket if it does not exist yet (local development)."""
        try:
            self._client.head_bucket(Bucket=self.bucket)
            logger.info("S3 bucket %r already exists", self.bucket)
            return
        except ClientError:
            pass

        logger.info("Creating S3 bucket %r", self.bucket)
        try:
            self._client.create_bucket(Bucket=self.bucket)
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(f"Could not create bucket {self.bucket}: {exc}") from exc

    def put(self, key: str, data: bytes, content_type: str = "text/csv") -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(f"Upload of {key} failed: {exc}") from exc
        logger.info("Stored object %s (%d bytes)", key, len(data))

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(f"Download of {key} failed: {exc}") from exc
