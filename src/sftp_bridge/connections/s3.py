"""
S3 connection for object store operations.

Provides a lazily created boto3 client plus the handful of operations the
sync engines need: read with metadata, streamed write with metadata, and
copy-in-place with replaced metadata.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Mapping, Optional

from botocore.exceptions import BotoCoreError, ClientError

from sftp_bridge.exceptions import TransportError
from sftp_bridge.utils.logging import get_logger

logger = get_logger("sftp_bridge.connections.s3")


@dataclass
class StoredObject:
    """An object read from the store: payload plus user metadata."""

    bucket: str
    key: str
    body: bytes
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return f"{self.bucket}/{self.key}"


class S3Connection:
    """
    S3 connection wrapper for object store operations.

    Supports AWS credentials from config, environment, or IAM role.

    Config example:
        config:
          region: us-east-1
          access_key_id: AKIA...  # Optional, uses env/IAM if not set
          secret_access_key: ...   # Optional
          session_token: ...       # Optional (for temp creds)
          endpoint_url: ...        # Optional (for S3-compatible services)
    """

    def __init__(self, name: str = "s3", config: Optional[dict[str, Any]] = None):
        self.name = name
        self.config = config or {}
        self._client = None
        # Engines fan out across worker threads; boto3's default session is not thread-safe.
        self._client_lock = threading.Lock()

    @property
    def _cfg(self) -> dict[str, Any]:
        return self.config.get("config", {})

    @property
    def region(self) -> Optional[str]:
        return self._cfg.get("region")

    @property
    def endpoint_url(self) -> Optional[str]:
        """Custom endpoint URL (for S3-compatible services like MinIO)."""
        return self._cfg.get("endpoint_url")

    def _get_client_kwargs(self) -> dict[str, Any]:
        """Build kwargs for boto3 client initialization."""
        kwargs: dict[str, Any] = {}

        if self.region:
            kwargs["region_name"] = self.region

        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url

        # Explicit credentials from config (override env/IAM)
        access_key = self._cfg.get("access_key_id")
        secret_key = self._cfg.get("secret_access_key")
        session_token = self._cfg.get("session_token")

        if access_key and secret_key:
            kwargs["aws_access_key_id"] = access_key
            kwargs["aws_secret_access_key"] = secret_key
            if session_token:
                kwargs["aws_session_token"] = session_token

        return kwargs

    @property
    def client(self):
        """
        Get boto3 S3 client (lazy initialization).

        Returns:
            boto3.client('s3') instance
        """
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    import boto3

                    self._client = boto3.client("s3", **self._get_client_kwargs())
        return self._client

    def get_object(self, bucket: str, key: str) -> StoredObject:
        """
        Read an object's payload and user metadata.

        Raises:
            TransportError: If the object cannot be read
        """
        try:
            response = self.client.get_object(Bucket=bucket, Key=key)
            body = response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise TransportError(
                f"Failed to read s3://{bucket}/{key}: {e}",
                details={"bucket": bucket, "key": key},
                cause=e,
            ) from e
        return StoredObject(bucket=bucket, key=key, body=body, metadata=dict(response.get("Metadata") or {}))

    def read_bytes(self, bucket: str, key: str) -> bytes:
        return self.get_object(bucket, key).body

    def upload_fileobj(
        self,
        fileobj: BinaryIO,
        bucket: str,
        key: str,
        *,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Stream a file-like object into the store (full overwrite).

        Returns:
            S3 URI of the written object
        """
        extra_args = {"Metadata": dict(metadata)} if metadata else None
        try:
            self.client.upload_fileobj(fileobj, bucket, key, ExtraArgs=extra_args)
        except (ClientError, BotoCoreError) as e:
            raise TransportError(
                f"Failed to write s3://{bucket}/{key}: {e}",
                details={"bucket": bucket, "key": key},
                cause=e,
            ) from e
        return f"s3://{bucket}/{key}"

    def copy_with_metadata(self, bucket: str, key: str, metadata: Mapping[str, str]) -> None:
        """
        Replace an object's metadata in place without rewriting the payload.
        """
        try:
            self.client.copy_object(
                Bucket=bucket,
                Key=key,
                CopySource={"Bucket": bucket, "Key": key},
                Metadata=dict(metadata),
                MetadataDirective="REPLACE",
            )
        except (ClientError, BotoCoreError) as e:
            raise TransportError(
                f"Failed to update metadata of s3://{bucket}/{key}: {e}",
                details={"bucket": bucket, "key": key},
                cause=e,
            ) from e

    def close(self) -> None:
        """Close S3 client connections."""
        # boto3 clients don't require explicit closing,
        # but we reset for consistency
        self._client = None

    def __enter__(self) -> "S3Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
