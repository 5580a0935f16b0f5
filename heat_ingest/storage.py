"""
Blob storage for uploaded CSV traces and photos.

Supports multiple storage backends:
- Local filesystem (development/testing)
- S3-compatible object storage (MinIO, AWS S3, etc.)

Every backend follows the same contract: store a blob and get its path back,
read it again, and issue a time-limited URL for it.
"""

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Mapping, Optional
import logging

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Check if a blob exists at the given path."""

    @abstractmethod
    def store_blob(self, path: str, data: bytes) -> str:
        """
        Store bytes under a path.

        Args:
            path: Destination path (key) of the blob
            data: Blob contents

        Returns:
            The path the blob was stored under
        """

    @abstractmethod
    def read_file(self, path: str) -> bytes:
        """Read blob contents as bytes."""

    @abstractmethod
    def delete_file(self, path: str) -> None:
        """Delete a blob; missing blobs are ignored."""

    @abstractmethod
    def get_file_size(self, path: str) -> int:
        """Blob size in bytes."""

    @abstractmethod
    def signed_url(self, path: str, expires_in: int = 3600) -> str:
        """
        Issue a URL granting read access to a blob.

        Args:
            path: Blob path
            expires_in: Validity in seconds

        Returns:
            URL string
        """


class LocalStorageBackend(StorageBackend):
    """Local filesystem storage backend."""

    def __init__(self, base_path: str = "/app/data"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized LocalStorageBackend with base_path: {self.base_path}")

    def _resolve_path(self, path: str) -> Path:
        """Resolve a path relative to base_path and ensure it's within base_path."""
        full_path = (self.base_path / path).resolve()
        base = self.base_path.resolve()
        if full_path != base and base not in full_path.parents:
            raise ValueError(f"Path {path} is outside base_path")
        return full_path

    def exists(self, path: str) -> bool:
        return self._resolve_path(path).exists()

    def store_blob(self, path: str, data: bytes) -> str:
        file_path = self._resolve_path(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "wb") as f:
            f.write(data)
        logger.debug(f"Stored {len(data)} bytes at {file_path}")
        return path

    def read_file(self, path: str) -> bytes:
        file_path = self._resolve_path(path)
        with open(file_path, "rb") as f:
            return f.read()

    def delete_file(self, path: str) -> None:
        file_path = self._resolve_path(path)
        if file_path.exists():
            file_path.unlink()

    def get_file_size(self, path: str) -> int:
        return self._resolve_path(path).stat().st_size

    def signed_url(self, path: str, expires_in: int = 3600) -> str:
        """Local blobs are served as file:// URIs; expiry does not apply."""
        file_path = self._resolve_path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        return file_path.as_uri()


class S3StorageBackend(StorageBackend):
    """S3-compatible storage backend (AWS S3, MinIO, etc.)."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: str = "us-east-1",
    ):
        """
        Initialize S3 storage backend.

        Args:
            bucket: S3 bucket name
            endpoint_url: S3 endpoint URL (for MinIO or custom S3)
            access_key: AWS access key ID
            secret_key: AWS secret access key
            region: AWS region
        """
        try:
            import boto3
            from botocore.exceptions import ClientError
        except ImportError:
            raise ImportError(
                "boto3 is required for S3StorageBackend. "
                "Install with: pip install boto3"
            )

        self.bucket = bucket
        self.ClientError = ClientError

        client_kwargs = {"region_name": region}
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url
        if access_key and secret_key:
            client_kwargs["aws_access_key_id"] = access_key
            client_kwargs["aws_secret_access_key"] = secret_key

        self.s3_client = boto3.client("s3", **client_kwargs)
        logger.info(
            f"Initialized S3StorageBackend with bucket: {bucket}, "
            f"endpoint: {endpoint_url or 'AWS'}"
        )

    def exists(self, path: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=path)
            return True
        except self.ClientError:
            return False

    def store_blob(self, path: str, data: bytes) -> str:
        try:
            self.s3_client.put_object(Bucket=self.bucket, Key=path, Body=data)
        except self.ClientError as e:
            raise IOError(f"Error writing to S3: {path}") from e
        return path

    def read_file(self, path: str) -> bytes:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=path)
            return response["Body"].read()
        except self.ClientError as e:
            raise FileNotFoundError(f"File not found in S3: {path}") from e

    def delete_file(self, path: str) -> None:
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=path)
        except self.ClientError as e:
            logger.error(f"Error deleting S3 object {path}: {e}")

    def get_file_size(self, path: str) -> int:
        try:
            response = self.s3_client.head_object(Bucket=self.bucket, Key=path)
            return response["ContentLength"]
        except self.ClientError as e:
            raise FileNotFoundError(f"File not found in S3: {path}") from e

    def signed_url(self, path: str, expires_in: int = 3600) -> str:
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=expires_in,
            )
        except self.ClientError as e:
            raise IOError(f"Error creating signed URL for {path}") from e


def get_storage_backend(config: Optional[Mapping[str, object]] = None) -> StorageBackend:
    """
    Create the storage backend from the `storage` config section.

    Environment variables override the config file:
        STORAGE_BACKEND: 'local' (default), 's3', or 'minio'
        STORAGE_BASE_PATH: Base path for local storage (default: /app/data)
        STORAGE_S3_BUCKET: S3 bucket name (required for s3/minio)
        STORAGE_S3_ENDPOINT: S3 endpoint URL (required for minio)
        STORAGE_S3_ACCESS_KEY: S3 access key
        STORAGE_S3_SECRET_KEY: S3 secret key
        STORAGE_S3_REGION: S3 region (default: us-east-1)

    Returns:
        Configured StorageBackend instance
    """
    config = config or {}

    def setting(env_name: str, key: str, default=None):
        return os.getenv(env_name) or config.get(key) or default

    backend_type = str(setting("STORAGE_BACKEND", "backend", "local")).lower()

    if backend_type == "local":
        return LocalStorageBackend(
            base_path=setting("STORAGE_BASE_PATH", "base_path", "/app/data")
        )

    elif backend_type in ["s3", "minio"]:
        bucket = setting("STORAGE_S3_BUCKET", "bucket")
        if not bucket:
            raise ValueError("STORAGE_S3_BUCKET is required for S3/MinIO backend")

        endpoint_url = None
        if backend_type == "minio":
            endpoint_url = setting("STORAGE_S3_ENDPOINT", "endpoint")
            if not endpoint_url:
                raise ValueError("STORAGE_S3_ENDPOINT is required for MinIO backend")

        return S3StorageBackend(
            bucket=bucket,
            endpoint_url=endpoint_url,
            access_key=os.getenv("STORAGE_S3_ACCESS_KEY"),
            secret_key=os.getenv("STORAGE_S3_SECRET_KEY"),
            region=setting("STORAGE_S3_REGION", "region", "us-east-1"),
        )

    else:
        raise ValueError(
            f"Unknown storage backend: {backend_type}. "
            f"Supported: 'local', 's3', 'minio'"
        )
