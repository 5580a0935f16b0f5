"""
Tests for the blob storage backends.
"""

import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from ..storage import LocalStorageBackend, S3StorageBackend, get_storage_backend


# ==================== LocalStorageBackend Tests ====================


class TestLocalStorageBackend:
    @pytest.fixture
    def storage(self, tmp_path):
        return LocalStorageBackend(base_path=str(tmp_path))

    def test_initialization_creates_directory(self, tmp_path):
        new_path = tmp_path / "blobs"
        LocalStorageBackend(base_path=str(new_path))
        assert new_path.exists()

    def test_store_and_read_blob(self, storage, tmp_path):
        path = storage.store_blob("csv/route.csv", b"date,time\n")

        assert path == "csv/route.csv"
        assert (tmp_path / "csv" / "route.csv").exists()
        assert storage.read_file(path) == b"date,time\n"
        assert storage.exists(path)
        assert storage.get_file_size(path) == 10

    def test_delete_file(self, storage):
        storage.store_blob("images/a.jpg", b"jpeg")
        storage.delete_file("images/a.jpg")
        assert not storage.exists("images/a.jpg")
        # missing blobs are ignored
        storage.delete_file("images/a.jpg")

    def test_signed_url(self, storage, tmp_path):
        storage.store_blob("images/a.jpg", b"jpeg")
        url = storage.signed_url("images/a.jpg", expires_in=60)
        assert url == (tmp_path / "images" / "a.jpg").resolve().as_uri()

        with pytest.raises(FileNotFoundError):
            storage.signed_url("images/missing.jpg")

    def test_path_traversal_protection(self, storage):
        with pytest.raises(ValueError, match="outside base_path"):
            storage.store_blob("../escape.csv", b"x")
        with pytest.raises(ValueError, match="outside base_path"):
            storage.read_file("csv/../../etc/passwd")


# ==================== S3StorageBackend Tests ====================


class TestS3StorageBackend:
    @pytest.fixture
    def mock_s3_client(self):
        boto3 = pytest.importorskip("boto3")
        mock_client = MagicMock()
        with patch.object(boto3, "client", return_value=mock_client) as factory:
            mock_client.factory = factory
            yield mock_client

    @pytest.fixture
    def storage(self, mock_s3_client):
        return S3StorageBackend(
            bucket="test-bucket",
            endpoint_url="http://localhost:9000",
            access_key="test-key",
            secret_key="test-secret",
        )

    def test_client_configuration(self, storage, mock_s3_client):
        mock_s3_client.factory.assert_called_once_with(
            "s3",
            region_name="us-east-1",
            endpoint_url="http://localhost:9000",
            aws_access_key_id="test-key",
            aws_secret_access_key="test-secret",
        )

    def test_store_blob(self, storage, mock_s3_client):
        assert storage.store_blob("csv/a.csv", b"data") == "csv/a.csv"
        mock_s3_client.put_object.assert_called_once_with(
            Bucket="test-bucket", Key="csv/a.csv", Body=b"data"
        )

    def test_store_blob_error(self, storage, mock_s3_client):
        from botocore.exceptions import ClientError

        mock_s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied"}}, "PutObject"
        )
        with pytest.raises(IOError, match="Error writing to S3"):
            storage.store_blob("csv/a.csv", b"data")

    def test_exists_false_on_client_error(self, storage, mock_s3_client):
        from botocore.exceptions import ClientError

        mock_s3_client.head_object.side_effect = ClientError(
            {"Error": {"Code": "404"}}, "HeadObject"
        )
        assert storage.exists("csv/a.csv") is False

    def test_read_file(self, storage, mock_s3_client):
        body = MagicMock()
        body.read.return_value = b"content"
        mock_s3_client.get_object.return_value = {"Body": body}
        assert storage.read_file("csv/a.csv") == b"content"

    def test_signed_url(self, storage, mock_s3_client):
        mock_s3_client.generate_presigned_url.return_value = "https://signed"

        assert storage.signed_url("images/a.jpg", expires_in=120) == "https://signed"
        mock_s3_client.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "test-bucket", "Key": "images/a.jpg"},
            ExpiresIn=120,
        )


# ==================== Factory Function Tests ====================


class TestGetStorageBackend:
    def test_local_from_config(self, tmp_path):
        with patch.dict(os.environ, {}, clear=True):
            storage = get_storage_backend({"backend": "local", "base_path": str(tmp_path)})
        assert isinstance(storage, LocalStorageBackend)
        assert storage.base_path == Path(str(tmp_path))

    def test_environment_overrides_config(self, tmp_path):
        custom = tmp_path / "custom"
        with patch.dict(os.environ, {"STORAGE_BASE_PATH": str(custom)}, clear=True):
            storage = get_storage_backend({"base_path": str(tmp_path / "ignored")})
        assert storage.base_path == custom

    def test_s3_backend_from_config(self):
        boto3 = pytest.importorskip("boto3")
        with patch.object(boto3, "client", return_value=MagicMock()), patch.dict(
            os.environ, {}, clear=True
        ):
            storage = get_storage_backend({"backend": "s3", "bucket": "heat"})
        assert isinstance(storage, S3StorageBackend)
        assert storage.bucket == "heat"

    def test_s3_backend_missing_bucket(self):
        with patch.dict(os.environ, {"STORAGE_BACKEND": "s3"}, clear=True):
            with pytest.raises(ValueError, match="STORAGE_S3_BUCKET is required"):
                get_storage_backend()

    def test_minio_backend_missing_endpoint(self):
        with patch.dict(
            os.environ, {"STORAGE_BACKEND": "minio", "STORAGE_S3_BUCKET": "b"}, clear=True
        ):
            with pytest.raises(ValueError, match="STORAGE_S3_ENDPOINT is required"):
                get_storage_backend()

    def test_unknown_backend(self):
        with patch.dict(os.environ, {"STORAGE_BACKEND": "ftp"}, clear=True):
            with pytest.raises(ValueError, match="Unknown storage backend"):
                get_storage_backend()
