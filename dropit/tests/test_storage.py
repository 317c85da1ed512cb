import os
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

from dropit.config import Settings
from dropit.errors import StorageError
from dropit.storage import (
    FallbackStorageClient,
    HttpBlobStorageClient,
    LocalStorageClient,
    S3StorageClient,
    StoredBlob,
    build_storage_client,
)


class LocalStorageClientTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.uploads = Path(self.tmp.name) / "public" / "uploads"
        self.storage = LocalStorageClient(uploads_dir=str(self.uploads), base_url="/uploads")

    def tearDown(self):
        self.tmp.cleanup()

    def test_put_writes_file_and_reports_stat_metadata(self):
        blob = self.storage.put("dropit/123.txt", b"hello", "text/plain")

        path = self.uploads / "dropit" / "123.txt"
        self.assertEqual(path.read_bytes(), b"hello")
        self.assertEqual(blob.url, "/uploads/dropit/123.txt")
        self.assertEqual(blob.pathname, "dropit/123.txt")
        self.assertEqual(blob.size, 5)
        self.assertEqual(blob.uploaded_at, int(path.stat().st_mtime * 1000))

    def test_list_filters_prefix_sorts_newest_first_and_limits(self):
        self.storage.put("dropit/old.txt", b"1", "text/plain")
        self.storage.put("dropit/new.txt", b"22", "text/plain")
        self.storage.put("other/x.txt", b"333", "text/plain")
        os.utime(self.uploads / "dropit" / "old.txt", (1_000_000, 1_000_000))
        os.utime(self.uploads / "dropit" / "new.txt", (2_000_000, 2_000_000))

        blobs = self.storage.list(prefix="dropit/")
        self.assertEqual([b.pathname for b in blobs], ["dropit/new.txt", "dropit/old.txt"])
        self.assertEqual([b.size for b in blobs], [2, 1])
        self.assertEqual(blobs[0].uploaded_at, 2_000_000_000)

        limited = self.storage.list(prefix="dropit/", limit=1)
        self.assertEqual([b.pathname for b in limited], ["dropit/new.txt"])
        self.assertEqual(len(self.storage.list()), 3)

    def test_list_without_directory_is_empty(self):
        self.assertEqual(self.storage.list(prefix="dropit/"), [])

    def test_delete_by_url_removes_file(self):
        blob = self.storage.put("dropit/1.png", b"img", "image/png")
        self.storage.delete(blob.url)
        self.assertEqual(self.storage.list(prefix="dropit/"), [])

    def test_delete_accepts_absolute_url(self):
        self.storage.put("dropit/1.png", b"img", "image/png")
        self.storage.delete("http://localhost:8000/uploads/dropit/1.png")
        self.assertFalse((self.uploads / "dropit" / "1.png").exists())

    def test_delete_missing_file_raises(self):
        with self.assertRaises(StorageError):
            self.storage.delete("/uploads/dropit/missing.png")

    def test_delete_directory_raises(self):
        self.storage.put("dropit/1.png", b"img", "image/png")
        with self.assertRaises(StorageError):
            self.storage.delete("/uploads/dropit")
        self.assertTrue((self.uploads / "dropit" / "1.png").exists())

    def test_paths_cannot_escape_uploads_dir(self):
        with self.assertRaises(StorageError):
            self.storage.put("../../escape.txt", b"x", "text/plain")
        with self.assertRaises(StorageError):
            self.storage.delete("/uploads/../secret.txt")


class FallbackStorageClientTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.local = LocalStorageClient(uploads_dir=self.tmp.name, base_url="/uploads")

    def tearDown(self):
        self.tmp.cleanup()

    def test_without_primary_uses_local(self):
        storage = FallbackStorageClient(primary=None, local=self.local)
        self.assertEqual(storage.name, "local")
        blob = storage.put("dropit/1.txt", b"abc", "text/plain")
        self.assertEqual(blob.url, "/uploads/dropit/1.txt")
        self.assertEqual([b.size for b in storage.list(prefix="dropit/")], [3])

    def test_primary_failures_fall_back_to_local(self):
        primary = MagicMock()
        primary.name = "blob"
        primary.put.side_effect = requests.ConnectionError("down")
        primary.list.side_effect = requests.Timeout("slow")
        primary.delete.side_effect = requests.HTTPError("500")
        storage = FallbackStorageClient(primary=primary, local=self.local)

        blob = storage.put("dropit/1.txt", b"abc", "text/plain")
        self.assertTrue((Path(self.tmp.name) / "dropit" / "1.txt").exists())
        self.assertEqual([b.pathname for b in storage.list(prefix="dropit/")], ["dropit/1.txt"])

        storage.delete(blob.url)
        self.assertEqual(storage.list(prefix="dropit/"), [])
        primary.put.assert_called_once()
        primary.delete.assert_called_once_with(blob.url)

    def test_primary_success_skips_local(self):
        primary = MagicMock()
        primary.name = "blob"
        primary.put.return_value = StoredBlob(
            url="https://blob.example/dropit/1.txt", pathname="dropit/1.txt", size=3, uploaded_at=1
        )
        storage = FallbackStorageClient(primary=primary, local=self.local)

        blob = storage.put("dropit/1.txt", b"abc", "text/plain")
        self.assertEqual(blob.url, "https://blob.example/dropit/1.txt")
        self.assertEqual(self.local.list(), [])


class BuildStorageClientTests(unittest.TestCase):
    def _settings(self, **overrides):
        values = dict(
            _env_file=None,
            blob_read_write_token=None,
            s3_bucket=None,
            uploads_dir="unused",
        )
        values.update(overrides)
        return Settings(**values)

    def test_no_credentials_means_local_only(self):
        storage = build_storage_client(self._settings())
        self.assertIsNone(storage.primary)
        self.assertEqual(storage.local.base_url, "/uploads")

    def test_blob_token_selects_blob_api(self):
        storage = build_storage_client(self._settings(blob_read_write_token="tok"))
        self.assertIsInstance(storage.primary, HttpBlobStorageClient)
        self.assertEqual(storage.name, "blob")

    @patch("dropit.storage.boto3.client")
    def test_bucket_selects_s3(self, mock_client):
        storage = build_storage_client(
            self._settings(s3_bucket="drops", s3_public_base_url="https://cdn.example")
        )
        self.assertIsInstance(storage.primary, S3StorageClient)
        mock_client.assert_called_once()


class HttpBlobStorageClientTests(unittest.TestCase):
    def setUp(self):
        self.client = HttpBlobStorageClient(token="tok", api_url="https://blob.example")

    @patch("dropit.storage.requests.put")
    def test_put(self, mock_put):
        mock_put.return_value.json.return_value = {
            "url": "https://store.example/dropit/1.png",
            "pathname": "dropit/1.png",
        }
        blob = self.client.put("dropit/1.png", b"abcd", "image/png")

        self.assertEqual(blob.url, "https://store.example/dropit/1.png")
        self.assertEqual(blob.size, 4)
        args, kwargs = mock_put.call_args
        self.assertEqual(args[0], "https://blob.example/dropit/1.png")
        self.assertEqual(kwargs["headers"]["authorization"], "Bearer tok")
        self.assertEqual(kwargs["headers"]["x-content-type"], "image/png")

    @patch("dropit.storage.requests.get")
    def test_list_parses_blobs(self, mock_get):
        mock_get.return_value.json.return_value = {
            "blobs": [
                {"url": "u1", "pathname": "dropit/1.png", "size": 1, "uploadedAt": "2024-01-01T00:00:00.000Z"},
                {"url": "u2", "pathname": "dropit/2.png", "size": 2, "uploadedAt": "2024-01-02T00:00:00.000Z"},
            ]
        }
        blobs = self.client.list(prefix="dropit/", limit=50)

        self.assertEqual([b.url for b in blobs], ["u2", "u1"])
        expected = int(datetime(2024, 1, 2, tzinfo=timezone.utc).timestamp() * 1000)
        self.assertEqual(blobs[0].uploaded_at, expected)
        self.assertEqual(mock_get.call_args.kwargs["params"], {"prefix": "dropit/", "limit": 50})

    @patch("dropit.storage.requests.post")
    def test_delete(self, mock_post):
        self.client.delete("https://store.example/dropit/1.png")
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "https://blob.example/delete")
        self.assertEqual(kwargs["json"], {"urls": ["https://store.example/dropit/1.png"]})


class S3StorageClientTests(unittest.TestCase):
    @patch("dropit.storage.boto3.client")
    def test_put_list_delete(self, mock_factory):
        s3 = mock_factory.return_value
        client = S3StorageClient(
            bucket="drops",
            region="auto",
            endpoint="https://s3.example",
            access_key_id="id",
            secret_access_key="secret",
            public_base_url="https://cdn.example",
        )

        blob = client.put("dropit/1.png", b"abc", "image/png")
        self.assertEqual(blob.url, "https://cdn.example/dropit/1.png")
        s3.put_object.assert_called_once_with(
            Bucket="drops", Key="dropit/1.png", Body=b"abc", ContentType="image/png"
        )

        s3.get_paginator.return_value.paginate.return_value = [
            {
                "Contents": [
                    {"Key": "dropit/1.png", "Size": 3, "LastModified": datetime(2024, 1, 1, tzinfo=timezone.utc)},
                    {"Key": "dropit/2.png", "Size": 4, "LastModified": datetime(2024, 1, 3, tzinfo=timezone.utc)},
                ]
            }
        ]
        blobs = client.list(prefix="dropit/", limit=1)
        self.assertEqual([b.pathname for b in blobs], ["dropit/2.png"])

        client.delete("https://cdn.example/dropit/1.png")
        s3.delete_object.assert_called_once_with(Bucket="drops", Key="dropit/1.png")


if __name__ == "__main__":
    unittest.main()
