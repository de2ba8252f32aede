import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError, ServiceRequestError

from ytscraper.core.exceptions import StorageFailed
from ytscraper.services.storage_service import BlobStorageService, ObjectStore, guess_content_type


class TestKeys(unittest.TestCase):

    def test_video_key(self):
        self.assertRegex(ObjectStore.video_key(), r"^videos/[0-9a-f-]{36}\.mp4$")
        self.assertTrue(ObjectStore.video_key(".webm").endswith(".webm"))
        self.assertNotEqual(ObjectStore.video_key(), ObjectStore.video_key())

    def test_thumbnail_key(self):
        self.assertRegex(ObjectStore.thumbnail_key(), r"^thumbnails/[0-9a-f-]{36}\.jpg$")

    def test_content_type(self):
        self.assertEqual(guess_content_type("a/b.MP4"), "video/mp4")
        self.assertEqual(guess_content_type("thumb.jpg"), "image/jpeg")
        self.assertEqual(guess_content_type("blob"), "application/octet-stream")


class TestBlobStorageService(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.file = Path(self._tmp.name) / "abc.mp4"
        self.file.write_bytes(b"video-bytes")

        self.container_client = MagicMock()
        self.container_client.create_container.side_effect = ResourceExistsError("exists")
        self.service_client = MagicMock()
        self.service_client.get_container_client.return_value = self.container_client
        self.storage = BlobStorageService(container="media", service_client=self.service_client)

    def tearDown(self):
        self._tmp.cleanup()

    async def test_upload(self):
        key = await self.storage.upload_file(self.file, "videos/k.mp4")

        self.assertEqual(key, "videos/k.mp4")
        self.service_client.get_container_client.assert_called_once_with("media")
        kwargs = self.container_client.upload_blob.call_args.kwargs
        self.assertEqual(kwargs["name"], "videos/k.mp4")
        self.assertEqual(kwargs["content_settings"].content_type, "video/mp4")

    async def test_container_client_is_reused(self):
        await self.storage.upload_file(self.file, "videos/1.mp4")
        await self.storage.upload_file(self.file, "videos/2.mp4", "video/mp4")
        self.service_client.get_container_client.assert_called_once()

    async def test_upload_error(self):
        self.container_client.upload_blob.side_effect = ServiceRequestError("connection reset")

        with self.assertRaises(StorageFailed) as ctx:
            await self.storage.upload_file(self.file, "videos/k.mp4")
        self.assertIn("videos/k.mp4", ctx.exception.message)

    async def test_upload_missing_file(self):
        with self.assertRaises(StorageFailed):
            await self.storage.upload_file(Path(self._tmp.name) / "gone.mp4", "videos/k.mp4")

    async def test_missing_connection_string(self):
        storage = BlobStorageService(connection_string="")
        with self.assertRaises(StorageFailed):
            await storage.upload_file(self.file, "videos/k.mp4")

    async def test_exists_and_delete(self):
        self.container_client.get_blob_client.return_value.exists.return_value = True
        self.assertTrue(await self.storage.exists("videos/k.mp4"))

        self.container_client.delete_blob.side_effect = ResourceNotFoundError("gone")
        await self.storage.delete("videos/k.mp4")
        self.container_client.delete_blob.assert_called_once_with("videos/k.mp4")


if __name__ == "__main__":
    unittest.main()
