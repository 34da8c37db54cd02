"""Tests for local durable storage and key layout"""

import pytest

from scenecast.storage import storage_keys
from scenecast.utils.errors import StorageError


class TestStorageKeys:

    def test_scene_assets(self):
        assert storage_keys.scene_video_key("u1", "p1", 3) == "users/u1/projects/p1/scenes/scene-3/video.mp4"
        assert storage_keys.scene_audio_key("u1", "p1", 3) == "users/u1/projects/p1/scenes/scene-3/audio.wav"

    def test_project_assets(self):
        assert storage_keys.music_key("u1", "p1") == "users/u1/projects/p1/background-music.wav"
        assert storage_keys.final_video_key("u1", "p1") == "users/u1/projects/p1/final-video.mp4"
        assert storage_keys.thumbnail_key("u1", "p1") == "users/u1/projects/p1/thumbnail.jpg"


class TestLocalStorage:

    @pytest.mark.asyncio
    async def test_upload_then_download(self, storage, tmp_path):
        url = await storage.upload_buffer(b"clip", "users/u1/clip.mp4", "video/mp4")

        local = await storage.download_file("users/u1/clip.mp4", tmp_path / "work" / "clip.mp4")

        assert url == "https://files.test/users/u1/clip.mp4"
        assert local.read_bytes() == b"clip"

    @pytest.mark.asyncio
    async def test_upload_file_removes_local_copy_by_default(self, storage, tmp_path):
        source = tmp_path / "final.mp4"
        source.write_bytes(b"video")

        await storage.upload_file(source, "users/u1/final.mp4", "video/mp4")

        assert not source.exists()
        assert storage.exists("users/u1/final.mp4")

    @pytest.mark.asyncio
    async def test_upload_file_can_keep_local_copy(self, storage, tmp_path):
        source = tmp_path / "audio.wav"
        source.write_bytes(b"wav")

        await storage.upload_file(source, "users/u1/audio.wav", "audio/wav", remove_local=False)

        assert source.exists()

    @pytest.mark.asyncio
    async def test_missing_object(self, storage, tmp_path):
        with pytest.raises(StorageError, match="not found"):
            await storage.download_file("users/u1/none.mp4", tmp_path / "x.mp4")
        with pytest.raises(StorageError):
            await storage.delete_file("users/u1/none.mp4")

    @pytest.mark.asyncio
    async def test_delete(self, storage):
        await storage.upload_buffer(b"x", "users/u1/x.bin", "application/octet-stream")

        await storage.delete_file("users/u1/x.bin")

        assert not storage.exists("users/u1/x.bin")

    @pytest.mark.parametrize("key", ["", "/etc/passwd", "users/../../secret"])
    def test_keys_cannot_escape_the_root(self, storage, key):
        with pytest.raises(StorageError):
            storage.public_url(key)
