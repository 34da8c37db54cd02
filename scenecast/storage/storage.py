"""
Durable storage backends

Generated clips, narration audio, music and final renders are written here
under the key layout in storage_keys.
"""

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Union

from ..utils.errors import StorageError


class StorageBackend(ABC):
    """Key/value blob storage with public URLs"""

    @abstractmethod
    async def upload_buffer(self, data: bytes, key: str, content_type: str) -> str:
        """Store bytes under `key` and return the public URL"""

    @abstractmethod
    async def download_file(self, key: str, local_path: Union[str, Path]) -> Path:
        """Copy the object at `key` to a local file"""

    @abstractmethod
    async def delete_file(self, key: str) -> None:
        """Remove the object at `key`"""

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Public URL for an object key"""

    async def upload_file(self, file_path: Union[str, Path], key: str, content_type: str,
                          remove_local: bool = True) -> str:
        """Upload a local file, removing it afterwards unless told otherwise"""
        path = Path(file_path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise StorageError(f"Cannot read {path} for upload: {e}") from e
        url = await self.upload_buffer(data, key, content_type)
        if remove_local:
            path.unlink(missing_ok=True)
        return url


class LocalStorage(StorageBackend):
    """Filesystem-backed storage rooted at a directory"""

    def __init__(self, root: str, public_base_url: str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip('/')
        self.logger = logging.getLogger('scenecast.storage')

    def _resolve(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not key or key.startswith('/') or '..' in parts:
            raise StorageError(f"Invalid storage key: {key!r}")
        return self.root.joinpath(*parts)

    async def upload_buffer(self, data: bytes, key: str, content_type: str) -> str:
        target = self._resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to upload {key}: {e}") from e
        self.logger.info(f"✅ Uploaded {len(data)} bytes ({content_type}) to {key}")
        return self.public_url(key)

    async def download_file(self, key: str, local_path: Union[str, Path]) -> Path:
        source = self._resolve(key)
        destination = Path(local_path)
        if not source.exists():
            raise StorageError(f"Failed to download file: {key} not found")
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, destination)
        except OSError as e:
            raise StorageError(f"Failed to download {key}: {e}") from e
        self.logger.info(f"✅ Downloaded {key} to {destination}")
        return destination

    async def delete_file(self, key: str) -> None:
        target = self._resolve(key)
        try:
            target.unlink()
        except FileNotFoundError as e:
            raise StorageError(f"Failed to delete file: {key} not found") from e
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e
        self.logger.info(f"Deleted {key} from storage")

    def public_url(self, key: str) -> str:
        self._resolve(key)
        return f"{self.public_base_url}/{key}"

    def exists(self, key: str) -> bool:
        return self._resolve(key).exists()
