from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from urllib.parse import quote

from fastapi.concurrency import run_in_threadpool


class BlobStore(ABC):
    provider: str = "local"
    bucket: str | None = None

    @abstractmethod
    async def upload(self, object_key: str, content: bytes, content_type: str) -> str:
        """Store *content* under *object_key* and return a durable URL for it."""

    @abstractmethod
    def object_exists(self, object_key: str) -> bool:
        pass


class LocalFileSystemAdapter(BlobStore):
    def __init__(self, base_path: str, base_url: str):
        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip("/")
        self.provider = "local"
        self.bucket = "local"
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve_safe_path(self, object_key: str) -> Path:
        if "\\" in object_key:
            raise ValueError("Invalid object key")
        key_path = PurePosixPath(object_key)
        if key_path.is_absolute() or ".." in key_path.parts:
            raise ValueError("Invalid object key")
        base = self.base_path.resolve()
        resolved = (base / Path(object_key)).resolve()
        if resolved == base or base not in resolved.parents:
            raise ValueError("Invalid object key")
        return resolved

    def resolve_path(self, object_key: str) -> Path:
        return self._resolve_safe_path(object_key)

    def url_for(self, object_key: str) -> str:
        return f"{self.base_url}/api/v1/files/{quote(object_key)}"

    def write_file(self, object_key: str, content: bytes) -> None:
        path = self._resolve_safe_path(object_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    async def upload(self, object_key: str, content: bytes, content_type: str) -> str:
        await run_in_threadpool(self.write_file, object_key, content)
        return self.url_for(object_key)

    def object_exists(self, object_key: str) -> bool:
        try:
            path = self._resolve_safe_path(object_key)
        except ValueError:
            return False
        return path.exists()


class GCSStorageAdapter(BlobStore):
    def __init__(self, bucket: str):
        # Lazy import to avoid requiring dependency unless used
        from google.cloud import storage

        self.provider = "gcs"
        self.bucket = bucket
        self.client = storage.Client()
        self._bucket_ref = self.client.bucket(bucket)

    def _upload_sync(self, object_key: str, content: bytes, content_type: str) -> str:
        blob = self._bucket_ref.blob(object_key)
        blob.upload_from_string(content, content_type=content_type)
        return blob.public_url

    async def upload(self, object_key: str, content: bytes, content_type: str) -> str:
        return await run_in_threadpool(self._upload_sync, object_key, content, content_type)

    def object_exists(self, object_key: str) -> bool:
        blob = self._bucket_ref.blob(object_key)
        return blob.exists()
