"""
Object storage for generated media.

Backends:
- supabase: Storage REST API (service key), public bucket URLs
- local:    files under LOCAL_STORAGE_DIR served from PUBLIC_BASE_URL
"""
from __future__ import annotations

import abc
import asyncio
import logging
from pathlib import Path

import httpx

from autopilot.settings import get_settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


def _client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout)


class StorageBackend(abc.ABC):
    @abc.abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store `data` at `path` (upsert) and return its public URL."""
        ...


class SupabaseStorage(StorageBackend):
    def __init__(self, base_url: str, service_key: str, bucket: str, timeout: float = 60):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{path}"
        async with _client(self.timeout) as client:
            resp = await client.post(
                url,
                headers={
                    "Authorization": f"Bearer {self.service_key}",
                    "apikey": self.service_key,
                    "Content-Type": content_type,
                    "x-upsert": "true",
                },
                content=data,
            )
        if resp.status_code >= 400:
            raise StorageError(f"Upload of {path} failed: {resp.status_code} {resp.text[:200]}")
        return self.public_url(path)


class LocalStorage(StorageBackend):
    def __init__(self, root: str | Path, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        target = self.root / path
        if self.root.resolve() not in target.resolve().parents:
            raise StorageError(f"Refusing to write outside storage root: {path}")

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        return f"{self.public_base_url}/{path}"


_storage: StorageBackend | None = None


def get_storage() -> StorageBackend:
    global _storage
    if _storage is None:
        settings = get_settings()
        if settings.storage_backend == "supabase":
            if not settings.storage_url or not settings.storage_service_key:
                raise StorageError("Supabase storage requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
            _storage = SupabaseStorage(
                settings.storage_url,
                settings.storage_service_key,
                settings.storage_bucket,
                timeout=settings.http_timeout_sec,
            )
        else:
            _storage = LocalStorage(settings.local_storage_dir, settings.public_base_url)
        logger.info("[storage] Using %s backend", type(_storage).__name__)
    return _storage


def set_storage(storage: StorageBackend | None) -> None:
    global _storage
    _storage = storage
