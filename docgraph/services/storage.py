"""
Object storage for full document content.

Relational rows only hold a bounded preview; the complete text lives here
under ``users/{user_id}/documents/{document_id}/{filename}``.
"""

import asyncio
import json
import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import settings
from ..errors import ObjectStorageError
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)


# mimetypes misses some of these depending on platform tables
CONTENT_TYPES = {
    "md": "text/markdown",
    "txt": "text/plain",
    "json": "application/json",
    "html": "text/html",
    "pdf": "application/pdf",
}


def content_type_for(key: str) -> str:
    ext = key.rsplit(".", 1)[-1].lower() if "." in key.rsplit("/", 1)[-1] else ""
    if ext in CONTENT_TYPES:
        return CONTENT_TYPES[ext]
    guessed, _ = mimetypes.guess_type(key)
    return guessed or "application/octet-stream"


class ObjectStorage(ABC):
    @abstractmethod
    async def put(self, key: str, content: str, metadata: Dict[str, str]) -> None: ...

    @abstractmethod
    async def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def list(self, prefix: str) -> List[Dict[str, object]]: ...


class LocalObjectStorage(ObjectStorage):
    """Filesystem-backed storage. Metadata goes to a parallel JSON tree."""

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root or settings.STORAGE_DIR)
        self._objects = self.root / "objects"
        self._meta = self.root / "meta"

    def _path(self, base: Path, key: str, suffix: str = "") -> Path:
        parts = [p for p in key.split("/") if p]
        if not parts or any(p in (".", "..") for p in parts):
            raise ObjectStorageError("Invalid object key", key=key)
        return base.joinpath(*parts[:-1], parts[-1] + suffix)

    async def put(self, key: str, content: str, metadata: Dict[str, str]) -> None:
        obj_path = self._path(self._objects, key)
        meta_path = self._path(self._meta, key, ".json")
        meta = {"content_type": content_type_for(key), **{k: str(v) for k, v in metadata.items()}}

        def _write():
            obj_path.parent.mkdir(parents=True, exist_ok=True)
            meta_path.parent.mkdir(parents=True, exist_ok=True)
            obj_path.write_text(content, encoding="utf-8")
            meta_path.write_text(json.dumps(meta), encoding="utf-8")

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise ObjectStorageError("Failed to write object", key=key, details={"error": str(e)}) from e

    async def get(self, key: str) -> Optional[str]:
        obj_path = self._path(self._objects, key)
        try:
            return await asyncio.to_thread(obj_path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ObjectStorageError("Failed to read object", key=key, details={"error": str(e)}) from e

    async def get_metadata(self, key: str) -> Optional[Dict[str, str]]:
        meta_path = self._path(self._meta, key, ".json")
        try:
            raw = await asyncio.to_thread(meta_path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        return json.loads(raw)

    async def delete(self, key: str) -> None:
        for path in (self._path(self._objects, key), self._path(self._meta, key, ".json")):
            try:
                await asyncio.to_thread(path.unlink)
            except FileNotFoundError:
                pass
            except OSError as e:
                raise ObjectStorageError("Failed to delete object", key=key, details={"error": str(e)}) from e

    async def list(self, prefix: str) -> List[Dict[str, object]]:
        def _scan():
            if not self._objects.exists():
                return []
            out = []
            for path in self._objects.rglob("*"):
                if not path.is_file():
                    continue
                key = path.relative_to(self._objects).as_posix()
                if key.startswith(prefix):
                    out.append({"key": key, "size": path.stat().st_size})
            return sorted(out, key=lambda item: item["key"])

        return await asyncio.to_thread(_scan)


class S3ObjectStorage(ObjectStorage):
    """S3 (or S3-compatible, via endpoint_url) storage. boto3 calls run in a worker thread."""

    def __init__(
        self,
        bucket: str | None = None,
        region: str | None = None,
        endpoint_url: str | None = None,
        client=None,
    ):
        self._bucket = bucket or settings.S3_BUCKET
        if not self._bucket:
            raise ValueError("S3_BUCKET must be set for S3 object storage")
        self._client = client or boto3.client(
            "s3",
            region_name=region or settings.S3_REGION,
            endpoint_url=(endpoint_url or settings.S3_ENDPOINT_URL) or None,
        )

    async def put(self, key: str, content: str, metadata: Dict[str, str]) -> None:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=content.encode("utf-8"),
                ContentType=content_type_for(key),
                Metadata={k: str(v) for k, v in metadata.items()},
            )
        except (ClientError, BotoCoreError) as e:
            raise ObjectStorageError("Failed to upload object", key=key, details={"error": str(e)}) from e

    async def get(self, key: str) -> Optional[str]:
        try:
            resp = await asyncio.to_thread(self._client.get_object, Bucket=self._bucket, Key=key)
            body = await asyncio.to_thread(resp["Body"].read)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            raise ObjectStorageError("Failed to download object", key=key, details={"error": str(e)}) from e
        except BotoCoreError as e:
            raise ObjectStorageError("Failed to download object", key=key, details={"error": str(e)}) from e
        return body.decode("utf-8", errors="replace")

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise ObjectStorageError("Failed to delete object", key=key, details={"error": str(e)}) from e

    async def list(self, prefix: str) -> List[Dict[str, object]]:
        def _scan():
            out = []
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    out.append({"key": obj["Key"], "size": obj["Size"]})
            return out

        try:
            return await asyncio.to_thread(_scan)
        except (ClientError, BotoCoreError) as e:
            raise ObjectStorageError("Failed to list objects", details={"prefix": prefix, "error": str(e)}) from e


def build_object_storage(backend: str | None = None) -> ObjectStorage:
    backend = (backend or settings.STORAGE_BACKEND or "local").lower()
    if backend == "local":
        return LocalObjectStorage()
    if backend == "s3":
        return S3ObjectStorage()
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")
