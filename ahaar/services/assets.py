from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from fastapi import UploadFile

from ahaar.core.config import ASSET_STORE, MAX_UPLOAD_BYTES, UPLOADS_DIR
from ahaar.core.errors import ValidationError

logger = logging.getLogger(__name__)

_ALLOWED_SUFFIXES = {".png", ".jpg", ".jpeg", ".webp", ".gif"}


class AssetStore(Protocol):
    def upload(self, data: bytes, *, folder: str, filename: str | None = None) -> dict[str, str]:
        """Store ``data`` and return ``{"public_id", "url"}``."""
        ...

    def delete(self, public_id: str) -> dict[str, str]:
        """Remove a stored asset and return ``{"result": "ok" | "not found"}``."""
        ...


def _object_name(folder: str, filename: str | None) -> str:
    suffix = Path(filename or "").suffix.lower()
    if suffix not in _ALLOWED_SUFFIXES:
        suffix = ""
    return f"{folder.strip().strip('/')}/{uuid4().hex}{suffix}"


class LocalAssetStore:
    """Files under the uploads directory, served by the ``/uploads`` static mount."""

    def __init__(self, root: str | Path = UPLOADS_DIR, base_url: str = "/uploads") -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def upload(self, data: bytes, *, folder: str, filename: str | None = None) -> dict[str, str]:
        public_id = _object_name(folder, filename)
        path = self.root / public_id
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as buffer:
            buffer.write(data)
        return {"public_id": public_id, "url": f"{self.base_url}/{public_id}"}

    def delete(self, public_id: str) -> dict[str, str]:
        path = (self.root / public_id).resolve()
        if self.root.resolve() not in path.parents or not path.exists():
            return {"result": "not found"}
        path.unlink()
        return {"result": "ok"}


def _get_required_env(var_name: str) -> str:
    value = os.getenv(var_name, "").strip()
    if not value:
        raise RuntimeError(f"Missing required environment variable: {var_name}")
    return value


class R2AssetStore:
    """S3 compatible bucket (Cloudflare R2) through boto3."""

    def __init__(self) -> None:
        self.bucket = _get_required_env("R2_BUCKET_NAME")
        self.public_url = _get_required_env("R2_PUBLIC_URL").rstrip("/")
        self._client = None

    def _get_client(self):
        if self._client is None:
            import boto3

            account_id = _get_required_env("R2_ACCOUNT_ID")
            self._client = boto3.client(
                "s3",
                endpoint_url=f"https://{account_id}.r2.cloudflarestorage.com",
                aws_access_key_id=_get_required_env("R2_ACCESS_KEY_ID"),
                aws_secret_access_key=_get_required_env("R2_SECRET_ACCESS_KEY"),
                region_name="auto",
            )
        return self._client

    def upload(self, data: bytes, *, folder: str, filename: str | None = None) -> dict[str, str]:
        public_id = _object_name(folder, filename)
        self._get_client().put_object(Bucket=self.bucket, Key=public_id, Body=data)
        return {"public_id": public_id, "url": f"{self.public_url}/{public_id}"}

    def delete(self, public_id: str) -> dict[str, str]:
        self._get_client().delete_object(Bucket=self.bucket, Key=public_id)
        return {"result": "ok"}


def read_image_upload(file: UploadFile | None, label: str) -> bytes:
    if file is None or not file.filename:
        raise ValidationError(f"{label} is required")

    content_type = (file.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise ValidationError("Unsupported file type")

    data = file.file.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationError(f"File exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)}MB")
    if not data:
        raise ValidationError(f"{label} is required")
    return data


def replace_asset(store: AssetStore, *, old_public_id: str | None, data: bytes, folder: str, filename: str | None) -> dict[str, str]:
    """Delete the previous asset first, then upload the new one."""
    if old_public_id:
        result = store.delete(old_public_id)
        logger.info("asset deleted public_id=%s result=%s", old_public_id, result.get("result"))
    uploaded = store.upload(data, folder=folder, filename=filename)
    if not uploaded.get("public_id"):
        raise RuntimeError("Asset upload returned no public_id")
    return uploaded


@lru_cache(maxsize=1)
def get_asset_store() -> AssetStore:
    if ASSET_STORE == "r2":
        return R2AssetStore()
    return LocalAssetStore()
