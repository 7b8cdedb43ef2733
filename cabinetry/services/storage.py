# cabinetry/services/storage.py
import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from cabinetry.core.errors import ExternalServiceError
from cabinetry.core.logging_config import logger
from cabinetry.core.settings import settings


# =========================
# Abstract storage
# =========================
class Storage(ABC):
    """Object storage for uploads and generated documents."""

    @abstractmethod
    def save_bytes(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Store bytes under key and return the key."""

    @abstractmethod
    def public_url(self, key: str) -> str:
        """URL a browser can fetch the object from."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...


def _check_key(key: str) -> str:
    key = (key or "").strip()
    if not key or key.startswith("/") or ".." in key.split("/"):
        raise ValueError(f"invalid storage key: {key!r}")
    return key


def guess_content_type(key: str) -> str:
    ctype, _ = mimetypes.guess_type(key)
    return ctype or "application/octet-stream"


# =========================
# Local storage
# =========================
class LocalStorage(Storage):
    def __init__(self, base_path: str = "data"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _full_path(self, key: str) -> Path:
        return self.base_path / _check_key(key)

    def save_bytes(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        file_path = self._full_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(data)
        logger.bind(key=key, size=len(data)).info("file_stored", backend="local")
        return key

    def read_bytes(self, key: str) -> bytes:
        return self._full_path(key).read_bytes()

    def public_url(self, key: str) -> str:
        return f"{str(settings.PUBLIC_BASE_URL).rstrip('/')}/files/raw/{key}"

    def exists(self, key: str) -> bool:
        return self._full_path(key).exists()

    def delete(self, key: str) -> bool:
        p = self._full_path(key)
        if not p.exists():
            return False
        p.unlink()
        logger.bind(key=key).info("file_deleted", backend="local")
        return True


# =========================
# S3 storage
# =========================
class S3Storage(Storage):
    def __init__(self, bucket: str, region: str, cloudfront_domain: Optional[str] = None, client=None):
        self.bucket = bucket
        self.region = region
        self.cloudfront_domain = (cloudfront_domain or "").strip() or None
        self.s3_client = client or boto3.client("s3", region_name=region)

    def save_bytes(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        key = _check_key(key)
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type or guess_content_type(key),
            )
        except ClientError as e:
            logger.bind(bucket=self.bucket, key=key).error("s3_upload_failed", error=str(e))
            raise ExternalServiceError(f"S3 upload failed: {e}") from e
        logger.bind(bucket=self.bucket, key=key, size=len(data)).info("file_stored", backend="s3")
        return key

    def public_url(self, key: str) -> str:
        if self.cloudfront_domain:
            base = self.cloudfront_domain.rstrip("/")
            if not base.startswith("http"):
                base = "https://" + base
            return f"{base}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def exists(self, key: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=_check_key(key))
            return True
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("404", "NotFound", "NoSuchKey"):
                return False
            raise

    def delete(self, key: str) -> bool:
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=_check_key(key))
        except ClientError as e:
            logger.bind(bucket=self.bucket, key=key).error("s3_delete_failed", error=str(e))
            raise ExternalServiceError(f"S3 delete failed: {e}") from e
        logger.bind(bucket=self.bucket, key=key).info("file_deleted", backend="s3")
        return True


# =========================
# Factory
# =========================
def get_storage() -> Storage:
    if settings.USE_LOCAL_STORAGE:
        return LocalStorage(base_path=settings.LOCAL_STORAGE_ROOT)
    if not settings.S3_BUCKET:
        raise ValueError("S3_BUCKET is required when USE_LOCAL_STORAGE is false")
    return S3Storage(
        bucket=settings.S3_BUCKET,
        region=settings.S3_REGION,
        cloudfront_domain=settings.CLOUDFRONT_DOMAIN,
    )
