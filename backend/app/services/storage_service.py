"""
Storage Service
S3 presigned uploads and object cleanup for business photos
"""

import asyncio
import logging
import secrets
import time
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


class StorageError(Exception):
    """Object storage error"""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def build_object_key(business_id: str, photo_type: str, file_name: str, content_type: str) -> str:
    """
    Object key for an upload

    businesses/{business_id}/{type}/{epoch_ms}-{random}.{ext}
    """
    ext = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    if not ext.isalnum() or len(ext) > 5:
        ext = ALLOWED_IMAGE_TYPES.get(content_type, "bin")
    timestamp = int(time.time() * 1000)
    return f"businesses/{business_id}/{photo_type.lower()}/{timestamp}-{secrets.token_hex(4)}.{ext}"


class StorageService:
    """S3 storage for business photos"""

    def __init__(self):
        self.bucket = settings.AWS_S3_BUCKET
        self.region = settings.AWS_REGION
        self.cloudfront_url = (settings.AWS_CLOUDFRONT_URL or "").rstrip("/") or None
        self._client = None

        if not self.is_configured:
            logger.warning("S3 not configured - photo uploads disabled")

    @property
    def is_configured(self) -> bool:
        """Check if S3 is configured"""
        return bool(self.bucket)

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.region,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                config=Config(signature_version="s3v4"),
            )
        return self._client

    @property
    def bucket_url(self) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com"

    def public_url(self, key: str) -> str:
        """URL the object is served from, CloudFront when configured"""
        base = self.cloudfront_url or self.bucket_url
        return f"{base}/{key}"

    def key_from_url(self, url: str) -> Optional[str]:
        """Object key for a URL this service issued, else None"""
        for base in filter(None, (self.cloudfront_url, self.bucket_url)):
            if url.startswith(f"{base}/"):
                return url[len(base) + 1:]
        return None

    def create_presigned_upload(
        self,
        business_id: str,
        file_name: str,
        content_type: str,
        photo_type: str
    ) -> dict:
        """
        Presigned PUT for a direct browser upload

        Returns:
            Dict with upload_url, public_url, key and max_size

        Raises:
            StorageError: Unsupported content type, S3 not configured or
                signing failed
        """
        if content_type not in ALLOWED_IMAGE_TYPES:
            raise StorageError(
                "INVALID_FILE_TYPE",
                f"Invalid file type. Allowed: {', '.join(ALLOWED_IMAGE_TYPES)}"
            )
        if not self.is_configured:
            raise StorageError("STORAGE_NOT_CONFIGURED", "File storage is not configured")

        key = build_object_key(business_id, photo_type, file_name, content_type)
        try:
            upload_url = self.client.generate_presigned_url(
                "put_object",
                Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=settings.PRESIGNED_URL_EXPIRE_SECONDS,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to presign upload for {key}: {e}")
            raise StorageError("STORAGE_ERROR", "Could not create upload URL")

        logger.info(f"Presigned upload for {business_id}: {key}")
        return {
            "upload_url": upload_url,
            "public_url": self.public_url(key),
            "key": key,
            "max_size": settings.MAX_UPLOAD_BYTES,
        }

    async def delete_object(self, url: str) -> bool:
        """
        Delete the object behind a public URL

        Failures are logged and reported as False.
        """
        key = self.key_from_url(url)
        if not self.is_configured or key is None:
            logger.warning(f"Skipping storage delete for {url}")
            return False
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete {key} from S3: {e}")
            return False
        logger.info(f"Deleted {key} from S3")
        return True


# Singleton instance
_storage_service: Optional[StorageService] = None


def get_storage_service() -> StorageService:
    """Get storage service singleton"""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
