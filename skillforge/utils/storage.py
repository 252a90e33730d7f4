# skillforge/utils/storage.py
import logging
import time
import uuid
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile
from pydantic import BaseModel

from skillforge.core.config import Settings, settings
from skillforge.core.exceptions import UpstreamUnavailable, ValidationFailed

logger = logging.getLogger(__name__)


class StoredFile(BaseModel):
    url: str
    key: str
    size: int
    content_type: str
    original_name: str


class ObjectStorage:
    """Interface for avatar and thumbnail uploads."""

    def upload_file(
        self, content: bytes, filename: str, content_type: str, folder: str
    ) -> StoredFile:
        raise NotImplementedError

    def delete_url(self, url: str) -> bool:
        """Delete a previously uploaded file; False if the url is not ours."""
        raise NotImplementedError

    def signed_url(self, url: str, expires_in: Optional[int] = None) -> str:
        """Time-limited read URL for an uploaded file; foreign urls come back as is."""
        raise NotImplementedError


class S3Storage(ObjectStorage):
    def __init__(self, config: Settings = settings):
        self.bucket = config.s3_bucket_name
        self.region = config.aws_region
        self.signed_url_expiry = config.storage_signed_url_expiry
        self.configured = bool(config.aws_access_key_id and config.aws_secret_access_key)

        self.client = boto3.client(
            "s3",
            region_name=self.region,
            aws_access_key_id=config.aws_access_key_id or None,
            aws_secret_access_key=config.aws_secret_access_key or None,
            config=Config(
                connect_timeout=config.storage_timeout,
                read_timeout=config.storage_timeout,
                retries={"total_max_attempts": 1},
            ),
        )

        if not self.configured:
            logger.warning(
                "AWS credentials not configured. File upload features will not work."
            )

    def _ensure_configured(self):
        if not self.configured:
            raise UpstreamUnavailable("Storage service not configured")

    def _public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def upload_file(
        self, content: bytes, filename: str, content_type: str, folder: str = "uploads"
    ) -> StoredFile:
        self._ensure_configured()
        suffix = Path(filename).suffix.lower()
        key = f"{folder}/{int(time.time() * 1000)}-{uuid.uuid4().hex}{suffix}"

        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
                Metadata={"originalname": filename},
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload error: {e}")
            raise UpstreamUnavailable("Failed to upload file")

        logger.info(f"Uploaded {key} ({len(content)} bytes)")
        return StoredFile(
            url=self._public_url(key),
            key=key,
            size=len(content),
            content_type=content_type,
            original_name=filename,
        )

    def delete_url(self, url: str) -> bool:
        key = self._key_from_url(url)
        if key is None:
            return False
        self._ensure_configured()
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 delete error: {e}")
            raise UpstreamUnavailable("Failed to delete file")
        return True

    def signed_url(self, url: str, expires_in: Optional[int] = None) -> str:
        key = self._key_from_url(url)
        if key is None:
            return url
        self._ensure_configured()
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in or self.signed_url_expiry,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 signed URL error: {e}")
            raise UpstreamUnavailable("Failed to generate signed URL")

    def _key_from_url(self, url: str) -> Optional[str]:
        prefix = self._public_url("")
        return url[len(prefix) :] if url.startswith(prefix) else None


async def read_image_upload(file: UploadFile, config: Settings = settings) -> bytes:
    """
    Validate an uploaded image and return its bytes.

    Raises:
        ValidationFailed: missing filename, disallowed type or too large
    """
    if not file.filename:
        raise ValidationFailed("No file uploaded")

    if file.content_type not in config.allowed_image_types:
        raise ValidationFailed(
            f"Invalid file type. Allowed types: {', '.join(config.allowed_image_types)}"
        )

    content = await file.read()
    if len(content) > config.max_upload_size_mb * 1024 * 1024:
        raise ValidationFailed(
            f"File too large. Maximum size is {config.max_upload_size_mb}MB"
        )
    return content
