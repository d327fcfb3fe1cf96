"""S3 blob storage for resource PDFs and images."""

import asyncio
import logging
import time
import uuid
from typing import Optional
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from tutorlink.core.config import Settings
from tutorlink.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class S3Storage:
    def __init__(self, settings: Settings, client=None) -> None:
        self.bucket = settings.AWS_BUCKET_NAME
        self.region_name = settings.AWS_REGION
        self.signed_url_ttl = settings.SIGNED_URL_TTL_SECONDS
        self.aws_access_key_id = settings.AWS_ACCESS_KEY_ID
        self.aws_secret_access_key = settings.AWS_SECRET_ACCESS_KEY
        self._s3 = client

    def _client(self):
        if self._s3 is not None:
            return self._s3

        config = Config(connect_timeout=5, read_timeout=30, retries={"max_attempts": 3})
        if self.aws_access_key_id and self.aws_secret_access_key:
            self._s3 = boto3.client(
                "s3",
                region_name=self.region_name,
                aws_access_key_id=self.aws_access_key_id,
                aws_secret_access_key=self.aws_secret_access_key,
                config=config,
            )
        else:
            self._s3 = boto3.client("s3", region_name=self.region_name, config=config)
        return self._s3

    @staticmethod
    def new_key(prefix: str, extension: str) -> str:
        return f"{prefix}{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}.{extension}"

    async def upload(self, key: str, body: bytes, content_type: str) -> str:
        """Store ``body`` under ``key`` as a private object and return the key."""
        s3 = self._client()
        try:
            await asyncio.to_thread(
                s3.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                ACL="private",
            )
        except (BotoCoreError, ClientError) as e:
            raise ExternalServiceError("S3", f"upload of {key} failed: {e}") from e
        return key

    async def get_signed_url(self, key: str, expires: int | None = None) -> Optional[str]:
        """Presigned GET URL for ``key``; None when signing fails."""
        if not key:
            return None
        s3 = self._client()
        try:
            return await asyncio.to_thread(
                s3.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires or self.signed_url_ttl,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Error generating signed URL for %s: %s", key, e)
            return None

    async def delete(self, key: str) -> None:
        if not key:
            return
        s3 = self._client()
        try:
            await asyncio.to_thread(s3.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise ExternalServiceError("S3", f"delete of {key} failed: {e}") from e

    def _bucket_hosts(self) -> set[str]:
        return {
            f"{self.bucket}.s3.amazonaws.com",
            f"{self.bucket}.s3.{self.region_name}.amazonaws.com",
            f"{self.bucket}.s3-{self.region_name}.amazonaws.com",
        }

    def extract_key(self, value: str | None) -> Optional[str]:
        """Object key for a bare key or a URL pointing into our bucket.

        Both virtual-hosted and path-style S3 URLs are recognized. Returns
        None for URLs on any other host.
        """
        if not value:
            return None
        parsed = urlparse(value)
        if not parsed.scheme or not parsed.netloc:
            return value.lstrip("/") or None
        if not self.bucket:
            return None
        host = (parsed.hostname or "").lower()
        path = parsed.path.lstrip("/")
        if host in self._bucket_hosts():
            return path or None
        if host in {"s3.amazonaws.com", f"s3.{self.region_name}.amazonaws.com"}:
            bucket, _, key = path.partition("/")
            if bucket == self.bucket:
                return key or None
        return None

    async def sign_if_owned(self, value: str | None) -> str | None:
        """Sign values stored in our bucket; pass everything else through.

        A failed signature leaves the original value in place.
        """
        key = self.extract_key(value)
        if key is None:
            return value
        signed = await self.get_signed_url(key)
        return signed or value
